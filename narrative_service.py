"""
Narrative strategy analyses for the HYDRA dashboard views.

Each view hands its current statistics to a NarrativeGenerator and gets back an
analysis record: risk level, a one-line diagnosis, action items, the priority
region and the projected impact. Two generators exist: one calls Google Gemini
with a fixed JSON response schema, the other returns canned results and is used
when no API key is configured.
"""

import json
import logging
import threading
from typing import Callable, Dict, List, Optional

import google.genai as genai
from google.genai import types

logger = logging.getLogger(__name__)


RISK_LEVELS = ('CRITICAL', 'HIGH', 'MODERATE', 'LOW')

ANALYSIS_TYPES = (
    'system_status',
    'anomaly_priority',
    'gamification',
    'infrastructure',
    'financial',
    'benchmark',
    'simulation',
    'b2b',
)

# Wire key -> record key
RESULT_FIELDS = {
    'riskLevel': 'risk_level',
    'summary': 'summary',
    'actionItems': 'action_items',
    'priorityRegion': 'priority_region',
    'projectedImpact': 'projected_impact',
}

RESPONSE_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        'riskLevel': types.Schema(type=types.Type.STRING, enum=list(RISK_LEVELS)),
        'summary': types.Schema(type=types.Type.STRING),
        'actionItems': types.Schema(type=types.Type.ARRAY, items=types.Schema(type=types.Type.STRING)),
        'priorityRegion': types.Schema(type=types.Type.STRING),
        'projectedImpact': types.Schema(type=types.Type.STRING),
    },
    required=list(RESULT_FIELDS),
)


class ConfigurationError(Exception):
    """Narrative generator settings are inconsistent."""


class AnalysisInProgressError(Exception):
    """An analysis is already running for this session."""


class NarrativeParseError(ValueError):
    """The model reply does not match the analysis schema."""


def make_result(risk_level: str, summary: str, action_items: List[str],
                priority_region: str, projected_impact: str) -> Dict:
    return {
        'risk_level': risk_level,
        'summary': summary,
        'action_items': list(action_items),
        'priority_region': priority_region,
        'projected_impact': projected_impact,
    }


def parse_analysis_result(text: Optional[str]) -> Dict:
    """Parse and validate a JSON reply in the camelCase wire schema."""

    if not text:
        raise NarrativeParseError("No response from AI")

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise NarrativeParseError(f"Reply is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise NarrativeParseError("Reply is not a JSON object")

    missing = [key for key in RESULT_FIELDS if key not in payload]
    if missing:
        raise NarrativeParseError(f"Reply is missing fields: {', '.join(missing)}")

    if payload['riskLevel'] not in RISK_LEVELS:
        raise NarrativeParseError(f"Unknown risk level: {payload['riskLevel']!r}")

    action_items = payload['actionItems']
    if not isinstance(action_items, list):
        raise NarrativeParseError("actionItems must be a list")

    return make_result(
        payload['riskLevel'],
        str(payload['summary']),
        [str(item) for item in action_items],
        str(payload['priorityRegion']),
        str(payload['projectedImpact']),
    )


def to_wire(result: Dict) -> Dict:
    return {wire: result[key] for wire, key in RESULT_FIELDS.items()}


# ============================================================================
# FALLBACK RESULTS - returned when a remote call fails
# ============================================================================

FAILURE_RESULTS = {
    'system_status': make_result(
        'CRITICAL', "AI service connection error. Manual inspection required.",
        ["Check the connection", "Continue in manual mode"], "Unknown", "No data."),
    'anomaly_priority': make_result(
        'HIGH', "AI service error.",
        ["Perform a manual check"], "System Error", "Not calculated"),
    'gamification': make_result(
        'LOW', "The analysis service is unreachable.",
        ["Check the connection"], "None", "-"),
    'infrastructure': make_result(
        'MODERATE', "The technical analysis service is busy right now.",
        ["Run a manual network scan"], "General Network", "-"),
    'financial': make_result(
        'MODERATE', "The financial analysis service is busy right now.",
        ["Review the revenue statement manually"], "General Finance", "-"),
    'benchmark': make_result(
        'LOW', "The benchmark service is temporarily offline.",
        ["Check the data feed"], "Benchmark", "-"),
    'simulation': make_result(
        'MODERATE', "The simulation engine is offline.",
        ["Change the parameters and try again"], "Simulation", "-"),
    'b2b': make_result(
        'LOW', "The B2B analysis service is busy right now.",
        ["Prepare a manual report"], "B2B", "-"),
}


class NarrativeGenerator:
    """Strategy interface: one analysis per dashboard view."""

    name = 'base'

    def analyze(self, analysis_type: str, **context) -> Dict:
        handlers = {
            'system_status': self.analyze_system_status,
            'anomaly_priority': self.analyze_anomaly_priority,
            'gamification': self.analyze_gamification_strategy,
            'infrastructure': self.analyze_infrastructure_optimization,
            'financial': self.analyze_financial_strategy,
            'benchmark': self.analyze_benchmark_strategy,
            'simulation': self.analyze_simulation_scenario,
            'b2b': self.analyze_b2b_impact,
        }
        if analysis_type not in handlers:
            raise KeyError(analysis_type)
        return handlers[analysis_type](**context)

    def analyze_system_status(self, kpis: List[Dict], anomalies: List[Dict], time_filter: str) -> Dict:
        raise NotImplementedError

    def analyze_anomaly_priority(self, time_filter: str) -> Dict:
        raise NotImplementedError

    def analyze_gamification_strategy(self, stats: Dict) -> Dict:
        raise NotImplementedError

    def analyze_infrastructure_optimization(self, stats: Dict) -> Dict:
        raise NotImplementedError

    def analyze_financial_strategy(self, stats: Dict) -> Dict:
        raise NotImplementedError

    def analyze_benchmark_strategy(self, stats: Dict) -> Dict:
        raise NotImplementedError

    def analyze_simulation_scenario(self, params: Dict, results: Dict) -> Dict:
        raise NotImplementedError

    def analyze_b2b_impact(self, stats: Dict) -> Dict:
        raise NotImplementedError


class StaticNarrativeGenerator(NarrativeGenerator):
    """Canned analyses, one per view."""

    name = 'static'

    def analyze_system_status(self, kpis: List[Dict], anomalies: List[Dict], time_filter: str) -> Dict:
        return make_result(
            'HIGH',
            "Adana region, block 102: a constant 12 L/min 'silent leak' was detected between "
            "03:00 and 05:00 while the network was idle.",
            [
                "Open an urgent 'acoustic listening' work order for block 102 with the field team "
                "(municipality / site management).",
                "Throttle the regional pressure reducing valves (PRV) by 10% to cut the leak flow temporarily.",
                "Notify the site manager with an automatic SMS.",
            ],
            "Adana/Seyhan",
            "After intervention weekly water loss drops by 5%, saving an estimated TL 45,000 per year.",
        )

    def analyze_anomaly_priority(self, time_filter: str) -> Dict:
        return make_result(
            'CRITICAL',
            "The Konya industrial zone main line shows an unexpected flow increase outside production "
            "hours (weekend). A hidden crack is suspected.",
            [
                "Dispatch the emergency response team to the Seyhan sector (Code: Red).",
                "Throttle the regional valves by 40% to lower pressure and the risk of a pipe burst.",
                "Send a 'network maintenance' notice to the chamber of industry.",
            ],
            "Konya/Industrial",
            "Early intervention prevents a main pipe burst and about TL 2 million of infrastructure "
            "damage with 95% probability.",
        )

    def analyze_gamification_strategy(self, stats: Dict) -> Dict:
        return make_result(
            'MODERATE',
            "The top 20% of consumers (the 'luxury segment') are unresponsive to current "
            "environmental messages and the points system.",
            [
                "Launch a 'Wallet Hunter' badge for this segment that shows savings in TL on the bill.",
                "Enable 'competitive report' notifications with anonymous neighbour comparisons.",
                "Offer local-government incentives such as property tax discounts to savers.",
            ],
            "Luxury Housing Segment",
            "A 12% drop in the target group's consumption and a 35% rise in campaign participation.",
        )

    def analyze_infrastructure_optimization(self, stats: Dict) -> Dict:
        return make_result(
            'HIGH',
            "Weak signal (RSSI < -120 dB) in Ankara/Mamak sector 3 causes 15% packet loss, delaying "
            "leak detection by 4 hours.",
            [
                "Plan one additional LoRaWAN gateway for the Mamak sector 3 blind spot.",
                "Create a 'preventive battery replacement' route for the 240 devices below 10% battery.",
                "Raise the antenna spreading factor remotely in dense reinforced-concrete areas.",
            ],
            "Ankara/Mamak",
            "Data loss falls below 1% and leak detection time drops from 4 hours to 15 minutes.",
        )

    def analyze_financial_strategy(self, stats: Dict) -> Dict:
        return make_result(
            'LOW',
            "Revenue mix risk: corporate API revenue is 15% behind target and B2B data sales "
            "potential is underused.",
            [
                "Offer the Bursa smart-city project an 'anonymised aggregate consumption data' package.",
                "Accelerate the move to a pay-as-you-go SaaS model that removes hardware cost for large sites.",
                "Bring a 'water damage risk score' API to market for insurers.",
            ],
            "Bursa/Corporate",
            "A 25% increase in API and SaaS revenue balances monthly recurring revenue (MRR).",
        )

    def analyze_benchmark_strategy(self, stats: Dict) -> Dict:
        # LOW risk is the good outcome here
        return make_result(
            'LOW',
            "Savings momentum: Hydra users consume 18% less than the regional average. The gap is "
            "narrowing, which shows other users are also moving toward savings.",
            [
                "Push the AI-identified savings tips to all users in the region.",
                "Publish the 12% efficiency gain in the Bursa pilot as a case study.",
                "Offer 'smart valve' rentals to Istanbul sites with rising consumption.",
            ],
            "All Regions",
            "A regional awareness campaign delivers a further 5% drop in overall water consumption.",
        )

    def analyze_simulation_scenario(self, params: Dict, results: Dict) -> Dict:
        risk = results.get('scarcity_risk', 0)
        if risk > 80:
            risk_level = 'CRITICAL'
        elif risk > 50:
            risk_level = 'HIGH'
        else:
            risk_level = 'MODERATE'

        return make_result(
            risk_level,
            f"In this scenario, if AI adoption reaches {params.get('ai_adoption')}% despite population "
            f"growth, the time to the scarcity threshold extends by 2.4 years.",
            [
                "Raise prices by 10% to test demand elasticity.",
                f"Under the drought scenario (rainfall: {params.get('rainfall')}) enable agricultural "
                f"irrigation limits to protect dam reserves.",
                "Mandate grey-water recovery systems in high population growth areas (Istanbul).",
            ],
            "Future Projection",
            "The resilience of the crisis management strategy can be raised by 35%.",
        )

    def analyze_b2b_impact(self, stats: Dict) -> Dict:
        return make_result(
            'LOW',
            "Local strengthening: municipal integration in the Bursa pilot (phase 3) cut common-area "
            "water leaks by 45%, a record for operational efficiency.",
            [
                "Share an 'anonymised neighbourhood consumption map' with municipalities to prioritise "
                "infrastructure maintenance.",
                "Offer site managements a 'smart valve' rental model that shuts off common-area leaks "
                "(pool, garden) automatically.",
                "Launch an 'ESG compliance certificate' programme for SMEs.",
            ],
            "Bursa/Nilufer",
            "A 20% annual saving in the municipal maintenance budget and a 10% drop in site fees.",
        )


class GeminiNarrativeGenerator(NarrativeGenerator):
    """Gemini-backed analyses with the fixed JSON response schema."""

    name = 'gemini'

    def __init__(self, api_key: str, model: str = 'gemini-2.5-flash', client=None):
        if not api_key and client is None:
            raise ConfigurationError("Gemini API key is required for remote narrative generation")
        self.model = model
        self.client = client if client is not None else genai.Client(api_key=api_key)

    def _generate(self, analysis_type: str, prompt: str) -> Dict:

        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    response_mime_type='application/json',
                    response_schema=RESPONSE_SCHEMA,
                ),
            )
            result = parse_analysis_result(response.text)
            logger.info(f"Gemini {analysis_type} analysis complete: risk {result['risk_level']}")
            return result

        except Exception as e:
            logger.error(f"Gemini {analysis_type} analysis failed: {e}")
            return make_result(**FAILURE_RESULTS[analysis_type])

    @staticmethod
    def _prompt(role: str, context: str, tasks: List[str]) -> str:
        lines = [
            f"You are HYDRA-AI, {role}.",
            "Tone: clear, authoritative, solution-oriented (like a strategy consulting report).",
            "",
            context,
            "",
            "Tasks:",
        ]
        lines.extend(f"{i}. {task}" for i, task in enumerate(tasks, 1))
        return "\n".join(lines)

    def analyze_system_status(self, kpis: List[Dict], anomalies: List[Dict], time_filter: str) -> Dict:
        prompt = self._prompt(
            "a water management strategy consultant",
            f"Data context: overall system data for the {time_filter} window.\n"
            f"KPIs: {json.dumps(kpis, ensure_ascii=False)}\n"
            f"Anomalies: {json.dumps(anomalies, ensure_ascii=False)}",
            [
                "'summary': state the most critical operational problem (diagnosis) in one sentence.",
                "'actionItems': write a 3-step strategic prescription to solve it.",
                "'projectedImpact': give the numeric gain (water, money or risk reduction) if acted on.",
            ],
        )
        return self._generate('system_status', prompt)

    def analyze_anomaly_priority(self, time_filter: str) -> Dict:
        prompt = self._prompt(
            "a leak management specialist focused on zero leakage and asset protection",
            f"Scenario: you are analysing the patterns of leaks detected in the last {time_filter}.",
            [
                "'summary': the root cause of the problem (e.g. night flow, pressure burst).",
                "'actionItems': clear orders for the field teams.",
                "'projectedImpact': the saved water in m3 or TL.",
            ],
        )
        return self._generate('anomaly_priority', prompt)

    def analyze_gamification_strategy(self, stats: Dict) -> Dict:
        prompt = self._prompt(
            "a behavioural science consultant",
            f"Data:\n- AI savings delta: {stats.get('ai_savings_delta')}%\n"
            f"- Total impact: {stats.get('impact_trees')} trees",
            [
                "'summary': identify the behavioural barrier of the disengaged or heavy-consuming segment.",
                "'actionItems': propose 3 specific campaigns or badges using nudge theory.",
                "'projectedImpact': state the expected behaviour change rate.",
            ],
        )
        return self._generate('gamification', prompt)

    def analyze_infrastructure_optimization(self, stats: Dict) -> Dict:
        prompt = self._prompt(
            "the technical operations lead (CTO)",
            f"Data: {json.dumps(stats, ensure_ascii=False)}",
            [
                "'summary': find the largest infrastructure bottleneck (signal, battery or offline).",
                "'actionItems': propose technical fixes that lower OpEx and raise coverage.",
                "'projectedImpact': quantify the effect on system reliability.",
            ],
        )
        return self._generate('infrastructure', prompt)

    def analyze_financial_strategy(self, stats: Dict) -> Dict:
        prompt = self._prompt(
            "a financial strategy consultant (CFO advisor)",
            f"Data: {json.dumps(stats, ensure_ascii=False)}",
            [
                "'summary': diagnose the gap in the revenue model or ROI.",
                "'actionItems': propose corporate strategies for revenue diversification (SaaS, API).",
                "'projectedImpact': state the effect on revenue growth or ROI.",
            ],
        )
        return self._generate('financial', prompt)

    def analyze_benchmark_strategy(self, stats: Dict) -> Dict:
        prompt = self._prompt(
            "a data analyst and communications specialist focused on benchmarking and motivation",
            f"Data: {json.dumps(stats, ensure_ascii=False)}",
            [
                "'summary': interpret the gap between Hydra users and the overall average and its momentum.",
                "'actionItems': propose communication and technology actions to keep or widen the gap.",
                "'projectedImpact': forecast the effect on public water awareness.",
            ],
        )
        return self._generate('benchmark', prompt)

    def analyze_simulation_scenario(self, params: Dict, results: Dict) -> Dict:
        prompt = self._prompt(
            "a future scenario analyst (futurist risk manager)",
            "The user ran a what-if simulation.\n"
            f"Inputs:\n- Pricing change: {params.get('pricing_change')}%\n"
            f"- AI adoption: {params.get('ai_adoption')}%\n"
            f"- Rainfall: {params.get('rainfall')}\n"
            f"- Population growth: {params.get('population_growth')}%\n"
            f"Results:\n- Time to scarcity: {results.get('years_to_scarcity')} years\n"
            f"- Scarcity risk: {results.get('scarcity_risk')}%",
            [
                "'summary': tell the most striking outcome of this scenario as a data story.",
                "'actionItems': propose 3 strategic moves to delay the crisis or lower the risk.",
                "'projectedImpact': state the potential improvement in risk or time.",
            ],
        )
        return self._generate('simulation', prompt)

    def analyze_b2b_impact(self, stats: Dict) -> Dict:
        prompt = self._prompt(
            "a B2B strategy and public policy consultant for municipalities and site managements",
            f"Data: {json.dumps(stats, ensure_ascii=False)}",
            [
                "'summary': highlight the largest B2B/B2G gain or integration opportunity (B2B2C model).",
                "'actionItems': give 3 concrete proposals for data sharing and infrastructure "
                "improvement with municipalities.",
                "'projectedImpact': state the effect on corporate savings or the ESG score.",
            ],
        )
        return self._generate('b2b', prompt)


def create_narrative_generator(settings) -> NarrativeGenerator:
    """Pick the generator once at startup from the configured mode."""

    mode = (settings.NARRATIVE_MODE or 'auto').lower()
    if mode not in ('auto', 'static', 'remote'):
        raise ConfigurationError(f"Unknown NARRATIVE_MODE: {settings.NARRATIVE_MODE!r}")

    if mode == 'static':
        return StaticNarrativeGenerator()

    if mode == 'remote' and not settings.GEMINI_API_KEY:
        raise ConfigurationError("NARRATIVE_MODE=remote requires GEMINI_API_KEY")

    if settings.GEMINI_API_KEY:
        return GeminiNarrativeGenerator(settings.GEMINI_API_KEY, model=settings.GEMINI_MODEL)

    logger.warning("API key missing. Narrative analyses will return canned results.")
    return StaticNarrativeGenerator()


class AnalysisSession:
    """Shared result panel: one analysis in flight at a time."""

    def __init__(self):
        self._lock = threading.Lock()
        self.is_open = False
        self.loading = False
        self.result = None
        self.analysis_type = None

    def run(self, analysis_type: str, call: Callable[[], Dict]) -> Dict:

        with self._lock:
            if self.loading:
                raise AnalysisInProgressError(f"Analysis '{self.analysis_type}' is still running")
            self.is_open = True
            self.loading = True
            self.analysis_type = analysis_type

        try:
            result = call()
            self.result = result
            return result
        finally:
            with self._lock:
                self.loading = False

    def close(self):
        with self._lock:
            self.is_open = False

    def state(self) -> Dict:
        return {
            'is_open': self.is_open,
            'loading': self.loading,
            'analysis_type': self.analysis_type,
            'result': self.result,
        }
