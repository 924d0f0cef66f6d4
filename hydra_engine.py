import math
import threading
import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


TIME_FILTERS = ('1H', '24H', '7D', '30D', 'Custom')
RAINFALL_FACTORS = {'drought': 0.7, 'normal': 1.0, 'wet': 1.2}


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, float(value)))


class ScarcitySimulator:
    """
    Ten-year per-capita consumption vs. supply projection.

    Demand is reduced up front by AI adoption and price elasticity, then
    compounded by population growth until it crosses the rainfall-scaled
    supply ceiling.
    """

    BASELINE_CONSUMPTION = 142.0    # L/person/day
    BASE_SUPPLY_CEILING = 180.0     # L/person/day
    AI_EFFICIENCY = 0.3             # max 30% saving at full adoption
    PRICE_ELASTICITY = 0.2          # +10% price = -2% demand
    BASE_MONTHLY_BILL = 500.0
    HORIZON_YEARS = 10
    DROUGHT_RISK_PENALTY = 20

    PARAM_RANGES = {
        'pricing_change': (-20.0, 50.0),
        'ai_adoption': (0.0, 100.0),
        'population_growth': (0.0, 5.0),
    }

    def __init__(self, rng: Optional[np.random.Generator] = None):
        # Without a generator the scarcity year carries no fractional jitter.
        self.rng = rng
        self._rng_lock = threading.Lock()
        self.last_result = None

    def normalize_params(self, params: Dict) -> Dict:

        rainfall = params.get('rainfall', 'normal')
        if rainfall not in RAINFALL_FACTORS:
            raise ValueError(f"Unknown rainfall regime: {rainfall!r}")

        normalized = {'rainfall': rainfall}
        defaults = {'pricing_change': 0.0, 'ai_adoption': 25.0, 'population_growth': 1.2}
        for key, (low, high) in self.PARAM_RANGES.items():
            normalized[key] = _clamp(params.get(key, defaults[key]), low, high)

        return normalized

    def supply_ceiling(self, rainfall: str) -> float:
        if rainfall not in RAINFALL_FACTORS:
            raise ValueError(f"Unknown rainfall regime: {rainfall!r}")
        return self.BASE_SUPPLY_CEILING * RAINFALL_FACTORS[rainfall]

    def adjusted_consumption(self, ai_adoption: float, pricing_change: float) -> float:
        ai_impact = (ai_adoption / 100) * self.AI_EFFICIENCY
        price_impact = (pricing_change / 100) * self.PRICE_ELASTICITY
        return self.BASELINE_CONSUMPTION * (1 - ai_impact) * (1 - price_impact)

    def projected_bill(self, pricing_change: float, consumption: float) -> float:
        return (self.BASE_MONTHLY_BILL
                * (1 + pricing_change / 100)
                * (consumption / self.BASELINE_CONSUMPTION))

    def simulate(self, params: Dict) -> Dict:

        p = self.normalize_params(params)
        supply = self.supply_ceiling(p['rainfall'])
        start = self.adjusted_consumption(p['ai_adoption'], p['pricing_change'])
        bill = self.projected_bill(p['pricing_change'], start)

        consumption = start
        scarcity_year = None
        for year in range(1, self.HORIZON_YEARS + 1):
            consumption *= 1 + p['population_growth'] / 100
            if consumption > supply:
                scarcity_year = year
                break

        if scarcity_year is None:
            years_to_scarcity = 'SAFE'
        else:
            offset = 0.0
            if self.rng is not None:
                with self._rng_lock:
                    offset = self.rng.random() * 0.5
            years_to_scarcity = round(scarcity_year + offset, 1)

        risk = min(100.0, (consumption / supply) * 100)
        if p['rainfall'] == 'drought':
            risk += self.DROUGHT_RISK_PENALTY
        scarcity_risk = int(_clamp(round(risk), 0, 100))

        result = {
            'params': p,
            'years_to_scarcity': years_to_scarcity,
            'scarcity_year': scarcity_year,
            'projected_consumption': round(consumption),
            'projected_bill': round(bill),
            'scarcity_risk': scarcity_risk,
            'supply_ceiling': supply,
            'adjusted_consumption': start,
            'analysis_timestamp': datetime.now().isoformat()
        }

        logger.debug(f"Scarcity simulation {p} -> {years_to_scarcity} (risk {scarcity_risk})")
        self.last_result = result
        return result

    def confidence_band(self, params: Dict) -> List[Dict]:
        """Display cone: +/- (2% + 1.5%/year) around the consumption curve."""

        p = self.normalize_params(params)
        years = np.arange(self.HORIZON_YEARS + 1)
        growth = (1 + p['population_growth'] / 100) ** years
        consumption = self.adjusted_consumption(p['ai_adoption'], p['pricing_change']) * growth
        uncertainty = 0.02 + years * 0.015

        band = pd.DataFrame({
            'year': years,
            'consumption': consumption,
            'supply': self.supply_ceiling(p['rainfall']),
            'upper': consumption * (1 + uncertainty),
            'lower': consumption * (1 - uncertainty),
        })
        return band.round(2).to_dict(orient='records')

    def risk_level(self, scarcity_risk: float) -> str:
        if scarcity_risk > 80:
            return 'CRITICAL'
        elif scarcity_risk > 50:
            return 'HIGH'
        return 'MODERATE'

    def generate_simulation_report(self, result: Dict = None) -> str:
        if result is None:
            result = self.last_result

        if result is None:
            return "No simulation has been run yet."

        p = result['params']
        lines = []
        lines.append("=" * 70)
        lines.append("WATER SCARCITY SCENARIO REPORT")
        lines.append("=" * 70)
        lines.append(f"Pricing Change:        {p['pricing_change']:>+7.1f} %")
        lines.append(f"AI Adoption:           {p['ai_adoption']:>7.1f} %")
        lines.append(f"Rainfall Regime:       {p['rainfall']:>7s}")
        lines.append(f"Population Growth:     {p['population_growth']:>7.1f} %/yr")
        lines.append("-" * 70)
        lines.append(f"Supply Ceiling:        {result['supply_ceiling']:>7.1f} L/person/day")
        lines.append(f"Adjusted Consumption:  {result['adjusted_consumption']:>7.1f} L/person/day")
        lines.append(f"Projected Consumption: {result['projected_consumption']:>7d} L/person/day")
        lines.append(f"Projected Bill:        {result['projected_bill']:>7d} TL/month")
        lines.append(f"Years to Scarcity:     {str(result['years_to_scarcity']):>7s}")
        lines.append(f"Scarcity Risk:         {result['scarcity_risk']:>7d} / 100 "
                     f"({self.risk_level(result['scarcity_risk'])})")
        lines.append("=" * 70)
        return "\n".join(lines)


class DashboardDataGenerator:
    """Mock statistics for every dashboard view."""

    BASE_LEAK_RATE = 12.4                  # L/min
    OLYMPIC_POOL_LITRES = 2_500_000
    HOUSEHOLD_DAILY_LITRES = 500
    BOTTLE_LITRES = 19
    CRITICAL_FAILURE_COST = 45000          # TL per critical failure
    AI_PREVENTION_SHARE = 0.85

    TIME_MULTIPLIERS = {'1H': 1, '24H': 24, '7D': 24 * 7, '30D': 24 * 30}
    CUSTOM_FALLBACK_MULTIPLIER = 12

    PERIOD_LABELS = {
        '1H': 'In the last hour',
        '24H': 'In the last 24 hours',
        '7D': 'In the last 7 days',
        '30D': 'In the last 30 days',
    }

    RADAR_POINTS = {'1H': 60, '24H': 24, '7D': 7, '30D': 30, 'Custom': 24}

    REGION_FACTORS = {
        'All Regions': 1.0,
        'Istanbul': 1.2,
        'Ankara': 0.9,
        'Izmir': 1.05,
        'Bursa': 0.8
    }

    SENSOR_NAMES = {
        'All Regions': ['General_Sensor_1', 'General_Sensor_2', 'General_Sensor_3'],
        'Istanbul': ['Esenyurt_Sensor_8492', 'Kadikoy_Sensor_1123', 'Besiktas_Sensor_3344'],
        'Ankara': ['Cankaya_Sensor_2231', 'Kecioren_Sensor_5566', 'Yenimahalle_Sensor_7788'],
        'Izmir': ['Bornova_Sensor_9988', 'Karsiyaka_Sensor_7766', 'Konak_Sensor_5544'],
        'Bursa': ['Osmangazi_Sensor_4433', 'Nilufer_Sensor_2211', 'Yildirim_Sensor_6655']
    }

    TECH_REGIONS = {
        'ALL': {'name': 'All Regions', 'weak_prob': 0.2},
        'IST': {'name': 'Istanbul', 'weak_prob': 0.1},
        'ANK': {'name': 'Ankara', 'weak_prob': 0.25},
        'IZM': {'name': 'Izmir', 'weak_prob': 0.12},
    }

    DEVICE_FACTORS = {'ALL': 1.0, 'RES': 0.6, 'IND': 0.25, 'PUB': 0.15}
    DEFAULT_REGION_COVERAGE = 90

    def __init__(self, rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else np.random.default_rng()
        # Generator is not thread-safe; Flask serves requests concurrently
        self._rng_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Command view
    # ------------------------------------------------------------------

    @staticmethod
    def custom_range_days(custom_range: Tuple[str, str]) -> int:
        start, end = (pd.Timestamp(d) for d in custom_range)
        diff_days = abs((end - start).total_seconds()) / 86400
        return math.ceil(diff_days) or 1

    def time_multiplier(self, time_filter: str, custom_range: Optional[Tuple[str, str]] = None) -> int:
        if time_filter not in TIME_FILTERS:
            raise ValueError(f"Unknown time filter: {time_filter!r}")

        if time_filter == 'Custom':
            if custom_range:
                return 24 * self.custom_range_days(custom_range)
            return self.CUSTOM_FALLBACK_MULTIPLIER

        return self.TIME_MULTIPLIERS[time_filter]

    def total_leak_litres(self, time_filter: str, custom_range: Optional[Tuple[str, str]] = None) -> int:
        multiplier = self.time_multiplier(time_filter, custom_range)
        return math.floor(self.BASE_LEAK_RATE * 60 * multiplier)

    def build_kpis(self, time_filter: str, custom_range: Optional[Tuple[str, str]] = None) -> List[Dict]:

        multiplier = self.time_multiplier(time_filter, custom_range)
        total_leak = self.total_leak_litres(time_filter, custom_range)
        detected_leaks = math.floor(3 * multiplier * 0.8)
        is_custom_period = time_filter == 'Custom' and bool(custom_range)
        is_hourly = time_filter == '1H'

        return [
            {
                'id': 'leak-rate',
                'label': 'Instant Leak Rate' if is_hourly else 'Total Water Loss',
                'value': self.BASE_LEAK_RATE if is_hourly else round(total_leak / 1000, 1),
                'unit': 'L/min' if is_hourly else 'TON',
                'trend': 'up',
                'trend_value': '+2.4%',
                'status': 'critical',
                'description': 'Critical pressure drop in the Adana and Konya networks.'
            },
            {
                'id': 'behavior-score',
                'label': 'Behavior Change Score',
                'value': 78,
                'unit': 'Points',
                'trend': 'up',
                'trend_value': '+5.1%',
                'status': 'normal',
                'description': 'Gamification module participation rose by 15%.'
            },
            {
                'id': 'detected-leaks',
                'label': 'Detected Leaks (AI)',
                'value': detected_leaks,
                'unit': 'Count',
                'trend': 'stable',
                'trend_value': '0%',
                'status': 'warning',
                'description': 'Acoustic sensors confirmed new anomalies.'
            },
            {
                'id': 'consumption',
                'label': 'Average Consumption',
                'value': 152 if is_custom_period else 142,
                'unit': 'L/Day',
                'trend': 'up' if is_custom_period else 'down',
                'trend_value': '+7.5%' if is_custom_period else '-1.2%',
                'status': 'warning' if is_custom_period else 'normal',
                'description': ('Seasonal effect is driving consumption up.' if is_custom_period
                                else 'Below the global average (150 L).')
            },
        ]

    def build_impact_story(self, time_filter: str, custom_range: Optional[Tuple[str, str]] = None) -> Dict:
        """Translate the period's water loss into a concrete equivalent."""

        if time_filter == 'Custom' and custom_range:
            start, end = (pd.Timestamp(d).strftime('%d %B %Y') for d in custom_range)
            return {
                'title': 'CUSTOM PERIOD ANALYSIS',
                'message': (f"During this period ({start} - {end}) AI leak detection peaked, "
                            f"while average daily consumption rose by 7.5%."),
                'concrete_value': 'AI DETECTION RECORD',
                'icon': 'pool'
            }

        total_leak = self.total_leak_litres(time_filter, custom_range)
        period_label = self.PERIOD_LABELS.get(time_filter, 'In the custom range')

        if total_leak > self.OLYMPIC_POOL_LITRES:
            pools = total_leak / self.OLYMPIC_POOL_LITRES
            return {
                'title': 'CRITICAL LOSS VOLUME',
                'message': f"{period_label} the water lost across the national network equals full Olympic pools.",
                'concrete_value': f"{pools:.1f} OLYMPIC POOLS",
                'icon': 'pool'
            }
        elif total_leak > 5000:
            houses = total_leak // self.HOUSEHOLD_DAILY_LITRES
            return {
                'title': 'HOUSEHOLD IMPACT',
                'message': f"{period_label} the leaked water could have covered a district's daily needs.",
                'concrete_value': f"{houses} HOUSEHOLDS' DAILY WATER",
                'icon': 'house'
            }

        bottles = total_leak // self.BOTTLE_LITRES
        return {
            'title': 'DRINKING WATER EQUIVALENT',
            'message': f"{period_label} the leakage equals roughly {bottles} 19-litre water bottles.",
            'concrete_value': f"{bottles} BOTTLES",
            'icon': 'bottle'
        }

    @staticmethod
    def get_anomalies() -> List[Dict]:
        return [
            {'id': 'a1', 'location': 'ADANA/SEYHAN', 'severity': 'high', 'type': 'PIPE BURST',
             'timestamp': '10:42', 'value': 'Loss: 45L/min', 'risk_score': 9},
            {'id': 'a2', 'location': 'ISTANBUL/ESENYURT', 'severity': 'medium', 'type': 'CONSUMPTION SPIKE',
             'timestamp': '10:38', 'value': '+40% Var', 'risk_score': 6},
            {'id': 'a3', 'location': 'IZMIR/BUCA', 'severity': 'low', 'type': 'SENSOR FAULT',
             'timestamp': '09:55', 'value': 'No Signal', 'risk_score': 3},
            {'id': 'a4', 'location': 'KONYA/MERAM', 'severity': 'high', 'type': 'PRESSURE LOSS',
             'timestamp': '10:40', 'value': '-2.4 Bar', 'risk_score': 8},
        ]

    def build_dashboard_snapshot(self, time_filter: str, custom_range: Optional[Tuple[str, str]] = None) -> Dict:
        return {
            'time_filter': time_filter,
            'custom_range': list(custom_range) if custom_range else None,
            'kpis': self.build_kpis(time_filter, custom_range),
            'impact_story': self.build_impact_story(time_filter, custom_range),
            'anomalies': self.get_anomalies(),
            'generated_at': datetime.now().isoformat()
        }

    # ------------------------------------------------------------------
    # Zero-leakage radar
    # ------------------------------------------------------------------

    def build_leak_radar(self, time_filter: str, region: str = 'All Regions') -> Dict:

        if time_filter not in self.RADAR_POINTS:
            raise ValueError(f"Unknown time filter: {time_filter!r}")
        if region not in self.REGION_FACTORS:
            raise ValueError(f"Unknown region: {region!r}")

        n_points = self.RADAR_POINTS[time_filter]
        factor = self.REGION_FACTORS[region]
        sensors = self.SENSOR_NAMES[region]

        position = np.arange(n_points) / max(n_points - 1, 1)
        with self._rng_lock:
            low_draw = self.rng.random(n_points)
            medium_draw = self.rng.random(n_points)
            surge_draw = self.rng.random(n_points)
            quiet_draw = self.rng.random(n_points)

        low = np.floor((low_draw * 8 + 5) * factor).astype(int)
        medium = np.floor((medium_draw * 5 + 2) * factor).astype(int)
        high = np.where(
            position > 0.75,
            np.floor((surge_draw * 10 + 5) * factor),
            np.floor(quiet_draw * 3 * factor)
        ).astype(int)

        chart = pd.DataFrame({'index': np.arange(n_points), 'low': low, 'medium': medium, 'high': high})
        chart['total'] = chart['low'] + chart['medium'] + chart['high']
        chart['sensor_name'] = [sensors[(i + len(region)) % len(sensors)] for i in range(n_points)]
        chart['sensor_id'] = [8000 + i * 13 + len(region) for i in range(n_points)]

        summary = self.summarize_leak_points(int(chart['total'].sum()), int(chart['high'].sum()))
        max_total = int(chart['total'].max()) if n_points else 0
        summary['auto_max_y'] = max(20, math.ceil(max_total / 5) * 5)

        return {
            'time_filter': time_filter,
            'region': region,
            'points': chart.to_dict(orient='records'),
            'summary': summary
        }

    def summarize_leak_points(self, total: int, high_risk: int) -> Dict:
        high_risk_pct = round(high_risk / total * 100) if total else 0
        prevented_loss = high_risk * self.CRITICAL_FAILURE_COST * self.AI_PREVENTION_SHARE
        return {
            'total': total,
            'high_risk': high_risk,
            'high_risk_percent': high_risk_pct,
            'prevented_loss': round(prevented_loss, 2),
            'story': (f"{high_risk_pct}% of detected anomalies are high risk. By stopping them, AI "
                      f"prevented {int(self.AI_PREVENTION_SHARE * 100)}% of the estimated monthly "
                      f"loss cost (about TL {prevented_loss:,.0f}).")
        }

    # ------------------------------------------------------------------
    # Behavior lab
    # ------------------------------------------------------------------

    @staticmethod
    def get_gamification_stats() -> Dict:
        return {
            'total_badges': 1420,
            'leaderboard_rank': 14,
            'avg_score_trend': [65, 68, 72, 70, 75, 78, 82, 85, 84, 88],
            'impact_trees': 340,
            'impact_animals': 1250,
            'ai_adoption_rate': 42,
            'ai_savings_delta': 22
        }

    @staticmethod
    def get_badges() -> List[Dict]:
        return [
            {'id': '1', 'name': 'LEAK HUNTER', 'icon': 'shield', 'count': 450,
             'description': 'Reported a leak within 10 minutes'},
            {'id': '2', 'name': 'NIGHT WATCH', 'icon': 'zap', 'count': 320,
             'description': 'Zero consumption between 02:00 and 05:00'},
            {'id': '3', 'name': 'ECO LEADER', 'icon': 'award', 'count': 120,
             'description': 'Lowest-consuming 5% in the region'},
        ]

    # ------------------------------------------------------------------
    # Tech backbone
    # ------------------------------------------------------------------

    @staticmethod
    def get_tech_stats() -> Dict:
        return {
            'total_devices': 12450,
            'device_health': {'active': 11200, 'low_battery': 850, 'offline': 400},
            'signal_quality': [
                {'region': 'Istanbul', 'rssi': -95, 'status': 'good', 'coverage': 98},
                {'region': 'Ankara', 'rssi': -115, 'status': 'fair', 'coverage': 85},
                {'region': 'Izmir', 'rssi': -85, 'status': 'good', 'coverage': 96},
                {'region': 'Adana', 'rssi': -128, 'status': 'poor', 'coverage': 72},
            ],
            'avg_battery_life_years': 8.4
        }

    def build_tech_view(self, region: str = 'ALL', device_type: str = 'ALL') -> Dict:

        if region not in self.TECH_REGIONS:
            raise ValueError(f"Unknown region code: {region!r}")
        if device_type not in self.DEVICE_FACTORS:
            raise ValueError(f"Unknown device type: {device_type!r}")

        stats = self.get_tech_stats()
        region_conf = self.TECH_REGIONS[region]
        view_total = round(stats['total_devices'] * self.DEVICE_FACTORS[device_type])

        health = {
            key: round(view_total * count / stats['total_devices'])
            for key, count in stats['device_health'].items()
        }
        health_pct = {key: (count / view_total * 100 if view_total else 0.0) for key, count in health.items()}

        with self._rng_lock:
            is_weak = self.rng.random(48) < region_conf['weak_prob']
            weak_strength = self.rng.integers(0, 40, 48)
            good_strength = self.rng.integers(60, 100, 48)
        strength = np.where(is_weak, weak_strength, good_strength)
        signal_grid = [
            {'id': i, 'strength': int(strength[i]), 'status': 'poor' if is_weak[i] else 'good'}
            for i in range(48)
        ]

        if region == 'ALL':
            signal_quality = stats['signal_quality']
        else:
            signal_quality = [s for s in stats['signal_quality'] if s['region'] == region_conf['name']]

        avg_coverage = int(round(np.mean([s['coverage'] for s in stats['signal_quality']])))
        if region == 'ALL':
            region_coverage = avg_coverage
        else:
            # regions without a signal survey show the nominal 90%
            region_coverage = signal_quality[0]['coverage'] if signal_quality else self.DEFAULT_REGION_COVERAGE

        return {
            'region': region_conf['name'],
            'device_type': device_type,
            'total_devices': view_total,
            'device_health': health,
            'device_health_pct': health_pct,
            'signal_quality': signal_quality,
            'signal_grid': signal_grid,
            'avg_coverage': avg_coverage,
            'region_coverage': region_coverage,
            'avg_battery_life_years': stats['avg_battery_life_years']
        }

    # ------------------------------------------------------------------
    # Finance, benchmark, B2B
    # ------------------------------------------------------------------

    @staticmethod
    def get_financial_stats() -> Dict:
        return {
            'saved_amount': 845290,
            'prevented_waste_vol': 42500,
            'tco_data': {'hydra_cost': 650, 'competitor_cost': 2200},
            'revenue_stream': {'hardware': 55, 'saas': 30, 'api': 15},
            'roi_months': 4.2
        }

    @staticmethod
    def get_benchmark_stats() -> Dict:
        return {
            'period_comparison': {
                'current': 135,
                'previous': 148,
                'metric': 'Average Daily Consumption (L)',
                'change': -8.8
            },
            'cohort_comparison': {'hydra_user_avg': 135, 'region_avg': 165, 'unit': 'L/Person/Day'},
            'regional_comparison': {
                'pilot': {'name': 'Bursa (Pilot)', 'score': 92, 'trend': 'up'},
                'expansion': {'name': 'Istanbul (Expansion)', 'score': 76, 'trend': 'up'}
            },
            'momentum': {'score': 78, 'direction': 'accelerating'}
        }

    @staticmethod
    def benchmark_performance(stats: Dict) -> Dict:
        cohort = stats['cohort_comparison']
        performance = (cohort['region_avg'] - cohort['hydra_user_avg']) / cohort['region_avg'] * 100
        return {
            'hydra_performance_pct': round(performance, 1),
            # less consumption than the previous period is the good direction
            'is_positive_change': stats['period_comparison']['change'] < 0
        }

    @staticmethod
    def get_b2b_stats() -> Dict:
        return {
            'roi_stats': {
                'common_area_savings': 1250000,
                'household_savings': 850000,
                'maintenance_cost_reduction': 15
            },
            'penetration': [
                {'region': 'Bursa', 'type': 'Municipality', 'phase': 3, 'status': 'Active'},
                {'region': 'Istanbul', 'type': 'SiteManagement', 'phase': 2, 'status': 'Active'},
                {'region': 'Izmir', 'type': 'Municipality', 'phase': 1, 'status': 'Pending'},
                {'region': 'Antalya', 'type': 'SiteManagement', 'phase': 2, 'status': 'Active'},
            ],
            'esg_score': {'water': 92, 'carbon': 85, 'social': 78, 'governance': 88, 'efficiency': 90}
        }

    @staticmethod
    def b2b_savings_split(stats: Dict) -> Dict:
        roi = stats['roi_stats']
        total = roi['common_area_savings'] + roi['household_savings']
        common_pct = roi['common_area_savings'] / total * 100 if total else 0.0
        return {
            'total_savings': total,
            'common_area_pct': round(common_pct, 1),
            'household_pct': round(100 - common_pct, 1) if total else 0.0
        }

    # ------------------------------------------------------------------
    # Legacy section and region network
    # ------------------------------------------------------------------

    @staticmethod
    def get_water_legacy() -> Dict:

        national_per_capita = 1323      # m3/person/year
        stress_threshold = 1700
        scarcity_threshold = 1000
        global_avg = 210
        hydra_avg = 135
        city_limit = 150

        cities = [
            {'name': 'ISTANBUL', 'value': 180},
            {'name': 'ANKARA', 'value': 138},
            {'name': 'IZMIR', 'value': 165},
            {'name': 'BURSA', 'value': 142},
        ]
        for city in cities:
            city['limit'] = city_limit
            city['over_limit'] = city['value'] > city_limit

        return {
            'national_water_per_capita': national_per_capita,
            'stress_threshold': stress_threshold,
            'scarcity_threshold': scarcity_threshold,
            'is_water_stressed': national_per_capita < stress_threshold,
            'stress_gap': national_per_capita - scarcity_threshold,
            'cities': cities,
            'global_avg': global_avg,
            'hydra_avg': hydra_avg,
            'hydra_efficiency_pct': round((global_avg - hydra_avg) / global_avg * 100)
        }

    @staticmethod
    def get_region_network(link_distance: float = 250.0) -> Dict:

        nodes = [
            {'id': 'ist', 'name': 'Istanbul', 'x': 150, 'y': 80, 'stress_level': 85, 'leak_rate': 12.4},
            {'id': 'ank', 'name': 'Ankara', 'x': 300, 'y': 120, 'stress_level': 65, 'leak_rate': 5.2},
            {'id': 'izm', 'name': 'Izmir', 'x': 80, 'y': 200, 'stress_level': 78, 'leak_rate': 8.1},
            {'id': 'ant', 'name': 'Antalya', 'x': 250, 'y': 300, 'stress_level': 45, 'leak_rate': 2.3},
            {'id': 'ada', 'name': 'Adana', 'x': 450, 'y': 280, 'stress_level': 92, 'leak_rate': 15.6},
            {'id': 'diy', 'name': 'Diyarbakir', 'x': 600, 'y': 200, 'stress_level': 55, 'leak_rate': 4.1},
            {'id': 'tra', 'name': 'Trabzon', 'x': 550, 'y': 70, 'stress_level': 20, 'leak_rate': 1.2},
            {'id': 'van', 'name': 'Van', 'x': 700, 'y': 180, 'stress_level': 30, 'leak_rate': 1.8},
            {'id': 'kon', 'name': 'Konya', 'x': 320, 'y': 220, 'stress_level': 88, 'leak_rate': 9.5},
            {'id': 'bur', 'name': 'Bursa', 'x': 160, 'y': 110, 'stress_level': 70, 'leak_rate': 6.7},
        ]
        for node in nodes:
            node['critical'] = node['stress_level'] > 80

        links = []
        for i, node in enumerate(nodes):
            for other in nodes[i + 1:]:
                if math.hypot(node['x'] - other['x'], node['y'] - other['y']) < link_distance:
                    links.append({'source': node['id'], 'target': other['id']})

        return {'nodes': nodes, 'links': links}


class CrisisOverrideSimulator:
    """Emergency intervention panel: each action can be taken once."""

    ACTIONS = ('warning', 'gamification', 'simulate')
    INITIAL_DAYS_LEFT = 18
    RESTRICTED_DAYS_LEFT = 42

    def __init__(self):
        self.reset()

    def reset(self):
        self.days_left = self.INITIAL_DAYS_LEFT
        self.actions_taken = []
        self.simulation_active = False

    def apply_action(self, action: str) -> Dict:

        if action not in self.ACTIONS:
            raise ValueError(f"Unknown crisis action: {action!r}")

        if action in self.actions_taken:
            return self._state(applied=False, timeline=[])

        self.actions_taken.append(action)
        timeline = []

        if action == 'simulate':
            self.simulation_active = True
            timeline = list(range(self.days_left + 1, self.RESTRICTED_DAYS_LEFT + 1))
            self.days_left = max(self.days_left, self.RESTRICTED_DAYS_LEFT)

        logger.info(f"Crisis override action '{action}' applied; days left {self.days_left}")
        return self._state(applied=True, timeline=timeline)

    def _state(self, applied: bool, timeline: List[int]) -> Dict:
        return {
            'applied': applied,
            'days_left': self.days_left,
            'actions_taken': list(self.actions_taken),
            'simulation_active': self.simulation_active,
            'days_timeline': timeline
        }
