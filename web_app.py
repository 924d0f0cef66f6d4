"""
HYDRA Water Intelligence Web Application
========================================
Flask JSON API behind the HYDRA command-center dashboard: mock view data,
the scarcity simulator and narrative strategy analyses.

Run with: python web_app.py
Then visit: http://localhost:5000
"""

import logging
from datetime import datetime

import numpy as np
from flask import Flask, jsonify, request

from config import get_settings
from hydra_engine import (
    CrisisOverrideSimulator,
    DashboardDataGenerator,
    ScarcitySimulator,
)
from narrative_service import (
    ANALYSIS_TYPES,
    AnalysisInProgressError,
    AnalysisSession,
    create_narrative_generator,
)

logger = logging.getLogger(__name__)

app = Flask(__name__)

VIEW_MODES = ['COMMAND', 'LAB', 'TECH', 'FINANCE', 'BENCHMARK', 'SIMULATOR', 'B2B']

# ============================================================================
# GLOBAL STATE - In-memory services
# ============================================================================

data_generator = None
scarcity_simulator = None
crisis_simulator = None
narrative_generator = None
analysis_session = None


def initialize_service(settings=None, generator=None):
    """Build the mock-data, simulation and narrative services."""
    global data_generator, scarcity_simulator, crisis_simulator, narrative_generator, analysis_session

    settings = settings or get_settings()
    logging.getLogger().setLevel(settings.LOG_LEVEL.upper())

    logger.info("Initializing HYDRA services...")

    data_rng, scarcity_rng = np.random.default_rng(settings.RANDOM_SEED).spawn(2)
    data_generator = DashboardDataGenerator(rng=data_rng)
    scarcity_simulator = ScarcitySimulator(rng=scarcity_rng)
    crisis_simulator = CrisisOverrideSimulator()
    narrative_generator = generator or create_narrative_generator(settings)
    analysis_session = AnalysisSession()

    logger.info(f"Services ready (narrative generator: {narrative_generator.name})")
    return True


def _custom_range():
    start = request.args.get('start')
    end = request.args.get('end')
    if start and end:
        return (start, end)
    return None


def _json_body():
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValueError("Request body must be a JSON object")
    return body


# ============================================================================
# ROUTES
# ============================================================================

@app.route('/')
def index():
    """Service index."""
    return jsonify({
        'status': 'success',
        'service': 'HYDRA Command Center API',
        'views': VIEW_MODES,
        'analysis_types': list(ANALYSIS_TYPES)
    })


@app.route('/health', methods=['GET'])
def health():
    """Health check endpoint."""
    return jsonify({
        'status': 'ok',
        'service': 'HYDRA Command Center API',
        'version': '1.0',
        'narrative_generator': narrative_generator.name if narrative_generator else None,
        'timestamp': datetime.now().isoformat()
    })


@app.route('/api/dashboard', methods=['GET'])
def dashboard():
    """KPIs, impact story and anomaly ticker for the command view."""
    try:
        time_filter = request.args.get('time_filter', '1H')
        snapshot = data_generator.build_dashboard_snapshot(time_filter, _custom_range())
        return jsonify({'status': 'success', **snapshot})

    except ValueError as e:
        return jsonify({'status': 'error', 'message': str(e)}), 400


@app.route('/api/leaks/radar', methods=['GET'])
def leak_radar():
    """Stacked anomaly counts for the zero-leakage radar."""
    try:
        time_filter = request.args.get('time_filter', '24H')
        region = request.args.get('region', 'All Regions')
        radar = data_generator.build_leak_radar(time_filter, region)
        return jsonify({'status': 'success', **radar})

    except ValueError as e:
        return jsonify({'status': 'error', 'message': str(e)}), 400


@app.route('/api/lab', methods=['GET'])
def behavior_lab():
    return jsonify({
        'status': 'success',
        'stats': data_generator.get_gamification_stats(),
        'badges': data_generator.get_badges()
    })


@app.route('/api/tech', methods=['GET'])
def tech_backbone():
    try:
        region = request.args.get('region', 'ALL')
        device_type = request.args.get('device_type', 'ALL')
        return jsonify({
            'status': 'success',
            'stats': data_generator.get_tech_stats(),
            'view': data_generator.build_tech_view(region, device_type)
        })

    except ValueError as e:
        return jsonify({'status': 'error', 'message': str(e)}), 400


@app.route('/api/finance', methods=['GET'])
def financial_hub():
    return jsonify({'status': 'success', 'stats': data_generator.get_financial_stats()})


@app.route('/api/benchmark', methods=['GET'])
def benchmark_hub():
    stats = data_generator.get_benchmark_stats()
    return jsonify({
        'status': 'success',
        'stats': stats,
        'performance': data_generator.benchmark_performance(stats)
    })


@app.route('/api/b2b', methods=['GET'])
def b2b_hub():
    stats = data_generator.get_b2b_stats()
    return jsonify({
        'status': 'success',
        'stats': stats,
        'savings_split': data_generator.b2b_savings_split(stats)
    })


@app.route('/api/legacy', methods=['GET'])
def water_legacy():
    return jsonify({'status': 'success', **data_generator.get_water_legacy()})


@app.route('/api/network', methods=['GET'])
def region_network():
    return jsonify({'status': 'success', **data_generator.get_region_network()})


# ============================================================================
# SIMULATOR ENDPOINTS
# ============================================================================

@app.route('/api/simulator/run', methods=['POST'])
def run_simulation():
    """Run the 10-year scarcity projection."""
    try:
        params = _json_body()
        result = scarcity_simulator.simulate(params)
        band = scarcity_simulator.confidence_band(result['params'])

        return jsonify({
            'status': 'success',
            'params': result['params'],
            'stats': {
                'years_to_scarcity': result['years_to_scarcity'],
                'projected_consumption': result['projected_consumption'],
                'projected_bill': result['projected_bill'],
                'scarcity_risk': result['scarcity_risk']
            },
            'supply_ceiling': result['supply_ceiling'],
            'risk_level': scarcity_simulator.risk_level(result['scarcity_risk']),
            'graph_points': band
        })

    except (TypeError, ValueError) as e:
        return jsonify({'status': 'error', 'message': str(e)}), 400


# ============================================================================
# NARRATIVE ANALYSIS ENDPOINTS
# ============================================================================

def _analysis_context(analysis_type, body):
    """Current view statistics for an analysis, overridable from the request body."""

    if analysis_type == 'system_status':
        time_filter = body.get('time_filter', '1H')
        return {
            'kpis': body.get('kpis') or data_generator.build_kpis(time_filter),
            'anomalies': body.get('anomalies') or data_generator.get_anomalies(),
            'time_filter': time_filter
        }
    elif analysis_type == 'anomaly_priority':
        return {'time_filter': body.get('time_filter', '1H')}
    elif analysis_type == 'gamification':
        return {'stats': body.get('stats') or data_generator.get_gamification_stats()}
    elif analysis_type == 'infrastructure':
        return {'stats': body.get('stats') or data_generator.get_tech_stats()}
    elif analysis_type == 'financial':
        return {'stats': body.get('stats') or data_generator.get_financial_stats()}
    elif analysis_type == 'benchmark':
        return {'stats': body.get('stats') or data_generator.get_benchmark_stats()}
    elif analysis_type == 'simulation':
        params = body.get('params') or {}
        if not isinstance(params, dict):
            raise ValueError("'params' must be a JSON object")
        result = scarcity_simulator.simulate(params)
        return {'params': result['params'], 'results': result}
    else:  # b2b
        return {'stats': body.get('stats') or data_generator.get_b2b_stats()}


@app.route('/api/analysis/<analysis_type>', methods=['POST'])
def run_analysis(analysis_type):
    """Request a narrative strategy analysis for one view."""
    if analysis_type not in ANALYSIS_TYPES:
        return jsonify({'status': 'error', 'message': f'Unknown analysis type: {analysis_type}'}), 404

    try:
        context = _analysis_context(analysis_type, _json_body())
        result = analysis_session.run(
            analysis_type,
            lambda: narrative_generator.analyze(analysis_type, **context)
        )
        return jsonify({'status': 'success', 'analysis_type': analysis_type, 'result': result})

    except AnalysisInProgressError as e:
        return jsonify({'status': 'error', 'message': str(e)}), 409

    except (TypeError, ValueError) as e:
        return jsonify({'status': 'error', 'message': str(e)}), 400


@app.route('/api/analysis/session', methods=['GET'])
def analysis_state():
    return jsonify({'status': 'success', 'session': analysis_session.state()})


@app.route('/api/analysis/session/close', methods=['POST'])
def close_analysis():
    analysis_session.close()
    return jsonify({'status': 'success', 'session': analysis_session.state()})


# ============================================================================
# CRISIS OVERRIDE ENDPOINTS
# ============================================================================

@app.route('/api/crisis/action', methods=['POST'])
def crisis_action():
    try:
        action = _json_body().get('action')
        state = crisis_simulator.apply_action(action)
        return jsonify({'status': 'success', **state})

    except ValueError as e:
        return jsonify({'status': 'error', 'message': str(e)}), 400


@app.route('/api/crisis/reset', methods=['POST'])
def crisis_reset():
    crisis_simulator.reset()
    return jsonify({
        'status': 'success',
        'days_left': crisis_simulator.days_left,
        'actions_taken': []
    })


# ============================================================================
# STARTUP
# ============================================================================

if __name__ == '__main__':
    settings = get_settings()

    print("=" * 70)
    print("HYDRA COMMAND CENTER - WEB APPLICATION")
    print("=" * 70)

    initialize_service(settings)
    print(f"\n📱 Access at: http://localhost:{settings.APP_PORT}")
    print("=" * 70 + "\n")

    app.run(host=settings.APP_HOST, port=settings.APP_PORT, debug=settings.APP_DEBUG)
