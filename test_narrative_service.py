"""Tests for narrative analyses, the Gemini adapter and the analysis session"""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from config import Settings
from narrative_service import (
    ANALYSIS_TYPES,
    FAILURE_RESULTS,
    AnalysisInProgressError,
    AnalysisSession,
    ConfigurationError,
    GeminiNarrativeGenerator,
    NarrativeParseError,
    StaticNarrativeGenerator,
    create_narrative_generator,
    parse_analysis_result,
    to_wire,
)

VALID_REPLY = {
    'riskLevel': 'HIGH',
    'summary': 'Night flow in block 7 points to a hidden leak.',
    'actionItems': ['Send an acoustic team', 'Lower PRV pressure'],
    'priorityRegion': 'Izmir/Buca',
    'projectedImpact': 'TL 30,000 saved per year',
}


def make_settings(**overrides):
    values = {'NARRATIVE_MODE': 'auto', 'GEMINI_API_KEY': None, 'GEMINI_MODEL': 'gemini-2.5-flash'}
    values.update(overrides)
    return SimpleNamespace(**values)


def mock_client(text=None, error=None):
    client = MagicMock()
    if error is not None:
        client.models.generate_content.side_effect = error
    else:
        client.models.generate_content.return_value = SimpleNamespace(text=text)
    return client


class TestParseAnalysisResult:

    def test_valid_reply(self):
        result = parse_analysis_result(json.dumps(VALID_REPLY))
        assert result['risk_level'] == 'HIGH'
        assert result['action_items'] == ['Send an acoustic team', 'Lower PRV pressure']
        assert result['priority_region'] == 'Izmir/Buca'
        assert to_wire(result) == VALID_REPLY

    @pytest.mark.parametrize('text', [None, '', 'not json', '[1, 2]'])
    def test_unusable_text(self, text):
        with pytest.raises(NarrativeParseError):
            parse_analysis_result(text)

    def test_missing_field(self):
        reply = dict(VALID_REPLY)
        del reply['projectedImpact']
        with pytest.raises(NarrativeParseError, match='projectedImpact'):
            parse_analysis_result(json.dumps(reply))

    def test_unknown_risk_level(self):
        with pytest.raises(NarrativeParseError):
            parse_analysis_result(json.dumps(dict(VALID_REPLY, riskLevel='SEVERE')))

    def test_action_items_must_be_list(self):
        with pytest.raises(NarrativeParseError):
            parse_analysis_result(json.dumps(dict(VALID_REPLY, actionItems='do something')))


class TestStaticNarrativeGenerator:

    @pytest.mark.parametrize('analysis_type, context, risk_level, region', [
        ('system_status', {'kpis': [], 'anomalies': [], 'time_filter': '1H'}, 'HIGH', 'Adana/Seyhan'),
        ('anomaly_priority', {'time_filter': '24H'}, 'CRITICAL', 'Konya/Industrial'),
        ('gamification', {'stats': {}}, 'MODERATE', 'Luxury Housing Segment'),
        ('infrastructure', {'stats': {}}, 'HIGH', 'Ankara/Mamak'),
        ('financial', {'stats': {}}, 'LOW', 'Bursa/Corporate'),
        ('benchmark', {'stats': {}}, 'LOW', 'All Regions'),
        ('b2b', {'stats': {}}, 'LOW', 'Bursa/Nilufer'),
    ])
    def test_canned_results(self, analysis_type, context, risk_level, region):
        result = StaticNarrativeGenerator().analyze(analysis_type, **context)
        assert result['risk_level'] == risk_level
        assert result['priority_region'] == region
        assert len(result['action_items']) == 3

    @pytest.mark.parametrize('scarcity_risk, risk_level', [(95, 'CRITICAL'), (81, 'CRITICAL'),
                                                           (80, 'HIGH'), (51, 'HIGH'),
                                                           (50, 'MODERATE'), (10, 'MODERATE')])
    def test_simulation_risk_follows_scarcity_risk(self, scarcity_risk, risk_level):
        params = {'ai_adoption': 60, 'rainfall': 'drought'}
        result = StaticNarrativeGenerator().analyze_simulation_scenario(params, {'scarcity_risk': scarcity_risk})
        assert result['risk_level'] == risk_level
        assert '60%' in result['summary']
        assert any('drought' in item for item in result['action_items'])

    def test_unknown_analysis_type(self):
        with pytest.raises(KeyError):
            StaticNarrativeGenerator().analyze('weather')


class TestGeminiNarrativeGenerator:

    def test_requires_key_or_client(self):
        with pytest.raises(ConfigurationError):
            GeminiNarrativeGenerator(api_key=None)

    def test_successful_analysis(self):
        client = mock_client(text=json.dumps(VALID_REPLY))
        generator = GeminiNarrativeGenerator(api_key=None, model='gemini-test', client=client)

        result = generator.analyze_financial_strategy({'saved_amount': 845290})

        assert result['risk_level'] == 'HIGH'
        kwargs = client.models.generate_content.call_args.kwargs
        assert kwargs['model'] == 'gemini-test'
        assert '845290' in kwargs['contents']
        assert kwargs['config'].response_mime_type == 'application/json'

    def test_simulation_prompt_carries_inputs(self):
        client = mock_client(text=json.dumps(VALID_REPLY))
        generator = GeminiNarrativeGenerator(api_key=None, client=client)

        generator.analyze_simulation_scenario(
            {'pricing_change': 10, 'ai_adoption': 40, 'rainfall': 'drought', 'population_growth': 2},
            {'years_to_scarcity': 3.2, 'scarcity_risk': 100},
        )

        prompt = client.models.generate_content.call_args.kwargs['contents']
        assert 'Rainfall: drought' in prompt
        assert 'Time to scarcity: 3.2 years' in prompt

    @pytest.mark.parametrize('analysis_type', ANALYSIS_TYPES)
    def test_remote_error_returns_failure_result(self, analysis_type):
        generator = GeminiNarrativeGenerator(api_key=None, client=mock_client(error=RuntimeError('quota')))
        context = {
            'system_status': {'kpis': [], 'anomalies': [], 'time_filter': '1H'},
            'anomaly_priority': {'time_filter': '1H'},
            'simulation': {'params': {}, 'results': {}},
        }.get(analysis_type, {'stats': {}})

        assert generator.analyze(analysis_type, **context) == FAILURE_RESULTS[analysis_type]

    def test_malformed_reply_returns_failure_result(self):
        generator = GeminiNarrativeGenerator(api_key=None, client=mock_client(text='{"riskLevel": "HIGH"}'))
        result = generator.analyze_system_status([], [], '1H')
        assert result == FAILURE_RESULTS['system_status']
        assert result['risk_level'] == 'CRITICAL'

    def test_failure_result_is_a_copy(self):
        generator = GeminiNarrativeGenerator(api_key=None, client=mock_client(text=None))
        result = generator.analyze_b2b_impact({})
        result['summary'] = 'changed'
        result['action_items'].append('Call the regional office')
        assert FAILURE_RESULTS['b2b']['summary'] != 'changed'
        assert FAILURE_RESULTS['b2b']['action_items'] == ['Prepare a manual report']


class TestCreateNarrativeGenerator:

    def test_static_mode(self):
        generator = create_narrative_generator(make_settings(NARRATIVE_MODE='static', GEMINI_API_KEY='key'))
        assert isinstance(generator, StaticNarrativeGenerator)

    def test_auto_mode_without_key_falls_back(self):
        assert isinstance(create_narrative_generator(make_settings()), StaticNarrativeGenerator)

    def test_auto_mode_with_key(self):
        with patch('narrative_service.genai.Client') as client_cls:
            generator = create_narrative_generator(make_settings(GEMINI_API_KEY='key', GEMINI_MODEL='m'))
        assert isinstance(generator, GeminiNarrativeGenerator)
        assert generator.model == 'm'
        client_cls.assert_called_once_with(api_key='key')

    def test_remote_mode_requires_key(self):
        with pytest.raises(ConfigurationError):
            create_narrative_generator(make_settings(NARRATIVE_MODE='remote'))

    def test_unknown_mode(self):
        with pytest.raises(ConfigurationError):
            create_narrative_generator(make_settings(NARRATIVE_MODE='offline'))


class TestSettings:

    def test_api_key_alias(self, monkeypatch):
        monkeypatch.delenv('GEMINI_API_KEY', raising=False)
        monkeypatch.setenv('API_KEY', 'from-env')
        settings = Settings(_env_file=None)
        assert settings.GEMINI_API_KEY == 'from-env'

    def test_defaults(self, monkeypatch):
        for name in ('GEMINI_API_KEY', 'API_KEY', 'NARRATIVE_MODE', 'RANDOM_SEED'):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None)
        assert settings.NARRATIVE_MODE == 'auto'
        assert settings.GEMINI_API_KEY is None
        assert settings.RANDOM_SEED is None


class TestAnalysisSession:

    def test_run_stores_result(self):
        session = AnalysisSession()
        result = session.run('financial', lambda: {'risk_level': 'LOW'})
        assert result == {'risk_level': 'LOW'}
        state = session.state()
        assert state['is_open'] is True
        assert state['loading'] is False
        assert state['analysis_type'] == 'financial'

    def test_second_request_while_loading_is_rejected(self):
        session = AnalysisSession()

        def nested():
            with pytest.raises(AnalysisInProgressError):
                session.run('b2b', lambda: {})
            return {'risk_level': 'HIGH'}

        session.run('benchmark', nested)
        assert session.state()['analysis_type'] == 'benchmark'
        assert session.loading is False

    def test_loading_cleared_after_error(self):
        session = AnalysisSession()

        def failing():
            raise RuntimeError('boom')

        with pytest.raises(RuntimeError):
            session.run('simulation', failing)
        assert session.loading is False

    def test_close_keeps_last_result(self):
        session = AnalysisSession()
        session.run('gamification', lambda: {'risk_level': 'MODERATE'})
        session.close()
        assert session.state()['is_open'] is False
        assert session.state()['result'] == {'risk_level': 'MODERATE'}
