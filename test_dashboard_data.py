"""Tests for the dashboard mock-data generators and crisis override"""

import numpy as np
import pytest

from hydra_engine import CrisisOverrideSimulator, DashboardDataGenerator


@pytest.fixture
def generator():
    return DashboardDataGenerator(rng=np.random.default_rng(42))


class TestCommandView:

    @pytest.mark.parametrize('time_filter, multiplier', [('1H', 1), ('24H', 24), ('7D', 168), ('30D', 720), ('Custom', 12)])
    def test_time_multipliers(self, generator, time_filter, multiplier):
        assert generator.time_multiplier(time_filter) == multiplier

    def test_custom_range_multiplier(self, generator):
        assert generator.time_multiplier('Custom', ('2024-01-01', '2024-01-10')) == 24 * 9
        assert generator.time_multiplier('Custom', ('2024-01-10', '2024-01-01')) == 24 * 9
        assert generator.time_multiplier('Custom', ('2024-01-05', '2024-01-05')) == 24

    def test_unknown_time_filter(self, generator):
        with pytest.raises(ValueError):
            generator.build_kpis('1Y')

    def test_hourly_kpis_show_leak_rate(self, generator):
        kpis = generator.build_kpis('1H')
        assert [k['id'] for k in kpis] == ['leak-rate', 'behavior-score', 'detected-leaks', 'consumption']
        assert kpis[0]['value'] == 12.4
        assert kpis[0]['unit'] == 'L/min'
        assert kpis[2]['value'] == 2

    def test_daily_kpis_show_tonnes(self, generator):
        kpis = generator.build_kpis('24H')
        assert kpis[0]['unit'] == 'TON'
        assert kpis[0]['value'] == 17.9
        assert kpis[2]['value'] == 57

    def test_custom_period_raises_consumption(self, generator):
        kpis = generator.build_kpis('Custom', ('2024-06-01', '2024-06-15'))
        assert kpis[3]['value'] == 152
        assert kpis[3]['trend'] == 'up'

    def test_impact_story_bottles(self, generator):
        story = generator.build_impact_story('1H')
        assert story['icon'] == 'bottle'
        assert story['concrete_value'] == '39 BOTTLES'

    def test_impact_story_households(self, generator):
        story = generator.build_impact_story('24H')
        assert story['icon'] == 'house'
        assert story['concrete_value'].startswith('35 ')

    def test_impact_story_custom(self, generator):
        story = generator.build_impact_story('Custom', ('2024-06-01', '2024-06-15'))
        assert story['title'] == 'CUSTOM PERIOD ANALYSIS'

    def test_anomalies(self, generator):
        anomalies = generator.get_anomalies()
        assert len(anomalies) == 4
        assert all(1 <= a['risk_score'] <= 10 for a in anomalies)


class TestLeakRadar:

    @pytest.mark.parametrize('time_filter, points', [('1H', 60), ('24H', 24), ('7D', 7), ('30D', 30)])
    def test_point_count(self, generator, time_filter, points):
        radar = generator.build_leak_radar(time_filter)
        assert len(radar['points']) == points

    def test_summary_matches_points(self, generator):
        radar = generator.build_leak_radar('30D', 'Istanbul')
        total = sum(p['total'] for p in radar['points'])
        high = sum(p['high'] for p in radar['points'])
        summary = radar['summary']
        assert summary['total'] == total
        assert summary['high_risk'] == high
        assert summary['prevented_loss'] == pytest.approx(high * 45000 * 0.85)
        assert summary['auto_max_y'] >= 20
        assert summary['auto_max_y'] % 5 == 0

    def test_sensor_ids(self, generator):
        radar = generator.build_leak_radar('7D', 'Bursa')
        assert radar['points'][0]['sensor_id'] == 8000 + len('Bursa')
        assert radar['points'][1]['sensor_id'] == 8013 + len('Bursa')

    def test_empty_summary(self, generator):
        assert generator.summarize_leak_points(0, 0)['high_risk_percent'] == 0

    def test_unknown_region(self, generator):
        with pytest.raises(ValueError):
            generator.build_leak_radar('24H', 'Atlantis')


class TestTechView:

    def test_residential_filter_scales_devices(self, generator):
        view = generator.build_tech_view('ALL', 'RES')
        assert view['total_devices'] == 7470
        assert view['device_health']['active'] == 6720
        assert len(view['signal_grid']) == 48

    def test_region_filter(self, generator):
        view = generator.build_tech_view('IST')
        assert [s['region'] for s in view['signal_quality']] == ['Istanbul']
        assert view['avg_coverage'] == 88
        assert view['region_coverage'] == 98

    def test_region_coverage(self, generator):
        assert generator.build_tech_view('ANK')['region_coverage'] == 85
        assert generator.build_tech_view('ALL')['region_coverage'] == 88

    def test_region_without_signal_survey(self, generator, monkeypatch):
        monkeypatch.setitem(DashboardDataGenerator.TECH_REGIONS, 'ANT', {'name': 'Antalya', 'weak_prob': 0.1})
        view = generator.build_tech_view('ANT')
        assert view['signal_quality'] == []
        assert view['region_coverage'] == 90

    def test_signal_grid_strength_ranges(self, generator):
        for cell in generator.build_tech_view('ANK')['signal_grid']:
            if cell['status'] == 'poor':
                assert 0 <= cell['strength'] < 40
            else:
                assert 60 <= cell['strength'] < 100


class TestDerivedStats:

    def test_benchmark_performance(self, generator):
        perf = generator.benchmark_performance(generator.get_benchmark_stats())
        assert perf['hydra_performance_pct'] == 18.2
        assert perf['is_positive_change'] is True

    def test_b2b_split(self, generator):
        split = generator.b2b_savings_split(generator.get_b2b_stats())
        assert split['total_savings'] == 2_100_000
        assert split['common_area_pct'] == 59.5

    def test_water_legacy(self, generator):
        legacy = generator.get_water_legacy()
        assert legacy['stress_gap'] == 323
        assert legacy['hydra_efficiency_pct'] == 36
        assert [c['name'] for c in legacy['cities'] if c['over_limit']] == ['ISTANBUL', 'IZMIR']

    def test_region_network(self, generator):
        network = generator.get_region_network()
        assert len(network['nodes']) == 10
        assert {n['id'] for n in network['nodes'] if n['critical']} == {'ist', 'ada', 'kon'}
        assert {'source': 'ist', 'target': 'bur'} in network['links']
        assert {'source': 'izm', 'target': 'van'} not in network['links']


class TestCrisisOverride:

    def test_simulate_extends_supply(self):
        crisis = CrisisOverrideSimulator()
        state = crisis.apply_action('simulate')
        assert state['applied'] is True
        assert state['days_left'] == 42
        assert state['days_timeline'] == list(range(19, 43))
        assert state['simulation_active'] is True

    def test_actions_apply_once(self):
        crisis = CrisisOverrideSimulator()
        crisis.apply_action('warning')
        state = crisis.apply_action('warning')
        assert state['applied'] is False
        assert state['actions_taken'] == ['warning']
        assert state['days_left'] == 18

    def test_unknown_action(self):
        with pytest.raises(ValueError):
            CrisisOverrideSimulator().apply_action('evacuate')

    def test_reset(self):
        crisis = CrisisOverrideSimulator()
        crisis.apply_action('simulate')
        crisis.reset()
        assert crisis.days_left == 18
        assert crisis.actions_taken == []
