from hydra_engine import ScarcitySimulator, DashboardDataGenerator, CrisisOverrideSimulator
from narrative_service import StaticNarrativeGenerator
import numpy as np

def print_header(title):
    print("\n" + "=" * 80)
    print(f"  {title}")
    print("=" * 80 + "\n")

def print_subheader(title):
    print(f"\n─── {title} ───\n")


def demo_baseline(simulator):
    print_header("DEMO 1: BASELINE SCENARIO")

    params = {'pricing_change': 0, 'ai_adoption': 25, 'rainfall': 'normal', 'population_growth': 1.2}
    result = simulator.simulate(params)
    print(simulator.generate_simulation_report(result))

    print_subheader("Confidence Band")
    for point in simulator.confidence_band(params):
        print(f"  Year {point['year']:>2} | {point['lower']:>7.1f} - {point['upper']:>7.1f} L "
              f"(supply {point['supply']:.0f} L)")

    return result

def demo_rainfall_regimes(simulator):
    print_header("DEMO 2: RAINFALL REGIMES")

    print(f"  {'Regime':<10} {'Supply':>8} {'Years':>8} {'Risk':>6} {'Bill':>8}")
    print(f"  {'-' * 44}")
    for rainfall in ('drought', 'normal', 'wet'):
        result = simulator.simulate({
            'pricing_change': 10,
            'ai_adoption': 40,
            'rainfall': rainfall,
            'population_growth': 3.0
        })
        print(f"  {rainfall:<10} {result['supply_ceiling']:>8.1f} {str(result['years_to_scarcity']):>8} "
              f"{result['scarcity_risk']:>6} {result['projected_bill']:>8}")

def demo_policy_levers(simulator):
    print_header("DEMO 3: POLICY LEVERS UNDER DROUGHT")

    narrative = StaticNarrativeGenerator()
    scenarios = [
        ('No intervention', {'pricing_change': 0, 'ai_adoption': 0}),
        ('Price +20%', {'pricing_change': 20, 'ai_adoption': 0}),
        ('Full AI adoption', {'pricing_change': 0, 'ai_adoption': 100}),
        ('Combined', {'pricing_change': 50, 'ai_adoption': 100}),
    ]

    for name, levers in scenarios:
        params = dict(levers, rainfall='drought', population_growth=2.0)
        result = simulator.simulate(params)
        analysis = narrative.analyze_simulation_scenario(result['params'], result)
        print(f"  ✓ {name:<18} | Start {result['adjusted_consumption']:>6.1f} L | "
              f"Scarcity: {str(result['years_to_scarcity']):>5} | Risk: {analysis['risk_level']}")

def demo_crisis_override():
    print_header("DEMO 4: CRISIS OVERRIDE")

    crisis = CrisisOverrideSimulator()
    print(f"  Days of supply left: {crisis.days_left}")
    for action in ('warning', 'gamification', 'simulate', 'simulate'):
        state = crisis.apply_action(action)
        status = "applied" if state['applied'] else "already taken"
        print(f"  → {action:<13} {status:<14} days left: {state['days_left']}")

def demo_dashboard(generator):
    print_header("DEMO 5: COMMAND VIEW SNAPSHOTS")

    for time_filter in ('1H', '24H', '7D', '30D'):
        story = generator.build_impact_story(time_filter)
        kpi = generator.build_kpis(time_filter)[0]
        print(f"  {time_filter:<4} | {kpi['label']:<20} {kpi['value']:>8} {kpi['unit']:<6} | {story['concrete_value']}")

def main():
    rng = np.random.default_rng(42)
    simulator = ScarcitySimulator(rng=rng)

    demo_baseline(simulator)
    demo_rainfall_regimes(simulator)
    demo_policy_levers(simulator)
    demo_crisis_override()
    demo_dashboard(DashboardDataGenerator(rng=rng))

    print_header("DEMO COMPLETE")

if __name__ == '__main__':
    main()
