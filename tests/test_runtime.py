"""
Runtime Tests - Tick Runner, Scenario Loader, Logger, Metrics and CLI

Tests the pieces around the simulators: driving them, configuring them
from JSON, exporting their logs and summarizing a run.
"""

import json
import sys
import tempfile
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from models.resource_state import MalformedInputError
from analysis.events import EventLog, EventType
from analysis.metrics import SimulationMetrics, format_metrics_report
from simulations.banker import BankerSimulation
from simulations.producer_consumer import ProducerConsumerConfig, ProducerConsumerSimulation
from simulations.ticker import TickRunner
from utils.logger import SimulatorLogger
from utils.scenario_loader import (
    load_scenario,
    build_config,
    create_simulation,
    get_scenario_description,
    parse_vector,
    parse_matrix,
    ScenarioLoadError,
)
from simulator import run_simulation


SCENARIOS = project_root / 'scenarios'


def test_tick_runner():
    """start/step/pause/stop/reset."""
    print("\n" + "="*60)
    print("TEST 1: Tick Runner")
    print("="*60)

    sim = ProducerConsumerSimulation(ProducerConsumerConfig())
    runner = TickRunner(sim)
    assert runner.start(max_ticks=3) == 3
    assert sim.tick_count == 3
    runner.step()
    assert sim.tick_count == 4 and runner.ticks_run == 4
    print("  ✓ start(max_ticks) and step()")

    seen = []

    def on_tick(snapshot):
        seen.append(snapshot['tick'])
        if snapshot['tick'] == 6:
            runner.pause()

    runner.on_tick = on_tick
    assert runner.start() == 2
    assert seen == [5, 6]
    assert not runner.running
    print("  ✓ pause() from the tick callback stops at the tick boundary")

    sleeps = []
    paced = TickRunner(ProducerConsumerSimulation(ProducerConsumerConfig()), delay=0.25, sleep=sleeps.append)
    paced.start(max_ticks=3)
    assert sleeps == [0.25, 0.25, 0.25]
    print("  ✓ delay paces ticks")

    module, config = load_scenario(str(SCENARIOS / 'demo_banker.json'))
    banker = TickRunner(create_simulation(module, config))
    assert banker.start() == 5
    assert banker.simulation.halted
    assert banker.start() == 0
    assert banker.step() is None
    print("  ✓ Halted simulation stops the loop")

    banker.reset()
    assert banker.simulation.tick_count == 0 and not banker.simulation.halted
    assert banker.ticks_run == 0
    print("  ✓ reset() rebuilds the run")

    print("\n✅ Tick Runner Tests PASSED")


def test_parsing():
    """Vector/matrix text parsing."""
    print("\n" + "="*60)
    print("TEST 2: Text Parsing")
    print("="*60)

    assert parse_vector("3 3 2") == [3, 3, 2]
    assert parse_vector(" 3,3, 2 ", 3) == [3, 3, 2]
    assert parse_matrix("1 0\n\n0 1\n", 2, 2) == [[1, 0], [0, 1]]
    print("  ✓ Whitespace and comma separators")

    for bad in (lambda: parse_vector("1 2", 3),
                lambda: parse_vector("1 x 2"),
                lambda: parse_matrix("1 0\n0", 2, 2),
                lambda: parse_matrix("1 0", 2, 2)):
        try:
            bad()
            assert False, "Should have raised MalformedInputError"
        except MalformedInputError as e:
            print(f"  ✓ Rejected: {e}")

    print("\n✅ Text Parsing Tests PASSED")


def test_scenario_loader():
    """Every bundled scenario loads; bad scenarios raise ScenarioLoadError."""
    print("\n" + "="*60)
    print("TEST 3: Scenario Loader")
    print("="*60)

    for path in sorted(SCENARIOS.glob('*.json')):
        module, config = load_scenario(str(path))
        sim = create_simulation(module, config)
        assert sim.tick_count == 0
        print(f"  ✓ {path.name}: {module}")

    module, config = load_scenario(str(SCENARIOS / 'round_robin_banker.json'))
    assert config.max_rows[2] == [9, 0, 2]
    assert config.available == [3, 3, 2]
    sim = create_simulation(module, config)
    while not sim.halted:
        sim.tick()
    assert sim.engine.safe_sequence == [1, 3, 4, 0, 2]
    print("  ✓ Text matrices and round_robin scan")

    _, pc = load_scenario(str(SCENARIOS / 'producer_consumer.json'))
    assert pc.detection.starvation_threshold == 15
    assert not pc.detection.enable_waiting_detection
    assert build_config('philosophers', {}).detection.starvation_threshold == 25
    assert build_config('reader_writer', {}).detection.starvation_threshold == 20
    print("  ✓ Detection settings and per-module defaults")

    assert "Textbook" in get_scenario_description(str(SCENARIOS / 'demo_banker.json'))
    assert get_scenario_description(str(SCENARIOS / 'missing.json')) == ''

    bad_data = [
        {'module': 'elevator'},
        {'module': 'banker', 'max': [[1]]},
        {'module': 'banker', 'processes': 2, 'resources': 1, 'max': "1\n1\n1", 'allocation': "0\n0"},
        {'module': 'philosophers', 'count': 'five'},
        {'module': 'reader_writer', 'detection': {'starvation_threshold': 0}},
        {'module': 'producer_consumer', 'detection': {'enable_waiting_detection': 'false'}},
        {'module': 'philosophers', 'detection': {'enable_starvation_detection': 1}},
    ]
    for data in bad_data:
        try:
            build_config(data['module'], data)
            assert False, f"Should have rejected {data}"
        except ScenarioLoadError as e:
            print(f"  ✓ Rejected: {e}")

    try:
        create_simulation('banker', build_config('banker', {
            'processes': 2, 'resources': 1, 'max': [[1], [1]], 'allocation': [[0]]
        }))
        assert False, "Row count mismatch should be rejected"
    except ScenarioLoadError as e:
        print(f"  ✓ Rejected at build: {e}")

    with tempfile.TemporaryDirectory() as tmp:
        broken = Path(tmp) / 'broken.json'
        broken.write_text('{"module": ', encoding='utf-8')
        no_module = Path(tmp) / 'no_module.json'
        no_module.write_text('{"count": 3}', encoding='utf-8')
        for path in (broken, no_module, Path(tmp) / 'absent.json'):
            try:
                load_scenario(str(path))
                assert False, f"{path.name} should not load"
            except ScenarioLoadError as e:
                print(f"  ✓ {path.name}: {e}")

    print("\n✅ Scenario Loader Tests PASSED")


def test_logger_export():
    """Logger follows the event log and exports text and JSON."""
    print("\n" + "="*60)
    print("TEST 4: Logger Export")
    print("="*60)

    logger = SimulatorLogger(name="Banker", echo=False)
    module, config = load_scenario(str(SCENARIOS / 'deadlock_banker.json'))
    sim = create_simulation(module, config, logger)
    sim.tick()

    assert logger.lines[0].endswith("Initialized matrices. Need = Max - Allocation")
    assert any("System is UNSAFE -> deadlock detected in P0, P1." in line for line in logger.lines)
    assert logger.outcome == "Deadlock detected involving: P0, P1."

    text = logger.render_text()
    assert text.startswith("=== Concurrency Simulation Log ===\nModule: Banker\n")
    assert "Processes = 2" in text
    assert "Simulation Steps:" in text
    assert text.rstrip().endswith("Deadlock detected involving: P0, P1.")
    print("  ✓ Text rendering")

    with tempfile.TemporaryDirectory() as tmp:
        text_path = Path(tmp) / 'run.txt'
        json_path = Path(tmp) / 'run.json'
        logger.export_text(str(text_path))
        logger.export_json(str(json_path))
        assert text_path.read_text(encoding='utf-8') == text
        data = json.loads(json_path.read_text(encoding='utf-8'))
        assert data['module'] == "Banker"
        assert data['logs'] == logger.lines
    print("  ✓ Text and JSON export")

    sim.reset()
    assert len(logger.lines) < 5, "Reset starts a new session"
    logger.close()

    print("\n✅ Logger Export Tests PASSED")


def test_metrics():
    print("\n" + "="*60)
    print("TEST 5: Metrics")
    print("="*60)

    metrics = SimulationMetrics(module="Test")
    metrics.record_tick(1, {'running': 2, 'waiting': 2, 'blocked': 0, 'starved': 0, 'finished': 0})
    metrics.record_tick(2, {'running': 1, 'waiting': 0, 'blocked': 2, 'starved': 1, 'finished': 0},
                        {'P3': {'state': 'starved', 'waiting_steps': 4}})
    metrics.record_starvation('P3')

    assert metrics.total_ticks == 2
    assert metrics.get_avg_status('running') == 1.5
    assert metrics.get_peak_status('blocked') == 2
    assert metrics.starved_actors == ['P3']
    assert abs(metrics.get_progress_ratio() - 0.375) < 1e-9
    assert SimulationMetrics().get_avg_status('running') == 0.0

    events = EventLog()
    report = format_metrics_report(metrics, verbose=True, outcome="done")
    assert "Starvation Escalations: 1" in report
    assert "Frequency" not in report
    metrics.record_events(events)
    assert metrics.deadlock_count == 0 and metrics.recovery_count == 0
    print("  ✓ Averages, peaks and report")

    events.record("System is UNSAFE -> deadlock detected in P0, P1.", event_type=EventType.DEADLOCK, tick=2)
    events.record("Circular wait: P0 -> P1 -> P0.", event_type=EventType.DEADLOCK, tick=2)
    events.record("Recovery: terminated P0.", actor_id="P0", event_type=EventType.RECOVERY, tick=2)
    events.record("No victim left to terminate.", event_type=EventType.RECOVERY, tick=2)
    metrics.record_events(events)
    metrics.record_events(events)
    assert metrics.deadlock_count == 1, "One verdict per tick, counted afresh each time"
    assert metrics.recovery_count == 1
    assert metrics.get_deadlock_frequency() == 0.5
    assert "Frequency: 0.5000 per tick" in format_metrics_report(metrics)
    print("  ✓ Deadlocks and recoveries counted from the event log")

    print("\n✅ Metrics Tests PASSED")


def test_cli_run():
    """End-to-end runs through run_simulation."""
    print("\n" + "="*60)
    print("TEST 6: CLI Run")
    print("="*60)

    sim, metrics = run_simulation(str(SCENARIOS / 'demo_banker.json'), echo=False)
    assert isinstance(sim, BankerSimulation)
    assert sim.outcome.endswith("Safe Sequence: <P1, P3, P0, P2, P4>")
    assert metrics.total_ticks == 5
    print(f"  ✓ {sim.outcome}")

    sim, metrics = run_simulation(str(SCENARIOS / 'deadlock_banker.json'), recover='terminate', echo=False)
    assert "Safe State" in sim.outcome
    assert metrics.deadlock_count == 2
    assert metrics.recovery_count == 2
    print("  ✓ Deadlock recovered by terminating both processes")

    sim, metrics = run_simulation(str(SCENARIOS / 'circular_wait_banker.json'), recover='preempt', echo=False)
    assert "Safe State" in sim.outcome
    assert sim.engine.safe_sequence == [2, 1, 0]
    print("  ✓ Circular wait recovered by preemption")

    sim, metrics = run_simulation(str(SCENARIOS / 'reader_writer.json'), ticks=12, echo=False)
    assert sim.tick_count == 12 and metrics.total_ticks == 12

    with tempfile.TemporaryDirectory() as tmp:
        json_path = Path(tmp) / 'pc.json'
        run_simulation(str(SCENARIOS / 'producer_consumer.json'), ticks=5,
                       export_json=str(json_path), echo=False)
        assert json.loads(json_path.read_text(encoding='utf-8'))['module'] == "ProducerConsumer"
    print("  ✓ Fixed-length runs and export")

    assert run_simulation(str(SCENARIOS / 'missing.json'), echo=False) is None
    print("  ✓ Missing scenario reported")

    print("\n✅ CLI Run Tests PASSED")


def main():
    """Run all runtime tests."""
    print("\n" + "="*70)
    print(" "*25 + "RUNTIME TESTS")
    print("="*70)

    try:
        test_tick_runner()
        test_parsing()
        test_scenario_loader()
        test_logger_export()
        test_metrics()
        test_cli_run()

        print("\n" + "="*70)
        print("\n🎉 ALL RUNTIME TESTS PASSED")
        print("="*70 + "\n")
        return 0

    except AssertionError as e:
        print(f"\n❌ TEST FAILED: {e}")
        return 1
    except Exception as e:
        print(f"\n❌ ERROR: {e}")
        import traceback
        traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())
