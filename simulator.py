#!/usr/bin/env python3
"""
Concurrency Problem Simulator
Main entry point for the simulation system.

Runs one scenario (Banker's algorithm, Dining Philosophers, Producer/Consumer
or Reader/Writer) through the tick runner and prints its log and statistics.
"""

import argparse
import sys
from typing import Optional, Tuple

from utils.scenario_loader import (
    load_scenario,
    create_simulation,
    get_scenario_description,
    ScenarioLoadError,
)
from utils.logger import SimulatorLogger
from simulations.base import Simulation
from simulations.banker import BankerSimulation
from simulations.ticker import TickRunner
from analysis.metrics import SimulationMetrics, format_metrics_report


DEFAULT_TICKS = 50


def run_simulation(
    scenario_path: str,
    ticks: Optional[int] = None,
    delay: float = 0.0,
    verbose: bool = False,
    recover: Optional[str] = None,
    export_log: Optional[str] = None,
    export_json: Optional[str] = None,
    echo: bool = True
) -> Optional[Tuple[Simulation, SimulationMetrics]]:
    """
    Run one scenario to completion or for a fixed number of ticks.

    Banker's runs go until the safety search halts; with a recovery strategy
    each deadlock verdict is followed by one recovery action and the search
    continues. The other modules cycle for ever and run for `ticks` ticks.

    Args:
        scenario_path: Path to scenario JSON file
        ticks: Tick limit (default: until halted, or DEFAULT_TICKS)
        delay: Seconds between ticks
        verbose: Enable verbose logging
        recover: 'terminate' or 'preempt' to recover from Banker's deadlocks
        export_log: Write the run log as plain text to this path
        export_json: Write the run log as JSON to this path
        echo: Print log lines to the console

    Returns:
        (simulation, metrics), or None if the scenario could not be loaded
    """
    logger = SimulatorLogger(verbose=verbose, echo=echo)

    try:
        module, config = load_scenario(scenario_path)
        simulation = create_simulation(module, config, logger)
    except ScenarioLoadError as e:
        logger.log(f"Failed to load scenario: {e}", "error")
        logger.close()
        return None

    logger.name = simulation.name
    metrics = SimulationMetrics(module=simulation.name)

    logger.log(f"\n{'='*60}")
    logger.log(f"SIMULATION START: {simulation.name.upper()}")
    logger.log(f"Scenario: {scenario_path}")
    description = get_scenario_description(scenario_path)
    if description:
        logger.log(f"Description: {description}")
    logger.log(f"{'='*60}\n")

    if isinstance(simulation, BankerSimulation):
        _display_initial_state(simulation, logger)

    def on_tick(snapshot):
        metrics.record_tick(snapshot['tick'], snapshot['status_counts'], snapshot['liveness'])
        if verbose:
            _display_state_snapshot(snapshot, logger)

    runner = TickRunner(simulation, delay=delay, on_tick=on_tick)
    limit = ticks
    if limit is None and not isinstance(simulation, BankerSimulation):
        limit = DEFAULT_TICKS

    remaining = limit
    while True:
        executed = runner.start(max_ticks=remaining)
        if remaining is not None:
            remaining -= executed
            if remaining <= 0:
                break
        if not (simulation.halted and recover and isinstance(simulation, BankerSimulation)):
            break
        if simulation.last_report is None:
            break
        if not _recover(simulation, recover, logger):
            break

    logger.log(f"\n{'='*60}")
    logger.log("SIMULATION COMPLETE")
    logger.log(f"{'='*60}\n")

    metrics.record_events(simulation.events)
    _display_statistics(simulation, logger)
    logger.log(format_metrics_report(metrics, verbose, scenario_path, simulation.outcome))

    if export_log:
        logger.export_text(export_log)
        logger.log(f"Log exported to {export_log}")
    if export_json:
        logger.export_json(export_json)
        logger.log(f"JSON log exported to {export_json}")

    logger.close()
    return simulation, metrics


def _recover(simulation: BankerSimulation, strategy: str, logger: SimulatorLogger) -> bool:
    """
    Apply one recovery action to a deadlocked Banker's run.

    Returns:
        True if the run was resumed
    """
    if strategy == 'terminate':
        success, message = simulation.recover_terminate()
    else:
        success, message = simulation.recover_preempt()
    if not success:
        logger.log(f"Recovery failed: {message}", "warning")
    return success


def _display_initial_state(simulation: BankerSimulation, logger: SimulatorLogger) -> None:
    """Display initial Banker's matrices."""
    logger.log("Initial System State:")
    logger.log(simulation.state.display())
    logger.log("")


def _display_state_snapshot(snapshot: dict, logger: SimulatorLogger) -> None:
    """Display per-actor liveness after a tick."""
    logger.log(f"[State Snapshot] tick {snapshot['tick']}", "debug")
    for actor, record in snapshot['liveness'].items():
        logger.log(f"  {actor}: state={record['state']}, waiting={record['waiting_steps']}", "debug")
    if 'work' in snapshot:
        logger.log(f"  Work: {snapshot['work']}", "debug")


def _display_statistics(simulation: Simulation, logger: SimulatorLogger) -> None:
    """Display final simulation statistics."""
    logger.log("\nSimulation Statistics:")
    logger.log(f"  Ticks: {simulation.tick_count}")
    logger.log(f"  Outcome: {simulation.outcome or 'still running'}")

    logger.log("\n  Final Liveness:")
    for actor, record in simulation.liveness_snapshot().items():
        logger.log(f"    {actor}: {record['state'].upper()} (waiting {record['waiting_steps']} ticks)")

    if isinstance(simulation, BankerSimulation):
        sequence = ", ".join(f"P{i}" for i in simulation.engine.safe_sequence)
        logger.log(f"\n  Admission Order: <{sequence}>")
        if simulation.last_report is not None:
            logger.log(f"  Wait-For Edges: {simulation.wait_for_edges()}")


def main():
    """Main entry point for the simulator."""
    parser = argparse.ArgumentParser(
        description='Concurrency Problem Simulator'
    )
    parser.add_argument(
        '--scenario',
        type=str,
        required=True,
        help='Path to scenario JSON file'
    )
    parser.add_argument(
        '--ticks',
        type=int,
        default=None,
        help=f'Maximum ticks to run (default: until halted, or {DEFAULT_TICKS})'
    )
    parser.add_argument(
        '--delay',
        type=float,
        default=0.0,
        help='Seconds to wait between ticks (default: 0)'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )
    parser.add_argument(
        '--recover',
        choices=['terminate', 'preempt'],
        default=None,
        help="Recovery strategy for Banker's deadlocks"
    )
    parser.add_argument(
        '--export-log',
        type=str,
        default=None,
        help='Write the run log as plain text'
    )
    parser.add_argument(
        '--export-json',
        type=str,
        default=None,
        help='Write the run log as JSON'
    )

    args = parser.parse_args()

    if args.ticks is not None and args.ticks <= 0:
        parser.error('--ticks must be positive')
    if args.delay < 0:
        parser.error('--delay cannot be negative')

    result = run_simulation(
        args.scenario,
        ticks=args.ticks,
        delay=args.delay,
        verbose=args.verbose,
        recover=args.recover,
        export_log=args.export_log,
        export_json=args.export_json
    )
    return 0 if result is not None else 1


if __name__ == '__main__':
    sys.exit(main())
