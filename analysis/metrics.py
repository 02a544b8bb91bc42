"""
Metrics Tracking for the Concurrency Problem Simulator.

Tracks liveness and outcome metrics throughout a simulation run.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional
import statistics

from analysis.events import EventLog, EventType


@dataclass
class SimulationMetrics:
    """
    Accumulated metrics for a single simulation run.

    Tracks four key metrics:
    1. Deadlock Count: Deadlock verdicts reported by the simulator
    2. Recovery Count: Manual or automatic recovery actions applied
    3. Starvation Escalations: Actors that reached STARVED at least once
    4. Liveness Mix: Average number of actors per state, sampled every tick
    """
    module: str = ""
    total_ticks: int = 0
    deadlock_count: int = 0
    recovery_count: int = 0

    # Per-tick samples of classifier status counts
    status_samples: List[Dict[str, int]] = field(default_factory=list)

    # Actors seen STARVED, in first-escalation order
    starved_actors: List[str] = field(default_factory=list)

    def record_tick(self, tick: int, status_counts: Dict[str, int], liveness: Optional[Dict[str, dict]] = None) -> None:
        """
        Record metrics for a single tick.

        Args:
            tick: Current tick number
            status_counts: Actors per observed state ("waiting", "blocked", ...)
            liveness: Per-actor records as in Simulation.liveness_snapshot()
        """
        self.total_ticks = tick
        self.status_samples.append(dict(status_counts))

        for actor, record in (liveness or {}).items():
            if record.get('state') == 'starved':
                self.record_starvation(actor)

    def record_starvation(self, actor_id: str) -> None:
        """Record a starvation escalation; each actor counts once."""
        if actor_id not in self.starved_actors:
            self.starved_actors.append(actor_id)

    def record_deadlock(self) -> None:
        """Record a deadlock occurrence."""
        self.deadlock_count += 1

    def record_recovery(self) -> None:
        """Record a successful recovery action."""
        self.recovery_count += 1

    def record_events(self, event_log: EventLog) -> None:
        """
        Count deadlock verdicts and recovery actions from an event log.

        Replaces any earlier counts. A deadlock verdict may span several
        DEADLOCK events in one tick; it counts once per tick.
        """
        self.deadlock_count = 0
        self.recovery_count = 0
        for _ in {e.tick for e in event_log.get_events_by_type(EventType.DEADLOCK)}:
            self.record_deadlock()
        for event in event_log.get_events_by_type(EventType.RECOVERY):
            if event.message.startswith("Recovery:"):
                self.record_recovery()

    @property
    def starvation_count(self) -> int:
        return len(self.starved_actors)

    def get_avg_status(self, state: str) -> float:
        """
        Calculate the average number of actors in a state per tick.

        Args:
            state: State name as in status_counts ("waiting", "blocked", ...)

        Returns:
            Mean over all sampled ticks, 0.0 if nothing was sampled
        """
        if not self.status_samples:
            return 0.0
        return statistics.mean(sample.get(state, 0) for sample in self.status_samples)

    def get_peak_status(self, state: str) -> int:
        """Highest number of actors seen in a state during one tick."""
        if not self.status_samples:
            return 0
        return max(sample.get(state, 0) for sample in self.status_samples)

    def get_progress_ratio(self) -> float:
        """
        Share of classified actor-ticks that made progress.

        Formula: (running + finished) / all classified actors, averaged per tick
        """
        ratios = []
        for sample in self.status_samples:
            classified = sum(sample.values())
            if classified:
                ratios.append((sample.get('running', 0) + sample.get('finished', 0)) / classified)
        if not ratios:
            return 0.0
        return statistics.mean(ratios)

    def get_deadlock_frequency(self) -> float:
        """Get deadlock frequency (deadlocks / total ticks)."""
        if self.total_ticks == 0:
            return 0.0
        return self.deadlock_count / self.total_ticks


def format_metrics_report(
    metrics: SimulationMetrics,
    verbose: bool = False,
    scenario: str = None,
    outcome: str = None
) -> str:
    """
    Format metrics for display at end of simulation.

    Args:
        metrics: SimulationMetrics instance with collected data
        verbose: If True, include metric formulas
        scenario: Scenario file path
        outcome: Terminal outcome, if the run halted

    Returns:
        Formatted metrics report string
    """
    lines = []
    lines.append("\n" + "="*60)
    lines.append("SIMULATION METRICS")
    lines.append("="*60)

    if metrics.module:
        lines.append(f"Module: {metrics.module}")
    if scenario:
        lines.append(f"Scenario: {scenario}")
    if outcome:
        lines.append(f"Outcome: {outcome}")
    lines.append("")

    lines.append(f"Total Ticks: {metrics.total_ticks}")
    lines.append("")

    lines.append("KEY METRICS:")
    lines.append("-" * 60)
    lines.append(f"1. Deadlock Count: {metrics.deadlock_count}")
    if metrics.deadlock_count:
        lines.append(f"   Frequency: {metrics.get_deadlock_frequency():.4f} per tick")
    lines.append(f"2. Recovery Count: {metrics.recovery_count}")
    lines.append(f"3. Starvation Escalations: {metrics.starvation_count}")
    if metrics.starved_actors:
        lines.append(f"   Starved: {', '.join(metrics.starved_actors)}")
    lines.append(f"4. Progress Ratio: {metrics.get_progress_ratio():.2%}")

    if metrics.status_samples:
        lines.append("")
        lines.append("LIVENESS MIX (avg / peak actors per tick):")
        lines.append("-" * 60)
        for state in ('running', 'waiting', 'blocked', 'starved', 'finished'):
            lines.append(
                f"  {state:9}: {metrics.get_avg_status(state):6.2f} / {metrics.get_peak_status(state)}"
            )

    if verbose:
        lines.append("")
        lines.append("METRIC FORMULAS:")
        lines.append("-" * 60)
        lines.append("1. Deadlock Count: Ticks in which a deadlock verdict was reported")
        lines.append("2. Recovery Count: Successful terminate/preempt actions")
        lines.append("3. Starvation Escalations: Distinct actors that reached STARVED")
        lines.append("4. Progress Ratio: Average of (running + finished) / classified actors per tick")

    lines.append("="*60)
    return "\n".join(lines)
