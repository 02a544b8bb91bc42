"""
Liveness Classification for the Concurrency Problem Simulator.

Tracks one liveness record per actor id and converts each tick's intended
state into an observed state, escalating to STARVED once an actor has spent
too many consecutive ticks waiting or blocked.
"""

from datetime import datetime
from typing import Callable, Dict, Optional, Union

from models.liveness import DetectionConfig, LivenessState, ProcessLivenessRecord
from analysis.events import EventLog, EventType


STATE_MESSAGES = {
    LivenessState.WAITING: "is WAITING",
    LivenessState.BLOCKED: "is BLOCKED",
    LivenessState.STARVED: "is STARVED",
    LivenessState.RUNNING: "is RUNNING",
    LivenessState.FINISHED: "is FINISHED",
}


def format_state_change(actor_id: str, state: LivenessState, details: str = "") -> str:
    """
    Format a state change line, e.g. "Process P1 is BLOCKED (buffer full)".

    Args:
        actor_id: Actor identifier
        state: New state
        details: Optional free-text reason

    Returns:
        Formatted message
    """
    text = STATE_MESSAGES.get(state, f"changed to {state.value.upper()}")
    message = f"Process {actor_id} {text}"
    if details:
        message += f" ({details})"
    return message


class LivenessClassifier:
    """
    Per-actor finite-state classifier shared by all domain simulators.

    One instance is owned by each simulation run and discarded on reset.
    Actors are opaque string ids; different simulators simply use different
    id namespaces.
    """

    def __init__(
        self,
        event_log: EventLog,
        config: Optional[DetectionConfig] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        """
        Initialize classifier.

        Args:
            event_log: Event stream that receives transition events
            config: Detection configuration (defaults if None)
            clock: Source of record timestamps
        """
        self.event_log = event_log
        self.config = config or DetectionConfig()
        self.clock = clock
        self._records: Dict[str, ProcessLivenessRecord] = {}
        self._last_tick: Dict[str, int] = {}

    def classify(
        self,
        actor_id: str,
        intended_state: Union[LivenessState, str],
        details: str = "",
        tick: Optional[int] = None
    ) -> LivenessState:
        """
        Classify one actor for the current tick.

        Steps:
        1. Look up or lazily create the actor's record
        2. WAITING/BLOCKED: count one more non-progress tick
        3. RUNNING/FINISHED: reset the count
        4. Past the starvation threshold (if enabled): effective state is STARVED
        5. Log a transition only when the effective state changes
        6. Store and return the effective state

        When a tick number is given, a repeated call for the same actor in the
        same tick does not count a second non-progress tick.

        Args:
            actor_id: Actor identifier ("P0", "R3", "W1", ...)
            intended_state: State the simulator observed this tick
            details: Free-text reason included in the transition log
            tick: Simulator tick number, if known

        Returns:
            Effective state (possibly STARVED)

        Raises:
            ValueError: If intended_state is UNKNOWN or STARVED
        """
        intended = LivenessState(intended_state)
        if not (intended.is_non_progress or intended.is_progress):
            raise ValueError(f"{actor_id}: {intended.value} cannot be supplied as an intended state")

        record = self._records.setdefault(actor_id, ProcessLivenessRecord(last_update=self.clock()))

        already_counted = tick is not None and self._last_tick.get(actor_id) == tick
        if intended.is_non_progress and not already_counted:
            record.consecutive_non_progress_ticks += 1
        elif intended.is_progress:
            record.consecutive_non_progress_ticks = 0
        if tick is not None:
            self._last_tick[actor_id] = tick

        effective = intended
        if (
            self.config.enable_starvation_detection
            and record.consecutive_non_progress_ticks >= self.config.starvation_threshold
        ):
            effective = LivenessState.STARVED

        if effective != record.state:
            self._log_transition(actor_id, effective, details, record, tick)

        record.state = effective
        record.last_update = self.clock()
        return effective

    def _log_transition(
        self,
        actor_id: str,
        state: LivenessState,
        details: str,
        record: ProcessLivenessRecord,
        tick: Optional[int]
    ) -> None:
        if state == LivenessState.STARVED:
            details = f"waiting for {record.consecutive_non_progress_ticks} steps"
        elif state == LivenessState.WAITING and not self.config.enable_waiting_detection:
            return
        elif state == LivenessState.BLOCKED and not self.config.enable_blocking_detection:
            return

        self.event_log.record(
            format_state_change(actor_id, state, details),
            actor_id=actor_id,
            event_type=EventType.TRANSITION,
            tick=tick or 0
        )

    def get_state(self, actor_id: str) -> ProcessLivenessRecord:
        """
        Get an actor's record.

        Returns:
            The stored record, or a fresh UNKNOWN/0 record if never classified
        """
        return self._records.get(actor_id) or ProcessLivenessRecord(last_update=self.clock())

    def records(self) -> Dict[str, ProcessLivenessRecord]:
        """Snapshot of all records keyed by actor id."""
        return dict(self._records)

    def status_counts(self) -> Dict[str, int]:
        """Number of actors currently in each observed state."""
        counts = {state.value: 0 for state in STATE_MESSAGES}
        for record in self._records.values():
            counts[record.state.value] = counts.get(record.state.value, 0) + 1
        return counts

    def reset(self) -> None:
        """Forget every actor."""
        self._records.clear()
        self._last_tick.clear()
