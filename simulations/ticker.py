"""
Cooperative tick loop for the simulators.

Replaces frame-callback recursion with an explicit loop that can be started,
single-stepped, paused and stopped. Pause and stop are honoured at the next
tick boundary; a tick in progress always completes.
"""

import time
from typing import Callable, Dict, Optional

from simulations.base import Simulation


class TickRunner:
    """
    Drives a Simulation one tick at a time.

    Attributes:
        simulation: The simulator being driven
        delay: Seconds to sleep between ticks (display pacing only)
        on_tick: Called with the simulation snapshot after every tick
        ticks_run: Ticks executed by this runner since the last reset
    """

    def __init__(
        self,
        simulation: Simulation,
        delay: float = 0.0,
        on_tick: Optional[Callable[[Dict], None]] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.simulation = simulation
        self.delay = delay
        self.on_tick = on_tick
        self.sleep = sleep
        self.ticks_run = 0
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def step(self):
        """
        Run exactly one tick.

        Returns:
            Whatever the simulation's tick() returns, or None if it is halted
        """
        if self.simulation.halted:
            return None
        result = self.simulation.tick()
        self.ticks_run += 1
        if self.on_tick is not None:
            self.on_tick(self.simulation.snapshot())
        return result

    def start(self, max_ticks: Optional[int] = None) -> int:
        """
        Tick until the simulation halts, pause()/stop() is called (for
        example from on_tick), or max_ticks ticks have run.

        Returns:
            Number of ticks executed by this call
        """
        if self._running:
            return 0
        self._running = True
        executed = 0
        try:
            while self._running and not self.simulation.halted:
                if max_ticks is not None and executed >= max_ticks:
                    break
                self.step()
                executed += 1
                if self.delay > 0 and self._running and not self.simulation.halted:
                    self.sleep(self.delay)
        finally:
            self._running = False
        return executed

    def pause(self) -> None:
        """Stop looping at the next tick boundary; start() resumes."""
        self._running = False

    def stop(self) -> None:
        """Cancel the loop at the next tick boundary. Completed ticks stay applied."""
        self.pause()

    def reset(self, config=None) -> None:
        """Stop and rebuild the simulation from its (or a new) configuration."""
        self.stop()
        self.simulation.reset(config)
        self.ticks_run = 0
