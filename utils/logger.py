"""
Logger utility for the Concurrency Problem Simulator.

Consumes the simulators' event stream, prints it, and exports a finished
run to plain text or JSON.
"""

import json
from typing import Dict, List, Optional
from datetime import datetime

from analysis.events import EventLog, SimulationEvent


class SimulatorLogger:
    """
    Logger for simulation events and decisions.

    Format: "[HH:MM:SS] Process P1 is BLOCKED (buffer full)"
    """

    def __init__(
        self,
        name: str = "Simulation",
        verbose: bool = False,
        log_file: Optional[str] = None,
        echo: bool = True
    ):
        """
        Initialize logger.

        Args:
            name: Module name written in export headers
            verbose: Enable debug output
            log_file: Optional file path for live logging
            echo: Print lines to the console
        """
        self.name = name
        self.verbose = verbose
        self.echo = echo
        self.log_file = log_file
        self.file_handle = None
        self.lines: List[str] = []
        self.started_at: Optional[datetime] = None
        self.config: Dict = {}
        self.outcome: Optional[str] = None

        if self.log_file:
            self.file_handle = open(self.log_file, 'w', encoding='utf-8')
            self._write_header()

    def _write_header(self) -> None:
        """Write log file header."""
        if self.file_handle:
            timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            self.file_handle.write(f"Simulation Log - {self.name} - {timestamp}\n")
            self.file_handle.write("="*60 + "\n\n")

    def attach(self, event_log: EventLog) -> None:
        """Subscribe to an event log so every event is logged as it happens."""
        event_log.subscribe(self.log_event)

    def log_event(self, event: SimulationEvent) -> None:
        """Record one simulation event as a log line."""
        line = str(event)
        self.lines.append(line)
        self._emit(line)

    def log(self, message: str, level: str = "info") -> None:
        """
        Log a free-form message (not part of the exported run).

        Args:
            message: Message to log
            level: Log level (info, debug, warning, error)
        """
        if level == "debug" and not self.verbose:
            return
        self._emit(self._format_message(message, level))

    def _emit(self, formatted: str) -> None:
        # Console output
        if self.echo:
            print(formatted)

        # File output
        if self.file_handle:
            self.file_handle.write(formatted + "\n")
            self.file_handle.flush()

    def _format_message(self, message: str, level: str) -> str:
        """Format message with level prefix."""
        if level == "error":
            return f"[ERROR] {message}"
        elif level == "warning":
            return f"[WARNING] {message}"
        elif level == "debug":
            return f"[DEBUG] {message}"
        else:
            return message

    def start_session(self, config: Optional[Dict] = None) -> None:
        """Begin a new run: forget previous lines and remember its configuration."""
        self.lines = []
        self.started_at = datetime.now()
        self.config = dict(config or {})
        self.outcome = None

    def set_outcome(self, text: str) -> None:
        self.outcome = text

    def render_text(self) -> str:
        """
        Render the run as plain text.

        Returns:
            Header (module, timestamp, configuration), steps, outcome
        """
        started = self.started_at or datetime.now()
        header = [
            "=== Concurrency Simulation Log ===",
            f"Module: {self.name}",
            f"Timestamp: {started.strftime('%Y-%m-%d %H:%M:%S')}",
            "",
            "Configuration:",
        ]
        for key, value in self.config.items():
            header.append(f"{key} = {json.dumps(value) if isinstance(value, (dict, list)) else value}")
        header += ["", "Simulation Steps:"]
        footer = ["", "Outcome:", self.outcome or ""]
        return "\n".join(header + self.lines + footer) + "\n"

    def export_text(self, file_path: str) -> None:
        """Write the run to a plain-text file."""
        with open(file_path, 'w', encoding='utf-8') as f:
            f.write(self.render_text())

    def export_json(self, file_path: str) -> None:
        """Write the run to a JSON file: {"module": ..., "logs": [...]}."""
        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump({'module': self.name, 'logs': self.lines}, f, indent=2)

    def close(self) -> None:
        """Close log file if open."""
        if self.file_handle:
            self.file_handle.close()
            self.file_handle = None

    def __del__(self):
        """Cleanup on destruction."""
        self.close()
