"""
Append-only event log for exam and grading sessions.

Every component that needs to record something takes a plain
``log(event, details)`` callable; an EventLog instance is one.
"""

from datetime import datetime
from pathlib import Path
from typing import List, Optional


class EventLog:
    """Timestamped audit trail, written to a file or kept in memory."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else None
        self.entries: List[str] = []

    def __call__(self, event: str, details: str = ""):
        self.log(event, details)

    def log(self, event: str, details: str = ""):
        """Append an entry to the log."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        log_entry = f"[{timestamp}] - {event}"
        if details:
            log_entry += f" - {details}"

        self.entries.append(log_entry)
        if self.path is None:
            return

        with open(self.path, 'a', encoding='utf-8') as f:
            f.write(log_entry + "\n")

    def events(self) -> List[str]:
        """Return the event names recorded so far, in order."""
        return [entry.split(" - ")[1] for entry in self.entries]


def null_log(event: str, details: str = ""):
    pass
