"""
Shared fixtures: a hand-driven clock, a five-question exam and an in-memory log.
"""

import copy
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from examiner.clock import Clock
from examiner.event_log import EventLog
from examiner.models import ExamDefinition


class ManualClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = None):
        self.current = start or datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float = 0, minutes: float = 0):
        self.current += timedelta(seconds=seconds, minutes=minutes)


SAMPLE_EXAM = {
    "id": "py-101-midterm",
    "title": "Python 101 Midterm",
    "duration_minutes": 45,
    "questions": [
        {
            "id": "q1",
            "type": "mcq",
            "prompt": "Which keyword defines a function?",
            "options": ["func", "def", "lambda"],
            "points": 2,
        },
        {
            "id": "q2",
            "type": "saq",
            "prompt": "Explain what a closure is.",
            "points": 5,
        },
        {
            "id": "q3",
            "type": "coding",
            "prompt": "Read two integers and print their sum.",
            "language": "python",
            "points": 10,
            "test_cases": [
                {"input": "2 3", "output": "5"},
                {"input": "10 -4", "output": "6"},
            ],
        },
        {
            "id": "q4",
            "type": "saq",
            "prompt": "What does PEP 8 describe?",
            "points": 5,
        },
        {
            "id": "q5",
            "type": "mcq",
            "prompt": "What is len('abc')?",
            "options": ["2", "3", "4"],
            "points": 2,
        },
    ],
}


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def exam_dict():
    return copy.deepcopy(SAMPLE_EXAM)


@pytest.fixture
def exam(exam_dict):
    return ExamDefinition.from_dict(exam_dict)


@pytest.fixture
def event_log():
    return EventLog()
