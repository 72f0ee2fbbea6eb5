"""
Answer store for a single exam attempt.

Keyed mapping from question id to the student's answer and flag. The store
does not know about session status; the session decides whether a mutation
is allowed before calling in.
"""

from typing import Dict, Iterator, Optional

from .models import Answer


class AnswerStore:
    """Per-question answers and flags, with a mutation counter for autosave."""

    def __init__(self):
        self._answers: Dict[str, Answer] = {}
        # Incremented on every mutation; autosave compares it to the last saved value
        self.version = 0

    def __len__(self) -> int:
        return len(self._answers)

    def __iter__(self) -> Iterator[Answer]:
        return iter(list(self._answers.values()))

    def __contains__(self, question_id: str) -> bool:
        return question_id in self._answers

    def get(self, question_id: str) -> Optional[Answer]:
        return self._answers.get(question_id)

    def value_of(self, question_id: str) -> str:
        answer = self._answers.get(question_id)
        return answer.value if answer else ""

    def is_answered(self, question_id: str) -> bool:
        answer = self._answers.get(question_id)
        return answer is not None and answer.is_answered

    def is_flagged(self, question_id: str) -> bool:
        answer = self._answers.get(question_id)
        return answer is not None and answer.flagged

    def set_answer(self, question_id: str, value: str) -> Answer:
        """Upsert the answer value, keeping the existing flag."""
        existing = self._answers.get(question_id)
        flagged = existing.flagged if existing else False
        answer = Answer(question_id=question_id, value=value or "", flagged=flagged)
        self._answers[question_id] = answer
        self.version += 1
        return answer

    def toggle_flag(self, question_id: str) -> Answer:
        """Flip the flag, keeping the existing value."""
        existing = self._answers.get(question_id)
        value = existing.value if existing else ""
        flagged = not existing.flagged if existing else True
        answer = Answer(question_id=question_id, value=value, flagged=flagged)
        self._answers[question_id] = answer
        self.version += 1
        return answer

    def answered_count(self) -> int:
        return sum(1 for answer in self._answers.values() if answer.is_answered)

    def flagged_count(self) -> int:
        return sum(1 for answer in self._answers.values() if answer.flagged)

    def clear(self):
        self._answers = {}
        self.version += 1

    def to_snapshot(self) -> Dict[str, dict]:
        """Serialize every entry as {question_id: {"value", "flagged"}}."""
        return {qid: answer.to_dict() for qid, answer in self._answers.items()}

    @staticmethod
    def from_snapshot(data: Optional[Dict[str, dict]]) -> 'AnswerStore':
        """Rebuild a store from to_snapshot() output. Malformed entries are skipped."""
        store = AnswerStore()
        for qid, entry in (data or {}).items():
            if not isinstance(entry, dict):
                continue
            value = entry.get("value")
            store._answers[str(qid)] = Answer(
                question_id=str(qid),
                value=value if isinstance(value, str) else "",
                flagged=bool(entry.get("flagged", False)),
            )
        return store
