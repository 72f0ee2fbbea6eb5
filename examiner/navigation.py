"""
Navigation rules for moving between the questions of an attempt.

Two independent checks:

- go_to(index): a question may be opened if it is the current one, if it is
  at or before the furthest question ever reached, or if it already has an
  answer. Everything else is locked.
- next(): moving forward one step is blocked while the current question
  needs an answer and has none. The gate is open on the last question.

The navigator colouring (current / flagged / answered / open / locked) is
derived from the same go_to rule.
"""

from typing import List

from .answers import AnswerStore
from .models import Question


STATE_CURRENT = "current"
STATE_FLAGGED = "flagged"
STATE_ANSWERED = "answered"
STATE_OPEN = "open"
STATE_LOCKED = "locked"


class NavigationGuard:
    """Tracks the current and furthest-reached question index."""

    def __init__(self, questions: List[Question], current_index: int = 0, max_reached_index: int = 0):
        self.questions = questions
        last = max(len(questions) - 1, 0)
        self.current_index = min(max(current_index, 0), last)
        self.max_reached_index = min(max(max_reached_index, self.current_index), last)

    def __len__(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Question:
        return self.questions[self.current_index]

    @property
    def is_last(self) -> bool:
        return self.current_index >= len(self.questions) - 1

    def _in_range(self, index: int) -> bool:
        return 0 <= index < len(self.questions)

    def can_visit(self, index: int, answers: AnswerStore) -> bool:
        if not self._in_range(index):
            return False
        if index == self.current_index or index <= self.max_reached_index:
            return True
        return answers.is_answered(self.questions[index].id)

    def go_to(self, index: int, answers: AnswerStore) -> bool:
        """Move to index if allowed. Returns False (index unchanged) otherwise."""
        if not self.can_visit(index, answers):
            return False
        self._move(index)
        return True

    def next_blocked(self, answers: AnswerStore) -> bool:
        """True while "Next" must stay disabled for the current question."""
        if self.is_last:
            return False
        question = self.current_question
        return question.requires_answer and not answers.is_answered(question.id)

    def next(self, answers: AnswerStore) -> bool:
        if self.is_last or self.next_blocked(answers):
            return False
        self._move(self.current_index + 1)
        return True

    def previous(self) -> bool:
        if self.current_index == 0:
            return False
        self._move(self.current_index - 1)
        return True

    def _move(self, index: int):
        self.current_index = index
        if index > self.max_reached_index:
            self.max_reached_index = index

    def question_state(self, index: int, answers: AnswerStore) -> str:
        """Navigator colour for one question."""
        question_id = self.questions[index].id
        if index == self.current_index:
            return STATE_CURRENT
        if answers.is_flagged(question_id):
            return STATE_FLAGGED
        if answers.is_answered(question_id):
            return STATE_ANSWERED
        return STATE_OPEN if self.can_visit(index, answers) else STATE_LOCKED

    def states(self, answers: AnswerStore) -> List[str]:
        return [self.question_state(i, answers) for i in range(len(self.questions))]
