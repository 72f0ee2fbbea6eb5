"""
Teacher-side grading of one submission.

Marks and feedback are staged in drafts keyed by response id and only
reach the platform on save(). Badges and submission status always come
from the persisted responses, never from drafts.
"""

import math
import numbers
from typing import Dict, List, Optional

from .errors import ExaminerError, GradingSaveError, GradingValidationError
from .event_log import null_log
from .execution import ExecutionBoard, ExecutionClient, normalize_language
from .grading import GRADED, status_of, submission_status
from .models import CODING, MCQ, ExecutionResult, Response, Submission


class GradingSession:
    """
    Grading controller for a single submission.

    Args:
        submission: The submission being graded
        store: Grading persistence with save_grades(session_id, updates)
            and fetch_submission(session_id), e.g. ExamApiClient
        execution_client: Used for verification runs of coding answers
        log: Event logger callable
    """

    def __init__(
        self,
        submission: Submission,
        store,
        execution_client: Optional[ExecutionClient] = None,
        log=None
    ):
        self.submission = submission
        self.store = store
        self.execution_client = execution_client
        self.log = log or null_log

        self.drafts: Dict[str, dict] = {}
        self.current_index = 0
        self.executions = ExecutionBoard(log=self.log)

    @property
    def responses(self) -> List[Response]:
        return self.submission.responses

    def get_response(self, response_id: str) -> Response:
        response = self.submission.get_response(response_id)
        if response is None:
            raise GradingValidationError(response_id, f"Unknown response {response_id}")
        return response

    # ===== DRAFTS =====

    def _draft(self, response: Response) -> dict:
        draft = self.drafts.get(response.id)
        if draft is None:
            draft = {
                "marks_obtained": response.marks_obtained,
                "teacher_feedback": response.teacher_feedback or "",
            }
            self.drafts[response.id] = draft
        return draft

    def set_mark(self, response_id: str, marks) -> None:
        """
        Stage a mark for a response. None clears the staged mark.

        Raises:
            GradingValidationError: Multiple-choice response, non-integer,
                negative or above the response's maximum. The draft is
                left untouched.
        """
        response = self.get_response(response_id)
        if response.question_type == MCQ:
            self._reject(response_id, "Multiple-choice answers are graded automatically")

        if marks is not None:
            if isinstance(marks, bool) or not isinstance(marks, numbers.Real):
                self._reject(response_id, f"Marks must be a whole number, got {marks!r}")
            if not math.isfinite(marks):
                self._reject(response_id, f"Marks must be a whole number, got {marks}")
            if marks != int(marks):
                self._reject(response_id, f"Marks must be a whole number, got {marks}")
            marks = int(marks)
            if marks < 0:
                self._reject(response_id, f"Marks cannot be negative, got {marks}")
            if marks > response.max_marks:
                self._reject(response_id, f"Marks cannot exceed {response.max_marks}, got {marks}")

        self._draft(response)["marks_obtained"] = marks

    def set_feedback(self, response_id: str, text: str) -> None:
        response = self.get_response(response_id)
        if response.question_type == MCQ:
            self._reject(response_id, "Multiple-choice answers are graded automatically")
        self._draft(response)["teacher_feedback"] = text or ""

    def _reject(self, response_id: str, message: str):
        self.log("GRADE_REJECTED", f"Response: {response_id}, {message}")
        raise GradingValidationError(response_id, message)

    def draft_for(self, response_id: str) -> Optional[dict]:
        draft = self.drafts.get(response_id)
        return dict(draft) if draft is not None else None

    @property
    def has_unsaved_changes(self) -> bool:
        return bool(self.pending_updates())

    def pending_updates(self) -> List[dict]:
        """Drafted responses that have a mark, in the shape the platform expects."""
        updates = []
        for response in self.responses:
            draft = self.drafts.get(response.id)
            if draft is None or draft["marks_obtained"] is None:
                continue
            updates.append({
                "response_id": response.id,
                "marks_obtained": draft["marks_obtained"],
                "teacher_feedback": draft["teacher_feedback"],
                "is_graded": True,
            })
        return updates

    # ===== PERSISTENCE =====

    def save(self) -> int:
        """
        Send every staged mark in one batch.

        Returns:
            Number of responses saved (0 means nothing was sent)

        Raises:
            GradingSaveError: The batch was not accepted. Drafts and the
                persisted responses are exactly as before the call.
        """
        updates = self.pending_updates()
        if not updates:
            return 0

        try:
            self.store.save_grades(self.submission.session_id, updates)
        except ExaminerError as e:
            self.log("GRADES_SAVE_FAILED", f"Session: {self.submission.session_id}, {e}")
            if isinstance(e, GradingSaveError):
                raise
            raise GradingSaveError(str(e))

        saved_ids = {u["response_id"] for u in updates}
        for response_id in saved_ids:
            self.drafts.pop(response_id, None)

        self.log("GRADES_SAVED", f"Session: {self.submission.session_id}, Responses: {len(updates)}")

        if not self.refresh():
            self._apply_locally(updates)
        return len(updates)

    def refresh(self) -> bool:
        """Re-fetch the submission. Returns False (state unchanged) on failure."""
        try:
            self.submission = self.store.fetch_submission(self.submission.session_id)
        except ExaminerError as e:
            self.log("GRADES_REFRESH_FAILED", f"Session: {self.submission.session_id}, {e}")
            return False

        if self.current_index >= len(self.responses):
            self.current_index = max(len(self.responses) - 1, 0)
        return True

    def _apply_locally(self, updates: List[dict]):
        for update in updates:
            response = self.submission.get_response(update["response_id"])
            if response is None:
                continue
            response.marks_obtained = update["marks_obtained"]
            response.teacher_feedback = update["teacher_feedback"]
            response.is_graded = True

    # ===== STATUS =====

    def status(self) -> str:
        return submission_status(self.submission)

    def question_status(self, response_id: str) -> str:
        return status_of(self.get_response(response_id))

    def graded_count(self) -> int:
        return sum(1 for r in self.responses if status_of(r) == GRADED)

    def total_score(self) -> int:
        return sum(r.marks_obtained for r in self.responses if r.marks_obtained is not None)

    def max_score(self) -> int:
        return sum(r.max_marks for r in self.responses)

    # ===== NAVIGATION =====

    @property
    def current_response(self) -> Optional[Response]:
        if not self.responses:
            return None
        return self.responses[self.current_index]

    def go_to(self, index: int) -> bool:
        if not 0 <= index < len(self.responses):
            return False
        self.current_index = index
        return True

    def next(self) -> bool:
        return self.go_to(self.current_index + 1)

    def previous(self) -> bool:
        return self.go_to(self.current_index - 1)

    # ===== VERIFICATION RUNS =====

    def run_verification(
        self,
        response_id: str,
        use_test_cases: bool = True,
        custom_input: Optional[str] = None,
        background: bool = False
    ) -> Optional[ExecutionResult]:
        """
        Run a submitted coding answer, keyed by response id.

        Raises:
            GradingValidationError: Unknown or non-coding response
            ValueError: No execution client configured
            UnsupportedLanguageError: The response's language is not supported
        """
        response = self.get_response(response_id)
        if response.question_type != CODING:
            raise GradingValidationError(response_id, "Only coding answers can be run")
        if self.execution_client is None:
            raise ValueError("No code execution client configured")

        language = normalize_language(response.language or "python")
        code = response.student_answer if isinstance(response.student_answer, str) else ""
        test_cases = response.test_cases if use_test_cases else None
        client = self.execution_client

        return self.executions.run(
            response_id,
            lambda: client.run(code, language, test_cases=test_cases, custom_input=custom_input),
            background=background
        )
