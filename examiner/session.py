"""
Exam session state machine.

    not-started --start()--> in-progress --submit()/expire()--> submitted

The session owns the answer store, the navigation guard and the countdown
timer. Every state change happens under one re-entrant lock because the
timer and the autosaver tick on daemon threads. Once submitted, nothing in
the session changes again.
"""

import threading
import uuid
from datetime import datetime
from typing import Callable, Dict, List, Optional

from .answers import AnswerStore
from .autosave import Autosaver, RecoveryStorage
from .clock import Clock, SystemClock, parse_timestamp
from .errors import CorruptSnapshotError, ExaminerError
from .event_log import null_log
from .execution import ExecutionBoard, ExecutionClient, normalize_language
from .models import CODING, ExamDefinition, ExecutionResult, Question, SubmissionPayload
from .navigation import NavigationGuard
from .timer import CountdownTimer


NOT_STARTED = "not-started"
IN_PROGRESS = "in-progress"
SUBMITTED = "submitted"

TRIGGER_MANUAL = "manual"
TRIGGER_TIMEOUT = "timeout"


class ExamSession:
    """
    One student's attempt at one exam.

    Args:
        exam: The exam being taken
        student_id: Identifies the student (also keys the recovery snapshot)
        clock: Time source; defaults to the system clock
        storage: Recovery storage for autosave; None disables autosave
        submitter: Callable receiving the final SubmissionPayload
        execution_client: Used by run_code for coding questions
        autosave_interval: Seconds between autosave ticks
        log: Event logger callable
        session_id: Platform session id; generated when not given
    """

    def __init__(
        self,
        exam: ExamDefinition,
        student_id: str,
        clock: Optional[Clock] = None,
        storage: Optional[RecoveryStorage] = None,
        submitter: Optional[Callable[[SubmissionPayload], None]] = None,
        execution_client: Optional[ExecutionClient] = None,
        autosave_interval: float = 3.0,
        log=None,
        session_id: Optional[str] = None
    ):
        if not exam.questions:
            raise ValueError(f"Exam {exam.id} has no questions")

        self.exam = exam
        self.student_id = student_id
        self.clock = clock or SystemClock()
        self.storage = storage
        self.submitter = submitter
        self.execution_client = execution_client
        self.log = log or null_log
        self.session_id = session_id or uuid.uuid4().hex

        self.status = NOT_STARTED
        self.started_at: Optional[datetime] = None
        self.answers = AnswerStore()
        self.nav = NavigationGuard(exam.questions)
        self.executions = ExecutionBoard(log=self.log)

        self.timer = CountdownTimer(
            exam.duration_minutes,
            clock=self.clock,
            on_expire=self.expire
        )
        self.autosaver: Optional[Autosaver] = None
        if storage is not None:
            self.autosaver = Autosaver(
                storage,
                exam.id,
                student_id,
                snapshot_fn=self._autosave_state,
                interval=autosave_interval,
                log=self.log
            )

        self.confirming_submit = False
        self.submit_trigger: Optional[str] = None
        self.submitted_at: Optional[datetime] = None
        self.payload: Optional[SubmissionPayload] = None
        self.delivered = False
        self.delivery_error: Optional[str] = None

        self._nav_version = 0
        self._lock = threading.RLock()

    # ===== LIFECYCLE =====

    def start(self, background: bool = False):
        """
        Begin the attempt, resuming from a recovery snapshot when one exists.

        Args:
            background: Tick the timer and autosave on daemon threads
        """
        with self._lock:
            if self.status != NOT_STARTED:
                return

            self.started_at = self._recover()
            self.status = IN_PROGRESS
            # May expire (and submit) right away for a stale or corrupted snapshot
            self.timer.start(self.started_at)
            if self.status != IN_PROGRESS:
                return

            if self.autosaver:
                self.autosaver.flush()
                if background:
                    self.autosaver.start()
            if background:
                self.timer.start_background()

    def _recover(self) -> Optional[datetime]:
        """Load the recovery snapshot. Returns the start time to count from."""
        now = self.clock.now()
        if self.storage is None:
            self.log("EXAM_START", f"Exam: {self.exam.id}, Duration: {self.exam.duration_minutes} minutes")
            return now

        try:
            data = self.storage.read(self.exam.id, self.student_id)
        except CorruptSnapshotError as e:
            self.log("RECOVERY_CORRUPT", str(e))
            return None

        if data is None:
            self.log("EXAM_START", f"Exam: {self.exam.id}, Duration: {self.exam.duration_minutes} minutes")
            return now

        if data.get("duration_minutes") != self.exam.duration_minutes:
            self.log(
                "RECOVERY_DISCARDED",
                f"Snapshot duration {data.get('duration_minutes')} does not match {self.exam.duration_minutes}"
            )
            self.log("EXAM_START", f"Exam: {self.exam.id}, Duration: {self.exam.duration_minutes} minutes")
            return now

        started_at = parse_timestamp(data.get("started_at"))
        if started_at is None:
            self.log("RECOVERY_CORRUPT", "Snapshot has no readable start time")
            return None

        known = set(self.exam.question_ids())
        answers = data.get("answers") if isinstance(data.get("answers"), dict) else {}
        self.answers = AnswerStore.from_snapshot({qid: v for qid, v in answers.items() if qid in known})
        self.nav = NavigationGuard(
            self.exam.questions,
            current_index=_as_int(data.get("current_index")),
            max_reached_index=_as_int(data.get("max_reached_index")),
        )
        if data.get("session_id"):
            self.session_id = str(data["session_id"])

        self.log(
            "EXAM_RESUME",
            f"Exam: {self.exam.id}, Started: {started_at.isoformat()}, Answers: {len(self.answers)}"
        )
        return started_at

    def tick(self) -> int:
        """Refresh the timer (expiring the session if time is up). Returns remaining seconds."""
        if self.status != IN_PROGRESS:
            return self.timer.remaining_seconds
        return self.timer.tick()

    def expire(self) -> bool:
        """Time is up: submit with the timeout trigger. Safe to call repeatedly."""
        return self.submit(TRIGGER_TIMEOUT)

    def request_submit(self) -> Optional[Dict[str, int]]:
        """
        Open the submit confirmation.

        Returns:
            {"answered", "flagged", "total"} counts for the confirmation
            prompt, or None if the session is not in progress
        """
        self.tick()
        with self._lock:
            if self.status != IN_PROGRESS:
                return None
            self.confirming_submit = True
            summary = {
                "answered": self.answers.answered_count(),
                "flagged": self.answers.flagged_count(),
                "total": len(self.exam.questions),
            }
            self.log(
                "SUBMIT_REQUESTED",
                f"Answered: {summary['answered']}/{summary['total']}, Flagged: {summary['flagged']}"
            )
            return summary

    def cancel_submit(self) -> bool:
        with self._lock:
            if not self.confirming_submit:
                return False
            self.confirming_submit = False
            self.log("SUBMIT_CANCELLED")
            return True

    def confirm_submit(self) -> bool:
        """Submit after confirmation. False if expiry already submitted the attempt."""
        self.tick()
        with self._lock:
            if not self.confirming_submit or self.status != IN_PROGRESS:
                return False
        return self.submit(TRIGGER_MANUAL)

    def submit(self, trigger: str = TRIGGER_MANUAL) -> bool:
        """
        Move to submitted and freeze the final payload.

        Returns:
            True if this call performed the transition, False if the session
            was not in progress (already submitted or never started)
        """
        with self._lock:
            if self.status != IN_PROGRESS:
                return False

            self.status = SUBMITTED
            self.confirming_submit = False
            self.submit_trigger = trigger
            self.timer.stop(wait=False)
            if self.autosaver:
                self.autosaver.cancel(wait=False)

            self.submitted_at = self.clock.now()
            self.payload = self._build_payload(trigger)

            if trigger == TRIGGER_TIMEOUT:
                self.log("EXAM_TIMEOUT", "Exam time finished - auto-submitting")
            self.log(
                "SESSION_SUBMITTED",
                f"Trigger: {trigger}, Answered: {self.answers.answered_count()}/{len(self.exam.questions)}, "
                f"Elapsed: {self.payload.elapsed_seconds}s"
            )

        # Joined outside the lock: both tickers take it before doing anything
        self.timer.join()
        if self.autosaver:
            self.autosaver.join()
            try:
                self.storage.delete(self.exam.id, self.student_id)
            except OSError as e:
                self.log("RECOVERY_DELETE_FAILED", str(e))
        return True

    def suspend(self):
        """
        Leave without submitting: save once more and stop the tickers.

        The attempt stays in progress in recovery storage and its clock keeps
        running; a new session for the same exam and student resumes it.
        """
        with self._lock:
            if self.status != IN_PROGRESS:
                return
            if self.autosaver:
                self.autosaver.flush()
                self.autosaver.cancel(wait=False)
            self.timer.stop(wait=False)
            self.log("SESSION_EXIT", f"Answered: {self.answers.answered_count()}/{len(self.exam.questions)}")

        self.timer.join()
        if self.autosaver:
            self.autosaver.join()

    def deliver(self) -> bool:
        """
        Hand the final payload to the submission collaborator.

        Not retried automatically; on failure the error is kept in
        delivery_error and deliver() may be called again.
        """
        with self._lock:
            payload = self.payload
            if payload is None or self.submitter is None:
                return False
            if self.delivered:
                return True

        try:
            self.submitter(payload)
        except ExaminerError as e:
            with self._lock:
                self.delivery_error = str(e)
            self.log("SUBMISSION_FAILED", str(e))
            return False

        with self._lock:
            self.delivered = True
            self.delivery_error = None
        self.log("SUBMISSION_DELIVERED", f"Session: {payload.session_id}")
        return True

    # ===== ANSWERS =====

    def set_answer(self, question_id: str, value: str) -> bool:
        """Record an answer. A logged no-op unless in progress and the question exists."""
        self.tick()
        with self._lock:
            if not self._accepts_answer(question_id):
                return False
            self.answers.set_answer(question_id, value)
            return True

    def toggle_flag(self, question_id: str) -> bool:
        self.tick()
        with self._lock:
            if not self._accepts_answer(question_id):
                return False
            self.answers.toggle_flag(question_id)
            return True

    def _accepts_answer(self, question_id: str) -> bool:
        if self.status != IN_PROGRESS:
            self.log("ANSWER_REJECTED", f"Question: {question_id}, Status: {self.status}")
            return False
        if self.exam.get_question(question_id) is None:
            self.log("ANSWER_REJECTED", f"Question: {question_id}, Unknown question")
            return False
        return True

    # ===== NAVIGATION =====

    def go_to(self, index: int) -> bool:
        return self._navigate("go_to", lambda: self.nav.go_to(index, self.answers), f"Target: {index}")

    def next(self) -> bool:
        return self._navigate("next", lambda: self.nav.next(self.answers), f"From: {self.nav.current_index}")

    def previous(self) -> bool:
        return self._navigate("previous", self.nav.previous, f"From: {self.nav.current_index}")

    def _navigate(self, action: str, move: Callable[[], bool], details: str) -> bool:
        self.tick()
        with self._lock:
            if self.status != IN_PROGRESS:
                self.log("NAVIGATION_BLOCKED", f"Action: {action}, Status: {self.status}")
                return False
            if not move():
                self.log("NAVIGATION_BLOCKED", f"Action: {action}, {details}")
                return False
            self._nav_version += 1
            return True

    @property
    def current_index(self) -> int:
        return self.nav.current_index

    @property
    def max_reached_index(self) -> int:
        return self.nav.max_reached_index

    @property
    def current_question(self) -> Question:
        return self.nav.current_question

    @property
    def next_blocked(self) -> bool:
        with self._lock:
            return self.nav.next_blocked(self.answers)

    def navigator(self) -> List[str]:
        """Navigator state per question: current, flagged, answered, open or locked."""
        with self._lock:
            return self.nav.states(self.answers)

    # ===== READS =====

    @property
    def remaining_seconds(self) -> int:
        return self.timer.remaining_seconds

    @property
    def elapsed_seconds(self) -> int:
        return self.timer.elapsed_seconds

    @property
    def answered_count(self) -> int:
        return self.answers.answered_count()

    @property
    def flagged_count(self) -> int:
        return self.answers.flagged_count()

    @property
    def total_questions(self) -> int:
        return len(self.exam.questions)

    @property
    def version(self) -> int:
        """Grows with every answer, flag or navigation change."""
        return self.answers.version + self._nav_version

    def snapshot(self) -> dict:
        """Everything needed to resume this attempt after a reload."""
        with self._lock:
            return {
                "exam_id": self.exam.id,
                "student_id": self.student_id,
                "session_id": self.session_id,
                "duration_minutes": self.exam.duration_minutes,
                "started_at": self.started_at.isoformat() if self.started_at else None,
                "current_index": self.nav.current_index,
                "max_reached_index": self.nav.max_reached_index,
                "answers": self.answers.to_snapshot(),
            }

    def _autosave_state(self):
        with self._lock:
            if self.status != IN_PROGRESS:
                return None
            return self.version, self.snapshot()

    def _build_payload(self, trigger: str) -> SubmissionPayload:
        answers = {}
        for index, question in enumerate(self.exam.questions):
            visited = index <= self.nav.max_reached_index
            if visited or self.answers.is_answered(question.id):
                answers[question.id] = {
                    "value": self.answers.value_of(question.id),
                    "flagged": self.answers.is_flagged(question.id),
                }

        return SubmissionPayload(
            exam_id=self.exam.id,
            session_id=self.session_id,
            student_id=self.student_id,
            answers=answers,
            trigger=trigger,
            elapsed_seconds=self.timer.elapsed_seconds,
            started_at=self.started_at.isoformat() if self.started_at else None,
            submitted_at=self.submitted_at.isoformat(),
        )

    # ===== CODE EXECUTION =====

    def run_code(
        self,
        question_id: str,
        code: Optional[str] = None,
        custom_input: Optional[str] = None,
        use_test_cases: bool = False,
        background: bool = False
    ) -> Optional[ExecutionResult]:
        """
        Run the answer to a coding question. Purely advisory: the answer
        store is never touched and the result is keyed by question id.

        Args:
            code: Source to run; defaults to the current answer
            custom_input: stdin for ad-hoc mode
            use_test_cases: Run the question's declared test cases instead
            background: Dispatch on a daemon thread and return None

        Raises:
            ValueError: Unknown or non-coding question, or no execution client
            UnsupportedLanguageError: The question's language is not supported
        """
        question = self.exam.get_question(question_id)
        if question is None or question.type != CODING:
            raise ValueError(f"Question {question_id} is not a coding question")
        if self.execution_client is None:
            raise ValueError("No code execution client configured")

        with self._lock:
            if self.status != IN_PROGRESS:
                self.log("CODE_RUN_REJECTED", f"Question: {question_id}, Status: {self.status}")
                return None
            source = code if code is not None else self.answers.value_of(question_id)

        language = normalize_language(question.language or "python")
        test_cases = question.test_cases if use_test_cases else None
        client = self.execution_client

        return self.executions.run(
            question_id,
            lambda: client.run(source, language, test_cases=test_cases, custom_input=custom_input),
            background=background
        )


def _as_int(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
