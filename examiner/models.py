"""
Data models for exams, answers, execution results and grading.

Provides type-safe structures for ExamDefinition, Question, Answer,
ExecutionResult, Response, Submission and the client configuration.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any


MCQ = "mcq"
SAQ = "saq"
CODING = "coding"

QUESTION_TYPE_ALIASES = {
    "mcq": MCQ,
    "multiple-choice": MCQ,
    "multiple_choice": MCQ,
    "saq": SAQ,
    "short-answer": SAQ,
    "short_answer": SAQ,
    "coding": CODING,
}

# Question types whose "Next" button stays disabled until answered
ANSWER_REQUIRED_TYPES = (MCQ, SAQ)

DEFAULT_DURATION_MINUTES = 60


def normalize_question_type(raw: str) -> str:
    """Map a question type name or alias onto mcq / saq / coding."""
    key = str(raw or "").strip().lower()
    if key not in QUESTION_TYPE_ALIASES:
        raise ValueError(f"Unknown question type: {raw!r}")
    return QUESTION_TYPE_ALIASES[key]


@dataclass
class TestCase:
    """A single input / expected output pair for a coding question."""
    __test__ = False

    input: str = ""
    output: str = ""

    @staticmethod
    def from_dict(data: dict) -> 'TestCase':
        expected = data.get('output')
        if expected is None:
            expected = data.get('expectedOutput', data.get('expected_output', ''))
        return TestCase(input=str(data.get('input') or ''), output=str(expected or ''))

    def to_dict(self) -> dict:
        return {"input": self.input, "output": self.output}


@dataclass
class Question:
    """Represents one exam question."""
    id: str
    type: str
    prompt: str
    points: int = 0
    options: List[str] = field(default_factory=list)
    language: Optional[str] = None
    test_cases: List[TestCase] = field(default_factory=list)
    starter_code: Optional[str] = None

    @property
    def requires_answer(self) -> bool:
        return self.type in ANSWER_REQUIRED_TYPES

    @staticmethod
    def from_dict(data: dict) -> 'Question':
        """Create a Question from a bank entry or an API row."""
        prompt = data.get('prompt')
        if prompt is None:
            prompt = data.get('question_text', data.get('question', ''))

        points = data.get('points')
        if points is None:
            points = data.get('marks', 0)
        points = int(points or 0)
        if points < 0:
            raise ValueError(f"Question {data.get('id')} has negative points")

        return Question(
            id=str(data['id']),
            type=normalize_question_type(data['type']),
            prompt=prompt or '',
            points=points,
            options=list(data.get('options') or []),
            language=data.get('language') or data.get('programmingLanguage'),
            test_cases=[TestCase.from_dict(t) for t in (data.get('test_cases') or data.get('testCases') or [])],
            starter_code=data.get('starter_code') or data.get('starterCode'),
        )


@dataclass
class ExamDefinition:
    """An exam as handed to the session. Never mutated during an attempt."""
    id: str
    title: str
    questions: List[Question]
    duration_minutes: int = DEFAULT_DURATION_MINUTES

    @property
    def duration_seconds(self) -> int:
        return self.duration_minutes * 60

    @property
    def total_points(self) -> int:
        return sum(q.points for q in self.questions)

    def question_ids(self) -> List[str]:
        return [q.id for q in self.questions]

    def get_question(self, question_id: str) -> Optional[Question]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    @staticmethod
    def from_dict(data: dict) -> 'ExamDefinition':
        """Create an ExamDefinition from a bank dictionary."""
        duration = data.get('duration_minutes')
        if duration is None:
            duration = data.get('duration') or DEFAULT_DURATION_MINUTES
        duration = int(duration)
        if duration < 1:
            raise ValueError("Exam duration must be at least 1 minute")

        questions = [Question.from_dict(q) for q in data.get('questions') or []]
        if not questions:
            raise ValueError("Exam must have at least one question")

        return ExamDefinition(
            id=str(data['id']),
            title=data.get('title') or '',
            questions=questions,
            duration_minutes=duration,
        )

    @staticmethod
    def from_api(data: dict) -> 'ExamDefinition':
        """
        Create an ExamDefinition from the platform exam payload.

        The payload keeps exam metadata and questions side by side:
        {"exam": {...}, "questions": [...]}. Questions carry a
        question_order that decides their position.
        """
        exam = dict(data['exam'])
        questions = sorted(
            data.get('questions') or [],
            key=lambda q: q.get('question_order') or 0
        )
        exam['questions'] = questions
        return ExamDefinition.from_dict(exam)


@dataclass
class Answer:
    """The student's current answer and flag for one question."""
    question_id: str
    value: str = ""
    flagged: bool = False

    @property
    def is_answered(self) -> bool:
        return self.value.strip() != ""

    def to_dict(self) -> dict:
        return {"value": self.value, "flagged": self.flagged}


# ===== EXECUTION =====

MODE_ADHOC = "adhoc"
MODE_TESTS = "tests"

ERROR_NETWORK = "network"
ERROR_TIMEOUT = "timeout"
ERROR_SERVICE = "service"
ERROR_JUDGE = "judge"

TRANSPORT_ERRORS = (ERROR_NETWORK, ERROR_TIMEOUT)


@dataclass
class TestCaseResult:
    """Outcome of one test case in test-case mode."""
    __test__ = False

    input: str
    expected_output: str
    actual_output: str
    passed: bool
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "input": self.input,
            "expectedOutput": self.expected_output,
            "actualOutput": self.actual_output,
            "passed": self.passed,
            "error": self.error,
        }


@dataclass
class ExecutionResult:
    """
    Normalized result of one run request.

    Attributes:
        mode: "adhoc" (custom input) or "tests" (declared test cases)
        language: Normalized language the code was run as
        succeeded: Ad-hoc: judge reported success. Tests: every case passed
        report: Program output, judge report or error description
        error_kind: None, "network", "timeout", "service" or "judge"
        test_results: One entry per test case in tests mode
    """
    mode: str
    language: str
    succeeded: bool
    report: str = ""
    status: Optional[str] = None
    time: Optional[str] = None
    memory: Optional[str] = None
    error_kind: Optional[str] = None
    test_results: List[TestCaseResult] = field(default_factory=list)

    @property
    def passed_count(self) -> int:
        return sum(1 for r in self.test_results if r.passed)

    @property
    def total_tests(self) -> int:
        return len(self.test_results)

    @property
    def is_transport_error(self) -> bool:
        return self.error_kind in TRANSPORT_ERRORS

    @staticmethod
    def transport_failure(mode: str, language: str, error_kind: str, message: str) -> 'ExecutionResult':
        return ExecutionResult(
            mode=mode,
            language=language,
            succeeded=False,
            report=message,
            status="Network Error" if error_kind == ERROR_NETWORK else "Timeout",
            error_kind=error_kind,
        )


# ===== GRADING =====

@dataclass
class Response:
    """One graded (or gradable) answer inside a submitted attempt."""
    id: str
    question_id: str
    question_type: str
    max_marks: int
    student_answer: Any = None
    marks_obtained: Optional[int] = None
    is_graded: bool = False
    teacher_feedback: Optional[str] = None
    question_text: str = ""
    language: Optional[str] = None
    test_cases: List[TestCase] = field(default_factory=list)

    @staticmethod
    def from_dict(data: dict) -> 'Response':
        """Create a Response from a grading API row."""
        marks = data.get('marks_obtained')
        answer = data.get('student_answer')
        if answer is None:
            answer = data.get('submitted_code')
        if marks is not None:
            marks = float(marks)
            if not marks.is_integer():
                raise ValueError(f"Response {data.get('id')} has non-integer marks {marks}")
            marks = int(marks)

        return Response(
            id=str(data['id']),
            question_id=str(data.get('question_id') or data['id']),
            question_type=normalize_question_type(data.get('question_type', '')),
            max_marks=int(data.get('question_marks', data.get('max_marks', 0)) or 0),
            student_answer=answer,
            marks_obtained=marks,
            is_graded=bool(data.get('is_graded', marks is not None)),
            teacher_feedback=data.get('teacher_feedback'),
            question_text=data.get('question_text') or '',
            language=data.get('language'),
            test_cases=[TestCase.from_dict(t) for t in (data.get('test_cases') or [])],
        )


@dataclass
class Submission:
    """A submitted attempt as seen by the grader."""
    session_id: str
    responses: List[Response]
    exam_id: Optional[str] = None
    exam_title: str = ""
    student_name: str = ""
    student_email: str = ""
    submitted_at: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    duration: Optional[int] = None
    violations_count: int = 0

    def get_response(self, response_id: str) -> Optional[Response]:
        for response in self.responses:
            if response.id == response_id:
                return response
        return None

    @staticmethod
    def from_dict(data: dict) -> 'Submission':
        """Create a Submission from the grading detail payload."""
        return Submission(
            session_id=str(data['session_id']),
            responses=[Response.from_dict(r) for r in data.get('responses', [])],
            exam_id=data.get('exam_id'),
            exam_title=data.get('exam_title') or '',
            student_name=data.get('student_name') or '',
            student_email=data.get('student_email') or '',
            submitted_at=data.get('submitted_at'),
            start_time=data.get('start_time'),
            end_time=data.get('end_time'),
            duration=data.get('duration'),
            violations_count=int(data.get('violations_count') or 0),
        )


@dataclass
class SubmissionSummary:
    """One row of the teacher's submission list."""
    session_id: str
    exam_title: str
    student_name: str
    total_questions: int
    graded_count: int
    pending_count: int = 0
    mcq_count: int = 0
    saq_count: int = 0
    coding_count: int = 0
    total_score: int = 0
    max_possible_score: int = 0

    @staticmethod
    def from_dict(data: dict) -> 'SubmissionSummary':
        # grading_status is a stored column and is deliberately not read
        return SubmissionSummary(
            session_id=str(data['session_id']),
            exam_title=data.get('exam_title') or '',
            student_name=data.get('student_name') or '',
            total_questions=int(data.get('total_questions') or 0),
            graded_count=int(data.get('graded_count') or 0),
            pending_count=int(data.get('pending_count') or 0),
            mcq_count=int(data.get('mcq_count') or 0),
            saq_count=int(data.get('saq_count') or 0),
            coding_count=int(data.get('coding_count') or 0),
            total_score=data.get('total_score') or 0,
            max_possible_score=data.get('max_possible_score') or 0,
        )


@dataclass
class SubmissionPayload:
    """Final snapshot of an attempt, handed to the submission collaborator."""
    exam_id: str
    session_id: str
    student_id: str
    answers: Dict[str, Dict[str, Any]]
    trigger: str
    elapsed_seconds: int
    started_at: Optional[str]
    submitted_at: str

    def to_dict(self) -> dict:
        return {
            "examId": self.exam_id,
            "sessionId": self.session_id,
            "studentId": self.student_id,
            "answers": self.answers,
            "trigger": self.trigger,
            "elapsedSeconds": self.elapsed_seconds,
            "startedAt": self.started_at,
            "submittedAt": self.submitted_at,
        }


# ===== CONFIGURATION =====

@dataclass
class ClientConfig:
    """
    Configuration for the exam client, set by the exam administrator.

    Attributes:
        judge_url: Code execution service endpoint; None runs the offline sandbox
        api_base_url: Platform API base URL; None disables remote fetch/submit
        api_token: Bearer token for the platform API
        http_timeout_seconds: Timeout applied to every HTTP request
        autosave_interval_seconds: Seconds between autosave ticks
        recovery_dir: Directory holding autosave snapshots
        recovery_key: Optional Fernet key used to encrypt snapshots
        batch_test_cases: Ask the judge to run all test cases in one request
        sandbox_time_limit_ms: Per-run time limit of the offline sandbox
        sandbox_memory_limit_mb: Per-run memory limit of the offline sandbox
    """
    judge_url: Optional[str]
    api_base_url: Optional[str]
    api_token: Optional[str]
    http_timeout_seconds: float
    autosave_interval_seconds: float
    recovery_dir: str
    recovery_key: Optional[str]
    batch_test_cases: bool
    sandbox_time_limit_ms: int
    sandbox_memory_limit_mb: int

    @staticmethod
    def from_dict(data: dict) -> 'ClientConfig':
        """Create ClientConfig from dictionary."""
        return ClientConfig(
            judge_url=data.get('judge_url'),
            api_base_url=data.get('api_base_url'),
            api_token=data.get('api_token'),
            http_timeout_seconds=float(data.get('http_timeout_seconds', 30.0)),
            autosave_interval_seconds=float(data.get('autosave_interval_seconds', 3.0)),
            recovery_dir=data.get('recovery_dir', '.examiner'),
            recovery_key=data.get('recovery_key'),
            batch_test_cases=bool(data.get('batch_test_cases', True)),
            sandbox_time_limit_ms=int(data.get('sandbox_time_limit_ms', 2000)),
            sandbox_memory_limit_mb=int(data.get('sandbox_memory_limit_mb', 256)),
        )

    def validate(self) -> tuple[bool, str]:
        """
        Validate configuration consistency.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if self.http_timeout_seconds <= 0:
            return False, "http_timeout_seconds must be positive"

        if self.autosave_interval_seconds <= 0:
            return False, "autosave_interval_seconds must be positive"

        if self.sandbox_time_limit_ms < 1 or self.sandbox_memory_limit_mb < 16:
            return False, "Sandbox limits are too small (time >= 1 ms, memory >= 16 MB)"

        for name in ('judge_url', 'api_base_url'):
            url = getattr(self, name)
            if url and not url.startswith(('http://', 'https://')):
                return False, f"{name} must be an http(s) URL"

        if not self.recovery_dir:
            return False, "recovery_dir must not be empty"

        return True, ""

    @staticmethod
    def default() -> 'ClientConfig':
        """Return default configuration (offline judge, no platform API)."""
        return ClientConfig.from_dict({})
