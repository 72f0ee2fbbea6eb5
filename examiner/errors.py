"""
Exception types raised by the exam session and grading components.

State errors (editing a submitted session, navigating to a locked question)
are not represented here: those are logged no-ops, never raised.
"""


class ExaminerError(Exception):
    """Base class for all errors raised by this package."""


class ExamNotFoundError(ExaminerError):
    """The requested exam does not exist or is not available to the student."""

    def __init__(self, exam_id: str):
        super().__init__(f"Exam '{exam_id}' not found")
        self.exam_id = exam_id


class ExamLoadError(ExaminerError):
    """An exam bank file could not be read, decrypted or parsed."""


class UnsupportedLanguageError(ExaminerError):
    """A run was requested for a language the judge does not know."""

    def __init__(self, language):
        super().__init__(f"Unsupported language: {language!r}")
        self.language = language


class GradingValidationError(ExaminerError):
    """A mark was rejected before it reached the grading draft."""

    def __init__(self, response_id: str, message: str):
        super().__init__(message)
        self.response_id = response_id


class GradingSaveError(ExaminerError):
    """A grading batch was not accepted; none of it was applied."""


class SubmissionError(ExaminerError):
    """The submission collaborator refused or could not receive the attempt."""


class CorruptSnapshotError(ExaminerError):
    """A recovery snapshot exists but cannot be decrypted or parsed."""


class ApiError(ExaminerError):
    """The platform API answered with an error or could not be reached."""

    def __init__(self, message: str, status_code=None):
        super().__init__(message)
        self.status_code = status_code
