"""
Tests for the data models.
"""

import pytest

from examiner.models import (
    CODING, MCQ, SAQ,
    ExamDefinition, Question, Response, SubmissionSummary, normalize_question_type,
)


class TestQuestion:
    """Question parsing from banks and API rows."""

    def test_type_aliases(self):
        """Platform type names map onto the three question types."""
        assert normalize_question_type("multiple-choice") == MCQ
        assert normalize_question_type("Short_Answer") == SAQ
        assert normalize_question_type("coding") == CODING

        with pytest.raises(ValueError):
            normalize_question_type("essay")

    def test_api_field_names(self):
        """question_text, marks and camelCase coding fields are understood."""
        question = Question.from_dict({
            "id": 7,
            "type": "coding",
            "question_text": "Sum two numbers",
            "marks": 10,
            "programmingLanguage": "python",
            "starterCode": "def solve():\n    pass",
            "testCases": [{"input": "1 2", "expectedOutput": "3"}],
        })

        assert question.id == "7"
        assert question.prompt == "Sum two numbers"
        assert question.points == 10
        assert question.language == "python"
        assert question.starter_code.startswith("def solve")
        assert question.test_cases[0].output == "3"
        assert question.requires_answer is False

    def test_negative_points(self):
        """Points can be zero but never negative."""
        with pytest.raises(ValueError):
            Question.from_dict({"id": "q1", "type": "saq", "prompt": "x", "points": -1})

    def test_answer_required_types(self):
        """Multiple-choice and short-answer questions gate Next."""
        assert Question(id="a", type=MCQ, prompt="").requires_answer is True
        assert Question(id="b", type=SAQ, prompt="").requires_answer is True


class TestExamDefinition:
    """Exam parsing."""

    def test_default_duration(self):
        """Without a duration the exam lasts an hour."""
        exam = ExamDefinition.from_dict({"id": "e", "questions": [{"id": "q", "type": "saq"}]})

        assert exam.duration_minutes == 60
        assert exam.duration_seconds == 3600

    def test_questions_required(self):
        """An exam without questions is refused."""
        with pytest.raises(ValueError, match="at least one question"):
            ExamDefinition.from_dict({"id": "e", "questions": []})

    def test_duration_must_be_positive(self):
        """A zero-minute exam is refused."""
        with pytest.raises(ValueError):
            ExamDefinition.from_dict({"id": "e", "duration_minutes": 0, "questions": []})


class TestGradingModels:
    """Grading rows."""

    def test_response_code_fallback(self):
        """Coding rows may carry the answer as submitted_code."""
        response = Response.from_dict({
            "id": "r3",
            "question_type": "coding",
            "question_marks": 10,
            "submitted_code": "print(5)",
            "marks_obtained": 4,
        })

        assert response.student_answer == "print(5)"
        assert response.question_id == "r3"
        assert response.marks_obtained == 4
        assert response.is_graded is True

    def test_response_whole_marks(self):
        """Integral floats such as 7.0 are read as 7."""
        response = Response.from_dict({"id": "r2", "question_type": "saq", "question_marks": 10, "marks_obtained": 7.0})

        assert response.marks_obtained == 7
        assert isinstance(response.marks_obtained, int)

    def test_response_fractional_marks_rejected(self):
        """A stored mark of 7.5 is never silently truncated."""
        with pytest.raises(ValueError, match="non-integer marks"):
            Response.from_dict({"id": "r2", "question_type": "saq", "question_marks": 10, "marks_obtained": 7.5})

    def test_summary_ignores_stored_status(self):
        """The stored grading_status column is never read."""
        summary = SubmissionSummary.from_dict({
            "session_id": 12,
            "grading_status": "completed",
            "total_questions": 3,
            "graded_count": 1,
        })

        assert summary.session_id == "12"
        assert not hasattr(summary, "grading_status")
