"""
Tests for derived grading status.
"""

import itertools

from examiner.grading import (
    GRADED, PENDING,
    STATUS_COMPLETED, STATUS_PARTIAL, STATUS_PENDING,
    classify, cohort_counts, status_of, submission_status, summarize, summary_status,
)
from examiner.models import CODING, MCQ, SAQ, Response, Submission, SubmissionSummary


def _response(rid, qtype, marks=None, graded=False, max_marks=10):
    return Response(
        id=rid,
        question_id=f"q-{rid}",
        question_type=qtype,
        max_marks=max_marks,
        marks_obtained=marks,
        is_graded=graded,
    )


def _submission(*responses, session_id="sess-1"):
    return Submission(session_id=session_id, responses=list(responses))


class TestResponseStatus:
    """Per-response status."""

    def test_mcq_is_always_graded(self):
        """Multiple-choice answers are scored automatically."""
        assert status_of(_response("r1", MCQ)) == GRADED
        assert status_of(_response("r1", MCQ, marks=0, graded=False)) == GRADED

    def test_needs_flag_and_mark(self):
        """A written answer is graded only with both the flag and a mark."""
        assert status_of(_response("r1", SAQ, marks=4, graded=True)) == GRADED
        assert status_of(_response("r1", SAQ, marks=0, graded=True)) == GRADED
        assert status_of(_response("r1", SAQ, marks=None, graded=True)) == PENDING
        assert status_of(_response("r1", CODING, marks=7, graded=False)) == PENDING
        assert status_of(_response("r1", CODING)) == PENDING


class TestSubmissionStatus:
    """Submission status from its responses."""

    def test_partial(self):
        """An auto-graded MCQ, a graded SAQ and an ungraded coding answer is partial."""
        submission = _submission(
            _response("r1", MCQ),
            _response("r2", SAQ, marks=4, graded=True),
            _response("r3", CODING),
        )

        assert submission_status(submission) == STATUS_PARTIAL

    def test_completed(self):
        """Every response graded means completed."""
        submission = _submission(
            _response("r1", MCQ),
            _response("r2", SAQ, marks=4, graded=True),
            _response("r3", CODING, marks=10, graded=True),
        )

        assert submission_status(submission) == STATUS_COMPLETED

    def test_only_mcq_is_completed(self):
        """A multiple-choice-only submission needs no teacher."""
        assert submission_status(_submission(_response("r1", MCQ), _response("r2", MCQ))) == STATUS_COMPLETED

    def test_none_graded_is_pending(self):
        """Nothing graded yet is pending."""
        submission = _submission(_response("r2", SAQ), _response("r3", CODING))

        assert submission_status(submission) == STATUS_PENDING

    def test_empty_is_pending(self):
        """A submission without responses is pending, not completed."""
        assert submission_status(_submission()) == STATUS_PENDING
        assert classify(0, 0) == STATUS_PENDING

    def test_order_does_not_matter(self):
        """Any permutation of the same responses has the same status."""
        responses = [
            _response("r1", MCQ),
            _response("r2", SAQ, marks=4, graded=True),
            _response("r3", CODING),
            _response("r4", SAQ),
        ]

        statuses = {
            submission_status(_submission(*order))
            for order in itertools.permutations(responses)
        }

        assert statuses == {STATUS_PARTIAL}


class TestCohort:
    """Counts across many submissions."""

    def test_counts_and_summaries(self):
        """Summaries and full submissions are counted by derived status."""
        completed = _submission(_response("r1", MCQ), session_id="a")
        pending = _submission(_response("r2", SAQ), session_id="b")
        partial_summary = SubmissionSummary(
            session_id="c", exam_title="Midterm", student_name="Ada",
            total_questions=3, graded_count=1,
        )

        counts = cohort_counts([completed, pending, partial_summary])

        assert counts == {STATUS_PENDING: 1, STATUS_PARTIAL: 1, STATUS_COMPLETED: 1}

    def test_stored_status_is_ignored(self):
        """A summary row claiming completed is derived from its counts."""
        summary = SubmissionSummary.from_dict({
            "session_id": "c",
            "grading_status": "completed",
            "total_questions": 4,
            "graded_count": 0,
        })

        assert summary_status(summary) == STATUS_PENDING

    def test_summarize(self):
        """The list row is computed from the responses."""
        submission = _submission(
            _response("r1", MCQ, marks=2, max_marks=2),
            _response("r2", SAQ, marks=4, graded=True, max_marks=5),
            _response("r3", CODING, max_marks=10),
        )

        summary = summarize(submission)

        assert summary.total_questions == 3
        assert summary.graded_count == 2
        assert summary.pending_count == 1
        assert (summary.mcq_count, summary.saq_count, summary.coding_count) == (1, 1, 1)
        assert summary.total_score == 6
        assert summary.max_possible_score == 17
        assert summary_status(summary) == submission_status(submission)
