"""
Grading status, derived on every read.

No stored status is ever trusted: a response is graded when it is a
multiple-choice answer (scored automatically) or when it carries both the
is_graded flag and a mark. A submission is completed when every response is
graded, pending when none is, partial otherwise.
"""

from typing import Dict, Iterable, Union

from .models import CODING, MCQ, SAQ, Response, Submission, SubmissionSummary


GRADED = "graded"
PENDING = "pending"

STATUS_PENDING = "pending"
STATUS_PARTIAL = "partial"
STATUS_COMPLETED = "completed"


def status_of(response: Response) -> str:
    if response.question_type == MCQ:
        return GRADED
    if response.is_graded and response.marks_obtained is not None:
        return GRADED
    return PENDING


def is_graded(response: Response) -> bool:
    return status_of(response) == GRADED


def classify(graded: int, total: int) -> str:
    """Map graded/total counts onto pending / partial / completed. Empty is pending."""
    if total <= 0 or graded <= 0:
        return STATUS_PENDING
    if graded >= total:
        return STATUS_COMPLETED
    return STATUS_PARTIAL


def submission_status(submission: Submission) -> str:
    graded = sum(1 for r in submission.responses if is_graded(r))
    return classify(graded, len(submission.responses))


def summary_status(summary: SubmissionSummary) -> str:
    return classify(summary.graded_count, summary.total_questions)


def cohort_counts(items: Iterable[Union[Submission, SubmissionSummary]]) -> Dict[str, int]:
    """
    Count submissions per derived status.

    Accepts full submissions or list-level summaries (or a mix of both).
    """
    counts = {STATUS_PENDING: 0, STATUS_PARTIAL: 0, STATUS_COMPLETED: 0}
    for item in items:
        if isinstance(item, SubmissionSummary):
            counts[summary_status(item)] += 1
        else:
            counts[submission_status(item)] += 1
    return counts


def summarize(submission: Submission) -> SubmissionSummary:
    """Build the list-level row for a submission from its responses."""
    responses = submission.responses
    graded = sum(1 for r in responses if is_graded(r))
    return SubmissionSummary(
        session_id=submission.session_id,
        exam_title=submission.exam_title,
        student_name=submission.student_name,
        total_questions=len(responses),
        graded_count=graded,
        pending_count=len(responses) - graded,
        mcq_count=sum(1 for r in responses if r.question_type == MCQ),
        saq_count=sum(1 for r in responses if r.question_type == SAQ),
        coding_count=sum(1 for r in responses if r.question_type == CODING),
        total_score=sum(r.marks_obtained for r in responses if r.marks_obtained is not None),
        max_possible_score=sum(r.max_marks for r in responses),
    )
