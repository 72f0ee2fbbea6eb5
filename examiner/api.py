"""
Client for the exam platform API.

ENDPOINTS:
- GET   /api/student/exam/{id}
- POST  /api/student/exam/{id}/start
- POST  /api/student/exam/{id}/save
- POST  /api/student/exam/{id}/submit
- GET   /api/teacher/grading
- GET   /api/teacher/grading/{session_id}
- PATCH /api/teacher/grading/{session_id}

Every request goes through one requests.Session with an explicit timeout.
Submission and grade saves are never retried here.
"""

from typing import Any, Dict, List, Optional

import requests

from .errors import ApiError, ExamNotFoundError, GradingSaveError, SubmissionError
from .models import ExamDefinition, Submission, SubmissionPayload, SubmissionSummary


class ExamApiClient:
    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 30.0,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None
    ):
        if not base_url:
            raise ValueError("base_url is required")

        self._base_url = str(base_url).rstrip("/")
        self._timeout = float(timeout_seconds)
        self._headers = {"Content-Type": "application/json"}
        if token:
            self._headers["Authorization"] = f"Bearer {token}"
        self._session = session or requests.Session()

    def close(self):
        self._session.close()

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self._base_url}{path}"
        try:
            return self._session.request(
                method,
                url,
                headers=self._headers,
                timeout=self._timeout,
                **kwargs
            )
        except requests.RequestException as e:
            raise ApiError(f"{method} {path} failed: {e}")

    def _json(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        resp = self._request(method, path, **kwargs)
        if not resp.ok:
            raise ApiError(f"{method} {path} returned {resp.status_code}: {_error_text(resp)}", resp.status_code)
        try:
            data = resp.json()
        except ValueError:
            raise ApiError(f"{method} {path} returned a non-JSON body", resp.status_code)
        if not isinstance(data, dict):
            raise ApiError(f"{method} {path} returned an unexpected body", resp.status_code)
        return data

    # ===== STUDENT =====

    def fetch_exam(self, exam_id: str) -> ExamDefinition:
        """
        Load an exam with its ordered questions.

        Raises:
            ExamNotFoundError: The exam does not exist (404) or the payload has no exam
            ApiError: Any other failure
        """
        try:
            data = self._json("GET", f"/api/student/exam/{exam_id}")
        except ApiError as e:
            if e.status_code == 404:
                raise ExamNotFoundError(exam_id)
            raise

        if not data.get("exam"):
            raise ExamNotFoundError(exam_id)
        try:
            return ExamDefinition.from_api(data)
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(f"Exam {exam_id} payload is invalid: {e}")

    def start_session(self, exam_id: str) -> str:
        """
        Open (or reopen) the platform session for this exam.

        Returns:
            The platform session id
        """
        path = f"/api/student/exam/{exam_id}/start"
        resp = self._request("POST", path, json={})
        try:
            data = resp.json()
        except ValueError:
            data = {}

        # An already-open session comes back as a 400 carrying that session
        session = data.get("session") if isinstance(data, dict) else None
        if isinstance(session, dict) and session.get("id"):
            return str(session["id"])

        raise ApiError(f"POST {path} returned {resp.status_code}: {_error_text(resp)}", resp.status_code)

    def save_progress(self, exam_id: str, session_id: str, answers: Dict[str, Dict[str, Any]]) -> None:
        """Store in-progress answers on the platform. Raises ApiError."""
        body = {
            "sessionId": session_id,
            "answers": {qid: entry.get("value", "") for qid, entry in answers.items()},
        }
        self._json("POST", f"/api/student/exam/{exam_id}/save", json=body)

    def submit_attempt(self, payload: SubmissionPayload) -> Dict[str, Any]:
        """
        Deliver a finished attempt.

        Raises:
            SubmissionError: Transport failure or non-2xx response
        """
        body = {
            "sessionId": payload.session_id,
            "answers": {qid: entry["value"] for qid, entry in payload.answers.items()},
            "flagged": [qid for qid, entry in payload.answers.items() if entry.get("flagged")],
            "trigger": payload.trigger,
            "elapsedSeconds": payload.elapsed_seconds,
            "submittedAt": payload.submitted_at,
        }
        try:
            return self._json("POST", f"/api/student/exam/{payload.exam_id}/submit", json=body)
        except ApiError as e:
            raise SubmissionError(str(e))

    # ===== TEACHER =====

    def list_submissions(self) -> List[SubmissionSummary]:
        data = self._json("GET", "/api/teacher/grading")
        return [SubmissionSummary.from_dict(row) for row in data.get("submissions") or []]

    def fetch_submission(self, session_id: str) -> Submission:
        data = self._json("GET", f"/api/teacher/grading/{session_id}")
        submission = data.get("submission")
        if not isinstance(submission, dict):
            raise ApiError(f"Submission {session_id} payload is missing")
        try:
            return Submission.from_dict(submission)
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(f"Submission {session_id} payload is invalid: {e}")

    def save_grades(self, session_id: str, updates: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Persist a batch of grade updates. The server applies all or nothing.

        Raises:
            GradingSaveError: Transport failure or non-2xx response
        """
        try:
            return self._json("PATCH", f"/api/teacher/grading/{session_id}", json={"updates": updates})
        except ApiError as e:
            raise GradingSaveError(str(e))


def _error_text(resp) -> str:
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or "")[:200]
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return ""
