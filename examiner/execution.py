"""
Code execution client.

Sends source code to a judge (the remote execution service or the local
sandbox) and normalizes whatever comes back into one ExecutionResult shape:

- ad-hoc mode: run once with custom stdin, report raw output
- test-case mode: one TestCaseResult per declared case, compared after
  stripping surrounding whitespace on both sides

Transport problems (unreachable judge, timeouts) come back as results with
a network/timeout error kind so callers can tell them apart from code that
is simply wrong. Nothing here touches answers or grades.
"""

import threading
from typing import Any, Callable, Dict, List, Optional

import requests

from .errors import UnsupportedLanguageError
from .event_log import null_log
from .models import (
    ExecutionResult, TestCase, TestCaseResult,
    MODE_ADHOC, MODE_TESTS,
    ERROR_NETWORK, ERROR_TIMEOUT, ERROR_SERVICE, ERROR_JUDGE,
)


SUPPORTED_LANGUAGES = ("javascript", "python", "java", "cpp", "c", "ruby", "go", "rust")

LANGUAGE_ALIASES = {
    "c++": "cpp",
}

# Service statuses meaning "no verdict in time" rather than "bad request"
TIMEOUT_STATUS_CODES = (408, 504)


def normalize_language(raw: Any) -> str:
    """
    Lower-case a language name and map aliases.

    Raises:
        UnsupportedLanguageError: If the language is missing or unknown
    """
    if not isinstance(raw, str) or not raw.strip():
        raise UnsupportedLanguageError(raw)
    language = raw.strip().lower()
    language = LANGUAGE_ALIASES.get(language, language)
    if language not in SUPPORTED_LANGUAGES:
        raise UnsupportedLanguageError(raw)
    return language


def outputs_match(actual: Any, expected: Any) -> bool:
    """Judges often emit trailing newlines, so both sides are stripped."""
    return str(actual if actual is not None else "").strip() == str(expected if expected is not None else "").strip()


class JudgeTransportError(Exception):
    """The judge could not be reached or did not answer in time."""

    def __init__(self, kind: str, message: str):
        super().__init__(message)
        self.kind = kind


class JudgeServiceError(Exception):
    """The judge answered with a non-2xx status or an unreadable body."""

    def __init__(self, status_code: Optional[int], message: str):
        super().__init__(message)
        self.status_code = status_code


class HttpJudge:
    """Remote code execution service reached over HTTP."""

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 30.0,
        session: Optional[requests.Session] = None,
        token: Optional[str] = None
    ):
        if not url:
            raise ValueError("url is required")
        self.url = url
        self.timeout = float(timeout_seconds)
        self._headers = {"Content-Type": "application/json"}
        if token:
            self._headers["Authorization"] = f"Bearer {token}"
        self._session = session or requests.Session()

    def close(self):
        self._session.close()

    def execute(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST one execution request.

        Returns:
            The decoded JSON body of a 2xx response

        Raises:
            JudgeTransportError: Connection failure or timeout
            JudgeServiceError: Non-2xx status or non-JSON body
        """
        try:
            resp = self._session.post(
                self.url,
                json=payload,
                headers=self._headers,
                timeout=self.timeout,
            )
        except requests.Timeout:
            raise JudgeTransportError(ERROR_TIMEOUT, f"Judge did not answer within {self.timeout:g}s")
        except requests.RequestException as e:
            raise JudgeTransportError(ERROR_NETWORK, f"Could not reach judge: {e}")

        if resp.status_code in TIMEOUT_STATUS_CODES:
            raise JudgeTransportError(ERROR_TIMEOUT, _error_message(resp) or "Execution timeout")

        if not resp.ok:
            raise JudgeServiceError(resp.status_code, _error_message(resp) or f"HTTP {resp.status_code}")

        try:
            data = resp.json()
        except ValueError:
            raise JudgeServiceError(resp.status_code, "Judge returned a non-JSON response")

        if not isinstance(data, dict):
            raise JudgeServiceError(resp.status_code, "Judge returned an unexpected response shape")
        return data


def _error_message(resp) -> str:
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or "")[:500]
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return ""


class ExecutionClient:
    """
    Runs code against a judge and returns normalized ExecutionResults.

    Args:
        judge: Object with execute(payload) -> dict (HttpJudge or SandboxJudge)
        batch_test_cases: Send all test cases in one request when possible
        log: Event logger callable
    """

    def __init__(self, judge, batch_test_cases: bool = True, log=None):
        self.judge = judge
        self.batch_test_cases = batch_test_cases
        self.log = log or null_log

    def run(
        self,
        code: str,
        language: str,
        test_cases: Optional[List[TestCase]] = None,
        custom_input: Optional[str] = None
    ) -> ExecutionResult:
        """
        Execute code in test-case mode (if test cases are given) or ad-hoc mode.

        Raises:
            UnsupportedLanguageError: Before any call, if the language is unknown
        """
        language = normalize_language(language)
        code = code or ""

        if test_cases:
            result = self._run_tests(code, language, list(test_cases))
        else:
            result = self._run_adhoc(code, language, custom_input or "")

        self.log(
            "CODE_RUN",
            f"Mode: {result.mode}, Language: {language}, Succeeded: {result.succeeded}, "
            f"Error: {result.error_kind or 'none'}"
        )
        return result

    # ===== AD-HOC MODE =====

    def _run_adhoc(self, code: str, language: str, custom_input: str) -> ExecutionResult:
        payload = {"code": code, "language": language, "customInput": custom_input}
        try:
            data = self.judge.execute(payload)
        except JudgeTransportError as e:
            return ExecutionResult.transport_failure(MODE_ADHOC, language, e.kind, str(e))
        except JudgeServiceError as e:
            return _service_failure(MODE_ADHOC, language, e)
        return normalize_adhoc(data, language)

    # ===== TEST-CASE MODE =====

    def _run_tests(self, code: str, language: str, test_cases: List[TestCase]) -> ExecutionResult:
        if self.batch_test_cases:
            payload = {
                "code": code,
                "language": language,
                "testCases": [case.to_dict() for case in test_cases],
            }
            try:
                data = self.judge.execute(payload)
            except JudgeTransportError as e:
                return ExecutionResult.transport_failure(MODE_TESTS, language, e.kind, str(e))
            except JudgeServiceError as e:
                return _service_failure(MODE_TESTS, language, e)

            if isinstance(data.get("testResults"), list):
                return normalize_tests(data, test_cases, language)
            # Judge ignored the test cases and ran the program once; run per case instead

        return self._run_tests_one_by_one(code, language, test_cases)

    def _run_tests_one_by_one(self, code: str, language: str, test_cases: List[TestCase]) -> ExecutionResult:
        results = []
        for case in test_cases:
            payload = {"code": code, "language": language, "customInput": case.input}
            try:
                data = self.judge.execute(payload)
            except JudgeTransportError as e:
                return ExecutionResult.transport_failure(MODE_TESTS, language, e.kind, str(e))
            except JudgeServiceError as e:
                return _service_failure(MODE_TESTS, language, e)

            single = normalize_adhoc(data, language)
            if single.succeeded:
                actual, error = single.report, None
            else:
                actual, error = "", f"{single.status or 'Execution failed'}: {single.report}".strip()
            results.append(TestCaseResult(
                input=case.input,
                expected_output=case.output,
                actual_output=actual,
                passed=error is None and outputs_match(actual, case.output),
                error=error,
            ))

        return _tests_result(results, language)


def _service_failure(mode: str, language: str, error: JudgeServiceError) -> ExecutionResult:
    status = f"HTTP {error.status_code}" if error.status_code else "Service Error"
    return ExecutionResult(
        mode=mode,
        language=language,
        succeeded=False,
        report=str(error),
        status=status,
        error_kind=ERROR_SERVICE,
    )


def normalize_adhoc(data: Dict[str, Any], language: str) -> ExecutionResult:
    """Normalize a simple {success, output, status, time, memory} response."""
    succeeded = data.get("success") is True
    output = data.get("output")
    if output is None:
        output = data.get("error", "")

    return ExecutionResult(
        mode=MODE_ADHOC,
        language=language,
        succeeded=succeeded,
        report=str(output),
        status=data.get("status"),
        time=_optional_str(data.get("time")),
        memory=_optional_str(data.get("memory")),
        error_kind=None if succeeded else ERROR_JUDGE,
    )


def normalize_tests(data: Dict[str, Any], test_cases: List[TestCase], language: str) -> ExecutionResult:
    """
    Normalize a {testResults, passedCount, totalTests} response.

    Pass/fail is recomputed here from the declared expected output; the
    judge's own passed flags and counts are not trusted. Cases the judge
    did not report on count as failed.
    """
    entries = data.get("testResults") or []
    results = []
    for i, case in enumerate(test_cases):
        entry = entries[i] if i < len(entries) and isinstance(entries[i], dict) else None
        if entry is None:
            results.append(TestCaseResult(
                input=case.input,
                expected_output=case.output,
                actual_output="",
                passed=False,
                error="No result returned by judge",
            ))
            continue

        actual = entry.get("actualOutput")
        actual = "" if actual is None else str(actual)
        results.append(TestCaseResult(
            input=case.input,
            expected_output=case.output,
            actual_output=actual,
            passed=outputs_match(actual, case.output),
            error=entry.get("error") or None,
        ))

    return _tests_result(results, language)


def _tests_result(results: List[TestCaseResult], language: str) -> ExecutionResult:
    passed = sum(1 for r in results if r.passed)
    total = len(results)
    has_errors = any(r.error for r in results)
    return ExecutionResult(
        mode=MODE_TESTS,
        language=language,
        succeeded=total > 0 and passed == total,
        report=f"{passed}/{total} test cases passed",
        status="Accepted" if total > 0 and passed == total else "Wrong Answer",
        error_kind=ERROR_JUDGE if has_errors else None,
        test_results=results,
    )


def _optional_str(value) -> Optional[str]:
    return None if value is None else str(value)


class ExecutionBoard:
    """
    Latest execution result per question (student) or response (grader).

    Every request takes a token; a completion is only stored if its token is
    still the newest for that key, so a slow earlier run can never overwrite
    a newer one and runs for different keys never interfere.
    """

    def __init__(self, log=None):
        self.log = log or null_log
        self._lock = threading.Lock()
        self._counter = 0
        self._tokens: Dict[str, int] = {}
        self._results: Dict[str, ExecutionResult] = {}

    def begin(self, key: str) -> int:
        with self._lock:
            self._counter += 1
            self._tokens[key] = self._counter
            return self._counter

    def complete(self, key: str, token: int, result: ExecutionResult) -> bool:
        """Store result if token is still current for key. Returns False if stale."""
        with self._lock:
            if self._tokens.get(key) != token:
                return False
            self._results[key] = result
            del self._tokens[key]
            return True

    def discard(self, key: str, token: int) -> bool:
        """Forget an outstanding run that ended without a result."""
        with self._lock:
            if self._tokens.get(key) != token:
                return False
            del self._tokens[key]
            return True

    def is_running(self, key: str) -> bool:
        with self._lock:
            return key in self._tokens

    def result(self, key: str) -> Optional[ExecutionResult]:
        with self._lock:
            return self._results.get(key)

    def run(self, key: str, job: Callable[[], ExecutionResult], background: bool = False) -> Optional[ExecutionResult]:
        """
        Run job for key, replacing any run still outstanding for the same key.

        Returns:
            The result when run in the foreground, None when backgrounded

        A foreground job that raises propagates; a background one is logged.
        Either way the key stops counting as running.
        """
        token = self.begin(key)

        def execute():
            try:
                result = job()
            except Exception as e:
                if not background:
                    self.discard(key, token)
                    raise
                self.log("EXECUTION_FAILED", f"Key: {key}, {e}")
                self.discard(key, token)
                return None
            self.complete(key, token, result)
            return result

        if background:
            thread = threading.Thread(
                target=execute,
                name=f"exec-{key}",
                daemon=True
            )
            thread.start()
            return None

        return execute()
