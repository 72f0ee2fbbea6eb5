"""
Offline judge: runs Python submissions locally with resource limits.

Used when no judge_url is configured. Answers the same request shapes as
the remote execution service so ExecutionClient does not care which one it
talks to.

Unix: Uses resource module for CPU time and memory limits.
Windows: Uses timeout parameter (wall-clock time only).
"""

import sys
import subprocess
import platform
import tempfile
import shutil
import time
from pathlib import Path
from typing import Tuple

from .execution import JudgeServiceError, outputs_match


STATUS_DESCRIPTIONS = {
    "success": "Accepted",
    "timeout": "Time Limit Exceeded",
    "runtime_error": "Runtime Error (NZEC)",
    "memory_error": "Memory Limit Exceeded",
}


def get_python_executable():
    """Get the appropriate Python executable path."""
    if getattr(sys, 'frozen', False):
        python_path = shutil.which('python') or shutil.which('python3')
        if python_path:
            return python_path, ['-I', '-B']
        raise RuntimeError("Python executable not found. Please ensure Python is installed on the exam machines.")
    return sys.executable, ['-I', '-B']


def run_source(
    source: str,
    input_str: str,
    timeout_sec: float,
    memory_limit_mb: int
) -> Tuple[str, str, str]:
    """
    Run Python source in sandbox mode with stdin/stdout redirection.

    Args:
        source: The submitted program text
        input_str: Input to feed via stdin
        timeout_sec: Timeout in seconds
        memory_limit_mb: Memory limit in MB (Unix only)

    Returns:
        Tuple of (status, stdout, stderr)
        status: "success", "timeout", "runtime_error", "memory_error"
    """
    python_exe, isolation_flags = get_python_executable()

    with tempfile.TemporaryDirectory() as temp_dir:
        code_path = Path(temp_dir) / "solution.py"
        code_path.write_text(source, encoding='utf-8')

        command = [python_exe, *isolation_flags, str(code_path)]

        try:
            if platform.system() != "Windows":
                def set_limits():
                    import resource
                    try:
                        cpu = int(timeout_sec) + 1
                        resource.setrlimit(resource.RLIMIT_CPU, (cpu, cpu))
                    except (ValueError, OSError):
                        pass
                    try:
                        memory_bytes = memory_limit_mb * 1024 * 1024
                        resource.setrlimit(resource.RLIMIT_AS, (memory_bytes, memory_bytes))
                    except (ValueError, OSError):
                        pass

                proc = subprocess.run(
                    command,
                    input=input_str.encode('utf-8'),
                    capture_output=True,
                    timeout=timeout_sec * 2,  # Fallback wall-clock timeout
                    check=False,
                    cwd=temp_dir,
                    preexec_fn=set_limits
                )
            else:
                proc = subprocess.run(
                    command,
                    input=input_str.encode('utf-8'),
                    capture_output=True,
                    timeout=timeout_sec,
                    check=False,
                    cwd=temp_dir
                )
        except subprocess.TimeoutExpired:
            return "timeout", "", "Process exceeded time limit"
        except MemoryError:
            return "memory_error", "", "Memory limit exceeded"

        stdout = proc.stdout.decode('utf-8', errors='replace')
        stderr = proc.stderr.decode('utf-8', errors='replace')

        if 'MemoryError' in stderr:
            return "memory_error", stdout, stderr
        if proc.returncode == 0:
            return "success", stdout, stderr
        return "runtime_error", stdout, stderr


class SandboxJudge:
    """
    Local stand-in for the remote execution service (Python only).

    Args:
        time_limit_ms: CPU time limit per run
        memory_limit_mb: Address space limit per run (Unix only)
    """

    def __init__(self, time_limit_ms: int = 2000, memory_limit_mb: int = 256):
        self.timeout_sec = time_limit_ms / 1000.0
        self.memory_limit_mb = memory_limit_mb

    def close(self):
        pass

    def execute(self, payload: dict) -> dict:
        if payload.get("language") != "python":
            raise JudgeServiceError(400, f"Offline judge only runs python, got {payload.get('language')!r}")

        code = payload.get("code") or ""
        test_cases = payload.get("testCases")
        if test_cases:
            return self._run_test_cases(code, test_cases)
        return self._run_once(code, payload.get("customInput") or "")

    def _run_once(self, code: str, stdin: str) -> dict:
        started = time.monotonic()
        status, stdout, stderr = run_source(code, stdin, self.timeout_sec, self.memory_limit_mb)
        elapsed = time.monotonic() - started

        if status == "success":
            output = stdout or "No output"
        else:
            output = stderr or stdout or STATUS_DESCRIPTIONS[status]

        return {
            "success": status == "success",
            "output": output,
            "status": STATUS_DESCRIPTIONS[status],
            "time": f"{elapsed:.3f}",
            "memory": None,
        }

    def _run_test_cases(self, code: str, test_cases: list) -> dict:
        results = []
        for case in test_cases:
            case_input = str(case.get("input") or "")
            expected = str(case.get("output") or "")
            status, stdout, stderr = run_source(code, case_input, self.timeout_sec, self.memory_limit_mb)

            error = None
            if status != "success":
                error = f"{STATUS_DESCRIPTIONS[status]}: {stderr.strip()}".strip().rstrip(':')

            results.append({
                "passed": error is None and outputs_match(stdout, expected),
                "input": case_input,
                "expectedOutput": expected,
                "actualOutput": stdout,
                "error": error,
            })

        return {
            "testResults": results,
            "passedCount": sum(1 for r in results if r["passed"]),
            "totalTests": len(results),
        }
