#!/usr/bin/env python3
"""
Examiner CLI

Student-facing timed exam client and teacher-facing grading console.

    examiner take --exam EXAM [--student ID]
    examiner grade [--session ID]
    examiner init-config [--out PATH]
"""

import argparse
import getpass
import json
import sys
from pathlib import Path
from typing import List, Optional

from .api import ExamApiClient
from .autosave import PlatformMirror, RecoveryStorage
from .config_loader import create_sample_config, load_config
from .errors import (
    ExaminerError, ExamLoadError, ExamNotFoundError,
    GradingSaveError, GradingValidationError, SubmissionError,
)
from .event_log import EventLog
from .exam_loader import load_exam
from .execution import ExecutionClient, HttpJudge
from .grading import cohort_counts, submission_status, summary_status
from .grading_session import GradingSession
from .models import (
    CODING, MCQ, ERROR_SERVICE, MODE_TESTS,
    ClientConfig, ExamDefinition, ExecutionResult, SubmissionPayload,
)
from .navigation import STATE_ANSWERED, STATE_CURRENT, STATE_FLAGGED, STATE_LOCKED
from .sandbox import SandboxJudge
from .session import IN_PROGRESS, SUBMITTED, TRIGGER_TIMEOUT, ExamSession
from .timer import format_duration
from .translations import TRANSLATIONS


NAV_MARKERS = {
    STATE_CURRENT: "*",
    STATE_FLAGGED: "F",
    STATE_ANSWERED: "A",
    STATE_LOCKED: "#",
}


def build_execution_client(config: ClientConfig, log=None) -> ExecutionClient:
    """Remote judge when judge_url is set, local sandbox otherwise."""
    if config.judge_url:
        judge = HttpJudge(config.judge_url, config.http_timeout_seconds, token=config.api_token)
    else:
        judge = SandboxJudge(config.sandbox_time_limit_ms, config.sandbox_memory_limit_mb)
    return ExecutionClient(judge, batch_test_cases=config.batch_test_cases, log=log)


def build_api_client(config: ClientConfig) -> Optional[ExamApiClient]:
    if not config.api_base_url:
        return None
    return ExamApiClient(config.api_base_url, config.http_timeout_seconds, token=config.api_token)


class ExamRunner:
    """Main CLI application controller."""

    def __init__(self):
        self.config: Optional[ClientConfig] = None
        self.api: Optional[ExamApiClient] = None
        self.execution_client: Optional[ExecutionClient] = None
        self.session: Optional[ExamSession] = None
        self.grading: Optional[GradingSession] = None
        self.log: Optional[EventLog] = None
        self.messages = TRANSLATIONS["en"]
        self.warned_five_minutes = False

    def _msg(self, key: str, **kwargs) -> str:
        template = self.messages.get(key, key)
        return template.format(**kwargs)

    def _banner(self, key: str):
        print(self._msg("header"))
        print(self._msg(key))
        print(self._msg("header"))

    # ===== ENTRY =====

    def run(self, argv: Optional[List[str]] = None) -> int:
        parser = argparse.ArgumentParser(
            prog="examiner",
            description="Timed exam client and grading console",
            formatter_class=argparse.RawDescriptionHelpFormatter
        )
        parser.add_argument(
            "--config",
            help="Path to client configuration file (default: config.json next to the executable)"
        )
        sub = parser.add_subparsers(dest="command", required=True)

        take = sub.add_parser("take", help="Take an exam")
        take.add_argument(
            "--exam",
            required=True,
            help="Exam file (.json or encrypted) or exam ID on the platform"
        )
        take.add_argument("--student", help="Student ID (prompted when omitted)")

        grade = sub.add_parser("grade", help="Grade submitted exams")
        grade.add_argument("--session", help="Session ID to grade (choose from a list when omitted)")

        init = sub.add_parser("init-config", help="Write a sample configuration file")
        init.add_argument("--out", default="config.json", help="Output path (default: config.json)")

        args = parser.parse_args(argv)

        if args.command == "init-config":
            create_sample_config(Path(args.out))
            return 0

        try:
            self.config = load_config(Path(args.config) if args.config else None)
        except ValueError as e:
            print(self._msg("config_error", error=e))
            return 1

        recovery_dir = Path(self.config.recovery_dir)
        recovery_dir.mkdir(parents=True, exist_ok=True)
        self.log = EventLog(recovery_dir / "session.log")
        self.api = build_api_client(self.config)
        self.execution_client = build_execution_client(self.config, self.log)

        try:
            if args.command == "take":
                return self.take(args.exam, args.student)
            return self.grade(args.session)
        finally:
            if self.api:
                self.api.close()
            self.execution_client.judge.close()

    # ===== STUDENT =====

    def load_exam(self, exam_ref: str) -> Optional[ExamDefinition]:
        """Load an exam from a file or the platform. Prints the reason and returns None on failure."""
        print(self._msg("exam_loading"))
        path = Path(exam_ref)
        try:
            if path.exists():
                key_input = None
                if path.suffix.lower() != '.json':
                    key_input = getpass.getpass(self._msg("ask_enc_pass", exam=path.name)).strip()
                    if not key_input:
                        print(self._msg("enc_error"))
                        return None
                return load_exam(path, key_input)

            if self.api is None:
                raise ExamNotFoundError(exam_ref)
            return self.api.fetch_exam(exam_ref)
        except ExamNotFoundError:
            print(self._msg("exam_not_found", exam=exam_ref))
        except ExamLoadError as e:
            print(self._msg("exam_load_error", error=e))
        except ExaminerError as e:
            print(self._msg("api_error", error=e))
        except (KeyboardInterrupt, EOFError):
            print(f"\n{self._msg('enc_exit')}")
        return None

    def take(self, exam_ref: str, student_id: Optional[str]) -> int:
        self._banner("title")

        exam = self.load_exam(exam_ref)
        if exam is None:
            return 1
        print(self._msg(
            "exam_loaded",
            title=exam.title,
            count=len(exam.questions),
            duration=format_duration(exam.duration_minutes)
        ))

        try:
            if not student_id:
                student_id = input(self._msg("ask_student")).strip()
        except (KeyboardInterrupt, EOFError):
            print(f"\n{self._msg('enc_exit')}")
            return 1
        if not student_id:
            print(self._msg("student_error"))
            return 1

        session_id = None
        if self.api is not None and not Path(exam_ref).exists():
            try:
                session_id = self.api.start_session(exam.id)
            except ExaminerError as e:
                print(self._msg("api_error", error=e))
                return 1

        storage = RecoveryStorage(self.config.recovery_dir, self.config.recovery_key)
        resuming = storage.path_for(exam.id, student_id).exists()
        if session_id is not None:
            storage = PlatformMirror(storage, self.api, log=self.log)

        self.session = ExamSession(
            exam,
            student_id,
            storage=storage,
            submitter=self._submitter(),
            execution_client=self.execution_client,
            autosave_interval=self.config.autosave_interval_seconds,
            log=self.log,
            session_id=session_id
        )
        self.session.start(background=True)

        if self.config.judge_url:
            print(self._msg("judge_remote", url=self.config.judge_url))
        else:
            print(self._msg("judge_offline"))

        if self.session.status == IN_PROGRESS:
            if resuming:
                print(self._msg(
                    "exam_resumed",
                    answered=self.session.answered_count,
                    remaining=self.session.timer.format_remaining()
                ))
            else:
                print(self._msg("exam_started", duration=format_duration(exam.duration_minutes)))
            self.exam_loop()

        if self.session.status == SUBMITTED:
            self._finish()
        return 0

    def _submitter(self):
        if self.api is not None:
            return self.api.submit_attempt
        return self._write_local_submission

    def _write_local_submission(self, payload: SubmissionPayload):
        """Offline mode: the submission is a JSON file next to the recovery snapshots."""
        safe_exam = "".join(c if c.isalnum() else '_' for c in payload.exam_id)
        safe_student = "".join(c if c.isalnum() else '_' for c in payload.student_id)
        path = Path(self.config.recovery_dir) / f"{safe_exam}__{safe_student}.submission.json"
        try:
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(payload.to_dict(), f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise SubmissionError(f"Cannot write {path}: {e}")
        print(self._msg("delivery_saved_locally", path=path))

    def exam_loop(self):
        """Main interactive command loop."""
        print("\n" + self._msg("header"))
        print(self._msg("cmd_help_text"))
        print(self._msg("header") + "\n")
        self.cmd_show()

        while self.session.status == IN_PROGRESS:
            try:
                self.session.tick()
                if self.session.status != IN_PROGRESS:
                    break
                self._warn_low_time()

                cmd_line = input("exam> ").strip()
                if self.session.status != IN_PROGRESS:
                    break
                if not cmd_line:
                    continue

                command, _, rest = cmd_line.partition(" ")
                command = command.lower()
                rest = rest.strip()

                if command in ('exit', 'quit'):
                    self.session.suspend()
                    print(self._msg("cmd_exit_message"))
                    return
                elif command == 'help':
                    print(self._msg("cmd_help_text"))
                elif command == 'show':
                    self.cmd_show()
                elif command == 'next':
                    self.cmd_next()
                elif command in ('prev', 'previous'):
                    self.cmd_previous()
                elif command == 'goto':
                    self.cmd_goto(rest)
                elif command == 'answer':
                    self.cmd_answer(rest)
                elif command == 'load':
                    self.cmd_load(rest)
                elif command == 'flag':
                    self.cmd_flag()
                elif command == 'run':
                    self.cmd_run(custom_input=rest.replace("\\n", "\n"))
                elif command == 'test':
                    self.cmd_run(use_test_cases=True)
                elif command in ('nav', 'status'):
                    self.cmd_nav()
                elif command == 'time':
                    self.cmd_time()
                elif command == 'submit':
                    self.cmd_submit()
                else:
                    print(self._msg("cmd_unknown", command=command))

            except (KeyboardInterrupt, EOFError):
                print(self._msg("cmd_interrupt"))
            except ExaminerError as e:
                print(f"Error: {e}")
            except Exception as e:
                print(self._msg("cmd_error", error=e))
                self.session.log("ERROR", str(e))

    def _warn_low_time(self):
        if not self.warned_five_minutes and self.session.remaining_seconds <= 5 * 60:
            self.warned_five_minutes = True
            print("\n" + "!" * 60)
            print(self._msg("cmd_time_warning", minutes=5))
            print("!" * 60)

    def cmd_show(self):
        session = self.session
        question = session.current_question
        flag = self._msg("cmd_question_flagged") if session.answers.is_flagged(question.id) else ""
        print()
        print(self._msg(
            "cmd_question_heading",
            number=session.current_index + 1,
            total=session.total_questions,
            type=question.type,
            points=question.points,
            flag=flag
        ))
        print(question.prompt)

        if question.type == MCQ:
            for i, option in enumerate(question.options):
                print(self._msg("cmd_question_option", number=i + 1, option=option))
        if question.type == CODING:
            print(self._msg("cmd_question_language", language=question.language or "python"))
            if question.starter_code and not session.answers.is_answered(question.id):
                print(self._msg("cmd_question_starter", code=question.starter_code))

        value = session.answers.value_of(question.id)
        if value.strip():
            print(self._msg("cmd_question_answer", answer=value))
        else:
            print(self._msg("cmd_question_no_answer"))
        print()

    def cmd_next(self):
        if self.session.nav.is_last:
            print(self._msg("cmd_last"))
        elif self.session.next():
            self.cmd_show()
        else:
            print(self._msg("cmd_next_blocked"))

    def cmd_previous(self):
        if self.session.previous():
            self.cmd_show()
        else:
            print(self._msg("cmd_first"))

    def cmd_goto(self, arg: str):
        if not arg.isdigit():
            print(self._msg("cmd_goto_usage"))
            return
        number = int(arg)
        if self.session.go_to(number - 1):
            self.cmd_show()
        else:
            print(self._msg("cmd_locked", number=number))

    def cmd_answer(self, text: str):
        if not text:
            print(self._msg("cmd_answer_usage"))
            return
        question = self.session.current_question
        if question.type == MCQ and question.options:
            if not text.isdigit() or not 1 <= int(text) <= len(question.options):
                print(self._msg("cmd_option_invalid", count=len(question.options)))
                return
            text = question.options[int(text) - 1]
        if self.session.set_answer(question.id, text):
            print(self._msg("cmd_saved"))

    def cmd_load(self, path: str):
        if not path:
            print(self._msg("cmd_load_usage"))
            return
        try:
            with open(path, 'r', encoding='utf-8') as f:
                code = f.read()
        except OSError as e:
            print(self._msg("cmd_load_error", path=path, error=e))
            return
        if self.session.set_answer(self.session.current_question.id, code):
            print(self._msg("cmd_saved"))

    def cmd_flag(self):
        question = self.session.current_question
        if not self.session.toggle_flag(question.id):
            return
        number = self.session.current_index + 1
        if self.session.answers.is_flagged(question.id):
            print(self._msg("cmd_flagged", number=number))
        else:
            print(self._msg("cmd_unflagged", number=number))

    def cmd_run(self, custom_input: str = "", use_test_cases: bool = False):
        question = self.session.current_question
        if question.type != CODING:
            print(self._msg("cmd_not_coding"))
            return
        if not self.session.answers.is_answered(question.id):
            print(self._msg("cmd_no_code"))
            return
        print(self._msg("cmd_running"))
        result = self.session.run_code(
            question.id,
            custom_input=custom_input,
            use_test_cases=use_test_cases and bool(question.test_cases)
        )
        if result is not None:
            self.print_result(result)

    def print_result(self, result: ExecutionResult):
        if result.is_transport_error:
            print(self._msg("run_transport", kind=result.error_kind, message=result.report))
            return
        if result.error_kind == ERROR_SERVICE:
            print(self._msg("run_service", message=result.report))
            return

        if result.mode == MODE_TESTS:
            print(self._msg("run_tests_summary", passed=result.passed_count, total=result.total_tests))
            for i, case in enumerate(result.test_results, 1):
                if case.passed:
                    print(self._msg("run_test_passed", number=i))
                elif case.error:
                    print(self._msg("run_test_error", number=i, error=case.error))
                else:
                    print(self._msg(
                        "run_test_failed",
                        number=i,
                        input=case.input,
                        expected=case.expected_output,
                        actual=case.actual_output
                    ))
            return

        if result.status:
            print(self._msg("run_status", status=result.status))
        print(self._msg("run_output", output=result.report))

    def cmd_nav(self):
        states = self.session.navigator()
        cells = [f"{i + 1}[{NAV_MARKERS.get(state, ' ')}]" for i, state in enumerate(states)]
        print(" ".join(cells))
        print(self._msg("cmd_nav_legend"))
        print(self._msg(
            "cmd_nav_counts",
            answered=self.session.answered_count,
            total=self.session.total_questions,
            flagged=self.session.flagged_count
        ))

    def cmd_time(self):
        print(self._msg("cmd_time_heading", remaining=self.session.timer.format_remaining()))

    def cmd_submit(self):
        summary = self.session.request_submit()
        if summary is None:
            return
        print(self._msg(
            "cmd_submit_summary",
            answered=summary["answered"],
            total=summary["total"],
            flagged=summary["flagged"]
        ))
        try:
            confirm = input(self._msg("cmd_submit_confirm")).strip().lower()
        except (KeyboardInterrupt, EOFError):
            confirm = ""

        if confirm == 'y':
            self.session.confirm_submit()
        elif self.session.status == IN_PROGRESS:
            self.session.cancel_submit()
            print(self._msg("cmd_submit_continue"))

    def _finish(self):
        session = self.session
        print()
        if session.submit_trigger == TRIGGER_TIMEOUT:
            print("!" * 60)
            print(self._msg("cmd_time_finish"))
            print("!" * 60)
        print(self._msg("cmd_submitted", answered=session.answered_count, total=session.total_questions))

        while not session.deliver():
            print(self._msg("delivery_failed", error=session.delivery_error))
            try:
                retry = input(self._msg("delivery_retry")).strip().lower()
            except (KeyboardInterrupt, EOFError):
                retry = ""
            if retry != 'y':
                return
        if self.api is not None:
            print(self._msg("delivery_ok"))

    # ===== TEACHER =====

    def grade(self, session_id: Optional[str]) -> int:
        self._banner("grading_title")
        if self.api is None:
            print(self._msg("grading_requires_api"))
            return 1

        try:
            if not session_id:
                session_id = self.choose_submission()
                if not session_id:
                    return 0
            submission = self.api.fetch_submission(session_id)
        except ExaminerError as e:
            print(self._msg("api_error", error=e))
            return 1
        except (KeyboardInterrupt, EOFError):
            print()
            return 0

        self.grading = GradingSession(submission, self.api, self.execution_client, log=self.log)
        print(self._msg(
            "grading_opened",
            student=submission.student_name,
            exam=submission.exam_title,
            status=submission_status(submission)
        ))
        self.grading_loop()
        return 0

    def choose_submission(self) -> Optional[str]:
        summaries = self.api.list_submissions()
        if not summaries:
            print(self._msg("grading_list_empty"))
            return None

        counts = cohort_counts(summaries)
        print(self._msg("grading_list_heading", **counts))
        for i, row in enumerate(summaries, 1):
            print(self._msg(
                "grading_list_row",
                number=i,
                student=row.student_name,
                exam=row.exam_title,
                status=summary_status(row),
                graded=row.graded_count,
                total=row.total_questions,
                score=row.total_score,
                max_score=row.max_possible_score
            ))

        while True:
            choice = input(self._msg("grading_choose")).strip()
            if not choice:
                return None
            if choice.isdigit() and 1 <= int(choice) <= len(summaries):
                return summaries[int(choice) - 1].session_id
            print(self._msg("grading_choose_invalid", count=len(summaries)))

    def grading_loop(self):
        print("\n" + self._msg("header"))
        print(self._msg("grade_help_text"))
        print(self._msg("header") + "\n")
        self.cmd_grade_show()

        while True:
            try:
                cmd_line = input("grade> ").strip()
                if not cmd_line:
                    continue

                command, _, rest = cmd_line.partition(" ")
                command = command.lower()
                rest = rest.strip()

                if command in ('exit', 'quit'):
                    if self._confirm_leave_grading():
                        return
                elif command == 'help':
                    print(self._msg("grade_help_text"))
                elif command == 'show':
                    self.cmd_grade_show()
                elif command == 'next':
                    if self.grading.next():
                        self.cmd_grade_show()
                elif command in ('prev', 'previous'):
                    if self.grading.previous():
                        self.cmd_grade_show()
                elif command == 'goto':
                    if rest.isdigit() and self.grading.go_to(int(rest) - 1):
                        self.cmd_grade_show()
                    else:
                        print(self._msg("cmd_goto_usage"))
                elif command == 'list':
                    self.cmd_grade_list()
                elif command == 'mark':
                    self.cmd_mark(rest)
                elif command == 'clear':
                    self._stage(lambda rid: self.grading.set_mark(rid, None))
                elif command == 'feedback':
                    self._stage(lambda rid: self.grading.set_feedback(rid, rest))
                elif command == 'run':
                    self.cmd_verify(use_test_cases=False, custom_input=rest.replace("\\n", "\n"))
                elif command == 'test':
                    self.cmd_verify(use_test_cases=True)
                elif command == 'save':
                    self.cmd_save()
                elif command == 'status':
                    self.cmd_grade_status()
                else:
                    print(self._msg("cmd_unknown", command=command))

            except (KeyboardInterrupt, EOFError):
                print("\nUse 'save' to keep your marks and 'exit' to leave.")
            except ExaminerError as e:
                print(f"Error: {e}")
            except Exception as e:
                print(self._msg("cmd_error", error=e))
                self.log("ERROR", str(e))

    def _confirm_leave_grading(self) -> bool:
        if not self.grading.has_unsaved_changes:
            return True
        try:
            return input(self._msg("grade_unsaved")).strip().lower() == 'y'
        except (KeyboardInterrupt, EOFError):
            return False

    def cmd_grade_show(self):
        grading = self.grading
        response = grading.current_response
        if response is None:
            print(self._msg("grading_list_empty"))
            return

        print()
        print(self._msg(
            "grade_heading",
            number=grading.current_index + 1,
            total=len(grading.responses),
            type=response.question_type,
            max_marks=response.max_marks,
            status=grading.question_status(response.id)
        ))
        print(response.question_text)
        print(self._msg("grade_student_answer", answer=response.student_answer or ""))

        if response.question_type == MCQ:
            print(self._msg("grade_mcq_auto"))
        marks = "-" if response.marks_obtained is None else response.marks_obtained
        print(self._msg("grade_marks", marks=marks, max_marks=response.max_marks))

        draft = grading.draft_for(response.id)
        if draft is not None and draft["marks_obtained"] != response.marks_obtained:
            staged = "-" if draft["marks_obtained"] is None else draft["marks_obtained"]
            print(self._msg("grade_marks_draft", marks=staged, max_marks=response.max_marks))
        feedback = draft["teacher_feedback"] if draft is not None else response.teacher_feedback
        if feedback:
            print(self._msg("grade_feedback", feedback=feedback))
        print()

    def cmd_grade_list(self):
        for i, response in enumerate(self.grading.responses, 1):
            marks = "-" if response.marks_obtained is None else response.marks_obtained
            print(self._msg(
                "grade_row",
                number=i,
                status=self.grading.question_status(response.id),
                type=response.question_type,
                marks=marks,
                max_marks=response.max_marks
            ))

    def cmd_mark(self, arg: str):
        try:
            value = float(arg)
        except ValueError:
            print(self._msg("grade_mark_usage"))
            return
        if value.is_integer():
            value = int(value)
        self._stage(lambda rid: self.grading.set_mark(rid, value))

    def _stage(self, action):
        response = self.grading.current_response
        if response is None:
            return
        try:
            action(response.id)
        except GradingValidationError as e:
            print(f"Error: {e}")
            return
        print(self._msg("grade_staged"))

    def cmd_verify(self, use_test_cases: bool, custom_input: str = ""):
        response = self.grading.current_response
        if response is None or response.question_type != CODING:
            print(self._msg("cmd_not_coding"))
            return
        print(self._msg("cmd_running"))
        result = self.grading.run_verification(
            response.id,
            use_test_cases=use_test_cases and bool(response.test_cases),
            custom_input=custom_input
        )
        if result is not None:
            self.print_result(result)

    def cmd_save(self):
        try:
            count = self.grading.save()
        except GradingSaveError as e:
            print(self._msg("grade_save_failed", error=e))
            return
        if count == 0:
            print(self._msg("grade_nothing"))
            return
        print(self._msg("grade_saved", count=count, status=self.grading.status()))

    def cmd_grade_status(self):
        print(self._msg(
            "grade_status",
            graded=self.grading.graded_count(),
            total=len(self.grading.responses),
            status=self.grading.status(),
            score=self.grading.total_score(),
            max_score=self.grading.max_score()
        ))


def main():
    """Entry point for the examiner CLI."""
    runner = ExamRunner()
    sys.exit(runner.run())


if __name__ == "__main__":
    main()
