"""
User-facing message templates for the terminal front-end.
"""

TRANSLATIONS = {
    "en": {
        "header": "=" * 60,
        "title": "EXAMINER - TIMED EXAM CLIENT",
        "grading_title": "EXAMINER - GRADING",

        # Startup
        "config_error": "Error: invalid configuration: {error}",
        "ask_student": "Student ID: ",
        "student_error": "Error: a student ID is required.",
        "ask_enc_pass": "Enter the key or password for {exam}: ",
        "enc_error": "Error: a key or password is required for encrypted exam files.",
        "enc_exit": "Exiting.",
        "exam_loading": "Loading exam...",
        "exam_not_found": "Exam '{exam}' was not found. Check the exam ID or file name.",
        "exam_load_error": "Error: failed to load the exam.\nDetails: {error}",
        "exam_loaded": "✓ Exam loaded: {title} ({count} questions, {duration})",
        "api_error": "Error: the platform could not be reached.\nDetails: {error}",
        "judge_remote": "✓ Code runs on {url}",
        "judge_offline": "✓ Code runs in the local sandbox (Python only)",
        "exam_resumed": "✓ Previous attempt restored: {answered} answered, {remaining} left",
        "exam_started": "✓ Exam started. Time limit: {duration}",

        # Exam commands
        "cmd_help_text": (
            "Commands:\n"
            "  show              Show the current question\n"
            "  next / prev       Move to the next / previous question\n"
            "  goto N            Jump to question N\n"
            "  answer TEXT       Answer the current question (option number for multiple choice)\n"
            "  load FILE         Use the contents of FILE as the answer (coding questions)\n"
            "  flag              Flag / unflag the current question\n"
            "  run [INPUT]       Run your code with INPUT as stdin\n"
            "  test              Run your code against the sample test cases\n"
            "  nav               Show the question navigator\n"
            "  time              Show the remaining time\n"
            "  submit            Submit the exam\n"
            "  exit              Leave now; your progress is saved and the timer keeps running"
        ),
        "cmd_unknown": "Unknown command: '{command}'. Type 'help' for a list of commands.",
        "cmd_interrupt": "\nUse 'exit' to leave (progress is saved) or 'submit' to finish the exam.",
        "cmd_error": "An unexpected error occurred: {error}",
        "cmd_question_heading": "--- Question {number}/{total} [{type}, {points} pts]{flag} ---",
        "cmd_question_flagged": " (flagged)",
        "cmd_question_option": "  {number}. {option}",
        "cmd_question_answer": "Your answer: {answer}",
        "cmd_question_no_answer": "Your answer: (none)",
        "cmd_question_language": "Language: {language}",
        "cmd_question_starter": "Starter code:\n{code}",
        "cmd_goto_usage": "Usage: goto N",
        "cmd_answer_usage": "Usage: answer TEXT",
        "cmd_load_usage": "Usage: load FILE",
        "cmd_load_error": "Cannot read {path}: {error}",
        "cmd_option_invalid": "Choose an option between 1 and {count}.",
        "cmd_saved": "✓ Answer saved.",
        "cmd_flagged": "✓ Question {number} flagged.",
        "cmd_unflagged": "✓ Question {number} unflagged.",
        "cmd_next_blocked": "Answer this question before moving on.",
        "cmd_locked": "Question {number} is locked. Answer the questions before it first.",
        "cmd_first": "This is the first question.",
        "cmd_last": "This is the last question. Type 'submit' when you are done.",
        "cmd_not_coding": "Only coding questions can be run.",
        "cmd_no_code": "Write or load your code first.",
        "cmd_running": "Running...",
        "cmd_time_heading": "Time remaining: {remaining}",
        "cmd_time_warning": "Less than {minutes} minutes remaining!",
        "cmd_nav_legend": "[*] current  [F] flagged  [A] answered  [ ] open  [#] locked",
        "cmd_nav_counts": "Answered: {answered}/{total}  Flagged: {flagged}",
        "cmd_submit_summary": "You answered {answered} of {total} questions ({flagged} flagged).",
        "cmd_submit_confirm": "Submit the exam now? You cannot change your answers afterwards. (y/n): ",
        "cmd_submit_continue": "Submission cancelled. The timer is still running.",
        "cmd_exit_message": "Progress saved. The timer keeps running while you are away.",
        "cmd_time_finish": "TIME IS UP. Your answers have been submitted automatically.",
        "cmd_submitted": "✓ Exam submitted ({answered}/{total} answered).",
        "delivery_ok": "✓ Submission received by the platform.",
        "delivery_failed": "Submission could not be delivered: {error}",
        "delivery_retry": "Try again? (y/n): ",
        "delivery_saved_locally": "✓ Submission saved to {path}",

        # Execution results
        "run_status": "Status: {status}",
        "run_output": "Output:\n{output}",
        "run_transport": "Could not reach the code runner ({kind}): {message}. Your code was not judged; try again.",
        "run_service": "The code runner rejected the request: {message}",
        "run_tests_summary": "{passed}/{total} test cases passed",
        "run_test_passed": "  #{number}: passed",
        "run_test_failed": "  #{number}: failed (input: {input!r}, expected: {expected!r}, got: {actual!r})",
        "run_test_error": "  #{number}: error: {error}",

        # Grading
        "grading_requires_api": "Error: grading needs api_base_url in the configuration.",
        "grading_list_heading": "Submissions (pending: {pending}, partial: {partial}, completed: {completed})",
        "grading_list_row": "  {number}. {student} - {exam} [{status}] {graded}/{total} graded, {score}/{max_score} pts",
        "grading_list_empty": "No submissions to grade.",
        "grading_choose": "Submission number to grade (empty to quit): ",
        "grading_choose_invalid": "Choose a number between 1 and {count}.",
        "grading_opened": "✓ Grading {student} - {exam} ({status})",
        "grade_help_text": (
            "Commands:\n"
            "  show              Show the current response\n"
            "  next / prev       Move between responses\n"
            "  goto N            Jump to response N\n"
            "  list              List responses with their status\n"
            "  mark N            Stage N marks for the current response\n"
            "  clear             Clear the staged mark\n"
            "  feedback TEXT     Stage feedback for the current response\n"
            "  run [INPUT]       Run the submitted code with INPUT as stdin\n"
            "  test              Run the submitted code against its test cases\n"
            "  save              Save all staged marks\n"
            "  status            Show grading progress\n"
            "  exit              Leave grading"
        ),
        "grade_heading": "--- Response {number}/{total} [{type}, max {max_marks}] {status} ---",
        "grade_student_answer": "Student answer:\n{answer}",
        "grade_marks": "Marks: {marks}/{max_marks}",
        "grade_marks_draft": "Staged marks: {marks}/{max_marks} (unsaved)",
        "grade_feedback": "Feedback: {feedback}",
        "grade_mcq_auto": "Multiple-choice answers are graded automatically.",
        "grade_mark_usage": "Usage: mark N",
        "grade_staged": "✓ Staged. Type 'save' to keep it.",
        "grade_saved": "✓ Saved {count} grade(s). Submission is now {status}.",
        "grade_nothing": "Nothing to save.",
        "grade_save_failed": "Save failed, nothing was changed: {error}",
        "grade_status": "Graded {graded}/{total} ({status}). Score: {score}/{max_score}",
        "grade_unsaved": "You have unsaved marks. Leave anyway? (y/n): ",
        "grade_row": "  {number}. [{status}] {type} {marks}/{max_marks}",
    },
}
