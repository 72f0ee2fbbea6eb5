#!/usr/bin/env python3
"""
verify_exam.py - Decrypt an exam file and check it the way the client will.

Usage with key file:
    python tools/verify_exam.py --exam exams/exam1.enc --key-file EXAM1.key

Usage with password:
    python tools/verify_exam.py --exam exams/exam1.enc --password

Usage with plaintext:
    python tools/verify_exam.py --exam exam1.json
"""

import argparse
import getpass
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from examiner.errors import ExamLoadError, UnsupportedLanguageError
from examiner.exam_loader import SALT_PREFIX, load_exam
from examiner.execution import normalize_language
from examiner.models import CODING, MCQ, ExamDefinition
from examiner.timer import format_duration


def check_exam(exam: ExamDefinition):
    """
    Content checks beyond what loading enforces.

    Returns:
        Tuple of (errors, warnings)
    """
    errors = []
    warnings = []

    for index, question in enumerate(exam.questions, 1):
        label = f"Q{index} ({question.id})"
        if not question.prompt.strip():
            errors.append(f"{label}: empty prompt")
        if question.points == 0:
            warnings.append(f"{label}: worth 0 points")

        if question.type == MCQ and len(question.options) < 2:
            errors.append(f"{label}: multiple choice needs at least 2 options")

        if question.type == CODING:
            try:
                normalize_language(question.language or "python")
            except UnsupportedLanguageError as e:
                errors.append(f"{label}: {e}")
            if not question.test_cases:
                warnings.append(f"{label}: no test cases, students can only run custom input")

    return errors, warnings


def verify_exam(exam_file: str, key_file: str = None, use_password: bool = False, verbose: bool = False) -> bool:
    """Returns True if the exam loads and passes the content checks."""
    path = Path(exam_file)
    key_input = None

    if path.suffix.lower() != '.json':
        with open(path, 'rb') as f:
            password_based = f.read(len(SALT_PREFIX)) == SALT_PREFIX

        if password_based and not use_password:
            print("[ERROR] This exam was encrypted with a password. Use --password flag.", file=sys.stderr)
            return False
        if not password_based and not key_file:
            print("[ERROR] This exam was encrypted with a key file. Use --key-file.", file=sys.stderr)
            return False

        if password_based:
            key_input = getpass.getpass("Enter decryption password: ")
        else:
            with open(key_file, 'r', encoding='utf-8') as f:
                key_input = f.read().strip()

    try:
        exam = load_exam(path, key_input)
    except ExamLoadError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return False

    print(f"\n[SCHEMA] Exam Validation")
    print(f"{'='*60}")
    print(f"[OK] Exam: {exam.id} - {exam.title}")
    print(f"[OK] Duration: {format_duration(exam.duration_minutes)}")

    if verbose:
        for index, question in enumerate(exam.questions, 1):
            extra = f", {len(question.test_cases)} tests" if question.type == CODING else ""
            print(f"  [OK] Q{index} {question.id}: {question.type}, {question.points} pts{extra}")

    errors, warnings = check_exam(exam)

    print(f"\n{'='*60}")
    print(f"[SUMMARY]")
    print(f"  Questions: {len(exam.questions)}")
    print(f"  Total points: {exam.total_points}")

    if warnings:
        print(f"\n[WARNING] ({len(warnings)}):")
        for warn in warnings[:10]:
            print(f"  - {warn}")
        if len(warnings) > 10:
            print(f"  ... and {len(warnings) - 10} more")

    if errors:
        print(f"\n[ERROR] ({len(errors)}):")
        for err in errors[:20]:
            print(f"  - {err}")
        if len(errors) > 20:
            print(f"  ... and {len(errors) - 20} more")
        return False

    print(f"\n[OK] Exam validation PASSED")
    return True


def main():
    parser = argparse.ArgumentParser(
        description="Validate an exam file (encrypted or plaintext).",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python tools/verify_exam.py --exam exams/exam1.enc --key-file EXAM1.key
  python tools/verify_exam.py --exam exam1.json --verbose
        """
    )
    parser.add_argument("--exam", required=True, help="Path to exam file (.enc or .json)")
    parser.add_argument("--key-file", help="Encryption key file (for key-file encrypted exams)")
    parser.add_argument("--password", action="store_true", help="Use password to decrypt (for password-encrypted exams)")
    parser.add_argument("--verbose", action="store_true", help="Show every question")

    args = parser.parse_args()

    try:
        success = verify_exam(args.exam, args.key_file, args.password, args.verbose)
    except OSError as e:
        print(f"[ERROR] File not found: {e}", file=sys.stderr)
        success = False
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
