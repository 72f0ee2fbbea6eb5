#!/usr/bin/env python3
"""
build_exam.py - Validate and encrypt a plaintext JSON exam.

Usage with key file:
    python tools/build_exam.py --in exam1.json --out exams/exam1.enc --key-file EXAM1.key

Usage with password:
    python tools/build_exam.py --in exam1.json --out exams/exam1.enc --password
"""

import argparse
import getpass
import hashlib
import os
import sys
from pathlib import Path

from cryptography.fernet import Fernet

sys.path.insert(0, str(Path(__file__).parent.parent))

from examiner.errors import ExamLoadError
from examiner.exam_loader import SALT_PREFIX, derive_key_from_password, parse_exam
from examiner.timer import format_duration


def encrypt_exam(plaintext: bytes, key: bytes, salt: bytes = None) -> bytes:
    """Encrypt exam JSON. Password-derived keys get the salt prepended."""
    encrypted = Fernet(key).encrypt(plaintext)
    if salt:
        return SALT_PREFIX + salt + encrypted
    return encrypted


def build_exam(in_file: str, out_file: str, key_file: str = None, use_password: bool = False) -> None:
    """Validate and encrypt a plaintext JSON exam."""
    salt = None

    if use_password:
        password = getpass.getpass("Enter encryption password: ")
        password_confirm = getpass.getpass("Confirm password: ")

        if password != password_confirm:
            print("[ERROR] Passwords do not match", file=sys.stderr)
            sys.exit(1)

        if len(password) < 8:
            print("[ERROR] Password must be at least 8 characters", file=sys.stderr)
            sys.exit(1)

        salt = os.urandom(16)
        key = derive_key_from_password(password, salt)
        print("[OK] Using password-based encryption")
    else:
        with open(key_file, 'rb') as f:
            key = f.read().strip()
        print("[OK] Using key file encryption")

    with open(in_file, 'rb') as f:
        plaintext = f.read()

    # Refuse to encrypt something the client would not load
    try:
        exam = parse_exam(plaintext)
    except ExamLoadError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        sys.exit(1)

    counts = {}
    for question in exam.questions:
        counts[question.type] = counts.get(question.type, 0) + 1
    print(f"[OK] Input exam validated")
    print(f"  Exam: {exam.id} - {exam.title}")
    print(f"  Duration: {format_duration(exam.duration_minutes)}")
    print(f"  Questions: {', '.join(f'{n} {t}' for t, n in sorted(counts.items())) or 'none'}")
    print(f"  Total points: {exam.total_points}")

    final_data = encrypt_exam(plaintext, key, salt)
    sha256_hash = hashlib.sha256(final_data).hexdigest()

    Path(out_file).parent.mkdir(parents=True, exist_ok=True)
    with open(out_file, 'wb') as f:
        f.write(final_data)

    print(f"\n[OK] Success: Exam encrypted")
    print(f"  Input: {in_file} ({len(plaintext)} bytes)")
    print(f"  Output: {out_file} ({len(final_data)} bytes)")
    print(f"  Method: {'Password-based' if salt else 'Key file'}")
    print(f"  SHA256: {sha256_hash}")


def main():
    parser = argparse.ArgumentParser(
        description="Validate and encrypt a plaintext JSON exam.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python tools/build_exam.py --in exam1.json --out exams/exam1.enc --key-file EXAM1.key
  python tools/build_exam.py --in exam2.json --out exams/exam2.enc --password

Notes:
  - The exam is validated with the same rules the client uses
  - Output directory will be created if it doesn't exist
  - Produces SHA256 checksum for verification
        """
    )
    parser.add_argument("--in", dest="in_file", required=True, help="Input plaintext JSON exam")
    parser.add_argument("--out", required=True, help="Output encrypted exam file (.enc)")
    method = parser.add_mutually_exclusive_group(required=True)
    method.add_argument("--key-file", help="File containing the encryption key")
    method.add_argument("--password", action="store_true", help="Use password-based encryption instead of a key file")

    args = parser.parse_args()

    try:
        build_exam(args.in_file, args.out, args.key_file, args.password)
    except (OSError, ValueError) as e:
        print(f"[ERROR] Error encrypting exam: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
