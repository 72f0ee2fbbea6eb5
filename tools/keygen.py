#!/usr/bin/env python3
"""
keygen.py - Generate Fernet keys for exam files and autosave snapshots.

Usage:
    python tools/keygen.py --out EXAM1.key
    python tools/keygen.py --print

The same key format is used by build_exam.py (--key-file) and by the
client's recovery_key setting, which encrypts autosave snapshots so the
recorded start time cannot be edited.
"""

import argparse
import sys
from cryptography.fernet import Fernet


def generate_key(output_file: str = None) -> bytes:
    """Generate a new Fernet key, optionally saving it to a file."""
    key = Fernet.generate_key()
    if output_file:
        with open(output_file, 'wb') as f:
            f.write(key)
    return key


def main():
    parser = argparse.ArgumentParser(
        description="Generate a new Fernet key for exam files or autosave snapshots.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python tools/keygen.py --out EXAM1.key
  python tools/keygen.py --print      # paste into config.json as recovery_key

Security Notes:
  - Never distribute exam keys together with the encrypted exam files
  - Use a different key per exam session
        """
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--out", help="Output file path for the key (e.g., EXAM1.key)")
    target.add_argument("--print", dest="print_only", action="store_true", help="Print the key instead of writing a file")

    args = parser.parse_args()

    try:
        key = generate_key(None if args.print_only else args.out)
    except OSError as e:
        print(f"[ERROR] Error writing key: {e}", file=sys.stderr)
        sys.exit(1)

    if args.print_only:
        print(key.decode('utf-8'))
        return

    print(f"[OK] Success: Encryption key generated")
    print(f"  Output: {args.out}")
    print(f"\n[!] SECURITY: Store this key securely. Never commit to version control.")
    print(f"\n[i] Alternative: use --password in build_exam.py to encrypt with a password instead.")


if __name__ == "__main__":
    main()
