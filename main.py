#!/usr/bin/env python3
"""
PyInstaller entry point for the examiner executable.

Exam rooms get a single binary. Besides the normal subcommands
(take, grade, init-config), the binary accepts an exam file as its only
argument, which is what happens when a bank is dropped onto it:

    examiner midterm.bank   ->   examiner take --exam midterm.bank
"""

import os
import sys

if getattr(sys, 'frozen', False):
    bundle_dir = sys._MEIPASS
else:
    bundle_dir = os.path.dirname(os.path.abspath(__file__))

sys.path.insert(0, bundle_dir)

COMMANDS = ("take", "grade", "init-config")


def build_argv(argv):
    """Expand a lone exam file argument into a take command."""
    if len(argv) == 1 and argv[0] not in COMMANDS and os.path.isfile(argv[0]):
        return ["take", "--exam", argv[0]]
    return list(argv)


if __name__ == "__main__":
    from examiner.exam import ExamRunner
    sys.exit(ExamRunner().run(build_argv(sys.argv[1:])))
