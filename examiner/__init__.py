"""
Examiner - timed exam sessions and grading

This package contains the core components of the exam client:
- session: Exam attempt state machine (timer, answers, navigation, autosave)
- execution: Code execution against a remote judge or the local sandbox
- grading / grading_session: Derived grading status and the grading controller
- api: Client for the exam platform
"""

__version__ = "2.0.0"
