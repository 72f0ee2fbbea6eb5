"""
Tests for loading exam definitions from bank files.

Covers plain JSON banks, Fernet key and password encryption,
and the validation applied to what comes out.
"""

import json
import os

import pytest
from cryptography.fernet import Fernet

from examiner.errors import ExamLoadError
from examiner.exam_loader import (
    SALT_PREFIX,
    derive_key_from_password,
    is_password_encrypted,
    load_exam,
    parse_exam,
)


class TestPlainBanks:
    """Unencrypted .json exam files."""

    def test_load_json(self, tmp_path, exam_dict):
        """A .json bank is read as-is."""
        path = tmp_path / "midterm.json"
        path.write_text(json.dumps(exam_dict), encoding='utf-8')

        exam = load_exam(path)

        assert exam.id == "py-101-midterm"
        assert exam.duration_minutes == 45
        assert exam.question_ids() == ["q1", "q2", "q3", "q4", "q5"]
        assert exam.get_question("q3").test_cases[1].output == "6"
        assert exam.total_points == 24

    def test_missing_file(self, tmp_path):
        """An unreadable file is an ExamLoadError."""
        with pytest.raises(ExamLoadError, match="Cannot read"):
            load_exam(tmp_path / "missing.json")

    def test_invalid_json(self):
        """Garbage is an ExamLoadError, not a JSONDecodeError."""
        with pytest.raises(ExamLoadError, match="not valid JSON"):
            parse_exam(b"{not json")

    def test_duplicate_ids(self, exam_dict):
        """Two questions with one id are refused."""
        exam_dict["questions"][1]["id"] = "q1"

        with pytest.raises(ExamLoadError, match="duplicate"):
            parse_exam(json.dumps(exam_dict))

    def test_missing_field(self, exam_dict):
        """A question without a type is refused."""
        del exam_dict["questions"][0]["type"]

        with pytest.raises(ExamLoadError, match="missing field"):
            parse_exam(json.dumps(exam_dict))

    def test_no_questions(self, exam_dict):
        """An exam with an empty question list cannot be taken."""
        exam_dict["questions"] = []

        with pytest.raises(ExamLoadError, match="at least one question"):
            parse_exam(json.dumps(exam_dict))

    def test_unknown_question_type(self, exam_dict):
        """Only mcq, saq and coding questions exist."""
        exam_dict["questions"][0]["type"] = "essay"

        with pytest.raises(ExamLoadError, match="invalid"):
            parse_exam(json.dumps(exam_dict))

    def test_platform_payload_shape(self):
        """The {exam, questions} shape is accepted too."""
        exam = parse_exam(json.dumps({
            "exam": {"id": "e1", "title": "Quiz", "duration_minutes": 10},
            "questions": [
                {"id": "b", "type": "saq", "prompt": "B", "question_order": 2},
                {"id": "a", "type": "saq", "prompt": "A", "question_order": 1},
            ],
        }))

        assert exam.question_ids() == ["a", "b"]


class TestEncryptedBanks:
    """Fernet-encrypted exam files."""

    def test_key_encrypted(self, tmp_path, exam_dict):
        """A bank encrypted with a raw Fernet key loads with that key."""
        key = Fernet.generate_key()
        path = tmp_path / "midterm.enc"
        path.write_bytes(Fernet(key).encrypt(json.dumps(exam_dict).encode('utf-8')))

        exam = load_exam(path, key.decode())

        assert exam.title == "Python 101 Midterm"

    def test_password_encrypted(self, tmp_path, exam_dict):
        """A password bank carries its salt after the SALT prefix."""
        salt = os.urandom(16)
        key = derive_key_from_password("correct horse", salt)
        data = SALT_PREFIX + salt + Fernet(key).encrypt(json.dumps(exam_dict).encode('utf-8'))
        path = tmp_path / "midterm.enc"
        path.write_bytes(data)

        assert is_password_encrypted(data) is True
        assert load_exam(path, "correct horse").id == "py-101-midterm"

        with pytest.raises(ExamLoadError, match="Wrong key or password"):
            load_exam(path, "battery staple")

    def test_wrong_key(self, tmp_path, exam_dict):
        """Another valid key cannot open the bank."""
        path = tmp_path / "midterm.enc"
        path.write_bytes(Fernet(Fernet.generate_key()).encrypt(json.dumps(exam_dict).encode('utf-8')))

        with pytest.raises(ExamLoadError, match="Wrong key or password"):
            load_exam(path, Fernet.generate_key().decode())

    def test_malformed_key(self, tmp_path):
        """Something that is not a Fernet key is reported as such."""
        path = tmp_path / "midterm.enc"
        path.write_bytes(b"gAAAA")

        with pytest.raises(ExamLoadError, match="not a valid Fernet key"):
            load_exam(path, "hunter2")

    def test_key_required(self, tmp_path):
        """Encrypted banks cannot be opened without a key."""
        path = tmp_path / "midterm.enc"
        path.write_bytes(b"gAAAA")

        with pytest.raises(ExamLoadError, match="required"):
            load_exam(path)
