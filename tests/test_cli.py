"""
End-to-end tests for the examiner command line, with input() scripted.
"""

import json
from unittest.mock import patch

from examiner.exam import ExamRunner


def _write_config(tmp_path, **overrides):
    data = {"recovery_dir": str(tmp_path / "recovery")}
    data.update(overrides)
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data), encoding='utf-8')
    return path


class TestInitConfig:
    """Writing the sample configuration."""

    def test_writes_sample(self, tmp_path):
        """init-config writes a file that load_config accepts."""
        out = tmp_path / "sample.json"

        assert ExamRunner().run(["init-config", "--out", str(out)]) == 0

        assert json.loads(out.read_text(encoding='utf-8'))["recovery_dir"] == ".examiner"


class TestTakeOffline:
    """Taking an exam from a local file without a platform."""

    @patch('builtins.input')
    def test_answer_and_submit(self, mock_input, tmp_path, exam_dict, capsys):
        """Answers typed at the prompt end up in the local submission file."""
        exam_path = tmp_path / "midterm.json"
        exam_path.write_text(json.dumps(exam_dict), encoding='utf-8')
        config_path = _write_config(tmp_path)
        mock_input.side_effect = [
            "next",
            "answer 2",
            "next",
            "answer A function that keeps its enclosing scope",
            "flag",
            "submit",
            "y",
        ]

        code = ExamRunner().run([
            "--config", str(config_path), "take", "--exam", str(exam_path), "--student", "s-42",
        ])

        assert code == 0
        out = capsys.readouterr().out
        assert "Answer this question before moving on." in out
        submission_path = tmp_path / "recovery" / "py_101_midterm__s_42.submission.json"
        data = json.loads(submission_path.read_text(encoding='utf-8'))
        assert data["trigger"] == "manual"
        assert data["answers"]["q1"] == {"value": "def", "flagged": False}
        assert data["answers"]["q2"]["value"] == "A function that keeps its enclosing scope"
        assert data["answers"]["q2"]["flagged"] is True
        assert "q3" not in data["answers"]
        assert not (tmp_path / "recovery" / "py_101_midterm__s_42.autosave.json").exists()
        assert "SESSION_SUBMITTED" in (tmp_path / "recovery" / "session.log").read_text(encoding='utf-8')

    @patch('builtins.input')
    def test_exit_keeps_attempt(self, mock_input, tmp_path, exam_dict, capsys):
        """Leaving with exit keeps the snapshot for the next start."""
        exam_path = tmp_path / "midterm.json"
        exam_path.write_text(json.dumps(exam_dict), encoding='utf-8')
        config_path = _write_config(tmp_path)
        mock_input.side_effect = ["answer 2", "exit"]

        code = ExamRunner().run([
            "--config", str(config_path), "take", "--exam", str(exam_path), "--student", "s-42",
        ])

        assert code == 0
        snapshot_path = tmp_path / "recovery" / "py_101_midterm__s_42.autosave.json"
        snapshot = json.loads(snapshot_path.read_text(encoding='utf-8'))
        assert snapshot["answers"]["q1"]["value"] == "def"
        assert "Progress saved" in capsys.readouterr().out

    def test_exam_without_questions(self, tmp_path, exam_dict, capsys):
        """An exam file with no questions is reported, not started."""
        exam_dict["questions"] = []
        exam_path = tmp_path / "empty.json"
        exam_path.write_text(json.dumps(exam_dict), encoding='utf-8')
        config_path = _write_config(tmp_path)

        code = ExamRunner().run([
            "--config", str(config_path), "take", "--exam", str(exam_path), "--student", "s-42",
        ])

        assert code == 1
        assert "at least one question" in capsys.readouterr().out
        assert not (tmp_path / "recovery" / "py_101_midterm__s_42.autosave.json").exists()

    def test_unknown_exam_without_platform(self, tmp_path, capsys):
        """An exam id that is not a file needs the platform."""
        config_path = _write_config(tmp_path)

        code = ExamRunner().run(["--config", str(config_path), "take", "--exam", "no-such-exam", "--student", "s"])

        assert code == 1
        assert "was not found" in capsys.readouterr().out

    def test_invalid_config(self, tmp_path, capsys):
        """A bad configuration stops before anything else happens."""
        config_path = _write_config(tmp_path, http_timeout_seconds=0)

        assert ExamRunner().run(["--config", str(config_path), "take", "--exam", "x"]) == 1
        assert "invalid configuration" in capsys.readouterr().out


class TestGradeWithoutPlatform:
    """Grading needs the platform API."""

    def test_requires_api(self, tmp_path, capsys):
        """Without api_base_url the grading console refuses to start."""
        config_path = _write_config(tmp_path)

        assert ExamRunner().run(["--config", str(config_path), "grade"]) == 1
        assert "api_base_url" in capsys.readouterr().out
