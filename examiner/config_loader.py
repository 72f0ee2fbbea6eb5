"""
Configuration loader for the exam client.

Handles loading and validating client configuration files.
"""

import json
import sys
from pathlib import Path
from typing import Optional

from .models import ClientConfig


def default_config_path() -> Path:
    """Return config.json next to the executable (frozen) or the project root."""
    if getattr(sys, 'frozen', False):
        exe_dir = Path(sys.executable).parent
    else:
        exe_dir = Path(__file__).parent.parent
    return exe_dir / "config.json"


def load_config(config_path: Optional[Path] = None) -> ClientConfig:
    """
    Load client configuration from a JSON file.

    Args:
        config_path: Path to the configuration file. If None, looks for
                    'config.json' next to the executable/script.

    Returns:
        ClientConfig object with validated configuration

    Raises:
        ValueError: If config is invalid
    """
    if config_path is None:
        config_path = default_config_path()

    if not config_path.exists():
        print(f"Warning: Config file '{config_path}' not found. Using default configuration.")
        return ClientConfig.default()

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {e}")
    except OSError as e:
        raise ValueError(f"Error reading config file: {e}")

    if not isinstance(data, dict):
        raise ValueError("Invalid configuration: top-level value must be an object")

    try:
        config = ClientConfig.from_dict(data)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid configuration: {e}")

    is_valid, error_message = config.validate()
    if not is_valid:
        raise ValueError(f"Invalid configuration: {error_message}")

    return config


def create_sample_config(output_path: Path):
    """
    Create a sample configuration file for exam administrators.

    Args:
        output_path: Path where to save the sample config
    """
    sample_config = {
        "judge_url": None,
        "api_base_url": None,
        "api_token": None,
        "http_timeout_seconds": 30,
        "autosave_interval_seconds": 3,
        "recovery_dir": ".examiner",
        "recovery_key": None,
        "batch_test_cases": True,
        "sandbox_time_limit_ms": 2000,
        "sandbox_memory_limit_mb": 256,
        "_comment": "This is a sample client configuration. Adjust values as needed.",
        "_instructions": {
            "judge_url": "Code execution service endpoint (null = run Python code in the local sandbox)",
            "api_base_url": "Platform API base URL used to fetch exams, submit attempts and save grades",
            "api_token": "Bearer token sent to the platform API",
            "http_timeout_seconds": "Timeout for every request to the judge or the platform API",
            "autosave_interval_seconds": "How often unsaved answers are written to the recovery directory",
            "recovery_dir": "Directory where autosave snapshots are kept",
            "recovery_key": "Fernet key (tools/keygen.py) used to encrypt autosave snapshots",
            "batch_test_cases": "Send all test cases in one judge request instead of one request per case",
            "sandbox_time_limit_ms": "CPU time limit for one local sandbox run",
            "sandbox_memory_limit_mb": "Memory limit for one local sandbox run (Unix only)"
        },
        "_examples": [
            {
                "description": "Offline lab machine: local sandbox, encrypted recovery",
                "recovery_key": "<output of tools/keygen.py>"
            },
            {
                "description": "Connected deployment",
                "judge_url": "https://exams.example.edu/api/execute",
                "api_base_url": "https://exams.example.edu",
                "http_timeout_seconds": 20
            }
        ]
    }

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(sample_config, f, indent=2)

    print(f"Sample configuration created at: {output_path}")
