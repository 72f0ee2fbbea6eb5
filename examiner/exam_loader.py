"""
Loading exam definitions from bank files.

Plain .json files are read as-is. Anything else is Fernet-encrypted, either
with a raw key or with a password: password-encrypted files start with
b'SALT' followed by the 16-byte PBKDF2 salt.
"""

import base64
import json
from pathlib import Path
from typing import Optional, Union

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .errors import ExamLoadError
from .models import ExamDefinition


SALT_PREFIX = b'SALT'
SALT_LENGTH = 16
PBKDF2_ITERATIONS = 480000


def derive_key_from_password(password: str, salt: bytes) -> bytes:
    """Derive a Fernet key from a password using PBKDF2."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    key_material = kdf.derive(password.encode('utf-8'))
    return base64.urlsafe_b64encode(key_material)


def is_password_encrypted(data: bytes) -> bool:
    return data.startswith(SALT_PREFIX)


def decrypt_bank(data: bytes, key_input: str) -> bytes:
    """
    Decrypt an encrypted bank.

    Raises:
        ExamLoadError: Missing or wrong key/password
    """
    if not key_input:
        raise ExamLoadError("A key or password is required for encrypted exam files")

    if is_password_encrypted(data):
        header = len(SALT_PREFIX) + SALT_LENGTH
        salt = data[len(SALT_PREFIX):header]
        data = data[header:]
        key = derive_key_from_password(key_input, salt)
    else:
        key = key_input.encode('utf-8')

    try:
        fernet = Fernet(key)
    except ValueError:
        raise ExamLoadError("The key is not a valid Fernet key")

    try:
        return fernet.decrypt(data)
    except InvalidToken:
        raise ExamLoadError("Wrong key or password, or the file is damaged")


def parse_exam(raw: Union[bytes, str]) -> ExamDefinition:
    """
    Parse exam JSON, either a bank dict or the platform's {exam, questions} payload.

    Raises:
        ExamLoadError: Invalid JSON or an invalid exam definition
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ExamLoadError(f"Exam file is not valid JSON: {e}")

    if not isinstance(data, dict):
        raise ExamLoadError("Exam file must contain a JSON object")

    try:
        if isinstance(data.get("exam"), dict):
            exam = ExamDefinition.from_api(data)
        else:
            exam = ExamDefinition.from_dict(data)
    except KeyError as e:
        raise ExamLoadError(f"Exam definition is missing field {e}")
    except (TypeError, ValueError) as e:
        raise ExamLoadError(f"Exam definition is invalid: {e}")

    ids = exam.question_ids()
    if len(ids) != len(set(ids)):
        raise ExamLoadError("Exam definition has duplicate question ids")
    return exam


def load_exam(path: Union[str, Path], key_input: Optional[str] = None) -> ExamDefinition:
    """
    Load an exam from a .json or encrypted bank file.

    Args:
        path: Bank file
        key_input: Fernet key or password; ignored for .json files

    Raises:
        ExamLoadError: The file cannot be read, decrypted or parsed
    """
    path = Path(path)
    try:
        with open(path, 'rb') as f:
            data = f.read()
    except OSError as e:
        raise ExamLoadError(f"Cannot read exam file {path}: {e}")

    if path.suffix.lower() != '.json':
        data = decrypt_bank(data, key_input)
    return parse_exam(data)
