from datetime import datetime, timezone
from typing import Iterable, List
import os
import re


def get_utc_now() -> datetime:
    """Get current UTC datetime"""
    return datetime.now(timezone.utc)


def normalise_email(email: str) -> str:
    return email.strip().lower()


def get_file_extension(filename: str) -> str:
    """Lower-case extension without the leading dot"""
    return os.path.splitext(filename or "")[1].lower().lstrip(".")


def sanitize_filename(filename: str) -> str:
    """
    Sanitize a filename by removing invalid characters

    Args:
        filename: Original filename

    Returns:
        Sanitized filename
    """
    # Drop any client-side directory part
    filename = re.split(r"[\\/]", filename or "")[-1]
    # Remove invalid characters
    filename = re.sub(r'[<>:"/\\|?*]', '', filename)
    # Remove control characters
    filename = "".join(char for char in filename if ord(char) >= 32)
    return filename.strip() or "file"


def parse_question_ids(keys: Iterable) -> List[int]:
    """
    Convert the keys of a per-question payload to integer question ids

    Raises:
        ValueError: If any key is not an integer
    """
    return [int(key) for key in keys]
