"""
Input cleaning for registration and catalog import.

Each validator returns the cleaned value or raises ``ValidationError``.
"""

import re
from typing import Any, Optional

from library_app.core.exceptions import ValidationError

ENROLLMENT_PATTERN = re.compile(r"^\d{12}$")
PHONE_PATTERN = re.compile(r"^[6-9]\d{9}$")
EMPTY_MARKERS = {"", "nan", "null", "undefined", "none"}


def clean_enrollment_number(value: Optional[str]) -> str:
    if not value or not isinstance(value, str):
        raise ValidationError("Enrollment number is required")

    cleaned = re.sub(r"[-\s]", "", value.strip()).upper()
    if not ENROLLMENT_PATTERN.match(cleaned):
        raise ValidationError("Enrollment number must be exactly 12 digits")
    return cleaned


def clean_phone_number(value: Optional[str]) -> str:
    if not value:
        raise ValidationError("Phone number is required")

    cleaned = re.sub(r"[\s\-+]", "", value)
    if len(cleaned) == 12 and cleaned.startswith("91"):
        cleaned = cleaned[2:]
    if not PHONE_PATTERN.match(cleaned):
        raise ValidationError("Invalid Indian mobile number")
    return cleaned


def clean_cell(value: Any, default: Optional[str] = None) -> Optional[str]:
    """Normalise a spreadsheet cell: blanks and "nan"/"null" markers become ``default``."""
    if value is None:
        return default
    text = str(value).strip()
    if text.lower() in EMPTY_MARKERS:
        return default
    return text


def safe_int(value: Any) -> Optional[int]:
    text = clean_cell(value)
    if text is None:
        return None
    try:
        return int(float(text))
    except ValueError:
        return None


def split_genres(value: Any) -> list:
    text = clean_cell(value)
    if text is None:
        return []
    return [genre.strip() for genre in text.split(",") if genre.strip()]
