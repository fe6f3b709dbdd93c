"""Data normalization utilities for consistent data quality."""

import re
from typing import Optional


HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")
NUMERIC_ID_RE = re.compile(r"^\d{1,10}$")
# Largest value an INTEGER primary or foreign key column holds
MAX_DB_ID = 2**31 - 1
_NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]")


def normalize_email(email: Optional[str]) -> Optional[str]:
    """
    Normalize email to lowercase.

    Args:
        email: Raw email input

    Returns:
        Lowercased email or None if empty
    """
    if not email:
        return None
    normalized = email.strip().lower()
    return normalized or None


def normalize_name(name: Optional[str]) -> Optional[str]:
    """
    Normalize name by stripping whitespace and collapsing multiple spaces.

    Args:
        name: Raw name input

    Returns:
        Cleaned name or None if empty
    """
    if not name:
        return None
    # Strip leading/trailing whitespace and collapse internal spaces
    collapsed = " ".join(name.split())
    return collapsed or None


def normalize_optional_text(value: Optional[str]) -> Optional[str]:
    """Strip surrounding whitespace; blank becomes None."""
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def normalize_hex_color(color: Optional[str]) -> Optional[str]:
    """
    Validate a #RRGGBB color.

    Raises:
        ValueError: not a 6-digit hex color
    """
    if color is None:
        return None
    value = color.strip()
    if not HEX_COLOR_RE.match(value):
        raise ValueError(f"Invalid color '{color}'. Use #RRGGBB format (e.g., #4361ee).")
    return value


def alnum_only(value: str) -> str:
    """Drop every character outside [A-Za-z0-9]."""
    return _NON_ALNUM_RE.sub("", value)


def split_csv(value: Optional[str]) -> list[str]:
    """Split a comma separated query value, dropping blanks."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def is_db_id(value: int) -> bool:
    """True when value fits an INTEGER id column."""
    return 1 <= value <= MAX_DB_ID
