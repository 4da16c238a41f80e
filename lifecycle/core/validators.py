"""Input validation and coercion helpers for lifecycle parameters."""
from __future__ import annotations
from typing import Optional

from .models import OffboardAction


def validate_principal_name(raw: str) -> str:
    """Validate a user principal name (``alias@domain``).

    Args:
        raw: Raw principal name input

    Returns:
        Trimmed principal name

    Raises:
        ValueError: If the principal name is invalid
    """
    upn = (raw or "").strip()
    if not upn or upn.count("@") != 1:
        raise ValueError(f"Invalid user principal name '{raw}'")

    local, domain = upn.split("@", 1)
    if not local or not domain or "." not in domain:
        raise ValueError(f"Invalid user principal name '{raw}'")
    if len(local) > 64:
        raise ValueError("User principal name alias must not exceed 64 characters")
    if len(upn) > 113:
        raise ValueError("User principal name exceeds maximum length")
    if any(char.isspace() for char in upn):
        raise ValueError("User principal name cannot contain whitespace")

    return upn


def validate_display_name(name: str, field: str = "Display name") -> str:
    """Validate a display name.

    Args:
        name: Name to validate
        field: Field name for error messages

    Returns:
        Trimmed name

    Raises:
        ValueError: If name is invalid
    """
    name = (name or "").strip()
    if not name:
        raise ValueError(f"{field} is required")
    if len(name) > 256:
        raise ValueError(f"{field} exceeds maximum length")
    return name


def parse_bool(raw: str, field: str) -> bool:
    """Strict boolean coercion: only "true" or "false", case-insensitive.

    Raises:
        ValueError: Naming ``field`` when the value is anything else
    """
    value = (raw or "").strip().lower()
    if value == "true":
        return True
    if value == "false":
        return False
    raise ValueError(f"Column '{field}' has invalid boolean value '{raw}' (expected true or false)")


def split_list(raw: Optional[str]) -> list[str]:
    """Split a comma separated cell, trimming entries and dropping blanks."""
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def parse_offboard_action(raw: str) -> OffboardAction:
    value = (raw or "").strip().lower()
    for action in OffboardAction:
        if action.value.lower() == value:
            return action
    raise ValueError(f"Column 'Action' has invalid value '{raw}' (expected Disable or Delete)")
