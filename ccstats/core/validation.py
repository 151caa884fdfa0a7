"""Username and tag-name validation rules."""
from __future__ import annotations

from typing import Iterable, List

from ccstats.core.constants import (
    TAG_MAX_LENGTH,
    TAG_MIN_LENGTH,
    TAG_NAME_PATTERN,
    USERNAME_MAX_LENGTH,
    USERNAME_MIN_LENGTH,
    USERNAME_PATTERN,
)
from ccstats.core.exceptions import ValidationError


def validate_username(username: str) -> str:
    if not isinstance(username, str):
        raise ValidationError("Username must be a string")
    if len(username) < USERNAME_MIN_LENGTH:
        raise ValidationError(
            f"Username must be at least {USERNAME_MIN_LENGTH} characters"
        )
    if len(username) > USERNAME_MAX_LENGTH:
        raise ValidationError(f"Username cannot exceed {USERNAME_MAX_LENGTH} characters")
    if not USERNAME_PATTERN.fullmatch(username):
        raise ValidationError(
            "Username can only contain letters, numbers, dots, hyphens, and underscores"
        )
    return username


def validate_tag_name(name: str) -> str:
    """Return the trimmed tag name or raise naming the violated rule."""

    if not isinstance(name, str):
        raise ValidationError("Tag name must be a string", details={"tag": name})
    trimmed = name.strip()
    if len(trimmed) < TAG_MIN_LENGTH:
        raise ValidationError(
            f"Tag name must be at least {TAG_MIN_LENGTH} characters",
            details={"tag": name},
        )
    if len(trimmed) > TAG_MAX_LENGTH:
        raise ValidationError(
            f"Tag name cannot exceed {TAG_MAX_LENGTH} characters",
            details={"tag": name},
        )
    if not TAG_NAME_PATTERN.fullmatch(trimmed):
        raise ValidationError(
            "Tag name can only contain letters, numbers, spaces, dots, hyphens, and underscores",
            details={"tag": name},
        )
    return trimmed


def normalize_tag_names(names: Iterable[str]) -> List[str]:
    """Validate every name, then trim and drop duplicates.

    Duplicates are detected case-insensitively and the first spelling wins,
    so the result never trips the per-user ``lower(name)`` unique index.
    """

    validated = [validate_tag_name(name) for name in names]
    seen: set[str] = set()
    unique: List[str] = []
    for name in validated:
        key = name.lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(name)
    return unique
