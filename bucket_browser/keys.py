from __future__ import annotations
"""Pure helpers deriving folder structure from flat, ``/``-delimited keys."""
from typing import Iterable, Iterator

from .models import Breadcrumb
from .storage import ValidationFailure

DELIMITER = "/"


def normalize_prefix(prefix: str | None) -> str:
    """Return ``prefix`` without a leading slash and with a trailing one.

    The root prefix is the empty string.
    """

    cleaned = (prefix or "").strip().lstrip(DELIMITER)
    if cleaned and not cleaned.endswith(DELIMITER):
        cleaned += DELIMITER
    return cleaned


def segments(key: str) -> list[str]:
    return [part for part in key.split(DELIMITER) if part]


def base_name(key: str) -> str:
    """Last name segment of ``key`` (folders keep no trailing slash)."""

    parts = segments(key)
    return parts[-1] if parts else ""


def folder_name(prefix: str) -> str:
    return base_name(prefix)


def parent_prefix(key: str) -> str:
    parts = segments(key)
    if len(parts) <= 1:
        return ""
    return DELIMITER.join(parts[:-1]) + DELIMITER


def join_key(prefix: str, name: str, *, folder: bool = False) -> str:
    key = normalize_prefix(prefix) + name
    if folder and not key.endswith(DELIMITER):
        key += DELIMITER
    return key


def breadcrumbs(prefix: str) -> list[Breadcrumb]:
    parts = segments(prefix)
    return [
        Breadcrumb(name=part, prefix=DELIMITER.join(parts[: index + 1]) + DELIMITER)
        for index, part in enumerate(parts)
    ]


def is_direct_child(key: str, prefix: str) -> bool:
    """True when ``key`` sits exactly one level below ``prefix``."""

    if key == prefix or not key.startswith(prefix):
        return False
    remainder = key[len(prefix):]
    stripped = remainder[:-1] if remainder.endswith(DELIMITER) else remainder
    return bool(stripped) and DELIMITER not in stripped


def child_entry(key: str, prefix: str) -> tuple[str, bool] | None:
    """Map ``key`` to the immediate child of ``prefix`` it belongs to.

    Returns ``(child_key, is_folder)`` or ``None`` when ``key`` is not below
    ``prefix``. Deeper descendants fold into their first-level folder.
    """

    if key == prefix or not key.startswith(prefix):
        return None
    remainder = key[len(prefix):]
    head, sep, _ = remainder.partition(DELIMITER)
    if not head:
        return None
    if sep:
        return prefix + head + DELIMITER, True
    return key, False


def group_children(keys: Iterable[str], prefix: str) -> Iterator[tuple[str, bool]]:
    """Yield the distinct immediate children of ``prefix`` among ``keys``."""

    seen: set[str] = set()
    for key in keys:
        entry = child_entry(key, prefix)
        if entry is None or entry[0] in seen:
            continue
        seen.add(entry[0])
        yield entry


def replace_prefix(key: str, old_prefix: str, new_prefix: str) -> str:
    if not key.startswith(old_prefix):
        raise ValueError(f"{key!r} does not start with {old_prefix!r}")
    return new_prefix + key[len(old_prefix):]


def validate_name(name: str) -> str:
    """Return the stripped ``name`` or raise ``ValidationFailure``."""

    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationFailure("Name cannot be empty")
    if DELIMITER in cleaned:
        raise ValidationFailure(f"Name cannot contain '{DELIMITER}'")
    if cleaned in (".", ".."):
        raise ValidationFailure(f"'{cleaned}' is not a valid name")
    return cleaned
