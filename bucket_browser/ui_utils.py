from __future__ import annotations
"""UI-agnostic helpers for formatting listing entries."""
from datetime import datetime, timezone

from .keys import base_name
from .view import parse_timestamp

SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")

ICONS_BY_EXTENSION = {
    "pdf": "file-text",
    "doc": "file-text",
    "docx": "file-text",
    "xls": "table",
    "xlsx": "table",
    "zip": "archive",
    "rar": "archive",
    "7z": "archive",
    "mp4": "video",
    "avi": "video",
    "mov": "video",
    "mp3": "music",
    "wav": "music",
    "flac": "music",
}


def format_size(size: int | None) -> str:
    if size is None:
        return "-"
    value = float(max(size, 0))
    for suffix in SIZE_UNITS:
        if value < 1024 or suffix == SIZE_UNITS[-1]:
            return f"{value:.1f} {suffix}" if suffix != "B" else f"{int(value)} {suffix}"
        value /= 1024
    return f"{size} B"


def format_date(last_modified: str | None, now: datetime | None = None) -> str:
    """Relative description of an ISO timestamp ("Today", "3 days ago")."""

    if not last_modified:
        return "-"
    timestamp = parse_timestamp(last_modified)
    if not timestamp:
        return last_modified
    moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    now = now or datetime.now(timezone.utc)
    days = (now - moment).days
    if days <= 0:
        return "Today"
    if days == 1:
        return "Yesterday"
    if days < 7:
        return f"{days} days ago"
    if days < 30:
        weeks = days // 7
        return f"{weeks} week{'s' if weeks > 1 else ''} ago"
    return moment.strftime("%Y-%m-%d")


def file_extension(name: str) -> str:
    base = base_name(name)
    if "." not in base:
        return ""
    return base.rsplit(".", 1)[-1].lower()


def is_image(content_type: str | None) -> bool:
    return bool(content_type and content_type.startswith("image/"))


def file_icon(content_type: str | None, name: str) -> str:
    if name.endswith("/"):
        return "folder"
    if is_image(content_type):
        return "image"
    return ICONS_BY_EXTENSION.get(file_extension(name), "file")
