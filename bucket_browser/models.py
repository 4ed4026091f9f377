from __future__ import annotations
"""Data models describing objects, listings and the folder tree."""
from dataclasses import dataclass, field
from typing import Optional

FILTER_TYPES = ("all", "images", "folders")
SORT_FIELDS = ("name", "size", "modified")
SORT_ORDERS = ("asc", "desc")

UPLOAD_STATUSES = ("pending", "uploading", "completed", "error")


@dataclass
class ObjectItem:
    """A single key in the bucket; folders are synthetic and end with ``/``."""

    key: str
    is_folder: bool = False
    size: Optional[int] = None
    content_type: Optional[str] = None
    last_modified: Optional[str] = None
    etag: Optional[str] = None
    preview_url: Optional[str] = None

    def __post_init__(self) -> None:
        if self.is_folder:
            if not self.key.endswith("/"):
                raise ValueError(f"Folder key must end with '/': {self.key!r}")
            self.size = None
            self.content_type = None

    @classmethod
    def folder(cls, key: str, last_modified: str | None = None) -> "ObjectItem":
        if not key.endswith("/"):
            key += "/"
        return cls(key=key, is_folder=True, last_modified=last_modified)

    @property
    def is_image(self) -> bool:
        return bool(self.content_type and self.content_type.startswith("image/"))


@dataclass
class ListResult:
    """One page returned by a storage backend."""

    items: list[ObjectItem] = field(default_factory=list)
    cursor: Optional[str] = None


@dataclass(frozen=True)
class Breadcrumb:
    name: str
    prefix: str


@dataclass
class FolderNode:
    """Lazily populated node of the navigation tree."""

    prefix: str
    name: str
    level: int = 0
    is_expanded: bool = False
    has_children: bool = True
    is_loading: bool = False
    children: list["FolderNode"] = field(default_factory=list)


@dataclass
class UploadProgress:
    key: str
    source: str
    progress: int = 0
    status: str = "pending"
    error: Optional[str] = None
