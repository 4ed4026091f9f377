from __future__ import annotations
"""Abstract storage backend contract shared by every adapter."""
import mimetypes
import os
from typing import Union

from .models import ListResult, ObjectItem

UploadSource = Union[str, "os.PathLike[str]", bytes]

DEFAULT_LIST_LIMIT = 50


class StorageError(RuntimeError):
    """Base class for failures reported by a storage backend."""


class NetworkFailure(StorageError):
    """The backend could not be reached or the call failed transiently."""


class NotFound(StorageError):
    """The source key of an operation does not exist."""


class AlreadyExists(StorageError):
    """The target key of an operation is already taken."""


class ValidationFailure(StorageError):
    """The request was rejected before reaching the backend."""


class StorageApi:
    """Operations the object store engine needs from a backend.

    ``list`` returns only the direct children of ``prefix``; deeper keys are
    folded into one synthetic folder item. Folders come before files and the
    returned cursor, when passed back, yields the next page without gaps or
    duplicates. ``rename``, ``move`` and ``delete`` cascade over every key
    below a folder key.
    """

    def list(
        self,
        prefix: str = "",
        cursor: str | None = None,
        limit: int | None = None,
    ) -> ListResult:
        raise NotImplementedError

    def create_folder(self, prefix: str) -> None:
        raise NotImplementedError

    def rename(self, old_key: str, new_key: str) -> None:
        raise NotImplementedError

    def move(self, from_key: str, to_key: str, overwrite: bool = False) -> None:
        raise NotImplementedError

    def delete(self, keys: list[str]) -> None:
        raise NotImplementedError

    def upload(
        self,
        key: str,
        source: UploadSource,
        content_type: str | None = None,
    ) -> ObjectItem:
        raise NotImplementedError

    def head(self, key: str) -> ObjectItem | None:
        raise NotImplementedError

    def get_public_url(self, key: str) -> str:
        raise NotImplementedError


def read_source(source: UploadSource) -> bytes:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    with open(source, "rb") as handle:
        return handle.read()


def source_name(source: UploadSource) -> str:
    if isinstance(source, (bytes, bytearray)):
        return ""
    return os.path.basename(os.fspath(source))


def guess_content_type(key: str, fallback: str = "application/octet-stream") -> str:
    content_type, _ = mimetypes.guess_type(key)
    return content_type or fallback
