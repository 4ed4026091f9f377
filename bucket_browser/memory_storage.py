from __future__ import annotations
"""In-memory storage backend, optionally persisted and optionally flaky."""
from dataclasses import asdict, replace
from datetime import datetime, timezone
import hashlib
import json
import logging
from pathlib import Path
import random
import threading
import time
from urllib.parse import quote

from .keys import group_children, normalize_prefix, replace_prefix
from .models import ListResult, ObjectItem
from .storage import (
    DEFAULT_LIST_LIMIT,
    AlreadyExists,
    NetworkFailure,
    NotFound,
    StorageApi,
    UploadSource,
    ValidationFailure,
    guess_content_type,
    read_source,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_PUBLIC_BASE_URL = "https://example-bucket.s3.amazonaws.com"

SAMPLE_ITEMS = (
    ("logo.png", 15432, "image/png", "2024-01-15"),
    ("favicon.ico", 2048, "image/x-icon", "2024-01-10"),
    ("landing/", None, None, "2024-02-01"),
    ("landing/hero.jpg", 245678, "image/jpeg", "2024-02-01"),
    ("landing/features-1.png", 89123, "image/png", "2024-02-02"),
    ("landing/features-2.png", 76543, "image/png", "2024-02-02"),
    ("blog/", None, None, "2024-01-20"),
    ("blog/2024/", None, None, "2024-01-20"),
    ("blog/2024/january/", None, None, "2024-01-20"),
    ("blog/2024/january/cover.jpg", 187654, "image/jpeg", "2024-01-20"),
    ("blog/2024/january/screenshot-1.png", 123456, "image/png", "2024-01-22"),
    ("assets/", None, None, "2024-01-05"),
    ("assets/icons/", None, None, "2024-01-05"),
    ("assets/icons/arrow-right.svg", 1234, "image/svg+xml", "2024-01-05"),
    ("assets/icons/check.svg", 987, "image/svg+xml", "2024-01-05"),
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _listing_order(key: str) -> tuple[bool, str]:
    return (not key.endswith("/"), key)


class InMemoryStorageApi(StorageApi):
    """Dictionary-backed :class:`StorageApi` used for demos and tests."""

    def __init__(
        self,
        items: list[ObjectItem] | None = None,
        *,
        public_base_url: str = "",
        latency: tuple[float, float] = (0.0, 0.0),
        failure_rate: float = 0.0,
        rng: random.Random | None = None,
        persist_path: str | Path | None = None,
        seed: bool = False,
    ):
        self._items: dict[str, ObjectItem] = {}
        self._lock = threading.RLock()
        self._public_base_url = (public_base_url or DEFAULT_PUBLIC_BASE_URL).rstrip("/")
        self._latency = latency
        self._failure_rate = failure_rate
        self._rng = rng or random.Random()
        self._persist_path = Path(persist_path) if persist_path else None
        self._load_persisted()
        for item in items or []:
            self._items[item.key] = replace(item, preview_url=None)
        if seed and not self._items:
            self.seed_sample_data()

    @property
    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._items)

    def seed_sample_data(self) -> None:
        with self._lock:
            for key, size, content_type, day in SAMPLE_ITEMS:
                modified = f"{day}T00:00:00+00:00"
                if key.endswith("/"):
                    self._items[key] = ObjectItem.folder(key, last_modified=modified)
                else:
                    self._items[key] = ObjectItem(
                        key=key,
                        size=size,
                        content_type=content_type,
                        last_modified=modified,
                    )
            self._persist()

    def list(
        self,
        prefix: str = "",
        cursor: str | None = None,
        limit: int | None = None,
    ) -> ListResult:
        self._simulate()
        prefix = normalize_prefix(prefix)
        limit = limit if limit and limit > 0 else DEFAULT_LIST_LIMIT
        with self._lock:
            children: dict[str, ObjectItem] = {}
            for child_key, is_folder in group_children(sorted(self._items), prefix):
                if is_folder:
                    marker = self._items.get(child_key)
                    children[child_key] = ObjectItem.folder(
                        child_key,
                        last_modified=marker.last_modified if marker else None,
                    )
                else:
                    children[child_key] = self._with_preview(self._items[child_key])

        ordered = sorted(children.values(), key=lambda item: _listing_order(item.key))
        start = 0
        if cursor:
            marker = _listing_order(cursor)
            while start < len(ordered) and _listing_order(ordered[start].key) <= marker:
                start += 1
        page = ordered[start:start + limit]
        next_cursor = page[-1].key if page and start + limit < len(ordered) else None
        return ListResult(items=page, cursor=next_cursor)

    def create_folder(self, prefix: str) -> None:
        self._simulate()
        key = normalize_prefix(prefix)
        if not key:
            raise ValidationFailure("Folder name cannot be empty")
        with self._lock:
            if key in self._items:
                raise AlreadyExists(f"Folder already exists: {key}")
            self._items[key] = ObjectItem.folder(key, last_modified=_now())
            self._persist()

    def rename(self, old_key: str, new_key: str) -> None:
        self._simulate()
        with self._lock:
            self._relocate(old_key, new_key, overwrite=False)

    def move(self, from_key: str, to_key: str, overwrite: bool = False) -> None:
        self._simulate()
        with self._lock:
            self._relocate(from_key, to_key, overwrite=overwrite)

    def delete(self, keys: list[str]) -> None:
        self._simulate()
        with self._lock:
            for key in keys:
                self._items.pop(key, None)
                if key.endswith("/"):
                    for child in [k for k in self._items if k.startswith(key)]:
                        del self._items[child]
            self._persist()

    def upload(
        self,
        key: str,
        source: UploadSource,
        content_type: str | None = None,
    ) -> ObjectItem:
        self._simulate()
        if not key or key.endswith("/"):
            raise ValidationFailure(f"Invalid object key: {key!r}")
        data = read_source(source)
        item = ObjectItem(
            key=key,
            size=len(data),
            content_type=content_type or guess_content_type(key),
            last_modified=_now(),
            etag=hashlib.md5(data).hexdigest(),
        )
        with self._lock:
            self._items[key] = item
            self._persist()
        return self._with_preview(item)

    def head(self, key: str) -> ObjectItem | None:
        self._simulate()
        with self._lock:
            item = self._items.get(key)
            if item is not None:
                return self._with_preview(item)
            if key.endswith("/") and self._folder_exists(key):
                return ObjectItem.folder(key)
        return None

    def get_public_url(self, key: str) -> str:
        return f"{self._public_base_url}/{quote(key)}"

    def _relocate(self, from_key: str, to_key: str, *, overwrite: bool) -> None:
        if not to_key:
            raise ValidationFailure("Target key cannot be empty")
        if from_key == to_key:
            return
        if from_key.endswith("/"):
            if not to_key.endswith("/"):
                to_key += "/"
            if to_key.startswith(from_key):
                raise ValidationFailure(f"Cannot move {from_key} into itself")
            if not self._folder_exists(from_key):
                raise NotFound(f"Item not found: {from_key}")
            if self._folder_exists(to_key) and not overwrite:
                raise AlreadyExists(f"Target already exists: {to_key}")
            moved = [key for key in self._items if key.startswith(from_key)]
            for key in moved:
                item = self._items.pop(key)
                target = replace_prefix(key, from_key, to_key)
                self._items[target] = replace(item, key=target)
        else:
            if from_key not in self._items:
                raise NotFound(f"Item not found: {from_key}")
            if to_key in self._items and not overwrite:
                raise AlreadyExists(f"Target already exists: {to_key}")
            item = self._items.pop(from_key)
            self._items[to_key] = replace(item, key=to_key)
        self._persist()

    def _folder_exists(self, prefix: str) -> bool:
        return any(key.startswith(prefix) for key in self._items)

    def _with_preview(self, item: ObjectItem) -> ObjectItem:
        if item.is_folder:
            return replace(item)
        return replace(item, preview_url=self.get_public_url(item.key))

    def _simulate(self) -> None:
        low, high = self._latency
        if high > 0:
            time.sleep(self._rng.uniform(low, high))
        if self._failure_rate and self._rng.random() < self._failure_rate:
            raise NetworkFailure("Simulated network error")

    def _load_persisted(self) -> None:
        if self._persist_path is None or not self._persist_path.exists():
            return
        try:
            data = json.loads(self._persist_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            LOGGER.warning("Ignoring unreadable storage file %s", self._persist_path)
            return
        for entry in data:
            try:
                item = ObjectItem(
                    key=entry["key"],
                    is_folder=bool(entry.get("is_folder", False)),
                    size=entry.get("size"),
                    content_type=entry.get("content_type"),
                    last_modified=entry.get("last_modified"),
                    etag=entry.get("etag"),
                )
            except (KeyError, TypeError, ValueError):
                continue
            self._items[item.key] = item

    def _persist(self) -> None:
        if self._persist_path is None:
            return
        payload = [asdict(replace(item, preview_url=None)) for _, item in sorted(self._items.items())]
        try:
            self._persist_path.parent.mkdir(parents=True, exist_ok=True)
            self._persist_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            LOGGER.warning("Could not persist storage contents to %s", self._persist_path)
