from __future__ import annotations
"""Progress bookkeeping for uploads started from the browser."""
from dataclasses import replace
import threading

from .models import UPLOAD_STATUSES, UploadProgress
from .observable import Signal


class UploadTracker:
    """Keeps one :class:`UploadProgress` per destination key."""

    def __init__(self) -> None:
        self._uploads: dict[str, UploadProgress] = {}
        self._lock = threading.Lock()
        self.changed = Signal()

    @property
    def uploads(self) -> list[UploadProgress]:
        with self._lock:
            return [replace(upload) for upload in self._uploads.values()]

    @property
    def active(self) -> list[UploadProgress]:
        return [upload for upload in self.uploads if upload.status == "uploading"]

    @property
    def completed(self) -> list[UploadProgress]:
        return [upload for upload in self.uploads if upload.status == "completed"]

    @property
    def failed(self) -> list[UploadProgress]:
        return [upload for upload in self.uploads if upload.status == "error"]

    @property
    def total_progress(self) -> int:
        uploads = self.uploads
        if not uploads:
            return 0
        return round(sum(upload.progress for upload in uploads) / len(uploads))

    def get(self, key: str) -> UploadProgress | None:
        with self._lock:
            upload = self._uploads.get(key)
            return replace(upload) if upload else None

    def add(self, key: str, source: str) -> None:
        with self._lock:
            self._uploads[key] = UploadProgress(key=key, source=source)
        self.changed.emit("uploads")

    def update(self, key: str, progress: int, status: str | None = None) -> None:
        if status is not None and status not in UPLOAD_STATUSES:
            raise ValueError(f"Unknown upload status: {status!r}")
        with self._lock:
            upload = self._uploads.get(key)
            if upload is None:
                return
            upload.progress = max(0, min(int(progress), 100))
            if status:
                upload.status = status
        self.changed.emit("uploads")

    def set_error(self, key: str, message: str) -> None:
        with self._lock:
            upload = self._uploads.get(key)
            if upload is None:
                return
            upload.status = "error"
            upload.error = message
        self.changed.emit("uploads")

    def clear_completed(self) -> None:
        with self._lock:
            self._uploads = {
                key: upload for key, upload in self._uploads.items() if upload.status != "completed"
            }
        self.changed.emit("uploads")

    def clear_all(self) -> None:
        with self._lock:
            self._uploads.clear()
        self.changed.emit("uploads")
