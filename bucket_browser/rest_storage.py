from __future__ import annotations
"""Storage backend talking to an object-store worker over HTTP."""
import logging
from typing import Iterator
from urllib.parse import quote

import requests

from .keys import normalize_prefix, parent_prefix, replace_prefix
from .models import ListResult, ObjectItem
from .storage import (
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

DEFAULT_TIMEOUT = 30
WALK_PAGE_SIZE = 1000


class RestStorageApi(StorageApi):
    """Client for the worker API.

    Endpoints: ``GET /objects`` (delimited listing with ``objects``,
    ``prefixes`` and ``cursor``), ``POST /folder``, ``PUT|DELETE /object``
    and ``POST /move``. Folder cascades are driven from this side because
    the worker only handles single keys.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_token: str = "",
        public_base_url: str = "",
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._base_url = base_url.rstrip("/")
        self._public_base_url = public_base_url.rstrip("/")
        self._session = session or requests.Session()
        self._timeout = timeout
        if api_token:
            self._session.headers["Authorization"] = f"Bearer {api_token}"

    def list(
        self,
        prefix: str = "",
        cursor: str | None = None,
        limit: int | None = None,
    ) -> ListResult:
        prefix = normalize_prefix(prefix)
        payload = self._list_raw(prefix, cursor=cursor, limit=limit)
        folders = [
            ObjectItem.folder(value)
            for value in payload.get("prefixes") or []
            if value != prefix
        ]
        files = [
            self._object_item(obj)
            for obj in payload.get("objects") or []
            if obj.get("key") and obj["key"] != prefix
        ]
        folders.sort(key=lambda item: item.key)
        files.sort(key=lambda item: item.key)
        return ListResult(items=folders + files, cursor=payload.get("cursor") or None)

    def create_folder(self, prefix: str) -> None:
        key = normalize_prefix(prefix)
        if not key:
            raise ValidationFailure("Folder name cannot be empty")
        self._request("POST", "/folder", params={"prefix": key})

    def rename(self, old_key: str, new_key: str) -> None:
        self._relocate(old_key, new_key, overwrite=False)

    def move(self, from_key: str, to_key: str, overwrite: bool = False) -> None:
        self._relocate(from_key, to_key, overwrite=overwrite)

    def delete(self, keys: list[str]) -> None:
        for key in keys:
            if key.endswith("/"):
                for child in self._walk(key):
                    self._request("DELETE", "/object", params={"key": child})
            self._request("DELETE", "/object", params={"key": key}, missing_ok=True)

    def upload(
        self,
        key: str,
        source: UploadSource,
        content_type: str | None = None,
    ) -> ObjectItem:
        if not key or key.endswith("/"):
            raise ValidationFailure(f"Invalid object key: {key!r}")
        data = read_source(source)
        content_type = content_type or guess_content_type(key)
        response = self._request(
            "PUT",
            "/object",
            params={"key": key},
            data=data,
            headers={"Content-Type": content_type},
        )
        payload = response.json() if response.content else {}
        return ObjectItem(
            key=payload.get("key", key),
            size=len(data),
            content_type=content_type,
            last_modified=payload.get("uploaded"),
            etag=payload.get("etag"),
            preview_url=self.get_public_url(key),
        )

    def head(self, key: str) -> ObjectItem | None:
        parent = parent_prefix(key)
        folder_key = normalize_prefix(key)
        cursor = None
        while True:
            payload = self._list_raw(parent, cursor=cursor, limit=WALK_PAGE_SIZE)
            for obj in payload.get("objects") or []:
                if obj.get("key") == key:
                    return self._object_item(obj)
            if folder_key in (payload.get("prefixes") or []):
                return ObjectItem.folder(folder_key)
            cursor = payload.get("cursor")
            if not cursor:
                return None

    def get_public_url(self, key: str) -> str:
        if self._public_base_url:
            return f"{self._public_base_url}/{quote(key)}"
        request = requests.Request("GET", f"{self._base_url}/object", params={"key": key}).prepare()
        return request.url

    def _relocate(self, from_key: str, to_key: str, *, overwrite: bool) -> None:
        if not to_key:
            raise ValidationFailure("Target key cannot be empty")
        if from_key == to_key:
            return
        if not from_key.endswith("/"):
            if not overwrite and self.head(to_key) is not None:
                raise AlreadyExists(f"Target already exists: {to_key}")
            self._request("POST", "/move", json={"from": from_key, "to": to_key})
            return

        if not to_key.endswith("/"):
            to_key += "/"
        if to_key.startswith(from_key):
            raise ValidationFailure(f"Cannot move {from_key} into itself")
        sources = list(self._walk(from_key))
        marker = self.head(from_key)
        if not sources and marker is None:
            raise NotFound(f"Item not found: {from_key}")
        if not overwrite and self.head(to_key) is not None:
            raise AlreadyExists(f"Target already exists: {to_key}")
        for key in sources:
            self._request("POST", "/move", json={"from": key, "to": replace_prefix(key, from_key, to_key)})
        if marker is not None:
            self._request("POST", "/move", json={"from": from_key, "to": to_key}, missing_ok=True)

    def _walk(self, prefix: str) -> Iterator[str]:
        """Yield every object key below ``prefix``, descending into folders."""

        pending = [prefix]
        while pending:
            current = pending.pop()
            cursor = None
            while True:
                payload = self._list_raw(current, cursor=cursor, limit=WALK_PAGE_SIZE)
                for obj in payload.get("objects") or []:
                    if obj.get("key") and obj["key"] != prefix:
                        yield obj["key"]
                pending.extend(value for value in payload.get("prefixes") or [] if value != current)
                cursor = payload.get("cursor")
                if not cursor:
                    break

    def _list_raw(self, prefix: str, *, cursor: str | None = None, limit: int | None = None) -> dict:
        params: dict[str, str | int] = {"prefix": prefix}
        if cursor:
            params["cursor"] = cursor
        if limit:
            params["limit"] = limit
        return self._request("GET", "/objects", params=params).json()

    def _object_item(self, obj: dict) -> ObjectItem:
        metadata = obj.get("httpMetadata") or {}
        return ObjectItem(
            key=obj["key"],
            size=obj.get("size"),
            etag=obj.get("etag"),
            last_modified=obj.get("uploaded"),
            content_type=metadata.get("contentType"),
            preview_url=self.get_public_url(obj["key"]),
        )

    def _request(self, method: str, path: str, *, missing_ok: bool = False, **kwargs) -> requests.Response:
        url = f"{self._base_url}{path}"
        try:
            response = self._session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.RequestException as exc:
            raise NetworkFailure(f"{method} {path} failed: {exc}") from exc
        if response.status_code == 404:
            if missing_ok:
                return response
            raise NotFound(f"{method} {path}: not found")
        if response.status_code == 409:
            raise AlreadyExists(f"{method} {path}: already exists")
        if response.status_code == 400:
            raise ValidationFailure(f"{method} {path}: {response.text or 'bad request'}")
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise NetworkFailure(f"{method} {path} failed: {exc}") from exc
        LOGGER.debug("%s %s -> %s", method, path, response.status_code)
        return response
