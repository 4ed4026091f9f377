from __future__ import annotations
"""S3-compatible storage backend built on boto3."""
from contextlib import contextmanager
from datetime import datetime, timezone
import logging
import os
from typing import Callable, Iterator
from urllib.parse import quote

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from .keys import normalize_prefix, replace_prefix
from .models import ListResult, ObjectItem
from .storage import (
    DEFAULT_LIST_LIMIT,
    AlreadyExists,
    NetworkFailure,
    NotFound,
    StorageApi,
    StorageError,
    UploadSource,
    ValidationFailure,
    guess_content_type,
)

LOGGER = logging.getLogger(__name__)

PAGE_SIZE = 1000
DELETE_BATCH_SIZE = 1000
PRESIGNED_URL_TTL = 3600
NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def _isoformat(value: object) -> str | None:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    return str(value) if value else None


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except StorageError:
        raise
    except ClientError as exc:
        if _error_code(exc) in NOT_FOUND_CODES:
            raise NotFound(f"{action}: {exc}") from exc
        raise NetworkFailure(f"{action}: {exc}") from exc
    except BotoCoreError as exc:
        raise NetworkFailure(f"{action}: {exc}") from exc


class S3StorageApi(StorageApi):
    """Maps the :class:`StorageApi` contract onto one S3 bucket."""

    def __init__(
        self,
        *,
        endpoint_url: str,
        access_key: str,
        secret_key: str,
        bucket_name: str,
        public_base_url: str = "",
        client_factory: Callable[..., object] | None = None,
    ):
        self._endpoint_url = endpoint_url
        self._access_key = access_key
        self._secret_key = secret_key
        self._bucket = bucket_name
        self._public_base_url = public_base_url.rstrip("/")
        self._client_factory = client_factory or boto3.client
        self._client = None

    @property
    def bucket_name(self) -> str:
        return self._bucket

    @property
    def client(self):
        if self._client is None:
            self._client = self._client_factory(
                "s3",
                endpoint_url=self._endpoint_url or None,
                aws_access_key_id=self._access_key,
                aws_secret_access_key=self._secret_key,
                config=Config(signature_version="s3v4"),
            )
        return self._client

    def list_buckets(self) -> list[str]:
        """Return the bucket names visible with the configured credentials."""

        with _translate_errors("List buckets failed"):
            response = self.client.list_buckets()
        return [bucket["Name"] for bucket in response.get("Buckets", [])]

    def list(
        self,
        prefix: str = "",
        cursor: str | None = None,
        limit: int | None = None,
    ) -> ListResult:
        prefix = normalize_prefix(prefix)
        remaining = limit if limit and limit > 0 else DEFAULT_LIST_LIMIT
        request_token = cursor
        next_token: str | None = None
        folders: list[ObjectItem] = []
        files: list[ObjectItem] = []

        while remaining > 0:
            params = {"Bucket": self._bucket, "Delimiter": "/", "MaxKeys": min(remaining, PAGE_SIZE)}
            if prefix:
                params["Prefix"] = prefix
            if request_token:
                params["ContinuationToken"] = request_token
            with _translate_errors(f"List '{prefix}' failed"):
                response = self.client.list_objects_v2(**params)

            for common in response.get("CommonPrefixes", []):
                folders.append(ObjectItem.folder(common["Prefix"]))
            for obj in response.get("Contents", []):
                if obj["Key"] == prefix:
                    continue
                files.append(self._object_item(obj["Key"], obj))
            remaining -= len(response.get("CommonPrefixes", [])) + len(response.get("Contents", []))

            truncated = response.get("IsTruncated", False)
            response_token = response.get("NextContinuationToken")
            if not (truncated and response_token):
                break
            if remaining > 0:
                request_token = response_token
                continue
            next_token = response_token

        folders.sort(key=lambda item: item.key)
        files.sort(key=lambda item: item.key)
        LOGGER.debug("Listed %d folder(s), %d file(s) under '%s'", len(folders), len(files), prefix)
        return ListResult(items=folders + files, cursor=next_token)

    def create_folder(self, prefix: str) -> None:
        key = normalize_prefix(prefix)
        if not key:
            raise ValidationFailure("Folder name cannot be empty")
        if self._object_exists(key):
            raise AlreadyExists(f"Folder already exists: {key}")
        with _translate_errors(f"Create folder '{key}' failed"):
            self.client.put_object(Bucket=self._bucket, Key=key, Body=b"")

    def rename(self, old_key: str, new_key: str) -> None:
        self._relocate(old_key, new_key, overwrite=False)

    def move(self, from_key: str, to_key: str, overwrite: bool = False) -> None:
        self._relocate(from_key, to_key, overwrite=overwrite)

    def delete(self, keys: list[str]) -> None:
        doomed: list[str] = []
        for key in keys:
            if key.endswith("/"):
                doomed.extend(self._keys_under(key))
            doomed.append(key)
        self._delete_batch(list(dict.fromkeys(doomed)))

    def upload(
        self,
        key: str,
        source: UploadSource,
        content_type: str | None = None,
    ) -> ObjectItem:
        if not key or key.endswith("/"):
            raise ValidationFailure(f"Invalid object key: {key!r}")
        content_type = content_type or guess_content_type(key)
        with _translate_errors(f"Upload '{key}' failed"):
            if isinstance(source, (bytes, bytearray)):
                response = self.client.put_object(
                    Bucket=self._bucket,
                    Key=key,
                    Body=bytes(source),
                    ContentType=content_type,
                )
                size = len(source)
                etag = response.get("ETag")
            else:
                self.client.upload_file(
                    os.fspath(source),
                    self._bucket,
                    key,
                    ExtraArgs={"ContentType": content_type},
                )
                size = os.path.getsize(source)
                etag = None
        return ObjectItem(
            key=key,
            size=size,
            content_type=content_type,
            last_modified=datetime.now(timezone.utc).isoformat(),
            etag=etag,
            preview_url=self.get_public_url(key),
        )

    def head(self, key: str) -> ObjectItem | None:
        try:
            with _translate_errors(f"Head '{key}' failed"):
                response = self.client.head_object(Bucket=self._bucket, Key=key)
        except NotFound:
            if key.endswith("/") and self._keys_under(key, limit=1):
                return ObjectItem.folder(key)
            return None
        if key.endswith("/"):
            return ObjectItem.folder(key, last_modified=_isoformat(response.get("LastModified")))
        return ObjectItem(
            key=key,
            size=response.get("ContentLength"),
            content_type=response.get("ContentType"),
            last_modified=_isoformat(response.get("LastModified")),
            etag=response.get("ETag"),
            preview_url=self.get_public_url(key),
        )

    def get_public_url(self, key: str) -> str:
        if self._public_base_url:
            return f"{self._public_base_url}/{quote(key)}"
        with _translate_errors(f"Presign '{key}' failed"):
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self._bucket, "Key": key},
                ExpiresIn=PRESIGNED_URL_TTL,
            )

    def _object_item(self, key: str, obj: dict) -> ObjectItem:
        return ObjectItem(
            key=key,
            size=obj.get("Size"),
            last_modified=_isoformat(obj.get("LastModified")),
            etag=obj.get("ETag"),
            content_type=guess_content_type(key, fallback="") or None,
            preview_url=self.get_public_url(key),
        )

    def _relocate(self, from_key: str, to_key: str, *, overwrite: bool) -> None:
        if not to_key:
            raise ValidationFailure("Target key cannot be empty")
        if from_key == to_key:
            return
        if not from_key.endswith("/"):
            if not self._object_exists(from_key):
                raise NotFound(f"Item not found: {from_key}")
            if not overwrite and self._object_exists(to_key):
                raise AlreadyExists(f"Target already exists: {to_key}")
            self._copy(from_key, to_key)
            self._delete_batch([from_key])
            return

        if not to_key.endswith("/"):
            to_key += "/"
        if to_key.startswith(from_key):
            raise ValidationFailure(f"Cannot move {from_key} into itself")
        sources = self._keys_under(from_key)
        if not sources:
            raise NotFound(f"Item not found: {from_key}")
        if not overwrite and self._keys_under(to_key, limit=1):
            raise AlreadyExists(f"Target already exists: {to_key}")
        for key in sources:
            self._copy(key, replace_prefix(key, from_key, to_key))
        self._delete_batch(sources)

    def _copy(self, from_key: str, to_key: str) -> None:
        with _translate_errors(f"Copy '{from_key}' failed"):
            self.client.copy_object(
                Bucket=self._bucket,
                Key=to_key,
                CopySource={"Bucket": self._bucket, "Key": from_key},
            )

    def _object_exists(self, key: str) -> bool:
        try:
            with _translate_errors(f"Head '{key}' failed"):
                self.client.head_object(Bucket=self._bucket, Key=key)
        except NotFound:
            return False
        return True

    def _keys_under(self, prefix: str, limit: int | None = None) -> list[str]:
        keys: list[str] = []
        token: str | None = None
        while True:
            params = {"Bucket": self._bucket, "Prefix": prefix, "MaxKeys": PAGE_SIZE}
            if token:
                params["ContinuationToken"] = token
            with _translate_errors(f"List '{prefix}' failed"):
                response = self.client.list_objects_v2(**params)
            keys.extend(obj["Key"] for obj in response.get("Contents", []))
            if limit is not None and len(keys) >= limit:
                return keys[:limit]
            token = response.get("NextContinuationToken")
            if not (response.get("IsTruncated") and token):
                return keys

    def _delete_batch(self, keys: list[str]) -> None:
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            chunk = keys[start:start + DELETE_BATCH_SIZE]
            with _translate_errors("Delete failed"):
                response = self.client.delete_objects(
                    Bucket=self._bucket,
                    Delete={"Objects": [{"Key": key} for key in chunk], "Quiet": True},
                )
            errors = response.get("Errors") or []
            if errors:
                failed = ", ".join(error.get("Key", "?") for error in errors)
                raise NetworkFailure(f"Delete failed for: {failed}")
