from __future__ import annotations
"""Connection profile models and persistence."""
from dataclasses import dataclass
import json
from pathlib import Path

import keyring
from keyring.errors import KeyringError

from .settings import ADAPTER_TYPES

KEYRING_SERVICE = "bucket-browser"
PUBLIC_FIELDS = ("name", "adapter", "endpoint_url", "bucket", "access_key", "public_base_url")


@dataclass
class ConnectionProfile:
    """A saved backend connection.

    ``secret`` is the S3 secret key or the worker API token; it lives in the
    OS keychain, never in the profiles file.
    """

    name: str
    adapter: str = "s3"
    endpoint_url: str = ""
    bucket: str = ""
    access_key: str = ""
    secret: str = ""
    public_base_url: str = ""


class KeychainStore:
    """Encapsulates OS keychain access for secrets."""

    def __init__(self, service_name: str = KEYRING_SERVICE):
        self._service_name = service_name

    def get_secret(self, profile_name: str) -> str:
        if not profile_name:
            return ""
        try:
            return keyring.get_password(self._service_name, profile_name) or ""
        except KeyringError:
            return ""

    def set_secret(self, profile_name: str, secret: str) -> None:
        if not profile_name:
            return
        if not secret:
            self.delete_secret(profile_name)
            return
        try:
            keyring.set_password(self._service_name, profile_name, secret)
        except KeyringError:
            return

    def delete_secret(self, profile_name: str) -> None:
        if not profile_name:
            return
        try:
            keyring.delete_password(self._service_name, profile_name)
        except KeyringError:
            return


def _public_entry(profile: ConnectionProfile) -> dict[str, str]:
    return {field: getattr(profile, field) for field in PUBLIC_FIELDS}


class ProfileStorage:
    """JSON file of connection profiles with secrets kept in the keychain."""

    def __init__(self, storage_path: str | Path | None = None, keychain: KeychainStore | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".bucket_browser_connections.json"
        self._path = Path(storage_path)
        self._keychain = keychain or KeychainStore()

    def load(self) -> list[ConnectionProfile]:
        data = self._read()
        profiles: list[ConnectionProfile] = []
        saw_plaintext = False
        for entry in data:
            if not isinstance(entry, dict) or not entry.get("name"):
                continue
            name = entry["name"]
            adapter = entry.get("adapter", "s3")
            if adapter not in ADAPTER_TYPES:
                continue
            secret = entry.get("secret") or entry.get("secret_key") or ""
            if secret:
                saw_plaintext = True
                self._keychain.set_secret(name, secret)
            else:
                secret = self._keychain.get_secret(name)
            profiles.append(
                ConnectionProfile(
                    name=name,
                    adapter=adapter,
                    endpoint_url=entry.get("endpoint_url", ""),
                    bucket=entry.get("bucket", ""),
                    access_key=entry.get("access_key", ""),
                    secret=secret,
                    public_base_url=entry.get("public_base_url", ""),
                )
            )
        if saw_plaintext:
            self._write([_public_entry(profile) for profile in profiles])
        return profiles

    def save(self, profiles: list[ConnectionProfile]) -> None:
        for profile in profiles:
            self._keychain.set_secret(profile.name, profile.secret)
        existing_names = {entry.get("name") for entry in self._read() if isinstance(entry, dict)}
        current_names = {profile.name for profile in profiles}
        for name in existing_names - current_names:
            if isinstance(name, str) and name:
                self._keychain.delete_secret(name)
        self._write([_public_entry(profile) for profile in profiles])

    def _read(self) -> list:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return []
        return data if isinstance(data, list) else []

    def _write(self, data: list[dict[str, str]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")
