from __future__ import annotations
"""Application settings persistence helpers."""

from dataclasses import asdict, dataclass
import json
import logging
from pathlib import Path

ADAPTER_TYPES = ("memory", "s3", "rest")

LOGGER = logging.getLogger(__name__)


@dataclass
class AppSettings:
    """Persistent settings read by the browser session."""

    page_size: int = 50
    adapter_type: str = "memory"
    public_base_url: str = ""
    api_base_url: str = ""
    remember_last_prefix: bool = False
    last_prefix: str = ""


def _positive_int(value: object, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def _text(value: object) -> str:
    return value if isinstance(value, str) else ""


class SettingsStorage:
    """JSON-backed persistence for :class:`AppSettings`."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".bucket_browser_settings.json"
        self._path = Path(storage_path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> AppSettings:
        if not self._path.exists():
            return AppSettings()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            LOGGER.warning("Ignoring unreadable settings file %s", self._path)
            return AppSettings()
        if not isinstance(data, dict):
            return AppSettings()
        adapter_type = data.get("adapter_type", AppSettings.adapter_type)
        if adapter_type not in ADAPTER_TYPES:
            adapter_type = AppSettings.adapter_type
        remember = data.get("remember_last_prefix", AppSettings.remember_last_prefix)
        return AppSettings(
            page_size=_positive_int(data.get("page_size"), AppSettings.page_size),
            adapter_type=adapter_type,
            public_base_url=_text(data.get("public_base_url")),
            api_base_url=_text(data.get("api_base_url")),
            remember_last_prefix=remember if isinstance(remember, bool) else AppSettings.remember_last_prefix,
            last_prefix=_text(data.get("last_prefix")),
        )

    def save(self, settings: AppSettings) -> None:
        payload = asdict(settings)
        payload["page_size"] = max(int(settings.page_size), 1)
        if payload["adapter_type"] not in ADAPTER_TYPES:
            payload["adapter_type"] = AppSettings.adapter_type
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            # Persist best-effort; ignore filesystem issues.
            LOGGER.warning("Could not write settings file %s", self._path)
