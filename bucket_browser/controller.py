from __future__ import annotations
"""Session wiring: profiles and settings in, a connected store and tree out."""
from dataclasses import replace
import logging
from typing import Callable

from .folder_tree import FolderTree
from .memory_storage import InMemoryStorageApi
from .profiles import ConnectionProfile, ProfileStorage
from .rest_storage import RestStorageApi
from .services import S3StorageApi
from .settings import AppSettings, SettingsStorage
from .storage import StorageApi, ValidationFailure
from .store import ObjectsStore
from .tasks import TaskRunner
from .uploads import UploadTracker

LOGGER = logging.getLogger(__name__)

ApiFactory = Callable[[ConnectionProfile, AppSettings], StorageApi]


class NotConnectedError(RuntimeError):
    """Raised when the browser is used before connecting to a backend."""


def build_storage_api(profile: ConnectionProfile, settings: AppSettings) -> StorageApi:
    """Create the backend adapter named by ``profile.adapter``."""

    public_base_url = profile.public_base_url or settings.public_base_url
    if profile.adapter == "memory":
        return InMemoryStorageApi(public_base_url=public_base_url, seed=True)
    if profile.adapter == "s3":
        if not profile.bucket:
            raise ValidationFailure(f"Profile '{profile.name}' has no bucket")
        return S3StorageApi(
            endpoint_url=profile.endpoint_url,
            access_key=profile.access_key,
            secret_key=profile.secret,
            bucket_name=profile.bucket,
            public_base_url=public_base_url,
        )
    if profile.adapter == "rest":
        base_url = profile.endpoint_url or settings.api_base_url
        if not base_url:
            raise ValidationFailure(f"Profile '{profile.name}' has no API base URL")
        return RestStorageApi(base_url, api_token=profile.secret, public_base_url=public_base_url)
    raise ValidationFailure(f"Unknown adapter type: {profile.adapter!r}")


class BrowserController:
    """Owns profiles and settings and the objects of the active connection."""

    def __init__(
        self,
        *,
        settings_storage: SettingsStorage | None = None,
        profile_storage: ProfileStorage | None = None,
        runner: TaskRunner | None = None,
        api_factory: ApiFactory | None = None,
    ):
        self._settings_storage = settings_storage or SettingsStorage()
        self._profile_storage = profile_storage or ProfileStorage()
        self._settings = self._settings_storage.load()
        self._profiles: list[ConnectionProfile] = self._profile_storage.load()
        self._runner = runner or TaskRunner()
        self._api_factory = api_factory or build_storage_api
        self._store: ObjectsStore | None = None
        self._tree: FolderTree | None = None
        self._uploads = UploadTracker()
        self._selected_profile: str | None = None
        self._disconnect_listener: Callable[[], None] | None = None

    @property
    def settings(self) -> AppSettings:
        return replace(self._settings)

    @property
    def is_connected(self) -> bool:
        return self._store is not None

    @property
    def selected_profile(self) -> str | None:
        return self._selected_profile

    @property
    def store(self) -> ObjectsStore:
        if self._store is None:
            raise NotConnectedError("Not connected to a storage backend")
        return self._store

    @property
    def tree(self) -> FolderTree:
        if self._tree is None:
            raise NotConnectedError("Not connected to a storage backend")
        return self._tree

    @property
    def uploads(self) -> UploadTracker:
        return self._uploads

    def save_settings(self, settings: AppSettings) -> None:
        self._settings = settings
        self._settings_storage.save(settings)

    def update_page_size(self, value: int) -> None:
        self.save_settings(replace(self._settings, page_size=max(int(value), 1)))

    def list_profiles(self) -> list[ConnectionProfile]:
        return list(self._profiles)

    def get_profile(self, name: str) -> ConnectionProfile:
        for profile in self._profiles:
            if profile.name == name:
                return profile
        raise ValueError(f"Profile '{name}' does not exist")

    def save_profile(self, profile: ConnectionProfile, *, original_name: str | None = None) -> None:
        if original_name and original_name != profile.name:
            self._profiles = [p for p in self._profiles if p.name != original_name]
        for idx, existing in enumerate(self._profiles):
            if existing.name == profile.name:
                self._profiles[idx] = profile
                break
        else:
            self._profiles.append(profile)
        self._profile_storage.save(self._profiles)

    def delete_profile(self, name: str) -> None:
        before = len(self._profiles)
        self._profiles = [p for p in self._profiles if p.name != name]
        if len(self._profiles) == before:
            raise ValueError(f"Profile '{name}' does not exist")
        if self._selected_profile == name:
            self._selected_profile = None
        self._profile_storage.save(self._profiles)

    def connect_with_profile(self, name: str) -> ObjectsStore:
        profile = self.get_profile(name)
        store = self.connect(self._api_factory(profile, self._settings))
        self._selected_profile = name
        return store

    def connect(self, api: StorageApi) -> ObjectsStore:
        """Bind a fresh store and folder tree to ``api`` and start loading."""

        self.disconnect()
        store = ObjectsStore(
            api,
            page_size=self._settings.page_size,
            runner=self._runner,
            uploads=self._uploads,
        )
        tree = FolderTree(api, runner=self._runner, on_navigate=store.navigate)
        self._store = store
        self._tree = tree
        self._disconnect_listener = store.changed.connect(self._remember_prefix)
        LOGGER.debug("Connected to %s", type(api).__name__)

        start_prefix = self._settings.last_prefix if self._settings.remember_last_prefix else ""
        tree.load_root()
        store.load_items(start_prefix, reset=True)
        return store

    def disconnect(self) -> None:
        if self._disconnect_listener is not None:
            self._disconnect_listener()
            self._disconnect_listener = None
        self._store = None
        self._tree = None

    def _remember_prefix(self, field: str) -> None:
        if field != "current_prefix" or not self._settings.remember_last_prefix:
            return
        prefix = self.store.current_prefix
        if prefix != self._settings.last_prefix:
            self.save_settings(replace(self._settings, last_prefix=prefix))
