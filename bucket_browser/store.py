from __future__ import annotations
"""Listing, view, selection and mutation state for one bucket browser."""
import logging
import threading
from typing import Callable, Iterable

from .keys import base_name, breadcrumbs, join_key, normalize_prefix, parent_prefix, validate_name
from .models import Breadcrumb, ListResult, ObjectItem
from .observable import Signal
from .selection import Selection
from .storage import StorageApi, UploadSource, ValidationFailure, source_name
from .tasks import TaskRunner
from .uploads import UploadTracker
from .view import check_view_options, derive_view

LOGGER = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50


def _format_error(exc: Exception, fallback: str) -> str:
    return str(exc) or fallback


class ObjectsStore:
    """Owns the paginated listing of the current prefix.

    All state is read through properties; the public methods are the only
    way to change it. Backend calls go through ``runner`` and their results
    are applied when they complete. Every listing request carries a
    generation number and only the newest one may touch ``items``.
    Listeners connected to :attr:`changed` receive the name of each field
    that changed (``items`` also implies ``filtered_items``).
    """

    def __init__(
        self,
        api: StorageApi,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        runner: TaskRunner | None = None,
        uploads: UploadTracker | None = None,
    ):
        self._api = api
        self._page_size = max(int(page_size), 1)
        self._runner = runner or TaskRunner()
        self._uploads = uploads
        self._lock = threading.RLock()
        self.changed = Signal()

        self._current_prefix = ""
        self._items: list[ObjectItem] = []
        self._cursor: str | None = None
        self._error: str | None = None
        self._search_query = ""
        self._filter_type = "all"
        self._sort_by = "name"
        self._sort_order = "asc"
        self._selection = Selection()
        self._move_failures: dict[str, str] = {}

        self._generation = 0
        self._listing_generation: int | None = None
        self._pending_mutations = 0
        self._view_cache: list[ObjectItem] | None = None

    @property
    def api(self) -> StorageApi:
        return self._api

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def current_prefix(self) -> str:
        return self._current_prefix

    @property
    def items(self) -> tuple[ObjectItem, ...]:
        with self._lock:
            return tuple(self._items)

    @property
    def cursor(self) -> str | None:
        return self._cursor

    @property
    def has_more(self) -> bool:
        return self._cursor is not None

    @property
    def loading(self) -> bool:
        with self._lock:
            return self._listing_generation is not None or self._pending_mutations > 0

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def search_query(self) -> str:
        return self._search_query

    @property
    def filter_type(self) -> str:
        return self._filter_type

    @property
    def sort_by(self) -> str:
        return self._sort_by

    @property
    def sort_order(self) -> str:
        return self._sort_order

    @property
    def breadcrumbs(self) -> list[Breadcrumb]:
        return breadcrumbs(self._current_prefix)

    @property
    def filtered_items(self) -> tuple[ObjectItem, ...]:
        with self._lock:
            if self._view_cache is None:
                self._view_cache = derive_view(
                    self._items,
                    search_query=self._search_query,
                    filter_type=self._filter_type,
                    sort_by=self._sort_by,
                    sort_order=self._sort_order,
                )
            return tuple(self._view_cache)

    @property
    def selected_keys(self) -> frozenset[str]:
        with self._lock:
            return self._selection.keys

    @property
    def selected_count(self) -> int:
        return len(self._selection)

    @property
    def selected_items(self) -> list[ObjectItem]:
        """Selected items that are part of the current view."""

        return [item for item in self.filtered_items if item.key in self._selection]

    @property
    def move_failures(self) -> dict[str, str]:
        with self._lock:
            return dict(self._move_failures)

    def is_selected(self, key: str) -> bool:
        return key in self._selection

    def load_items(self, prefix: str = "", reset: bool = True) -> None:
        prefix = normalize_prefix(prefix)
        with self._lock:
            changed = ["current_prefix", "loading", "error"]
            if reset:
                self._items = []
                self._cursor = None
                self._selection.clear()
                self._view_cache = None
                changed += ["items", "filtered_items", "cursor", "selected_keys"]
            self._current_prefix = prefix
            self._generation += 1
            generation = self._generation
            self._listing_generation = generation
            self._error = None
            cursor = self._cursor
        self.changed.emit_all(changed)

        LOGGER.debug("Listing '%s' (cursor=%s, generation=%d)", prefix, cursor, generation)
        self._runner.submit(
            lambda: self._api.list(prefix, cursor, self._page_size),
            on_success=lambda result: self._apply_listing(generation, reset, result),
            on_error=lambda exc: self._fail_listing(generation, exc),
            on_done=lambda: self._finish_listing(generation),
            description=f"list '{prefix}'",
        )

    def load_more(self) -> None:
        with self._lock:
            if not self.has_more or self.loading:
                return
            prefix = self._current_prefix
        self.load_items(prefix, reset=False)

    def refresh(self) -> None:
        self.load_items(self._current_prefix, reset=True)

    def navigate(self, prefix: str) -> None:
        self.load_items(prefix, reset=True)

    def navigate_up(self) -> None:
        self.load_items(parent_prefix(self._current_prefix), reset=True)

    def _apply_listing(self, generation: int, reset: bool, result: ListResult) -> None:
        with self._lock:
            if generation != self._generation:
                LOGGER.debug("Discarding stale listing (generation %d < %d)", generation, self._generation)
                return
            if reset:
                self._items = list(result.items)
            else:
                self._items = self._items + list(result.items)
            self._cursor = result.cursor
            self._view_cache = None
            count = len(self._items)
        LOGGER.debug("Listing generation %d now holds %d item(s)", generation, count)
        self.changed.emit_all(["items", "filtered_items", "cursor"])

    def _fail_listing(self, generation: int, exc: Exception) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._error = _format_error(exc, "Failed to load items")
        self.changed.emit("error")

    def _finish_listing(self, generation: int) -> None:
        with self._lock:
            if self._listing_generation != generation:
                return
            self._listing_generation = None
        self.changed.emit("loading")

    def set_search_query(self, query: str) -> None:
        self._update_view_option("search_query", query or "")

    def set_filter_type(self, filter_type: str) -> None:
        check_view_options(filter_type, self._sort_by, self._sort_order)
        self._update_view_option("filter_type", filter_type)

    def set_sorting(self, sort_by: str, sort_order: str) -> None:
        check_view_options(self._filter_type, sort_by, sort_order)
        with self._lock:
            changed = [
                name
                for name, value in (("sort_by", sort_by), ("sort_order", sort_order))
                if getattr(self, f"_{name}") != value
            ]
            if not changed:
                return
            self._sort_by = sort_by
            self._sort_order = sort_order
            self._view_cache = None
        self.changed.emit_all(changed + ["filtered_items"])

    def _update_view_option(self, name: str, value: str) -> None:
        with self._lock:
            attribute = f"_{name}"
            if getattr(self, attribute) == value:
                return
            setattr(self, attribute, value)
            self._view_cache = None
        self.changed.emit_all([name, "filtered_items"])

    def toggle_selection(self, key: str) -> None:
        with self._lock:
            self._selection.toggle(key)
        self.changed.emit("selected_keys")

    def select_all(self) -> None:
        keys = [item.key for item in self.filtered_items]
        with self._lock:
            self._selection.select_all(keys)
        self.changed.emit("selected_keys")

    def clear_selection(self) -> None:
        with self._lock:
            self._selection.clear()
        self.changed.emit("selected_keys")

    def select_range(self, from_key: str, to_key: str) -> None:
        keys = [item.key for item in self.filtered_items]
        with self._lock:
            applied = self._selection.select_range(from_key, to_key, keys)
        if applied:
            self.changed.emit("selected_keys")

    def extend_selection(self, key: str) -> None:
        """Shift-click: select from the last toggled key up to ``key``."""

        keys = [item.key for item in self.filtered_items]
        with self._lock:
            applied = self._selection.extend_to(key, keys)
        if applied:
            self.changed.emit("selected_keys")

    def create_folder(self, name: str) -> None:
        try:
            folder = validate_name(name)
        except ValidationFailure as exc:
            self._set_error(str(exc))
            return
        key = join_key(self._current_prefix, folder, folder=True)
        self._mutate(
            lambda: self._api.create_folder(key),
            description=f"create folder '{key}'",
            fallback="Failed to create folder",
        )

    def rename_item(self, old_key: str, new_name: str) -> None:
        try:
            name = validate_name(new_name)
        except ValidationFailure as exc:
            self._set_error(str(exc))
            return
        new_key = self._current_prefix + name + ("/" if old_key.endswith("/") else "")
        if new_key == old_key:
            return
        self._mutate(
            lambda: self._api.rename(old_key, new_key),
            description=f"rename '{old_key}' to '{new_key}'",
            fallback="Failed to rename",
        )

    def move_items(self, keys: Iterable[str], target_prefix: str) -> None:
        keys = list(keys)
        if not keys:
            return
        target = normalize_prefix(target_prefix)
        moves = []
        for key in keys:
            to_key = target + base_name(key) + ("/" if key.endswith("/") else "")
            if to_key == key:
                LOGGER.debug("Skipping move of '%s' onto itself", key)
                continue
            moves.append((key, to_key))
        if not moves:
            return

        def work() -> dict[str, str]:
            failures: dict[str, str] = {}
            for from_key, to_key in moves:
                try:
                    self._api.move(from_key, to_key)
                except Exception as exc:
                    LOGGER.warning("Move of '%s' to '%s' failed: %s", from_key, to_key, exc)
                    failures[from_key] = _format_error(exc, "Failed to move")
            return failures

        def finished(failures: dict[str, str]) -> None:
            with self._lock:
                self._move_failures = failures
            self.refresh()
            if failures:
                details = "; ".join(f"{key}: {message}" for key, message in failures.items())
                self._set_error(f"Failed to move {len(failures)} of {len(moves)} item(s): {details}")

        with self._lock:
            self._move_failures = {}
        self._mutate(
            work,
            description=f"move {len(moves)} item(s) to '{target}'",
            fallback="Failed to move items",
            on_success=finished,
        )

    def delete_items(self, keys: Iterable[str]) -> None:
        keys = list(keys)
        if not keys:
            return

        def cleared_selection() -> None:
            self.clear_selection()

        self._mutate(
            lambda: self._api.delete(keys),
            description=f"delete {len(keys)} item(s)",
            fallback="Failed to delete",
            on_done=cleared_selection,
        )

    def delete_selected(self) -> None:
        self.delete_items(sorted(self.selected_keys))

    def upload_file(
        self,
        source: UploadSource,
        name: str | None = None,
        content_type: str | None = None,
    ) -> None:
        try:
            file_name = validate_name(name or source_name(source))
        except ValidationFailure as exc:
            self._set_error(str(exc))
            return
        key = self._current_prefix + file_name
        tracker = self._uploads
        if tracker is not None:
            tracker.add(key, source_name(source) or key)
            tracker.update(key, 0, status="uploading")

        def uploaded(_item: ObjectItem) -> None:
            if tracker is not None:
                tracker.update(key, 100, status="completed")
            self.refresh()

        def failed(message: str) -> None:
            if tracker is not None:
                tracker.set_error(key, message)

        self._mutate(
            lambda: self._api.upload(key, source, content_type),
            description=f"upload '{key}'",
            fallback="Failed to upload",
            on_success=uploaded,
            on_failure=failed,
        )

    def upload_files(self, sources: Iterable[UploadSource]) -> None:
        for source in sources:
            self.upload_file(source)

    def _mutate(
        self,
        work: Callable[[], object],
        *,
        description: str,
        fallback: str,
        on_success: Callable[[object], None] | None = None,
        on_failure: Callable[[str], None] | None = None,
        on_done: Callable[[], None] | None = None,
    ) -> None:
        with self._lock:
            self._pending_mutations += 1
            self._error = None
        self.changed.emit_all(["loading", "error"])
        LOGGER.debug("Starting %s", description)

        def succeeded(result: object) -> None:
            if on_success is not None:
                on_success(result)
            else:
                self.refresh()

        def failed(exc: Exception) -> None:
            message = _format_error(exc, fallback)
            self._set_error(message)
            if on_failure is not None:
                on_failure(message)

        def done() -> None:
            with self._lock:
                self._pending_mutations -= 1
            if on_done is not None:
                on_done()
            self.changed.emit("loading")

        self._runner.submit(
            work,
            on_success=succeeded,
            on_error=failed,
            on_done=done,
            description=description,
        )

    def _set_error(self, message: str | None) -> None:
        with self._lock:
            self._error = message
        self.changed.emit("error")
