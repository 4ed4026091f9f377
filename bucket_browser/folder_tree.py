from __future__ import annotations
"""Lazily expanded folder hierarchy for the navigation sidebar."""
import logging
import threading
from typing import Callable

from .keys import folder_name, normalize_prefix
from .models import FolderNode
from .observable import Signal
from .storage import StorageApi
from .tasks import TaskRunner

LOGGER = logging.getLogger(__name__)

TREE_LIST_LIMIT = 1000
MAX_FOLDER_PAGES = 50

NavigateFn = Callable[[str], None]


class FolderTree:
    """Folder-only view of the bucket, fetched one level at a time.

    The root level is listed by :meth:`load_root`; a node's children are
    listed the first time it is expanded with no children. Nodes are
    reachable by prefix through :meth:`find`. A failed listing leaves the
    affected level empty and is recorded in :attr:`errors`.
    """

    def __init__(
        self,
        api: StorageApi,
        *,
        runner: TaskRunner | None = None,
        on_navigate: NavigateFn | None = None,
    ):
        self._api = api
        self._runner = runner or TaskRunner()
        self._on_navigate = on_navigate
        self._lock = threading.RLock()
        self._roots: list[FolderNode] = []
        self._nodes: dict[str, FolderNode] = {}
        self._errors: dict[str, str] = {}
        self._root_generation = 0
        self._root_loading = False
        self._selected_prefix = ""
        self.changed = Signal()

    @property
    def roots(self) -> list[FolderNode]:
        with self._lock:
            return list(self._roots)

    @property
    def root_loading(self) -> bool:
        return self._root_loading

    @property
    def errors(self) -> dict[str, str]:
        with self._lock:
            return dict(self._errors)

    @property
    def selected_prefix(self) -> str:
        return self._selected_prefix

    def find(self, prefix: str) -> FolderNode | None:
        with self._lock:
            return self._nodes.get(normalize_prefix(prefix))

    def load_root(self) -> None:
        with self._lock:
            self._root_generation += 1
            generation = self._root_generation
            self._root_loading = True
        self.changed.emit("root_loading")
        self._runner.submit(
            lambda: self._list_folders(""),
            on_success=lambda prefixes: self._apply_root(generation, prefixes),
            on_error=lambda exc: self._fail_root(generation, exc),
            on_done=lambda: self._finish_root(generation),
            description="list root folders",
        )

    def reload(self) -> None:
        """Throw the whole tree away and fetch the root level again."""

        with self._lock:
            self._roots = []
            self._nodes = {}
            self._errors = {}
        self.changed.emit("roots")
        self.load_root()

    def toggle(self, node: FolderNode | str) -> None:
        node = self._resolve(node)
        if node is None:
            return
        with self._lock:
            node.is_expanded = not node.is_expanded
            needs_children = node.is_expanded and not node.children and not node.is_loading
        if needs_children:
            self.load_children(node)
        else:
            self.changed.emit("roots")

    def collapse_all(self) -> None:
        with self._lock:
            for node in self._nodes.values():
                node.is_expanded = False
        self.changed.emit("roots")

    def load_children(self, node: FolderNode | str) -> None:
        node = self._resolve(node)
        if node is None:
            return
        with self._lock:
            node.is_loading = True
        self.changed.emit("roots")
        self._runner.submit(
            lambda: self._list_folders(node.prefix),
            on_success=lambda prefixes: self._apply_children(node, prefixes),
            on_error=lambda exc: self._fail_children(node, exc),
            on_done=lambda: self._finish_children(node),
            description=f"list folders under '{node.prefix}'",
        )

    def select(self, node: FolderNode | str) -> None:
        """Navigate to a folder; independent of its expanded state."""

        prefix = node.prefix if isinstance(node, FolderNode) else normalize_prefix(node)
        self._selected_prefix = prefix
        self.changed.emit("selected_prefix")
        if self._on_navigate is not None:
            self._on_navigate(prefix)

    def _resolve(self, node: FolderNode | str) -> FolderNode | None:
        if isinstance(node, FolderNode):
            return node
        return self.find(node)

    def _list_folders(self, prefix: str) -> list[str]:
        prefixes: list[str] = []
        cursor = None
        for _ in range(MAX_FOLDER_PAGES):
            result = self._api.list(prefix, cursor, TREE_LIST_LIMIT)
            prefixes.extend(item.key for item in result.items if item.is_folder)
            cursor = result.cursor
            if cursor is None:
                break
        else:
            LOGGER.warning("Stopped listing folders under '%s' after %d pages", prefix, MAX_FOLDER_PAGES)
        return prefixes

    def _build_nodes(self, prefixes: list[str], level: int) -> list[FolderNode]:
        nodes = []
        for prefix in dict.fromkeys(prefixes):
            node = self._nodes.get(prefix)
            if node is None:
                node = FolderNode(prefix=prefix, name=folder_name(prefix), level=level)
            nodes.append(node)
        nodes.sort(key=lambda node: node.name)
        return nodes

    def _replace_level(self, old_nodes: list[FolderNode], new_nodes: list[FolderNode]) -> None:
        """Register ``new_nodes`` and forget subtrees that disappeared."""

        kept = {node.prefix for node in new_nodes}
        for node in old_nodes:
            if node.prefix not in kept:
                self._forget(node)
        for node in new_nodes:
            self._nodes[node.prefix] = node

    def _forget(self, node: FolderNode) -> None:
        if self._nodes.get(node.prefix) is node:
            del self._nodes[node.prefix]
        for child in node.children:
            self._forget(child)

    def _apply_root(self, generation: int, prefixes: list[str]) -> None:
        with self._lock:
            if generation != self._root_generation:
                return
            roots = self._build_nodes(prefixes, 0)
            self._replace_level(self._roots, roots)
            self._roots = roots
            self._errors.pop("", None)
        LOGGER.debug("Folder tree root has %d folder(s)", len(self._roots))
        self.changed.emit("roots")

    def _fail_root(self, generation: int, exc: Exception) -> None:
        with self._lock:
            if generation != self._root_generation:
                return
            self._roots = []
            self._nodes = {}
            self._errors[""] = str(exc) or "Failed to load folders"
        LOGGER.warning("Folder tree root failed to load: %s", exc)
        self.changed.emit("roots")

    def _finish_root(self, generation: int) -> None:
        with self._lock:
            if generation != self._root_generation:
                return
            self._root_loading = False
        self.changed.emit("root_loading")

    def _apply_children(self, node: FolderNode, prefixes: list[str]) -> None:
        with self._lock:
            if self._nodes.get(node.prefix) is not node:
                return
            children = self._build_nodes(prefixes, node.level + 1)
            self._replace_level(node.children, children)
            node.children = children
            node.has_children = bool(children)
            self._errors.pop(node.prefix, None)
        self.changed.emit("roots")

    def _fail_children(self, node: FolderNode, exc: Exception) -> None:
        with self._lock:
            if self._nodes.get(node.prefix) is not node:
                return
            for child in node.children:
                self._forget(child)
            node.children = []
            node.has_children = False
            self._errors[node.prefix] = str(exc) or "Failed to load folders"
        LOGGER.warning("Folder tree could not expand '%s': %s", node.prefix, exc)
        self.changed.emit("roots")

    def _finish_children(self, node: FolderNode) -> None:
        with self._lock:
            node.is_loading = False
        self.changed.emit("roots")
