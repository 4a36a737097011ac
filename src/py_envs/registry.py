"""Collection registry: which extension asked for what.

The registry maps each extension identifier to its
``EnvironmentVariableCollection`` and owns the merged view of all of
them.  It is the only mutable state in the package:

- ``set``: register (or overwrite) an extension's collection.
- ``delete``: withdraw it; unknown identifiers are a no-op.
- ``merged_collection``: the current merge of every collection.

Registration order matters: it decides the order in which the merge
considers collections.  Overwriting an existing extension keeps its
original position, the way assigning to an existing ``dict`` key does.

Every change discards the merged collection and builds a new one from
scratch.  Extensions are few and collections small, so a full rebuild
costs less than tracking which variables a change touched.

Thread safety:
    A single re-entrant lock is held across "change the registry →
    rebuild the merge".  The new merged collection is published by
    swapping one attribute, so a reader sees either the old merge or
    the new one, never a half-built one.
"""

import threading
from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType
from typing import TypeAlias

from py_envs.logging import Logger, LogLevel
from py_envs.merged import MergedEnvironmentVariableCollection
from py_envs.mutators import EnvironmentVariableCollection, EnvironmentVariableMutator
from py_envs.names import IS_CASE_INSENSITIVE

ChangeListener: TypeAlias = Callable[[MergedEnvironmentVariableCollection], None]

_SOURCE = "registry"


class CollectionRegistry:
    """Ordered registry of per-extension collections plus their merge."""

    def __init__(
        self,
        *,
        case_insensitive: bool = IS_CASE_INSENSITIVE,
        logger: Logger | None = None,
    ) -> None:
        """Create an empty registry.

        Args:
            case_insensitive: Platform name semantics handed to every
                merged collection this registry builds.
            logger: Audit log; a private one is created if omitted.

        """
        self._case_insensitive = case_insensitive
        self._logger = logger if logger is not None else Logger()
        self._lock = threading.RLock()
        self._collections: dict[str, EnvironmentVariableCollection] = {}
        self._listeners: list[ChangeListener] = []
        self._merged = self._resolve_merged_collection()

    @property
    def logger(self) -> Logger:
        """Return the registry's audit log."""
        return self._logger

    @property
    def collections(self) -> Mapping[str, EnvironmentVariableCollection]:
        """Return a live, read-only view of the registered collections."""
        return MappingProxyType(self._collections)

    @property
    def merged_collection(self) -> MergedEnvironmentVariableCollection:
        """Return the merge of every registered collection."""
        return self._merged

    def set(
        self,
        extension_identifier: str,
        persistent: bool,
        collection: EnvironmentVariableCollection
        | Mapping[str, EnvironmentVariableMutator]
        | Iterable[tuple[str, EnvironmentVariableMutator]],
    ) -> None:
        """Register *collection* for *extension_identifier*.

        An existing collection for the same extension is overwritten
        and keeps its registration position.

        Args:
            extension_identifier: The contributing extension.
            persistent: Whether the collection should survive restarts.
            collection: The extension's mutators in declaration order.

        """
        entries = collection.items() if isinstance(collection, EnvironmentVariableCollection) else collection
        translated = EnvironmentVariableCollection(entries, persistent=persistent)
        with self._lock:
            previous = self._collections.get(extension_identifier)
            replaced = previous is not None
            self._collections[extension_identifier] = translated
            try:
                merged = self._resolve_merged_collection()
            except Exception:
                if previous is None:
                    del self._collections[extension_identifier]
                else:
                    self._collections[extension_identifier] = previous
                raise
            self._logger.log(
                LogLevel.INFO,
                f"{'replaced' if replaced else 'registered'} collection "
                f"({len(translated)} variable(s), persistent={persistent})",
                source=_SOURCE,
                extension=extension_identifier,
            )
            self._update_collections(merged)

    def delete(self, extension_identifier: str) -> None:
        """Withdraw the collection for *extension_identifier*, if any."""
        with self._lock:
            if self._collections.pop(extension_identifier, None) is None:
                self._logger.log(
                    LogLevel.DEBUG,
                    "delete ignored: no collection registered",
                    source=_SOURCE,
                    extension=extension_identifier,
                )
            else:
                self._logger.log(
                    LogLevel.INFO,
                    "deleted collection",
                    source=_SOURCE,
                    extension=extension_identifier,
                )
            self._update_collections()

    def persistent_collections(self) -> dict[str, EnvironmentVariableCollection]:
        """Return the collections flagged persistent, in registration order."""
        with self._lock:
            return {
                extension: collection
                for extension, collection in self._collections.items()
                if collection.persistent
            }

    def on_change(self, listener: ChangeListener) -> None:
        """Call *listener* with the new merged collection after every change."""
        with self._lock:
            self._listeners.append(listener)

    def _update_collections(self, merged: MergedEnvironmentVariableCollection | None = None) -> None:
        self._merged = merged if merged is not None else self._resolve_merged_collection()
        self._logger.log(
            LogLevel.DEBUG,
            f"merged collection rebuilt ({len(self._merged)} variable(s))",
            source=_SOURCE,
        )
        for listener in list(self._listeners):
            listener(self._merged)

    def _resolve_merged_collection(self) -> MergedEnvironmentVariableCollection:
        return MergedEnvironmentVariableCollection(
            self._collections,
            case_insensitive=self._case_insensitive,
            logger=self._logger,
        )

    def __contains__(self, extension_identifier: object) -> bool:
        """Return whether *extension_identifier* has a registered collection."""
        return extension_identifier in self._collections

    def __len__(self) -> int:
        """Return the number of registered collections."""
        return len(self._collections)
