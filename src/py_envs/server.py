"""Environment variables server, the host-facing facade.

The server is what a host application holds on to.  It combines:

- a **snapshot** of the process environment taken at construction
  (queried with ``get_variables`` / ``get_value``),
- the **collection registry** that extensions register their mutators
  with, and its merged view,
- a few **locations** hosts usually ask for alongside the environment:
  the interpreter path, the home directory and the configuration
  directory, as ``file://`` URIs.

The server never touches ``os.environ`` after construction.  To launch
a child process with the extensions' changes, copy the environment and
pass it through ``apply_to_environment``.

Configuration:
    Everything is a keyword argument with a module-level default.  The
    configuration directory is taken, in order, from the
    ``config_dir`` argument, the ``PY_ENVS_CONFIG_DIR`` variable in the
    snapshot, and ``~/.py-envs``.
"""

import os
import sys
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

from py_envs.logging import Logger, LogLevel
from py_envs.merged import MergedEnvironmentVariableCollection, Snapshot
from py_envs.mutators import EnvironmentVariableCollection, EnvironmentVariableMutator
from py_envs.names import IS_CASE_INSENSITIVE, normalize_key
from py_envs.registry import CollectionRegistry

CONFIG_DIR_VARIABLE = "PY_ENVS_CONFIG_DIR"
DEFAULT_CONFIG_DIR_NAME = ".py-envs"

HIDDEN_PARTITIONS: frozenset[str] = frozenset(
    {
        # macOS sleep image.
        "/private/var/vm",
        # UEFI boot partition on Linux.
        "/boot/efi",
    }
)
"""Mount points that are never offered to users as drives."""

_SOURCE = "server"


@dataclass(frozen=True)
class EnvVariable:
    """A variable from the process environment snapshot."""

    name: str
    value: str | None


class EnvVariablesServer:
    """Process environment queries plus the extension collection registry."""

    def __init__(
        self,
        *,
        environ: Mapping[str, str] | None = None,
        case_insensitive: bool = IS_CASE_INSENSITIVE,
        home_dir: Path | None = None,
        config_dir: Path | None = None,
        logger: Logger | None = None,
        registry: CollectionRegistry | None = None,
    ) -> None:
        """Snapshot the environment and prepare an empty registry.

        Args:
            environ: Environment to snapshot.  Defaults to ``os.environ``.
            case_insensitive: Whether variable names compare regardless
                of case.  Defaults to the running platform's behaviour.
            home_dir: The user's home directory.  Defaults to
                ``Path.home()``.
            config_dir: The configuration directory.  See the module
                docstring for the fallback order.
            logger: Shared audit log.  Defaults to the registry's log,
                or a new one.
            registry: An existing registry to serve.  A new one is
                created with the same ``case_insensitive`` flag if omitted.

        """
        self._case_insensitive = case_insensitive
        if registry is None:
            registry = CollectionRegistry(case_insensitive=case_insensitive, logger=logger)
        self._registry = registry
        self._logger = logger if logger is not None else registry.logger

        source = dict(os.environ) if environ is None else dict(environ)
        self._envs: dict[str, EnvVariable] = {}
        for key, value in source.items():
            name = normalize_key(key, case_insensitive)
            self._envs[name] = EnvVariable(name=name, value=value)

        self._home_dir = home_dir if home_dir is not None else Path.home()
        if config_dir is None:
            configured = self.get_value(CONFIG_DIR_VARIABLE)
            if configured is not None and configured.value:
                config_dir = Path(configured.value)
            else:
                config_dir = self._home_dir / DEFAULT_CONFIG_DIR_NAME
        self._config_dir = config_dir
        self._logger.log(
            LogLevel.INFO,
            f"Configuration directory URI: '{self.get_config_dir_uri()}'",
            source=_SOURCE,
        )

    # -- Process environment -------------------------------------------------

    def get_exec_path(self) -> str:
        """Return the path of the running interpreter."""
        return sys.executable

    def get_variables(self) -> list[EnvVariable]:
        """Return every variable in the snapshot."""
        return list(self._envs.values())

    def get_value(self, key: str) -> EnvVariable | None:
        """Return the variable named *key*, or None if it is not set."""
        return self._envs.get(normalize_key(key, self._case_insensitive))

    # -- Locations -----------------------------------------------------------

    def get_home_dir_uri(self) -> str:
        """Return the user's home directory as a ``file://`` URI."""
        return _to_uri(self._home_dir)

    def get_config_dir_uri(self) -> str:
        """Return the configuration directory as a ``file://`` URI."""
        return _to_uri(self._config_dir)

    def get_drives(self, mountpoints: Iterable[str]) -> list[str]:
        """Return ``file://`` URIs for the visible mount points.

        Enumerating volumes is platform specific and left to the host,
        which passes in the mount paths it found.

        Args:
            mountpoints: Mount paths of every mounted volume.

        Returns:
            URIs of the mount points that are not hidden system partitions.

        """
        return [_to_uri(Path(path)) for path in mountpoints if self.filter_hidden_partitions(path)]

    @staticmethod
    def filter_hidden_partitions(path: str) -> bool:
        """Return False for hidden and system partitions."""
        return path not in HIDDEN_PARTITIONS

    # -- Extension collections -----------------------------------------------

    @property
    def registry(self) -> CollectionRegistry:
        """Return the collection registry this server delegates to."""
        return self._registry

    @property
    def logger(self) -> Logger:
        """Return the shared audit log."""
        return self._logger

    @property
    def collections(self) -> Mapping[str, EnvironmentVariableCollection]:
        """Return every registered collection, in registration order."""
        return self._registry.collections

    @property
    def merged_collection(self) -> MergedEnvironmentVariableCollection:
        """Return the merge of every registered collection."""
        return self._registry.merged_collection

    def set(
        self,
        extension_identifier: str,
        persistent: bool,
        collection: EnvironmentVariableCollection
        | Mapping[str, EnvironmentVariableMutator]
        | Iterable[tuple[str, EnvironmentVariableMutator]],
    ) -> None:
        """Set an extension's environment variable collection."""
        self._registry.set(extension_identifier, persistent, collection)

    def delete(self, extension_identifier: str) -> None:
        """Delete an extension's environment variable collection."""
        self._registry.delete(extension_identifier)

    def apply_to_environment(self, env: Snapshot) -> Snapshot:
        """Apply the current merged collection to *env* in place."""
        return self._registry.merged_collection.apply_to_process_environment(env)


def _to_uri(path: Path) -> str:
    return path.expanduser().absolute().as_uri()
