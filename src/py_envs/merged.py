"""The merged collection: every extension's mutators combined.

When several extensions touch the same variable, their requests have to
be folded into one ordered list per variable.  The merge walks the
registered collections in registration order and, within each, the
mutators in declaration order:

1. If the variable's list already starts with a **replace**, the new
   mutator is dropped, since whatever it did would be overwritten anyway.
2. Otherwise the new mutator is inserted at the **front** of the list.

Mutators therefore end up applied in the reverse order to which they
were registered.  A replace only shadows mutators considered *after*
it reached the head of the list; anything inserted earlier stays and
is applied on top of the replaced value.

The merged collection is a snapshot: the registry builds a brand-new
one whenever a collection is set or deleted, and never patches an
existing one.

Applying:
    ``apply_to_environment`` walks the merged lists and rewrites a
    caller-owned mapping of variable name → value.  On case-insensitive
    platforms the mutator for ``PATH`` lands on an existing ``Path``
    key, keeping the casing already in the environment.
"""

from collections.abc import Mapping, MutableMapping, Sequence
from types import MappingProxyType
from typing import Any, TypeAlias, assert_never

from py_envs.logging import Logger, LogLevel
from py_envs.mutators import EnvironmentVariableCollection, ExtensionOwnedMutator, MutatorType
from py_envs.names import IS_CASE_INSENSITIVE, normalize_key

Snapshot: TypeAlias = MutableMapping[str, str | None]


def merge_collections(
    collections: Mapping[str, EnvironmentVariableCollection],
    *,
    logger: Logger | None = None,
) -> dict[str, tuple[ExtensionOwnedMutator, ...]]:
    """Combine per-extension collections into one list per variable.

    Args:
        collections: Extension identifier → collection, in registration order.
        logger: Receives a DEBUG entry for every mutator shadowed by a replace.

    Returns:
        Variable name → mutators in application order.

    """
    merged: dict[str, list[ExtensionOwnedMutator]] = {}
    for extension_identifier, collection in collections.items():
        for variable, mutator in collection.items():
            entry = merged.setdefault(variable, [])
            if entry and entry[0].kind is MutatorType.REPLACE:
                if logger is not None:
                    logger.log(
                        LogLevel.DEBUG,
                        f"{mutator.kind.name.lower()} of {variable} shadowed by "
                        f"replace from {entry[0].extension_identifier}",
                        source="merge",
                        extension=extension_identifier,
                    )
                continue
            entry.insert(0, ExtensionOwnedMutator.owned_by(extension_identifier, mutator))
    return {variable: tuple(entry) for variable, entry in merged.items()}


def apply_to_environment(
    merged: Mapping[str, Sequence[ExtensionOwnedMutator]],
    env: Snapshot,
    *,
    case_insensitive: bool = IS_CASE_INSENSITIVE,
) -> Snapshot:
    """Apply merged mutators to *env* in place.

    A missing or ``None`` value counts as the empty string when
    appending or prepending.  No mutator ever removes a variable.

    Args:
        merged: Variable name → mutators in application order.
        env: The environment snapshot to rewrite.
        case_insensitive: Whether to match names regardless of case.

    Returns:
        *env*, for chaining.

    """
    actual_names: dict[str, str] = {}
    if case_insensitive:
        actual_names = {normalize_key(name, case_insensitive): name for name in env}

    for variable, mutators in merged.items():
        actual = actual_names.get(normalize_key(variable, case_insensitive), variable)
        for mutator in mutators:
            match mutator.kind:
                case MutatorType.APPEND:
                    env[actual] = (env.get(actual) or "") + mutator.value
                case MutatorType.PREPEND:
                    env[actual] = mutator.value + (env.get(actual) or "")
                case MutatorType.REPLACE:
                    env[actual] = mutator.value
                case _:
                    assert_never(mutator.kind)
    return env


class MergedEnvironmentVariableCollection:
    """Read-only result of merging every registered collection.

    Built once from the registry's collections; the registry replaces
    the whole object on every change.
    """

    def __init__(
        self,
        collections: Mapping[str, EnvironmentVariableCollection] | None = None,
        *,
        case_insensitive: bool = IS_CASE_INSENSITIVE,
        logger: Logger | None = None,
    ) -> None:
        """Merge *collections* immediately.

        Args:
            collections: Extension identifier → collection, in
                registration order.  ``None`` means no collections.
            case_insensitive: Whether ``apply_to_process_environment``
                matches variable names regardless of case.
            logger: Optional audit log for shadowed mutators.

        """
        self._case_insensitive = case_insensitive
        self._map = merge_collections(collections or {}, logger=logger)

    @property
    def map(self) -> Mapping[str, tuple[ExtensionOwnedMutator, ...]]:
        """Return variable name → mutators in application order."""
        return MappingProxyType(self._map)

    @property
    def case_insensitive(self) -> bool:
        """Return whether variable names are matched regardless of case."""
        return self._case_insensitive

    def get(self, variable: str) -> tuple[ExtensionOwnedMutator, ...]:
        """Return the mutators for *variable*, or an empty tuple."""
        return self._map.get(variable, ())

    def apply_to_process_environment(self, env: Snapshot) -> Snapshot:
        """Apply this collection to *env* in place and return it."""
        return apply_to_environment(self._map, env, case_insensitive=self._case_insensitive)

    def to_dict(self) -> dict[str, list[dict[str, Any]]]:
        """Return the JSON-friendly form of the merged mutators."""
        return {
            variable: [mutator.to_dict() for mutator in mutators]
            for variable, mutators in self._map.items()
        }

    def __contains__(self, variable: object) -> bool:
        """Return whether any extension mutates *variable*."""
        return variable in self._map

    def __len__(self) -> int:
        """Return the number of mutated variables."""
        return len(self._map)

    def __eq__(self, other: object) -> bool:
        """Compare merged mutators, including their order."""
        if not isinstance(other, MergedEnvironmentVariableCollection):
            return NotImplemented
        return list(self._map.items()) == list(other._map.items())

    __hash__ = None  # type: ignore[assignment]
