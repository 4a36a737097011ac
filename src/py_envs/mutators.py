"""Environment variable mutators and per-extension collections.

An extension never writes to the environment directly.  It declares
*mutators* (requests to change one variable) and hands the whole set
to the registry as its **collection**:

- **MutatorType**: replace, append or prepend.  The numeric values are
  the ones used on the wire (``1``, ``2``, ``3``).
- **EnvironmentVariableMutator**: one request, a type plus the string
  payload.
- **ExtensionOwnedMutator**: a mutator tagged with the extension that
  asked for it, as found in the merged collection.
- **EnvironmentVariableCollection**: one extension's mutators, one per
  variable, in declaration order, plus a ``persistent`` flag.

Serializable form:
    Hosts exchange collections as a list of ``[name, {"value", "type"}]``
    pairs.  ``collection_from_serializable`` parses that shape and
    ``EnvironmentVariableCollection.to_serializable`` produces it.
    Parsing is the only place in the package that rejects input; the
    merge and apply steps trust what they are given.
"""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import IntEnum
from types import MappingProxyType
from typing import Any, TypeAlias


class CollectionFormatError(ValueError):
    """Raised when a serialized collection or mutator is malformed."""


class MutatorType(IntEnum):
    """How a mutator combines its value with the existing one."""

    REPLACE = 1
    APPEND = 2
    PREPEND = 3

    @classmethod
    def parse(cls, raw: object) -> "MutatorType":
        """Convert a wire value (number or name) into a ``MutatorType``.

        Args:
            raw: ``1``/``2``/``3`` or ``"replace"``/``"append"``/``"prepend"``
                in any case.

        Returns:
            The matching mutator type.

        Raises:
            CollectionFormatError: If *raw* names no known type.

        """
        match raw:
            case int() if not isinstance(raw, bool) and raw in {member.value for member in cls}:
                return cls(raw)
            case str() if raw.strip().upper() in cls.__members__:
                return cls[raw.strip().upper()]
        msg = f"Invalid mutator type: {raw!r}"
        raise CollectionFormatError(msg)


@dataclass(frozen=True)
class EnvironmentVariableMutator:
    """A single requested change to one variable.

    Attributes:
        kind: Whether to replace, append to, or prepend to the value.
            Serialized as ``"type"``. A wire number or name is accepted
            and converted; anything else raises ``CollectionFormatError``.
        value: The string payload.

    """

    kind: MutatorType
    value: str

    def __post_init__(self) -> None:
        """Coerce a wire number or name into a ``MutatorType``."""
        object.__setattr__(self, "kind", MutatorType.parse(self.kind))

    @classmethod
    def replace(cls, value: str) -> "EnvironmentVariableMutator":
        """Return a mutator that sets the variable to *value*."""
        return cls(kind=MutatorType.REPLACE, value=value)

    @classmethod
    def append(cls, value: str) -> "EnvironmentVariableMutator":
        """Return a mutator that appends *value* to the variable."""
        return cls(kind=MutatorType.APPEND, value=value)

    @classmethod
    def prepend(cls, value: str) -> "EnvironmentVariableMutator":
        """Return a mutator that prepends *value* to the variable."""
        return cls(kind=MutatorType.PREPEND, value=value)

    @classmethod
    def from_dict(cls, data: object) -> "EnvironmentVariableMutator":
        """Parse the serialized ``{"value": ..., "type": ...}`` form.

        Raises:
            CollectionFormatError: If *data* is not a well-formed mutator.

        """
        if not isinstance(data, Mapping):
            msg = f"Mutator must be an object, got {type(data).__name__}"
            raise CollectionFormatError(msg)
        if "type" not in data or "value" not in data:
            msg = "Mutator requires 'type' and 'value'"
            raise CollectionFormatError(msg)
        value = data["value"]
        if not isinstance(value, str):
            msg = f"Mutator value must be a string, got {type(value).__name__}"
            raise CollectionFormatError(msg)
        return cls(kind=MutatorType.parse(data["type"]), value=value)

    def to_dict(self) -> dict[str, Any]:
        """Return the serialized form with the numeric type."""
        return {"value": self.value, "type": int(self.kind)}


@dataclass(frozen=True)
class ExtensionOwnedMutator:
    """A mutator in the merged collection, tagged with its extension."""

    extension_identifier: str
    kind: MutatorType
    value: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", MutatorType.parse(self.kind))

    @classmethod
    def owned_by(
        cls, extension_identifier: str, mutator: EnvironmentVariableMutator
    ) -> "ExtensionOwnedMutator":
        """Tag *mutator* with the extension that declared it."""
        return cls(
            extension_identifier=extension_identifier,
            kind=mutator.kind,
            value=mutator.value,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the serialized form, including the owning extension."""
        return {
            "extensionIdentifier": self.extension_identifier,
            "type": int(self.kind),
            "value": self.value,
        }


SerializableCollection: TypeAlias = list[tuple[str, EnvironmentVariableMutator]]
"""Ordered ``(variable, mutator)`` pairs, the form extensions declare."""


class EnvironmentVariableCollection:
    """One extension's mutators, keyed by variable name.

    The mapping keeps the order in which the extension declared its
    mutators.  Declaring the same variable twice keeps the first
    position and the last mutator.
    """

    def __init__(
        self,
        entries: Mapping[str, EnvironmentVariableMutator]
        | Iterable[tuple[str, EnvironmentVariableMutator]] = (),
        *,
        persistent: bool = False,
    ) -> None:
        """Create a collection from a mapping or ordered pairs.

        Args:
            entries: The extension's mutators, in declaration order.
            persistent: Whether the collection should survive restarts.

        """
        pairs = entries.items() if isinstance(entries, Mapping) else entries
        self._entries: dict[str, EnvironmentVariableMutator] = dict(pairs)
        self._persistent = persistent

    @property
    def persistent(self) -> bool:
        """Return whether the collection should survive restarts."""
        return self._persistent

    @property
    def map(self) -> Mapping[str, EnvironmentVariableMutator]:
        """Return a read-only view of the variable → mutator mapping."""
        return MappingProxyType(self._entries)

    def items(self) -> list[tuple[str, EnvironmentVariableMutator]]:
        """Return the ``(variable, mutator)`` pairs in declaration order."""
        return list(self._entries.items())

    def to_serializable(self) -> list[list[Any]]:
        """Return the ``[name, {"value", "type"}]`` list used by hosts."""
        return [[name, mutator.to_dict()] for name, mutator in self._entries.items()]

    def __iter__(self) -> Iterator[str]:
        """Iterate over variable names in declaration order."""
        return iter(self._entries)

    def __len__(self) -> int:
        """Return the number of variables the collection touches."""
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        """Compare entries (including order) and the persistence flag."""
        if not isinstance(other, EnvironmentVariableCollection):
            return NotImplemented
        return self._persistent == other._persistent and list(self._entries.items()) == list(
            other._entries.items()
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        """Return a readable representation."""
        return f"EnvironmentVariableCollection({self.items()!r}, persistent={self._persistent})"


def collection_from_serializable(data: object, *, persistent: bool = False) -> EnvironmentVariableCollection:
    """Parse the serialized ``[[name, {"value", "type"}], ...]`` form.

    Args:
        data: The decoded JSON list.
        persistent: Whether the resulting collection is persistent.

    Returns:
        A collection preserving the order of *data*.

    Raises:
        CollectionFormatError: If *data* is not a list of name/mutator pairs.

    """
    if not isinstance(data, list | tuple):
        msg = f"Collection must be a list of pairs, got {type(data).__name__}"
        raise CollectionFormatError(msg)
    pairs: SerializableCollection = []
    for index, item in enumerate(data):
        if not isinstance(item, list | tuple) or len(item) != 2:  # noqa: PLR2004
            msg = f"Collection entry {index} must be a [name, mutator] pair"
            raise CollectionFormatError(msg)
        name, raw_mutator = item
        if not isinstance(name, str):
            msg = f"Collection entry {index} has a non-string variable name"
            raise CollectionFormatError(msg)
        pairs.append((name, EnvironmentVariableMutator.from_dict(raw_mutator)))
    return EnvironmentVariableCollection(pairs, persistent=persistent)
