"""Tests for merging collections and applying the merge.

The merge folds every extension's mutators into one list per variable,
newest first, with a replace at the head shutting out anything that
comes after it.  Applying walks those lists and rewrites an environment
snapshot.
"""

import pytest

from py_envs.logging import Logger, LogLevel
from py_envs.merged import (
    MergedEnvironmentVariableCollection,
    apply_to_environment,
    merge_collections,
)
from py_envs.mutators import (
    EnvironmentVariableCollection,
    EnvironmentVariableMutator,
    ExtensionOwnedMutator,
    MutatorType,
)

append = EnvironmentVariableMutator.append
prepend = EnvironmentVariableMutator.prepend
replace = EnvironmentVariableMutator.replace


def _owned(extension: str, kind: MutatorType, value: str) -> ExtensionOwnedMutator:
    """Build an extension-owned mutator for comparisons."""
    return ExtensionOwnedMutator(extension_identifier=extension, kind=kind, value=value)


def _collections(
    *extensions: tuple[str, list[tuple[str, EnvironmentVariableMutator]]],
) -> dict[str, EnvironmentVariableCollection]:
    """Build an ordered extension → collection mapping."""
    return {name: EnvironmentVariableCollection(pairs) for name, pairs in extensions}


class TestMergeOrder:
    """Verify the order mutators end up in."""

    def test_empty(self) -> None:
        """No collections should merge to nothing."""
        assert merge_collections({}) == {}

    def test_single_mutator(self) -> None:
        """A lone mutator should be tagged with its extension."""
        merged = merge_collections(_collections(("ext1", [("VAR", append("1"))])))
        assert merged == {"VAR": (_owned("ext1", MutatorType.APPEND, "1"),)}

    def test_latest_registration_first(self) -> None:
        """The most recently registered extension should come first."""
        merged = merge_collections(
            _collections(
                ("ext1", [("VAR", append("1"))]),
                ("ext2", [("VAR", append("2"))]),
            )
        )
        assert merged["VAR"] == (
            _owned("ext2", MutatorType.APPEND, "2"),
            _owned("ext1", MutatorType.APPEND, "1"),
        )

    def test_variables_merge_independently(self) -> None:
        """Each variable should get its own list."""
        merged = merge_collections(
            _collections(
                ("ext1", [("A", append("1")), ("B", prepend("2"))]),
                ("ext2", [("B", append("3"))]),
            )
        )
        assert merged["A"] == (_owned("ext1", MutatorType.APPEND, "1"),)
        assert merged["B"] == (
            _owned("ext2", MutatorType.APPEND, "3"),
            _owned("ext1", MutatorType.PREPEND, "2"),
        )

    def test_variable_order_follows_first_touch(self) -> None:
        """Variables should appear in the order they were first touched."""
        merged = merge_collections(
            _collections(
                ("ext1", [("B", append("1"))]),
                ("ext2", [("A", append("2")), ("B", append("3"))]),
            )
        )
        assert list(merged) == ["B", "A"]


class TestMergeReplace:
    """Verify how replace mutators shadow others."""

    def test_replace_at_head_discards_later(self) -> None:
        """A later mutator should be dropped when a replace is at the head."""
        merged = merge_collections(
            _collections(
                ("ext1", [("VAR", replace("A"))]),
                ("ext2", [("VAR", append("B"))]),
            )
        )
        assert merged["VAR"] == (_owned("ext1", MutatorType.REPLACE, "A"),)

    def test_replace_at_head_discards_later_replace(self) -> None:
        """A second replace should lose to the first."""
        merged = merge_collections(
            _collections(
                ("ext1", [("VAR", replace("A"))]),
                ("ext2", [("VAR", replace("B"))]),
            )
        )
        assert merged["VAR"] == (_owned("ext1", MutatorType.REPLACE, "A"),)

    def test_later_replace_keeps_earlier_entries(self) -> None:
        """A replace arriving later should not purge mutators already listed."""
        merged = merge_collections(
            _collections(
                ("extB", [("VAR", append("b"))]),
                ("extA", [("VAR", replace("a"))]),
            )
        )
        assert merged["VAR"] == (
            _owned("extA", MutatorType.REPLACE, "a"),
            _owned("extB", MutatorType.APPEND, "b"),
        )

    def test_later_replace_blocks_what_follows(self) -> None:
        """Once a replace is at the head, later extensions should be dropped."""
        merged = merge_collections(
            _collections(
                ("extB", [("VAR", append("b"))]),
                ("extA", [("VAR", replace("a"))]),
                ("extC", [("VAR", prepend("c"))]),
            )
        )
        assert merged["VAR"] == (
            _owned("extA", MutatorType.REPLACE, "a"),
            _owned("extB", MutatorType.APPEND, "b"),
        )

    def test_replace_only_blocks_its_variable(self) -> None:
        """A replace on one variable should not affect another."""
        merged = merge_collections(
            _collections(
                ("ext1", [("A", replace("x"))]),
                ("ext2", [("A", append("y")), ("B", append("z"))]),
            )
        )
        assert merged["B"] == (_owned("ext2", MutatorType.APPEND, "z"),)

    def test_shadowed_mutator_is_logged(self) -> None:
        """Dropping a mutator should leave a DEBUG entry naming both extensions."""
        logger = Logger()
        merge_collections(
            _collections(
                ("ext1", [("VAR", replace("A"))]),
                ("ext2", [("VAR", append("B"))]),
            ),
            logger=logger,
        )
        entries = logger.filter(source="merge")
        assert len(entries) == 1
        assert entries[0].level is LogLevel.DEBUG
        assert entries[0].extension == "ext2"
        assert "ext1" in entries[0].message


class TestApply:
    """Verify applying merged mutators to a snapshot."""

    def test_append_to_absent(self) -> None:
        """Appending to a missing variable should treat it as empty."""
        env: dict[str, str | None] = {}
        apply_to_environment({"FOO": (_owned("e", MutatorType.APPEND, "bar"),)}, env)
        assert env == {"FOO": "bar"}

    def test_append_to_existing(self) -> None:
        """Appending should add the value at the end."""
        env: dict[str, str | None] = {"FOO": "x"}
        apply_to_environment({"FOO": (_owned("e", MutatorType.APPEND, "bar"),)}, env)
        assert env["FOO"] == "xbar"

    def test_prepend_to_existing(self) -> None:
        """Prepending should add the value at the start."""
        env: dict[str, str | None] = {"FOO": "x"}
        apply_to_environment({"FOO": (_owned("e", MutatorType.PREPEND, "bar"),)}, env)
        assert env["FOO"] == "barx"

    def test_none_counts_as_empty(self) -> None:
        """A None value should behave like an empty string."""
        env: dict[str, str | None] = {"FOO": None}
        apply_to_environment({"FOO": (_owned("e", MutatorType.PREPEND, "bar"),)}, env)
        assert env["FOO"] == "bar"

    def test_replace_overwrites(self) -> None:
        """Replacing should discard the old value."""
        env: dict[str, str | None] = {"FOO": "x"}
        apply_to_environment({"FOO": (_owned("e", MutatorType.REPLACE, "bar"),)}, env)
        assert env["FOO"] == "bar"

    def test_applies_in_list_order(self) -> None:
        """Mutators should run in list order, not re-reversed."""
        env: dict[str, str | None] = {}
        apply_to_environment(
            {
                "VAR": (
                    _owned("ext2", MutatorType.APPEND, "2"),
                    _owned("ext1", MutatorType.APPEND, "1"),
                )
            },
            env,
        )
        assert env["VAR"] == "21"

    def test_replace_then_append(self) -> None:
        """Entries after a replace should apply on top of the replaced value."""
        env: dict[str, str | None] = {"VAR": "old"}
        apply_to_environment(
            {
                "VAR": (
                    _owned("extA", MutatorType.REPLACE, "a"),
                    _owned("extB", MutatorType.APPEND, "b"),
                )
            },
            env,
        )
        assert env["VAR"] == "ab"

    def test_untouched_variables_survive(self) -> None:
        """Variables without mutators should be left alone."""
        env: dict[str, str | None] = {"KEEP": "1", "GONE": None}
        apply_to_environment({"NEW": (_owned("e", MutatorType.REPLACE, "v"),)}, env)
        assert env == {"KEEP": "1", "GONE": None, "NEW": "v"}

    def test_returns_same_mapping(self) -> None:
        """The snapshot should be rewritten in place and returned."""
        env: dict[str, str | None] = {}
        assert apply_to_environment({}, env) is env


class TestApplyCaseInsensitive:
    """Verify name matching on case-insensitive platforms."""

    def test_matches_existing_casing(self) -> None:
        """PATH should land on an existing Path key, keeping its casing."""
        env: dict[str, str | None] = {"Path": "/usr/bin"}
        apply_to_environment(
            {"PATH": (_owned("e", MutatorType.APPEND, ":/opt/bin"),)},
            env,
            case_insensitive=True,
        )
        assert env == {"Path": "/usr/bin:/opt/bin"}

    def test_uses_variable_name_when_absent(self) -> None:
        """Without an existing key, the merged name should be used."""
        env: dict[str, str | None] = {"Other": "1"}
        apply_to_environment(
            {"PATH": (_owned("e", MutatorType.REPLACE, "/bin"),)},
            env,
            case_insensitive=True,
        )
        assert env == {"Other": "1", "PATH": "/bin"}

    def test_case_sensitive_keeps_keys_apart(self) -> None:
        """On case-sensitive platforms PATH and Path are different variables."""
        env: dict[str, str | None] = {"Path": "/usr/bin"}
        apply_to_environment(
            {"PATH": (_owned("e", MutatorType.APPEND, ":/opt/bin"),)},
            env,
            case_insensitive=False,
        )
        assert env == {"Path": "/usr/bin", "PATH": ":/opt/bin"}


class TestMergedEnvironmentVariableCollection:
    """Verify the merged collection object."""

    def test_scenario_two_appends(self) -> None:
        """Two appends should merge newest-first and apply as '21'."""
        merged = MergedEnvironmentVariableCollection(
            _collections(
                ("ext1", [("VAR", append("1"))]),
                ("ext2", [("VAR", append("2"))]),
            ),
            case_insensitive=False,
        )
        assert merged.get("VAR") == (
            _owned("ext2", MutatorType.APPEND, "2"),
            _owned("ext1", MutatorType.APPEND, "1"),
        )
        assert merged.apply_to_process_environment({}) == {"VAR": "21"}

    def test_scenario_replace_then_append(self) -> None:
        """A replace registered first should shut out a later append."""
        merged = MergedEnvironmentVariableCollection(
            _collections(
                ("ext1", [("VAR", replace("A"))]),
                ("ext2", [("VAR", append("B"))]),
            ),
            case_insensitive=False,
        )
        assert merged.get("VAR") == (_owned("ext1", MutatorType.REPLACE, "A"),)
        assert merged.apply_to_process_environment({"VAR": "x"}) == {"VAR": "A"}

    def test_uses_its_case_flag(self) -> None:
        """The collection should apply with the flag it was built with."""
        merged = MergedEnvironmentVariableCollection(
            _collections(("e", [("PATH", prepend("/opt:"))])),
            case_insensitive=True,
        )
        assert merged.case_insensitive is True
        assert merged.apply_to_process_environment({"Path": "/bin"}) == {"Path": "/opt:/bin"}

    def test_none_means_empty(self) -> None:
        """Building without collections should give an empty merge."""
        merged = MergedEnvironmentVariableCollection()
        assert len(merged) == 0
        assert merged.get("VAR") == ()

    def test_deterministic(self) -> None:
        """Merging the same collections twice should give equal results."""
        collections = _collections(
            ("ext1", [("A", append("1")), ("B", replace("2"))]),
            ("ext2", [("B", prepend("3")), ("A", prepend("4"))]),
        )
        assert MergedEnvironmentVariableCollection(collections) == MergedEnvironmentVariableCollection(
            collections
        )

    def test_contains(self) -> None:
        """Membership should report mutated variables."""
        merged = MergedEnvironmentVariableCollection(_collections(("e", [("A", append("1"))])))
        assert "A" in merged
        assert "B" not in merged

    def test_map_is_read_only(self) -> None:
        """The map view should reject writes."""
        merged = MergedEnvironmentVariableCollection()
        with pytest.raises(TypeError):
            merged.map["A"] = ()  # type: ignore[index]

    def test_to_dict(self) -> None:
        """The JSON form should list mutators with their extension."""
        merged = MergedEnvironmentVariableCollection(_collections(("e", [("A", append("1"))])))
        assert merged.to_dict() == {"A": [{"extensionIdentifier": "e", "type": 2, "value": "1"}]}
