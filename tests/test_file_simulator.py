import pytest

from core.exceptions import SchemaViolation
from core.file_simulator import as_mapping, simulate
from core.types import FileEntry, Operation
from tests.fakes.fake_agents import create_op, delete_op, update_op


def test_update_replaces_content():
    base = [FileEntry("a.js", "old")]
    assert simulate(base, [update_op("a.js", "new")]) == [FileEntry("a.js", "new")]


def test_update_on_missing_path_creates_it():
    assert simulate([], [update_op("b.js", "x")]) == [FileEntry("b.js", "x")]


def test_delete_on_missing_path_is_a_no_op():
    base = [FileEntry("a.js", "old")]
    assert simulate(base, [delete_op("missing.js")]) == base


def test_create_on_existing_path_overwrites_without_duplicates():
    base = [FileEntry("a.js", "old"), FileEntry("b.js", "b")]
    result = simulate(base, [create_op("a.js", "new"), create_op("a.js", "newer")])
    assert result == [FileEntry("a.js", "newer"), FileEntry("b.js", "b")]


def test_operations_apply_in_order():
    ops = [create_op("c.js", "1"), delete_op("c.js"), update_op("d.js", "2"), create_op("c.js", "3")]
    assert simulate([], ops) == [FileEntry("d.js", "2"), FileEntry("c.js", "3")]


def test_base_snapshot_is_never_mutated():
    base = [FileEntry("a.js", "old"), FileEntry("b.js", "b")]
    before = list(base)

    result = simulate(base, [update_op("a.js", "new"), delete_op("b.js")])

    assert base == before
    assert result is not base


def test_same_base_supports_independent_simulations():
    base = [FileEntry("a.js", "old")]
    first = simulate(base, [update_op("a.js", "one")])
    second = simulate(base, [update_op("a.js", "two")])
    assert as_mapping(first) == {"a.js": "one"}
    assert as_mapping(second) == {"a.js": "two"}


def test_duplicate_paths_in_base_collapse():
    base = [FileEntry("a.js", "1"), FileEntry("a.js", "2")]
    assert simulate(base, []) == [FileEntry("a.js", "2")]


def test_accepts_plain_string_actions():
    ops = [Operation(action="create_file", path="a.js", content="x"),
           Operation(action="delete_file", path="a.js")]
    assert simulate([], ops) == []


def test_unknown_action_is_rejected():
    with pytest.raises(SchemaViolation):
        simulate([], [Operation(action="rename_file", path="a.js")])
