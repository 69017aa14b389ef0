"""
Tests for materialization strategies.
"""

import pytest

from tmql_orchestration.core.materialization import MaterializationMode, append, replace, upsert
from tmql_orchestration.exceptions import MaterializationError, WriteConflictError
from tmql_orchestration.strategies import (
    AppendStrategy,
    ReplaceStrategy,
    UpsertStrategy,
    get_strategy,
    write_stage_for,
)
from tmql_orchestration.strategies.base import document_key, get_path


class TestRegistry:
    @pytest.mark.parametrize(
        "mode,cls",
        [
            (MaterializationMode.REPLACE, ReplaceStrategy),
            (MaterializationMode.UPSERT, UpsertStrategy),
            ("append", AppendStrategy),
        ],
    )
    def test_get_strategy(self, mode, cls):
        assert isinstance(get_strategy(mode), cls)

    def test_unknown_mode(self):
        with pytest.raises(ValueError, match="Unknown materialization mode"):
            get_strategy("truncate")


class TestWriteStages:
    def test_replace_uses_out(self):
        assert write_stage_for("daily", replace()) == {"$out": "daily"}

    def test_upsert_uses_merge(self):
        assert write_stage_for("users", upsert("_id")) == {
            "$merge": {"into": "users", "on": "_id", "whenMatched": "merge", "whenNotMatched": "insert"}
        }

    def test_compound_key(self):
        assert write_stage_for("users", upsert("tenant", "id"))["$merge"]["on"] == ["tenant", "id"]

    def test_append_fails_on_match(self):
        stage = write_stage_for("events", append())
        assert stage["$merge"]["on"] == "_id"
        assert stage["$merge"]["whenMatched"] == "fail"


class TestReplace:
    def test_overwrites(self):
        result = ReplaceStrategy().apply([{"_id": 1}], [{"_id": 2}], replace(), "out")
        assert result == [{"_id": 2}]


class TestUpsert:
    def test_updates_and_inserts(self):
        existing = [{"_id": 1, "name": "a", "score": 1}, {"_id": 2, "name": "b"}]
        incoming = [{"_id": 1, "score": 5}, {"_id": 3, "name": "c"}]
        result = UpsertStrategy().apply(existing, incoming, upsert("_id"), "out")
        assert result == [
            {"_id": 1, "name": "a", "score": 5},
            {"_id": 2, "name": "b"},
            {"_id": 3, "name": "c"},
        ]

    def test_does_not_mutate_input(self):
        existing = [{"_id": 1, "v": 1}]
        UpsertStrategy().apply(existing, [{"_id": 1, "v": 2}], upsert("_id"), "out")
        assert existing == [{"_id": 1, "v": 1}]

    def test_nested_compound_key(self):
        existing = [{"k": {"a": 1}, "region": "eu", "v": 1}]
        incoming = [{"k": {"a": 1}, "region": "eu", "v": 2}, {"k": {"a": 1}, "region": "us", "v": 3}]
        result = UpsertStrategy().apply(existing, incoming, upsert("k.a", "region"), "out")
        assert [doc["v"] for doc in result] == [2, 3]

    def test_missing_key_field(self):
        with pytest.raises(MaterializationError, match="missing key field '_id'"):
            UpsertStrategy().apply([], [{"name": "x"}], upsert("_id"), "out")


class TestAppend:
    def test_inserts(self):
        result = AppendStrategy().apply([{"_id": 1}], [{"_id": 2}], append(), "events")
        assert result == [{"_id": 1}, {"_id": 2}]

    def test_conflict_with_existing(self):
        with pytest.raises(WriteConflictError) as exc_info:
            AppendStrategy().apply([{"_id": 1}], [{"_id": 2}, {"_id": 1}], append(), "events")
        assert exc_info.value.keys == [1]
        assert exc_info.value.output == "events"

    def test_conflict_within_batch(self):
        with pytest.raises(WriteConflictError):
            AppendStrategy().apply([], [{"_id": 1}, {"_id": 1}], append(), "events")

    def test_custom_key(self):
        result = AppendStrategy().apply(
            [{"_id": 1, "event": "a"}], [{"_id": 1, "event": "b"}], append("event"), "events"
        )
        assert len(result) == 2


def test_get_path_and_document_key():
    doc = {"a": {"b": 2}, "tags": ["x"]}
    assert get_path(doc, "a.b") == 2
    assert document_key(doc, ("a.b", "tags"), "out") == (2, ("x",))
