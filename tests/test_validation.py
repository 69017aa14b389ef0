"""
Tests for project validation.
"""

from tmql_orchestration.core.dependencies import GraphBuilder
from tmql_orchestration.core.materialization import append, upsert
from tmql_orchestration.core.model import model
from tmql_orchestration.core.registry import SourceRegistry
from tmql_orchestration.core.source import Collection
from tmql_orchestration.core.validation import (
    ErrorKind,
    Severity,
    ValidationIssue,
    Validator,
    WarningKind,
    find_cycles,
)
from tmql_orchestration.exceptions import ProjectValidationError

import pytest


def validate(targets, *sources):
    registry = SourceRegistry(sources)
    graph = GraphBuilder(registry).build(targets)
    return Validator(registry).validate(graph), graph


class TestErrors:
    def test_valid_project(self):
        raw = Collection("raw")
        result, _ = validate([model("a", raw)])
        assert result.ok
        assert result.errors == ()

    def test_duplicate_model_name(self):
        raw = Collection("raw")
        result, _ = validate([model("dup", raw), model("dup", raw)])
        errors = result.errors_of(ErrorKind.DUPLICATE_MODEL_NAME)
        assert len(errors) == 1
        assert errors[0].model == "dup"
        assert "dup" in errors[0].message

    def test_duplicate_output_name(self):
        users = Collection("users")
        shadow = model("shadow", "raw", output="users")
        result, _ = validate([model("reader", users), shadow], Collection("raw"))
        errors = result.errors_of(ErrorKind.DUPLICATE_OUTPUT_NAME)
        assert len(errors) == 1
        assert errors[0].source == "users"
        assert errors[0].models == ("shadow",)

    def test_unknown_primary_reference(self):
        result, _ = validate([model("orphan", "missing")])
        errors = result.errors_of(ErrorKind.UNKNOWN_SOURCE_REFERENCE)
        assert len(errors) == 1
        assert errors[0].model == "orphan"
        assert errors[0].source == "missing"
        assert "orphan" in errors[0].message
        assert "missing" in errors[0].message

    def test_unknown_auxiliary_reference(self):
        m = model("m", Collection("raw"), [{"$lookup": {"from": "nope", "as": "x"}}])
        result, _ = validate([m])
        [error] = result.errors
        assert error.kind == ErrorKind.UNKNOWN_SOURCE_REFERENCE
        assert "auxiliary" in error.message

    def test_two_node_cycle_names_both(self):
        a = model("a", "b")
        b = model("b", "a")
        result, _ = validate([a, b])
        [error] = result.errors
        assert error.kind == ErrorKind.CYCLIC_DEPENDENCY
        assert error.cycle == ("a", "b", "a")
        assert error.models == ("a", "b")
        assert "a -> b -> a" in error.message

    def test_self_reference_is_a_cycle(self):
        loop = model("loop", "loop")
        result, _ = validate([loop])
        [error] = result.errors
        assert error.kind == ErrorKind.CYCLIC_DEPENDENCY
        assert error.cycle == ("loop", "loop")

    def test_auxiliary_cycle(self):
        a = model("a", Collection("raw"), [{"$unionWith": "b"}])
        b = model("b", "a")
        result, _ = validate([b], a)
        assert [e.kind for e in result.errors] == [ErrorKind.CYCLIC_DEPENDENCY]

    def test_all_errors_reported_together(self):
        a = model("a", "b")
        b = model("b", "a")
        orphan = model("orphan", "missing")
        dup1 = model("dup", Collection("raw"))
        dup2 = model("dup", Collection("raw"))
        result, _ = validate([a, b, orphan, dup1, dup2])
        kinds = {e.kind for e in result.errors}
        assert kinds == {
            ErrorKind.CYCLIC_DEPENDENCY,
            ErrorKind.UNKNOWN_SOURCE_REFERENCE,
            ErrorKind.DUPLICATE_MODEL_NAME,
        }
        # Sorted by model name
        assert [e.model for e in result.errors] == ["a", "dup", "orphan"]

    def test_deterministic(self):
        def build():
            a = model("a", "b")
            b = model("b", "a")
            c = model("c", "missing")
            return validate([c, a, b])[0].to_dict()

        assert build() == build()

    def test_raise_for_errors(self):
        result, _ = validate([model("orphan", "missing")])
        with pytest.raises(ProjectValidationError) as exc_info:
            result.raise_for_errors()
        assert exc_info.value.result is result


class TestWarnings:
    def test_unused_model(self):
        raw = Collection("raw")
        unused = model("unused", raw)
        result, _ = validate([model("used", raw)], unused)
        assert result.ok
        [warning] = result.warnings
        assert warning.kind == WarningKind.UNUSED_MODEL
        assert warning.model == "unused"
        assert warning.severity == Severity.WARNING

    def test_append_without_key(self):
        result, _ = validate([model("events", Collection("raw"), materialize=append())])
        assert [w.kind for w in result.warnings] == [WarningKind.APPEND_WITHOUT_KEY]

    def test_append_with_key_is_quiet(self):
        result, _ = validate([model("events", Collection("raw"), materialize=append("event_id"))])
        assert result.warnings == ()

    def test_write_stage_in_pipeline(self):
        m = model("m", Collection("raw"), [{"$match": {}}, {"$out": "elsewhere"}], materialize=upsert("_id"))
        result, _ = validate([m])
        [warning] = result.warnings
        assert warning.kind == WarningKind.WRITE_STAGE_IN_PIPELINE
        assert "$out" in warning.message

    def test_warnings_are_logged(self, caplog):
        raw = Collection("raw")
        with caplog.at_level("WARNING", logger="tmql"):
            validate([model("used", raw)], model("unused", raw))
        assert "unused" in caplog.text


class TestFindCycles:
    def test_no_cycles(self):
        _, graph = validate([model("b", model("a", Collection("raw")))])
        assert find_cycles(graph) == []

    def test_three_node_cycle_canonical(self):
        c = model("c", "b")
        b = model("b", "a")
        a = model("a", "c")
        _, graph = validate([c, b, a])
        assert find_cycles(graph) == [("a", "c", "b", "a")]

    def test_independent_cycles(self):
        models = [model("a", "b"), model("b", "a"), model("x", "y"), model("y", "x")]
        _, graph = validate(models)
        assert find_cycles(graph) == [("a", "b", "a"), ("x", "y", "x")]


def test_issue_to_dict():
    issue = ValidationIssue(
        kind=ErrorKind.CYCLIC_DEPENDENCY, message="m", model="a", models=("a", "b"), cycle=("a", "b", "a")
    )
    assert issue.to_dict() == {
        "kind": "cyclic_dependency",
        "severity": "error",
        "message": "m",
        "model": "a",
        "models": ["a", "b"],
        "cycle": ["a", "b", "a"],
    }
