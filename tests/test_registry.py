"""
Tests for the source registry.
"""

import pytest

from tmql_orchestration.core.model import model
from tmql_orchestration.core.registry import SourceRegistry
from tmql_orchestration.core.source import Collection


class TestRegister:
    def test_register_and_resolve(self):
        registry = SourceRegistry()
        users = Collection("users")
        active = model("active", users, output="active_users")

        assert registry.register(users) is True
        assert registry.register(active) is True

        assert registry.resolve("users") is users
        assert registry.resolve("active_users") is active
        # Models resolve by output name, are looked up by model name
        assert registry.resolve("active") is None
        assert registry.get_model("active") is active
        assert "active_users" in registry
        assert len(registry) == 2

    def test_same_object_twice_is_noop(self):
        registry = SourceRegistry()
        m = model("m", "raw")
        assert registry.register(m) is True
        assert registry.register(m) is False
        assert registry.duplicates == []
        assert registry.models() == [m]

    def test_equal_collections_are_one_source(self):
        registry = SourceRegistry()
        registry.register(Collection("users"))
        assert registry.register(Collection("users")) is False
        assert registry.output_conflicts == []
        assert len(registry.collections()) == 1

    def test_duplicate_model_name_recorded(self):
        registry = SourceRegistry()
        first = model("dup", "raw")
        second = model("dup", "other")
        registry.register(first)
        registry.register(second)

        assert len(registry.duplicates) == 1
        dup = registry.duplicates[0]
        assert dup.name == "dup"
        assert dup.first is first
        assert dup.second is second
        # The first registration keeps the name
        assert registry.get_model("dup") is first
        assert registry.models() == [first, second]

    def test_output_conflict_recorded(self):
        registry = SourceRegistry()
        users = Collection("users")
        shadow = model("shadow", "raw", output="users")
        registry.register(users)
        registry.register(shadow)

        assert len(registry.output_conflicts) == 1
        conflict = registry.output_conflicts[0]
        assert conflict.name == "users"
        assert conflict.first is users
        assert conflict.second is shadow
        assert registry.resolve("users") is users

    def test_rejects_non_sources(self):
        with pytest.raises(TypeError):
            SourceRegistry().register("users")


class TestHelpers:
    def test_register_collections(self):
        registry = SourceRegistry()
        users, orders = registry.register_collections("users", "orders")
        assert users == Collection("users")
        assert list(registry) == ["users", "orders"]

    def test_constructor_sources(self):
        m = model("m", "users")
        registry = SourceRegistry([Collection("users"), m])
        assert registry.resolve("m") is m

    def test_copy_is_independent(self):
        registry = SourceRegistry([Collection("users")])
        clone = registry.copy()
        clone.register(Collection("orders"))

        assert "orders" in clone
        assert "orders" not in registry
        assert clone.resolve("users") is registry.resolve("users")

    def test_independent_registries(self):
        a = SourceRegistry()
        b = SourceRegistry()
        a.register(model("m", "raw"))
        assert b.get_model("m") is None
