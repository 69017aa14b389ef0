"""
Tests for sources, models and materialization configs.
"""

import pytest

from tmql_orchestration.core.materialization import (
    DEFAULT_KEY,
    MaterializationConfig,
    MaterializationMode,
    append,
    replace,
    upsert,
)
from tmql_orchestration.core.model import Model, model
from tmql_orchestration.core.source import (
    Collection,
    SourceType,
    is_collection,
    is_model,
    is_source,
    source_name_of,
)


class TestCollection:
    def test_source_type_tag(self):
        users = Collection("users")
        assert users.source_type == SourceType.COLLECTION
        assert users.source_name == "users"
        assert is_collection(users)
        assert not is_model(users)

    def test_equal_by_name(self):
        assert Collection("users") == Collection("users")
        assert hash(Collection("users")) == hash(Collection("users"))

    @pytest.mark.parametrize("name", ["", None, 3])
    def test_invalid_name(self, name):
        with pytest.raises(ValueError):
            Collection(name)


class TestModel:
    def test_defaults(self):
        users = Collection("users")
        m = model("active_users", users, [{"$match": {"active": True}}])
        assert m.source_type == SourceType.MODEL
        assert m.output == "active_users"
        assert m.source_name == "active_users"
        assert m.primary_source_name == "users"
        assert m.materialize.mode == MaterializationMode.REPLACE
        assert m.stages == ({"$match": {"active": True}},)

    def test_output_override(self):
        m = model("stg_users", "users", output="users_clean")
        assert m.source_name == "users_clean"
        assert m.primary_source_name == "users"

    def test_model_as_source(self):
        base = model("base", Collection("raw"))
        derived = model("derived", base)
        assert derived.primary_source_name == "base"
        assert is_model(derived.source)

    def test_identity_equality(self):
        a1 = model("a", "raw")
        a2 = model("a", "raw")
        assert a1 != a2
        assert a1 == a1
        assert len({a1, a2}) == 2

    def test_materialize_from_mapping(self):
        m = model("m", "raw", materialize={"mode": "upsert", "key": ["tenant", "id"]})
        assert m.materialize == MaterializationConfig(MaterializationMode.UPSERT, ("tenant", "id"))

    def test_materialize_from_string(self):
        assert model("m", "raw", materialize="append").materialize.mode == MaterializationMode.APPEND

    def test_tags_string(self):
        assert model("m", "raw", tags=["daily"]).tags == ("daily",)
        assert Model(name="m", source="raw", tags="daily").tags == ("daily",)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"name": "", "source": "raw"},
            {"name": "m", "source": ""},
            {"name": "m", "source": 42},
            {"name": "m", "source": "raw", "stages": {"$match": {}}},
            {"name": "m", "source": "raw", "stages": ["$match"]},
        ],
    )
    def test_invalid_declarations(self, kwargs):
        with pytest.raises(ValueError):
            Model(**kwargs)

    def test_repr(self):
        assert repr(model("m", "raw")) == "Model(name='m', source='raw', output='m')"


class TestSourceHelpers:
    def test_source_name_of(self):
        assert source_name_of("users") == "users"
        assert source_name_of(Collection("users")) == "users"
        assert source_name_of(model("m", "raw", output="out")) == "out"
        assert source_name_of("") is None
        assert source_name_of({"from": "x"}) is None

    def test_is_source(self):
        assert is_source(Collection("users"))
        assert is_source(model("m", "raw"))
        assert not is_source("users")


class TestMaterializationConfig:
    def test_replace(self):
        config = replace()
        assert config.mode == MaterializationMode.REPLACE
        assert config.key == ()
        assert config.effective_key == ()
        assert str(config) == "replace"

    def test_upsert_requires_key(self):
        with pytest.raises(ValueError, match="requires a non-empty key"):
            MaterializationConfig(MaterializationMode.UPSERT)

    def test_upsert_key_forms(self):
        assert upsert("_id").key == ("_id",)
        assert upsert("a", "b").key == ("a", "b")
        assert upsert(key=["a", "b"]).key == ("a", "b")
        assert str(upsert("a", "b")) == "upsert(a, b)"

    def test_replace_rejects_key(self):
        with pytest.raises(ValueError):
            MaterializationConfig(MaterializationMode.REPLACE, ("_id",))

    def test_append_key_is_optional(self):
        assert append().key == ()
        assert append().effective_key == DEFAULT_KEY
        assert append("event_id").effective_key == ("event_id",)

    def test_string_key_normalized(self):
        assert MaterializationConfig("upsert", "_id").key == ("_id",)

    def test_from_dict_round_trip(self):
        config = MaterializationConfig.from_dict({"mode": "upsert", "key": ["_id"]})
        assert config.to_dict() == {"mode": "upsert", "key": ["_id"]}
        assert MaterializationConfig.from_dict(config.to_dict()) == config

    def test_from_dict_unknown_mode(self):
        with pytest.raises(ValueError, match="expected one of"):
            MaterializationConfig.from_dict({"mode": "overwrite"})
