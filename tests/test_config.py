"""
Tests for configuration loading, run options and logging setup.
"""

import logging

import pytest

from tmql_orchestration.config import Config, load_config, resolve_config
from tmql_orchestration.core.execution.config import FailurePolicy, HaltScope, RunOptions
from tmql_orchestration.exceptions import ConfigurationError
from tmql_orchestration.utils.logging import ROOT_LOGGER, setup_logging, setup_logging_from_config


@pytest.fixture
def restore_tmql_logger():
    logger = logging.getLogger(ROOT_LOGGER)
    level, handlers = logger.level, list(logger.handlers)
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)


class TestConfig:
    """Tests for Config class."""

    def test_basic_access(self):
        cfg = Config({"name": "shop", "executor": {"max_workers": 2}})
        assert cfg.name == "shop"
        assert cfg.executor == {"max_workers": 2}
        assert cfg.logging == {}

    def test_dot_notation(self):
        cfg = Config({"executor": {"max_workers": 2}})
        assert cfg.get("executor.max_workers") == 2
        assert cfg.get("executor.missing", "fallback") == "fallback"
        assert cfg["executor.max_workers"] == 2

    def test_contains(self):
        cfg = Config({"a": {"b": 1}})
        assert "a" in cfg
        assert "a.b" in cfg
        assert "a.c" not in cfg

    def test_getitem(self):
        cfg = Config({"name": "shop", "nested": {"key": "val"}})
        nested = cfg["nested"]
        assert isinstance(nested, Config)
        assert nested["key"] == "val"
        with pytest.raises(KeyError):
            _ = cfg["missing"]

    def test_iter_keys_values_items(self):
        cfg = Config({"a": 1, "b": 2})
        assert list(cfg) == ["a", "b"]
        assert set(cfg.values()) == {1, 2}
        assert set(cfg.items()) == {("a", 1), ("b", 2)}

    def test_validate_section_must_be_mapping(self):
        with pytest.raises(ConfigurationError, match="'executor' must be a mapping"):
            Config({"executor": "fast"}).validate()


class TestResolveConfig:
    def test_env_var(self, monkeypatch):
        monkeypatch.setenv("TMQL_TEST_DB", "analytics")
        assert resolve_config({"db": "${TMQL_TEST_DB}"}) == {"db": "analytics"}

    def test_default(self, monkeypatch):
        monkeypatch.delenv("TMQL_TEST_UNSET", raising=False)
        assert resolve_config({"db": "${TMQL_TEST_UNSET:-local}"}) == {"db": "local"}

    def test_unset_without_default_is_kept(self, monkeypatch):
        monkeypatch.delenv("TMQL_TEST_UNSET", raising=False)
        assert resolve_config({"db": "${TMQL_TEST_UNSET}"}) == {"db": "${TMQL_TEST_UNSET}"}

    def test_env_placeholder_and_nesting(self):
        resolved = resolve_config({"logging": {"file": "logs/{env}.log"}, "tags": ["{env}", 3]}, env="prod")
        assert resolved == {"logging": {"file": "logs/prod.log"}, "tags": ["prod", 3]}


class TestLoadConfig:
    def test_missing_file(self, tmp_path):
        assert load_config(tmp_path).data == {}
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path, required=True)

    def test_load(self, tmp_path):
        (tmp_path / "config.yaml").write_text("name: shop\nexecutor:\n  max_workers: 2\n")
        cfg = load_config(tmp_path)
        assert cfg.name == "shop"
        assert cfg.get("executor.max_workers") == 2

    def test_env_overlay(self, tmp_path):
        (tmp_path / "config.yaml").write_text(
            "executor:\n  max_workers: 2\n  failure_policy: fail_fast\nlogging:\n  file: logs/{env}.log\n"
        )
        (tmp_path / "config.prod.yaml").write_text("executor:\n  max_workers: 8\n")
        cfg = load_config(tmp_path, env="prod")
        assert cfg.executor == {"max_workers": 8, "failure_policy": "fail_fast"}
        assert cfg.get("logging.file") == "logs/prod.log"

    def test_missing_overlay_is_ignored(self, tmp_path):
        (tmp_path / "config.yaml").write_text("name: shop\n")
        assert load_config(tmp_path, env="staging").name == "shop"

    def test_invalid_yaml(self, tmp_path):
        (tmp_path / "config.yaml").write_text("executor:\n  max_workers: [1, 2\n")
        with pytest.raises(ConfigurationError, match="Error parsing config.yaml"):
            load_config(tmp_path)

    def test_non_mapping(self, tmp_path):
        (tmp_path / "config.yaml").write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="must be a mapping"):
            load_config(tmp_path)

    def test_invalid_section(self, tmp_path):
        (tmp_path / "config.yaml").write_text("logging: verbose\n")
        with pytest.raises(ConfigurationError):
            load_config(tmp_path)


class TestRunOptions:
    def test_defaults(self):
        options = RunOptions()
        assert options.failure_policy == FailurePolicy.FAIL_FAST
        assert options.halt_scope == HaltScope.ALL
        assert options.max_workers == RunOptions.DEFAULT_MAX_WORKERS
        assert options.halts_everything
        assert not options.cancelled

    def test_from_config(self):
        options = RunOptions.from_config(
            {"executor": {"failure_policy": "continue_on_error", "max_workers": 2, "model_timeout": 30}}
        )
        assert options.failure_policy == FailurePolicy.CONTINUE_ON_ERROR
        assert options.max_workers == 2
        assert options.model_timeout == 30
        assert not options.halts_everything

    def test_from_config_object(self):
        options = RunOptions.from_config(Config({"executor": {"max_attempts": 3}}), retry_delay=0.5)
        assert options.max_attempts == 3
        assert options.retry_delay == 0.5

    def test_empty_config(self):
        assert RunOptions.from_config(None) == RunOptions()

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError, match="Unknown executor option"):
            RunOptions.from_config({"executor": {"max_wrokers": 2}})

    @pytest.mark.parametrize(
        "values",
        [
            {"max_workers": 0},
            {"max_attempts": 0},
            {"model_timeout": -1},
            {"retry_delay": -1},
            {"failure_policy": "retry_forever"},
            {"halt_scope": "galaxy"},
        ],
    )
    def test_invalid_values(self, values):
        with pytest.raises(ConfigurationError):
            RunOptions(**values)

    def test_with_overrides_ignores_none(self):
        options = RunOptions(max_workers=2).with_overrides(max_workers=None, model_timeout=5)
        assert options.max_workers == 2
        assert options.model_timeout == 5


class TestLogging:
    def test_setup_logging_plain(self, restore_tmql_logger):
        logger = setup_logging("debug", use_rich=False)
        assert logger is restore_tmql_logger
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1

    def test_setup_replaces_handlers(self, restore_tmql_logger):
        setup_logging(use_rich=False)
        logger = setup_logging(use_rich=False)
        assert len(logger.handlers) == 1

    def test_log_file(self, tmp_path, restore_tmql_logger):
        log_file = tmp_path / "logs" / "run.log"
        setup_logging("INFO", log_file=log_file, console_enabled=False)
        logging.getLogger("tmql.executor").info("Run completed")
        for handler in restore_tmql_logger.handlers:
            handler.flush()
        assert "tmql.executor: Run completed" in log_file.read_text()

    def test_from_config(self, tmp_path, restore_tmql_logger):
        cfg = Config({"logging": {"level": "WARNING", "file": "tmql.log", "console_type": "plain"}})
        logger = setup_logging_from_config(cfg, project_dir=tmp_path)
        assert logger.level == logging.WARNING
        assert (tmp_path / "tmql.log").exists()

    def test_unknown_level_falls_back_to_info(self, restore_tmql_logger):
        assert setup_logging("chatty", console_enabled=False).level == logging.INFO
