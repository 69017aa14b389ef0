"""
Tests for CLI commands.

Uses typer's CliRunner against small project files written to a temp dir.
"""

import json
import textwrap

import pytest
from typer.testing import CliRunner

from tmql_orchestration import __version__
from tmql_orchestration.cli.main import app

runner = CliRunner()

PROJECT = """
from tmql_orchestration import Collection, Project, model
from tmql_orchestration.testing import MemoryEngine

orders = Collection("orders")
paid = model("paid_orders", orders, [{"$match": {"status": "paid"}}])
totals = model(
    "customer_totals",
    paid,
    [{"$group": {"_id": "$customer", "total": {"$sum": "$amount"}}}],
    materialize={"mode": "upsert", "key": ["_id"]},
)

project = Project([totals], name="shop")
engine = MemoryEngine({"orders": [{"_id": 1, "status": "paid"}, {"_id": 2, "status": "open"}]})
"""

FAILING_PROJECT = PROJECT + """
engine.fail("paid_orders", RuntimeError("disk full"))
"""

INVALID_PROJECT = """
from tmql_orchestration import Project, model

a = model("a", "b")
b = model("b", "a")
report = model("report", "nowhere")

project = Project([a, b, report])
"""

BUILDER_PROJECT = """
from tmql_orchestration import Collection, Project, model
from tmql_orchestration.testing import MemoryEngine

raw = Collection("raw")


def build_project(config):
    return Project([model("copy", raw)], config=config)


def build_engine(config):
    return MemoryEngine({"raw": [{"_id": config.get("seed_id", 0)}]})
"""

# Keep log output off the captured stream so JSON output parses cleanly
QUIET_CONFIG = "logging:\n  console_enabled: false\n"


@pytest.fixture
def write_project(tmp_path):
    def write(source, config=QUIET_CONFIG, name="project.py"):
        (tmp_path / "config.yaml").write_text(config)
        path = tmp_path / name
        path.write_text(textwrap.dedent(source))
        return str(path)

    return write


class TestVersion:
    """Tests for --version flag."""

    def test_version_flag(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"tmql version {__version__}" in result.output

    def test_version_short_flag(self):
        result = runner.invoke(app, ["-v"])
        assert result.exit_code == 0
        assert "tmql version" in result.output


class TestHelp:
    """Tests for help output."""

    def test_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("validate", "plan", "run"):
            assert command in result.output

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert result.exit_code == 0
        assert "tmql" in result.output.lower()

    @pytest.mark.parametrize("command", ["validate", "plan", "run"])
    def test_command_help(self, command):
        result = runner.invoke(app, [command, "--help"])
        assert result.exit_code == 0


class TestValidate:
    def test_valid_project(self, write_project):
        result = runner.invoke(app, ["validate", write_project(PROJECT)])
        assert result.exit_code == 0
        assert "Project is valid" in result.output

    def test_json_report(self, write_project):
        result = runner.invoke(app, ["validate", write_project(PROJECT), "--json"])
        assert result.exit_code == 0
        report = json.loads(result.stdout)
        assert report["ok"] is True
        assert report["errors"] == []

    def test_invalid_project(self, write_project):
        result = runner.invoke(app, ["validate", write_project(INVALID_PROJECT)])
        assert result.exit_code == 1
        assert "cyclic_dependency" in result.output
        assert "unknown_source_reference" in result.output

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["validate", str(tmp_path / "nope.py")])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_broken_config(self, write_project):
        result = runner.invoke(app, ["validate", write_project(PROJECT, config="executor: [\n")])
        assert result.exit_code == 1
        assert "Error parsing config.yaml" in result.output

    def test_file_without_project(self, write_project):
        result = runner.invoke(app, ["validate", write_project("x = 1\n")])
        assert result.exit_code == 1
        assert "defines no 'project'" in result.output


class TestPlan:
    def test_json(self, write_project):
        result = runner.invoke(app, ["plan", write_project(PROJECT), "--format", "json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["name"] == "shop"
        assert data["plan"]["order"] == ["paid_orders", "customer_totals"]
        assert data["plan"]["batches"] == [["paid_orders"], ["customer_totals"]]

    def test_table(self, write_project):
        result = runner.invoke(app, ["plan", write_project(PROJECT)])
        assert result.exit_code == 0
        assert "Layer 0: paid_orders" in result.output

    def test_module_level_models(self, write_project):
        source = """
        from tmql_orchestration import Collection, model

        raw = Collection("raw")
        first = model("first", raw)
        second = model("second", first)
        """
        result = runner.invoke(app, ["plan", write_project(source), "-f", "json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["plan"]["order"] == ["first", "second"]


class TestRun:
    def test_success(self, write_project):
        result = runner.invoke(app, ["run", write_project(PROJECT)])
        assert result.exit_code == 0
        assert "Status: success" in result.output

    def test_json_result(self, write_project):
        result = runner.invoke(app, ["run", write_project(PROJECT), "--json", "-w", "1"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["summary"]["status"] == "success"
        assert data["models"]["paid_orders"]["document_count"] == 2

    def test_failure_exit_code(self, write_project):
        result = runner.invoke(app, ["run", write_project(FAILING_PROJECT), "--json"])
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["models"]["paid_orders"]["error"] == "disk full"
        assert data["models"]["customer_totals"]["skipped_reason"] == "upstream_failed"

    def test_builders_receive_config(self, write_project):
        config = QUIET_CONFIG + "seed_id: 42\nexecutor:\n  max_workers: 1\n"
        result = runner.invoke(app, ["run", write_project(BUILDER_PROJECT, config=config), "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["models"]["copy"]["document_count"] == 1

    def test_missing_engine(self, write_project):
        source = PROJECT.replace("engine = MemoryEngine", "store = MemoryEngine")
        result = runner.invoke(app, ["run", write_project(source)])
        assert result.exit_code == 1
        assert "defines no 'engine'" in result.output

    def test_env_overlay(self, write_project, tmp_path):
        path = write_project(BUILDER_PROJECT, config=QUIET_CONFIG + "executor:\n  max_workers: 0\n")
        (tmp_path / "config.ci.yaml").write_text("executor:\n  max_workers: 2\n")
        assert runner.invoke(app, ["run", path]).exit_code == 1
        assert runner.invoke(app, ["run", path, "--env", "ci"]).exit_code == 0
