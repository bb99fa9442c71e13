"""Unit tests for mapper_engine.cli (validate and inspect commands)."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from mapper_engine.cli.app import _parse_properties, app

CONFIG = Path(__file__).parents[1] / "fixtures" / "docs" / "mapper-config.yaml"

runner = CliRunner()


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    for name in ("MAPPER_CONFIG_PATH", "MAPPER_ENVIRONMENT", "MAPPER_BASE_PATH", "MAPPER_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------


class TestValidate:
    def test_json_summary(self):
        result = runner.invoke(app, ["--json", "validate", str(CONFIG)])
        assert result.exit_code == 0, result.output

        data = json.loads(result.stdout)
        assert data["valid"] is True
        assert data["document"] == str(CONFIG)
        assert data["environment"] == "dev"
        assert data["database_id"] == "lite"
        assert "sample_app.mappers.BlogMapper.find" in data["statements"]
        assert data["mappers"] == ["sample_app.mappers.AuthorMapper", "sample_app.mappers.BlogMapper"]
        assert data["plugins"] == ["CountingInterceptor"]

    def test_human_output(self):
        result = runner.invoke(app, ["validate", str(CONFIG)])
        assert result.exit_code == 0
        assert "Configuration is valid" in result.output
        assert "environment dev" in result.output

    def test_environment_option(self):
        result = runner.invoke(app, ["--json", "validate", str(CONFIG), "--env", "prod"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["environment"] == "prod"

    def test_unknown_environment_has_no_environment(self):
        result = runner.invoke(app, ["--json", "validate", str(CONFIG), "-e", "staging"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["environment"] is None
        assert data["database_id"] is None

    def test_config_path_from_environment_variable(self, monkeypatch):
        monkeypatch.setenv("MAPPER_CONFIG_PATH", str(CONFIG))
        result = runner.invoke(app, ["--json", "validate"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["document"] == str(CONFIG)

    def test_property_override(self, tmp_path):
        result = runner.invoke(app, ["--json", "validate", str(CONFIG), "-p", f"db.url=sqlite:///{tmp_path / 'x.db'}"])
        assert result.exit_code == 0

    def test_missing_document(self, tmp_path):
        result = runner.invoke(app, ["validate", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 3
        assert "Configuration document not found" in result.output

    def test_invalid_document(self, tmp_path):
        document = tmp_path / "bad.yaml"
        document.write_text("settings:\n  cacheEnabledd: true\n")
        result = runner.invoke(app, ["validate", str(document)])
        assert result.exit_code == 3
        assert "Invalid configuration" in result.output
        assert "cacheEnabledd" in result.output

    def test_malformed_property(self):
        result = runner.invoke(app, ["validate", str(CONFIG), "-p", "novalue"])
        assert result.exit_code == 3
        assert "expected KEY=VALUE" in result.output


# ---------------------------------------------------------------------------
# inspect
# ---------------------------------------------------------------------------


class TestInspect:
    def test_json_without_settings(self):
        result = runner.invoke(app, ["--json", "inspect", str(CONFIG)])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert "settings" not in data
        assert "valid" not in data
        assert data["environment"] == "dev"

    def test_json_with_settings(self):
        result = runner.invoke(app, ["--json", "inspect", str(CONFIG), "--settings"])
        assert result.exit_code == 0
        settings = json.loads(result.stdout)["settings"]
        assert settings["logPrefix"] == "sql."
        assert settings["defaultExecutorType"] == "REUSE"
        assert settings["mapUnderscoreToCamelCase"] is True

    def test_human_output(self):
        result = runner.invoke(app, ["inspect", str(CONFIG), "--settings"])
        assert result.exit_code == 0
        assert "Mapper Configuration" in result.output
        assert "Mapped Statements" in result.output
        assert "Settings" in result.output

    def test_empty_document(self, tmp_path):
        document = tmp_path / "empty.yaml"
        document.write_text("")
        result = runner.invoke(app, ["inspect", str(document)])
        assert result.exit_code == 0
        assert "No mapped statements" in result.output


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestParseProperties:
    def test_pairs(self):
        assert _parse_properties(["a=1", " b =x=y", "c="]) == {"a": "1", "b": "x=y", "c": ""}

    def test_none(self):
        assert _parse_properties(None) == {}
