"""Tests for the scrubkit command line."""

import json

import pytest
from typer.testing import CliRunner

from scrubkit.cli.commands import app

runner = CliRunner()

# Quiet logs so stdout stays machine-readable
QUIET = ["--log-level", "ERROR"]


@pytest.fixture
def trace_file(tmp_path, python_trace):
    path = tmp_path / "trace.txt"
    path.write_text(python_trace)
    return path


class TestVersion:

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "scrubkit v" in result.stdout


class TestValidateCommand:

    def test_valid(self):
        result = runner.invoke(app, QUIET + ["validate", "package-manager", "npm"])
        assert result.exit_code == 0
        assert "Valid" in result.stdout

    def test_invalid_name_shows_suggestion(self):
        result = runner.invoke(app, QUIET + ["validate", "name", "My Project!"])
        assert result.exit_code == 1
        assert "my-project" in result.stdout

    def test_unknown_kind(self):
        result = runner.invoke(app, QUIET + ["validate", "color", "red"])
        assert result.exit_code == 2

    def test_json_output(self):
        result = runner.invoke(app, QUIET + ["validate", "shell-argument", "build; ls", "--lenient", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["sanitized_value"] == "build"


class TestStackCommands:

    def test_stack_from_file(self, trace_file):
        result = runner.invoke(app, QUIET + ["stack", str(trace_file)])
        assert result.exit_code == 0
        assert "alice" not in result.stdout
        assert "/home/***/main.py" in result.stdout

    def test_stack_from_stdin(self, python_trace):
        result = runner.invoke(app, QUIET + ["stack", "-", "--detail", "minimal"], input=python_trace)
        assert result.exit_code == 0
        assert len(result.stdout.strip().splitlines()) == 2

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, QUIET + ["stack", str(tmp_path / "nope.txt")])
        assert result.exit_code == 2

    def test_analyze_json(self, trace_file):
        result = runner.invoke(app, QUIET + ["analyze-stack", str(trace_file), "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["risk_level"] == "high"


class TestObjectCommand:

    def test_pollution_exits_nonzero(self):
        result = runner.invoke(app, QUIET + ["object", '{"__proto__": {"polluted": true}, "user": "bob"}'])
        assert result.exit_code == 1
        assert '"user": "bob"' in result.stdout

    def test_clean_object(self):
        result = runner.invoke(app, QUIET + ["object", '{"password": "x", "n": 1}'])
        assert result.exit_code == 0
        assert '"[REDACTED]"' in result.stdout

    def test_invalid_json(self):
        result = runner.invoke(app, QUIET + ["object", "{not json"])
        assert result.exit_code == 2
