"""Tests for deployment-environment presets."""

import pytest

from scrubkit.config import StackTraceConfig, reset_settings
from scrubkit.security.environment import (
    create_environment_config,
    is_debug_mode,
    resolve_environment,
    sanitize_error_for_environment,
    sanitize_error_for_production,
    should_show_detailed_errors,
)
from scrubkit.security.stacktrace import sanitize_stack_trace


@pytest.fixture
def use_env(monkeypatch):
    """Set SCRUBKIT_ENV / SCRUBKIT_DEBUG and reload settings."""
    def _use(env=None, debug=None):
        if env is None:
            monkeypatch.delenv("SCRUBKIT_ENV", raising=False)
        else:
            monkeypatch.setenv("SCRUBKIT_ENV", env)
        if debug is None:
            monkeypatch.delenv("SCRUBKIT_DEBUG", raising=False)
        else:
            monkeypatch.setenv("SCRUBKIT_DEBUG", debug)
        reset_settings()
    return _use


def _raised(message):
    try:
        raise ValueError(message)
    except ValueError as e:
        return e


class TestResolveEnvironment:

    def test_defaults_to_production(self, use_env):
        use_env()
        assert resolve_environment() == ("production", [])

    def test_reads_setting(self, use_env):
        use_env("staging")
        assert resolve_environment()[0] == "staging"

    @pytest.mark.parametrize("name,expected", [
        ("Development", "development"),
        (" prod ", "production"),
        ("dev", "development"),
        ("test", "test"),
    ])
    def test_normalized(self, name, expected):
        assert resolve_environment(name)[0] == expected

    def test_unknown_falls_back(self):
        name, warnings = resolve_environment("qa-cluster")
        assert name == "production"
        assert "Unknown environment" in warnings[0]


class TestCreateEnvironmentConfig:

    def test_production_preset(self, use_env):
        use_env()
        profile = create_environment_config()
        assert profile.environment == "production"
        assert profile.stack_trace.detail_level == "minimal"
        assert profile.stack_trace.max_stack_depth == 5
        assert profile.stack_trace.remove_line_numbers is True
        assert profile.error_context.include_stack_trace is False
        assert profile.error_context.max_message_length == 250

    def test_staging_preset(self):
        profile = create_environment_config("staging")
        assert profile.stack_trace.detail_level == "sanitized"
        assert profile.stack_trace.max_stack_depth == 15
        assert profile.stack_trace.redact_file_paths is True
        assert profile.error_context.include_stack_trace is True

    def test_development_preset(self, use_env):
        use_env("development")
        profile = create_environment_config()
        assert profile.stack_trace.detail_level == "raw"
        assert profile.stack_trace.redact_usernames is False
        assert profile.error_context.include_context_hints is True

    def test_test_matches_development(self):
        test = create_environment_config("test").to_dict()
        dev = create_environment_config("development").to_dict()
        assert test["stack_trace"] == dev["stack_trace"]
        assert test["environment"] == "test"

    def test_unknown_uses_production(self):
        profile = create_environment_config("qa")
        assert profile.environment == "production"
        assert profile.warnings

    def test_overrides_layer_over_preset(self):
        profile = create_environment_config("staging", stack_trace={"maxStackDepth": 3})
        assert profile.stack_trace.max_stack_depth == 3
        assert profile.stack_trace.detail_level == "sanitized"

    def test_bad_override_reported(self):
        profile = create_environment_config("staging", error_context={"max_message_length": "lots"})
        assert profile.error_context.max_message_length == 750
        assert profile.warnings

    def test_model_override_replaces_preset(self):
        profile = create_environment_config("production", stack_trace=StackTraceConfig(detail_level="raw"))
        assert profile.stack_trace.detail_level == "raw"
        assert profile.stack_trace.max_stack_depth == 10

    def test_settings_under_preset(self, use_env, monkeypatch):
        monkeypatch.setenv("SCRUBKIT_STACK_TRACE__REDACT_USERNAMES", "false")
        use_env("staging")
        assert create_environment_config().stack_trace.redact_usernames is False

    def test_stack_trace_by_environment(self, python_trace):
        dev = create_environment_config("development").stack_trace
        staging = create_environment_config("staging").stack_trace
        assert "alice" in sanitize_stack_trace(python_trace, dev)
        assert "alice" not in sanitize_stack_trace(python_trace, staging)

    def test_to_dict(self):
        data = create_environment_config("production").to_dict()
        assert data["environment"] == "production"
        assert data["stack_trace"]["detail_level"] == "minimal"


class TestDetailFlags:

    @pytest.mark.parametrize("env,debug,detailed,debug_mode", [
        (None, None, False, False),
        ("production", "true", False, False),
        ("development", None, True, True),
        ("test", None, True, False),
        ("staging", None, False, False),
        ("staging", "true", True, True),
    ])
    def test_flags(self, use_env, env, debug, detailed, debug_mode):
        use_env(env, debug)
        assert should_show_detailed_errors() is detailed
        assert is_debug_mode() is debug_mode


class TestEnvironmentErrors:

    def test_production_error(self, use_env):
        use_env("development")
        result = sanitize_error_for_production(
            _raised("Database connection failed: password=secret123"),
            {"password": "x", "operation": "connect"},
        )
        assert "secret123" not in result.message
        assert result.stack is None
        assert result.context == {"operation": "connect"}

    def test_production_message_capped(self):
        result = sanitize_error_for_production(RuntimeError("m" * 1000))
        assert len(result.message) <= 250

    def test_development_keeps_stack(self):
        result = sanitize_error_for_environment(_raised("bad value"), environment="development")
        assert "Traceback" in result.stack
        assert "ValueError: bad value" in result.stack

    def test_staging_keeps_stack(self):
        result = sanitize_error_for_environment(_raised("bad value"), environment="staging")
        assert "ValueError: bad value" in result.stack
        assert "line " in result.stack

    def test_unknown_environment_warned(self):
        result = sanitize_error_for_environment(RuntimeError("x"), environment="qa")
        assert result.security_warnings[0].startswith("Unknown environment")
