"""Tests for error context sanitization and forwarding."""

import json
import re

import pytest

from scrubkit.config.schema import ErrorContextConfig
from scrubkit.security.error_context import (
    analyze_error_context_security,
    create_safe_error_for_forwarding,
    generate_error_id,
    sanitize_error_context,
    sanitize_error_message,
)


class CodedError(Exception):
    def __init__(self, message, code):
        super().__init__(message)
        self.code = code


class DetailedError(Exception):
    def __init__(self, message):
        super().__init__(message)
        self.operation = "checkout"
        self.password = "hunter2"
        self._private = "skip"


class HostileError(Exception):
    def __str__(self):
        raise RuntimeError("boom")


class Unreadable:
    def __getattribute__(self, name):
        raise RuntimeError("boom")


class SecurityViolationError(Exception):
    pass


class TestSanitizeErrorContext:

    def test_credential_removed_ordinary_kept(self):
        result = sanitize_error_context(
            RuntimeError("login failed"),
            {"apiKey": "sk-1234567890abcdef", "op": "login"},
        )
        assert "apiKey" not in result.context
        assert result.context["op"] == "login"
        assert result.had_sensitive_data is True
        assert "apiKey" in result.redacted_properties
        assert result.error_type == "RuntimeError"
        assert result.message == "login failed"

    def test_error_id_format(self):
        first = sanitize_error_context(RuntimeError("x"))
        second = sanitize_error_context(RuntimeError("x"))
        assert re.fullmatch(r"ERR_\d{12}_[0-9A-F]{16}", first.error_id)
        assert first.error_id != second.error_id

    def test_generate_error_id(self):
        assert generate_error_id().startswith("ERR_")

    def test_clean_context(self):
        result = sanitize_error_context(RuntimeError("x"), {"operation": "sync", "attempt": 2})
        assert result.context == {"operation": "sync", "attempt": 2}
        assert result.had_sensitive_data is False
        assert result.security_warnings == []

    def test_level_none_keeps_everything(self):
        result = sanitize_error_context(
            RuntimeError("x"), {"apiKey": "sk-1234567890abcdef"}, {"redaction_level": "none"}
        )
        assert "apiKey" in result.context
        assert result.had_sensitive_data is True

    def test_level_full_allow_list(self):
        result = sanitize_error_context(
            RuntimeError("x"),
            {"operation": "x", "component": "y", "user": "bob"},
            {"redactionLevel": "full"},
        )
        assert result.context == {"operation": "x", "component": "y"}
        assert "user" in result.redacted_properties

    def test_error_attributes_collected(self):
        result = sanitize_error_context(DetailedError("failed"))
        assert result.context == {"operation": "checkout"}
        assert "password" in result.redacted_properties
        assert "_private" not in result.context

    def test_error_code(self):
        result = sanitize_error_context(CodedError("denied", "E_AUTH"))
        assert result.code == "E_AUTH"
        assert "code" not in result.context

    def test_error_code_disabled(self):
        result = sanitize_error_context(CodedError("denied", "E_AUTH"), config={"preserve_error_codes": False})
        assert result.code is None

    def test_errno_used_as_code(self):
        assert sanitize_error_context(OSError(2, "No such file")).code == 2

    def test_timestamp(self):
        assert sanitize_error_context(RuntimeError("x")).timestamp.endswith("Z")
        assert sanitize_error_context(RuntimeError("x"), config={"preserve_timestamps": False}).timestamp is None

    def test_message_sanitized(self):
        result = sanitize_error_context(RuntimeError("failed for /home/alice/app/db.py with password=hunter2"))
        assert "alice" not in result.message
        assert "hunter2" not in result.message
        assert result.had_sensitive_data is True

    def test_multiline_message_joined(self):
        result = sanitize_error_context(RuntimeError("first\nsecond"))
        assert result.message == "first second"

    def test_hostile_str(self):
        result = sanitize_error_context(HostileError())
        assert result.message == "Error message access failed"
        assert any("access failed" in w for w in result.security_warnings)

    def test_unreadable_context_value(self):
        result = sanitize_error_context(ValueError("x"), {"e": Unreadable(), "op": "a"})
        assert result.message == "x"
        assert result.context["op"] == "a"
        assert "boom" not in json.dumps(result.to_dict())

    def test_unreadable_nested_context_value(self):
        result = sanitize_error_context(ValueError("x"), {"items": [{"e": Unreadable()}]})
        json.dumps(result.to_dict())

    def test_unreadable_error_object(self):
        result = sanitize_error_context(Unreadable(), {"op": "a"})
        assert result.error_type == "Error"
        assert result.context == {"op": "a"}

    def test_non_exception_error(self):
        result = sanitize_error_context("plain text failure")
        assert result.error_type == "Error"
        assert result.message == "plain text failure"

    def test_dangerous_key_removed(self):
        result = sanitize_error_context(RuntimeError("x"), {"__proto__": {"x": 1}, "op": "a"})
        assert result.context == {"op": "a"}
        assert "__proto__" in result.redacted_properties
        assert any("Dangerous property" in w for w in result.security_warnings)

    def test_circular_context(self):
        context = {"op": "a"}
        context["self"] = context
        result = sanitize_error_context(RuntimeError("x"), context)
        assert "Circular reference detected in context" in result.security_warnings
        json.dumps(result.context)

    def test_large_context_shrunk(self):
        result = sanitize_error_context(RuntimeError("x"), {"blob": "z" * 5000})
        assert "Large context detected - applying size limits" in result.security_warnings
        assert result.context["blob"] == "z" * 200 + "...[truncated]"

    def test_non_mapping_context_ignored(self):
        result = sanitize_error_context(RuntimeError("x"), ["not", "a", "mapping"])
        assert result.context == {}
        assert result.security_warnings

    def test_hints_only_when_enabled(self):
        context = {"apiKey": "sk-1234567890abcdef"}
        assert sanitize_error_context(RuntimeError("x"), context).redaction_hints == {}
        hints = sanitize_error_context(RuntimeError("x"), context, {"include_context_hints": True}).redaction_hints
        assert hints["apiKey"].startswith("Removed")

    def test_stack_included_and_sanitized(self):
        try:
            raise ValueError("bad value")
        except ValueError as e:
            error = e
        result = sanitize_error_context(error, config={"include_stack_trace": True})
        assert "Traceback" in result.stack
        assert "ValueError: bad value" in result.stack

    def test_stack_omitted_by_default(self):
        assert sanitize_error_context(RuntimeError("x")).stack is None

    def test_to_dict_is_json(self):
        result = sanitize_error_context(RuntimeError("x"), {"op": "a"})
        data = json.loads(json.dumps(result.to_dict()))
        assert data["context"] == {"op": "a"}


class TestForwarding:

    def test_payload(self):
        payload = create_safe_error_for_forwarding(
            RuntimeError("login failed"),
            {"apiKey": "sk-1234567890abcdef", "operation": "login"},
        )
        assert payload.context == {"operation": "login"}
        assert payload.severity == "medium"
        assert "credential-property detected in context.apiKey" in payload.security_warnings
        data = payload.to_dict()
        assert data["metadata"]["redacted_count"] == 1
        assert data["metadata"]["had_sensitive_data"] is True

    def test_clean_payload_is_low(self):
        payload = create_safe_error_for_forwarding(RuntimeError("timeout"), {"operation": "sync"})
        assert payload.severity == "low"

    def test_security_errors_are_high(self):
        assert create_safe_error_for_forwarding(SecurityViolationError("nope")).severity == "high"

    def test_level_none_raised(self):
        payload = create_safe_error_for_forwarding(
            RuntimeError("x"), {"password": "p"}, {"redaction_level": "none"}
        )
        assert "password" not in payload.context
        assert any("raised to 'partial'" in w for w in payload.security_warnings)

    @pytest.mark.parametrize("config", [
        None,
        {"include_context_hints": True},
        ErrorContextConfig(include_context_hints=True),
    ])
    def test_forwarding_context_limit_kept(self, config):
        payload = create_safe_error_for_forwarding(RuntimeError("x"), {"blob": "z" * 2000}, config)
        assert "Large context detected - applying size limits" in payload.security_warnings

    def test_model_config_explicit_fields_win(self):
        config = ErrorContextConfig(redaction_level="full", max_context_length=5000)
        payload = create_safe_error_for_forwarding(
            RuntimeError("x"), {"blob": "z" * 2000, "operation": "sync"}, config
        )
        assert payload.context == {"operation": "sync"}
        assert not any("Large context" in w for w in payload.security_warnings)

    def test_message_capped(self):
        payload = create_safe_error_for_forwarding(RuntimeError("m" * 1000))
        assert len(payload.message) <= 300

    def test_telemetry_cap(self):
        context = {f"field{i}": "v" * 300 for i in range(100)}
        payload = create_safe_error_for_forwarding(RuntimeError("x"), context)
        assert len(json.dumps(payload.to_dict())) < 8000 + 2000
        assert len(json.dumps(payload.context)) < 8000
        assert any("telemetry limits" in w for w in payload.security_warnings)

    def test_warning_cap(self):
        context = {f"token{i}": "x" for i in range(12)}
        payload = create_safe_error_for_forwarding(RuntimeError("x"), context)
        assert len(payload.security_warnings) == 11
        assert payload.security_warnings[-1].startswith("... and ")


class TestAnalyzeErrorContext:

    def test_two_credentials_high(self):
        report = analyze_error_context_security({"password": "p", "token": "t", "op": "x"})
        assert report.risk_level == "high"
        assert report.estimated_redaction_percentage == 67
        assert "Remove credentials, tokens and personal data" in report.recommendations

    def test_structural_key_critical(self):
        assert analyze_error_context_security({"__proto__": 1}).risk_level == "critical"

    def test_clean(self):
        report = analyze_error_context_security({"op": "x"})
        assert report.risk_level == "low"
        assert report.estimated_redaction_percentage == 0

    def test_empty(self):
        report = analyze_error_context_security(None)
        assert report.risk_level == "low"
        assert report.sensitive_detections == []

    def test_unreadable_value(self):
        report = analyze_error_context_security({"e": Unreadable(), "token": "t"})
        assert report.risk_level in ("medium", "high")

    def test_unreadable_context_object(self):
        assert analyze_error_context_security(Unreadable()).risk_level == "low"

    def test_does_not_modify(self):
        context = {"password": "p"}
        analyze_error_context_security(context)
        assert context == {"password": "p"}


class TestSanitizeErrorMessage:

    @pytest.mark.parametrize("message,expected", [
        (None, ""),
        ("plain", "plain"),
        ("token sk-1234567890abcdef leaked", "token [REDACTED_API_KEY] leaked"),
    ])
    def test_messages(self, message, expected):
        assert sanitize_error_message(message) == expected

    def test_truncation(self):
        out = sanitize_error_message("x" * 1000, 100)
        assert len(out) == 100
        assert out.endswith("...[truncated]")
