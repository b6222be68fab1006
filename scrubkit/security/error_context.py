"""Error context sanitizer.

Turns a raised exception plus caller-supplied context into a report that is
safe to log or forward. Every call gets a fresh correlation id so a sanitized
report can be matched against richer server-side logs.

Redaction levels:
- none: context is only bounded (size, depth, cycles), never redacted
- partial: a property whose name or content looks sensitive is dropped whole
- full: only allow-listed properties survive
"""

import json
import secrets
import time
import traceback
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from loguru import logger

from scrubkit.config.schema import ErrorContextConfig, get_settings
from scrubkit.config.untrusted import read_config
from scrubkit.security.limits import MAX_FORWARDED_WARNINGS, MAX_TELEMETRY_SIZE
from scrubkit.security.objects import (
    DANGEROUS_KEYS,
    PLACEHOLDER_CIRCULAR,
    ObjectSanitizer,
    make_json_safe,
    read_instance_attributes,
)
from scrubkit.security.patterns import (
    MAX_PATTERN_INPUT,
    contains_sensitive,
    is_sensitive_key,
    redact_sensitive,
    strip_control_chars,
    strip_invisible_chars,
)
from scrubkit.security.stacktrace import redact_paths, sanitize_stack_trace
from scrubkit.security.types import Severity, ViolationKind, truncate_original

# Violation kinds that make a context property unsafe to keep
_TRIGGER_KINDS = frozenset({
    ViolationKind.SENSITIVE_VALUE,
    ViolationKind.COMMAND_INJECTION,
    ViolationKind.SCRIPT_INJECTION,
    ViolationKind.PATH_TRAVERSAL,
    ViolationKind.OBFUSCATION,
    ViolationKind.CUSTOM_PATTERN,
    ViolationKind.PROTOTYPE_POLLUTION,
    ViolationKind.DANGEROUS_CALLABLE,
})

# Kept first when a forwarded payload has to shrink
PRIORITY_PROPERTIES = ("timestamp", "level", "operation", "component", "status")

MESSAGE_TRUNCATION_MARKER = "...[truncated]"
SIZE_LIMIT_MARKER = "...[size-limited]"
FORWARDED_MESSAGE_LENGTH = 300
FORWARDED_CONTEXT_LENGTH = 500
SLOW_SANITIZATION_MS = 100

# Projection bounds applied to every context value, at every redaction level
_PROJECTION_DEPTH = 8
_PROJECTION_ITEMS = 100
_PROJECTION_STRING = 10_000


@dataclass
class ContextDetection:
    """One sensitive finding inside an error context."""
    property_path: str
    sensitive_type: str
    hint: str
    severity: Severity

    def to_dict(self) -> dict[str, str]:
        return {
            "property_path": self.property_path,
            "sensitive_type": self.sensitive_type,
            "hint": self.hint,
            "severity": self.severity.value,
        }


@dataclass
class ErrorSanitizationResult:
    """Sanitized view of an exception and its context."""
    error_id: str
    message: str
    error_type: str
    context: dict[str, Any] = field(default_factory=dict)
    code: Optional[str | int] = None
    timestamp: Optional[str] = None
    redacted_properties: list[str] = field(default_factory=list)
    security_warnings: list[str] = field(default_factory=list)
    had_sensitive_data: bool = False
    redaction_hints: dict[str, str] = field(default_factory=dict)
    stack: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "error_id": self.error_id,
            "message": self.message,
            "type": self.error_type,
            "context": self.context,
            "redacted_properties": list(self.redacted_properties),
            "security_warnings": list(self.security_warnings),
            "had_sensitive_data": self.had_sensitive_data,
        }
        if self.code is not None:
            data["code"] = self.code
        if self.timestamp is not None:
            data["timestamp"] = self.timestamp
        if self.redaction_hints:
            data["redaction_hints"] = dict(self.redaction_hints)
        if self.stack is not None:
            data["stack"] = self.stack
        return data


@dataclass
class SafeErrorPayload:
    """Error report ready to cross a process or network boundary."""
    error_id: str
    message: str
    error_type: str
    timestamp: str
    context: dict[str, Any]
    severity: str
    had_sensitive_data: bool = False
    redacted_count: int = 0
    security_warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_id": self.error_id,
            "message": self.message,
            "type": self.error_type,
            "timestamp": self.timestamp,
            "context": self.context,
            "severity": self.severity,
            "metadata": {
                "had_sensitive_data": self.had_sensitive_data,
                "redacted_count": self.redacted_count,
                "security_warnings": list(self.security_warnings),
            },
        }


@dataclass
class ErrorContextSecurityReport:
    """Read-only assessment of an error context."""
    risk_level: str = "low"
    sensitive_detections: list[ContextDetection] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    estimated_redaction_percentage: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "risk_level": self.risk_level,
            "sensitive_detections": [d.to_dict() for d in self.sensitive_detections],
            "recommendations": list(self.recommendations),
            "estimated_redaction_percentage": self.estimated_redaction_percentage,
        }


# =============================================================================
# HELPERS
# =============================================================================

def generate_error_id() -> str:
    """Correlation id: minute-bucketed UTC prefix plus 64 random bits.

    Example: ``ERR_202610171342_9F3A61C07B2E4D58``
    """
    return f"ERR_{datetime.now(timezone.utc):%Y%m%d%H%M}_{secrets.token_hex(8).upper()}"


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def sanitize_error_message(message: Any, max_length: int = 500) -> str:
    """Strip control characters, paths and secrets from an error message."""
    if message is None:
        return ""
    text = message if isinstance(message, str) else truncate_original(message, max_length + MAX_PATTERN_INPUT)
    text = strip_invisible_chars(strip_control_chars(text[: max_length + MAX_PATTERN_INPUT]))
    text = " ".join(redact_paths(line) for line in text.splitlines() if line.strip())
    text = redact_sensitive(text, max_length + MAX_PATTERN_INPUT)
    if len(text) > max_length:
        text = text[: max(0, max_length - len(MESSAGE_TRUNCATION_MARKER))] + MESSAGE_TRUNCATION_MARKER
    return text


def _is_exception(error: Any) -> bool:
    # type() never runs user code, isinstance() may read __class__
    return issubclass(type(error), BaseException)


def _read_message(error: Any, warnings: list[str]) -> str:
    if not _is_exception(error):
        return truncate_original(error, MAX_PATTERN_INPUT) if error is not None else "Unknown error"
    try:
        return str(error) or "Unknown error"
    except Exception as e:  # hostile __str__
        warnings.append(f"Error message access failed ({type(e).__name__})")
        return "Error message access failed"


def _read_code(attributes: dict[Any, Any], error: Any) -> Optional[str | int]:
    code = attributes.get("code")
    if code is None and issubclass(type(error), OSError):
        code = error.errno
    if issubclass(type(code), bool) or not issubclass(type(code), (str, int)):
        return None
    return code if issubclass(type(code), int) else code[:100]


def _snapshot_context(context: Any, warnings: list[str]) -> list[tuple[Any, Any]]:
    if context is None:
        return []
    if issubclass(type(context), dict):
        return list(dict.items(context))
    if issubclass(type(context), Mapping):
        try:
            return list(context.items())
        except Exception as e:  # hostile mapping
            warnings.append(f"Context could not be read ({type(e).__name__})")
            return []
    warnings.append(f"Context of type {type(context).__name__} is not a mapping; ignored")
    return []


def _contains(value: Any, marker: str, depth: int = 0) -> bool:
    if isinstance(value, str):
        return value == marker
    if depth > _PROJECTION_DEPTH:
        return False
    if isinstance(value, dict):
        return any(_contains(v, marker, depth + 1) for v in value.values())
    if isinstance(value, list):
        return any(_contains(v, marker, depth + 1) for v in value)
    return False


def _serialized_size(value: Any) -> int:
    return len(json.dumps(value, default=str, ensure_ascii=False))


def _count_properties(value: Any, depth: int = 0) -> int:
    if depth > _PROJECTION_DEPTH:
        return 0
    if isinstance(value, dict):
        return len(value) + sum(_count_properties(v, depth + 1) for v in value.values())
    if isinstance(value, list):
        return sum(_count_properties(v, depth + 1) for v in value)
    return 0


def _scanner() -> ObjectSanitizer:
    config = get_settings().objects.model_copy(update={
        "enable_cache": False,
        "enable_injection_protection": True,
    })
    return ObjectSanitizer(config)


def _detect(
    scanner: ObjectSanitizer,
    key: str,
    value: Any,
    cfg: ErrorContextConfig,
) -> list[ContextDetection]:
    """Findings for one top-level context property."""
    path = f"context.{key}"
    found: list[ContextDetection] = []
    if value is not None and is_sensitive_key(key):
        found.append(ContextDetection(
            property_path=path,
            sensitive_type="credential-property",
            hint="Property name suggests a credential",
            severity=Severity.HIGH,
        ))
    if cfg.sanitize_nested_objects or not isinstance(value, (dict, list)):
        for violation in scanner.scan(value, path):
            if violation.kind in _TRIGGER_KINDS:
                found.append(ContextDetection(
                    property_path=violation.path,
                    sensitive_type=violation.kind.value,
                    hint=violation.description,
                    severity=violation.severity,
                ))
    return found


def _shrink_large_values(context: dict[str, Any], hints: dict[str, str], limit: int) -> None:
    for key, value in context.items():
        if isinstance(value, str) and len(value) > 200:
            context[key] = value[:200] + MESSAGE_TRUNCATION_MARKER
            hints[key] = "Long content truncated"
        elif isinstance(value, (dict, list)) and _serialized_size(value) > limit:
            context[key] = make_json_safe(value, max_depth=2, max_items=10, max_string_length=100)
            hints[key] = "Large value summarized"


# =============================================================================
# PUBLIC API
# =============================================================================

def sanitize_error_context(
    error: Any,
    context: Any = None,
    config: Any = None,
    stack_config: Any = None,
) -> ErrorSanitizationResult:
    """Sanitize an exception and its context for logging.

    Args:
        error: The raised exception (any value is accepted).
        context: Mapping of extra properties to report alongside the error.
        config: ``ErrorContextConfig``, mapping or attribute object.
        stack_config: ``StackTraceConfig`` used when the stack is included.

    Returns:
        ErrorSanitizationResult. ``error_id`` is always set.

    Raises:
        ConfigurationTamperingError: ``config`` uses computed accessors.
    """
    cfg, advisories = read_config(ErrorContextConfig, config, base=get_settings().error_context)
    started = time.perf_counter()
    warnings: list[str] = list(advisories)
    redacted: list[str] = []
    hints: dict[str, str] = {}

    raw_message = _read_message(error, warnings)
    message = sanitize_error_message(raw_message, cfg.max_message_length)
    bounded_message = raw_message[:MAX_PATTERN_INPUT]
    message_changed = contains_sensitive(bounded_message) or redact_paths(bounded_message) != bounded_message

    attributes: dict[Any, Any] = {}
    if _is_exception(error):
        attributes = dict(read_instance_attributes(error) or [])
    code = _read_code(attributes, error) if cfg.preserve_error_codes else None

    raw_items = [
        (k, v) for k, v in attributes.items()
        if issubclass(type(k), str) and not k.startswith("_") and k != "code"
    ]
    raw_items.extend(_snapshot_context(context, warnings))

    # Bounded, cycle-safe projection; no redaction decisions yet
    projected: dict[str, Any] = {}
    for key, value in raw_items:
        name = key if issubclass(type(key), str) else truncate_original(key, 50)
        name = strip_control_chars(name)[:256]
        if name in DANGEROUS_KEYS:
            redacted.append(name)
            warnings.append(f"Dangerous property removed: {truncate_original(name, 50)}")
            continue
        projected[name] = make_json_safe(value, _PROJECTION_DEPTH, _PROJECTION_ITEMS, _PROJECTION_STRING)

    if _contains(projected, PLACEHOLDER_CIRCULAR):
        warnings.append("Circular reference detected in context")

    if _serialized_size(projected) > cfg.max_context_length * 3:
        warnings.append("Large context detected - applying size limits")
        _shrink_large_values(projected, hints, cfg.max_context_length)

    scanner = _scanner()
    detections: list[ContextDetection] = []
    sanitized: dict[str, Any] = {}
    for key, value in projected.items():
        found = _detect(scanner, key, value, cfg)
        detections.extend(found)
        if cfg.redaction_level == "full" and key not in cfg.allowed_properties:
            redacted.append(key)
            hints[key] = "Not in allowed properties"
            continue
        if cfg.redaction_level != "none" and found:
            redacted.append(key)
            hints[key] = f"Removed: {found[0].sensitive_type}"
            continue
        sanitized[key] = value

    for detection in detections:
        if detection.severity.at_least(Severity.HIGH):
            warnings.append(f"{detection.sensitive_type} detected in {detection.property_path}")

    if _serialized_size(sanitized) > cfg.max_context_length:
        warnings.append("Context size exceeded limits after sanitization")
        for key, value in sanitized.items():
            if isinstance(value, str) and len(value) > 100:
                sanitized[key] = value[:100] + SIZE_LIMIT_MARKER
                hints[key] = (hints.get(key, "") + " (size limited)").strip()

    stack = None
    if cfg.include_stack_trace and _is_exception(error):
        try:
            stack = sanitize_stack_trace("".join(traceback.format_exception(error)), stack_config)
        except Exception as e:  # hostile __str__ while formatting
            warnings.append(f"Stack trace could not be formatted ({type(e).__name__})")

    elapsed_ms = (time.perf_counter() - started) * 1000
    if elapsed_ms > SLOW_SANITIZATION_MS:
        warnings.append(f"Context sanitization took {elapsed_ms:.0f}ms - consider reducing context size")

    had_sensitive = bool(detections) or message_changed
    if had_sensitive:
        logger.debug(f"Error context redacted {len(redacted)} propert{'y' if len(redacted) == 1 else 'ies'}")

    return ErrorSanitizationResult(
        error_id=generate_error_id(),
        message=message,
        error_type=type(error).__name__ if _is_exception(error) else "Error",
        context=sanitized,
        code=code,
        timestamp=_utc_timestamp() if cfg.preserve_timestamps else None,
        redacted_properties=redacted,
        security_warnings=warnings,
        had_sensitive_data=had_sensitive,
        redaction_hints=hints if cfg.include_context_hints else {},
        stack=stack,
    )


def _fit_telemetry(base: dict[str, Any], context: dict[str, Any]) -> dict[str, Any]:
    """Rebuild context within MAX_TELEMETRY_SIZE, priority properties first."""
    reduced: dict[str, Any] = {k: context[k] for k in PRIORITY_PROPERTIES if k in context}
    for key, value in context.items():
        if key in reduced:
            continue
        if _serialized_size({**base, "context": {**reduced, key: value}}) < MAX_TELEMETRY_SIZE:
            reduced[key] = value
            continue
        if isinstance(value, str):
            shortened = value[:50] + MESSAGE_TRUNCATION_MARKER
            if _serialized_size({**base, "context": {**reduced, key: shortened}}) < MAX_TELEMETRY_SIZE:
                reduced[key] = shortened
        break
    return reduced


def create_safe_error_for_forwarding(
    error: Any,
    context: Any = None,
    config: Any = None,
) -> SafeErrorPayload:
    """Stricter preset of sanitize_error_context for external telemetry.

    The context limit defaults to 500 characters, the redaction level is never
    below ``partial``, the payload is capped at MAX_TELEMETRY_SIZE serialized
    characters and at most MAX_FORWARDED_WARNINGS warnings are forwarded.
    A config model contributes only its explicitly set fields.
    """
    base = get_settings().error_context.model_copy(update={
        "max_context_length": FORWARDED_CONTEXT_LENGTH,
        "preserve_timestamps": True,
    })
    if isinstance(config, ErrorContextConfig):
        config = {name: getattr(config, name) for name in config.model_fields_set}
    cfg, _ = read_config(ErrorContextConfig, config, base=base)
    notes: list[str] = []
    if cfg.redaction_level == "none":
        cfg = cfg.model_copy(update={"redaction_level": "partial"})
        notes.append("Redaction level 'none' raised to 'partial' for forwarding")

    result = sanitize_error_context(error, context, cfg)
    message = sanitize_error_message(result.message, FORWARDED_MESSAGE_LENGTH)
    timestamp = result.timestamp or _utc_timestamp()
    warnings = notes + result.security_warnings

    envelope = {
        "error_id": result.error_id,
        "message": message,
        "type": result.error_type,
        "timestamp": timestamp,
    }
    context_out = result.context
    if _serialized_size({**envelope, "context": context_out}) > MAX_TELEMETRY_SIZE:
        warnings.append("Payload size exceeded telemetry limits - applying aggressive reduction")
        context_out = _fit_telemetry(envelope, context_out)

    if len(warnings) > MAX_FORWARDED_WARNINGS:
        extra = len(warnings) - MAX_FORWARDED_WARNINGS
        warnings = warnings[:MAX_FORWARDED_WARNINGS]
        warnings.append(f"... and {extra} more security warnings (truncated for telemetry)")

    severity = "medium" if result.had_sensitive_data or warnings else "low"
    if "security" in result.error_type.lower() or "security" in message.lower():
        severity = "high"

    return SafeErrorPayload(
        error_id=result.error_id,
        message=message,
        error_type=result.error_type,
        timestamp=timestamp,
        context=context_out,
        severity=severity,
        had_sensitive_data=result.had_sensitive_data,
        redacted_count=len(result.redacted_properties),
        security_warnings=warnings,
    )


def analyze_error_context_security(context: Any, config: Any = None) -> ErrorContextSecurityReport:
    """Assess an error context without modifying it."""
    cfg, _ = read_config(ErrorContextConfig, config, base=get_settings().error_context)
    ignored: list[str] = []
    projected = {
        (k if issubclass(type(k), str) else truncate_original(k, 50)): make_json_safe(
            v, _PROJECTION_DEPTH, _PROJECTION_ITEMS, _PROJECTION_STRING
        )
        for k, v in _snapshot_context(context, ignored)
    }

    scanner = _scanner()
    report = ErrorContextSecurityReport()
    for key, value in projected.items():
        if key in DANGEROUS_KEYS:
            report.sensitive_detections.append(ContextDetection(
                property_path=f"context.{key}",
                sensitive_type=ViolationKind.PROTOTYPE_POLLUTION.value,
                hint="Structural key in context data",
                severity=Severity.CRITICAL,
            ))
            continue
        report.sensitive_detections.extend(_detect(scanner, key, value, cfg))

    detections = report.sensitive_detections
    total = _count_properties(projected)
    severities = [d.severity for d in detections]
    highs = severities.count(Severity.HIGH)
    mediums = severities.count(Severity.MEDIUM)
    if Severity.CRITICAL in severities:
        report.risk_level = "critical"
    elif highs >= 2 or len(detections) >= 5:
        report.risk_level = "high"
    elif highs or mediums >= 2:
        report.risk_level = "medium"

    types_found = {d.sensitive_type for d in detections}
    if Severity.CRITICAL in severities:
        report.recommendations.append("CRITICAL: Remove all credential and structural data from the context")
    if types_found & {"credential-property", ViolationKind.SENSITIVE_VALUE.value}:
        report.recommendations.append("Remove credentials, tokens and personal data")
    if ViolationKind.PATH_TRAVERSAL.value in types_found:
        report.recommendations.append("Sanitize file paths and directory information")
    if types_found & {ViolationKind.COMMAND_INJECTION.value, ViolationKind.SCRIPT_INJECTION.value}:
        report.recommendations.append("Remove injection-like content before logging")

    flagged = {d.property_path for d in detections}
    if total and len(flagged) > total * 0.3:
        report.recommendations.append("Consider redaction_level 'full' due to high sensitive content ratio")
    if total > 20:
        report.recommendations.append("Reduce context size - large contexts increase disclosure risk")
    report.estimated_redaction_percentage = min(100, round(len(flagged) / total * 100)) if total else 0
    return report