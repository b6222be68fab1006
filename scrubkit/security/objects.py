"""Cycle-safe sanitizer for arbitrary in-memory values.

Every node goes through the same four steps::

    classify -> detect violations -> select strategy -> apply strategy

``sanitize`` recurses into children, ``redact`` and ``remove`` do not. Cycles
are caught with a path-scoped set of open ancestors, so a value reachable
twice through non-cyclic paths is sanitized twice while a true back-reference
becomes ``"[Circular]"``. The depth limit is an independent safety net.

Usage:
    from scrubkit.security.objects import sanitize_object

    result = sanitize_object({"user": "bob", "__proto__": {"polluted": True}})
    result.sanitized_value   # {'user': 'bob'}
    result.is_valid          # False (critical prototype-pollution violation)
"""

import asyncio
import collections
import datetime
import functools
import hashlib
import inspect
import math
import os
import re
import subprocess
import time
import types
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, FrozenSet, Iterable, Optional

from loguru import logger

from scrubkit.config.schema import MAX_SAFE_INTEGER, ObjectSanitizationConfig, get_settings
from scrubkit.config.untrusted import read_config
from scrubkit.security.audit import log_security_event
from scrubkit.security.cache import ResultCache, get_shared_cache, make_cache_key
from scrubkit.security.patterns import (
    EXTENDED_CATEGORIES,
    INJECTION_CATEGORIES,
    MAX_PATTERN_INPUT,
    SENSITIVE_CATEGORIES,
    analyze,
    compile_custom_patterns,
    is_sensitive_key,
    redact_sensitive,
    strip_control_chars,
    strip_invisible_chars,
)
from scrubkit.security.types import (
    Severity,
    Strategy,
    TypeTag,
    Violation,
    ViolationKind,
    truncate_original,
)


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

# Own keys that address the class/prototype machinery instead of data
DANGEROUS_KEYS: FrozenSet[str] = frozenset({
    "__proto__", "constructor", "prototype",
    "__class__", "__dict__", "__globals__", "__builtins__", "__init__",
    "__subclasses__", "__mro__", "__bases__", "__base__", "__code__",
    "__reduce__", "__reduce_ex__", "__getattr__", "__getattribute__",
    "__setattr__", "__delattr__", "__del__", "__import__",
})

# Names whose presence in a callable's bytecode marks dynamic code execution
DANGEROUS_CALL_NAMES: FrozenSet[str] = frozenset({
    "eval", "exec", "execfile", "compile", "__import__",
    "system", "popen", "Popen", "check_output", "getoutput",
    "execv", "execve", "execl", "execvp", "spawnv", "spawnl",
})

_DANGEROUS_CALLABLES = (eval, exec, compile, __import__, os.system, os.popen, subprocess.Popen)

PLACEHOLDER_REDACTED = "[REDACTED]"
PLACEHOLDER_CIRCULAR = "[Circular]"
PLACEHOLDER_UNKNOWN = "[Unknown Object Type]"
PLACEHOLDER_MAX_DEPTH = "[Max Depth Exceeded]"
PLACEHOLDER_TIMEOUT = "[Processing Time Exceeded]"
PLACEHOLDER_ERROR = "[Unreadable Value]"
TRUNCATION_MARKER = "...[truncated]"

# Children kept by the truncate strategy
TRUNCATE_KEEP = 10
# Children inspected per container when estimating size
_MEASURE_ITEM_CAP = 10_000

_REMOVED = object()
_SEQUENCE_TYPES = (list, tuple, set, frozenset, collections.deque)
_DATE_TYPES = (datetime.date, datetime.time, datetime.timedelta)
_BINARY_TYPES = (bytes, bytearray, memoryview)
_SIMPLE_CALLABLES = (
    types.FunctionType, types.MethodType, types.BuiltinFunctionType,
    types.BuiltinMethodType, type, functools.partial,
)

_LEVEL_DEFAULTS: dict[str, dict[TypeTag, Strategy]] = {
    "minimal": {
        TypeTag.PRIMITIVE: Strategy.PRESERVE,
        TypeTag.RECORD: Strategy.SANITIZE,
        TypeTag.SEQUENCE: Strategy.SANITIZE,
        TypeTag.DATE: Strategy.PRESERVE,
        TypeTag.PATTERN: Strategy.PRESERVE,
        TypeTag.CALLABLE: Strategy.REDACT,
        TypeTag.CLASS_INSTANCE: Strategy.PRESERVE,
        TypeTag.BINARY: Strategy.PRESERVE,
        TypeTag.CIRCULAR: Strategy.REDACT,
        TypeTag.UNKNOWN: Strategy.PRESERVE,
    },
    "standard": {
        TypeTag.PRIMITIVE: Strategy.SANITIZE,
        TypeTag.RECORD: Strategy.SANITIZE,
        TypeTag.SEQUENCE: Strategy.SANITIZE,
        TypeTag.DATE: Strategy.SANITIZE,
        TypeTag.PATTERN: Strategy.SANITIZE,
        TypeTag.CALLABLE: Strategy.REDACT,
        TypeTag.CLASS_INSTANCE: Strategy.SANITIZE,
        TypeTag.BINARY: Strategy.REDACT,
        TypeTag.CIRCULAR: Strategy.REDACT,
        TypeTag.UNKNOWN: Strategy.REDACT,
    },
    "strict": {
        TypeTag.PRIMITIVE: Strategy.SANITIZE,
        TypeTag.RECORD: Strategy.SANITIZE,
        TypeTag.SEQUENCE: Strategy.SANITIZE,
        TypeTag.DATE: Strategy.SANITIZE,
        TypeTag.PATTERN: Strategy.SANITIZE,
        TypeTag.CALLABLE: Strategy.REDACT,
        TypeTag.CLASS_INSTANCE: Strategy.REDACT,
        TypeTag.BINARY: Strategy.REDACT,
        TypeTag.CIRCULAR: Strategy.REDACT,
        TypeTag.UNKNOWN: Strategy.REDACT,
    },
    "paranoid": {
        TypeTag.PRIMITIVE: Strategy.SANITIZE,
        TypeTag.RECORD: Strategy.SANITIZE,
        TypeTag.SEQUENCE: Strategy.SANITIZE,
        TypeTag.DATE: Strategy.REMOVE,
        TypeTag.PATTERN: Strategy.REMOVE,
        TypeTag.CALLABLE: Strategy.REMOVE,
        TypeTag.CLASS_INSTANCE: Strategy.REMOVE,
        TypeTag.BINARY: Strategy.REMOVE,
        TypeTag.CIRCULAR: Strategy.REMOVE,
        TypeTag.UNKNOWN: Strategy.REMOVE,
    },
}

LEVEL_PRESETS: dict[str, dict[str, Any]] = {
    "minimal": {"sanitization_level": "minimal", "enable_injection_protection": False},
    "standard": {"sanitization_level": "standard"},
    "strict": {"sanitization_level": "strict", "max_depth": 5, "max_properties": 50},
    "paranoid": {
        "sanitization_level": "paranoid",
        "max_depth": 3,
        "max_properties": 20,
        "max_string_length": 1000,
    },
}


@dataclass
class ObjectSanitizationResult:
    """Outcome of sanitizing one value.

    ``is_valid`` is False when any critical violation was found, even though a
    sanitized value is still produced.
    """
    is_valid: bool
    sanitized_value: Any
    original_type_tag: TypeTag
    strategy_applied: Strategy
    size_reduction_bytes: int = 0
    processing_time_ms: float = 0.0
    violations: list[Violation] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "sanitized_value": make_json_safe(self.sanitized_value),
            "original_type_tag": self.original_type_tag.value,
            "strategy_applied": self.strategy_applied.value,
            "size_reduction_bytes": self.size_reduction_bytes,
            "processing_time_ms": self.processing_time_ms,
            "violations": [v.to_dict() for v in self.violations],
            "warnings": list(self.warnings),
            "metrics": dict(self.metrics),
        }


@dataclass
class _Walk:
    """Per-call traversal state. Never shared between calls."""
    deadline: float
    violations: list[Violation] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    ancestors: set[int] = field(default_factory=set)
    measured: dict[int, tuple[int, int]] = field(default_factory=dict)
    nodes: int = 0
    deepest: int = 0
    strings_redacted: int = 0
    removed: int = 0
    timed_out: bool = False
    depth_warned: bool = False

    def expired(self) -> bool:
        return time.perf_counter() > self.deadline


# =============================================================================
# HELPERS
# =============================================================================

def _clean_name(name: Any, fallback: str) -> str:
    if not isinstance(name, str):
        return fallback
    cleaned = re.sub(r'[^\w.]', '', name)[:60]
    return cleaned or fallback


def _callable_name(value: Any) -> str:
    if isinstance(value, _SIMPLE_CALLABLES) and not isinstance(value, functools.partial):
        return _clean_name(getattr(value, "__qualname__", None) or getattr(value, "__name__", None), "anonymous")
    if isinstance(value, functools.partial):
        return _callable_name(value.func)
    return _clean_name(type(value).__name__, "anonymous")


def _code_names(value: Any) -> set[str]:
    """Names referenced by a Python function's bytecode, nested code included."""
    if isinstance(value, functools.partial):
        value = value.func
    if isinstance(value, types.MethodType):
        value = value.__func__
    if not isinstance(value, types.FunctionType):
        return set()
    names: set[str] = set()
    stack = [value.__code__]
    seen = 0
    while stack and seen < 64:
        code = stack.pop()
        seen += 1
        names.update(code.co_names)
        stack.extend(c for c in code.co_consts if isinstance(c, types.CodeType))
    return names


def read_instance_attributes(value: Any) -> Optional[list[tuple[Any, Any]]]:
    """Read an object's attributes without running user-defined accessors.

    Returns None when the object has no readable attribute storage.
    """
    items: list[tuple[Any, Any]] = []
    found = False
    storage = inspect.getattr_static(value, "__dict__", None)
    if isinstance(storage, types.GetSetDescriptorType):
        found = True
        items.extend(dict.items(storage.__get__(value, type(value))))
    elif isinstance(storage, dict):
        found = True
        items.extend(dict.items(storage))

    for klass in type(value).__mro__:
        slots = klass.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for slot in slots if isinstance(slots, (tuple, list)) else ():
            descriptor = klass.__dict__.get(slot)
            if isinstance(descriptor, types.MemberDescriptorType):
                found = True
                try:
                    items.append((slot, descriptor.__get__(value, type(value))))
                except AttributeError:
                    continue
    return items if found else None


def _leaf_size(value: Any) -> int:
    if isinstance(value, str):
        return len(value) + 2
    if isinstance(value, _BINARY_TYPES):
        return len(value)
    if value is None or isinstance(value, bool):
        return 4
    if isinstance(value, (int, float)):
        return 8
    return 16


def _severity_for_score(score: int) -> Severity:
    if score >= 70:
        return Severity.CRITICAL
    if score >= 40:
        return Severity.HIGH
    if score >= 20:
        return Severity.MEDIUM
    return Severity.LOW


def _key_label(key: Any) -> str:
    return truncate_original(key if isinstance(key, str) else repr(key), 50)


def _clean_key(key: Any) -> Any:
    if isinstance(key, str):
        return strip_invisible_chars(strip_control_chars(key))[:256]
    if key is None or isinstance(key, (bool, int, float)):
        return key
    return truncate_original(key)


def _parse_strategies(raw: dict[str, str]) -> tuple[dict[TypeTag, Strategy], list[str]]:
    parsed: dict[TypeTag, Strategy] = {}
    advisories: list[str] = []
    for tag_name, strategy_name in raw.items():
        try:
            parsed[TypeTag(tag_name)] = Strategy(strategy_name)
        except ValueError:
            advisories.append(f"Ignoring custom strategy {truncate_original(tag_name, 30)} -> "
                              f"{truncate_original(strategy_name, 30)}")
    return parsed, advisories


# =============================================================================
# SANITIZER
# =============================================================================

class ObjectSanitizer:
    """
    Sanitizer bound to one immutable configuration.

    Instances hold no per-call state; the result cache is the only thing
    shared between calls and is guarded by its own lock.
    """

    def __init__(
        self,
        config: ObjectSanitizationConfig | None = None,
        cache: ResultCache | None = None,
    ):
        self.config = config or ObjectSanitizationConfig()
        self.cache = cache
        self._redaction_patterns, advisories = compile_custom_patterns(self.config.custom_redaction_patterns)
        self._custom_strategies, strategy_advisories = _parse_strategies(self.config.custom_strategies)
        self.advisories = advisories + strategy_advisories
        self._table = _LEVEL_DEFAULTS[self.config.sanitization_level]
        self._string_categories = INJECTION_CATEGORIES + SENSITIVE_CATEGORIES
        if self.config.sanitization_level in ("strict", "paranoid"):
            self._string_categories += EXTENDED_CATEGORIES
        self._fingerprint = hashlib.sha256(self.config.model_dump_json().encode()).hexdigest()

    # -------------------------------------------------------------------------
    # classify
    # -------------------------------------------------------------------------

    def classify(self, value: Any, ancestors: set[int] | None = None) -> TypeTag:
        """Assign a classification tag. Pure apart from reading the ancestor set."""
        if value is None or isinstance(value, (bool, int, float, str)):
            return TypeTag.PRIMITIVE
        if callable(value):
            return TypeTag.CALLABLE
        if ancestors and id(value) in ancestors:
            return TypeTag.CIRCULAR
        if isinstance(value, _BINARY_TYPES):
            return TypeTag.BINARY
        if isinstance(value, _SEQUENCE_TYPES):
            return TypeTag.SEQUENCE
        if isinstance(value, _DATE_TYPES):
            return TypeTag.DATE
        if isinstance(value, re.Pattern):
            return TypeTag.PATTERN
        if isinstance(value, Mapping):
            return TypeTag.RECORD
        if isinstance(value, types.ModuleType):
            return TypeTag.UNKNOWN
        if read_instance_attributes(value) is not None:
            return TypeTag.CLASS_INSTANCE
        return TypeTag.UNKNOWN

    def _children(self, value: Any, tag: TypeTag) -> list[tuple[Any, Any]]:
        if tag is TypeTag.RECORD:
            if isinstance(value, dict):
                return list(dict.items(value))
            return list(value.items())
        if tag is TypeTag.SEQUENCE:
            return list(enumerate(value))
        if tag is TypeTag.CLASS_INSTANCE:
            return read_instance_attributes(value) or []
        return []

    # -------------------------------------------------------------------------
    # detect
    # -------------------------------------------------------------------------

    def _measure(self, value: Any, walk: _Walk, level: int = 0) -> tuple[int, int]:
        """Bounded (nesting depth, estimated bytes) of a value."""
        try:
            tag = self.classify(value, walk.ancestors)
            if tag not in (TypeTag.RECORD, TypeTag.SEQUENCE, TypeTag.CLASS_INSTANCE):
                return 0, 12 if tag is TypeTag.CIRCULAR else _leaf_size(value)
        except Exception:  # hostile type or attribute access
            return 0, 16
        memo = walk.measured.get(id(value))
        if memo is not None:
            return memo
        depth_cap = self.config.max_depth * 2 + 1
        size_cap = self.config.max_object_size * 2 + 1
        if level >= depth_cap:
            return 1, 2

        try:
            children = self._children(value, tag)
        except Exception:  # hostile mapping accessor
            return 1, 16
        walk.ancestors.add(id(value))
        try:
            depth = 0
            size = 2
            for index, (key, child) in enumerate(children):
                if index >= _MEASURE_ITEM_CAP:
                    size = size * len(children) // index
                    break
                try:
                    child_depth, child_size = self._measure(child, walk, level + 1)
                    key_size = _leaf_size(key) if tag is not TypeTag.SEQUENCE else 1
                except Exception:  # hostile child or key
                    child_depth, child_size, key_size = 0, 16, 1
                depth = max(depth, child_depth)
                size += child_size + key_size
                if size > size_cap:
                    break
        finally:
            walk.ancestors.discard(id(value))
        measured = (depth + 1, size)
        walk.measured[id(value)] = measured
        return measured

    def detect(
        self,
        value: Any,
        tag: TypeTag,
        path: str,
        walk: _Walk,
        key_name: Any = None,
        reported: FrozenSet[ViolationKind] = frozenset(),
    ) -> list[Violation]:
        """Find violations for one node (not its children)."""
        cfg = self.config
        found: list[Violation] = []

        if tag is TypeTag.CALLABLE:
            names = _code_names(value) & DANGEROUS_CALL_NAMES
            if names or any(value is d for d in _DANGEROUS_CALLABLES):
                found.append(Violation(
                    kind=ViolationKind.DANGEROUS_CALLABLE,
                    severity=Severity.HIGH,
                    description="Callable performs dynamic code execution"
                                + (f" ({', '.join(sorted(names))})" if names else ""),
                    path=path,
                    original=f"[Function: {_callable_name(value)}]",
                    remediation="Do not pass executable values",
                ))

        elif tag in (TypeTag.RECORD, TypeTag.SEQUENCE, TypeTag.CLASS_INSTANCE):
            depth, size = self._measure(value, walk)
            if depth > cfg.max_depth and ViolationKind.DEEP_NESTING not in reported:
                found.append(Violation(
                    kind=ViolationKind.DEEP_NESTING,
                    severity=Severity.CRITICAL if depth > cfg.max_depth * 2 else Severity.MEDIUM,
                    description=f"Nesting depth {depth if depth <= cfg.max_depth * 2 else f'>{cfg.max_depth * 2}'} "
                                f"exceeds limit {cfg.max_depth}",
                    path=path,
                    remediation="Flatten the structure",
                ))
            if size > cfg.max_object_size and ViolationKind.OVERSIZED not in reported:
                found.append(Violation(
                    kind=ViolationKind.OVERSIZED,
                    severity=Severity.CRITICAL if size > cfg.max_object_size * 2 else Severity.HIGH,
                    description=f"Estimated size exceeds limit {cfg.max_object_size} bytes",
                    path=path,
                    remediation="Send a summary instead of the full value",
                ))

        elif isinstance(value, str) and value:
            if cfg.enable_injection_protection:
                analysis = analyze(value, self._string_categories, path=path)
                if analysis.violations:
                    severity = _severity_for_score(analysis.risk_score)
                    found.extend(
                        Violation(
                            kind=v.kind,
                            severity=severity,
                            description=v.description,
                            path=path,
                            original=v.original,
                            remediation=v.remediation,
                        )
                        for v in analysis.violations
                    )
            if value != PLACEHOLDER_REDACTED and is_sensitive_key(key_name):
                found.append(Violation(
                    kind=ViolationKind.SENSITIVE_VALUE,
                    severity=Severity.MEDIUM,
                    description="Value stored under a credential-like property name",
                    path=path,
                    remediation="Do not log credentials",
                ))
            for pattern in self._redaction_patterns:
                if pattern.search(value[:MAX_PATTERN_INPUT]):
                    found.append(Violation(
                        kind=ViolationKind.CUSTOM_PATTERN,
                        severity=Severity.MEDIUM,
                        description="Matches custom redaction pattern",
                        path=path,
                    ))
                    break

        return found

    # -------------------------------------------------------------------------
    # select
    # -------------------------------------------------------------------------

    def select_strategy(self, tag: TypeTag, violations: Iterable[Violation]) -> Strategy:
        """Decision table keyed by (level, classification), with overrides."""
        override = self._custom_strategies.get(tag)
        if override is not None:
            return override
        severities = {v.severity for v in violations}
        if Severity.CRITICAL in severities:
            return Strategy.REMOVE
        if Severity.HIGH in severities and self.config.sanitization_level in ("strict", "paranoid"):
            return Strategy.REDACT
        if tag is TypeTag.CALLABLE and not self.config.sanitize_functions and self.config.sanitization_level != "paranoid":
            return Strategy.PRESERVE
        return self._table[tag]

    # -------------------------------------------------------------------------
    # apply
    # -------------------------------------------------------------------------

    def _placeholder(self, value: Any, tag: TypeTag) -> str:
        if tag is TypeTag.CALLABLE:
            return f"[Function: {_callable_name(value)}]"
        if tag is TypeTag.CIRCULAR:
            return PLACEHOLDER_CIRCULAR
        if tag is TypeTag.BINARY:
            return f"[Binary: {len(value) if not isinstance(value, memoryview) else value.nbytes} bytes]"
        if tag is TypeTag.CLASS_INSTANCE:
            return f"[{_clean_name(type(value).__name__, 'Object')} Instance]"
        if tag is TypeTag.UNKNOWN:
            return PLACEHOLDER_UNKNOWN
        return PLACEHOLDER_REDACTED

    def _sanitize_string(self, value: str, key_name: Any, walk: _Walk) -> str:
        limit = self.config.max_string_length
        # Pre-cut bounds the work below; the final cut happens last
        text = value[: limit + MAX_PATTERN_INPUT]
        text = strip_invisible_chars(strip_control_chars(text))

        if any(p.search(text[:MAX_PATTERN_INPUT]) for p in self._redaction_patterns):
            walk.strings_redacted += 1
            return PLACEHOLDER_REDACTED
        if text and text != PLACEHOLDER_REDACTED and is_sensitive_key(key_name):
            walk.strings_redacted += 1
            return PLACEHOLDER_REDACTED

        redacted = redact_sensitive(text, limit + MAX_PATTERN_INPUT)
        if redacted != text:
            walk.strings_redacted += 1

        if len(redacted) > limit:
            redacted = redacted[: limit - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER
        return redacted

    def _sanitize_number(self, value: Any, path: str, walk: _Walk) -> Any:
        if isinstance(value, bool):
            return value
        if isinstance(value, float) and not math.isfinite(value):
            walk.warnings.append(f"Non-finite number at {path} replaced with 0")
            return 0
        if abs(value) > MAX_SAFE_INTEGER:
            walk.warnings.append(f"Unsafe number at {path} replaced with 0")
            return 0
        return value

    def _sanitize_children(
        self,
        value: Any,
        tag: TypeTag,
        path: str,
        depth: int,
        walk: _Walk,
        reported: FrozenSet[ViolationKind],
        keep: Optional[int] = None,
    ) -> Any:
        cfg = self.config
        if depth >= cfg.max_depth:
            if not walk.depth_warned:
                walk.warnings.append(f"Maximum depth {cfg.max_depth} reached at {path}; deeper values replaced")
                walk.depth_warned = True
            return PLACEHOLDER_MAX_DEPTH

        children = self._children(value, tag)
        is_sequence = tag is TypeTag.SEQUENCE
        cap = cfg.max_array_length if is_sequence else cfg.max_properties
        if keep is not None:
            cap = min(cap, keep)
        elif len(children) > cap:
            noun = "items" if is_sequence else "properties"
            walk.warnings.append(f"{path} truncated: kept {cap} of {len(children)} {noun}")
        children = children[:cap]

        walk.ancestors.add(id(value))
        try:
            if is_sequence:
                items = []
                for index, child in children:
                    out = self._visit(child, f"{path}[{index}]", depth + 1, walk, None, reported)
                    items.append(None if out is _REMOVED else out)
                return tuple(items) if isinstance(value, tuple) else items

            record: dict[Any, Any] = {}
            for key, child in children:
                child_path = f"{path}.{_key_label(key)}"
                if isinstance(key, str) and key in DANGEROUS_KEYS:
                    walk.violations.append(Violation(
                        kind=ViolationKind.PROTOTYPE_POLLUTION,
                        severity=Severity.CRITICAL,
                        description=f"Prototype pollution key {key!r}",
                        path=child_path,
                        original=truncate_original(key),
                        remediation="Remove structural keys from data",
                    ))
                    log_security_event("POLLUTION", "Prototype pollution key in object", context={"path": child_path})
                    if cfg.remove_prototype_properties:
                        walk.removed += 1
                        continue
                out = self._visit(child, child_path, depth + 1, walk, key, reported)
                if out is _REMOVED:
                    continue
                record[_clean_key(key)] = out
            return record
        finally:
            walk.ancestors.discard(id(value))

    def _flatten(self, value: Any, tag: TypeTag) -> Any:
        try:
            children = self._children(value, tag)
        except Exception:
            children = []
        summary: dict[str, Any] = {"type": tag.value, "size": len(children)}
        if tag is not TypeTag.SEQUENCE:
            summary["keys"] = [_clean_key(k) if isinstance(k, str) else _key_label(k) for k, _ in children[:TRUNCATE_KEEP]]
        return summary

    def apply(
        self,
        value: Any,
        tag: TypeTag,
        strategy: Strategy,
        path: str,
        depth: int,
        walk: _Walk,
        key_name: Any = None,
        reported: FrozenSet[ViolationKind] = frozenset(),
    ) -> Any:
        """Produce the output for one node; ``_REMOVED`` drops it."""
        if strategy is Strategy.PRESERVE:
            return value
        if strategy is Strategy.REMOVE:
            walk.removed += 1
            return _REMOVED
        if strategy is Strategy.REDACT:
            return self._placeholder(value, tag)

        containers = (TypeTag.RECORD, TypeTag.SEQUENCE, TypeTag.CLASS_INSTANCE)
        if strategy is Strategy.FLATTEN and tag in containers:
            return self._flatten(value, tag)
        if strategy is Strategy.TRUNCATE and tag in containers:
            return self._sanitize_children(value, tag, path, depth, walk, reported, keep=TRUNCATE_KEEP)

        if tag is TypeTag.PRIMITIVE:
            if isinstance(value, str):
                text = self._sanitize_string(value, key_name, walk)
                if strategy is Strategy.TRUNCATE and len(text) > 100:
                    text = text[: 100 - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER
                return text
            if value is None:
                return None
            return self._sanitize_number(value, path, walk)
        if tag in containers:
            return self._sanitize_children(value, tag, path, depth, walk, reported)
        if tag in (TypeTag.DATE, TypeTag.PATTERN):
            return value
        return self._placeholder(value, tag)

    # -------------------------------------------------------------------------
    # traversal
    # -------------------------------------------------------------------------

    def _visit(
        self,
        value: Any,
        path: str,
        depth: int,
        walk: _Walk,
        key_name: Any = None,
        reported: FrozenSet[ViolationKind] = frozenset(),
        root: Optional[list] = None,
    ) -> Any:
        if walk.expired():
            if not walk.timed_out:
                walk.timed_out = True
                walk.warnings.append(
                    f"Processing time budget of {self.config.max_processing_time_ms}ms exceeded at {path}; "
                    "remaining values replaced"
                )
            return PLACEHOLDER_TIMEOUT

        walk.nodes += 1
        walk.deepest = max(walk.deepest, depth)
        try:
            tag = self.classify(value, walk.ancestors)
            found = self.detect(value, tag, path, walk, key_name, reported)
            walk.violations.extend(found)
            strategy = self.select_strategy(tag, found)
            if root is not None:
                root.extend((tag, strategy))
            return self.apply(
                value, tag, strategy, path, depth, walk, key_name,
                reported | {v.kind for v in found},
            )
        except RecursionError:
            raise
        except Exception as e:  # hostile accessors on user objects
            walk.warnings.append(f"Value at {path} could not be read ({type(e).__name__}); replaced")
            logger.debug(f"Sanitizer could not read value at {path}: {type(e).__name__}")
            return PLACEHOLDER_ERROR

    def sanitize(self, value: Any, path: str = "root") -> ObjectSanitizationResult:
        """Sanitize one value."""
        started = time.perf_counter()
        key = make_cache_key(value, path, self._fingerprint) if self.cache is not None and self.config.enable_cache else None
        if key is not None:
            cached = self.cache.get(key)
            if cached is not None:
                cached.processing_time_ms = round((time.perf_counter() - started) * 1000, 3)
                cached.metrics["cache_hit"] = True
                return cached

        walk = _Walk(deadline=started + self.config.max_processing_time_ms / 1000)
        root: list = []
        out = self._visit(value, path, 0, walk, root=root)
        sanitized = None if out is _REMOVED else out
        tag, strategy = (root[0], root[1]) if root else (TypeTag.UNKNOWN, Strategy.REMOVE)

        try:
            original_size = self._measure(value, _Walk(deadline=0))[1]
            final_size = self._measure(sanitized, _Walk(deadline=0))[1]
        except Exception as e:  # hostile accessors on user objects
            logger.debug(f"Size estimate failed at {path}: {type(e).__name__}")
            original_size = final_size = 0
        critical = [v for v in walk.violations if v.severity is Severity.CRITICAL]

        result = ObjectSanitizationResult(
            is_valid=not critical,
            sanitized_value=sanitized,
            original_type_tag=tag,
            strategy_applied=strategy,
            size_reduction_bytes=original_size - final_size,
            processing_time_ms=round((time.perf_counter() - started) * 1000, 3),
            violations=walk.violations,
            warnings=self.advisories + walk.warnings,
            metrics={
                "nodes_visited": walk.nodes,
                "max_depth_seen": walk.deepest,
                "strings_redacted": walk.strings_redacted,
                "values_removed": walk.removed,
                "time_budget_exceeded": walk.timed_out,
                "cache_hit": False,
            },
        )
        if critical:
            logger.warning(f"SECURITY: {len(critical)} critical violation(s) sanitizing {truncate_original(path, 60)}")
        if key is not None and not critical and not walk.timed_out:
            self.cache.put(key, result)
        return result

    def scan(self, value: Any, path: str = "root") -> list[Violation]:
        """Detection-only pass over a value; nothing is rewritten.

        Prototype-pollution keys, dangerous callables and sensitive or
        injection-looking strings are all reported with their paths.
        """
        walk = _Walk(deadline=time.perf_counter() + self.config.max_processing_time_ms / 1000)
        self._scan(value, path, 0, walk, None)
        return walk.violations

    def _scan(self, value: Any, path: str, depth: int, walk: _Walk, key_name: Any) -> None:
        if walk.expired() or depth > self.config.max_depth:
            return
        try:
            tag = self.classify(value, walk.ancestors)
            walk.violations.extend(self.detect(value, tag, path, walk, key_name))
            if tag not in (TypeTag.RECORD, TypeTag.SEQUENCE, TypeTag.CLASS_INSTANCE):
                return
            children = self._children(value, tag)
        except Exception as e:  # hostile accessors on user objects
            walk.warnings.append(f"Value at {path} could not be read ({type(e).__name__})")
            return

        cap = self.config.max_array_length if tag is TypeTag.SEQUENCE else self.config.max_properties
        walk.ancestors.add(id(value))
        try:
            for key, child in children[:cap]:
                if tag is TypeTag.SEQUENCE:
                    self._scan(child, f"{path}[{key}]", depth + 1, walk, None)
                    continue
                child_path = f"{path}.{_key_label(key)}"
                if isinstance(key, str) and key in DANGEROUS_KEYS:
                    walk.violations.append(Violation(
                        kind=ViolationKind.PROTOTYPE_POLLUTION,
                        severity=Severity.CRITICAL,
                        description=f"Prototype pollution key {key!r}",
                        path=child_path,
                        original=truncate_original(key),
                    ))
                    continue
                self._scan(child, child_path, depth + 1, walk, key)
        finally:
            walk.ancestors.discard(id(value))

    async def sanitize_batch(self, values: Iterable[Any], path: str = "root") -> list[ObjectSanitizationResult]:
        """Sanitize many independent values, yielding between chunks."""
        items = list(values)
        chunk = self.config.batch_size if self.config.enable_batch_processing else len(items) or 1
        results: list[ObjectSanitizationResult] = []
        for start in range(0, len(items), chunk):
            for offset, value in enumerate(items[start:start + chunk]):
                results.append(self.sanitize(value, f"{path}[{start + offset}]"))
            if start + chunk < len(items):
                await asyncio.sleep(0)
        return results


# =============================================================================
# JSON PROJECTION
# =============================================================================

def make_json_safe(
    value: Any,
    max_depth: int = 8,
    max_items: int = 100,
    max_string_length: int = 1000,
    _ancestors: Optional[set[int]] = None,
    _depth: int = 0,
) -> Any:
    """Cycle-safe projection of any value onto bounded JSON-compatible data.

    No redaction decisions are made here; only shape and size.
    """
    ancestors = _ancestors if _ancestors is not None else set()
    entered = False
    try:
        if value is None or isinstance(value, bool):
            return value
        if isinstance(value, int):
            return value if abs(value) <= MAX_SAFE_INTEGER else str(value)[:40]
        if isinstance(value, float):
            return value if math.isfinite(value) else None
        if isinstance(value, str):
            text = strip_control_chars(value)
            if len(text) > max_string_length:
                return text[: max(0, max_string_length - len(TRUNCATION_MARKER))] + TRUNCATION_MARKER
            return text
        if isinstance(value, (datetime.date, datetime.time)):
            return value.isoformat()
        if isinstance(value, datetime.timedelta):
            return value.total_seconds()
        if isinstance(value, re.Pattern):
            return make_json_safe(value.pattern, max_depth, max_items, max_string_length, ancestors, _depth)
        if isinstance(value, _BINARY_TYPES):
            return f"[Binary: {len(value) if not isinstance(value, memoryview) else value.nbytes} bytes]"
        if callable(value):
            return f"[Function: {_callable_name(value)}]"
        if id(value) in ancestors:
            return PLACEHOLDER_CIRCULAR
        if _depth >= max_depth:
            return PLACEHOLDER_MAX_DEPTH

        ancestors.add(id(value))
        entered = True
        if isinstance(value, Mapping):
            items = list(dict.items(value)) if isinstance(value, dict) else list(value.items())
        elif isinstance(value, _SEQUENCE_TYPES):
            return [
                make_json_safe(v, max_depth, max_items, max_string_length, ancestors, _depth + 1)
                for v in list(value)[:max_items]
            ]
        else:
            attrs = read_instance_attributes(value) if not isinstance(value, types.ModuleType) else None
            if attrs is None:
                return PLACEHOLDER_UNKNOWN
            items = attrs
        return {
            (k if isinstance(k, str) else _key_label(k))[:256]: make_json_safe(
                v, max_depth, max_items, max_string_length, ancestors, _depth + 1
            )
            for k, v in items[:max_items]
        }
    except Exception as e:  # hostile accessors on user objects
        return f"[Unreadable: {type(e).__name__}]"
    finally:
        if entered:
            ancestors.discard(id(value))


# =============================================================================
# MODULE API
# =============================================================================

def create_object_sanitizer(level: str = "standard", **overrides: Any) -> ObjectSanitizer:
    """Build a sanitizer from a level preset plus explicit overrides."""
    preset = dict(LEVEL_PRESETS.get(level, LEVEL_PRESETS["standard"]))
    preset.update(overrides)
    config, _ = read_config(ObjectSanitizationConfig, preset, base=get_settings().objects)
    return ObjectSanitizer(config, cache=get_shared_cache(config.cache_ttl_seconds, config.max_cache_size))


def _sanitizer_for(config: Any) -> tuple[ObjectSanitizer, list[str]]:
    cfg, advisories = read_config(ObjectSanitizationConfig, config, base=get_settings().objects)
    cache = get_shared_cache(cfg.cache_ttl_seconds, cfg.max_cache_size) if cfg.enable_cache else None
    return ObjectSanitizer(cfg, cache=cache), advisories


def sanitize_object(value: Any, path: str = "root", config: Any = None) -> ObjectSanitizationResult:
    """Sanitize an arbitrary value for logging or persistence.

    Args:
        value: Any in-memory value, including cyclic structures.
        path: Label for the root in violation paths.
        config: ``ObjectSanitizationConfig``, mapping or attribute object.

    Raises:
        ConfigurationTamperingError: ``config`` uses computed accessors.
    """
    sanitizer, advisories = _sanitizer_for(config)
    result = sanitizer.sanitize(value, path)
    if advisories:
        result.warnings[:0] = advisories
    return result


def quick_sanitize_object(value: Any, level: str = "standard") -> Any:
    """Sanitized value only, using a level preset."""
    return create_object_sanitizer(level).sanitize(value).sanitized_value


async def batch_sanitize_objects(values: Iterable[Any], config: Any = None) -> list[ObjectSanitizationResult]:
    """Sanitize independent values with cooperative yielding between chunks."""
    sanitizer, advisories = _sanitizer_for(config)
    results = await sanitizer.sanitize_batch(values)
    for result in results:
        if advisories:
            result.warnings[:0] = advisories
    return results


sanitize_batch = batch_sanitize_objects
