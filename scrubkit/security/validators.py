"""Input validation for names, package managers, file paths and shell arguments.

Each validator layers kind-specific rules (character sets, whitelist
membership, length bounds) on top of the shared pattern checks and returns a
``ValidationResult``. Two low-level helpers, ``sanitize_path`` and
``sanitize_command_args``, are used directly by code that builds paths or
spawns processes; they raise instead of returning a result.

Only runtime tampering (patched builtins, sequence subclasses) and
configuration accessors raise from ``validate_input``.
"""

import builtins
import difflib
import os
import posixpath
import re
import unicodedata
from enum import Enum
from pathlib import Path
from typing import Any, FrozenSet, Optional, Tuple
from urllib.parse import unquote

from loguru import logger

from scrubkit.config.schema import ValidationConfig, get_settings
from scrubkit.config.untrusted import read_config
from scrubkit.errors import (
    CommandInjectionError,
    IntegrityError,
    MalformedInputError,
    PathValidationError,
)
from scrubkit.security.audit import log_security_event, sanitize_log_input
from scrubkit.security.limits import (
    MAX_INPUT_LENGTH,
    MAX_NAME_LENGTH,
    MIN_NAME_LENGTH,
    check_input_length,
    check_item_count,
)
from scrubkit.security.patterns import (
    analyze,
    compile_custom_patterns,
    is_command_safe,
    strip_control_chars,
    strip_invisible_chars,
)
from scrubkit.security.types import (
    Severity,
    ValidationResult,
    Violation,
    ViolationKind,
    risk_score,
    truncate_original,
)


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

class InputKind(str, Enum):
    """Closed set of validated input kinds."""
    NAME = "name"
    PACKAGE_MANAGER = "package-manager"
    FILE_PATH = "file-path"
    SHELL_ARGUMENT = "shell-argument"


_KIND_ALIASES: dict[str, InputKind] = {
    "project-name": InputKind.NAME,
    "path": InputKind.FILE_PATH,
    "command-arg": InputKind.SHELL_ARGUMENT,
    "command-args": InputKind.SHELL_ARGUMENT,
}

TRUSTED_PACKAGE_MANAGERS: FrozenSet[str] = frozenset({
    "npm", "pnpm", "yarn", "bun", "deno",
    "pip", "pipx", "poetry", "uv", "pdm", "conda",
    "cargo", "composer", "maven", "gradle",
})

# Absolute locations that are never valid targets, even with traversal allowed
SENSITIVE_PATH_PREFIXES: Tuple[str, ...] = (
    "/etc", "/proc", "/sys", "/dev", "/boot", "/root", "/var/run", "/private/etc",
    "/library/keychains", "/system",
    "c:/windows", "c:/program files", "c:/programdata",
)

NAME_SEPARATORS = "._-"

# Shell separators; the text before the first one is the argument proper
_SHELL_SEPARATOR = re.compile(r'[;&|`\r\n]|\$\(')
_RESIDUAL_METACHARS = re.compile(r'[$<>]')

# Captured at import so later monkeypatching of builtins is detectable
_BUILTIN_LIST = builtins.list
_BUILTIN_TUPLE = builtins.tuple
_BUILTIN_STR = builtins.str
_BUILTIN_LEN = builtins.len
_BUILTIN_ISINSTANCE = builtins.isinstance


def _malformed(raw: Any, expected: str, threshold: Severity = Severity.LOW) -> ValidationResult:
    violation = Violation(
        kind=ViolationKind.MALFORMED_INPUT,
        severity=Severity.CRITICAL,
        description=f"Invalid input type: {type(raw).__name__}. Expected {expected}.",
        original=truncate_original(raw),
        remediation=f"Provide a valid {expected}",
    )
    return ValidationResult(
        sanitized_value=None,
        violations=[violation],
        suggestions=[violation.remediation],
        risk_score=100,
        failure_threshold=threshold,
    )


def _too_long(raw: str, threshold: Severity) -> ValidationResult:
    violation = Violation(
        kind=ViolationKind.MALFORMED_INPUT,
        severity=Severity.MEDIUM,
        description=f"Input too long ({len(raw)} chars). Maximum allowed: {MAX_INPUT_LENGTH}",
        original=truncate_original(raw),
        remediation=f"Reduce input length to under {MAX_INPUT_LENGTH} characters",
    )
    return ValidationResult(
        sanitized_value="",
        violations=[violation],
        suggestions=[violation.remediation],
        risk_score=100,
        failure_threshold=threshold,
    )


def _custom_pattern_violations(value: str, config: ValidationConfig, warnings: list[str]) -> list[Violation]:
    if not config.custom_patterns:
        return []
    compiled, advisories = compile_custom_patterns(config.custom_patterns)
    warnings.extend(advisories)
    return [
        Violation(
            kind=ViolationKind.CUSTOM_PATTERN,
            severity=Severity.MEDIUM,
            description=f"Matches custom pattern {truncate_original(p.pattern, 60)}",
            original=truncate_original(value),
        )
        for p in compiled
        if p.search(value)
    ]


def _score(pattern_score: int, violations: list[Violation]) -> int:
    return min(100, pattern_score + risk_score(violations))


# =============================================================================
# NAME VALIDATION
# =============================================================================

def _is_name_char(c: str, allow_unicode: bool) -> bool:
    if c.isascii():
        return c.islower() or c.isdigit() or c in NAME_SEPARATORS
    return allow_unicode and c.isalpha() and not c.isupper()


def suggest_name(value: str, allow_unicode: bool = True) -> str:
    """Derive a valid name: lowercase, invalid runs to '-', trimmed and collapsed."""
    lowered = unicodedata.normalize("NFC", value).lower()
    replaced = "".join(c if _is_name_char(c, allow_unicode) else "-" for c in lowered)
    collapsed = re.sub(r'[._-]{2,}', "-", replaced)
    trimmed = collapsed.strip(NAME_SEPARATORS)
    return trimmed[:MAX_NAME_LENGTH].rstrip(NAME_SEPARATORS)


def validate_name(raw: Any, config: ValidationConfig | None = None) -> ValidationResult:
    """Validate a user-chosen name such as a project identifier.

    Names are held to an all-rules-pass standard: any violation, including a
    low-severity one, makes the result invalid.
    """
    config = config or ValidationConfig()
    threshold = Severity.LOW

    if raw is None:
        raw = ""
    if not isinstance(raw, str):
        return _malformed(raw, "string", threshold)
    if len(raw) > MAX_INPUT_LENGTH:
        return _too_long(raw, threshold)

    violations: list[Violation] = []
    warnings: list[str] = []
    suggestions: list[str] = []

    value = unicodedata.normalize("NFC", raw.strip())
    divergence = max(abs(len(unicodedata.normalize(form, value)) - len(value)) for form in ("NFD", "NFKC", "NFKD"))
    if divergence > 2:
        violations.append(Violation(
            kind=ViolationKind.SUSPICIOUS_PATTERN,
            severity=Severity.HIGH,
            description="Unicode normalization forms differ significantly (possible bypass attempt)",
            original=truncate_original(raw),
            remediation="Use plain ASCII characters",
        ))

    visible = strip_invisible_chars(value)
    if visible != value:
        violations.append(Violation(
            kind=ViolationKind.OBFUSCATION,
            severity=Severity.MEDIUM,
            description="Zero-width or bidi control characters removed",
            original=truncate_original(raw),
            remediation="Remove invisible characters",
        ))
        value = visible

    analysis = analyze(value, categories=(
        ViolationKind.PATH_TRAVERSAL,
        ViolationKind.COMMAND_INJECTION,
        ViolationKind.SCRIPT_INJECTION,
        ViolationKind.OBFUSCATION,
    ))
    violations.extend(analysis.violations)

    max_len = min(MAX_NAME_LENGTH, config.max_length)
    if len(value) < MIN_NAME_LENGTH or len(value) > max_len:
        violations.append(Violation(
            kind=ViolationKind.LENGTH,
            severity=Severity.MEDIUM,
            description=f"Name must be {MIN_NAME_LENGTH}-{max_len} characters (got {len(value)})",
            original=truncate_original(value),
            remediation=f"Use between {MIN_NAME_LENGTH} and {max_len} characters",
        ))

    if any(c.isupper() for c in value):
        violations.append(Violation(
            kind=ViolationKind.CASING,
            severity=Severity.LOW,
            description="Name contains uppercase letters",
            original=truncate_original(value),
            remediation="Use lowercase letters",
        ))

    invalid = sorted({c for c in value.lower() if not _is_name_char(c, config.allow_unicode)})
    if invalid:
        shown = ", ".join(repr(c) for c in invalid[:10])
        violations.append(Violation(
            kind=ViolationKind.INVALID_CHARACTERS,
            severity=Severity.MEDIUM,
            description=f"Name contains invalid characters: {shown}",
            original=truncate_original(value),
            remediation="Use only lowercase letters, digits, '.', '_' and '-'",
        ))
        if " " in invalid:
            suggestions.append("Replace spaces with hyphens")

    if value and (value[0] in NAME_SEPARATORS or value[-1] in NAME_SEPARATORS):
        violations.append(Violation(
            kind=ViolationKind.INVALID_FORMAT,
            severity=Severity.LOW,
            description="Name must not start or end with a separator",
            original=truncate_original(value),
            remediation="Start and end with a letter or digit",
        ))

    if re.search(r'[._-]{2}', value):
        violations.append(Violation(
            kind=ViolationKind.INVALID_FORMAT,
            severity=Severity.LOW,
            description="Name contains consecutive separators",
            original=truncate_original(value),
            remediation="Use single separators",
        ))

    violations.extend(_custom_pattern_violations(value, config, warnings))

    suggested = suggest_name(value, config.allow_unicode)
    if violations and config.provide_suggestions:
        suggestions.extend(v.remediation for v in violations if v.remediation and v.remediation not in suggestions)
        if len(suggested) >= MIN_NAME_LENGTH and suggested != value:
            suggestions.insert(0, suggested)

    sanitized = suggested if config.auto_sanitize else value
    return ValidationResult(
        sanitized_value=sanitized,
        violations=violations,
        suggestions=suggestions,
        risk_score=_score(analysis.risk_score, [v for v in violations if v not in analysis.violations]),
        warnings=warnings,
        failure_threshold=threshold,
    )


# =============================================================================
# PACKAGE MANAGER VALIDATION
# =============================================================================

def validate_package_manager(raw: Any, config: ValidationConfig | None = None) -> ValidationResult:
    """Validate a package-manager identifier against the fixed whitelist.

    A whitelist miss is high severity in strict mode and medium otherwise;
    embedded command-injection characters are always critical. Anything at
    medium or above invalidates the result, so an unknown manager is never
    accepted.
    """
    config = config or ValidationConfig()
    threshold = Severity.MEDIUM

    if not isinstance(raw, str):
        return _malformed(raw, "string", threshold)
    if len(raw) > MAX_INPUT_LENGTH:
        return _too_long(raw, threshold)

    value = raw.strip().lower()
    violations: list[Violation] = []
    warnings: list[str] = []
    suggestions: list[str] = []

    if not is_command_safe(value):
        log_security_event("INJECTION", "Package manager contains shell syntax", context={"value": value})
        violations.append(Violation(
            kind=ViolationKind.COMMAND_INJECTION,
            severity=Severity.CRITICAL,
            description="Package manager contains command injection characters",
            original=truncate_original(raw),
            remediation="Use a bare package manager name",
        ))

    if value not in TRUSTED_PACKAGE_MANAGERS:
        violations.append(Violation(
            kind=ViolationKind.WHITELIST,
            severity=Severity.HIGH if config.strict_mode else Severity.MEDIUM,
            description=f"Unknown package manager: {truncate_original(value, 40)}",
            original=truncate_original(raw),
            remediation="Use one of: " + ", ".join(sorted(TRUSTED_PACKAGE_MANAGERS)),
        ))
        if config.provide_suggestions:
            close = difflib.get_close_matches(value[:40], sorted(TRUSTED_PACKAGE_MANAGERS), n=1)
            if close:
                suggestions.append(close[0])
            suggestions.append(violations[-1].remediation)

    violations.extend(_custom_pattern_violations(value, config, warnings))

    result = ValidationResult(
        sanitized_value=value,
        violations=violations,
        suggestions=suggestions,
        risk_score=_score(0, violations),
        warnings=warnings,
        failure_threshold=threshold,
    )
    if not result.is_valid:
        result.sanitized_value = ""
    return result


# =============================================================================
# PATH VALIDATION
# =============================================================================

def _is_absolute(value: str) -> bool:
    return (
        value.startswith(("/", "\\", "~"))
        or re.match(r'^[A-Za-z]:', value) is not None
    )


def _inspect_path(
    value: str,
    allow_absolute: bool,
    allow_traversal: bool,
    working_directory: Optional[str],
) -> Tuple[str, list[Violation]]:
    """Return (normalized path, violations) without raising."""
    violations: list[Violation] = []

    cleaned = strip_control_chars(value)
    if cleaned != value and "\x00" not in value:
        violations.append(Violation(
            kind=ViolationKind.INVALID_CHARACTERS,
            severity=Severity.MEDIUM,
            description="Control characters in path",
            original=truncate_original(value),
            remediation="Remove control characters",
        ))

    exclude = ("dot_dot_segment",) if allow_traversal else ()
    analysis = analyze(
        value,
        categories=(ViolationKind.PATH_TRAVERSAL, ViolationKind.SENSITIVE_FILE, ViolationKind.COMMAND_INJECTION),
        exclude=exclude,
    )
    violations.extend(analysis.violations)

    # Double decode catches double-encoded traversal
    if "%" in value and not allow_traversal:
        decoded = unquote(unquote(value))
        if re.search(r'(?:^|[\\/])\.\.(?:[\\/]|$)', decoded) and not any(
            v.kind is ViolationKind.PATH_TRAVERSAL for v in violations
        ):
            logger.warning("SECURITY: Encoded path traversal detected")
            violations.append(Violation(
                kind=ViolationKind.PATH_TRAVERSAL,
                severity=Severity.CRITICAL,
                description="Encoded path traversal detected",
                original=truncate_original(value),
                remediation="Decode and validate paths before use",
            ))

    unified = cleaned.replace("\\", "/")
    absolute = _is_absolute(cleaned)
    if absolute and not allow_absolute:
        violations.append(Violation(
            kind=ViolationKind.PATH_TRAVERSAL,
            severity=Severity.HIGH,
            description="Absolute paths are not allowed",
            original=truncate_original(value),
            remediation="Use a path relative to the working directory",
        ))

    normalized = posixpath.normpath(unified) if unified else ""
    lowered = normalized.lower()
    if absolute and any(lowered == p or lowered.startswith(p + "/") for p in SENSITIVE_PATH_PREFIXES):
        violations.append(Violation(
            kind=ViolationKind.SENSITIVE_FILE,
            severity=Severity.CRITICAL,
            description="Path targets a protected system location",
            original=truncate_original(value),
            remediation="Choose a location inside the project",
        ))

    if not absolute and not allow_traversal and normalized and "\x00" not in normalized:
        root = Path(working_directory or os.getcwd()).resolve()
        try:
            (root / normalized).resolve().relative_to(root)
        except ValueError:
            logger.warning(f"SECURITY: Path escapes working directory: {sanitize_log_input(value, 100)}")
            violations.append(Violation(
                kind=ViolationKind.PATH_TRAVERSAL,
                severity=Severity.CRITICAL,
                description="Path escapes the working directory",
                original=truncate_original(value),
                remediation="Keep paths inside the working directory",
            ))
        except (OSError, RuntimeError) as e:
            violations.append(Violation(
                kind=ViolationKind.MALFORMED_INPUT,
                severity=Severity.MEDIUM,
                description=f"Path cannot be resolved: {e.__class__.__name__}",
                original=truncate_original(value),
            ))

    return normalized, violations


def sanitize_path(
    path: str,
    *,
    allow_absolute: bool = False,
    allow_traversal: bool = False,
    working_directory: Optional[str] = None,
) -> str:
    """Normalize a path or raise if it is unsafe.

    Args:
        path: The path string to sanitize.
        allow_absolute: Accept absolute paths (sensitive system locations are
            still rejected).
        allow_traversal: Accept '..' segments and paths that leave the
            working directory.
        working_directory: Root relative paths must stay within. Defaults to
            the current directory.

    Returns:
        The normalized path, using '/' separators.

    Raises:
        PathValidationError: The path is empty, too long or violates policy.
    """
    if not isinstance(path, str) or not path:
        raise PathValidationError("Empty or non-string path provided")
    allowed, message = check_input_length(len(path), what="Path")
    if not allowed:
        raise PathValidationError(message)

    normalized, violations = _inspect_path(path, allow_absolute, allow_traversal, working_directory)
    blocking = [v for v in violations if v.severity.at_least(Severity.MEDIUM)]
    if blocking:
        raise PathValidationError(blocking[0].description)
    return normalized


def validate_file_path(raw: Any, config: ValidationConfig | None = None) -> ValidationResult:
    """Validate a file path. Medium or worse violations invalidate it."""
    config = config or ValidationConfig()
    threshold = Severity.MEDIUM

    if not isinstance(raw, str):
        return _malformed(raw, "string", threshold)
    if len(raw) > MAX_INPUT_LENGTH:
        return _too_long(raw, threshold)
    if not raw.strip():
        return ValidationResult(
            sanitized_value="",
            violations=[Violation(
                kind=ViolationKind.LENGTH,
                severity=Severity.MEDIUM,
                description="Empty path provided",
            )],
            failure_threshold=threshold,
        )

    warnings: list[str] = []
    normalized, violations = _inspect_path(
        raw.strip(), config.allow_absolute, config.allow_traversal, config.working_directory
    )
    if len(normalized) > config.max_length:
        violations.append(Violation(
            kind=ViolationKind.LENGTH,
            severity=Severity.MEDIUM,
            description=f"Path longer than {config.max_length} characters",
            original=truncate_original(raw),
        ))
    violations.extend(_custom_pattern_violations(raw, config, warnings))

    suggestions = []
    if config.provide_suggestions:
        suggestions = list(dict.fromkeys(v.remediation for v in violations if v.remediation))

    result = ValidationResult(
        sanitized_value=normalized,
        violations=violations,
        suggestions=suggestions,
        risk_score=_score(0, violations),
        warnings=warnings,
        failure_threshold=threshold,
    )
    if not result.is_valid:
        result.sanitized_value = ""
    return result


# =============================================================================
# SHELL ARGUMENT VALIDATION
# =============================================================================

def _check_runtime_integrity(args: Any) -> None:
    """Raise if builtins or the argument container have been tampered with."""
    if (
        builtins.list is not _BUILTIN_LIST
        or builtins.tuple is not _BUILTIN_TUPLE
        or builtins.str is not _BUILTIN_STR
        or builtins.len is not _BUILTIN_LEN
        or builtins.isinstance is not _BUILTIN_ISINSTANCE
    ):
        log_security_event("TAMPERING", "Builtin types replaced at runtime", severity="CRITICAL")
        raise IntegrityError("Builtin types have been replaced - runtime tampering detected")

    cls = type(args)
    if _BUILTIN_ISINSTANCE(args, (_BUILTIN_LIST, _BUILTIN_TUPLE)) and cls not in (_BUILTIN_LIST, _BUILTIN_TUPLE):
        log_security_event("TAMPERING", "Argument sequence subclass", severity="CRITICAL",
                           context={"type": cls.__name__})
        raise IntegrityError(f"Argument container type {cls.__name__} is not a plain list - tampering detected")


def _clean_token(token: str) -> str:
    """Best-effort removal of injected commands from one argument.

    Keeps the text before the first shell separator, drops remaining
    metacharacters, and empties the token if what is left still looks like a
    command.
    """
    head = _SHELL_SEPARATOR.split(token, maxsplit=1)[0]
    head = _RESIDUAL_METACHARS.sub("", head)
    head = " ".join(head.split())
    if not head or not is_command_safe(head):
        return ""
    return head


def sanitize_command_args(args: Any, config: Any = None) -> list[str]:
    """Sanitize an argument list before it is handed to a process.

    Strict mode (the default) raises on any injection pattern. Non-strict mode
    removes injected commands and drops arguments that cannot be salvaged:
    ``["build", "; rm -rf /"]`` becomes ``["build"]``.

    Oversized lists and arguments are truncated with a warning.

    Raises:
        IntegrityError: Builtins or the list type have been tampered with.
        MalformedInputError: ``args`` is not a list of strings.
        CommandInjectionError: Strict mode and an argument is unsafe.
        ConfigurationTamperingError: ``config`` uses computed accessors.
    """
    cfg, _ = read_config(ValidationConfig, config, base=get_settings().validation)

    if args is None:
        return []

    _check_runtime_integrity(args)
    if not isinstance(args, (list, tuple)):
        raise MalformedInputError(f"Invalid arguments container: {type(args).__name__}, expected list of str")

    items = list(args)
    allowed, _ = check_item_count(len(items), cfg.max_args, what="Command arguments")
    if not allowed:
        items = items[: cfg.max_args]

    sanitized: list[str] = []
    budget = MAX_INPUT_LENGTH
    for index, arg in enumerate(items):
        if type(arg) is not str:
            raise MalformedInputError(f"Argument {index} is {type(arg).__name__}, expected str")

        if len(arg) > budget:
            check_input_length(len(arg), budget, what=f"Argument {index}")
            arg = arg[:budget]
        budget -= len(arg)

        token = strip_invisible_chars(arg.strip())
        if not token:
            continue

        if not is_command_safe(token) or _SHELL_SEPARATOR.search(token):
            if cfg.strict_mode:
                log_security_event("INJECTION", "Command argument blocked", context={"index": index, "arg": arg})
                raise CommandInjectionError(
                    f"Command injection attempt blocked in argument {index}: {sanitize_log_input(arg, 60)}"
                )
            cleaned = _clean_token(token)
            logger.warning(
                f"SECURITY: Argument {index} sanitized: {sanitize_log_input(token, 60)} -> "
                f"{sanitize_log_input(cleaned, 60) or '<dropped>'}"
            )
            token = cleaned
            if not token:
                continue

        token = strip_control_chars(token)
        if len(token) > cfg.max_length:
            check_input_length(len(token), cfg.max_length, what=f"Argument {index}")
            token = token[: cfg.max_length]
        sanitized.append(token)

        if budget <= 0:
            logger.warning(f"DOS: Command arguments truncated after argument {index}")
            break

    return sanitized


def validate_shell_argument(raw: Any, config: ValidationConfig | None = None) -> ValidationResult:
    """Validate one shell argument or an argument list.

    Strict mode reports injection matches at their own severity, which
    invalidates the result. Non-strict mode downgrades what sanitization
    resolved to low severity and returns the cleaned value.
    """
    config = config or ValidationConfig()
    threshold = Severity.MEDIUM
    single = isinstance(raw, str)

    if raw is None:
        raw = []
    _check_runtime_integrity(raw)
    if not single and not isinstance(raw, (list, tuple)):
        return _malformed(raw, "string or list of strings", threshold)

    tokens = [raw] if single else list(raw)
    warnings: list[str] = []
    allowed, message = check_item_count(len(tokens), config.max_args, what="Arguments")
    if not allowed:
        warnings.append(message)
        tokens = tokens[: config.max_args]

    violations: list[Violation] = []
    sanitized: list[str] = []
    pattern_score = 0
    for index, token in enumerate(tokens):
        location = "" if single else f"[{index}]"
        if not isinstance(token, str):
            violations.append(Violation(
                kind=ViolationKind.MALFORMED_INPUT,
                severity=Severity.CRITICAL,
                description=f"Argument {index} is {type(token).__name__}, expected str",
                path=location,
                original=truncate_original(token),
            ))
            continue

        if len(token) > MAX_INPUT_LENGTH:
            warnings.append(check_input_length(len(token), what=f"Argument {index}")[1])
            token = token[:MAX_INPUT_LENGTH]

        analysis = analyze(token, categories=(
            ViolationKind.COMMAND_INJECTION,
            ViolationKind.PRIVILEGE_ESCALATION,
            ViolationKind.SCRIPT_INJECTION,
        ), path=location)
        found = list(analysis.violations)
        if re.search(r'[\r\n\x00]', token):
            found.append(Violation(
                kind=ViolationKind.COMMAND_INJECTION,
                severity=Severity.HIGH,
                description="Line break or null byte in argument",
                path=location,
                original=truncate_original(token),
                remediation="Pass one argument per line",
            ))
        pattern_score = max(pattern_score, analysis.risk_score)

        cleaned = token.strip()
        if found:
            cleaned = _clean_token(cleaned) if config.auto_sanitize or not config.strict_mode else ""
            if not config.strict_mode:
                found = [
                    Violation(
                        kind=v.kind,
                        severity=Severity.LOW,
                        description=f"Removed: {v.description}",
                        path=v.path,
                        original=v.original,
                        remediation=v.remediation,
                    )
                    for v in found
                ]
        violations.extend(found)

        if len(cleaned) > config.max_length:
            violations.append(Violation(
                kind=ViolationKind.LENGTH,
                severity=Severity.MEDIUM if config.strict_mode else Severity.LOW,
                description=f"Argument longer than {config.max_length} characters",
                path=location,
                original=truncate_original(token),
            ))
            cleaned = cleaned[: config.max_length]
        if cleaned:
            sanitized.append(cleaned)

    violations.extend(
        v for t in tokens if isinstance(t, str)
        for v in _custom_pattern_violations(t, config, warnings)
    )

    suggestions = []
    if config.provide_suggestions:
        suggestions = list(dict.fromkeys(v.remediation for v in violations if v.remediation))

    return ValidationResult(
        sanitized_value=(sanitized[0] if sanitized else "") if single else sanitized,
        violations=violations,
        suggestions=suggestions,
        risk_score=_score(pattern_score, [v for v in violations if v.kind is ViolationKind.MALFORMED_INPUT]),
        warnings=warnings,
        failure_threshold=threshold,
    )


# =============================================================================
# DISPATCH
# =============================================================================

_VALIDATORS = {
    InputKind.NAME: validate_name,
    InputKind.PACKAGE_MANAGER: validate_package_manager,
    InputKind.FILE_PATH: validate_file_path,
    InputKind.SHELL_ARGUMENT: validate_shell_argument,
}


def resolve_kind(kind: Any) -> Optional[InputKind]:
    if isinstance(kind, InputKind):
        return kind
    if not isinstance(kind, str):
        return None
    key = kind.strip().lower().replace("_", "-")
    try:
        return InputKind(key)
    except ValueError:
        return _KIND_ALIASES.get(key)


def validate_input(raw: Any, kind: Any, config: Any = None) -> ValidationResult:
    """Validate one input of a known kind.

    Args:
        raw: The untrusted value.
        kind: An ``InputKind`` or its string form ("name", "package-manager",
            "file-path", "shell-argument").
        config: ``ValidationConfig``, mapping or attribute object. Treated as
            untrusted; see ``scrubkit.config.untrusted``.

    Returns:
        ValidationResult; configuration advisories are in ``warnings``.

    Raises:
        ConfigurationTamperingError: ``config`` uses computed accessors.
        IntegrityError: Builtins or the argument container were tampered with.
    """
    cfg, advisories = read_config(ValidationConfig, config, base=get_settings().validation)

    resolved = resolve_kind(kind)
    if resolved is None:
        result = ValidationResult(
            sanitized_value=None,
            violations=[Violation(
                kind=ViolationKind.MALFORMED_INPUT,
                severity=Severity.CRITICAL,
                description=f"Unknown input kind: {truncate_original(kind, 40)}",
                remediation="Use one of: " + ", ".join(k.value for k in InputKind),
            )],
            risk_score=100,
        )
    else:
        result = _VALIDATORS[resolved](raw, cfg)

    result.warnings[:0] = advisories
    if not result.is_valid:
        logger.debug(
            f"Validation failed for {resolved.value if resolved else 'unknown'}: "
            f"{len(result.violations)} violation(s), risk {result.risk_score}"
        )
    return result
