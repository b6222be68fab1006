"""Security sanitization and validation engine.

This module provides:
- Pattern library (injection, traversal, secrets, obfuscation)
- Input validation (names, package managers, paths, shell arguments)
- Object sanitization (cycle-safe, prototype-pollution aware, cached)
- Stack trace sanitization and analysis
- Error context sanitization for logs and telemetry
- Deployment-environment presets
"""

from scrubkit.security.patterns import (
    # Pattern library
    analyze,
    redact_sensitive,
    contains_sensitive,
    is_sensitive_key,
    sanitize_text,
    is_command_safe,
    is_path_safe,
    check_redos_vulnerability,
    EXTENDED_CATEGORIES,
    RULES,
    PatternAnalysis,
)

from scrubkit.security.validators import (
    # Input validation
    validate_input,
    validate_name,
    validate_package_manager,
    validate_file_path,
    validate_shell_argument,
    sanitize_path,
    sanitize_command_args,
    suggest_name,
    InputKind,
    TRUSTED_PACKAGE_MANAGERS,
)

from scrubkit.security.objects import (
    # Object sanitization
    ObjectSanitizer,
    ObjectSanitizationResult,
    sanitize_object,
    quick_sanitize_object,
    batch_sanitize_objects,
    sanitize_batch,
    create_object_sanitizer,
    make_json_safe,
)

from scrubkit.security.cache import ResultCache, reset_sanitizer_cache

from scrubkit.security.stacktrace import (
    # Stack traces
    sanitize_stack_trace,
    analyze_stack_trace_security,
    StackTraceSecurityReport,
)

from scrubkit.security.error_context import (
    # Error context
    sanitize_error_context,
    sanitize_error_message,
    create_safe_error_for_forwarding,
    analyze_error_context_security,
    generate_error_id,
    ErrorSanitizationResult,
    SafeErrorPayload,
    ErrorContextSecurityReport,
)

from scrubkit.security.environment import (
    # Environment presets
    create_environment_config,
    resolve_environment,
    should_show_detailed_errors,
    is_debug_mode,
    sanitize_error_for_environment,
    sanitize_error_for_production,
    EnvironmentProfile,
    ENVIRONMENT_PRESETS,
)

from scrubkit.security.types import (
    Severity,
    Strategy,
    TypeTag,
    ValidationResult,
    Violation,
    ViolationKind,
)

__all__ = [
    # Pattern library
    "analyze",
    "redact_sensitive",
    "contains_sensitive",
    "is_sensitive_key",
    "sanitize_text",
    "is_command_safe",
    "is_path_safe",
    "check_redos_vulnerability",
    "EXTENDED_CATEGORIES",
    "RULES",
    "PatternAnalysis",
    # Input validation
    "validate_input",
    "validate_name",
    "validate_package_manager",
    "validate_file_path",
    "validate_shell_argument",
    "sanitize_path",
    "sanitize_command_args",
    "suggest_name",
    "InputKind",
    "TRUSTED_PACKAGE_MANAGERS",
    # Object sanitization
    "ObjectSanitizer",
    "ObjectSanitizationResult",
    "sanitize_object",
    "quick_sanitize_object",
    "batch_sanitize_objects",
    "sanitize_batch",
    "create_object_sanitizer",
    "make_json_safe",
    "ResultCache",
    "reset_sanitizer_cache",
    # Stack traces
    "sanitize_stack_trace",
    "analyze_stack_trace_security",
    "StackTraceSecurityReport",
    # Error context
    "sanitize_error_context",
    "sanitize_error_message",
    "create_safe_error_for_forwarding",
    "analyze_error_context_security",
    "generate_error_id",
    "ErrorSanitizationResult",
    "SafeErrorPayload",
    "ErrorContextSecurityReport",
    # Environment presets
    "create_environment_config",
    "resolve_environment",
    "should_show_detailed_errors",
    "is_debug_mode",
    "sanitize_error_for_environment",
    "sanitize_error_for_production",
    "EnvironmentProfile",
    "ENVIRONMENT_PRESETS",
    # Types
    "Severity",
    "Strategy",
    "TypeTag",
    "ValidationResult",
    "Violation",
    "ViolationKind",
]
