"""Deployment-environment presets for stack trace and error sanitization.

The active environment comes from ``SCRUBKIT_ENV`` (default ``production``).
Each preset layers over the process settings, and caller overrides layer over
the preset::

    profile = create_environment_config("staging", stack_trace={"maxStackDepth": 5})
    sanitize_stack_trace(trace, profile.stack_trace)
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from loguru import logger

from scrubkit.config.schema import ErrorContextConfig, StackTraceConfig, get_settings
from scrubkit.config.untrusted import read_config
from scrubkit.security.error_context import ErrorSanitizationResult, sanitize_error_context

ENVIRONMENTS = ("development", "staging", "production", "test")

_ALIASES = {"dev": "development", "stage": "staging", "prod": "production", "testing": "test"}

ENVIRONMENT_PRESETS: dict[str, dict[str, dict[str, Any]]] = {
    "development": {
        "stack_trace": {
            "redact_file_paths": False,
            "redact_usernames": False,
            "detail_level": "raw",
            "max_stack_depth": 20,
            "max_message_length": 1000,
            "remove_line_numbers": False,
        },
        "error_context": {
            "include_stack_trace": True,
            "include_context_hints": True,
            "max_message_length": 1000,
        },
    },
    "staging": {
        "stack_trace": {
            "detail_level": "sanitized",
            "max_stack_depth": 15,
            "max_message_length": 750,
        },
        "error_context": {
            "include_stack_trace": True,
            "max_message_length": 750,
        },
    },
    "production": {
        "stack_trace": {
            "detail_level": "minimal",
            "max_stack_depth": 5,
            "max_message_length": 250,
            "remove_line_numbers": True,
        },
        "error_context": {
            "include_stack_trace": False,
            "include_context_hints": False,
            "max_message_length": 250,
        },
    },
}
# Test runs see what developers see
ENVIRONMENT_PRESETS["test"] = ENVIRONMENT_PRESETS["development"]


@dataclass
class EnvironmentProfile:
    """Resolved sanitizer configuration for one deployment environment."""

    environment: str
    stack_trace: StackTraceConfig
    error_context: ErrorContextConfig
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "environment": self.environment,
            "stack_trace": self.stack_trace.model_dump(),
            "error_context": self.error_context.model_dump(),
            "warnings": list(self.warnings),
        }


def resolve_environment(environment: Optional[str] = None) -> tuple[str, list[str]]:
    """Normalize an environment name, falling back to ``production``.

    Args:
        environment: Name to resolve. Defaults to ``SCRUBKIT_ENV``.

    Returns:
        Tuple of (environment, advisories).
    """
    raw = environment if environment is not None else get_settings().env
    name = str(raw).strip().lower() if raw is not None else ""
    name = _ALIASES.get(name, name)
    if name in ENVIRONMENTS:
        return name, []
    return "production", [f"Unknown environment {str(raw)[:50]!r}; using production settings"]


def create_environment_config(
    environment: Optional[str] = None,
    stack_trace: Any = None,
    error_context: Any = None,
) -> EnvironmentProfile:
    """Build the stack trace and error context configs for an environment.

    Args:
        environment: Environment name. Defaults to ``SCRUBKIT_ENV``.
        stack_trace: Overrides applied on top of the preset. A ``StackTraceConfig``
            instance replaces the preset entirely.
        error_context: Overrides for the error context preset, same rules.

    Returns:
        EnvironmentProfile with both configs and any advisories.

    Raises:
        ConfigurationTamperingError: An override uses computed accessors.
    """
    name, warnings = resolve_environment(environment)
    for warning in warnings:
        logger.warning(warning)

    settings = get_settings()
    preset = ENVIRONMENT_PRESETS[name]
    stack_base = settings.stack_trace.model_copy(update=preset["stack_trace"])
    context_base = settings.error_context.model_copy(update=preset["error_context"])

    stack_cfg, stack_advisories = read_config(StackTraceConfig, stack_trace, base=stack_base)
    context_cfg, context_advisories = read_config(ErrorContextConfig, error_context, base=context_base)
    warnings.extend(stack_advisories)
    warnings.extend(context_advisories)

    return EnvironmentProfile(
        environment=name,
        stack_trace=stack_cfg,
        error_context=context_cfg,
        warnings=warnings,
    )


def should_show_detailed_errors() -> bool:
    """Whether full error details may be shown. Never true in production."""
    name, _ = resolve_environment()
    if name == "production":
        return False
    return get_settings().debug or name in ("development", "test")


def is_debug_mode() -> bool:
    """Whether debug behaviour is on. Never true in production."""
    name, _ = resolve_environment()
    if name == "production":
        return False
    return get_settings().debug or name == "development"


def sanitize_error_for_environment(
    error: Any,
    context: Any = None,
    environment: Optional[str] = None,
) -> ErrorSanitizationResult:
    """Sanitize an error with the preset for ``environment``."""
    profile = create_environment_config(environment)
    result = sanitize_error_context(error, context, profile.error_context, profile.stack_trace)
    result.security_warnings[:0] = profile.warnings
    return result


def sanitize_error_for_production(error: Any, context: Any = None) -> ErrorSanitizationResult:
    """Sanitize an error with the production preset, whatever ``SCRUBKIT_ENV`` says."""
    return sanitize_error_for_environment(error, context, "production")
