"""
scrubkit - Sanitization and validation for untrusted runtime data
"""

from __future__ import annotations
from pathlib import Path


def _get_version() -> str:
    """Read version from pyproject.toml."""
    pyproject_path = Path(__file__).parent.parent / "pyproject.toml"
    if pyproject_path.exists():
        import tomllib

        data = tomllib.loads(pyproject_path.read_text())
        return data["project"]["version"]
    return "0.0.0-unknown"


__version__ = _get_version()

from scrubkit.errors import (  # noqa: E402
    CommandInjectionError,
    ConfigurationTamperingError,
    IntegrityError,
    ScrubkitError,
)
from scrubkit.security import (  # noqa: E402
    analyze_error_context_security,
    analyze_stack_trace_security,
    batch_sanitize_objects,
    create_environment_config,
    create_safe_error_for_forwarding,
    reset_sanitizer_cache,
    sanitize_batch,
    sanitize_command_args,
    sanitize_error_context,
    sanitize_error_for_production,
    sanitize_object,
    sanitize_path,
    sanitize_stack_trace,
    validate_input,
)

__all__ = [
    "__version__",
    "validate_input",
    "sanitize_command_args",
    "sanitize_path",
    "sanitize_object",
    "batch_sanitize_objects",
    "sanitize_batch",
    "sanitize_stack_trace",
    "analyze_stack_trace_security",
    "sanitize_error_context",
    "create_safe_error_for_forwarding",
    "analyze_error_context_security",
    "create_environment_config",
    "sanitize_error_for_production",
    "reset_sanitizer_cache",
    "ScrubkitError",
    "IntegrityError",
    "ConfigurationTamperingError",
    "CommandInjectionError",
]
