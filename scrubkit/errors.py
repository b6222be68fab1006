"""Shared error types for scrubkit.

Goal: structured results for everything that can be degraded safely.
Only tampering with the runtime or with configuration accessors raises,
plus policy failures from the low-level path/argument helpers.
"""


class ScrubkitError(Exception):
    """Base error for scrubkit."""


class ValidationError(ScrubkitError):
    """Input failed a validation policy."""


class PathValidationError(ValidationError):
    """Path is absolute, escapes its root, or targets a sensitive location."""


class MalformedInputError(ValidationError):
    """Input has the wrong shape (e.g. a dict where a list of strings was required)."""


class CommandInjectionError(ValidationError):
    """Shell argument matched an injection pattern in strict mode."""


class IntegrityError(ScrubkitError):
    """Shared runtime structures look tampered with."""


class ConfigurationTamperingError(IntegrityError):
    """Configuration exposes a computed-on-read accessor for a known option."""
