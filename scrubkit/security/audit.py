"""Security audit logging utilities.

Hostile values end up in log lines (a rejected argument, an error message), so
everything interpolated into a log record goes through ``sanitize_log_input``
first:

- Newlines, carriage returns, escape sequences and null bytes are neutralised
- Sensitive value shapes are redacted
- Length is capped to prevent log flooding
"""

import json
from typing import Any

from loguru import logger

from scrubkit.security.patterns import redact_sensitive


# Characters that can be used for log injection attacks
LOG_INJECTION_CHARS: frozenset[str] = frozenset({
    '\n',    # Newline - can create fake log entries
    '\r',    # Carriage return - can overwrite log lines
    '\x1b',  # ANSI escape - can manipulate terminal output
    '\x00',  # Null byte - can truncate or corrupt logs
})


def sanitize_log_input(value: Any, max_length: int = 200) -> str:
    """Sanitize a value for safe interpolation into a log line.

    Args:
        value: The value to sanitize (rendered with ``str``)
        max_length: Maximum allowed length (default 200)

    Returns:
        Single-line, redacted, length-capped string

    Examples:
        >>> sanitize_log_input("line1\\nline2")
        'line1 line2'
        >>> sanitize_log_input("a" * 600, max_length=10)
        'aaaaaaaaaa...'
    """
    if value is None:
        return ""

    try:
        sanitized = value if isinstance(value, str) else str(value)
    except Exception:  # hostile __str__
        sanitized = f"<{type(value).__name__}>"

    # Cut first so the work below is bounded
    sanitized = sanitized[: max_length * 4]

    for char in LOG_INJECTION_CHARS:
        sanitized = sanitized.replace(char, ' ')

    sanitized = ''.join(
        c if c.isprintable() or c == ' ' else ' '
        for c in sanitized
    )
    sanitized = ' '.join(sanitized.split())
    sanitized = redact_sensitive(sanitized)

    if len(sanitized) > max_length:
        return sanitized[:max_length] + '...'
    return sanitized


def log_security_event(
    event_type: str,
    description: str,
    severity: str = "WARNING",
    context: dict[str, Any] | None = None,
) -> None:
    """Log one security event as a single structured line.

    Args:
        event_type: Type of event (INJECTION, POLLUTION, TAMPERING, ...)
        description: Human-readable description
        severity: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        context: Additional context; every value is sanitized
    """
    safe_event_type = sanitize_log_input(event_type, max_length=50)
    safe_description = sanitize_log_input(description, max_length=300)

    log_msg = f"SECURITY:{safe_event_type} {safe_description}"

    if context:
        safe_context = {
            sanitize_log_input(key, max_length=50): sanitize_log_input(value, max_length=100)
            for key, value in list(context.items())[:20]
        }
        log_msg += f" context={json.dumps(safe_context)}"

    log_func = {
        "DEBUG": logger.debug,
        "INFO": logger.info,
        "WARNING": logger.warning,
        "ERROR": logger.error,
        "CRITICAL": logger.critical,
    }.get(severity.upper(), logger.warning)

    log_func(log_msg)
