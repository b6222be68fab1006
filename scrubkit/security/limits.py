"""Resource limits for DoS prevention.

These caps bound every unit of work the engine performs, so that wall-clock
budgets are only a backstop:

- Input strings are cut before any regex runs
- Stack traces are cut by total size, line count and line length
- Shell argument lists are cut by count and total size

All limits can be configured via environment variables.
"""
import os
from loguru import logger

# Input limits
MAX_INPUT_LENGTH = int(os.environ.get("SCRUBKIT_MAX_INPUT_LENGTH", 10240))  # 10KB
MAX_NAME_LENGTH = 214
MIN_NAME_LENGTH = 2

# Stack trace limits
MAX_STACK_TRACE_SIZE = int(os.environ.get("SCRUBKIT_MAX_STACK_TRACE_SIZE", 50 * 1000))  # 50KB
MAX_STACK_TRACE_LINES = int(os.environ.get("SCRUBKIT_MAX_STACK_TRACE_LINES", 200))
MAX_ANALYSIS_SIZE = int(os.environ.get("SCRUBKIT_MAX_ANALYSIS_SIZE", 10 * 1000))  # 10KB
MAX_ANALYSIS_LINES = 100
MAX_ANALYSIS_LINE_LENGTH = 500
MAX_REPORT_VALUE_LENGTH = 200

# Error payload limits
MAX_TELEMETRY_SIZE = int(os.environ.get("SCRUBKIT_MAX_TELEMETRY_SIZE", 8000))
MAX_FORWARDED_WARNINGS = 10


def check_input_length(length: int, limit: int = MAX_INPUT_LENGTH, what: str = "Input") -> tuple[bool, str]:
    """Check if an input length is within limit.

    Args:
        length: Length of the input in characters.
        limit: The maximum allowed length.
        what: Label used in the message.

    Returns:
        Tuple of (allowed, error_message). If allowed, error_message is empty.
    """
    if length > limit:
        logger.warning(f"DOS: {what} truncated - length {length} exceeds limit {limit}")
        return False, f"{what} too long ({length} chars). Maximum allowed: {limit}"
    return True, ""


def check_item_count(count: int, limit: int, what: str = "Items") -> tuple[bool, str]:
    """Check if a collection size is within limit.

    Returns:
        Tuple of (allowed, error_message). If allowed, error_message is empty.
    """
    if count > limit:
        logger.warning(f"DOS: {what} truncated - count {count} exceeds limit {limit}")
        return False, f"{what} truncated from {count} to {limit}"
    return True, ""
