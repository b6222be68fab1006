"""Stack trace sanitizer.

Traces are cut to a fixed size before any pattern runs, and every pattern
below is applied to lines that are already length-capped. All quantifiers are
bounded and no two adjacent quantified spans can match the same characters,
so matching stays linear in the line length.
"""

import os
import re
import traceback
from dataclasses import dataclass, field
from typing import Any, FrozenSet, Optional

from loguru import logger

from scrubkit.config.schema import StackTraceConfig, get_settings
from scrubkit.config.untrusted import read_config
from scrubkit.security.limits import (
    MAX_ANALYSIS_LINE_LENGTH,
    MAX_ANALYSIS_LINES,
    MAX_ANALYSIS_SIZE,
    MAX_REPORT_VALUE_LENGTH,
    MAX_STACK_TRACE_LINES,
    MAX_STACK_TRACE_SIZE,
    check_input_length,
    check_item_count,
)
from scrubkit.security.patterns import contains_sensitive, redact_sensitive, strip_control_chars, strip_invisible_chars
from scrubkit.security.types import truncate_original

TRUNCATED_MARKER = "\n... [stack trace truncated]"
LINE_TRUNCATED_MARKER = "...[line truncated]"
REPEATED_MARKER = "[REPEATED-CHARS]"
USER_MARKER = "[USER]"

# Account names too generic to be worth masking
_GENERIC_ACCOUNTS: FrozenSet[str] = frozenset({
    "root", "admin", "user", "users", "runner", "app", "node", "ubuntu", "nobody", "home",
})

_HOME_ROOTS: FrozenSet[str] = frozenset({"home", "users"})

# A path segment: no separators, whitespace, quotes or frame punctuation
_SEG = r'[^/\\\s:()"\',]'

_FRAME_LINE = re.compile(r'^\s{0,40}(?:at\s|File\s")')
_UNC_PATH = re.compile(r'\\\\[^\\/\s]{1,255}\\[^\\/\s"\']{0,255}')
_WINDOWS_PATH = re.compile(rf'\b([A-Za-z]):[\\/]((?:{_SEG}{{1,255}}[\\/]){{0,64}}{_SEG}{{0,255}})')
_POSIX_PATH = re.compile(rf'(?<![\w.~:/\\])/((?:{_SEG}{{1,255}}/){{1,64}}{_SEG}{{0,255}})')
_SOURCE_MAP = re.compile(r'//[#@] sourceMappingURL=\S{0,2000}|/\*[#@] sourceMappingURL=[^*]{0,2000}\*/')
_MAP_SUFFIX = re.compile(r'\.(js|ts|mjs|cjs)\.map\b')
_SENSITIVE_FILENAME = re.compile(
    r'(?<![\w.-])(?:\.env(?:\.[\w-]{1,20})?|id_(?:rsa|dsa|ecdsa|ed25519)(?:\.pub)?|\.npmrc|\.pypirc|\.netrc'
    r'|\.htpasswd|\.git-credentials|credentials\.json|secrets?\.(?:json|ya?ml|toml))(?![\w.-])'
)
_REPEATED_CHARS = re.compile(r'([A-Za-z0-9])\1{20,}')
_PY_LINE_NUMBER = re.compile(r', line \d{1,9}')
_JS_LINE_NUMBER = re.compile(r':\d{1,9}(?::\d{1,9})?(?=\)|\s|$)')

# Analysis checks (read-only; each runs on a line cut to MAX_ANALYSIS_LINE_LENGTH)
_HOME_DIRECTORY = re.compile(r'/Users/[^/\s]{1,50}|[A-Za-z]:\\Users\\[^\\]{1,50}|/home/[^/\s]{1,50}')
_SOURCE_MAP_REF = re.compile(r'sourceMappingURL|\.(?:js|ts)\.map\b')
_SENSITIVE_NAME = re.compile(r'\.env\b|secret|passw(?:or)?d|token|api[_-]?key|credential|private[_-]?key', re.IGNORECASE)
_INTERNAL_STRUCTURE = re.compile(r'internal/|lib/private|/private/')
_DEPLOYMENT_PATH = re.compile(r'[/\\](?:opt|var|srv|app|workspace)[/\\]')
_LONG_REPEAT = re.compile(r'([A-Za-z0-9])\1{50,}')

_RECOMMENDATIONS = {
    "home-directory": "Enable redact_file_paths and redact_usernames in the stack trace configuration",
    "source-maps": "Strip source map references before forwarding traces",
    "sensitive-names": "Review file and variable names that appear in traces; use detail_level 'minimal' externally",
    "secret-values": "Redact secrets from exception messages before they are raised",
    "internal-structure": "Use detail_level 'minimal' for traces that leave the process",
    "deployment-paths": "Redact deployment directory structure from forwarded traces",
    "long-paths": "Treat abnormally long or repetitive traces as a possible DoS attempt",
}

_RISKS = {
    "home-directory": ("User home directory paths exposed", "User home directory path revealed"),
    "source-maps": ("Source map references present", "Source map reference found"),
    "sensitive-names": ("Potentially sensitive file or variable names", "Sensitive file or variable name detected"),
    "secret-values": ("Secret-shaped values present", "Credential or token pattern in trace text"),
    "internal-structure": ("Internal module structure exposed", "Internal module structure revealed"),
    "deployment-paths": ("Deployment path structure exposed", "Deployment directory structure revealed"),
    "long-paths": ("Suspicious long or repetitive path patterns", "Long or repetitive path pattern detected"),
}

_HIGH_RISK_PATTERNS = frozenset({"home-directory", "deployment-paths", "secret-values"})


@dataclass
class SensitiveFinding:
    """One sensitive pattern found in a trace line."""
    pattern: str
    description: str
    line: str


@dataclass
class StackTraceSecurityReport:
    """Read-only security assessment of a stack trace."""
    risk_level: str = "low"
    risks: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    sensitive_patterns: list[SensitiveFinding] = field(default_factory=list)
    truncated: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "risk_level": self.risk_level,
            "risks": list(self.risks),
            "recommendations": list(self.recommendations),
            "sensitive_patterns": [
                {"pattern": f.pattern, "description": f.description, "line": f.line}
                for f in self.sensitive_patterns
            ],
            "truncated": self.truncated,
        }


# =============================================================================
# BOUNDING
# =============================================================================

def _as_text(trace: Any) -> str:
    if trace is None:
        return ""
    if isinstance(trace, str):
        return trace
    if isinstance(trace, BaseException):
        try:
            return "".join(traceback.format_exception(trace))
        except Exception as e:  # hostile __str__ on the exception
            logger.debug(f"Exception could not be formatted: {type(e).__name__}")
            return f"{type(trace).__name__}: <unprintable>"
    return truncate_original(trace, MAX_STACK_TRACE_SIZE)


def _bounded_lines(trace: str, max_line_length: int) -> list[str]:
    """Cut the trace by total size, line count and line length, in that order."""
    within, _ = check_input_length(len(trace), MAX_STACK_TRACE_SIZE, "Stack trace")
    if not within:
        trace = trace[:MAX_STACK_TRACE_SIZE] + TRUNCATED_MARKER

    lines = trace.splitlines()
    within, _ = check_item_count(len(lines), MAX_STACK_TRACE_LINES, "Stack trace lines")
    if not within:
        hidden = len(lines) - MAX_STACK_TRACE_LINES
        lines = lines[:MAX_STACK_TRACE_LINES] + [f"... [{hidden} more lines truncated]"]

    bounded = []
    for line in lines:
        if len(line) > max_line_length:
            line = line[:max_line_length] + LINE_TRUNCATED_MARKER
        bounded.append(strip_invisible_chars(strip_control_chars(line)))
    return bounded


def _is_frame(line: str) -> bool:
    return _FRAME_LINE.match(line) is not None


# =============================================================================
# REDACTION STEPS
# =============================================================================

def _mask_filename(name: str) -> str:
    return "[REDACTED]" if _SENSITIVE_FILENAME.fullmatch(name) else name


def _mask_posix(match: re.Match) -> str:
    parts = [p for p in match.group(1).split("/") if p]
    if not parts:
        return match.group(0)
    if parts[0].lower() in _HOME_ROOTS:
        prefix = f"/{parts[0]}/***"
        rest = parts[2:]
    else:
        prefix = "/***"
        rest = parts[1:] if len(parts) > 1 else []
    if not rest:
        return prefix if parts[0].lower() in _HOME_ROOTS else f"/***/{_mask_filename(parts[0])}"
    return f"{prefix}/{_mask_filename(rest[-1])}"


def _mask_windows(match: re.Match) -> str:
    drive = match.group(1).upper()
    parts = [p for p in re.split(r'[\\/]', match.group(2)) if p]
    if not parts:
        return match.group(0)
    if parts[0].lower() == "users":
        prefix = f"{drive}:\\Users\\***"
        rest = parts[2:]
    else:
        prefix = f"{drive}:\\***"
        rest = parts[1:]
    if not rest:
        return prefix if parts[0].lower() == "users" else f"{prefix}\\{_mask_filename(parts[0])}"
    return f"{prefix}\\{_mask_filename(rest[-1])}"


def redact_paths(line: str) -> str:
    """Mask filesystem paths, keeping the drive or home prefix and the file name."""
    line = _UNC_PATH.sub(r'\\\\[SERVER]\\[SHARE]', line)
    line = _WINDOWS_PATH.sub(_mask_windows, line)
    line = _POSIX_PATH.sub(_mask_posix, line)
    return _SENSITIVE_FILENAME.sub("[REDACTED]", line)


def _current_user_patterns() -> list[re.Pattern]:
    names = set()
    for var in ("USER", "USERNAME", "LOGNAME"):
        value = os.environ.get(var, "")
        if 3 <= len(value) <= 64 and value.lower() not in _GENERIC_ACCOUNTS:
            names.add(value)
    return [re.compile(rf'(?<![\w]){re.escape(name)}(?![\w])', re.IGNORECASE) for name in sorted(names)]


def redact_usernames(line: str, patterns: Optional[list[re.Pattern]] = None) -> str:
    """Replace the current account name wherever it appears as a word."""
    for pattern in patterns if patterns is not None else _current_user_patterns():
        line = pattern.sub(USER_MARKER, line)
    return line


def _strip_line_numbers(line: str) -> str:
    return _JS_LINE_NUMBER.sub("", _PY_LINE_NUMBER.sub("", line))


def _limit_frames(lines: list[str], max_frames: int) -> list[str]:
    """Keep the first max_frames frames; hidden frames leave one marker line."""
    kept: list[str] = []
    frames = 0
    hidden = 0
    hiding = False
    for line in lines:
        if _is_frame(line):
            frames += 1
            hiding = frames > max_frames
            if hiding:
                hidden += 1
                continue
        elif hiding and line[:1].isspace():
            # source line belonging to a hidden frame
            continue
        else:
            if hidden:
                kept.append(f"    ... [{hidden} more frames hidden]")
                hidden = 0
            hiding = False
        kept.append(line)
    if hidden:
        kept.append(f"    ... [{hidden} more frames hidden]")
    return kept


# =============================================================================
# DETAIL LEVELS
# =============================================================================

def _sanitize_minimal(lines: list[str]) -> str:
    """Header line plus the first frame, reduced to a file name."""
    header = next((line for line in lines if line.strip() and not _is_frame(line)), "")
    first_frame = next((line for line in lines if _is_frame(line)), "")
    out = [redact_sensitive(redact_paths(header))] if header else []
    if first_frame:
        out.append(_strip_line_numbers(redact_paths(first_frame)))
    return "\n".join(out)


def _sanitize_full(lines: list[str], cfg: StackTraceConfig) -> str:
    user_patterns = _current_user_patterns() if cfg.redact_usernames else []
    out = []
    for line in lines:
        line = _MAP_SUFFIX.sub(r'.\1', _SOURCE_MAP.sub("", line))
        if cfg.redact_file_paths:
            line = redact_paths(line)
        if user_patterns:
            line = redact_usernames(line, user_patterns)
        line = _REPEATED_CHARS.sub(REPEATED_MARKER, line)
        line = redact_sensitive(line)
        if cfg.remove_line_numbers:
            line = _strip_line_numbers(line)
        out.append(line.rstrip())
    return "\n".join(_limit_frames(out, cfg.max_stack_depth))


def sanitize_stack_trace(trace: Any, config: Any = None) -> str:
    """Sanitize a multi-line stack trace for logging or forwarding.

    Args:
        trace: Trace text. Exceptions and other values are rendered first.
        config: ``StackTraceConfig``, mapping or attribute object.

    Returns:
        The sanitized trace. Empty for ``detail_level="none"``.

    Raises:
        ConfigurationTamperingError: ``config`` uses computed accessors.
    """
    cfg, _ = read_config(StackTraceConfig, config, base=get_settings().stack_trace)
    text = _as_text(trace)
    if not text or cfg.detail_level == "none":
        return ""

    lines = _bounded_lines(text, cfg.max_message_length)
    if cfg.detail_level == "raw":
        return "\n".join(lines)
    if cfg.detail_level == "minimal":
        return _sanitize_minimal(lines)
    return _sanitize_full(lines, cfg)


# =============================================================================
# ANALYSIS
# =============================================================================

def _line_findings(line: str, original_length: int) -> list[str]:
    found = []
    if _HOME_DIRECTORY.search(line):
        found.append("home-directory")
    if _SOURCE_MAP_REF.search(line):
        found.append("source-maps")
    if _SENSITIVE_NAME.search(line):
        found.append("sensitive-names")
    if contains_sensitive(line):
        found.append("secret-values")
    if _INTERNAL_STRUCTURE.search(line):
        found.append("internal-structure")
    if _is_frame(line) and _DEPLOYMENT_PATH.search(line):
        found.append("deployment-paths")
    if original_length > MAX_ANALYSIS_LINE_LENGTH or _LONG_REPEAT.search(line):
        found.append("long-paths")
    return found


def analyze_stack_trace_security(trace: Any) -> StackTraceSecurityReport:
    """Assess what a stack trace would disclose, without modifying it.

    Only the first MAX_ANALYSIS_SIZE characters and MAX_ANALYSIS_LINES lines
    are examined, and every line quoted in the report is itself truncated.
    """
    text = _as_text(trace)
    report = StackTraceSecurityReport()
    if not text:
        return report

    if len(text) > MAX_ANALYSIS_SIZE:
        text = text[:MAX_ANALYSIS_SIZE]
        report.truncated = True
    lines = text.split("\n")
    if len(lines) > MAX_ANALYSIS_LINES:
        lines = lines[:MAX_ANALYSIS_LINES]
        report.truncated = True

    seen: set[str] = set()
    for raw_line in lines:
        line = strip_control_chars(raw_line[:MAX_ANALYSIS_LINE_LENGTH])
        for name in _line_findings(line, len(raw_line)):
            risk, description = _RISKS[name]
            if name not in seen:
                seen.add(name)
                report.risks.append(risk)
                report.recommendations.append(_RECOMMENDATIONS[name])
            report.sensitive_patterns.append(SensitiveFinding(
                pattern=name,
                description=description,
                line=truncate_original(line.strip(), MAX_REPORT_VALUE_LENGTH),
            ))

    if len(report.sensitive_patterns) >= 5 or len(report.risks) >= 3 or seen & _HIGH_RISK_PATTERNS:
        report.risk_level = "high"
    elif report.sensitive_patterns:
        report.risk_level = "medium"

    if report.risk_level == "high":
        logger.warning(f"SECURITY: stack trace discloses {', '.join(sorted(seen))}")
    return report
