"""Result and classification types shared by every sanitizer."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Severity(str, Enum):
    """Violation severity, ordered low < medium < high < critical."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @property
    def weight(self) -> int:
        """Contribution to a 0-100 risk score."""
        return _SEVERITY_WEIGHT[self]

    def at_least(self, other: "Severity") -> bool:
        return self.rank >= other.rank


_SEVERITY_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2, Severity.CRITICAL: 3}
_SEVERITY_WEIGHT = {Severity.LOW: 10, Severity.MEDIUM: 20, Severity.HIGH: 30, Severity.CRITICAL: 40}


class ViolationKind(str, Enum):
    """What a violation is about."""
    COMMAND_INJECTION = "command-injection"
    PATH_TRAVERSAL = "path-traversal"
    SCRIPT_INJECTION = "script-injection"
    SENSITIVE_VALUE = "sensitive-value"
    PRIVILEGE_ESCALATION = "privilege-escalation"
    SENSITIVE_FILE = "sensitive-file"
    OBFUSCATION = "obfuscation"
    NETWORK_ACCESS = "network-access"
    DESERIALIZATION = "deserialization"
    XML_EXTERNAL_ENTITY = "xml-external-entity"
    LDAP_INJECTION = "ldap-injection"
    XPATH_INJECTION = "xpath-injection"
    EXPRESSION_INJECTION = "expression-injection"
    CSV_INJECTION = "csv-injection"
    INVALID_CHARACTERS = "invalid-characters"
    INVALID_FORMAT = "invalid-format"
    CASING = "casing"
    LENGTH = "length"
    WHITELIST = "whitelist"
    SUSPICIOUS_PATTERN = "suspicious-pattern"
    MALFORMED_INPUT = "malformed-input"
    PROTOTYPE_POLLUTION = "prototype-pollution"
    DANGEROUS_CALLABLE = "dangerous-callable"
    OVERSIZED = "oversized"
    DEEP_NESTING = "deep-nesting"
    INJECTION_PATTERN = "injection-pattern"
    CUSTOM_PATTERN = "custom-pattern"


class TypeTag(str, Enum):
    """Classification of one node in an arbitrary value tree."""
    PRIMITIVE = "primitive"
    RECORD = "record"
    SEQUENCE = "sequence"
    DATE = "date"
    PATTERN = "pattern"
    CALLABLE = "callable"
    CLASS_INSTANCE = "class-instance"
    BINARY = "binary"
    CIRCULAR = "circular"
    UNKNOWN = "unknown"


class Strategy(str, Enum):
    """What to do with a classified node."""
    PRESERVE = "preserve"
    SANITIZE = "sanitize"
    REDACT = "redact"
    REMOVE = "remove"
    TRUNCATE = "truncate"
    FLATTEN = "flatten"


def truncate_original(value: Any, limit: int = 100) -> str:
    """Render an offending value for a report without re-introducing its size."""
    try:
        text = value if isinstance(value, str) else repr(value)
    except Exception:  # hostile __repr__
        text = f"<{type(value).__name__}>"
    if len(text) > limit:
        return text[:limit] + "..."
    return text


@dataclass(frozen=True)
class Violation:
    """One detected problem. Immutable once produced."""
    kind: ViolationKind
    severity: Severity
    description: str
    path: str = ""
    original: str = ""
    remediation: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "kind": self.kind.value,
            "severity": self.severity.value,
            "path": self.path,
            "description": self.description,
            "original": self.original,
            "remediation": self.remediation,
        }


def risk_score(violations: list[Violation]) -> int:
    """Aggregate violation severities into a 0-100 score."""
    return min(100, sum(v.severity.weight for v in violations))


def highest_severity(violations: list[Violation]) -> Severity | None:
    if not violations:
        return None
    return max((v.severity for v in violations), key=lambda s: s.rank)


@dataclass
class ValidationResult:
    """Outcome of validating one input.

    ``is_valid`` is derived: it is False when any violation is at or above
    ``failure_threshold``.
    """
    sanitized_value: Any
    violations: list[Violation] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    risk_score: int = 0
    warnings: list[str] = field(default_factory=list)
    failure_threshold: Severity = Severity.LOW

    @property
    def is_valid(self) -> bool:
        return not any(v.severity.at_least(self.failure_threshold) for v in self.violations)

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "sanitized_value": self.sanitized_value,
            "violations": [v.to_dict() for v in self.violations],
            "suggestions": list(self.suggestions),
            "risk_score": self.risk_score,
            "warnings": list(self.warnings),
        }
