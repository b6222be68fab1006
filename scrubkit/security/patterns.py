"""Detection rules for injection, traversal and sensitive-value shapes.

Every rule is a plain compiled regex with no shared mutable state. Rules are
written to match in linear time: character classes never overlap with the
literal that follows them, repetition is bounded, and every input is cut to
``MAX_PATTERN_INPUT`` characters before any rule runs.

Usage:
    from scrubkit.security.patterns import analyze, matches, redact_sensitive

    matches("build; rm -rf /", ViolationKind.COMMAND_INJECTION)   # True
    analyze("contact admin@example.com").risk_score                # 20
    redact_sensitive("key sk-1234567890abcdef")    # 'key [REDACTED_API_KEY]'
"""

import re
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional, Tuple

from loguru import logger

from scrubkit.security.limits import MAX_INPUT_LENGTH
from scrubkit.security.types import (
    Severity,
    Violation,
    ViolationKind,
    truncate_original,
)


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

# Characters of input inspected by any rule; the rest is never matched
MAX_PATTERN_INPUT: int = MAX_INPUT_LENGTH

# Longest caller-supplied regex accepted by compile_custom_patterns
MAX_CUSTOM_PATTERN_LENGTH: int = 500

CATEGORIES: FrozenSet[ViolationKind] = frozenset({
    ViolationKind.COMMAND_INJECTION,
    ViolationKind.PATH_TRAVERSAL,
    ViolationKind.SCRIPT_INJECTION,
    ViolationKind.SENSITIVE_VALUE,
    ViolationKind.PRIVILEGE_ESCALATION,
    ViolationKind.SENSITIVE_FILE,
    ViolationKind.OBFUSCATION,
    ViolationKind.NETWORK_ACCESS,
    ViolationKind.DESERIALIZATION,
    ViolationKind.XML_EXTERNAL_ENTITY,
    ViolationKind.LDAP_INJECTION,
    ViolationKind.XPATH_INJECTION,
    ViolationKind.EXPRESSION_INJECTION,
    ViolationKind.CSV_INJECTION,
})

# Interpreter- and format-specific injection families; opt-in for free-form text
EXTENDED_CATEGORIES: Tuple[ViolationKind, ...] = (
    ViolationKind.NETWORK_ACCESS,
    ViolationKind.DESERIALIZATION,
    ViolationKind.XML_EXTERNAL_ENTITY,
    ViolationKind.LDAP_INJECTION,
    ViolationKind.XPATH_INJECTION,
    ViolationKind.EXPRESSION_INJECTION,
    ViolationKind.CSV_INJECTION,
)

# Categories applied to free-form string values (object leaves, messages)
INJECTION_CATEGORIES: Tuple[ViolationKind, ...] = (
    ViolationKind.COMMAND_INJECTION,
    ViolationKind.SCRIPT_INJECTION,
    ViolationKind.PATH_TRAVERSAL,
    ViolationKind.OBFUSCATION,
)
SENSITIVE_CATEGORIES: Tuple[ViolationKind, ...] = (ViolationKind.SENSITIVE_VALUE,)

# Regexes over regex source that indicate catastrophic backtracking
REDOS_PATTERNS: Tuple[Tuple[str, str], ...] = (
    (r'\([^)]*[\+\*]\)[\+\*\{]', 'nested quantifiers'),
    (r'[\+\*]\s*[\+\*]', 'consecutive quantifiers'),
    (r'\([^|)]+\|[^|)]+\)[\+\*]', 'overlapping alternatives with quantifier'),
    (r'\\[1-9].*[\+\*]', 'backreference with quantifier'),
)


@dataclass(frozen=True)
class Rule:
    """A single detection rule."""
    name: str
    category: ViolationKind
    pattern: re.Pattern
    severity: Severity
    weight: int
    description: str
    remediation: str = ""
    # Template used by redact_sensitive; defaults to [REDACTED_<NAME>]
    replacement: Optional[str] = None


@dataclass
class PatternAnalysis:
    """Violations found in a string plus their 0-100 aggregate."""
    violations: list[Violation] = field(default_factory=list)
    risk_score: int = 0

    @property
    def is_clean(self) -> bool:
        return not self.violations


def _rule(name, category, pattern, severity, weight, description, remediation="", replacement=None, flags=0):
    return Rule(
        name=name,
        category=category,
        pattern=re.compile(pattern, flags),
        severity=severity,
        weight=weight,
        description=description,
        remediation=remediation,
        replacement=replacement,
    )


_CI = ViolationKind.COMMAND_INJECTION
_PT = ViolationKind.PATH_TRAVERSAL
_SI = ViolationKind.SCRIPT_INJECTION
_SV = ViolationKind.SENSITIVE_VALUE
_PE = ViolationKind.PRIVILEGE_ESCALATION
_SF = ViolationKind.SENSITIVE_FILE
_OB = ViolationKind.OBFUSCATION
_NA = ViolationKind.NETWORK_ACCESS
_DS = ViolationKind.DESERIALIZATION
_XE = ViolationKind.XML_EXTERNAL_ENTITY
_LD = ViolationKind.LDAP_INJECTION
_XP = ViolationKind.XPATH_INJECTION
_EL = ViolationKind.EXPRESSION_INJECTION
_CV = ViolationKind.CSV_INJECTION

_DESTRUCTIVE = r'(?:rm|rmdir|del|format|mkfs(?:\.\w{1,10})?|dd|shred|shutdown|reboot|halt|kill|killall|wget|curl|nc|netcat|bash|sh|zsh|powershell|cmd)'

# Redaction runs in this order, so broader shapes (URLs) go before narrower ones
RULES: Tuple[Rule, ...] = (
    # --- command injection ---------------------------------------------------
    _rule("shell_metacharacter", _CI, r'[;&|`<>]|\$[({A-Za-z_]', Severity.HIGH, 30,
          "Shell metacharacter that can chain, substitute or redirect commands",
          "Remove shell metacharacters (; & | ` $ < >)"),
    _rule("chained_destructive_command", _CI,
          rf'(?:[;&|`]|\$\()\s{{0,16}}{_DESTRUCTIVE}(?![\w-])', Severity.CRITICAL, 40,
          "Destructive command chained after a shell separator",
          "Do not pass shell commands as arguments", flags=re.IGNORECASE),
    _rule("leading_destructive_command", _CI,
          rf'^\s{{0,16}}{_DESTRUCTIVE}\s+-', Severity.CRITICAL, 40,
          "Value starts with a destructive command invocation",
          "Do not pass shell commands as arguments", flags=re.IGNORECASE),
    _rule("recursive_delete", _CI, r'\b(?:rm\s+-[a-z]{0,8}[rf]|del\s+/[sq]|rd\s+/s|format\s+[a-z]:|dd\s+if=)',
          Severity.CRITICAL, 40, "Recursive delete or raw disk write",
          "Do not pass shell commands as arguments", flags=re.IGNORECASE),
    # --- path traversal ------------------------------------------------------
    _rule("dot_dot_segment", _PT, r'(?:^|[\\/])\.\.(?:[\\/]|$)', Severity.CRITICAL, 40,
          "Parent-directory segment", "Use a path relative to the working directory without '..'"),
    _rule("encoded_traversal", _PT, r'%2e%2e|%252e|%c0%ae|%e0%80%ae|\.%2e|%2e\.|\.\.%2f|\.\.%5c',
          Severity.CRITICAL, 40, "URL-encoded or overlong-UTF-8 parent-directory segment",
          "Decode and validate paths before use", flags=re.IGNORECASE),
    _rule("unicode_path_separator", _PT, r'[\uff0e\uff0f\uff3c\u2024\u2025\u2215\u2216]', Severity.HIGH, 30,
          "Full-width or look-alike dot/slash character", "Use ASCII path separators"),
    _rule("null_byte", _PT, r'\x00|%00', Severity.CRITICAL, 40,
          "Null byte that can truncate paths", "Remove null bytes"),
    # --- script injection ----------------------------------------------------
    _rule("script_tag", _SI, r'<\s{0,8}/?\s{0,8}script\b', Severity.CRITICAL, 45,
          "HTML script tag", "Escape HTML before rendering", flags=re.IGNORECASE),
    _rule("javascript_uri", _SI, r'\b(?:javascript|vbscript)\s{0,8}:', Severity.HIGH, 30,
          "Script URI scheme", "Reject script URIs", flags=re.IGNORECASE),
    _rule("event_handler", _SI, r'\bon[a-z]{2,20}\s{0,8}=\s{0,8}["\']?', Severity.MEDIUM, 20,
          "Inline DOM event handler", "Escape HTML attributes", flags=re.IGNORECASE),
    _rule("dynamic_code_execution", _SI,
          r'\b(?:eval|exec|execfile|compile|__import__|Function|setTimeout|setInterval|execSync|spawnSync)\s{0,8}\(',
          Severity.CRITICAL, 50, "Dynamic code execution call", "Never evaluate untrusted text"),
    _rule("template_expression", _SI, r'\{\{[^{}]{0,200}\}\}|\{%[^{}]{0,200}%\}', Severity.MEDIUM, 20,
          "Template expression", "Escape template delimiters"),
    # --- sensitive values ----------------------------------------------------
    _rule("private_key", _SV, r'-----BEGIN [A-Z ]{0,24}PRIVATE KEY-----', Severity.CRITICAL, 40,
          "PEM private key", "Never log private keys"),
    _rule("db_url", _SV, r'\b(?:mongodb(?:\+srv)?|postgres(?:ql)?|mysql|mariadb|redis|rediss|amqp|mssql)://[^\s"\'<>]{1,512}',
          Severity.HIGH, 30, "Database connection string", "Log the host name only", flags=re.IGNORECASE),
    _rule("url_credentials", _SV, r'\b([a-z][a-z0-9+.-]{0,20}://)[^\s:/@"\'<>]{1,256}:[^\s@/"\'<>]{1,256}@',
          Severity.HIGH, 30, "Credentials embedded in a URL", "Strip user info from URLs",
          replacement=r'\1[REDACTED]@', flags=re.IGNORECASE),
    _rule("bearer_token", _SV, r'\b(bearer)\s{1,8}(?!\[REDACTED)[A-Za-z0-9._~+/-]{8,}=*', Severity.HIGH, 30,
          "Bearer token", "Redact authorization headers", replacement=r'\1 [REDACTED]', flags=re.IGNORECASE),
    _rule("jwt", _SV, r'\beyJ[A-Za-z0-9_-]{8,}\.[A-Za-z0-9_-]{8,}\.[A-Za-z0-9_-]{8,}', Severity.HIGH, 30,
          "JSON Web Token", "Redact tokens"),
    _rule("api_key", _SV, r'\bsk-(?:ant-|proj-)?[A-Za-z0-9_-]{10,}', Severity.HIGH, 30,
          "API secret key", "Rotate the key and redact it from logs"),
    _rule("aws_access_key", _SV, r'\b(?:AKIA|ASIA)[0-9A-Z]{16}\b', Severity.HIGH, 30,
          "AWS access key id", "Rotate the key and redact it from logs"),
    _rule("github_token", _SV, r'\b(?:gh[pousr]_[A-Za-z0-9]{36,}|github_pat_[A-Za-z0-9_]{22,})', Severity.HIGH, 30,
          "GitHub token", "Rotate the token and redact it from logs"),
    _rule("slack_token", _SV, r'\bxox[abposr]-[A-Za-z0-9-]{10,}', Severity.HIGH, 30,
          "Slack token", "Rotate the token and redact it from logs"),
    _rule("google_api_key", _SV, r'\bAIza[0-9A-Za-z_-]{35}', Severity.HIGH, 30,
          "Google API key", "Rotate the key and redact it from logs"),
    _rule("stripe_key", _SV, r'\b[rsp]k_(?:live|test)_[0-9A-Za-z]{16,}', Severity.HIGH, 30,
          "Stripe key", "Rotate the key and redact it from logs"),
    _rule("credential_assignment", _SV,
          r'\b(password|passwd|pwd|secret|api[_-]?key|access[_-]?token|auth[_-]?token|client[_-]?secret)(\s{0,8}[:=]\s{0,8})(?!\[REDACTED)[^\s,;&"\']{1,256}',
          Severity.HIGH, 30, "Credential assigned in text", "Redact credential values",
          replacement=r'\1\2[REDACTED]', flags=re.IGNORECASE),
    _rule("email", _SV,
          r'(?<![A-Za-z0-9._%+-])[A-Za-z0-9._%+-]{1,64}@(?:[A-Za-z0-9-]{1,63}\.){1,8}[A-Za-z]{2,24}\b',
          Severity.MEDIUM, 20, "Email address", "Log a user id instead of an email address"),
    _rule("ip_address", _SV, r'(?<![\d.])(?:25[0-5]|2[0-4]\d|1?\d?\d)(?:\.(?:25[0-5]|2[0-4]\d|1?\d?\d)){3}(?![\d.])',
          Severity.LOW, 10, "IPv4 address", "Avoid logging client addresses"),
    # --- privilege escalation ------------------------------------------------
    _rule("privilege_command", _PE, r'(?:^|[\s;&|`(])(?:sudo|su|doas|runas|pkexec)(?:\s|$)', Severity.HIGH, 35,
          "Privilege escalation command", "Run without elevated privileges", flags=re.IGNORECASE),
    _rule("setuid_chmod", _PE, r'\bchmod\s{1,8}(?:[ugoa]{0,4}\+s|[0-7]?[4267][0-7]{3}\b|777\b)', Severity.HIGH, 35,
          "Permission change enabling setuid or world access", "Use least-privilege permissions",
          flags=re.IGNORECASE),
    _rule("chown_root", _PE, r'\bchown\s{1,8}(?:-[A-Za-z]{1,4}\s{1,8})?root\b', Severity.HIGH, 35,
          "Ownership change to root", "Keep files owned by the invoking user", flags=re.IGNORECASE),
    # --- sensitive files -----------------------------------------------------
    _rule("system_credential_file", _SF,
          r'(?:^|[\\/])(?:etc[\\/](?:passwd|shadow|sudoers|gshadow|master\.passwd)|\.ssh(?:[\\/]|$)|\.aws[\\/]credentials'
          r'|\.gnupg(?:[\\/]|$)|\.kube[\\/]config|\.docker[\\/]config\.json|\.netrc\b|\.npmrc\b|\.pgpass\b'
          r'|id_(?:rsa|dsa|ecdsa|ed25519)\b|windows[\\/]system32|\.git[\\/]config)',
          Severity.CRITICAL, 45, "System or credential file", "Do not reference credential files",
          flags=re.IGNORECASE),
    _rule("dotenv_file", _SF, r'(?:^|[\\/])\.env(?:\.[A-Za-z0-9_-]{1,32})?$', Severity.HIGH, 30,
          "Environment file", "Do not reference environment files", flags=re.IGNORECASE),
    _rule("windows_device_name", _SF, r'(?:^|[\\/])(?:con|prn|aux|nul|com[1-9]|lpt[1-9])(?:\.[^\\/]{0,32})?$',
          Severity.MEDIUM, 20, "Reserved Windows device name", "Choose a different file name",
          flags=re.IGNORECASE),
    # --- obfuscation ---------------------------------------------------------
    _rule("homograph_mixing", _OB, r'[A-Za-z][\u0370-\u03ff\u0400-\u04ff]|[\u0370-\u03ff\u0400-\u04ff][A-Za-z]',
          Severity.HIGH, 35, "Latin mixed with Cyrillic/Greek look-alike letters", "Use a single script"),
    _rule("bidi_override", _OB, r'[\u202a-\u202e\u2066-\u2069\u200e\u200f]', Severity.HIGH, 35,
          "Bidirectional text override", "Remove bidi control characters"),
    _rule("zero_width", _OB, r'[\u200b-\u200d\u2060\ufeff]', Severity.MEDIUM, 20,
          "Zero-width character", "Remove invisible characters"),
    _rule("prototype_pollution_keyword", _OB,
          r'__proto__|\bconstructor\s{0,8}[.\[]\s{0,8}["\']?prototype|__globals__|__builtins__|__subclasses__|__mro__',
          Severity.HIGH, 35, "Prototype/class-hierarchy access keyword", "Reject structural keywords"),
    # --- network access ------------------------------------------------------
    _rule("dangerous_url_scheme", _NA, r'\b(?:file|ftp|gopher|dict|ldaps?|telnet|ssh|jar|netdoc)://', Severity.HIGH, 30,
          "URL scheme that reaches local files or internal services", "Allow http(s) URLs only",
          flags=re.IGNORECASE),
    _rule("private_network_address", _NA,
          r'(?<![\d.])(?:10\.\d{1,3}|172\.(?:1[6-9]|2\d|3[01])|192\.168)\.\d{1,3}\.\d{1,3}(?![\d.])',
          Severity.MEDIUM, 20, "Private (RFC 1918) network address", "Do not target internal hosts"),
    _rule("loopback_address", _NA,
          r'\blocalhost\b|(?<![\d.])127\.\d{1,3}\.\d{1,3}\.\d{1,3}(?![\d.])|(?<![\d.])0\.0\.0\.0(?![\d.])|\[::1?\]',
          Severity.MEDIUM, 20, "Loopback or unspecified address", "Do not target the local host",
          flags=re.IGNORECASE),
    _rule("sensitive_port", _NA, r'[A-Za-z0-9\]]:(?:22|23|53|135|139|445|1433|1521|3306|3389|5432|5900|6379)(?!\d)',
          Severity.LOW, 10, "Port of a remote-access or database service", "Avoid exposing service ports"),
    # --- deserialization -----------------------------------------------------
    _rule("java_serialized_object", _DS, r'\xac\xed\x00\x05|\brO0AB', Severity.CRITICAL, 40,
          "Java serialized object stream", "Never deserialize untrusted data"),
    _rule("gadget_class", _DS,
          r'\b(?:InvokerTransformer|ChainedTransformer|CommonsCollections\d{0,2}|ObjectStateFormatter|LosFormatter'
          r'|BinaryFormatter|TypeConfuseDelegate|ProcessBuilder)\b',
          Severity.HIGH, 35, "Known deserialization gadget class", "Never deserialize untrusted data"),
    _rule("python_pickle", _DS, r'\x80[\x02-\x05]|c__builtin__|\bc(?:os|posix|nt)\nsystem|__reduce(?:_ex)?__',
          Severity.CRITICAL, 40, "Pickle opcode stream or reduce hook", "Never unpickle untrusted data"),
    _rule("php_serialized_object", _DS, r'\b[Oo]:\d{1,6}:"[A-Za-z_\\][A-Za-z0-9_\\]{0,128}":\d{1,6}:\{',
          Severity.HIGH, 35, "PHP serialized object", "Never unserialize untrusted data"),
    _rule("node_serialized_function", _DS, r'"__js_function"|_\$\$ND_FUNC\$\$_', Severity.CRITICAL, 40,
          "Serialized JavaScript function", "Never deserialize untrusted data"),
    # --- XML external entities ------------------------------------------------
    _rule("external_entity", _XE, r'<!ENTITY\s{1,8}(?:%\s{1,8})?[^\s>]{1,64}\s{1,8}(?:SYSTEM|PUBLIC)\b',
          Severity.CRITICAL, 45, "External XML entity declaration", "Disable DTD processing",
          flags=re.IGNORECASE),
    _rule("parameter_entity", _XE, r'<!ENTITY\s{1,8}%', Severity.HIGH, 35,
          "XML parameter entity", "Disable DTD processing", flags=re.IGNORECASE),
    _rule("external_doctype", _XE, r'<!DOCTYPE\s[^>\[]{0,200}\b(?:SYSTEM|PUBLIC)\b', Severity.HIGH, 35,
          "DOCTYPE with an external identifier", "Disable DTD processing", flags=re.IGNORECASE),
    _rule("xinclude", _XE, r'<xi:include\b', Severity.HIGH, 30,
          "XInclude directive", "Disable XInclude processing", flags=re.IGNORECASE),
    _rule("entity_expansion", _XE, r'&lol\d{0,3};', Severity.MEDIUM, 20,
          "Recursive entity expansion (billion laughs)", "Limit entity expansion", flags=re.IGNORECASE),
    # --- LDAP ----------------------------------------------------------------
    _rule("ldap_filter_injection", _LD, r'\*\)\s{0,4}\(|\)\s{0,4}\(\s{0,4}[|&!]|\(\s{0,4}[|&]\s{0,4}\(',
          Severity.HIGH, 30, "LDAP filter breakout", "Escape ( ) * \\ and NUL in filter values"),
    _rule("ldap_sensitive_attribute", _LD, r'\b(?:objectClass|userPassword|memberOf)\s{0,4}=', Severity.MEDIUM, 20,
          "LDAP attribute commonly used in injection", "Escape filter values", flags=re.IGNORECASE),
    # --- XPath ---------------------------------------------------------------
    _rule("xpath_boolean_bypass", _XP, r'[\'"]\s{0,8}(?:or|and)\s{1,8}[\'"]?[\w-]{0,32}[\'"]?\s{0,8}!?=',
          Severity.HIGH, 30, "Always-true XPath predicate", "Use parameterized XPath queries",
          flags=re.IGNORECASE),
    _rule("xpath_axis", _XP, r'\b(?:parent|ancestor|descendant|following|preceding)(?:-or-self|-sibling)?::',
          Severity.MEDIUM, 20, "XPath axis traversal", "Use parameterized XPath queries", flags=re.IGNORECASE),
    _rule("xpath_string_function", _XP, r'\b(?:string-length|starts-with|normalize-space)\s{0,8}\(', Severity.LOW, 10,
          "XPath function used for blind extraction", "Use parameterized XPath queries", flags=re.IGNORECASE),
    # --- expression language -------------------------------------------------
    _rule("el_code_execution", _EL,
          r'[$#%]\{[^}]{0,200}(?:Runtime|ProcessBuilder|System\.(?:getProperty|exit)|Class\.forName|getClass\(\)'
          r'|getDeclaredMethod|T\()',
          Severity.CRITICAL, 45, "Expression language reaching the runtime", "Never evaluate untrusted expressions"),
    _rule("ognl_static_access", _EL, r'@java\.lang\.|%\{\s{0,8}#', Severity.HIGH, 30,
          "OGNL static or context access", "Never evaluate untrusted expressions"),
    _rule("spring_el", _EL, r'#\{[^}]{1,200}\}', Severity.MEDIUM, 20,
          "Spring expression", "Escape expression delimiters"),
    _rule("el_expression", _EL, r'\$\{[^}]{1,200}\}', Severity.LOW, 10,
          "JSP/MVEL expression", "Escape expression delimiters"),
    # --- CSV / spreadsheet formulas -------------------------------------------
    _rule("dde_payload", _CV, r'^\s{0,8}[=+@-][^|\n]{0,64}\|[^!\n]{0,256}!', Severity.CRITICAL, 40,
          "Dynamic Data Exchange command in a spreadsheet cell", "Prefix cells with a single quote"),
    _rule("spreadsheet_function", _CV,
          r'\b(?:HYPERLINK|IMPORTXML|IMPORTDATA|IMPORTHTML|IMPORTRANGE|WEBSERVICE)\s{0,8}\(',
          Severity.HIGH, 30, "Spreadsheet function that fetches or links external data",
          "Prefix cells with a single quote", flags=re.IGNORECASE),
    _rule("formula_prefix", _CV, r'^\s{0,8}(?:[=@]|[+-]\s{0,8}[A-Za-z(@])', Severity.MEDIUM, 20,
          "Cell value starts like a formula", "Prefix cells with a single quote"),
)

_RULES_BY_CATEGORY: dict[ViolationKind, Tuple[Rule, ...]] = {
    category: tuple(r for r in RULES if r.category is category) for category in CATEGORIES
}

# Property names that hold credentials regardless of their value
SENSITIVE_KEY_PATTERN: re.Pattern = re.compile(
    r'passw(?:or)?d|passphrase|pwd|secret|token|api[_-]?key|apikey|auth(?:orization)?(?![a-z])'
    r'|credential|private[_-]?key|access[_-]?key|session[_-]?id|cookie|signature|\bssn\b|credit[_-]?card|cvv',
    re.IGNORECASE,
)

_CONTROL_CHARS = re.compile(r'\x1b\[[0-9;?]{0,32}[A-Za-z]|[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]')
_INVISIBLE_CHARS = re.compile(r'[\u200b-\u200d\u2060\ufeff\u202a-\u202e\u2066-\u2069\u200e\u200f]')


def bound_input(text: str, limit: int = MAX_PATTERN_INPUT) -> str:
    """Cut text to the inspected window."""
    return text if len(text) <= limit else text[:limit]


def _select(categories: Optional[Iterable[ViolationKind]]) -> Iterable[Rule]:
    if categories is None:
        return RULES
    wanted = set(categories)
    return tuple(r for r in RULES if r.category in wanted)


def matches(text: str, category: ViolationKind) -> bool:
    """Return True if any rule of ``category`` matches ``text``."""
    if not isinstance(text, str) or not text:
        return False
    sample = bound_input(text)
    return any(rule.pattern.search(sample) for rule in _RULES_BY_CATEGORY.get(category, ()))


def analyze(
    text: str,
    categories: Optional[Iterable[ViolationKind]] = None,
    path: str = "",
    exclude: Iterable[str] = (),
) -> PatternAnalysis:
    """Run every selected rule and score the result.

    Each rule contributes at most once; the score is the sum of rule weights
    capped at 100, so adding text can only add hits.
    """
    if not isinstance(text, str) or not text:
        return PatternAnalysis()

    sample = bound_input(text)
    skipped = frozenset(exclude)
    violations: list[Violation] = []
    total = 0
    for rule in _select(categories):
        if rule.name in skipped:
            continue
        match = rule.pattern.search(sample)
        if match is None:
            continue
        total += rule.weight
        violations.append(Violation(
            kind=rule.category,
            severity=rule.severity,
            description=rule.description,
            path=path,
            original=truncate_original(match.group(0)),
            remediation=rule.remediation,
        ))
    return PatternAnalysis(violations=violations, risk_score=min(100, total))


def redact_sensitive(text: str, limit: int = MAX_PATTERN_INPUT) -> str:
    """Replace every sensitive-value shape with a fixed placeholder.

    Text past ``limit`` is dropped rather than passed through unseen.
    """
    if not isinstance(text, str) or not text:
        return text
    redacted = bound_input(text, limit)
    for rule in _RULES_BY_CATEGORY[ViolationKind.SENSITIVE_VALUE]:
        replacement = rule.replacement or f"[REDACTED_{rule.name.upper()}]"
        redacted = rule.pattern.sub(replacement, redacted)
    return redacted


def contains_sensitive(text: str) -> bool:
    return matches(text, ViolationKind.SENSITIVE_VALUE)


def is_sensitive_key(name) -> bool:
    """Return True for property names that conventionally hold credentials."""
    if not isinstance(name, str) or not name:
        return False
    return SENSITIVE_KEY_PATTERN.search(bound_input(name, 256)) is not None


def strip_control_chars(text: str) -> str:
    """Remove ANSI escape sequences and C0 control characters except tab/newline/CR."""
    return _CONTROL_CHARS.sub("", text)


def strip_invisible_chars(text: str) -> str:
    """Remove zero-width and bidi control characters."""
    return _INVISIBLE_CHARS.sub("", text)


def sanitize_text(text: str) -> str:
    """Best-effort removal of dangerous substrings.

    Drops control/invisible characters, script tags and shell metacharacters.
    The result can still be unsafe; callers that need a guarantee must
    re-check it with ``analyze``.
    """
    if not isinstance(text, str):
        return ""
    cleaned = strip_invisible_chars(strip_control_chars(bound_input(text)))
    cleaned = re.sub(r'<\s{0,8}/?\s{0,8}script\b[^>]{0,200}>?', '', cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r'[;&|`$<>]', '', cleaned)
    return cleaned


def is_command_safe(text: str) -> bool:
    """No command-injection or privilege-escalation rule matches."""
    return not (matches(text, ViolationKind.COMMAND_INJECTION) or matches(text, ViolationKind.PRIVILEGE_ESCALATION))


def is_path_safe(text: str) -> bool:
    """No traversal or sensitive-file rule matches."""
    return not (matches(text, ViolationKind.PATH_TRAVERSAL) or matches(text, ViolationKind.SENSITIVE_FILE))


def check_redos_vulnerability(pattern: str) -> Tuple[bool, str]:
    """Check regex source for constructs prone to catastrophic backtracking.

    Returns:
        Tuple of (is_safe, reason).
    """
    for detector, reason in REDOS_PATTERNS:
        if re.search(detector, pattern):
            return False, reason
    return True, ""


def compile_custom_patterns(patterns: Iterable[str]) -> Tuple[list[re.Pattern], list[str]]:
    """Compile caller-supplied regexes, skipping unsafe or broken ones.

    Returns:
        Tuple of (compiled patterns, advisories for every skipped pattern).
    """
    compiled: list[re.Pattern] = []
    advisories: list[str] = []
    for source in patterns:
        shown = truncate_original(source, 60)
        if len(source) > MAX_CUSTOM_PATTERN_LENGTH:
            advisories.append(f"Custom pattern {shown} ignored: longer than {MAX_CUSTOM_PATTERN_LENGTH} chars")
            continue
        safe, reason = check_redos_vulnerability(source)
        if not safe:
            logger.warning(f"SECURITY: Custom pattern rejected ({reason})")
            advisories.append(f"Custom pattern {shown} ignored: {reason}")
            continue
        try:
            compiled.append(re.compile(source))
        except re.error as e:
            advisories.append(f"Custom pattern {shown} ignored: {e}")
    return compiled, advisories


__all__ = [
    "CATEGORIES",
    "EXTENDED_CATEGORIES",
    "INJECTION_CATEGORIES",
    "SENSITIVE_CATEGORIES",
    "MAX_PATTERN_INPUT",
    "RULES",
    "Rule",
    "PatternAnalysis",
    "analyze",
    "matches",
    "redact_sensitive",
    "contains_sensitive",
    "is_sensitive_key",
    "strip_control_chars",
    "strip_invisible_chars",
    "sanitize_text",
    "is_command_safe",
    "is_path_safe",
    "check_redos_vulnerability",
    "compile_custom_patterns",
]
