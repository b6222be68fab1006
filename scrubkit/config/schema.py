"""Configuration schema using Pydantic.

Every bundle is frozen: callers hand these to the engine and the engine never
mutates them. Fix-ups of bad values happen in ``scrubkit.config.untrusted`` on a
local copy before a model is built.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

SanitizationLevel = Literal["minimal", "standard", "strict", "paranoid"]
DetailLevel = Literal["raw", "minimal", "sanitized", "none"]
RedactionLevel = Literal["none", "partial", "full"]

# Largest integer that survives a round trip through an IEEE-754 double
MAX_SAFE_INTEGER = 2**53 - 1

_MODEL_CONFIG = ConfigDict(
    frozen=True,
    extra="ignore",
    alias_generator=to_camel,
    populate_by_name=True,
)


class ValidationConfig(BaseModel):
    """Input validator configuration."""
    model_config = _MODEL_CONFIG

    strict_mode: bool = True
    max_length: int = Field(default=255, ge=1, le=10240, description="Max length of a validated value")
    auto_sanitize: bool = True
    provide_suggestions: bool = True
    allow_unicode: bool = True  # Unicode letters accepted in names
    custom_patterns: tuple[str, ...] = ()  # Extra regexes that flag a value as suspicious
    allow_absolute: bool = False
    allow_traversal: bool = False
    working_directory: str | None = None  # Root that file paths must resolve inside
    max_args: int = Field(default=256, ge=1, le=4096, description="Max shell arguments kept")


class ObjectSanitizationConfig(BaseModel):
    """Object sanitizer configuration."""
    model_config = _MODEL_CONFIG

    sanitization_level: SanitizationLevel = "standard"
    max_depth: int = Field(default=10, ge=1, le=100)
    max_properties: int = Field(default=100, ge=1, le=100000)
    max_array_length: int = Field(default=1000, ge=1, le=1000000)
    max_string_length: int = Field(default=10000, ge=16, le=10 * 1024 * 1024)
    max_object_size: int = Field(default=1024 * 1024, ge=1024, le=100 * 1024 * 1024, description="Estimated bytes")
    remove_prototype_properties: bool = True
    sanitize_functions: bool = True
    enable_injection_protection: bool = True
    enable_cache: bool = True
    cache_ttl_seconds: float = Field(default=300.0, ge=0, le=86400)
    max_cache_size: int = Field(default=1000, ge=0, le=100000)
    enable_batch_processing: bool = True
    batch_size: int = Field(default=100, ge=1, le=10000)
    max_processing_time_ms: int = Field(default=5000, ge=1, le=600000)
    custom_redaction_patterns: tuple[str, ...] = ()
    # Classification tag -> strategy name; always wins over the decision table
    custom_strategies: dict[str, str] = Field(default_factory=dict)


class StackTraceConfig(BaseModel):
    """Stack trace sanitizer configuration."""
    model_config = _MODEL_CONFIG

    redact_file_paths: bool = True
    redact_usernames: bool = True
    detail_level: DetailLevel = "sanitized"
    max_stack_depth: int = Field(default=10, ge=1, le=1000, description="Frames kept")
    max_message_length: int = Field(default=500, ge=10, le=100000, description="Per-line cap")
    remove_line_numbers: bool = False


class ErrorContextConfig(BaseModel):
    """Error context sanitizer configuration."""
    model_config = _MODEL_CONFIG

    redaction_level: RedactionLevel = "partial"
    include_context_hints: bool = False  # Hints are a minor disclosure themselves
    max_context_length: int = Field(default=1000, ge=50, le=1024 * 1024, description="Serialized chars")
    allowed_properties: tuple[str, ...] = ("timestamp", "level", "operation", "component")
    sanitize_nested_objects: bool = True
    preserve_timestamps: bool = True
    preserve_error_codes: bool = True
    include_stack_trace: bool = False
    max_message_length: int = Field(default=500, ge=10, le=100000)


class Settings(BaseSettings):
    """Process-wide defaults, tunable from ``SCRUBKIT_*`` environment variables.

    Example: ``SCRUBKIT_OBJECTS__MAX_DEPTH=5`` lowers the default object depth.
    ``SCRUBKIT_ENV`` selects the deployment preset (development, staging,
    production, test) and ``SCRUBKIT_DEBUG`` enables detailed errors outside
    production.
    """
    model_config = SettingsConfigDict(
        env_prefix="SCRUBKIT_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    objects: ObjectSanitizationConfig = Field(default_factory=ObjectSanitizationConfig)
    stack_trace: StackTraceConfig = Field(default_factory=StackTraceConfig)
    error_context: ErrorContextConfig = Field(default_factory=ErrorContextConfig)
    env: str = "production"
    debug: bool = False


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the cached process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
