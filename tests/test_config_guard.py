"""Tests for the defensive configuration reader and process settings."""

import collections

import pytest
from pydantic import ValidationError as PydanticValidationError

from scrubkit.config import (
    ErrorContextConfig,
    ObjectSanitizationConfig,
    ValidationConfig,
    get_settings,
    read_config,
    reset_settings,
)
from scrubkit.errors import ConfigurationTamperingError
from scrubkit.security.objects import sanitize_object
from scrubkit.security.validators import validate_input


class TestTampering:

    def test_property_getter_raises_before_invocation(self):
        calls = []

        class Hostile:
            @property
            def strict_mode(self):
                calls.append(1)
                return False

        with pytest.raises(ConfigurationTamperingError):
            validate_input("npm", "package-manager", Hostile())
        assert calls == []

    def test_camel_case_getter_raises(self):
        class Hostile:
            @property
            def maxDepth(self):
                return 1

        with pytest.raises(ConfigurationTamperingError):
            sanitize_object({"a": 1}, config=Hostile())

    def test_getattr_hook_raises(self):
        class Hostile:
            def __getattr__(self, name):
                return True

        with pytest.raises(ConfigurationTamperingError):
            read_config(ValidationConfig, Hostile())

    def test_dict_subclass_override_raises(self):
        class Hostile(dict):
            def __getitem__(self, key):
                return "computed"

        with pytest.raises(ConfigurationTamperingError):
            read_config(ValidationConfig, Hostile(strict_mode=False))

    def test_plain_dict_subclasses_allowed(self):
        config, advisories = read_config(ValidationConfig, collections.OrderedDict(strict_mode=False))
        assert config.strict_mode is False
        assert advisories == []


class TestReading:

    def test_none_gives_defaults(self):
        config, advisories = read_config(ValidationConfig)
        assert config == ValidationConfig()
        assert advisories == []

    def test_model_passthrough(self):
        model = ValidationConfig(strict_mode=False)
        config, _ = read_config(ValidationConfig, model)
        assert config is model

    def test_camel_case_keys(self):
        config, _ = read_config(ValidationConfig, {"strictMode": False, "maxLength": 40})
        assert config.strict_mode is False
        assert config.max_length == 40

    def test_plain_object_attributes(self):
        class Options:
            def __init__(self):
                self.strict_mode = False

        config, _ = read_config(ValidationConfig, Options())
        assert config.strict_mode is False

    def test_slots_object(self):
        class Options:
            __slots__ = ("max_depth",)

            def __init__(self):
                self.max_depth = 4

        config, _ = read_config(ObjectSanitizationConfig, Options())
        assert config.max_depth == 4

    def test_unknown_key_advisory(self):
        config, advisories = read_config(ValidationConfig, {"stritc_mode": False})
        assert config.strict_mode is True
        assert advisories[0].startswith("Unknown configuration property: 'stritc_mode'")

    def test_wrong_type_falls_back(self):
        config, advisories = read_config(ValidationConfig, {"strict_mode": "yes"})
        assert config.strict_mode is True
        assert "Invalid value for 'strict_mode'" in advisories[0]

    @pytest.mark.parametrize("value", [-1, float("nan"), float("inf"), True, "5", 2**60, 2.5])
    def test_bad_numbers_fall_back(self, value):
        config, advisories = read_config(ObjectSanitizationConfig, {"max_depth": value})
        assert config.max_depth == 10
        assert len(advisories) == 1

    def test_numbers_clamped(self):
        config, advisories = read_config(ValidationConfig, {"max_length": 999999})
        assert config.max_length == 10240
        assert "clamped" in advisories[0]

    def test_integral_float_accepted(self):
        config, advisories = read_config(ObjectSanitizationConfig, {"max_depth": 4.0})
        assert config.max_depth == 4
        assert advisories == []

    def test_list_for_tuple_field(self):
        config, _ = read_config(ErrorContextConfig, {"allowed_properties": ["operation"]})
        assert config.allowed_properties == ("operation",)

    def test_invalid_literal(self):
        config, advisories = read_config(ErrorContextConfig, {"redaction_level": "everything"})
        assert config.redaction_level == "partial"
        assert advisories

    def test_caller_value_not_mutated(self):
        raw = {"max_length": 999999, "bogus": 1}
        read_config(ValidationConfig, raw)
        assert raw == {"max_length": 999999, "bogus": 1}

    def test_base_supplies_unset_keys(self):
        base = ValidationConfig(strict_mode=False, max_length=20)
        config, _ = read_config(ValidationConfig, {"max_length": 30}, base=base)
        assert config.strict_mode is False
        assert config.max_length == 30


class TestSettings:

    def test_models_are_frozen(self):
        config = ValidationConfig()
        with pytest.raises(PydanticValidationError):
            config.strict_mode = False

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("SCRUBKIT_OBJECTS__MAX_DEPTH", "4")
        reset_settings()
        assert get_settings().objects.max_depth == 4

    def test_settings_feed_defaults(self, monkeypatch):
        monkeypatch.setenv("SCRUBKIT_VALIDATION__STRICT_MODE", "false")
        reset_settings()
        result = validate_input("evil-pm", "package-manager")
        # Lenient mode reports a whitelist miss at medium severity
        assert result.violations[0].severity.value == "medium"

    def test_settings_cached(self):
        assert get_settings() is get_settings()
