"""Defensive reader for caller-supplied configuration.

Callers may pass a config model, a plain mapping (snake_case or camelCase keys),
or any attribute-bearing object. The value is treated as untrusted:

- Unknown keys are ignored with an advisory.
- Values of the wrong type fall back to the default with an advisory.
- Integers must be finite, non-negative and safely representable, and are
  clamped to the field's bounds.
- Computed-on-read accessors (properties, descriptors, ``__getitem__``
  overrides) raise ``ConfigurationTamperingError`` before they are ever invoked.

Nothing on the caller's object is mutated; all fix-ups land on a local dict.
"""

import collections
import inspect
import math
import types
from functools import lru_cache
from typing import Any, Tuple, Type, TypeVar, get_origin

from loguru import logger
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from scrubkit.config.schema import MAX_SAFE_INTEGER
from scrubkit.errors import ConfigurationTamperingError

ModelT = TypeVar("ModelT", bound=BaseModel)

# dict methods a subclass could override to compute values on read
_MAPPING_ACCESSORS = ("__getitem__", "get", "items", "keys", "values", "__iter__")


@lru_cache(maxsize=64)
def _adapter(annotation: Any) -> TypeAdapter:
    return TypeAdapter(annotation)


def _field_lookup(model_cls: Type[BaseModel]) -> dict[str, str]:
    """Map every accepted spelling (field name and alias) to the field name."""
    lookup: dict[str, str] = {}
    for name, info in model_cls.model_fields.items():
        lookup[name] = name
        if info.alias:
            lookup[info.alias] = name
    return lookup


def _bounds(info) -> Tuple[float | None, float | None]:
    lower = upper = None
    for meta in info.metadata:
        lower = getattr(meta, "ge", lower)
        upper = getattr(meta, "le", upper)
    return lower, upper


def _snapshot_mapping(raw: dict) -> list[tuple[Any, Any]]:
    cls = type(raw)
    if cls not in (dict, collections.OrderedDict, collections.defaultdict):
        for accessor in _MAPPING_ACCESSORS:
            if getattr(cls, accessor, None) is not getattr(dict, accessor):
                raise ConfigurationTamperingError(
                    f"Configuration mapping type {cls.__name__} overrides '{accessor}' - "
                    "potential code injection attempt blocked"
                )
    # dict.items bypasses any subclass hook
    return list(dict.items(raw))


def _snapshot_object(raw: Any, lookup: dict[str, str]) -> list[tuple[Any, Any]]:
    cls = type(raw)
    if getattr(cls, "__getattr__", None) is not None or cls.__getattribute__ is not object.__getattribute__:
        raise ConfigurationTamperingError(
            f"Configuration object type {cls.__name__} customises attribute access - "
            "potential code injection attempt blocked"
        )

    try:
        instance_attrs = dict(object.__getattribute__(raw, "__dict__"))
    except AttributeError:
        instance_attrs = {}

    missing = object()
    items: list[tuple[Any, Any]] = []
    for key in lookup:
        class_attr = inspect.getattr_static(cls, key, missing)
        if isinstance(class_attr, types.MemberDescriptorType):
            # __slots__ storage is a plain read
            try:
                items.append((key, class_attr.__get__(raw, cls)))
            except AttributeError:
                pass
        elif class_attr is not missing and hasattr(type(class_attr), "__get__"):
            raise ConfigurationTamperingError(
                f"Configuration property '{key}' has a getter - potential code injection attempt blocked"
            )
        elif key in instance_attrs:
            items.append((key, instance_attrs[key]))
        elif class_attr is not missing:
            items.append((key, class_attr))

    for key in instance_attrs:
        if key not in lookup:
            items.append((key, instance_attrs[key]))
    return items


def _coerce_number(value: Any, annotation: Any, lower, upper) -> Tuple[bool, Any, str]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False, None, f"expected a number, got {type(value).__name__}"
    if isinstance(value, float):
        if not math.isfinite(value):
            return False, None, "must be finite"
        if annotation is int:
            if not value.is_integer():
                return False, None, "must be an integer"
            value = int(value)
    if value < 0:
        return False, None, "must be non-negative"
    if value > MAX_SAFE_INTEGER:
        return False, None, "exceeds the safely representable integer range"
    note = ""
    if upper is not None and value > upper:
        note = f"clamped from {value} to {upper}"
        value = type(value)(upper)
    elif lower is not None and value < lower:
        note = f"clamped from {value} to {lower}"
        value = type(value)(lower)
    return True, value, note


def _coerce(value: Any, info) -> Tuple[bool, Any, str]:
    """Coerce one field value. Returns (accepted, value, note)."""
    annotation = info.annotation
    if annotation in (int, float):
        lower, upper = _bounds(info)
        return _coerce_number(value, annotation, lower, upper)

    if get_origin(annotation) is tuple and isinstance(value, list):
        value = tuple(value)
    try:
        return True, _adapter(annotation).validate_python(value, strict=True), ""
    except PydanticValidationError as e:
        return False, None, e.errors()[0].get("msg", "invalid value")


def read_config(
    model_cls: Type[ModelT],
    raw: Any = None,
    base: ModelT | None = None,
) -> Tuple[ModelT, list[str]]:
    """Build a config model from an untrusted value.

    Args:
        model_cls: The pydantic model to build.
        raw: Caller-supplied configuration (model, mapping, object or None).
        base: Values used for keys the caller did not set. Defaults to the
            model's own defaults.

    Returns:
        Tuple of (config, advisories). Advisories describe every ignored or
        replaced value.

    Raises:
        ConfigurationTamperingError: A known key is backed by a computed accessor.
    """
    if isinstance(raw, model_cls):
        return raw, []

    defaults = base if base is not None else model_cls()
    if raw is None:
        return defaults, []

    lookup = _field_lookup(model_cls)
    if isinstance(raw, BaseModel):
        items = list(raw.model_dump().items())
    elif isinstance(raw, dict):
        items = _snapshot_mapping(raw)
    else:
        items = _snapshot_object(raw, lookup)

    values = defaults.model_dump()
    advisories: list[str] = []
    for key, value in items:
        name = lookup.get(key) if isinstance(key, str) else None
        if name is None:
            shown = repr(key)[:60]
            advisories.append(
                f"Unknown configuration property: {shown}. Known properties: "
                + ", ".join(model_cls.model_fields)
            )
            continue

        accepted, coerced, note = _coerce(value, model_cls.model_fields[name])
        if not accepted:
            advisories.append(f"Invalid value for '{name}' ({note}); using default {values[name]!r}")
            continue
        if note:
            advisories.append(f"Configuration '{name}' {note}")
        values[name] = coerced

    for advisory in advisories:
        logger.warning(f"CONFIG: {advisory}")

    return model_cls.model_validate(values), advisories
