"""
OpenAPI-style parameter serialization for path and query fragments.
"""
from datetime import date, datetime, timezone
from typing import Any, Mapping, Sequence
from urllib.parse import quote

from ..errors import ConfigurationError
from ..types import ParamStyle

# Characters encodeURIComponent leaves alone besides alphanumerics
_UNRESERVED = "-_.!~*'()"

NESTED_VALUE_MESSAGE = (
    "Deeply-nested arrays/objects aren't supported. "
    "Provide your own `query_serializer` to handle these."
)


def to_param_string(value: Any) -> str:
    """Render a scalar the way it appears in a URL."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return to_iso_string(value)
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def to_iso_string(value: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision, e.g. 2024-01-02T03:04:05.000Z"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def encode_component(value: Any) -> str:
    """Percent-encode a value like encodeURIComponent."""
    return quote(to_param_string(value), safe=_UNRESERVED)


def _is_nested(value: Any) -> bool:
    return isinstance(value, (Mapping, list, tuple, set))


def separator_array_explode(style: ParamStyle) -> str:
    if style == "label":
        return "."
    if style == "matrix":
        return ";"
    if style == "simple":
        return ","
    return "&"


def separator_array_no_explode(style: ParamStyle) -> str:
    if style == "pipeDelimited":
        return "|"
    if style == "spaceDelimited":
        return "%20"
    return ","


def separator_object_explode(style: ParamStyle) -> str:
    if style == "label":
        return "."
    if style == "matrix":
        return ";"
    if style == "simple":
        return ","
    return "&"


def serialize_primitive_param(
    name: str,
    value: Any,
    allow_reserved: bool = False,
) -> str:
    """
    Serialize a scalar as ``name=value``.

    Args:
        name: Parameter name.
        value: Scalar value. None serializes to an empty string.
        allow_reserved: Skip percent-encoding of the value.

    Raises:
        ConfigurationError: value is a nested dict/list.
    """
    if value is None:
        return ""
    if _is_nested(value):
        raise ConfigurationError(NESTED_VALUE_MESSAGE, details={"name": name})
    rendered = to_param_string(value) if allow_reserved else encode_component(value)
    return f"{name}={rendered}"


def serialize_array_param(
    name: str,
    value: Sequence[Any],
    style: ParamStyle = "form",
    explode: bool = True,
    allow_reserved: bool = False,
) -> str:
    """Serialize a list according to style and explode."""
    if not explode:
        values = [
            to_param_string(v) if allow_reserved else encode_component(v) for v in value
        ]
        joined = separator_array_no_explode(style).join(values)
        if style == "label":
            return f".{joined}"
        if style == "matrix":
            return f";{name}={joined}"
        if style == "simple":
            return joined
        return f"{name}={joined}"

    separator = separator_array_explode(style)
    parts = []
    for v in value:
        if style in ("label", "simple"):
            parts.append(to_param_string(v) if allow_reserved else encode_component(v))
        else:
            parts.append(serialize_primitive_param(name, v, allow_reserved))
    joined = separator.join(parts)
    if style in ("label", "matrix"):
        return separator + joined
    return joined


def serialize_object_param(
    name: str,
    value: Any,
    style: ParamStyle = "deepObject",
    explode: bool = True,
    allow_reserved: bool = False,
    value_only: bool = False,
) -> str:
    """
    Serialize a dict according to style and explode.

    datetime values are written as ISO-8601 directly; with value_only the
    ``name=`` prefix is left off.
    """
    if isinstance(value, datetime):
        iso = to_iso_string(value)
        return iso if value_only else f"{name}={iso}"

    if style != "deepObject" and not explode:
        values = []
        for key, v in value.items():
            values.append(str(key))
            values.append(to_param_string(v) if allow_reserved else encode_component(v))
        joined = ",".join(values)
        if style == "form":
            return f"{name}={joined}"
        if style == "label":
            return f".{joined}"
        if style == "matrix":
            return f";{name}={joined}"
        return joined

    separator = separator_object_explode(style)
    joined = separator.join(
        serialize_primitive_param(
            f"{name}[{key}]" if style == "deepObject" else str(key),
            v,
            allow_reserved,
        )
        for key, v in value.items()
    )
    if style in ("label", "matrix"):
        return separator + joined
    return joined
