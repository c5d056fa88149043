"""
URL building: path template expansion and query string serialization.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional, Union

from ..types import ParamStyle
from .path_serializer import (
    encode_component,
    serialize_array_param,
    serialize_object_param,
    serialize_primitive_param,
)

logger = logging.getLogger("ocxp_client.url_builder")

PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")

QuerySerializer = Callable[[Mapping[str, Any]], str]


@dataclass
class SerializationPolicy:
    """Style and explode flag for one value shape (array or object)."""

    style: ParamStyle = "form"
    explode: bool = True


@dataclass
class QuerySerializerOptions:
    """Query serialization policy.

    A field named in ``parameters`` uses that entry wholesale; every other
    field uses this record.
    """

    allow_reserved: bool = False
    array: SerializationPolicy = field(
        default_factory=lambda: SerializationPolicy(style="form", explode=True)
    )
    object: SerializationPolicy = field(
        default_factory=lambda: SerializationPolicy(style="deepObject", explode=True)
    )
    parameters: Dict[str, "QuerySerializerOptions"] = field(default_factory=dict)

    def policy_for(self, name: str) -> "QuerySerializerOptions":
        return self.parameters.get(name, self)


def default_path_serializer(url: str, path: Mapping[str, Any]) -> str:
    """
    Expand ``{param}`` tokens in a URL template.

    ``{name*}`` explodes, ``{.name}`` is label style, ``{;name}`` is matrix
    style, anything else is simple style. Tokens whose value is missing are
    removed.
    """
    for match in PATH_PARAM_RE.findall(url):
        explode = False
        name = match[1:-1]
        style: ParamStyle = "simple"

        if name.endswith("*"):
            explode = True
            name = name[:-1]

        if name.startswith("."):
            name = name[1:]
            style = "label"
        elif name.startswith(";"):
            name = name[1:]
            style = "matrix"

        value = path.get(name)

        if value is None:
            url = url.replace(match, "", 1)
            continue

        if isinstance(value, (list, tuple)):
            replacement = serialize_array_param(name, value, style, explode)
        elif isinstance(value, (Mapping, datetime)):
            replacement = serialize_object_param(
                name, value, style, explode, value_only=True
            )
        elif style == "matrix":
            replacement = f";{serialize_primitive_param(name, value)}"
        elif style == "label":
            replacement = encode_component(f".{value}")
        else:
            replacement = encode_component(value)

        url = url.replace(match, replacement, 1)

    return url


def create_query_serializer(
    options: Optional[QuerySerializerOptions] = None,
) -> QuerySerializer:
    """Create a query serializer for the given policy."""
    opts = options or QuerySerializerOptions()

    def query_serializer(query_params: Mapping[str, Any]) -> str:
        search = []
        if not query_params:
            return ""

        for name, value in query_params.items():
            if value is None:
                continue

            policy = opts.policy_for(name)

            if isinstance(value, (list, tuple)):
                serialized = serialize_array_param(
                    name,
                    value,
                    policy.array.style,
                    policy.array.explode,
                    policy.allow_reserved,
                )
            elif isinstance(value, (Mapping, datetime)):
                serialized = serialize_object_param(
                    name,
                    value,
                    policy.object.style,
                    policy.object.explode,
                    policy.allow_reserved,
                )
            else:
                serialized = serialize_primitive_param(name, value, policy.allow_reserved)

            if serialized:
                search.append(serialized)

        return "&".join(search)

    return query_serializer


default_query_serializer = create_query_serializer(QuerySerializerOptions())


def get_url(
    url: str,
    base_url: Optional[str] = None,
    path: Optional[Mapping[str, Any]] = None,
    query: Optional[Mapping[str, Any]] = None,
    query_serializer: Optional[QuerySerializer] = None,
) -> str:
    """Join base URL and template, expand path params, append the query string."""
    path_url = url if url.startswith("/") else f"/{url}"
    result = (base_url or "").rstrip("/") + path_url

    if path is not None:
        result = default_path_serializer(result, path)

    serializer = query_serializer or default_query_serializer
    search = serializer(query) if query else ""
    if search.startswith("?"):
        search = search[1:]

    if search:
        result = f"{result}?{search}"

    logger.debug(f"get_url: template={url}, built url={result}")
    return result


def resolve_query_serializer(
    query_serializer: Union[QuerySerializer, QuerySerializerOptions, None],
) -> QuerySerializer:
    """Accept either a serializer function or a policy record."""
    if callable(query_serializer):
        return query_serializer
    return create_query_serializer(query_serializer)


def build_url(options: Any) -> str:
    """Build the final URL from request options."""
    return get_url(
        options.url or "",
        base_url=options.base_url,
        path=options.path,
        query=options.query,
        query_serializer=resolve_query_serializer(options.query_serializer),
    )
