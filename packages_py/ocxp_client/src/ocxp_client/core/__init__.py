"""
Core modules for ocxp_client.

The request engine (``base_client``) is exported from the package root.
"""
from .auth import get_auth_token, set_auth_params
from .headers import append_header, delete_header, merge_headers
from .interceptors import InterceptorHandle, InterceptorRegistry, Interceptors, create_interceptors
from .path_serializer import (
    serialize_array_param,
    serialize_object_param,
    serialize_primitive_param,
)
from .url_builder import (
    QuerySerializerOptions,
    SerializationPolicy,
    build_url,
    create_query_serializer,
    default_path_serializer,
    default_query_serializer,
    get_url,
)

__all__ = [
    "get_auth_token",
    "set_auth_params",
    "append_header",
    "delete_header",
    "merge_headers",
    "InterceptorHandle",
    "InterceptorRegistry",
    "Interceptors",
    "create_interceptors",
    "serialize_array_param",
    "serialize_object_param",
    "serialize_primitive_param",
    "QuerySerializerOptions",
    "SerializationPolicy",
    "build_url",
    "create_query_serializer",
    "default_path_serializer",
    "default_query_serializer",
    "get_url",
]
