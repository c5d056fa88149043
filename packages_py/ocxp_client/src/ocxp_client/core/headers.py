"""
Header merging for ocxp_client.
"""
import json
from typing import Any, List, Mapping, Tuple, Union

import httpx

HeadersInput = Union[httpx.Headers, Mapping[str, Any], None]


def _header_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _without(entries: List[Tuple[str, str]], key: str) -> List[Tuple[str, str]]:
    lowered = key.lower()
    return [(k, v) for k, v in entries if k.lower() != lowered]


def merge_headers(*sources: HeadersInput) -> httpx.Headers:
    """
    Merge header sources left to right into one httpx.Headers.

    - None value: delete the key from the accumulated result
    - list/tuple value: append each element as a separate header line
    - any other value: replace the key (non-strings are JSON-encoded)

    An httpx.Headers source replaces each of its keys with all of its values.
    """
    entries: List[Tuple[str, str]] = []

    for source in sources:
        if not source:
            continue

        if isinstance(source, httpx.Headers):
            for key in source.keys():
                entries = _without(entries, key)
                entries.extend((key, v) for v in source.get_list(key))
            continue

        for key, value in source.items():
            if value is None:
                entries = _without(entries, key)
            elif isinstance(value, (list, tuple)):
                entries.extend((key, _header_value(v)) for v in value)
            else:
                entries = _without(entries, key)
                entries.append((key, _header_value(value)))

    return httpx.Headers(entries)


def append_header(headers: httpx.Headers, key: str, value: str) -> httpx.Headers:
    """Return a copy of headers with one more line for key."""
    return httpx.Headers([*headers.multi_items(), (key, value)])


def delete_header(headers: httpx.Headers, key: str) -> None:
    """Remove key if present."""
    if key in headers:
        del headers[key]
