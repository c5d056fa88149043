"""
Response body readers for the request engine.
"""
import json
import logging
from email.parser import BytesParser
from email.policy import default as default_policy
from typing import Any, Dict, Optional

import httpx

from ..types import ParseAs

logger = logging.getLogger("ocxp_client.response_parser")

JSON_CONTENT_TYPES = ("application/json",)
BLOB_PREFIXES = ("application/", "audio/", "image/", "video/")


def get_parse_as(content_type: Optional[str]) -> Optional[ParseAs]:
    """
    Detect how to read a body from its Content-Type header.

    Returns "stream" when there is no content type at all, and None when the
    content type is present but unrecognised (caller falls back to json).
    """
    if not content_type:
        return "stream"

    clean = content_type.split(";")[0].strip().lower()
    if not clean:
        return None

    if clean.startswith(JSON_CONTENT_TYPES) or clean.endswith("+json"):
        return "json"

    if clean == "multipart/form-data":
        return "form_data"

    if clean.startswith(BLOB_PREFIXES):
        return "blob"

    if clean.startswith("text/"):
        return "text"

    return None


def is_empty_response(response: httpx.Response) -> bool:
    return response.status_code == 204 or response.headers.get("Content-Length") == "0"


def empty_value(parse_as: ParseAs, response: httpx.Response) -> Any:
    """Value for a 204 or zero-length body, shaped to parse_as."""
    if parse_as == "text":
        return ""
    if parse_as in ("blob", "array_buffer"):
        return b""
    if parse_as == "form_data":
        return {}
    if parse_as == "stream":
        return response.aiter_bytes()
    return {}


def parse_form_data(content: bytes, content_type: str) -> Dict[str, Any]:
    """
    Parse a multipart/form-data body into a dict.

    Text parts become str, file parts (with a filename) become bytes.
    Repeated field names collect into a list.
    """
    header = f"Content-Type: {content_type}\r\n\r\n".encode("latin-1")
    message = BytesParser(policy=default_policy).parsebytes(header + content)

    form: Dict[str, Any] = {}
    for part in message.iter_parts():
        name = part.get_param("name", header="content-disposition")
        if not name:
            continue
        payload = part.get_payload(decode=True) or b""
        value: Any = payload if part.get_filename() else payload.decode(
            part.get_content_charset() or "utf-8"
        )
        if name in form:
            existing = form[name]
            form[name] = existing + [value] if isinstance(existing, list) else [existing, value]
        else:
            form[name] = value
    return form


async def read_body(response: httpx.Response, parse_as: ParseAs) -> Any:
    """Read a non-empty body with the reader matching parse_as."""
    if parse_as == "stream":
        return response.aiter_bytes()

    content = await response.aread()

    if parse_as == "text":
        return response.text
    if parse_as in ("blob", "array_buffer"):
        return content
    if parse_as == "form_data":
        return parse_form_data(content, response.headers.get("Content-Type", ""))
    return json.loads(content)


async def read_error_body(response: httpx.Response) -> Any:
    """Read a failed response: parsed JSON if possible, else the raw text."""
    await response.aread()
    text = response.text
    try:
        return json.loads(text)
    except ValueError:
        logger.debug(f"read_error_body: non-JSON error body, status={response.status_code}")
        return text
