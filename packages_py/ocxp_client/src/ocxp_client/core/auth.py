"""
Auth injection for declared security schemes.
"""
import base64
import inspect
import logging
from typing import Any, Optional, Sequence

from ..types import AuthToken, SecurityScheme
from .headers import append_header

logger = logging.getLogger("ocxp_client.auth")


def _mask_value(val: Optional[str]) -> str:
    """Mask sensitive value for logging, showing first 10 chars."""
    if not val:
        return "<empty>"
    if len(val) <= 10:
        return "*" * len(val)
    return val[:10] + "*" * (len(val) - 10)


async def get_auth_token(scheme: SecurityScheme, auth: AuthToken) -> Optional[str]:
    """
    Resolve and format the credential for one scheme.

    Args:
        scheme: Declared security scheme.
        auth: Token string, or a sync/async callable receiving the scheme.

    Returns:
        "Bearer <token>", "Basic <base64(token)>", the raw token, or None
        when no token is available.
    """
    token: Any = auth(scheme) if callable(auth) else auth
    if inspect.isawaitable(token):
        token = await token

    if not token:
        return None

    if scheme.scheme == "bearer":
        return f"Bearer {token}"

    if scheme.scheme == "basic":
        encoded = base64.b64encode(str(token).encode("utf-8")).decode("utf-8")
        return f"Basic {encoded}"

    return str(token)


def _check_for_existence(options: Any, name: Optional[str]) -> bool:
    if not name:
        return False
    if name in options.headers:
        return True
    if options.query and options.query.get(name):
        return True
    cookie = options.headers.get("Cookie")
    return bool(cookie and f"{name}=" in cookie)


async def set_auth_params(security: Sequence[SecurityScheme], options: Any) -> None:
    """
    Attach credentials for each declared scheme to the request options.

    A scheme whose header, query param or cookie is already present is
    skipped; existing credentials are never overwritten.
    """
    for scheme in security:
        name = scheme.name or "Authorization"

        if _check_for_existence(options, name):
            logger.debug(f"set_auth_params: {name} already present, skipping")
            continue

        token = await get_auth_token(scheme, options.auth)
        if not token:
            continue

        if scheme.location == "query":
            options.query = {**(options.query or {}), name: token}
        elif scheme.location == "cookie":
            options.headers = append_header(options.headers, "Cookie", f"{name}={token}")
        else:
            options.headers[name] = token

        logger.debug(
            f"set_auth_params: scheme={scheme.scheme}, location={scheme.location or 'header'}, "
            f"name={name}, value={_mask_value(token)}"
        )
