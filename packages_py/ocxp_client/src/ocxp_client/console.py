"""
Rich debug output for requests and responses.

Only used when a client is configured with ``debug=True``.
"""
import json
from typing import Any, Dict, Optional

import httpx
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax

console = Console(stderr=True)

SENSITIVE_HEADERS = ("authorization", "x-api-key", "cookie", "set-cookie")


def mask_sensitive(value: Optional[str], show_chars: int = 15) -> str:
    """Mask a value, keeping the first show_chars characters visible."""
    if not value:
        return "<none>"
    if len(value) <= show_chars:
        return "*" * len(value)
    return value[:show_chars] + "*" * (len(value) - show_chars)


def mask_headers(headers: httpx.Headers) -> Dict[str, str]:
    masked = {}
    for key, value in headers.multi_items():
        if key.lower() in SENSITIVE_HEADERS:
            value = mask_sensitive(value)
        masked[key] = value
    return masked


def _format_body(body: Any) -> str:
    """Format body for pretty printing."""
    if body is None:
        return ""
    if isinstance(body, (dict, list)):
        return json.dumps(body, indent=2, ensure_ascii=False)
    if isinstance(body, bytes):
        try:
            return body.decode("utf-8")
        except UnicodeDecodeError:
            return f"<binary data: {len(body)} bytes>"
    return str(body)


def print_request(request: httpx.Request, body: Any = None) -> None:
    console.print(
        Panel(f"[bold cyan]{request.method}[/bold cyan] {request.url}", title="[bold blue]Request[/bold blue]")
    )
    console.print("[bold]Headers:[/bold]", mask_headers(request.headers))
    if body:
        console.print(
            Panel(Syntax(_format_body(body), "json", theme="monokai"), title="[bold]Request Body[/bold]")
        )


def print_response(response: httpx.Response, request: httpx.Request, data: Any = None) -> None:
    status_color = "green" if response.is_success else "red"
    console.print(
        Panel(
            f"[bold {status_color}]{response.status_code}[/bold {status_color}] {response.reason_phrase or ''}",
            title=f"[bold blue]Response[/bold blue] ({request.url})",
        )
    )
    console.print("[bold]Headers:[/bold]", mask_headers(response.headers))
    if data and isinstance(data, (dict, list, str)):
        console.print(
            Panel(Syntax(_format_body(data), "json", theme="monokai"), title="[bold]Response Body[/bold]")
        )
