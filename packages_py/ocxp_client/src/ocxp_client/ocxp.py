"""
High-level OCXP content API client.

Wraps the request engine with workspace scoping and bearer auth. Every
call raises an OCXPError subclass on failure.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

import httpx

from .config import ClientConfig
from .core.base_client import Client
from .errors import OCXPError, OCXPErrorCode
from .types import AuthToken, SecurityScheme

logger = logging.getLogger("ocxp_client.ocxp")

BEARER = SecurityScheme(type="http", scheme="bearer")


@dataclass
class ListEntry:
    name: str
    type: str
    path: str
    size: Optional[int] = None
    mtime: Optional[str] = None


@dataclass
class ListResult:
    entries: List[ListEntry] = field(default_factory=list)
    cursor: Optional[str] = None
    has_more: bool = False
    total: int = 0


@dataclass
class ReadResult:
    content: str = ""
    size: Optional[int] = None
    mtime: Optional[str] = None
    encoding: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


@dataclass
class WriteResult:
    path: str
    etag: Optional[str] = None


@dataclass
class DeleteResult:
    deleted: bool
    path: str


@dataclass
class ContentTypesResult:
    types: List[Dict[str, Any]] = field(default_factory=list)
    total: int = 0


def extract_data(body: Any) -> Any:
    """Unwrap the OCXP envelope ``{success, data, error, ...}``."""
    if isinstance(body, dict) and body.get("data") is not None:
        return body["data"]
    return body


def _list_entry(entry: Dict[str, Any]) -> ListEntry:
    return ListEntry(
        name=entry.get("name", ""),
        type=entry.get("type", ""),
        path=entry.get("path", ""),
        size=entry.get("size"),
        mtime=entry.get("mtime"),
    )


def _drop_none(values: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


class OCXPClient:
    """
    OCXP content client.

    Example:
        async with OCXPClient("https://api.example.com", workspace="dev", token=get_token) as ocxp:
            listing = await ocxp.list("mission")
    """

    def __init__(
        self,
        endpoint: str,
        workspace: str = "dev",
        token: AuthToken = None,
        httpx_client: Optional[httpx.AsyncClient] = None,
        debug: bool = False,
    ):
        self._workspace = workspace or "dev"
        self._token = token
        self.client = Client(
            ClientConfig(base_url=endpoint.rstrip("/"), throw_on_error=True, debug=debug),
            httpx_client,
        )

    async def __aenter__(self) -> "OCXPClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self.client.close()

    def set_workspace(self, workspace: str) -> None:
        self._workspace = workspace

    def get_workspace(self) -> str:
        return self._workspace

    def set_token(self, token: AuthToken) -> None:
        self._token = token

    def _token_for(self, scheme: SecurityScheme) -> Any:
        if callable(self._token):
            return self._token()
        return self._token

    async def _call(self, method: str, url: str, **options: Any) -> Any:
        logger.debug(f"OCXPClient: {method} {url} workspace={self._workspace}")
        result = await self.client.request(
            method=method,
            url=url,
            headers={"X-Workspace": self._workspace},
            security=[BEARER],
            auth=self._token_for if self._token else None,
            **options,
        )
        return extract_data(result.data)

    async def _call_object(self, method: str, url: str, **options: Any) -> Dict[str, Any]:
        """
        Like _call, for operations whose payload must be a JSON object.

        Raises:
            OCXPError: The payload is not an object (list, text, ...).
        """
        data = await self._call(method, url, **options)
        if not isinstance(data, dict):
            raise OCXPError(
                f"Unexpected response for {method} {url}: expected an object, "
                f"got {type(data).__name__}",
                OCXPErrorCode.UNKNOWN,
                status_code=0,
                details={"body": data},
            )
        return data

    async def get_content_types(self, counts: bool = False) -> ContentTypesResult:
        """Available content types with metadata."""
        data = await self._call_object("GET", "/ocxp/types", query={"counts": counts})
        return ContentTypesResult(types=data.get("types") or [], total=data.get("total") or 0)

    async def list(
        self,
        type: str,
        path: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> ListResult:
        data = await self._call_object(
            "GET",
            "/ocxp/{type}/list",
            path={"type": type},
            query=_drop_none({"path": path, "limit": limit}),
        )
        return ListResult(
            entries=[_list_entry(e) for e in data.get("entries") or []],
            cursor=data.get("cursor"),
            has_more=bool(data.get("has_more")),
            total=data.get("total") or 0,
        )

    async def read(self, type: str, id: str) -> ReadResult:
        data = await self._call_object(
            "GET", "/ocxp/{type}/{id}", path={"type": type, "id": id}
        )
        return ReadResult(
            content=data.get("content") or "",
            size=data.get("size"),
            mtime=data.get("mtime"),
            encoding=data.get("encoding"),
            metadata=data.get("metadata"),
        )

    async def write(
        self,
        type: str,
        id: str,
        content: str,
        encoding: str = "utf-8",
        etag: Optional[str] = None,
        if_not_exists: Optional[bool] = None,
    ) -> WriteResult:
        """
        Write content.

        ``etag`` makes the write conditional; a mismatch raises
        OCXPConflictError.
        """
        body = _drop_none(
            {"content": content, "encoding": encoding, "etag": etag, "ifNotExists": if_not_exists}
        )
        data = await self._call_object(
            "POST", "/ocxp/{type}/{id}", path={"type": type, "id": id}, body=body
        )
        return WriteResult(path=data.get("path") or f"{type}/{id}", etag=data.get("etag"))

    async def delete(
        self,
        type: str,
        id: str,
        recursive: bool = False,
        confirm: bool = False,
    ) -> DeleteResult:
        data = await self._call_object(
            "DELETE",
            "/ocxp/{type}/{id}",
            path={"type": type, "id": id},
            query={"recursive": recursive, "confirm": confirm},
        )
        deleted = data.get("deleted")
        return DeleteResult(
            deleted=True if deleted is None else bool(deleted),
            path=data.get("path") or f"{type}/{id}",
        )

    async def query(
        self,
        type: str,
        filters: Optional[List[Dict[str, Any]]] = None,
        limit: Optional[int] = None,
    ) -> Any:
        return await self._call(
            "POST",
            "/ocxp/{type}/query",
            path={"type": type},
            body={"filters": filters or [], "limit": limit or 100},
        )

    async def search(self, type: str, q: str, limit: Optional[int] = None) -> Any:
        """Full-text search."""
        return await self._call(
            "GET", "/ocxp/{type}/search", path={"type": type}, query=_drop_none({"q": q, "limit": limit})
        )

    async def tree(self, type: str, path: Optional[str] = None, depth: Optional[int] = None) -> Any:
        return await self._call(
            "GET",
            "/ocxp/{type}/tree",
            path={"type": type},
            query=_drop_none({"path": path, "depth": depth}),
        )

    async def stats(self, type: str, path: Optional[str] = None) -> Any:
        return await self._call(
            "GET", "/ocxp/{type}/stats", path={"type": type}, query=_drop_none({"path": path})
        )

    async def kb_query(
        self,
        query: str,
        search_type: Literal["SEMANTIC", "HYBRID"] = "SEMANTIC",
        max_results: Optional[int] = None,
    ) -> Any:
        """Semantic search in the knowledge base."""
        return await self._call(
            "POST",
            "/ocxp/kb/query",
            body={"query": query, "search_type": search_type, "max_results": max_results or 5},
        )


def create_ocxp_client(
    endpoint: str,
    workspace: str = "dev",
    token: AuthToken = None,
    httpx_client: Optional[httpx.AsyncClient] = None,
) -> OCXPClient:
    return OCXPClient(endpoint, workspace=workspace, token=token, httpx_client=httpx_client)
