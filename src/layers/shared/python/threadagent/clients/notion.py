"""Notion API client and page payload builder.

The payload builder turns plain Python values into Notion property and block
objects:

    map_properties({"Name": "Weekly sync", "Reply Count": 4, "Tags": ["eng"]})
    build_children_blocks(["A paragraph", {"type": "heading_2", "content": "Notes"}])

The client never retries on its own; failures surface as ``NotionAPIError``
with the HTTP status, the Notion error ``code`` and any ``Retry-After`` hint.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any

import httpx
import structlog

logger = structlog.get_logger()

NOTION_API_URL = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"
DEFAULT_TIMEOUT = 30.0

# API limits
MAX_TEXT_LENGTH = 2000
MAX_BLOCKS_PER_REQUEST = 100

TEXT_BLOCK_TYPES = {
    "paragraph": "paragraph",
    "heading_1": "heading_1",
    "heading_2": "heading_2",
    "heading_3": "heading_3",
    "bulleted_list_item": "bulleted_list_item",
    "bulleted_list": "bulleted_list_item",
    "numbered_list_item": "numbered_list_item",
    "numbered_list": "numbered_list_item",
    "quote": "quote",
}


@dataclass(frozen=True)
class Select:
    """A value for a Notion ``select`` property."""

    name: str


class NotionAPIError(Exception):
    """Error returned by the Notion API."""

    provider = "notion"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status_code: int | None = None,
        retry_after: float | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.retry_after = retry_after


# Payload building


def rich_text(content: str) -> list[dict[str, Any]]:
    """Build a rich text array, split to respect the per-item length limit."""
    content = content or ""
    chunks = [content[i : i + MAX_TEXT_LENGTH] for i in range(0, len(content), MAX_TEXT_LENGTH)]
    return [{"type": "text", "text": {"content": chunk}} for chunk in chunks or [""]]


def map_property(value: Any, as_title: bool = False) -> dict[str, Any]:
    """Map a single Python value to a Notion property value."""
    if as_title:
        return {"title": rich_text(str(value))}
    if isinstance(value, dict):
        # Raw Notion format
        return value
    if isinstance(value, bool):
        return {"checkbox": value}
    if isinstance(value, (Select, Enum)):
        name = value.name if isinstance(value, Select) else str(value.value)
        return {"select": {"name": name}}
    if isinstance(value, (datetime, date)):
        return {"date": {"start": value.isoformat()}}
    if isinstance(value, (int, float)):
        return {"number": value}
    if isinstance(value, (list, tuple, set)):
        return {"multi_select": [{"name": str(v)} for v in value]}
    return {"rich_text": rich_text(str(value))}


def map_properties(properties: dict[str, Any], title_property: str = "Name") -> dict[str, Any]:
    """Map plain page properties to Notion property objects.

    Args:
        properties: Property name to Python value.
        title_property: Name of the database's title column.

    Returns:
        Notion-formatted properties.
    """
    return {
        str(key): map_property(value, as_title=(key == title_property))
        for key, value in properties.items()
        if value is not None
    }


def build_block(item: str | dict[str, Any]) -> dict[str, Any]:
    """Build one block from a string (paragraph) or a ``{type, content}`` dict."""
    if not isinstance(item, dict):
        text = str(item)
        if text.strip() == "---":
            return {"object": "block", "type": "divider", "divider": {}}
        return _text_block("paragraph", text)

    block_type = str(item.get("type") or "paragraph")
    content = str(item.get("content") or "")

    if block_type == "divider":
        return {"object": "block", "type": "divider", "divider": {}}
    if block_type == "to_do":
        return {
            "object": "block",
            "type": "to_do",
            "to_do": {"rich_text": rich_text(content), "checked": bool(item.get("checked", False))},
        }
    return _text_block(TEXT_BLOCK_TYPES.get(block_type, "paragraph"), content)


def _text_block(block_type: str, content: str) -> dict[str, Any]:
    return {
        "object": "block",
        "type": block_type,
        block_type: {"rich_text": rich_text(content)},
    }


def build_children_blocks(content: list[str | dict[str, Any]] | None) -> list[dict[str, Any]]:
    """Build Notion blocks from a list of content items."""
    if not content:
        return []
    return [build_block(item) for item in content]


def build_page_payload(
    database_id: str,
    properties: dict[str, Any],
    content: list[str | dict[str, Any]] | None,
    title_property: str = "Name",
) -> dict[str, Any]:
    """Build the complete payload for page creation."""
    return {
        "parent": {"database_id": database_id},
        "properties": map_properties(properties, title_property),
        "children": build_children_blocks(content),
    }


def page_title(page: dict[str, Any]) -> str | None:
    """Extract the plain-text title of a page response."""
    for prop in (page.get("properties") or {}).values():
        if isinstance(prop, dict) and prop.get("type") == "title":
            parts = [
                part.get("plain_text") or (part.get("text") or {}).get("content", "")
                for part in prop.get("title", [])
            ]
            return "".join(parts).strip() or None
    return None


class NotionClient:
    """Async client for the Notion API."""

    def __init__(
        self,
        token: str | None,
        timeout: float = DEFAULT_TIMEOUT,
        base_url: str = NOTION_API_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize Notion client.

        Args:
            token: Integration token.
            timeout: Per-request timeout in seconds.
            base_url: API base URL.
            transport: Optional httpx transport (used by tests).
        """
        self.token = token
        self.timeout = timeout
        self.base_url = base_url
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self.logger = logger.bind(service="notion_client")

    @property
    def is_configured(self) -> bool:
        return bool(self.token)

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client (lazy initialization).

        Raises:
            NotionAPIError: If no token is configured.
        """
        if self._client is None:
            if not self.token:
                raise NotionAPIError("Notion API token not configured", code="unauthorized")
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Notion-Version": NOTION_VERSION,
                    "Content-Type": "application/json",
                },
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def create_page(
        self,
        destination_id: str,
        properties: dict[str, Any],
        content_blocks: list[str | dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        """Create a page in a database with one request.

        Content past ``MAX_BLOCKS_PER_REQUEST`` items must be added with
        ``append_block_children`` once the page exists.

        Args:
            destination_id: Target database ID.
            properties: Plain page properties (see ``map_properties``).
            content_blocks: Content items (see ``build_children_blocks``).

        Returns:
            The created page object.

        Raises:
            NotionAPIError: If the request fails or carries too many blocks.
        """
        payload = build_page_payload(destination_id, properties, content_blocks)
        _check_batch_size(payload["children"])
        return await self._request("POST", "/pages", json=payload)

    async def append_block_children(
        self,
        block_id: str,
        content_blocks: list[str | dict[str, Any]],
    ) -> dict[str, Any]:
        """Append content items to a page or block with one request."""
        children = build_children_blocks(content_blocks)
        _check_batch_size(children)
        return await self._request("PATCH", f"/blocks/{block_id}/children", json={"children": children})

    async def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
        response = await self.client.request(method, path, json=json)

        if response.is_success:
            return response.json()

        try:
            body = response.json()
        except ValueError:
            body = {}

        retry_after = response.headers.get("retry-after")
        self.logger.warning(
            "Notion API call failed",
            method=method,
            path=path,
            status_code=response.status_code,
            code=body.get("code"),
        )
        raise NotionAPIError(
            body.get("message") or f"Notion API returned HTTP {response.status_code}",
            code=body.get("code"),
            status_code=response.status_code,
            retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
        )


def _check_batch_size(children: list[dict[str, Any]]) -> None:
    if len(children) > MAX_BLOCKS_PER_REQUEST:
        raise NotionAPIError(
            f"{len(children)} blocks exceed the limit of {MAX_BLOCKS_PER_REQUEST} per request",
            code="validation_error",
        )
