"""Document-store adapter: publishes a page to a Notion database."""

from functools import partial
from typing import Any

from threadagent.adapters.base import BaseAdapter
from threadagent.clients.notion import MAX_BLOCKS_PER_REQUEST, NotionClient, page_title
from threadagent.execution.result import Result
from threadagent.models.thread import PublishedResource
from threadagent.utils.exceptions import ClassifiedError, ErrorKind, ServiceScope


class DocumentStoreAdapter(BaseAdapter):
    """Creates database pages from plain properties and content blocks."""

    service = ServiceScope.DOCUMENT_STORE
    policy_preset = "document_store"

    def __init__(self, client: NotionClient, **kwargs: Any):
        super().__init__(**kwargs)
        self.client = client

    async def publish(
        self,
        destination_id: str | None,
        properties: dict[str, Any],
        content_blocks: list[str | dict[str, Any]] | None = None,
    ) -> Result[PublishedResource]:
        """Create a page.

        Args:
            destination_id: Target database ID.
            properties: Plain page properties.
            content_blocks: Page content items.

        Returns:
            Result with the created page reference.
        """
        if not destination_id or not destination_id.strip():
            return self._invalid("Missing destination_id")

        return await self._guard(
            partial(self._publish, destination_id, properties, content_blocks or []),
            "publish",
        )

    async def _publish(
        self,
        destination_id: str,
        properties: dict[str, Any],
        content_blocks: list[str | dict[str, Any]],
    ) -> PublishedResource:
        first_batch = content_blocks[:MAX_BLOCKS_PER_REQUEST]
        remaining = content_blocks[MAX_BLOCKS_PER_REQUEST:]

        page = await self.executor.execute(
            partial(self.client.create_page, destination_id, properties, first_batch),
            "document_store.publish",
        )

        if not isinstance(page, dict) or not page.get("id"):
            raise self._error(
                "Invalid response from document store: missing page id",
                ErrorKind.VALIDATION,
                destination_id=destination_id,
            )

        # The page exists from here on; each batch is retried against it alone.
        for start in range(0, len(remaining), MAX_BLOCKS_PER_REQUEST):
            batch = remaining[start : start + MAX_BLOCKS_PER_REQUEST]
            try:
                await self.executor.execute(
                    partial(self.client.append_block_children, page["id"], batch),
                    "document_store.append_blocks",
                )
            except ClassifiedError:
                self.logger.error(
                    "Page created with incomplete content",
                    destination_id=destination_id,
                    resource_id=page["id"],
                    blocks_written=MAX_BLOCKS_PER_REQUEST + start,
                    blocks_total=len(content_blocks),
                )
                raise

        resource = PublishedResource(
            resource_id=page["id"],
            url=page.get("url"),
            created_time=page.get("created_time"),
            title=page_title(page),
        )
        self.logger.info(
            "Page published",
            destination_id=destination_id,
            resource_id=resource.resource_id,
            blocks=len(content_blocks),
        )
        return resource
