"""Builds document-store page properties and content for a processed thread."""

import re
from datetime import datetime
from typing import Any

from threadagent.clients.notion import Select
from threadagent.models.base import utc_now
from threadagent.models.thread import ThreadData, TransformOutput
from threadagent.models.workflow_run import WorkflowRun

MAX_TITLE_LENGTH = 100

Block = str | dict[str, Any]


def _truncate(text: str, length: int) -> str:
    if len(text) <= length:
        return text
    return text[: length - 3].rstrip() + "..."


def process_ai_content(content: str) -> list[Block]:
    """Split LLM output into page blocks.

    Paragraphs are separated by blank lines. A paragraph starting with a
    bullet marker becomes bulleted items, one starting with ``1.`` becomes
    numbered items, and one starting with ``#`` becomes a heading from its
    first line followed by a paragraph for any remaining lines. Anything
    else stays a plain paragraph.
    """
    blocks: list[Block] = []

    for paragraph in re.split(r"\n\s*\n", content or ""):
        text = paragraph.strip()
        if not text:
            continue

        if text.startswith(("•", "-", "*")):
            for line in text.splitlines():
                item = re.sub(r"^[\s•\-*]+", "", line).strip()
                if item:
                    blocks.append({"type": "bulleted_list_item", "content": item})
        elif re.match(r"^\d+\.", text):
            for line in text.splitlines():
                item = re.sub(r"^\s*\d+\.\s*", "", line).strip()
                if item:
                    blocks.append({"type": "numbered_list_item", "content": item})
        elif text.startswith("#"):
            heading, _, body = text.partition("\n")
            level = len(re.match(r"^#+", heading).group(0))
            block_type = {1: "heading_1", 2: "heading_2"}.get(level, "heading_3")
            blocks.append({"type": block_type, "content": re.sub(r"^#+\s*", "", heading).strip()})
            if body.strip():
                blocks.append(body.strip())
        else:
            blocks.append(text)

    return blocks


class PageBuilder:
    """Assembles the page written for one workflow run.

    Example:
        builder = PageBuilder(thread, run, transform)
        properties = builder.build_properties()
        blocks = builder.build_content()
    """

    def __init__(
        self,
        thread: ThreadData,
        run: WorkflowRun,
        transform: TransformOutput,
        now: datetime | None = None,
    ):
        self.thread = thread
        self.run = run
        self.transform = transform
        self.now = now or utc_now()

    def build_title(self) -> str:
        """Title from the parent message, or ``<workflow> - <timestamp>``."""
        text = " ".join((self.thread.parent_message.text or "").split())
        if text:
            return _truncate(text, MAX_TITLE_LENGTH)

        workflow_name = self.run.workflow_name or "Thread Analysis"
        return f"{workflow_name} - {self.now.strftime('%Y-%m-%d %H:%M')}"

    def build_properties(self) -> dict[str, Any]:
        """Build plain page properties (mapped to Notion types by the client)."""
        properties: dict[str, Any] = {"Name": self.build_title()}

        if self.thread.channel_id:
            properties["Channel"] = self.thread.channel_id
        if self.thread.thread_ts:
            properties["Thread TS"] = self.thread.thread_ts

        participants = self.thread.participants
        if participants:
            properties["Participants"] = participants

        properties["Reply Count"] = len(self.thread.replies)
        properties["Workflow ID"] = self.run.id
        properties["Template"] = self.run.template.name if self.run.template else "Unknown"
        properties["Status"] = Select("Completed")
        properties["AI Model"] = self.transform.model
        properties["Processed At"] = self.now

        return properties

    def build_content(self) -> list[Block]:
        """Build the page body."""
        content: list[Block] = [{"type": "heading_1", "content": "Slack Thread Analysis"}]
        content.extend(self._thread_overview())

        if self.transform.content:
            content.append({"type": "heading_2", "content": "AI Analysis"})
            content.extend(process_ai_content(self.transform.content))

        content.extend(self._metadata())
        return content

    def _thread_overview(self) -> list[Block]:
        parent = self.thread.parent_message
        blocks: list[Block] = [
            {"type": "heading_2", "content": "Thread Overview"},
            {"type": "heading_3", "content": "Original Message"},
            parent.text or "No text content",
        ]
        if parent.user:
            blocks.append(f"**User:** {parent.user}")

        replies = self.thread.replies
        if replies:
            blocks.append({"type": "heading_3", "content": f"Thread Replies ({len(replies)})"})
            for index, reply in enumerate(replies, start=1):
                blocks.append({"type": "heading_3", "content": f"Reply {index}"})
                blocks.append(reply.text or "No text content")
                if reply.user:
                    blocks.append(f"**User:** {reply.user}")
                if index < len(replies):
                    blocks.append("---")

        return blocks

    def _metadata(self) -> list[Block]:
        return [
            {"type": "heading_2", "content": "Processing Metadata"},
            f"**Processed:** {self.now.strftime('%Y-%m-%d %H:%M:%S %Z')}",
            f"**Channel ID:** {self.thread.channel_id or ''}",
            f"**Thread TS:** {self.thread.thread_ts or ''}",
            f"**Total Messages:** {self.thread.message_count}",
            f"**AI Model:** {self.transform.model}",
        ]
