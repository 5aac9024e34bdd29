"""Value models exchanged between the adapters and the orchestrator."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel as PydanticBaseModel, ConfigDict, Field


class ThreadMessage(PydanticBaseModel):
    """A single chat message in normalized form."""

    model_config = ConfigDict(extra="ignore")

    user: str | None = None
    text: str = ""
    ts: str | None = None
    attachments: list[dict[str, Any]] = Field(default_factory=list)
    files: list[dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def from_slack(cls, message: dict[str, Any]) -> "ThreadMessage":
        """Build from a raw Slack API message object."""
        return cls(
            user=message.get("user") or message.get("bot_id"),
            text=message.get("text") or "",
            ts=message.get("ts"),
            attachments=message.get("attachments") or [],
            files=message.get("files") or [],
        )


class ThreadData(PydanticBaseModel):
    """A captured thread: the parent message plus its replies."""

    model_config = ConfigDict(extra="ignore")

    channel_id: str | None = None
    thread_ts: str | None = None
    parent_message: ThreadMessage
    replies: list[ThreadMessage] = Field(default_factory=list)

    @property
    def message_count(self) -> int:
        """Parent plus replies."""
        return 1 + len(self.replies)

    @property
    def participants(self) -> list[str]:
        """Distinct authors in order of first appearance."""
        seen: list[str] = []
        for message in (self.parent_message, *self.replies):
            if message.user and message.user not in seen:
                seen.append(message.user)
        return seen

    def summary(self) -> dict[str, Any]:
        """Compact description stored in the run output payload."""
        return {
            "channel_id": self.channel_id,
            "thread_ts": self.thread_ts,
            "message_count": self.message_count,
            "reply_count": len(self.replies),
            "participants": self.participants,
        }


class TransformOutput(PydanticBaseModel):
    """Text produced by the LLM step."""

    content: str
    model: str


class PublishedResource(PydanticBaseModel):
    """Reference to the document created by the publish step."""

    resource_id: str
    url: str | None = None
    created_time: datetime | None = None
    title: str | None = None
