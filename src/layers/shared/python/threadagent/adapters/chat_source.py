"""Chat-source adapter: fetches a Slack thread as ``ThreadData``."""

from functools import partial
from typing import Any

from threadagent.adapters.base import BaseAdapter
from threadagent.clients.slack import SlackClient
from threadagent.execution.result import Result
from threadagent.models.thread import ThreadData, ThreadMessage
from threadagent.utils.exceptions import ErrorKind, ServiceScope


class ChatSourceAdapter(BaseAdapter):
    """Fetches a parent message and its replies.

    Rate-limited responses carry Slack's ``Retry-After`` wait, which the
    ``chat_source`` policy uses instead of the computed backoff.
    """

    service = ServiceScope.CHAT_SOURCE
    policy_preset = "chat_source"

    def __init__(self, client: SlackClient, **kwargs: Any):
        """Initialize the adapter.

        Args:
            client: Slack API client.
            **kwargs: Passed to ``BaseAdapter`` (policy, sleep, rng).
        """
        super().__init__(**kwargs)
        self.client = client

    async def fetch_thread(self, channel_id: str | None, thread_ts: str | None) -> Result[ThreadData]:
        """Fetch a thread.

        Args:
            channel_id: Slack channel ID.
            thread_ts: Timestamp of the parent message.

        Returns:
            Result with the thread, or a classified error.
        """
        if not channel_id or not channel_id.strip():
            return self._invalid("Missing channel_id", thread_ts=thread_ts)
        if not thread_ts or not thread_ts.strip():
            return self._invalid("Missing thread_ts", channel_id=channel_id)

        return await self._guard(partial(self._fetch, channel_id, thread_ts), "fetch_thread")

    async def _fetch(self, channel_id: str, thread_ts: str) -> ThreadData:
        history = await self.executor.execute(
            partial(
                self.client.conversations_history,
                channel=channel_id,
                latest=thread_ts,
                limit=1,
                inclusive=True,
            ),
            "chat_source.fetch_parent",
        )

        messages = history.get("messages") or []
        parent = messages[0] if messages else None
        if parent is None or parent.get("ts") != thread_ts:
            raise self._error(
                "Parent message not found",
                ErrorKind.NOT_FOUND,
                channel_id=channel_id,
                thread_ts=thread_ts,
            )

        replies = await self._fetch_replies(channel_id, thread_ts)
        # conversations.replies lists the parent first
        if replies and replies[0].get("ts") == parent.get("ts"):
            replies = replies[1:]

        thread = ThreadData(
            channel_id=channel_id,
            thread_ts=parent.get("ts"),
            parent_message=ThreadMessage.from_slack(parent),
            replies=[ThreadMessage.from_slack(reply) for reply in replies],
        )

        self.logger.info(
            "Thread fetched",
            channel_id=channel_id,
            thread_ts=thread_ts,
            message_count=thread.message_count,
        )
        return thread

    async def _fetch_replies(self, channel_id: str, thread_ts: str) -> list[dict[str, Any]]:
        replies: list[dict[str, Any]] = []
        cursor = None

        while True:
            page = await self.executor.execute(
                partial(self.client.conversations_replies, channel=channel_id, ts=thread_ts, cursor=cursor),
                "chat_source.fetch_replies",
            )
            replies.extend(page.get("messages") or [])

            cursor = (page.get("response_metadata") or {}).get("next_cursor")
            if not page.get("has_more") or not cursor:
                return replies
