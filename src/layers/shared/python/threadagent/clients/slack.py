"""Slack Web API client.

Thin async wrapper over the two Slack methods the thread capture needs. It
never retries on its own; failures surface as ``SlackAPIError`` carrying the
HTTP status, the Slack ``error`` code and any ``Retry-After`` hint, which is
what the error classifier reads.
"""

from typing import Any

import httpx
import structlog

logger = structlog.get_logger()

SLACK_API_URL = "https://slack.com/api"
DEFAULT_TIMEOUT = 15.0


class SlackAPIError(Exception):
    """Error returned by the Slack Web API."""

    provider = "slack"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status_code: int | None = None,
        retry_after: float | None = None,
        details: dict | None = None,
    ):
        """Initialize SlackAPIError.

        Args:
            message: Error message.
            code: Slack error code (the ``error`` field, e.g. ``channel_not_found``).
            status_code: HTTP status of the response.
            retry_after: Seconds Slack asked us to wait (rate limiting).
            details: Additional error details.
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.retry_after = retry_after
        self.details = details or {}


class SlackClient:
    """Async client for the Slack Web API."""

    def __init__(
        self,
        token: str | None,
        timeout: float = DEFAULT_TIMEOUT,
        base_url: str = SLACK_API_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize Slack client.

        Args:
            token: Bot token (``xoxb-...``).
            timeout: Per-request timeout in seconds.
            base_url: API base URL.
            transport: Optional httpx transport (used by tests).
        """
        self.token = token
        self.timeout = timeout
        self.base_url = base_url
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.token)

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client (lazy initialization).

        Raises:
            SlackAPIError: If no token is configured.
        """
        if self._client is None:
            if not self.token:
                raise SlackAPIError("Slack bot token not configured", code="not_authed")
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Authorization": f"Bearer {self.token}"},
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def conversations_history(
        self,
        channel: str,
        latest: str | None = None,
        limit: int = 1,
        inclusive: bool = True,
    ) -> dict[str, Any]:
        """Call ``conversations.history``.

        Returns:
            The decoded response body (``messages`` holds the results).
        """
        params: dict[str, Any] = {"channel": channel, "limit": limit, "inclusive": inclusive}
        if latest:
            params["latest"] = latest
        return await self._call("conversations.history", params)

    async def conversations_replies(
        self,
        channel: str,
        ts: str,
        cursor: str | None = None,
        limit: int = 200,
    ) -> dict[str, Any]:
        """Call ``conversations.replies`` for one page of a thread.

        The first message of the first page is the parent message itself.

        Returns:
            The decoded response body. ``response_metadata.next_cursor`` is
            set when more pages remain.
        """
        params: dict[str, Any] = {"channel": channel, "ts": ts, "limit": limit}
        if cursor:
            params["cursor"] = cursor
        return await self._call("conversations.replies", params)

    async def _call(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        response = await self.client.get(f"/{method}", params=params)

        if response.status_code == 429:
            raise SlackAPIError(
                f"Slack rate limited {method}",
                code="ratelimited",
                status_code=429,
                retry_after=_parse_retry_after(response.headers.get("retry-after")),
            )

        if response.is_error:
            raise SlackAPIError(
                f"Slack {method} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        data = response.json()
        if not data.get("ok"):
            code = data.get("error") or "unknown_error"
            logger.warning("Slack API call failed", method=method, error=code)
            raise SlackAPIError(
                f"Slack {method} failed: {code}",
                code=code,
                status_code=response.status_code,
                details={"response_metadata": data.get("response_metadata")},
            )

        return data


def _parse_retry_after(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None
