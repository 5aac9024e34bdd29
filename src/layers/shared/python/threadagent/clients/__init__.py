"""HTTP clients for the chat-source and document-store APIs."""

from threadagent.clients.notion import NotionAPIError, NotionClient, Select
from threadagent.clients.slack import SlackAPIError, SlackClient

__all__ = [
    "NotionAPIError",
    "NotionClient",
    "Select",
    "SlackAPIError",
    "SlackClient",
]
