"""Integration adapters with retry and error classification."""

from threadagent.adapters.base import BaseAdapter
from threadagent.adapters.chat_source import ChatSourceAdapter
from threadagent.adapters.document_store import DocumentStoreAdapter
from threadagent.adapters.llm import LLMAdapter

__all__ = [
    "BaseAdapter",
    "ChatSourceAdapter",
    "DocumentStoreAdapter",
    "LLMAdapter",
]
