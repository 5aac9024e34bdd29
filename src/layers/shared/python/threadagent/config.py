"""ThreadAgent configuration.

Settings are read from ``THREAD_AGENT_*`` environment variables by the worker
entry point only; the core classes receive explicit constructor arguments.
"""

import os
from typing import Mapping

import openai
import structlog
from pydantic import BaseModel, ConfigDict, Field

from threadagent.adapters.chat_source import ChatSourceAdapter
from threadagent.adapters.document_store import DocumentStoreAdapter
from threadagent.adapters.llm import LLMAdapter
from threadagent.clients.notion import NotionClient
from threadagent.clients.slack import SlackClient
from threadagent.execution.retry_policy import get_retry_policy
from threadagent.repositories.workflow_run import WorkflowRunRepository
from threadagent.services.workflow_orchestrator import WorkflowOrchestrator
from threadagent.utils.exceptions import ErrorKind, WorkflowError

logger = structlog.get_logger()

ENV_PREFIX = "THREAD_AGENT_"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"


class ThreadAgentConfig(BaseModel):
    """Credentials, model and retry settings for the integrations."""

    model_config = ConfigDict(frozen=True)

    slack_bot_token: str | None = None
    slack_signing_secret: str | None = None
    openai_api_key: str | None = None
    openai_model: str = DEFAULT_OPENAI_MODEL
    notion_token: str | None = None

    default_timeout: float = Field(default=30.0, gt=0)
    slack_timeout: float = Field(default=15.0, gt=0)
    openai_timeout: float = Field(default=20.0, gt=0)
    max_retries: int = Field(default=3, ge=0)

    table_name: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ThreadAgentConfig":
        """Load configuration from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``.

        Returns:
            ThreadAgentConfig instance.
        """
        env = os.environ if environ is None else environ

        def get(name: str, default: str | None = None) -> str | None:
            value = env.get(f"{ENV_PREFIX}{name}", default)
            return value or default

        return cls(
            slack_bot_token=get("SLACK_BOT_TOKEN"),
            slack_signing_secret=get("SLACK_SIGNING_SECRET"),
            openai_api_key=get("OPENAI_API_KEY"),
            openai_model=get("OPENAI_MODEL", DEFAULT_OPENAI_MODEL),
            notion_token=get("NOTION_TOKEN"),
            default_timeout=get("DEFAULT_TIMEOUT", "30"),
            slack_timeout=get("SLACK_TIMEOUT", "15"),
            openai_timeout=get("OPENAI_TIMEOUT", "20"),
            max_retries=get("MAX_RETRIES", "3"),
            table_name=env.get("TABLE_NAME"),
        )

    @property
    def slack_configured(self) -> bool:
        return bool(self.slack_bot_token and self.slack_signing_secret)

    @property
    def openai_configured(self) -> bool:
        return bool(self.openai_api_key)

    @property
    def notion_configured(self) -> bool:
        return bool(self.notion_token)

    @property
    def fully_configured(self) -> bool:
        return self.slack_configured and self.openai_configured and self.notion_configured

    def missing_settings(self) -> list[str]:
        """Names of the environment variables required to run workflows."""
        required = {
            "SLACK_BOT_TOKEN": self.slack_bot_token,
            "OPENAI_API_KEY": self.openai_api_key,
            "NOTION_TOKEN": self.notion_token,
        }
        return [f"{ENV_PREFIX}{name}" for name, value in required.items() if not value]


def build_orchestrator(
    config: ThreadAgentConfig,
    run_repo: WorkflowRunRepository | None = None,
) -> WorkflowOrchestrator:
    """Wire clients, adapters and repository from configuration.

    Args:
        config: Loaded configuration.
        run_repo: Optional repository override.

    Returns:
        WorkflowOrchestrator ready to execute runs.

    Raises:
        WorkflowError: (kind ``configuration``) if a required credential is missing.
    """
    missing = config.missing_settings()
    if missing:
        logger.error("ThreadAgent is not configured", missing=missing)
        raise WorkflowError(
            f"Missing configuration: {', '.join(missing)}",
            kind=ErrorKind.CONFIGURATION,
            context={"missing": missing},
        )

    slack = SlackClient(config.slack_bot_token, timeout=config.slack_timeout)
    notion = NotionClient(config.notion_token, timeout=config.default_timeout)
    llm_client = openai.AsyncOpenAI(
        api_key=config.openai_api_key,
        timeout=config.openai_timeout,
        max_retries=0,
    )

    return WorkflowOrchestrator(
        chat_source=ChatSourceAdapter(
            slack, policy=get_retry_policy("chat_source", max_attempts=config.max_retries)
        ),
        llm=LLMAdapter(
            llm_client,
            model=config.openai_model,
            policy=get_retry_policy("llm", max_attempts=config.max_retries),
        ),
        document_store=DocumentStoreAdapter(
            notion, policy=get_retry_policy("document_store", max_attempts=config.max_retries)
        ),
        run_repo=run_repo or WorkflowRunRepository(config.table_name),
    )
