"""LLM adapter: turns a thread into a summary via chat completions."""

from functools import partial
from typing import Any

import pydantic

from threadagent.adapters.base import BaseAdapter
from threadagent.execution.result import Result
from threadagent.models.thread import ThreadData, TransformOutput
from threadagent.models.workflow_run import WorkflowTemplate
from threadagent.services.message_builder import build_messages
from threadagent.utils.exceptions import ErrorKind, ServiceScope

DEFAULT_MAX_TOKENS = 1000
DEFAULT_TEMPERATURE = 0.7


class LLMAdapter(BaseAdapter):
    """Summarizes threads with an OpenAI-compatible chat completions client.

    The client is any object exposing ``chat.completions.create(...)``, such
    as ``openai.AsyncOpenAI`` built with ``max_retries=0`` so retrying stays
    with the adapter policy.
    """

    service = ServiceScope.LLM
    policy_preset = "llm"

    def __init__(
        self,
        client: Any,
        model: str,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
        **kwargs: Any,
    ):
        """Initialize the adapter.

        Args:
            client: Chat completions client.
            model: Model name.
            max_tokens: Completion token limit.
            temperature: Sampling temperature.
            **kwargs: Passed to ``BaseAdapter`` (policy, sleep, rng).
        """
        super().__init__(**kwargs)
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def transform(
        self,
        thread: ThreadData | dict[str, Any],
        template: WorkflowTemplate | None = None,
        custom_prompt: str | None = None,
    ) -> Result[TransformOutput]:
        """Summarize a thread.

        Args:
            thread: Thread to summarize. Plain dicts are validated first.
            template: Optional template supplying the system prompt.
            custom_prompt: Optional prompt overriding the template.

        Returns:
            Result with the stripped completion text and model name.
        """
        if not isinstance(thread, ThreadData):
            try:
                thread = ThreadData.model_validate(thread)
            except pydantic.ValidationError as e:
                return self._invalid("Invalid thread data: must include parent_message", errors=e.errors())

        if not self.model:
            return Result.fail(self._error("LLM model not configured", ErrorKind.CONFIGURATION))

        messages = build_messages(thread, template, custom_prompt)
        return await self._guard(partial(self._complete, messages), "transform")

    async def _complete(self, messages: list[dict[str, str]]) -> TransformOutput:
        response = await self.executor.execute(
            partial(
                self.client.chat.completions.create,
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            ),
            "llm.transform",
        )

        content = _extract_content(response)
        if not content or not content.strip():
            raise self._error(
                "Invalid response from LLM: missing content",
                ErrorKind.VALIDATION,
                model=self.model,
            )

        self.logger.info("Thread transformed", model=self.model, content_length=len(content))
        return TransformOutput(content=content.strip(), model=self.model)


def _extract_content(response: Any) -> str | None:
    """Read ``choices[0].message.content`` from an SDK object or a plain dict."""
    if isinstance(response, dict):
        choices = response.get("choices") or []
        message = choices[0].get("message") if choices else None
        return (message or {}).get("content")

    try:
        return response.choices[0].message.content
    except (AttributeError, IndexError, TypeError):
        return None
