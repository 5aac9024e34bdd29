"""Workflow input validation.

A run names its thread in one of three ways, checked in order:

1. ``input_payload["thread_data"]``: an inline, already-captured thread with
   ``parent_message`` and a ``replies`` list.
2. ``input_payload["channel_id"]`` + ``input_payload["thread_ts"]``: a
   reference fetched from the chat source.
3. An empty or missing payload, with ``source_channel_id`` +
   ``source_thread_ts`` set on the run itself.

Any of these may carry a ``custom_prompt`` string that overrides the
template instructions for the transform step. The payload may be stored as
JSON text. Nothing here touches the network.
"""

import json
from dataclasses import dataclass, replace
from typing import Any

import pydantic

from threadagent.execution.result import Result
from threadagent.models.thread import ThreadData
from threadagent.models.workflow_run import WorkflowRun
from threadagent.utils.exceptions import ErrorKind, WorkflowError


@dataclass(frozen=True)
class ThreadSource:
    """Where the thread for a run comes from."""

    channel_id: str | None = None
    thread_ts: str | None = None
    thread_data: ThreadData | None = None
    custom_prompt: str | None = None

    @property
    def is_inline(self) -> bool:
        return self.thread_data is not None


def _invalid(message: str, validation_type: str) -> Result[ThreadSource]:
    return Result.fail(
        WorkflowError(
            message,
            kind=ErrorKind.VALIDATION,
            context={"component": "input_validator", "validation_type": validation_type},
        )
    )


def parse_input_payload(payload: dict[str, Any] | str | None) -> dict[str, Any]:
    """Decode a stored payload into a dict.

    Raises:
        ValueError: If the payload is not JSON or not an object.
    """
    if payload is None:
        return {}
    if isinstance(payload, str):
        if not payload.strip():
            return {}
        payload = json.loads(payload)
    if not isinstance(payload, dict):
        raise ValueError("Input payload must be an object")
    return payload


def validate_workflow_input(run: WorkflowRun) -> Result[ThreadSource]:
    """Resolve and validate the thread source of a run.

    Args:
        run: The workflow run.

    Returns:
        Result with a ``ThreadSource``, or a validation error.
    """
    try:
        payload = parse_input_payload(run.input_payload)
    except ValueError as e:
        # json.JSONDecodeError is a ValueError
        return _invalid(f"Invalid input payload format: {e}", "input_payload_parsing")

    payload = dict(payload)
    custom_prompt = payload.pop("custom_prompt", None)
    if custom_prompt is not None and not isinstance(custom_prompt, str):
        return _invalid("custom_prompt must be a string", "custom_prompt")

    source = _resolve_source(run, payload)
    if source.failure or not (custom_prompt and custom_prompt.strip()):
        return source
    return Result.ok(replace(source.value, custom_prompt=custom_prompt.strip()))


def _resolve_source(run: WorkflowRun, payload: dict[str, Any]) -> Result[ThreadSource]:
    if not payload:
        return _from_run_fields(run)

    thread_data = payload.get("thread_data")
    if thread_data is not None:
        return _from_thread_data(thread_data)

    channel_id = payload.get("channel_id")
    thread_ts = payload.get("thread_ts")
    if not channel_id or not thread_ts:
        return _invalid(
            "Input payload missing required thread_data or channel_id/thread_ts",
            "input_payload",
        )

    return Result.ok(ThreadSource(channel_id=str(channel_id), thread_ts=str(thread_ts)))


def _from_run_fields(run: WorkflowRun) -> Result[ThreadSource]:
    if not run.source_channel_id or not run.source_thread_ts:
        return _invalid(
            "Missing input payload and run has no source channel/thread reference",
            "input_payload",
        )
    return Result.ok(ThreadSource(channel_id=run.source_channel_id, thread_ts=run.source_thread_ts))


def _from_thread_data(thread_data: Any) -> Result[ThreadSource]:
    if not isinstance(thread_data, dict):
        return _invalid("Thread data must be an object", "thread_data_structure")
    if not thread_data.get("parent_message"):
        return _invalid("Thread data missing required parent_message", "thread_data_structure")
    if not isinstance(thread_data.get("replies"), list):
        return _invalid("Thread data missing required replies array", "thread_data_structure")

    try:
        thread = ThreadData.model_validate(thread_data)
    except pydantic.ValidationError as e:
        return _invalid(f"Invalid thread data: {e.error_count()} field error(s)", "thread_data_structure")

    return Result.ok(ThreadSource(channel_id=thread.channel_id, thread_ts=thread.thread_ts, thread_data=thread))
