"""Workflow processor worker.

Executes pending thread capture runs. Invoked either by SQS (each record body
is ``{"workflow_run_id": "..."}``) or directly with a single
``{"workflow_run_id": "..."}`` event.

Runs that end in ``failed`` are final and are not reported as batch failures.
A record whose body is not a JSON object, or whose run is missing or could
not be stored, is reported in ``batchItemFailures`` so SQS redelivers it.
"""

import asyncio
import json
from typing import Any

import structlog

from threadagent.config import ThreadAgentConfig, build_orchestrator
from threadagent.models.workflow_run import RunStatus
from threadagent.repositories.workflow_run import WorkflowRunRepository
from threadagent.services.workflow_orchestrator import WorkflowOrchestrator

logger = structlog.get_logger()


def handler(event: dict[str, Any], context: Any) -> dict:
    """Process workflow run events.

    Args:
        event: SQS event with records, or a direct invocation payload.
        context: Lambda context.

    Returns:
        For SQS events, batch item failures for partial retry. For direct
        invocations, the outcome of the run.
    """
    records = event.get("Records")
    config = ThreadAgentConfig.from_env()

    if records is None:
        logger.info("Workflow processor invoked directly", workflow_run_id=event.get("workflow_run_id"))
        return _run(process_run_ids([event.get("workflow_run_id")], config))[0]

    logger.info("Processing workflow queue", record_count=len(records))

    batch_item_failures = []
    run_ids = []
    for record in records:
        message_id = record.get("messageId")
        body = _parse_body(record.get("body"))
        if body is None:
            logger.error("Malformed queue message", message_id=message_id)
            batch_item_failures.append({"itemIdentifier": message_id})
            continue
        run_ids.append((message_id, body.get("workflow_run_id")))

    outcomes = _run(process_run_ids([run_id for _, run_id in run_ids], config))

    for (message_id, _), outcome in zip(run_ids, outcomes):
        if outcome["status"] == "error":
            batch_item_failures.append({"itemIdentifier": message_id})

    return {"batchItemFailures": batch_item_failures}


def _parse_body(body: str | None) -> dict[str, Any] | None:
    """Decode a record body, or None when it is not a JSON object."""
    try:
        parsed = json.loads(body or "{}")
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _run(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def process_run_ids(
    run_ids: list[str | None],
    config: ThreadAgentConfig,
    orchestrator: WorkflowOrchestrator | None = None,
) -> list[dict[str, Any]]:
    """Execute each run in order.

    Args:
        run_ids: Workflow run IDs.
        config: Loaded configuration.
        orchestrator: Optional pre-built orchestrator.

    Returns:
        One outcome dict per run ID.
    """
    owns_orchestrator = orchestrator is None
    try:
        orchestrator = orchestrator or build_orchestrator(config)
    except Exception as e:
        logger.exception("Failed to build orchestrator", error=str(e))
        return [
            {"workflow_run_id": run_id, "status": "error", "error": str(e)}
            for run_id in run_ids
        ]

    try:
        return [await process_run(run_id, orchestrator) for run_id in run_ids]
    finally:
        if owns_orchestrator:
            await orchestrator.aclose()


async def process_run(run_id: str | None, orchestrator: WorkflowOrchestrator) -> dict[str, Any]:
    """Load and execute a single run.

    Args:
        run_id: Workflow run ID.
        orchestrator: Orchestrator to execute with.

    Returns:
        Outcome dict with ``status`` one of ``completed``, ``failed``,
        ``skipped`` or ``error``.
    """
    if not run_id:
        logger.warning("Missing workflow_run_id")
        return {"workflow_run_id": None, "status": "error", "error": "Missing workflow_run_id"}

    run_repo: WorkflowRunRepository = orchestrator.run_repo

    try:
        run = run_repo.find(run_id)

        if RunStatus(run.status) != RunStatus.PENDING:
            logger.info("Skipping workflow run that is not pending", workflow_run_id=run_id, status=run.status)
            return {"workflow_run_id": run_id, "status": "skipped", "run_status": run.status}

        result = await orchestrator.execute_workflow(run)
    except Exception as e:
        logger.exception("Failed to process workflow run", workflow_run_id=run_id, error=str(e))
        return {"workflow_run_id": run_id, "status": "error", "error": str(e)}

    if result.success:
        return {
            "workflow_run_id": run_id,
            "status": "completed",
            "output": run.output_payload,
        }

    return {
        "workflow_run_id": run_id,
        "status": "failed",
        "error": result.error.to_dict(),
    }
