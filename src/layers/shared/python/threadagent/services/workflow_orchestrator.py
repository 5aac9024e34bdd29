"""Workflow orchestration engine.

Drives a ``WorkflowRun`` through fetch, transform and publish. Each step
appends to the run's step log and the run is persisted after every append,
so a crash leaves an accurate record of how far the run got.

State machine:

    pending -> running -> completed
                       -> failed     (first failing step)

A failing step appends ``<step>_failed`` with the error details, marks the
run failed with ``"<step> failed: <message>"`` and stops. Later steps never
run after a failure.
"""

from typing import Any, Awaitable, Callable

import structlog

from threadagent.adapters.chat_source import ChatSourceAdapter
from threadagent.adapters.document_store import DocumentStoreAdapter
from threadagent.adapters.llm import LLMAdapter
from threadagent.execution.error_classifier import classify_error
from threadagent.execution.result import Result
from threadagent.models.thread import PublishedResource, ThreadData, TransformOutput
from threadagent.models.workflow_run import RunStatus, WorkflowRun
from threadagent.repositories.workflow_run import WorkflowRunRepository
from threadagent.services.input_validator import validate_workflow_input
from threadagent.services.page_builder import PageBuilder
from threadagent.utils.exceptions import ClassifiedError, ErrorKind, ServiceScope, WorkflowError

logger = structlog.get_logger()

STEP_SOURCE_FETCH = "source_fetch"
STEP_TRANSFORM = "transform"
STEP_PUBLISH = "publish"


class WorkflowOrchestrator:
    """Runs the thread capture pipeline for one run at a time.

    Example:
        orchestrator = WorkflowOrchestrator(chat_source, llm, document_store, run_repo)
        result = await orchestrator.execute_workflow(run)

        if result.failure:
            print(result.error.kind, run.error_message)
    """

    def __init__(
        self,
        chat_source: ChatSourceAdapter,
        llm: LLMAdapter,
        document_store: DocumentStoreAdapter,
        run_repo: WorkflowRunRepository | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            chat_source: Adapter fetching threads.
            llm: Adapter transforming threads.
            document_store: Adapter publishing pages.
            run_repo: Repository for workflow runs.
        """
        self.chat_source = chat_source
        self.llm = llm
        self.document_store = document_store
        self.run_repo = run_repo or WorkflowRunRepository()
        self.logger = logger.bind(service="workflow_orchestrator")

    async def execute_workflow(self, run: WorkflowRun) -> Result[WorkflowRun]:
        """Execute the pipeline for a pending run.

        Args:
            run: The run to execute. It is mutated and persisted in place.

        Returns:
            Result with the completed run, or the error that failed it.
        """
        log = self.logger.bind(run_id=run.id, workflow_name=run.workflow_name)

        if RunStatus(run.status) != RunStatus.PENDING:
            log.warning("Workflow run is not pending", status=run.status)
            return Result.fail(
                WorkflowError(
                    f"Workflow run {run.id} cannot be executed from status '{run.status}'",
                    kind=ErrorKind.VALIDATION,
                    context={"run_id": run.id, "status": run.status},
                )
            )

        log.info("Executing workflow")
        run.mark_started()
        run.add_step("workflow_started")
        self._persist(run)

        # Step 1: fetch the thread
        source = validate_workflow_input(run)
        if source.failure:
            return self._fail(run, STEP_SOURCE_FETCH, source.error)

        thread_source = source.value
        if thread_source.is_inline:
            fetched: Result[ThreadData] = Result.ok(thread_source.thread_data)
        else:
            fetched = await self._step(
                STEP_SOURCE_FETCH,
                lambda: self.chat_source.fetch_thread(thread_source.channel_id, thread_source.thread_ts),
            )
        if fetched.failure:
            return self._fail(run, STEP_SOURCE_FETCH, fetched.error)

        thread = fetched.value
        run.add_step(
            "source_fetch_completed",
            {
                "channel_id": thread.channel_id,
                "thread_ts": thread.thread_ts,
                "message_count": thread.message_count,
                "source": "inline" if thread_source.is_inline else "api",
            },
        )
        self._persist(run)

        # Step 2: transform
        transformed = await self._step(
            STEP_TRANSFORM,
            lambda: self.llm.transform(
                thread, template=run.template, custom_prompt=thread_source.custom_prompt
            ),
        )
        if transformed.failure:
            return self._fail(run, STEP_TRANSFORM, transformed.error)

        transform = transformed.value
        run.add_step(
            "transform_completed",
            {"model": transform.model, "content_length": len(transform.content)},
        )
        self._persist(run)

        # Step 3: publish
        output: dict[str, Any] = {
            "thread": thread.summary(),
            "transformed_content": transform.content,
            "model": transform.model,
        }

        destination_id = run.template.destination_id if run.template else None
        if not destination_id:
            reason = "no template" if run.template is None else "template has no destination"
            log.info("Publish skipped", reason=reason)
            run.add_step("publish_skipped", {"reason": reason})
        else:
            published = await self._step(
                STEP_PUBLISH,
                lambda: self._publish(run, thread, transform, destination_id),
            )
            if published.failure:
                return self._fail(run, STEP_PUBLISH, published.error)

            resource = published.value
            run.add_step(
                "publish_completed",
                {
                    "resource_id": resource.resource_id,
                    "url": resource.url,
                    "destination_id": destination_id,
                },
            )
            output.update(
                resource_id=resource.resource_id,
                resource_url=resource.url,
                destination_id=destination_id,
            )

        run.mark_completed(output)
        self._persist(run)

        log.info("Workflow completed", duration=run.duration, steps=len(run.steps))
        return Result.ok(run)

    async def _publish(
        self,
        run: WorkflowRun,
        thread: ThreadData,
        transform: TransformOutput,
        destination_id: str,
    ) -> Result[PublishedResource]:
        builder = PageBuilder(thread, run, transform)
        return await self.document_store.publish(
            destination_id,
            builder.build_properties(),
            builder.build_content(),
        )

    async def _step(
        self,
        step: str,
        operation: Callable[[], Awaitable[Result[Any]]],
    ) -> Result[Any]:
        """Run one step, turning anything raised into a failed result."""
        try:
            return await operation()
        except ClassifiedError as e:
            return Result.fail(e)
        except Exception as e:
            self.logger.exception("Unexpected error in workflow step", step=step, error=str(e))
            return Result.fail(classify_error(e, ServiceScope.WORKFLOW))

    def _fail(self, run: WorkflowRun, step: str, error: ClassifiedError) -> Result[WorkflowRun]:
        """Record a step failure and mark the run failed."""
        run.fail_step(f"{step}_failed", error.to_dict())
        run.mark_failed(f"{step} failed: {error.message}")
        self._persist(run)

        self.logger.error(
            "Workflow failed",
            run_id=run.id,
            step=step,
            error_kind=error.kind.value,
            service=error.service.value,
            attempts_made=error.attempts_made,
            error=error.message,
        )
        return Result.fail(error)

    def _persist(self, run: WorkflowRun) -> None:
        self.run_repo.save_run(run)

    async def aclose(self) -> None:
        """Close the adapters' HTTP clients."""
        for adapter in (self.chat_source, self.document_store):
            close = getattr(adapter.client, "aclose", None)
            if close is not None:
                await close()

        close = getattr(self.llm.client, "close", None)
        if close is not None:
            await close()
