"""Service classes for business logic.

``WorkflowOrchestrator`` is imported from
``threadagent.services.workflow_orchestrator`` directly; it depends on the
adapters, which depend on the prompt builder here.
"""

from threadagent.services.input_validator import ThreadSource, parse_input_payload, validate_workflow_input
from threadagent.services.message_builder import (
    DEFAULT_SYSTEM_PROMPT,
    build_messages,
    build_user_content,
    system_prompt,
    thread_permalink,
)
from threadagent.services.page_builder import PageBuilder, process_ai_content

__all__ = [
    "DEFAULT_SYSTEM_PROMPT",
    "PageBuilder",
    "ThreadSource",
    "build_messages",
    "build_user_content",
    "parse_input_payload",
    "process_ai_content",
    "system_prompt",
    "thread_permalink",
    "validate_workflow_input",
]
