"""Chat completion prompt construction for thread summarization."""

from urllib.parse import urlencode

from threadagent.models.thread import ThreadData
from threadagent.models.workflow_run import WorkflowTemplate

DEFAULT_SYSTEM_PROMPT = (
    "You are an expert assistant. Summarize the following Slack thread, "
    "highlighting key decisions, action items, and main discussion points. "
    "Use bullet points for clarity. Exclude greetings and unrelated chatter."
)


def thread_permalink(channel_id: str, thread_ts: str) -> str:
    """Build a Slack redirect link to a thread."""
    query = urlencode({"channel": channel_id, "message_ts": thread_ts})
    return f"https://slack.com/app_redirect?{query}"


def system_prompt(
    template: WorkflowTemplate | None = None,
    custom_prompt: str | None = None,
) -> str:
    """Pick the system prompt: custom prompt, then template content, then default."""
    if custom_prompt and custom_prompt.strip():
        return custom_prompt
    if template is not None and template.content and template.content.strip():
        return template.content
    return DEFAULT_SYSTEM_PROMPT


def build_user_content(thread: ThreadData) -> str:
    """Render a thread as the user message."""
    lines: list[str] = []

    if thread.channel_id and thread.thread_ts:
        lines.append(f"**Thread Link:** {thread_permalink(thread.channel_id, thread.thread_ts)}")
        lines.append("")

    parent = thread.parent_message
    lines.append("**Original Message:**")
    lines.append(f"User: {parent.user or ''}")
    lines.append(f"Message: {parent.text}")
    lines.append(f"Timestamp: {parent.ts or ''}")

    if thread.replies:
        lines.append("")
        lines.append("**Thread Replies:**")
        for index, reply in enumerate(thread.replies, start=1):
            lines.append(f"{index}. User: {reply.user or ''}")
            lines.append(f"   Message: {reply.text}")
            lines.append(f"   Timestamp: {reply.ts or ''}")

    lines.append("")
    lines.append("**Thread Metadata:**")
    lines.append(f"Channel ID: {thread.channel_id or ''}")
    lines.append(f"Thread Timestamp: {thread.thread_ts or ''}")

    return "\n".join(lines)


def build_messages(
    thread: ThreadData,
    template: WorkflowTemplate | None = None,
    custom_prompt: str | None = None,
) -> list[dict[str, str]]:
    """Build the ``messages`` list for a chat completion request.

    Args:
        thread: Thread to summarize.
        template: Optional template whose content is the system prompt.
        custom_prompt: Optional prompt that overrides the template.

    Returns:
        System and user messages.
    """
    return [
        {"role": "system", "content": system_prompt(template, custom_prompt)},
        {"role": "user", "content": build_user_content(thread)},
    ]
