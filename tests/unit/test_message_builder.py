"""Tests for LLM prompt construction."""

from threadagent.models.thread import ThreadData
from threadagent.models.workflow_run import WorkflowTemplate
from threadagent.services.message_builder import (
    DEFAULT_SYSTEM_PROMPT,
    build_messages,
    build_user_content,
    system_prompt,
    thread_permalink,
)


class TestSystemPrompt:
    """Tests for system prompt precedence."""

    def test_default(self):
        assert system_prompt() == DEFAULT_SYSTEM_PROMPT

    def test_template_content(self, sample_template):
        assert system_prompt(sample_template) == "Summarize the decisions in this thread."

    def test_blank_template_content_falls_back(self):
        assert system_prompt(WorkflowTemplate(name="Empty", content="  ")) == DEFAULT_SYSTEM_PROMPT

    def test_custom_prompt_wins(self, sample_template):
        assert system_prompt(sample_template, "Only action items.") == "Only action items."


class TestUserContent:
    """Tests for the rendered thread."""

    def test_permalink(self):
        assert thread_permalink("C1", "100.1") == "https://slack.com/app_redirect?channel=C1&message_ts=100.1"

    def test_full_thread(self, sample_thread):
        content = build_user_content(sample_thread)

        assert content.startswith(
            "**Thread Link:** https://slack.com/app_redirect?channel=C0123456&message_ts=1718900000.000100\n\n"
        )
        assert "**Original Message:**\nUser: U001\nMessage: Should we ship the billing migration on Friday?" in content
        assert "**Thread Replies:**\n1. User: U002\n   Message: Only if the backfill finishes Thursday." in content
        assert "2. User: U001" in content
        assert content.endswith(
            "**Thread Metadata:**\nChannel ID: C0123456\nThread Timestamp: 1718900000.000100"
        )

    def test_no_replies_no_link(self):
        thread = ThreadData.model_validate({"parent_message": {"user": "U1", "text": "Solo", "ts": "1.0"}})

        content = build_user_content(thread)

        assert "**Thread Link:**" not in content
        assert "**Thread Replies:**" not in content
        assert "Message: Solo" in content

    def test_build_messages(self, sample_thread):
        messages = build_messages(sample_thread)

        assert [message["role"] for message in messages] == ["system", "user"]
        assert messages[0]["content"] == DEFAULT_SYSTEM_PROMPT
        assert messages[1]["content"] == build_user_content(sample_thread)
