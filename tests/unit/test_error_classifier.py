"""Tests for error classification."""

import json
import socket

import httpx
import openai
import pytest

from threadagent.clients.notion import NotionAPIError
from threadagent.clients.slack import SlackAPIError
from threadagent.execution.error_classifier import ErrorClassifier, classify_error, get_error_classifier
from threadagent.utils.exceptions import (
    ChatSourceError,
    DocumentStoreError,
    ErrorKind,
    LLMError,
    ServiceScope,
    WorkflowError,
)

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def _response(status_code: int, headers: dict | None = None) -> httpx.Response:
    return httpx.Response(status_code, headers=headers, request=REQUEST)


class TestErrorClassifier:
    """Tests for ErrorClassifier."""

    @pytest.fixture
    def classifier(self):
        return ErrorClassifier(ServiceScope.LLM)

    def test_classified_errors_pass_through(self, classifier):
        """Test an already classified error is returned unchanged."""
        error = ChatSourceError("Parent message not found", kind=ErrorKind.NOT_FOUND)
        assert classifier.classify(error) is error

    def test_result_carries_service_and_cause(self, classifier):
        cause = httpx.ReadTimeout("read timed out")
        error = classifier.classify(cause)

        assert isinstance(error, LLMError)
        assert error.service == ServiceScope.LLM
        assert error.cause is cause
        assert error.__cause__ is cause
        assert error.code == "llm.timeout"
        assert error.context["error_class"] == "ReadTimeout"

    @pytest.mark.parametrize(
        "status_code,kind",
        [
            (400, ErrorKind.VALIDATION),
            (401, ErrorKind.AUTH),
            (403, ErrorKind.AUTH),
            (404, ErrorKind.NOT_FOUND),
            (422, ErrorKind.VALIDATION),
        ],
    )
    def test_non_retryable_status_codes(self, classifier, status_code, kind):
        error = classifier.classify(
            httpx.HTTPStatusError("failed", request=REQUEST, response=_response(status_code))
        )

        assert error.kind == kind
        assert error.retryable is False
        assert error.context["status_code"] == status_code

    @pytest.mark.parametrize("status_code", [500, 502, 503, 504])
    def test_server_errors_are_retryable(self, classifier, status_code):
        error = classifier.classify(
            httpx.HTTPStatusError("failed", request=REQUEST, response=_response(status_code))
        )

        assert error.kind == ErrorKind.UPSTREAM_ERROR
        assert error.retryable is True

    def test_rate_limit_reads_retry_after_header(self, classifier):
        error = classifier.classify(
            openai.RateLimitError("Rate limit reached", response=_response(429, {"retry-after": "12"}), body=None)
        )

        assert error.kind == ErrorKind.RATE_LIMIT
        assert error.retryable is True
        assert error.retry_after == 12.0

    def test_openai_authentication_error(self, classifier):
        error = classifier.classify(
            openai.AuthenticationError("Incorrect API key provided", response=_response(401), body=None)
        )

        assert error.kind == ErrorKind.AUTH
        assert error.retryable is False

    def test_openai_timeout(self, classifier):
        error = classifier.classify(openai.APITimeoutError(request=REQUEST))
        assert error.kind == ErrorKind.TIMEOUT

    def test_openai_connection_error(self, classifier):
        error = classifier.classify(openai.APIConnectionError(request=REQUEST))
        assert error.kind == ErrorKind.CONNECTION
        assert error.retryable is True

    @pytest.mark.parametrize(
        "error,kind",
        [
            (TimeoutError(), ErrorKind.TIMEOUT),
            (httpx.ConnectTimeout("connect timed out"), ErrorKind.TIMEOUT),
            (httpx.ConnectError("connection refused"), ErrorKind.CONNECTION),
            (ConnectionResetError("reset by peer"), ErrorKind.CONNECTION),
            (socket.gaierror("Name or service not known"), ErrorKind.CONNECTION),
        ],
    )
    def test_network_failures(self, classifier, error, kind):
        classified = classifier.classify(error)

        assert classified.kind == kind
        assert classified.retryable is True

    def test_malformed_json_is_validation(self, classifier):
        error = classifier.classify(json.JSONDecodeError("Expecting value", "<html>", 0))

        assert error.kind == ErrorKind.VALIDATION
        assert error.retryable is False

    def test_empty_message_uses_class_name(self, classifier):
        assert classifier.classify(TimeoutError()).message == "TimeoutError"

    @pytest.mark.parametrize(
        "message,kind",
        [
            ("Invalid API key provided", ErrorKind.AUTH),
            ("Resource does not exist", ErrorKind.NOT_FOUND),
            ("Too many requests, slow down", ErrorKind.RATE_LIMIT),
            ("upstream timed out", ErrorKind.TIMEOUT),
            ("503 Service Unavailable", ErrorKind.UPSTREAM_ERROR),
        ],
    )
    def test_message_patterns(self, classifier, message, kind):
        assert classifier.classify(RuntimeError(message)).kind == kind

    def test_unknown_fails_open(self, classifier):
        """Test unrecognized failures are retryable."""
        error = classifier.classify(RuntimeError("something odd happened"))

        assert error.kind == ErrorKind.UNKNOWN
        assert error.retryable is True


class TestProviderCodes:
    """Tests for Slack and Notion error codes."""

    def test_slack_code_wins_over_status(self):
        classifier = ErrorClassifier(ServiceScope.CHAT_SOURCE)
        error = classifier.classify(SlackAPIError("failed", code="channel_not_found", status_code=200))

        assert isinstance(error, ChatSourceError)
        assert error.kind == ErrorKind.NOT_FOUND
        assert error.context["provider_code"] == "channel_not_found"

    def test_slack_rate_limit(self):
        classifier = ErrorClassifier(ServiceScope.CHAT_SOURCE)
        error = classifier.classify(
            SlackAPIError("rate limited", code="ratelimited", status_code=429, retry_after=30)
        )

        assert error.kind == ErrorKind.RATE_LIMIT
        assert error.retry_after == 30.0

    def test_slack_unknown_code_falls_back(self):
        classifier = ErrorClassifier(ServiceScope.CHAT_SOURCE)
        error = classifier.classify(SlackAPIError("Slack call failed: something_new", code="something_new"))

        assert error.kind == ErrorKind.UNKNOWN

    def test_notion_validation_error(self):
        classifier = ErrorClassifier(ServiceScope.DOCUMENT_STORE)
        error = classifier.classify(
            NotionAPIError("body failed validation", code="validation_error", status_code=400)
        )

        assert isinstance(error, DocumentStoreError)
        assert error.kind == ErrorKind.VALIDATION
        assert error.retryable is False

    def test_notion_conflict_is_retryable(self):
        classifier = ErrorClassifier(ServiceScope.DOCUMENT_STORE)
        error = classifier.classify(NotionAPIError("Conflict occurred", code="conflict_error", status_code=409))

        assert error.kind == ErrorKind.UPSTREAM_ERROR
        assert error.retryable is True


class TestHelpers:
    """Tests for module-level helpers."""

    def test_get_error_classifier_is_cached(self):
        assert get_error_classifier(ServiceScope.LLM) is get_error_classifier(ServiceScope.LLM)

    def test_classify_error_defaults_to_workflow(self):
        assert isinstance(classify_error(RuntimeError("boom")), WorkflowError)

    def test_to_dict(self):
        error = ErrorClassifier(ServiceScope.CHAT_SOURCE).classify(
            SlackAPIError("rate limited", code="ratelimited", status_code=429, retry_after=3)
        )
        data = error.to_dict()

        assert data["kind"] == "rate_limit"
        assert data["service"] == "chat_source"
        assert data["retryable"] is True
        assert data["retry_after"] == 3.0
        assert data["context"]["status_code"] == 429
        assert data["cause"].startswith("SlackAPIError")
        json.dumps(data)
