"""Pytest configuration and fixtures."""

import os
from unittest.mock import AsyncMock

import pytest

# Set environment variables before imports
os.environ["TABLE_NAME"] = "threadagent-test"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"


@pytest.fixture
def aws_credentials():
    """Mock AWS credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


@pytest.fixture
def dynamodb_table(aws_credentials):
    """Create mocked DynamoDB table."""
    import boto3
    from moto import mock_aws

    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")

        table = dynamodb.create_table(
            TableName="threadagent-test",
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
                {"AttributeName": "GSI1PK", "AttributeType": "S"},
                {"AttributeName": "GSI1SK", "AttributeType": "S"},
            ],
            GlobalSecondaryIndexes=[
                {
                    "IndexName": "GSI1",
                    "KeySchema": [
                        {"AttributeName": "GSI1PK", "KeyType": "HASH"},
                        {"AttributeName": "GSI1SK", "KeyType": "RANGE"},
                    ],
                    "Projection": {"ProjectionType": "ALL"},
                },
            ],
            BillingMode="PAY_PER_REQUEST",
        )

        table.wait_until_exists()

        yield table


@pytest.fixture
def run_repo(dynamodb_table):
    """WorkflowRunRepository bound to the mocked table."""
    from threadagent.repositories.workflow_run import WorkflowRunRepository

    return WorkflowRunRepository("threadagent-test")


@pytest.fixture
def no_sleep():
    """Awaitable sleep that records requested delays instead of waiting."""
    return AsyncMock(return_value=None)


@pytest.fixture
def thread_payload():
    """Inline thread data as captured from Slack."""
    return {
        "channel_id": "C0123456",
        "thread_ts": "1718900000.000100",
        "parent_message": {
            "user": "U001",
            "text": "Should we ship the billing migration on Friday?",
            "ts": "1718900000.000100",
        },
        "replies": [
            {"user": "U002", "text": "Only if the backfill finishes Thursday.", "ts": "1718900100.000200"},
            {"user": "U001", "text": "Agreed, let's gate on the backfill.", "ts": "1718900200.000300"},
        ],
    }


@pytest.fixture
def sample_thread(thread_payload):
    """Create a sample thread."""
    from threadagent.models.thread import ThreadData

    return ThreadData.model_validate(thread_payload)


@pytest.fixture
def sample_template():
    """Create a template that publishes to a database."""
    from threadagent.models.workflow_run import WorkflowTemplate

    return WorkflowTemplate(
        name="Decision Log",
        content="Summarize the decisions in this thread.",
        destination_id="db-123",
        destination_name="Decisions",
    )


@pytest.fixture
def pending_run(sample_template):
    """Create a pending run that fetches its thread from Slack."""
    from threadagent.models.workflow_run import WorkflowRun

    return WorkflowRun.create_for_workflow(
        "slack_thread_capture",
        input_payload={"channel_id": "C0123456", "thread_ts": "1718900000.000100"},
        template=sample_template,
    )
