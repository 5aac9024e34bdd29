"""Base repository class for DynamoDB operations."""

import os
from typing import Any, Generic, TypeVar

import boto3
import structlog
from botocore.exceptions import ClientError

from threadagent.models.base import BaseModel
from threadagent.utils.exceptions import ConflictError, NotFoundError

logger = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)

GSI_KEY_NAMES = {
    "GSI1": ("GSI1PK", "GSI1SK"),
}


class BaseRepository(Generic[T]):
    """Base repository for DynamoDB single-table design.

    Provides common read/write operations with optimistic locking support.
    """

    def __init__(
        self,
        model_class: type[T],
        table_name: str | None = None,
    ):
        """Initialize repository.

        Args:
            model_class: The Pydantic model class for this repository.
            table_name: DynamoDB table name. Defaults to TABLE_NAME env var.
        """
        self.model_class = model_class
        self.table_name = table_name or os.environ.get("TABLE_NAME", "threadagent-dev")
        self._dynamodb = None
        self._table = None

    @property
    def dynamodb(self):
        """Get DynamoDB resource (lazy initialization)."""
        if self._dynamodb is None:
            self._dynamodb = boto3.resource("dynamodb")
        return self._dynamodb

    @property
    def table(self):
        """Get DynamoDB table (lazy initialization)."""
        if self._table is None:
            self._table = self.dynamodb.Table(self.table_name)
        return self._table

    def _build_key(self, pk: str, sk: str) -> dict[str, str]:
        return {"PK": pk, "SK": sk}

    def _build_item(self, item: T, gsi_keys: dict[str, str] | None) -> dict[str, Any]:
        db_item = item.to_dynamodb()
        db_item.update(item.get_keys())
        if gsi_keys:
            db_item.update(gsi_keys)
        return db_item

    def get(self, pk: str, sk: str) -> T | None:
        """Get an item by its primary key.

        Args:
            pk: Partition key value.
            sk: Sort key value.

        Returns:
            Model instance or None if not found.
        """
        try:
            response = self.table.get_item(Key=self._build_key(pk, sk))
        except ClientError as e:
            logger.error("DynamoDB get_item failed", error=str(e), pk=pk, sk=sk)
            raise

        item = response.get("Item")
        if not item:
            return None
        return self.model_class.from_dynamodb(item)

    def get_or_raise(self, pk: str, sk: str, resource_type: str) -> T:
        """Get an item or raise NotFoundError.

        Raises:
            NotFoundError: If item not found.
        """
        item = self.get(pk, sk)
        if not item:
            resource_id = sk.split("#", 1)[-1] if "#" in sk else sk
            raise NotFoundError(resource_type, resource_id)
        return item

    def create(self, item: T, gsi_keys: dict[str, str] | None = None) -> T:
        """Create a new item (fails if exists).

        Args:
            item: Model instance to create.
            gsi_keys: Optional GSI key values.

        Returns:
            The created model instance.

        Raises:
            ConflictError: If item already exists.
        """
        item.update_timestamp()
        db_item = self._build_item(item, gsi_keys)

        try:
            self.table.put_item(Item=db_item, ConditionExpression="attribute_not_exists(PK)")
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise ConflictError("Item already exists", conflict_type="duplicate") from e
            logger.error("DynamoDB put_item failed", error=str(e))
            raise

        logger.debug(
            "Item created",
            pk=db_item["PK"],
            sk=db_item["SK"],
            model=self.model_class.__name__,
        )
        return item

    def update(
        self,
        item: T,
        gsi_keys: dict[str, str] | None = None,
        check_version: bool = True,
    ) -> T:
        """Update an existing item with optimistic locking.

        Args:
            item: Model instance to update.
            gsi_keys: Optional GSI key values.
            check_version: Whether to check version for optimistic locking.

        Returns:
            The updated model instance.

        Raises:
            ConflictError: If version mismatch (concurrent modification).
        """
        old_version = item.version
        item.increment_version()
        item.update_timestamp()
        db_item = self._build_item(item, gsi_keys)

        kwargs: dict[str, Any] = {"Item": db_item}
        if check_version:
            kwargs["ConditionExpression"] = "#version = :old_version"
            kwargs["ExpressionAttributeNames"] = {"#version": "version"}
            kwargs["ExpressionAttributeValues"] = {":old_version": old_version}

        try:
            self.table.put_item(**kwargs)
        except ClientError as e:
            item.version = old_version
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise ConflictError(
                    "Item was modified by another process", conflict_type="version"
                ) from e
            logger.error("DynamoDB update failed", error=str(e))
            raise

        logger.debug(
            "Item updated",
            pk=db_item["PK"],
            sk=db_item["SK"],
            version=item.version,
        )
        return item

    def query(
        self,
        pk: str,
        sk_begins_with: str | None = None,
        index_name: str | None = None,
        limit: int | None = None,
        scan_forward: bool = True,
        last_key: dict | None = None,
    ) -> tuple[list[T], dict | None]:
        """Query items by partition key.

        Args:
            pk: Partition key value (of the index when ``index_name`` is set).
            sk_begins_with: Sort key prefix for begins_with condition.
            index_name: Optional GSI name.
            limit: Maximum items to return.
            scan_forward: Sort direction (True = ascending).
            last_key: Last evaluated key for pagination.

        Returns:
            Tuple of (items, last_evaluated_key).
        """
        pk_name, sk_name = GSI_KEY_NAMES.get(index_name, ("PK", "SK"))

        key_condition = f"{pk_name} = :pk"
        expr_values: dict[str, Any] = {":pk": pk}
        if sk_begins_with:
            key_condition += f" AND begins_with({sk_name}, :sk_prefix)"
            expr_values[":sk_prefix"] = sk_begins_with

        kwargs: dict[str, Any] = {
            "KeyConditionExpression": key_condition,
            "ExpressionAttributeValues": expr_values,
            "ScanIndexForward": scan_forward,
        }
        if index_name:
            kwargs["IndexName"] = index_name
        if limit:
            kwargs["Limit"] = limit
        if last_key:
            kwargs["ExclusiveStartKey"] = last_key

        try:
            response = self.table.query(**kwargs)
        except ClientError as e:
            logger.error("DynamoDB query failed", error=str(e), pk=pk, index=index_name)
            raise

        items = [self.model_class.from_dynamodb(item) for item in response.get("Items", [])]
        return items, response.get("LastEvaluatedKey")
