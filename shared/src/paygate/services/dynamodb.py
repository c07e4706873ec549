"""Thin DynamoDB access layer shared by the registry and the event stores.

Every table lives under an environment prefix (``paygate-dev-bot-integrations``)
so callers only pass the short name.
"""

from typing import Any

import boto3
from boto3.dynamodb.conditions import ConditionBase, Key
from botocore.exceptions import ClientError

Item = dict[str, Any]

CONDITION_FAILED = "ConditionalCheckFailedException"


class DynamoDBService:
    """Item-level reads and writes against prefixed tables."""

    def __init__(self, table_prefix: str, region_name: str | None = None) -> None:
        self.table_prefix = table_prefix
        self._resource = boto3.resource("dynamodb", region_name=region_name)

    def _table_name(self, table: str) -> str:
        return f"{self.table_prefix}-{table}"

    def _table(self, table: str) -> Any:
        return self._resource.Table(self._table_name(table))

    def get_item(self, table: str, key: Item, consistent_read: bool = False) -> Item | None:
        """Fetch one item by primary key, or None when absent."""
        found: Item | None = self._table(table).get_item(
            Key=key, ConsistentRead=consistent_read
        ).get("Item")
        return found

    def put_item(
        self,
        table: str,
        item: Item,
        condition_expression: str | None = None,
        expression_attribute_values: Item | None = None,
    ) -> bool:
        """Write an item, optionally guarded by a condition expression.

        Returns:
            False when the condition rejected the write, True otherwise.
        """
        params: Item = {"Item": item}
        if condition_expression:
            params["ConditionExpression"] = condition_expression
            if expression_attribute_values:
                params["ExpressionAttributeValues"] = expression_attribute_values

        try:
            self._table(table).put_item(**params)
        except ClientError as e:
            if e.response["Error"]["Code"] == CONDITION_FAILED:
                return False
            raise
        return True

    def delete_item(self, table: str, key: Item) -> None:
        self._table(table).delete_item(Key=key)

    def query_by_gsi(
        self,
        table: str,
        index_name: str,
        partition_key_name: str,
        partition_key_value: str,
    ) -> list[Item]:
        """All items of a secondary index sharing one partition key value."""
        params: Item = {
            "IndexName": index_name,
            "KeyConditionExpression": Key(partition_key_name).eq(partition_key_value),
        }
        return self._collect(self._table(table).query, params)

    def scan(self, table: str, filter_expression: ConditionBase | None = None) -> list[Item]:
        """Read a whole table. Only used for the small integrations table."""
        params: Item = {}
        if filter_expression is not None:
            params["FilterExpression"] = filter_expression
        return self._collect(self._table(table).scan, params)

    @staticmethod
    def _collect(operation: Any, params: Item) -> list[Item]:
        """Run a query or scan until DynamoDB stops returning a continuation key."""
        items: list[Item] = []
        while True:
            page = operation(**params)
            items.extend(page.get("Items", []))
            if "LastEvaluatedKey" not in page:
                return items
            params["ExclusiveStartKey"] = page["LastEvaluatedKey"]
