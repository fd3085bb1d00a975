"""
DynamoDB utility functions shared by the request store and handlers.
"""
import boto3
from typing import List, Dict, Any, Optional
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError
from .config import config
from .logging import logger

dynamodb = boto3.resource('dynamodb', region_name=config.AWS_REGION)

_serializer = TypeSerializer()


def to_attribute_values(item: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a plain item into the typed form used by transact_write_items."""
    return {key: _serializer.serialize(value) for key, value in item.items()}


def get_item(table_name: str, key: Dict[str, Any], resource=None,
             consistent_read: bool = False) -> Optional[Dict[str, Any]]:
    """Get a single item from DynamoDB."""
    try:
        table = (resource or dynamodb).Table(table_name)
        response = table.get_item(Key=key, ConsistentRead=consistent_read)
        return response.get('Item')
    except ClientError as e:
        logger.error(f"Error getting item from {table_name}: {e}")
        raise


def put_item(table_name: str, item: Dict[str, Any], resource=None) -> None:
    """Put a single item into DynamoDB."""
    try:
        table = (resource or dynamodb).Table(table_name)
        table.put_item(Item=item)
    except ClientError as e:
        logger.error(f"Error putting item into {table_name}: {e}")
        raise


def scan_all(
    table_name: str,
    filter_expression: Optional[Any] = None,
    resource=None
) -> List[Dict[str, Any]]:
    """Scan a whole table (or the filtered part of it), following pagination."""
    table = (resource or dynamodb).Table(table_name)

    scan_params: Dict[str, Any] = {}
    if filter_expression is not None:
        scan_params['FilterExpression'] = filter_expression

    items: List[Dict[str, Any]] = []
    try:
        while True:
            response = table.scan(**scan_params)
            items.extend(response.get('Items', []))
            last_key = response.get('LastEvaluatedKey')
            if not last_key:
                break
            scan_params['ExclusiveStartKey'] = last_key
    except ClientError as e:
        logger.error(f"Error scanning {table_name}: {e}")
        raise

    return items


def update_item(
    table_name: str,
    key: Dict[str, Any],
    update_expression: str,
    expression_values: Dict[str, Any],
    expression_names: Optional[Dict[str, str]] = None,
    condition_expression: Optional[str] = None,
    resource=None
) -> None:
    """Update an item in DynamoDB."""
    table = (resource or dynamodb).Table(table_name)

    params = {
        'Key': key,
        'UpdateExpression': update_expression,
        'ExpressionAttributeValues': expression_values
    }

    if expression_names:
        params['ExpressionAttributeNames'] = expression_names
    if condition_expression:
        params['ConditionExpression'] = condition_expression

    try:
        table.update_item(**params)
    except ClientError as e:
        logger.error(f"Error updating item in {table_name}: {e}")
        raise


def cancellation_codes(error: ClientError) -> List[str]:
    """Per-item cancellation codes of a failed transaction, in TransactItems order."""
    reasons = error.response.get('CancellationReasons') or []
    return [reason.get('Code', 'None') for reason in reasons]
