"""
SQS utility functions for lifecycle notifications.
"""
import boto3
import json
from typing import Dict, Any
from .config import config
from .logging import logger
from .models import TestingRequest, format_timestamp

sqs = boto3.client('sqs', region_name=config.AWS_REGION)


def send_message(queue_url: str, message_body: Dict[str, Any]) -> bool:
    """
    Send a single message to SQS queue.

    Args:
        queue_url: SQS queue URL
        message_body: Message body as dict (will be JSON serialized)

    Returns:
        True if sent successfully, False otherwise
    """
    try:
        sqs.send_message(
            QueueUrl=queue_url,
            MessageBody=json.dumps(message_body, default=str)
        )
        logger.info(f"Message sent to {queue_url}")
        return True
    except Exception as e:
        logger.error(f"Error sending message to SQS: {e}")
        return False


def publish_request_event(action: str, request: TestingRequest) -> bool:
    """
    Tell the notification service that a request changed.

    Delivery (email, in-app) happens downstream; a failed publish never
    fails the mutation that triggered it.
    """
    if not config.NOTIFICATIONS_QUEUE_URL:
        return False

    return send_message(config.NOTIFICATIONS_QUEUE_URL, {
        'action': action,
        'requestId': request.id,
        'customerId': request.customer_id,
        'status': request.status,
        'assignedTesterId': request.assigned_tester_id,
        'version': request.version,
        'occurredAt': format_timestamp(request.updated_at or request.created_at),
    })
