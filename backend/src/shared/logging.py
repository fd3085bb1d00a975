"""
Logging setup shared by every Lambda in the testing request backend.
"""
import json
import logging

from shared.config import config

logger = logging.getLogger('qa_requests')
logger.setLevel(config.LOG_LEVEL)

# Lambda containers are reused; only attach the handler once
if not logger.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    logger.addHandler(_handler)


def event_summary(event: dict) -> dict:
    """Route, caller and ids of an API Gateway event. Bodies and headers are left out."""
    request_context = event.get('requestContext') or {}
    claims = (request_context.get('authorizer') or {}).get('claims') or {}
    return {
        'method': event.get('httpMethod'),
        'resource': event.get('resource'),
        'pathParameters': event.get('pathParameters'),
        'query': event.get('queryStringParameters'),
        'caller': claims.get('sub'),
        'groups': claims.get('cognito:groups'),
        'awsRequestId': request_context.get('requestId'),
    }


def log_event(event: dict) -> None:
    """Log the incoming Lambda event."""
    try:
        logger.info(f"Lambda event: {json.dumps(event_summary(event), default=str)}")
    except (TypeError, ValueError, AttributeError) as e:
        logger.warning(f"Could not log event: {e}")
