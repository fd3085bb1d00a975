"""
Request/response helpers for the API Gateway Lambda handlers.
"""
import json
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from shared.errors import LifecycleError, ValidationError
from shared.logging import logger


CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Credentials': True,
    'Content-Type': 'application/json'
}


class ResponseEncoder(json.JSONEncoder):
    """JSON encoder for DynamoDB numbers and model timestamps."""

    def default(self, o):
        if isinstance(o, Decimal):
            # Prices keep their cents, counts stay integers
            return int(o) if o == o.to_integral_value() else float(o)
        if isinstance(o, datetime):
            return o.isoformat()
        return super().default(o)


def format_response(status_code: int, body: Any,
                    headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    Format an API Gateway proxy response with CORS headers.

    Args:
        status_code: HTTP status code
        body: Response body (will be JSON serialized)
        headers: Additional headers to include

    Returns:
        API Gateway response dict
    """
    return {
        'statusCode': status_code,
        'headers': dict(CORS_HEADERS, **(headers or {})),
        'body': json.dumps(body, cls=ResponseEncoder)
    }


def error_response(error: Exception) -> Dict[str, Any]:
    """
    Map a raised error onto an API Gateway response.

    Lifecycle errors carry their own status code and a machine-readable
    `code` (the quote/claim reason, or else the error class); anything else
    is logged with its traceback and returned as a bare 500.
    """
    if isinstance(error, LifecycleError):
        body = {
            'error': str(error),
            'code': getattr(error, 'reason', type(error).__name__),
        }
        if error.status_code >= 409:
            logger.warning(f"{type(error).__name__}: {error}")
        return format_response(error.status_code, body)

    logger.error(f"Unhandled error: {error}", exc_info=error)
    return format_response(500, {'error': 'Internal Server Error'})


def parse_body(event: dict) -> Dict[str, Any]:
    """
    Parse the JSON object body of an API Gateway event.

    A missing body reads as {}.

    Raises:
        ValidationError: if the body is not valid JSON or not an object
    """
    body = event.get('body')
    if body is None or body == '':
        return {}
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except json.JSONDecodeError:
            raise ValidationError('Invalid JSON body')
    if not isinstance(body, dict):
        raise ValidationError('Request body must be a JSON object')
    return body


def path_param(event: dict, name: str) -> str:
    """Required path parameter; raises ValidationError when absent."""
    value = (event.get('pathParameters') or {}).get(name)
    if not value:
        raise ValidationError(f"{name} is required")
    return value


def query_param(event: dict, name: str, default: Optional[str] = None) -> Optional[str]:
    params = event.get('queryStringParameters') or {}
    return params.get(name, default)
