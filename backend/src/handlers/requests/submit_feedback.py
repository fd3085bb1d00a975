"""
Leave a rating on a completed request.
POST /testing-requests/{requestId}/feedback
"""
from shared.auth import get_user_sub
from shared.logging import log_event
from shared.repository import DynamoRequestRepository
from shared.service import RequestService
from shared.utils import error_response, format_response, parse_body, path_param

service = RequestService(DynamoRequestRepository())


def handler(event, context):
    log_event(event)

    customer_id = get_user_sub(event)
    if not customer_id:
        return format_response(401, {'error': 'Unauthorized'})

    try:
        request_id = path_param(event, 'requestId')
        body = parse_body(event)
        request = service.submit_feedback(request_id, customer_id, body.get('rating'), body.get('comment'))
    except Exception as e:
        return error_response(e)

    return format_response(200, request.to_item())
