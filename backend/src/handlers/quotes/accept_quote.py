"""
Accept the quote on one of the caller's requests.
POST /testing-requests/{requestId}/quote/accept
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
        customer_notes = parse_body(event).get('customerNotes')
        request = service.accept_quote(request_id, customer_id, customer_notes)
    except Exception as e:
        return error_response(e)

    return format_response(200, request.to_item())
