"""
Return the status catalog in lifecycle order.
GET /testing-requests/statuses
"""
from shared.logging import log_event
from shared.repository import DynamoRequestRepository
from shared.service import RequestService
from shared.utils import error_response, format_response

service = RequestService(DynamoRequestRepository())


def handler(event, context):
    log_event(event)

    try:
        statuses = service.status_options()
    except Exception as e:
        return error_response(e)

    return format_response(200, {'statuses': statuses})
