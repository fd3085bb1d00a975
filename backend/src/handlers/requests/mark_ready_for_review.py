"""
Hand a request in progress over to the customer for review.
POST /testing-requests/{requestId}/ready-for-review
"""
from shared.auth import get_user_profile, is_admin, is_tester
from shared.logging import log_event
from shared.repository import DynamoRequestRepository
from shared.service import RequestService
from shared.utils import error_response, format_response, parse_body, path_param

service = RequestService(DynamoRequestRepository())


def handler(event, context):
    log_event(event)

    if not (is_tester(event) or is_admin(event)):
        return format_response(403, {'error': 'Only testers can mark requests ready for review'})

    # Staff may hand over any request; testers only the ones assigned to them
    actor = None if is_admin(event) else get_user_profile(event)

    try:
        request_id = path_param(event, 'requestId')
        note = parse_body(event).get('note') or ''
        request = service.mark_ready_for_review(request_id, actor, note)
    except Exception as e:
        return error_response(e)

    return format_response(200, request.to_item())
