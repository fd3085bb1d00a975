"""
Claim an unassigned request for the calling tester.
POST /testing-requests/{requestId}/claim

Concurrent claims race on the request version; exactly one wins and the
others get 409 AlreadyAssigned.
"""
from shared.auth import get_user_profile, is_admin, is_tester
from shared.logging import log_event
from shared.repository import DynamoRequestRepository
from shared.service import RequestService
from shared.utils import error_response, format_response, path_param

service = RequestService(DynamoRequestRepository())


def handler(event, context):
    log_event(event)

    if not (is_tester(event) or is_admin(event)):
        return format_response(403, {'error': 'Only testers can claim requests'})

    try:
        request = service.claim(path_param(event, 'requestId'), get_user_profile(event))
    except Exception as e:
        return error_response(e)

    return format_response(200, request.to_item())
