"""
Confirm a reviewed request as completed.
POST /testing-requests/{requestId}/complete
"""
from shared.auth import get_user_profile, get_user_sub, is_admin
from shared.logging import log_event
from shared.repository import DynamoRequestRepository
from shared.service import RequestService
from shared.utils import error_response, format_response, path_param

service = RequestService(DynamoRequestRepository())


def handler(event, context):
    log_event(event)

    user_id = get_user_sub(event)
    if not user_id:
        return format_response(401, {'error': 'Unauthorized'})

    # Staff complete any request, customers only their own
    owner = None if is_admin(event) else user_id

    try:
        request = service.complete(path_param(event, 'requestId'), customer_id=owner,
                                   actor=get_user_profile(event))
    except Exception as e:
        return error_response(e)

    return format_response(200, request.to_item())
