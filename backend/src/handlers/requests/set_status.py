"""
Move a request to another status (staff only).
POST /testing-requests/{requestId}/status
"""
from shared.auth import get_user_profile, is_admin
from shared.errors import ValidationError
from shared.logging import log_event
from shared.repository import DynamoRequestRepository
from shared.service import RequestService
from shared.utils import error_response, format_response, parse_body, path_param

service = RequestService(DynamoRequestRepository())


def handler(event, context):
    log_event(event)

    if not is_admin(event):
        return format_response(403, {'error': 'Only staff can change request status'})

    try:
        request_id = path_param(event, 'requestId')
        body = parse_body(event)
        if not body.get('status'):
            raise ValidationError('status is required')
        request = service.set_status(request_id, body['status'], body.get('note') or '', get_user_profile(event))
    except Exception as e:
        return error_response(e)

    return format_response(200, request.to_item())
