"""
Record a progress note on a request, optionally moving its status.
POST /testing-requests/{requestId}/updates

Body: {"note": "...", "status": "IN_PROGRESS", "assignToSelf": false}
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
        return format_response(403, {'error': 'Only staff can post request updates'})

    try:
        request_id = path_param(event, 'requestId')
        body = parse_body(event)
        note = (body.get('note') or '').strip()
        if not note:
            raise ValidationError('note is required')
        tester = get_user_profile(event) if body.get('assignToSelf') else None
        request = service.record_update(request_id, body.get('status'), note, tester)
    except Exception as e:
        return error_response(e)

    return format_response(201, request.to_item())
