"""
Send a price quote for a pending request (staff only).
POST /testing-requests/{requestId}/quote

Body: {"amount": 1200, "currency": "EUR", "expiryDays": 14, "notes": "..."}
When the currency field is omitted the configured default is used; an
explicitly empty currency is rejected.
"""
from shared.auth import is_admin
from shared.config import config
from shared.logging import log_event
from shared.repository import DynamoRequestRepository
from shared.service import RequestService
from shared.utils import error_response, format_response, parse_body, path_param

service = RequestService(DynamoRequestRepository())


def handler(event, context):
    log_event(event)

    if not is_admin(event):
        return format_response(403, {'error': 'Only staff can send quotes'})

    try:
        request_id = path_param(event, 'requestId')
        body = parse_body(event)
        request = service.send_quote(
            request_id,
            amount=body.get('amount'),
            currency=body.get('currency', config.DEFAULT_QUOTE_CURRENCY),
            expiry_days=body.get('expiryDays'),
            notes=body.get('notes'),
        )
    except Exception as e:
        return error_response(e)

    return format_response(200, request.to_item())
