"""
Append a test execution log line to a request.
POST /testing-requests/{requestId}/logs
"""
from shared.auth import is_admin, is_tester
from shared.logging import log_event
from shared.repository import DynamoRequestRepository
from shared.service import RequestService
from shared.utils import error_response, format_response, parse_body, path_param

service = RequestService(DynamoRequestRepository())


def handler(event, context):
    log_event(event)

    if not (is_tester(event) or is_admin(event)):
        return format_response(403, {'error': 'Only testers can write test logs'})

    try:
        request_id = path_param(event, 'requestId')
        body = parse_body(event)
        log = service.create_test_log(request_id, body.get('level'), body.get('message') or '')
    except Exception as e:
        return error_response(e)

    return format_response(201, log.to_item())
