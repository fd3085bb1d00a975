"""
File a bug report against a testing request.
POST /bug-reports
"""
from shared.auth import get_user_profile, is_admin, is_tester
from shared.errors import ValidationError
from shared.logging import log_event
from shared.repository import DynamoRequestRepository
from shared.service import RequestService
from shared.utils import error_response, format_response, parse_body

service = RequestService(DynamoRequestRepository())


def handler(event, context):
    log_event(event)

    if not (is_tester(event) or is_admin(event)):
        return format_response(403, {'error': 'Only testers can file bug reports'})

    try:
        body = parse_body(event)
        if not body.get('requestId'):
            raise ValidationError('requestId is required')
        report = service.create_bug_report(
            body['requestId'],
            title=body.get('title') or '',
            description=body.get('description') or '',
            severity=body.get('severity'),
            status=body.get('status'),
            tester=get_user_profile(event),
        )
    except Exception as e:
        return error_response(e)

    return format_response(201, report.to_item())
