"""
Comment on an existing bug report.
POST /bug-reports/{bugReportId}/comments
"""
from shared.auth import get_user_sub
from shared.logging import log_event
from shared.repository import DynamoRequestRepository
from shared.service import RequestService
from shared.utils import error_response, format_response, parse_body, path_param

service = RequestService(DynamoRequestRepository())


def handler(event, context):
    log_event(event)

    user_id = get_user_sub(event)
    if not user_id:
        return format_response(401, {'error': 'Unauthorized'})

    try:
        bug_report_id = path_param(event, 'bugReportId')
        comment = parse_body(event).get('comment') or ''
        report = service.add_bug_comment(bug_report_id, user_id, comment)
    except Exception as e:
        return error_response(e)

    return format_response(201, report.to_item())
