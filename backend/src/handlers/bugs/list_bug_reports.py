"""
List bug reports, newest first.
GET /bug-reports[?requestId=...]
"""
from shared.auth import get_user_sub
from shared.logging import log_event
from shared.models import serialize_many
from shared.repository import DynamoRequestRepository
from shared.service import RequestService
from shared.utils import error_response, format_response, query_param

service = RequestService(DynamoRequestRepository())


def handler(event, context):
    log_event(event)

    if not get_user_sub(event):
        return format_response(401, {'error': 'Unauthorized'})

    try:
        reports = service.bug_reports(query_param(event, 'requestId'))
    except Exception as e:
        return error_response(e)

    return format_response(200, {'bugReports': serialize_many(reports)})
