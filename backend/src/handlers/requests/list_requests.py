"""
List testing requests with their derived dashboard fields.
GET /testing-requests/details

Staff and testers see every request (staff may narrow with ?customerId=);
customers only ever see their own.
"""
from shared.auth import get_user_sub, is_admin, is_tester
from shared.logging import log_event
from shared.repository import DynamoRequestRepository
from shared.service import RequestService
from shared.utils import error_response, format_response, query_param

service = RequestService(DynamoRequestRepository())


def handler(event, context):
    log_event(event)

    user_id = get_user_sub(event)
    if not user_id:
        return format_response(401, {'error': 'Unauthorized'})

    if is_admin(event):
        customer_id = query_param(event, 'customerId')
    elif is_tester(event):
        customer_id = None
    else:
        customer_id = user_id

    try:
        dashboard = service.dashboard(customer_id)
    except Exception as e:
        return error_response(e)

    return format_response(200, dashboard)
