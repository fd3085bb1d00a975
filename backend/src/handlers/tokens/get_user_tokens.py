"""
Handler to get the current user's token balance.
GET /user-tokens/me
"""
from shared.auth import get_user_sub
from shared.logging import log_event
from shared.repository import DynamoRequestRepository
from shared.service import RequestService
from shared.token_cost import TOKEN_COST_REFERENCE
from shared.utils import error_response, format_response

service = RequestService(DynamoRequestRepository())


def handler(event, context):
    log_event(event)

    user_id = get_user_sub(event)
    if not user_id:
        return format_response(401, {'error': 'Unauthorized'})

    try:
        balance = service.user_tokens(user_id)
    except Exception as e:
        return error_response(e)

    return format_response(200, dict(balance, costReference=TOKEN_COST_REFERENCE))
