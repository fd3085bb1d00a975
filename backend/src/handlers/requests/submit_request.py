"""
Submit a new testing request.
POST /testing-requests

The token fee for the selected testing types is charged from the caller's
ledger in the same transaction that stores the request.
"""
from shared.auth import get_user_sub
from shared.logging import logger, log_event
from shared.repository import DynamoRequestRepository
from shared.service import RequestService
from shared.utils import error_response, format_response, parse_body

service = RequestService(DynamoRequestRepository())


def handler(event, context):
    log_event(event)

    customer_id = get_user_sub(event)
    if not customer_id:
        return format_response(401, {'error': 'Unauthorized'})

    try:
        body = parse_body(event)
        request = service.submit_request(
            customer_id=customer_id,
            title=body.get('title'),
            description=body.get('description'),
            testing_types=body.get('testingTypes') or [],
            scope_allocations=body.get('scopeAllocations'),
            deadline=body.get('desiredDeadline'),
            reference_url=body.get('referenceUrl'),
            archive_key=body.get('archiveKey'),
            product_type=body.get('productType'),
        )
    except Exception as e:
        return error_response(e)

    logger.info(f"Request {request.id} submitted by {customer_id} for {request.requested_token_fee or 0} tokens")
    return format_response(201, request.to_item())
