"""
Transition validator for the testing request lifecycle.

Legal moves are an explicit whitelist; nothing is inferred from progress weights.
"""
from datetime import datetime
from typing import Dict, FrozenSet, Optional

from shared.errors import InvalidTransitionError
from shared.models import RequestStatus, TestingRequest, now_utc
from shared.status_catalog import DEFAULT_CATALOG, StatusCatalog


ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    RequestStatus.NEW: frozenset({RequestStatus.PENDING, RequestStatus.CANCELLED}),
    # A quote may be sent while PENDING without leaving the status
    RequestStatus.PENDING: frozenset({RequestStatus.CANCELLED}),
    RequestStatus.WAITING_CUSTOMER: frozenset({RequestStatus.CANCELLED, RequestStatus.EXPIRED}),
    RequestStatus.IN_PROGRESS: frozenset({RequestStatus.READY_FOR_REVIEW, RequestStatus.CANCELLED}),
    RequestStatus.READY_FOR_REVIEW: frozenset({RequestStatus.COMPLETED}),
    RequestStatus.COMPLETED: frozenset(),
    RequestStatus.CANCELLED: frozenset(),
    RequestStatus.EXPIRED: frozenset(),
}


def _code(value: Optional[str]) -> str:
    return str(value or '').strip().upper()


def allowed_next(code: str) -> FrozenSet[str]:
    """Statuses reachable from `code`; empty for terminal and unlisted codes."""
    return ALLOWED_TRANSITIONS.get(_code(code), frozenset())


def can_transition(from_status: str, to_status: str,
                   catalog: StatusCatalog = DEFAULT_CATALOG) -> bool:
    source, target = _code(from_status), _code(to_status)
    if source == target:
        return False
    if catalog.is_terminal(source):
        return False
    return target in allowed_next(source)


def validate_transition(from_status: str, to_status: str,
                        catalog: StatusCatalog = DEFAULT_CATALOG) -> None:
    if not can_transition(from_status, to_status, catalog):
        raise InvalidTransitionError(_code(from_status), _code(to_status))


def transition(request: TestingRequest, to_status: str,
               catalog: StatusCatalog = DEFAULT_CATALOG,
               now: Optional[datetime] = None) -> TestingRequest:
    """
    Move a request to `to_status`.

    Raises:
        InvalidTransitionError: if the move is not whitelisted, is a no-op,
            or starts from a terminal status
    """
    validate_transition(request.status, to_status, catalog)
    return request.with_changes(
        status=_code(to_status),
        updated_at=now or now_utc(),
    )
