"""
Quote, claim and status-update rules for testing requests.

Each operation takes an immutable request snapshot and returns the new
snapshot (plus the event to append, where the action records one). Failures
are raised as the typed errors in shared.errors. Persisting the result
atomically is the job of shared.service.
"""
import uuid
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Tuple

from shared.derivation import display_name
from shared.errors import (
    ClaimError, ClaimErrorReason, InvalidTransitionError,
    QuoteError, QuoteErrorReason, ValidationError,
)
from shared.models import (
    Feedback, Quote, RequestStatus, Tester, TestingRequest, TestingUpdate,
    UNASSIGNED, now_utc,
)
from shared.status_catalog import DEFAULT_CATALOG, StatusCatalog
from shared.transitions import transition


MIN_RATING = 1
MAX_RATING = 5


def new_update(request: TestingRequest, status: str, note: str,
               tester: Optional[Tester] = None,
               now: Optional[datetime] = None) -> TestingUpdate:
    return TestingUpdate(
        id=str(uuid.uuid4()),
        request_id=request.id,
        status=status,
        note=note or '',
        created_at=now or now_utc(),
        tester=tester,
    )


def _parse_amount(amount: Any) -> Decimal:
    if amount is None or isinstance(amount, bool):
        raise QuoteError(QuoteErrorReason.INVALID_AMOUNT)
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        raise QuoteError(QuoteErrorReason.INVALID_AMOUNT)
    if not value.is_finite() or value <= 0:
        raise QuoteError(QuoteErrorReason.INVALID_AMOUNT)
    return value


def _parse_expiry_days(expiry_days: Any) -> Optional[int]:
    # Blank or zero means the quote never expires
    if expiry_days is None or expiry_days == '':
        return None
    try:
        days = int(str(expiry_days).strip())
    except ValueError:
        raise QuoteError(QuoteErrorReason.INVALID_EXPIRY)
    if days < 0:
        raise QuoteError(QuoteErrorReason.INVALID_EXPIRY)
    return days or None


def send_quote(request: TestingRequest, amount: Any, currency: Optional[str],
               expiry_days: Any = None, notes: Optional[str] = None,
               now: Optional[datetime] = None) -> TestingRequest:
    """
    Attach a quote to a PENDING request, replacing any previous quote.

    Raises:
        QuoteError: InvalidAmount, MissingCurrency, InvalidExpiry or WrongStatus
    """
    price = _parse_amount(amount)
    if not currency or not str(currency).strip():
        raise QuoteError(QuoteErrorReason.MISSING_CURRENCY)
    days = _parse_expiry_days(expiry_days)
    if request.status != RequestStatus.PENDING:
        raise QuoteError(QuoteErrorReason.WRONG_STATUS)

    now = now or now_utc()
    try:
        expiry_at = now + timedelta(days=days) if days else None
    except OverflowError:
        raise QuoteError(QuoteErrorReason.INVALID_EXPIRY)
    quote = Quote(
        price=price,
        currency=str(currency).strip().upper(),
        notes=notes.strip() if notes and notes.strip() else None,
        sent_at=now,
        expiry_at=expiry_at,
        accepted_at=None,
    )
    return request.with_changes(quote=quote, updated_at=now)


def accept_quote(request: TestingRequest, customer_notes: Optional[str] = None,
                 catalog: StatusCatalog = DEFAULT_CATALOG,
                 now: Optional[datetime] = None) -> TestingRequest:
    """
    Record the customer's acceptance of the active quote.

    Accepting an already accepted quote returns the request unchanged.

    Raises:
        QuoteError: NoActiveQuote, WrongStatus (closed request) or Expired
    """
    if request.quote is None:
        raise QuoteError(QuoteErrorReason.NO_ACTIVE_QUOTE)
    if catalog.is_terminal(request.status):
        raise QuoteError(QuoteErrorReason.WRONG_STATUS)

    now = now or now_utc()
    if request.quote.is_expired(now):
        raise QuoteError(QuoteErrorReason.EXPIRED)
    if request.quote.accepted_at is not None:
        return request

    accepted = Quote(
        price=request.quote.price,
        currency=request.quote.currency,
        notes=request.quote.notes,
        sent_at=request.quote.sent_at,
        expiry_at=request.quote.expiry_at,
        accepted_at=now,
        customer_notes=customer_notes.strip() if customer_notes and customer_notes.strip() else None,
    )
    return request.with_changes(quote=accepted, updated_at=now)


def claim(request: TestingRequest, tester: Tester,
          catalog: StatusCatalog = DEFAULT_CATALOG,
          now: Optional[datetime] = None) -> Tuple[TestingRequest, TestingUpdate]:
    """
    Self-assign a tester to an unassigned, open request.

    Raises:
        ClaimError: AlreadyAssigned or Terminal
    """
    if request.assigned_tester_id:
        raise ClaimError(ClaimErrorReason.ALREADY_ASSIGNED, request.id)
    if catalog.is_terminal(request.status):
        raise ClaimError(ClaimErrorReason.TERMINAL, request.id)

    now = now or now_utc()
    name = display_name(tester)
    if name == UNASSIGNED:
        name = tester.id
    claimed = request.with_changes(assigned_tester_id=tester.id, updated_at=now)
    update = new_update(claimed, RequestStatus.IN_PROGRESS, f"Claimed by {name}", tester, now)
    return claimed, update


def mark_ready_for_review(request: TestingRequest,
                          catalog: StatusCatalog = DEFAULT_CATALOG,
                          now: Optional[datetime] = None) -> TestingRequest:
    return transition(request, RequestStatus.READY_FOR_REVIEW, catalog, now)


def complete(request: TestingRequest,
             catalog: StatusCatalog = DEFAULT_CATALOG,
             now: Optional[datetime] = None) -> TestingRequest:
    return transition(request, RequestStatus.COMPLETED, catalog, now)


def record_update(request: TestingRequest, status: Optional[str], note: str,
                  tester: Optional[Tester] = None,
                  catalog: StatusCatalog = DEFAULT_CATALOG,
                  now: Optional[datetime] = None) -> Tuple[TestingRequest, TestingUpdate]:
    """
    Staff status update, optionally (re)assigning a tester.

    A status equal to the current one records a note-only update; any other
    status must pass the transition whitelist. Naming a tester is the
    authorized reassignment path and overrides an earlier claim.

    Raises:
        InvalidTransitionError: illegal move, or any change to a closed request
    """
    now = now or now_utc()
    target = str(status or request.status).strip().upper()
    if catalog.is_terminal(request.status):
        raise InvalidTransitionError(request.status, target)

    if target != request.status:
        updated = transition(request, target, catalog, now)
    else:
        updated = request.with_changes(updated_at=now)

    if tester is not None:
        updated = updated.with_changes(assigned_tester_id=tester.id)

    return updated, new_update(updated, target, note, tester, now)


def submit_feedback(request: TestingRequest, rating: Any, comment: Optional[str] = None,
                    now: Optional[datetime] = None) -> TestingRequest:
    if request.status != RequestStatus.COMPLETED:
        raise ValidationError('Feedback can only be left on completed requests')
    try:
        value = int(rating)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError('Rating must be a whole number')
    if isinstance(rating, (float, Decimal)) and value != rating:
        raise ValidationError('Rating must be a whole number')
    if isinstance(rating, bool) or not MIN_RATING <= value <= MAX_RATING:
        raise ValidationError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")

    now = now or now_utc()
    feedback = Feedback(
        rating=value,
        comment=comment.strip() if comment and comment.strip() else None,
        submitted_at=now,
    )
    return request.with_changes(feedback=feedback, updated_at=now)
