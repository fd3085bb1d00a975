"""
Submission rules for new testing requests.
Validates the customer's form input, prices the scope and builds the NEW request.
"""
import uuid
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from shared.errors import InsufficientTokens, ValidationError
from shared.models import RequestStatus, TestingRequest, now_utc, parse_timestamp
from shared.token_cost import build_testing_scope, required_tokens


MIN_TITLE_LENGTH = 3
MIN_DESCRIPTION_LENGTH = 10
ARCHIVE_EXTENSIONS = ('.zip', '.rar', '.7z', '.tar', '.gz', '.bz2')


def _clean_types(testing_types: Optional[Iterable[Any]]) -> list:
    cleaned = []
    for value in testing_types or ():
        text = str(value).strip() if value is not None else ''
        if text and text not in cleaned:
            cleaned.append(text)
    return cleaned


def validate_archive_key(archive_key: Optional[str]) -> None:
    if archive_key and not str(archive_key).lower().endswith(ARCHIVE_EXTENSIONS):
        raise ValidationError(
            f"Unsupported archive type, expected one of: {', '.join(ARCHIVE_EXTENSIONS)}"
        )


def build_request(customer_id: str, title: str, description: str,
                  testing_types: Iterable[str],
                  scope_allocations: Optional[Mapping[str, int]] = None,
                  deadline: Any = None,
                  reference_url: Optional[str] = None,
                  archive_key: Optional[str] = None,
                  product_type: Optional[str] = None,
                  now: Optional[datetime] = None) -> TestingRequest:
    """
    Build a NEW testing request from submitted form fields.

    Raises:
        ValidationError: if a field is missing, too short or malformed
    """
    title = (title or '').strip()
    description = (description or '').strip()
    types = _clean_types(testing_types)

    if len(title) < MIN_TITLE_LENGTH:
        raise ValidationError(f"Title must be at least {MIN_TITLE_LENGTH} characters")
    if len(description) < MIN_DESCRIPTION_LENGTH:
        raise ValidationError(f"Description must be at least {MIN_DESCRIPTION_LENGTH} characters")
    if not types:
        raise ValidationError('Select at least one testing type')
    validate_archive_key(archive_key)

    try:
        desired_deadline = parse_timestamp(deadline)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid deadline: {deadline}")

    try:
        scope = build_testing_scope(types, scope_allocations)
    except (TypeError, ValueError):
        raise ValidationError('Scope allocations must be whole numbers of tokens')

    fee = required_tokens(types)
    now = now or now_utc()
    return TestingRequest(
        id=str(uuid.uuid4()),
        customer_id=customer_id,
        title=title,
        description=description,
        status=RequestStatus.NEW,
        created_at=now,
        updated_at=now,
        product_type=product_type.strip().upper() if product_type and product_type.strip() else None,
        desired_deadline=desired_deadline,
        testing_types=tuple(types),
        testing_scope=tuple(scope),
        requested_token_fee=fee if fee > 0 else None,
        reference_url=reference_url.strip() if reference_url and reference_url.strip() else None,
        archive_key=archive_key or None,
        version=0,
    )


def ensure_tokens(required: int, remaining: int) -> None:
    """Raise InsufficientTokens when the ledger balance cannot cover the fee."""
    if remaining < required:
        raise InsufficientTokens(required, remaining)
