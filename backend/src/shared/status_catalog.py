"""
Status catalog - lifecycle status codes, labels, progress weights and terminal flags.
"""
import re
from typing import Any, Dict, Iterable, List, Optional

from shared.models import DisplayBucket, RequestStatus, StatusDefinition


UNKNOWN_STATUS = StatusDefinition(
    code=RequestStatus.UNKNOWN,
    label='Pending',
    description='Awaiting next action',
    progress_weight=20,
    terminal=False,
    display_bucket=DisplayBucket.PENDING,
)

DEFAULT_STATUS_DEFINITIONS = (
    StatusDefinition(RequestStatus.NEW, 'New', 'Submitted and awaiting triage',
                     10, False, DisplayBucket.PENDING),
    StatusDefinition(RequestStatus.PENDING, 'Pending', 'Triaged, quote in preparation',
                     20, False, DisplayBucket.PENDING),
    StatusDefinition(RequestStatus.WAITING_CUSTOMER, 'Waiting Customer', 'Waiting on the customer',
                     45, False, DisplayBucket.IN_PROGRESS),
    StatusDefinition(RequestStatus.IN_PROGRESS, 'In Progress', 'Testers are working on it',
                     65, False, DisplayBucket.IN_PROGRESS),
    StatusDefinition(RequestStatus.READY_FOR_REVIEW, 'Ready For Review', 'Results ready for customer review',
                     85, False, DisplayBucket.IN_PROGRESS),
    StatusDefinition(RequestStatus.COMPLETED, 'Completed', 'Testing completed',
                     100, True, DisplayBucket.COMPLETED),
    StatusDefinition(RequestStatus.CANCELLED, 'Cancelled', 'Request cancelled',
                     20, True, DisplayBucket.FAILED),
    StatusDefinition(RequestStatus.EXPIRED, 'Expired', 'Quote or request expired',
                     20, True, DisplayBucket.FAILED),
)

# Canonical lifecycle order for sorting status options
STATUS_ORDER = [
    RequestStatus.NEW,
    RequestStatus.PENDING,
    RequestStatus.WAITING_CUSTOMER,
    RequestStatus.IN_PROGRESS,
    RequestStatus.READY_FOR_REVIEW,
    RequestStatus.COMPLETED,
    RequestStatus.CANCELLED,
    RequestStatus.EXPIRED,
]


def humanize_status(value: Optional[str]) -> str:
    """READY_FOR_REVIEW -> 'Ready For Review'."""
    if not value:
        return 'Unknown'
    words = re.sub(r'[_-]+', ' ', str(value)).lower()
    return re.sub(r'\b\w', lambda m: m.group(0).upper(), words)


def _derive_bucket(terminal: bool, progress_weight: int) -> str:
    if terminal:
        return DisplayBucket.COMPLETED if progress_weight >= 100 else DisplayBucket.FAILED
    if progress_weight <= 20:
        return DisplayBucket.PENDING
    return DisplayBucket.IN_PROGRESS


def _clamp_weight(value: Any) -> int:
    return max(0, min(100, int(value)))


class StatusCatalog:
    """
    Immutable lookup table of status definitions.

    Lookups are case-insensitive and never fail: unknown codes resolve to
    UNKNOWN_STATUS so a status the backend adds before the catalog knows it
    still renders.
    """

    def __init__(self, definitions: Iterable[StatusDefinition]):
        self._by_code: Dict[str, StatusDefinition] = {
            d.code.upper(): d for d in definitions
        }

    @classmethod
    def default(cls) -> 'StatusCatalog':
        return cls(DEFAULT_STATUS_DEFINITIONS)

    @classmethod
    def from_items(cls, items: Iterable[Dict[str, Any]]) -> 'StatusCatalog':
        """
        Build a catalog from stored rows.

        Rows without a code are skipped; rows without a display bucket get one
        derived from their terminal flag and weight.
        """
        definitions = []
        for item in items:
            code = str(item.get('code') or '').strip().upper()
            if not code:
                continue
            weight = _clamp_weight(item.get('progress', item.get('progressWeight', UNKNOWN_STATUS.progress_weight)))
            terminal = bool(item.get('terminal', False))
            definitions.append(StatusDefinition(
                code=code,
                label=item.get('label') or humanize_status(code),
                description=item.get('description') or '',
                progress_weight=weight,
                terminal=terminal,
                display_bucket=item.get('displayBucket') or _derive_bucket(terminal, weight),
            ))
        return cls(definitions)

    def lookup(self, code: Optional[str]) -> StatusDefinition:
        if not code:
            return UNKNOWN_STATUS
        return self._by_code.get(str(code).upper(), UNKNOWN_STATUS)

    def is_known(self, code: Optional[str]) -> bool:
        return bool(code) and str(code).upper() in self._by_code

    def is_terminal(self, code: Optional[str]) -> bool:
        return self.lookup(code).terminal

    def label(self, code: Optional[str]) -> str:
        if self.is_known(code):
            return self.lookup(code).label
        return humanize_status(code)

    def progress_weight(self, code: Optional[str]) -> int:
        return self.lookup(code).progress_weight

    def display_bucket(self, code: Optional[str]) -> str:
        return self.lookup(code).display_bucket

    def ordered(self) -> List[StatusDefinition]:
        def sort_key(definition: StatusDefinition):
            try:
                return STATUS_ORDER.index(definition.code)
            except ValueError:
                return len(STATUS_ORDER)
        return sorted(self._by_code.values(), key=sort_key)

    def __contains__(self, code: str) -> bool:
        return self.is_known(code)

    def __len__(self) -> int:
        return len(self._by_code)


DEFAULT_CATALOG = StatusCatalog.default()
