"""
Data models and status constants for the testing request platform.
Based on the request lifecycle: New → Pending → (quote) → In Progress → Ready For Review → Completed
"""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple


class RequestStatus:
    """Testing request lifecycle statuses."""
    NEW = 'NEW'
    PENDING = 'PENDING'
    WAITING_CUSTOMER = 'WAITING_CUSTOMER'
    IN_PROGRESS = 'IN_PROGRESS'
    READY_FOR_REVIEW = 'READY_FOR_REVIEW'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'
    EXPIRED = 'EXPIRED'
    UNKNOWN = 'UNKNOWN'  # Catalog fallback, never stored on a request


class DisplayBucket:
    """Coarse customer-facing status buckets."""
    PENDING = 'pending'
    IN_PROGRESS = 'in-progress'
    COMPLETED = 'completed'
    FAILED = 'failed'


class Severity:
    """Bug report severities, most critical first."""
    CRITICAL = 'CRITICAL'
    HIGH = 'HIGH'
    MEDIUM = 'MEDIUM'
    LOW = 'LOW'

    ALL = (CRITICAL, HIGH, MEDIUM, LOW)


class Priority:
    """Derived request priorities."""
    URGENT = 'urgent'
    HIGH = 'high'
    MEDIUM = 'medium'
    LOW = 'low'


class BugStatus:
    """Bug report statuses."""
    OPEN = 'OPEN'
    IN_PROGRESS = 'IN_PROGRESS'
    RESOLVED = 'RESOLVED'
    CLOSED = 'CLOSED'

    ALL = (OPEN, IN_PROGRESS, RESOLVED, CLOSED)


class LogLevel:
    """Test log levels."""
    DEBUG = 'DEBUG'
    INFO = 'INFO'
    WARN = 'WARN'
    ERROR = 'ERROR'

    ALL = (DEBUG, INFO, WARN, ERROR)


class PlanType:
    """Token ledger plan types."""
    FREE = 'FREE'
    PRO = 'PRO'
    ENTERPRISE = 'ENTERPRISE'


UNASSIGNED = 'Unassigned'


# =================================================================
# Timestamp helpers
# =================================================================

def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a stored timestamp.

    Accepts datetimes, ISO-8601 strings (including a trailing 'Z') and epoch
    seconds (int, Decimal or numeric string, as older items store them).
    Naive values are treated as UTC.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float, Decimal)):
        parsed = datetime.fromtimestamp(float(value), tz=timezone.utc)
    else:
        text = str(value).strip()
        if text.isdigit():
            parsed = datetime.fromtimestamp(int(text), tz=timezone.utc)
        else:
            if text.endswith('Z'):
                text = text[:-1] + '+00:00'
            parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _compact(item: Dict[str, Any]) -> Dict[str, Any]:
    """Drop unset attributes so DynamoDB items stay sparse."""
    return {k: v for k, v in item.items() if v is not None}


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == '':
        return None
    return int(value)


# =================================================================
# Entities
# =================================================================

@dataclass(frozen=True)
class Tester:
    """Profile of a tester (or any platform user) as embedded in events."""
    __test__ = False

    id: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    def to_item(self) -> Dict[str, Any]:
        return _compact({
            'id': self.id,
            'username': self.username,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'fullName': self.full_name,
            'email': self.email,
            'phone': self.phone,
        })

    @classmethod
    def from_item(cls, item: Optional[Dict[str, Any]]) -> Optional['Tester']:
        if not item or not item.get('id'):
            return None
        return cls(
            id=str(item['id']),
            username=item.get('username'),
            first_name=item.get('firstName'),
            last_name=item.get('lastName'),
            full_name=item.get('fullName'),
            email=item.get('email'),
            phone=item.get('phone'),
        )


@dataclass(frozen=True)
class StatusDefinition:
    code: str
    label: str
    description: str = ''
    progress_weight: int = 20
    terminal: bool = False
    display_bucket: str = DisplayBucket.PENDING

    def to_item(self) -> Dict[str, Any]:
        return {
            'code': self.code,
            'label': self.label,
            'description': self.description,
            'progress': self.progress_weight,
            'terminal': self.terminal,
            'displayBucket': self.display_bucket,
        }


@dataclass(frozen=True)
class ScopeItem:
    """One testing-type selection of a request's scope and its token allocation."""
    type: str
    tokens: int

    def to_item(self) -> Dict[str, Any]:
        return {'type': self.type, 'tokens': self.tokens}


@dataclass(frozen=True)
class Quote:
    price: Decimal
    currency: str
    sent_at: datetime
    notes: Optional[str] = None
    expiry_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    customer_notes: Optional[str] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expiry_at is not None and now > self.expiry_at

    def to_item(self) -> Dict[str, Any]:
        return _compact({
            'price': self.price,
            'currency': self.currency,
            'notes': self.notes,
            'sentAt': format_timestamp(self.sent_at),
            'expiryAt': format_timestamp(self.expiry_at),
            'acceptedAt': format_timestamp(self.accepted_at),
            'customerNotes': self.customer_notes,
        })

    @classmethod
    def from_item(cls, item: Optional[Dict[str, Any]]) -> Optional['Quote']:
        if not item:
            return None
        return cls(
            price=Decimal(str(item['price'])),
            currency=item['currency'],
            sent_at=parse_timestamp(item['sentAt']),
            notes=item.get('notes'),
            expiry_at=parse_timestamp(item.get('expiryAt')),
            accepted_at=parse_timestamp(item.get('acceptedAt')),
            customer_notes=item.get('customerNotes'),
        )


@dataclass(frozen=True)
class Feedback:
    rating: int
    submitted_at: datetime
    comment: Optional[str] = None

    def to_item(self) -> Dict[str, Any]:
        return _compact({
            'rating': self.rating,
            'comment': self.comment,
            'submittedAt': format_timestamp(self.submitted_at),
        })

    @classmethod
    def from_item(cls, item: Optional[Dict[str, Any]]) -> Optional['Feedback']:
        if not item:
            return None
        return cls(
            rating=int(item['rating']),
            comment=item.get('comment'),
            submitted_at=parse_timestamp(item.get('submittedAt')),
        )


@dataclass(frozen=True)
class TestingRequest:
    """
    Aggregate root for a customer's testing request.

    Instances are immutable snapshots: every lifecycle operation returns a new
    instance via `dataclasses.replace`. `version` is the optimistic concurrency
    token checked by the store on save.
    """
    __test__ = False  # not a pytest test class

    id: str
    customer_id: str
    title: str
    description: str
    status: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    product_type: Optional[str] = None
    desired_deadline: Optional[datetime] = None
    testing_types: Tuple[str, ...] = ()
    testing_scope: Tuple[ScopeItem, ...] = ()
    requested_token_fee: Optional[int] = None
    reference_url: Optional[str] = None
    archive_key: Optional[str] = None
    quote: Optional[Quote] = None
    assigned_tester_id: Optional[str] = None
    feedback: Optional[Feedback] = None
    version: int = 0

    def with_changes(self, **changes) -> 'TestingRequest':
        return replace(self, **changes)

    def to_item(self) -> Dict[str, Any]:
        return _compact({
            'requestId': self.id,
            'customerId': self.customer_id,
            'title': self.title,
            'description': self.description,
            'status': self.status,
            'createdAt': format_timestamp(self.created_at),
            'updatedAt': format_timestamp(self.updated_at),
            'productType': self.product_type,
            'desiredDeadline': format_timestamp(self.desired_deadline),
            'testingTypes': list(self.testing_types),
            'testingScope': [s.to_item() for s in self.testing_scope],
            'requestedTokenFee': self.requested_token_fee,
            'referenceUrl': self.reference_url,
            'archiveKey': self.archive_key,
            'quote': self.quote.to_item() if self.quote else None,
            'assignedTesterId': self.assigned_tester_id,
            'feedback': self.feedback.to_item() if self.feedback else None,
            'version': self.version,
        })

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> 'TestingRequest':
        return cls(
            id=item['requestId'],
            customer_id=item.get('customerId', ''),
            title=item.get('title', ''),
            description=item.get('description', ''),
            status=str(item.get('status') or RequestStatus.NEW).upper(),
            created_at=parse_timestamp(item['createdAt']),
            updated_at=parse_timestamp(item.get('updatedAt')),
            product_type=item.get('productType'),
            desired_deadline=parse_timestamp(item.get('desiredDeadline')),
            testing_types=tuple(item.get('testingTypes') or ()),
            testing_scope=tuple(
                ScopeItem(type=s['type'], tokens=int(s['tokens']))
                for s in item.get('testingScope') or ()
            ),
            requested_token_fee=_optional_int(item.get('requestedTokenFee')),
            reference_url=item.get('referenceUrl'),
            archive_key=item.get('archiveKey'),
            quote=Quote.from_item(item.get('quote')),
            assigned_tester_id=item.get('assignedTesterId'),
            feedback=Feedback.from_item(item.get('feedback')),
            version=int(item.get('version', 0)),
        )


@dataclass(frozen=True)
class TestingUpdate:
    """Append-only status/progress event recorded against a request."""
    __test__ = False

    id: str
    request_id: str
    status: str
    note: str
    created_at: datetime
    tester: Optional[Tester] = None

    @property
    def tester_id(self) -> Optional[str]:
        return self.tester.id if self.tester else None

    def to_item(self) -> Dict[str, Any]:
        return _compact({
            'updateId': self.id,
            'requestId': self.request_id,
            'status': self.status,
            'note': self.note,
            'createdAt': format_timestamp(self.created_at),
            'testerId': self.tester_id,
            'tester': self.tester.to_item() if self.tester else None,
        })

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> 'TestingUpdate':
        tester = Tester.from_item(item.get('tester'))
        if tester is None and item.get('testerId'):
            tester = Tester(id=str(item['testerId']))
        return cls(
            id=item['updateId'],
            request_id=item['requestId'],
            status=str(item.get('status') or '').upper(),
            note=item.get('note', ''),
            created_at=parse_timestamp(item['createdAt']),
            tester=tester,
        )


@dataclass(frozen=True)
class TestLog:
    __test__ = False

    id: str
    request_id: str
    level: str
    message: str
    created_at: datetime

    def to_item(self) -> Dict[str, Any]:
        return {
            'logId': self.id,
            'requestId': self.request_id,
            'level': self.level,
            'message': self.message,
            'createdAt': format_timestamp(self.created_at),
        }

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> 'TestLog':
        return cls(
            id=item['logId'],
            request_id=item['requestId'],
            level=str(item.get('level') or LogLevel.INFO).upper(),
            message=item.get('message', ''),
            created_at=parse_timestamp(item['createdAt']),
        )


@dataclass(frozen=True)
class BugComment:
    id: str
    commenter_id: str
    comment: str
    created_at: datetime

    def to_item(self) -> Dict[str, Any]:
        return {
            'commentId': self.id,
            'commenterId': self.commenter_id,
            'comment': self.comment,
            'createdAt': format_timestamp(self.created_at),
        }

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> 'BugComment':
        return cls(
            id=item['commentId'],
            commenter_id=item.get('commenterId', ''),
            comment=item.get('comment', ''),
            created_at=parse_timestamp(item['createdAt']),
        )


@dataclass(frozen=True)
class BugReport:
    id: str
    request_id: str
    title: str
    description: str
    severity: str
    status: str
    created_at: datetime
    tester: Optional[Tester] = None
    comments: Tuple[BugComment, ...] = field(default=())

    @property
    def tester_id(self) -> Optional[str]:
        return self.tester.id if self.tester else None

    def to_item(self) -> Dict[str, Any]:
        return _compact({
            'bugReportId': self.id,
            'requestId': self.request_id,
            'title': self.title,
            'description': self.description,
            'severity': self.severity,
            'status': self.status,
            'createdAt': format_timestamp(self.created_at),
            'testerId': self.tester_id,
            'tester': self.tester.to_item() if self.tester else None,
            'comments': [c.to_item() for c in self.comments],
        })

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> 'BugReport':
        tester = Tester.from_item(item.get('tester'))
        if tester is None and item.get('testerId'):
            tester = Tester(id=str(item['testerId']))
        return cls(
            id=item['bugReportId'],
            request_id=item.get('requestId', ''),
            title=item.get('title', ''),
            description=item.get('description', ''),
            severity=str(item.get('severity') or '').upper(),
            status=str(item.get('status') or BugStatus.OPEN).upper(),
            created_at=parse_timestamp(item['createdAt']),
            tester=tester,
            comments=tuple(BugComment.from_item(c) for c in item.get('comments') or ()),
        )


def serialize_many(entities: List[Any]) -> List[Dict[str, Any]]:
    return [e.to_item() for e in entities]
