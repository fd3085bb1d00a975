"""
Derived view fields for testing requests.

Everything here is a pure function of a request snapshot and its event logs:
no I/O, no clock reads, safe to call concurrently or memoize per version.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

from shared.models import (
    Priority, RequestStatus, Severity, Tester, UNASSIGNED,
    BugReport, TestingRequest, TestingUpdate, TestLog,
    format_timestamp, serialize_many,
)
from shared.status_catalog import DEFAULT_CATALOG, StatusCatalog


MIN_PROGRESS = 5
MAX_PROGRESS = 100

DEFAULT_PRIORITY = Priority.MEDIUM

SEVERITY_PRIORITY = {
    Severity.CRITICAL: Priority.URGENT,
    Severity.HIGH: Priority.HIGH,
    Severity.MEDIUM: Priority.MEDIUM,
    Severity.LOW: Priority.LOW,
}

# Days added to the last activity timestamp when the customer set no deadline
STATUS_DEADLINE_OFFSETS = {
    RequestStatus.NEW: 10,
    RequestStatus.PENDING: 7,
    RequestStatus.WAITING_CUSTOMER: 5,
    RequestStatus.IN_PROGRESS: 14,
    RequestStatus.READY_FOR_REVIEW: 3,
    RequestStatus.COMPLETED: 0,
    RequestStatus.CANCELLED: 0,
    RequestStatus.EXPIRED: 0,
}
DEFAULT_DEADLINE_OFFSET = 10


def compute_progress(request: TestingRequest,
                     updates: Iterable[TestingUpdate] = (),
                     catalog: StatusCatalog = DEFAULT_CATALOG) -> int:
    """
    Progress percentage in [5, 100].

    The highest weight ever reached wins, so progress never goes backwards
    when a request's own status is later corrected downward.
    """
    progress = catalog.progress_weight(request.status)
    for update in updates:
        progress = max(progress, catalog.progress_weight(update.status))
    return min(MAX_PROGRESS, max(MIN_PROGRESS, progress))


def severity_priority(severity: Optional[str]) -> str:
    return SEVERITY_PRIORITY.get(str(severity or '').upper(), DEFAULT_PRIORITY)


def derive_priority(bug_reports: Iterable[BugReport]) -> str:
    """Priority of the most severe bug reported against a request."""
    present = {str(r.severity or '').upper() for r in bug_reports}
    for severity in Severity.ALL:
        if severity in present:
            return SEVERITY_PRIORITY[severity]
    return DEFAULT_PRIORITY


def display_name(tester: Optional[Tester]) -> str:
    if tester is None:
        return UNASSIGNED

    if tester.full_name and tester.full_name.strip():
        return tester.full_name.strip()

    names = [part.strip() for part in (tester.first_name, tester.last_name) if part and part.strip()]
    if names:
        return ' '.join(names)

    for candidate in (tester.username, tester.email, tester.phone):
        if candidate and candidate.strip():
            return candidate.strip()

    return UNASSIGNED


def assigned_owner(request: TestingRequest,
                   updates: Sequence[TestingUpdate],
                   bug_reports: Sequence[BugReport]) -> Optional[Tester]:
    """
    Tester currently owning a request, or None when unassigned.

    Prefers the newest update that names a tester, then the first bug report
    that does. `request` is accepted for symmetry with the other derivations;
    its claimed tester id is reflected through the claim update.
    """
    newest_first = sorted(updates, key=lambda u: u.created_at, reverse=True)
    for update in newest_first:
        if update.tester is not None:
            return update.tester

    for report in bug_reports:
        if report.tester is not None:
            return report.tester

    return None


def deadline_offset_days(status: str) -> int:
    return STATUS_DEADLINE_OFFSETS.get(str(status or '').upper(), DEFAULT_DEADLINE_OFFSET)


def compute_deadline(request: TestingRequest) -> datetime:
    # A customer-specified deadline is authoritative
    if request.desired_deadline is not None:
        return request.desired_deadline
    base = request.updated_at or request.created_at
    return base + timedelta(days=deadline_offset_days(request.status))


def bug_reports_for(request_id: str, bug_reports: Iterable[BugReport]) -> List[BugReport]:
    return [r for r in bug_reports if r.request_id == request_id]


def build_request_view(request: TestingRequest,
                       updates: Sequence[TestingUpdate] = (),
                       logs: Sequence[TestLog] = (),
                       bug_reports: Sequence[BugReport] = (),
                       catalog: StatusCatalog = DEFAULT_CATALOG) -> Dict[str, Any]:
    """Flatten a request and its events into the read model the dashboard lists."""
    linked_bugs = bug_reports_for(request.id, bug_reports)
    owner = assigned_owner(request, updates, linked_bugs)
    ordered_updates = sorted(updates, key=lambda u: u.created_at)
    ordered_logs = sorted(logs, key=lambda entry: entry.created_at)

    view = request.to_item()
    view.update({
        'statusLabel': catalog.label(request.status),
        'displayBucket': catalog.display_bucket(request.status),
        'terminal': catalog.is_terminal(request.status),
        'progress': compute_progress(request, updates, catalog),
        'priority': derive_priority(linked_bugs),
        'assignedTester': display_name(owner),
        'assignedTesterRef': owner.id if owner else None,
        'deadline': format_timestamp(compute_deadline(request)),
        'updates': serialize_many(ordered_updates),
        'logs': serialize_many(ordered_logs),
        'bugReports': serialize_many(linked_bugs),
    })
    return view


def summarize(views: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """Counts per display bucket and per priority, for dashboard stat chips."""
    by_bucket: Dict[str, int] = {}
    by_priority: Dict[str, int] = {}
    total = 0
    for view in views:
        total += 1
        by_bucket[view['displayBucket']] = by_bucket.get(view['displayBucket'], 0) + 1
        by_priority[view['priority']] = by_priority.get(view['priority'], 0) + 1
    return {'total': total, 'byStatus': by_bucket, 'byPriority': by_priority}
