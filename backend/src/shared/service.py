"""
Request service - runs lifecycle operations against the store atomically.

Each mutation loads a snapshot, applies a pure operation from
shared.workflow / shared.transitions, and saves with the snapshot's version.
On a version conflict the snapshot is reloaded and the operation re-run, so
its guards always see the state that actually wins. That is what turns two
racing claims into one success and one ClaimError(AlreadyAssigned).
"""
import uuid
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from shared import workflow
from shared.config import config
from shared.derivation import build_request_view, summarize
from shared.errors import ConcurrentModificationError, Forbidden, ValidationError
from shared.logging import logger
from shared.models import (
    BugComment, BugReport, BugStatus, LogLevel, Severity, Tester,
    TestingRequest, TestingUpdate, TestLog, now_utc,
)
from shared.repository import RequestRepository
from shared.sqs import publish_request_event
from shared.status_catalog import StatusCatalog
from shared.submission import build_request, ensure_tokens
from shared.transitions import transition

Operation = Callable[[TestingRequest], Tuple[TestingRequest, Sequence[TestingUpdate]]]


class RequestService:

    def __init__(self, repository: RequestRepository,
                 catalog: Optional[StatusCatalog] = None,
                 notify: Callable[[str, TestingRequest], Any] = publish_request_event,
                 max_attempts: Optional[int] = None,
                 clock: Callable = now_utc):
        self.repository = repository
        self.notify = notify
        self.max_attempts = max_attempts or config.MAX_MUTATION_ATTEMPTS
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        self.clock = clock
        self._catalog = catalog

    @property
    def catalog(self) -> StatusCatalog:
        if self._catalog is None:
            self._catalog = self.repository.load_status_catalog()
        return self._catalog

    # -----------------------------------------------------------------
    # Core mutation loop
    # -----------------------------------------------------------------

    def mutate(self, request_id: str, action: str, operation: Operation) -> TestingRequest:
        """
        Apply `operation` to the latest snapshot and save it with a version check.

        Raises:
            ConcurrentModificationError: if every attempt lost a race
            whatever the operation raises (never retried)
        """
        for attempt in range(1, self.max_attempts + 1):
            current = self.repository.get(request_id)
            updated, updates = operation(current)

            if updated is current and not updates:
                return current

            try:
                saved = self.repository.save(updated, expected_version=current.version, updates=updates)
            except ConcurrentModificationError:
                logger.warning(
                    f"Version conflict on {action} for request {request_id} "
                    f"(attempt {attempt}/{self.max_attempts})"
                )
                if attempt == self.max_attempts:
                    raise
                continue

            logger.info(f"{action}: request {request_id} now {saved.status} (v{saved.version})")
            self.notify(action, saved)
            return saved

    # -----------------------------------------------------------------
    # Submission
    # -----------------------------------------------------------------

    def submit_request(self, customer_id: str, title: str, description: str,
                       testing_types: List[str],
                       scope_allocations: Optional[Dict[str, int]] = None,
                       deadline: Any = None,
                       reference_url: Optional[str] = None,
                       archive_key: Optional[str] = None,
                       product_type: Optional[str] = None) -> TestingRequest:
        request = build_request(
            customer_id=customer_id,
            title=title,
            description=description,
            testing_types=testing_types,
            scope_allocations=scope_allocations,
            deadline=deadline,
            reference_url=reference_url,
            archive_key=archive_key,
            product_type=product_type,
            now=self.clock(),
        )

        fee = request.requested_token_fee or 0
        balance = self.repository.get_user_tokens(customer_id)
        ensure_tokens(fee, balance['remainingTokens'])

        # The store re-checks the balance atomically while charging it
        created = self.repository.create(request, charge_user_id=customer_id)
        self.notify('submitted', created)
        return created

    # -----------------------------------------------------------------
    # Status changes
    # -----------------------------------------------------------------

    def _status_change(self, to_status: str, note: str, actor: Optional[Tester]) -> Operation:
        def operation(request: TestingRequest):
            now = self.clock()
            updated = transition(request, to_status, self.catalog, now)
            label = self.catalog.label(updated.status)
            update = workflow.new_update(updated, updated.status, note or f"Status changed to {label}", actor, now)
            return updated, [update]
        return operation

    def set_status(self, request_id: str, status: str, note: str = '',
                   actor: Optional[Tester] = None) -> TestingRequest:
        return self.mutate(request_id, 'status_changed', self._status_change(status, note, actor))

    def record_update(self, request_id: str, status: Optional[str], note: str,
                      tester: Optional[Tester] = None) -> TestingRequest:
        def operation(request: TestingRequest):
            updated, update = workflow.record_update(request, status, note, tester, self.catalog, self.clock())
            return updated, [update]
        return self.mutate(request_id, 'update_recorded', operation)

    def mark_ready_for_review(self, request_id: str, actor: Optional[Tester] = None,
                              note: str = '') -> TestingRequest:
        def operation(request: TestingRequest):
            if actor is not None and request.assigned_tester_id and request.assigned_tester_id != actor.id:
                raise Forbidden('Only the assigned tester can hand this request over for review')
            now = self.clock()
            updated = workflow.mark_ready_for_review(request, self.catalog, now)
            update = workflow.new_update(updated, updated.status, note or 'Ready for customer review', actor, now)
            return updated, [update]
        return self.mutate(request_id, 'ready_for_review', operation)

    def complete(self, request_id: str, customer_id: Optional[str] = None,
                 actor: Optional[Tester] = None) -> TestingRequest:
        """Complete a reviewed request; `customer_id` restricts it to the owner."""
        def operation(request: TestingRequest):
            if customer_id is not None and request.customer_id != customer_id:
                raise Forbidden('Only the request owner can confirm completion')
            now = self.clock()
            updated = workflow.complete(request, self.catalog, now)
            update = workflow.new_update(updated, updated.status, 'Testing completed', actor, now)
            return updated, [update]
        return self.mutate(request_id, 'completed', operation)

    # -----------------------------------------------------------------
    # Quotes, claims, feedback
    # -----------------------------------------------------------------

    def send_quote(self, request_id: str, amount: Any, currency: Optional[str],
                   expiry_days: Any = None, notes: Optional[str] = None) -> TestingRequest:
        def operation(request: TestingRequest):
            return workflow.send_quote(request, amount, currency, expiry_days, notes, self.clock()), []
        return self.mutate(request_id, 'quote_sent', operation)

    def accept_quote(self, request_id: str, customer_id: str,
                     customer_notes: Optional[str] = None) -> TestingRequest:
        def operation(request: TestingRequest):
            if request.customer_id != customer_id:
                raise Forbidden('Only the request owner can accept its quote')
            return workflow.accept_quote(request, customer_notes, self.catalog, self.clock()), []
        return self.mutate(request_id, 'quote_accepted', operation)

    def claim(self, request_id: str, tester: Tester) -> TestingRequest:
        def operation(request: TestingRequest):
            claimed, update = workflow.claim(request, tester, self.catalog, self.clock())
            return claimed, [update]
        return self.mutate(request_id, 'claimed', operation)

    def submit_feedback(self, request_id: str, customer_id: str, rating: Any,
                        comment: Optional[str] = None) -> TestingRequest:
        def operation(request: TestingRequest):
            if request.customer_id != customer_id:
                raise Forbidden('Only the request owner can leave feedback')
            return workflow.submit_feedback(request, rating, comment, self.clock()), []
        return self.mutate(request_id, 'feedback_submitted', operation)

    # -----------------------------------------------------------------
    # Logs and bug reports
    # -----------------------------------------------------------------

    def create_test_log(self, request_id: str, level: Optional[str], message: str) -> TestLog:
        level = str(level or LogLevel.INFO).strip().upper()
        if level not in LogLevel.ALL:
            raise ValidationError(f"Invalid log level: {level}")
        if not message or not message.strip():
            raise ValidationError('Log message is required')

        request = self.repository.get(request_id)
        log = TestLog(
            id=str(uuid.uuid4()),
            request_id=request.id,
            level=level,
            message=message.strip(),
            created_at=self.clock(),
        )
        return self.repository.add_log(log)

    def create_bug_report(self, request_id: str, title: str, description: str,
                          severity: Optional[str], status: Optional[str] = None,
                          tester: Optional[Tester] = None) -> BugReport:
        severity = str(severity or '').strip().upper()
        status = str(status or BugStatus.OPEN).strip().upper()
        if severity not in Severity.ALL:
            raise ValidationError(f"Invalid severity: {severity or 'missing'}")
        if status not in BugStatus.ALL:
            raise ValidationError(f"Invalid bug status: {status}")
        if not title or not title.strip():
            raise ValidationError('Bug title is required')

        request = self.repository.get(request_id)
        report = BugReport(
            id=str(uuid.uuid4()),
            request_id=request.id,
            title=title.strip(),
            description=(description or '').strip(),
            severity=severity,
            status=status,
            created_at=self.clock(),
            tester=tester,
        )
        logger.info(f"Bug report {report.id} ({severity}) filed against request {request.id}")
        return self.repository.add_bug_report(report)

    def add_bug_comment(self, bug_report_id: str, commenter_id: str, comment: str) -> BugReport:
        if not comment or not comment.strip():
            raise ValidationError('Comment is required')
        entry = BugComment(
            id=str(uuid.uuid4()),
            commenter_id=commenter_id,
            comment=comment.strip(),
            created_at=self.clock(),
        )
        return self.repository.add_bug_comment(bug_report_id, entry)

    # -----------------------------------------------------------------
    # Read models
    # -----------------------------------------------------------------

    def request_views(self, customer_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Requests with derived progress, priority, owner and deadline, newest first."""
        requests = self.repository.list_requests(customer_id)
        updates = self.repository.list_updates()
        logs = self.repository.list_logs()
        bug_reports = self.repository.list_bug_reports()

        updates_by_request: Dict[str, List[TestingUpdate]] = {}
        for update in updates:
            updates_by_request.setdefault(update.request_id, []).append(update)
        logs_by_request: Dict[str, List[TestLog]] = {}
        for log in logs:
            logs_by_request.setdefault(log.request_id, []).append(log)

        views = [
            build_request_view(
                request,
                updates_by_request.get(request.id, []),
                logs_by_request.get(request.id, []),
                bug_reports,
                self.catalog,
            )
            for request in sorted(requests, key=lambda r: r.created_at, reverse=True)
        ]
        return views

    def dashboard(self, customer_id: Optional[str] = None) -> Dict[str, Any]:
        views = self.request_views(customer_id)
        return {'requests': views, 'summary': summarize(views)}

    def status_options(self) -> List[Dict[str, Any]]:
        return [definition.to_item() for definition in self.catalog.ordered()]

    def bug_reports(self, request_id: Optional[str] = None) -> List[BugReport]:
        reports = self.repository.list_bug_reports(request_id)
        return sorted(reports, key=lambda r: r.created_at, reverse=True)

    def user_tokens(self, user_id: str) -> Dict[str, Any]:
        return self.repository.get_user_tokens(user_id)
