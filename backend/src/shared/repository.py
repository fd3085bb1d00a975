"""
Request store with optimistic concurrency.

Every save names the version it was computed from. A store rejects the write
with ConcurrentModificationError when the stored version has moved on, which
is what serializes concurrent claims and transitions on a single request.
"""
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from shared import dynamo
from shared.config import config
from shared.errors import (
    BugReportNotFound, ConcurrentModificationError, InsufficientTokens, RequestNotFound,
)
from shared.logging import logger
from shared.models import (
    BugComment, BugReport, PlanType, TestingRequest, TestingUpdate, TestLog,
)
from shared.status_catalog import StatusCatalog


def empty_token_balance(user_id: str) -> Dict[str, Any]:
    return {
        'userId': user_id,
        'remainingTokens': 0,
        'totalTokens': 0,
        'planType': PlanType.FREE,
    }


def _token_balance(item: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'userId': item['userId'],
        'remainingTokens': int(item.get('remainingTokens', 0)),
        'totalTokens': int(item.get('totalTokens', 0)),
        'planType': item.get('planType', PlanType.FREE),
    }


class RequestRepository(ABC):
    """Persistence contract for testing requests and their event streams."""

    @abstractmethod
    def get(self, request_id: str) -> TestingRequest:
        """Load a request or raise RequestNotFound."""

    @abstractmethod
    def list_requests(self, customer_id: Optional[str] = None) -> List[TestingRequest]:
        pass

    @abstractmethod
    def create(self, request: TestingRequest, charge_user_id: Optional[str] = None) -> TestingRequest:
        """
        Insert a new request.

        When `charge_user_id` is given, the request's token fee is deducted
        from that user's ledger in the same atomic write; the write fails with
        InsufficientTokens if the balance cannot cover it.
        """

    @abstractmethod
    def save(self, request: TestingRequest, expected_version: int,
             updates: Iterable[TestingUpdate] = ()) -> TestingRequest:
        """
        Persist a mutated request and append its events atomically.

        Returns the stored request with `version = expected_version + 1`.

        Raises:
            ConcurrentModificationError: if the stored version is not `expected_version`
        """

    @abstractmethod
    def list_updates(self, request_id: Optional[str] = None) -> List[TestingUpdate]:
        pass

    @abstractmethod
    def add_log(self, log: TestLog) -> TestLog:
        pass

    @abstractmethod
    def list_logs(self, request_id: Optional[str] = None) -> List[TestLog]:
        pass

    @abstractmethod
    def add_bug_report(self, report: BugReport) -> BugReport:
        pass

    @abstractmethod
    def get_bug_report(self, bug_report_id: str) -> BugReport:
        pass

    @abstractmethod
    def list_bug_reports(self, request_id: Optional[str] = None) -> List[BugReport]:
        pass

    @abstractmethod
    def add_bug_comment(self, bug_report_id: str, comment: BugComment) -> BugReport:
        pass

    @abstractmethod
    def get_user_tokens(self, user_id: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    def load_status_catalog(self) -> StatusCatalog:
        pass


class DynamoRequestRepository(RequestRepository):
    """
    DynamoDB-backed store.

    Mutations are single transact_write_items calls: the request Put is
    conditioned on its version, and event rows ride in the same transaction.
    """

    def __init__(self, resource=None):
        self.dynamodb = resource or dynamo.dynamodb

    @property
    def _client(self):
        return self.dynamodb.meta.client

    # -----------------------------------------------------------------
    # Requests
    # -----------------------------------------------------------------

    def get(self, request_id: str) -> TestingRequest:
        # Strongly consistent so a retry after a version conflict sees the winner
        item = dynamo.get_item(config.REQUESTS_TABLE, {'requestId': request_id},
                               resource=self.dynamodb, consistent_read=True)
        if not item:
            raise RequestNotFound(request_id)
        return TestingRequest.from_item(item)

    def list_requests(self, customer_id: Optional[str] = None) -> List[TestingRequest]:
        filter_expression = Attr('customerId').eq(customer_id) if customer_id else None
        items = dynamo.scan_all(config.REQUESTS_TABLE, filter_expression, resource=self.dynamodb)
        return [TestingRequest.from_item(item) for item in items]

    def create(self, request: TestingRequest, charge_user_id: Optional[str] = None) -> TestingRequest:
        transact_items = [{
            'Put': {
                'TableName': config.REQUESTS_TABLE,
                'Item': dynamo.to_attribute_values(request.to_item()),
                'ConditionExpression': 'attribute_not_exists(requestId)'
            }
        }]

        fee = request.requested_token_fee or 0
        if charge_user_id and fee > 0:
            transact_items.append({
                'Update': {
                    'TableName': config.USER_TOKENS_TABLE,
                    'Key': {'userId': {'S': charge_user_id}},
                    'UpdateExpression': 'SET remainingTokens = remainingTokens - :fee',
                    'ConditionExpression': 'remainingTokens >= :fee',
                    'ExpressionAttributeValues': {':fee': {'N': str(fee)}}
                }
            })

        try:
            self._client.transact_write_items(TransactItems=transact_items)
        except ClientError as e:
            if e.response['Error']['Code'] != 'TransactionCanceledException':
                raise
            codes = dynamo.cancellation_codes(e)
            if len(codes) > 1 and codes[1] == 'ConditionalCheckFailed':
                balance = self.get_user_tokens(charge_user_id)
                raise InsufficientTokens(fee, balance['remainingTokens'])
            raise ConcurrentModificationError(request.id, request.version)

        logger.info(f"Created testing request {request.id} (fee: {fee} tokens)")
        return request

    def save(self, request: TestingRequest, expected_version: int,
             updates: Iterable[TestingUpdate] = ()) -> TestingRequest:
        stored = replace(request, version=expected_version + 1)

        transact_items = [{
            'Put': {
                'TableName': config.REQUESTS_TABLE,
                'Item': dynamo.to_attribute_values(stored.to_item()),
                'ConditionExpression': '#version = :expected',
                'ExpressionAttributeNames': {'#version': 'version'},
                'ExpressionAttributeValues': {':expected': {'N': str(expected_version)}}
            }
        }]
        for update in updates:
            transact_items.append({
                'Put': {
                    'TableName': config.UPDATES_TABLE,
                    'Item': dynamo.to_attribute_values(update.to_item()),
                    'ConditionExpression': 'attribute_not_exists(updateId)'
                }
            })

        try:
            self._client.transact_write_items(TransactItems=transact_items)
        except ClientError as e:
            if e.response['Error']['Code'] == 'TransactionCanceledException':
                # Another writer saved this request first
                raise ConcurrentModificationError(request.id, expected_version)
            raise

        return stored

    # -----------------------------------------------------------------
    # Event streams
    # -----------------------------------------------------------------

    def list_updates(self, request_id: Optional[str] = None) -> List[TestingUpdate]:
        filter_expression = Attr('requestId').eq(request_id) if request_id else None
        items = dynamo.scan_all(config.UPDATES_TABLE, filter_expression, resource=self.dynamodb)
        return [TestingUpdate.from_item(item) for item in items]

    def add_log(self, log: TestLog) -> TestLog:
        dynamo.put_item(config.TEST_LOGS_TABLE, log.to_item(), resource=self.dynamodb)
        return log

    def list_logs(self, request_id: Optional[str] = None) -> List[TestLog]:
        filter_expression = Attr('requestId').eq(request_id) if request_id else None
        items = dynamo.scan_all(config.TEST_LOGS_TABLE, filter_expression, resource=self.dynamodb)
        return [TestLog.from_item(item) for item in items]

    def add_bug_report(self, report: BugReport) -> BugReport:
        dynamo.put_item(config.BUG_REPORTS_TABLE, report.to_item(), resource=self.dynamodb)
        return report

    def get_bug_report(self, bug_report_id: str) -> BugReport:
        item = dynamo.get_item(config.BUG_REPORTS_TABLE, {'bugReportId': bug_report_id},
                               resource=self.dynamodb, consistent_read=True)
        if not item:
            raise BugReportNotFound(bug_report_id)
        return BugReport.from_item(item)

    def list_bug_reports(self, request_id: Optional[str] = None) -> List[BugReport]:
        filter_expression = Attr('requestId').eq(request_id) if request_id else None
        items = dynamo.scan_all(config.BUG_REPORTS_TABLE, filter_expression, resource=self.dynamodb)
        return [BugReport.from_item(item) for item in items]

    def add_bug_comment(self, bug_report_id: str, comment: BugComment) -> BugReport:
        try:
            dynamo.update_item(
                config.BUG_REPORTS_TABLE,
                key={'bugReportId': bug_report_id},
                update_expression='SET comments = list_append(if_not_exists(comments, :empty), :comment)',
                expression_values={':comment': [comment.to_item()], ':empty': []},
                condition_expression='attribute_exists(bugReportId)',
                resource=self.dynamodb
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                raise BugReportNotFound(bug_report_id)
            raise
        return self.get_bug_report(bug_report_id)

    # -----------------------------------------------------------------
    # Collaborator tables
    # -----------------------------------------------------------------

    def get_user_tokens(self, user_id: str) -> Dict[str, Any]:
        item = dynamo.get_item(config.USER_TOKENS_TABLE, {'userId': user_id}, resource=self.dynamodb)
        if not item:
            return empty_token_balance(user_id)
        return _token_balance(item)

    def load_status_catalog(self) -> StatusCatalog:
        if not config.STATUSES_TABLE:
            return StatusCatalog.default()
        items = dynamo.scan_all(config.STATUSES_TABLE, resource=self.dynamodb)
        if not items:
            return StatusCatalog.default()
        return StatusCatalog.from_items(items)


class InMemoryRequestRepository(RequestRepository):
    """
    Thread-safe in-process store with the same version semantics as DynamoDB.
    Used for local runs and tests.
    """

    def __init__(self, token_balances: Optional[Dict[str, int]] = None,
                 catalog: Optional[StatusCatalog] = None):
        self._lock = threading.Lock()
        self._requests: Dict[str, TestingRequest] = {}
        self._updates: List[TestingUpdate] = []
        self._logs: List[TestLog] = []
        self._bug_reports: Dict[str, BugReport] = {}
        self._tokens: Dict[str, Dict[str, Any]] = {}
        self._catalog = catalog or StatusCatalog.default()
        for user_id, tokens in (token_balances or {}).items():
            self.set_user_tokens(user_id, tokens)

    def set_user_tokens(self, user_id: str, remaining: int, total: Optional[int] = None,
                        plan_type: str = PlanType.FREE) -> None:
        with self._lock:
            self._tokens[user_id] = {
                'userId': user_id,
                'remainingTokens': remaining,
                'totalTokens': total if total is not None else remaining,
                'planType': plan_type,
            }

    def get(self, request_id: str) -> TestingRequest:
        with self._lock:
            request = self._requests.get(request_id)
        if request is None:
            raise RequestNotFound(request_id)
        return request

    def list_requests(self, customer_id: Optional[str] = None) -> List[TestingRequest]:
        with self._lock:
            requests = list(self._requests.values())
        if customer_id:
            requests = [r for r in requests if r.customer_id == customer_id]
        return requests

    def create(self, request: TestingRequest, charge_user_id: Optional[str] = None) -> TestingRequest:
        fee = request.requested_token_fee or 0
        with self._lock:
            if request.id in self._requests:
                raise ConcurrentModificationError(request.id, request.version)
            if charge_user_id and fee > 0:
                balance = self._tokens.get(charge_user_id) or empty_token_balance(charge_user_id)
                if balance['remainingTokens'] < fee:
                    raise InsufficientTokens(fee, balance['remainingTokens'])
                self._tokens[charge_user_id] = dict(balance, remainingTokens=balance['remainingTokens'] - fee)
            self._requests[request.id] = request
        return request

    def save(self, request: TestingRequest, expected_version: int,
             updates: Iterable[TestingUpdate] = ()) -> TestingRequest:
        with self._lock:
            current = self._requests.get(request.id)
            if current is None:
                raise RequestNotFound(request.id)
            if current.version != expected_version:
                raise ConcurrentModificationError(request.id, expected_version)
            stored = replace(request, version=expected_version + 1)
            self._requests[request.id] = stored
            self._updates.extend(updates)
        return stored

    def list_updates(self, request_id: Optional[str] = None) -> List[TestingUpdate]:
        with self._lock:
            updates = list(self._updates)
        return [u for u in updates if request_id is None or u.request_id == request_id]

    def add_log(self, log: TestLog) -> TestLog:
        with self._lock:
            self._logs.append(log)
        return log

    def list_logs(self, request_id: Optional[str] = None) -> List[TestLog]:
        with self._lock:
            logs = list(self._logs)
        return [entry for entry in logs if request_id is None or entry.request_id == request_id]

    def add_bug_report(self, report: BugReport) -> BugReport:
        with self._lock:
            self._bug_reports[report.id] = report
        return report

    def get_bug_report(self, bug_report_id: str) -> BugReport:
        with self._lock:
            report = self._bug_reports.get(bug_report_id)
        if report is None:
            raise BugReportNotFound(bug_report_id)
        return report

    def list_bug_reports(self, request_id: Optional[str] = None) -> List[BugReport]:
        with self._lock:
            reports = list(self._bug_reports.values())
        return [r for r in reports if request_id is None or r.request_id == request_id]

    def add_bug_comment(self, bug_report_id: str, comment: BugComment) -> BugReport:
        with self._lock:
            report = self._bug_reports.get(bug_report_id)
            if report is None:
                raise BugReportNotFound(bug_report_id)
            report = replace(report, comments=report.comments + (comment,))
            self._bug_reports[bug_report_id] = report
        return report

    def get_user_tokens(self, user_id: str) -> Dict[str, Any]:
        with self._lock:
            balance = self._tokens.get(user_id)
        return dict(balance) if balance else empty_token_balance(user_id)

    def load_status_catalog(self) -> StatusCatalog:
        return self._catalog
