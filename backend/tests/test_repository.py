"""
Tests for the request stores: version checks, token charging and DynamoDB transactions.
"""
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from shared.errors import (
    BugReportNotFound, ConcurrentModificationError, InsufficientTokens, RequestNotFound,
)
from shared.models import BugComment, BugReport, TestingUpdate
from shared.repository import DynamoRequestRepository, InMemoryRequestRepository


def _transaction_cancelled(*codes):
    return ClientError(
        {
            'Error': {'Code': 'TransactionCanceledException', 'Message': 'Transaction cancelled'},
            'CancellationReasons': [{'Code': code} for code in codes],
        },
        'TransactWriteItems'
    )


class TestInMemoryRepository:

    def test_save_bumps_version(self, request_factory, now):
        repo = InMemoryRequestRepository()
        request = repo.create(request_factory())
        update = TestingUpdate(id='u1', request_id=request.id, status='PENDING', note='', created_at=now)

        saved = repo.save(request.with_changes(status='PENDING'), expected_version=0, updates=[update])

        assert saved.version == 1
        assert repo.get(request.id).status == 'PENDING'
        assert repo.list_updates(request.id) == [update]

    def test_stale_save_rejected(self, request_factory):
        repo = InMemoryRequestRepository()
        request = repo.create(request_factory())
        repo.save(request.with_changes(status='PENDING'), expected_version=0)

        with pytest.raises(ConcurrentModificationError):
            repo.save(request.with_changes(status='CANCELLED'), expected_version=0)

    def test_create_charges_tokens(self, request_factory):
        repo = InMemoryRequestRepository(token_balances={'customer-1': 10})
        repo.create(request_factory(requested_token_fee=4), charge_user_id='customer-1')
        assert repo.get_user_tokens('customer-1')['remainingTokens'] == 6
        assert repo.get_user_tokens('customer-1')['totalTokens'] == 10

    def test_create_rejects_insufficient_tokens(self, request_factory):
        repo = InMemoryRequestRepository(token_balances={'customer-1': 2})
        with pytest.raises(InsufficientTokens):
            repo.create(request_factory(requested_token_fee=4), charge_user_id='customer-1')
        assert repo.list_requests() == []

    def test_missing_ledger_row_reads_as_free_plan(self):
        balance = InMemoryRequestRepository().get_user_tokens('nobody')
        assert balance == {'userId': 'nobody', 'remainingTokens': 0, 'totalTokens': 0, 'planType': 'FREE'}

    def test_get_missing(self):
        with pytest.raises(RequestNotFound):
            InMemoryRequestRepository().get('missing')

    def test_bug_comments(self, now):
        repo = InMemoryRequestRepository()
        repo.add_bug_report(BugReport(id='b1', request_id='r1', title='Crash', description='',
                                      severity='HIGH', status='OPEN', created_at=now))
        comment = BugComment(id='c1', commenter_id='u1', comment='Repro attached', created_at=now)

        report = repo.add_bug_comment('b1', comment)

        assert report.comments == (comment,)
        with pytest.raises(BugReportNotFound):
            repo.add_bug_comment('missing', comment)


class TestDynamoRepository:
    """DynamoDB store with a mocked boto3 resource."""

    def _repo(self):
        resource = MagicMock()
        return DynamoRequestRepository(resource=resource), resource

    def test_get_reads_item(self, request_factory):
        repo, resource = self._repo()
        resource.Table.return_value.get_item.return_value = {'Item': request_factory().to_item()}

        request = repo.get('req-1')

        assert request.id == 'req-1'
        assert request.status == 'NEW'

    def test_get_reads_consistently(self, request_factory):
        repo, resource = self._repo()
        resource.Table.return_value.get_item.return_value = {'Item': request_factory().to_item()}

        repo.get('req-1')

        resource.Table.return_value.get_item.assert_called_once_with(
            Key={'requestId': 'req-1'}, ConsistentRead=True
        )

    def test_get_missing(self):
        repo, resource = self._repo()
        resource.Table.return_value.get_item.return_value = {}
        with pytest.raises(RequestNotFound):
            repo.get('missing')

    def test_save_conditions_on_version(self, request_factory, now):
        repo, resource = self._repo()
        client = resource.meta.client
        request = request_factory(status='PENDING', version=3)
        update = TestingUpdate(id='u1', request_id=request.id, status='PENDING', note='', created_at=now)

        saved = repo.save(request, expected_version=3, updates=[update])

        assert saved.version == 4
        items = client.transact_write_items.call_args.kwargs['TransactItems']
        assert len(items) == 2
        put = items[0]['Put']
        assert put['ConditionExpression'] == '#version = :expected'
        assert put['ExpressionAttributeValues'] == {':expected': {'N': '3'}}
        assert put['Item']['version'] == {'N': '4'}
        assert items[1]['Put']['Item']['updateId'] == {'S': 'u1'}

    def test_save_conflict(self, request_factory):
        repo, resource = self._repo()
        resource.meta.client.transact_write_items.side_effect = _transaction_cancelled('ConditionalCheckFailed')

        with pytest.raises(ConcurrentModificationError):
            repo.save(request_factory(), expected_version=0)

    def test_save_other_errors_propagate(self, request_factory):
        repo, resource = self._repo()
        resource.meta.client.transact_write_items.side_effect = ClientError(
            {'Error': {'Code': 'ProvisionedThroughputExceededException', 'Message': 'slow down'}},
            'TransactWriteItems'
        )
        with pytest.raises(ClientError):
            repo.save(request_factory(), expected_version=0)

    def test_create_charges_ledger_in_same_transaction(self, request_factory):
        repo, resource = self._repo()
        repo.create(request_factory(requested_token_fee=4), charge_user_id='customer-1')

        items = resource.meta.client.transact_write_items.call_args.kwargs['TransactItems']
        assert items[0]['Put']['ConditionExpression'] == 'attribute_not_exists(requestId)'
        ledger = items[1]['Update']
        assert ledger['Key'] == {'userId': {'S': 'customer-1'}}
        assert ledger['ConditionExpression'] == 'remainingTokens >= :fee'
        assert ledger['ExpressionAttributeValues'] == {':fee': {'N': '4'}}

    def test_create_without_fee_skips_ledger(self, request_factory):
        repo, resource = self._repo()
        repo.create(request_factory(), charge_user_id='customer-1')
        items = resource.meta.client.transact_write_items.call_args.kwargs['TransactItems']
        assert len(items) == 1

    def test_create_insufficient_tokens(self, request_factory):
        repo, resource = self._repo()
        resource.meta.client.transact_write_items.side_effect = _transaction_cancelled(
            'None', 'ConditionalCheckFailed'
        )
        resource.Table.return_value.get_item.return_value = {
            'Item': {'userId': 'customer-1', 'remainingTokens': Decimal('1'), 'totalTokens': Decimal('10')}
        }

        with pytest.raises(InsufficientTokens) as exc:
            repo.create(request_factory(requested_token_fee=4), charge_user_id='customer-1')
        assert exc.value.remaining == 1

    def test_list_requests_follows_pagination(self, request_factory):
        repo, resource = self._repo()
        resource.Table.return_value.scan.side_effect = [
            {'Items': [request_factory(id='a').to_item()], 'LastEvaluatedKey': {'requestId': 'a'}},
            {'Items': [request_factory(id='b').to_item()]},
        ]

        requests = repo.list_requests('customer-1')

        assert [r.id for r in requests] == ['a', 'b']
        assert 'FilterExpression' in resource.Table.return_value.scan.call_args_list[0].kwargs

    def test_bug_comment_reads_back_consistently(self, now):
        repo, resource = self._repo()
        comment = BugComment(id='c1', commenter_id='u1', comment='Still broken', created_at=now)
        report = BugReport(id='b1', request_id='r1', title='Crash', description='',
                           severity='HIGH', status='OPEN', created_at=now, comments=(comment,))
        resource.Table.return_value.get_item.return_value = {'Item': report.to_item()}

        updated = repo.add_bug_comment('b1', comment)

        assert [c.comment for c in updated.comments] == ['Still broken']
        resource.Table.return_value.get_item.assert_called_once_with(
            Key={'bugReportId': 'b1'}, ConsistentRead=True
        )

    def test_bug_comment_on_missing_report(self, now):
        repo, resource = self._repo()
        resource.Table.return_value.update_item.side_effect = ClientError(
            {'Error': {'Code': 'ConditionalCheckFailedException', 'Message': 'missing'}},
            'UpdateItem'
        )
        comment = BugComment(id='c1', commenter_id='u1', comment='hi', created_at=now)
        with pytest.raises(BugReportNotFound):
            repo.add_bug_comment('missing', comment)

    def test_status_catalog_defaults_without_table(self, monkeypatch):
        from shared.config import config
        monkeypatch.setattr(config, 'STATUSES_TABLE', '')
        repo, resource = self._repo()
        assert repo.load_status_catalog().progress_weight('COMPLETED') == 100
        resource.Table.assert_not_called()

    def test_status_catalog_from_table(self, monkeypatch):
        from shared.config import config
        monkeypatch.setattr(config, 'STATUSES_TABLE', 'statuses')
        repo, resource = self._repo()
        resource.Table.return_value.scan.return_value = {
            'Items': [{'code': 'NEW', 'label': 'Submitted', 'progress': Decimal('12')}]
        }
        catalog = repo.load_status_catalog()
        assert catalog.label('NEW') == 'Submitted'
        assert catalog.progress_weight('NEW') == 12
