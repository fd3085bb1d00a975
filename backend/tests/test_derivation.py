"""
Tests for derived dashboard fields: progress, priority, owner and deadline.
"""
from datetime import timedelta

import pytest

from shared.derivation import (
    assigned_owner, build_request_view, compute_deadline, compute_progress,
    derive_priority, display_name, summarize,
)
from shared.models import BugReport, Tester, TestingUpdate


def _update(request_id, status, created_at, tester=None, update_id='u'):
    return TestingUpdate(id=update_id, request_id=request_id, status=status,
                         note='', created_at=created_at, tester=tester)


def _bug(request_id, severity, created_at, tester=None, bug_id='b'):
    return BugReport(id=bug_id, request_id=request_id, title='Bug', description='',
                     severity=severity, status='OPEN', created_at=created_at, tester=tester)


class TestProgress:

    def test_uses_status_weight(self, request_factory):
        assert compute_progress(request_factory(status='IN_PROGRESS')) == 65

    def test_never_goes_backwards(self, request_factory, now):
        request = request_factory(status='PENDING')
        updates = [_update(request.id, 'READY_FOR_REVIEW', now)]
        assert compute_progress(request, updates) == 85

    def test_unknown_status_uses_fallback_weight(self, request_factory):
        assert compute_progress(request_factory(status='ON_HOLD')) == 20

    def test_clamped_to_minimum(self, request_factory):
        from shared.status_catalog import StatusCatalog
        catalog = StatusCatalog.from_items([{'code': 'NEW', 'progress': 0}])
        assert compute_progress(request_factory(status='NEW'), catalog=catalog) == 5


class TestPriority:

    def test_most_severe_bug_wins(self, now):
        bugs = [_bug('r', 'LOW', now), _bug('r', 'CRITICAL', now), _bug('r', 'MEDIUM', now)]
        assert derive_priority(bugs) == 'urgent'

    def test_high_maps_to_high(self, now):
        assert derive_priority([_bug('r', 'high', now)]) == 'high'

    def test_no_bugs_is_medium(self):
        assert derive_priority([]) == 'medium'


class TestDisplayName:

    @pytest.mark.parametrize('tester, expected', [
        (Tester(id='t', full_name='  Ada Lovelace '), 'Ada Lovelace'),
        (Tester(id='t', first_name='Ada', last_name='Lovelace'), 'Ada Lovelace'),
        (Tester(id='t', last_name='Lovelace'), 'Lovelace'),
        (Tester(id='t', username='ada'), 'ada'),
        (Tester(id='t', email='ada@example.com'), 'ada@example.com'),
        (Tester(id='t', phone='+100'), '+100'),
        (Tester(id='t'), 'Unassigned'),
        (None, 'Unassigned'),
    ])
    def test_fallback_chain(self, tester, expected):
        assert display_name(tester) == expected


class TestAssignedOwner:

    def test_newest_update_with_tester(self, request_factory, now, tester, other_tester):
        request = request_factory()
        updates = [
            _update(request.id, 'IN_PROGRESS', now, tester, 'u1'),
            _update(request.id, 'IN_PROGRESS', now + timedelta(hours=1), other_tester, 'u2'),
            _update(request.id, 'IN_PROGRESS', now + timedelta(hours=2), None, 'u3'),
        ]
        assert assigned_owner(request, updates, []) == other_tester

    def test_falls_back_to_bug_report(self, request_factory, now, tester):
        request = request_factory()
        assert assigned_owner(request, [], [_bug(request.id, 'LOW', now, tester)]) == tester

    def test_unassigned(self, request_factory):
        assert assigned_owner(request_factory(), [], []) is None


class TestDeadline:

    def test_customer_deadline_is_authoritative(self, request_factory, now):
        deadline = now + timedelta(days=30)
        assert compute_deadline(request_factory(desired_deadline=deadline)) == deadline

    @pytest.mark.parametrize('status, days', [
        ('NEW', 10), ('PENDING', 7), ('WAITING_CUSTOMER', 5), ('IN_PROGRESS', 14),
        ('READY_FOR_REVIEW', 3), ('COMPLETED', 0), ('ON_HOLD', 10),
    ])
    def test_offset_from_last_activity(self, request_factory, now, status, days):
        request = request_factory(status=status, updated_at=now)
        assert compute_deadline(request) == now + timedelta(days=days)


class TestRequestView:

    def test_view_fields(self, request_factory, now, tester):
        request = request_factory(status='IN_PROGRESS')
        updates = [_update(request.id, 'IN_PROGRESS', now, tester)]
        bugs = [_bug(request.id, 'HIGH', now), _bug('other', 'CRITICAL', now, bug_id='b2')]

        view = build_request_view(request, updates, [], bugs)

        assert view['requestId'] == request.id
        assert view['statusLabel'] == 'In Progress'
        assert view['displayBucket'] == 'in-progress'
        assert view['terminal'] is False
        assert view['progress'] == 65
        assert view['priority'] == 'high'
        assert view['assignedTester'] == 'Ada Lovelace'
        assert view['assignedTesterRef'] == 'tester-1'
        assert len(view['bugReports']) == 1
        assert view['deadline'].startswith('2024-05-15')

    def test_summarize(self, request_factory):
        views = [
            build_request_view(request_factory(id='a', status='NEW')),
            build_request_view(request_factory(id='b', status='COMPLETED')),
            build_request_view(request_factory(id='c', status='PENDING')),
        ]
        summary = summarize(views)
        assert summary['total'] == 3
        assert summary['byStatus'] == {'pending': 2, 'completed': 1}
        assert summary['byPriority'] == {'medium': 3}


class TestProgressMonotonic:

    def test_non_decreasing_as_updates_append(self, request_factory, now):
        request = request_factory(status='NEW')
        statuses = ['PENDING', 'IN_PROGRESS', 'NEW', 'ON_HOLD', 'READY_FOR_REVIEW', 'CANCELLED', 'COMPLETED']
        updates, seen = [], []
        for i, status in enumerate(statuses):
            updates.append(_update(request.id, status, now + timedelta(minutes=i), update_id=f'u{i}'))
            seen.append(compute_progress(request, updates))

        assert seen == sorted(seen)
        assert all(5 <= p <= 100 for p in seen)
        assert seen[-1] == 100
