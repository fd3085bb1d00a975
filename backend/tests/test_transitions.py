"""
Tests for the transition whitelist.
"""
import pytest

from shared.errors import InvalidTransitionError
from shared.transitions import ALLOWED_TRANSITIONS, allowed_next, can_transition, transition


class TestWhitelist:

    @pytest.mark.parametrize('source, target', [
        ('NEW', 'PENDING'),
        ('NEW', 'CANCELLED'),
        ('PENDING', 'CANCELLED'),
        ('WAITING_CUSTOMER', 'EXPIRED'),
        ('IN_PROGRESS', 'READY_FOR_REVIEW'),
        ('READY_FOR_REVIEW', 'COMPLETED'),
    ])
    def test_allowed_moves(self, source, target):
        assert can_transition(source, target)

    @pytest.mark.parametrize('source, target', [
        ('NEW', 'COMPLETED'),
        ('PENDING', 'IN_PROGRESS'),
        ('READY_FOR_REVIEW', 'IN_PROGRESS'),
        ('IN_PROGRESS', 'COMPLETED'),
    ])
    def test_rejected_moves(self, source, target):
        assert not can_transition(source, target)

    def test_self_transition_rejected(self):
        assert not can_transition('IN_PROGRESS', 'IN_PROGRESS')

    def test_terminal_statuses_have_no_exits(self):
        for terminal in ('COMPLETED', 'CANCELLED', 'EXPIRED'):
            assert allowed_next(terminal) == frozenset()
            for target in ALLOWED_TRANSITIONS:
                assert not can_transition(terminal, target)

    def test_codes_are_case_insensitive(self):
        assert can_transition('new', 'pending')

    def test_unknown_source_has_no_exits(self):
        assert allowed_next('ON_HOLD') == frozenset()


class TestTransition:

    def test_returns_new_snapshot(self, request_factory, now):
        request = request_factory(status='IN_PROGRESS')
        moved = transition(request, 'ready_for_review', now=now)
        assert moved.status == 'READY_FOR_REVIEW'
        assert moved.updated_at == now
        assert request.status == 'IN_PROGRESS'

    def test_invalid_move_raises(self, request_factory):
        request = request_factory(status='COMPLETED')
        with pytest.raises(InvalidTransitionError) as exc:
            transition(request, 'IN_PROGRESS')
        assert exc.value.from_status == 'COMPLETED'
        assert exc.value.to_status == 'IN_PROGRESS'
        assert exc.value.status_code == 409
