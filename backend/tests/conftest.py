"""
Shared fixtures for the testing request backend tests.
"""
import os
import sys
from datetime import datetime, timezone

import pytest

# Add src to path so `shared` and `handlers` import as they do in Lambda
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from shared.models import RequestStatus, Tester, TestingRequest  # noqa: E402


NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_request(**overrides):
    fields = dict(
        id='req-1',
        customer_id='customer-1',
        title='Checkout flow',
        description='Regression pass over the checkout flow',
        status=RequestStatus.NEW,
        created_at=NOW,
        updated_at=NOW,
        testing_types=('Functional Testing',),
        version=0,
    )
    fields.update(overrides)
    return TestingRequest(**fields)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def tester():
    return Tester(id='tester-1', first_name='Ada', last_name='Lovelace', email='ada@example.com')


@pytest.fixture
def other_tester():
    return Tester(id='tester-2', username='grace')


@pytest.fixture
def request_factory():
    return make_request
