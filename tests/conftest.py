import os
import sys
from datetime import datetime, timezone

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from commercial_pricing.api.state import CommercialContext
from commercial_pricing.data.load_fixtures import load_fixtures
from commercial_pricing.engine.audit import InMemoryAuditSink

# Fixture data is dated around this instant (EMP for itm-001 is 4 hours old)
AT = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def at():
    return AT


@pytest.fixture(scope="function")  # each test mutates its own store
def loaded():
    return load_fixtures()


@pytest.fixture
def store(loaded):
    return loaded[0]


@pytest.fixture
def report(loaded):
    return loaded[1]


@pytest.fixture
def audit():
    return InMemoryAuditSink()


@pytest.fixture
def ctx(store, audit, report):
    return CommercialContext.from_store(store, audit=audit, report=report)
