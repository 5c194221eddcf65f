"""
Pytest fixtures for the billing test suite.

Provides:
- Structured logging configuration and log capture
- Deterministic clock and principals
- In-memory SQLite sessions for the SQLAlchemy repositories
"""

import json
import logging
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from billing_config import BillingConfig
from billing_kernel.db.engine import (
    create_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from billing_kernel.domain.clock import DeterministicClock
from billing_kernel.domain.values import Principal
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

from tests.builders import NOW


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture billing_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger):
            ledger.add_payment(...)
            logs = captured_logs()
            assert any(r["message"] == "payment_applied" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("billing_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock, principals, config
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(NOW)


@pytest.fixture
def owner_id() -> UUID:
    return uuid4()


@pytest.fixture
def principal(owner_id) -> Principal:
    return Principal(user_id=owner_id)


@pytest.fixture
def stranger() -> Principal:
    return Principal(user_id=uuid4())


@pytest.fixture
def billing_config() -> BillingConfig:
    return BillingConfig()


# =============================================================================
# Database fixtures (SQLite in memory, fresh per test)
# =============================================================================


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """Session on a fresh in-memory SQLite database with all tables."""
    init_engine_from_url("sqlite://")
    create_tables()
    sess = get_session()
    yield sess
    sess.close()
    reset_engine()
