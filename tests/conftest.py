"""
Pytest fixtures for the freight workflow engine test suite.

Provides:
- Structured logging configured once per session, plus a JSON log capture
- A deterministic clock
- In-memory SQLite sessions (StaticPool, shared by every session)
- A shipment factory and the bundled configuration set
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest

from freight_config import get_active_config
from freight_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from freight_kernel.domain.clock import DeterministicClock
from freight_kernel.domain.shipment import Shipment, ShipmentStage
from freight_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

SALES_USER = "Jane Sales"
PRICING_USER = "Paul Pricing"
OPS_USER = "Olga Ops"


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
    Capture freight_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            logs = captured_logs()
            assert any(r["message"] == "edit_lock_refused" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("freight_kernel")
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
# Clock
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc))


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def session_factory():
    """Fresh in-memory SQLite database with every table created."""
    init_engine_from_url("sqlite://")
    create_tables()
    yield get_session_factory()
    drop_tables()
    reset_engine()


@pytest.fixture
def session(session_factory):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


# =============================================================================
# Domain factories
# =============================================================================


def build_shipment(**overrides) -> Shipment:
    """A lead owned by SALES_USER; override any field."""
    fields = {
        "id": "shp-0001",
        "reference_id": "JS-24-0001",
        "salesperson": SALES_USER,
        "stage": ShipmentStage.LEAD,
        "client_name": "Acme Trading",
        "port_of_loading": "Aqaba, Jordan",
        "port_of_discharge": "Shanghai, China",
        "payment_terms": 30,
    }
    fields.update(overrides)
    return Shipment(**fields)


def build_completable(**overrides) -> Shipment:
    """An operations-stage shipment with every completion field filled."""
    fields = {
        "stage": ShipmentStage.OPERATIONS,
        "pricing_owner": PRICING_USER,
        "ops_owner": OPS_USER,
        "agent": "Blue Anchor Logistics",
        "selling_price_per_unit": Decimal("2500"),
        "cost_per_unit": Decimal("1800"),
        "total_cost": Decimal("1800"),
        "total_profit": Decimal("700"),
        "invoice_number": "INV-1001",
        "do_release_date": date(2024, 2, 20),
        "total_invoice_amount": Decimal("2500"),
    }
    fields.update(overrides)
    return build_shipment(**fields)


@pytest.fixture
def make_shipment():
    return build_shipment


@pytest.fixture
def make_completable():
    return build_completable


@pytest.fixture
def active_config():
    return get_active_config()
