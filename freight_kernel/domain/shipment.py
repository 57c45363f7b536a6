"""
Shipment domain types (``freight_kernel.domain.shipment``).

Responsibility
--------------
The ``Shipment`` aggregate the whole decision layer operates on, the
pipeline ``ShipmentStage`` enum, and the ``FieldCategory`` enum used as
the unit of role-based access control.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``Shipment`` is frozen: engines never mutate it.  Callers apply a
  decision by building a new instance (``dataclasses.replace``).
* ``stage`` only advances along the transition graph or reverts one
  step backward (enforced by ``freight_engines.stage_machine``).
* ``pricing_owner`` / ``ops_owner`` are ``None`` until claimed.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any


class ShipmentStage(str, Enum):
    """Pipeline position of a shipment."""

    LEAD = "lead"
    PRICING = "pricing"
    OPERATIONS = "operations"
    COMPLETED = "completed"


class FieldCategory(str, Enum):
    """Functional grouping of a mutable shipment field."""

    LEAD = "lead"
    PRICING = "pricing"
    OPERATIONS = "operations"
    PAYABLES = "payables"
    COLLECTIONS = "collections"
    CLIENT_REMARKS = "client_remarks"


@dataclass(frozen=True)
class Shipment:
    """A shipment record as seen by the decision layer.

    Contract: frozen.  Money is ``Decimal``.  Dates that are business
    dates (ETD, DO release) are ``date``; event stamps are ``datetime``.
    """

    id: str
    reference_id: str
    salesperson: str
    stage: ShipmentStage = ShipmentStage.LEAD
    is_lost: bool = False
    lost_reason: str | None = None
    lost_at: datetime | None = None
    pricing_owner: str | None = None
    ops_owner: str | None = None
    created_at: datetime | None = None

    # Lead
    client_name: str | None = None
    currency: str = "USD"
    port_of_loading: str | None = None
    port_of_discharge: str | None = None
    equipment: str | None = None
    mode_of_transport: str | None = None
    incoterm: str | None = None
    payment_terms: int = 0

    # Pricing
    agent: str | None = None
    quantity: int = 1
    selling_price_per_unit: Decimal | None = None
    cost_per_unit: Decimal | None = None
    profit_per_unit: Decimal | None = None
    total_selling_price: Decimal | None = None
    total_cost: Decimal | None = None
    total_profit: Decimal | None = None

    # Operations
    booking_reference: str | None = None
    invoice_number: str | None = None
    bl_type: str | None = None
    bl_draft_approval: bool = False
    final_bl_issued: bool = False
    terminal_cutoff: date | None = None
    gate_in_terminal: date | None = None
    etd: date | None = None
    eta: date | None = None
    arrival_notice_sent: bool = False
    do_issued: bool = False
    do_release_date: date | None = None
    total_invoice_amount: Decimal | None = None
    invoice_currency: str | None = None
    completed_at: datetime | None = None

    # Payables
    agent_paid: bool = False
    agent_paid_date: date | None = None
    agent_invoice_uploaded: bool = False
    agent_invoice_amount: Decimal | None = None
    agent_invoice_date: date | None = None

    # Collections
    payment_collected: bool = False
    payment_collected_date: date | None = None
    collection_notes: str | None = None

    client_remarks: str | None = None

    def field_value(self, name: str) -> Any:
        """Read a field by name; unknown names read as ``None``."""
        if name not in SHIPMENT_FIELD_NAMES:
            return None
        return getattr(self, name)

    @property
    def is_terminal(self) -> bool:
        """Lost or completed: read-only for everyone but admin."""
        return self.is_lost or self.stage == ShipmentStage.COMPLETED


SHIPMENT_FIELD_NAMES: frozenset[str] = frozenset(f.name for f in fields(Shipment))
