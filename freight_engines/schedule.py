"""
Module: freight_engines.schedule
Responsibility:
    Date arithmetic for the collections and payables work queues:
    when a client payment falls due, when to remind about paying the
    agent, how many days a collection is overdue, and how far the
    operations checklist has progressed.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    ``today`` is always passed in; this module never reads the clock.

Invariants enforced:
    - Collection due date = completion date + payment-term days.
    - Export shipments (port of loading matches the home port) are
      reminded after ETD; imports are reminded before ETA.
    - Checklist progress counts whole sections, never individual fields.

Failure modes:
    - None.  Shipments that do not qualify yield ``None``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from freight_kernel.domain.policy import DEFAULT_SCHEDULE_POLICY, SchedulePolicy
from freight_kernel.domain.shipment import Shipment, ShipmentStage
from freight_kernel.logging_config import get_logger

logger = get_logger("engines.schedule")


# Operations checklist sections, in display order
CHECKLIST_SECTIONS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("shipping", ("terminal_cutoff", "gate_in_terminal", "etd", "eta")),
    ("bl", ("bl_type", "bl_draft_approval", "final_bl_issued")),
    ("delivery", ("arrival_notice_sent", "do_issued", "do_release_date")),
    ("booking", ("booking_reference", "invoice_number")),
    ("invoicing", ("total_invoice_amount",)),
)


@dataclass(frozen=True)
class ChecklistProgress:
    """Per-section completion and the overall rounded percentage."""

    sections: tuple[tuple[str, bool], ...]
    percent: int

    @property
    def completed_sections(self) -> int:
        return sum(1 for _, done in self.sections if done)

    def is_section_complete(self, name: str) -> bool:
        return dict(self.sections).get(name, False)


@dataclass(frozen=True)
class PayableReminder:
    shipment: Shipment
    reminder_date: date


@dataclass(frozen=True)
class CollectionDue:
    shipment: Shipment
    due_date: date


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


class ScheduleCalculator:
    """Due-date and progress calculations over shipments."""

    def __init__(self, policy: SchedulePolicy = DEFAULT_SCHEDULE_POLICY):
        self._policy = policy

    @property
    def policy(self) -> SchedulePolicy:
        return self._policy

    def is_export(self, shipment: Shipment) -> bool:
        pol = (shipment.port_of_loading or "").lower()
        return self._policy.home_port.lower() in pol

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def collection_due_date(self, shipment: Shipment) -> date | None:
        """Completion date plus payment terms; ``None`` unless completed and uncollected."""
        if (
            shipment.stage != ShipmentStage.COMPLETED
            or shipment.is_lost
            or shipment.completed_at is None
            or shipment.payment_collected
        ):
            return None
        terms = max(shipment.payment_terms or 0, 0)
        return _as_date(shipment.completed_at) + timedelta(days=terms)

    def days_overdue(self, shipment: Shipment, today: date) -> int:
        """Days past the collection due date; 0 when not yet due or not outstanding."""
        due = self.collection_due_date(shipment)
        if due is None:
            return 0
        return max((today - due).days, 0)

    def collections_due(self, shipments: Iterable[Shipment]) -> tuple[CollectionDue, ...]:
        """Outstanding collections ordered by due date."""
        items = []
        for shipment in shipments:
            due = self.collection_due_date(shipment)
            if due is not None:
                items.append(CollectionDue(shipment=shipment, due_date=due))
        return tuple(sorted(items, key=lambda item: item.due_date))

    # ------------------------------------------------------------------
    # Payables
    # ------------------------------------------------------------------

    def needs_agent_payment(self, shipment: Shipment) -> bool:
        return (
            shipment.stage in (ShipmentStage.OPERATIONS, ShipmentStage.COMPLETED)
            and not shipment.is_lost
            and bool(shipment.agent)
            and bool(shipment.total_cost)
            and not shipment.agent_paid
        )

    def payable_reminder_date(self, shipment: Shipment, today: date) -> date | None:
        """When to remind about paying the agent; ``None`` if nothing is owed."""
        if not self.needs_agent_payment(shipment):
            return None
        if self.is_export(shipment) and shipment.etd is not None:
            return shipment.etd + timedelta(days=self._policy.export_reminder_days_after_etd)
        if shipment.eta is not None:
            return shipment.eta - timedelta(days=self._policy.import_reminder_days_before_eta)
        return today

    def payables_due(
        self, shipments: Iterable[Shipment], today: date
    ) -> tuple[PayableReminder, ...]:
        items = []
        for shipment in shipments:
            reminder = self.payable_reminder_date(shipment, today)
            if reminder is not None:
                items.append(PayableReminder(shipment=shipment, reminder_date=reminder))
        logger.debug("payables_due_computed", extra={"count": len(items)})
        return tuple(sorted(items, key=lambda item: item.reminder_date))

    # ------------------------------------------------------------------
    # Operations checklist
    # ------------------------------------------------------------------

    @staticmethod
    def checklist_progress(shipment: Shipment) -> ChecklistProgress:
        sections = tuple(
            (name, all(bool(shipment.field_value(f)) for f in names))
            for name, names in CHECKLIST_SECTIONS
        )
        done = sum(1 for _, complete in sections if complete)
        percent = int(round(done * 100 / len(sections)))
        return ChecklistProgress(sections=sections, percent=percent)
