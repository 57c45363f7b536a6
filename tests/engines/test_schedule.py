"""
Tests for the collections and payables schedule calculator.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

from freight_engines.schedule import CHECKLIST_SECTIONS, ScheduleCalculator
from freight_kernel.domain.policy import SchedulePolicy
from freight_kernel.domain.shipment import ShipmentStage
from tests.conftest import build_completable, build_shipment

COMPLETED_AT = datetime(2024, 2, 1, 15, 30, tzinfo=timezone.utc)


def completed(**overrides):
    fields = {"stage": ShipmentStage.COMPLETED, "completed_at": COMPLETED_AT}
    fields.update(overrides)
    return build_completable(**fields)


class TestCollections:
    """Due date = completion date + payment terms."""

    def setup_method(self):
        self.calc = ScheduleCalculator()

    def test_due_date_from_terms(self):
        assert self.calc.collection_due_date(completed()) == date(2024, 3, 2)

    def test_zero_terms_due_on_completion(self):
        assert self.calc.collection_due_date(completed(payment_terms=0)) == date(2024, 2, 1)

    def test_not_due_unless_completed_and_outstanding(self):
        assert self.calc.collection_due_date(build_completable()) is None
        assert self.calc.collection_due_date(completed(payment_collected=True)) is None
        assert self.calc.collection_due_date(completed(is_lost=True)) is None
        assert self.calc.collection_due_date(completed(completed_at=None)) is None

    def test_days_overdue(self):
        shipment = completed()
        assert self.calc.days_overdue(shipment, date(2024, 3, 12)) == 10
        assert self.calc.days_overdue(shipment, date(2024, 3, 1)) == 0
        assert self.calc.days_overdue(completed(payment_collected=True), date(2025, 1, 1)) == 0

    def test_collections_due_sorted(self):
        late = completed(id="late", payment_terms=60)
        early = completed(id="early", payment_terms=7)
        paid = completed(id="paid", payment_collected=True)
        due = self.calc.collections_due([late, paid, early])
        assert [item.shipment.id for item in due] == ["early", "late"]
        assert due[0].due_date == date(2024, 2, 8)


class TestPayables:
    """Agent payment reminders."""

    def setup_method(self):
        self.calc = ScheduleCalculator()

    def test_export_detected_by_home_port(self):
        assert self.calc.is_export(build_shipment())
        assert not self.calc.is_export(build_shipment(port_of_loading="Shanghai, China"))
        assert not self.calc.is_export(build_shipment(port_of_loading=None))

    def test_export_reminded_after_etd(self):
        shipment = build_completable(etd=date(2024, 3, 5))
        assert self.calc.payable_reminder_date(shipment, date(2024, 3, 1)) == date(2024, 3, 8)

    def test_import_reminded_before_eta(self):
        shipment = build_completable(port_of_loading="Shanghai, China", eta=date(2024, 4, 20))
        assert self.calc.payable_reminder_date(shipment, date(2024, 3, 1)) == date(2024, 4, 10)

    def test_no_dates_reminds_today(self):
        today = date(2024, 3, 1)
        assert self.calc.payable_reminder_date(build_completable(), today) == today

    def test_nothing_owed(self):
        today = date(2024, 3, 1)
        assert self.calc.payable_reminder_date(build_completable(agent_paid=True), today) is None
        assert self.calc.payable_reminder_date(build_completable(is_lost=True), today) is None
        assert self.calc.payable_reminder_date(build_completable(agent=None), today) is None
        assert self.calc.payable_reminder_date(build_completable(total_cost=None), today) is None
        assert self.calc.payable_reminder_date(
            build_completable(stage=ShipmentStage.PRICING), today
        ) is None

    def test_payables_due_sorted(self):
        today = date(2024, 3, 1)
        a = build_completable(id="a", etd=date(2024, 3, 20))
        b = build_completable(id="b", etd=date(2024, 3, 2))
        paid = build_completable(id="paid", agent_paid=True)
        due = self.calc.payables_due([a, paid, b], today)
        assert [item.shipment.id for item in due] == ["b", "a"]

    def test_policy_constants(self):
        calc = ScheduleCalculator(
            SchedulePolicy(home_port="shanghai", export_reminder_days_after_etd=1)
        )
        shipment = build_completable(port_of_loading="Shanghai, China", etd=date(2024, 3, 5))
        assert calc.payable_reminder_date(shipment, date(2024, 3, 1)) == date(2024, 3, 6)


class TestChecklistProgress:
    """Whole-section progress for the operations checklist."""

    def test_empty_checklist(self):
        progress = ScheduleCalculator.checklist_progress(build_shipment())
        assert progress.percent == 0
        assert progress.completed_sections == 0
        assert [name for name, _ in progress.sections] == [n for n, _ in CHECKLIST_SECTIONS]

    def test_partial_progress(self):
        shipment = build_completable(booking_reference="BK-77")
        progress = ScheduleCalculator.checklist_progress(shipment)
        assert progress.is_section_complete("booking")
        assert progress.is_section_complete("invoicing")
        assert not progress.is_section_complete("delivery")
        assert progress.percent == 40

    def test_full_progress(self):
        shipment = build_completable(
            booking_reference="BK-77",
            terminal_cutoff=date(2024, 2, 1),
            gate_in_terminal=date(2024, 2, 2),
            etd=date(2024, 2, 3),
            eta=date(2024, 2, 18),
            bl_type="Telex",
            bl_draft_approval=True,
            final_bl_issued=True,
            arrival_notice_sent=True,
            do_issued=True,
            total_invoice_amount=Decimal("2500"),
        )
        progress = ScheduleCalculator.checklist_progress(shipment)
        assert progress.percent == 100
        assert progress.completed_sections == len(CHECKLIST_SECTIONS)
