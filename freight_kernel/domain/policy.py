"""
Policy tables (``freight_kernel.domain.policy``).

Responsibility
--------------
Immutable configuration injected into the engines: the stage graph and
its transition owners, the field category map, read-only and hidden
field sets, page permissions, commission defaults, lock expiry and the
schedule constants.  The ``DEFAULT_*`` instances are the built-in
policy; ``freight_config`` loads the same shape from YAML.

Architecture position
---------------------
**Kernel domain layer** -- pure data.  No module-level mutable state:
every mapping is wrapped in ``MappingProxyType``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType

from freight_kernel.domain.roles import Role
from freight_kernel.domain.shipment import FieldCategory, ShipmentStage


def frozen_map(data: Mapping) -> Mapping:
    """Read-only copy of ``data``."""
    return MappingProxyType(dict(data))


# =========================================================================
# Stage policy
# =========================================================================


@dataclass(frozen=True)
class RequiredField:
    """A field the completion gate requires, with its display label."""

    name: str
    label: str


@dataclass(frozen=True)
class StagePolicy:
    """Shipment lifecycle graph and who may move along it.

    ``advance_owners[s]`` is the single role that owns the forward
    transition out of ``s``.  ``revert_owners[s]`` is the role that may
    revert out of ``s``.  Admin may always do both.
    """

    order: tuple[ShipmentStage, ...]
    forward: Mapping[ShipmentStage, tuple[ShipmentStage, ...]]
    advance_owners: Mapping[ShipmentStage, Role]
    revert_owners: Mapping[ShipmentStage, Role]
    completion_requirements: tuple[RequiredField, ...] = ()
    terminal_artifacts: tuple[str, ...] = ("completed_at",)


DEFAULT_STAGE_POLICY = StagePolicy(
    order=(
        ShipmentStage.LEAD,
        ShipmentStage.PRICING,
        ShipmentStage.OPERATIONS,
        ShipmentStage.COMPLETED,
    ),
    forward=frozen_map({
        ShipmentStage.LEAD: (ShipmentStage.PRICING,),
        ShipmentStage.PRICING: (ShipmentStage.OPERATIONS,),
        ShipmentStage.OPERATIONS: (ShipmentStage.COMPLETED,),
        ShipmentStage.COMPLETED: (),
    }),
    advance_owners=frozen_map({
        ShipmentStage.LEAD: Role.SALES,
        ShipmentStage.PRICING: Role.PRICING,
        ShipmentStage.OPERATIONS: Role.OPS,
    }),
    # Undoing an advance belongs to the role that made it
    revert_owners=frozen_map({
        ShipmentStage.PRICING: Role.SALES,
        ShipmentStage.OPERATIONS: Role.PRICING,
        ShipmentStage.COMPLETED: Role.OPS,
    }),
    completion_requirements=(
        RequiredField("do_release_date", "DO Release Date"),
        RequiredField("invoice_number", "Invoice Number"),
        RequiredField("total_invoice_amount", "Total Invoice Amount"),
    ),
    terminal_artifacts=("completed_at",),
)


# =========================================================================
# Permission policy
# =========================================================================


_LEAD_FIELDS = (
    "client_name",
    "currency",
    "port_of_loading",
    "port_of_discharge",
    "equipment",
    "mode_of_transport",
    "incoterm",
    "payment_terms",
)

_PRICING_FIELDS = (
    "pricing_owner",
    "agent",
    "quantity",
    "selling_price_per_unit",
    "cost_per_unit",
)

_OPERATIONS_FIELDS = (
    "ops_owner",
    "booking_reference",
    "invoice_number",
    "bl_type",
    "bl_draft_approval",
    "final_bl_issued",
    "terminal_cutoff",
    "gate_in_terminal",
    "etd",
    "eta",
    "arrival_notice_sent",
    "do_issued",
    "do_release_date",
    "total_invoice_amount",
    "invoice_currency",
)

_PAYABLES_FIELDS = (
    "agent_paid",
    "agent_paid_date",
    "agent_invoice_uploaded",
    "agent_invoice_amount",
    "agent_invoice_date",
)

_COLLECTIONS_FIELDS = (
    "payment_collected",
    "payment_collected_date",
    "collection_notes",
)


def _categorize(category: FieldCategory, names: tuple[str, ...]) -> dict[str, FieldCategory]:
    return {name: category for name in names}


_ALL_PAGES = (
    "/",
    "/leads",
    "/pricing",
    "/quotations",
    "/operations",
    "/payables",
    "/collections",
    "/commissions",
    "/database",
    "/activity",
    "/settings",
    "/users",
)


@dataclass(frozen=True)
class PermissionPolicy:
    """Field-level access configuration.

    Category membership is static: a field belongs to at most one
    category.  Fields in no category are editable by admin only.
    """

    field_categories: Mapping[str, FieldCategory]
    read_only_fields: frozenset[str] = frozenset()
    hidden_fields: Mapping[Role, frozenset[str]] = field(
        default_factory=lambda: frozen_map({})
    )
    pricing_extra_fields: frozenset[str] = frozenset()
    pricing_claim_fields: frozenset[str] = frozenset()
    ownership_bypass_roles: frozenset[Role] = frozenset({Role.FINANCE, Role.ADMIN})
    page_permissions: Mapping[Role, tuple[str, ...]] = field(
        default_factory=lambda: frozen_map({})
    )

    def category_of(self, field_name: str) -> FieldCategory | None:
        return self.field_categories.get(field_name)

    def fields_in(self, category: FieldCategory) -> tuple[str, ...]:
        return tuple(sorted(n for n, c in self.field_categories.items() if c == category))


DEFAULT_PERMISSION_POLICY = PermissionPolicy(
    field_categories=frozen_map({
        **_categorize(FieldCategory.LEAD, _LEAD_FIELDS),
        **_categorize(FieldCategory.PRICING, _PRICING_FIELDS),
        **_categorize(FieldCategory.OPERATIONS, _OPERATIONS_FIELDS),
        **_categorize(FieldCategory.PAYABLES, _PAYABLES_FIELDS),
        **_categorize(FieldCategory.COLLECTIONS, _COLLECTIONS_FIELDS),
        "client_remarks": FieldCategory.CLIENT_REMARKS,
    }),
    read_only_fields=frozenset({
        "id",
        "reference_id",
        "created_at",
        "stage",
        "completed_at",
        "lost_at",
        "profit_per_unit",
        "total_selling_price",
        "total_cost",
        "total_profit",
    }),
    hidden_fields=frozen_map({
        Role.OPS: frozenset({
            "selling_price_per_unit",
            "cost_per_unit",
            "profit_per_unit",
            "total_selling_price",
            "total_cost",
            "total_profit",
        }),
        Role.COLLECTIONS: frozenset({
            "cost_per_unit",
            "profit_per_unit",
            "total_cost",
            "total_profit",
            "agent_invoice_amount",
        }),
    }),
    pricing_extra_fields=frozenset({"client_name", "currency"}),
    pricing_claim_fields=frozenset({"pricing_owner"}),
    ownership_bypass_roles=frozenset({Role.FINANCE, Role.ADMIN}),
    page_permissions=frozen_map({
        Role.ADMIN: _ALL_PAGES,
        Role.SALES: ("/", "/leads", "/pricing", "/quotations", "/operations", "/database"),
        Role.PRICING: ("/", "/leads", "/pricing", "/quotations", "/database"),
        Role.OPS: ("/", "/operations", "/database"),
        Role.COLLECTIONS: ("/", "/collections", "/database"),
        Role.FINANCE: ("/", "/payables", "/collections", "/commissions", "/database"),
    }),
)


# =========================================================================
# Commission, lock and schedule policies
# =========================================================================


@dataclass(frozen=True)
class CommissionPolicy:
    """``default_percentage`` applies to salespeople with no explicit rule;
    ``fallback_percentage`` replaces rules whose formula is unrecognized."""

    default_percentage: Decimal = Decimal("4")
    fallback_percentage: Decimal = Decimal("5")


@dataclass(frozen=True)
class LockPolicy:
    """``timeout_seconds=None`` means locks never expire."""

    timeout_seconds: int | None = None


@dataclass(frozen=True)
class SchedulePolicy:
    """Constants for collection due dates and agent payment reminders."""

    home_port: str = "aqaba"
    export_reminder_days_after_etd: int = 3
    import_reminder_days_before_eta: int = 10


DEFAULT_COMMISSION_POLICY = CommissionPolicy()
DEFAULT_LOCK_POLICY = LockPolicy()
DEFAULT_SCHEDULE_POLICY = SchedulePolicy()
