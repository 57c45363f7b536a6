"""
Module: freight_engines.field_permissions
Responsibility:
    Resolve, per user and per field, whether a shipment field is visible
    and whether it may be edited right now, and explain why not.  Also
    answers the coarse record-level questions (may this row be opened
    for editing, may this user see it at all, may this role open a page).

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Consumed by every form
    on every render, so no decision here may block or raise.

Invariants enforced:
    - Strict ordered pipeline; the first matching rule decides:
        1. read_only    -- system-computed fields are never editable
        2. hidden       -- hidden for every held role => not visible, not editable
        3. terminal     -- lost or completed => admin only
        4. admin        -- admin edits anything that survived 1-3
        5. ownership    -- payables/collections need an owner or a bypass role
        6. stage_owner  -- the assigned owner of the current stage's category
        7. role_matrix  -- any held role granting the (category, stage) pair
    - Union semantics: capabilities are predicates over (role, context)
      folded with ``any``; adding a role never revokes an edit right.
    - ``can_edit_field`` and ``get_field_lock_reason`` are projections of
      the same ``evaluate`` call and cannot disagree.

Failure modes:
    - None.  Unknown roles are ignored, unknown fields are uncategorized
      (admin-only), a missing user name is treated as "not an owner".
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass

from freight_kernel.domain.decisions import FieldDecision
from freight_kernel.domain.policy import (
    DEFAULT_PERMISSION_POLICY,
    PermissionPolicy,
    frozen_map,
)
from freight_kernel.domain.roles import Role, RoleSet, normalize_roles
from freight_kernel.domain.shipment import (
    SHIPMENT_FIELD_NAMES,
    FieldCategory,
    Shipment,
    ShipmentStage,
)
from freight_kernel.logging_config import get_logger

logger = get_logger("engines.field_permissions")


_CATEGORY_LABELS: dict[FieldCategory, str] = {
    FieldCategory.LEAD: "lead",
    FieldCategory.PRICING: "pricing",
    FieldCategory.OPERATIONS: "operations",
    FieldCategory.PAYABLES: "payables",
    FieldCategory.COLLECTIONS: "collections",
    FieldCategory.CLIENT_REMARKS: "client remarks",
}


@dataclass(frozen=True)
class EditContext:
    """Everything a role predicate may look at."""

    shipment: Shipment
    field_name: str
    category: FieldCategory | None
    user_name: str | None
    policy: PermissionPolicy

    @property
    def stage(self) -> ShipmentStage:
        return self.shipment.stage

    @property
    def is_own_shipment(self) -> bool:
        return bool(self.user_name) and self.shipment.salesperson == self.user_name


# =========================================================================
# Role x category matrix
# =========================================================================


def _sales_grants(ctx: EditContext) -> bool:
    if ctx.category == FieldCategory.CLIENT_REMARKS:
        return True
    return (
        ctx.category == FieldCategory.LEAD
        and ctx.stage == ShipmentStage.LEAD
        and ctx.is_own_shipment
    )


def _pricing_grants(ctx: EditContext) -> bool:
    if ctx.stage == ShipmentStage.PRICING:
        return (
            ctx.category in (FieldCategory.PRICING, FieldCategory.LEAD)
            or ctx.field_name in ctx.policy.pricing_extra_fields
        )
    if ctx.stage == ShipmentStage.LEAD:
        return ctx.field_name in ctx.policy.pricing_claim_fields
    return False


def _ops_grants(ctx: EditContext) -> bool:
    return ctx.category == FieldCategory.OPERATIONS and ctx.stage == ShipmentStage.OPERATIONS


def _collections_grants(ctx: EditContext) -> bool:
    return ctx.category == FieldCategory.COLLECTIONS


def _finance_grants(ctx: EditContext) -> bool:
    return ctx.category == FieldCategory.PAYABLES


ROLE_GRANTS: Mapping[Role, Callable[[EditContext], bool]] = frozen_map({
    Role.ADMIN: lambda ctx: True,
    Role.SALES: _sales_grants,
    Role.PRICING: _pricing_grants,
    Role.OPS: _ops_grants,
    Role.COLLECTIONS: _collections_grants,
    Role.FINANCE: _finance_grants,
})


# Record-level counterparts used by can_edit_shipment


@dataclass(frozen=True)
class RecordContext:
    shipment: Shipment
    user_name: str | None
    owns_record: bool

    @property
    def is_stage_owner(self) -> bool:
        s = self.shipment
        return bool(self.user_name) and self.user_name in (
            s.salesperson,
            s.pricing_owner,
            s.ops_owner,
        )


def _unclaimed_or_mine(owner: str | None, user_name: str | None) -> bool:
    return owner is None or (bool(user_name) and owner == user_name)


ROLE_RECORD_GRANTS: Mapping[Role, Callable[[RecordContext], bool]] = frozen_map({
    Role.ADMIN: lambda ctx: True,
    # Own lead in lead stage, client remarks at any stage
    Role.SALES: lambda ctx: ctx.owns_record,
    Role.PRICING: lambda ctx: (
        ctx.shipment.stage == ShipmentStage.LEAD
        or (
            ctx.shipment.stage == ShipmentStage.PRICING
            and _unclaimed_or_mine(ctx.shipment.pricing_owner, ctx.user_name)
        )
    ),
    Role.OPS: lambda ctx: (
        ctx.shipment.stage == ShipmentStage.OPERATIONS
        and _unclaimed_or_mine(ctx.shipment.ops_owner, ctx.user_name)
    ),
    Role.COLLECTIONS: lambda ctx: ctx.is_stage_owner,
    Role.FINANCE: lambda ctx: True,
})


# =========================================================================
# Resolver
# =========================================================================


class FieldPermissionResolver:
    """Per-field and per-record edit/view decisions.

    Contract:
        Stateless apart from the injected ``PermissionPolicy``.  Repeated
        calls with the same arguments return the same answer.
    """

    def __init__(self, policy: PermissionPolicy = DEFAULT_PERMISSION_POLICY):
        self._policy = policy

    @property
    def policy(self) -> PermissionPolicy:
        return self._policy

    # ------------------------------------------------------------------
    # Visibility
    # ------------------------------------------------------------------

    def is_field_visible(self, field_name: str, roles: Iterable[Role | str]) -> bool:
        """Visible if ANY held role can see it; no roles sees nothing."""
        return self._visible(field_name, normalize_roles(roles))

    def _visible(self, field_name: str, held: RoleSet) -> bool:
        if not held:
            return False
        hidden = self._policy.hidden_fields
        return any(field_name not in hidden.get(role, frozenset()) for role in held)

    def visible_fields(self, roles: Iterable[Role | str]) -> tuple[str, ...]:
        held = normalize_roles(roles)
        return tuple(sorted(f for f in SHIPMENT_FIELD_NAMES if self._visible(f, held)))

    # ------------------------------------------------------------------
    # Field pipeline
    # ------------------------------------------------------------------

    def evaluate(
        self,
        shipment: Shipment,
        field_name: str,
        roles: Iterable[Role | str],
        user_name: str | None = None,
    ) -> FieldDecision:
        """Run the ordered pipeline; the first matching rule decides."""
        held = normalize_roles(roles)
        policy = self._policy
        visible = self._visible(field_name, held)
        category = policy.category_of(field_name)

        if field_name in policy.read_only_fields:
            return FieldDecision(
                editable=False,
                visible=visible,
                rule="read_only",
                reason="This field is calculated by the system and cannot be edited",
            )

        if not visible:
            return FieldDecision(
                editable=False,
                visible=False,
                rule="hidden",
                reason="This field is not available to your role",
            )

        if shipment.is_terminal and Role.ADMIN not in held:
            state = "Lost" if shipment.is_lost else "Completed"
            return FieldDecision(
                editable=False,
                visible=True,
                rule="terminal",
                reason=f"{state} shipments are read-only",
            )

        if Role.ADMIN in held:
            return FieldDecision(editable=True, visible=True, rule="admin")

        if category in (FieldCategory.PAYABLES, FieldCategory.COLLECTIONS):
            if not self._is_any_owner(shipment, user_name) and not (
                held & policy.ownership_bypass_roles
            ):
                return FieldDecision(
                    editable=False,
                    visible=True,
                    rule="ownership",
                    reason=(
                        f"Only the shipment's owners or finance can edit "
                        f"{_CATEGORY_LABELS[category]} fields"
                    ),
                )

        gate_reason = self._stage_owner_gate(shipment, category, user_name)
        if gate_reason:
            return FieldDecision(
                editable=False, visible=True, rule="stage_owner", reason=gate_reason
            )

        ctx = EditContext(
            shipment=shipment,
            field_name=field_name,
            category=category,
            user_name=user_name,
            policy=policy,
        )
        if any(ROLE_GRANTS[role](ctx) for role in held):
            return FieldDecision(editable=True, visible=True, rule="role_matrix")

        if category is None:
            reason = "Only admin can edit this field"
        else:
            reason = (
                f"Your role cannot edit {_CATEGORY_LABELS[category]} fields "
                f"at the {shipment.stage.value} stage"
            )
        logger.debug(
            "field_edit_denied",
            extra={"field": field_name, "roles": held, "stage": shipment.stage.value},
        )
        return FieldDecision(editable=False, visible=True, rule="role_matrix", reason=reason)

    def can_edit_field(
        self,
        shipment: Shipment,
        field_name: str,
        roles: Iterable[Role | str],
        user_name: str | None = None,
    ) -> bool:
        return self.evaluate(shipment, field_name, roles, user_name).editable

    def get_field_lock_reason(
        self,
        field_name: str,
        roles: Iterable[Role | str],
        shipment: Shipment,
        user_name: str | None = None,
    ) -> str:
        """Human-readable reason the field is locked; ``""`` when editable."""
        return self.evaluate(shipment, field_name, roles, user_name).reason

    def editable_fields(
        self,
        shipment: Shipment,
        roles: Iterable[Role | str],
        user_name: str | None = None,
    ) -> tuple[str, ...]:
        held = normalize_roles(roles)
        return tuple(
            sorted(
                name
                for name in self._policy.field_categories
                if self.evaluate(shipment, name, held, user_name).editable
            )
        )

    @staticmethod
    def _is_any_owner(shipment: Shipment, user_name: str | None) -> bool:
        if not user_name:
            return False
        return user_name in (shipment.salesperson, shipment.pricing_owner, shipment.ops_owner)

    @staticmethod
    def _stage_owner_gate(
        shipment: Shipment, category: FieldCategory | None, user_name: str | None
    ) -> str:
        stage = shipment.stage
        if category == FieldCategory.OPERATIONS and stage == ShipmentStage.OPERATIONS:
            if not _unclaimed_or_mine(shipment.ops_owner, user_name):
                return f"Only the assigned ops owner ({shipment.ops_owner}) can edit operations fields"
        elif category == FieldCategory.PRICING and stage == ShipmentStage.PRICING:
            if not _unclaimed_or_mine(shipment.pricing_owner, user_name):
                return f"Only the assigned pricing owner ({shipment.pricing_owner}) can edit pricing fields"
        elif category == FieldCategory.LEAD and stage == ShipmentStage.LEAD:
            if not user_name or shipment.salesperson != user_name:
                return f"Only {shipment.salesperson} can edit lead fields"
        return ""

    # ------------------------------------------------------------------
    # Ownership claims
    # ------------------------------------------------------------------

    def ownership_claims(
        self,
        shipment: Shipment,
        roles: Iterable[Role | str],
        user_name: str | None,
    ) -> dict[str, str]:
        """Owner assignments implied by this user editing now.

        The first pricing editor in pricing claims ``pricing_owner`` and the
        first ops editor in operations claims ``ops_owner``.  Empty when the
        stage is already owned.  The caller persists the result.
        """
        if not user_name or shipment.is_terminal:
            return {}
        held = normalize_roles(roles)
        if (
            shipment.stage == ShipmentStage.PRICING
            and Role.PRICING in held
            and shipment.pricing_owner is None
        ):
            return {"pricing_owner": user_name}
        if (
            shipment.stage == ShipmentStage.OPERATIONS
            and Role.OPS in held
            and shipment.ops_owner is None
        ):
            return {"ops_owner": user_name}
        return {}

    # ------------------------------------------------------------------
    # Record-level decisions
    # ------------------------------------------------------------------

    def can_edit_shipment(
        self,
        shipment: Shipment,
        roles: Iterable[Role | str],
        ref_prefix: str | None = None,
        user_name: str | None = None,
    ) -> bool:
        """Coarse check: may this row be opened for editing at all?

        Same precedence as the field pipeline: terminal lock, admin
        override, then stage-specific ownership per held role.
        """
        held = normalize_roles(roles)
        if not held:
            return False
        if shipment.is_terminal:
            return Role.ADMIN in held
        ctx = RecordContext(
            shipment=shipment,
            user_name=user_name,
            owns_record=_owns_record(shipment, ref_prefix, user_name),
        )
        return any(ROLE_RECORD_GRANTS[role](ctx) for role in held)

    def can_see_shipment(
        self,
        shipment: Shipment,
        roles: Iterable[Role | str],
        ref_prefix: str | None = None,
    ) -> bool:
        """Sales-only users see their own shipments (by reference prefix); others see all."""
        held = normalize_roles(roles)
        if not held:
            return False
        if held == {Role.SALES}:
            return bool(ref_prefix) and shipment.reference_id.startswith(ref_prefix)
        return True

    def can_access_page(self, roles: Iterable[Role | str], path: str) -> bool:
        pages = self._policy.page_permissions
        return any(path in pages.get(role, ()) for role in normalize_roles(roles))


def _owns_record(shipment: Shipment, ref_prefix: str | None, user_name: str | None) -> bool:
    if user_name and shipment.salesperson == user_name:
        return True
    return bool(ref_prefix) and shipment.reference_id.startswith(ref_prefix)
