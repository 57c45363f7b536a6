"""
freight_services.workflow_policy -- The decision layer behind every form.

Responsibility:
    Compose the stage machine, the field permission resolver, the
    commission engine, the schedule calculator and the edit-lock manager
    from one configuration set, and expose them as a single surface.
    Also applies decisions: ``advance``/``revert``/``mark_lost`` and
    ``apply_edits`` return updated shipments or raise.

Architecture position:
    Services -- stateful orchestration over engines + kernel.  The only
    layer that reads the clock (completion and lost timestamps) and owns
    the lock manager.

Invariants enforced:
    - Decision methods (``can_*``, ``get_*``, ``calculate_*``) are total and
      never raise.
    - Apply methods never mutate the input shipment; they return a copy
      built with ``dataclasses.replace``.
    - ``apply_edits`` runs every submitted field through the same pipeline
      the form used to enable it, so the rule tables are authoritative on
      the write path too, not only a rendering hint.

Failure modes:
    - StageTransitionRefusedError from advance/revert/mark_lost.
    - FieldEditRefusedError from apply_edits, listing every refused field.
    - RecordLockedError from ``edit_session`` when someone else holds the record.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path
from typing import Any

from sqlalchemy.orm import Session

from freight_config import get_active_config
from freight_config.schema import WorkflowConfigurationSet, builtin_configuration_set
from freight_engines.commission import CommissionEngine
from freight_engines.field_permissions import FieldPermissionResolver
from freight_engines.pricing import (
    PRICING_INPUT_FIELDS,
    coerce_pricing_inputs,
    derive_pricing_totals,
)
from freight_engines.schedule import ScheduleCalculator
from freight_engines.stage_machine import StageMachine
from freight_kernel.domain.clock import Clock, SystemClock
from freight_kernel.domain.commission import CommissionBreakdown, CommissionRule
from freight_kernel.domain.decisions import FieldDecision, TransitionDecision
from freight_kernel.domain.edit_lock import EditLock, EditLockStore
from freight_kernel.domain.roles import Role, normalize_roles
from freight_kernel.domain.shipment import SHIPMENT_FIELD_NAMES, Shipment, ShipmentStage
from freight_kernel.exceptions import FieldEditRefusedError, StageTransitionRefusedError
from freight_kernel.logging_config import LogContext, get_logger
from freight_kernel.selectors.commission_rule_selector import CommissionRuleSelector
from freight_kernel.services.edit_lock_service import EditLockManager

logger = get_logger("services.workflow_policy")

Roles = Iterable[Role | str]


class WorkflowPolicy:
    """
    Public surface of the workflow authorization and derived-value engine.

    Contract:
        Built from a ``WorkflowConfigurationSet`` (the built-in defaults
        when none is given).  One instance is shared by every form of a
        process; only the lock manager holds mutable state.
    """

    def __init__(
        self,
        config: WorkflowConfigurationSet | None = None,
        *,
        clock: Clock | None = None,
        lock_store: EditLockStore | None = None,
        commission_rules: Iterable[CommissionRule | Mapping] = (),
        salary_inputs: Mapping[str, Decimal | int | str] | None = None,
    ):
        self._config = config or builtin_configuration_set()
        self._clock = clock or SystemClock()
        self._stages = StageMachine(self._config.stage_policy)
        self._permissions = FieldPermissionResolver(self._config.permission_policy)
        self._schedule = ScheduleCalculator(self._config.schedule_policy)
        self._commissions = CommissionEngine(
            commission_rules, self._config.commission_policy, salary_inputs
        )
        self._locks = EditLockManager(
            store=lock_store,
            clock=self._clock,
            timeout_seconds=self._config.lock_policy.timeout_seconds,
        )

    @classmethod
    def from_config(
        cls, config_path: Path | str | None = None, **kwargs: Any
    ) -> WorkflowPolicy:
        """Build from ``get_active_config(config_path)``."""
        return cls(get_active_config(config_path), **kwargs)

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    @property
    def config(self) -> WorkflowConfigurationSet:
        return self._config

    @property
    def stage_machine(self) -> StageMachine:
        return self._stages

    @property
    def permissions(self) -> FieldPermissionResolver:
        return self._permissions

    @property
    def commissions(self) -> CommissionEngine:
        return self._commissions

    @property
    def schedule(self) -> ScheduleCalculator:
        return self._schedule

    @property
    def locks(self) -> EditLockManager:
        return self._locks

    def load_commission_rules(
        self,
        session: Session,
        salary_inputs: Mapping[str, Decimal | int | str] | None = None,
    ) -> tuple[CommissionRule, ...]:
        """Replace the commission engine's rules with those stored in the database."""
        policy = self._config.commission_policy
        rules = CommissionRuleSelector(session).list_rules(policy.fallback_percentage)
        self.set_commission_rules(rules, salary_inputs)
        return rules

    def set_commission_rules(
        self,
        rules: Iterable[CommissionRule | Mapping],
        salary_inputs: Mapping[str, Decimal | int | str] | None = None,
    ) -> None:
        self._commissions = CommissionEngine(
            rules, self._config.commission_policy, salary_inputs
        )

    # ------------------------------------------------------------------
    # Record and field permissions
    # ------------------------------------------------------------------

    def can_edit_shipment(
        self,
        shipment: Shipment,
        roles: Roles,
        ref_prefix: str | None = None,
        user_name: str | None = None,
    ) -> bool:
        return self._permissions.can_edit_shipment(shipment, roles, ref_prefix, user_name)

    def can_edit_field(
        self,
        shipment: Shipment,
        field_name: str,
        roles: Roles,
        user_name: str | None = None,
    ) -> bool:
        return self._permissions.can_edit_field(shipment, field_name, roles, user_name)

    def get_field_lock_reason(
        self,
        field_name: str,
        roles: Roles,
        shipment: Shipment,
        user_name: str | None = None,
    ) -> str:
        return self._permissions.get_field_lock_reason(field_name, roles, shipment, user_name)

    def evaluate_field(
        self,
        shipment: Shipment,
        field_name: str,
        roles: Roles,
        user_name: str | None = None,
    ) -> FieldDecision:
        return self._permissions.evaluate(shipment, field_name, roles, user_name)

    def is_field_visible(self, field_name: str, roles: Roles) -> bool:
        return self._permissions.is_field_visible(field_name, roles)

    def can_see_shipment(
        self, shipment: Shipment, roles: Roles, ref_prefix: str | None = None
    ) -> bool:
        return self._permissions.can_see_shipment(shipment, roles, ref_prefix)

    def can_access_page(self, roles: Roles, path: str) -> bool:
        return self._permissions.can_access_page(roles, path)

    # ------------------------------------------------------------------
    # Stage decisions
    # ------------------------------------------------------------------

    def can_move_to_stage(self, shipment: Shipment, target: ShipmentStage | str) -> bool:
        return self._stages.can_move_to_stage(shipment, target)

    def can_advance_stage(self, roles: Roles, current_stage: ShipmentStage | str) -> bool:
        return self._stages.can_advance_stage(roles, current_stage)

    def can_revert_stage(self, roles: Roles, current_stage: ShipmentStage | str) -> bool:
        return self._stages.can_revert_stage(roles, current_stage)

    def get_previous_stage(self, stage: ShipmentStage | str) -> ShipmentStage | None:
        return self._stages.get_previous_stage(stage)

    def get_next_stage(self, stage: ShipmentStage | str) -> ShipmentStage | None:
        return self._stages.get_next_stage(stage)

    # ------------------------------------------------------------------
    # Locks
    # ------------------------------------------------------------------

    def acquire_lock(self, resource_id: str, holder_id: str) -> bool:
        return self._locks.acquire(resource_id, holder_id)

    def release_lock(self, resource_id: str, holder_id: str | None = None) -> None:
        self._locks.release(resource_id, holder_id)

    @contextmanager
    def edit_session(self, shipment: Shipment, holder_id: str) -> Iterator[EditLock]:
        """Hold the shipment's edit lock for the block, with log context bound."""
        with LogContext.bind(shipment_id=shipment.id, actor_id=holder_id):
            with self._locks.hold(shipment.id, holder_id) as lock:
                yield lock

    # ------------------------------------------------------------------
    # Commissions
    # ------------------------------------------------------------------

    def calculate_for_salesperson(
        self, salesperson: str, gross_profit: Decimal | int | str
    ) -> CommissionBreakdown:
        return self._commissions.calculate_for_salesperson(salesperson, gross_profit)

    def get_rule_for_salesperson(self, salesperson: str) -> CommissionRule:
        return self._commissions.get_rule_for_salesperson(salesperson)

    # ------------------------------------------------------------------
    # Applying decisions
    # ------------------------------------------------------------------

    def advance(self, shipment: Shipment, roles: Roles) -> Shipment:
        """Move one stage forward, stamping completion artifacts."""
        decision = self._stages.plan_advance(shipment, roles)
        return self._apply(shipment, decision)

    def revert(self, shipment: Shipment, roles: Roles) -> Shipment:
        """Move one stage back, clearing completion artifacts."""
        decision = self._stages.plan_revert(shipment, roles)
        return self._apply(shipment, decision)

    def mark_lost(self, shipment: Shipment, roles: Roles, reason: str = "") -> Shipment:
        """Flag the shipment lost; it becomes read-only for everyone but admin."""
        if not self._stages.can_mark_lost(shipment, roles):
            if shipment.is_lost:
                why = "Shipment is already marked lost"
            elif shipment.stage == self._stages.final_stage:
                why = "Completed shipments cannot be marked lost"
            else:
                why = f"Your role cannot mark a shipment lost at the {shipment.stage.value} stage"
            raise StageTransitionRefusedError(
                shipment.id, shipment.stage.value, None, why
            )
        updated = dataclasses.replace(
            shipment,
            is_lost=True,
            lost_reason=reason or None,
            lost_at=self._clock.now(),
        )
        logger.info(
            "shipment_marked_lost",
            extra={"shipment_id": shipment.id, "stage": shipment.stage.value},
        )
        return updated

    def apply_edits(
        self,
        shipment: Shipment,
        changes: Mapping[str, Any],
        roles: Roles,
        user_name: str | None = None,
    ) -> Shipment:
        """
        Apply submitted field values if every one of them is editable.

        Ownership claims implied by the edit are applied with it, and the
        derived pricing totals are recomputed when a pricing input changed.
        Pricing inputs are parsed first; one that does not parse is refused.

        Raises:
            FieldEditRefusedError: listing every refused field and its reason.
        """
        held = normalize_roles(roles)
        coerced, refused = coerce_pricing_inputs(changes)
        for name in changes:
            if name not in SHIPMENT_FIELD_NAMES:
                refused[name] = "Unknown field"
                continue
            decision = self._permissions.evaluate(shipment, name, held, user_name)
            if not decision.editable:
                refused[name] = decision.reason
        if refused:
            logger.info(
                "field_edit_refused",
                extra={"shipment_id": shipment.id, "fields": sorted(refused)},
            )
            raise FieldEditRefusedError(shipment.id, refused)

        updates = coerced
        for name, value in self._permissions.ownership_claims(shipment, held, user_name).items():
            updates.setdefault(name, value)

        updated = dataclasses.replace(shipment, **updates)
        if PRICING_INPUT_FIELDS & set(changes):
            updated = dataclasses.replace(updated, **derive_pricing_totals(updated))
        return updated

    def _apply(self, shipment: Shipment, decision: TransitionDecision) -> Shipment:
        if not decision.allowed:
            raise StageTransitionRefusedError(
                shipment.id,
                decision.from_stage.value,
                decision.to_stage.value if decision.to_stage else None,
                decision.reason,
                decision.missing_fields,
            )
        updates: dict[str, Any] = {"stage": decision.to_stage}
        now = self._clock.now()
        for name in decision.stamp_fields:
            updates[name] = now
        for name in decision.clear_fields:
            updates[name] = None
        updated = dataclasses.replace(shipment, **updates)
        logger.info(
            "shipment_stage_changed",
            extra={
                "shipment_id": shipment.id,
                "from_stage": decision.from_stage.value,
                "to_stage": decision.to_stage.value,
            },
        )
        return updated
