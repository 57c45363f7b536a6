"""
Module: freight_engines.stage_machine
Responsibility:
    Shipment lifecycle graph: which stage a shipment may move to, which
    role owns each forward and backward move, and the completion gate
    that must pass before a shipment becomes ``completed``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Leaf component: depends
    only on kernel domain types.

Invariants enforced:
    - The graph is linear; ``can_move_to_stage`` is true only for
      configured forward adjacency (no skipping stages).
    - No role, admin included, advances out of the final stage.
    - ``lead`` has no predecessor and can never be reverted.
    - A lost shipment never moves.
    - The completion gate is all-or-nothing and reports every missing
      field, not just the first.
    - Lookups never mutate the shipment; callers apply the decision.

Failure modes:
    - None.  Every function is total; unknown stages or role strings
      simply answer ``False`` / ``None``.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from typing import Any

from freight_kernel.domain.decisions import TransitionDecision
from freight_kernel.domain.policy import DEFAULT_STAGE_POLICY, RequiredField, StagePolicy
from freight_kernel.domain.roles import Role, normalize_roles
from freight_kernel.domain.shipment import Shipment, ShipmentStage
from freight_kernel.logging_config import get_logger

logger = get_logger("engines.stage_machine")


def coerce_stage(value: ShipmentStage | str | None) -> ShipmentStage | None:
    """Return the ``ShipmentStage`` for ``value`` or ``None`` if unknown."""
    if isinstance(value, ShipmentStage):
        return value
    try:
        return ShipmentStage(value)
    except ValueError:
        return None


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, bool):
        return False
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (int, float, Decimal)):
        return value == 0
    return False


class StageMachine:
    """Legal stage transitions and their owners.

    Contract:
        Stateless apart from the injected ``StagePolicy``; every method is
        a pure function of its arguments.
    """

    def __init__(self, policy: StagePolicy = DEFAULT_STAGE_POLICY):
        self._policy = policy
        self._previous: dict[ShipmentStage, ShipmentStage] = {}
        for stage in policy.order:
            for target in policy.forward.get(stage, ()):
                self._previous.setdefault(target, stage)

    @property
    def policy(self) -> StagePolicy:
        return self._policy

    @property
    def final_stage(self) -> ShipmentStage:
        return self._policy.order[-1]

    # ------------------------------------------------------------------
    # Graph lookups
    # ------------------------------------------------------------------

    def can_move_to_stage(
        self, shipment: Shipment, target: ShipmentStage | str
    ) -> bool:
        """True iff ``target`` is in the forward adjacency of the shipment's stage."""
        target_stage = coerce_stage(target)
        if target_stage is None:
            return False
        return target_stage in self._policy.forward.get(shipment.stage, ())

    def get_next_stage(self, stage: ShipmentStage | str) -> ShipmentStage | None:
        current = coerce_stage(stage)
        if current is None:
            return None
        targets = self._policy.forward.get(current, ())
        return targets[0] if targets else None

    def get_previous_stage(self, stage: ShipmentStage | str) -> ShipmentStage | None:
        current = coerce_stage(stage)
        if current is None:
            return None
        return self._previous.get(current)

    # ------------------------------------------------------------------
    # Role checks
    # ------------------------------------------------------------------

    def can_advance_stage(
        self, roles: Iterable[Role | str], current_stage: ShipmentStage | str
    ) -> bool:
        """Admin, or the single role owning the forward move out of ``current_stage``."""
        stage = coerce_stage(current_stage)
        if stage is None or self.get_next_stage(stage) is None:
            return False
        held = normalize_roles(roles)
        if Role.ADMIN in held:
            return True
        owner = self._policy.advance_owners.get(stage)
        return owner is not None and owner in held

    def can_revert_stage(
        self, roles: Iterable[Role | str], current_stage: ShipmentStage | str
    ) -> bool:
        """Admin, or the role owning the backward move out of ``current_stage``."""
        stage = coerce_stage(current_stage)
        if stage is None or self.get_previous_stage(stage) is None:
            return False
        held = normalize_roles(roles)
        if Role.ADMIN in held:
            return True
        owner = self._policy.revert_owners.get(stage)
        return owner is not None and owner in held

    def can_mark_lost(self, shipment: Shipment, roles: Iterable[Role | str]) -> bool:
        """Lost is reachable from any non-final stage by admin or the stage owner."""
        if shipment.is_lost or shipment.stage == self.final_stage:
            return False
        held = normalize_roles(roles)
        if Role.ADMIN in held:
            return True
        owner = self._policy.advance_owners.get(shipment.stage)
        return owner is not None and owner in held

    # ------------------------------------------------------------------
    # Completion gate
    # ------------------------------------------------------------------

    def missing_completion_fields(self, shipment: Shipment) -> tuple[RequiredField, ...]:
        """Every required field that is absent, in configured order."""
        return tuple(
            req
            for req in self._policy.completion_requirements
            if _is_missing(shipment.field_value(req.name))
        )

    @staticmethod
    def completion_error(missing: tuple[RequiredField, ...]) -> str:
        if not missing:
            return ""
        return "Cannot complete: missing " + ", ".join(r.label for r in missing)

    # ------------------------------------------------------------------
    # Transition planning
    # ------------------------------------------------------------------

    def plan_advance(
        self, shipment: Shipment, roles: Iterable[Role | str]
    ) -> TransitionDecision:
        """Decide a forward move, including the completion gate."""
        current = shipment.stage
        target = self.get_next_stage(current)

        if shipment.is_lost:
            return self._refuse(shipment, target, "Lost shipments cannot change stage")
        if target is None:
            return self._refuse(
                shipment, None, f"Shipments in {current.value} cannot advance"
            )
        if not self.can_advance_stage(roles, current):
            owner = self._policy.advance_owners.get(current)
            who = f"{owner.value} or admin" if owner is not None else "admin"
            return self._refuse(
                shipment,
                target,
                f"Only {who} can move a shipment from {current.value} to {target.value}",
            )

        stamp_fields: tuple[str, ...] = ()
        if target == self.final_stage:
            missing = self.missing_completion_fields(shipment)
            if missing:
                return self._refuse(
                    shipment,
                    target,
                    self.completion_error(missing),
                    missing_fields=tuple(r.name for r in missing),
                )
            stamp_fields = self._policy.terminal_artifacts

        return TransitionDecision(
            allowed=True,
            from_stage=current,
            to_stage=target,
            stamp_fields=stamp_fields,
        )

    def plan_revert(
        self, shipment: Shipment, roles: Iterable[Role | str]
    ) -> TransitionDecision:
        """Decide a one-step backward move.

        Reverting out of the final stage clears its terminal artifacts.
        """
        current = shipment.stage
        target = self.get_previous_stage(current)

        if shipment.is_lost:
            return self._refuse(shipment, target, "Lost shipments cannot change stage")
        if target is None:
            return self._refuse(
                shipment, None, f"Shipments in {current.value} cannot be reverted"
            )
        if not self.can_revert_stage(roles, current):
            owner = self._policy.revert_owners.get(current)
            who = f"{owner.value} or admin" if owner is not None else "admin"
            return self._refuse(
                shipment,
                target,
                f"Only {who} can revert a shipment from {current.value} to {target.value}",
            )

        clear_fields: tuple[str, ...] = ()
        if current == self.final_stage:
            clear_fields = self._policy.terminal_artifacts

        return TransitionDecision(
            allowed=True,
            from_stage=current,
            to_stage=target,
            clear_fields=clear_fields,
        )

    @staticmethod
    def _refuse(
        shipment: Shipment,
        target: ShipmentStage | None,
        reason: str,
        missing_fields: tuple[str, ...] = (),
    ) -> TransitionDecision:
        logger.debug(
            "stage_transition_refused",
            extra={
                "shipment_id": shipment.id,
                "from_stage": shipment.stage.value,
                "to_stage": target.value if target else None,
                "reason": reason,
            },
        )
        return TransitionDecision(
            allowed=False,
            from_stage=shipment.stage,
            to_stage=target,
            reason=reason,
            missing_fields=missing_fields,
        )
