"""
Configuration Validator (``freight_config.validator``).

Responsibility
--------------
Validates a raw configuration set (the mapping loaded from YAML) before
it is parsed into policy tables, so that a bad name produces a readable
error listing instead of an enum ``ValueError`` halfway through parsing.

Invariants enforced
-------------------
* Every stage, role and field category named anywhere is a known value.
* The stage graph only references stages in ``order``.
* A field belongs to at most one category.
* Completion requirements and categorized fields are real shipment fields.
* Commission rates are non-negative numbers; lock timeout is null or positive.

Failure modes
-------------
* Validation errors (``ConfigValidationResult.errors``)  -> the set MUST
  NOT be used; ``get_active_config`` raises ``InvalidConfigurationError``.
* Validation warnings  -> the set is usable but should be reviewed.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from freight_kernel.domain.commission import to_decimal
from freight_kernel.domain.roles import Role
from freight_kernel.domain.shipment import SHIPMENT_FIELD_NAMES, FieldCategory, ShipmentStage

_STAGES = {s.value for s in ShipmentStage}
_ROLES = {r.value for r in Role}
_CATEGORIES = {c.value for c in FieldCategory}


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    * Warnings do not block use but should be reviewed.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_configuration(data: Mapping[str, Any]) -> ConfigValidationResult:
    """
    Validate a raw configuration set.

    Postconditions:
        - Returns a ``ConfigValidationResult`` with every error and warning
          found; validation never stops at the first problem.
    """
    result = ConfigValidationResult()

    if not data.get("config_id"):
        result.add_error("config_id is required")
    for section in ("stages", "permissions"):
        if not isinstance(data.get(section), Mapping):
            result.add_error(f"Section '{section}' is required")
    if not result.is_valid:
        return result

    _validate_stages(data["stages"], result)
    _validate_permissions(data["permissions"], result)
    _validate_commission(data.get("commission") or {}, result)
    _validate_locks(data.get("locks") or {}, result)
    _validate_schedule(data.get("schedule") or {}, result)

    return result


def _check_stage(value: Any, where: str, result: ConfigValidationResult) -> bool:
    if value not in _STAGES:
        result.add_error(f"{where}: unknown stage '{value}'")
        return False
    return True


def _check_role(value: Any, where: str, result: ConfigValidationResult) -> bool:
    if value not in _ROLES:
        result.add_error(f"{where}: unknown role '{value}'")
        return False
    return True


def _validate_stages(stages: Mapping[str, Any], result: ConfigValidationResult) -> None:
    """Check the stage order, graph, transition owners and completion gate."""
    order = stages.get("order") or []
    if not order:
        result.add_error("stages.order must list at least one stage")
    for stage in order:
        _check_stage(stage, "stages.order", result)
    if len(set(order)) != len(order):
        result.add_error("stages.order contains duplicates")

    for src, targets in (stages.get("forward") or {}).items():
        if _check_stage(src, "stages.forward", result) and src not in order:
            result.add_error(f"stages.forward: '{src}' is not in stages.order")
        for target in targets or ():
            if _check_stage(target, f"stages.forward.{src}", result) and target not in order:
                result.add_error(f"stages.forward.{src}: '{target}' is not in stages.order")

    advance_owners = stages.get("advance_owners") or {}
    for key in ("advance_owners", "revert_owners"):
        for stage, role in (stages.get(key) or {}).items():
            _check_stage(stage, f"stages.{key}", result)
            _check_role(role, f"stages.{key}.{stage}", result)

    for src, targets in (stages.get("forward") or {}).items():
        if targets and src not in advance_owners:
            result.add_warning(
                f"stages.forward.{src}: no advance owner, only admin can move it forward"
            )

    for item in stages.get("completion_requirements") or ():
        name = item.get("field") if isinstance(item, Mapping) else None
        if name not in SHIPMENT_FIELD_NAMES:
            result.add_error(f"stages.completion_requirements: unknown field '{name}'")


def _validate_permissions(perms: Mapping[str, Any], result: ConfigValidationResult) -> None:
    """Check field categories, field lists, and role-keyed tables."""
    seen: dict[str, str] = {}
    for category, names in (perms.get("field_categories") or {}).items():
        if category not in _CATEGORIES:
            result.add_error(f"permissions.field_categories: unknown category '{category}'")
            continue
        for name in names or ():
            if name not in SHIPMENT_FIELD_NAMES:
                result.add_error(
                    f"permissions.field_categories.{category}: unknown field '{name}'"
                )
            if name in seen:
                result.add_error(
                    f"Field '{name}' is in both '{seen[name]}' and '{category}'"
                )
            seen[name] = category

    read_only = set(perms.get("read_only_fields") or ())
    for name in sorted(read_only & set(seen)):
        result.add_warning(f"Field '{name}' is categorized but read-only; it can never be edited")

    for key in ("read_only_fields", "pricing_extra_fields", "pricing_claim_fields"):
        for name in perms.get(key) or ():
            if name not in SHIPMENT_FIELD_NAMES:
                result.add_warning(f"permissions.{key}: unknown field '{name}'")

    for role, names in (perms.get("hidden_fields") or {}).items():
        _check_role(role, "permissions.hidden_fields", result)
        for name in names or ():
            if name not in SHIPMENT_FIELD_NAMES:
                result.add_warning(f"permissions.hidden_fields.{role}: unknown field '{name}'")

    if "admin" in (perms.get("hidden_fields") or {}):
        result.add_warning("permissions.hidden_fields hides fields from admin")

    for role in perms.get("ownership_bypass_roles") or ():
        _check_role(role, "permissions.ownership_bypass_roles", result)

    for role in (perms.get("page_permissions") or {}):
        _check_role(role, "permissions.page_permissions", result)


def _validate_commission(data: Mapping[str, Any], result: ConfigValidationResult) -> None:
    for key in ("default_percentage", "fallback_percentage"):
        if key not in data:
            continue
        value = to_decimal(data[key])
        if value is None:
            result.add_error(f"commission.{key} must be a number")
        elif value < 0:
            result.add_error(f"commission.{key} cannot be negative")


def _validate_locks(data: Mapping[str, Any], result: ConfigValidationResult) -> None:
    timeout = data.get("timeout_seconds")
    if timeout is None:
        return
    if isinstance(timeout, bool) or not isinstance(timeout, int) or timeout <= 0:
        result.add_error("locks.timeout_seconds must be a positive integer or null")


def _validate_schedule(data: Mapping[str, Any], result: ConfigValidationResult) -> None:
    for key in ("export_reminder_days_after_etd", "import_reminder_days_before_eta"):
        if key not in data:
            continue
        value = data[key]
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            result.add_error(f"schedule.{key} must be a non-negative integer")
    if "home_port" in data and not str(data["home_port"] or "").strip():
        result.add_error("schedule.home_port cannot be empty")
