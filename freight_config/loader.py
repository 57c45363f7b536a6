"""
Configuration Loader (``freight_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the typed policy
tables of ``freight_kernel.domain.policy``, wrapped in a
``WorkflowConfigurationSet``.  The single public entry point for
runtime config is ``freight_config.get_active_config()``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.
* Parsing assumes validated input (``freight_config.validator``); it
  does not re-check names.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Unknown role/stage/category names  -> ``ValueError`` from the enum.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from freight_config.schema import WorkflowConfigurationSet
from freight_kernel.domain.policy import (
    DEFAULT_PERMISSION_POLICY,
    CommissionPolicy,
    LockPolicy,
    PermissionPolicy,
    RequiredField,
    SchedulePolicy,
    StagePolicy,
    frozen_map,
)
from freight_kernel.domain.roles import Role
from freight_kernel.domain.shipment import FieldCategory, ShipmentStage


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _names(values: Any) -> tuple[str, ...]:
    return tuple(str(v) for v in (values or ()))


def parse_stage_policy(data: dict[str, Any]) -> StagePolicy:
    """Parse the ``stages`` section."""
    order = tuple(ShipmentStage(s) for s in data["order"])
    forward = {
        ShipmentStage(src): tuple(ShipmentStage(t) for t in (targets or ()))
        for src, targets in (data.get("forward") or {}).items()
    }
    for stage in order:
        forward.setdefault(stage, ())
    return StagePolicy(
        order=order,
        forward=frozen_map(forward),
        advance_owners=frozen_map({
            ShipmentStage(stage): Role(role)
            for stage, role in (data.get("advance_owners") or {}).items()
        }),
        revert_owners=frozen_map({
            ShipmentStage(stage): Role(role)
            for stage, role in (data.get("revert_owners") or {}).items()
        }),
        completion_requirements=tuple(
            RequiredField(name=item["field"], label=item.get("label", item["field"]))
            for item in (data.get("completion_requirements") or ())
        ),
        terminal_artifacts=_names(data.get("terminal_artifacts", ("completed_at",))),
    )


def parse_permission_policy(data: dict[str, Any]) -> PermissionPolicy:
    """Parse the ``permissions`` section."""
    categories: dict[str, FieldCategory] = {}
    for category, names in (data.get("field_categories") or {}).items():
        for name in _names(names):
            categories[name] = FieldCategory(category)

    bypass = data.get("ownership_bypass_roles")
    return PermissionPolicy(
        field_categories=frozen_map(categories),
        read_only_fields=frozenset(_names(data.get("read_only_fields"))),
        hidden_fields=frozen_map({
            Role(role): frozenset(_names(names))
            for role, names in (data.get("hidden_fields") or {}).items()
        }),
        pricing_extra_fields=frozenset(_names(data.get("pricing_extra_fields"))),
        pricing_claim_fields=frozenset(_names(data.get("pricing_claim_fields"))),
        ownership_bypass_roles=(
            DEFAULT_PERMISSION_POLICY.ownership_bypass_roles
            if bypass is None
            else frozenset(Role(r) for r in bypass)
        ),
        page_permissions=frozen_map({
            Role(role): _names(pages)
            for role, pages in (data.get("page_permissions") or {}).items()
        }),
    )


def parse_commission_policy(data: dict[str, Any] | None) -> CommissionPolicy:
    """Parse the optional ``commission`` section."""
    data = data or {}
    defaults = CommissionPolicy()
    return CommissionPolicy(
        default_percentage=Decimal(str(data.get("default_percentage", defaults.default_percentage))),
        fallback_percentage=Decimal(str(data.get("fallback_percentage", defaults.fallback_percentage))),
    )


def parse_lock_policy(data: dict[str, Any] | None) -> LockPolicy:
    """Parse the optional ``locks`` section.  A null timeout never expires."""
    timeout = (data or {}).get("timeout_seconds")
    return LockPolicy(timeout_seconds=None if timeout is None else int(timeout))


def parse_schedule_policy(data: dict[str, Any] | None) -> SchedulePolicy:
    """Parse the optional ``schedule`` section."""
    data = data or {}
    defaults = SchedulePolicy()
    return SchedulePolicy(
        home_port=str(data.get("home_port", defaults.home_port)),
        export_reminder_days_after_etd=int(
            data.get("export_reminder_days_after_etd", defaults.export_reminder_days_after_etd)
        ),
        import_reminder_days_before_eta=int(
            data.get("import_reminder_days_before_eta", defaults.import_reminder_days_before_eta)
        ),
    )


def parse_configuration_set(data: dict[str, Any]) -> WorkflowConfigurationSet:
    """Build a ``WorkflowConfigurationSet`` from validated raw data."""
    return WorkflowConfigurationSet(
        config_id=str(data["config_id"]),
        version=int(data.get("version", 1)),
        description=str(data.get("description", "")),
        stage_policy=parse_stage_policy(data["stages"]),
        permission_policy=parse_permission_policy(data["permissions"]),
        commission_policy=parse_commission_policy(data.get("commission")),
        lock_policy=parse_lock_policy(data.get("locks")),
        schedule_policy=parse_schedule_policy(data.get("schedule")),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
