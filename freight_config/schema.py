"""
WorkflowConfigurationSet schema.

The typed form of a configuration set: YAML is parsed into these frozen
dataclasses by the loader, validated by the validator, and handed to
the engines as their policy tables.
"""

from __future__ import annotations

from dataclasses import dataclass

from freight_kernel.domain.policy import (
    DEFAULT_COMMISSION_POLICY,
    DEFAULT_LOCK_POLICY,
    DEFAULT_PERMISSION_POLICY,
    DEFAULT_SCHEDULE_POLICY,
    DEFAULT_STAGE_POLICY,
    CommissionPolicy,
    LockPolicy,
    PermissionPolicy,
    SchedulePolicy,
    StagePolicy,
)


@dataclass(frozen=True)
class WorkflowConfigurationSet:
    """A complete, validated policy configuration.

    ``checksum`` is the SHA-256 of the canonical JSON of the source data;
    two sets with the same checksum drive the engines identically.
    """

    config_id: str
    version: int
    stage_policy: StagePolicy
    permission_policy: PermissionPolicy
    commission_policy: CommissionPolicy = DEFAULT_COMMISSION_POLICY
    lock_policy: LockPolicy = DEFAULT_LOCK_POLICY
    schedule_policy: SchedulePolicy = DEFAULT_SCHEDULE_POLICY
    description: str = ""
    checksum: str = ""


def builtin_configuration_set() -> WorkflowConfigurationSet:
    """The in-code defaults as a configuration set (no file involved)."""
    return WorkflowConfigurationSet(
        config_id="builtin",
        version=0,
        stage_policy=DEFAULT_STAGE_POLICY,
        permission_policy=DEFAULT_PERMISSION_POLICY,
        description="Built-in defaults",
    )
