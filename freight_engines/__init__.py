"""
Module: freight_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    decision engines.  This is the canonical import surface for
    freight_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import freight_kernel/domain (and sibling engine modules).
    MUST NOT import freight_services or freight_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Timestamps and dates are passed in by the caller.
    - Decimal-only arithmetic for commission amounts.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Commission calculations are traced via ``@traced_engine`` (see
    ``freight_engines.tracer``), emitting FREIGHT_ENGINE_TRACE records.

Usage:
    from freight_engines import StageMachine, FieldPermissionResolver
    from freight_engines import CommissionEngine, ScheduleCalculator
"""

from freight_kernel.logging_config import get_logger

logger = get_logger("engines")

from freight_engines.commission import (
    CommissionEngine,
    append_tier,
    propagate_tier_max,
    quantize_amount,
    remove_tier,
    tiered_portions,
    validate_tiers,
)
from freight_engines.field_permissions import FieldPermissionResolver
from freight_engines.pricing import (
    DERIVED_PRICING_FIELDS,
    PRICING_INPUT_FIELDS,
    derive_pricing_totals,
)
from freight_engines.schedule import (
    CHECKLIST_SECTIONS,
    ChecklistProgress,
    CollectionDue,
    PayableReminder,
    ScheduleCalculator,
)
from freight_engines.stage_machine import StageMachine, coerce_stage
from freight_engines.tracer import traced_engine

__all__ = [
    "CHECKLIST_SECTIONS",
    "DERIVED_PRICING_FIELDS",
    "PRICING_INPUT_FIELDS",
    "ChecklistProgress",
    "CollectionDue",
    "CommissionEngine",
    "FieldPermissionResolver",
    "PayableReminder",
    "ScheduleCalculator",
    "StageMachine",
    "append_tier",
    "coerce_stage",
    "derive_pricing_totals",
    "propagate_tier_max",
    "quantize_amount",
    "remove_tier",
    "tiered_portions",
    "traced_engine",
    "validate_tiers",
]
