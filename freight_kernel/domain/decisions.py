"""
Decision result types (``freight_kernel.domain.decisions``).

Every engine question is answered with a value, never an exception.
These frozen records carry the answer plus enough context for the
caller to show a message or apply the change.
"""

from __future__ import annotations

from dataclasses import dataclass

from freight_kernel.domain.shipment import ShipmentStage


@dataclass(frozen=True)
class TransitionDecision:
    """Result of asking to move a shipment to another stage.

    ``stamp_fields`` are timestamps the caller must set when applying
    (e.g. ``completed_at``); ``clear_fields`` are stage-terminal
    artifacts the caller must clear in the same operation.
    """

    allowed: bool
    from_stage: ShipmentStage
    to_stage: ShipmentStage | None = None
    reason: str = ""
    missing_fields: tuple[str, ...] = ()
    clear_fields: tuple[str, ...] = ()
    stamp_fields: tuple[str, ...] = ()


@dataclass(frozen=True)
class FieldDecision:
    """Result of the field permission pipeline.

    ``rule`` names the pipeline step that decided, for tracing and tests.
    ``reason`` is empty when the field is editable.
    """

    editable: bool
    visible: bool
    rule: str
    reason: str = ""
