"""
Module: freight_engines.pricing
Responsibility:
    Derive the system-computed pricing values of a shipment (profit per
    unit and the selling, cost and profit totals) from the editable
    per-unit inputs and the quantity.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - The derived fields are read-only to every user; they change only
      through this calculation.
    - A missing per-unit price is treated as zero, matching the pricing
      form; a quantity below one counts as one.
    - Submitted unit prices and quantity are parsed before they are
      stored; a value that does not parse is refused, never truncated.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from freight_kernel.domain.commission import to_decimal
from freight_kernel.domain.shipment import Shipment

DERIVED_PRICING_FIELDS: tuple[str, ...] = (
    "profit_per_unit",
    "total_selling_price",
    "total_cost",
    "total_profit",
)

ZERO = Decimal("0")
ONE = Decimal("1")

PRICING_INPUT_FIELDS: frozenset[str] = frozenset(
    {"quantity", "selling_price_per_unit", "cost_per_unit"}
)


def derive_pricing_totals(shipment: Shipment) -> dict[str, Decimal]:
    """Derived pricing values for ``shipment``, keyed by field name."""
    selling = to_decimal(shipment.selling_price_per_unit) or ZERO
    cost = to_decimal(shipment.cost_per_unit) or ZERO
    quantity = max(to_decimal(shipment.quantity) or ONE, ONE)
    profit = selling - cost
    return {
        "profit_per_unit": profit,
        "total_selling_price": selling * quantity,
        "total_cost": cost * quantity,
        "total_profit": profit * quantity,
    }


def coerce_pricing_inputs(
    changes: Mapping[str, Any],
) -> tuple[dict[str, Any], dict[str, str]]:
    """Parse submitted pricing inputs.

    Returns the changes with unit prices as ``Decimal`` and quantity as
    ``int``, plus a refusal reason for every input that does not parse.
    Other fields pass through untouched.  A blank price clears it; a
    blank quantity means one.
    """
    coerced: dict[str, Any] = {}
    refused: dict[str, str] = {}
    for name, value in changes.items():
        if name not in PRICING_INPUT_FIELDS:
            coerced[name] = value
            continue
        if value is None or (isinstance(value, str) and not value.strip()):
            coerced[name] = 1 if name == "quantity" else None
            continue
        number = to_decimal(value)
        if number is None:
            refused[name] = "Must be a number"
        elif name != "quantity":
            coerced[name] = number
        elif number != number.to_integral_value():
            refused[name] = "Quantity must be a whole number"
        else:
            coerced[name] = int(number)
    return coerced, refused
