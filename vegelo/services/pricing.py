from __future__ import annotations

import math
from typing import Iterable

from vegelo.config import settings
from vegelo.constants import QUANTITY_STEP, Unit
from vegelo.errors import ValidationError
from vegelo.store.models import CartItem
from vegelo.utils.validators import require_positive_number


def line_total(item: CartItem) -> float:
    return round(item.price * item.quantity, settings.decimals)


def cart_total(cart: Iterable[CartItem]) -> float:
    return round(sum(it.price * it.quantity for it in cart), settings.decimals)


def quantity_step(unit: Unit) -> float:
    return QUANTITY_STEP.get(Unit(unit), 1.0)


def min_quantity(unit: Unit) -> float:
    return quantity_step(unit)


def step_quantity(qty: float, unit: Unit, direction: int = 1) -> float:
    """+/- one step (0.25 kg or 1 piece), never below the minimum."""
    step = quantity_step(unit)
    new_qty = round(qty + direction * step, 2)
    return max(min_quantity(unit), new_qty)


def check_quantity(qty: float, unit: Unit, allow_zero: bool = False) -> None:
    """
    Quantity typed by a customer: finite, at least one step and a whole
    number of steps (0.25 kg, 1 piece, 1 bundle). With allow_zero a value
    <= 0 passes, it means "remove the line".
    """
    if not math.isfinite(qty):
        raise ValidationError("Quantity must be a number.", ["quantity"])
    if allow_zero and qty <= 0:
        return
    try:
        require_positive_number(qty, "quantity")
    except ValueError as e:
        raise ValidationError(str(e), ["quantity"]) from e

    step = quantity_step(unit)
    if qty < min_quantity(unit) or abs(qty / step - round(qty / step)) > 1e-9:
        raise ValidationError(f"Quantity must be a multiple of {step:g} {Unit(unit).value}.", ["quantity"])
