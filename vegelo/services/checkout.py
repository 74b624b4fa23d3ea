from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional, Tuple

from vegelo.constants import ORDER_ID_PREFIX, OrderStatus, PaymentMethod
from vegelo.errors import ValidationError
from vegelo.services.pricing import cart_total
from vegelo.store.actions import ClearCart, PlaceOrder
from vegelo.store.models import CartItem, Customer, Order, UserProfile
from vegelo.utils.validators import missing_fields

logger = logging.getLogger(__name__)


def prefill_customer(profile: UserProfile) -> Customer:
    return Customer(name=profile.name, address=profile.address, phone=profile.phone)


def validate_checkout(customer: Customer, payment_proof: Optional[str]) -> None:
    missing = missing_fields(
        {
            "name": customer.name,
            "address": customer.address,
            "phone": customer.phone,
            "payment_proof": payment_proof,
        }
    )
    if missing:
        raise ValidationError("Please fill all fields and upload payment proof.", missing)


def new_order_id(now: datetime) -> str:
    # same-millisecond double submit gives the same id
    return f"{ORDER_ID_PREFIX}{int(now.timestamp() * 1000)}"


def build_order(
    cart: Iterable[CartItem],
    customer: Customer,
    payment_method: PaymentMethod,
    payment_proof: str,
    now: Optional[datetime] = None,
) -> Order:
    now = now or datetime.now(timezone.utc)
    items = tuple(cart)
    return Order(
        id=new_order_id(now),
        customer=customer,
        items=items,
        total=cart_total(items),
        status=OrderStatus.PENDING,
        payment_method=PaymentMethod(payment_method),
        payment_proof=payment_proof,
        order_date=now,
    )


async def place_order(
    store,
    customer: Customer,
    payment_method: PaymentMethod,
    payment_proof: Optional[str],
    cache=None,
    remote=None,
    now: Optional[datetime] = None,
) -> Tuple[Order, object]:
    """
    Checkout: validate -> build -> save history -> PLACE_ORDER -> CLEAR_CART
    -> remote write (when sync is on).

    ValidationError and StorageError leave the store untouched; the second
    one is retryable (usually a huge payment proof image).
    Returns (order, write receipt or None).
    """
    validate_checkout(customer, payment_proof)
    state = store.state
    if not state.cart:
        raise ValidationError("Cart is empty.", ["cart"])

    order = build_order(state.cart, customer, payment_method, payment_proof, now)

    if cache is not None:
        # raises StorageError before any state change
        cache.save_orders(list(state.orders) + [order])

    store.dispatch(PlaceOrder(order))
    store.dispatch(ClearCart())
    logger.info("order %s placed: %s items, total %.2f", order.id, len(order.items), order.total)

    receipt = None
    if remote is not None:
        receipt = await remote.add_order(order)
    return order, receipt
