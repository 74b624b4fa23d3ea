"""
JSON <-> dataclass conversion for the local cache.

Decoders are lenient: the cache may hold data written by older versions
of the app (camelCase keys, string prices, string ids, "dozen" units).
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from vegelo.constants import UNIT_ALIASES, Category, OrderStatus, PaymentMethod, Unit
from vegelo.store.models import CartItem, Customer, Order, Product, ProductId

_INT_RE = re.compile(r"^-?\d+$")
_FLOAT_RE = re.compile(r"^-?\d+\.0+$")


def normalize_id(v: Any) -> ProductId:
    if isinstance(v, bool):
        raise ValueError("bool is not an id")
    if isinstance(v, int):
        return v
    if isinstance(v, float):
        return int(v) if v.is_integer() else str(v)
    s = str(v).strip()
    if _INT_RE.match(s):
        return int(s)
    if _FLOAT_RE.match(s):
        return int(float(s))
    return s


def to_float(v: Any, default: float = 0.0) -> float:
    if v is None or v == "":
        return default
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return float(v)
    return float(str(v).strip().replace(",", ""))


def parse_unit(v: Any) -> Unit:
    s = str(v or "").strip().lower()
    if s in UNIT_ALIASES:
        return UNIT_ALIASES[s]
    return Unit(s)


def parse_category(v: Any) -> Category:
    s = str(v or "").strip()
    for c in Category:
        if s.lower() in (c.value.lower(), c.name.lower()):
            return c
    if s.lower() == "seasonal":
        return Category.SEASONAL
    raise ValueError(f"unknown category: {v!r}")


def parse_status(v: Any) -> OrderStatus:
    s = str(v or "").strip()
    for st in OrderStatus:
        if s.lower() == st.value.lower():
            return st
    raise ValueError(f"unknown order status: {v!r}")


def parse_payment_method(v: Any) -> PaymentMethod:
    s = str(v or "").strip().replace(" ", "")
    for m in PaymentMethod:
        if s.lower() == m.value.lower():
            return m
    raise ValueError(f"unknown payment method: {v!r}")


def parse_date(v: Any) -> datetime:
    """Always returns an aware datetime (naive input is taken as UTC)."""
    if isinstance(v, datetime):
        dt = v
    elif isinstance(v, (int, float)) and not isinstance(v, bool):
        # epoch milliseconds
        dt = datetime.fromtimestamp(v / 1000, tz=timezone.utc)
    else:
        s = str(v).strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _pick(d: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for k in keys:
        if k in d and d[k] is not None:
            return d[k]
    return default


# ---------------- products ----------------

def product_to_dict(p: Product) -> Dict[str, Any]:
    return {
        "id": p.id,
        "name": p.name,
        "price": p.price,
        "image": p.image,
        "category": p.category.value,
        "unit": p.unit.value,
        "description": p.description,
    }


def product_from_dict(d: Dict[str, Any]) -> Product:
    description = _pick(d, "description")
    return Product(
        id=normalize_id(d["id"]),
        name=str(d["name"]).strip(),
        price=to_float(d.get("price")),
        image=str(_pick(d, "image", "imageBase64", default="")),
        category=parse_category(d.get("category")),
        unit=parse_unit(d.get("unit")),
        description=str(description) if description not in (None, "") else None,
    )


# ---------------- orders ----------------

def customer_to_dict(c: Customer) -> Dict[str, str]:
    return {"name": c.name, "address": c.address, "phone": c.phone}


def customer_from_dict(d: Optional[Dict[str, Any]]) -> Customer:
    d = d or {}
    return Customer(
        name=str(d.get("name") or ""),
        address=str(d.get("address") or ""),
        phone=str(d.get("phone") or ""),
    )


def cart_item_to_dict(it: CartItem) -> Dict[str, Any]:
    d = product_to_dict(it.product)
    d["quantity"] = it.quantity
    return d


def cart_item_from_dict(d: Dict[str, Any]) -> CartItem:
    return CartItem(product=product_from_dict(d), quantity=to_float(d.get("quantity")))


def order_to_dict(o: Order) -> Dict[str, Any]:
    return {
        "id": o.id,
        "customer": customer_to_dict(o.customer),
        "items": [cart_item_to_dict(it) for it in o.items],
        "total": o.total,
        "status": o.status.value,
        "payment_method": o.payment_method.value,
        "payment_proof": o.payment_proof,
        "order_date": o.order_date.isoformat(),
    }


def order_from_dict(d: Dict[str, Any]) -> Order:
    return Order(
        id=str(d["id"]),
        customer=customer_from_dict(d.get("customer")),
        items=tuple(cart_item_from_dict(x) for x in (d.get("items") or [])),
        total=to_float(d.get("total")),
        status=parse_status(_pick(d, "status", default=OrderStatus.PENDING.value)),
        payment_method=parse_payment_method(_pick(d, "payment_method", "paymentMethod")),
        payment_proof=str(_pick(d, "payment_proof", "paymentProof", default="")),
        order_date=parse_date(_pick(d, "order_date", "orderDate")),
    )


def orders_to_list(orders) -> List[Dict[str, Any]]:
    return [order_to_dict(o) for o in orders]
