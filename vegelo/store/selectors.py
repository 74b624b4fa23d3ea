from __future__ import annotations

from typing import Dict, Iterable, List

from vegelo.constants import Category
from vegelo.store.models import AppState, CartItem, Order, Product


def search_products(products: Iterable[Product], query: str = "") -> List[Product]:
    q = (query or "").strip().lower()
    return [p for p in products if q in p.name.lower()]


def group_by_category(products: Iterable[Product]) -> Dict[Category, List[Product]]:
    """Category -> products, in Category declaration order; empty groups are dropped."""
    groups: Dict[Category, List[Product]] = {c: [] for c in Category}
    for p in products:
        groups[p.category].append(p)
    return {c: items for c, items in groups.items() if items}


def favorite_products(state: AppState) -> List[Product]:
    return [p for p in state.products if p.id in state.favorites]


def orders_newest_first(orders: Iterable[Order]) -> List[Order]:
    return sorted(orders, key=lambda o: o.order_date, reverse=True)


def cart_item_count(cart: Iterable[CartItem]) -> float:
    return round(sum(it.quantity for it in cart), 2)


def admin_orders(state: AppState) -> List[Order]:
    # до первой синхронизации админ видит локальные заказы
    return state.remote_orders if state.remote_order_ids else state.orders
