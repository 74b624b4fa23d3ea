from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, Tuple

from vegelo.constants import Language, OrderStatus, Theme
from vegelo.store import actions as a
from vegelo.store.models import AppState, CartItem, Order

logger = logging.getLogger(__name__)

QTY_DECIMALS = 2


def _round_qty(qty: float) -> float:
    return round(float(qty), QTY_DECIMALS)


# ---------------- cart ----------------

def _add_to_cart(state: AppState, action: a.AddToCart) -> AppState:
    if not math.isfinite(action.quantity):
        return state
    pid = action.product.id
    cart = list(state.cart)
    for i, item in enumerate(cart):
        if item.id == pid:
            qty = _round_qty(item.quantity + action.quantity)
            if qty <= 0:
                del cart[i]
            else:
                cart[i] = replace(item, quantity=qty)
            return replace(state, cart=tuple(cart))

    qty = _round_qty(action.quantity)
    if qty <= 0:
        return state
    return replace(state, cart=state.cart + (CartItem(product=action.product, quantity=qty),))


def _remove_from_cart(state: AppState, action: a.RemoveFromCart) -> AppState:
    cart = tuple(it for it in state.cart if it.id != action.product_id)
    if len(cart) == len(state.cart):
        return state
    return replace(state, cart=cart)


def _update_quantity(state: AppState, action: a.UpdateQuantity) -> AppState:
    if not math.isfinite(action.quantity):
        return state
    qty = _round_qty(action.quantity)
    if qty <= 0:
        return _remove_from_cart(state, a.RemoveFromCart(action.product_id))
    cart = tuple(replace(it, quantity=qty) if it.id == action.product_id else it for it in state.cart)
    return replace(state, cart=cart)


def _clear_cart(state: AppState, action: a.ClearCart) -> AppState:
    if not state.cart:
        return state
    return replace(state, cart=())


# ---------------- orders ----------------

def _place_order(state: AppState, action: a.PlaceOrder) -> AppState:
    order = action.order
    # снимок позиций: дальнейшие изменения корзины не трогают заказ
    order = replace(order, items=tuple(order.items))
    book = dict(state.order_book)
    book[order.id] = order
    local_ids = state.local_order_ids
    if order.id not in local_ids:
        local_ids = local_ids + (order.id,)
    return replace(state, order_book=book, local_order_ids=local_ids)


def _update_order_status(state: AppState, action: a.UpdateOrderStatus) -> AppState:
    current = state.order_book.get(action.order_id)
    status = OrderStatus(action.status)
    if current is None or current.status == status:
        return state
    book = dict(state.order_book)
    book[action.order_id] = replace(current, status=status)
    return replace(state, order_book=book)


# ---------------- products (non-synced mode) ----------------

def _add_product(state: AppState, action: a.AddProduct) -> AppState:
    if state.find_product(action.product.id) is not None:
        return _update_product(state, a.UpdateProduct(action.product))
    return replace(state, products=state.products + (action.product,))


def _update_product(state: AppState, action: a.UpdateProduct) -> AppState:
    p = action.product
    products = tuple(p if x.id == p.id else x for x in state.products)
    return replace(state, products=products)


def _delete_product(state: AppState, action: a.DeleteProduct) -> AppState:
    products = tuple(x for x in state.products if x.id != action.product_id)
    if len(products) == len(state.products):
        return state
    return replace(state, products=products)


# ---------------- misc slices ----------------

def _set_loading(state: AppState, action: a.SetLoading) -> AppState:
    if state.is_loading == bool(action.is_loading):
        return state
    return replace(state, is_loading=bool(action.is_loading))


def _toggle_favorite(state: AppState, action: a.ToggleFavorite) -> AppState:
    fav = set(state.favorites)
    if action.product_id in fav:
        fav.discard(action.product_id)
    else:
        fav.add(action.product_id)
    return replace(state, favorites=frozenset(fav))


def _set_profile(state: AppState, action: a.SetProfile) -> AppState:
    return replace(state, profile=action.profile)


def _set_language(state: AppState, action: a.SetLanguage) -> AppState:
    return replace(state, language=Language(action.language))


def _set_theme(state: AppState, action: a.SetTheme) -> AppState:
    return replace(state, theme=Theme(action.theme))


# ---------------- bulk replace ----------------

def _merge_order(existing: Order | None, incoming: Order) -> Order:
    # таблица не всегда отдаёт чек и позиции обратно: берём из локальной копии
    if existing is None:
        return incoming
    changes: Dict[str, Any] = {}
    if not incoming.payment_proof and existing.payment_proof:
        changes["payment_proof"] = existing.payment_proof
    if not incoming.items and existing.items:
        changes["items"] = existing.items
    return replace(incoming, **changes) if changes else incoming


def _upsert(book: Dict[str, Order], orders: Iterable[Order]) -> Tuple[str, ...]:
    ids = []
    for o in orders:
        book[o.id] = _merge_order(book.get(o.id), o)
        if o.id not in ids:
            ids.append(o.id)
    return tuple(ids)


def _bulk_replace(state: AppState, action: a.BulkReplace) -> AppState:
    slices = dict(action.slices)
    changes: Dict[str, Any] = {}

    if "products" in slices:
        changes["products"] = tuple(slices.pop("products"))
    if "favorites" in slices:
        changes["favorites"] = frozenset(slices.pop("favorites"))
    if "profile" in slices:
        changes["profile"] = slices.pop("profile")
    if "language" in slices:
        changes["language"] = Language(slices.pop("language"))
    if "theme" in slices:
        changes["theme"] = Theme(slices.pop("theme"))
    if "is_loading" in slices:
        changes["is_loading"] = bool(slices.pop("is_loading"))

    if "orders" in slices or "remote_orders" in slices:
        book = dict(state.order_book)
        local_ids = state.local_order_ids
        remote_ids = state.remote_order_ids
        if "orders" in slices:
            local_ids = _upsert(book, slices.pop("orders"))
        if "remote_orders" in slices:
            remote_ids = _upsert(book, slices.pop("remote_orders"))
        keep = set(local_ids) | set(remote_ids)
        changes["order_book"] = {k: v for k, v in book.items() if k in keep}
        changes["local_order_ids"] = local_ids
        changes["remote_order_ids"] = remote_ids

    if slices:
        logger.warning("%s: ignoring unknown slices %s", type(action).__name__, sorted(slices))
    if not changes:
        return state
    return replace(state, **changes)


_HANDLERS: Dict[type, Callable[[AppState, Any], AppState]] = {
    a.AddToCart: _add_to_cart,
    a.RemoveFromCart: _remove_from_cart,
    a.UpdateQuantity: _update_quantity,
    a.ClearCart: _clear_cart,
    a.PlaceOrder: _place_order,
    a.UpdateOrderStatus: _update_order_status,
    a.AddProduct: _add_product,
    a.UpdateProduct: _update_product,
    a.DeleteProduct: _delete_product,
    a.SetLoading: _set_loading,
    a.ToggleFavorite: _toggle_favorite,
    a.SetProfile: _set_profile,
    a.SetLanguage: _set_language,
    a.SetTheme: _set_theme,
}


def reduce(state: AppState, action: Any) -> AppState:
    """
    (state, action) -> new state.

    Never raises. Unknown actions return `state` itself. A handler that
    blows up on bad input is logged and the previous state is kept.
    """
    handler = _HANDLERS.get(type(action))
    if handler is None and isinstance(action, a.BulkReplace):
        handler = _bulk_replace
    if handler is None:
        return state
    try:
        return handler(state, action)
    except Exception:
        logger.exception("reducer failed on %s, state unchanged", type(action).__name__)
        return state
