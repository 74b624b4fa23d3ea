from __future__ import annotations

import hmac
import logging
import time
from typing import Any, Dict, Optional

from vegelo.config import settings
from vegelo.constants import OrderStatus
from vegelo.errors import ValidationError
from vegelo.store.actions import AddProduct, DeleteProduct, UpdateOrderStatus, UpdateProduct
from vegelo.store.models import AppState, Product, ProductId
from vegelo.store.selectors import admin_orders
from vegelo.utils.validators import require_non_negative_number

logger = logging.getLogger(__name__)


def check_password(password: str) -> bool:
    # не настоящая авторизация, просто пароль из настроек
    return hmac.compare_digest(str(password or ""), settings.admin_password)


def new_product_id() -> int:
    return int(time.time() * 1000)


def validate_product(product: Product) -> None:
    if not product.name.strip():
        raise ValidationError("Product name is required.", ["name"])
    try:
        require_non_negative_number(product.price, "price")
    except ValueError as e:
        raise ValidationError(str(e), ["price"]) from e


def dashboard(state: AppState) -> Dict[str, Any]:
    orders = admin_orders(state)
    return {
        "total_orders": len(orders),
        "pending_orders": sum(1 for o in orders if o.status == OrderStatus.PENDING),
        "total_sales": round(sum(o.total for o in orders), settings.decimals),
        "total_products": len(state.products),
    }


class AdminConsole:
    """
    Admin mutations.

    With a remote client, product CRUD never touches the reducer: it is a
    remote write followed by a reconciliation fetch that replaces the
    catalog. Without one, the reducer's product actions are used.
    Status changes are applied locally first, then written.
    """

    def __init__(self, store, remote=None):
        self.store = store
        self.remote = remote

    async def add_product(self, product: Product, wait: bool = False):
        validate_product(product)
        if self.remote is not None:
            return await self.remote.add_product(product, wait=wait)
        self.store.dispatch(AddProduct(product))
        return None

    async def update_product(self, product: Product, wait: bool = False):
        validate_product(product)
        if self.remote is not None:
            return await self.remote.edit_product(product, wait=wait)
        self.store.dispatch(UpdateProduct(product))
        return None

    async def delete_product(self, product_id: ProductId, wait: bool = False):
        if self.remote is not None:
            return await self.remote.delete_product(product_id, wait=wait)
        self.store.dispatch(DeleteProduct(product_id))
        return None

    async def update_order_status(self, order_id: str, status: OrderStatus, wait: bool = False):
        status = OrderStatus(status)
        if self.store.state.find_order(order_id) is None:
            logger.warning("status update for unknown order %s", order_id)
        self.store.dispatch(UpdateOrderStatus(order_id, status))
        if self.remote is not None:
            return await self.remote.update_order_status(order_id, status, wait=wait)
        return None

    def find_product(self, product_id: ProductId) -> Optional[Product]:
        return self.store.state.find_product(product_id)
