"""Action variants accepted by the reducer. One dataclass per variant."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from vegelo.constants import Language, OrderStatus, Theme
from vegelo.store.models import Order, Product, ProductId, UserProfile


@dataclass(frozen=True)
class AddToCart:
    product: Product
    quantity: float


@dataclass(frozen=True)
class RemoveFromCart:
    product_id: ProductId


@dataclass(frozen=True)
class UpdateQuantity:
    product_id: ProductId
    quantity: float


@dataclass(frozen=True)
class PlaceOrder:
    order: Order


@dataclass(frozen=True)
class ClearCart:
    pass


@dataclass(frozen=True)
class UpdateOrderStatus:
    order_id: str
    status: OrderStatus


@dataclass(frozen=True)
class AddProduct:
    product: Product


@dataclass(frozen=True)
class UpdateProduct:
    product: Product


@dataclass(frozen=True)
class DeleteProduct:
    product_id: ProductId


@dataclass(frozen=True)
class SetLoading:
    is_loading: bool


@dataclass(frozen=True)
class ToggleFavorite:
    product_id: ProductId


@dataclass(frozen=True)
class SetProfile:
    profile: UserProfile


@dataclass(frozen=True)
class SetLanguage:
    language: Language


@dataclass(frozen=True)
class SetTheme:
    theme: Theme


@dataclass(frozen=True)
class BulkReplace:
    """
    Shallow merge of named slices. Only keys present in `slices` are
    overwritten; everything else is kept as is.

    Known slice names: products, orders (local history), remote_orders,
    favorites, profile, language, theme, is_loading.
    """

    slices: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SetInitialState(BulkReplace):
    """Startup hydration from the local cache."""


@dataclass(frozen=True)
class SetData(BulkReplace):
    """Fetch result applied to products + local order history."""


@dataclass(frozen=True)
class SetRemoteData(BulkReplace):
    """Fetch result applied to products + admin (remote) order list."""


@dataclass(frozen=True)
class SetProducts(BulkReplace):
    pass


def set_products(products: Tuple[Product, ...]) -> SetProducts:
    return SetProducts(slices={"products": tuple(products)})


def remote_data(products=None, orders: Optional[Tuple[Order, ...]] = None) -> SetRemoteData:
    slices: Dict[str, Any] = {}
    if products is not None:
        slices["products"] = tuple(products)
    if orders is not None:
        slices["remote_orders"] = tuple(orders)
    return SetRemoteData(slices=slices)
