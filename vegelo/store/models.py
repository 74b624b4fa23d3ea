from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional, Tuple, Union

from vegelo.constants import Category, Language, OrderStatus, PaymentMethod, Theme, Unit

ProductId = Union[int, str]


@dataclass(frozen=True)
class Product:
    id: ProductId
    name: str
    price: float
    image: str
    category: Category
    unit: Unit
    description: Optional[str] = None


@dataclass(frozen=True)
class CartItem:
    product: Product
    quantity: float

    @property
    def id(self) -> ProductId:
        return self.product.id

    @property
    def name(self) -> str:
        return self.product.name

    @property
    def price(self) -> float:
        return self.product.price

    @property
    def unit(self) -> Unit:
        return self.product.unit


@dataclass(frozen=True)
class Customer:
    name: str = ""
    address: str = ""
    phone: str = ""


# профиль = те же поля, что и у покупателя (предзаполнение checkout)
UserProfile = Customer


@dataclass(frozen=True)
class Order:
    id: str
    customer: Customer
    items: Tuple[CartItem, ...]
    total: float
    status: OrderStatus
    payment_method: PaymentMethod
    payment_proof: str
    order_date: datetime


@dataclass(frozen=True)
class AppState:
    """
    Whole application state.

    Orders live once in `order_book` (id -> Order). The customer's own
    history and the admin list are two views over it: `local_order_ids`
    and `remote_order_ids`. A status change is written to the book, so
    every view holding that id sees it.
    """

    products: Tuple[Product, ...] = ()
    cart: Tuple[CartItem, ...] = ()
    order_book: Dict[str, Order] = field(default_factory=dict)
    local_order_ids: Tuple[str, ...] = ()
    remote_order_ids: Tuple[str, ...] = ()
    favorites: FrozenSet[ProductId] = frozenset()
    profile: UserProfile = field(default_factory=UserProfile)
    language: Language = Language.EN
    theme: Theme = Theme.LIGHT
    is_loading: bool = False

    @property
    def orders(self) -> List[Order]:
        return [self.order_book[i] for i in self.local_order_ids if i in self.order_book]

    @property
    def remote_orders(self) -> List[Order]:
        return [self.order_book[i] for i in self.remote_order_ids if i in self.order_book]

    def find_product(self, product_id: ProductId) -> Optional[Product]:
        for p in self.products:
            if p.id == product_id:
                return p
        return None

    def find_order(self, order_id: str) -> Optional[Order]:
        return self.order_book.get(order_id)


# persisted slices (cart is session-only)
PERSISTED_SLICES = ("products", "orders", "favorites", "profile", "language", "theme")
