"""
Sync with the spreadsheet script endpoint.

GET returns the catalog (bare list) or {"products": [...], "orders": [...]}.
POST takes {"action": ..., ...payload}. The script answers writes with an
opaque redirect, so the response is never read: a write is presumed applied
and only the next fetch tells whether it really landed.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

import requests

from vegelo.config import settings
from vegelo.constants import (
    REMOTE_ADD,
    REMOTE_ADD_ORDER,
    REMOTE_DELETE,
    REMOTE_EDIT,
    REMOTE_UPDATE_ORDER_STATUS,
    Category,
    OrderStatus,
    Unit,
)
from vegelo.db import codec
from vegelo.errors import RemoteError
from vegelo.store.actions import SetLoading, remote_data
from vegelo.store.models import AppState, CartItem, Customer, Order, Product, ProductId

logger = logging.getLogger(__name__)

Check = Callable[[AppState], Optional[bool]]


class WriteStatus(str, Enum):
    PENDING = "pending"                      # not sent yet
    PRESUMED_APPLIED = "presumed_applied"    # sent, response unreadable
    RECONCILED = "reconciled"                # a later fetch came back


@dataclass
class WriteReceipt:
    """
    What the caller knows about one write.

    `applied` is only filled after reconciliation: True/False when the
    fetched data shows the mutation (or its absence), None when the fetch
    failed or the data can't tell (e.g. endpoint returns no orders).
    Sending the same mutation twice produces two receipts and, possibly,
    two remote rows: writes are not de-duplicated.
    """

    action: str
    payload: Dict[str, Any]
    status: WriteStatus = WriteStatus.PENDING
    sent_at: Optional[datetime] = None
    transport_error: Optional[str] = None
    applied: Optional[bool] = None
    reconciled_at: Optional[datetime] = None


# ---------------- remote schema ----------------

def product_to_remote(p: Product) -> Dict[str, Any]:
    return {
        "id": str(p.id),
        "name": p.name,
        "price": str(p.price),
        "imageBase64": p.image,
        "category": p.category.value,
        "unit": p.unit.value,
        "description": p.description or "",
    }


def order_to_remote(o: Order) -> Dict[str, Any]:
    items = [
        {"id": str(it.id), "name": it.name, "price": str(it.price), "unit": it.unit.value, "quantity": str(it.quantity)}
        for it in o.items
    ]
    return {
        "id": o.id,
        "customerName": o.customer.name,
        "customerAddress": o.customer.address,
        "customerPhone": o.customer.phone,
        "items": json.dumps(items),
        "total": str(o.total),
        "status": o.status.value,
        "paymentMethod": o.payment_method.value,
        "paymentProofBase64": o.payment_proof,
        "orderDate": o.order_date.isoformat(),
    }


def _remote_items(raw: Any, catalog: Dict[ProductId, Product]) -> Tuple[CartItem, ...]:
    if raw in (None, ""):
        return ()
    if isinstance(raw, str):
        raw = json.loads(raw)
    out = []
    for d in raw:
        pid = codec.normalize_id(d["id"])
        known = catalog.get(pid)
        # цена берётся из строки заказа: это снимок на момент покупки
        product = Product(
            id=pid,
            name=str(d.get("name") or (known.name if known else pid)),
            price=codec.to_float(d.get("price"), known.price if known else 0.0),
            image=str(d.get("image") or (known.image if known else "")),
            category=codec.parse_category(d["category"]) if d.get("category") else (
                known.category if known else Category.VEGETABLES
            ),
            unit=codec.parse_unit(d["unit"]) if d.get("unit") else (known.unit if known else Unit.PIECE),
        )
        out.append(CartItem(product=product, quantity=codec.to_float(d.get("quantity"))))
    return tuple(out)


def order_from_remote(d: Dict[str, Any], catalog: Dict[ProductId, Product]) -> Order:
    cust = d.get("customer")
    if isinstance(cust, dict):
        customer = codec.customer_from_dict(cust)
    else:
        customer = Customer(
            name=str(d.get("customerName") or cust or ""),
            address=str(d.get("customerAddress") or d.get("address") or ""),
            phone=str(d.get("customerPhone") or d.get("phone") or ""),
        )
    return Order(
        id=str(d["id"]),
        customer=customer,
        items=_remote_items(d.get("items"), catalog),
        total=codec.to_float(d.get("total")),
        status=codec.parse_status(d.get("status") or OrderStatus.PENDING.value),
        payment_method=codec.parse_payment_method(d.get("paymentMethod") or d.get("payment_method")),
        payment_proof=str(d.get("paymentProofBase64") or d.get("paymentProof") or ""),
        order_date=codec.parse_date(d.get("orderDate") or d.get("order_date")),
    )


def parse_remote_payload(data: Any) -> Tuple[List[Product], Optional[List[Order]]]:
    """
    -> (products, orders). `orders` is None when the endpoint only serves
    the catalog. Bad rows are skipped, a bad body raises RemoteError.
    """
    if isinstance(data, list):
        raw_products, raw_orders = data, None
    elif isinstance(data, dict):
        if "products" not in data:
            # скрипт отвечает {"error": "..."} при исключении
            raise RemoteError(f"malformed payload: no products ({data.get('error') or sorted(data)})")
        raw_products = data["products"]
        raw_orders = data.get("orders") if "orders" in data else None
        if not isinstance(raw_products, list) or (raw_orders is not None and not isinstance(raw_orders, list)):
            raise RemoteError("malformed payload: products/orders must be lists")
    else:
        raise RemoteError(f"malformed payload: {type(data).__name__}")

    products: List[Product] = []
    for row in raw_products:
        try:
            products.append(codec.product_from_dict(row))
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            logger.warning("skipping remote product %r: %s", row, e)
    if raw_products and not products:
        raise RemoteError(f"malformed payload: none of {len(raw_products)} products could be read")

    if raw_orders is None:
        return products, None

    catalog = {p.id: p for p in products}
    orders: List[Order] = []
    for row in raw_orders:
        try:
            orders.append(order_from_remote(row, catalog))
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            logger.warning("skipping remote order %r: %s", row.get("id") if isinstance(row, dict) else row, e)
    return products, orders


# ---------------- client ----------------

class RemoteSyncClient:
    def __init__(
        self,
        url: str,
        store,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
        settle_delay: Optional[float] = None,
        retries: Optional[int] = None,
        backoff: Optional[float] = None,
    ):
        self.url = url
        self.store = store
        self.session = session or requests.Session()
        self.timeout = settings.request_timeout if timeout is None else timeout
        self.settle_delay = settings.settle_delay if settle_delay is None else settle_delay
        self.retries = settings.fetch_retries if retries is None else retries
        self.backoff = settings.retry_backoff if backoff is None else backoff

        self._issued_seq = 0
        self._applied_seq = 0
        # последний применённый fetch вернул список заказов
        self.orders_served = False
        self._tasks: Set[asyncio.Task] = set()

    # ---------------- transport ----------------

    def _get(self) -> Any:
        try:
            resp = self.session.get(self.url, timeout=self.timeout)
        except requests.RequestException as e:
            raise RemoteError(f"fetch failed: {e}") from e
        if resp.status_code != 200:
            raise RemoteError(f"fetch failed: HTTP {resp.status_code}")
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteError(f"fetch failed: body is not JSON ({e})") from e

    def _post(self, body: Dict[str, Any]) -> None:
        resp = self.session.post(
            self.url,
            data=json.dumps(body),
            headers={"Content-Type": "text/plain;charset=utf-8"},
            timeout=self.timeout,
            allow_redirects=False,
        )
        # ответ скрипта не читаем: статус и тело недоступны
        resp.close()

    async def _in_thread(self, fn, *args):
        return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=self.timeout)

    # ---------------- fetch ----------------

    async def fetch(self) -> Optional[AppState]:
        """
        Read products (+ orders) and replace the matching slices.

        Each call gets a sequence number; a response older than one
        already applied is dropped. On failure the loading flag is
        cleared and state is left alone. Returns the new state or None.
        """
        self._issued_seq += 1
        seq = self._issued_seq

        data = None
        for attempt in range(self.retries + 1):
            try:
                data = await self._in_thread(self._get)
                products, orders = parse_remote_payload(data)
                break
            except (RemoteError, asyncio.TimeoutError) as e:
                logger.warning("fetch #%s attempt %s/%s: %s", seq, attempt + 1, self.retries + 1, str(e) or "timeout")
                data = None
                if attempt < self.retries:
                    await asyncio.sleep(self.backoff * (attempt + 1))

        if data is None:
            self.store.dispatch(SetLoading(False))
            return None

        if seq < self._applied_seq:
            logger.info("fetch #%s is stale (#%s already applied), dropped", seq, self._applied_seq)
            return None

        self._applied_seq = seq
        self.orders_served = orders is not None
        self.store.dispatch(remote_data(products=products, orders=orders))
        self.store.dispatch(SetLoading(False))
        logger.info("fetch #%s applied: %s products, %s orders", seq, len(products), "-" if orders is None else len(orders))
        return self.store.state

    # ---------------- write ----------------

    async def write(self, action: str, payload: Dict[str, Any]) -> WriteReceipt:
        receipt = WriteReceipt(action=action, payload=payload)
        body = {"action": action}
        body.update(payload)
        try:
            await self._in_thread(self._post, body)
        except (requests.RequestException, asyncio.TimeoutError) as e:
            # как и в браузере: ошибку отправки не видно, проверит только fetch
            receipt.transport_error = str(e) or type(e).__name__
            logger.warning("write %s: transport error ignored: %s", action, receipt.transport_error)
        receipt.status = WriteStatus.PRESUMED_APPLIED
        receipt.sent_at = datetime.now(timezone.utc)
        return receipt

    async def reconcile(self, receipt: WriteReceipt, check: Optional[Check] = None) -> WriteReceipt:
        if self.settle_delay > 0:
            await asyncio.sleep(self.settle_delay)
        state = await self.fetch()
        if state is None:
            # fetch не удался: остаёмся в presumed_applied
            return receipt
        receipt.status = WriteStatus.RECONCILED
        receipt.reconciled_at = datetime.now(timezone.utc)
        receipt.applied = check(state) if check else None
        if receipt.applied is False:
            logger.warning("write %s did not show up after reconciliation", receipt.action)
        return receipt

    async def submit(
        self,
        action: str,
        payload: Dict[str, Any],
        check: Optional[Check] = None,
        wait: bool = False,
    ) -> WriteReceipt:
        """Write, then reconcile. With wait=False reconciliation runs as a background task."""
        receipt = await self.write(action, payload)
        if wait:
            return await self.reconcile(receipt, check)
        task = asyncio.create_task(self.reconcile(receipt, check))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return receipt

    async def drain(self) -> None:
        """Wait for background reconciliations (used on shutdown and in tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ---------------- entity operations ----------------

    async def add_product(self, product: Product, wait: bool = False) -> WriteReceipt:
        def check(s: AppState) -> Optional[bool]:
            return s.find_product(product.id) is not None

        return await self.submit(REMOTE_ADD, product_to_remote(product), check, wait)

    async def edit_product(self, product: Product, wait: bool = False) -> WriteReceipt:
        def check(s: AppState) -> Optional[bool]:
            p = s.find_product(product.id)
            if p is None:
                return False
            return (p.name, p.price, p.category, p.unit) == (product.name, product.price, product.category, product.unit)

        return await self.submit(REMOTE_EDIT, product_to_remote(product), check, wait)

    async def delete_product(self, product_id: ProductId, wait: bool = False) -> WriteReceipt:
        def check(s: AppState) -> Optional[bool]:
            return s.find_product(product_id) is None

        return await self.submit(REMOTE_DELETE, {"id": str(product_id)}, check, wait)

    async def add_order(self, order: Order, wait: bool = False) -> WriteReceipt:
        def check(s: AppState) -> Optional[bool]:
            if not self.orders_served:
                return None
            return order.id in s.remote_order_ids

        return await self.submit(REMOTE_ADD_ORDER, order_to_remote(order), check, wait)

    async def update_order_status(self, order_id: str, status: OrderStatus, wait: bool = False) -> WriteReceipt:
        status = OrderStatus(status)

        def check(s: AppState) -> Optional[bool]:
            if not self.orders_served:
                return None
            if order_id not in s.remote_order_ids:
                return False
            return s.order_book[order_id].status == status

        return await self.submit(REMOTE_UPDATE_ORDER_STATUS, {"id": order_id, "status": status.value}, check, wait)
