#!/usr/bin/env python3
"""
Remote sync client: payload parsing, fetch failure handling, stale response
dropping, write receipts and reconciliation.
"""
import asyncio
import threading
import unittest

import requests
from factories import ALI, TOMATOES, FakeResponse, FakeSession, make_order

from vegelo.constants import Category, OrderStatus, Unit
from vegelo.errors import RemoteError
from vegelo.services.remote import (
    RemoteSyncClient,
    WriteStatus,
    order_to_remote,
    parse_remote_payload,
    product_to_remote,
)
from vegelo.store import actions as a
from vegelo.store.models import AppState, Product
from vegelo.store.store import Store

URL = "https://script.example.com/exec"

REMOTE_PRODUCTS = [
    {"id": "1", "name": "Fresh Tomatoes", "price": "120", "image": "t.png", "category": "Vegetables", "unit": "kg"},
    {"id": 11, "name": "Mint", "price": 30.5, "imageBase64": "data:image/png;base64,AA", "category": "Seasonal Deals", "unit": "bundle"},
]


def remote_order_row(order_id, status="Pending"):
    return {
        "id": order_id,
        "customerName": "Ali",
        "customerAddress": "Lahore",
        "customerPhone": "0300",
        "items": '[{"id": "1", "name": "Fresh Tomatoes", "price": "120", "unit": "kg", "quantity": "1.5"}]',
        "total": "180",
        "status": status,
        "paymentMethod": "Easypaisa",
        "paymentProofBase64": "",
        "orderDate": "2025-01-05T08:00:00.000Z",
    }


class TestPayloadParsing(unittest.TestCase):
    def test_bare_list_is_catalog_only(self):
        products, orders = parse_remote_payload(REMOTE_PRODUCTS)
        self.assertIsNone(orders)
        self.assertEqual([p.id for p in products], [1, 11])
        self.assertEqual(products[0].price, 120.0)
        self.assertEqual(products[1].image, "data:image/png;base64,AA")
        self.assertEqual(products[1].category, Category.SEASONAL)

    def test_object_with_orders(self):
        products, orders = parse_remote_payload({"products": REMOTE_PRODUCTS, "orders": [remote_order_row("TM-5")]})
        self.assertEqual(len(products), 2)
        (o,) = orders
        self.assertEqual(o.customer.name, "Ali")
        self.assertEqual(o.items[0].quantity, 1.5)
        self.assertEqual(o.items[0].unit, Unit.KG)
        self.assertEqual(o.total, 180.0)

    def test_bad_rows_skipped(self):
        products, _ = parse_remote_payload([{"id": 1}, REMOTE_PRODUCTS[0], "junk"])
        self.assertEqual([p.id for p in products], [1])

    def test_bad_body(self):
        with self.assertRaises(RemoteError):
            parse_remote_payload("<html>error</html>")
        with self.assertRaises(RemoteError):
            parse_remote_payload({"products": "nope"})
        with self.assertRaises(RemoteError):
            parse_remote_payload({"error": "Exception: quota"})
        with self.assertRaises(RemoteError):
            parse_remote_payload([{"id": 1}, "junk"])

    def test_empty_catalog_is_allowed(self):
        self.assertEqual(parse_remote_payload([]), ([], None))
        self.assertEqual(parse_remote_payload({"products": [], "orders": []}), ([], []))

    def test_remote_write_shapes(self):
        p = product_to_remote(TOMATOES)
        self.assertEqual(p["price"], "120.0")
        self.assertEqual(p["imageBase64"], "t.png")
        self.assertNotIn("image", p)

        o = order_to_remote(make_order("TM-1"))
        self.assertEqual(o["paymentProofBase64"], "data:image/png;base64,AAAA")
        self.assertNotIn("paymentProof", o)
        self.assertEqual(o["total"], "180.0")
        self.assertEqual(o["customerName"], ALI.name)


class RemoteTestCase(unittest.IsolatedAsyncioTestCase):
    def make_client(self, session, state=None, **kw):
        self.store = Store(state or AppState(is_loading=True))
        kw.setdefault("timeout", 5)
        kw.setdefault("settle_delay", 0)
        kw.setdefault("retries", 0)
        kw.setdefault("backoff", 0)
        return RemoteSyncClient(URL, self.store, session=session, **kw)


class TestFetch(RemoteTestCase):
    async def test_fetch_replaces_products_and_clears_loading(self):
        client = self.make_client(FakeSession([FakeResponse(REMOTE_PRODUCTS)]))
        state = await client.fetch()
        self.assertIsNotNone(state)
        self.assertFalse(self.store.state.is_loading)
        self.assertEqual([p.id for p in self.store.state.products], [1, 11])

    async def test_fetch_keeps_favorites_and_local_orders(self):
        start = AppState(is_loading=True, favorites=frozenset({1}))
        client = self.make_client(FakeSession([FakeResponse({"products": REMOTE_PRODUCTS, "orders": []})]), start)
        self.store.dispatch(a.PlaceOrder(make_order("A")))
        await client.fetch()
        self.assertEqual(self.store.state.favorites, frozenset({1}))
        self.assertEqual([o.id for o in self.store.state.orders], ["A"])
        self.assertEqual(self.store.state.remote_orders, [])

    async def test_network_error_leaves_state(self):
        client = self.make_client(FakeSession([requests.ConnectionError("offline")]))
        self.assertIsNone(await client.fetch())
        self.assertFalse(self.store.state.is_loading)
        self.assertEqual(self.store.state.products, ())

    async def test_bad_status_and_bad_body(self):
        for resp in (FakeResponse(status_code=500), FakeResponse(body="<html>")):
            client = self.make_client(FakeSession([resp]))
            self.assertIsNone(await client.fetch())
            self.assertFalse(self.store.state.is_loading)
            self.assertEqual(self.store.state.products, ())

    async def test_error_body_keeps_catalog(self):
        for body in ({"error": "Exception: quota"}, [{"name": "no id"}]):
            client = self.make_client(
                FakeSession([FakeResponse(body)]), AppState(products=(TOMATOES,), is_loading=True)
            )
            self.assertIsNone(await client.fetch())
            self.assertFalse(self.store.state.is_loading)
            self.assertEqual(self.store.state.products, (TOMATOES,))

    async def test_retry_then_success(self):
        session = FakeSession([requests.Timeout("slow"), FakeResponse(REMOTE_PRODUCTS)])
        client = self.make_client(session, retries=2)
        self.assertIsNotNone(await client.fetch())
        self.assertEqual(session.get_calls, 2)
        self.assertEqual(len(self.store.state.products), 2)

    async def test_hung_request_times_out(self):
        session = FakeSession([FakeResponse(REMOTE_PRODUCTS)])
        gate = threading.Event()
        session.gates[1] = gate
        client = self.make_client(session, timeout=0.1)
        try:
            self.assertIsNone(await client.fetch())
            self.assertFalse(self.store.state.is_loading)
            self.assertEqual(self.store.state.products, ())
        finally:
            gate.set()

    async def test_stale_response_is_dropped(self):
        old = FakeResponse([REMOTE_PRODUCTS[0]])
        new = FakeResponse(REMOTE_PRODUCTS)
        session = FakeSession([old, new])
        gate = threading.Event()
        session.gates[1] = gate
        client = self.make_client(session)

        first = asyncio.create_task(client.fetch())
        while session.get_calls < 1:
            await asyncio.sleep(0.01)
        second = await client.fetch()
        gate.set()
        first_result = await first

        self.assertIsNotNone(second)
        self.assertIsNone(first_result)
        self.assertEqual([p.id for p in self.store.state.products], [1, 11])


class TestWrites(RemoteTestCase):
    async def test_write_is_presumed_applied(self):
        session = FakeSession()
        client = self.make_client(session)
        receipt = await client.write("add", {"id": "1"})
        self.assertEqual(receipt.status, WriteStatus.PRESUMED_APPLIED)
        self.assertIsNone(receipt.applied)
        self.assertEqual(session.posts, [{"action": "add", "id": "1"}])

    async def test_transport_error_is_recorded_not_raised(self):
        session = FakeSession(post_error=requests.ConnectionError("offline"))
        client = self.make_client(session)
        receipt = await client.write("delete", {"id": "1"})
        self.assertEqual(receipt.status, WriteStatus.PRESUMED_APPLIED)
        self.assertIn("offline", receipt.transport_error)

    async def test_add_product_reconciled(self):
        session = FakeSession([FakeResponse(REMOTE_PRODUCTS)])
        client = self.make_client(session)
        product = Product(
            id=11, name="Mint", price=30.5, image="x", category=Category.SEASONAL, unit=Unit.BUNDLE
        )
        receipt = await client.add_product(product, wait=True)
        self.assertEqual(session.posts[0]["action"], "add")
        self.assertEqual(session.posts[0]["price"], "30.5")
        self.assertEqual(receipt.status, WriteStatus.RECONCILED)
        self.assertTrue(receipt.applied)
        # catalog comes only from the fetch
        self.assertEqual(len(self.store.state.products), 2)

    async def test_delete_that_did_not_land(self):
        session = FakeSession([FakeResponse(REMOTE_PRODUCTS)])
        client = self.make_client(session)
        receipt = await client.delete_product(1, wait=True)
        self.assertEqual(receipt.status, WriteStatus.RECONCILED)
        self.assertFalse(receipt.applied)

    async def test_reconcile_fetch_fails(self):
        session = FakeSession([requests.ConnectionError("offline")])
        client = self.make_client(session, AppState(products=(TOMATOES,)))
        receipt = await client.edit_product(TOMATOES, wait=True)
        self.assertEqual(receipt.status, WriteStatus.PRESUMED_APPLIED)
        self.assertIsNone(receipt.applied)
        self.assertEqual(self.store.state.products, (TOMATOES,))

    async def test_status_update_reconciled(self):
        payload = {"products": REMOTE_PRODUCTS, "orders": [remote_order_row("TM-5", "Packed")]}
        session = FakeSession([FakeResponse(payload)])
        client = self.make_client(session)
        receipt = await client.update_order_status("TM-5", OrderStatus.PACKED, wait=True)
        self.assertEqual(session.posts[0], {"action": "updateOrderStatus", "id": "TM-5", "status": "Packed"})
        self.assertTrue(receipt.applied)

    async def test_missing_order_is_reported(self):
        session = FakeSession([FakeResponse({"products": REMOTE_PRODUCTS, "orders": []})])
        client = self.make_client(session)
        receipt = await client.add_order(make_order("TM-9"), wait=True)
        self.assertEqual(receipt.status, WriteStatus.RECONCILED)
        self.assertIs(receipt.applied, False)

    async def test_catalog_only_endpoint_cannot_confirm_orders(self):
        session = FakeSession([FakeResponse(REMOTE_PRODUCTS)])
        client = self.make_client(session)
        receipt = await client.add_order(make_order("TM-9"), wait=True)
        self.assertEqual(receipt.status, WriteStatus.RECONCILED)
        self.assertIsNone(receipt.applied)

    async def test_duplicate_writes_are_not_merged(self):
        session = FakeSession([FakeResponse(REMOTE_PRODUCTS), FakeResponse(REMOTE_PRODUCTS)])
        client = self.make_client(session)
        await client.add_product(TOMATOES)
        await client.add_product(TOMATOES)
        await client.drain()
        self.assertEqual(len(session.posts), 2)
        self.assertEqual(session.get_calls, 2)


if __name__ == "__main__":
    unittest.main()
