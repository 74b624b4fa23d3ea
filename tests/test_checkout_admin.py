#!/usr/bin/env python3
"""
Checkout flow and admin console.
"""
import os
import shutil
import sqlite3
import tempfile
import unittest
from dataclasses import replace
from datetime import datetime, timezone
from unittest.mock import patch

import requests
from factories import ALI, BANANAS, TOMATOES, FakeResponse, FakeSession, make_order

from vegelo.config import settings
from vegelo.constants import OrderStatus, PaymentMethod
from vegelo.db.sqlite import PersistenceCache
from vegelo.errors import StorageError, ValidationError
from vegelo.services import checkout
from vegelo.services.admin import AdminConsole, check_password, dashboard, validate_product
from vegelo.services.remote import RemoteSyncClient, WriteStatus
from vegelo.store import actions as a
from vegelo.store.models import AppState, Customer
from vegelo.store.store import Store

PROOF = "data:image/png;base64,iVBORw0KGgo="


class TestCheckout(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.cache = PersistenceCache(os.path.join(self.tmp, "cache.db"))
        self.cache.init()
        self.store = Store(AppState(products=(TOMATOES, BANANAS)), cache=self.cache)
        self.store.dispatch(a.AddToCart(TOMATOES, 1.5))
        self.store.dispatch(a.AddToCart(BANANAS, 2))

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    async def test_happy_path(self):
        now = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
        order, receipt = await checkout.place_order(
            self.store, ALI, PaymentMethod.JAZZCASH, PROOF, cache=self.cache, now=now
        )
        self.assertIsNone(receipt)
        self.assertTrue(order.id.startswith("TM-"))
        self.assertEqual(order.id, f"TM-{int(now.timestamp() * 1000)}")
        self.assertEqual(order.total, 480.0)
        self.assertEqual(order.status, OrderStatus.PENDING)
        self.assertEqual(self.store.state.cart, ())
        self.assertEqual([o.id for o in self.store.state.orders], [order.id])
        self.assertEqual([o.id for o in self.cache.load_state().orders], [order.id])

    async def test_missing_fields(self):
        before = self.store.state
        with self.assertRaises(ValidationError) as ctx:
            await checkout.place_order(self.store, Customer(name="Ali"), PaymentMethod.EASYPAISA, None)
        self.assertEqual(set(ctx.exception.fields), {"address", "phone", "payment_proof"})
        self.assertIs(self.store.state, before)

    async def test_empty_cart(self):
        self.store.dispatch(a.ClearCart())
        with self.assertRaises(ValidationError) as ctx:
            await checkout.place_order(self.store, ALI, PaymentMethod.EASYPAISA, PROOF)
        self.assertEqual(ctx.exception.fields, ("cart",))
        self.assertEqual(self.store.state.orders, [])

    async def test_storage_failure_leaves_state(self):
        before = self.store.state
        with patch("vegelo.db.sqlite._connect", side_effect=sqlite3.OperationalError("database or disk is full")):
            with self.assertRaises(StorageError):
                await checkout.place_order(self.store, ALI, PaymentMethod.EASYPAISA, PROOF, cache=self.cache)
        self.assertIs(self.store.state, before)
        self.assertEqual(len(self.store.state.cart), 2)

    async def test_remote_order_write(self):
        session = FakeSession()
        remote = RemoteSyncClient("https://x", self.store, session=session, timeout=5, settle_delay=0, retries=0)
        order, receipt = await checkout.place_order(self.store, ALI, PaymentMethod.EASYPAISA, PROOF, remote=remote)
        await remote.drain()
        self.assertEqual(receipt.status, WriteStatus.PRESUMED_APPLIED)
        (body,) = session.posts
        self.assertEqual(body["action"], "addOrder")
        self.assertEqual(body["id"], order.id)
        self.assertEqual(body["paymentProofBase64"], PROOF)
        # the order survives the failed reconciliation fetch
        self.assertEqual([o.id for o in self.store.state.orders], [order.id])

    def test_prefill_from_profile(self):
        c = checkout.prefill_customer(ALI)
        self.assertEqual((c.name, c.phone), (ALI.name, ALI.phone))


class TestAdminLocal(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.store = Store(AppState(products=(TOMATOES,)))
        self.admin = AdminConsole(self.store)

    async def test_product_crud_through_reducer(self):
        await self.admin.add_product(BANANAS)
        await self.admin.update_product(replace(BANANAS, price=160.0))
        self.assertEqual(self.store.state.find_product(5).price, 160.0)
        await self.admin.delete_product(1)
        self.assertEqual([p.id for p in self.store.state.products], [5])

    async def test_invalid_product(self):
        with self.assertRaises(ValidationError):
            await self.admin.add_product(replace(BANANAS, name="  "))
        with self.assertRaises(ValidationError):
            validate_product(replace(BANANAS, price=-1.0))
        self.assertEqual(len(self.store.state.products), 1)

    async def test_status_update(self):
        self.store.dispatch(a.PlaceOrder(make_order("A")))
        receipt = await self.admin.update_order_status("A", "Delivered")
        self.assertIsNone(receipt)
        self.assertEqual(self.store.state.find_order("A").status, OrderStatus.DELIVERED)

    def test_dashboard(self):
        self.store.dispatch(a.PlaceOrder(make_order("A")))
        self.store.dispatch(a.PlaceOrder(make_order("B", status=OrderStatus.PACKED)))
        d = dashboard(self.store.state)
        self.assertEqual(d, {"total_orders": 2, "pending_orders": 1, "total_sales": 360.0, "total_products": 1})

    def test_dashboard_prefers_remote_view(self):
        self.store.dispatch(a.PlaceOrder(make_order("A")))
        self.store.dispatch(a.remote_data(orders=[make_order("B"), make_order("C")]))
        self.assertEqual(dashboard(self.store.state)["total_orders"], 2)

    def test_password(self):
        self.assertTrue(check_password(settings.admin_password))
        self.assertFalse(check_password("nope"))
        self.assertFalse(check_password(None))


class TestAdminRemote(unittest.IsolatedAsyncioTestCase):
    async def test_product_add_waits_for_fetch(self):
        store = Store(AppState(products=(TOMATOES,)))
        remote_catalog = [
            {"id": 1, "name": "Fresh Tomatoes", "price": 120, "image": "t.png", "category": "Vegetables", "unit": "kg"},
            {"id": 5, "name": "Ripe Bananas", "price": 150, "image": "b.png", "category": "Fruits", "unit": "piece"},
        ]
        session = FakeSession([FakeResponse(remote_catalog)])
        remote = RemoteSyncClient("https://x", store, session=session, timeout=5, settle_delay=0, retries=0)
        admin = AdminConsole(store, remote)

        receipt = await admin.add_product(BANANAS)
        # nothing local until the reconciliation fetch lands
        self.assertEqual(session.posts[0]["action"], "add")
        self.assertEqual([p.id for p in store.state.products], [1])
        await remote.drain()
        self.assertEqual([p.id for p in store.state.products], [1, 5])
        self.assertTrue(receipt.applied)

    async def test_status_update_is_optimistic(self):
        store = Store(AppState())
        store.dispatch(a.PlaceOrder(make_order("A")))
        session = FakeSession(post_error=requests.ConnectionError("offline"))
        remote = RemoteSyncClient("https://x", store, session=session, timeout=5, settle_delay=0, retries=0)
        admin = AdminConsole(store, remote)
        receipt = await admin.update_order_status("A", OrderStatus.PACKED)
        await remote.drain()
        self.assertIn("offline", receipt.transport_error)
        self.assertEqual(store.state.find_order("A").status, OrderStatus.PACKED)


if __name__ == "__main__":
    unittest.main()
