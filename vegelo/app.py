from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from vegelo.config import settings
from vegelo.db.sqlite import PersistenceCache
from vegelo.services.admin import AdminConsole
from vegelo.services.checkout import place_order
from vegelo.services.remote import RemoteSyncClient
from vegelo.store.actions import SetInitialState
from vegelo.store.models import AppState, Customer
from vegelo.store.reducer import reduce
from vegelo.store.store import Store

logger = logging.getLogger(__name__)


class Storefront:
    """Store + cache + (optional) remote sync, wired together."""

    def __init__(self, store: Store, cache: PersistenceCache, remote: Optional[RemoteSyncClient] = None):
        self.store = store
        self.cache = cache
        self.remote = remote
        self.admin = AdminConsole(store, remote)

    @classmethod
    def create(cls, db_path: Optional[str] = None, remote_url: Optional[str] = None, session=None) -> "Storefront":
        url = settings.remote_url if remote_url is None else remote_url
        cache = PersistenceCache(db_path)
        try:
            cache.init()
        except (sqlite3.Error, OSError) as e:
            logger.warning("cache init failed, running without durable storage: %s", e)

        # spinner until the first fetch answers (or fails).
        # гидратация идёт мимо кэша: при сбое чтения дефолты не должны затереть сохранённое
        initial = reduce(AppState(is_loading=bool(url)), SetInitialState(slices=cache.load_slices()))
        store = Store(initial, cache=cache)

        remote = RemoteSyncClient(url, store, session=session) if url else None
        return cls(store, cache, remote)

    @property
    def state(self) -> AppState:
        return self.store.state

    async def start(self) -> None:
        if self.remote is not None:
            await self.remote.fetch()

    async def sync(self) -> Optional[AppState]:
        if self.remote is None:
            return None
        return await self.remote.fetch()

    async def checkout(self, customer: Customer, payment_method, payment_proof: Optional[str]):
        return await place_order(
            self.store,
            customer,
            payment_method,
            payment_proof,
            cache=self.cache,
            remote=self.remote,
        )

    async def close(self) -> None:
        if self.remote is not None:
            await self.remote.drain()
