from __future__ import annotations

import json
import logging
import os
import sqlite3
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Optional

from vegelo.config import settings
from vegelo.constants import (
    CACHE_FAVORITES,
    CACHE_LANGUAGE,
    CACHE_ORDERS,
    CACHE_PRODUCTS,
    CACHE_PROFILE,
    CACHE_THEME,
    Language,
    Theme,
)
from vegelo.data import INITIAL_PRODUCTS
from vegelo.db import codec
from vegelo.errors import StorageError
from vegelo.store.models import AppState, Order, UserProfile

logger = logging.getLogger(__name__)


def _connect(db_path: Optional[str] = None) -> sqlite3.Connection:
    path = db_path or settings.db_path
    if os.path.dirname(path):
        os.makedirs(os.path.dirname(path), exist_ok=True)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: Optional[str] = None) -> None:
    conn = _connect(db_path)
    try:
        with open(os.path.join(os.path.dirname(__file__), "schema.sql"), "r", encoding="utf-8") as f:
            conn.executescript(f.read())
        conn.commit()
    finally:
        conn.close()


def _write(conn: sqlite3.Connection, key: str, value: str) -> None:
    conn.execute(
        "INSERT INTO cache(key, value, updated_at) VALUES(?,?,?) "
        "ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at",
        (key, value, datetime.now().strftime("%Y-%m-%d %H:%M:%S")),
    )


# slice name -> (cache key, state -> json-able)
_ENCODERS: Dict[str, tuple] = {
    "products": (CACHE_PRODUCTS, lambda s: [codec.product_to_dict(p) for p in s.products]),
    "orders": (CACHE_ORDERS, lambda s: codec.orders_to_list(s.orders)),
    "favorites": (CACHE_FAVORITES, lambda s: sorted(s.favorites, key=str)),
    "profile": (CACHE_PROFILE, lambda s: codec.customer_to_dict(s.profile)),
    "language": (CACHE_LANGUAGE, lambda s: s.language.value),
    "theme": (CACHE_THEME, lambda s: s.theme.value),
}


def changed_slices(prev: AppState, new: AppState) -> list:
    out = []
    if prev.products != new.products:
        out.append("products")
    if prev.local_order_ids != new.local_order_ids or prev.orders != new.orders:
        out.append("orders")
    if prev.favorites != new.favorites:
        out.append("favorites")
    if prev.profile != new.profile:
        out.append("profile")
    if prev.language != new.language:
        out.append("language")
    if prev.theme != new.theme:
        out.append("theme")
    return out


class PersistenceCache:
    """
    Best-effort mirror of the persisted slices into a sqlite key/value table.

    The in-memory state stays authoritative: `persist` never raises.
    Only `save_orders` (used by checkout) reports failure, as StorageError.
    """

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or settings.db_path

    def init(self) -> None:
        init_db(self.db_path)

    # ---------------- write ----------------

    def persist(self, prev: AppState, new: AppState) -> bool:
        names = changed_slices(prev, new)
        if not names:
            return True
        try:
            self._write_slices(new, names)
            return True
        except (sqlite3.Error, OSError, TypeError, ValueError) as e:
            logger.warning("cache write failed for %s: %s", ", ".join(names), e)
            return False

    def save_orders(self, orders: Iterable[Order]) -> None:
        try:
            payload = json.dumps(codec.orders_to_list(orders))
            conn = _connect(self.db_path)
            try:
                _write(conn, CACHE_ORDERS, payload)
                conn.commit()
            finally:
                conn.close()
        except (sqlite3.Error, OSError, TypeError, ValueError) as e:
            raise StorageError(f"could not save order history: {e}") from e

    def _write_slices(self, state: AppState, names: list) -> None:
        rows = []
        for name in names:
            key, enc = _ENCODERS[name]
            rows.append((key, json.dumps(enc(state))))
        conn = _connect(self.db_path)
        try:
            conn.execute("BEGIN")
            for key, value in rows:
                _write(conn, key, value)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # ---------------- read ----------------

    def _read_raw(self) -> Dict[str, str]:
        try:
            conn = _connect(self.db_path)
            try:
                rows = conn.execute("SELECT key, value FROM cache").fetchall()
                return {r["key"]: r["value"] for r in rows}
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            logger.warning("cache read failed, using defaults: %s", e)
            return {}

    @staticmethod
    def _decode(raw: Dict[str, str], key: str, parse: Callable[[Any], Any], default: Any) -> Any:
        if key not in raw:
            return default
        try:
            return parse(json.loads(raw[key]))
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            logger.warning("cache key %s unreadable, using default: %s", key, e)
            return default

    def load_slices(self) -> Dict[str, Any]:
        """
        Read every persisted slice back from the cache.

        Missing or unparseable keys fall back to the bundled catalog,
        an empty order history, no favorites and an empty profile.
        The result is the payload of a SetInitialState action.
        """
        raw = self._read_raw()

        products = self._decode(
            raw, CACHE_PRODUCTS, lambda v: tuple(codec.product_from_dict(x) for x in v), INITIAL_PRODUCTS
        )
        orders = self._decode(raw, CACHE_ORDERS, lambda v: tuple(codec.order_from_dict(x) for x in v), ())
        favorites = self._decode(
            raw, CACHE_FAVORITES, lambda v: frozenset(codec.normalize_id(x) for x in v), frozenset()
        )
        profile = self._decode(raw, CACHE_PROFILE, codec.customer_from_dict, UserProfile())
        language = self._decode(raw, CACHE_LANGUAGE, Language, Language.EN)
        theme = self._decode(raw, CACHE_THEME, Theme, Theme.LIGHT)

        return {
            "products": tuple(products),
            "orders": tuple(orders),
            "favorites": frozenset(favorites),
            "profile": profile,
            "language": language,
            "theme": theme,
        }

    def load_state(self, base: Optional[AppState] = None) -> AppState:
        s = self.load_slices()
        orders = s.pop("orders")
        return replace(
            base or AppState(),
            order_book={o.id: o for o in orders},
            local_order_ids=tuple(o.id for o in orders),
            **s,
        )
