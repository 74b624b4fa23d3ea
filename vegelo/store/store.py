from __future__ import annotations

import logging
from collections import deque
from typing import Any, Callable, Deque, List, Optional

from vegelo.store.models import AppState
from vegelo.store.reducer import reduce

logger = logging.getLogger(__name__)

Listener = Callable[[AppState, Any], None]


class Store:
    """
    Single source of truth for the storefront.

    `dispatch` runs one action through the reducer to completion, mirrors
    the persisted slices into the cache, then notifies listeners. An action
    dispatched from a listener is queued and handled after the current one,
    so the reducer never sees a half-applied transition.
    """

    def __init__(self, initial_state: Optional[AppState] = None, cache=None):
        self._state = initial_state or AppState()
        self._cache = cache
        self._listeners: List[Listener] = []
        self._queue: Deque[Any] = deque()
        self._dispatching = False
        self.last_persist_ok = True

    @property
    def state(self) -> AppState:
        return self._state

    def subscribe(self, fn: Listener) -> Callable[[], None]:
        self._listeners.append(fn)

        def _unsubscribe() -> None:
            if fn in self._listeners:
                self._listeners.remove(fn)

        return _unsubscribe

    def dispatch(self, action: Any) -> AppState:
        self._queue.append(action)
        if self._dispatching:
            return self._state

        self._dispatching = True
        try:
            while self._queue:
                self._apply(self._queue.popleft())
        finally:
            self._dispatching = False
        return self._state

    def _apply(self, action: Any) -> None:
        prev = self._state
        new = reduce(prev, action)
        if new is prev:
            return
        self._state = new

        if self._cache is not None:
            self.last_persist_ok = self._cache.persist(prev, new)

        for fn in list(self._listeners):
            try:
                fn(new, action)
            except Exception:
                logger.exception("store listener failed on %s", type(action).__name__)
