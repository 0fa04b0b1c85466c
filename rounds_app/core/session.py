"""Last-filter-wins dashboard session.

Every refresh is stamped with a generation number taken under a lock. The
loader runs without the lock held; when it returns, the result is applied
only if no newer refresh has started and the filters it was loaded for are
still the active ones. A failed refresh keeps the previous view model and
records the error.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from .errors import DashboardError
from .filters import DEFAULT_FILTERS, FilterState

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DashboardSession(Generic[T]):
    def __init__(self, loader: Callable[[FilterState], T], filters: FilterState = DEFAULT_FILTERS):
        self._loader = loader
        self._lock = threading.Lock()
        self._generation = 0
        self.filters = filters
        self.view_model: T | None = None
        self.applied_generation = 0
        self.last_error: DashboardError | None = None

    @property
    def generation(self) -> int:
        return self._generation

    def dispatch(self, transition: Callable[..., FilterState], *args: Any, **kwargs: Any) -> FilterState:
        """Apply one filter transition; raises (state unchanged) when it is rejected."""
        with self._lock:
            self.filters = transition(self.filters, *args, **kwargs)
            return self.filters

    def refresh(self) -> T | None:
        with self._lock:
            self._generation += 1
            generation = self._generation
            filters = self.filters

        try:
            result = self._loader(filters)
        except DashboardError as exc:
            with self._lock:
                if generation == self._generation and filters == self.filters:
                    self.last_error = exc
            logger.warning("Refresh %s failed; keeping previous view: %s", generation, exc)
            return self.view_model

        with self._lock:
            if generation != self._generation or filters != self.filters:
                logger.info("Discarding stale refresh %s (latest is %s)", generation, self._generation)
                return self.view_model
            self.view_model = result
            self.applied_generation = generation
            self.last_error = None
            return result

    def update(self, transition: Callable[..., FilterState], *args: Any, **kwargs: Any) -> T | None:
        self.dispatch(transition, *args, **kwargs)
        return self.refresh()
