# src/backlog_health/data/field_cache.py

"""Process-lifetime cache for discovered custom field identifiers."""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

_UNSET = object()


class FieldDiscoveryCache:
    """Discovers a field id once and reuses it until invalidated.

    A configured value always wins. A failed discovery is remembered as None so
    every request does not pay for a failing lookup again.
    """

    def __init__(self, name: str = "field"):
        self.name = name
        self._value = _UNSET
        self._lock = threading.Lock()

    @property
    def is_cached(self) -> bool:
        return self._value is not _UNSET

    def resolve(
        self,
        configured: Optional[str],
        discover: Callable[[], Optional[str]],
    ) -> Optional[str]:
        if configured:
            return configured
        with self._lock:
            if self._value is _UNSET:
                try:
                    self._value = discover()
                except Exception as exc:
                    logger.warning("Could not discover %s: %s", self.name, exc)
                    self._value = None
                else:
                    logger.debug("Discovered %s: %s", self.name, self._value)
            return self._value

    def invalidate(self) -> None:
        """Forget the cached discovery; the next resolve() looks it up again."""
        with self._lock:
            self._value = _UNSET
