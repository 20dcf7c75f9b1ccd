"""
Balance cache.

Soft state for callers that ask for a last-known balance directly. Keys are
namespaced by prefix and chain ID; values are decimal strings so amounts
beyond float range survive intact. Nothing in the transfer path reads it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Optional, Union

from .constants import BALANCE_CACHE_SEGMENT, DEFAULT_CACHE_KEY_PREFIX
from .errors import DependencyError
from .models import CachedBalance
from .utils.logging import get_logger

__all__ = ["CacheBackend", "InMemoryCacheBackend", "BalanceCache"]

_logger = get_logger(__name__)


class CacheBackend(ABC):
    """Key/value store used by BalanceCache."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None on a miss."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, overwriting any previous value."""


class InMemoryCacheBackend(CacheBackend):
    """
    Least Recently Used (LRU) in-process cache.

    When full, the least recently used key is evicted.

    Example:
        >>> backend = InMemoryCacheBackend(max_size=1000)
        >>> await backend.set("k", "1")
        >>> await backend.get("k")
        '1'
    """

    def __init__(self, max_size: int = 10_000) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self._max_size = max_size
        self._store: OrderedDict[str, str] = OrderedDict()

    @property
    def size(self) -> int:
        return len(self._store)

    async def get(self, key: str) -> Optional[str]:
        try:
            self._store.move_to_end(key)
            return self._store[key]
        except KeyError:
            return None

    async def set(self, key: str, value: str) -> None:
        if key in self._store:
            self._store.move_to_end(key)
        self._store[key] = value
        while len(self._store) > self._max_size:
            self._store.popitem(last=False)


class BalanceCache:
    """Last-known balances keyed by ``{prefix}_{chain_id}_stpbal_{owner}``."""

    def __init__(
        self,
        backend: CacheBackend,
        chain_id: int,
        prefix: str = DEFAULT_CACHE_KEY_PREFIX,
    ) -> None:
        self._backend = backend
        self._chain_id = chain_id
        self._prefix = prefix

    def key_for(self, owner: str) -> str:
        return f"{self._prefix}_{self._chain_id}_{BALANCE_CACHE_SEGMENT}_{owner.lower()}"

    async def get(self, owner: str) -> Optional[CachedBalance]:
        """
        Get the cached balance of ``owner``.

        Returns:
            CachedBalance, or None on a cache miss (a zero balance is "0")

        Raises:
            DependencyError: If the backend fails
        """
        key = self.key_for(owner)
        try:
            value = await self._backend.get(key)
        except Exception as e:
            _logger.warning("Cache read failed", extra={"key": key, "error": str(e)})
            raise DependencyError("cache", f"Cache read failed: {e}", details={"key": key}) from e
        if value is None:
            return None
        return CachedBalance(owner=owner, chain_id=self._chain_id, balance=value)

    async def set(self, owner: str, balance: Union[int, str]) -> CachedBalance:
        """
        Overwrite the cached balance of ``owner``.

        Raises:
            DependencyError: If the backend fails
        """
        key = self.key_for(owner)
        value = str(int(balance))
        try:
            await self._backend.set(key, value)
        except Exception as e:
            _logger.warning("Cache write failed", extra={"key": key, "error": str(e)})
            raise DependencyError("cache", f"Cache write failed: {e}", details={"key": key}) from e
        return CachedBalance(owner=owner, chain_id=self._chain_id, balance=value)
