"""TTL-based price cache persisted to a flat JSON file."""

import json
import logging
import math
import os
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from wallet_token_aggregator.core.errors import CacheLoadFailure

logger = logging.getLogger(__name__)

DEFAULT_TTL = 3600


def _now_ms(clock: Callable[[], float]) -> int:
    return int(clock() * 1000)


def _is_valid_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    return math.isfinite(value)


class PriceCacheEntry:
    """
    Cached price with its observation time.

    Parameters
    ----------
    price : Any
        USD price. Validated lazily so that malformed snapshots can be pruned.
    observed_at : Any
        Observation timestamp in epoch milliseconds

    """

    __slots__ = ("observed_at", "price")

    def __init__(self, price: Any, observed_at: Any) -> None:
        self.price = price
        self.observed_at = observed_at

    def is_valid(self) -> bool:
        """
        Check that price and timestamp are usable numbers.

        Returns
        -------
        bool
            False for missing, non-numeric, NaN, infinite or negative prices

        """
        return _is_valid_number(self.price) and self.price >= 0 and _is_valid_number(self.observed_at)

    def is_expired(self, now_ms: int, ttl: int) -> bool:
        """
        Check if the entry is invalid or older than the TTL.

        Parameters
        ----------
        now_ms : int
            Current time in epoch milliseconds
        ttl : int
            Time-to-live in seconds

        Returns
        -------
        bool
            True if the entry must be evicted

        """
        if not self.is_valid():
            return True
        return (now_ms - self.observed_at) > ttl * 1000

    def to_dict(self) -> dict[str, Any]:
        return {"price": self.price, "timestamp": self.observed_at}


class PriceCache:
    """
    Process-wide mapping of contract address to last observed USD price.

    The cache is loaded once at startup, read from the request path and
    written only by the bulk refresh job. Entries are replaced whole, so a
    reader never sees a partially updated entry.

    Parameters
    ----------
    path : str | Path
        Location of the JSON snapshot
    ttl : int
        Time-to-live in seconds for cache entries
    clock : Callable[[], float]
        Time source returning epoch seconds

    """

    def __init__(
        self,
        path: str | Path,
        ttl: int = DEFAULT_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.path = Path(path)
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, PriceCacheEntry] = {}
        self._write_lock = threading.Lock()

    def get(self, contract_address: str) -> float | None:
        """
        Get cached price if it exists and hasn't expired.

        Parameters
        ----------
        contract_address : str
            Token contract address (any case)

        Returns
        -------
        float | None
            Cached price if found and valid, None otherwise

        """
        key = contract_address.lower()
        entry = self._entries.get(key)

        if entry is None:
            return None

        if entry.is_expired(_now_ms(self._clock), self.ttl):
            # Evict before use
            with self._write_lock:
                if self._entries.get(key) is entry:
                    del self._entries[key]
            return None

        return float(entry.price)

    def put(self, contract_address: str, price: float) -> None:
        """
        Store a price observed now.

        Parameters
        ----------
        contract_address : str
            Token contract address (any case)
        price : float
            USD price

        """
        entry = PriceCacheEntry(price, _now_ms(self._clock))
        with self._write_lock:
            self._entries[contract_address.lower()] = entry

    def load(self) -> int:
        """
        Load the snapshot from disk and prune expired entries.

        A missing or malformed snapshot leaves the cache empty; this never raises.

        Returns
        -------
        int
            Number of entries kept after pruning

        """
        try:
            raw = self._read_snapshot()
        except CacheLoadFailure as e:
            logger.warning("Failed to load price cache: %s", e)
            raw = {}

        with self._write_lock:
            self._entries = {
                str(address).lower(): PriceCacheEntry(item.get("price"), item.get("timestamp"))
                for address, item in raw.items()
                if isinstance(item, dict)
            }

        removed = self.prune_expired()
        logger.info("Loaded %d cached prices from %s (%d pruned)", len(self._entries), self.path, removed)
        return len(self._entries)

    def _read_snapshot(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise CacheLoadFailure(f"{self.path}: {e}") from e

        if not isinstance(data, dict):
            msg = f"{self.path}: expected an object, got {type(data).__name__}"
            raise CacheLoadFailure(msg)

        return data

    def prune_expired(self) -> int:
        """
        Remove all invalid or expired entries from the cache.

        Returns
        -------
        int
            Number of entries removed

        """
        now_ms = _now_ms(self._clock)
        with self._write_lock:
            expired_keys = [key for key, entry in self._entries.items() if entry.is_expired(now_ms, self.ttl)]
            for key in expired_keys:
                del self._entries[key]
        return len(expired_keys)

    def persist(self) -> None:
        """
        Write the full mapping to disk, replacing the previous snapshot.

        Raises
        ------
        OSError
            If the snapshot cannot be written

        """
        with self._write_lock:
            data = {key: entry.to_dict() for key, entry in self._entries.items()}

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f)
        os.replace(tmp, self.path)
        logger.debug("Persisted %d cached prices to %s", len(data), self.path)

    def snapshot(self) -> dict[str, float]:
        """Return a copy of the cached prices keyed by contract address."""
        with self._write_lock:
            return {key: float(entry.price) for key, entry in self._entries.items()}

    def clear(self) -> None:
        """Clear all cached entries."""
        with self._write_lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, contract_address: object) -> bool:
        return isinstance(contract_address, str) and contract_address.lower() in self._entries
