"""
Cached account reader for matrix resolution.

Sits between the resolvers and the JSON-RPC client:
1. LRU cache with per-entry TTL (missing accounts are cached as None too)
2. Minimum delay between outgoing RPC calls
3. Exponential backoff on rate-limit answers
4. Primary → fallback endpoint failover via EndpointManager

Every piece of state lives on the instance; build one per process (or per
test) and pass it to the resolvers.
"""

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from solders.pubkey import Pubkey

import config as cfg
from endpoint_manager import EndpointManager
from rpc_infrastructure import SolanaRPC
from services.matrix.errors import RPCError, RateLimitedError

logger = logging.getLogger("account_cache")
logger.setLevel(logging.INFO)


@dataclass
class ReaderMetrics:
    """Counters for the reader (reset with `reset_metrics`)."""
    total_requests: int = 0
    cache_hits: int = 0
    batched_requests: int = 0
    throttled_requests: int = 0
    failed_requests: int = 0
    rate_limited: int = 0


class TTLCache:
    """Small LRU cache whose entries expire individually."""

    def __init__(self, max_entries: int, clock: Callable[[], float]):
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[Pubkey, Tuple[Optional[bytes], float]]" = OrderedDict()

    def lookup(self, key: Pubkey) -> Tuple[bool, Optional[bytes]]:
        """(hit, value); value may legitimately be None on a hit."""
        entry = self._entries.get(key)
        if entry is None:
            return False, None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return False, None
        self._entries.move_to_end(key)
        return True, value

    def store(self, key: Pubkey, value: Optional[bytes], ttl: float):
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.max_entries:
            self._entries.popitem(last=False)
        self._entries[key] = (value, self._clock() + ttl)

    def discard(self, key: Pubkey):
        self._entries.pop(key, None)

    def clear(self):
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class CachedAccountReader:
    """Thread-safe account reader with caching, throttling and failover."""

    def __init__(self, rpc: SolanaRPC, endpoints: EndpointManager,
                 max_entries: int = cfg.CACHE_MAX_ENTRIES,
                 default_ttl: float = cfg.CACHE_TTL_ACCOUNT,
                 min_delay: float = cfg.THROTTLE_MIN_DELAY,
                 backoff_base: float = cfg.BACKOFF_BASE,
                 backoff_max: float = cfg.BACKOFF_MAX,
                 rate_limit_retries: int = 2,
                 chunk_size: int = cfg.MULTIPLE_ACCOUNTS_CHUNK,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        self.rpc = rpc
        self.endpoints = endpoints
        self.default_ttl = default_ttl
        self.min_delay = min_delay
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.rate_limit_retries = rate_limit_retries
        self.chunk_size = chunk_size
        self._clock = clock
        self._sleep = sleep

        self._cache = TTLCache(max_entries, clock)
        self._ttl_overrides: Dict[Pubkey, float] = {}
        self._lock = threading.Lock()

        # Throttle state
        self._last_call_ts: Optional[float] = None
        self._backoff_until = 0.0
        self._consecutive_errors = 0

        self.metrics = ReaderMetrics()

    # ─── TTL / Invalidation ─────────────────────────────────────────

    def set_ttl(self, address: Pubkey, seconds: float):
        """Give one address its own TTL (e.g. the config PDA)."""
        with self._lock:
            self._ttl_overrides[address] = seconds

    def invalidate(self, address: Pubkey):
        with self._lock:
            self._cache.discard(address)

    def clear(self):
        with self._lock:
            self._cache.clear()

    def _ttl_for(self, address: Pubkey) -> float:
        return self._ttl_overrides.get(address, self.default_ttl)

    # ─── Throttling ─────────────────────────────────────────────────

    def _throttle(self):
        """Block until the backoff window and the minimum spacing have passed."""
        now = self._clock()
        if now < self._backoff_until:
            wait = self._backoff_until - now
            self.metrics.throttled_requests += 1
            logger.warning(f"[AccountCache] In backoff, waiting {wait:.2f}s")
            self._sleep(wait)
        elif self._last_call_ts is not None:
            diff = now - self._last_call_ts
            if diff < self.min_delay:
                self._sleep(self.min_delay - diff)
        self._last_call_ts = self._clock()

    def _enter_backoff(self) -> float:
        self._consecutive_errors += 1
        backoff = min(self.backoff_base * (2 ** (self._consecutive_errors - 1)), self.backoff_max)
        self._backoff_until = self._clock() + backoff
        logger.warning(f"[AccountCache] Entering {backoff:.1f}s backoff (error #{self._consecutive_errors})")
        return backoff

    def _call(self, fn_name: str, arg):
        """Run one RPC call under throttle, backoff and failover."""
        attempts = self.rate_limit_retries + 1
        for attempt in range(attempts):
            self._throttle()
            url = self.endpoints.get_rpc_url()
            self.metrics.total_requests += 1
            try:
                result = getattr(self.rpc, fn_name)(arg, url=url)
            except RateLimitedError:
                self.metrics.failed_requests += 1
                self.metrics.rate_limited += 1
                self._enter_backoff()
                self.endpoints.report_failure(url)
                if attempt == attempts - 1:
                    raise
                continue
            except (RPCError, ConnectionError):
                self.metrics.failed_requests += 1
                self.endpoints.report_failure(url)
                raise
            self._consecutive_errors = 0
            self.endpoints.report_success(url)
            return result

    # ─── AccountReader API ──────────────────────────────────────────

    def get_account_info(self, address: Pubkey) -> Optional[bytes]:
        """Raw account data or None (account does not exist)."""
        with self._lock:
            hit, value = self._cache.lookup(address)
            if hit:
                self.metrics.cache_hits += 1
                return value
            data = self._call("get_account_info", str(address))
            self._cache.store(address, data, self._ttl_for(address))
            logger.debug(f"[AccountCache] fetched {address} ({'missing' if data is None else len(data)})")
            return data

    def get_multiple_accounts_info(self, addresses: Sequence[Pubkey]) -> List[Optional[bytes]]:
        """Batched read; result order matches `addresses`."""
        with self._lock:
            results: List[Optional[bytes]] = [None] * len(addresses)
            missing: List[int] = []
            for i, address in enumerate(addresses):
                hit, value = self._cache.lookup(address)
                if hit:
                    self.metrics.cache_hits += 1
                    results[i] = value
                else:
                    missing.append(i)

            for start in range(0, len(missing), self.chunk_size):
                chunk = missing[start:start + self.chunk_size]
                keys = [str(addresses[i]) for i in chunk]
                self.metrics.batched_requests += 1
                fetched = self._call("get_multiple_accounts", keys)
                for i, data in zip(chunk, fetched):
                    results[i] = data
                    self._cache.store(addresses[i], data, self._ttl_for(addresses[i]))
            return results

    # ─── Status ─────────────────────────────────────────────────────

    def reset_metrics(self):
        with self._lock:
            self.metrics = ReaderMetrics()

    def get_status(self) -> dict:
        with self._lock:
            return {
                "cache_size": len(self._cache),
                "consecutive_errors": self._consecutive_errors,
                "in_backoff": self._clock() < self._backoff_until,
                "metrics": dict(vars(self.metrics)),
                "endpoints": self.endpoints.get_status(),
            }
