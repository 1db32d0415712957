"""
EndpointManager: primary/fallback RPC failover for the matrix client.

Tracks consecutive failures per endpoint; after `fail_threshold` failures the
active endpoint is demoted and the next healthy one takes over. A demoted
endpoint is promoted back once `cooldown` seconds have passed since its
demotion (checked lazily on every `get_active()` call, no background thread).

Failover chain:
  RPC:  primary (Helius or MATRIX_RPC_PRIMARY) → public cluster endpoint
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

logger = logging.getLogger("endpoint_mgr")
logger.setLevel(logging.INFO)

FAIL_THRESHOLD = 3       # consecutive failures before demotion
RECOVERY_COOLDOWN = 30.0  # seconds a demoted endpoint sits out


@dataclass
class Endpoint:
    """Single endpoint with health tracking."""
    url: str
    label: str
    healthy: bool = True
    consecutive_failures: int = 0
    total_failures: int = 0
    total_successes: int = 0
    last_failure_time: float = 0.0
    last_success_time: float = 0.0
    demoted_at: float = 0.0


class EndpointPool:
    """Ordered list of endpoints; the first healthy one is active."""

    def __init__(self, name: str, endpoints: List[Endpoint],
                 fail_threshold: int = FAIL_THRESHOLD,
                 cooldown: float = RECOVERY_COOLDOWN,
                 clock: Callable[[], float] = time.monotonic):
        if not endpoints:
            raise ValueError(f"EndpointPool '{name}' needs at least one endpoint")
        self.name = name
        self.endpoints = endpoints
        self.fail_threshold = fail_threshold
        self.cooldown = cooldown
        self._clock = clock
        self._lock = threading.Lock()

    def _recover_expired_unlocked(self):
        """Promote demoted endpoints whose cooldown elapsed (caller holds lock)."""
        now = self._clock()
        for ep in self.endpoints:
            if not ep.healthy and now - ep.demoted_at >= self.cooldown:
                ep.healthy = True
                ep.consecutive_failures = 0
                logger.info(f"[EndpointMgr] {self.name} endpoint RECOVERED: {ep.label} after {self.cooldown:.0f}s cooldown")

    def _active_unlocked(self) -> Endpoint:
        for ep in self.endpoints:
            if ep.healthy:
                return ep
        # All unhealthy, first is the best hope
        return self.endpoints[0]

    def get_active(self) -> Endpoint:
        """Return the first healthy endpoint, or the first endpoint if all unhealthy."""
        with self._lock:
            self._recover_expired_unlocked()
            return self._active_unlocked()

    def get_active_url(self) -> str:
        return self.get_active().url

    def report_success(self, url: Optional[str] = None):
        """Report a successful call on `url` (default: the active endpoint)."""
        with self._lock:
            ep = self._find_unlocked(url)
            ep.consecutive_failures = 0
            ep.total_successes += 1
            ep.last_success_time = self._clock()

    def report_failure(self, url: Optional[str] = None) -> bool:
        """Report a failed call. Returns True if the endpoint was demoted."""
        with self._lock:
            ep = self._find_unlocked(url)
            ep.consecutive_failures += 1
            ep.total_failures += 1
            ep.last_failure_time = self._clock()
            if not ep.healthy or ep.consecutive_failures < self.fail_threshold:
                return False
            if not any(other.healthy for other in self.endpoints if other is not ep):
                # Nothing to fail over to; keep using it
                return False
            ep.healthy = False
            ep.demoted_at = self._clock()
            next_ep = self._active_unlocked()
            logger.warning(
                f"[EndpointMgr] {self.name} endpoint DEMOTED: "
                f"{ep.label} → failover to {next_ep.label} "
                f"(after {ep.consecutive_failures} consecutive failures)"
            )
            return True

    def _find_unlocked(self, url: Optional[str]) -> Endpoint:
        if url is not None:
            for ep in self.endpoints:
                if ep.url == url:
                    return ep
        return self._active_unlocked()

    def get_status(self) -> list:
        """Return status info for all endpoints."""
        with self._lock:
            active = self._active_unlocked()
            return [
                {
                    "label": ep.label,
                    "healthy": ep.healthy,
                    "active": ep is active,
                    "consecutive_failures": ep.consecutive_failures,
                    "total_failures": ep.total_failures,
                    "total_successes": ep.total_successes,
                }
                for ep in self.endpoints
            ]


class EndpointManager:
    """RPC endpoint failover built from the config module (or any object with the same attributes)."""

    def __init__(self, config, clock: Callable[[], float] = time.monotonic):
        eps = [Endpoint(url=config.MATRIX_RPC_PRIMARY, label="primary")]
        fallback = getattr(config, "MATRIX_RPC_FALLBACK", "")
        if fallback and fallback != config.MATRIX_RPC_PRIMARY:
            eps.append(Endpoint(url=fallback, label="fallback"))
        self.rpc = EndpointPool(
            "rpc", eps,
            fail_threshold=getattr(config, "FAILOVER_THRESHOLD", FAIL_THRESHOLD),
            cooldown=getattr(config, "BACKOFF_MAX", RECOVERY_COOLDOWN),
            clock=clock,
        )
        labels = [ep.label for ep in eps]
        logger.info(f"[EndpointMgr] rpc: {' → '.join(labels)}")

    # ─── Public API ───────────────────────────────────────────────────

    def get_rpc_url(self) -> str:
        """Get the current best RPC endpoint URL."""
        return self.rpc.get_active_url()

    def report_success(self, url: Optional[str] = None):
        self.rpc.report_success(url)

    def report_failure(self, url: Optional[str] = None) -> bool:
        """Report a failed call. Returns True if failover was triggered."""
        return self.rpc.report_failure(url)

    def get_status(self) -> dict:
        return {"rpc": {"active": self.rpc.get_active().label, "endpoints": self.rpc.get_status()}}
