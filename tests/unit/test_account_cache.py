"""
Unit tests for the cached account reader.

Tests cover:
- TTL cache hits, expiry, LRU eviction and cached misses
- Minimum spacing between RPC calls
- Exponential backoff and endpoint failover on rate limits and RPC errors
- Batched reads of uncached keys only
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from builders import pk
from endpoint_manager import EndpointManager
from rpc_infrastructure import RPCError, RateLimitedError, SolanaRPC
from services.account_cache import CachedAccountReader, TTLCache


class FakeTime:
    """Clock + sleep pair; sleeping advances the clock."""

    def __init__(self):
        self.now = 500.0
        self.sleeps = []

    def clock(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(round(seconds, 6))
        self.now += seconds


@pytest.fixture
def fake_time():
    return FakeTime()


@pytest.fixture
def rpc():
    return MagicMock(spec=SolanaRPC)


def _reader(rpc, fake_time, **kw):
    cfg = SimpleNamespace(MATRIX_RPC_PRIMARY="https://primary", MATRIX_RPC_FALLBACK="https://fallback",
                          FAILOVER_THRESHOLD=3, BACKOFF_MAX=30.0)
    params = dict(max_entries=3, default_ttl=60.0, min_delay=0.1, backoff_base=3.0, backoff_max=30.0,
                  clock=fake_time.clock, sleep=fake_time.sleep)
    params.update(kw)
    return CachedAccountReader(rpc, EndpointManager(cfg, clock=fake_time.clock), **params)


class TestTTLCache:
    def test_expiry(self, fake_time):
        cache = TTLCache(2, fake_time.clock)
        cache.store(pk(1), b"a", 10)
        assert cache.lookup(pk(1)) == (True, b"a")
        fake_time.now += 10
        assert cache.lookup(pk(1)) == (False, None)

    def test_lru_eviction(self, fake_time):
        cache = TTLCache(2, fake_time.clock)
        cache.store(pk(1), b"a", 10)
        cache.store(pk(2), b"b", 10)
        cache.lookup(pk(1))
        cache.store(pk(3), b"c", 10)
        assert cache.lookup(pk(2)) == (False, None)
        assert cache.lookup(pk(1))[0]

    def test_none_is_a_hit(self, fake_time):
        cache = TTLCache(2, fake_time.clock)
        cache.store(pk(1), None, 10)
        assert cache.lookup(pk(1)) == (True, None)


class TestCaching:
    def test_second_read_is_cached(self, rpc, fake_time):
        rpc.get_account_info.return_value = b"data"
        reader = _reader(rpc, fake_time)
        assert reader.get_account_info(pk(1)) == b"data"
        assert reader.get_account_info(pk(1)) == b"data"
        assert rpc.get_account_info.call_count == 1
        assert reader.metrics.cache_hits == 1

    def test_missing_account_cached(self, rpc, fake_time):
        rpc.get_account_info.return_value = None
        reader = _reader(rpc, fake_time)
        assert reader.get_account_info(pk(1)) is None
        assert reader.get_account_info(pk(1)) is None
        assert rpc.get_account_info.call_count == 1

    def test_ttl_override(self, rpc, fake_time):
        rpc.get_account_info.return_value = b"cfg"
        reader = _reader(rpc, fake_time)
        reader.set_ttl(pk(1), 120.0)
        reader.get_account_info(pk(1))
        fake_time.now += 90
        reader.get_account_info(pk(1))
        assert rpc.get_account_info.call_count == 1

    def test_invalidate(self, rpc, fake_time):
        rpc.get_account_info.return_value = b"x"
        reader = _reader(rpc, fake_time)
        reader.get_account_info(pk(1))
        reader.invalidate(pk(1))
        reader.get_account_info(pk(1))
        assert rpc.get_account_info.call_count == 2

    def test_calls_use_active_endpoint(self, rpc, fake_time):
        rpc.get_account_info.return_value = b"x"
        _reader(rpc, fake_time).get_account_info(pk(1))
        rpc.get_account_info.assert_called_once_with(str(pk(1)), url="https://primary")


class TestThrottle:
    def test_min_delay_between_calls(self, rpc, fake_time):
        rpc.get_account_info.return_value = b"x"
        reader = _reader(rpc, fake_time)
        reader.get_account_info(pk(1))
        reader.get_account_info(pk(2))
        assert fake_time.sleeps == [0.1]

    def test_no_sleep_when_spaced(self, rpc, fake_time):
        rpc.get_account_info.return_value = b"x"
        reader = _reader(rpc, fake_time)
        reader.get_account_info(pk(1))
        fake_time.now += 1
        reader.get_account_info(pk(2))
        assert fake_time.sleeps == []


class TestBackoff:
    def test_retries_after_backoff(self, rpc, fake_time):
        rpc.get_account_info.side_effect = [RateLimitedError(), b"ok"]
        reader = _reader(rpc, fake_time)
        assert reader.get_account_info(pk(1)) == b"ok"
        assert 3.0 in fake_time.sleeps
        assert reader.metrics.rate_limited == 1

    def test_exponential_and_raises_when_exhausted(self, rpc, fake_time):
        rpc.get_account_info.side_effect = RateLimitedError()
        reader = _reader(rpc, fake_time)
        with pytest.raises(RateLimitedError):
            reader.get_account_info(pk(1))
        assert [s for s in fake_time.sleeps if s >= 1] == [3.0, 6.0]
        assert reader.get_status()["consecutive_errors"] == 3

    def test_backoff_capped(self, rpc, fake_time):
        rpc.get_account_info.side_effect = RateLimitedError()
        reader = _reader(rpc, fake_time, rate_limit_retries=5, backoff_max=10.0)
        with pytest.raises(RateLimitedError):
            reader.get_account_info(pk(1))
        assert max(fake_time.sleeps) == 10.0

    def test_failover_after_three_rate_limits(self, rpc, fake_time):
        rpc.get_account_info.side_effect = [RateLimitedError()] * 3 + [b"ok"]
        reader = _reader(rpc, fake_time, rate_limit_retries=3)
        assert reader.get_account_info(pk(1)) == b"ok"
        assert rpc.get_account_info.call_args.kwargs["url"] == "https://fallback"

    def test_connection_error_propagates(self, rpc, fake_time):
        rpc.get_account_info.side_effect = ConnectionError("down")
        reader = _reader(rpc, fake_time)
        with pytest.raises(ConnectionError):
            reader.get_account_info(pk(1))
        assert reader.metrics.failed_requests == 1

    def test_rpc_errors_fail_over_to_secondary(self, rpc, fake_time):
        """A node answering JSON-RPC errors is demoted like an unreachable one."""
        rpc.get_account_info.side_effect = RPCError("Node is behind by 150 slots", -32005)
        reader = _reader(rpc, fake_time)
        for n in range(3):
            with pytest.raises(RPCError):
                reader.get_account_info(pk(n + 1))
        assert reader.metrics.failed_requests == 3
        assert reader.metrics.rate_limited == 0
        assert reader.endpoints.get_rpc_url() == "https://fallback"

        rpc.get_account_info.side_effect = None
        rpc.get_account_info.return_value = b"ok"
        assert reader.get_account_info(pk(9)) == b"ok"
        assert rpc.get_account_info.call_args.kwargs["url"] == "https://fallback"


class TestBatching:
    def test_only_uncached_keys_fetched(self, rpc, fake_time):
        rpc.get_account_info.return_value = b"one"
        rpc.get_multiple_accounts.return_value = [b"two", None]
        reader = _reader(rpc, fake_time)
        reader.get_account_info(pk(1))
        assert reader.get_multiple_accounts_info([pk(1), pk(2), pk(3)]) == [b"one", b"two", None]
        rpc.get_multiple_accounts.assert_called_once_with([str(pk(2)), str(pk(3))], url="https://primary")

    def test_all_cached_no_call(self, rpc, fake_time):
        rpc.get_multiple_accounts.return_value = [b"a"]
        reader = _reader(rpc, fake_time)
        reader.get_multiple_accounts_info([pk(1)])
        reader.get_multiple_accounts_info([pk(1)])
        assert rpc.get_multiple_accounts.call_count == 1

    def test_chunking(self, rpc, fake_time):
        rpc.get_multiple_accounts.side_effect = lambda keys, url: [b"x"] * len(keys)
        reader = _reader(rpc, fake_time, chunk_size=2, max_entries=10)
        result = reader.get_multiple_accounts_info([pk(i) for i in range(1, 6)])
        assert result == [b"x"] * 5
        assert [len(c.args[0]) for c in rpc.get_multiple_accounts.call_args_list] == [2, 2, 1]
        assert reader.metrics.batched_requests == 3
