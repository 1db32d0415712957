"""Unit tests for RPC endpoint failover."""

from types import SimpleNamespace

import pytest

from endpoint_manager import Endpoint, EndpointManager, EndpointPool


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def _pool(clock, threshold=3, cooldown=30.0):
    return EndpointPool("rpc", [Endpoint("https://primary", "primary"), Endpoint("https://fallback", "fallback")],
                        fail_threshold=threshold, cooldown=cooldown, clock=clock)


class TestEndpointPool:
    def test_primary_active_by_default(self):
        assert _pool(FakeClock()).get_active_url() == "https://primary"

    def test_demotion_after_threshold(self):
        pool = _pool(FakeClock())
        assert pool.report_failure() is False
        assert pool.report_failure() is False
        assert pool.report_failure() is True
        assert pool.get_active_url() == "https://fallback"

    def test_success_resets_failures(self):
        pool = _pool(FakeClock())
        pool.report_failure()
        pool.report_failure()
        pool.report_success()
        assert pool.report_failure() is False
        assert pool.get_active_url() == "https://primary"

    def test_recovery_after_cooldown(self):
        clock = FakeClock()
        pool = _pool(clock)
        for _ in range(3):
            pool.report_failure()
        clock.now += 29
        assert pool.get_active_url() == "https://fallback"
        clock.now += 1
        assert pool.get_active_url() == "https://primary"

    def test_failure_on_named_url(self):
        pool = _pool(FakeClock(), threshold=1)
        assert pool.report_failure("https://fallback") is True
        assert pool.get_active_url() == "https://primary"

    def test_last_healthy_endpoint_not_demoted(self):
        pool = EndpointPool("rpc", [Endpoint("https://only", "only")], fail_threshold=1, clock=FakeClock())
        assert pool.report_failure() is False
        assert pool.get_active_url() == "https://only"

    def test_empty_pool_rejected(self):
        with pytest.raises(ValueError):
            EndpointPool("rpc", [])

    def test_status(self):
        status = _pool(FakeClock()).get_status()
        assert [s["active"] for s in status] == [True, False]


class TestEndpointManager:
    def test_from_config(self):
        cfg = SimpleNamespace(MATRIX_RPC_PRIMARY="https://a", MATRIX_RPC_FALLBACK="https://b",
                              FAILOVER_THRESHOLD=2, BACKOFF_MAX=10.0)
        mgr = EndpointManager(cfg, clock=FakeClock())
        assert mgr.get_rpc_url() == "https://a"
        mgr.report_failure()
        assert mgr.report_failure() is True
        assert mgr.get_rpc_url() == "https://b"
        assert mgr.get_status()["rpc"]["active"] == "fallback"

    def test_same_fallback_collapses(self):
        cfg = SimpleNamespace(MATRIX_RPC_PRIMARY="https://a", MATRIX_RPC_FALLBACK="https://a")
        assert len(EndpointManager(cfg).rpc.endpoints) == 1
