"""Unit tests for read-only fetchers."""

from builders import pk, config_bytes, global_stats_bytes
from rpc_infrastructure import RateLimitedError
from services.matrix.fetchers import (
    fetch_active_levels, fetch_config, fetch_global_stats, fetch_level_state, fetch_player,
)


class TestFetchers:
    def test_config(self, world, admin):
        assert fetch_config(world.reader, world.deriver).admin == admin

    def test_config_wrong_version(self, world, admin, treasury):
        world.reader.accounts[world.config_pda] = config_bytes(admin, treasury, version=2)
        assert fetch_config(world.reader, world.deriver) is None

    def test_global_stats(self, world):
        world.reader.accounts[world.deriver.global_stats()[0]] = global_stats_bytes(3, pk(9))
        assert fetch_global_stats(world.reader, world.deriver).total_players == 3

    def test_player_missing(self, world):
        assert fetch_player(world.reader, world.deriver, pk(40)) is None

    def test_level_state_unreadable(self, world):
        ls = world.add_level_state(pk(40), 2)
        world.reader.errors[ls] = RateLimitedError()
        assert fetch_level_state(world.reader, world.deriver, pk(40), 2) is None


class TestActiveLevels:
    def test_one_batch_for_sixteen_levels(self, world):
        wallet = pk(40)
        world.add_level_state(wallet, 1)
        world.add_level_state(wallet, 4)
        world.add_level_state(wallet, 9, activated_at=0)
        assert fetch_active_levels(world.reader, world.deriver, wallet) == [1, 4]
        assert len(world.reader.batch_calls) == 1
        assert len(world.reader.batch_calls[0]) == 16

    def test_batch_failure_reads_sequentially(self, world):
        wallet = pk(40)
        world.add_level_state(wallet, 16)
        world.reader.batch_error = ConnectionError("down")
        assert fetch_active_levels(world.reader, world.deriver, wallet) == [16]
        assert len(world.reader.single_calls) == 16
