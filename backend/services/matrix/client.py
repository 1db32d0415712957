#!/usr/bin/env python3
"""
MatrixClient: wires the resolver stack to a live RPC endpoint.

Usage:
    import config
    from services.matrix.client import MatrixClient

    client = MatrixClient.from_config(config)
    plan = client.build_activation(wallet, level=3)
"""

import logging
from typing import List, Optional

from solders.pubkey import Pubkey

from endpoint_manager import EndpointManager
from rpc_infrastructure import RPCConfig, SolanaRPC
from services.account_cache import CachedAccountReader

from .activation import ActivationBuilder, ActivationPlan
from .constants import MAX_LEVELS
from .fetchers import fetch_active_levels, fetch_config, fetch_global_stats, fetch_level_state, fetch_player
from .layouts import ConfigAccount, GlobalStatsAccount, LevelStateAccount, PlayerAccount
from .matrix_view import MatrixState, matrix_state_from_level_state
from .pda import PDADeriver
from .register import RegisterPlan, build_register_player_ix

logger = logging.getLogger("matrix.client")
logger.setLevel(logging.INFO)


class MatrixClient:
    """One deriver + one cached reader, shared by every operation."""

    def __init__(self, reader: CachedAccountReader, deriver: PDADeriver, cfg):
        self.reader = reader
        self.deriver = deriver
        self.cfg = cfg
        self.builder = ActivationBuilder(reader, deriver, compute_units=cfg.COMPUTE_UNITS_ACTIVATE)
        self.reader.set_ttl(deriver.config()[0], cfg.CACHE_TTL_CONFIG)

    @classmethod
    def from_config(cls, cfg) -> "MatrixClient":
        rpc = SolanaRPC(RPCConfig(
            rpc_url=cfg.MATRIX_RPC_PRIMARY,
            commitment=cfg.RPC_COMMITMENT,
            max_retries=cfg.RPC_MAX_RETRIES,
            retry_delay=cfg.RPC_RETRY_DELAY,
            timeout=cfg.RPC_TIMEOUT,
        ))
        reader = CachedAccountReader(
            rpc, EndpointManager(cfg),
            max_entries=cfg.CACHE_MAX_ENTRIES,
            default_ttl=cfg.CACHE_TTL_ACCOUNT,
            min_delay=cfg.THROTTLE_MIN_DELAY,
            backoff_base=cfg.BACKOFF_BASE,
            backoff_max=cfg.BACKOFF_MAX,
            chunk_size=cfg.MULTIPLE_ACCOUNTS_CHUNK,
        )
        logger.info(f"[MatrixClient] cluster={cfg.MATRIX_CLUSTER} program={cfg.PROGRAM_ID}")
        return cls(reader, PDADeriver(cfg.PROGRAM_ID), cfg)

    def _track_level_states(self, authority: Pubkey, levels):
        for level in levels:
            self.reader.set_ttl(self.deriver.level_state_for_wallet(authority, level), self.cfg.CACHE_TTL_LEVEL_STATE)

    # ─── Activation / Registration ──────────────────────────────────

    def build_activation(self, authority: Pubkey, level: int, nonce: Optional[int] = None) -> ActivationPlan:
        self._track_level_states(authority, [level])
        return self.builder.build(authority, level, nonce)

    def build_register(self, authority: Pubkey, referrer: Optional[Pubkey] = None,
                       nonce: Optional[int] = None) -> RegisterPlan:
        return build_register_player_ix(self.deriver, authority, referrer, nonce)

    def after_activation(self, plan: ActivationPlan):
        """Drop cached accounts an activation changes."""
        accounts = plan.accounts
        for address in (accounts.level_state, accounts.level_pool, accounts.tail_page,
                        accounts.new_page, accounts.head_page, accounts.player):
            self.reader.invalidate(address)

    # ─── Reads ──────────────────────────────────────────────────────

    def config(self) -> Optional[ConfigAccount]:
        return fetch_config(self.reader, self.deriver)

    def global_stats(self) -> Optional[GlobalStatsAccount]:
        return fetch_global_stats(self.reader, self.deriver)

    def player(self, authority: Pubkey) -> Optional[PlayerAccount]:
        return fetch_player(self.reader, self.deriver, authority)

    def level_state(self, authority: Pubkey, level: int) -> Optional[LevelStateAccount]:
        self._track_level_states(authority, [level])
        return fetch_level_state(self.reader, self.deriver, authority, level)

    def active_levels(self, authority: Pubkey) -> List[int]:
        self._track_level_states(authority, range(1, MAX_LEVELS + 1))
        return fetch_active_levels(self.reader, self.deriver, authority)

    def matrix(self, authority: Pubkey, level: int) -> Optional[MatrixState]:
        state = self.level_state(authority, level)
        return matrix_state_from_level_state(state) if state is not None else None
