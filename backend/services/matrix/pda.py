#!/usr/bin/env python3
"""
PDA derivation for every matrix account.

All seeds are fixed constants plus typed inputs; results are memoized per
(program_id, seeds) on the deriver instance.
"""

import struct
import threading
from enum import IntEnum
from typing import Dict, List, Tuple

from solders.pubkey import Pubkey

from .constants import (
    SEED_PLAYER, SEED_CONFIG, SEED_GLOBAL_STATS, SEED_LEVEL_STATE,
    SEED_LEVEL_POOL, SEED_QUEUE_PAGE, SEED_TX_GUARD, SEED_TX_REGISTER,
    MAX_SEED_LEN, MAX_LEVELS, U32_MAX, U64_MAX,
)
from .errors import InvalidLevel, InvalidPageIndex, InvalidNonce


class TxGuardKind(IntEnum):
    """Operation byte in the per-attempt TxGuard seed."""
    ACTIVATE = 0x01
    RECYCLE = 0x02


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_level(level) -> int:
    if not _is_int(level) or not 1 <= level <= MAX_LEVELS:
        raise InvalidLevel(level)
    return level


def validate_page_index(page_index) -> int:
    if not _is_int(page_index) or not 0 <= page_index <= U32_MAX:
        raise InvalidPageIndex(page_index)
    return page_index


def validate_nonce(nonce) -> int:
    if not _is_int(nonce) or not 0 <= nonce <= U64_MAX:
        raise InvalidNonce(nonce)
    return nonce


class PDADeriver:
    """Memoizing PDA deriver bound to one program id."""

    def __init__(self, program_id: Pubkey):
        self.program_id = program_id
        self._cache: Dict[Tuple[bytes, ...], Tuple[Pubkey, int]] = {}
        self._lock = threading.Lock()

    def _derive(self, seeds: List[bytes]) -> Tuple[Pubkey, int]:
        for seed in seeds:
            if len(seed) > MAX_SEED_LEN:
                raise ValueError(f"Seed longer than {MAX_SEED_LEN} bytes: {seed!r}")
        key = tuple(seeds)
        with self._lock:
            hit = self._cache.get(key)
        if hit is not None:
            return hit
        result = Pubkey.find_program_address(seeds, self.program_id)
        with self._lock:
            self._cache[key] = result
        return result

    # ── Singletons ───────────────────────────────────────────────────────

    def config(self) -> Tuple[Pubkey, int]:
        return self._derive([SEED_CONFIG])

    def global_stats(self) -> Tuple[Pubkey, int]:
        return self._derive([SEED_GLOBAL_STATS])

    # ── Per wallet / level ───────────────────────────────────────────────

    def player(self, authority: Pubkey) -> Tuple[Pubkey, int]:
        """Player account of a wallet: ["player", authority]."""
        return self._derive([SEED_PLAYER, bytes(authority)])

    def level_state(self, player: Pubkey, level: int) -> Tuple[Pubkey, int]:
        """LevelState of a Player PDA (not the wallet): ["lvl", player, [level]]."""
        validate_level(level)
        return self._derive([SEED_LEVEL_STATE, bytes(player), bytes([level])])

    def level_state_for_wallet(self, authority: Pubkey, level: int) -> Pubkey:
        """Convenience: wallet → Player PDA → LevelState PDA."""
        player, _ = self.player(authority)
        return self.level_state(player, level)[0]

    def level_pool(self, config: Pubkey, level: int) -> Tuple[Pubkey, int]:
        validate_level(level)
        return self._derive([SEED_LEVEL_POOL, bytes(config), bytes([level])])

    def queue_page(self, level_pool: Pubkey, page_index: int) -> Tuple[Pubkey, int]:
        validate_page_index(page_index)
        return self._derive([SEED_QUEUE_PAGE, bytes(level_pool), struct.pack('<I', page_index)])

    # ── TxGuard ──────────────────────────────────────────────────────────

    def tx_guard(self, kind: TxGuardKind, player: Pubkey, level: int, nonce: int) -> Tuple[Pubkey, int]:
        """["tx", player, [kind], [level], u64le(nonce)]"""
        validate_level(level)
        validate_nonce(nonce)
        kind = TxGuardKind(kind)
        return self._derive([
            SEED_TX_GUARD, bytes(player), bytes([kind]), bytes([level]), struct.pack('<Q', nonce),
        ])

    def tx_guard_register(self, authority: Pubkey, nonce: int) -> Tuple[Pubkey, int]:
        """["tx", "register", authority, u64le(nonce)]"""
        validate_nonce(nonce)
        return self._derive([SEED_TX_GUARD, SEED_TX_REGISTER, bytes(authority), struct.pack('<Q', nonce)])

    def cache_size(self) -> int:
        with self._lock:
            return len(self._cache)
