#!/usr/bin/env python3
"""Read-only account fetchers for dashboards and scripts."""

import logging
from typing import List, Optional

from solders.pubkey import Pubkey

from .constants import CONFIG_VERSION, MAX_LEVELS
from .layouts import (
    ConfigAccount, GlobalStatsAccount, LevelStateAccount, PlayerAccount,
    decode_config, decode_global_stats, decode_level_state, decode_or_none, decode_player,
)
from .pda import PDADeriver
from .reader import AccountReader, read_decoded, read_many

logger = logging.getLogger("matrix.fetch")
logger.setLevel(logging.INFO)


def fetch_config(reader: AccountReader, deriver: PDADeriver) -> Optional[ConfigAccount]:
    """ConfigV3, or None when missing, unreadable or a different layout version."""
    address, _ = deriver.config()
    config = read_decoded(reader, address, decode_config, "Config")
    if config is not None and config.version != CONFIG_VERSION:
        logger.warning(f"[Fetch] Config {address} has version {config.version}, expected {CONFIG_VERSION}")
        return None
    return config


def fetch_global_stats(reader: AccountReader, deriver: PDADeriver) -> Optional[GlobalStatsAccount]:
    address, _ = deriver.global_stats()
    return read_decoded(reader, address, decode_global_stats, "GlobalStats")


def fetch_player(reader: AccountReader, deriver: PDADeriver, authority: Pubkey) -> Optional[PlayerAccount]:
    address, _ = deriver.player(authority)
    return read_decoded(reader, address, decode_player, "Player")


def fetch_level_state(reader: AccountReader, deriver: PDADeriver,
                      authority: Pubkey, level: int) -> Optional[LevelStateAccount]:
    address = deriver.level_state_for_wallet(authority, level)
    return read_decoded(reader, address, decode_level_state, "LevelState")


def fetch_level_states(reader: AccountReader, deriver: PDADeriver,
                       authority: Pubkey) -> List[Optional[LevelStateAccount]]:
    """All 16 LevelStates of a wallet in one batched read (index 0 = level 1)."""
    player, _ = deriver.player(authority)
    addresses = [deriver.level_state(player, level)[0] for level in range(1, MAX_LEVELS + 1)]
    raw = read_many(reader, addresses, "LevelState")
    return [decode_or_none(decode_level_state, data, address) for address, data in zip(addresses, raw)]


def fetch_active_levels(reader: AccountReader, deriver: PDADeriver, authority: Pubkey) -> List[int]:
    """Levels (1..16) the wallet has activated."""
    states = fetch_level_states(reader, deriver, authority)
    return [level for level, state in enumerate(states, start=1) if state is not None and state.is_active]
