#!/usr/bin/env python3
"""register_player instruction assembly."""

import logging
import struct
from dataclasses import dataclass
from typing import List, Optional

from solders.pubkey import Pubkey
from solders.instruction import Instruction, AccountMeta
from solders.system_program import ID as SYSTEM_PROGRAM_ID

from .activation import current_nonce
from .constants import REGISTER_PLAYER_DISCRIMINATOR
from .layouts import encode_option_pubkey
from .pda import PDADeriver, validate_nonce

logger = logging.getLogger("matrix.register")
logger.setLevel(logging.INFO)


def encode_register_data(referrer_player: Optional[Pubkey], nonce: int) -> bytes:
    """discriminator | Option<Pubkey> referrer Player PDA | nonce u64le"""
    validate_nonce(nonce)
    return REGISTER_PLAYER_DISCRIMINATOR + encode_option_pubkey(referrer_player) + struct.pack('<Q', nonce)


@dataclass(frozen=True)
class RegisterPlan:
    nonce: int
    player: Pubkey
    referrer_player: Optional[Pubkey]
    instruction: Instruction


def build_register_player_ix(deriver: PDADeriver, authority: Pubkey,
                             referrer_wallet: Optional[Pubkey] = None,
                             nonce: Optional[int] = None) -> RegisterPlan:
    """
    The referrer slot (index 5) is always present so account indices never
    shift: the referrer's Player PDA when there is one, else the config PDA
    as a read-only placeholder. Self-referral is dropped.
    """
    nonce = current_nonce() if nonce is None else validate_nonce(nonce)
    if referrer_wallet is not None and referrer_wallet == authority:
        logger.warning(f"[Register] Ignoring self-referral for {authority}")
        referrer_wallet = None

    player, _ = deriver.player(authority)
    config, _ = deriver.config()
    stats, _ = deriver.global_stats()
    tx_guard, _ = deriver.tx_guard_register(authority, nonce)
    referrer_player = deriver.player(referrer_wallet)[0] if referrer_wallet is not None else None

    accounts: List[AccountMeta] = [
        AccountMeta(player, is_signer=False, is_writable=True),
        AccountMeta(authority, is_signer=True, is_writable=True),
        AccountMeta(tx_guard, is_signer=False, is_writable=True),
        AccountMeta(config, is_signer=False, is_writable=True),
        AccountMeta(stats, is_signer=False, is_writable=True),
        AccountMeta(referrer_player or config, is_signer=False, is_writable=False),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    ix = Instruction(deriver.program_id, encode_register_data(referrer_player, nonce), accounts)
    logger.info(f"[Register] {authority} referrer={referrer_wallet} nonce={nonce}")
    return RegisterPlan(nonce=nonce, player=player, referrer_player=referrer_player, instruction=ix)
