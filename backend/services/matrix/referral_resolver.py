#!/usr/bin/env python3
"""
Referral payout resolution.

The cycle owner's three uplines receive the referral share, but only when
the upline has itself activated the same level. Every other case pays the
admin wallet. The instruction always carries exactly three wallets and three
LevelState accounts, so each choice is kept as a tagged `Resolved` or
`Fallback` until it is flattened into addresses.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple, Union

from solders.pubkey import Pubkey

from .constants import ZERO_PUBKEY
from .layouts import PlayerAccount, decode_level_state, decode_or_none
from .pda import PDADeriver
from .reader import AccountReader, read_many

logger = logging.getLogger("matrix.referral")
logger.setLevel(logging.INFO)


@dataclass(frozen=True)
class Resolved:
    address: Pubkey


@dataclass(frozen=True)
class Fallback:
    address: Pubkey
    reason: str


RefChoice = Union[Resolved, Fallback]

# Fallback reasons
NO_REFERRER = "no_referrer"
OWNER_UNREADABLE = "owner_unreadable"
LEVEL_NOT_ACTIVE = "level_not_active"
LEVEL_STATE_MISSING = "level_state_missing"


@dataclass(frozen=True)
class ReferralState:
    uplines: Tuple[Pubkey, Pubkey, Pubkey]
    wallets: Tuple[RefChoice, RefChoice, RefChoice]
    level_states: Tuple[RefChoice, RefChoice, RefChoice]

    @property
    def wallet_addresses(self) -> Tuple[Pubkey, Pubkey, Pubkey]:
        return tuple(c.address for c in self.wallets)

    @property
    def level_state_addresses(self) -> Tuple[Pubkey, Pubkey, Pubkey]:
        return tuple(c.address for c in self.level_states)

    @property
    def fallbacks(self) -> int:
        return sum(isinstance(c, Fallback) for c in self.wallets)


def normalize_upline(wallet: Pubkey, admin: Pubkey) -> Pubkey:
    """All-zero upline means 'no referrer' and pays admin."""
    return admin if wallet == ZERO_PUBKEY else wallet


def _is_open(data: Optional[bytes], address: Pubkey) -> Optional[bool]:
    """True/False from activated_at; None when the LevelState is missing or malformed."""
    state = decode_or_none(decode_level_state, data, address)
    if state is None:
        return None
    return state.is_active


class ReferralResolver:
    """Resolves the three referral wallets and their LevelState accounts for one level."""

    def __init__(self, reader: AccountReader, deriver: PDADeriver):
        self.reader = reader
        self.deriver = deriver

    def _snapshot(self, wallets: Sequence[Pubkey], admin: Pubkey, level: int) -> Dict[Pubkey, Optional[bytes]]:
        """One batched read for every distinct non-admin wallet's LevelState."""
        addresses = []
        for wallet in wallets:
            if wallet == admin:
                continue
            ls = self.deriver.level_state_for_wallet(wallet, level)
            if ls not in addresses:
                addresses.append(ls)
        return dict(zip(addresses, read_many(self.reader, addresses, "referral LevelState")))

    def resolve_ref_wallet(self, wallet: Pubkey, admin: Pubkey, level: int,
                           snapshot: Dict[Pubkey, Optional[bytes]] = None) -> RefChoice:
        """Upline wallet if it has an open LevelState for `level`, else admin."""
        if wallet == admin:
            return Resolved(admin)
        ls = self.deriver.level_state_for_wallet(wallet, level)
        if snapshot is None:
            snapshot = self._snapshot([wallet], admin, level)
        is_open = _is_open(snapshot.get(ls), ls)
        if is_open:
            return Resolved(wallet)
        reason = LEVEL_STATE_MISSING if is_open is None else LEVEL_NOT_ACTIVE
        logger.debug(f"[Referral] {wallet} has no open level {level} ({reason}), paying admin")
        return Fallback(admin, reason)

    def resolve_ref_level_state(self, resolved_wallet: Pubkey, admin: Pubkey, level: int,
                                snapshot: Dict[Pubkey, Optional[bytes]] = None) -> RefChoice:
        """LevelState matching the resolved wallet; admin's LevelState as placeholder."""
        admin_ls = self.deriver.level_state_for_wallet(admin, level)
        if resolved_wallet == admin:
            return Resolved(admin_ls)
        ls = self.deriver.level_state_for_wallet(resolved_wallet, level)
        if snapshot is None:
            snapshot = self._snapshot([resolved_wallet], admin, level)
        if snapshot.get(ls) is not None:
            return Resolved(ls)
        return Fallback(admin_ls, LEVEL_STATE_MISSING)

    def resolve(self, owner: Optional[PlayerAccount], admin: Pubkey, level: int) -> ReferralState:
        if owner is None:
            uplines = (admin, admin, admin)
            raw_choices = [Fallback(admin, OWNER_UNREADABLE)] * 3
        else:
            uplines = tuple(normalize_upline(u, admin) for u in owner.uplines)
            raw_choices = [
                Fallback(admin, NO_REFERRER) if raw == ZERO_PUBKEY else None
                for raw in owner.uplines
            ]

        snapshot = self._snapshot(uplines, admin, level)
        wallets = []
        for upline, preset in zip(uplines, raw_choices):
            wallets.append(preset if preset is not None else self.resolve_ref_wallet(upline, admin, level, snapshot))

        admin_ls = self.deriver.level_state_for_wallet(admin, level)
        level_states = []
        for choice in wallets:
            if isinstance(choice, Fallback):
                level_states.append(Fallback(admin_ls, choice.reason))
            else:
                level_states.append(self.resolve_ref_level_state(choice.address, admin, level, snapshot))

        state = ReferralState(uplines, tuple(wallets), tuple(level_states))
        if state.fallbacks:
            logger.info(f"[Referral] Level {level}: {state.fallbacks}/3 referral slots pay admin")
        return state
