#!/usr/bin/env python3
"""
Queue resolution for one level: which pages the activation touches and who
owns the current cycle.

Pipeline (each step is a pure function over the reader):
    PoolState      LevelPool → head/tail page addresses, first-activation flag
    TailPageState  tail page → rollover status and the `new_page` candidate
    OwnerState     head page → owner Player PDA + owner wallet

Read failures never abort resolution. Each step degrades to a conservative
default and logs a warning; the program re-validates everything on-chain.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from solders.pubkey import Pubkey

from .layouts import (
    LevelPoolAccount, PlayerAccount, QueuePageAccount,
    decode_level_pool, decode_player, decode_queue_page,
)
from .pda import PDADeriver
from .reader import AccountReader, read_decoded

logger = logging.getLogger("matrix.queue")
logger.setLevel(logging.INFO)


class QueueStatus(Enum):
    NO_POOL_YET = "no_pool_yet"
    TAIL_HAS_ROOM = "tail_has_room"
    TAIL_FULL_NEXT_KNOWN = "tail_full_next_known"
    TAIL_FULL_NEXT_UNKNOWN = "tail_full_next_unknown"
    TAIL_UNKNOWN = "tail_unknown"


@dataclass(frozen=True)
class PoolState:
    level: int
    level_pool: Pubkey
    head_page: Pubkey
    tail_page: Pubkey
    is_first_activation: bool
    pool: Optional[LevelPoolAccount] = None


@dataclass(frozen=True)
class TailPageState:
    status: QueueStatus
    new_page: Pubkey
    tail: Optional[QueuePageAccount] = None

    @property
    def tail_len(self) -> Optional[int]:
        return len(self.tail.players) if self.tail is not None else None


@dataclass(frozen=True)
class OwnerState:
    owner_player: Pubkey
    owner_wallet: Pubkey
    is_self: bool
    owner_account: Optional[PlayerAccount] = None


@dataclass(frozen=True)
class QueueResolution:
    pool: PoolState
    tail: TailPageState
    owner: OwnerState

    @property
    def head_page(self) -> Pubkey:
        return self.pool.head_page

    @property
    def tail_page(self) -> Pubkey:
        return self.pool.tail_page

    @property
    def new_page(self) -> Pubkey:
        return self.tail.new_page

    @property
    def status(self) -> QueueStatus:
        return self.tail.status


# ── Steps ──────────────────────────────────────────────────────────────────

def resolve_pool_state(reader: AccountReader, deriver: PDADeriver, config: Pubkey, level: int) -> PoolState:
    """Missing, unreadable or half-initialised pool all mean first activation."""
    level_pool, _ = deriver.level_pool(config, level)
    page0, _ = deriver.queue_page(level_pool, 0)

    pool = read_decoded(reader, level_pool, decode_level_pool, "LevelPool")
    if pool is None or not pool.has_queue:
        logger.info(f"[Queue] Level {level}: first activation (pool {'empty' if pool else 'missing'}), head=tail={page0}")
        return PoolState(level, level_pool, page0, page0, True, pool)

    return PoolState(level, level_pool, pool.head_page, pool.tail_page, False, pool)


def resolve_tail_state(reader: AccountReader, deriver: PDADeriver, pool: PoolState) -> TailPageState:
    if pool.is_first_activation:
        return TailPageState(QueueStatus.NO_POOL_YET, pool.head_page)

    tail = read_decoded(reader, pool.tail_page, decode_queue_page, "tail QueuePage")
    if tail is None:
        # Last-known pointer; the program picks the real page
        logger.warning(f"[Queue] Level {pool.level}: tail page {pool.tail_page} unreadable, new_page falls back to head")
        return TailPageState(QueueStatus.TAIL_UNKNOWN, pool.head_page)

    following, _ = deriver.queue_page(pool.level_pool, tail.page_index + 1)
    if not tail.is_full:
        status, new_page = QueueStatus.TAIL_HAS_ROOM, following
    elif tail.next_page is not None:
        status, new_page = QueueStatus.TAIL_FULL_NEXT_KNOWN, tail.next_page
    else:
        status, new_page = QueueStatus.TAIL_FULL_NEXT_UNKNOWN, following

    logger.debug(
        f"[Queue] Level {pool.level}: tail page_index={tail.page_index} "
        f"players={len(tail.players)} status={status.value} new_page={new_page}"
    )
    return TailPageState(status, new_page, tail)


def resolve_owner_state(reader: AccountReader, pool: PoolState, tail: TailPageState,
                        activator: Pubkey, activator_player: Pubkey) -> OwnerState:
    """Owner = first entrant of the head page; the activator on a first activation."""
    owner_player = activator_player
    owner_wallet = activator

    if not pool.is_first_activation:
        if tail.tail is not None and pool.head_page == pool.tail_page:
            head = tail.tail
        else:
            head = read_decoded(reader, pool.head_page, decode_queue_page, "head QueuePage")
        if head is None or not head.players:
            logger.warning(f"[Queue] Level {pool.level}: head page {pool.head_page} empty or unreadable, owner defaults to activator")
        else:
            owner_player = head.players[0]

    owner_account = read_decoded(reader, owner_player, decode_player, "owner Player")
    if owner_account is not None:
        owner_wallet = owner_account.authority
    elif owner_player != activator_player:
        logger.warning(f"[Queue] Level {pool.level}: owner Player {owner_player} unreadable, owner wallet defaults to activator")

    return OwnerState(
        owner_player=owner_player,
        owner_wallet=owner_wallet,
        is_self=owner_player == activator_player,
        owner_account=owner_account,
    )


class QueueResolver:
    """Runs the three queue steps for one (activator, level)."""

    def __init__(self, reader: AccountReader, deriver: PDADeriver):
        self.reader = reader
        self.deriver = deriver

    def resolve(self, config: Pubkey, level: int, activator: Pubkey) -> QueueResolution:
        activator_player, _ = self.deriver.player(activator)
        pool = resolve_pool_state(self.reader, self.deriver, config, level)
        tail = resolve_tail_state(self.reader, self.deriver, pool)
        owner = resolve_owner_state(self.reader, pool, tail, activator, activator_player)
        logger.info(
            f"[Queue] Level {level}: status={tail.status.value} head={pool.head_page} "
            f"tail={pool.tail_page} new={tail.new_page} owner={owner.owner_wallet}"
        )
        return QueueResolution(pool, tail, owner)
