#!/usr/bin/env python3
"""
Account layouts for the matrix program.

Every account starts with the 8-byte Anchor discriminator; offsets below
include it. Integers are little-endian, Option<Pubkey> is a 1-byte tag
followed by 32 bytes when the tag is 1.

Decoders raise DecodeError on short buffers and never return partially
filled objects. `decode_or_none` turns that into a logged None so callers
can treat a malformed account exactly like a missing one.
"""

import logging
import struct
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple, TypeVar

from solders.pubkey import Pubkey

from .constants import PUBKEY_LEN, ANCHOR_DISCRIMINATOR_LEN, QUEUE_PAGE_CAPACITY
from .errors import DecodeError

logger = logging.getLogger("matrix.layouts")
logger.setLevel(logging.INFO)

T = TypeVar("T")

# ── Fixed offset tables ────────────────────────────────────────────────────

CONFIG_OFFSETS = {
    "admin": 8,                 # Pubkey
    "treasury": 40,             # Pubkey
    "perc_admin": 72,           # u8
    "perc_ref1": 73,            # u8
    "perc_ref2": 74,            # u8
    "perc_ref3": 75,            # u8
    "perc_treasury": 76,        # u8
    "base_price_lamports": 77,  # u64
    "price_ratio": 85,          # u8
    "min_entry_delay": 86,      # u32
    "auto_recycle": 90,         # bool
    "slots_to_recycle": 91,     # u8
    "max_levels": 92,           # u8
    "bump": 93,                 # u8
    "version": 94,              # u8
    "version_minor": 95,        # u8
}
CONFIG_MIN_LEN = 8 + 89

PLAYER_OFFSETS = {
    "authority": 8,       # Pubkey
    "bump": 40,           # u8
    "created_at": 41,     # i64
    "games_played": 49,   # u64
    "upline1": 57,        # Pubkey (zero = none)
    "upline2": 89,
    "upline3": 121,
}
PLAYER_MIN_LEN = 153

LEVEL_STATE_OFFSETS = {
    "player": 8,          # Pubkey
    "authority": 40,      # Pubkey
    "level": 72,          # u8
    "bump": 73,           # u8
    "activated_at": 74,   # i64, 0 = never
    "cycles": 82,         # u64
    "slots_filled": 90,   # u64
    "head_page": 98,      # Option<Pubkey>, may be absent on old accounts
}
LEVEL_STATE_MIN_LEN = 98

GLOBAL_STATS_OFFSETS = {
    "total_players": 8,   # u64
    "last_player": 16,    # Pubkey
    "bump": 48,           # u8
}
GLOBAL_STATS_MIN_LEN = 49

# LevelPool and QueuePage carry Option/Vec fields, so everything after the
# first optional is read sequentially.
LEVEL_POOL_HEAD_OFFSET = 42
QUEUE_PAGE_NEXT_OFFSET = 45


# ── Byte reader ────────────────────────────────────────────────────────────

class _Cursor:
    """Sequential little-endian reader over an account buffer."""

    def __init__(self, kind: str, data: bytes, offset: int = 0):
        self.kind = kind
        self.data = data
        self.offset = offset

    def _need(self, n: int):
        if self.offset + n > len(self.data):
            raise DecodeError(self.kind, self.offset + n, len(self.data))

    def u8(self) -> int:
        self._need(1)
        value = self.data[self.offset]
        self.offset += 1
        return value

    def unpack(self, fmt: str) -> int:
        size = struct.calcsize(fmt)
        self._need(size)
        value = struct.unpack_from(fmt, self.data, self.offset)[0]
        self.offset += size
        return value

    def pubkey(self) -> Pubkey:
        self._need(PUBKEY_LEN)
        value = Pubkey.from_bytes(self.data[self.offset:self.offset + PUBKEY_LEN])
        self.offset += PUBKEY_LEN
        return value

    def option_pubkey(self) -> Optional[Pubkey]:
        value, self.offset = read_option_pubkey(self.data, self.offset, self.kind)
        return value


def _check_len(kind: str, data: bytes, needed: int):
    if data is None or len(data) < needed:
        raise DecodeError(kind, needed, 0 if data is None else len(data))


def _pubkey_at(data: bytes, offset: int) -> Pubkey:
    return Pubkey.from_bytes(data[offset:offset + PUBKEY_LEN])


# ── Option<Pubkey> ─────────────────────────────────────────────────────────

def encode_option_pubkey(value: Optional[Pubkey]) -> bytes:
    """Borsh Option<Pubkey>: b'\\x00' or b'\\x01' + 32 bytes."""
    if value is None:
        return b"\x00"
    return b"\x01" + bytes(value)


def read_option_pubkey(data: bytes, offset: int, kind: str = "Option<Pubkey>") -> Tuple[Optional[Pubkey], int]:
    """Returns (value, next_offset)."""
    if offset + 1 > len(data):
        raise DecodeError(kind, offset + 1, len(data))
    tag = data[offset]
    if tag == 0:
        return None, offset + 1
    if tag != 1:
        raise DecodeError(f"{kind} (option tag {tag})", offset + 1, len(data))
    end = offset + 1 + PUBKEY_LEN
    if end > len(data):
        raise DecodeError(kind, end, len(data))
    return Pubkey.from_bytes(data[offset + 1:end]), end


# ── Account types ──────────────────────────────────────────────────────────

@dataclass
class ConfigAccount:
    """ConfigV3 singleton."""
    admin: Pubkey
    treasury: Pubkey
    perc_admin: int
    perc_ref1: int
    perc_ref2: int
    perc_ref3: int
    perc_treasury: int
    base_price_lamports: int
    price_ratio: int
    min_entry_delay: int
    auto_recycle: bool
    slots_to_recycle: int
    max_levels: int
    bump: int
    version: int
    version_minor: int


@dataclass
class GlobalStatsAccount:
    total_players: int
    last_player: Pubkey
    bump: int


@dataclass
class PlayerAccount:
    authority: Pubkey
    bump: int
    created_at: int
    games_played: int
    upline1: Pubkey
    upline2: Pubkey
    upline3: Pubkey

    @property
    def uplines(self) -> Tuple[Pubkey, Pubkey, Pubkey]:
        return (self.upline1, self.upline2, self.upline3)


@dataclass
class LevelStateAccount:
    player: Pubkey
    authority: Pubkey
    level: int
    bump: int
    activated_at: int
    cycles: int
    slots_filled: int
    head_page: Optional[Pubkey] = None
    tail_page: Optional[Pubkey] = None

    @property
    def is_active(self) -> bool:
        return self.activated_at > 0


@dataclass
class LevelPoolAccount:
    config: Pubkey
    level: int
    bump: int
    head_page: Optional[Pubkey]
    tail_page: Optional[Pubkey]
    total_enqueued: int
    total_dequeued: int

    @property
    def has_queue(self) -> bool:
        return self.head_page is not None and self.tail_page is not None


@dataclass
class QueuePageAccount:
    bump: int
    level_pool: Pubkey
    page_index: int
    next_page: Optional[Pubkey]
    players: List[Pubkey] = field(default_factory=list)

    @property
    def is_full(self) -> bool:
        return len(self.players) >= QUEUE_PAGE_CAPACITY


# ── Decoders ───────────────────────────────────────────────────────────────

def decode_config(data: bytes) -> ConfigAccount:
    _check_len("Config", data, CONFIG_MIN_LEN)
    o = CONFIG_OFFSETS
    return ConfigAccount(
        admin=_pubkey_at(data, o["admin"]),
        treasury=_pubkey_at(data, o["treasury"]),
        perc_admin=data[o["perc_admin"]],
        perc_ref1=data[o["perc_ref1"]],
        perc_ref2=data[o["perc_ref2"]],
        perc_ref3=data[o["perc_ref3"]],
        perc_treasury=data[o["perc_treasury"]],
        base_price_lamports=struct.unpack_from('<Q', data, o["base_price_lamports"])[0],
        price_ratio=data[o["price_ratio"]],
        min_entry_delay=struct.unpack_from('<I', data, o["min_entry_delay"])[0],
        auto_recycle=bool(data[o["auto_recycle"]]),
        slots_to_recycle=data[o["slots_to_recycle"]],
        max_levels=data[o["max_levels"]],
        bump=data[o["bump"]],
        version=data[o["version"]],
        version_minor=data[o["version_minor"]],
    )


def decode_global_stats(data: bytes) -> GlobalStatsAccount:
    _check_len("GlobalStats", data, GLOBAL_STATS_MIN_LEN)
    o = GLOBAL_STATS_OFFSETS
    return GlobalStatsAccount(
        total_players=struct.unpack_from('<Q', data, o["total_players"])[0],
        last_player=_pubkey_at(data, o["last_player"]),
        bump=data[o["bump"]],
    )


def decode_player(data: bytes) -> PlayerAccount:
    _check_len("Player", data, PLAYER_MIN_LEN)
    o = PLAYER_OFFSETS
    return PlayerAccount(
        authority=_pubkey_at(data, o["authority"]),
        bump=data[o["bump"]],
        created_at=struct.unpack_from('<q', data, o["created_at"])[0],
        games_played=struct.unpack_from('<Q', data, o["games_played"])[0],
        upline1=_pubkey_at(data, o["upline1"]),
        upline2=_pubkey_at(data, o["upline2"]),
        upline3=_pubkey_at(data, o["upline3"]),
    )


def decode_level_state(data: bytes) -> LevelStateAccount:
    _check_len("LevelState", data, LEVEL_STATE_MIN_LEN)
    o = LEVEL_STATE_OFFSETS
    head_page = tail_page = None
    # Trailing optionals are best-effort: a bad tag or short tail reads as None
    if len(data) > o["head_page"]:
        cur = _Cursor("LevelState", data, o["head_page"])
        try:
            head_page = cur.option_pubkey()
            if len(data) > cur.offset:
                tail_page = cur.option_pubkey()
        except DecodeError as e:
            logger.debug(f"[Decode] LevelState page pointers ignored: {e}")
    return LevelStateAccount(
        player=_pubkey_at(data, o["player"]),
        authority=_pubkey_at(data, o["authority"]),
        level=data[o["level"]],
        bump=data[o["bump"]],
        activated_at=struct.unpack_from('<q', data, o["activated_at"])[0],
        cycles=struct.unpack_from('<Q', data, o["cycles"])[0],
        slots_filled=struct.unpack_from('<Q', data, o["slots_filled"])[0],
        head_page=head_page,
        tail_page=tail_page,
    )


def decode_level_pool(data: bytes) -> LevelPoolAccount:
    _check_len("LevelPool", data, LEVEL_POOL_HEAD_OFFSET + 1)
    cur = _Cursor("LevelPool", data, ANCHOR_DISCRIMINATOR_LEN)
    config = cur.pubkey()
    level = cur.u8()
    bump = cur.u8()
    head_page = cur.option_pubkey()
    tail_page = cur.option_pubkey()
    total_enqueued = cur.unpack('<Q')
    total_dequeued = cur.unpack('<Q')
    return LevelPoolAccount(
        config=config,
        level=level,
        bump=bump,
        head_page=head_page,
        tail_page=tail_page,
        total_enqueued=total_enqueued,
        total_dequeued=total_dequeued,
    )


def decode_queue_page(data: bytes) -> QueuePageAccount:
    _check_len("QueuePage", data, QUEUE_PAGE_NEXT_OFFSET + 1)
    cur = _Cursor("QueuePage", data, ANCHOR_DISCRIMINATOR_LEN)
    bump = cur.u8()
    level_pool = cur.pubkey()
    page_index = cur.unpack('<I')
    next_page = cur.option_pubkey()
    count = cur.unpack('<I')
    if count > QUEUE_PAGE_CAPACITY:
        raise DecodeError(f"QueuePage (players len {count} > {QUEUE_PAGE_CAPACITY})", cur.offset, len(data))
    players = [cur.pubkey() for _ in range(count)]
    return QueuePageAccount(
        bump=bump,
        level_pool=level_pool,
        page_index=page_index,
        next_page=next_page,
        players=players,
    )


def decode_or_none(decoder: Callable[[bytes], T], data: Optional[bytes], address: Pubkey = None) -> Optional[T]:
    """Decode, mapping a missing account or a DecodeError to None."""
    if data is None:
        return None
    try:
        return decoder(data)
    except DecodeError as e:
        logger.warning(f"[Layouts] {decoder.__name__} failed for {address}: {e}")
        return None

