"""Synthetic account buffers and an in-memory account reader for tests."""

import struct
from typing import Dict, List, Optional, Sequence

from solders.pubkey import Pubkey

from services.matrix.layouts import encode_option_pubkey

DISC = bytes(8)


def pk(n: int) -> Pubkey:
    """Deterministic test pubkey."""
    return Pubkey.from_bytes(bytes([n]) * 32)


def config_bytes(admin: Pubkey, treasury: Pubkey, version: int = 3,
                 base_price: int = 50_000_000, min_entry_delay: int = 0) -> bytes:
    body = (
        bytes(admin) + bytes(treasury)
        + bytes([0, 13, 8, 5, 14])            # perc admin/ref1/ref2/ref3/treasury
        + struct.pack('<Q', base_price)
        + bytes([2])                           # price_ratio
        + struct.pack('<I', min_entry_delay)
        + bytes([1, 3, 16, 254, version, 10])  # auto_recycle .. version_minor
    )
    return DISC + body + b"\x00"               # allocated size is one byte larger


def player_bytes(authority: Pubkey, uplines: Sequence[Pubkey] = (), created_at: int = 1_700_000_000,
                 games_played: int = 0) -> bytes:
    ups = list(uplines) + [Pubkey.default()] * (3 - len(uplines))
    return (
        DISC + bytes(authority) + bytes([255])
        + struct.pack('<q', created_at) + struct.pack('<Q', games_played)
        + b"".join(bytes(u) for u in ups)
    )


def level_state_bytes(player: Pubkey, authority: Pubkey, level: int, activated_at: int = 1_700_000_000,
                      cycles: int = 0, slots_filled: int = 0,
                      head_page: Optional[Pubkey] = None, tail_page: Optional[Pubkey] = None,
                      with_pages: bool = True) -> bytes:
    data = (
        DISC + bytes(player) + bytes(authority) + bytes([level, 254])
        + struct.pack('<q', activated_at) + struct.pack('<Q', cycles) + struct.pack('<Q', slots_filled)
    )
    if with_pages:
        data += encode_option_pubkey(head_page) + encode_option_pubkey(tail_page)
    return data


def level_pool_bytes(config: Pubkey, level: int, head: Optional[Pubkey], tail: Optional[Pubkey],
                     enqueued: int = 0, dequeued: int = 0) -> bytes:
    data = (
        DISC + bytes(config) + bytes([level, 253])
        + encode_option_pubkey(head) + encode_option_pubkey(tail)
        + struct.pack('<QQ', enqueued, dequeued)
    )
    # Fixed on-chain allocation
    return data.ljust(8 + 116, b"\x00")


def queue_page_bytes(level_pool: Pubkey, page_index: int, players: Sequence[Pubkey],
                     next_page: Optional[Pubkey] = None) -> bytes:
    return (
        DISC + bytes([252]) + bytes(level_pool) + struct.pack('<I', page_index)
        + encode_option_pubkey(next_page)
        + struct.pack('<I', len(players)) + b"".join(bytes(p) for p in players)
    )


def global_stats_bytes(total_players: int, last_player: Pubkey) -> bytes:
    return DISC + struct.pack('<Q', total_players) + bytes(last_player) + bytes([251])


class FakeAccountReader:
    """Dict-backed reader. `errors` maps addresses to the exception a read raises."""

    def __init__(self, accounts: Dict[Pubkey, bytes] = None):
        self.accounts: Dict[Pubkey, bytes] = dict(accounts or {})
        self.errors: Dict[Pubkey, Exception] = {}
        self.batch_error: Optional[Exception] = None
        self.single_calls: List[Pubkey] = []
        self.batch_calls: List[List[Pubkey]] = []

    def get_account_info(self, address: Pubkey) -> Optional[bytes]:
        self.single_calls.append(address)
        if address in self.errors:
            raise self.errors[address]
        return self.accounts.get(address)

    def get_multiple_accounts_info(self, addresses: Sequence[Pubkey]) -> List[Optional[bytes]]:
        self.batch_calls.append(list(addresses))
        if self.batch_error is not None:
            raise self.batch_error
        out = []
        for address in addresses:
            if address in self.errors:
                raise self.errors[address]
            out.append(self.accounts.get(address))
        return out
