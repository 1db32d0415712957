#!/usr/bin/env python3
"""Account reader contract and the error-tolerant read helpers built on it."""

import logging
from typing import Callable, List, Optional, Protocol, Sequence, TypeVar, runtime_checkable

from solders.pubkey import Pubkey

from .errors import RPCError
from .layouts import decode_or_none

logger = logging.getLogger("matrix.reader")
logger.setLevel(logging.INFO)

T = TypeVar("T")

# Failures a read may raise that resolution treats as "not readable right now"
READ_ERRORS = (RPCError, ConnectionError, TimeoutError)


@runtime_checkable
class AccountReader(Protocol):
    """Anything that can hand back raw account bytes (None = account missing)."""
    def get_account_info(self, address: Pubkey) -> Optional[bytes]: ...
    def get_multiple_accounts_info(self, addresses: Sequence[Pubkey]) -> List[Optional[bytes]]: ...


class ReadFailed:
    """Sentinel distinguishing 'read failed' from 'account missing'."""
    def __repr__(self):
        return "READ_FAILED"


READ_FAILED = ReadFailed()


def try_read(reader: AccountReader, address: Pubkey, what: str):
    """Raw bytes, None when missing, or READ_FAILED after logging the error."""
    try:
        return reader.get_account_info(address)
    except READ_ERRORS as e:
        logger.warning(f"[Reader] Failed to read {what} {address}: {e}")
        return READ_FAILED


def read_decoded(reader: AccountReader, address: Pubkey, decoder: Callable[[bytes], T], what: str) -> Optional[T]:
    """Read + decode; missing, unreadable and malformed all come back as None."""
    data = try_read(reader, address, what)
    if data is READ_FAILED:
        return None
    return decode_or_none(decoder, data, address)


def read_many(reader: AccountReader, addresses: Sequence[Pubkey], what: str) -> List[Optional[bytes]]:
    """Batched read; on failure falls back to one read per address."""
    if not addresses:
        return []
    try:
        values = reader.get_multiple_accounts_info(list(addresses))
        if len(values) == len(addresses):
            return list(values)
        logger.warning(f"[Reader] Batch read of {what} returned {len(values)} of {len(addresses)} accounts")
    except READ_ERRORS as e:
        logger.warning(f"[Reader] Batch read of {what} failed, reading one by one: {e}")
    results = []
    for address in addresses:
        data = try_read(reader, address, what)
        results.append(None if data is READ_FAILED else data)
    return results
