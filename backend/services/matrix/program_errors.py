#!/usr/bin/env python3
"""
Program error decoding.

Maps the program's custom error codes to names and messages, and digs the
code out of the shapes an RPC failure can take: an InstructionError payload,
"custom program error: 0x…" logs, or Anchor's "Error Number: N" line.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple

PROGRAM_ERRORS: Dict[int, Tuple[str, str]] = {
    6000: ("InvalidDistribution", "Invalid distribution sum (must be 100)"),
    6001: ("Unauthorized", "Unauthorized"),
    6002: ("InvalidLevel", "Invalid level"),
    6003: ("InvalidPrice", "Invalid price"),
    6004: ("AlreadyActivated", "Level already activated"),
    6005: ("SlotsAlreadyFull", "Slots are already full"),
    6006: ("SlotsNotEnoughToRecycle", "Not enough slots filled to recycle"),
    6007: ("QueueIsEmpty", "Queue is empty"),
    6008: ("LevelNotActivated", "Level not activated"),
    6009: ("Overflow", "Overflow"),
    6010: ("QueuePageKeyMismatch", "QueuePage key mismatch"),
    6011: ("AccountCastError", "Account cast failed"),
    6012: ("QueuePageFull", "Queue page is full"),
    6013: ("AlreadyInQueue", "Player already in queue"),
    6014: ("QueueNextPageAlreadyExists", "Next queue page already exists (rollover conflict)"),
    6015: ("MinEntryDelay", "Minimum entry delay not satisfied"),
    6016: ("RecipientMustBeSystemWallet", "Recipient must be a system wallet (no data)"),
    6017: ("RolloverNeedsSecondNewPage", "Rollover requires more than one new page (not supported in one tx)"),
}

ALREADY_ACTIVATED = 6004

_HEX_CODE = re.compile(r"custom program error: 0x([0-9a-fA-F]+)")
_ERROR_NUMBER = re.compile(r"Error Number: (\d+)")


@dataclass(frozen=True)
class ProgramError:
    code: int
    name: str
    message: str


def lookup(code: int) -> Optional[ProgramError]:
    entry = PROGRAM_ERRORS.get(code)
    if entry is None:
        return None
    return ProgramError(code, *entry)


def _from_instruction_error(err: Any) -> Optional[int]:
    """{"InstructionError": [idx, {"Custom": 6004}]}"""
    if isinstance(err, str):
        try:
            err = json.loads(err)
        except ValueError:
            return None
    if not isinstance(err, dict):
        return None
    ix_err = err.get("InstructionError")
    if isinstance(ix_err, (list, tuple)) and len(ix_err) > 1 and isinstance(ix_err[1], dict):
        custom = ix_err[1].get("Custom")
        if isinstance(custom, int):
            return custom
    return None


def _from_text(text: str) -> Optional[int]:
    m = _ERROR_NUMBER.search(text)
    if m:
        return int(m.group(1))
    m = _HEX_CODE.search(text)
    if m:
        return int(m.group(1), 16)
    return None


def parse_program_error(err: Any = None, logs: Iterable[str] = ()) -> Optional[ProgramError]:
    """Known program error from an RPC error object/string and/or transaction logs."""
    candidates = []
    code = _from_instruction_error(err)
    if code is not None:
        candidates.append(code)
    for line in logs or ():
        code = _from_text(str(line))
        if code is not None:
            candidates.append(code)
    if err is not None and not isinstance(err, dict):
        code = _from_text(str(err))
        if code is not None:
            candidates.append(code)
    for code in candidates:
        known = lookup(code)
        if known is not None:
            return known
    return None


def format_activation_error(err: Any, level: int, logs: Iterable[str] = ()) -> str:
    """One-line message for a failed activation."""
    parsed = parse_program_error(err, logs)
    if parsed is not None:
        if parsed.code == ALREADY_ACTIVATED:
            return f"Level {level} is already activated"
        return f"Level {level} activation failed: {parsed.message}"

    text = str(err) if err is not None else ""
    lowered = text.lower()
    if "config" in lowered and ("not found" in lowered or "failed to fetch" in lowered):
        return "Failed to connect to blockchain. Please check your connection and try again."
    if "timeout" in lowered:
        return "Request timeout. Please check your connection and try again."
    if "insufficient funds" in lowered:
        return f"Insufficient SOL balance. Level {level} requires more SOL."
    if "no record of a prior credit" in lowered:
        return "Insufficient SOL balance for transaction fees."
    if "simulation failed" in lowered:
        return "Transaction simulation failed. Please check your balance and try again."
    return f"Level {level} activation failed: {text or 'Unknown error'}"
