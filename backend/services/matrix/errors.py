#!/usr/bin/env python3
"""Error taxonomy for matrix resolution."""

from dataclasses import dataclass


@dataclass(eq=False)
class MatrixError(Exception):
    """Base error with a stable code."""
    code: str
    message: str

    def __str__(self):
        return f"[{self.code}] {self.message}"


class InvalidLevel(MatrixError):
    def __init__(self, level):
        super().__init__("INVALID_LEVEL", f"Level must be an integer in [1, 16], got {level!r}")
        self.level = level


class InvalidPageIndex(MatrixError):
    def __init__(self, page_index):
        super().__init__("INVALID_PAGE_INDEX", f"Page index must fit in u32, got {page_index!r}")
        self.page_index = page_index


class InvalidNonce(MatrixError):
    def __init__(self, nonce):
        super().__init__("INVALID_NONCE", f"Nonce must fit in u64, got {nonce!r}")
        self.nonce = nonce


class DecodeError(MatrixError):
    """Buffer too short (or malformed) for the account kind."""

    def __init__(self, kind: str, needed: int, got: int):
        super().__init__("DECODE_ERROR", f"{kind}: need {needed} bytes, got {got}")
        self.kind = kind
        self.needed = needed
        self.got = got


class TerminalConfigMissing(MatrixError):
    """Config account absent or unreadable; nothing can be resolved."""

    def __init__(self, detail: str = "Config account not found"):
        super().__init__("CONFIG_MISSING", detail)


# Raised by account readers. Resolution degrades on these instead of aborting.

class RPCError(Exception):
    """RPC error with code."""
    def __init__(self, message: str, code: int = None):
        super().__init__(message)
        self.code = code


class RateLimitedError(RPCError):
    """Endpoint answered with a rate-limit signal (HTTP 429 or equivalent)."""
    def __init__(self, message: str = "Too Many Requests", code: int = 429):
        super().__init__(message, code)


__all__ = [
    "MatrixError",
    "InvalidLevel",
    "InvalidPageIndex",
    "InvalidNonce",
    "DecodeError",
    "TerminalConfigMissing",
    "RPCError",
    "RateLimitedError",
]
