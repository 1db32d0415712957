"""
RPC Infrastructure Module
=========================
Minimal JSON-RPC client for the matrix activation client.
Only the read methods the resolver needs: account data (single and batched)
and the latest blockhash for compiling unsigned transactions.

Usage:
    from rpc_infrastructure import SolanaRPC, RPCConfig

    rpc = SolanaRPC(RPCConfig(rpc_url="https://api.devnet.solana.com"))
    data = rpc.get_account_info("address")   # bytes or None
"""

import base64
import logging
import time
from typing import Optional, Dict, List, Any
from dataclasses import dataclass

import requests

import config as cfg
from services.matrix.errors import RPCError, RateLimitedError

logger = logging.getLogger("rpc")
logger.setLevel(logging.INFO)

RATE_LIMIT_MARKERS = ("429", "too many requests", "rate limit")


# =============================================================================
# Rate-limit detection
# =============================================================================

def is_rate_limit_message(message: str) -> bool:
    text = (message or "").lower()
    return any(marker in text for marker in RATE_LIMIT_MARKERS)


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class RPCConfig:
    """RPC client configuration."""
    rpc_url: str = ""
    commitment: str = cfg.RPC_COMMITMENT
    max_retries: int = cfg.RPC_MAX_RETRIES
    retry_delay: float = cfg.RPC_RETRY_DELAY
    timeout: float = cfg.RPC_TIMEOUT

    def __post_init__(self):
        if not self.rpc_url:
            self.rpc_url = cfg.MATRIX_RPC_PRIMARY
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")


# =============================================================================
# RPC Client
# =============================================================================

class SolanaRPC:
    """
    HTTP JSON-RPC client.

    Transport errors are retried `max_retries` times with a linear delay.
    Rate-limit answers are raised immediately as RateLimitedError so the
    caller can back off and fail over.
    """

    def __init__(self, config: RPCConfig = None, session: requests.Session = None):
        self.config = config or RPCConfig()
        self.session = session or requests.Session()
        self._request_id = 0

    def _get_request_id(self) -> int:
        self._request_id += 1
        return self._request_id

    def _make_request(self, method: str, params: List[Any] = None, url: str = None) -> Any:
        """Make a JSON-RPC request with retry logic."""
        target = url or self.config.rpc_url
        payload = {
            "jsonrpc": "2.0",
            "id": self._get_request_id(),
            "method": method,
            "params": params or []
        }

        last_error = None
        for attempt in range(self.config.max_retries):
            try:
                response = self.session.post(
                    target,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                    timeout=self.config.timeout
                )
                if response.status_code == 429:
                    raise RateLimitedError(f"{method}: HTTP 429 Too Many Requests")
                response.raise_for_status()
                result = response.json()

                if "error" in result:
                    message = result["error"].get("message", "Unknown RPC error")
                    code = result["error"].get("code")
                    if code == 429 or is_rate_limit_message(message):
                        raise RateLimitedError(message, code or 429)
                    raise RPCError(message, code)

                return result.get("result")

            except requests.exceptions.RequestException as e:
                last_error = e
                logger.warning(f"[RPC] {method} failed (attempt {attempt + 1}): {e}")
                if attempt < self.config.max_retries - 1:
                    time.sleep(self.config.retry_delay * (attempt + 1))

        raise ConnectionError(f"RPC request failed after {self.config.max_retries} attempts: {last_error}")

    # -------------------------------------------------------------------------
    # Account Methods
    # -------------------------------------------------------------------------

    @staticmethod
    def _decode_account_data(value: Optional[Dict]) -> Optional[bytes]:
        """Pull raw bytes out of a base64-encoded account value."""
        if not value:
            return None
        data = value.get("data")
        if isinstance(data, list) and data:
            return base64.b64decode(data[0])
        if isinstance(data, str):
            return base64.b64decode(data)
        raise RPCError(f"Unexpected account data encoding: {type(data).__name__}")

    def get_account_info(self, pubkey: str, url: str = None) -> Optional[bytes]:
        """Raw account data, or None if the account does not exist."""
        result = self._make_request("getAccountInfo", [
            pubkey,
            {"encoding": "base64", "commitment": self.config.commitment}
        ], url=url)
        return self._decode_account_data((result or {}).get("value"))

    def get_multiple_accounts(self, pubkeys: List[str], url: str = None) -> List[Optional[bytes]]:
        """Raw data for several accounts in one request, None for missing ones."""
        result = self._make_request("getMultipleAccounts", [
            pubkeys,
            {"encoding": "base64", "commitment": self.config.commitment}
        ], url=url)
        values = (result or {}).get("value") or []
        if len(values) != len(pubkeys):
            raise RPCError(f"getMultipleAccounts returned {len(values)} values for {len(pubkeys)} keys")
        return [self._decode_account_data(v) for v in values]

    # -------------------------------------------------------------------------
    # Transaction Methods
    # -------------------------------------------------------------------------

    def get_latest_blockhash(self, url: str = None) -> str:
        """Latest blockhash as a base58 string."""
        result = self._make_request("getLatestBlockhash", [
            {"commitment": self.config.commitment}
        ], url=url)
        return result["value"]["blockhash"]
