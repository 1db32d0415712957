#!/usr/bin/env python3
"""Configuration module for the matrix activation client."""
import os
import logging

from dotenv import load_dotenv
from solders.pubkey import Pubkey

load_dotenv(os.path.join(os.path.dirname(__file__), '.env'))

logger = logging.getLogger("config")
logger.setLevel(logging.INFO)

# Base paths
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# CLUSTER / PROGRAM
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# localnet shares the devnet deployment; anything unrecognised does too.
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

FALLBACK_PROGRAM_IDS = {
    "mainnet-beta": "Bk5wQdDbfe2UGrrjBsDUJFPjH9mqB5JHZymrp4u95458",
    "devnet": "4dWfqrMh8irJFT4pSDbNyQzH3MRzVakcJYYNNyLZZ6V6",
    "testnet": "4dWfqrMh8irJFT4pSDbNyQzH3MRzVakcJYYNNyLZZ6V6",
}


def normalize_cluster(value: str) -> str:
    """Map a cluster name from the environment onto a known deployment."""
    cluster = (value or "").strip().lower()
    if cluster in ("mainnet", "mainnet-beta"):
        return "mainnet-beta"
    if cluster == "testnet":
        return "testnet"
    return "devnet"


def resolve_program_id(cluster: str, override: str = "") -> Pubkey:
    """Program ID from an explicit override, falling back to the cluster default."""
    if override:
        try:
            return Pubkey.from_string(override.strip())
        except ValueError as e:
            logger.error(f"[Config] Invalid MATRIX_PROGRAM_ID '{override}': {e}. Using {cluster} default")
    return Pubkey.from_string(FALLBACK_PROGRAM_IDS[normalize_cluster(cluster)])


MATRIX_CLUSTER = normalize_cluster(os.getenv("MATRIX_CLUSTER", "devnet"))
PROGRAM_ID = resolve_program_id(MATRIX_CLUSTER, os.getenv("MATRIX_PROGRAM_ID", ""))

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# RPC PROVIDER CONFIGURATION (Primary + Fallback)
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# PRIMARY: Helius (when a key is set), else the public cluster endpoint
# FALLBACK: public cluster endpoint
# Failover handled by EndpointManager (backend/endpoint_manager.py)
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

HELIUS_API_KEY = os.getenv("HELIUS_API_KEY", "")

PUBLIC_RPC_URLS = {
    "mainnet-beta": "https://api.mainnet-beta.solana.com",
    "devnet": "https://api.devnet.solana.com",
    "testnet": "https://api.testnet.solana.com",
}

_HELIUS_BASE = "mainnet" if MATRIX_CLUSTER == "mainnet-beta" else "devnet"
_HELIUS_RPC = f"https://{_HELIUS_BASE}.helius-rpc.com/?api-key={HELIUS_API_KEY}" if HELIUS_API_KEY else ""

MATRIX_RPC_PRIMARY = os.getenv("MATRIX_RPC_PRIMARY", "") or _HELIUS_RPC or PUBLIC_RPC_URLS[MATRIX_CLUSTER]
MATRIX_RPC_FALLBACK = os.getenv("MATRIX_RPC_FALLBACK", "") or PUBLIC_RPC_URLS[MATRIX_CLUSTER]
RPC_COMMITMENT = os.getenv("MATRIX_RPC_COMMITMENT", "confirmed")
RPC_TIMEOUT = float(os.getenv("MATRIX_RPC_TIMEOUT", "30"))
RPC_MAX_RETRIES = int(os.getenv("MATRIX_RPC_MAX_RETRIES", "3"))
RPC_RETRY_DELAY = float(os.getenv("MATRIX_RPC_RETRY_DELAY", "1.0"))

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# ACCOUNT CACHE / THROTTLE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

CACHE_MAX_ENTRIES = int(os.getenv("MATRIX_CACHE_MAX_ENTRIES", "500"))
CACHE_TTL_ACCOUNT = float(os.getenv("MATRIX_CACHE_TTL_ACCOUNT", "60"))       # seconds
CACHE_TTL_CONFIG = float(os.getenv("MATRIX_CACHE_TTL_CONFIG", "120"))        # seconds
CACHE_TTL_LEVEL_STATE = float(os.getenv("MATRIX_CACHE_TTL_LEVEL_STATE", "15"))  # seconds

THROTTLE_MIN_DELAY = float(os.getenv("MATRIX_THROTTLE_MIN_DELAY", "0.1"))    # seconds between RPC calls
BACKOFF_BASE = float(os.getenv("MATRIX_BACKOFF_BASE", "3.0"))                # first 429 wait
BACKOFF_MAX = float(os.getenv("MATRIX_BACKOFF_MAX", "30.0"))                 # cap, also failover cooldown
FAILOVER_THRESHOLD = int(os.getenv("MATRIX_FAILOVER_THRESHOLD", "3"))        # consecutive errors before switching
MULTIPLE_ACCOUNTS_CHUNK = 100                                               # getMultipleAccounts hard limit

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# TRANSACTION
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

COMPUTE_UNITS_ACTIVATE = int(os.getenv("MATRIX_COMPUTE_UNITS_ACTIVATE", "400000"))
