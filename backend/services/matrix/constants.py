#!/usr/bin/env python3
"""
Matrix program constants.

Seeds, discriminators and the level price table must match the deployed
program byte-for-byte.
"""

from solders.pubkey import Pubkey

# ── PDA Seeds ──────────────────────────────────────────────────────────────
SEED_PLAYER = b"player"
SEED_CONFIG = b"config_v3_new"
SEED_GLOBAL_STATS = b"global_stats_v1"
SEED_LEVEL_STATE = b"lvl"
SEED_LEVEL_POOL = b"level_pool_v1"
SEED_QUEUE_PAGE = b"queue_page_v1"
SEED_TX_GUARD = b"tx"
SEED_TX_REGISTER = b"register"

MAX_SEED_LEN = 32

# ── Instruction discriminators (Anchor, 8 bytes) ───────────────────────────
ACTIVATE_LEVEL_DISCRIMINATOR = bytes([0, 26, 75, 130, 110, 192, 143, 66])
REGISTER_PLAYER_DISCRIMINATOR = bytes([242, 146, 194, 234, 234, 145, 228, 42])

ANCHOR_DISCRIMINATOR_LEN = 8
PUBKEY_LEN = 32

# ── Game parameters ────────────────────────────────────────────────────────
MAX_LEVELS = 16
QUEUE_PAGE_CAPACITY = 64
SLOTS_PER_CYCLE = 3

# Compute-unit limit placed ahead of activate_level
DEFAULT_COMPUTE_UNITS = 400_000

LAMPORTS_PER_SOL = 1_000_000_000

# Level 1..16 activation price in lamports
LEVEL_PRICES_LAMPORTS = (
    50_000_000,      # 0.05 SOL
    180_000_000,     # 0.18
    360_000_000,     # 0.36
    680_000_000,     # 0.68
    1_100_000_000,   # 1.1
    1_550_000_000,   # 1.55
    2_100_000_000,   # 2.1
    2_650_000_000,   # 2.65
    3_250_000_000,   # 3.25
    3_900_000_000,   # 3.9
    4_650_000_000,   # 4.65
    5_450_000_000,   # 5.45
    6_400_000_000,   # 6.4
    7_350_000_000,   # 7.35
    8_000_000_000,   # 8.0
    8_700_000_000,   # 8.7
)

# Payout split per activation (percent)
PAYOUT_PERCENTAGES = {
    "owner": 60,
    "ref1": 13,
    "ref2": 8,
    "ref3": 5,
    "treasury": 14,
}

ZERO_PUBKEY = Pubkey.default()

U32_MAX = 2**32 - 1
U64_MAX = 2**64 - 1

CONFIG_VERSION = 3
