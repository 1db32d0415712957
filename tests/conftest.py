"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

os.environ.setdefault("MATRIX_CLUSTER", "devnet")
os.environ.setdefault("MATRIX_THROTTLE_MIN_DELAY", "0")

# Backend modules are imported top-level, as the backend itself does
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "backend"))
sys.path.insert(0, str(Path(__file__).parent))

import pytest
from solders.pubkey import Pubkey

from builders import (
    FakeAccountReader, pk, config_bytes, player_bytes, level_state_bytes,
)
from services.matrix.pda import PDADeriver

PROGRAM_ID = Pubkey.from_string("4dWfqrMh8irJFT4pSDbNyQzH3MRzVakcJYYNNyLZZ6V6")


@pytest.fixture
def program_id():
    return PROGRAM_ID


@pytest.fixture
def deriver():
    return PDADeriver(PROGRAM_ID)


@pytest.fixture
def admin():
    return pk(1)


@pytest.fixture
def treasury():
    return pk(2)


@pytest.fixture
def activator():
    return pk(10)


@pytest.fixture
def reader():
    return FakeAccountReader()


class World:
    """Small on-chain snapshot builder around a FakeAccountReader."""

    def __init__(self, reader: FakeAccountReader, deriver: PDADeriver, admin: Pubkey, treasury: Pubkey):
        self.reader = reader
        self.deriver = deriver
        self.admin = admin
        self.treasury = treasury
        self.config_pda = deriver.config()[0]
        reader.accounts[self.config_pda] = config_bytes(admin, treasury)

    def add_player(self, wallet: Pubkey, uplines=()) -> Pubkey:
        player = self.deriver.player(wallet)[0]
        self.reader.accounts[player] = player_bytes(wallet, uplines)
        return player

    def add_level_state(self, wallet: Pubkey, level: int, activated_at: int = 1_700_000_000, **kw) -> Pubkey:
        player = self.deriver.player(wallet)[0]
        ls = self.deriver.level_state(player, level)[0]
        self.reader.accounts[ls] = level_state_bytes(player, wallet, level, activated_at=activated_at, **kw)
        return ls

    def level_pool(self, level: int) -> Pubkey:
        return self.deriver.level_pool(self.config_pda, level)[0]

    def page(self, level: int, index: int) -> Pubkey:
        return self.deriver.queue_page(self.level_pool(level), index)[0]


@pytest.fixture
def world(reader, deriver, admin, treasury):
    return World(reader, deriver, admin, treasury)
