#!/usr/bin/env python3
"""
activate_level instruction assembly.

Wire format (must not drift):
    data     = discriminator(8) | level u8 | price u64le | nonce u64le   (25 bytes)
    accounts = 21 metas in the fixed order of ActivationAccounts
A compute-unit-limit instruction always precedes the activation.
"""

import base64
import logging
import struct
import time
from dataclasses import dataclass, fields
from typing import List, Optional

from solders.pubkey import Pubkey
from solders.instruction import Instruction, AccountMeta
from solders.message import MessageV0
from solders.transaction import VersionedTransaction
from solders.signature import Signature
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.compute_budget import set_compute_unit_limit
from solders.hash import Hash

from .constants import ACTIVATE_LEVEL_DISCRIMINATOR, CONFIG_VERSION, DEFAULT_COMPUTE_UNITS
from .errors import TerminalConfigMissing
from .layouts import ConfigAccount, decode_config, decode_or_none
from .pda import PDADeriver, TxGuardKind, validate_level, validate_nonce
from .prices import price_lamports_for_level
from .queue_resolver import QueueResolution, QueueResolver
from .reader import AccountReader, READ_FAILED, try_read
from .referral_resolver import ReferralResolver, ReferralState

logger = logging.getLogger("matrix.activation")
logger.setLevel(logging.INFO)

ACTIVATE_DATA_LEN = 25
ACTIVATE_ACCOUNT_COUNT = 21

# Accounts the program only reads
_READONLY = {"ref1_level_state", "ref2_level_state", "ref3_level_state", "system_program"}
_SIGNERS = {"authority"}


@dataclass(frozen=True)
class ActivationAccounts:
    """The 21 activate_level accounts, in wire order."""
    player: Pubkey
    level_state: Pubkey
    tx_guard: Pubkey
    authority: Pubkey
    config: Pubkey
    level_pool: Pubkey
    admin: Pubkey
    treasury: Pubkey
    ref1: Pubkey
    ref2: Pubkey
    ref3: Pubkey
    tail_page: Pubkey
    new_page: Pubkey
    head_page: Pubkey
    owner_player: Pubkey
    owner_level_state: Pubkey
    owner_wallet: Pubkey
    ref1_level_state: Pubkey
    ref2_level_state: Pubkey
    ref3_level_state: Pubkey
    system_program: Pubkey = SYSTEM_PROGRAM_ID

    def to_metas(self) -> List[AccountMeta]:
        return [
            AccountMeta(
                pubkey=getattr(self, f.name),
                is_signer=f.name in _SIGNERS,
                is_writable=f.name not in _READONLY,
            )
            for f in fields(self)
        ]

    def to_dict(self) -> dict:
        return {f.name: str(getattr(self, f.name)) for f in fields(self)}


def encode_activate_data(level: int, price_lamports: int, nonce: int) -> bytes:
    validate_level(level)
    validate_nonce(nonce)
    return ACTIVATE_LEVEL_DISCRIMINATOR + struct.pack('<BQQ', level, price_lamports, nonce)


def build_activate_level_ix(program_id: Pubkey, accounts: ActivationAccounts,
                            level: int, price_lamports: int, nonce: int) -> Instruction:
    return Instruction(program_id, encode_activate_data(level, price_lamports, nonce), accounts.to_metas())


def current_nonce() -> int:
    """Wall-clock milliseconds; unique per attempt from one wallet."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class ActivationPlan:
    """Everything resolved for one activation attempt."""
    level: int
    price_lamports: int
    nonce: int
    accounts: ActivationAccounts
    queue: QueueResolution
    referrals: ReferralState
    compute_budget_ix: Instruction
    activate_ix: Instruction

    @property
    def instructions(self) -> List[Instruction]:
        return [self.compute_budget_ix, self.activate_ix]

    def build_unsigned_transaction(self, blockhash: str) -> VersionedTransaction:
        """v0 transaction with placeholder signatures; signing happens elsewhere."""
        msg = MessageV0.try_compile(
            payer=self.accounts.authority,
            instructions=self.instructions,
            address_lookup_table_accounts=[],
            recent_blockhash=Hash.from_string(blockhash),
        )
        signatures = [Signature.default()] * msg.header.num_required_signatures
        return VersionedTransaction.populate(msg, signatures)

    def build_unsigned_transaction_b64(self, blockhash: str) -> str:
        return base64.b64encode(bytes(self.build_unsigned_transaction(blockhash))).decode('utf-8')


class ActivationBuilder:
    """Resolves queue + referral accounts and assembles the activation."""

    def __init__(self, reader: AccountReader, deriver: PDADeriver,
                 compute_units: int = DEFAULT_COMPUTE_UNITS):
        self.reader = reader
        self.deriver = deriver
        self.compute_units = compute_units
        self.queue_resolver = QueueResolver(reader, deriver)
        self.referral_resolver = ReferralResolver(reader, deriver)

    @property
    def program_id(self) -> Pubkey:
        return self.deriver.program_id

    def load_config(self) -> ConfigAccount:
        """Config is the one account resolution cannot do without."""
        config_pda, _ = self.deriver.config()
        data = try_read(self.reader, config_pda, "Config")
        if data is READ_FAILED:
            raise TerminalConfigMissing(f"Failed to fetch Config {config_pda}")
        config = decode_or_none(decode_config, data, config_pda)
        if config is None:
            raise TerminalConfigMissing(f"Config {config_pda} not found or malformed")
        if config.version != CONFIG_VERSION:
            logger.warning(f"[Activation] Config version {config.version} (expected {CONFIG_VERSION}), continuing")
        return config

    def build(self, authority: Pubkey, level: int, nonce: Optional[int] = None) -> ActivationPlan:
        validate_level(level)
        nonce = current_nonce() if nonce is None else validate_nonce(nonce)

        config = self.load_config()
        config_pda, _ = self.deriver.config()
        player, _ = self.deriver.player(authority)
        level_state, _ = self.deriver.level_state(player, level)

        queue = self.queue_resolver.resolve(config_pda, level, authority)
        referrals = self.referral_resolver.resolve(queue.owner.owner_account, config.admin, level)

        owner_level_state, _ = self.deriver.level_state(queue.owner.owner_player, level)
        tx_guard, _ = self.deriver.tx_guard(TxGuardKind.ACTIVATE, player, level, nonce)
        ref1, ref2, ref3 = referrals.wallet_addresses
        ref1_ls, ref2_ls, ref3_ls = referrals.level_state_addresses

        accounts = ActivationAccounts(
            player=player,
            level_state=level_state,
            tx_guard=tx_guard,
            authority=authority,
            config=config_pda,
            level_pool=queue.pool.level_pool,
            admin=config.admin,
            treasury=config.treasury,
            ref1=ref1,
            ref2=ref2,
            ref3=ref3,
            tail_page=queue.tail_page,
            new_page=queue.new_page,
            head_page=queue.head_page,
            owner_player=queue.owner.owner_player,
            owner_level_state=owner_level_state,
            owner_wallet=queue.owner.owner_wallet,
            ref1_level_state=ref1_ls,
            ref2_level_state=ref2_ls,
            ref3_level_state=ref3_ls,
        )

        price = price_lamports_for_level(level)
        activate_ix = build_activate_level_ix(self.program_id, accounts, level, price, nonce)
        logger.info(
            f"[Activation] {authority} level {level}: price={price} nonce={nonce} "
            f"owner={accounts.owner_wallet} refs=[{ref1}, {ref2}, {ref3}]"
        )
        return ActivationPlan(
            level=level,
            price_lamports=price,
            nonce=nonce,
            accounts=accounts,
            queue=queue,
            referrals=referrals,
            compute_budget_ix=set_compute_unit_limit(self.compute_units),
            activate_ix=activate_ix,
        )
