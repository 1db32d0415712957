#!/usr/bin/env python3
"""Matrix program client: PDA derivation, account decoding, queue/referral resolution and instruction assembly."""

from .activation import ActivationAccounts, ActivationBuilder, ActivationPlan, build_activate_level_ix
from .errors import (
    MatrixError, InvalidLevel, InvalidPageIndex, InvalidNonce,
    DecodeError, TerminalConfigMissing, RPCError, RateLimitedError,
)
from .pda import PDADeriver, TxGuardKind
from .queue_resolver import QueueResolver, QueueStatus
from .reader import AccountReader
from .referral_resolver import ReferralResolver, Resolved, Fallback
from .register import build_register_player_ix
from .program_errors import parse_program_error, format_activation_error
from .matrix_view import build_matrix_state

__all__ = [
    'ActivationAccounts',
    'ActivationBuilder',
    'ActivationPlan',
    'build_activate_level_ix',
    'MatrixError',
    'InvalidLevel',
    'InvalidPageIndex',
    'InvalidNonce',
    'DecodeError',
    'TerminalConfigMissing',
    'RPCError',
    'RateLimitedError',
    'PDADeriver',
    'TxGuardKind',
    'QueueResolver',
    'QueueStatus',
    'AccountReader',
    'ReferralResolver',
    'Resolved',
    'Fallback',
    'build_register_player_ix',
    'parse_program_error',
    'format_activation_error',
    'build_matrix_state',
]
