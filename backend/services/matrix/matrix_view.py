#!/usr/bin/env python3
"""Three-slot cycle view derived from a LevelState."""

from dataclasses import dataclass, field
from typing import List

from .constants import SLOTS_PER_CYCLE
from .layouts import LevelStateAccount

SLOT_EMPTY = "EMPTY"
SLOT_FILLED = "FILLED"


@dataclass
class MatrixSlot:
    index: int      # 1..3
    state: str


@dataclass
class MatrixCycle:
    index: int      # = cycles
    filled: int     # = slots_filled, clamped to 0..3
    closed: bool


@dataclass
class MatrixState:
    level: int
    cycle: MatrixCycle
    slots: List[MatrixSlot] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "cycle": {"index": self.cycle.index, "filled": self.cycle.filled, "closed": self.cycle.closed},
            "slots": [{"index": s.index, "state": s.state} for s in self.slots],
        }


def build_matrix_state(level: int, cycles: int, slots_filled: int) -> MatrixState:
    filled = max(0, min(int(slots_filled), SLOTS_PER_CYCLE))
    return MatrixState(
        level=level,
        cycle=MatrixCycle(index=cycles, filled=filled, closed=filled == SLOTS_PER_CYCLE),
        slots=[
            MatrixSlot(i, SLOT_FILLED if filled >= i else SLOT_EMPTY)
            for i in range(1, SLOTS_PER_CYCLE + 1)
        ],
    )


def matrix_state_from_level_state(state: LevelStateAccount) -> MatrixState:
    return build_matrix_state(state.level, state.cycles, state.slots_filled)
