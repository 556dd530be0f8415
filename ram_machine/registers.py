"""
RAM register file.

Register model:
  r0:   accumulator (ACCUMULATOR), implicit target of LOAD/ADD/SUB/MULT/DIV
        and the source of STORE
  r1..: general registers, unbounded

Every register holds a signed 32-bit value and reads as 0 until written.
Storage is a sparse dict, so touching r1000000 costs one entry, not a
million-slot array.
"""

from __future__ import annotations
from typing import Dict

__all__ = ['ACCUMULATOR', 'WORD_BITS', 'INT_MIN', 'INT_MAX',
           'wrap_word', 'fits_word', 'RegisterFile']

ACCUMULATOR = 0

WORD_BITS = 32
INT_MIN = -(1 << (WORD_BITS - 1))
INT_MAX = (1 << (WORD_BITS - 1)) - 1
_WORD_MASK = (1 << WORD_BITS) - 1


def wrap_word(value: int) -> int:
    """Wrap an arbitrary int to a signed 32-bit value (two's complement)."""
    value &= _WORD_MASK
    if value > INT_MAX:
        value -= 1 << WORD_BITS
    return value


def fits_word(value: int) -> bool:
    return INT_MIN <= value <= INT_MAX


class RegisterFile:
    """Zero-initialized, unbounded register file.

    Indices must be non-negative; the machine checks that before calling
    get()/set() so it can report the offending instruction.
    """

    __slots__ = ('_regs', 'writes')

    def __init__(self):
        self._regs: Dict[int, int] = {}
        self.writes: int = 0  # number of set() calls, for inspection

    def get(self, index: int) -> int:
        if index < 0:
            raise IndexError(f"negative register index {index}")
        return self._regs.get(index, 0)

    def set(self, index: int, value: int):
        if index < 0:
            raise IndexError(f"negative register index {index}")
        self._regs[index] = wrap_word(value)
        self.writes += 1

    def __getitem__(self, index: int) -> int:
        return self.get(index)

    @property
    def accumulator(self) -> int:
        return self.get(ACCUMULATOR)

    def snapshot(self) -> Dict[int, int]:
        """Return the non-zero registers, sorted by index."""
        return {i: v for i, v in sorted(self._regs.items()) if v != 0}

    def display(self) -> str:
        """Format register state for debugging."""
        regs = self.snapshot()
        if not regs:
            return "(all registers zero)"
        return " ".join(f"r{i}={v}" for i, v in regs.items())

    def __repr__(self):
        return f"RegisterFile({self.snapshot()!r})"
