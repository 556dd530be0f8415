"""
RAM instruction set: opcodes, addressing modes and the Instruction record.

Addressing modes:
  REGISTER    operand is a register index     e.g. ADD 3
  IMMEDIATE   operand is the value itself     e.g. ADD =3
  INDIRECT    register[register[operand]]     e.g. ADD *3
  NONE        no operand                      e.g. HALT

Jump opcodes (JUMP/JGTZ/JZERO) decode their operand exactly like data
operands; the decoded value is then used as an instruction index. Label
references are always assembled as IMMEDIATE, so `JUMP loop` jumps to the
index of `loop`, while `JUMP 3` jumps to the index stored in register 3.
"""

from __future__ import annotations
import enum
from dataclasses import dataclass
from typing import Dict, FrozenSet

__all__ = [
    'Opcode', 'AddressingMode', 'Instruction',
    'MNEMONICS', 'MARKERS', 'ALLOWED_MODES',
]


class Opcode(enum.Enum):
    LOAD = "LOAD"
    STORE = "STORE"
    ADD = "ADD"
    SUB = "SUB"
    MULT = "MULT"
    DIV = "DIV"
    READ = "READ"
    WRITE = "WRITE"
    JUMP = "JUMP"
    JGTZ = "JGTZ"
    JZERO = "JZERO"
    HALT = "HALT"


class AddressingMode(enum.Enum):
    REGISTER = "REGISTER"
    IMMEDIATE = "IMMEDIATE"
    INDIRECT = "INDIRECT"
    NONE = "NONE"


# Mnemonic lookup is case-sensitive: "load" is not an instruction.
MNEMONICS: Dict[str, Opcode] = {op.value: op for op in Opcode}

# Addressing-marker characters as they appear in source
MARKERS: Dict[str, AddressingMode] = {
    '=': AddressingMode.IMMEDIATE,
    '*': AddressingMode.INDIRECT,
}

_PREFIX = {
    AddressingMode.REGISTER: '',
    AddressingMode.IMMEDIATE: '=',
    AddressingMode.INDIRECT: '*',
}

_VALUE_MODES = frozenset({AddressingMode.REGISTER, AddressingMode.IMMEDIATE,
                          AddressingMode.INDIRECT})
_TARGET_MODES = frozenset({AddressingMode.REGISTER, AddressingMode.INDIRECT})

# ── Valid (opcode, addressing mode) combinations ──
# STORE and READ write to a register, so they need a register target.
ALLOWED_MODES: Dict[Opcode, FrozenSet[AddressingMode]] = {
    Opcode.LOAD:  _VALUE_MODES,
    Opcode.STORE: _TARGET_MODES,
    Opcode.ADD:   _VALUE_MODES,
    Opcode.SUB:   _VALUE_MODES,
    Opcode.MULT:  _VALUE_MODES,
    Opcode.DIV:   _VALUE_MODES,
    Opcode.READ:  _TARGET_MODES,
    Opcode.WRITE: _VALUE_MODES,
    Opcode.JUMP:  _VALUE_MODES,
    Opcode.JGTZ:  _VALUE_MODES,
    Opcode.JZERO: _VALUE_MODES,
    Opcode.HALT:  frozenset({AddressingMode.NONE}),
}


@dataclass(frozen=True)
class Instruction:
    """One resolved RAM instruction.

    `ADD =12` is Instruction(Opcode.ADD, AddressingMode.IMMEDIATE, 12).
    """
    opcode: Opcode
    addressing_mode: AddressingMode = AddressingMode.NONE
    operand: int = 0

    def __str__(self):
        if self.addressing_mode is AddressingMode.NONE:
            return self.opcode.value
        return f"{self.opcode.value:<6s}{_PREFIX[self.addressing_mode]}{self.operand}"
