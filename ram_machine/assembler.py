"""
RAM Assembler / Label Resolver.

Turns RAM assembly text into a Program: a resolved, directly executable
instruction sequence.

Line grammar:
    (label ':')*  MNEMONIC  (marker? value)?  (';' comment)?

    marker  '='  → IMMEDIATE   e.g. LOAD =5     (the value 5)
            '*'  → INDIRECT    e.g. LOAD *2     (register[register[2]])
            none → REGISTER    e.g. LOAD 2      (register[2])

How label resolution works:
  Scan:     Walk all lines once, keeping a cursor = number of instructions
            emitted so far. Label declarations get the current cursor value.
            An operand that is not an integer literal is a label reference:
            the instruction is emitted as IMMEDIATE with a placeholder and
            (name, index) goes on the pending list.
  Patch:    Once every line has been seen, every pending reference is looked
            up in the label table and its instruction is replaced with one
            carrying the resolved index. This is what lets a JUMP refer to a
            label declared further down the source.

The first error aborts assembly; no partial program is ever returned.
"""

from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field, replace
from typing import Dict, Iterator, List, Optional, Tuple

from .isa import AddressingMode, Instruction, MARKERS, MNEMONICS, Opcode
from .registers import fits_word
from .tokenizer import TokenType, tokenize_line

__all__ = [
    'AssemblerError', 'InvalidInstructionError', 'DuplicateLabelError',
    'EmptyLabelError', 'UnresolvedLabelError', 'MissingOperandError',
    'InvalidOperandError', 'OperandRangeError',
    'Program', 'Assembler', 'assemble', 'format_listing',
]

log = logging.getLogger(__name__)

# Placeholder operand for label references until they are patched
_UNRESOLVED = -1

_INT_RE = re.compile(r'^[+-]?[0-9]+$')


# ──────────────────────────────────────────────
# Errors
# ──────────────────────────────────────────────

class AssemblerError(Exception):
    """Raised on assembly errors."""
    def __init__(self, message: str, line_num: int = 0, line_text: str = ""):
        self.line_num = line_num
        self.line_text = line_text
        super().__init__(f"Line {line_num}: {message}" if line_num else message)


class InvalidInstructionError(AssemblerError):
    """Mnemonic is not one of the 12 RAM opcodes."""
    def __init__(self, text: str, line_num: int = 0, line_text: str = ""):
        self.text = text
        super().__init__(f"Unknown instruction: '{text}'", line_num, line_text)


class DuplicateLabelError(AssemblerError):
    def __init__(self, name: str, line_num: int = 0, line_text: str = ""):
        self.name = name
        super().__init__(f"Duplicate label: '{name}'", line_num, line_text)


class EmptyLabelError(AssemblerError):
    def __init__(self, line_num: int = 0, line_text: str = ""):
        super().__init__("Empty label name", line_num, line_text)


class UnresolvedLabelError(AssemblerError):
    def __init__(self, name: str, line_num: int = 0, line_text: str = ""):
        self.name = name
        super().__init__(f"Undefined label: '{name}'", line_num, line_text)


class MissingOperandError(AssemblerError):
    def __init__(self, opcode: Opcode, line_num: int = 0, line_text: str = ""):
        self.opcode = opcode
        super().__init__(f"{opcode.value}: missing operand", line_num, line_text)


class InvalidOperandError(AssemblerError):
    """Operand field is malformed (extra words, stray markers, ...)."""


class OperandRangeError(AssemblerError):
    def __init__(self, text: str, line_num: int = 0, line_text: str = ""):
        self.text = text
        super().__init__(f"Operand out of 32-bit range: {text}", line_num, line_text)


# ──────────────────────────────────────────────
# Line Parser
# ──────────────────────────────────────────────

@dataclass
class AsmLine:
    """One source line, split into its parts."""
    labels: List[str] = field(default_factory=list)
    mnemonic: Optional[str] = None
    marker: Optional[str] = None
    operand: Optional[str] = None
    comment: Optional[str] = None
    line_num: int = 0
    raw: str = ""


def _parse_line(line: str, line_num: int) -> AsmLine:
    """Group one line's tokens into labels, mnemonic, operand and comment."""
    result = AsmLine(line_num=line_num, raw=line)

    def bad(message: str):
        return InvalidOperandError(message, line_num, line)

    for tok in tokenize_line(line, line_num):
        if tok.type is TokenType.LABEL:
            if result.mnemonic is not None:
                raise bad(f"Label declaration '{tok.value}:' after mnemonic")
            result.labels.append(tok.value)

        elif tok.type is TokenType.MNEMONIC:
            result.mnemonic = tok.value

        elif tok.type is TokenType.MARKER:
            if result.mnemonic is None:
                raise bad(f"Addressing marker '{tok.value}' before mnemonic")
            if result.marker is not None or result.operand is not None:
                raise bad(f"Unexpected addressing marker '{tok.value}'")
            result.marker = tok.value

        elif tok.type is TokenType.OPERAND:
            if result.operand is not None:
                raise bad(f"{result.mnemonic}: too many operands "
                          f"('{result.operand}', '{tok.value}')")
            result.operand = tok.value

        elif tok.type is TokenType.COMMENT:
            result.comment = tok.value.strip()

    if result.marker is not None and result.operand is None:
        raise bad(f"Addressing marker '{result.marker}' without a value")

    return result


def _parse_int(text: str) -> Optional[int]:
    """Parse a signed decimal literal, or None if `text` is not one."""
    if _INT_RE.match(text):
        return int(text)
    return None


# ──────────────────────────────────────────────
# Program
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Program:
    """Assembled program: resolved instructions plus source bookkeeping."""
    instructions: Tuple[Instruction, ...]
    labels: Dict[str, int] = field(default_factory=dict)
    lines: Tuple[int, ...] = ()      # 1-based source line of each instruction
    sources: Tuple[str, ...] = ()    # raw source text of each instruction

    def __hash__(self):
        # labels is a dict; hash it by its sorted items
        return hash((self.instructions, tuple(sorted(self.labels.items())),
                     self.lines, self.sources))

    def __len__(self):
        return len(self.instructions)

    def __getitem__(self, index: int) -> Instruction:
        return self.instructions[index]

    def __iter__(self) -> Iterator[Instruction]:
        return iter(self.instructions)

    def label_at(self, index: int) -> List[str]:
        """Return the labels that point at instruction `index`."""
        return [name for name, idx in self.labels.items() if idx == index]


# ──────────────────────────────────────────────
# The Assembler
# ──────────────────────────────────────────────

class Assembler:
    """RAM assembler with forward-reference back-patching.

    Usage:
        asm = Assembler()
        program = asm.assemble(source_text)
        print(asm.get_listing())
    """

    def __init__(self):
        self.labels: Dict[str, int] = {}           # label name -> instruction index
        self.instructions: List[Instruction] = []
        self._lines: List[AsmLine] = []            # source line of each instruction
        self._pending: List[Tuple[str, int, AsmLine]] = []

    @property
    def cursor(self) -> int:
        return len(self.instructions)

    def assemble(self, source: str) -> Program:
        """Assemble source text into a Program.

        Raises an AssemblerError subclass on the first error found.
        """
        self.labels = {}
        self.instructions = []
        self._lines = []
        self._pending = []

        for line_num, raw in enumerate(source.splitlines(), 1):
            line = _parse_line(raw, line_num)
            for name in line.labels:
                self._declare_label(name, line)
            if line.mnemonic is None:
                continue
            self._emit(line)

        self._resolve()

        log.debug("Assembled %d instructions, %d labels",
                  len(self.instructions), len(self.labels))
        return self.program

    @property
    def program(self) -> Program:
        return Program(
            instructions=tuple(self.instructions),
            labels=dict(self.labels),
            lines=tuple(line.line_num for line in self._lines),
            sources=tuple(line.raw for line in self._lines),
        )

    def _declare_label(self, name: str, line: AsmLine):
        if not name:
            raise EmptyLabelError(line.line_num, line.raw)
        if name in self.labels:
            raise DuplicateLabelError(name, line.line_num, line.raw)
        self.labels[name] = self.cursor

    def _emit(self, line: AsmLine):
        """Classify one instruction line and append it."""
        opcode = MNEMONICS.get(line.mnemonic)
        if opcode is None:
            raise InvalidInstructionError(line.mnemonic, line.line_num, line.raw)

        if line.operand is None:
            if opcode is not Opcode.HALT:
                raise MissingOperandError(opcode, line.line_num, line.raw)
            self._append(Instruction(opcode), line)
            return

        if opcode is Opcode.HALT:
            raise InvalidOperandError(
                f"HALT takes no operand (got '{line.operand}')", line.line_num, line.raw)

        mode = MARKERS[line.marker] if line.marker else AddressingMode.REGISTER
        value = _parse_int(line.operand)
        if value is None:
            # Label reference: resolved to an instruction index after the scan
            self._pending.append((line.operand, self.cursor, line))
            self._append(Instruction(opcode, AddressingMode.IMMEDIATE, _UNRESOLVED), line)
            return

        if not fits_word(value):
            raise OperandRangeError(line.operand, line.line_num, line.raw)
        self._append(Instruction(opcode, mode, value), line)

    def _append(self, inst: Instruction, line: AsmLine):
        self.instructions.append(inst)
        self._lines.append(line)

    def _resolve(self):
        """Back-patch every pending label reference."""
        for name, index, line in self._pending:
            if name not in self.labels:
                raise UnresolvedLabelError(name, line.line_num, line.raw)
            self.instructions[index] = replace(self.instructions[index],
                                               operand=self.labels[name])
        self._pending = []

    def get_listing(self) -> str:
        """Return a human-readable listing of the last assembled program."""
        return format_listing(self.program)


# ──────────────────────────────────────────────
# Listing
# ──────────────────────────────────────────────

def format_listing(program: Program) -> str:
    """Listing with instruction index, source line, decoded instruction and source."""
    lines = []
    lines.append(f"{'IDX':>5}  {'LINE':>5}  {'INSTRUCTION':<16}  SOURCE")
    lines.append("-" * 60)

    for idx, inst in enumerate(program.instructions):
        line_num = program.lines[idx] if idx < len(program.lines) else 0
        raw = program.sources[idx].strip() if idx < len(program.sources) else ""
        if len(raw) > 40:
            raw = raw[:40]
        lines.append(f"{idx:>5}  {line_num:>5}  {str(inst):<16}  {raw}")

    if program.labels:
        lines.append("")
        lines.append("Labels:")
        for name, idx in sorted(program.labels.items(), key=lambda kv: (kv[1], kv[0])):
            lines.append(f"  {name:<20s} -> {idx}")

    return '\n'.join(lines)


# ──────────────────────────────────────────────
# Convenience functions
# ──────────────────────────────────────────────

def assemble(source: str) -> Program:
    """Assemble source text, return the resolved Program."""
    return Assembler().assemble(source)

