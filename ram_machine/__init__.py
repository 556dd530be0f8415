"""
RAM Machine Simulator
=====================
Assembler and interpreter for the classic Random Access Machine: a single
accumulator (r0), an unbounded zero-initialized register file and twelve
instructions (LOAD STORE ADD SUB MULT DIV READ WRITE JUMP JGTZ JZERO HALT).

Architecture:
    ┌──────────┐    ┌───────────┐    ┌─────────────┐    ┌──────────┐
    │ Source   │───>│ Tokenizer │───>│  Assembler  │───>│ Machine  │
    │ (.ram)   │    │ (tokens)  │    │ (Program)   │    │ (output) │
    └──────────┘    └───────────┘    └─────────────┘    └──────────┘

    - tokenizer.py:  per-line scanner → labels, mnemonic, marker, operand, comment
    - assembler.py:  label table + back-patching of forward references
    - isa.py:        opcodes, addressing modes, Instruction record
    - registers.py:  sparse 32-bit register file
    - machine.py:    fetch/decode/execute engine
"""

__version__ = "0.3.0"

from typing import Optional, TextIO

from .tokenizer import Token, TokenType, tokenize, tokenize_line
from .isa import AddressingMode, Instruction, Opcode
from .registers import ACCUMULATOR, RegisterFile
from .assembler import (
    Assembler, AssemblerError, DuplicateLabelError, EmptyLabelError,
    InvalidInstructionError, InvalidOperandError, MissingOperandError,
    OperandRangeError, Program, UnresolvedLabelError, assemble, format_listing,
)
from .machine import (
    AddressingModeMismatch, DivisionByZero, ExecutedInstruction, InvalidRegisterIndex,
    Machine, MachineError, MalformedInputError, OutOfRangeJump, StopReason,
)


def run_source(source: str, *, input_stream: Optional[TextIO] = None,
               output_stream: Optional[TextIO] = None,
               max_steps: Optional[int] = Machine.DEFAULT_MAX_STEPS) -> Machine:
    """Assemble and run RAM source, returning the finished Machine.

    Full pipeline: Tokenizer -> Assembler -> Machine.run().

    Args:
        source: RAM assembly text.
        input_stream: lines consumed by READ (default stdin).
        output_stream: where WRITE prints (default stdout).
        max_steps: step budget, None for unlimited.

    Returns:
        The Machine after it stopped; inspect `stop_reason`, `output`
        and `registers`.
    """
    machine = Machine(assemble(source), input_stream=input_stream,
                      output_stream=output_stream)
    machine.run(max_steps=max_steps)
    return machine
