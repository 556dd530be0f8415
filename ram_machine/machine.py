"""
RAM Execution Engine.

Execution model:
  1. Fetch the instruction at the instruction pointer
  2. Advance the pointer by one (jumps overwrite it afterwards)
  3. Check the (opcode, addressing mode) pair and decode the operand
  4. Execute the opcode handler against the accumulator (r0)
  5. Return the executed instruction for tracing

Termination reasons:
  - HALT:     HALT instruction executed
  - END:      pointer ran off the end of the program (normal completion)
  - TIMEOUT:  run() step budget exhausted (machine is still runnable)
  - ERROR:    runtime error raised out of step()

Arithmetic is signed 32-bit with two's-complement wraparound; DIV truncates
toward zero. Runtime errors are raised as MachineError subclasses and leave
the machine halted.
"""

from __future__ import annotations
import logging
import re
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, TextIO

from .assembler import Program
from .isa import (
    ALLOWED_MODES, AddressingMode, Instruction, Opcode,
)
from .registers import ACCUMULATOR, RegisterFile, fits_word

__all__ = [
    'StopReason', 'ExecutedInstruction', 'Machine',
    'MachineError', 'AddressingModeMismatch', 'MalformedInputError',
    'DivisionByZero', 'OutOfRangeJump', 'InvalidRegisterIndex',
]

log = logging.getLogger(__name__)

_INPUT_RE = re.compile(r'^[+-]?[0-9]+$')


class StopReason(Enum):
    HALT = 'HALT'
    END = 'END'
    TIMEOUT = 'TIMEOUT'
    ERROR = 'ERROR'


# ──────────────────────────────────────────────
# Runtime errors
# ──────────────────────────────────────────────

class MachineError(Exception):
    """Raised when an instruction cannot be executed."""
    def __init__(self, message: str, address: Optional[int] = None):
        self.address = address
        super().__init__(f"Instruction {address}: {message}"
                         if address is not None else message)


class AddressingModeMismatch(MachineError):
    def __init__(self, opcode: Opcode, mode: AddressingMode, address: Optional[int] = None):
        self.opcode = opcode
        self.mode = mode
        super().__init__(f"{opcode.value}: addressing mode {mode.value} not supported",
                         address)


class MalformedInputError(MachineError):
    def __init__(self, text: str, address: Optional[int] = None):
        self.text = text
        if text == "":
            message = "READ: end of input"
        else:
            message = f"READ: input is not a 32-bit integer: {text.strip()!r}"
        super().__init__(message, address)


class DivisionByZero(MachineError):
    def __init__(self, address: Optional[int] = None):
        super().__init__("DIV: division by zero", address)


class OutOfRangeJump(MachineError):
    def __init__(self, target: int, limit: int, address: Optional[int] = None):
        self.target = target
        self.limit = limit
        super().__init__(f"jump target {target} outside [0, {limit}]", address)


class InvalidRegisterIndex(MachineError):
    def __init__(self, index: int, address: Optional[int] = None):
        self.index = index
        super().__init__(f"invalid register index {index}", address)


# ──────────────────────────────────────────────
# Machine
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class ExecutedInstruction:
    """An instruction returned by Machine.step(), with the index it ran from."""
    index: int
    instruction: Instruction

    @property
    def opcode(self) -> Opcode:
        return self.instruction.opcode

    def __str__(self):
        return f"{self.index:>4}: {self.instruction}"


class Machine:
    """Random Access Machine.

    Usage:
        m = Machine(assemble(source))
        while (executed := m.step()) is not None:
            print(f"Executed: {executed}")

    A Machine is single-use: to run a program again, build a new one.

    `output` keeps every WRITE value and `trace_output` every trace line for
    the whole run. For long or unbounded runs pass record_output=False and
    leave trace off; WRITE still goes to the output stream.
    """

    DEFAULT_MAX_STEPS = 1_000_000

    def __init__(self, program: Sequence[Instruction],
                 input_stream: Optional[TextIO] = None,
                 output_stream: Optional[TextIO] = None,
                 trace: bool = False,
                 record_output: bool = True):
        if isinstance(program, Program):
            self.instructions = program.instructions
        else:
            self.instructions = tuple(program)
        self.registers = RegisterFile()
        self.pointer: int = 0
        self.halted: bool = False
        self.stop_reason: Optional[StopReason] = None
        self.steps: int = 0
        self.output: List[int] = []  # every value emitted by WRITE, if record_output
        self._record_output = record_output

        self._input = input_stream
        self._output = output_stream

        self._trace = trace
        self.trace_output: List[str] = []

        self._current: int = 0  # index of the instruction being executed
        self._dispatch = self._build_dispatch()

    # ══════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════

    def is_halted(self) -> bool:
        return self.halted

    @property
    def accumulator(self) -> int:
        return self.registers.accumulator

    def step(self) -> Optional[ExecutedInstruction]:
        """Execute one instruction.

        Returns the executed instruction, or None once the machine is halted
        (including the step that finds the pointer past the last instruction).
        Runtime errors halt the machine and propagate.
        """
        if self.halted:
            return None

        if self.pointer >= len(self.instructions):
            self._halt(StopReason.END)
            return None

        index = self.pointer
        inst = self.instructions[index]
        self._current = index
        self.pointer += 1

        try:
            if inst.addressing_mode not in ALLOWED_MODES[inst.opcode]:
                raise AddressingModeMismatch(inst.opcode, inst.addressing_mode, index)
            self._dispatch[inst.opcode](inst)
        except MachineError as e:
            log.debug("Runtime error: %s", e)
            self._halt(StopReason.ERROR)
            raise

        self.steps += 1
        executed = ExecutedInstruction(index, inst)
        if self._trace:
            line = f"{executed}  | {self.registers.display()}"
            self.trace_output.append(line)
            log.debug(line)
        return executed

    def run(self, max_steps: Optional[int] = DEFAULT_MAX_STEPS) -> StopReason:
        """Run until the machine halts or `max_steps` instructions have run.

        Args:
            max_steps: step budget; None runs without a limit

        Returns:
            StopReason.HALT / END when the program finished,
            StopReason.TIMEOUT when the budget ran out first.
        """
        count = 0
        while max_steps is None or count < max_steps:
            if self.step() is None:
                return self.stop_reason
            count += 1

        if not self.halted and self.pointer >= len(self.instructions):
            self._halt(StopReason.END)
        if self.halted:
            return self.stop_reason
        log.warning("Step limit reached (%d steps) at instruction %d",
                    max_steps, self.pointer)
        return StopReason.TIMEOUT

    def run_to_completion(self) -> List[ExecutedInstruction]:
        """Drain step() and return every executed instruction, in order."""
        return list(iter(self.step, None))

    def _halt(self, reason: StopReason):
        self.halted = True
        self.stop_reason = reason
        log.info("Machine halted (%s): pointer=%d steps=%d",
                 reason.value, self.pointer, self.steps)

    # ══════════════════════════════════════════════
    # Operand decoding
    # ══════════════════════════════════════════════

    def _read_register(self, index: int) -> int:
        if index < 0:
            raise InvalidRegisterIndex(index, self._current)
        return self.registers.get(index)

    def _write_register(self, index: int, value: int):
        if index < 0:
            raise InvalidRegisterIndex(index, self._current)
        self.registers.set(index, value)

    def _value(self, inst: Instruction) -> int:
        """Decode the operand value.

          REGISTER:   register[operand]
          IMMEDIATE:  operand
          INDIRECT:   register[register[operand]]
        """
        mode = inst.addressing_mode
        if mode is AddressingMode.IMMEDIATE:
            return inst.operand
        if mode is AddressingMode.REGISTER:
            return self._read_register(inst.operand)
        if mode is AddressingMode.INDIRECT:
            return self._read_register(self._read_register(inst.operand))
        raise AddressingModeMismatch(inst.opcode, mode, self._current)

    def _target(self, inst: Instruction) -> int:
        """Decode the register index written by STORE / READ."""
        mode = inst.addressing_mode
        if mode is AddressingMode.REGISTER:
            return inst.operand
        if mode is AddressingMode.INDIRECT:
            return self._read_register(inst.operand)
        raise AddressingModeMismatch(inst.opcode, mode, self._current)

    def _jump(self, target: int):
        limit = len(self.instructions)
        if not 0 <= target <= limit:
            raise OutOfRangeJump(target, limit, self._current)
        self.pointer = target

    # ══════════════════════════════════════════════
    # I/O channels
    # ══════════════════════════════════════════════

    @property
    def input_stream(self) -> TextIO:
        return self._input if self._input is not None else sys.stdin

    @property
    def output_stream(self) -> TextIO:
        return self._output if self._output is not None else sys.stdout

    def _read_input(self) -> int:
        try:
            line = self.input_stream.readline()
        except UnicodeDecodeError as e:
            raise MalformedInputError(f"<undecodable bytes: {e.reason}>", self._current) from e
        text = line.strip()
        if not _INPUT_RE.match(text):
            raise MalformedInputError(line, self._current)
        value = int(text)
        if not fits_word(value):
            raise MalformedInputError(line, self._current)
        return value

    def _write_output(self, value: int):
        if self._record_output:
            self.output.append(value)
        stream = self.output_stream
        stream.write(f"{value}\n")
        stream.flush()

    # ══════════════════════════════════════════════
    # Instruction handlers
    # ══════════════════════════════════════════════

    def _build_dispatch(self) -> Dict[Opcode, Callable[[Instruction], None]]:
        """Build opcode → handler dispatch table."""
        return {
            Opcode.LOAD:  self._op_load,
            Opcode.STORE: self._op_store,
            Opcode.ADD:   self._op_add,
            Opcode.SUB:   self._op_sub,
            Opcode.MULT:  self._op_mult,
            Opcode.DIV:   self._op_div,
            Opcode.READ:  self._op_read,
            Opcode.WRITE: self._op_write,
            Opcode.JUMP:  self._op_jump,
            Opcode.JGTZ:  self._op_jgtz,
            Opcode.JZERO: self._op_jzero,
            Opcode.HALT:  self._op_halt,
        }

    def _op_load(self, inst: Instruction):
        self.registers.set(ACCUMULATOR, self._value(inst))

    def _op_store(self, inst: Instruction):
        self._write_register(self._target(inst), self.accumulator)

    def _op_add(self, inst: Instruction):
        self.registers.set(ACCUMULATOR, self.accumulator + self._value(inst))

    def _op_sub(self, inst: Instruction):
        self.registers.set(ACCUMULATOR, self.accumulator - self._value(inst))

    def _op_mult(self, inst: Instruction):
        self.registers.set(ACCUMULATOR, self.accumulator * self._value(inst))

    def _op_div(self, inst: Instruction):
        divisor = self._value(inst)
        if divisor == 0:
            raise DivisionByZero(self._current)
        dividend = self.accumulator
        # Truncate toward zero; Python's // floors
        quotient = abs(dividend) // abs(divisor)
        if (dividend < 0) != (divisor < 0):
            quotient = -quotient
        self.registers.set(ACCUMULATOR, quotient)

    def _op_read(self, inst: Instruction):
        target = self._target(inst)
        if target < 0:
            raise InvalidRegisterIndex(target, self._current)
        self.registers.set(target, self._read_input())

    def _op_write(self, inst: Instruction):
        self._write_output(self._value(inst))

    def _op_jump(self, inst: Instruction):
        self._jump(self._value(inst))

    def _op_jgtz(self, inst: Instruction):
        target = self._value(inst)
        if self.accumulator > 0:
            self._jump(target)

    def _op_jzero(self, inst: Instruction):
        target = self._value(inst)
        if self.accumulator == 0:
            self._jump(target)

    def _op_halt(self, inst: Instruction):
        self._halt(StopReason.HALT)
