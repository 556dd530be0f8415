#!/usr/bin/env python3
"""
ramsim: RAM Machine Simulator CLI

Usage:
    ramsim <program.ram> [--input numbers.txt] [--trace] [--max-steps N]
                         [--registers] [--tokens] [--listing]
                         [--verbose] [--log-file run.log]

READ takes one integer per line from stdin (or --input FILE); WRITE prints
one integer per line to stdout.

Examples:
    ramsim sum.ram < numbers.txt
    ramsim sum.ram --input numbers.txt --trace
    ramsim sum.ram --listing                 # assemble only, print listing
    ramsim sum.ram --max-steps 500 -v        # stop runaway loops
"""

import argparse
import logging
import sys

from ram_machine import __version__
from ram_machine.assembler import Assembler, AssemblerError
from ram_machine.log_setup import setup_logging
from ram_machine.machine import Machine, MachineError, StopReason
from ram_machine.tokenizer import tokenize

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERNAL = 2
EXIT_TIMEOUT = 3


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="ramsim",
        description="Random Access Machine assembler and simulator",
    )
    parser.add_argument("program", help="RAM source file")
    parser.add_argument("--input", "-i", default=None,
                        help="File with READ input, one integer per line (default: stdin)")
    parser.add_argument("--trace", action="store_true",
                        help="Print every executed instruction")
    parser.add_argument("--max-steps", type=int, default=Machine.DEFAULT_MAX_STEPS,
                        help=f"Step limit, 0 for unlimited (default: {Machine.DEFAULT_MAX_STEPS})")
    parser.add_argument("--registers", action="store_true",
                        help="Print non-zero registers after the run")
    parser.add_argument("--tokens", action="store_true",
                        help="Dump token stream and exit (debug)")
    parser.add_argument("--listing", action="store_true",
                        help="Print the assembled listing and exit")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Log execution details to stderr")
    parser.add_argument("--log-file", default=None,
                        help="Also write a DEBUG log to this file")
    parser.add_argument("--version", action="version",
                        version=f"ramsim {__version__}")

    args = parser.parse_args(argv)

    log = setup_logging(console_level=logging.DEBUG if args.verbose else logging.WARNING,
                        log_file=args.log_file)

    # Read program
    try:
        with open(args.program, "r", encoding="utf-8") as f:
            source = f.read()
    except FileNotFoundError:
        print(f"Error: File not found: {args.program}", file=sys.stderr)
        return EXIT_ERROR
    except OSError as e:
        print(f"Error reading {args.program}: {e}", file=sys.stderr)
        return EXIT_ERROR

    if args.tokens:
        for tok in tokenize(source):
            print(tok)
        return EXIT_OK

    try:
        assembler = Assembler()
        program = assembler.assemble(source)
    except AssemblerError as e:
        print(f"Assembler error: {e}", file=sys.stderr)
        if e.line_text:
            print(f"    {e.line_text.strip()}", file=sys.stderr)
        return EXIT_ERROR

    log.debug("Program: %s (%d instructions)", args.program, len(program))

    if args.listing:
        print(assembler.get_listing())
        return EXIT_OK

    input_file = None
    if args.input:
        try:
            input_file = open(args.input, "r", encoding="utf-8")
        except OSError as e:
            print(f"Error reading {args.input}: {e}", file=sys.stderr)
            return EXIT_ERROR

    try:
        machine = Machine(program, input_stream=input_file, output_stream=sys.stdout)
        max_steps = args.max_steps if args.max_steps > 0 else None
        reason = _run(machine, max_steps, args.trace)
    except MachineError as e:
        print(f"Runtime error: {e}", file=sys.stderr)
        return EXIT_ERROR
    except Exception as e:
        print(f"Internal simulator error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return EXIT_INTERNAL
    finally:
        if input_file is not None:
            input_file.close()

    if args.registers:
        print(machine.registers.display())

    if reason is StopReason.TIMEOUT:
        print(f"Stopped: step limit of {max_steps} reached at instruction "
              f"{machine.pointer}", file=sys.stderr)
        return EXIT_TIMEOUT
    return EXIT_OK


def _run(machine: Machine, max_steps, trace: bool) -> StopReason:
    """Run the machine, printing a trace line after each step if asked."""
    if not trace:
        return machine.run(max_steps=max_steps)

    count = 0
    while max_steps is None or count < max_steps:
        executed = machine.step()
        if executed is None:
            return machine.stop_reason
        print(f"Executed: {executed}", flush=True)
        count += 1
    if not machine.halted and machine.pointer >= len(machine.instructions):
        machine.step()
    return machine.stop_reason if machine.halted else StopReason.TIMEOUT


if __name__ == "__main__":
    sys.exit(main())
