#!/usr/bin/env python3
import sys
import logging
import argparse

from machine import Machine, BFError, DEFAULT_TAPE_SIZE, INSTRUCTION_CHARS
from debugger import Debugger

logger = logging.getLogger("bfi")


def filter_source(text):
    return [c for c in text if c in INSTRUCTION_CHARS]


def read_source(filename):
    # Comments may hold any bytes; only the instruction chars matter
    with open(filename, 'r', encoding='utf-8', errors='replace') as f:
        return f.read()


def build_parser():
    parser = argparse.ArgumentParser(prog="bfi", description="An experimental Brainfuck interpreter")
    parser.add_argument("--version", action="version", version="%(prog)s 1.1.0")
    parser.add_argument("file", metavar="FILE", help="The file to execute")
    parser.add_argument("-o", "--optimise", action="store_true",
                        help="Optimise the program before running")
    parser.add_argument("-s", "--step", action="store_true",
                        help="Execute the program step by step")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Use verbose output")
    parser.add_argument("-e", "--emit", metavar="FILE",
                        help="Emits the intermediate representation of the program to the given FILE")
    parser.add_argument("-t", "--tape-size", type=int, default=DEFAULT_TAPE_SIZE,
                        help=f"Number of tape cells (default: {DEFAULT_TAPE_SIZE})")
    parser.add_argument("--no-color", action="store_true",
                        help="Disable colors in step mode")
    return parser


def emit_ir(machine, path):
    logger.info("Emitting intermediate representation to '%s'...", path)
    try:
        with open(path, 'w') as f:
            f.write(machine.intermediate_representation())
    except OSError as e:
        logger.warning("Error writing intermediate representation file: %s", e)


def main(argv=None, stdin=None, stdout=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    if args.tape_size < 1:
        logger.error("Tape size must be at least 1")
        return 1

    logger.info("Reading raw program from '%s'...", args.file)
    try:
        raw_program = filter_source(read_source(args.file))
    except OSError as e:
        logger.error("File '%s' could not be read: %s", args.file, e)
        return 1

    stdin = stdin if stdin is not None else sys.stdin.buffer
    stdout = stdout if stdout is not None else sys.stdout
    machine = Machine(args.tape_size, input_stream=stdin, output_stream=stdout)

    logger.info("Processing raw program...")
    try:
        machine.load_program(raw_program, args.optimise)
    except BFError as e:
        logger.error("%s", e)
        return 1

    logger.info("Original program size: %d instructions", len(raw_program))
    logger.info("Processed program size: %d instructions", len(machine.current_program()))

    if args.emit:
        emit_ir(machine, args.emit)

    try:
        if args.step:
            Debugger(machine, out=stdout, confirm=stdin, color=not args.no_color).run()
        else:
            machine.run()
    except BFError as e:
        stdout.flush()
        logger.error("%s", e)
        return 1

    logger.info("Execution finished after %d steps", machine.step_count)
    return 0


if __name__ == '__main__':
    sys.exit(main())
