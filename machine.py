import sys
import logging
from enum import Enum

logger = logging.getLogger(__name__)

DEFAULT_TAPE_SIZE = 30000
CELL_MODULUS = 256
INSTRUCTION_CHARS = frozenset('><+-[],.')


class BFError(Exception):
    pass


class LoadError(BFError):
    pass


class UnbalancedLoops(LoadError):
    def __init__(self, index):
        super().__init__(f"Unbalanced loops detected at instruction {index}")
        self.index = index


class UnknownToken(LoadError):
    def __init__(self, token, position):
        super().__init__(f"Unknown token '{token}' at position {position}")
        self.token = token
        self.position = position


class ExecutionError(BFError):
    pass


class InputExhausted(ExecutionError):
    def __init__(self, instruction_pointer):
        super().__init__(f"Input exhausted at instruction {instruction_pointer}")
        self.instruction_pointer = instruction_pointer


class MissingJumpTarget(ExecutionError):
    def __init__(self, instruction_pointer):
        super().__init__(
            f"Could not find jump target for instruction pointer '{instruction_pointer}'")
        self.instruction_pointer = instruction_pointer


class ProgramEnded(ExecutionError):
    pass


class Op(Enum):
    MOVE_RIGHT = '>'
    MOVE_LEFT = '<'
    INCREMENT = '+'
    DECREMENT = '-'
    CLEAR = '[-]'
    LOOP_START = '['
    LOOP_END = ']'
    READ = ','
    WRITE = '.'


LOOP_OPS = (Op.LOOP_START, Op.LOOP_END)


class Instruction:
    def __init__(self, op, count=1, jump_target=None):
        self.op = op
        self.count = count
        self.jump_target = jump_target

    def __eq__(self, other):
        if not isinstance(other, Instruction):
            return NotImplemented
        return (self.op, self.count, self.jump_target) == (other.op, other.count, other.jump_target)

    def __repr__(self):
        char = self.op.value
        if self.op in LOOP_OPS:
            target = '?' if self.jump_target is None else self.jump_target
            return f"{char} (target: {target})"
        if self.count > 1:
            return f"{char} x{self.count}"
        return f"{char}"


def parse_program(source, optimise=False):
    """
    Encode filtered source characters into a list of Instructions.

    With optimise, runs of > < + - collapse into one instruction carrying
    the run length and '[-]' becomes a single CLEAR. Counts are kept as is;
    wrapping happens at execution time.
    Loop instructions come back with jump_target = None.
    """
    code = ''.join(source)
    ops = []

    i = 0
    while i < len(code):
        c = code[i]
        if c in '+-><':
            count = 1
            if optimise:
                while i + 1 < len(code) and code[i+1] == c:
                    i += 1
                    count += 1
            ops.append(Instruction(Op(c), count))
        elif c == '[':
            if optimise and code[i+1:i+3] == '-]':
                ops.append(Instruction(Op.CLEAR))
                i += 2
            else:
                ops.append(Instruction(Op.LOOP_START))
        elif c == ']':
            ops.append(Instruction(Op.LOOP_END))
        elif c in ',.':
            ops.append(Instruction(Op(c)))
        else:
            raise UnknownToken(c, i)
        i += 1

    return ops


def resolve_jumps(ops):
    """
    Patch every loop instruction with the index to jump to when its
    condition fails: past the matching ']' for '[', just after the
    matching '[' for ']'.
    """
    loop_stack = []

    for i, op in enumerate(ops):
        if op.op == Op.LOOP_START:
            loop_stack.append(i)
        elif op.op == Op.LOOP_END:
            if not loop_stack:
                raise UnbalancedLoops(i)
            start = loop_stack.pop()
            ops[start].jump_target = i + 1
            op.jump_target = start + 1

    if loop_stack:
        raise UnbalancedLoops(loop_stack[-1])

    return ops


class Machine:
    def __init__(self, tape_size=DEFAULT_TAPE_SIZE, input_stream=None, output_stream=None):
        if tape_size < 1:
            raise ValueError(f"Tape size must be at least 1, got {tape_size}")
        self.program = []
        self.tape = bytearray(tape_size)
        self.instruction_pointer = 0
        self.data_pointer = 0
        self.step_count = 0
        self.input_stream = input_stream
        self.output_stream = output_stream

    def load_program(self, source, optimise=False):
        # Resolve before assigning so a failed load leaves the current program untouched
        ops = resolve_jumps(parse_program(source, optimise))
        self.program = ops
        self.instruction_pointer = 0
        self.step_count = 0
        logger.debug("Loaded %d instructions (optimise=%s)", len(ops), optimise)

    def current_program(self):
        return self.program

    def intermediate_representation(self):
        return ''.join(f"{i:04}: {op}\n" for i, op in enumerate(self.program))

    def tape_window(self, start, count):
        return list(self.tape[start:start + count])

    def has_program_ended(self):
        return self.instruction_pointer >= len(self.program)

    def run(self):
        """Step until the program ends. Returns the number of steps taken."""
        steps = 0
        while not self.has_program_ended():
            self.step()
            steps += 1
        return steps

    def step(self):
        if self.has_program_ended():
            raise ProgramEnded(f"No instruction at {self.instruction_pointer}")

        op = self.program[self.instruction_pointer]
        kind = op.op
        ptr = self.data_pointer

        if kind == Op.MOVE_RIGHT:
            self.data_pointer = (ptr + op.count) % len(self.tape)
            self.instruction_pointer += 1
        elif kind == Op.MOVE_LEFT:
            self.data_pointer = (ptr - op.count) % len(self.tape)
            self.instruction_pointer += 1
        elif kind == Op.INCREMENT:
            self.tape[ptr] = (self.tape[ptr] + op.count) % CELL_MODULUS
            self.instruction_pointer += 1
        elif kind == Op.DECREMENT:
            self.tape[ptr] = (self.tape[ptr] - op.count) % CELL_MODULUS
            self.instruction_pointer += 1
        elif kind == Op.CLEAR:
            self.tape[ptr] = 0
            self.instruction_pointer += 1
        elif kind == Op.LOOP_START:
            if self.tape[ptr] == 0:
                self.instruction_pointer = self._jump(op)
            else:
                self.instruction_pointer += 1
        elif kind == Op.LOOP_END:
            if self.tape[ptr] != 0:
                self.instruction_pointer = self._jump(op)
            else:
                self.instruction_pointer += 1
        elif kind == Op.READ:
            self.tape[ptr] = self._read_byte()
            self.instruction_pointer += 1
        elif kind == Op.WRITE:
            self._write_byte(self.tape[ptr])
            self.instruction_pointer += 1
        else:
            raise ExecutionError(f"Unknown instruction {op!r} at {self.instruction_pointer}")

        self.step_count += 1

    def _jump(self, op):
        if op.jump_target is None:
            raise MissingJumpTarget(self.instruction_pointer)
        return op.jump_target

    def _read_byte(self):
        stream = self.input_stream if self.input_stream is not None else sys.stdin.buffer
        data = stream.read(1)
        if not data:
            raise InputExhausted(self.instruction_pointer)
        return data[0]

    def _write_byte(self, value):
        stream = self.output_stream if self.output_stream is not None else sys.stdout
        stream.write(chr(value))
        stream.flush()
