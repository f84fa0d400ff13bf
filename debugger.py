#!/usr/bin/env python3
import sys

DUMP_CELLS = 32


class Colors:
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'
    REVERSE = '\033[7m'


class Debugger:
    """
    Single-step control loop layered over a Machine.

    Each step executes one instruction, prints the machine state and then
    blocks for one confirmation line before continuing.
    """

    def __init__(self, machine, out=None, confirm=None, color=True):
        self.machine = machine
        self.out = out if out is not None else sys.stdout
        self.confirm = confirm if confirm is not None else sys.stdin.buffer
        self.color = color

    def _c(self, code):
        return code if self.color else ''

    def _print(self, text=''):
        self.out.write(text + '\n')

    def format_tape(self, count=DUMP_CELLS):
        m = self.machine
        cells = []
        for i, val in enumerate(m.tape_window(0, count)):
            val_str = f"{val:03}"
            if i == m.data_pointer:
                val_str = f"{self._c(Colors.REVERSE)}[{val_str}]{self._c(Colors.ENDC)}"
            cells.append(val_str)
        return ' '.join(cells)

    def print_state(self):
        m = self.machine
        self._print(f"{self._c(Colors.BOLD)}--- Step {m.step_count} ---{self._c(Colors.ENDC)}")
        self._print(f"{self._c(Colors.CYAN)}Tape:{self._c(Colors.ENDC)} {self.format_tape()}")
        self._print(f"DP: {m.data_pointer}")
        self._print(f"IP: {m.instruction_pointer}")

        # Code around the instruction pointer
        context_window = 2
        start_op = max(0, m.instruction_pointer - context_window)
        end_op = min(len(m.program), m.instruction_pointer + context_window + 1)
        for i in range(start_op, end_op):
            op_str = str(m.program[i])
            if i == m.instruction_pointer:
                self._print(f"{self._c(Colors.GREEN)}-> {i:04}: {op_str}{self._c(Colors.ENDC)}")
            else:
                self._print(f"   {i:04}: {op_str}")
        self.out.flush()

    def run(self):
        """Returns True if the program ran to completion."""
        m = self.machine
        while not m.has_program_ended():
            m.step()
            self.print_state()
            self.out.write(f"{self._c(Colors.BLUE)}(bfi-step){self._c(Colors.ENDC)} ")
            self.out.flush()
            if not self.confirm.readline():
                self._print()
                return False
        return True


def main(argv=None, stdin=None, stdout=None):
    """Shortcut for `bfi --step`."""
    import bfi
    argv = sys.argv[1:] if argv is None else argv
    return bfi.main(["--step"] + list(argv), stdin=stdin, stdout=stdout)


if __name__ == '__main__':
    sys.exit(main())
