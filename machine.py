"""
regvm Execution Engine
=======================
Executes an assembled program (a list of isa.Instruction) against five
byte registers A-E, 256 bytes of memory, a zero flag and an 80x25
character screen.

The fetch/decode/execute loop reads the instruction at PC, dispatches on
its mnemonic and advances PC by one.  JMP / JZ / JNZ / LOOP set PC
themselves.  HALT, or running past the last instruction, ends the run.

Arithmetic is unsigned and wraps modulo 256.  Division or modulo by zero
and malformed INPUT are fatal: the error propagates out of run().
"""

from __future__ import annotations
import sys
import time
from typing import Callable, Optional, Sequence, TextIO

from devices import Keyboard, LineInput, RandomSource
from display import CLEAR_TERMINAL, Screen
from isa import (
    BYTE_MASK, MEM_SIZE, NUM_REGS, REG_NAMES, Addr, Instruction, Lit, Mem,
    Reg, is_decimal,
)

# ---------------------------------------------------------------------------
#  Errors
# ---------------------------------------------------------------------------

class MachineError(Exception):
    """Base for fatal runtime errors."""

    def __init__(self, message: str, insn: Optional[Instruction] = None,
                 pc: Optional[int] = None):
        self.insn = insn
        self.pc = pc
        if insn is not None and insn.lineno:
            message = f"{message} (line {insn.lineno}: {insn.text!r})"
        super().__init__(message)

class DivideByZeroError(MachineError):
    pass

class InputError(MachineError):
    pass

class HaltError(MachineError):
    pass

# ---------------------------------------------------------------------------
#  Machine
# ---------------------------------------------------------------------------

class Machine:
    """One run of one program.  Holds all machine state; no globals."""

    def __init__(self, program: Sequence[Instruction] = (),
                 out: TextIO | None = None,
                 line_input: LineInput | None = None,
                 keyboard: Keyboard | None = None,
                 rng: RandomSource | None = None,
                 sleep: Callable[[float], None] = time.sleep,
                 screen: Screen | None = None,
                 trace: TextIO | None = None):
        self.regs: list[int] = [0] * NUM_REGS
        self.mem = bytearray(MEM_SIZE)
        self.program: tuple[Instruction, ...] = tuple(program)
        self.pc: int = 0
        self.zf: bool = False
        self.screen = screen if screen is not None else Screen()

        # Peripherals
        self.out = out
        self.line_input = line_input if line_input is not None else LineInput()
        self.keyboard = keyboard if keyboard is not None else Keyboard()
        self.rng = rng if rng is not None else RandomSource()
        self.sleep = sleep
        self.trace = trace

        # State
        self.halted: bool = False   # HALT executed
        self.steps: int = 0

    def load_program(self, program: Sequence[Instruction]):
        self.program = tuple(program)
        self.pc = 0
        self.halted = False

    @property
    def finished(self) -> bool:
        """HALT executed or PC ran past the end of the program."""
        return self.halted or self.pc >= len(self.program)

    # -- Operand resolution --

    def address(self, target) -> int:
        """Memory address named by a MemSrc (Addr or register-indirect Reg)."""
        if isinstance(target, Addr):
            return target.value
        return self.regs[target.index]

    def resolve(self, src) -> int:
        """Byte value of a Source.  Pure: safe to call more than once."""
        if isinstance(src, Lit):
            return src.value
        if isinstance(src, Reg):
            return self.regs[src.index]
        if isinstance(src, Mem):
            return self.mem[self.address(src.target)]
        raise TypeError(f"Not an operand: {src!r}")

    # -- Output --

    def _write(self, text: str):
        out = self.out if self.out is not None else sys.stdout
        out.write(text)
        out.flush()

    # =====================================================================
    #  Fetch, decode, execute
    # =====================================================================

    def step(self):
        """Execute one instruction."""
        if self.halted:
            raise HaltError("Machine is halted")
        if self.pc >= len(self.program):
            raise HaltError(f"PC {self.pc} is past the end of the program")

        insn = self.program[self.pc]
        if self.trace is not None:
            print(f"[trace] {self.pc:04d}: {insn}", file=self.trace)

        op = insn.op
        a = insn.args

        if op in ("ADD", "SUB", "MUL", "DIV", "MOD"):
            self._exec_arith(insn)
        elif op == "MOV":
            v = self.resolve(a[1])
            self.regs[a[0].index] = v
            self.zf = v == 0
        elif op == "STORE":
            self.mem[self.address(a[1])] = self.regs[a[0].index]
        elif op == "MULH":
            product = self.regs[a[1].index] * self.regs[a[2].index]
            high = (product >> 8) & BYTE_MASK
            self.regs[a[0].index] = high
            self.zf = high == 0
        elif op == "CMP":
            self.zf = self.regs[a[0].index] == self.resolve(a[1])
        elif op == "JMP":
            self.pc = a[0]
        elif op == "JZ":
            self.pc = a[0] if self.zf else self.pc + 1
        elif op == "JNZ":
            self.pc = a[0] if not self.zf else self.pc + 1
        elif op == "LOOP":
            self.pc = a[0] if self.regs[a[1].index] != 0 else self.pc + 1
        elif op == "PRINT":
            self._write(f"{self.regs[a[0].index]}" + ("\n" if a[1] else ""))
        elif op == "PRINTCH":
            self._write(chr(self.regs[a[0].index]) + ("\n" if a[1] else ""))
        elif op == "INPUT":
            self._exec_input(insn)
        elif op == "INKEY":
            v = self.keyboard.read_key() & BYTE_MASK
            self.regs[a[0].index] = v
            self.zf = v == 0
        elif op == "RAND":
            self.regs[a[0].index] = self.rng.next_byte() & BYTE_MASK
        elif op == "DRAW":
            x, y, ch = (self.resolve(s) for s in a)
            self.screen.put(x, y, ch)
        elif op == "CLS":
            self.screen.clear()
        elif op == "CTS":
            self._write(CLEAR_TERMINAL)
        elif op == "RENDER":
            self._write(self.screen.render())
        elif op == "SLP":
            self.sleep(a[0] / 1000.0)
        elif op == "HALT":
            self.halted = True
        else:
            raise MachineError(f"Unknown instruction {op!r}", insn, self.pc)

        if not insn.is_control and not self.halted:
            self.pc += 1
        self.steps += 1

    # =====================================================================
    #  Executors
    # =====================================================================

    def _exec_arith(self, insn: Instruction):
        reg, src = insn.args
        a = self.regs[reg.index]
        if insn.op in ("DIV", "MOD") and self.resolve(src) == 0:
            raise DivideByZeroError("Division by zero", insn, self.pc)
        b = self.resolve(src)

        if insn.op == "ADD":
            r = (a + b) & BYTE_MASK
        elif insn.op == "SUB":
            r = (a - b) & BYTE_MASK
        elif insn.op == "MUL":
            r = (a * b) & BYTE_MASK
        elif insn.op == "DIV":
            r = a // b
        else:  # MOD
            r = a % b
        self.regs[reg.index] = r
        self.zf = r == 0

    def _exec_input(self, insn: Instruction):
        reg = insn.args[0]
        self._write(f"INPUT {REG_NAMES[reg.index]}: ")
        text = self.line_input.readline().strip()

        if is_decimal(text) and int(text) <= BYTE_MASK:
            value = int(text)
        elif len(text) == 1 and ord(text) <= BYTE_MASK:
            value = ord(text)
        elif not text:
            self.zf = True
            value = 0
        else:
            raise InputError(
                f"Invalid input {text!r}: expected a number or single character",
                insn, self.pc)
        self.regs[reg.index] = value

    # -- Run loop --

    def run(self, max_steps: Optional[int] = None) -> int:
        """Run until HALT, the end of the program, or max_steps.

        Returns the number of instructions executed by this call.
        """
        start = self.steps
        while not self.finished:
            if max_steps is not None and self.steps - start >= max_steps:
                break
            self.step()
        return self.steps - start

    # -- Debug / introspection --

    def reg(self, name: str) -> int:
        return self.regs[REG_NAMES.index(name)]

    def dump_regs(self) -> str:
        regs = "  ".join(f"{n}={v:3d}" for n, v in zip(REG_NAMES, self.regs))
        return (f"  {regs}\n"
                f"  PC={self.pc}  ZF={self.zf}  halted={self.halted}  "
                f"program length={len(self.program)}")

    def dump_mem(self, width: int = 16) -> str:
        lines = []
        for base in range(0, MEM_SIZE, width):
            row = self.mem[base:base + width]
            lines.append(f"  {base:02X}: " + " ".join(f"{b:02X}" for b in row))
        return "\n".join(lines)
