"""
regvm Instruction Set
======================
Register names, operand kinds and the instruction record shared by the
assembler (asm.py) and the execution engine (machine.py).

Operands:
  Reg(n)          register A..E (index 0..4)
  Lit(v)          byte literal 0..255
  Mem(Addr(n))    memory at absolute address n
  Mem(Reg(n))     memory at the address held in register n

Instructions are immutable; the engine never modifies them.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Union

# ---------------------------------------------------------------------------
#  Constants
# ---------------------------------------------------------------------------

REG_NAMES = ("A", "B", "C", "D", "E")
REG_INDEX = {name: i for i, name in enumerate(REG_NAMES)}
NUM_REGS = len(REG_NAMES)

MEM_SIZE = 256
BYTE_MASK = 0xFF

# Mnemonics that set the program counter themselves
CONTROL_OPS = frozenset({"JMP", "JZ", "JNZ", "LOOP"})

# Mnemonic → operand count.  PRINT/PRINTCH take an optional "-N" as well.
ARITY = {
    "MOV": 2, "STORE": 2,
    "ADD": 2, "SUB": 2, "MUL": 2, "DIV": 2, "MOD": 2,
    "MULH": 3,
    "JMP": 1, "JZ": 1, "JNZ": 1, "LOOP": 2,
    "PRINT": 1, "PRINTCH": 1,
    "INPUT": 1, "INKEY": 1, "RAND": 1,
    "DRAW": 3, "SLP": 1, "CMP": 2,
    "CLS": 0, "CTS": 0, "RENDER": 0, "HALT": 0,
}

# ---------------------------------------------------------------------------
#  Operands
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Reg:
    index: int

    def __str__(self) -> str:
        return REG_NAMES[self.index]


@dataclass(frozen=True)
class Lit:
    value: int

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Addr:
    value: int

    def __str__(self) -> str:
        return str(self.value)


MemSrc = Union[Addr, Reg]


@dataclass(frozen=True)
class Mem:
    target: MemSrc

    def __str__(self) -> str:
        return f"[{self.target}]"


Source = Union[Reg, Mem, Lit]


def is_decimal(tok: str) -> bool:
    """ASCII decimal digits only; str.isdigit() also accepts other scripts."""
    return tok.isascii() and tok.isdigit()

# ---------------------------------------------------------------------------
#  Instruction
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Instruction:
    """One decoded statement.

    ``args`` holds the operands in source order, already typed:
    registers as ``Reg``, sources as ``Reg``/``Mem``/``Lit``, jump targets
    and SLP durations as ``int``, the PRINT newline switch as ``bool``.
    ``lineno`` and ``text`` point back at the source for diagnostics.
    """
    op: str
    args: tuple = ()
    lineno: int = 0
    text: str = ""

    @property
    def is_control(self) -> bool:
        return self.op in CONTROL_OPS

    def __str__(self) -> str:
        if self.text:
            return self.text
        parts = [self.op]
        for a in self.args:
            if isinstance(a, bool):
                if not a:
                    parts.append("-N")
            else:
                parts.append(str(a))
        return " ".join(parts)
