"""
regvm Assembler
================
Translates line-oriented assembly text into a list of Instruction records
(see isa.py) that the Machine executes directly.

Supports:
  - Labels ('name:' at the start of a statement names the next
    instruction; it may stand alone or precede the instruction)
  - Several statements per line, separated by ';'
  - Comments ('//' to end of line)
  - Operands: registers A-E, decimal bytes, 'c' character literals,
    [N] absolute and [R] register-indirect memory references
  - Jump targets given as a numeric instruction index or a label

Usage:
  from asm import assemble
  program = assemble(source_text)
"""

from __future__ import annotations

from isa import (
    ARITY, BYTE_MASK, REG_INDEX, Addr, Instruction, Lit, Mem, Reg, is_decimal,
)

COMMENT = "//"
SEPARATOR = ";"
NO_NEWLINE = "-N"

# ---------------------------------------------------------------------------
#  Assembler errors
# ---------------------------------------------------------------------------

class AsmError(Exception):
    def __init__(self, line: int, msg: str):
        self.line = line
        super().__init__(f"Line {line}: {msg}")


class UnresolvedLabelError(AsmError):
    def __init__(self, line: int, label: str, text: str):
        self.label = label
        super().__init__(line, f"Unresolved label {label!r}: {text!r}")

# ---------------------------------------------------------------------------
#  Operand parsers
# ---------------------------------------------------------------------------

def _parse_reg(tok: str) -> Reg:
    """Parse 'A'-'E'."""
    if tok in REG_INDEX:
        return Reg(REG_INDEX[tok])
    raise ValueError(f"Unknown register: {tok!r}")


def _parse_byte(tok: str) -> int:
    """Parse a decimal byte literal 0..255."""
    if is_decimal(tok):
        v = int(tok)
        if v <= BYTE_MASK:
            return v
    raise ValueError(f"Invalid byte literal: {tok!r}")


def _parse_mem(tok: str) -> Mem:
    """Parse '[N]' or '[R]'."""
    if not (len(tok) >= 2 and tok.startswith("[") and tok.endswith("]")):
        raise ValueError(f"Invalid memory reference: {tok!r}")
    inner = tok[1:-1]
    if inner.isalpha():
        return Mem(_parse_reg(inner))
    try:
        return Mem(Addr(_parse_byte(inner)))
    except ValueError:
        raise ValueError(f"Invalid memory address: {tok!r}") from None


def _parse_source(tok: str):
    """Parse any Source operand: register, memory, char or byte literal."""
    if tok in REG_INDEX:
        return Reg(REG_INDEX[tok])
    if tok.startswith("["):
        return _parse_mem(tok)
    if len(tok) == 3 and tok[0] == "'" and tok[2] == "'":
        code = ord(tok[1])
        if code > BYTE_MASK:
            raise ValueError(f"Invalid character literal: {tok!r}")
        return Lit(code)
    return Lit(_parse_byte(tok))


def _resolve_target(tok: str, labels: dict[str, int], lineno: int,
                    text: str) -> int:
    """Resolve a jump target: numeric instruction index first, then label."""
    if is_decimal(tok):
        return int(tok)
    if tok in labels:
        return labels[tok]
    raise UnresolvedLabelError(lineno, tok, text)

# ---------------------------------------------------------------------------
#  Source splitting
# ---------------------------------------------------------------------------

def split_statements(raw: str) -> list[str]:
    """Strip the comment from one source line and split it into statements."""
    cut = raw.find(COMMENT)
    if cut >= 0:
        raw = raw[:cut]
    return [s.strip() for s in raw.split(SEPARATOR) if s.strip()]

# ---------------------------------------------------------------------------
#  Assembler
# ---------------------------------------------------------------------------

def assemble(source: str, listing: bool = False) -> list[Instruction]:
    """
    Two-pass assembler.
    Pass 1: collect labels, number the instructions.
    Pass 2: build Instruction records with labels resolved.
    If listing=True, print an index/source listing to stdout.
    """

    # ---- Pass 1: label collection ----
    labels: dict[str, int] = {}
    queued: list[tuple[int, str]] = []  # (line_no, text)

    for lineno, raw in enumerate(source.split("\n"), 1):
        for text in split_statements(raw):
            tokens = text.split()
            # Leading "name:" tokens label the next instruction
            while tokens and tokens[0].endswith(":"):
                lbl = tokens.pop(0)[:-1]
                if not lbl:
                    raise AsmError(lineno, f"Invalid label: {text!r}")
                if lbl in labels:
                    raise AsmError(lineno, f"Duplicate label: {lbl!r}")
                labels[lbl] = len(queued)
            if tokens:
                queued.append((lineno, " ".join(tokens)))

    # ---- Pass 2: decode ----
    program = [_build_instruction(lineno, text, labels)
               for lineno, text in queued]

    if listing:
        addr_labels: dict[int, list[str]] = {}
        for lbl, idx in labels.items():
            addr_labels.setdefault(idx, []).append(lbl)
        for idx, insn in enumerate(program):
            for lbl in addr_labels.pop(idx, []):
                print(f"        {lbl}:")
            print(f"  {idx:04d}  {insn.text}")
        # Labels bound past the last instruction
        for idx in sorted(addr_labels):
            for lbl in addr_labels[idx]:
                print(f"        {lbl}:")

    return program

# ---------------------------------------------------------------------------
#  Instruction decoding (pass 2)
# ---------------------------------------------------------------------------

def _build_instruction(lineno: int, text: str,
                       labels: dict[str, int]) -> Instruction:
    """Decode one statement into an Instruction."""
    parts = text.split()
    mnem, ops = parts[0], parts[1:]

    if mnem not in ARITY:
        raise AsmError(lineno, f"Unknown instruction: {text!r}")

    expected = ARITY[mnem]
    if mnem in ("PRINT", "PRINTCH") and len(ops) == 2:
        if ops[1] != NO_NEWLINE:
            raise AsmError(lineno, f"Expected {NO_NEWLINE} option: {text!r}")
    elif len(ops) != expected:
        raise AsmError(lineno, f"{mnem} takes {expected} operand(s), "
                               f"got {len(ops)}: {text!r}")

    try:
        args = _decode_operands(mnem, ops, labels, lineno, text)
    except ValueError as e:
        raise AsmError(lineno, f"{e}: {text!r}") from None
    return Instruction(mnem, args, lineno, text)


def _decode_operands(mnem: str, ops: list[str], labels: dict[str, int],
                     lineno: int, text: str) -> tuple:
    # reg, src
    if mnem in ("MOV", "ADD", "SUB", "MUL", "DIV", "MOD", "CMP"):
        return (_parse_reg(ops[0]), _parse_source(ops[1]))

    if mnem == "STORE":
        return (_parse_reg(ops[0]), _parse_mem(ops[1]).target)

    if mnem == "MULH":
        return tuple(_parse_reg(t) for t in ops)

    if mnem in ("JMP", "JZ", "JNZ"):
        return (_resolve_target(ops[0], labels, lineno, text),)

    if mnem == "LOOP":
        return (_resolve_target(ops[0], labels, lineno, text),
                _parse_reg(ops[1]))

    if mnem in ("PRINT", "PRINTCH"):
        return (_parse_reg(ops[0]), len(ops) == 1)

    if mnem in ("INPUT", "INKEY", "RAND"):
        return (_parse_reg(ops[0]),)

    if mnem == "DRAW":
        return tuple(_parse_source(t) for t in ops)

    if mnem == "SLP":
        if not is_decimal(ops[0]):
            raise ValueError(f"Invalid duration: {ops[0]!r}")
        return (int(ops[0]),)

    # CLS, CTS, RENDER, HALT
    return ()
