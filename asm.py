"""
CHIP-8 / Super-Chip Assembler
==============================
Two-pass assembler producing raw big-endian CHIP-8 program images.

Pass 1 (process_line) splits each source line into labels, an operation
and up to three operands, and records a deferred instruction at the
current program counter.  Labels are bound when the next instruction is
recorded, so ``loop:`` on its own line names the following instruction.

Pass 2 (emit) evaluates operand expressions, which may refer to labels
defined anywhere in the source, and encodes the final opcodes.

Supports:
  - Labels (terminated with ':'), constants (``NAME = expr``)
  - Every CHIP-8 / Super-Chip mnemonic, matched case-insensitively
  - DB / DW data, DEFINE, OPTION
  - IFDEF / IFNDEF / ELSE / ENDIF conditional assembly (nestable)
  - Expressions: decimal, #hex, $binary ('.' counts as 0), identifiers,
    parentheses, | ^ & > < + - * / % and unary ~ -
  - Comments (';' to end of line)

Usage:
  from asm import assemble
  program = assemble(source_text)
"""

from __future__ import annotations
import logging
import re
from dataclasses import dataclass
from typing import Optional

from chip8 import Chip8Error, PROG_START, PROG_SIZE
from instruction import (
    Instruction, encode,
    OP_SCD, OP_CLS, OP_RET, OP_SCR, OP_SCL, OP_EXIT, OP_LOW, OP_HIGH,
    OP_JP, OP_CALL, OP_SE_BYTE, OP_SNE_BYTE, OP_SE_REG, OP_LD_BYTE,
    OP_ADD_BYTE, OP_LD_REG, OP_OR, OP_AND, OP_XOR, OP_ADD_REG, OP_SUB,
    OP_SHR, OP_SUBN, OP_SHL, OP_SNE_REG, OP_LD_I, OP_JP_V0, OP_RND, OP_DRW,
    OP_SKP, OP_SKNP, OP_LD_REG_DT, OP_LD_KEY, OP_LD_DT_REG, OP_LD_ST,
    OP_ADD_I, OP_LD_F, OP_LD_HF, OP_LD_B, OP_LD_DEREF_I_REG,
    OP_LD_REG_DEREF_I, OP_LD_R_REG, OP_LD_REG_R,
)

log = logging.getLogger(__name__)

MAX_OPERANDS = 3
STACK_SIZE = 100

# ---------------------------------------------------------------------------
#  Errors
# ---------------------------------------------------------------------------

class AsmError(Chip8Error):
    def __init__(self, line: int, msg: str):
        self.line = line
        self.msg = msg
        super().__init__(f"Line {line}: {msg}")

class EvalError(AsmError):
    """An operand expression could not be evaluated."""
    pass


# ---------------------------------------------------------------------------
#  Parser helpers
# ---------------------------------------------------------------------------

_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_REG_RE = re.compile(r"[Vv]([0-9A-Fa-f])")
_HEX_RE = re.compile(r"[0-9A-Fa-f]+")
_BIN_RE = re.compile(r"[01.]+")
_DEC_RE = re.compile(r"[0-9]+")


def register_num(name: str) -> Optional[int]:
    """'V0'-'VF' (either case) → register index, anything else → None."""
    m = _REG_RE.fullmatch(name)
    return int(m.group(1), 16) if m else None


def _parse_operand(text: str, pos: int) -> tuple[str, int]:
    """Read an operand up to ',', ';' or end of line (right-trimmed)."""
    end = pos
    while end < len(text) and text[end] not in ",;\n":
        end += 1
    return text[pos:end].rstrip(), end


def _skip_spaces(text: str, pos: int) -> int:
    while pos < len(text) and text[pos].isspace():
        pos += 1
    return pos


# ---------------------------------------------------------------------------
#  Expression evaluator (shunting-yard)
# ---------------------------------------------------------------------------

# '_' is unary minus on the operator stack
PRECEDENCE = {
    "|": 1,
    "^": 2,
    "&": 3,
    ">": 4, "<": 4,
    "+": 5, "-": 5,
    "*": 6, "/": 6, "%": 6,
    "~": 1000, "_": 1000,
}

UNARY_OPS = ("~", "_")


def _apply(op: str, nums: list[int], line: int):
    if op in UNARY_OPS:
        if not nums:
            raise EvalError(line, "expected argument to operator")
        a = nums.pop()
        nums.append((~a if op == "~" else -a) & 0xFFFF)
        return
    if len(nums) < 2:
        raise EvalError(line, "expected argument to operator")
    b = nums.pop()
    a = nums.pop()
    if op == "&":
        r = a & b
    elif op == "|":
        r = a | b
    elif op == "^":
        r = a ^ b
    elif op == ">":
        r = a >> b
    elif op == "<":
        r = a << b if b < 16 else 0
    elif op == "+":
        r = a + b
    elif op == "-":
        r = a - b
    elif op == "*":
        r = a * b
    elif op in "/%":
        if b == 0:
            raise EvalError(line, "division by zero")
        r = a // b if op == "/" else a % b
    else:
        raise EvalError(line, f"unknown operator '{op}'")
    nums.append(r & 0xFFFF)


def eval_expr(expr: str, labels: dict[str, int], line: int = 0) -> int:
    """Evaluate an operand expression to a 16-bit unsigned value.

    Identifiers resolve through ``labels``.  Raises EvalError on any
    malformed input.
    """
    ops: list[str] = []
    nums: list[int] = []
    expecting_num = True
    pos = _skip_spaces(expr, 0)

    def reduce_while(pred):
        while ops and pred(ops[-1]):
            _apply(ops.pop(), nums, line)

    while pos < len(expr):
        ch = expr[pos]
        if expecting_num and ch == "-":
            # right-associative: only pop strictly tighter operators
            p = PRECEDENCE["_"]
            reduce_while(lambda o: PRECEDENCE.get(o, -1) > p)
            ops.append("_")
            pos += 1
        elif ch == "#":
            m = _HEX_RE.match(expr, pos + 1)
            if not m:
                raise EvalError(line, "expected hexadecimal number")
            nums.append(int(m.group(), 16) & 0xFFFF)
            pos = m.end()
            expecting_num = False
        elif ch == "$":
            m = _BIN_RE.match(expr, pos + 1)
            if not m:
                raise EvalError(line, "expected binary number")
            nums.append(int(m.group().replace(".", "0"), 2) & 0xFFFF)
            pos = m.end()
            expecting_num = False
        elif _DEC_RE.match(expr, pos):
            m = _DEC_RE.match(expr, pos)
            nums.append(int(m.group()) & 0xFFFF)
            pos = m.end()
            expecting_num = False
        elif _IDENT_RE.match(expr, pos):
            m = _IDENT_RE.match(expr, pos)
            ident = m.group()
            if ident not in labels:
                raise EvalError(line, f"unknown identifier '{ident}'")
            nums.append(labels[ident] & 0xFFFF)
            pos = m.end()
            expecting_num = False
        elif ch == "(":
            ops.append(ch)
            pos += 1
            expecting_num = True
        elif ch == ")":
            reduce_while(lambda o: o != "(")
            if not ops:
                raise EvalError(line, "found ')' with no matching '('")
            ops.pop()
            pos += 1
            expecting_num = False
        elif ch == "~":
            if not expecting_num:
                raise EvalError(line, "did not expect unary operator '~'")
            p = PRECEDENCE["~"]
            reduce_while(lambda o: PRECEDENCE.get(o, -1) > p)
            ops.append(ch)
            pos += 1
        else:
            p = PRECEDENCE.get(ch, -1)
            if p < 0 or ch in UNARY_OPS:
                raise EvalError(line, f"unknown operator '{ch}'")
            reduce_while(lambda o: PRECEDENCE.get(o, -1) >= p)
            ops.append(ch)
            pos += 1
            expecting_num = True

        if len(ops) >= STACK_SIZE:
            raise EvalError(line, "operator stack overflowed (too many operators)")
        if len(nums) >= STACK_SIZE:
            raise EvalError(line, "number stack overflowed "
                                  "(too many numbers/identifiers)")
        pos = _skip_spaces(expr, pos)

    while ops:
        op = ops.pop()
        if op == "(":
            raise EvalError(line, "found '(' with no matching ')'")
        _apply(op, nums, line)

    if len(nums) != 1:
        raise EvalError(line, "expected operation")
    return nums[0]


# ---------------------------------------------------------------------------
#  Deferred instructions and output program
# ---------------------------------------------------------------------------

KIND_DB = "DB"
KIND_DW = "DW"
KIND_OP = "OP"


@dataclass
class Deferred:
    """An instruction recorded in pass 1, encoded in pass 2.

    For CHIP-8 ops, ``operands`` holds only the real operands: pseudo
    operands like I, DT, K or [I] are implied by ``op``.
    """
    kind: str
    pc: int
    line: int
    operands: tuple[str, ...]
    op: int = 0


class Program:
    """Assembled program image (everything from 0x200 up)."""

    def __init__(self):
        self.mem = bytearray(PROG_SIZE)
        self.length = 0

    def write(self, offset: int, data: bytes, line: int):
        if offset < 0 or offset + len(data) > PROG_SIZE:
            raise AsmError(line, "program is too large")
        self.mem[offset:offset + len(data)] = data
        self.length = max(self.length, offset + len(data))

    def opcode(self, offset: int) -> int:
        return (self.mem[offset] << 8) | self.mem[offset + 1]

    def __bytes__(self) -> bytes:
        return bytes(self.mem[:self.length])

    def __len__(self) -> int:
        return self.length


# ---------------------------------------------------------------------------
#  Mnemonic tables
# ---------------------------------------------------------------------------

# Mnemonics with a single form: name → (op, operand count)
FIXED_OPS = {
    "SCD":  (OP_SCD, 1),
    "CLS":  (OP_CLS, 0),
    "RET":  (OP_RET, 0),
    "SCR":  (OP_SCR, 0),
    "SCL":  (OP_SCL, 0),
    "EXIT": (OP_EXIT, 0),
    "LOW":  (OP_LOW, 0),
    "HIGH": (OP_HIGH, 0),
    "CALL": (OP_CALL, 1),
    "OR":   (OP_OR, 2),
    "AND":  (OP_AND, 2),
    "XOR":  (OP_XOR, 2),
    "SUB":  (OP_SUB, 2),
    "SUBN": (OP_SUBN, 2),
    "RND":  (OP_RND, 2),
    "DRW":  (OP_DRW, 3),
    "SKP":  (OP_SKP, 1),
    "SKNP": (OP_SKNP, 1),
}

# LD <special>, Vx
LD_FIRST = {
    "I": OP_LD_I, "DT": OP_LD_DT_REG, "ST": OP_LD_ST, "F": OP_LD_F,
    "HF": OP_LD_HF, "B": OP_LD_B, "[I]": OP_LD_DEREF_I_REG, "R": OP_LD_R_REG,
}

# LD Vx, <special>
LD_SECOND = {
    "DT": OP_LD_REG_DT, "K": OP_LD_KEY, "[I]": OP_LD_REG_DEREF_I,
    "R": OP_LD_REG_R,
}

# Operand shapes used when compiling in pass 2
_SHAPE_NONE = frozenset((OP_CLS, OP_RET, OP_SCR, OP_SCL, OP_EXIT, OP_LOW,
                         OP_HIGH))
_SHAPE_ADDR = frozenset((OP_JP, OP_CALL, OP_LD_I, OP_JP_V0))
_SHAPE_REG_BYTE = frozenset((OP_SE_BYTE, OP_SNE_BYTE, OP_LD_BYTE,
                             OP_ADD_BYTE, OP_RND))
_SHAPE_REG_REG = frozenset((OP_SE_REG, OP_LD_REG, OP_OR, OP_AND, OP_XOR,
                            OP_ADD_REG, OP_SUB, OP_SUBN, OP_SNE_REG))
_SHAPE_REG = frozenset((OP_SKP, OP_SKNP, OP_LD_REG_DT, OP_LD_KEY,
                        OP_LD_DT_REG, OP_LD_ST, OP_ADD_I, OP_LD_F, OP_LD_HF,
                        OP_LD_B, OP_LD_DEREF_I_REG, OP_LD_REG_DEREF_I,
                        OP_LD_R_REG, OP_LD_REG_R))


# ---------------------------------------------------------------------------
#  Assembler
# ---------------------------------------------------------------------------

class Assembler:
    """Stateful two-pass assembler.

    Feed source with process_line() (one call per line, in order), then
    call emit() to resolve operands and produce the program image.
    """

    def __init__(self, shift_quirks: bool = False):
        self.shift_quirks = shift_quirks
        self.labels: dict[str, int] = {}
        self.instructions: list[Deferred] = []
        self.pc = PROG_START
        self.line = 0
        self.line_label: Optional[str] = None
        self.if_level = 0
        self.if_skip_else = 0
        self.if_skip_endif = 0

    # -- Pass 1 --

    def process_line(self, text: str):
        """Process one source line.  Raises AsmError on a bad line."""
        self.line += 1
        pending = self.line_label
        try:
            self._process(text)
        except AsmError:
            # a rejected line must not leave its label behind
            self.line_label = pending
            raise

    def _process(self, text: str):
        pos = _skip_spaces(text, 0)
        op = None
        # labels inside a skipped conditional block are never bound
        skipping = not self.should_process
        label = self.line_label
        while True:
            m = _IDENT_RE.match(text, pos)
            if not m:
                break
            pos = m.end()
            if pos < len(text) and text[pos] == ":":
                if not skipping:
                    if label is not None:
                        raise AsmError(self.line,
                                       f"cannot associate more than one "
                                       f"label with a statement; already "
                                       f"found label '{label}'")
                    label = m.group()
                pos = _skip_spaces(text, pos + 1)
            else:
                op = m.group()
                break
        self.line_label = label

        if op is None:
            return

        pos = _skip_spaces(text, pos)
        is_assignment = False
        if pos < len(text) and text[pos] == "=":
            is_assignment = True
            pos = _skip_spaces(text, pos + 1)

        operands = self._parse_operands(text, pos)
        if is_assignment:
            self._process_assignment(op, operands)
        else:
            self._process_instruction(op, operands)

    def _parse_operands(self, text: str, pos: int) -> list[str]:
        operands: list[str] = []
        operand, pos = _parse_operand(text, pos)
        if not operand and not (pos < len(text) and text[pos] == ","):
            return operands
        if not operand:
            raise AsmError(self.line, "empty operand")
        operands.append(operand)
        while pos < len(text) and text[pos] == ",":
            operand, pos = _parse_operand(text, _skip_spaces(text, pos + 1))
            if not operand:
                raise AsmError(self.line, "empty operand")
            if len(operands) >= MAX_OPERANDS:
                raise AsmError(self.line, "too many operands")
            operands.append(operand)
        return operands

    @property
    def should_process(self) -> bool:
        return self.if_skip_else == 0 and self.if_skip_endif == 0

    def _expect(self, op: str, want: int, got: list[str]):
        if len(got) < want:
            raise AsmError(self.line, f"too few operands to {op}")
        if len(got) > want:
            raise AsmError(self.line, f"too many operands to {op}")

    def _process_assignment(self, name: str, operands: list[str]):
        if not self.should_process:
            return
        if len(operands) != 1:
            raise AsmError(self.line, "wrong number of operands given to '='")
        value = eval_expr(operands[0], self.labels, self.line)
        if name in self.labels:
            raise AsmError(self.line,
                           f"duplicate label or variable '{name}' found")
        self.labels[name] = value

    def _process_conditional(self, mnemonic: str, operands: list[str]) -> bool:
        """Handle IFDEF/IFNDEF/ELSE/ENDIF.  Runs even while skipping."""
        if mnemonic in ("IFDEF", "IFNDEF"):
            self._expect(mnemonic, 1, operands)
            self.if_level += 1
            defined = operands[0] in self.labels
            if self.should_process and defined != (mnemonic == "IFDEF"):
                self.if_skip_else = self.if_level
            return True
        if mnemonic == "ELSE":
            self._expect(mnemonic, 0, operands)
            if self.if_level == 0:
                raise AsmError(self.line, "unexpected ELSE")
            if self.if_level == self.if_skip_else:
                self.if_skip_else = 0
            elif self.should_process:
                self.if_skip_endif = self.if_level
            return True
        if mnemonic == "ENDIF":
            self._expect(mnemonic, 0, operands)
            if self.if_level == 0:
                raise AsmError(self.line, "unexpected ENDIF")
            if self.if_level == self.if_skip_else:
                self.if_skip_else = 0
            if self.if_level == self.if_skip_endif:
                self.if_skip_endif = 0
            self.if_level -= 1
            return True
        return False

    def _add_instruction(self, instr: Deferred):
        if self.line_label is not None:
            if self.line_label in self.labels:
                raise AsmError(self.line, f"duplicate label or variable "
                                          f"'{self.line_label}' found")
            self.labels[self.line_label] = instr.pc
            self.line_label = None
        self.instructions.append(instr)

    def _process_instruction(self, op: str, operands: list[str]):
        mnemonic = op.upper()
        if self._process_conditional(mnemonic, operands):
            return
        if not self.should_process:
            return

        if mnemonic == "DEFINE":
            self._expect(op, 1, operands)
            self.labels.setdefault(operands[0], 0)
            return
        if mnemonic in ("DB", "DW"):
            self._expect(op, 1, operands)
            self._add_instruction(Deferred(mnemonic, self.pc, self.line,
                                           (operands[0],)))
            self.pc += 1 if mnemonic == "DB" else 2
            return
        if mnemonic == "OPTION":
            self._expect(op, 1, operands)
            log.warning("Line %d: ignoring unrecognized option '%s'",
                        self.line, operands[0])
            return

        chip_op, args = self._select_form(op, mnemonic, operands)
        # CHIP-8 opcodes are word-aligned
        pc = (self.pc + 1) & ~1
        self._add_instruction(Deferred(KIND_OP, pc, self.line, args, chip_op))
        self.pc = pc + 2

    def _select_form(self, op: str, mnemonic: str,
                     operands: list[str]) -> tuple[int, tuple[str, ...]]:
        """Pick the concrete operation for a mnemonic and its operands."""
        if mnemonic in FIXED_OPS:
            chip_op, count = FIXED_OPS[mnemonic]
            self._expect(op, count, operands)
            return chip_op, tuple(operands)

        if mnemonic == "JP":
            if len(operands) == 1:
                return OP_JP, (operands[0],)
            if len(operands) == 2 and operands[0].upper() == "V0":
                return OP_JP_V0, (operands[1],)
            if len(operands) < 1:
                raise AsmError(self.line, f"too few operands to {op}")
            raise AsmError(self.line, f"invalid operands to {op}")

        if mnemonic in ("SE", "SNE"):
            self._expect(op, 2, operands)
            by_reg = register_num(operands[1]) is not None
            if mnemonic == "SE":
                return (OP_SE_REG if by_reg else OP_SE_BYTE), tuple(operands)
            return (OP_SNE_REG if by_reg else OP_SNE_BYTE), tuple(operands)

        if mnemonic == "LD":
            self._expect(op, 2, operands)
            first, second = operands[0].upper(), operands[1].upper()
            if first in LD_FIRST:
                return LD_FIRST[first], (operands[1],)
            if register_num(operands[1]) is not None:
                return OP_LD_REG, tuple(operands)
            if second in LD_SECOND:
                return LD_SECOND[second], (operands[0],)
            return OP_LD_BYTE, tuple(operands)

        if mnemonic == "ADD":
            self._expect(op, 2, operands)
            if operands[0].upper() == "I":
                return OP_ADD_I, (operands[1],)
            if register_num(operands[1]) is not None:
                return OP_ADD_REG, tuple(operands)
            return OP_ADD_BYTE, tuple(operands)

        if mnemonic in ("SHR", "SHL"):
            self._expect(op, 2 if self.shift_quirks else 1, operands)
            return (OP_SHR if mnemonic == "SHR" else OP_SHL), tuple(operands)

        raise AsmError(self.line, f"invalid instruction '{op}'")

    def eval_expr(self, expr: str, line: Optional[int] = None) -> int:
        """Evaluate ``expr`` against the labels defined so far."""
        return eval_expr(expr, self.labels, self.line if line is None else line)

    # -- Pass 2 --

    def _register(self, name: str, line: int) -> int:
        regno = register_num(name)
        if regno is None:
            raise AsmError(line, f"'{name}' is not the name of a register")
        return regno

    def _value(self, expr: str, line: int) -> int:
        try:
            return eval_expr(expr, self.labels, line)
        except EvalError as e:
            raise EvalError(line, f"could not evaluate operand '{expr}': "
                                  f"{e.msg}") from e

    def compile(self, instr: Deferred) -> int:
        """Resolve a deferred CHIP-8 op into its opcode."""
        op, args, line = instr.op, instr.operands, instr.line
        if op in _SHAPE_NONE:
            ci = Instruction(op)
        elif op == OP_SCD:
            ci = Instruction(op, nibble=self._value(args[0], line) & 0xF)
        elif op in _SHAPE_ADDR:
            ci = Instruction(op, addr=self._value(args[0], line) & 0xFFF)
        elif op in _SHAPE_REG_BYTE:
            ci = Instruction(op, vx=self._register(args[0], line),
                             byte=self._value(args[1], line) & 0xFF)
        elif op in _SHAPE_REG_REG:
            ci = Instruction(op, vx=self._register(args[0], line),
                             vy=self._register(args[1], line))
        elif op in (OP_SHR, OP_SHL):
            vy = self._register(args[1], line) if len(args) > 1 else 0
            ci = Instruction(op, vx=self._register(args[0], line), vy=vy)
        elif op in _SHAPE_REG:
            ci = Instruction(op, vx=self._register(args[0], line))
        elif op == OP_DRW:
            ci = Instruction(op, vx=self._register(args[0], line),
                             vy=self._register(args[1], line),
                             nibble=self._value(args[2], line) & 0xF)
        else:
            raise AsmError(line, "invalid operation")
        return encode(ci, self.shift_quirks)

    def emit(self, program: Optional[Program] = None) -> Program:
        """Pass 2: write every recorded instruction into ``program``."""
        if program is None:
            program = Program()
        for instr in self.instructions:
            offset = instr.pc - PROG_START
            if instr.kind == KIND_DB:
                value = self._value(instr.operands[0], instr.line)
                program.write(offset, bytes((value & 0xFF,)), instr.line)
            elif instr.kind == KIND_DW:
                value = self._value(instr.operands[0], instr.line)
                program.write(offset, value.to_bytes(2, "big"), instr.line)
            else:
                opcode = self.compile(instr)
                program.write(offset, opcode.to_bytes(2, "big"), instr.line)

        if self.if_level != 0:
            log.warning("Line %d: completed processing without finding "
                        "matching ENDIF", self.line)
        self.instructions.clear()
        log.info("Emitted %d bytes", program.length)
        return program


def assemble(source: str, shift_quirks: bool = False) -> bytes:
    """Assemble a whole source text and return the program bytes."""
    chipasm = Assembler(shift_quirks=shift_quirks)
    for text in source.splitlines():
        chipasm.process_line(text)
    return bytes(chipasm.emit())
