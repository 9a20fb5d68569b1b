"""
CHIP-8 / Super-Chip Instruction Codec
======================================
Bidirectional mapping between 16-bit opcodes and structured instructions.

Every opcode decodes to *something*: bit patterns that don't name a real
instruction become an ``OP_INVALID`` instruction carrying the raw word, so
that encode(decode(x)) == x holds for every 16-bit value and the
disassembler can print garbage as ``DW``.

Field layout (big-endian word):

    F   X   Y   N
    |   |   |___|__ kk   (low byte)
    |   |___________ nnn (low 12 bits)

Usage:
    from instruction import decode, encode, format_instruction
    instr = decode(0x6A2F)
    format_instruction(instr)        # 'LD VA, #2F'
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

# ---------------------------------------------------------------------------
#  Operation kinds
# ---------------------------------------------------------------------------

OP_INVALID        = 0
OP_SCD            = 1   # 00Cn
OP_CLS            = 2   # 00E0
OP_RET            = 3   # 00EE
OP_SCR            = 4   # 00FB
OP_SCL            = 5   # 00FC
OP_EXIT           = 6   # 00FD
OP_LOW            = 7   # 00FE
OP_HIGH           = 8   # 00FF
OP_JP             = 9   # 1nnn
OP_CALL           = 10  # 2nnn
OP_SE_BYTE        = 11  # 3xkk
OP_SNE_BYTE       = 12  # 4xkk
OP_SE_REG         = 13  # 5xy0
OP_LD_BYTE        = 14  # 6xkk
OP_ADD_BYTE       = 15  # 7xkk
OP_LD_REG         = 16  # 8xy0
OP_OR             = 17  # 8xy1
OP_AND            = 18  # 8xy2
OP_XOR            = 19  # 8xy3
OP_ADD_REG        = 20  # 8xy4
OP_SUB            = 21  # 8xy5
OP_SHR            = 22  # 8xy6
OP_SUBN           = 23  # 8xy7
OP_SHL            = 24  # 8xyE
OP_SNE_REG        = 25  # 9xy0
OP_LD_I           = 26  # Annn
OP_JP_V0          = 27  # Bnnn
OP_RND            = 28  # Cxkk
OP_DRW            = 29  # Dxyn
OP_SKP            = 30  # Ex9E
OP_SKNP           = 31  # ExA1
OP_LD_REG_DT      = 32  # Fx07
OP_LD_KEY         = 33  # Fx0A
OP_LD_DT_REG      = 34  # Fx15
OP_LD_ST          = 35  # Fx18
OP_ADD_I          = 36  # Fx1E
OP_LD_F           = 37  # Fx29
OP_LD_HF          = 38  # Fx30
OP_LD_B           = 39  # Fx33
OP_LD_DEREF_I_REG = 40  # Fx55
OP_LD_REG_DEREF_I = 41  # Fx65
OP_LD_R_REG       = 42  # Fx75
OP_LD_REG_R       = 43  # Fx85

OP_NAMES = {
    OP_INVALID: "INVALID", OP_SCD: "SCD", OP_CLS: "CLS", OP_RET: "RET",
    OP_SCR: "SCR", OP_SCL: "SCL", OP_EXIT: "EXIT", OP_LOW: "LOW",
    OP_HIGH: "HIGH", OP_JP: "JP", OP_CALL: "CALL", OP_SE_BYTE: "SE",
    OP_SNE_BYTE: "SNE", OP_SE_REG: "SE", OP_LD_BYTE: "LD",
    OP_ADD_BYTE: "ADD", OP_LD_REG: "LD", OP_OR: "OR", OP_AND: "AND",
    OP_XOR: "XOR", OP_ADD_REG: "ADD", OP_SUB: "SUB", OP_SHR: "SHR",
    OP_SUBN: "SUBN", OP_SHL: "SHL", OP_SNE_REG: "SNE", OP_LD_I: "LD",
    OP_JP_V0: "JP", OP_RND: "RND", OP_DRW: "DRW", OP_SKP: "SKP",
    OP_SKNP: "SKNP", OP_LD_REG_DT: "LD", OP_LD_KEY: "LD",
    OP_LD_DT_REG: "LD", OP_LD_ST: "LD", OP_ADD_I: "ADD", OP_LD_F: "LD",
    OP_LD_HF: "LD", OP_LD_B: "LD", OP_LD_DEREF_I_REG: "LD",
    OP_LD_REG_DEREF_I: "LD", OP_LD_R_REG: "LD", OP_LD_REG_R: "LD",
}

# Operations whose operand is a 12-bit address (rendered as a label when
# the address falls inside the program).
ADDR_OPS = frozenset((OP_JP, OP_CALL, OP_LD_I, OP_JP_V0))

# Conditional skips (the next instruction may not execute).
SKIP_OPS = frozenset((OP_SE_BYTE, OP_SNE_BYTE, OP_SE_REG, OP_SNE_REG,
                      OP_SKP, OP_SKNP))

# 0x0 family: low byte → op (00Cn handled separately)
_SYS_OPS = {
    0xE0: OP_CLS, 0xEE: OP_RET, 0xFB: OP_SCR, 0xFC: OP_SCL,
    0xFD: OP_EXIT, 0xFE: OP_LOW, 0xFF: OP_HIGH,
}

# 0x8 family: low nibble → op
_ALU_OPS = {
    0x0: OP_LD_REG, 0x1: OP_OR, 0x2: OP_AND, 0x3: OP_XOR,
    0x4: OP_ADD_REG, 0x5: OP_SUB, 0x6: OP_SHR, 0x7: OP_SUBN,
    0xE: OP_SHL,
}

# 0xF family: low byte → op
_MISC_OPS = {
    0x07: OP_LD_REG_DT, 0x0A: OP_LD_KEY, 0x15: OP_LD_DT_REG,
    0x18: OP_LD_ST, 0x1E: OP_ADD_I, 0x29: OP_LD_F, 0x30: OP_LD_HF,
    0x33: OP_LD_B, 0x55: OP_LD_DEREF_I_REG, 0x65: OP_LD_REG_DEREF_I,
    0x75: OP_LD_R_REG, 0x85: OP_LD_REG_R,
}

_SYS_CODES = {op: low for low, op in _SYS_OPS.items()}
_ALU_CODES = {op: n for n, op in _ALU_OPS.items()}
_MISC_CODES = {op: low for low, op in _MISC_OPS.items()}


# ---------------------------------------------------------------------------
#  Instruction
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Instruction:
    """One decoded instruction.

    Only the fields relevant to ``op`` are meaningful; the rest stay 0.
    ``opcode`` is the raw word of an ``OP_INVALID`` instruction.
    """
    op: int
    vx: int = 0
    vy: int = 0
    addr: int = 0
    byte: int = 0
    nibble: int = 0
    opcode: int = 0

    @property
    def name(self) -> str:
        return OP_NAMES[self.op]


def invalid(opcode: int) -> Instruction:
    return Instruction(OP_INVALID, opcode=opcode & 0xFFFF)


# ---------------------------------------------------------------------------
#  Decode
# ---------------------------------------------------------------------------

def decode(opcode: int, shift_quirks: bool = False) -> Instruction:
    """Decode a 16-bit opcode.  Never fails; unknown words are OP_INVALID."""
    opcode &= 0xFFFF
    f = opcode >> 12
    x = (opcode >> 8) & 0xF
    y = (opcode >> 4) & 0xF
    n = opcode & 0xF
    kk = opcode & 0xFF
    nnn = opcode & 0xFFF

    if f == 0x0:
        if opcode & 0xFFF0 == 0x00C0:
            return Instruction(OP_SCD, nibble=n)
        if opcode & 0xFF00 == 0 and kk in _SYS_OPS:
            return Instruction(_SYS_OPS[kk])
        return invalid(opcode)
    if f == 0x1:
        return Instruction(OP_JP, addr=nnn)
    if f == 0x2:
        return Instruction(OP_CALL, addr=nnn)
    if f == 0x3:
        return Instruction(OP_SE_BYTE, vx=x, byte=kk)
    if f == 0x4:
        return Instruction(OP_SNE_BYTE, vx=x, byte=kk)
    if f == 0x5:
        if n != 0:
            return invalid(opcode)
        return Instruction(OP_SE_REG, vx=x, vy=y)
    if f == 0x6:
        return Instruction(OP_LD_BYTE, vx=x, byte=kk)
    if f == 0x7:
        return Instruction(OP_ADD_BYTE, vx=x, byte=kk)
    if f == 0x8:
        op = _ALU_OPS.get(n)
        if op is None:
            return invalid(opcode)
        if op in (OP_SHR, OP_SHL) and not shift_quirks:
            # single-register form: the Y field must be clear
            if y != 0:
                return invalid(opcode)
            return Instruction(op, vx=x)
        return Instruction(op, vx=x, vy=y)
    if f == 0x9:
        if n != 0:
            return invalid(opcode)
        return Instruction(OP_SNE_REG, vx=x, vy=y)
    if f == 0xA:
        return Instruction(OP_LD_I, addr=nnn)
    if f == 0xB:
        return Instruction(OP_JP_V0, addr=nnn)
    if f == 0xC:
        return Instruction(OP_RND, vx=x, byte=kk)
    if f == 0xD:
        return Instruction(OP_DRW, vx=x, vy=y, nibble=n)
    if f == 0xE:
        if kk == 0x9E:
            return Instruction(OP_SKP, vx=x)
        if kk == 0xA1:
            return Instruction(OP_SKNP, vx=x)
        return invalid(opcode)
    # f == 0xF
    op = _MISC_OPS.get(kk)
    if op is None:
        return invalid(opcode)
    return Instruction(op, vx=x)


# ---------------------------------------------------------------------------
#  Encode
# ---------------------------------------------------------------------------

def encode(instr: Instruction, shift_quirks: bool = False) -> int:
    """Pack an instruction back into its 16-bit opcode."""
    op = instr.op
    x = (instr.vx & 0xF) << 8
    y = (instr.vy & 0xF) << 4
    nnn = instr.addr & 0xFFF
    kk = instr.byte & 0xFF

    if op == OP_INVALID:
        return instr.opcode & 0xFFFF
    if op == OP_SCD:
        return 0x00C0 | (instr.nibble & 0xF)
    if op in _SYS_CODES:
        return _SYS_CODES[op]
    if op == OP_JP:
        return 0x1000 | nnn
    if op == OP_CALL:
        return 0x2000 | nnn
    if op == OP_SE_BYTE:
        return 0x3000 | x | kk
    if op == OP_SNE_BYTE:
        return 0x4000 | x | kk
    if op == OP_SE_REG:
        return 0x5000 | x | y
    if op == OP_LD_BYTE:
        return 0x6000 | x | kk
    if op == OP_ADD_BYTE:
        return 0x7000 | x | kk
    if op in _ALU_CODES:
        if op in (OP_SHR, OP_SHL) and not shift_quirks:
            y = 0
        return 0x8000 | x | y | _ALU_CODES[op]
    if op == OP_SNE_REG:
        return 0x9000 | x | y
    if op == OP_LD_I:
        return 0xA000 | nnn
    if op == OP_JP_V0:
        return 0xB000 | nnn
    if op == OP_RND:
        return 0xC000 | x | kk
    if op == OP_DRW:
        return 0xD000 | x | y | (instr.nibble & 0xF)
    if op == OP_SKP:
        return 0xE09E | x
    if op == OP_SKNP:
        return 0xE0A1 | x
    if op in _MISC_CODES:
        return 0xF000 | x | _MISC_CODES[op]
    raise ValueError(f"Unknown operation: {op!r}")


def uses_address(instr: Instruction) -> bool:
    """True when the instruction's operand is a 12-bit memory address."""
    return instr.op in ADDR_OPS


# ---------------------------------------------------------------------------
#  Text rendering
# ---------------------------------------------------------------------------

_FORMATS = {
    OP_CLS: "CLS", OP_RET: "RET", OP_SCR: "SCR", OP_SCL: "SCL",
    OP_EXIT: "EXIT", OP_LOW: "LOW", OP_HIGH: "HIGH",
    OP_SE_BYTE: "SE V{vx:X}, #{byte:02X}",
    OP_SNE_BYTE: "SNE V{vx:X}, #{byte:02X}",
    OP_SE_REG: "SE V{vx:X}, V{vy:X}",
    OP_LD_BYTE: "LD V{vx:X}, #{byte:02X}",
    OP_ADD_BYTE: "ADD V{vx:X}, #{byte:02X}",
    OP_LD_REG: "LD V{vx:X}, V{vy:X}",
    OP_OR: "OR V{vx:X}, V{vy:X}",
    OP_AND: "AND V{vx:X}, V{vy:X}",
    OP_XOR: "XOR V{vx:X}, V{vy:X}",
    OP_ADD_REG: "ADD V{vx:X}, V{vy:X}",
    OP_SUB: "SUB V{vx:X}, V{vy:X}",
    OP_SUBN: "SUBN V{vx:X}, V{vy:X}",
    OP_SNE_REG: "SNE V{vx:X}, V{vy:X}",
    OP_RND: "RND V{vx:X}, #{byte:02X}",
    OP_DRW: "DRW V{vx:X}, V{vy:X}, {nibble}",
    OP_SKP: "SKP V{vx:X}",
    OP_SKNP: "SKNP V{vx:X}",
    OP_LD_REG_DT: "LD V{vx:X}, DT",
    OP_LD_KEY: "LD V{vx:X}, K",
    OP_LD_DT_REG: "LD DT, V{vx:X}",
    OP_LD_ST: "LD ST, V{vx:X}",
    OP_ADD_I: "ADD I, V{vx:X}",
    OP_LD_F: "LD F, V{vx:X}",
    OP_LD_HF: "LD HF, V{vx:X}",
    OP_LD_B: "LD B, V{vx:X}",
    OP_LD_DEREF_I_REG: "LD [I], V{vx:X}",
    OP_LD_REG_DEREF_I: "LD V{vx:X}, [I]",
    OP_LD_R_REG: "LD R, V{vx:X}",
    OP_LD_REG_R: "LD V{vx:X}, R",
}

_ADDR_FORMATS = {
    OP_JP: "JP {}",
    OP_CALL: "CALL {}",
    OP_LD_I: "LD I, {}",
    OP_JP_V0: "JP V0, {}",
}


def format_instruction(instr: Instruction, label: Optional[str] = None,
                       shift_quirks: bool = False) -> str:
    """Render an instruction as assembler text.

    If ``label`` is given it replaces the address operand of JP / CALL /
    LD I / JP V0.
    """
    op = instr.op
    if op == OP_INVALID:
        return f"INVALID (DW #{instr.opcode:04X})"
    if op == OP_SCD:
        return f"SCD {instr.nibble}"
    if op in _ADDR_FORMATS:
        target = label if label is not None else f"#{instr.addr:03X}"
        return _ADDR_FORMATS[op].format(target)
    if op in (OP_SHR, OP_SHL):
        if shift_quirks:
            return f"{instr.name} V{instr.vx:X}, V{instr.vy:X}"
        return f"{instr.name} V{instr.vx:X}"
    return _FORMATS[op].format(vx=instr.vx, vy=instr.vy, byte=instr.byte,
                               nibble=instr.nibble)
