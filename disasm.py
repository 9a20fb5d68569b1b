"""
CHIP-8 / Super-Chip Disassembler
=================================
Turns a raw program image back into assembler text, separating code from
embedded data by following every reachable control path.

Offsets below are relative to the load address (0x200), so the entry
point is offset 0.

Reachability walk:
  - every path start is a *return point* (straight-line code resumes here)
  - RET / EXIT / JP / JP V0 end a path at a *jump point*, unless the
    previous instruction was a conditional skip
  - CALL and JP targets become new path starts
Bytes that sit after a jump point and before the next return point are
never executed and are printed as ``DW``.

Usage:
    from disasm import Disassembler
    d = Disassembler(program_bytes)
    d.dump(sys.stdout)
"""

from __future__ import annotations
import bisect
import logging
from typing import Iterator, Optional, TextIO

from chip8 import Chip8Error, PROG_START, PROG_SIZE
from instruction import (
    decode, format_instruction, uses_address,
    OP_RET, OP_EXIT, OP_CALL, OP_JP, OP_JP_V0, SKIP_OPS,
)

log = logging.getLogger(__name__)

# Sort-key tag: at equal offsets a return point sorts before a jump point
RETURN_POINT = 0
JUMP_POINT = 1


class DisasmError(Chip8Error):
    pass


class Disassembler:
    """Reachability-aware disassembler for one program image."""

    def __init__(self, data: bytes | bytearray, shift_quirks: bool = False):
        if len(data) > PROG_SIZE:
            raise DisasmError("Input program is too large")
        self.shift_quirks = shift_quirks
        self.proglen = len(data)
        # one spare byte so an odd-length image still yields a last word
        self.mem = bytes(data) + b"\x00"
        self.points: list[tuple[int, int]] = []
        self.labels: set[int] = set()
        self.populate()

    @classmethod
    def from_file(cls, path: str, shift_quirks: bool = False) -> "Disassembler":
        with open(path, "rb") as f:
            data = f.read()
        return cls(data, shift_quirks=shift_quirks)

    def opcode(self, offset: int) -> int:
        return (self.mem[offset] << 8) | self.mem[offset + 1]

    # -- Boundary list --

    def _add_point(self, offset: int, kind: int):
        key = (offset, kind)
        pos = bisect.bisect_left(self.points, key)
        if pos < len(self.points) and self.points[pos] == key:
            return
        self.points.insert(pos, key)

    def has_point(self, offset: int, kind: int) -> bool:
        key = (offset, kind)
        pos = bisect.bisect_left(self.points, key)
        return pos < len(self.points) and self.points[pos] == key

    def in_data(self, offset: int) -> bool:
        """True if ``offset`` lies between a jump point and the next return
        point, i.e. no control path reaches it."""
        pos = bisect.bisect_left(self.points, (offset, RETURN_POINT))
        if pos == 0 or self.points[pos - 1][1] != JUMP_POINT:
            return False
        return pos == len(self.points) or self.points[pos] != (offset, RETURN_POINT)

    # -- Reachability --

    def populate(self):
        """Walk every control path from the entry point."""
        starts = [0]
        while starts:
            pc = starts.pop()
            if self.has_point(pc, RETURN_POINT):
                continue
            self._add_point(pc, RETURN_POINT)
            self._walk(pc, starts)

    def _walk(self, pc: int, starts: list[int]):
        after_skip = False
        while True:
            if pc < 0 or pc >= self.proglen:
                log.warning("Control path went out of program bounds")
                return
            instr = decode(self.opcode(pc), self.shift_quirks)

            if uses_address(instr) and 0 <= instr.addr - PROG_START < self.proglen:
                self.labels.add(instr.addr - PROG_START)

            op = instr.op
            if op in (OP_RET, OP_EXIT):
                if not after_skip:
                    self._add_point(pc, JUMP_POINT)
                    return
                after_skip = False
            elif op == OP_CALL:
                if instr.addr % 2:
                    raise DisasmError("Misaligned CALL operand encountered")
                # execution resumes after the call, so keep walking
                starts.append(instr.addr - PROG_START)
                after_skip = False
            elif op == OP_JP:
                if instr.addr % 2:
                    raise DisasmError("Misaligned JP operand encountered")
                starts.append(instr.addr - PROG_START)
                if not after_skip:
                    self._add_point(pc, JUMP_POINT)
                    return
                after_skip = False
            elif op in SKIP_OPS:
                after_skip = True
            elif op == OP_JP_V0:
                log.warning("The disassembler doesn't support JP V0 yet")
                if not after_skip:
                    self._add_point(pc, JUMP_POINT)
                    return
                after_skip = False
            else:
                after_skip = False
            pc += 2

    # -- Output --

    def format_at(self, offset: int) -> str:
        """Text for the word at ``offset`` (without the label column)."""
        opcode = self.opcode(offset)
        if self.in_data(offset):
            return f"DW #{opcode:04X}"
        instr = decode(opcode, self.shift_quirks)
        label: Optional[str] = None
        if uses_address(instr) and (instr.addr - PROG_START) in self.labels:
            label = f"L{instr.addr - PROG_START:03X}"
        return format_instruction(instr, label, self.shift_quirks)

    def lines(self) -> Iterator[tuple[int, str]]:
        """Yield ``(offset, text)`` for every word, label column included."""
        for offset in range(0, self.proglen, 2):
            prefix = f"L{offset:03X}: " if offset in self.labels else " " * 6
            yield offset, prefix + self.format_at(offset)

    def dump(self, out: TextIO):
        for _, text in self.lines():
            out.write(text + "\n")
