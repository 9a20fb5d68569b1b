"""
CHIP-8 / Super-Chip Interpreter
================================
Holds the virtual machine state and executes one instruction per step().

The fetch/decode/execute loop mirrors the hardware: read the big-endian
opcode at PC, decode it (instruction.py), run the matching executor and
store the returned PC.  Fatal conditions (misaligned jumps, RET with an
empty stack, block load/store past the end of memory) log the reason and
a register dump, then halt the machine; step() itself never raises.

Memory map:
  0x000 .. 0x04F   low-resolution hex digits (5 bytes each)
  0x100 .. 0x19F   high-resolution hex digits (10 bytes each)
  0x200 .. 0xFFF   program

Draw and scroll instructions can be gated on the timer: with
``delay_draws`` they first arm a wait flag and return the same PC, then
take effect on a later step once a timer tick has been observed.  The
caller simply keeps calling step().
"""

from __future__ import annotations
import logging
import random
import threading
import time
from typing import Optional

import numpy as np

from instruction import (
    Instruction, decode, format_instruction,
    OP_INVALID, OP_SCD, OP_CLS, OP_RET, OP_SCR, OP_SCL, OP_EXIT, OP_LOW,
    OP_HIGH, OP_JP, OP_CALL, OP_SE_BYTE, OP_SNE_BYTE, OP_SE_REG, OP_LD_BYTE,
    OP_ADD_BYTE, OP_LD_REG, OP_OR, OP_AND, OP_XOR, OP_ADD_REG, OP_SUB,
    OP_SHR, OP_SUBN, OP_SHL, OP_SNE_REG, OP_LD_I, OP_JP_V0, OP_RND, OP_DRW,
    OP_SKP, OP_SKNP, OP_LD_REG_DT, OP_LD_KEY, OP_LD_DT_REG, OP_LD_ST,
    OP_ADD_I, OP_LD_F, OP_LD_HF, OP_LD_B, OP_LD_DEREF_I_REG,
    OP_LD_REG_DEREF_I, OP_LD_R_REG, OP_LD_REG_R,
)

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
#  Constants
# ---------------------------------------------------------------------------

MEM_SIZE = 0x1000
PROG_START = 0x200
PROG_SIZE = MEM_SIZE - PROG_START

DISPLAY_WIDTH = 128
DISPLAY_HEIGHT = 64

REG_V0 = 0x0
REG_VF = 0xF

NUM_RPL_FLAGS = 8

HEX_LOW_ADDR = 0x000
HEX_LOW_HEIGHT = 5
HEX_HIGH_ADDR = 0x100
HEX_HIGH_HEIGHT = 10

HEX_LOW = bytes((
    0xF0, 0x90, 0x90, 0x90, 0xF0,   # 0
    0x20, 0x60, 0x20, 0x20, 0x70,   # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,   # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,   # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,   # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,   # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,   # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,   # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,   # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,   # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,   # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,   # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,   # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,   # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,   # E
    0xF0, 0x80, 0xF0, 0x80, 0x80,   # F
))

HEX_HIGH = bytes((
    0x3C, 0x42, 0x81, 0x81, 0x81, 0x81, 0x81, 0x81, 0x42, 0x3C,   # 0
    0x18, 0x28, 0x48, 0x08, 0x08, 0x08, 0x08, 0x08, 0x08, 0x7F,   # 1
    0x3C, 0x42, 0x81, 0x81, 0x02, 0x0C, 0x30, 0x40, 0x80, 0xFF,   # 2
    0x7C, 0x82, 0x01, 0x01, 0x1E, 0x01, 0x01, 0x01, 0x82, 0x7C,   # 3
    0x81, 0x81, 0x81, 0x81, 0xFF, 0x01, 0x01, 0x01, 0x01, 0x01,   # 4
    0xFF, 0x80, 0x80, 0x80, 0xFC, 0x02, 0x01, 0x01, 0x02, 0xFC,   # 5
    0x3E, 0x40, 0x80, 0x80, 0x80, 0xFE, 0x81, 0x81, 0x81, 0x7E,   # 6
    0xFF, 0x01, 0x02, 0x04, 0x08, 0x08, 0x10, 0x10, 0x20, 0x20,   # 7
    0x3C, 0x42, 0x81, 0x42, 0x3C, 0x42, 0x81, 0x81, 0x42, 0x3C,   # 8
    0x7E, 0x81, 0x81, 0x81, 0x7F, 0x01, 0x01, 0x01, 0x02, 0x7C,   # 9
    0x18, 0x24, 0x24, 0x24, 0x42, 0x7E, 0x42, 0x81, 0x81, 0x81,   # A
    0xFC, 0x82, 0x82, 0x84, 0xF8, 0x84, 0x82, 0x82, 0x82, 0xFC,   # B
    0x3C, 0x42, 0x81, 0x80, 0x80, 0x80, 0x80, 0x81, 0x42, 0x3C,   # C
    0xFC, 0x82, 0x81, 0x81, 0x81, 0x81, 0x81, 0x81, 0x82, 0xFC,   # D
    0xFF, 0x80, 0x80, 0x80, 0xFC, 0x80, 0x80, 0x80, 0x80, 0xFF,   # E
    0xFF, 0x80, 0x80, 0x80, 0xFC, 0x80, 0x80, 0x80, 0x80, 0x80,   # F
))

SCROLL_SIDEWAYS = 4


# ---------------------------------------------------------------------------
#  Errors
# ---------------------------------------------------------------------------

class Chip8Error(Exception):
    """Base for toolkit errors."""
    pass

class AbortError(Chip8Error):
    """A malformed program hit a fatal condition; the VM halts."""
    pass


def lowest_set_bit(value: int) -> int:
    return (value & -value).bit_length() - 1


# ---------------------------------------------------------------------------
#  Interpreter
# ---------------------------------------------------------------------------

class Chip8:
    """CHIP-8 / Super-Chip virtual machine."""

    def __init__(self, delay_draws: bool = True, enable_timer: bool = True,
                 load_quirks: bool = False, shift_quirks: bool = False,
                 timer_freq: int = 60, rng: Optional[random.Random] = None):
        self.delay_draws = delay_draws
        self.enable_timer = enable_timer
        self.load_quirks = load_quirks
        self.shift_quirks = shift_quirks
        self.timer_freq = timer_freq
        self.rng = rng or random.Random()
        self._key_lock = threading.Lock()
        self.reset()

    @classmethod
    def for_testing(cls, **kw) -> "Chip8":
        """VM with the timer and draw gating switched off."""
        kw.setdefault("enable_timer", False)
        kw.setdefault("delay_draws", False)
        return cls(**kw)

    def reset(self):
        """Power-on state: clear everything and reload the font sprites."""
        self.mem = bytearray(MEM_SIZE)
        self.mem[HEX_LOW_ADDR:HEX_LOW_ADDR + len(HEX_LOW)] = HEX_LOW
        self.mem[HEX_HIGH_ADDR:HEX_HIGH_ADDR + len(HEX_HIGH)] = HEX_HIGH
        self.display = np.zeros((DISPLAY_WIDTH, DISPLAY_HEIGHT), dtype=bool)
        self.regs = [0] * 16
        self.rpl = [0] * NUM_RPL_FLAGS
        self.reg_i = 0
        self.reg_dt = 0
        self.reg_st = 0
        self.pc = PROG_START
        self.stack: list[int] = []
        self.key_states = 0
        self.halted = False
        self.highres = False
        self.needs_refresh = True
        self.timer_latch = True
        self.timer_waiting = False
        self.timer_ticks = self._current_ticks()
        self.step_count = 0

    # -- Loading --

    def load_bytes(self, data: bytes | bytearray, addr: int = PROG_START):
        """Copy a program image into memory (default: at 0x200)."""
        if addr + len(data) > MEM_SIZE:
            raise Chip8Error("Input program is too big")
        self.mem[addr:addr + len(data)] = data
        log.info("Loaded %d bytes at %#05x", len(data), addr)

    def load_file(self, path: str):
        with open(path, "rb") as f:
            data = f.read()
        self.load_bytes(data)

    # -- Keypad --

    def press_key(self, key: int):
        with self._key_lock:
            self.key_states |= 1 << (key & 0xF)

    def release_key(self, key: int):
        with self._key_lock:
            self.key_states &= ~(1 << (key & 0xF))

    def is_pressed(self, key: int) -> bool:
        return bool(self.key_states & (1 << (key & 0xF)))

    @property
    def sound_on(self) -> bool:
        return self.reg_st != 0

    # -- Timer --

    def _current_ticks(self) -> int:
        return int(time.monotonic() * self.timer_freq)

    def _timer_update(self):
        old = self.timer_ticks
        self.timer_ticks = self._current_ticks()
        elapsed = self.timer_ticks - old
        if elapsed <= 0:
            return
        self.reg_dt = max(0, self.reg_dt - elapsed)
        self.reg_st = max(0, self.reg_st - elapsed)
        self.timer_latch = True

    def _wait_cycle(self) -> bool:
        """Two-phase tick gate: True once a tick has passed since arming."""
        if not self.delay_draws:
            return True
        if self.timer_waiting:
            if self.timer_latch:
                self.timer_waiting = False
                return True
            return False
        self.timer_waiting = True
        self.timer_latch = False
        return False

    # =====================================================================
    #  STEP
    # =====================================================================

    def current_instruction(self) -> Instruction:
        return decode(self.opcode_at(self.pc), self.shift_quirks)

    def opcode_at(self, addr: int) -> int:
        return (self.mem[addr] << 8) | self.mem[(addr + 1) % MEM_SIZE]

    def step(self):
        """Execute one instruction.  No-op while halted."""
        if self.halted:
            return
        if self.pc >= MEM_SIZE:
            log.error("Program counter went out of bounds")
            self.halted = True
            return
        instr = self.current_instruction()
        if log.isEnabledFor(logging.DEBUG):
            log.debug("%03X: %s", self.pc,
                      format_instruction(instr, shift_quirks=self.shift_quirks))
        try:
            self.pc = self.execute(instr)
        except AbortError as e:
            log.error("ABORT: %s", e)
            log.error("%s", self.dump_regs())
            self.halted = True
        self.step_count += 1

    def run(self, max_steps: int = 1_000_000) -> int:
        """Step until halted or max_steps.  Returns the number of steps."""
        steps = 0
        while steps < max_steps and not self.halted:
            self.step()
            steps += 1
        return steps

    def execute_opcode(self, opcode: int):
        """Write ``opcode`` at PC and step once (test helper)."""
        self.mem[self.pc] = (opcode >> 8) & 0xFF
        self.mem[self.pc + 1] = opcode & 0xFF
        self.step()

    # =====================================================================
    #  Execute
    # =====================================================================

    def execute(self, instr: Instruction) -> int:
        """Run one decoded instruction and return the next PC."""
        if self.enable_timer:
            self._timer_update()

        handler = self._DISPATCH.get(instr.op)
        if handler is None:
            log.warning("Invalid instruction encountered and ignored "
                        "(opcode %#06x)", instr.opcode)
            return self.pc + 2
        next_pc = handler(self, instr)
        return self.pc + 2 if next_pc is None else next_pc

    # -- 0x0 family: display / flow --

    def _exec_scd(self, instr: Instruction) -> Optional[int]:
        if not self._wait_cycle():
            return self.pc
        n = instr.nibble
        if n:
            self.display[:, n:] = self.display[:, :-n].copy()
            self.display[:, :n] = False
        self.needs_refresh = True
        return None

    def _exec_cls(self, instr: Instruction) -> Optional[int]:
        self.display[:, :] = False
        self.needs_refresh = True
        return None

    def _exec_ret(self, instr: Instruction) -> Optional[int]:
        if not self.stack:
            raise AbortError("Tried to return from subroutine, "
                             "but was never called")
        return self.stack.pop() + 2

    def _exec_scr(self, instr: Instruction) -> Optional[int]:
        if not self._wait_cycle():
            return self.pc
        n = SCROLL_SIDEWAYS
        self.display[n:, :] = self.display[:-n, :].copy()
        self.display[:n, :] = False
        self.needs_refresh = True
        return None

    def _exec_scl(self, instr: Instruction) -> Optional[int]:
        if not self._wait_cycle():
            return self.pc
        n = SCROLL_SIDEWAYS
        self.display[:-n, :] = self.display[n:, :].copy()
        self.display[-n:, :] = False
        self.needs_refresh = True
        return None

    def _exec_exit(self, instr: Instruction) -> Optional[int]:
        self.halted = True
        return None

    def _exec_low(self, instr: Instruction) -> Optional[int]:
        self.highres = False
        self.needs_refresh = True
        return None

    def _exec_high(self, instr: Instruction) -> Optional[int]:
        self.highres = True
        self.needs_refresh = True
        return None

    # -- Jumps and calls --

    def _exec_jp(self, instr: Instruction) -> Optional[int]:
        if instr.addr % 2:
            raise AbortError(f"Attempted to jump to misaligned memory "
                             f"address {instr.addr:#x}")
        return instr.addr

    def _exec_call(self, instr: Instruction) -> Optional[int]:
        if instr.addr % 2:
            raise AbortError(f"Attempted to call subroutine at misaligned "
                             f"memory address {instr.addr:#x}")
        self.stack.append(self.pc)
        return instr.addr

    def _exec_jp_v0(self, instr: Instruction) -> Optional[int]:
        target = instr.addr + self.regs[REG_V0]
        if target % 2:
            raise AbortError(f"Attempted to jump to misaligned memory "
                             f"address {target:#x}")
        if target >= MEM_SIZE:
            raise AbortError(f"Attempted to jump to out of bounds memory "
                             f"address {target:#x}")
        return target

    # -- Skips --

    def _exec_se_byte(self, instr: Instruction) -> Optional[int]:
        if self.regs[instr.vx] == instr.byte:
            return self.pc + 4
        return None

    def _exec_sne_byte(self, instr: Instruction) -> Optional[int]:
        if self.regs[instr.vx] != instr.byte:
            return self.pc + 4
        return None

    def _exec_se_reg(self, instr: Instruction) -> Optional[int]:
        if self.regs[instr.vx] == self.regs[instr.vy]:
            return self.pc + 4
        return None

    def _exec_sne_reg(self, instr: Instruction) -> Optional[int]:
        if self.regs[instr.vx] != self.regs[instr.vy]:
            return self.pc + 4
        return None

    def _exec_skp(self, instr: Instruction) -> Optional[int]:
        if self.is_pressed(self.regs[instr.vx]):
            return self.pc + 4
        return None

    def _exec_sknp(self, instr: Instruction) -> Optional[int]:
        if not self.is_pressed(self.regs[instr.vx]):
            return self.pc + 4
        return None

    # -- Register arithmetic --

    def _set_with_flag(self, vx: int, value: int, flag: int):
        # the flag write lands last, so VF as a destination holds the flag
        self.regs[vx] = value & 0xFF
        self.regs[REG_VF] = flag

    def _exec_ld_byte(self, instr: Instruction) -> Optional[int]:
        self.regs[instr.vx] = instr.byte
        return None

    def _exec_add_byte(self, instr: Instruction) -> Optional[int]:
        total = self.regs[instr.vx] + instr.byte
        self._set_with_flag(instr.vx, total, int(total > 0xFF))
        return None

    def _exec_ld_reg(self, instr: Instruction) -> Optional[int]:
        self.regs[instr.vx] = self.regs[instr.vy]
        return None

    def _exec_or(self, instr: Instruction) -> Optional[int]:
        self.regs[instr.vx] |= self.regs[instr.vy]
        return None

    def _exec_and(self, instr: Instruction) -> Optional[int]:
        self.regs[instr.vx] &= self.regs[instr.vy]
        return None

    def _exec_xor(self, instr: Instruction) -> Optional[int]:
        self.regs[instr.vx] ^= self.regs[instr.vy]
        return None

    def _exec_add_reg(self, instr: Instruction) -> Optional[int]:
        total = self.regs[instr.vx] + self.regs[instr.vy]
        self._set_with_flag(instr.vx, total, int(total > 0xFF))
        return None

    def _exec_sub(self, instr: Instruction) -> Optional[int]:
        x, y = self.regs[instr.vx], self.regs[instr.vy]
        self._set_with_flag(instr.vx, x - y, int(x >= y))
        return None

    def _exec_subn(self, instr: Instruction) -> Optional[int]:
        x, y = self.regs[instr.vx], self.regs[instr.vy]
        self._set_with_flag(instr.vx, y - x, int(y >= x))
        return None

    def _exec_shr(self, instr: Instruction) -> Optional[int]:
        src = self.regs[instr.vy if self.shift_quirks else instr.vx]
        self._set_with_flag(instr.vx, src >> 1, src & 0x1)
        return None

    def _exec_shl(self, instr: Instruction) -> Optional[int]:
        src = self.regs[instr.vy if self.shift_quirks else instr.vx]
        self._set_with_flag(instr.vx, src << 1, (src >> 7) & 0x1)
        return None

    def _exec_rnd(self, instr: Instruction) -> Optional[int]:
        self.regs[instr.vx] = self.rng.getrandbits(8) & instr.byte
        return None

    # -- Index register --

    def _exec_ld_i(self, instr: Instruction) -> Optional[int]:
        self.reg_i = instr.addr
        return None

    def _exec_add_i(self, instr: Instruction) -> Optional[int]:
        self.reg_i = (self.reg_i + self.regs[instr.vx]) & 0xFFFF
        return None

    def _exec_ld_f(self, instr: Instruction) -> Optional[int]:
        self.reg_i = HEX_LOW_ADDR + HEX_LOW_HEIGHT * (self.regs[instr.vx] & 0xF)
        return None

    def _exec_ld_hf(self, instr: Instruction) -> Optional[int]:
        self.reg_i = HEX_HIGH_ADDR + HEX_HIGH_HEIGHT * (self.regs[instr.vx] & 0xF)
        return None

    # -- Drawing --

    def _exec_drw(self, instr: Instruction) -> Optional[int]:
        if not self._wait_cycle():
            return self.pc
        x = self.regs[instr.vx]
        y = self.regs[instr.vy]
        if instr.nibble == 0:
            collision = self._draw_sprite(x, y, 16, 16)
        else:
            collision = self._draw_sprite(x, y, 8, instr.nibble)
        self.regs[REG_VF] = int(collision)
        return None

    def _draw_sprite(self, x: int, y: int, width: int, height: int) -> bool:
        """XOR a sprite from memory at I onto the display.

        Sprites are ``width`` (8 or 16) pixels wide, stored MSB first,
        ``width // 8`` bytes per row.  Pixels past the right or bottom
        edge are clipped.  Returns True if any lit pixel was turned off.
        """
        row_bytes = width // 8
        collision = False
        for row in range(height):
            dy = y + row
            if dy >= DISPLAY_HEIGHT:
                break
            base = self.reg_i + row * row_bytes
            bits = 0
            for k in range(row_bytes):
                bits = (bits << 8) | self.mem[(base + k) % MEM_SIZE]
            for col in range(width):
                dx = x + col
                if dx >= DISPLAY_WIDTH:
                    break
                if bits & (1 << (width - 1 - col)):
                    if self.display[dx, dy]:
                        collision = True
                    self.display[dx, dy] = not self.display[dx, dy]
        self.needs_refresh = True
        return collision

    # -- Keys and timers --

    def _exec_ld_reg_dt(self, instr: Instruction) -> Optional[int]:
        self.regs[instr.vx] = self.reg_dt
        return None

    def _exec_ld_key(self, instr: Instruction) -> Optional[int]:
        with self._key_lock:
            if self.key_states == 0:
                return self.pc
            key = lowest_set_bit(self.key_states)
            self.key_states &= ~(1 << key)
        self.regs[instr.vx] = key
        return None

    def _exec_ld_dt_reg(self, instr: Instruction) -> Optional[int]:
        self.reg_dt = self.regs[instr.vx]
        return None

    def _exec_ld_st(self, instr: Instruction) -> Optional[int]:
        self.reg_st = self.regs[instr.vx]
        return None

    # -- Memory --

    def _exec_ld_b(self, instr: Instruction) -> Optional[int]:
        value = self.regs[instr.vx]
        if self.reg_i + 3 > MEM_SIZE:
            raise AbortError("Tried to write to out of bounds memory")
        self.mem[self.reg_i] = value // 100
        self.mem[self.reg_i + 1] = (value // 10) % 10
        self.mem[self.reg_i + 2] = value % 10
        return None

    def _exec_ld_deref_i_reg(self, instr: Instruction) -> Optional[int]:
        count = instr.vx + 1
        if self.reg_i + count > MEM_SIZE:
            raise AbortError("Tried to write to out of bounds memory")
        self.mem[self.reg_i:self.reg_i + count] = bytes(self.regs[:count])
        if self.load_quirks:
            self.reg_i += 2 * count
        return None

    def _exec_ld_reg_deref_i(self, instr: Instruction) -> Optional[int]:
        count = instr.vx + 1
        if self.reg_i + count > MEM_SIZE:
            raise AbortError("Tried to read from out of bounds memory")
        self.regs[:count] = self.mem[self.reg_i:self.reg_i + count]
        if self.load_quirks:
            self.reg_i += 2 * count
        return None

    def _exec_ld_r_reg(self, instr: Instruction) -> Optional[int]:
        if instr.vx >= NUM_RPL_FLAGS:
            raise AbortError(f"RPL flags only cover V0-V{NUM_RPL_FLAGS - 1:X}")
        self.rpl[:instr.vx + 1] = self.regs[:instr.vx + 1]
        return None

    def _exec_ld_reg_r(self, instr: Instruction) -> Optional[int]:
        if instr.vx >= NUM_RPL_FLAGS:
            raise AbortError(f"RPL flags only cover V0-V{NUM_RPL_FLAGS - 1:X}")
        self.regs[:instr.vx + 1] = self.rpl[:instr.vx + 1]
        return None

    _DISPATCH = {
        OP_SCD: _exec_scd, OP_CLS: _exec_cls, OP_RET: _exec_ret,
        OP_SCR: _exec_scr, OP_SCL: _exec_scl, OP_EXIT: _exec_exit,
        OP_LOW: _exec_low, OP_HIGH: _exec_high, OP_JP: _exec_jp,
        OP_CALL: _exec_call, OP_SE_BYTE: _exec_se_byte,
        OP_SNE_BYTE: _exec_sne_byte, OP_SE_REG: _exec_se_reg,
        OP_LD_BYTE: _exec_ld_byte, OP_ADD_BYTE: _exec_add_byte,
        OP_LD_REG: _exec_ld_reg, OP_OR: _exec_or, OP_AND: _exec_and,
        OP_XOR: _exec_xor, OP_ADD_REG: _exec_add_reg, OP_SUB: _exec_sub,
        OP_SHR: _exec_shr, OP_SUBN: _exec_subn, OP_SHL: _exec_shl,
        OP_SNE_REG: _exec_sne_reg, OP_LD_I: _exec_ld_i,
        OP_JP_V0: _exec_jp_v0, OP_RND: _exec_rnd, OP_DRW: _exec_drw,
        OP_SKP: _exec_skp, OP_SKNP: _exec_sknp,
        OP_LD_REG_DT: _exec_ld_reg_dt, OP_LD_KEY: _exec_ld_key,
        OP_LD_DT_REG: _exec_ld_dt_reg, OP_LD_ST: _exec_ld_st,
        OP_ADD_I: _exec_add_i, OP_LD_F: _exec_ld_f, OP_LD_HF: _exec_ld_hf,
        OP_LD_B: _exec_ld_b, OP_LD_DEREF_I_REG: _exec_ld_deref_i_reg,
        OP_LD_REG_DEREF_I: _exec_ld_reg_deref_i,
        OP_LD_R_REG: _exec_ld_r_reg, OP_LD_REG_R: _exec_ld_reg_r,
    }

    # -- Debug / introspection --

    def dump_regs(self) -> str:
        regs = "; ".join(f"V{i:X} = {v:02X}" for i, v in enumerate(self.regs))
        return (f"Register values: {regs}; DT = {self.reg_dt:02X}; "
                f"ST = {self.reg_st:02X}; I = {self.reg_i:04X}; "
                f"PC = {self.pc:04X}")
