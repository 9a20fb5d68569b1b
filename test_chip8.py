"""
CHIP-8 / Super-Chip Interpreter Test Suite
===========================================
Covers every instruction family, the fatal-abort paths, draw gating and
the timers.
"""

import random
import unittest

from chip8 import (
    Chip8, Chip8Error, PROG_START, PROG_SIZE, REG_VF,
    HEX_LOW, HEX_HIGH, HEX_HIGH_ADDR, lowest_set_bit,
)


def make_vm(*opcodes, **kw) -> Chip8:
    """Test VM with ``opcodes`` loaded at 0x200."""
    vm = Chip8.for_testing(**kw)
    data = b"".join(op.to_bytes(2, "big") for op in opcodes)
    vm.load_bytes(data)
    return vm


class TestState(unittest.TestCase):

    def test_reset(self):
        vm = Chip8.for_testing()
        self.assertEqual(vm.pc, PROG_START)
        self.assertEqual(bytes(vm.mem[:len(HEX_LOW)]), HEX_LOW)
        self.assertEqual(bytes(vm.mem[HEX_HIGH_ADDR:HEX_HIGH_ADDR + len(HEX_HIGH)]),
                         HEX_HIGH)
        self.assertFalse(vm.display.any())
        self.assertEqual(vm.stack, [])
        self.assertFalse(vm.halted)

    def test_load_too_big(self):
        vm = Chip8.for_testing()
        vm.load_bytes(bytes(PROG_SIZE))
        with self.assertRaises(Chip8Error):
            vm.load_bytes(bytes(PROG_SIZE + 1))

    def test_dump_regs(self):
        vm = Chip8.for_testing()
        vm.regs[0xA] = 0x5C
        text = vm.dump_regs()
        self.assertTrue(text.startswith("Register values: V0 = 00; "))
        self.assertIn("VA = 5C", text)
        self.assertTrue(text.endswith("I = 0000; PC = 0200"))

    def test_lowest_set_bit(self):
        self.assertEqual(lowest_set_bit(0b1000), 3)
        self.assertEqual(lowest_set_bit(0b1010), 1)

    def test_step_while_halted(self):
        vm = make_vm(0x00FD, 0x6001)
        vm.step()
        self.assertTrue(vm.halted)
        pc = vm.pc
        vm.step()
        self.assertEqual(vm.pc, pc)
        self.assertEqual(vm.regs[0], 0)


class TestFlow(unittest.TestCase):

    def test_nested_calls(self):
        vm = make_vm(0x2300, 0x00FD)
        vm.mem[0x300:0x304] = bytes((0x24, 0x00, 0x00, 0xEE))
        vm.mem[0x400:0x402] = bytes((0x00, 0xEE))
        self.assertEqual(vm.run(100), 5)
        self.assertTrue(vm.halted)
        self.assertEqual(vm.pc, 0x204)
        self.assertEqual(vm.stack, [])

    def test_ret_without_call_aborts(self):
        vm = make_vm(0x00EE)
        with self.assertLogs("chip8", "ERROR") as cm:
            vm.step()
        self.assertTrue(vm.halted)
        self.assertTrue(any("ABORT" in m for m in cm.output))
        self.assertTrue(any("Register values" in m for m in cm.output))

    def test_misaligned_jump_aborts(self):
        vm = make_vm(0x1201)
        with self.assertLogs("chip8", "ERROR"):
            vm.step()
        self.assertTrue(vm.halted)

    def test_misaligned_call_aborts(self):
        vm = make_vm(0x2203)
        with self.assertLogs("chip8", "ERROR"):
            vm.step()
        self.assertTrue(vm.halted)
        self.assertEqual(vm.stack, [])

    def test_jp_v0(self):
        vm = make_vm(0x6004, 0xB300)
        vm.run(2)
        self.assertEqual(vm.pc, 0x304)

    def test_jp_v0_misaligned(self):
        vm = make_vm(0x6003, 0xB300)
        with self.assertLogs("chip8", "ERROR"):
            vm.run(2)
        self.assertTrue(vm.halted)

    def test_skips(self):
        vm = make_vm(0x6105, 0x3105)
        vm.run(2)
        self.assertEqual(vm.pc, 0x206)
        vm = make_vm(0x6105, 0x4105)
        vm.run(2)
        self.assertEqual(vm.pc, 0x204)
        vm = make_vm(0x6105, 0x6205, 0x5120)
        vm.run(3)
        self.assertEqual(vm.pc, 0x208)
        vm = make_vm(0x6105, 0x6205, 0x9120)
        vm.run(3)
        self.assertEqual(vm.pc, 0x206)

    def test_invalid_opcode_is_skipped(self):
        vm = make_vm(0xFFFF, 0x6007)
        with self.assertLogs("chip8", "WARNING"):
            vm.step()
        self.assertFalse(vm.halted)
        vm.step()
        self.assertEqual(vm.regs[0], 7)

    def test_exit(self):
        vm = make_vm(0x00FD)
        self.assertEqual(vm.run(10), 1)
        self.assertTrue(vm.halted)


class TestArithmetic(unittest.TestCase):

    def test_add_byte_sets_carry(self):
        vm = make_vm(0x6070, 0x70FF)
        vm.run(2)
        self.assertEqual(vm.regs[0], 0x6F)
        self.assertEqual(vm.regs[REG_VF], 1)

    def test_add_reg(self):
        vm = make_vm(0x60F0, 0x6120, 0x8014)
        vm.run(3)
        self.assertEqual(vm.regs[0], 0x10)
        self.assertEqual(vm.regs[REG_VF], 1)
        vm = make_vm(0x6010, 0x6120, 0x8014)
        vm.run(3)
        self.assertEqual(vm.regs[0], 0x30)
        self.assertEqual(vm.regs[REG_VF], 0)

    def test_flag_wins_when_vf_is_destination(self):
        vm = make_vm(0x6FFF, 0x6102, 0x8F14)
        vm.run(3)
        self.assertEqual(vm.regs[REG_VF], 1)

    def test_sub_and_subn(self):
        vm = make_vm(0x6005, 0x6103, 0x8015)
        vm.run(3)
        self.assertEqual(vm.regs[0], 2)
        self.assertEqual(vm.regs[REG_VF], 1)
        vm = make_vm(0x6005, 0x6103, 0x8105)
        vm.run(3)
        self.assertEqual(vm.regs[1], 0xFE)
        self.assertEqual(vm.regs[REG_VF], 0)
        vm = make_vm(0x6005, 0x6103, 0x8107)
        vm.run(3)
        self.assertEqual(vm.regs[1], 2)
        self.assertEqual(vm.regs[REG_VF], 1)

    def test_logic(self):
        vm = make_vm(0x60F0, 0x613C, 0x8011, 0x8211, 0x8202, 0x8313, 0x8303)
        vm.run(7)
        self.assertEqual(vm.regs[0], 0xFC)
        self.assertEqual(vm.regs[2], 0x3C)
        self.assertEqual(vm.regs[3], 0xC0)

    def test_shifts(self):
        vm = make_vm(0x6281, 0x8206)
        vm.run(2)
        self.assertEqual(vm.regs[2], 0x40)
        self.assertEqual(vm.regs[REG_VF], 1)
        vm = make_vm(0x6281, 0x820E)
        vm.run(2)
        self.assertEqual(vm.regs[2], 0x02)
        self.assertEqual(vm.regs[REG_VF], 1)

    def test_shift_quirks_read_vy(self):
        vm = make_vm(0x6303, 0x6480, 0x834E, shift_quirks=True)
        vm.run(3)
        self.assertEqual(vm.regs[3], 0)
        self.assertEqual(vm.regs[REG_VF], 1)
        vm = make_vm(0x6300, 0x6403, 0x8346, shift_quirks=True)
        vm.run(3)
        self.assertEqual(vm.regs[3], 1)
        self.assertEqual(vm.regs[REG_VF], 1)

    def test_rnd_is_masked(self):
        vm = make_vm(0xC000, 0xC10F, rng=random.Random(1))
        vm.regs[0] = 0xAA
        vm.run(2)
        self.assertEqual(vm.regs[0], 0)
        self.assertLess(vm.regs[1], 0x10)


class TestMemory(unittest.TestCase):

    def test_ld_i_and_add_i(self):
        vm = make_vm(0xA300, 0x6010, 0xF01E)
        vm.run(3)
        self.assertEqual(vm.reg_i, 0x310)

    def test_font_addresses(self):
        vm = make_vm(0x600A, 0xF029, 0x6102, 0xF130)
        vm.run(2)
        self.assertEqual(vm.reg_i, 50)
        vm.run(2)
        self.assertEqual(vm.reg_i, HEX_HIGH_ADDR + 20)

    def test_bcd(self):
        vm = make_vm(0x60EA, 0xA300, 0xF033)
        vm.run(3)
        self.assertEqual(bytes(vm.mem[0x300:0x303]), bytes((2, 3, 4)))

    def test_bcd_out_of_bounds(self):
        vm = make_vm(0xAFFE, 0xF033)
        with self.assertLogs("chip8", "ERROR"):
            vm.run(2)
        self.assertTrue(vm.halted)

    def test_store_and_load(self):
        vm = make_vm(0x6011, 0x6122, 0x6233, 0xA300, 0xF255,
                     0x6000, 0x6100, 0xF165)
        vm.run(8)
        self.assertEqual(bytes(vm.mem[0x300:0x303]), bytes((0x11, 0x22, 0x33)))
        self.assertEqual(vm.regs[:3], [0x11, 0x22, 0x33])
        self.assertEqual(vm.reg_i, 0x300)

    def test_load_quirks_advance_i(self):
        vm = make_vm(0xA300, 0xF255, load_quirks=True)
        vm.run(2)
        self.assertEqual(vm.reg_i, 0x306)

    def test_store_out_of_bounds(self):
        vm = make_vm(0xAFFF, 0xF155)
        with self.assertLogs("chip8", "ERROR"):
            vm.run(2)
        self.assertTrue(vm.halted)

    def test_store_and_load_end_of_memory(self):
        # V0..VF fill 0xFF0..0xFFF exactly
        vm = make_vm(0x60AB, 0x6FCD, 0xAFF0, 0xFF55,
                     0x6000, 0x6F00, 0xFF65)
        vm.run(4)
        self.assertFalse(vm.halted)
        self.assertEqual(vm.mem[0xFF0], 0xAB)
        self.assertEqual(vm.mem[0xFFF], 0xCD)
        self.assertEqual(bytes(vm.mem[0xFF0:0x1000]), bytes(vm.regs))
        vm.run(3)
        self.assertFalse(vm.halted)
        self.assertEqual(vm.regs[0], 0xAB)
        self.assertEqual(vm.regs[15], 0xCD)

    def test_rpl_flags(self):
        vm = make_vm(0x6001, 0x6102, 0x6203, 0x6304, 0xF375,
                     0x6000, 0x6100, 0x6200, 0x6300, 0xF385)
        vm.run(10)
        self.assertEqual(vm.rpl[:4], [1, 2, 3, 4])
        self.assertEqual(vm.regs[:4], [1, 2, 3, 4])

    def test_rpl_range(self):
        vm = make_vm(0xF875)
        with self.assertLogs("chip8", "ERROR"):
            vm.step()
        self.assertTrue(vm.halted)


class TestDisplay(unittest.TestCase):

    def test_draw_and_collide(self):
        # font digit 0 at (0, 0): top row is 0xF0
        vm = make_vm(0xA000, 0x6000, 0x6100, 0xD015, 0xD015)
        vm.run(4)
        self.assertTrue(vm.display[:4, 0].all())
        self.assertFalse(vm.display[4, 0])
        self.assertTrue(vm.display[0, 1])
        self.assertFalse(vm.display[1, 1])
        self.assertEqual(vm.regs[REG_VF], 0)
        self.assertTrue(vm.needs_refresh)
        vm.step()
        self.assertFalse(vm.display.any())
        self.assertEqual(vm.regs[REG_VF], 1)

    def test_draw_clips(self):
        vm = make_vm(0xA000, 0x607E, 0x613E, 0xD015)
        vm.run(4)
        self.assertEqual(int(vm.display.sum()), 3)
        self.assertTrue(vm.display[126, 62])
        self.assertTrue(vm.display[127, 62])
        self.assertTrue(vm.display[126, 63])
        self.assertFalse(vm.display[127, 63])

    def test_draw_16x16(self):
        vm = make_vm(0xA300, 0x6000, 0xD000)
        vm.mem[0x300:0x320] = b"\xFF" * 32
        vm.run(3)
        self.assertTrue(vm.display[:16, :16].all())
        self.assertFalse(vm.display[16, 0])
        self.assertEqual(int(vm.display.sum()), 256)

    def test_cls(self):
        vm = make_vm(0x00E0)
        vm.display[5, 5] = True
        vm.step()
        self.assertFalse(vm.display.any())

    def test_scroll_down(self):
        vm = make_vm(0x00C2)
        vm.display[10, 10] = True
        vm.display[10, 63] = True
        vm.step()
        self.assertTrue(vm.display[10, 12])
        self.assertFalse(vm.display[10, 10])
        self.assertEqual(int(vm.display.sum()), 1)

    def test_scroll_sideways(self):
        vm = make_vm(0x00FB, 0x00FC, 0x00FC)
        vm.display[10, 10] = True
        vm.step()
        self.assertTrue(vm.display[14, 10])
        vm.step()
        self.assertTrue(vm.display[10, 10])
        vm.step()
        self.assertTrue(vm.display[6, 10])
        self.assertEqual(int(vm.display.sum()), 1)

    def test_resolution(self):
        vm = make_vm(0x00FF, 0x00FE)
        vm.step()
        self.assertTrue(vm.highres)
        vm.step()
        self.assertFalse(vm.highres)

    def test_draw_waits_for_tick(self):
        vm = Chip8(enable_timer=False, delay_draws=True)
        vm.load_bytes(bytes((0xD0, 0x15)))
        vm.step()
        self.assertEqual(vm.pc, PROG_START)
        self.assertTrue(vm.timer_waiting)
        vm.step()
        self.assertEqual(vm.pc, PROG_START)
        vm.timer_latch = True
        vm.step()
        self.assertEqual(vm.pc, PROG_START + 2)
        self.assertFalse(vm.timer_waiting)


class TestKeysAndTimers(unittest.TestCase):

    def test_wait_for_key(self):
        vm = make_vm(0xF00A)
        vm.step()
        self.assertEqual(vm.pc, PROG_START)
        vm.press_key(5)
        vm.press_key(3)
        vm.step()
        self.assertEqual(vm.pc, PROG_START + 2)
        self.assertEqual(vm.regs[0], 3)
        self.assertFalse(vm.is_pressed(3))
        self.assertTrue(vm.is_pressed(5))

    def test_skp_sknp(self):
        vm = make_vm(0x6005, 0xE09E)
        vm.press_key(5)
        vm.run(2)
        self.assertEqual(vm.pc, 0x206)
        vm = make_vm(0x6005, 0xE0A1)
        vm.run(2)
        self.assertEqual(vm.pc, 0x206)
        vm = make_vm(0x6005, 0xE0A1)
        vm.press_key(5)
        vm.run(2)
        self.assertEqual(vm.pc, 0x204)

    def test_timer_registers(self):
        vm = make_vm(0x6009, 0xF015, 0xF018, 0xF107)
        vm.run(4)
        self.assertEqual(vm.reg_dt, 9)
        self.assertEqual(vm.reg_st, 9)
        self.assertEqual(vm.regs[1], 9)
        self.assertTrue(vm.sound_on)

    def test_timers_count_down(self):
        vm = Chip8(delay_draws=False, timer_freq=60)
        vm.load_bytes(bytes((0x60, 0x00)))
        vm.reg_dt = 10
        vm.reg_st = 2
        vm.timer_ticks -= 3
        vm.step()
        self.assertIn(vm.reg_dt, (6, 7))
        self.assertEqual(vm.reg_st, 0)
        self.assertFalse(vm.sound_on)
        self.assertTrue(vm.timer_latch)


if __name__ == "__main__":
    unittest.main()
