"""
Assembler Test Suite
=====================
Mnemonic encoding, alignment, expression evaluation, conditional
assembly and error reporting.
"""

import unittest

from asm import (
    Assembler, AsmError, EvalError, Program, assemble, eval_expr,
    register_num,
)
from chip8 import PROG_START


class TestInstructions(unittest.TestCase):

    CASES = [
        ("SCD 7", 0x00C7), ("CLS", 0x00E0), ("RET", 0x00EE),
        ("SCR", 0x00FB), ("SCL", 0x00FC), ("EXIT", 0x00FD),
        ("LOW", 0x00FE), ("HIGH", 0x00FF),
        ("JP program_start", 0x1200), ("CALL program_start", 0x2200),
        ("SE V8, #45", 0x3845), ("SNE VA, #90", 0x4A90),
        ("SE VE, V0", 0x5E00), ("LD V1, $1101", 0x610D),
        ("ADD V4, 10", 0x740A), ("LD V7, VB", 0x87B0),
        ("OR VD, VC", 0x8DC1), ("AND VB, V6", 0x8B62),
        ("XOR V5, V0", 0x8503), ("ADD V5, V9", 0x8594),
        ("SUB VD, VA", 0x8DA5), ("SHR V3", 0x8306),
        ("SUBN V9, VC", 0x89C7), ("SHL VF", 0x8F0E),
        ("SNE V8, V2", 0x9820), ("LD I, program_start", 0xA200),
        ("JP V0, program_start", 0xB200), ("RND V0, #F5", 0xC0F5),
        ("DRW V0, V1, 10", 0xD01A), ("SKP V4", 0xE49E),
        ("SKNP VD", 0xEDA1), ("LD V8, DT", 0xF807),
        ("LD VD, K", 0xFD0A), ("LD DT, VA", 0xFA15),
        ("LD ST, V6", 0xF618), ("ADD I, V3", 0xF31E),
        ("LD F, V8", 0xF829), ("LD HF, VE", 0xFE30),
        ("LD B, V6", 0xF633), ("LD [I], V2", 0xF255),
        ("LD V7, [I]", 0xF765), ("LD R, V1", 0xF175),
        ("LD VB, R", 0xFB85),
        # mnemonics and registers are case-insensitive
        ("lD v5, [i]", 0xF565), ("Ld sT, Va", 0xFA18), ("hIgH", 0x00FF),
    ]

    def test_every_mnemonic(self):
        chipasm = Assembler()
        prog = Program()
        chipasm.process_line("program_start:")
        for text, opcode in self.CASES:
            with self.subTest(text=text):
                chipasm.process_line(text)
                chipasm.emit(prog)
                self.assertEqual(prog.opcode(len(prog) - 2), opcode)

    def test_labels_are_case_sensitive(self):
        chipasm = Assembler()
        chipasm.process_line("program_start: CLS")
        chipasm.process_line("JP PROGRAM_START")
        with self.assertRaises(EvalError):
            chipasm.emit()

    def test_shift_quirks_take_two_registers(self):
        self.assertEqual(assemble("SHR V3, V4", shift_quirks=True),
                         bytes((0x83, 0x46)))
        self.assertEqual(assemble("SHL V3, V4", shift_quirks=True),
                         bytes((0x83, 0x4E)))
        with self.assertRaises(AsmError):
            assemble("SHR V3, V4")

    def test_forward_reference(self):
        code = assemble("JP end\nCLS\nend: EXIT\n")
        self.assertEqual(code, bytes((0x12, 0x04, 0x00, 0xE0, 0x00, 0xFD)))

    def test_comments_and_blank_lines(self):
        code = assemble("; header\n\n  LD V0, 1 ; load\n\tEXIT\n")
        self.assertEqual(code, bytes((0x60, 0x01, 0x00, 0xFD)))

    def test_operand_values_are_masked(self):
        self.assertEqual(assemble("LD V0, #1FF"), bytes((0x60, 0xFF)))
        self.assertEqual(assemble("JP #1234"), bytes((0x12, 0x34)))


class TestAlignment(unittest.TestCase):

    def test_ops_and_labels_align(self):
        code = assemble("DW #1234\n"
                        "DB #56\n"
                        "DW #789A\n"
                        "JP #200\n"
                        "DB #BC\n"
                        "lbl:\n"
                        "JP lbl\n")
        self.assertEqual(code, bytes((0x12, 0x34, 0x56, 0x78, 0x9A, 0x00,
                                      0x12, 0x00, 0xBC, 0x00, 0x12, 0x0A)))

    def test_program_too_large(self):
        chipasm = Assembler()
        chipasm.pc = PROG_START + 0xDFF
        chipasm.process_line("DW 1")
        with self.assertRaises(AsmError) as cm:
            chipasm.emit()
        self.assertIn("too large", str(cm.exception))


class TestEval(unittest.TestCase):

    def setUp(self):
        self.chipasm = Assembler()

    def ev(self, expr: str) -> int:
        return self.chipasm.eval_expr(expr)

    def test_numbers_and_operators(self):
        self.assertEqual(self.ev("2 + #F - $10"), 15)
        self.assertEqual(self.ev("-1"), 0xFFFF)
        self.assertEqual(self.ev("2 + 3 * 1"), 5)
        self.assertEqual(self.ev("((4 + 4) * (#0a - $00000010))"), 64)
        self.assertEqual(
            self.ev("~$01010101 | $01010101 ^ $00001111 & $10101010"), 0xFFFF)
        self.assertEqual(self.ev("7 > 2 < 2"), 4)
        self.assertEqual(self.ev("13 % 8 / 2"), 2)
        self.assertEqual(self.ev("~--~45"), 45)

    def test_binary_dots(self):
        self.assertEqual(self.ev("$1..1"), 9)

    def test_wide_shift(self):
        self.assertEqual(self.ev("1 < 16"), 0)
        self.assertEqual(self.ev("1 < 15"), 0x8000)

    def test_constants(self):
        self.chipasm.process_line("THE_ANSWER = 42")
        self.assertEqual(self.ev("THE_ANSWER - 2"), 40)
        self.chipasm.process_line("_crazyIDENT1234 = #FFFF")
        self.assertEqual(self.ev("~_crazyIDENT1234"), 0)

    def test_invalid(self):
        for expr in ("~1234~", "123+", "undefined", "(1 + 2", "1 + 2)",
                     "4 / 0", "4 % 0", "#", "$", "1 @ 2", ""):
            with self.subTest(expr=expr):
                with self.assertRaises(EvalError):
                    self.ev(expr)

    def test_stack_overflow(self):
        with self.assertRaises(EvalError):
            eval_expr("(" * 150 + "1" + ")" * 150, {})

    def test_error_carries_line(self):
        with self.assertRaises(EvalError) as cm:
            eval_expr("nope", {}, line=12)
        self.assertEqual(cm.exception.line, 12)
        self.assertTrue(str(cm.exception).startswith("Line 12: "))

    def test_register_num(self):
        self.assertEqual(register_num("V0"), 0)
        self.assertEqual(register_num("vf"), 15)
        self.assertIsNone(register_num("V10"))
        self.assertIsNone(register_num("I"))


class TestConditional(unittest.TestCase):

    def test_nested_if(self):
        code = assemble("DEFINE TEST1\n"
                        "DEFINE TEST2\n"
                        "IFDEF TEST1\n"
                        "IFDEF UNDEFINED\n"
                        "DB 1\n"
                        "ELSE\n"
                        "DB 2\n"
                        "ENDIF\n"
                        "ELSE\n"
                        "IFDEF TEST2\n"
                        "DB 3\n"
                        "ELSE\n"
                        "DB 4\n"
                        "ENDIF\n"
                        "ENDIF\n"
                        "IFNDEF TEST2\n"
                        "DB 5\n"
                        "ELSE\n"
                        "DB 6\n"
                        "ENDIF\n")
        self.assertEqual(code, bytes((2, 6)))

    def test_skipped_lines_are_not_checked(self):
        code = assemble("IFDEF NOPE\nFROBNICATE V0\nENDIF\nEXIT\n")
        self.assertEqual(code, bytes((0x00, 0xFD)))

    def test_same_label_in_both_branches(self):
        code = assemble("IFDEF NOPE\n"
                        "start: DB 1\n"
                        "ELSE\n"
                        "start: DB 2\n"
                        "ENDIF\n")
        self.assertEqual(code, b"\x02")

    def test_skipped_label_is_not_bound(self):
        chipasm = Assembler()
        for text in ("IFDEF NOPE", "ghost:", "ENDIF", "CLS", "JP ghost"):
            chipasm.process_line(text)
        self.assertNotIn("ghost", chipasm.labels)
        with self.assertRaises(EvalError):
            chipasm.emit()

    def test_pending_label_crosses_skipped_block(self):
        code = assemble("here:\n"
                        "IFDEF NOPE\n"
                        "there: DB 1\n"
                        "ENDIF\n"
                        "CLS\n"
                        "JP here\n")
        self.assertEqual(code, bytes((0x00, 0xE0, 0x12, 0x00)))

    def test_define_keeps_existing_value(self):
        chipasm = Assembler()
        chipasm.process_line("X = 5")
        chipasm.process_line("DEFINE X")
        self.assertEqual(chipasm.labels["X"], 5)

    def test_unbalanced(self):
        with self.assertRaises(AsmError):
            assemble("ELSE")
        with self.assertRaises(AsmError):
            assemble("ENDIF")

    def test_missing_endif_warns(self):
        chipasm = Assembler()
        chipasm.process_line("IFDEF X")
        with self.assertLogs("asm", "WARNING"):
            chipasm.emit()


class TestErrors(unittest.TestCase):

    def assertLineError(self, source: str, line: int):
        with self.assertRaises(AsmError) as cm:
            assemble(source)
        self.assertEqual(cm.exception.line, line)

    def test_bad_lines(self):
        self.assertLineError("CLS\nFROB V0", 2)
        self.assertLineError("CLS V0", 1)
        self.assertLineError("DRW V0, V1", 1)
        self.assertLineError("DRW V0, V1, 1, 2", 1)
        self.assertLineError("LD V0, , 1", 1)
        self.assertLineError("LD , V0", 1)
        self.assertLineError("JP V1, #200", 1)
        self.assertLineError("JP", 1)
        self.assertLineError("a: b: CLS", 1)
        self.assertLineError("a: CLS\na: CLS", 2)
        self.assertLineError("X = 1\nX = 2", 2)
        self.assertLineError("X = 1, 2", 1)

    def test_bad_register_reported_at_emit(self):
        chipasm = Assembler()
        chipasm.process_line("CLS")
        chipasm.process_line("SKP #5")
        with self.assertRaises(AsmError) as cm:
            chipasm.emit()
        self.assertEqual(cm.exception.line, 2)
        self.assertIn("not the name of a register", cm.exception.msg)

    def test_rejected_line_drops_its_label(self):
        chipasm = Assembler()
        with self.assertRaises(AsmError):
            chipasm.process_line("lbl: FROB")
        chipasm.process_line("lbl: EXIT")
        self.assertEqual(chipasm.labels["lbl"], PROG_START)

    def test_pending_label_survives_bad_line(self):
        chipasm = Assembler()
        chipasm.process_line("start:")
        with self.assertRaises(AsmError):
            chipasm.process_line("FROB")
        chipasm.process_line("CLS")
        self.assertEqual(chipasm.labels["start"], PROG_START)

    def test_option_is_ignored(self):
        chipasm = Assembler()
        with self.assertLogs("asm", "WARNING"):
            chipasm.process_line("OPTION SCHIP11")
        self.assertEqual(bytes(chipasm.emit()), b"")


if __name__ == "__main__":
    unittest.main()
