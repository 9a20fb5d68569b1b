#!/usr/bin/env python3
"""
CHIP-8 Toolkit Command Line
============================
Entry points for the three tools plus an interactive monitor.

  chip8        run a program in a pygame window (or the monitor)
  chip8asm     assemble source into a raw program image
  chip8disasm  disassemble a program image

Usage:
  chip8 [--frequency N] [-l] [-q] [-s N] [-t HZ] [--volume N] [-v] FILE
  chip8 --monitor [FILE]
  chip8asm [-o OUT] [-q] [-v] FILE|-
  chip8disasm [-o OUT] [-q] [-v] FILE
"""

from __future__ import annotations
import argparse
import cmd
import logging
import os
import shlex
import sys
from typing import Optional

from chip8 import Chip8, Chip8Error, PROG_START, MEM_SIZE
from asm import Assembler, AsmError
from disasm import Disassembler
from instruction import decode, format_instruction
from audio import ToneAudio
from display import Chip8Display
from system import Chip8System
from logsetup import setup_logging

log = logging.getLogger(__name__)

VERSION = "1.0.0"


# ---------------------------------------------------------------------------
#  Interactive monitor
# ---------------------------------------------------------------------------

class Chip8Monitor(cmd.Cmd):
    """Interactive monitor for a CHIP-8 VM."""

    intro = (
        "\n"
        "CHIP-8 Monitor  v" + VERSION + "\n"
        "Type 'help' for commands.  'quit' to exit.\n"
    )
    prompt = "CHIP8> "

    def __init__(self, vm: Chip8, stdout=None):
        super().__init__(stdout=stdout)
        self.vm = vm
        self.breakpoints: set[int] = set()

    def _print(self, text: str = ""):
        self.stdout.write(text + "\n")

    # -- Parsing helpers --

    def _parse_addr(self, s: str) -> int:
        """Parse an address: 0x / # hex, decimal, 'pc' or 'i'."""
        s = s.strip().lower()
        if s == "pc":
            return self.vm.pc
        if s == "i":
            return self.vm.reg_i
        if s.startswith("#"):
            return int(s[1:], 16)
        return int(s, 0)

    def _parse_int(self, s: str) -> int:
        return int(s.strip(), 0)

    # ================================================================
    #  Commands
    # ================================================================

    def do_load(self, arg):
        """Load a program image at 0x200: load <file>"""
        parts = shlex.split(arg)
        if not parts:
            self._print("Usage: load <file>")
            return
        try:
            self.vm.reset()
            self.vm.load_file(parts[0])
            self._print(f"Loaded '{parts[0]}' at {PROG_START:#05x}")
        except (OSError, Chip8Error) as e:
            self._print(f"Error: {e}")

    def do_asm(self, arg):
        """Assemble source and load: asm <file.asm>
        Or inline:  asm -e "LD V0, 5 ;; EXIT"  (';;' separates lines)"""
        parts = shlex.split(arg)
        if not parts:
            self._print("Usage: asm <file.asm>  OR  asm -e \"code\"")
            return
        try:
            if parts[0] == "-e":
                lines = " ".join(parts[1:]).split(";;")
            else:
                with open(parts[0], "r") as f:
                    lines = f.read().splitlines()
            chipasm = Assembler(shift_quirks=self.vm.shift_quirks)
            for text in lines:
                chipasm.process_line(text)
            code = bytes(chipasm.emit())
            self.vm.reset()
            self.vm.load_bytes(code)
            self._print(f"Assembled {len(code)} bytes at {PROG_START:#05x}")
        except AsmError as e:
            self._print(f"Assembly error: {e}")
        except (OSError, Chip8Error) as e:
            self._print(f"Error: {e}")

    def do_reset(self, arg):
        """Reset the VM (clears memory)."""
        self.vm.reset()
        self._print("VM reset.")

    def do_step(self, arg):
        """Step N instructions: step [count]"""
        count = self._parse_int(arg) if arg.strip() else 1
        for _ in range(count):
            if self.vm.halted:
                self._print("VM is halted.")
                break
            addr = self.vm.pc
            text = format_instruction(self.vm.current_instruction(),
                                      shift_quirks=self.vm.shift_quirks)
            self.vm.step()
            self._print(f"  {addr:03X}: {text}")

    def do_run(self, arg):
        """Run until halt or breakpoint: run [max_steps]"""
        max_steps = self._parse_int(arg) if arg.strip() else 1_000_000
        steps = 0
        while steps < max_steps:
            if self.vm.halted:
                self._print(f"VM halted after {steps} steps.")
                return
            if steps and self.vm.pc in self.breakpoints:
                self._print(f"Breakpoint hit at {self.vm.pc:03X}")
                return
            self.vm.step()
            steps += 1
        self._print(f"Stopped after {steps} steps.")

    def do_bp(self, arg):
        """Set a breakpoint: bp <address>  (no argument lists them)"""
        if not arg.strip():
            for addr in sorted(self.breakpoints):
                self._print(f"  {addr:03X}")
            return
        addr = self._parse_addr(arg)
        self.breakpoints.add(addr)
        self._print(f"Breakpoint set at {addr:03X}")

    def do_bpd(self, arg):
        """Delete a breakpoint: bpd <address>"""
        self.breakpoints.discard(self._parse_addr(arg))

    def do_regs(self, arg):
        """Show registers."""
        self._print(self.vm.dump_regs())
        depth = len(self.vm.stack)
        self._print(f"  Stack depth: {depth}  Halted: {self.vm.halted}  "
                    f"Hi-res: {self.vm.highres}  Steps: {self.vm.step_count}")

    def do_dump(self, arg):
        """Hex dump memory: dump <address> [count]
        Count defaults to 64 bytes."""
        parts = shlex.split(arg)
        if not parts:
            self._print("Usage: dump <address> [count]")
            return
        addr = self._parse_addr(parts[0])
        count = self._parse_int(parts[1]) if len(parts) > 1 else 64
        end = min(addr + count, MEM_SIZE)
        for row in range(addr, end, 16):
            data = self.vm.mem[row:min(row + 16, end)]
            hex_str = " ".join(f"{b:02x}" for b in data)
            self._print(f"  {row:03X}: {hex_str}")

    def do_disasm(self, arg):
        """Disassemble memory: disasm [address] [count]
        Defaults to current PC, 16 instructions."""
        parts = shlex.split(arg)
        addr = self._parse_addr(parts[0]) if parts else self.vm.pc
        count = self._parse_int(parts[1]) if len(parts) > 1 else 16
        for _ in range(count):
            if addr + 1 >= MEM_SIZE:
                break
            opcode = self.vm.opcode_at(addr)
            text = format_instruction(decode(opcode, self.vm.shift_quirks),
                                      shift_quirks=self.vm.shift_quirks)
            marker = ">>>" if addr == self.vm.pc else "   "
            self._print(f"  {marker} {addr:03X}: {opcode:04X}  {text}")
            addr += 2

    def do_key(self, arg):
        """Press or release a key: key <0-F> [up]"""
        parts = shlex.split(arg)
        if not parts:
            self._print(f"Keys down: {self.vm.key_states:016b}")
            return
        key = int(parts[0], 16)
        if len(parts) > 1 and parts[1].lower() == "up":
            self.vm.release_key(key)
        else:
            self.vm.press_key(key)

    def do_quit(self, arg):
        """Exit the monitor."""
        return True
    do_exit = do_quit

    def do_EOF(self, arg):
        self._print()
        return True

    def default(self, line):
        self._print(f"Unknown command: {line!r}.  Type 'help'.")

    def emptyline(self):
        pass

    def onecmd(self, line):
        try:
            return super().onecmd(line)
        except ValueError as e:
            self._print(f"Error: {e}")
            return False


# ---------------------------------------------------------------------------
#  chip8
# ---------------------------------------------------------------------------

class _Parser(argparse.ArgumentParser):
    """Argument parser whose usage errors exit with status 1."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def _volume(text: str) -> int:
    value = int(text)
    if not 0 <= value <= 100:
        raise argparse.ArgumentTypeError("volume must be between 0 and 100")
    return value


def _positive(text: str) -> int:
    value = int(text)
    if value <= 0:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return value


def main(argv: Optional[list[str]] = None) -> int:
    parser = _Parser(
        prog="chip8",
        description="CHIP-8 / Super-Chip interpreter",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Examples:\n"
               "  chip8 game.bin\n"
               "  chip8 -s 8 --volume 30 game.bin\n"
               "  chip8 --monitor game.bin\n",
    )
    parser.add_argument("file", nargs="?", help="program image to run")
    parser.add_argument("--frequency", type=_positive, default=60, metavar="N",
                        help="timer frequency in Hz (default 60)")
    parser.add_argument("-l", "--load-quirks", action="store_true",
                        help="LD [I]/LD Vx,[I] advance I")
    parser.add_argument("-q", "--shift-quirks", action="store_true",
                        help="SHR/SHL shift Vy into Vx")
    parser.add_argument("-s", "--scale", type=_positive, default=6,
                        metavar="N", help="window scale factor (default 6)")
    parser.add_argument("-t", "--tone", type=_positive, default=440,
                        metavar="HZ", help="buzzer frequency (default 440)")
    parser.add_argument("--volume", type=_volume, default=10,
                        help="buzzer volume 0-100 (default 10)")
    parser.add_argument("--speed", type=int, default=1000, metavar="IPS",
                        help="instructions per second, 0 = unthrottled")
    parser.add_argument("--monitor", action="store_true",
                        help="start the interactive monitor")
    parser.add_argument("--headless", action="store_true",
                        help="run without window or audio")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="more logging (repeatable)")
    parser.add_argument("-V", "--version", action="version",
                        version=f"%(prog)s {VERSION}")
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    vm = Chip8(load_quirks=args.load_quirks, shift_quirks=args.shift_quirks,
               timer_freq=args.frequency)

    if args.monitor:
        mon = Chip8Monitor(vm)
        if args.file:
            mon.do_load(args.file)
        try:
            mon.cmdloop()
        except KeyboardInterrupt:
            print("\nInterrupted. Goodbye.")
        return 0

    if not args.file:
        parser.print_usage(sys.stderr)
        log.error("no program file given")
        return 1

    try:
        vm.load_file(args.file)
    except (OSError, Chip8Error) as e:
        log.error("Could not load game: %s", e)
        return 1

    if args.headless:
        system = Chip8System(vm, speed=args.speed)
    else:
        system = Chip8System(vm, speed=args.speed,
                             audio=ToneAudio(args.tone, args.volume))
        system.display = Chip8Display(vm, scale=args.scale,
                                      on_quit=system.request_quit)
    try:
        system.run()
    except KeyboardInterrupt:
        log.info("Interrupted")
    except Exception as e:
        log.error("Shutting down interpreter: %s", e)
        return 1
    if getattr(system.display, "error", None) is not None:
        return 1
    return 0


# ---------------------------------------------------------------------------
#  chip8asm
# ---------------------------------------------------------------------------

def default_output(path: str, ext: str = ".bin") -> str:
    """Replace the extension of ``path`` (or append one)."""
    root, _ = os.path.splitext(path)
    return root + ext


def asm_main(argv: Optional[list[str]] = None) -> int:
    parser = _Parser(
        prog="chip8asm", description="CHIP-8 / Super-Chip assembler")
    parser.add_argument("file", help="source file ('-' for stdin)")
    parser.add_argument("-o", "--output", default=None,
                        help="output file (default: input with .bin)")
    parser.add_argument("-q", "--shift-quirks", action="store_true",
                        help="SHR/SHL take two register operands")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="more logging (repeatable)")
    parser.add_argument("-V", "--version", action="version",
                        version=f"%(prog)s {VERSION}")
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    chipasm = Assembler(shift_quirks=args.shift_quirks)
    try:
        if args.file == "-":
            lines = sys.stdin.read().splitlines()
        else:
            with open(args.file, "r") as f:
                lines = f.read().splitlines()
        for text in lines:
            chipasm.process_line(text)
        code = bytes(chipasm.emit())
    except AsmError as e:
        log.error("%s", e)
        return 1
    except OSError as e:
        log.error("Could not read input: %s", e)
        return 1

    out_path = args.output
    if out_path is None and args.file != "-":
        out_path = default_output(args.file)
    try:
        if out_path is None or out_path == "-":
            sys.stdout.buffer.write(code)
            sys.stdout.flush()
        else:
            with open(out_path, "wb") as f:
                f.write(code)
            log.info("Assembled %s -> %s (%d bytes)", args.file, out_path,
                     len(code))
    except OSError as e:
        log.error("Could not write output: %s", e)
        return 1
    return 0


# ---------------------------------------------------------------------------
#  chip8disasm
# ---------------------------------------------------------------------------

def disasm_main(argv: Optional[list[str]] = None) -> int:
    parser = _Parser(
        prog="chip8disasm", description="CHIP-8 / Super-Chip disassembler")
    parser.add_argument("file", help="program image")
    parser.add_argument("-o", "--output", default=None,
                        help="output file (default: stdout)")
    parser.add_argument("-q", "--shift-quirks", action="store_true",
                        help="render SHR/SHL with two register operands")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="more logging (repeatable)")
    parser.add_argument("-V", "--version", action="version",
                        version=f"%(prog)s {VERSION}")
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        disasm = Disassembler.from_file(args.file,
                                        shift_quirks=args.shift_quirks)
    except (OSError, Chip8Error) as e:
        log.error("Could not disassemble '%s': %s", args.file, e)
        return 1

    try:
        if args.output is None or args.output == "-":
            disasm.dump(sys.stdout)
        else:
            with open(args.output, "w") as f:
                disasm.dump(f)
    except OSError as e:
        log.error("Could not dump disassembly to output file: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
