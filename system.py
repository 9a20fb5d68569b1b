"""
CHIP-8 System
==============
Wires together:
  - the Chip8 interpreter (chip8.py)
  - a display (display.py): pygame window or headless recorder
  - an audio sink (audio.py): pygame mixer tone or silence

The run loop steps the interpreter, lets the display pick up new frames,
switches the buzzer with the sound timer and stops when the program
halts or the window is closed.  Instruction rate is paced in small
batches against the monotonic clock; a speed of 0 runs flat out.
"""

from __future__ import annotations
import logging
import threading
import time
from typing import Optional

from chip8 import Chip8
from audio import SilentAudio
from display import HeadlessDisplay

log = logging.getLogger(__name__)

DEFAULT_SPEED = 1000     # instructions per second
BATCH_HZ = 240           # pacing granularity


class Chip8System:
    """A VM plus its display, audio and keyboard collaborators."""

    def __init__(self, vm: Optional[Chip8] = None, display=None, audio=None,
                 speed: int = DEFAULT_SPEED):
        self.vm = vm if vm is not None else Chip8()
        self.display = display if display is not None else HeadlessDisplay(self.vm)
        self.audio = audio if audio is not None else SilentAudio()
        self.speed = speed
        self._quit = threading.Event()

    def load_file(self, path: str):
        self.vm.load_file(path)

    def load_bytes(self, data: bytes | bytearray):
        self.vm.load_bytes(data)

    def request_quit(self):
        """Ask the run loop to stop (safe from any thread)."""
        self._quit.set()

    @property
    def quit_requested(self) -> bool:
        return self._quit.is_set()

    def step(self):
        """One interpreter step plus collaborator updates."""
        self.vm.step()
        self.display.update()
        self.audio.set_playing(self.vm.sound_on)

    def run(self, max_steps: Optional[int] = None) -> int:
        """Run until halt, quit request or max_steps.  Returns steps run."""
        self.display.start()
        self.audio.start()
        steps = 0
        try:
            batch = max(1, self.speed // BATCH_HZ) if self.speed else 1000
            interval = batch / self.speed if self.speed else 0.0
            deadline = time.monotonic()
            while not self.vm.halted and not self._quit.is_set():
                for _ in range(batch):
                    self.step()
                    steps += 1
                    if self.vm.halted or (max_steps is not None
                                          and steps >= max_steps):
                        break
                if max_steps is not None and steps >= max_steps:
                    break
                if interval:
                    deadline += interval
                    delay = deadline - time.monotonic()
                    if delay > 0:
                        time.sleep(delay)
                    else:
                        # fell behind; don't try to catch up in a burst
                        deadline = time.monotonic()
        finally:
            self.audio.stop()
            self.display.stop()
        if self.vm.halted:
            log.info("Interpreter was halted after %d steps", steps)
        return steps
