"""
CHIP-8 Display Window
======================
Renders the interpreter's 128x64 display in a pygame window and feeds
keyboard state back into the VM.  Runs in a background thread so it
doesn't block the interpreter loop.

In low-resolution mode only the top-left 64x32 pixels are shown, each
drawn twice as large, so the window size never changes.

Keypad layout (CHIP-8 key -> keyboard key):

    1 2 3 C        1 2 3 4
    4 5 6 D   <-   q w e r
    7 8 9 E        a s d f
    A 0 B F        z x c v

Usage (programmatic):
    from display import Chip8Display
    disp = Chip8Display(vm, scale=6)
    disp.start()       # launches background thread
    ...                # step the VM
    disp.stop()        # clean shutdown
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Callable, Optional

import numpy as np

from chip8 import DISPLAY_WIDTH, DISPLAY_HEIGHT

if TYPE_CHECKING:
    from chip8 import Chip8

log = logging.getLogger(__name__)

KEYMAP = {
    0x0: "x", 0x1: "1", 0x2: "2", 0x3: "3",
    0x4: "q", 0x5: "w", 0x6: "e", 0x7: "a",
    0x8: "s", 0x9: "d", 0xA: "z", 0xB: "c",
    0xC: "4", 0xD: "r", 0xE: "f", 0xF: "v",
}

ON_COLOR = (255, 255, 255)
OFF_COLOR = (0, 0, 0)


def render_frame(display: np.ndarray, highres: bool, scale: int) -> np.ndarray:
    """Expand the boolean [x, y] display into a (w, h, 3) RGB array."""
    if highres:
        pixels, factor = display, scale
    else:
        pixels = display[:DISPLAY_WIDTH // 2, :DISPLAY_HEIGHT // 2]
        factor = scale * 2
    big = pixels.repeat(factor, axis=0).repeat(factor, axis=1)
    rgb = np.empty(big.shape + (3,), dtype=np.uint8)
    rgb[big] = ON_COLOR
    rgb[~big] = OFF_COLOR
    return rgb


class Chip8Display:
    """Background-threaded pygame window for one VM."""

    def __init__(self, vm: "Chip8", scale: int = 6, title: str = "Chip-8",
                 on_quit: Optional[Callable[[], None]] = None):
        self.vm = vm
        self.scale = max(1, scale)
        self.title = title
        self.on_quit = on_quit
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._started = threading.Event()
        self.fps = 60
        self.error: Optional[Exception] = None

    # -- public API -------------------------------------------------------

    def start(self):
        """Start the display thread.  Returns once the window is open."""
        self._stop_event.clear()
        self._started.clear()
        self._thread = threading.Thread(target=self._run, daemon=True,
                                        name="chip8-display")
        self._thread.start()
        self._started.wait(timeout=5.0)

    def stop(self):
        """Signal the display thread to shut down and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=3.0)
            self._thread = None

    def update(self):
        """Called from the interpreter loop; the thread does the drawing."""
        pass

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -- internals --------------------------------------------------------

    def _run(self):
        """Main display loop (runs in background thread)."""
        import pygame

        try:
            pygame.display.init()
            size = (DISPLAY_WIDTH * self.scale, DISPLAY_HEIGHT * self.scale)
            screen = pygame.display.set_mode(size)
            pygame.display.set_caption(self.title)
            keys = {pygame.key.key_code(name): k for k, name in KEYMAP.items()}
        except pygame.error as e:
            log.error("Could not open display window: %s", e)
            self.error = e
            self._started.set()
            self._quit()
            return

        self._started.set()
        clock = pygame.time.Clock()
        try:
            while not self._stop_event.is_set():
                for event in pygame.event.get():
                    if event.type == pygame.QUIT:
                        self._quit()
                    elif event.type in (pygame.WINDOWEXPOSED,
                                        pygame.WINDOWRESIZED):
                        self.vm.needs_refresh = True
                    elif event.type == pygame.KEYDOWN and event.key in keys:
                        self.vm.press_key(keys[event.key])
                    elif event.type == pygame.KEYUP and event.key in keys:
                        self.vm.release_key(keys[event.key])

                if self.vm.needs_refresh:
                    self.vm.needs_refresh = False
                    frame = render_frame(self.vm.display, self.vm.highres,
                                         self.scale)
                    pygame.surfarray.blit_array(screen, frame)
                    pygame.display.flip()
                clock.tick(self.fps)
        finally:
            pygame.display.quit()

    def _quit(self):
        self._stop_event.set()
        if self.on_quit is not None:
            self.on_quit()


class HeadlessDisplay:
    """No-op display for testing; records a frame per refresh."""

    def __init__(self, vm: "Chip8", max_frames: int = 64):
        self.vm = vm
        self.max_frames = max_frames
        self.frames: list[np.ndarray] = []

    def start(self):
        pass

    def stop(self):
        pass

    def update(self):
        if not self.vm.needs_refresh:
            return
        self.vm.needs_refresh = False
        self.frames.append(self.vm.display.copy())
        if len(self.frames) > self.max_frames:
            del self.frames[0]

    def snapshot(self) -> np.ndarray:
        return self.vm.display.copy()

    @property
    def running(self) -> bool:
        return False
