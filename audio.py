"""
CHIP-8 Buzzer
==============
The sound timer drives a single square-wave tone.  The wave is
precomputed once as a one-period ring buffer; the pygame mixer loops it
and the system loop pauses or resumes playback as ST becomes zero or
non-zero.
"""

from __future__ import annotations
import logging

import numpy as np

log = logging.getLogger(__name__)

SAMPLE_RATE = 48000
INT16_MAX = 32767

# Seconds of audio handed to the mixer per loop iteration
LOOP_SECONDS = 0.25


class ToneRing:
    """One period of a square wave, read back as an endless stream."""

    def __init__(self, sample_rate: int, frequency: int, amplitude: int):
        if frequency <= 0 or frequency > sample_rate:
            raise ValueError(f"Tone frequency out of range: {frequency}")
        period = sample_rate // frequency
        self.buf = np.empty(period, dtype=np.int16)
        self.buf[:period // 2] = amplitude
        self.buf[period // 2:] = -amplitude
        self.pos = 0

    def __len__(self) -> int:
        return len(self.buf)

    def fill(self, count: int) -> np.ndarray:
        """Return the next ``count`` samples, wrapping around the buffer."""
        idx = (self.pos + np.arange(count)) % len(self.buf)
        self.pos = (self.pos + count) % len(self.buf)
        return self.buf[idx]


def square_wave(sample_rate: int, frequency: int, volume: int) -> ToneRing:
    """Square wave at ``volume`` percent (0-100) of full scale."""
    volume = max(0, min(100, volume))
    return ToneRing(sample_rate, frequency, volume * INT16_MAX // 100)


class ToneAudio:
    """pygame.mixer sink: loops the tone and pauses it on request."""

    def __init__(self, frequency: int = 440, volume: int = 10,
                 sample_rate: int = SAMPLE_RATE):
        self.ring = square_wave(sample_rate, frequency, volume)
        self.sample_rate = sample_rate
        self._sound = None
        self._channel = None
        self.playing = False

    def start(self):
        import pygame

        pygame.mixer.init(frequency=self.sample_rate, size=-16, channels=1)
        _, _, channels = pygame.mixer.get_init()
        # whole periods only, so the loop point is seamless
        periods = max(1, int(self.sample_rate * LOOP_SECONDS) // len(self.ring))
        samples = self.ring.fill(periods * len(self.ring))
        if channels > 1:
            samples = np.repeat(samples[:, None], channels, axis=1)
        self._sound = pygame.sndarray.make_sound(np.ascontiguousarray(samples))
        self._channel = self._sound.play(loops=-1)
        if self._channel is not None:
            self._channel.pause()
        log.info("Audio started (%d Hz tone, %d samples/period)",
                 self.sample_rate // len(self.ring), len(self.ring))

    def set_playing(self, on: bool):
        if on == self.playing or self._channel is None:
            self.playing = on
            return
        if on:
            self._channel.unpause()
        else:
            self._channel.pause()
        self.playing = on

    def stop(self):
        import pygame

        if self._sound is not None:
            self._sound.stop()
            self._sound = None
            self._channel = None
        if pygame.mixer.get_init():
            pygame.mixer.quit()
        self.playing = False


class SilentAudio:
    """No-op audio sink for headless runs and tests."""

    def __init__(self):
        self.playing = False
        self.toggles = 0

    def start(self):
        pass

    def set_playing(self, on: bool):
        if on != self.playing:
            self.toggles += 1
        self.playing = on

    def stop(self):
        self.playing = False
