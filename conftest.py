"""
Pytest configuration for the CHIP-8 toolkit test suite.

pygame is driven through SDL's dummy drivers so the window and mixer
tests run without a screen or sound card.

    python -m pytest              # everything
    python -m pytest -m "not display"
"""

import os

os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")


def pytest_configure(config):
    config.addinivalue_line("markers",
        "display: tests that open a (dummy) pygame window or mixer")
