"""
Pytest configuration for the regvm test suite.

    python -m pytest                 # everything
    python -m pytest -m "not display"   # skip the pygame window tests

The pygame tests run headless: SDL is pointed at its dummy video driver
before any test module imports pygame.
"""

import os

os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers",
        "display: tests that drive pygame (skipped when pygame is missing)")
