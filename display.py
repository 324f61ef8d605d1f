"""
regvm Character Display
========================
A fixed 80x25 character grid written by the DRAW / CLS instructions and
dumped as a bordered text block by RENDER.

Optionally mirrored into a pygame window running in a background thread
so the program's screen can be watched live while the console carries
PRINT output.

Usage (programmatic):
    from display import Screen, ScreenWindow
    screen = Screen()
    win = ScreenWindow(screen)
    win.start()       # launches background thread
    ...               # run the machine normally
    win.stop()        # clean shutdown

Usage (CLI):
    regvm game.asm --window
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

SCREEN_COLS = 80
SCREEN_ROWS = 25
BLANK = " "

# ANSI: erase display, cursor home
CLEAR_TERMINAL = "\x1b[2J\x1b[H"


def is_control(code: int) -> bool:
    """C0 and C1 control characters (NUL included)."""
    return code < 0x20 or 0x7F <= code <= 0x9F


# ── Screen buffer ─────────────────────────────────────────────────────


class Screen:
    """Character grid addressed as (x, y), x = column, y = row."""

    def __init__(self, cols: int = SCREEN_COLS, rows: int = SCREEN_ROWS):
        self.cols = cols
        self.rows = rows
        self.grid: list[list[str]] = []
        self._lock = threading.Lock()
        self._dirty = True
        self.clear()

    def clear(self):
        with self._lock:
            self.grid = [[BLANK] * self.cols for _ in range(self.rows)]
            self._dirty = True

    def put(self, x: int, y: int, code: int) -> bool:
        """Write one character.  Off-grid writes are dropped (returns False)."""
        if x >= self.cols or y >= self.rows or x < 0 or y < 0:
            return False
        ch = BLANK if is_control(code) else chr(code)
        with self._lock:
            self.grid[y][x] = ch
            self._dirty = True
        return True

    def char_at(self, x: int, y: int) -> str:
        return self.grid[y][x]

    def lines(self) -> list[str]:
        with self._lock:
            return ["".join(row) for row in self.grid]

    def render(self) -> str:
        """Bordered text block, one line per row, trailing newline."""
        border = "+" + "-" * self.cols + "+"
        out = [border]
        out.extend(f"|{row}|" for row in self.lines())
        out.append(border)
        return "\n".join(out) + "\n"

    def take_dirty(self) -> bool:
        """Return and reset the changed-since-last-look flag."""
        with self._lock:
            dirty = self._dirty
            self._dirty = False
            return dirty


# ── pygame mirror ─────────────────────────────────────────────────────


class ScreenWindow:
    """Background-threaded pygame window showing a Screen.

    Key presses in the window are forwarded to ``on_key`` (if given) as
    key event tokens, so INKEY works with the window focused.
    """

    FG = (170, 170, 170)
    BG = (0, 0, 0)

    def __init__(self, screen: Screen, scale: int = 1,
                 title: str = "regvm",
                 on_key: Optional[Callable[[str], None]] = None):
        self.screen = screen
        self.scale = max(1, scale)
        self.title = title
        self.on_key = on_key
        self.fps = 30
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._started = threading.Event()

    # -- public API -------------------------------------------------------

    def start(self):
        """Start the display thread.  Returns once the window is open."""
        import pygame  # ImportError surfaces in the caller, not the thread

        self._stop_event.clear()
        self._started.clear()
        self._thread = threading.Thread(target=self._run, daemon=True,
                                        name="regvm-display")
        self._thread.start()
        self._started.wait(timeout=5.0)

    def stop(self):
        """Signal the display thread to shut down and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=3.0)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def render(self, pygame_module, font, cell_w: int, cell_h: int):
        """Render the screen grid to a pygame surface."""
        surface = pygame_module.Surface((self.screen.cols * cell_w,
                                         self.screen.rows * cell_h))
        surface.fill(self.BG)
        for y, row in enumerate(self.screen.lines()):
            for x, ch in enumerate(row):
                if ch != BLANK:
                    glyph = font.render(ch, False, self.FG)
                    surface.blit(glyph, (x * cell_w, y * cell_h))
        return surface

    # -- internals --------------------------------------------------------

    def _key_token(self, pygame, event) -> Optional[str]:
        if event.key == pygame.K_RETURN:
            return "Enter"
        if event.key == pygame.K_TAB:
            return "Tab"
        if event.key == pygame.K_BACKSPACE:
            return "Backspace"
        if event.key == pygame.K_ESCAPE:
            return "Esc"
        if event.unicode and event.unicode.isprintable():
            return event.unicode
        return "Unknown"

    def _run(self):
        """Main display loop (runs in background thread)."""
        import pygame

        pygame.init()
        pygame.display.set_caption(self.title)

        font = pygame.font.Font(None, 16 * self.scale)
        test = font.render("M", False, self.FG)
        cell_w = test.get_width()
        cell_h = font.get_linesize()

        window = pygame.display.set_mode((self.screen.cols * cell_w,
                                          self.screen.rows * cell_h))
        clock = pygame.time.Clock()
        self._started.set()

        try:
            while not self._stop_event.is_set():
                for event in pygame.event.get():
                    if event.type == pygame.QUIT:
                        self._stop_event.set()
                        return
                    if event.type == pygame.KEYDOWN and self.on_key:
                        self.on_key(self._key_token(pygame, event))

                if self.screen.take_dirty():
                    window.blit(self.render(pygame, font, cell_w, cell_h),
                                (0, 0))
                    pygame.display.flip()
                clock.tick(self.fps)
        except Exception as e:
            print(f"\n[display] error: {e}")
        finally:
            pygame.quit()
