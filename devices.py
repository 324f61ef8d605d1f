"""
regvm Peripheral Layer
=======================
Host-side capabilities the machine calls into:

  LineInput         blocking line reader           (INPUT)
  Keyboard          non-blocking key poll          (INKEY)
    ScriptedKeyboard    keys injected by tests / the display window
    TerminalKeyboard    raw-mode poll of a tty
  RandomSource      pseudo-random bytes            (RAND)

SLP takes any sleep(seconds) callable; time.sleep by default.

All of these are passed to the Machine explicitly, so the engine can be
driven without a real terminal or clock.
"""

from __future__ import annotations
import os
import random
import sys
import threading
from collections import deque
from typing import Iterable, Optional, TextIO

# ---------------------------------------------------------------------------
#  Key codes
# ---------------------------------------------------------------------------

KEY_ENTER     = "Enter"
KEY_TAB       = "Tab"
KEY_BACKSPACE = "Backspace"
KEY_ESC       = "Esc"
KEY_UNKNOWN   = "Unknown"

KEY_CODES = {
    KEY_ENTER:     10,
    KEY_TAB:       9,
    KEY_BACKSPACE: 8,
    KEY_ESC:       27,
}


def key_byte(key: str) -> int:
    """Map one key event token to the byte INKEY stores."""
    if key in KEY_CODES:
        return KEY_CODES[key]
    if len(key) == 1:
        return ord(key) & 0xFF
    return 0


def decode_keys(data: bytes) -> list[str]:
    """Split raw terminal input into key event tokens."""
    text = data.decode("utf-8", errors="ignore")
    keys: list[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        i += 1
        if ch == "\x1b":
            if i < len(text) and text[i] in "[O":
                # CSI / SS3 sequence (arrows, function keys): swallow it
                i += 1
                while i < len(text) and not ("@" <= text[i] <= "~"):
                    i += 1
                i += 1
                keys.append(KEY_UNKNOWN)
            else:
                keys.append(KEY_ESC)
        elif ch in "\r\n":
            keys.append(KEY_ENTER)
        elif ch == "\t":
            keys.append(KEY_TAB)
        elif ch in "\x08\x7f":
            keys.append(KEY_BACKSPACE)
        elif ch.isprintable():
            keys.append(ch)
        else:
            keys.append(KEY_UNKNOWN)
    return keys

# ---------------------------------------------------------------------------
#  Keyboard
# ---------------------------------------------------------------------------

class Keyboard:
    """Abstract non-blocking keyboard."""

    def poll(self) -> list[str]:
        """Return (and consume) every pending key event, oldest first."""
        return []

    def read_key(self) -> int:
        """INKEY semantics: first pending key as a byte, others dropped."""
        events = self.poll()
        if not events:
            return 0
        return key_byte(events[0])


class ScriptedKeyboard(Keyboard):
    """Keyboard fed programmatically.

    ``inject`` queues key event tokens; a call to ``poll`` takes the whole
    queue.  ``feed`` queues a batch that is delivered on one later poll,
    for simulating several keys arriving between two INKEYs.
    """

    def __init__(self, batches: Iterable[Iterable[str]] = ()):
        self._lock = threading.Lock()
        self._pending: deque[str] = deque()
        self._batches: deque[list[str]] = deque(list(b) for b in batches)

    def inject(self, *keys: str):
        with self._lock:
            self._pending.extend(keys)

    def feed(self, keys: Iterable[str]):
        with self._lock:
            self._batches.append(list(keys))

    def poll(self) -> list[str]:
        with self._lock:
            if self._pending:
                events = list(self._pending)
                self._pending.clear()
                return events
            if self._batches:
                return self._batches.popleft()
            return []


class TerminalKeyboard(Keyboard):
    """Polls a tty in raw mode with a zero timeout.

    Terminal settings are restored after every poll so PRINT output and
    INPUT line editing behave normally between INKEYs.  A stream that is
    not a tty never reports pending keys.
    """

    READ_CHUNK = 64

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream if stream is not None else sys.stdin
        try:
            self.fd: Optional[int] = self.stream.fileno()
        except (AttributeError, OSError, ValueError):
            self.fd = None

    @property
    def is_tty(self) -> bool:
        return self.fd is not None and os.isatty(self.fd)

    def poll(self) -> list[str]:
        if not self.is_tty:
            return []
        import select
        import termios
        import tty

        fd = self.fd
        old_settings = termios.tcgetattr(fd)
        data = b""
        try:
            # TCSANOW: the default TCSAFLUSH would discard queued keys
            tty.setraw(fd, termios.TCSANOW)
            while select.select([fd], [], [], 0)[0]:
                chunk = os.read(fd, self.READ_CHUNK)
                if not chunk:
                    break
                data += chunk
        finally:
            termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)
        return decode_keys(data)

# ---------------------------------------------------------------------------
#  Line input
# ---------------------------------------------------------------------------

class LineInput:
    """Blocking line reader over a text stream (stdin by default)."""

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream

    def readline(self) -> str:
        """One line without its terminator; "" at end of input."""
        stream = self.stream if self.stream is not None else sys.stdin
        line = stream.readline()
        return line.rstrip("\r\n")

# ---------------------------------------------------------------------------
#  Random source
# ---------------------------------------------------------------------------

class RandomSource:
    """Pseudo-random bytes.  seed=None seeds from the OS."""

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self.rng = random.Random(seed)

    def next_byte(self) -> int:
        return self.rng.randint(0, 255)
