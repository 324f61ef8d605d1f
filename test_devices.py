#!/usr/bin/env python3
"""
regvm Peripheral Tests
=======================
Key decoding, keyboards, line input and the random source.

Run with:  python -m pytest test_devices.py
"""

import io
import os
import threading
import unittest

from devices import (
    KEY_BACKSPACE, KEY_ENTER, KEY_ESC, KEY_TAB, KEY_UNKNOWN,
    Keyboard, LineInput, RandomSource, ScriptedKeyboard, TerminalKeyboard,
    decode_keys, key_byte,
)


class TestKeyByte(unittest.TestCase):
    def test_named_keys(self):
        self.assertEqual(key_byte(KEY_ENTER), 10)
        self.assertEqual(key_byte(KEY_TAB), 9)
        self.assertEqual(key_byte(KEY_BACKSPACE), 8)
        self.assertEqual(key_byte(KEY_ESC), 27)

    def test_printable(self):
        self.assertEqual(key_byte("a"), 97)
        self.assertEqual(key_byte(" "), 32)
        self.assertEqual(key_byte("~"), 126)

    def test_unknown(self):
        self.assertEqual(key_byte(KEY_UNKNOWN), 0)
        self.assertEqual(key_byte("F1"), 0)
        self.assertEqual(key_byte(""), 0)

    def test_wide_character_is_masked(self):
        self.assertEqual(key_byte("Ł"), 0x41)


class TestDecodeKeys(unittest.TestCase):
    def test_plain_text(self):
        self.assertEqual(decode_keys(b"hi!"), ["h", "i", "!"])

    def test_control_keys(self):
        self.assertEqual(decode_keys(b"\r\n\t\x08\x7f"),
                         [KEY_ENTER, KEY_ENTER, KEY_TAB,
                          KEY_BACKSPACE, KEY_BACKSPACE])

    def test_lone_escape(self):
        self.assertEqual(decode_keys(b"\x1b"), [KEY_ESC])
        self.assertEqual(decode_keys(b"\x1bx"), [KEY_ESC, "x"])

    def test_escape_sequences_collapse(self):
        # Up arrow, then F1 (SS3), then a delete key (CSI 3 ~)
        self.assertEqual(decode_keys(b"\x1b[A\x1bOP\x1b[3~z"),
                         [KEY_UNKNOWN, KEY_UNKNOWN, KEY_UNKNOWN, "z"])

    def test_other_control_is_unknown(self):
        self.assertEqual(decode_keys(b"\x01"), [KEY_UNKNOWN])

    def test_empty(self):
        self.assertEqual(decode_keys(b""), [])


class TestKeyboards(unittest.TestCase):
    def test_base_keyboard_never_has_keys(self):
        kb = Keyboard()
        self.assertEqual(kb.poll(), [])
        self.assertEqual(kb.read_key(), 0)

    def test_read_key_takes_first_and_drops_rest(self):
        kb = ScriptedKeyboard()
        kb.inject("x", "y", KEY_ENTER)
        self.assertEqual(kb.read_key(), ord("x"))
        self.assertEqual(kb.read_key(), 0)

    def test_batches_delivered_one_per_poll(self):
        kb = ScriptedKeyboard([["a"], [], [KEY_ESC, "b"]])
        self.assertEqual(kb.read_key(), ord("a"))
        self.assertEqual(kb.read_key(), 0)
        self.assertEqual(kb.read_key(), 27)
        self.assertEqual(kb.read_key(), 0)

    def test_feed(self):
        kb = ScriptedKeyboard()
        kb.feed(["q", "r"])
        self.assertEqual(kb.poll(), ["q", "r"])
        self.assertEqual(kb.poll(), [])

    def test_inject_from_another_thread(self):
        kb = ScriptedKeyboard()
        threads = [threading.Thread(target=kb.inject, args=("k",))
                   for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(kb.poll(), ["k"] * 20)

    def test_terminal_keyboard_without_tty(self):
        kb = TerminalKeyboard(io.StringIO("abc"))
        self.assertIsNone(kb.fd)
        self.assertFalse(kb.is_tty)
        self.assertEqual(kb.read_key(), 0)

    def test_terminal_keyboard_on_pipe(self):
        r, w = os.pipe()
        try:
            with os.fdopen(r, "r") as stream:
                kb = TerminalKeyboard(stream)
                self.assertEqual(kb.fd, r)
                self.assertFalse(kb.is_tty)
                self.assertEqual(kb.poll(), [])
        finally:
            os.close(w)


class TestLineInput(unittest.TestCase):
    def test_lines_without_terminators(self):
        li = LineInput(io.StringIO("one\r\ntwo\nlast"))
        self.assertEqual(li.readline(), "one")
        self.assertEqual(li.readline(), "two")
        self.assertEqual(li.readline(), "last")
        self.assertEqual(li.readline(), "")

    def test_keeps_inner_whitespace(self):
        li = LineInput(io.StringIO("  a b  \n"))
        self.assertEqual(li.readline(), "  a b  ")


class TestRandomSource(unittest.TestCase):
    def test_seeded_sequences_repeat(self):
        a = RandomSource(99)
        b = RandomSource(99)
        self.assertEqual([a.next_byte() for _ in range(50)],
                         [b.next_byte() for _ in range(50)])

    def test_range(self):
        rng = RandomSource(3)
        values = [rng.next_byte() for _ in range(2000)]
        self.assertTrue(all(0 <= v <= 255 for v in values))
        self.assertGreater(len(set(values)), 200)

    def test_unseeded(self):
        rng = RandomSource()
        self.assertIsNone(rng.seed)
        self.assertTrue(0 <= rng.next_byte() <= 255)


if __name__ == "__main__":
    unittest.main()
