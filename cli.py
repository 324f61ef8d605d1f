#!/usr/bin/env python3
"""
regvm Command-Line Front End
=============================
Runs an assembly program from a file, or collects one interactively.

Provides:
  - File mode: assemble FILE, run it to HALT / end of program
  - Entry mode (no FILE): type statements line by line, 'run' to execute
  - Debug dump of registers / memory / flags after the run
  - Instruction trace and assembly listing
  - Optional pygame window mirroring the 80x25 screen

Usage:
  regvm [FILE] [--debug] [--trace] [--listing] [--seed N]
        [--window] [--scale N]
"""

from __future__ import annotations
import argparse
import cmd
import sys
import time
from typing import Optional

from asm import AsmError, UnresolvedLabelError, assemble
from devices import LineInput, RandomSource, ScriptedKeyboard, TerminalKeyboard
from display import Screen, ScreenWindow
from machine import Machine, MachineError

WIDTH = 80
RULE = "-" * (WIDTH + 2)
HALT_BANNER = "\n!-!- HALT !-!\n"


def center_print(text: str, total_width: int = WIDTH, out=None):
    """Print ``text`` centered in a line of dashes."""
    padding = max(0, (total_width - len(text)) // 2)
    rest = max(0, total_width - padding - len(text))
    print(f"{'-' * padding} {text} {'-' * rest}", file=out)


def debug_dump(vm: Machine, elapsed: float, out=None):
    center_print("DEBUG INFO", WIDTH, out)
    print("Registers:", file=out)
    print(vm.dump_regs(), file=out)
    print("Memory:", file=out)
    print(vm.dump_mem(), file=out)
    print(f"Program Counter: {vm.pc}", file=out)
    print(f"Zero Flag: {vm.zf}", file=out)
    print(f"Program Length: {len(vm.program)}", file=out)
    print(f"Instructions executed: {vm.steps}", file=out)
    print(f"Execution time: {elapsed * 1000:.3f} ms", file=out)

# ---------------------------------------------------------------------------
#  Running a program
# ---------------------------------------------------------------------------

class Session:
    """Everything one run needs: peripherals, options, the machine."""

    def __init__(self, debug: bool = False, trace: bool = False,
                 seed: Optional[int] = None, window: bool = False,
                 scale: int = 1):
        self.debug = debug
        self.trace = trace
        self.seed = seed
        self.window = window
        self.scale = scale

    def _open_window(self, screen: Screen):
        keyboard = ScriptedKeyboard()
        win = ScreenWindow(screen, scale=self.scale,
                           on_key=lambda k: keyboard.inject(k))
        try:
            win.start()
        except ImportError as e:
            print(f"[display] pygame not available: {e}", file=sys.stderr)
            print("[display] Install with: pip install pygame",
                  file=sys.stderr)
            return None, TerminalKeyboard()
        print("[display] Screen window opened "
              f"(scale={self.scale}x)", file=sys.stderr)
        return win, keyboard

    def run(self, program) -> Machine:
        screen = Screen()
        win, keyboard = None, TerminalKeyboard()
        if self.window:
            win, keyboard = self._open_window(screen)

        vm = Machine(program,
                     line_input=LineInput(),
                     keyboard=keyboard,
                     rng=RandomSource(self.seed),
                     screen=screen,
                     trace=sys.stderr if self.trace else None)
        start = time.perf_counter()
        try:
            vm.run()
        finally:
            elapsed = time.perf_counter() - start
            if win is not None:
                win.stop()
            if self.debug:
                debug_dump(vm, elapsed)

        if vm.halted:
            print(HALT_BANNER)
        print(f"{RULE}\nExecution finished.\n{RULE}")
        return vm

# ---------------------------------------------------------------------------
#  Interactive entry mode
# ---------------------------------------------------------------------------

class EntryShell(cmd.Cmd):
    intro = (
        "\n"
        f"{'-' * 35} IDLE MODE {'-' * 36}\n"
        "No file provided. Enter instructions manually:\n"
        f"{RULE}\n"
        "Type 'RUN' to execute the program, 'HELP' for commands.\n"
        f"{RULE}"
    )
    prompt = "> "

    COMMANDS = ("run", "list", "clear", "debug", "quit", "help")

    def __init__(self, session: Session, stdin=None, stdout=None):
        super().__init__(stdin=stdin, stdout=stdout)
        if stdin is not None:
            self.use_rawinput = False
        self.session = session
        self.lines: list[str] = []

    def _say(self, text: str = ""):
        self.stdout.write(text + "\n")

    def precmd(self, line):
        # Shell commands are case-insensitive; statements pass through as typed
        parts = line.strip().split(None, 1)
        if parts and parts[0].lower() in self.COMMANDS:
            parts[0] = parts[0].lower()
            return " ".join(parts)
        return line

    def parseline(self, line):
        # "run: HALT" is a labelled statement, not the run command
        parts = line.split(None, 1)
        if parts and parts[0].endswith(":"):
            return None, None, line
        return super().parseline(line)

    # -- Statement entry --

    def default(self, line):
        # Check the line alone first: a pending forward reference earlier in
        # the buffer would otherwise mask its errors
        for source in (line, "\n".join(self.lines + [line])):
            try:
                assemble(source)
            except UnresolvedLabelError:
                pass        # may be declared by a later line
            except AsmError as e:
                self._say(f"Unknown instruction: {line.strip()}  ({e})")
                return
        self.lines.append(line)

    def emptyline(self):
        pass

    # -- Commands --

    def do_run(self, arg):
        """Assemble and execute the program entered so far."""
        try:
            program = assemble("\n".join(self.lines))
        except AsmError as e:
            self._say(f"Assembly error: {e}")
            return
        self._say(RULE)
        try:
            self.session.run(program)
        except MachineError as e:
            self._say(f"Runtime error: {e}")
        return True

    def do_list(self, arg):
        """Show the statements entered so far."""
        for i, line in enumerate(self.lines, 1):
            self._say(f"  {i:4d}  {line}")

    def do_clear(self, arg):
        """Discard the statements entered so far."""
        self.lines.clear()

    def do_debug(self, arg):
        """Toggle the debug dump after 'run'."""
        self.session.debug = not self.session.debug
        self._say(f"Debug mode {'on' if self.session.debug else 'off'}")

    def do_quit(self, arg):
        """Exit without running."""
        return True

    def do_EOF(self, arg):
        self._say()
        return True

# ---------------------------------------------------------------------------
#  Entry point
# ---------------------------------------------------------------------------

def main(argv=None):
    parser = argparse.ArgumentParser(
        description="regvm register-machine interpreter",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Without FILE, statements are read interactively.",
    )
    parser.add_argument("file", nargs="?", default=None,
                        help="Assembly source file")
    parser.add_argument("--debug", "-d", action="store_true",
                        help="Dump machine state after the run")
    parser.add_argument("--trace", "-t", action="store_true",
                        help="Log every executed instruction to stderr")
    parser.add_argument("--listing", "-l", action="store_true",
                        help="Print the assembly listing before running")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for RAND (default: OS entropy)")
    parser.add_argument("--window", action="store_true",
                        help="Open a pygame window showing the screen")
    parser.add_argument("--scale", type=int, default=1, metavar="N",
                        help="Window scale factor (default: 1)")
    args = parser.parse_args(argv)

    session = Session(debug=args.debug, trace=args.trace, seed=args.seed,
                      window=args.window, scale=args.scale)

    # ---- Entry mode ---------------------------------------------------
    if args.file is None:
        shell = EntryShell(session)
        try:
            shell.cmdloop()
        except KeyboardInterrupt:
            print("\nInterrupted.")
        return

    # ---- File mode ----------------------------------------------------
    try:
        with open(args.file, "r", encoding="utf-8") as f:
            source = f.read()
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        program = assemble(source, listing=args.listing)
    except AsmError as e:
        print(f"Assembly error: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        session.run(program)
    except MachineError as e:
        print(f"Runtime error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
