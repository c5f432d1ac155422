import curses

import numpy as np
import pytest

from termlife import TerminalError


class FakeTerminal:
    """Records every terminal call; can be resized or told to fail."""

    def __init__(self, cols, rows, fail_on=None):
        self.cols = cols
        self.rows = rows
        self.fail_on = fail_on
        self.cursor = (0, 0)
        self.writes = []
        self.clears = 0
        self.parked = None
        self.flushes = 0

    def _check(self, op):
        if self.fail_on == op:
            raise TerminalError(f"{op} failed")

    def size(self):
        self._check("size")
        return self.cols, self.rows

    def clear(self):
        self._check("clear")
        self.clears += 1

    def move(self, x, y):
        self._check("move")
        self.cursor = (x, y)

    def put(self, glyph):
        self._check("put")
        self.writes.append((self.cursor, glyph))

    def park(self, x, y):
        self._check("park")
        self.parked = (x, y)

    def flush(self):
        self._check("flush")
        self.flushes += 1


class FakeWindow:
    """Just enough of curses.window for CursesTerminal."""

    def __init__(self, rows, cols, keys=(), fail=()):
        self.rows = rows
        self.cols = cols
        self.keys = list(keys)
        self.fail = set(fail)
        self.y = 0
        self.x = 0
        self.calls = []

    def _check(self, name):
        if name in self.fail:
            raise curses.error(f"{name}() returned ERR")

    def nodelay(self, flag):
        pass

    def getch(self):
        self._check("getch")
        return self.keys.pop(0) if self.keys else -1

    def getmaxyx(self):
        return self.rows, self.cols

    def getyx(self):
        return self.y, self.x

    def move(self, y, x):
        self._check("move")
        self.y, self.x = y, x
        self.calls.append(("move", y, x))

    def addstr(self, text, attr):
        self._check("addstr")
        self.calls.append(("addstr", self.y, self.x, text, attr))
        self.x += len(text)

    def insstr(self, text, attr):
        self._check("insstr")
        self.calls.append(("insstr", self.y, self.x, text, attr))

    def clear(self):
        self._check("clear")
        self.calls.append(("clear",))

    def refresh(self):
        self._check("refresh")
        self.calls.append(("refresh",))


@pytest.fixture
def fake_terminal():
    return FakeTerminal


@pytest.fixture
def fake_window():
    return FakeWindow


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
