#!/usr/bin/env python3
"""
  t e r m l i f e
  Conway's Game of Life, filling whatever terminal it is started in.

  Every generation is diffed against what is already on screen, so only
  the cells that actually changed get redrawn. When the board goes quiet
  (fewer than 1% of cells changing) it reseeds itself, and resizing the
  terminal starts a fresh board at the new size.

  Usage:
    termlife                   # run until Ctrl-C
    termlife --delay 100       # slower frames (ms)
    termlife --seed 42         # reproducible boards
    termlife --stats life.csv  # log telemetry to CSV
"""

from __future__ import annotations

import argparse
import curses
import os
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Callable, ClassVar, Protocol

import numpy as np
from numpy.typing import NDArray
from scipy.ndimage import convolve

# ── Tunables ────────────────────────────────────────────────────────────
SEED_DENSITY: float = 0.15       # chance a cell starts alive
FRAME_DELAY_MS: int = 50         # pause between frames
STAGNATION_DIVISOR: int = 100    # reseed when < 1/100 of cells changed

EXIT_IOERR: int = getattr(os, "EX_IOERR", 74)

# ── Convolution kernel (reused every tick) ──────────────────────────────
NEIGHBOR_KERNEL: NDArray = np.array([[1, 1, 1], [1, 0, 1], [1, 1, 1]], dtype=np.int16)


# ═══════════════════════════════════════════════════════════════════════
#  Glyphs
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Glyph:
    """One of the two things a screen cell can show."""
    char: str


DEAD = Glyph(" ")
ALIVE = Glyph("*")

# Frame buffers store indices into this table
GLYPHS: tuple[Glyph, Glyph] = (DEAD, ALIVE)
DEAD_CODE: int = 0
ALIVE_CODE: int = 1


def new_buffer(width: int, height: int) -> NDArray[np.int8]:
    """An all-dead frame buffer, indexed like Board.cells."""
    return np.full(width * height, DEAD_CODE, dtype=np.int8)


def diff_frames(front: NDArray[np.int8], back: NDArray[np.int8]) -> NDArray[np.intp]:
    """Flat indices where the back buffer differs from what is on screen."""
    return np.flatnonzero(front != back)


# ═══════════════════════════════════════════════════════════════════════
#  Board
# ═══════════════════════════════════════════════════════════════════════

class Board:
    """
    A bounded Game of Life grid.

    Cells are a flat bool array; cell (x, y) lives at ``y * width + x``.
    The edges do not wrap: anything past them reads as dead.
    """

    def __init__(
        self, width: int, height: int, rng: np.random.Generator | None = None
    ) -> None:
        self.width: int = width
        self.height: int = height
        self.cells: NDArray[np.bool_] = np.zeros(width * height, dtype=np.bool_)
        self.rng: np.random.Generator = rng if rng is not None else np.random.default_rng()

    @property
    def grid(self) -> NDArray[np.bool_]:
        """2-D (height, width) view of ``cells``; writes go through."""
        return self.cells.reshape(self.height, self.width)

    def randomize_cells(self) -> None:
        """Overwrite every cell, alive with probability SEED_DENSITY."""
        self.cells = self.rng.random(self.width * self.height) < SEED_DENSITY

    def neighbour_counts(self) -> NDArray[np.int16]:
        """Live Moore neighbours of every cell, as a (height, width) array."""
        return convolve(
            self.grid.astype(np.int16), NEIGHBOR_KERNEL, mode="constant", cval=0
        )

    def tick(self) -> int:
        """Advance one generation. Returns how many cells changed state."""
        if self.cells.size == 0:
            return 0

        g = self.grid
        n = self.neighbour_counts()
        n_is_3 = n == 3
        birth = ~g & n_is_3
        survive = g & (n_is_3 | (n == 2))

        # Scratch buffer for the next generation; the current one is read-only
        cells = (birth | survive).ravel()
        updated = int(np.count_nonzero(cells != self.cells))
        self.cells = cells
        return updated

    def get_cell(self, x: int, y: int) -> bool:
        if x < 0 or y < 0 or x >= self.width or y >= self.height:
            return False
        return bool(self.cells[y * self.width + x])

    def set_cell(self, x: int, y: int, alive: bool) -> None:
        self.cells[y * self.width + x] = alive

    def get_neighbours(self, x: int, y: int) -> int:
        neighbours = 0
        for j in (y - 1, y, y + 1):
            for i in (x - 1, x, x + 1):
                if i == x and j == y:
                    continue
                if self.get_cell(i, j):
                    neighbours += 1
        return neighbours

    def set_size(self, width: int, height: int) -> None:
        """Resize. Prior cells are discarded and the board is reseeded."""
        self.width = width
        self.height = height
        self.cells = np.zeros(width * height, dtype=np.bool_)
        self.randomize_cells()

    def population(self) -> int:
        return int(np.count_nonzero(self.cells))


# ═══════════════════════════════════════════════════════════════════════
#  Terminal
# ═══════════════════════════════════════════════════════════════════════

class TerminalError(Exception):
    """The terminal refused a query or a write."""


class Terminal(Protocol):
    def size(self) -> tuple[int, int]: ...
    def clear(self) -> None: ...
    def move(self, x: int, y: int) -> None: ...
    def put(self, glyph: Glyph) -> None: ...
    def park(self, x: int, y: int) -> None: ...
    def flush(self) -> None: ...


class Palette:
    """Maps glyphs to curses attributes."""

    ALIVE_PAIR: ClassVar[int] = 1

    def __init__(self) -> None:
        self._attrs: dict[Glyph, int] = {DEAD: curses.A_NORMAL, ALIVE: curses.A_REVERSE}

    def setup(self) -> None:
        if not curses.has_colors():
            return
        curses.start_color()
        curses.use_default_colors()
        curses.init_pair(self.ALIVE_PAIR, -1, curses.COLOR_WHITE)
        self._attrs[ALIVE] = curses.color_pair(self.ALIVE_PAIR)

    def attr(self, glyph: Glyph) -> int:
        return self._attrs[glyph]


class CursesTerminal:
    """The curses screen, with every curses.error raised as TerminalError."""

    def __init__(self, stdscr: curses.window, palette: Palette) -> None:
        self._win = stdscr
        self._palette = palette
        self._win.nodelay(True)

    def size(self) -> tuple[int, int]:
        try:
            # Drain pending input so ncurses gets to apply KEY_RESIZE
            while self._win.getch() != -1:
                pass
            rows, cols = self._win.getmaxyx()
        except curses.error as exc:
            raise TerminalError(f"cannot query terminal size: {exc}") from exc
        return cols, rows

    def clear(self) -> None:
        try:
            self._win.clear()
        except curses.error as exc:
            raise TerminalError(f"cannot clear screen: {exc}") from exc

    def move(self, x: int, y: int) -> None:
        try:
            self._win.move(y, x)
        except curses.error as exc:
            raise TerminalError(f"cannot move cursor to ({x}, {y}): {exc}") from exc

    def put(self, glyph: Glyph) -> None:
        attr = self._palette.attr(glyph)
        try:
            y, x = self._win.getyx()
            rows, cols = self._win.getmaxyx()
            if y == rows - 1 and x == cols - 1:
                # addstr would fail trying to advance past the last cell
                self._win.insstr(glyph.char, attr)
            else:
                self._win.addstr(glyph.char, attr)
        except curses.error as exc:
            raise TerminalError(f"cannot write cell: {exc}") from exc

    def park(self, x: int, y: int) -> None:
        """Move the cursor out of the way; curses can't go past the last cell."""
        rows, cols = self._win.getmaxyx()
        self.move(max(0, min(x, cols - 1)), max(0, min(y, rows - 1)))

    def flush(self) -> None:
        try:
            self._win.refresh()
        except curses.error as exc:
            raise TerminalError(f"cannot refresh screen: {exc}") from exc


# ═══════════════════════════════════════════════════════════════════════
#  Stats logger
# ═══════════════════════════════════════════════════════════════════════

class StatsLogger:
    """Writes per-generation telemetry to CSV. A no-op without a path."""

    HEADER: ClassVar[str] = "gen,time_s,width,height,updates,threshold,population,event\n"

    def __init__(self, path: Path | None) -> None:
        self._path = path
        self._fh: IO[str] | None = None
        self._t0: float = time.monotonic()

    def open(self) -> None:
        if self._path is None:
            return
        try:
            self._fh = open(self._path, "w")
            self._fh.write(self.HEADER)
            self._fh.flush()
        except OSError:
            self._fh = None

    def log(
        self,
        gen: int,
        width: int,
        height: int,
        updates: int,
        threshold: int,
        population: int,
        event: str = "",
    ) -> None:
        if self._fh is None:
            return
        t = time.monotonic() - self._t0
        try:
            self._fh.write(
                f"{gen},{t:.2f},{width},{height},{updates},{threshold},{population},{event}\n"
            )
            if event or gen % 50 == 0:
                self._fh.flush()
        except OSError:
            self.close()

    def close(self) -> None:
        if self._fh is not None:
            try:
                self._fh.close()
            except OSError:
                pass
            self._fh = None


# ═══════════════════════════════════════════════════════════════════════
#  Render loop
# ═══════════════════════════════════════════════════════════════════════

class RenderLoop:
    """
    Steps the board and keeps the terminal in sync with it.

    ``front`` mirrors what is currently on screen. Each frame a back buffer
    is built from the board, and only the cells where the two disagree are
    written out. The terminal size is polled every frame; a change throws
    the board away and starts over at the new size.
    """

    def __init__(
        self,
        terminal: Terminal,
        rng: np.random.Generator | None = None,
        delay: float = FRAME_DELAY_MS,
        logger: StatsLogger | None = None,
    ) -> None:
        self.terminal = terminal
        self.delay: float = delay
        self.logger = logger if logger is not None else StatsLogger(None)

        self.terminal.clear()
        w, h = self.terminal.size()
        self.board = Board(w, h, rng)
        self.board.randomize_cells()
        self.front: NDArray[np.int8] = new_buffer(w, h)

        self.generation: int = 0
        self.last_updates: int = 0
        self.last_writes: int = 0
        self.total_reseeds: int = 0

    def threshold(self) -> int:
        return self.board.width * self.board.height // STAGNATION_DIVISOR

    def advance(self) -> tuple[int, bool]:
        """Tick the board, reseeding it if too few cells changed.

        Returns (updates, reseeded).
        """
        updates = self.board.tick()
        self.generation += 1
        self.last_updates = updates

        reseeded = updates < self.threshold()
        if reseeded:
            self.board.randomize_cells()
            self.total_reseeds += 1
        return updates, reseeded

    def frame(self) -> str:
        """Run one frame (no sleep). Returns event string (empty if none)."""
        events: list[str] = []

        w, h = self.terminal.size()
        if w != self.board.width or h != self.board.height:
            self.board.set_size(w, h)
            self.front = new_buffer(w, h)
            self.terminal.clear()
            events.append("resize")

        updates, reseeded = self.advance()
        if reseeded:
            events.append("reseed")

        back = self.build_back_buffer()
        self.last_writes = self.draw(back)
        self.terminal.park(self.board.width, self.board.height)
        self.terminal.flush()

        event = "+".join(events)
        if event or self.generation % 10 == 0:
            self.logger.log(
                gen=self.generation,
                width=self.board.width,
                height=self.board.height,
                updates=updates,
                threshold=self.threshold(),
                population=self.board.population(),
                event=event,
            )
        return event

    def build_back_buffer(self) -> NDArray[np.int8]:
        back = new_buffer(self.board.width, self.board.height)
        back[self.board.cells] = ALIVE_CODE
        return back

    def draw(self, back: NDArray[np.int8]) -> int:
        """Write only the cells that changed. Returns the number written."""
        width = self.board.width
        changed = diff_frames(self.front, back)

        # Local references (avoid attribute lookups in tight loop)
        _move = self.terminal.move
        _put = self.terminal.put
        front = self.front
        for i in changed.tolist():
            y, x = divmod(i, width)
            _move(x, y)
            _put(GLYPHS[back[i]])
            front[i] = back[i]
        return len(changed)

    def run(self, frames: int | None = None) -> None:
        """Animate forever, or for ``frames`` frames if given."""
        done = 0
        while frames is None or done < frames:
            self.frame()
            done += 1
            time.sleep(self.delay / 1000.0)


# ═══════════════════════════════════════════════════════════════════════
#  Main loop
# ═══════════════════════════════════════════════════════════════════════

def main(stdscr: curses.window, args: argparse.Namespace) -> None:
    palette = Palette()
    palette.setup()
    terminal = CursesTerminal(stdscr, palette)

    logger = StatsLogger(args.stats)
    logger.open()

    rng = np.random.default_rng(args.seed)
    try:
        RenderLoop(terminal, rng=rng, delay=args.delay, logger=logger).run()
    finally:
        logger.close()


def _non_negative(kind: type) -> Callable[[str], float]:
    def parse(text: str) -> float:
        try:
            value = kind(text)
        except ValueError:
            raise argparse.ArgumentTypeError(f"invalid {kind.__name__} value: {text!r}") from None
        if value < 0:
            raise argparse.ArgumentTypeError(f"must be >= 0, got {text}")
        return value
    return parse


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="termlife", description="Conway's Game of Life in your terminal"
    )
    parser.add_argument("--delay", type=_non_negative(float), default=FRAME_DELAY_MS,
                        help=f"Milliseconds between frames (default: {FRAME_DELAY_MS})")
    parser.add_argument("--seed", type=_non_negative(int), default=None,
                        help="Seed for the random generator")
    parser.add_argument("--stats", type=Path, default=None,
                        help="Write CSV telemetry to this path")
    return parser.parse_args(argv)


def cli(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    try:
        curses.wrapper(main, args)
    except KeyboardInterrupt:
        pass
    except (TerminalError, curses.error) as exc:
        print(f"termlife: {exc}", file=sys.stderr)
        sys.exit(EXIT_IOERR)


if __name__ == "__main__":
    cli()
