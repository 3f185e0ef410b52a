"""
Conway's Game of Life auf einem toroidalen Gitter (numpy).

Das Gitter kennt kein Rendering. Es hält zwei Zustände pro Zelle:
- alive      : aktuelle Generation (sichtbar für den Renderer)
- next_alive : berechnete Folgegeneration (noch nicht sichtbar)

Beide Puffer sind eingefrorene numpy-Arrays (writeable=False). Ein
Generationswechsel ersetzt die Referenz, er schreibt nie in einen Puffer,
den ein Leser gerade in der Hand hat.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)


# -----------------------
# Konfiguration (Standardwerte)
# -----------------------
ROWS = 200
COLUMNS = 200
CHANCE_TO_LIVE = 0.12

# Relative Offsets der 8er-Nachbarschaft (dx, dy)
NEIGHBOR_OFFSETS: Tuple[Tuple[int, int], ...] = (
    (-1, 0), (1, 0), (0, 1), (0, -1),
    (-1, 1), (1, 1), (-1, -1), (1, -1),
)

# Kleine Musterbibliothek, Koordinaten relativ zur Ecke (dx, dy)
PATTERNS: Dict[str, List[Tuple[int, int]]] = {
    "block": [(0, 0), (0, 1), (1, 0), (1, 1)],
    "blinker": [(0, 0), (0, 1), (0, 2)],
    "glider": [(0, 1), (1, 2), (2, 0), (2, 1), (2, 2)],
}


@dataclass(frozen=True)
class Cell:
    """Read-only Sicht auf eine einzelne Zelle."""

    x: int
    y: int
    alive: bool
    next_alive: bool


def _frozen(arr: np.ndarray) -> np.ndarray:
    arr.flags.writeable = False
    return arr


def _wrap(i: int, size: int) -> int:
    """
    Toroidales Wrapping für Nachbar-Offsets.

    Es kommen nur -1 und size vor (Offsets sind +-1).
    """
    if i == -1:
        return size - 1
    if i == size:
        return 0
    return i


# ============================================================
# Grid
# ============================================================


class Grid:
    """
    Festes ROWS x COLUMNS Gitter mit toroidaler Topologie.

    Zellen werden mit (x, y) adressiert, 0 <= x < rows, 0 <= y < columns.
    """

    def __init__(self, alive: np.ndarray):
        """
        Parameters
        ----------
        alive : np.ndarray
            2D-Array (rows, columns), wird als bool interpretiert und kopiert.
        """
        alive = np.array(alive, dtype=bool)
        if alive.ndim != 2:
            raise ValueError(f"Grid erwartet ein 2D-Array, bekommen: ndim={alive.ndim}")
        if alive.shape[0] < 1 or alive.shape[1] < 1:
            raise ValueError(f"Ungültige Gittergröße: {alive.shape}")

        self.rows, self.columns = alive.shape
        self._alive = _frozen(alive)
        # Stabiler Punkt: nichts ausstehend, next_alive == alive
        self._next = self._alive
        self.generation = 0

    @classmethod
    def from_array(cls, alive) -> "Grid":
        """Erzeugt ein Gitter aus einem expliziten Muster (z.B. für Tests)."""
        return cls(np.asarray(alive))

    # ── Lesen (Renderer) ──────────────────────────────────────

    def _check(self, x: int, y: int) -> None:
        # Kein stilles Wrapping: falsche Koordinaten sind ein Aufruferfehler.
        if not (0 <= x < self.rows and 0 <= y < self.columns):
            raise IndexError(f"Zelle ({x}, {y}) außerhalb von {self.rows}x{self.columns}")

    def is_alive(self, x: int, y: int) -> bool:
        """Lebt die Zelle (x, y) in der aktuellen (committeten) Generation?"""
        self._check(x, y)
        return bool(self._alive[x, y])

    def cell(self, x: int, y: int) -> Cell:
        self._check(x, y)
        return Cell(x, y, bool(self._alive[x, y]), bool(self._next[x, y]))

    def snapshot(self) -> np.ndarray:
        """
        Aktuelle Generation als eingefrorenes Array.

        Das Array wird nie verändert; ein späteres advance() ersetzt nur
        die Referenz im Gitter.
        """
        return self._alive

    def live_cells(self) -> Iterator[Tuple[int, int]]:
        """Liefert (x, y) aller lebenden Zellen einer einzigen Generation."""
        alive = self._alive
        for x, y in zip(*np.nonzero(alive)):
            yield int(x), int(y)

    @property
    def population(self) -> int:
        return int(np.count_nonzero(self._alive))

    # ── Nachbarschaft ─────────────────────────────────────────

    def count_live_neighbors(self, x: int, y: int) -> int:
        """
        Zählt lebende Nachbarn (8er-Nachbarschaft, toroidal) für (x, y).

        Returns
        -------
        int
            Anzahl lebender Nachbarn in [0, 8].
        """
        self._check(x, y)
        alive = self._alive
        n = 0
        for dx, dy in NEIGHBOR_OFFSETS:
            nx = _wrap(x + dx, self.rows)
            ny = _wrap(y + dy, self.columns)
            if alive[nx, ny]:
                n += 1
        return n

    def neighbor_counts(self, alive: Optional[np.ndarray] = None) -> np.ndarray:
        """Nachbarzahl aller Zellen auf einmal (shift-and-add mit np.roll)."""
        g = np.asarray(self._alive if alive is None else alive, dtype=bool).astype(np.int8)
        n = np.zeros_like(g)
        for dx, dy in NEIGHBOR_OFFSETS:
            n += np.roll(np.roll(g, dx, axis=0), dy, axis=1)
        return n

    # ── Generationswechsel ────────────────────────────────────

    def compute_next(self, alive: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Berechnet die Folgegeneration einer Generation.

        Liest nur `alive` und schreibt nichts; damit kann die Berechnung
        auch in einem Worker-Thread laufen.

        Parameters
        ----------
        alive : np.ndarray, optional
            Ausgangsgeneration. Standard: aktuelle Generation.

        Returns
        -------
        np.ndarray
            Eingefrorenes bool-Array der Folgegeneration.
        """
        g = np.asarray(self._alive if alive is None else alive, dtype=bool)
        n = self.neighbor_counts(g)

        # Conway-Regeln:
        # 1) alive & (2|3) -> alive
        # 2) alive & (<2 or >3) -> dead
        # 3) dead & (3) -> alive
        survive = g & ((n == 2) | (n == 3))
        birth = ~g & (n == 3)
        return _frozen(survive | birth)

    def commit(self, next_alive: np.ndarray) -> None:
        """
        Veröffentlicht eine vollständig berechnete Folgegeneration.

        Ein einziger Referenztausch; alle Zellen wechseln gleichzeitig.
        """
        if next_alive.shape != (self.rows, self.columns):
            raise ValueError(
                f"Formfehler: erwartet {(self.rows, self.columns)}, bekommen {next_alive.shape}"
            )
        if next_alive.flags.writeable or next_alive.dtype != bool:
            next_alive = _frozen(next_alive.astype(bool, copy=True))
        self._next = next_alive
        self._alive = self._next
        self.generation += 1

    def advance(self) -> None:
        """
        Ein Generationsschritt: erst alles berechnen, dann alles übernehmen.
        """
        self._next = self.compute_next(self._alive)
        self.commit(self._next)

    # ── Muster ────────────────────────────────────────────────

    def place(self, name: str, x: int, y: int) -> None:
        """
        Setzt ein benanntes Muster mit Ecke (x, y), toroidal gewrappt.

        Raises
        ------
        KeyError
            Unbekannter Mustername.
        """
        self._check(x, y)
        cells = PATTERNS[name]
        alive = self._alive.copy()
        for dx, dy in cells:
            alive[(x + dx) % self.rows, (y + dy) % self.columns] = True
        self._alive = _frozen(alive)
        self._next = self._alive

    def __repr__(self) -> str:
        return (
            f"Grid(rows={self.rows}, columns={self.columns}, "
            f"generation={self.generation}, population={self.population})"
        )


def create_grid(
    rows: int = ROWS,
    columns: int = COLUMNS,
    live_probability: float = CHANCE_TO_LIVE,
    seed: Optional[int] = None,
) -> Grid:
    """
    Erzeugt ein zufällig besetztes Gitter.

    Parameters
    ----------
    rows, columns : int
        Gittergröße (> 0).
    live_probability : float
        Wahrscheinlichkeit in [0, 1], dass eine Zelle lebt.
    seed : int, optional
        Seed für reproduzierbare Startzustände. None = Entropie vom OS.

    Returns
    -------
    Grid
        Neues Gitter mit next_alive == alive.
    """
    if rows < 1 or columns < 1:
        raise ValueError(f"Gittergröße muss positiv sein: {rows}x{columns}")
    if not 0.0 <= live_probability <= 1.0:
        raise ValueError(f"live_probability muss in [0, 1] liegen: {live_probability}")

    rng = np.random.default_rng(seed)
    grid = Grid(rng.random((rows, columns)) < live_probability)
    logger.info(
        "Grid %dx%d erzeugt (seed=%s, population=%d)", rows, columns, seed, grid.population
    )
    return grid
