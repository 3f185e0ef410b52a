"""
Conway's Game of Life auf einem Torus (pygame).

Pro Frame:
1) Gitter um genau eine Generation weiterschalten
2) aktuelle Generation zeichnen (jede lebende Zelle als Quad)
3) Rest des Frame-Budgets schlafen (1/FPS), ohne Aufholen bei Überlauf

Modi:
- synchron (Standard): advance() ist fertig, bevor gezeichnet wird
- pipelined (--pipelined): ein Worker-Thread berechnet die nächste
  Generation aus einem eingefrorenen Snapshot, der Haupt-Thread
  veröffentlicht sie per Referenztausch erst, wenn sie komplett ist

Controls:
- ESC / Fenster schließen: Ende
"""

from __future__ import annotations

import argparse
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np
import pygame

from lifegrid import CHANCE_TO_LIVE, COLUMNS, ROWS, Grid, create_grid

logger = logging.getLogger(__name__)


# -----------------------
# Konfiguration (leicht anpassen)
# -----------------------
X_BOUND = 1280  # Fensterbreite in Pixel
Y_BOUND = 720  # Fensterhöhe in Pixel
FPS = 60  # Ziel-Framerate
TITLE = "Game of Life"
BACKGROUND = (0, 0, 0)
CELL_COLOR = (127, 178, 25)  # entspricht vec4(0.5, 0.7, 0.1, 1)

# Einheitsquadrat aus zwei Dreiecken (x, y, z)
SQUARE = np.array(
    [
        -0.5, 0.5, 0,
        -0.5, -0.5, 0,
        0.5, -0.5, 0,

        -0.5, 0.5, 0,
        0.5, 0.5, 0,
        0.5, -0.5, 0,
    ],
    dtype=np.float32,
)


@dataclass(frozen=True)
class LifeConfig:
    """
    Startkonfiguration der Simulation (zur Laufzeit nicht änderbar).

    Attributes
    ----------
    rows, columns : int
        Gittergröße.
    chance_to_live : float
        Anfangswahrscheinlichkeit einer lebenden Zelle.
    fps : int
        Ziel-Framerate.
    width, height : int
        Fenstergröße in Pixel.
    seed : int, optional
        Seed für den Startzustand. None = zufällig.
    pipelined : bool
        Berechnung der nächsten Generation im Worker-Thread.
    max_frames : int, optional
        Nach so vielen Frames beenden. None = bis Fenster geschlossen.
    headless : bool
        Ohne Fenster laufen (z.B. zum Messen).
    """

    rows: int = ROWS
    columns: int = COLUMNS
    chance_to_live: float = CHANCE_TO_LIVE
    fps: int = FPS
    width: int = X_BOUND
    height: int = Y_BOUND
    seed: Optional[int] = None
    pipelined: bool = False
    max_frames: Optional[int] = None
    headless: bool = False

    def __post_init__(self):
        # Vor dem Öffnen des Fensters prüfen
        if self.rows < 1 or self.columns < 1:
            raise ValueError(f"Gittergröße muss positiv sein: {self.rows}x{self.columns}")
        if not 0.0 <= self.chance_to_live <= 1.0:
            raise ValueError(f"chance_to_live muss in [0, 1] liegen: {self.chance_to_live}")
        if self.fps <= 0:
            raise ValueError(f"fps muss positiv sein: {self.fps}")
        if self.width < 1 or self.height < 1:
            raise ValueError(f"Fenstergröße muss positiv sein: {self.width}x{self.height}")
        if self.max_frames is not None and self.max_frames < 0:
            raise ValueError(f"max_frames darf nicht negativ sein: {self.max_frames}")


# ============================================================
# Geometrie
# ============================================================


def cell_quad(x: int, y: int, rows: int, columns: int) -> np.ndarray:
    """
    Quad (6 Vertices, Normalized Device Coordinates) für Zelle (x, y).

    x läuft über die Fensterbreite, y über die Fensterhöhe (nach oben).

    Returns
    -------
    np.ndarray
        float32-Array der Form (6, 3).
    """
    points = SQUARE.copy()
    for i in range(len(points)):
        if i % 3 == 0:
            size = 1.0 / rows
            position = x * size
        elif i % 3 == 1:
            size = 1.0 / columns
            position = y * size
        else:
            continue

        if points[i] < 0:
            points[i] = (position * 2) - 1
        else:
            points[i] = ((position + size) * 2) - 1
    return points.reshape(6, 3)


def cell_rect(x: int, y: int, rows: int, columns: int, width: int, height: int) -> pygame.Rect:
    """Wandelt das NDC-Quad einer Zelle in ein Pixel-Rechteck um (y nach unten)."""
    quad = cell_quad(x, y, rows, columns)
    left = round((float(quad[:, 0].min()) + 1) / 2 * width)
    right = round((float(quad[:, 0].max()) + 1) / 2 * width)
    top = round((1 - float(quad[:, 1].max())) / 2 * height)
    bottom = round((1 - float(quad[:, 1].min())) / 2 * height)
    return pygame.Rect(left, top, max(1, right - left), max(1, bottom - top))


# ============================================================
# Frame-Takt
# ============================================================


class FramePacer:
    """
    Hält eine feste Framerate ohne Aufholen (pygame.time.Clock).

    Clock.tick() schläft den Rest von 1/FPS seit dem letzten tick();
    überzieht ein Frame sein Budget, startet der nächste sofort.
    """

    def __init__(self, fps: int = FPS, clock=None):
        """
        Parameters
        ----------
        fps : int
            Ziel-Framerate (> 0).
        clock : optional
            Objekt mit tick(fps) und get_rawtime(), Standard: pygame.time.Clock().
        """
        if fps <= 0:
            raise ValueError(f"fps muss positiv sein: {fps}")
        self.fps = fps
        self.budget = 1.0 / fps
        self.clock = clock if clock is not None else pygame.time.Clock()
        self.overruns = 0

    def wait(self) -> float:
        """
        Schläft den Rest des Budgets.

        Returns
        -------
        float
            Restbudget in Sekunden vor dem Schlafen (negativ bei Überlauf).
        """
        self.clock.tick(self.fps)
        # get_rawtime(): Arbeitszeit des Frames in ms, ohne die Wartezeit
        remaining = self.budget - self.clock.get_rawtime() / 1000.0
        if remaining < 0:
            self.overruns += 1
            logger.debug("Frame über Budget: %.1f ms", -remaining * 1000)
        return remaining


# ============================================================
# Advance-Strategien
# ============================================================


class SyncAdvancer:
    """advance() läuft komplett im Haupt-Thread, vor dem Zeichnen."""

    def __init__(self, grid: Grid):
        self.grid = grid

    def advance(self) -> None:
        self.grid.advance()

    def close(self) -> None:
        pass


class PipelinedAdvancer:
    """
    Berechnet die nächste Generation in einem Worker-Thread.

    Der Worker liest nur eingefrorene Snapshots und liefert ein neues
    Array zurück. Nur der Haupt-Thread ruft Grid.commit() auf; damit gibt
    es genau einen Schreiber, und der Renderer sieht immer eine komplette
    Generation.
    """

    def __init__(self, grid: Grid):
        self.grid = grid
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="life-advance")
        self._pending: Optional[Future] = None

    def _submit(self) -> None:
        self._pending = self._executor.submit(self.grid.compute_next, self.grid.snapshot())

    def advance(self) -> None:
        """
        Übernimmt die fertig berechnete Generation und startet die nächste.

        Wartet, falls der Worker noch rechnet; pro Aufruf wird genau eine
        Generation veröffentlicht. Ein Fehler im Worker wird hier erneut
        ausgelöst, bei jedem weiteren Aufruf wieder.
        """
        if self._pending is None:
            logger.debug("Advance-Worker startet")
            self._submit()
        result = self._pending.result()
        self.grid.commit(result)
        self._submit()

    def close(self) -> None:
        """Stoppt den Worker; eine noch offene Berechnung wird verworfen."""
        if self._pending is not None:
            self._pending.cancel()
        self._executor.shutdown(wait=True)
        logger.debug("Advance-Worker gestoppt")


# ============================================================
# Renderer
# ============================================================


class HeadlessRenderer:
    """Zeichnet nichts; liest aber die Generation wie ein echter Renderer."""

    def __init__(self):
        self.frames = 0
        self.last_population = 0

    def should_close(self) -> bool:
        return False

    def draw(self, grid: Grid) -> None:
        self.last_population = sum(1 for _ in grid.live_cells())
        self.frames += 1

    def close(self) -> None:
        pass


class PygameRenderer:
    """Zeichnet lebende Zellen als gefüllte Rechtecke (pygame)."""

    def __init__(
        self,
        rows: int,
        columns: int,
        width: int = X_BOUND,
        height: int = Y_BOUND,
        color=CELL_COLOR,
    ):
        pygame.init()
        self.screen = pygame.display.set_mode((width, height))
        pygame.display.set_caption(TITLE)
        self.color = color
        self._closed = False

        # Geometrie wird einmal vorberechnet, wie Vertex-Buffer pro Zelle
        self._rects: List[List[pygame.Rect]] = [
            [cell_rect(x, y, rows, columns, width, height) for y in range(columns)]
            for x in range(rows)
        ]

    def should_close(self) -> bool:
        """Verarbeitet Events; True bei QUIT oder ESC."""
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self._closed = True
            elif event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
                self._closed = True
        return self._closed

    def draw(self, grid: Grid) -> None:
        """Zeichnet die aktuelle Generation von grid."""
        self.screen.fill(BACKGROUND)
        for x, y in grid.live_cells():
            pygame.draw.rect(self.screen, self.color, self._rects[x][y])
        pygame.display.flip()

    def close(self) -> None:
        pygame.quit()


# ============================================================
# Simulation
# ============================================================


class Simulation:
    """
    Treibt das Gitter im festen Takt und gibt jeden Frame an den Renderer.

    Die Simulation besitzt das Gitter; der Renderer liest es nur.
    """

    def __init__(
        self,
        grid: Grid,
        renderer,
        fps: int = FPS,
        pipelined: bool = False,
        pacer: Optional[FramePacer] = None,
    ):
        self.grid = grid
        self.renderer = renderer
        self.pacer = pacer or FramePacer(fps)
        self._advancer = PipelinedAdvancer(grid) if pipelined else SyncAdvancer(grid)
        self.frames = 0

    def frame(self) -> None:
        """Ein Frame: erst advance, dann zeichnen."""
        self._advancer.advance()
        self.renderer.draw(self.grid)
        self.frames += 1

    def run(self, max_frames: Optional[int] = None) -> int:
        """
        Läuft bis der Renderer schließen will oder max_frames erreicht ist.

        Returns
        -------
        int
            Anzahl gezeichneter Frames.
        """
        logger.info("Simulation startet (%r)", self.grid)
        while max_frames is None or self.frames < max_frames:
            if self.renderer.should_close():
                break
            self.frame()
            self.pacer.wait()
        logger.info(
            "Simulation beendet nach %d Frames (%d über Budget)",
            self.frames,
            self.pacer.overruns,
        )
        return self.frames

    def close(self) -> None:
        self._advancer.close()


def run(config: LifeConfig) -> int:
    """Erzeugt Gitter, Renderer und Simulation aus config und startet die Loop."""
    grid = create_grid(config.rows, config.columns, config.chance_to_live, config.seed)
    if config.headless:
        renderer = HeadlessRenderer()
    else:
        renderer = PygameRenderer(config.rows, config.columns, config.width, config.height)

    try:
        sim = Simulation(grid, renderer, fps=config.fps, pipelined=config.pipelined)
        try:
            return sim.run(config.max_frames)
        finally:
            sim.close()
    finally:
        renderer.close()


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Conway's Game of Life auf einem Torus")
    p.add_argument("--rows", type=int, default=ROWS, help="Zeilen des Gitters")
    p.add_argument("--columns", type=int, default=COLUMNS, help="Spalten des Gitters")
    p.add_argument("--chance", type=float, default=CHANCE_TO_LIVE, help="Anfangswahrscheinlichkeit lebender Zellen")
    p.add_argument("--fps", type=int, default=FPS, help="Ziel-Framerate")
    p.add_argument("--seed", type=int, default=None, help="Seed für reproduzierbaren Start")
    p.add_argument("--pipelined", action="store_true", help="Nächste Generation im Worker-Thread berechnen")
    p.add_argument("--frames", type=int, default=None, help="Nach N Frames beenden")
    p.add_argument("--headless", action="store_true", help="Ohne Fenster laufen")
    p.add_argument("--verbose", action="store_true", help="Debug-Logging")
    return p


def main(argv: Optional[Sequence[str]] = None) -> None:
    """
    Startet das pygame-Fenster und die Loop.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = LifeConfig(
            rows=args.rows,
            columns=args.columns,
            chance_to_live=args.chance,
            fps=args.fps,
            seed=args.seed,
            pipelined=args.pipelined,
            max_frames=args.frames,
            headless=args.headless,
        )
    except ValueError as exc:
        parser.error(str(exc))
    try:
        run(config)
    except KeyboardInterrupt:
        logger.info("Abbruch durch Benutzer")


if __name__ == "__main__":
    main()
