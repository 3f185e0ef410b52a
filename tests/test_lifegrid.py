import threading

import numpy as np
import pytest

from lifegrid import NEIGHBOR_OFFSETS, Cell, Grid, create_grid


def empty(rows=10, columns=10):
    return np.zeros((rows, columns), dtype=bool)


def with_neighbors(count, center_alive, rows=7, columns=7):
    """Mittelzelle (3, 3) mit genau `count` lebenden Nachbarn."""
    alive = empty(rows, columns)
    alive[3, 3] = center_alive
    for dx, dy in NEIGHBOR_OFFSETS[:count]:
        alive[3 + dx, 3 + dy] = True
    return Grid.from_array(alive)


# ── CreateGrid ────────────────────────────────────────────────


def test_create_grid_is_deterministic_for_seed():
    a = create_grid(50, 40, 0.3, seed=1234)
    b = create_grid(50, 40, 0.3, seed=1234)
    assert np.array_equal(a.snapshot(), b.snapshot())


def test_create_grid_different_seeds_differ():
    a = create_grid(50, 50, 0.5, seed=1)
    b = create_grid(50, 50, 0.5, seed=2)
    assert not np.array_equal(a.snapshot(), b.snapshot())


def test_create_grid_shape_and_pending_state():
    grid = create_grid(12, 7, 0.5, seed=0)
    assert (grid.rows, grid.columns) == (12, 7)
    assert grid.snapshot().shape == (12, 7)
    assert grid.generation == 0
    for x in range(grid.rows):
        for y in range(grid.columns):
            cell = grid.cell(x, y)
            assert cell.next_alive == cell.alive


def test_create_grid_probability_extremes():
    assert create_grid(20, 20, 0.0, seed=3).population == 0
    assert create_grid(20, 20, 1.0, seed=3).population == 400


def test_create_grid_default_density():
    grid = create_grid(seed=42)
    assert (grid.rows, grid.columns) == (200, 200)
    assert 0.10 < grid.population / 40_000 < 0.14


@pytest.mark.parametrize(
    "rows, columns, p",
    [(0, 10, 0.1), (10, 0, 0.1), (-1, 10, 0.1), (10, 10, -0.01), (10, 10, 1.5)],
)
def test_create_grid_rejects_invalid_arguments(rows, columns, p):
    with pytest.raises(ValueError):
        create_grid(rows, columns, p, seed=0)


def test_from_array_rejects_non_2d():
    with pytest.raises(ValueError):
        Grid.from_array(np.zeros(5, dtype=bool))


# ── CountLiveNeighbors ────────────────────────────────────────


def test_interior_counts_match_direct_count():
    grid = create_grid(30, 30, 0.4, seed=7)
    alive = grid.snapshot()
    for x in range(1, grid.rows - 1):
        for y in range(1, grid.columns - 1):
            direct = int(alive[x - 1 : x + 2, y - 1 : y + 2].sum()) - int(alive[x, y])
            assert grid.count_live_neighbors(x, y) == direct


def test_vectorized_counts_match_scalar_counts():
    grid = create_grid(17, 23, 0.35, seed=11)
    counts = grid.neighbor_counts()
    for x in range(grid.rows):
        for y in range(grid.columns):
            assert counts[x, y] == grid.count_live_neighbors(x, y)


def test_count_range():
    full = Grid.from_array(np.ones((5, 5), dtype=bool))
    assert full.count_live_neighbors(2, 2) == 8
    assert full.count_live_neighbors(0, 0) == 8
    assert Grid.from_array(empty()).count_live_neighbors(0, 0) == 0


def test_toroidal_wrap_of_origin():
    rows, columns = 8, 6
    alive = empty(rows, columns)
    alive[0, 0] = True
    grid = Grid.from_array(alive)
    assert grid.count_live_neighbors(rows - 1, 0) == 1
    assert grid.count_live_neighbors(0, columns - 1) == 1
    assert grid.count_live_neighbors(rows - 1, columns - 1) == 1
    assert grid.count_live_neighbors(rows - 2, 0) == 0


def test_counts_ignore_pending_state():
    alive = empty()
    alive[4, 4] = True
    grid = Grid.from_array(alive)
    grid.advance()  # einsame Zelle stirbt
    assert grid.count_live_neighbors(4, 5) == 0


@pytest.mark.parametrize("x, y", [(-1, 0), (0, -1), (10, 0), (0, 10)])
def test_out_of_range_coordinates_fail_fast(x, y):
    grid = Grid.from_array(empty())
    with pytest.raises(IndexError):
        grid.is_alive(x, y)
    with pytest.raises(IndexError):
        grid.count_live_neighbors(x, y)
    with pytest.raises(IndexError):
        grid.cell(x, y)


# ── Advance: Conway-Regeln ────────────────────────────────────


@pytest.mark.parametrize("count", [2, 3])
def test_live_cell_survives(count):
    grid = with_neighbors(count, center_alive=True)
    assert grid.count_live_neighbors(3, 3) == count
    grid.advance()
    assert grid.is_alive(3, 3)


@pytest.mark.parametrize("count", [0, 1, 4, 5, 6, 7, 8])
def test_live_cell_dies(count):
    grid = with_neighbors(count, center_alive=True)
    grid.advance()
    assert not grid.is_alive(3, 3)


def test_dead_cell_is_born_with_three():
    grid = with_neighbors(3, center_alive=False)
    grid.advance()
    assert grid.is_alive(3, 3)


@pytest.mark.parametrize("count", [0, 1, 2, 4, 5, 6, 7, 8])
def test_dead_cell_stays_dead(count):
    grid = with_neighbors(count, center_alive=False)
    grid.advance()
    assert not grid.is_alive(3, 3)


def test_block_is_still_life():
    grid = Grid.from_array(empty())
    grid.place("block", 4, 4)
    before = grid.snapshot().copy()
    for _ in range(25):
        grid.advance()
        assert np.array_equal(grid.snapshot(), before)
    assert grid.generation == 25


def test_blinker_period_two():
    grid = Grid.from_array(empty(9, 9))
    grid.place("blinker", 4, 3)
    start = grid.snapshot().copy()

    grid.advance()
    vertical = grid.snapshot()
    assert not np.array_equal(vertical, start)
    assert vertical[3, 4] and vertical[4, 4] and vertical[5, 4]
    assert vertical.sum() == 3

    grid.advance()
    assert np.array_equal(grid.snapshot(), start)


def test_blinker_across_the_seam():
    grid = Grid.from_array(empty(6, 6))
    grid.place("blinker", 0, 5)  # (0,5) (0,0) (0,1)
    start = grid.snapshot().copy()
    grid.advance()
    after = grid.snapshot()
    assert after[5, 0] and after[0, 0] and after[1, 0]
    grid.advance()
    assert np.array_equal(grid.snapshot(), start)


def test_glider_returns_shifted_after_period():
    grid = Grid.from_array(empty(12, 12))
    grid.place("glider", 2, 2)
    start = grid.snapshot().copy()
    for _ in range(4):
        grid.advance()
    assert np.array_equal(grid.snapshot(), np.roll(np.roll(start, 1, axis=0), 1, axis=1))


def test_advance_matches_rule_on_random_grid():
    grid = create_grid(25, 31, 0.3, seed=99)
    before = grid.snapshot()
    counts = {(x, y): grid.count_live_neighbors(x, y) for x in range(25) for y in range(31)}
    grid.advance()
    for (x, y), n in counts.items():
        expected = n == 3 or (before[x, y] and n == 2)
        assert grid.is_alive(x, y) == expected


def test_advance_sets_pending_to_committed_state():
    grid = create_grid(10, 10, 0.4, seed=5)
    grid.advance()
    cell = grid.cell(2, 3)
    assert isinstance(cell, Cell)
    assert cell.next_alive == cell.alive


def test_snapshot_is_frozen_and_survives_advance():
    grid = create_grid(10, 10, 0.4, seed=8)
    old = grid.snapshot()
    copy = old.copy()
    with pytest.raises(ValueError):
        old[0, 0] = not old[0, 0]
    grid.advance()
    assert np.array_equal(old, copy)


def test_commit_rejects_wrong_shape():
    grid = Grid.from_array(empty())
    with pytest.raises(ValueError):
        grid.commit(np.zeros((3, 3), dtype=bool))


def test_commit_copies_writable_input():
    grid = Grid.from_array(empty(4, 4))
    nxt = np.ones((4, 4), dtype=bool)
    grid.commit(nxt)
    nxt[0, 0] = False
    assert grid.is_alive(0, 0)
    assert grid.generation == 1


def test_compute_next_reads_nonzero_as_alive():
    grid = Grid.from_array(empty(6, 6))
    pattern = np.zeros((6, 6), dtype=np.int8)
    pattern[2:4, 2:4] = 2  # Block mit Wert 2 statt 1
    nxt = grid.compute_next(pattern)
    assert nxt.dtype == bool
    assert np.array_equal(nxt, pattern != 0)


def test_commit_casts_frozen_int_array_to_bool():
    grid = Grid.from_array(empty(4, 4))
    nxt = np.zeros((4, 4), dtype=np.int8)
    nxt[1, 2] = 5
    nxt.flags.writeable = False
    grid.commit(nxt)
    assert grid.snapshot().dtype == bool
    assert not grid.snapshot().flags.writeable
    assert grid.is_alive(1, 2)
    assert grid.population == 1


def test_live_cells_and_population():
    grid = Grid.from_array(empty(5, 5))
    grid.place("block", 4, 4)
    assert sorted(grid.live_cells()) == [(0, 0), (0, 4), (4, 0), (4, 4)]
    assert grid.population == 4


def test_place_unknown_pattern():
    grid = Grid.from_array(empty())
    with pytest.raises(KeyError):
        grid.place("spaceship", 0, 0)


def test_reads_during_advance_see_whole_generations():
    grid = create_grid(64, 64, 0.3, seed=21)
    generations = [grid.snapshot()]
    seen = []
    done = threading.Event()

    def reader():
        while True:
            seen.append(grid.snapshot())
            if done.is_set():
                return

    t = threading.Thread(target=reader)
    t.start()
    try:
        for _ in range(30):
            grid.advance()
            generations.append(grid.snapshot())
    finally:
        done.set()
        t.join()

    # Puffer werden nie verändert: jede Lesung ist genau eine Generation
    known = {id(g) for g in generations}
    assert seen
    assert all(id(snap) in known for snap in seen)
    for before, after in zip(generations, generations[1:]):
        assert np.array_equal(after, Grid.from_array(before).compute_next())
