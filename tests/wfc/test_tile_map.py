"""
Tests for TileMap internals: neighbour lookup, constraint filtering,
entropy selection, collapse and the beach cleanup pass.
"""

import random
from collections import Counter

import pytest

from tilewave.wfc import Cell, Direction, MapConfig, MapStatus, Position, TileMap


def paint(tile_map, rows):
    """Collapse every cell from a list of row lists, e.g. [["water", "sand"], ...]."""
    for y, row in enumerate(rows):
        for x, tile_type in enumerate(row):
            tile_map.set_cell(Position(x, y), Cell.collapsed(tile_type))


# ============================================================================
# CONSTRUCTION & ACCESS
# ============================================================================

def test_new_map_is_full_superposition(coast_rules, make_map):
    tile_map = make_map(coast_rules, width=4, height=2)

    assert len(tile_map) == 8
    positions = [position for position, _ in tile_map]
    assert positions == [Position(x, y) for y in range(2) for x in range(4)]
    for _, cell in tile_map:
        assert cell == Cell.superposition(coast_rules.tile_types)


def test_getitem_accepts_tuples(coast_rules, make_map):
    tile_map = make_map(coast_rules)
    assert tile_map[(1, 2)] is tile_map.tiles[Position(1, 2)]


@pytest.mark.parametrize("width,height", [(0, 3), (3, 0), (-1, 2)])
def test_non_positive_dimensions_rejected(coast_rules, width, height):
    with pytest.raises(ValueError):
        TileMap(width, height, coast_rules)


def test_explicit_rng_wins_over_seed(coast_rules):
    rng = random.Random(1)
    tile_map = TileMap(2, 2, coast_rules, config=MapConfig(seed=99), rng=rng)
    assert tile_map.rng is rng


def test_constructor_dimensions_override_config(coast_rules):
    tile_map = TileMap(5, 2, coast_rules, config=MapConfig(width=40, height=40))
    assert (tile_map.config.width, tile_map.config.height) == (5, 2)
    assert len(tile_map) == 10


# ============================================================================
# NEIGHBOURS
# ============================================================================

def test_neighbors_of_interior_cell_in_fixed_order(coast_rules, make_map):
    tile_map = make_map(coast_rules)
    neighbours = tile_map.neighbors_of(Position(1, 1))

    assert [(d, p) for d, p, _ in neighbours] == [
        (Direction.NORTH, Position(1, 0)),
        (Direction.EAST, Position(2, 1)),
        (Direction.SOUTH, Position(1, 2)),
        (Direction.WEST, Position(0, 1)),
    ]


def test_neighbors_of_corner_are_clipped(coast_rules, make_map):
    tile_map = make_map(coast_rules)

    assert [(d, p) for d, p, _ in tile_map.neighbors_of(Position(0, 0))] == [
        (Direction.EAST, Position(1, 0)),
        (Direction.SOUTH, Position(0, 1)),
    ]
    assert [(d, p) for d, p, _ in tile_map.neighbors_of(Position(2, 2))] == [
        (Direction.NORTH, Position(2, 1)),
        (Direction.WEST, Position(1, 2)),
    ]


# ============================================================================
# CONSTRAINT FILTERING
# ============================================================================

def test_update_cell_on_collapsed_cell_is_noop(uniform_rules, make_map):
    tile_map = make_map(uniform_rules)
    tile_map.set_cell(Position(1, 1), Cell.collapsed("A"))

    assert tile_map.update_cell(Position(1, 1)) == []
    assert tile_map[(1, 1)] == Cell.collapsed("A")


def test_update_cell_unconstrained_reports_no_change(coast_rules, make_map):
    tile_map = make_map(coast_rules)
    before = tile_map[(1, 1)]

    assert tile_map.update_cell(Position(1, 1)) == []
    assert tile_map[(1, 1)] == before


def test_collapsed_neighbour_vetoes_candidate(uniform_rules, make_map):
    tile_map = make_map(uniform_rules)
    tile_map.set_cell(Position(1, 0), Cell.collapsed("A"))

    changed = tile_map.update_cell(Position(1, 1))

    assert tile_map[(1, 1)] == Cell.collapsed("A")
    assert changed == [Position(1, 0), Position(2, 1), Position(1, 2), Position(0, 1)]


def test_update_cell_narrows_to_superposition(coast_rules, make_map):
    tile_map = make_map(coast_rules)
    tile_map.set_cell(Position(1, 0), Cell.collapsed("water"))

    changed = tile_map.update_cell(Position(1, 1))

    assert tile_map[(1, 1)] == Cell.superposition({"water", "sand"})
    assert len(changed) == 4


def test_undecided_neighbour_alone_cannot_confirm(uniform_rules, make_map):
    # B is never confirmed by the {A} neighbour, and nothing else speaks for it
    tile_map = make_map(uniform_rules, width=2, height=1)
    tile_map.set_cell(Position(1, 0), Cell.superposition({"A"}))

    assert tile_map.update_cell(Position(0, 0)) == [Position(1, 0)]
    assert tile_map[(0, 0)] == Cell.collapsed("A")


def test_invalid_verdict_does_not_veto(rules_builder, make_map):
    rules = rules_builder({"A": {"A"}, "B": {"B"}, "C": {"C"}})
    tile_map = make_map(rules, width=3, height=1)
    tile_map.set_cell(Position(0, 0), Cell.superposition({"C"}))
    tile_map.set_cell(Position(1, 0), Cell.superposition({"A", "B"}))
    tile_map.set_cell(Position(2, 0), Cell.superposition({"A"}))

    tile_map.update_cell(Position(1, 0))

    # A is unconfirmed on the west but confirmed on the east
    assert tile_map[(1, 0)] == Cell.collapsed("A")


def test_anisotropic_rules_filter_by_side(anisotropic_rules, make_map):
    tile_map = make_map(anisotropic_rules)
    tile_map.set_cell(Position(0, 1), Cell.collapsed("road"))

    tile_map.update_cell(Position(1, 1))
    # river refuses anything but ground on its west side
    assert tile_map[(1, 1)] == Cell.superposition({"ground", "road"})

    tile_map.set_cell(Position(1, 0), Cell.collapsed("river"))
    tile_map.update_cell(Position(1, 1))
    # road refuses a river to its north
    assert tile_map[(1, 1)] == Cell.collapsed("ground")


def test_collapsed_neighbour_rule_is_checked_too(rules_builder, make_map):
    # A accepts B, but B refuses A on every side
    rules = rules_builder({"A": {"A", "B"}, "B": {"B"}})
    tile_map = make_map(rules)
    tile_map.set_cell(Position(1, 0), Cell.collapsed("B"))

    tile_map.update_cell(Position(1, 1))

    assert tile_map[(1, 1)] == Cell.collapsed("B")


def test_undecided_neighbour_rule_is_checked_too(rules_builder, make_map):
    rules = rules_builder({"A": {"A", "B"}, "B": {"B"}})
    tile_map = make_map(rules, width=2, height=1)
    tile_map.set_cell(Position(1, 0), Cell.superposition({"B"}))

    assert tile_map.update_cell(Position(0, 0)) == [Position(1, 0)]
    assert tile_map[(0, 0)] == Cell.collapsed("B")


def test_lone_candidate_collapse_reports_neighbours(coast_rules, make_map):
    tile_map = make_map(coast_rules)
    tile_map.set_cell(Position(1, 1), Cell.superposition({"water"}))

    changed = tile_map.update_cell(Position(1, 1))

    assert tile_map[(1, 1)] == Cell.collapsed("water")
    assert changed == [Position(1, 0), Position(2, 1), Position(1, 2), Position(0, 1)]


def test_contradiction_is_recorded_once(uniform_rules, make_map):
    tile_map = make_map(uniform_rules, width=3, height=1)
    tile_map.set_cell(Position(0, 0), Cell.collapsed("A"))
    tile_map.set_cell(Position(2, 0), Cell.collapsed("B"))

    assert tile_map.update_cell(Position(1, 0)) == [Position(2, 0), Position(0, 0)]
    assert tile_map[(1, 0)].is_contradiction
    assert tile_map.contradictions == [Position(1, 0)]

    assert tile_map.update_cell(Position(1, 0)) == []
    assert tile_map.contradictions == [Position(1, 0)]


# ============================================================================
# ENTROPY & COLLAPSE
# ============================================================================

def test_lowest_entropy_prefers_constrained_cells(coast_rules, make_map):
    tile_map = make_map(coast_rules)
    tile_map.set_cell(Position(2, 2), Cell.superposition({"water", "sand"}))
    tile_map.set_cell(Position(0, 1), Cell.superposition({"grass", "trees"}))

    assert tile_map.find_lowest_entropy() == Position(2, 2)


def test_lowest_entropy_none_when_all_collapsed(uniform_rules, make_map):
    tile_map = make_map(uniform_rules, width=2, height=2)
    paint(tile_map, [["A", "A"], ["A", "A"]])

    assert tile_map.find_lowest_entropy() is None
    assert tile_map.collapse_to_random_type() is None
    assert tile_map.update_and_propagate() is MapStatus.FINISHED


def test_entropy_tie_break_is_uniform(coast_rules):
    tile_map = TileMap(3, 3, coast_rules, rng=random.Random(5))
    tile_map.set_cell(Position(0, 0), Cell.superposition({"water", "sand"}))
    tile_map.set_cell(Position(2, 2), Cell.superposition({"water", "sand"}))

    trials = 4000
    picks = Counter(tile_map.find_lowest_entropy() for _ in range(trials))

    assert set(picks) == {Position(0, 0), Position(2, 2)}
    assert 0.45 < picks[Position(0, 0)] / trials < 0.55


def test_collapse_draws_from_candidates(coast_rules, make_map):
    tile_map = make_map(coast_rules)
    tile_map.set_cell(Position(1, 1), Cell.superposition({"water"}))

    assert tile_map.collapse_to_random_type() == Position(1, 1)
    assert tile_map[(1, 1)] == Cell.collapsed("water")


def test_contradiction_cell_collapses_to_fallback(coast_rules, make_map):
    tile_map = make_map(coast_rules)
    tile_map.set_cell(Position(2, 0), Cell.superposition(()))

    assert tile_map.collapse_to_random_type() == Position(2, 0)
    assert tile_map[(2, 0)] == Cell.collapsed("grass")


def test_collapsing_collapsed_cell_asserts(coast_rules, make_map):
    tile_map = make_map(coast_rules)
    tile_map.collapse(Position(0, 0))

    with pytest.raises(AssertionError):
        tile_map.collapse(Position(0, 0))


def test_update_and_propagate_spreads_uniform_choice(uniform_rules, make_map):
    tile_map = make_map(uniform_rules, seed=11)

    assert tile_map.update_and_propagate() is MapStatus.GENERATING

    types = {cell.tile_type for _, cell in tile_map}
    assert len(types) == 1 and types <= {"A", "B"}
    assert tile_map.update_and_propagate() is MapStatus.FINISHED


# ============================================================================
# CLEAR
# ============================================================================

def test_clear_resets_everything(coast_rules, make_map):
    tile_map = make_map(coast_rules, width=6, height=6)
    tile_map.generate()
    tile_map.clear()

    full = Cell.superposition(coast_rules.tile_types)
    assert all(cell == full for _, cell in tile_map)
    assert tile_map.contradictions == []
    assert tile_map.get_statistics()['collapsed'] == 0


def test_clear_is_idempotent(coast_rules, make_map):
    tile_map = make_map(coast_rules, width=4, height=4)
    tile_map.generate()

    tile_map.clear()
    once = dict(tile_map.tiles)
    tile_map.clear()

    assert tile_map.tiles == once
    assert tile_map.find_lowest_entropy() is not None


# ============================================================================
# BEACH CLEANUP
# ============================================================================

def test_lone_beach_becomes_liquid(coast_rules, make_map):
    tile_map = make_map(coast_rules)
    paint(tile_map, [
        ["water", "water", "water"],
        ["water", "sand", "water"],
        ["water", "water", "water"],
    ])

    assert tile_map.remove_beach_islands() == 1
    assert tile_map[(1, 1)] == Cell.collapsed("water")


def test_beach_touching_land_diagonally_is_kept(coast_rules, make_map):
    tile_map = make_map(coast_rules)
    paint(tile_map, [
        ["grass", "water", "water"],
        ["water", "sand", "water"],
        ["water", "water", "water"],
    ])

    assert tile_map.remove_beach_islands() == 0
    assert tile_map[(1, 1)] == Cell.collapsed("sand")


def test_beach_on_grid_edge(coast_rules, make_map):
    tile_map = make_map(coast_rules)
    paint(tile_map, [
        ["sand", "water", "sand"],
        ["water", "water", "grass"],
        ["sand", "water", "water"],
    ])

    # (0, 0) and (0, 2) see no grass, (2, 0) touches the grass at (2, 1)
    assert tile_map.remove_beach_islands() == 2
    assert tile_map[(0, 0)] == Cell.collapsed("water")
    assert tile_map[(0, 2)] == Cell.collapsed("water")
    assert tile_map[(2, 0)] == Cell.collapsed("sand")


def test_beach_run_only_keeps_tiles_next_to_land(coast_rules, make_map):
    tile_map = make_map(coast_rules, width=4, height=1)
    paint(tile_map, [["sand", "sand", "sand", "grass"]])

    assert tile_map.remove_beach_islands() == 2
    assert [tile_map[(x, 0)].tile_type for x in range(4)] == ["water", "water", "sand", "grass"]


def test_beach_cleanup_skipped_without_coast_types(uniform_rules, make_map):
    tile_map = make_map(uniform_rules)
    paint(tile_map, [["A"] * 3] * 3)

    assert tile_map.remove_beach_islands() == 0


def test_statistics(coast_rules, make_map):
    tile_map = make_map(coast_rules, width=2, height=2)
    paint(tile_map, [["water", "sand"], ["water", "water"]])

    stats = tile_map.get_statistics()
    assert stats['collapsed'] == 4
    assert stats['superposition'] == 0
    assert stats['types'] == {"water": 3, "sand": 1}
