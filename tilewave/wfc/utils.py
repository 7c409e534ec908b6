"""
Grid primitives for the wave function collapse generator.

Positions are plain integer pairs with y growing downwards, so NORTH is
``y - 1``. Everything here is independent of tile types and rules.
"""

from enum import Enum
from typing import Iterator, List, NamedTuple, Tuple


class Position(NamedTuple):
    """Integer grid coordinate. Hashable, compares by value."""
    x: int
    y: int


# ============================================================================
# DIRECTION DEFINITIONS
# ============================================================================

class Direction(Enum):
    """Cardinal directions, in the fixed N, E, S, W iteration order."""
    NORTH = ('north', 0, -1)
    EAST = ('east', 1, 0)
    SOUTH = ('south', 0, 1)
    WEST = ('west', -1, 0)

    def __init__(self, label: str, dx: int, dy: int):
        self.label = label
        self.dx = dx
        self.dy = dy

    @property
    def opposite(self) -> 'Direction':
        return _OPPOSITES[self]

    def step(self, position: Position) -> Position:
        """Position one step from ``position`` in this direction."""
        return Position(position.x + self.dx, position.y + self.dy)


_OPPOSITES = {
    Direction.NORTH: Direction.SOUTH,
    Direction.EAST: Direction.WEST,
    Direction.SOUTH: Direction.NORTH,
    Direction.WEST: Direction.EAST,
}

CARDINAL_DIRECTIONS: Tuple[Direction, ...] = tuple(Direction)

# Moore neighbourhood offsets (dx, dy), excluding the centre
MOORE_OFFSETS: Tuple[Tuple[int, int], ...] = tuple(
    (dx, dy)
    for dy in (-1, 0, 1)
    for dx in (-1, 0, 1)
    if (dx, dy) != (0, 0)
)


# ============================================================================
# GRID OPERATIONS
# ============================================================================

def valid_pos(x: int, y: int, width: int, height: int) -> bool:
    """Check if position is within grid bounds."""
    return 0 <= x < width and 0 <= y < height


def grid_positions(width: int, height: int) -> List[Position]:
    """All positions of a width x height grid in row-major order."""
    return [Position(x, y) for y in range(height) for x in range(width)]


def neighbors_4(position: Position, width: int, height: int) -> Iterator[Tuple[Direction, Position]]:
    """Yield in-bounds cardinal neighbours as (direction, position), N, E, S, W."""
    for direction in CARDINAL_DIRECTIONS:
        neighbour = direction.step(position)
        if valid_pos(neighbour.x, neighbour.y, width, height):
            yield direction, neighbour


def neighbors_8(position: Position, width: int, height: int) -> Iterator[Position]:
    """Yield in-bounds 8-connected neighbours (including diagonals)."""
    for dx, dy in MOORE_OFFSETS:
        nx, ny = position.x + dx, position.y + dy
        if valid_pos(nx, ny, width, height):
            yield Position(nx, ny)
