from typing import FrozenSet, Iterable, Optional


class Cell:
    """
    State of one grid position.

    A cell is either collapsed to a single tile type or holds the superposition
    of types it may still become. Cells are immutable; the tile map swaps in a
    new instance whenever a position changes.
    """

    __slots__ = ('tile_type', 'possible_types')

    def __init__(self, tile_type: Optional[str] = None, possible_types: Optional[Iterable[str]] = None):
        if (tile_type is None) == (possible_types is None):
            raise ValueError("A cell is either collapsed or a superposition, not both")

        # the final type, None while in superposition
        self.tile_type = tile_type

        # candidates still open, None once collapsed
        self.possible_types: Optional[FrozenSet[str]] = (
            frozenset(possible_types) if possible_types is not None else None
        )

    @classmethod
    def collapsed(cls, tile_type: str) -> 'Cell':
        return cls(tile_type=tile_type)

    @classmethod
    def superposition(cls, possible_types: Iterable[str]) -> 'Cell':
        return cls(possible_types=possible_types)

    @property
    def is_collapsed(self) -> bool:
        return self.tile_type is not None

    @property
    def is_contradiction(self) -> bool:
        """True for a superposition with no candidates left."""
        return self.possible_types is not None and not self.possible_types

    def __eq__(self, other):
        if not isinstance(other, Cell):
            return NotImplemented
        return self.tile_type == other.tile_type and self.possible_types == other.possible_types

    def __hash__(self):
        return hash((self.tile_type, self.possible_types))

    def __repr__(self):
        if self.is_collapsed:
            return f"Cell.collapsed({self.tile_type!r})"
        return f"Cell.superposition({sorted(self.possible_types)!r})"
