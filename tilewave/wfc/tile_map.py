"""
Wave function collapse tile map.

This module implements TileMap which exposes:
    tile_map = TileMap(width, height, rules)
    tile_map.generate()
    for position, cell in tile_map:
        ...
    stats = tile_map.get_statistics()
"""
import random
from collections import Counter, deque
from dataclasses import replace
from enum import Enum
from typing import Deque, Dict, Iterator, List, Optional, Set, Tuple

from tilewave.config import PerformanceTimer, get_map_logger
from tilewave.wfc.cell import Cell
from tilewave.wfc.config import MapConfig
from tilewave.wfc.tile_rules import TileRules, default_rules, load_rules
from tilewave.wfc.utils import Direction, Position, grid_positions, neighbors_4, neighbors_8


class MapStatus(Enum):
    GENERATING = "generating"
    FINISHED = "finished"


class Validity(Enum):
    """Verdict of one neighbour on one candidate type."""
    VALID = "valid"            # the neighbour confirms the candidate
    INVALID = "invalid"        # undecided neighbour, no compatible option yet
    IMPOSSIBLE = "impossible"  # collapsed neighbour forbids the candidate


class ContradictionError(RuntimeError):
    """Generation left cells with no possible tile type."""

    def __init__(self, positions: List[Position]):
        shown = ", ".join(f"({p.x}, {p.y})" for p in positions[:5])
        more = f" and {len(positions) - 5} more" if len(positions) > 5 else ""
        super().__init__(f"{len(positions)} contradicting cell(s): {shown}{more}")
        self.positions = positions


class TileMap:
    """
    Grid of cells resolved by wave function collapse.

    - Every position starts in full superposition over the rule set's types.
    - generate() repeatedly collapses the lowest-entropy cell and propagates
      the consequences until every cell is collapsed, then cleans up
      isolated beach tiles.
    - All randomness comes from self.rng, so a fixed seed reproduces a map.

    Cells are replaced, never mutated. Write through set_cell() so the
    entropy cache stays in step with self.tiles.
    """

    def __init__(self, width: int, height: int, rules: TileRules,
                 config: Optional[MapConfig] = None, rng: Optional[random.Random] = None):
        self.config = replace(config or MapConfig(), width=width, height=height)
        self.config.validate()

        self.width = width
        self.height = height
        self.rules = rules
        self.logger = get_map_logger()

        if rng is not None:
            self.rng = rng
            self.logger.debug("TileMap using caller supplied random source")
        elif self.config.seed is not None:
            self.rng = random.Random(self.config.seed)
            self.logger.info(f"TileMap initialized with seed: {self.config.seed}")
        else:
            self.rng = random.Random()
            self.logger.info("TileMap initialized with random seed")

        self.tiles: Dict[Position, Cell] = {}
        # entropy of every cell still in superposition, in row-major order
        self._open: Dict[Position, int] = {}

        self.contradictions: List[Position] = []
        self.attempts = 0
        self.beach_islands_removed = 0

        self._reset_tiles()

    @classmethod
    def from_config(cls, config: MapConfig, rules: Optional[TileRules] = None) -> 'TileMap':
        """Build a map from a MapConfig, loading its rule file when no rules are given."""
        if rules is None:
            rules = load_rules(config.rules_path) if config.rules_path else default_rules()
        return cls(config.width, config.height, rules, config=config)

    # -------------------------
    # Read access
    # -------------------------
    def __iter__(self) -> Iterator[Tuple[Position, Cell]]:
        return iter(self.tiles.items())

    def __getitem__(self, position) -> Cell:
        return self.tiles[Position(*position)]

    def __len__(self) -> int:
        return len(self.tiles)

    def set_cell(self, position: Position, cell: Cell) -> None:
        self.tiles[position] = cell
        if cell.is_collapsed:
            self._open.pop(position, None)
        else:
            self._open[position] = self.rules.entropy_of(cell.possible_types)

    # -------------------------
    # Lifecycle
    # -------------------------
    def _reset_tiles(self) -> None:
        full = Cell.superposition(self.rules.all_types())
        full_entropy = self.rules.entropy_of(full.possible_types)
        positions = grid_positions(self.width, self.height)
        self.tiles = {position: full for position in positions}
        self._open = {position: full_entropy for position in positions}

    def clear(self) -> None:
        """Reset every cell to full superposition. Rules are kept; nothing is regenerated."""
        self._reset_tiles()
        self.contradictions = []
        self.attempts = 0
        self.beach_islands_removed = 0
        self.logger.debug(f"Cleared {self.width}x{self.height} map")

    # -------------------------
    # Neighbour resolution
    # -------------------------
    def neighbors_of(self, position: Position) -> List[Tuple[Direction, Position, Cell]]:
        """In-bounds cardinal neighbours as (direction, position, cell), ordered N, E, S, W."""
        return [
            (direction, neighbour, self.tiles[neighbour])
            for direction, neighbour in neighbors_4(position, self.width, self.height)
        ]

    # -------------------------
    # Constraint filtering
    # -------------------------
    def _validity(self, candidate: str, direction: Direction, neighbour: Cell) -> Validity:
        # a pair is only valid when the rules of both cells accept it
        if neighbour.is_collapsed:
            if self.rules.pair_allowed(candidate, neighbour.tile_type, direction):
                return Validity.VALID
            return Validity.IMPOSSIBLE

        if self.rules.pair_allowed_with_any(candidate, neighbour.possible_types, direction):
            return Validity.VALID
        return Validity.INVALID

    def _candidate_survives(self, candidate: str, neighbours: List[Tuple[Direction, Position, Cell]]) -> bool:
        """A candidate needs one confirming neighbour and no forbidding one."""
        verdict = Validity.INVALID
        for direction, _, cell in neighbours:
            validity = self._validity(candidate, direction, cell)
            if validity is Validity.IMPOSSIBLE:
                return False
            if validity is Validity.VALID:
                verdict = Validity.VALID
        return verdict is Validity.VALID

    def update_cell(self, position: Position) -> List[Position]:
        """
        Narrow a cell's candidates against its neighbours.

        A single survivor collapses the cell. Returns the neighbour positions
        when the cell changed (candidates removed or collapsed), an empty list
        when nothing changed (including for collapsed cells).
        """
        cell = self.tiles[position]
        if cell.is_collapsed:
            return []

        neighbours = self.neighbors_of(position)
        candidates = cell.possible_types
        survivors = frozenset(t for t in candidates if self._candidate_survives(t, neighbours))

        if len(survivors) == len(candidates) and len(survivors) != 1:
            return []

        if len(survivors) == 1:
            self.set_cell(position, Cell.collapsed(next(iter(survivors))))
        else:
            self.set_cell(position, Cell.superposition(survivors))
            if not survivors:
                self.contradictions.append(position)
                self.logger.warning(f"Contradiction at ({position.x}, {position.y}): no tile type fits")

        return [neighbour for _, neighbour, _ in neighbours]

    # -------------------------
    # Entropy-driven collapse
    # -------------------------
    def find_lowest_entropy(self) -> Optional[Position]:
        """
        Position of an uncollapsed cell with minimal entropy, or None when all
        cells are collapsed. Ties are broken uniformly at random.
        """
        lowest_positions: List[Position] = []
        lowest_entropy = None

        for position, entropy in self._open.items():
            if lowest_entropy is None or entropy < lowest_entropy:
                lowest_entropy = entropy
                lowest_positions = [position]
            elif entropy == lowest_entropy:
                lowest_positions.append(position)

        if not lowest_positions:
            return None
        return self.rng.choice(lowest_positions)

    def collapse(self, position: Position) -> str:
        """Collapse one superposition cell to a weighted random type and return it."""
        cell = self.tiles[position]
        assert not cell.is_collapsed, f"Tried to collapse collapsed cell at ({position.x}, {position.y})"

        tile_type = self.rules.random_type_from(cell.possible_types, self.rng)
        self.set_cell(position, Cell.collapsed(tile_type))
        return tile_type

    def collapse_to_random_type(self) -> Optional[Position]:
        """Collapse the lowest-entropy cell. Returns its position, or None when finished."""
        position = self.find_lowest_entropy()
        if position is None:
            return None
        self.collapse(position)
        return position

    # -------------------------
    # Generation driver
    # -------------------------
    def propagate(self, origin: Position) -> int:
        """
        Re-filter cells outward from ``origin`` until nothing changes.

        Work is a FIFO queue; a position already waiting is not queued twice
        since it will see the latest state when popped. Returns the number of
        update_cell evaluations.
        """
        queue: Deque[Position] = deque()
        pending: Set[Position] = set()

        for _, neighbour, _ in self.neighbors_of(origin):
            queue.append(neighbour)
            pending.add(neighbour)

        evaluations = 0
        while queue:
            position = queue.popleft()
            pending.discard(position)
            evaluations += 1

            for neighbour in self.update_cell(position):
                if neighbour not in pending:
                    pending.add(neighbour)
                    queue.append(neighbour)

        return evaluations

    def update_and_propagate(self) -> MapStatus:
        position = self.collapse_to_random_type()
        if position is None:
            return MapStatus.FINISHED

        self.propagate(position)
        return MapStatus.GENERATING

    def generate(self) -> None:
        """
        Resolve the whole map in one synchronous call.

        Pipeline:
          - reset to full superposition
          - collapse + propagate until every cell is collapsed
          - retry on contradictions, up to config.max_attempts runs
          - isolated beach cleanup
        """
        self.logger.info(f"Generating {self.width}x{self.height} map")

        with PerformanceTimer(self.logger, f"WFC generation {self.width}x{self.height}"):
            for attempt in range(1, self.config.max_attempts + 1):
                self.clear()
                self.attempts = attempt

                cycles = 0
                while self.update_and_propagate() is MapStatus.GENERATING:
                    cycles += 1
                self.logger.debug(f"Attempt {attempt}: {cycles} collapse cycles")

                if not self.contradictions:
                    break
                if attempt < self.config.max_attempts:
                    self.logger.warning(
                        f"Attempt {attempt} hit {len(self.contradictions)} contradiction(s), retrying"
                    )

            if self.config.remove_beach_islands:
                self.beach_islands_removed = self.remove_beach_islands()

        stats = self.get_statistics()
        if self.contradictions:
            if self.config.strict:
                raise ContradictionError(list(self.contradictions))
            self.logger.warning(
                f"Map finished with {stats['contradictions']} contradiction(s) after {self.attempts} attempt(s)"
            )

        self.logger.info(
            f"Map complete: {stats['collapsed']} cells collapsed, "
            f"{stats['beach_islands_removed']} beach islands removed, attempts={stats['attempts']}"
        )

    # -------------------------
    # Post-processing
    # -------------------------
    def _is_beach_island(self, position: Position) -> bool:
        land = self.config.land_type
        return not any(
            self.tiles[neighbour].tile_type == land
            for neighbour in neighbors_8(position, self.width, self.height)
        )

    def remove_beach_islands(self) -> int:
        """
        Turn beach tiles with no land anywhere in their Moore neighbourhood
        into liquid. Single pass judged on the grid as it was before the pass;
        no propagation follows. Returns the number of tiles changed.
        """
        beach, land, liquid = self.config.beach_type, self.config.land_type, self.config.liquid_type
        missing = [t for t in (beach, land, liquid) if t not in self.rules.all_types()]
        if missing:
            self.logger.debug(f"Beach cleanup skipped, rule set lacks {missing}")
            return 0

        islands = [
            position for position, cell in self.tiles.items()
            if cell.tile_type == beach and self._is_beach_island(position)
        ]
        for position in islands:
            self.set_cell(position, Cell.collapsed(liquid))

        self.logger.debug(f"Beach cleanup: {len(islands)} tile(s) turned to {liquid}")
        return len(islands)

    # -------------------------
    # Statistics
    # -------------------------
    def get_statistics(self) -> Dict:
        types = Counter(cell.tile_type for cell in self.tiles.values() if cell.is_collapsed)
        collapsed = sum(types.values())
        return {
            'width': self.width,
            'height': self.height,
            'collapsed': collapsed,
            'superposition': len(self.tiles) - collapsed,
            'contradictions': len(self.contradictions),
            'attempts': self.attempts,
            'beach_islands_removed': self.beach_islands_removed,
            'types': dict(types),
        }
