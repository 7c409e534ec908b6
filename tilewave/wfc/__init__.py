"""
WFC Package - Wave Function Collapse Tile Map Generation

This package generates 2-D tile maps by wave function collapse: every cell
starts as a superposition of all tile types and is narrowed by directional
adjacency rules and weighted randomness until it holds exactly one type.

MODULES:
--------
utils.py
    Grid primitives: Position, Direction, in-bounds neighbour iteration.

cell.py
    Cell: either collapsed to one tile type or a set of candidates.

tile_rules.py
    TileRules rule table (Pydantic model), JSON rule-file loaders and the
    RuleConfigError / UnknownTileTypeError exceptions.

config.py
    MapConfig dataclass with every tunable of a generation run.

tile_map.py
    TileMap: constraint filtering, entropy-driven collapse, propagation,
    beach cleanup and statistics.

USAGE:
------
```python
from tilewave.wfc import MapConfig, TileMap, default_rules

config = MapConfig(width=48, height=32, seed=12345, max_attempts=3)
tile_map = TileMap.from_config(config, default_rules())
tile_map.generate()

for position, cell in tile_map:
    if cell.is_collapsed:
        print(position.x, position.y, cell.tile_type)

stats = tile_map.get_statistics()
print(f"{stats['contradictions']} contradictions after {stats['attempts']} attempts")
```

ALGORITHM:
----------
1. **Select**: the uncollapsed cell with the lowest entropy (sum of its
   candidates' weights) is chosen, ties broken uniformly at random.
2. **Collapse**: one of its candidates is drawn, weighted by weight + bias.
3. **Propagate**: neighbours are re-filtered through a FIFO work queue; a
   candidate survives only if some neighbour confirms it and no collapsed
   neighbour forbids it. A cell left with one candidate collapses.
4. **Repeat** until no cell is left in superposition.
5. **Cleanup**: beach tiles with no land in their 8-neighbourhood become
   liquid.

ADJACENCY CONVENTION:
---------------------
Rules are self-relative and may be anisotropic: ``adjacency[a].east`` lists
the types allowed directly east of a cell holding ``a``. Two cells may only
sit side by side when both accept each other: ``a`` east of ``b`` needs
``b`` in ``adjacency[a].west`` and ``a`` in ``adjacency[b].east``.
"""

from tilewave.wfc.cell import Cell
from tilewave.wfc.config import MapConfig
from tilewave.wfc.tile_map import ContradictionError, MapStatus, TileMap
from tilewave.wfc.tile_rules import (
    MAX_ENTROPY,
    AdjacencyRule,
    RuleConfigError,
    TileRules,
    UnknownTileTypeError,
    clear_rules_cache,
    default_rules,
    load_rules,
    load_rules_from_json,
)
from tilewave.wfc.utils import Direction, Position

__all__ = [
    # Grid
    'Position',
    'Direction',
    'Cell',

    # Rules
    'AdjacencyRule',
    'TileRules',
    'MAX_ENTROPY',
    'load_rules',
    'load_rules_from_json',
    'default_rules',
    'clear_rules_cache',

    # Generation
    'MapConfig',
    'TileMap',
    'MapStatus',

    # Errors
    'RuleConfigError',
    'UnknownTileTypeError',
    'ContradictionError',
]
