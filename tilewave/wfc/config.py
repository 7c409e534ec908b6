"""
Map generation settings.

MapConfig collects every tunable of a generation run in one place so a
TileMap can be rebuilt with identical behaviour from a single object:

    config = MapConfig(width=48, height=32, seed=1234)
    tile_map = TileMap.from_config(config)
    tile_map.generate()
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from tilewave.config import MAP_WIDTH, MAP_HEIGHT


@dataclass
class MapConfig:
    # Grid size in tiles
    width: int = MAP_WIDTH
    height: int = MAP_HEIGHT

    # None gives a non-reproducible run
    seed: Optional[int] = None

    # None uses the bundled default rule set
    rules_path: Optional[Union[str, Path]] = None

    # Isolated-beach cleanup: beach tiles with no land in their Moore
    # neighbourhood are turned into liquid
    remove_beach_islands: bool = True
    beach_type: str = "sand"
    land_type: str = "grass"
    liquid_type: str = "water"

    # Contradiction handling: regenerate up to max_attempts times, then
    # either keep the degenerate map or raise (strict)
    max_attempts: int = 1
    strict: bool = False

    def validate(self) -> None:
        """Raise ValueError for settings no generator can honour."""
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Map dimensions must be positive, got {self.width}x{self.height}")
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
