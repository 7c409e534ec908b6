"""
Tile map renderer (pygame, NumPy-accelerated).

Two modes:
- palette: one flat colour per tile type. Colours are written into a NumPy
  array with one pixel per cell, turned into a surface via pygame.surfarray
  and scaled up to the tile size.
- tileset: each collapsed cell is blitted from a tileset image, using the
  rule set's render index for its type. Tiles in the image are laid out
  row-major in tile_size steps.

Cells still in superposition are drawn with the background colour, so a map
with contradictions renders with visible holes instead of failing.
"""

import random
from pathlib import Path
from typing import Optional, Union

import numpy as np
import pygame

from tilewave.config import TILE_SIZE, get_logger
from tilewave.ui.theme import UITheme


class MapRenderer:
    """Turns a TileMap into a pygame Surface."""

    def __init__(self, tile_size: int = TILE_SIZE, theme=UITheme,
                 tileset_path: Optional[Union[str, Path]] = None, rng: Optional[random.Random] = None):
        self.logger = get_logger(__name__)
        self.tile_size = tile_size
        self.theme = theme
        self.tileset_path = Path(tileset_path) if tileset_path else None
        self.rng = rng or random.Random()

        # lazy-loaded (None until first accessed)
        self._tileset = None

    @property
    def tileset(self) -> Optional[pygame.Surface]:
        """Load and cache the tileset image when first accessed"""
        if self._tileset is None and self.tileset_path is not None:
            self.logger.debug(f"Loading tileset from: {self.tileset_path}")
            self._tileset = pygame.image.load(str(self.tileset_path))
            self.logger.info(
                f"Tileset loaded: {self._tileset.get_width()}x{self._tileset.get_height()}"
            )
        return self._tileset

    # ---------------------------
    # ARRAYS
    # ---------------------------
    def colour_array(self, tile_map) -> np.ndarray:
        """RGB array of shape (width, height, 3), one pixel per cell, x-major like surfarray."""
        background = self.theme.BACKGROUND
        pixels = np.empty((tile_map.width, tile_map.height, 3), dtype=np.uint8)
        pixels[:, :] = (background.r, background.g, background.b)

        colours = {}
        for position, cell in tile_map:
            if not cell.is_collapsed:
                continue
            rgb = colours.get(cell.tile_type)
            if rgb is None:
                colour = self.theme.tile_colour(cell.tile_type)
                rgb = colours[cell.tile_type] = (colour.r, colour.g, colour.b)
            pixels[position.x, position.y] = rgb

        return pixels

    def index_grid(self, tile_map) -> np.ndarray:
        """Render index per cell, shape (height, width); -1 where there is nothing to draw."""
        grid = np.full((tile_map.height, tile_map.width), -1, dtype=np.int32)
        for position, cell in tile_map:
            if not cell.is_collapsed:
                continue
            index = tile_map.rules.tile_index(cell.tile_type, self.rng)
            if index is not None:
                grid[position.y, position.x] = index
        return grid

    # ---------------------------
    # SURFACES
    # ---------------------------
    def render(self, tile_map) -> pygame.Surface:
        size = (tile_map.width * self.tile_size, tile_map.height * self.tile_size)

        if self.tileset_path is not None:
            return self._render_tileset(tile_map, size)

        cells = pygame.surfarray.make_surface(self.colour_array(tile_map))
        return pygame.transform.scale(cells, size)

    def _render_tileset(self, tile_map, size) -> pygame.Surface:
        surface = pygame.Surface(size)
        surface.fill(self.theme.BACKGROUND)

        tileset = self.tileset
        columns = max(1, tileset.get_width() // self.tile_size)
        indexes = self.index_grid(tile_map)

        for y, x in zip(*np.nonzero(indexes >= 0)):
            index = int(indexes[y, x])
            source = pygame.Rect(
                (index % columns) * self.tile_size,
                (index // columns) * self.tile_size,
                self.tile_size,
                self.tile_size,
            )
            surface.blit(tileset, (int(x) * self.tile_size, int(y) * self.tile_size), source)

        return surface

    def save(self, surface: pygame.Surface, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        pygame.image.save(surface, str(path))
        self.logger.info(f"Saved map image to {path}")
        return path
