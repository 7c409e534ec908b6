import zlib

import pygame


class UITheme:

    # Colour scheme for the preview window and the palette renderer

    BACKGROUND = pygame.Color("#1E1E1E")  # almost black, also used for undecided cells
    PRIMARY = pygame.Color("#3C3C3C")  # dark gray for the control bar

    # Known tile types of the bundled rule sets
    TILE_COLOURS = {
        "grass": pygame.Color("#5FA84A"),
        "water": pygame.Color("#2F6FB5"),
        "sand": pygame.Color("#E3CF8C"),
        "trees": pygame.Color("#2E6B35"),
        "stone": pygame.Color("#8A8A8A"),
    }

    @classmethod
    def tile_colour(cls, tile_type: str) -> pygame.Color:
        """Palette colour for a tile type; unknown types get a stable hue from their name."""
        colour = cls.TILE_COLOURS.get(tile_type)
        if colour is not None:
            return colour

        colour = pygame.Color(0, 0, 0)
        colour.hsva = (zlib.crc32(tile_type.encode("utf-8")) % 360, 55, 80, 100)
        return colour
