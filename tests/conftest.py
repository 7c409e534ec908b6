import os

# pygame must never try to open a real window during tests
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

import random

import pytest

from tilewave.wfc import MapConfig, TileMap, TileRules, clear_rules_cache, default_rules


def build_rules(adjacency, weights=None, **extra):
    """
    Build a TileRules from a compact description.

    ``adjacency`` maps a type either to one iterable used for all four sides,
    or to a dict with north/east/south/west entries.
    """
    tile_types = list(adjacency)
    full = {}
    for tile_type, allowed in adjacency.items():
        if isinstance(allowed, dict):
            full[tile_type] = {side: sorted(allowed.get(side, ())) for side in ("north", "east", "south", "west")}
        else:
            full[tile_type] = {side: sorted(allowed) for side in ("north", "east", "south", "west")}

    return TileRules.from_dict({
        "tileTypes": tile_types,
        "adjacency": full,
        "weights": weights or {t: 1 for t in tile_types},
        **extra,
    })


@pytest.fixture(autouse=True)
def _fresh_rules_cache():
    clear_rules_cache()
    yield
    clear_rules_cache()


@pytest.fixture
def rules_builder():
    return build_rules


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def uniform_rules():
    """Two types that only tolerate themselves: any solution is single-coloured."""
    return build_rules({"A": {"A"}, "B": {"B"}})


@pytest.fixture
def anisotropic_rules():
    """
    A universal ground type plus two directional types.

    ``ground`` accepts everything on every side, so no cell can run out of
    candidates. ``road`` only continues east/west, ``river`` only north/south.
    """
    return build_rules(
        {
            "ground": {"ground", "road", "river"},
            "road": {
                "north": {"ground"},
                "east": {"road", "ground"},
                "south": {"ground"},
                "west": {"road", "ground"},
            },
            "river": {
                "north": {"river", "ground"},
                "east": {"ground"},
                "south": {"river", "ground"},
                "west": {"ground"},
            },
        },
        weights={"ground": 4, "road": 2, "river": 2},
    )


@pytest.fixture
def coast_rules():
    return default_rules()


@pytest.fixture
def make_map():
    def _make(rules, width=3, height=3, seed=7, **config):
        return TileMap(width, height, rules, config=MapConfig(seed=seed, **config))
    return _make


@pytest.fixture
def display():
    """Headless pygame display (SDL dummy driver)."""
    import pygame

    pygame.init()
    screen = pygame.display.set_mode((640, 480))
    yield screen
    pygame.quit()
