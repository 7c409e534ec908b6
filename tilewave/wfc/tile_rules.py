"""
tilewave - wfc/tile_rules.py
Tile rule table: types, weights, directional adjacency and render indices.
==========================================================================
Rule files are JSON documents validated with Pydantic v2. Loaded tables are
frozen and cached per resolved path, so every TileMap built from the same
file shares one read-only instance.

Adjacency is self-relative: ``adjacency[a].north`` lists the types that may
sit directly north of a cell holding ``a``. Nothing is mirrored, so a rule
set may be fully anisotropic; a pair of cells is allowed only when the rules
of both cells accept each other.
"""

import random
import sys
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError, model_validator

from tilewave.config import DEFAULT_RULES_PATH, get_logger
from tilewave.wfc.utils import Direction

logger = get_logger(__name__)

# Added to every weight during a random draw so zero-weight types stay selectable
DEFAULT_WEIGHT_BIAS = 1

# Preferred fallback when a rule file does not name one
DEFAULT_FALLBACK_TYPE = "grass"

# Entropy of a cell nobody has constrained yet
MAX_ENTROPY = sys.maxsize


class RuleConfigError(ValueError):
    """The rule table is malformed or internally inconsistent."""


class UnknownTileTypeError(LookupError):
    """A tile type was looked up that the rule table does not define."""

    def __init__(self, tile_type):
        super().__init__(f"Unknown tile type: {tile_type!r}")
        self.tile_type = tile_type


# ================================================================================
# SCHEMAS
# ================================================================================

class AdjacencyRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    north: FrozenSet[str]
    east: FrozenSet[str]
    south: FrozenSet[str]
    west: FrozenSet[str]

    def for_direction(self, direction: Direction) -> FrozenSet[str]:
        return getattr(self, direction.label)

    def referenced_types(self) -> FrozenSet[str]:
        return self.north | self.east | self.south | self.west


class TileRules(BaseModel):
    """
    Static per-generation data consumed by the tile map.

    Attributes:
        tile_types: Ordered, distinct type identifiers
        adjacency: Per type, the neighbour types allowed on each side
        weights: Per type draw weight, also the entropy cost
        indexes: Per type renderer/texture indices
        fallback_type: Returned by a draw with nothing selectable
        weight_bias: Added to each weight during a draw
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    tile_types: Tuple[str, ...] = Field(alias="tileTypes")
    adjacency: Dict[str, AdjacencyRule]
    weights: Dict[str, int]
    indexes: Dict[str, Tuple[int, ...]] = Field(default_factory=dict)
    fallback_type: Optional[str] = Field(default=None, alias="fallbackType")
    weight_bias: int = Field(default=DEFAULT_WEIGHT_BIAS, alias="weightBias")

    _all_types: FrozenSet[str] = PrivateAttr(default=frozenset())
    _order: Dict[str, int] = PrivateAttr(default_factory=dict)
    _fallback: str = PrivateAttr(default="")

    @model_validator(mode="after")
    def _check_consistency(self) -> "TileRules":
        if not self.tile_types:
            raise ValueError("tile_types must not be empty")

        known = set(self.tile_types)
        if len(known) != len(self.tile_types):
            duplicates = sorted({t for t in self.tile_types if self.tile_types.count(t) > 1})
            raise ValueError(f"tile_types contains duplicates: {duplicates}")

        for section in ("adjacency", "weights", "indexes"):
            unknown = sorted(set(getattr(self, section)) - known)
            if unknown:
                raise ValueError(f"{section} defines unknown tile types: {unknown}")

        missing_adjacency = [t for t in self.tile_types if t not in self.adjacency]
        if missing_adjacency:
            raise ValueError(f"missing adjacency rules for: {missing_adjacency}")

        missing_weights = [t for t in self.tile_types if t not in self.weights]
        if missing_weights:
            raise ValueError(f"missing weights for: {missing_weights}")

        for tile_type, rule in self.adjacency.items():
            unknown = sorted(rule.referenced_types() - known)
            if unknown:
                raise ValueError(f"adjacency of {tile_type!r} references unknown tile types: {unknown}")

        negative = sorted(t for t, w in self.weights.items() if w < 0)
        if negative:
            raise ValueError(f"weights must be non-negative: {negative}")

        if self.weight_bias < 0:
            raise ValueError(f"weight_bias must be non-negative, got {self.weight_bias}")

        empty = sorted(t for t, idx in self.indexes.items() if not idx)
        if empty:
            raise ValueError(f"indexes must list at least one index: {empty}")

        if self.fallback_type is not None and self.fallback_type not in known:
            raise ValueError(f"fallback_type {self.fallback_type!r} is not a tile type")

        return self

    def model_post_init(self, __context) -> None:
        self._all_types = frozenset(self.tile_types)
        self._order = {t: i for i, t in enumerate(self.tile_types)}
        if self.fallback_type is not None:
            self._fallback = self.fallback_type
        elif DEFAULT_FALLBACK_TYPE in self._all_types:
            self._fallback = DEFAULT_FALLBACK_TYPE
        elif self.tile_types:
            self._fallback = self.tile_types[0]

    @classmethod
    def from_dict(cls, data: dict, source: str = "") -> "TileRules":
        """Validate a rule record, raising RuleConfigError on any problem."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise RuleConfigError(_describe(e, source)) from e

    # ---------------------------
    # LOOKUPS
    # ---------------------------
    @property
    def fallback(self) -> str:
        """Type used when a weighted draw has nothing selectable."""
        return self._fallback

    def all_types(self) -> FrozenSet[str]:
        return self._all_types

    def ordered(self, tile_types: Iterable[str]) -> List[str]:
        """Sort types into rule-file order, so draws do not depend on set iteration."""
        order = self._order
        return sorted(tile_types, key=lambda t: order[t] if t in order else _raise_unknown(t))

    def adjacency_of(self, tile_type: str) -> AdjacencyRule:
        try:
            return self.adjacency[tile_type]
        except KeyError:
            raise UnknownTileTypeError(tile_type) from None

    def allowed_neighbours(self, tile_type: str, direction: Direction) -> FrozenSet[str]:
        """Types that may sit on the ``direction`` side of a ``tile_type`` cell."""
        return self.adjacency_of(tile_type).for_direction(direction)

    def valid_neighbour(self, candidate_type: str, neighbour_type: str, direction: Direction) -> bool:
        """
        Check whether ``candidate_type`` may be placed next to ``neighbour_type``.

        ``direction`` points from the candidate's cell towards the neighbour,
        and only the candidate's own rule for that side is consulted. See
        pair_allowed for the check used during generation.
        """
        return neighbour_type in self.allowed_neighbours(candidate_type, direction)

    def pair_allowed(self, candidate_type: str, neighbour_type: str, direction: Direction) -> bool:
        """
        Both sides agree: the candidate accepts the neighbour on ``direction``
        and the neighbour accepts the candidate on the opposite side.
        """
        return (
            self.valid_neighbour(candidate_type, neighbour_type, direction)
            and self.valid_neighbour(neighbour_type, candidate_type, direction.opposite)
        )

    def pair_allowed_with_any(self, candidate_type: str, neighbour_types: FrozenSet[str],
                              direction: Direction) -> bool:
        """pair_allowed against at least one of several possible neighbour types."""
        allowed = self.allowed_neighbours(candidate_type, direction)
        back = direction.opposite
        return any(
            candidate_type in self.allowed_neighbours(n, back)
            for n in neighbour_types
            if n in allowed
        )

    def weight_of(self, tile_type: str) -> int:
        try:
            return self.weights[tile_type]
        except KeyError:
            raise UnknownTileTypeError(tile_type) from None

    # ---------------------------
    # SELECTION
    # ---------------------------
    def random_type_from(self, candidates: Iterable[str], rng: random.Random) -> str:
        """
        Draw one type with probability proportional to weight + weight_bias.

        Falls back to ``fallback`` when there is nothing to draw from, e.g. an
        empty candidate set or only zero-weight types with no bias.
        """
        ordered = self.ordered(candidates)
        weights = [self.weight_of(t) + self.weight_bias for t in ordered]

        if not ordered or sum(weights) <= 0:
            logger.debug(f"Nothing selectable in {ordered}, using fallback {self._fallback!r}")
            return self._fallback

        return rng.choices(ordered, weights=weights)[0]

    def entropy_of(self, candidates: FrozenSet[str]) -> int:
        """Sum of candidate weights; an unconstrained cell gets MAX_ENTROPY."""
        if candidates == self._all_types:
            return MAX_ENTROPY
        return sum(self.weight_of(t) for t in candidates)

    def tile_index(self, tile_type: str, rng: random.Random) -> Optional[int]:
        """Render index for a type, picked at random when it has several."""
        if tile_type not in self._all_types:
            raise UnknownTileTypeError(tile_type)
        indexes = self.indexes.get(tile_type)
        if not indexes:
            return None
        if len(indexes) == 1:
            return indexes[0]
        return rng.choice(indexes)


def _raise_unknown(tile_type):
    raise UnknownTileTypeError(tile_type)


def _describe(error: ValidationError, source: str) -> str:
    where = f" in {source}" if source else ""
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
        for err in error.errors()
    )
    return f"Invalid tile rules{where}: {problems}"


# ================================================================================
# LOADERS & CACHE
# ================================================================================

_RULES_CACHE: Dict[Path, TileRules] = {}


def load_rules_from_json(text: Union[str, bytes], source: str = "") -> TileRules:
    """Parse and validate a JSON rule document."""
    try:
        return TileRules.model_validate_json(text)
    except ValidationError as e:
        raise RuleConfigError(_describe(e, source)) from e


def load_rules(path: Union[str, Path]) -> TileRules:
    """Loads a rule file from disk. Cached per resolved path."""
    path = Path(path).resolve()
    if path in _RULES_CACHE:
        return _RULES_CACHE[path]

    if not path.exists():
        raise FileNotFoundError(f"Rule file not found: {path}")

    rules = load_rules_from_json(path.read_bytes(), source=path.name)
    logger.info(f"Loaded {len(rules.tile_types)} tile types from {path.name}")

    _RULES_CACHE[path] = rules
    return rules


def default_rules() -> TileRules:
    """The bundled grass/water/sand/trees/stone rule set."""
    return load_rules(DEFAULT_RULES_PATH)


def clear_rules_cache() -> None:
    _RULES_CACHE.clear()
