"""Egocentric selectors, headings and spatial value resolution.

Heading model
-------------
Yaw is read in radians (mineflayer convention).  Cardinal centers:

    S = 0      W = π/2      N = π      E = 3π/2

``yaw_to_heading`` snaps to the nearest center; on an exact tie the first
heading in declaration order (N, E, S, W) wins.

Basis per heading (forward, right); ``u``/``d`` are always ±y:

    N  f=(0,0,1)   r=(1,0,0)
    E  f=(1,0,0)   r=(0,0,-1)
    S  f=(0,0,-1)  r=(-1,0,0)
    W  f=(-1,0,0)  r=(0,0,1)

Selectors are resolved against a HeadingContext captured at the moment of
use, never when the script is parsed.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping

from craftscript.core.ast_nodes import (
    BlockQuery, NumberLiteral, Selector, SelTerm, StringLiteral,
    BooleanLiteral, Waypoint, World,
)
from craftscript.core.constants import ITEM_NAMESPACE
from craftscript.core.errors import AbsoluteLookupError, EvaluationError

_TWO_PI = 2.0 * math.pi


# ---------------------------------------------------------------------------
# Vec3
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Vec3:
    x: float
    y: float
    z: float

    def __add__(self, other: "Vec3") -> "Vec3":
        return Vec3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: "Vec3") -> "Vec3":
        return Vec3(self.x - other.x, self.y - other.y, self.z - other.z)

    def scaled(self, k: float) -> "Vec3":
        return Vec3(self.x * k, self.y * k, self.z * k)

    def offset(self, dx: float, dy: float, dz: float) -> "Vec3":
        return Vec3(self.x + dx, self.y + dy, self.z + dz)

    def floored(self) -> "Vec3":
        return Vec3(math.floor(self.x), math.floor(self.y), math.floor(self.z))

    def distance_sq(self, other: "Vec3") -> float:
        d = self - other
        return d.x * d.x + d.y * d.y + d.z * d.z

    def distance_to(self, other: "Vec3") -> float:
        return math.sqrt(self.distance_sq(other))

    def to_list(self) -> list[float]:
        return [self.x, self.y, self.z]

    @classmethod
    def of(cls, values: Iterable[float]) -> "Vec3":
        x, y, z = values
        return cls(x, y, z)


ZERO = Vec3(0, 0, 0)


# ---------------------------------------------------------------------------
# Headings
# ---------------------------------------------------------------------------

class Heading(Enum):
    N = "N"
    E = "E"
    S = "S"
    W = "W"

    @property
    def yaw(self) -> float:
        return _YAW_CENTERS[self]


_YAW_CENTERS: dict[Heading, float] = {
    Heading.N: math.pi,
    Heading.E: 1.5 * math.pi,
    Heading.S: 0.0,
    Heading.W: 0.5 * math.pi,
}

_BASIS: dict[Heading, tuple[Vec3, Vec3]] = {
    Heading.N: (Vec3(0, 0, 1),  Vec3(1, 0, 0)),
    Heading.E: (Vec3(1, 0, 0),  Vec3(0, 0, -1)),
    Heading.S: (Vec3(0, 0, -1), Vec3(-1, 0, 0)),
    Heading.W: (Vec3(-1, 0, 0), Vec3(0, 0, 1)),
}


def yaw_to_heading(yaw: float) -> Heading:
    """Snap a yaw (radians, any range) to the nearest cardinal heading."""
    y = yaw % _TWO_PI
    best, best_d = Heading.N, math.inf
    for heading in Heading:
        diff = abs(y - _YAW_CENTERS[heading])
        d = min(diff, _TWO_PI - diff)
        if d < best_d:
            best, best_d = heading, d
    return best


def heading_basis(heading: Heading) -> tuple[Vec3, Vec3]:
    """Return the (forward, right) unit vectors for *heading*."""
    return _BASIS[heading]


def axis_vector(term: SelTerm, heading: Heading) -> Vec3:
    forward, right = _BASIS[heading]
    n = term.magnitude
    if term.axis == "f": return forward.scaled(n)
    if term.axis == "b": return forward.scaled(-n)
    if term.axis == "r": return right.scaled(n)
    if term.axis == "l": return right.scaled(-n)
    if term.axis == "u": return Vec3(0, n, 0)
    if term.axis == "d": return Vec3(0, -n, 0)
    raise ValueError(f"unknown selector axis: {term.axis!r}")


def selector_to_offset(selector: Selector, heading: Heading) -> Vec3:
    """Vector sum of the selector's terms under *heading*.  Pure."""
    acc = ZERO
    for term in selector.terms:
        acc = acc + axis_vector(term, heading)
    return acc


def selector_to_key(selector: Selector, upper: bool = True) -> str:
    """Canonical text key, e.g. ``F3+R1``.  Independent of heading."""
    parts = []
    for term in selector.terms:
        letter = term.axis.upper() if upper else term.axis.lower()
        parts.append(f"{letter}{term.magnitude}")
    return "+".join(parts)


@dataclass(frozen=True)
class HeadingContext:
    """Snapshot of the actor's facing and position at one point in time."""
    heading:  Heading
    position: Vec3

    @classmethod
    def from_yaw(cls, yaw: float, position: Vec3) -> "HeadingContext":
        return cls(yaw_to_heading(yaw), position)


# ---------------------------------------------------------------------------
# Block predicates
# ---------------------------------------------------------------------------

def strip_namespace(value: Any) -> Any:
    if isinstance(value, str) and value.startswith(ITEM_NAMESPACE):
        return value[len(ITEM_NAMESPACE):]
    return value


@dataclass(frozen=True)
class BlockPredicate:
    """Evaluated ``block(key: value, …)`` query.

    ``matches`` compares every key against a block-state mapping; string
    values are compared without the ``minecraft:`` namespace.
    """
    query: tuple[tuple[str, Any], ...]

    def as_dict(self) -> dict[str, Any]:
        return dict(self.query)

    def matches(self, block: Mapping[str, Any] | None) -> bool:
        if block is None:
            return False
        for key, expected in self.query:
            if key not in block:
                return False
            if strip_namespace(block[key]) != strip_namespace(expected):
                return False
        return True

    def locate(self, snapshot: Mapping[Vec3, Mapping[str, Any]], origin: Vec3) -> Vec3:
        """Nearest matching position in *snapshot*; ties broken by x, y, z."""
        hits = [pos for pos, block in snapshot.items() if self.matches(block)]
        if not hits:
            raise AbsoluteLookupError(
                f"no block matching {self.describe()} in view",
                self.describe(),
                notes={"query": self.as_dict()},
            )
        return min(hits, key=lambda p: (p.distance_sq(origin), p.x, p.y, p.z))

    def describe(self) -> str:
        inner = ", ".join(f"{k}: {v!r}" for k, v in self.query)
        return f"block({inner})"


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

def _literal(expr: Any) -> Any:
    if isinstance(expr, (NumberLiteral, StringLiteral, BooleanLiteral)):
        return expr.value
    raise EvaluationError(
        f"expected a literal, got {type(expr).__name__}",
        location=getattr(expr, "loc", None),
    )


def _coordinate(value: Any, axis: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise EvaluationError(f"world {axis} must be a number, got {value!r}")
    return value


class Resolver:
    """Turns spatial values into world positions or block predicates.

    Parameters
    ----------
    waypoints : WaypointBook | None
        Named-position lookup; ``None`` means every waypoint is missing.
    actor_name : str
        Owner key passed to the waypoint book.
    """

    def __init__(self, waypoints=None, actor_name: str = "") -> None:
        self._waypoints  = waypoints
        self._actor_name = actor_name

    # ------------------------------------------------------------------

    def resolve_selector(self, selector: Selector, ctx: HeadingContext) -> Vec3:
        return ctx.position.floored() + selector_to_offset(selector, ctx.heading)

    def resolve_world(self, x: Any, y: Any, z: Any) -> Vec3:
        return Vec3(_coordinate(x, "x"), _coordinate(y, "y"), _coordinate(z, "z"))

    def resolve_waypoint(self, name: str, location=None) -> Vec3:
        found = None
        if self._waypoints is not None:
            found = self._waypoints.get_waypoint(self._actor_name, name)
        if found is None:
            raise AbsoluteLookupError(
                f"unknown waypoint {name!r}", name,
                location=location, notes={"waypoint": name},
            )
        return Vec3(found.x, found.y, found.z)

    def resolve_block_query(self, query: Mapping[str, Any]) -> BlockPredicate:
        return BlockPredicate(tuple(query.items()))

    # ------------------------------------------------------------------

    def resolve(self, value: Any, ctx: HeadingContext) -> Any:
        """Resolve a spatial AST value whose sub-expressions are literals.

        Non-spatial values pass through unchanged.
        """
        if isinstance(value, Selector):
            return self.resolve_selector(value, ctx)
        if isinstance(value, World):
            return self.resolve_world(_literal(value.x), _literal(value.y), _literal(value.z))
        if isinstance(value, Waypoint):
            return self.resolve_waypoint(value.name, value.loc)
        if isinstance(value, BlockQuery):
            return self.resolve_block_query({k: _literal(v) for k, v in value.query})
        return value
