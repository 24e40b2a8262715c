"""Offline sandbox — a simulated actor and a demo command table.

Used by the dry runner (main.py) and by tests.  The world is a dict of
block positions → block-state mappings; everything not in it is air.

Commands
--------
move(target)                 target: position or block(...) query   [spatial]
turn(r | l | b)              or "right" / "left" / "back" / "around"
turn_face("north" | ...)
dig(target) / break(target)  removes the block into the inventory   [spatial]
place("item", target)                                               [spatial]
equip("item")
say("text")

Predicates
----------
is_air(pos)  can_stand(pos)  has_item("item"[, count])  block_is(pos, "name" | block(...))
"""
from __future__ import annotations

import math
from typing import Any, Mapping

from craftscript.core.errors import CommandError
from craftscript.core.executor import CommandCall, CommandTable
from craftscript.core.expression import to_text
from craftscript.core.selector import (
    BlockPredicate, Heading, HeadingContext, Vec3, strip_namespace,
)

REACH = 4.5

_TURNS = {
    "R1": 0.5 * math.pi, "right": 0.5 * math.pi,
    "L1": -0.5 * math.pi, "left": -0.5 * math.pi,
    "B1": math.pi, "back": math.pi, "around": math.pi,
}

_FACES = {"north": Heading.N, "east": Heading.E, "south": Heading.S, "west": Heading.W}


class SandboxActor:
    """In-memory stand-in for a connected game actor."""

    def __init__(
        self,
        name:      str = "sandbox",
        position:  Vec3 = Vec3(0, 64, 0),
        yaw:       float = math.pi,
        blocks:    Mapping[Vec3, Mapping[str, Any]] | None = None,
        inventory: Mapping[str, int] | None = None,
    ) -> None:
        self.name      = name
        self.position  = position
        self.yaw       = yaw
        self.blocks: dict[Vec3, dict[str, Any]] = {
            p.floored(): dict(b) for p, b in (blocks or {}).items()
        }
        self.inventory: dict[str, int] = dict(inventory or {})
        self.held: str | None = None
        self.chat: list[str]  = []
        self.scans: list[int] = []

    # ------------------------------------------------------------------
    # Actor protocol
    # ------------------------------------------------------------------

    def heading_context(self) -> HeadingContext:
        return HeadingContext.from_yaw(self.yaw, self.position)

    async def scan(self, radius: int) -> dict[Vec3, dict[str, Any]]:
        self.scans.append(radius)
        return self.snapshot(radius)

    # ------------------------------------------------------------------
    # World helpers
    # ------------------------------------------------------------------

    def block_at(self, pos: Vec3) -> dict[str, Any] | None:
        return self.blocks.get(pos.floored())

    def is_air(self, pos: Vec3) -> bool:
        block = self.block_at(pos)
        return block is None or strip_namespace(block.get("name")) == "air"

    def set_block(self, pos: Vec3, name: str, **state: Any) -> None:
        self.blocks[pos.floored()] = {"name": name, **state}

    def snapshot(self, radius: int) -> dict[Vec3, dict[str, Any]]:
        """Non-air blocks within a cube of *radius* around the actor."""
        origin = self.position.floored()
        return {
            pos: block for pos, block in self.blocks.items()
            if max(abs(pos.x - origin.x), abs(pos.y - origin.y), abs(pos.z - origin.z)) <= radius
            and not self.is_air(pos)
        }

    def give(self, item: str, count: int = 1) -> None:
        item = strip_namespace(item)
        self.inventory[item] = self.inventory.get(item, 0) + count

    def take(self, item: str) -> None:
        item = strip_namespace(item)
        if self.inventory.get(item, 0) <= 0:
            raise CommandError(f"no {item} in inventory", kind="missing_item",
                               notes={"item": item})
        self.inventory[item] -= 1
        if self.inventory[item] == 0:
            del self.inventory[item]


def _position(value: Any, what: str = "target") -> Vec3:
    if not isinstance(value, Vec3):
        raise CommandError(f"{what} must be a position, got {value!r}", kind="invalid_argument")
    return value.floored()


def _text(value: Any, what: str) -> str:
    if not isinstance(value, str):
        raise CommandError(f"{what} must be a string, got {value!r}", kind="invalid_argument")
    return value


def sandbox_table(actor: SandboxActor, scan_radius: int = 8) -> CommandTable:
    """Build the demo command table bound to *actor*."""
    table = CommandTable()

    def in_reach(pos: Vec3) -> None:
        if actor.position.distance_to(pos) > REACH:
            raise CommandError(f"target beyond reach ({REACH})", kind="out_of_reach",
                               notes={"world": pos.to_list()})

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def move(call: CommandCall) -> dict:
        target = call.arg(0)
        if isinstance(target, BlockPredicate):
            found = target.locate(actor.snapshot(scan_radius), actor.position)
            target = found.offset(0, 1, 0)
        target = _position(target)
        if not actor.is_air(target) or not actor.is_air(target.offset(0, 1, 0)):
            raise CommandError(f"cannot stand at {target.to_list()}", kind="no_path",
                               notes={"world": target.to_list()})
        actor.position = target
        return {"world": target.to_list()}

    def turn(call: CommandCall) -> dict:
        token = call.selector_key(0) or call.arg(0)
        if token not in _TURNS:
            raise CommandError(f"cannot turn {token!r}", kind="invalid_argument")
        actor.yaw = (actor.yaw + _TURNS[token]) % (2 * math.pi)
        return {"heading": actor.heading_context().heading.value}

    def turn_face(call: CommandCall) -> dict:
        face = _text(call.arg(0), "face").lower()
        if face not in _FACES:
            raise CommandError(f"unknown face {face!r}", kind="invalid_argument")
        actor.yaw = _FACES[face].yaw
        return {"face": face}

    async def dig(call: CommandCall) -> dict:
        pos = _position(call.arg(0))
        block = actor.block_at(pos)
        if block is None or actor.is_air(pos):
            raise CommandError("no block to dig", kind="no_target",
                               notes={"world": pos.to_list()})
        in_reach(pos)
        del actor.blocks[pos]
        name = strip_namespace(block["name"])
        actor.give(name)
        return {"world": pos.to_list(), "id": name}

    async def place(call: CommandCall) -> dict:
        item = strip_namespace(_text(call.arg(0), "item"))
        pos = _position(call.arg(1))
        if not actor.is_air(pos):
            raise CommandError(f"{pos.to_list()} is occupied", kind="occupied",
                               notes={"world": pos.to_list()})
        in_reach(pos)
        actor.take(item)
        actor.set_block(pos, item)
        return {"world": pos.to_list(), "id": item}

    def equip(call: CommandCall) -> dict:
        item = strip_namespace(_text(call.arg(0), "item"))
        if actor.inventory.get(item, 0) <= 0:
            raise CommandError(f"no {item} in inventory", kind="missing_item")
        actor.held = item
        return {"item": item}

    def say(call: CommandCall) -> None:
        actor.chat.append(" ".join(to_text(a) for a in call.args))

    table.register("move", move, spatial=True)
    table.register("turn", turn)
    table.register("turn_face", turn_face)
    table.register("dig", dig, spatial=True)
    table.register("break", dig, spatial=True)
    table.register("place", place, spatial=True)
    table.register("equip", equip)
    table.register("say", say)

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------

    @table.predicate()
    def is_air(call: CommandCall) -> bool:
        return actor.is_air(_position(call.arg(0)))

    @table.predicate()
    def can_stand(call: CommandCall) -> bool:
        pos = _position(call.arg(0))
        return (
            actor.is_air(pos)
            and actor.is_air(pos.offset(0, 1, 0))
            and not actor.is_air(pos.offset(0, -1, 0))
        )

    @table.predicate()
    def has_item(call: CommandCall) -> bool:
        item = strip_namespace(_text(call.arg(0), "item"))
        return actor.inventory.get(item, 0) >= call.arg(1, call.named.get("count", 1))

    @table.predicate()
    def block_is(call: CommandCall) -> bool:
        block = actor.block_at(_position(call.arg(0)))
        expected = call.arg(1, call.named.get("name"))
        if isinstance(expected, BlockPredicate):
            return expected.matches(block)
        name = block.get("name") if block else "air"
        return strip_namespace(name) == strip_namespace(expected)

    return table
