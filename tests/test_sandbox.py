"""Tests for craftscript.core.sandbox — the offline actor and its command table."""
import math

from craftscript.core.executor import Actor
from craftscript.core.results import RunStatus
from craftscript.core.sandbox import SandboxActor
from craftscript.core.selector import Heading, Vec3


class TestSandboxActor:
    def test_satisfies_actor_protocol(self, actor):
        assert isinstance(actor, Actor)

    def test_defaults(self):
        a = SandboxActor()
        assert a.position == Vec3(0, 64, 0)
        assert a.yaw == math.pi
        assert a.heading_context().heading is Heading.N

    def test_air_and_namespaces(self, actor):
        assert actor.is_air(Vec3(0, 64, 0))
        assert not actor.is_air(Vec3(0, 63, 0))
        actor.set_block(Vec3(0, 64, 0), "minecraft:air")
        assert actor.is_air(Vec3(0, 64, 0))

    def test_snapshot_radius(self, actor):
        snap = actor.snapshot(1)
        assert Vec3(1, 63, 1) in snap
        assert Vec3(2, 63, 0) not in snap


class TestSandboxCommands:
    def test_move_to_block_query(self, run, actor):
        actor.set_block(Vec3(1, 64, 1), "gold_block")
        outcome = run('move(block(name: "gold_block"));')
        assert outcome.results[0].notes == {"world": [1, 65, 1]}
        assert actor.position == Vec3(1, 65, 1)

    def test_move_query_without_match(self, run):
        fail = run('move(block(name: "diamond_ore"));').results[0]
        assert fail.error_kind == "absolute_lookup_error"

    def test_move_into_wall(self, run, actor):
        actor.set_block(Vec3(0, 64, 1), "stone")
        assert run("move(f);").results[0].error_kind == "no_path"
        assert actor.position == Vec3(0, 64, 0)

    def test_turn_words(self, run, actor):
        run('turn("around");')
        assert actor.heading_context().heading is Heading.S
        run('turn("left");')
        assert actor.heading_context().heading is Heading.E

    def test_turn_invalid(self, run):
        assert run("turn(f);").results[0].error_kind == "invalid_argument"

    def test_turn_face(self, run, actor):
        outcome = run('turn_face("west"); dig(f);')
        assert outcome.results[0].notes == {"face": "west"}
        assert actor.heading_context().heading is Heading.W

    def test_dig_below_and_break(self, run, actor):
        outcome = run("dig(d); break(d + f1);")
        assert all(r.ok for r in outcome.results)
        assert actor.inventory["stone"] == 2
        assert actor.is_air(Vec3(0, 63, 0))

    def test_dig_out_of_reach(self, run, actor):
        actor.set_block(Vec3(0, 64, 6), "stone")
        fail = run("dig(f6);").results[0]
        assert fail.error_kind == "out_of_reach"
        assert actor.block_at(Vec3(0, 64, 6)) == {"name": "stone"}

    def test_place_missing_item(self, run):
        assert run('place("glass", f);').results[0].error_kind == "missing_item"

    def test_equip(self, run, actor):
        outcome = run('equip("cobblestone"); equip("minecraft:torch");')
        assert actor.held == "cobblestone"
        assert outcome.results[1].error_kind == "missing_item"

    def test_say(self, run, actor):
        run('say("x", 1, true);')
        assert actor.chat == ["x 1 true"]

    def test_bad_argument_type(self, run):
        assert run("dig(3);").results[0].error_kind == "invalid_argument"


class TestSandboxPredicates:
    def test_has_item(self, run):
        script = 'assert(has_item("cobblestone", 8)); assert(!has_item("cobblestone", 9));'
        assert run(script).status is RunStatus.COMPLETED

    def test_has_item_named_count(self, run):
        assert run('assert(has_item("cobblestone", count: 2));').ok

    def test_block_is(self, run):
        script = (
            'assert(block_is(d, "stone"));'
            'assert(block_is(d, "minecraft:stone"));'
            'assert(block_is(d, block(name: "stone")));'
            'assert(block_is(f, "air"));'
        )
        assert run(script).ok

    def test_can_stand(self, run, actor):
        actor.set_block(Vec3(0, 65, 1), "stone")
        assert run("assert(!can_stand(f));").ok
