from __future__ import annotations

import json

import pytest

from veindig.actionpath import ActionPath, ActionResult, TickContext, default_registry
from veindig.direction import Direction
from veindig.ores import DigVeinAction, OreBlacklist
from veindig.world import GridWorld, Heading, Pose, Position

IRON = "minecraft:iron_ore"
GOLD = "minecraft:gold_ore"
STONE = "minecraft:stone"

BLACKLIST = OreBlacklist([STONE, "minecraft:bedrock"])

_NEIGHBOURS = ((1, 0, 0), (-1, 0, 0), (0, 1, 0), (0, -1, 0), (0, 0, 1), (0, 0, -1))


def _reachable(world: GridWorld, direction: Direction) -> set[Position]:
    start = world.cell_at(direction)
    seen: set[Position] = set()
    todo = [start]
    while todo:
        pos = todo.pop()
        if pos in seen or pos not in world.cells or BLACKLIST.contains(world.cells[pos]):
            continue
        seen.add(pos)
        for dx, dy, dz in _NEIGHBOURS:
            todo.append((pos[0] + dx, pos[1] + dy, pos[2] + dz))
    return seen


def _run(vein: DigVeinAction, world: GridWorld, limit: int = 20000) -> int:
    ctx = TickContext(turtle=world)
    for tick in range(1, limit + 1):
        ops_before = len(world.ops)
        result = vein.perform(ctx)
        assert len(world.ops) - ops_before <= 1
        assert result is not ActionResult.FAILURE
        if result is ActionResult.SUCCESS:
            return tick
    raise AssertionError(f"traversal did not finish within {limit} ticks")


def _with_stone_shell(ores: dict[Position, str]) -> dict[Position, str]:
    cells = dict(ores)
    for x, y, z in ores:
        for dx, dy, dz in _NEIGHBOURS:
            pos = (x + dx, y + dy, z + dz)
            if pos not in cells and pos != (0, 0, 0):
                cells[pos] = STONE
    return cells


SHAPES = {
    "single": (Direction.FORWARD, {(0, 0, -1): IRON}),
    "line": (Direction.FORWARD, {(0, 0, -1): IRON, (0, 0, -2): IRON, (0, 0, -3): GOLD}),
    "l-shape": (
        Direction.FORWARD,
        {(0, 0, -1): IRON, (1, 0, -1): IRON, (2, 0, -1): IRON, (2, 1, -1): IRON, (2, 1, -2): IRON},
    ),
    "cross": (
        Direction.FORWARD,
        {(0, 0, -1): IRON, (0, 1, -1): IRON, (0, -1, -1): IRON, (-1, 0, -1): IRON, (1, 0, -1): IRON, (0, 0, -2): IRON},
    ),
    "cube": (
        Direction.FORWARD,
        {(x, y, z): IRON for x in (0, 1) for y in (0, 1) for z in (-1, -2)},
    ),
    "wraps-beside-start": (Direction.FORWARD, {(0, 0, -1): IRON, (1, 0, -1): IRON, (1, 0, 0): IRON, (1, 0, 1): IRON}),
    "column-up": (Direction.UP, {(0, 1, 0): IRON, (0, 2, 0): IRON, (1, 2, 0): IRON, (1, 3, 0): GOLD}),
    "down-then-sideways": (Direction.DOWN, {(0, -1, 0): IRON, (0, -1, -1): IRON, (0, -2, -1): IRON, (-1, -2, -1): IRON}),
}


@pytest.mark.parametrize("shape", sorted(SHAPES))
@pytest.mark.parametrize("heading", [Heading.NORTH, Heading.EAST])
def test_traversal_digs_each_reachable_ore_once_and_returns_home(shape: str, heading: Heading) -> None:
    direction, ores = SHAPES[shape]
    start = Pose(position=(0, 0, 0), heading=heading)
    cells = _with_stone_shell(ores)
    # Not connected to the vein: must stay put.
    cells[(9, 9, 9)] = IRON
    world = GridWorld(cells=cells, pose=start)
    expected = _reachable(world, direction)

    _run(DigVeinAction(direction=direction, blacklist=BLACKLIST), world)

    assert world.pose == start
    assert len(world.dug) == len(set(world.dug))
    assert set(world.dug) == expected
    left_over = {pos for pos, name in world.cells.items() if name != STONE}
    assert left_over == (set(ores) - expected) | {(9, 9, 9)}
    assert all(world.cells.get(pos) == STONE for pos, name in cells.items() if name == STONE)


def test_heading_change_picks_a_different_vein() -> None:
    world = GridWorld(cells={(0, 0, -1): IRON, (1, 0, 0): GOLD}, pose=Pose(position=(0, 0, 0), heading=Heading.EAST))

    _run(DigVeinAction(direction=Direction.FORWARD, blacklist=BLACKLIST), world)

    assert world.dug == [(1, 0, 0)]


def test_persisted_form_is_stable_at_every_tick() -> None:
    registry = default_registry()
    direction, ores = SHAPES["cross"]
    world = GridWorld(cells=_with_stone_shell(ores))
    vein = DigVeinAction(direction=direction, blacklist=BLACKLIST)
    ctx = TickContext(turtle=world)

    result = ActionResult.RUNNING
    while result is not ActionResult.SUCCESS:
        record = json.loads(json.dumps(registry.serialize_action(vein)))
        assert registry.serialize_action(registry.deserialize_action(record)) == record
        result = vein.perform(ctx)

    final = registry.serialize_action(vein)
    assert "stack" not in final["action"]
    assert registry.serialize_action(registry.deserialize_action(final)) == final


@pytest.mark.parametrize("stop_after", [0, 1, 2, 7, 25, 60])
def test_resuming_from_disk_matches_an_uninterrupted_run(stop_after: int) -> None:
    direction, ores = SHAPES["l-shape"]
    cells = _with_stone_shell(ores)

    straight = GridWorld(cells=cells)
    _run(DigVeinAction(direction=direction, blacklist=BLACKLIST), straight)

    world = GridWorld(cells=cells)
    path = ActionPath(head=DigVeinAction(direction=direction, blacklist=BLACKLIST))
    ctx = TickContext(turtle=world)
    for _ in range(stop_after):
        assert path.tick(ctx) is ActionResult.RUNNING

    resumed_world = GridWorld.from_dict(json.loads(json.dumps(world.to_dict())))
    resumed = ActionPath.loads(path.dumps())
    assert isinstance(resumed.head, DigVeinAction)
    _run(resumed.head, resumed_world)

    assert world.ops + resumed_world.ops == straight.ops
    assert resumed_world.to_dict() == straight.to_dict()


def test_finished_driver_can_dig_another_vein() -> None:
    vein = DigVeinAction(direction=Direction.FORWARD, blacklist=BLACKLIST)

    first = GridWorld(cells={(0, 0, -1): IRON, (0, 0, -2): IRON})
    _run(vein, first)
    assert not vein.is_active

    second = GridWorld(cells={(0, 0, -1): GOLD, (0, 1, -1): GOLD})
    _run(vein, second)

    assert set(first.dug) == {(0, 0, -1), (0, 0, -2)}
    assert set(second.dug) == {(0, 0, -1), (0, 1, -1)}
    assert second.pose == Pose(position=(0, 0, 0), heading=Heading.NORTH)


def test_transient_failures_are_retried_without_changing_the_outcome() -> None:
    direction, ores = SHAPES["line"]
    clean = GridWorld(cells=dict(ores))
    _run(DigVeinAction(direction=direction, blacklist=BLACKLIST), clean)

    world = GridWorld(cells=dict(ores))
    vein = DigVeinAction(direction=direction, blacklist=BLACKLIST)
    ctx = TickContext(turtle=world)
    failures = 0
    result = ActionResult.RUNNING
    for tick in range(1, 500):
        if tick % 5 == 0 and tick <= 40:
            world.fail_next("move")
            world.fail_next("turn")
            world.fail_next("dig")
        result = vein.perform(ctx)
        if result is ActionResult.FAILURE:
            failures += 1
        if result is ActionResult.SUCCESS:
            break

    assert result is ActionResult.SUCCESS
    assert failures > 0
    assert world.pose == clean.pose
    assert world.dug == clean.dug
