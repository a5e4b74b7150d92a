"""In-memory grid world with a simulated turtle.

`GridWorld` implements the `veindig.turtle.Turtle` protocol against a sparse 3-D map of cell
identifiers. It is what `python -m veindig <world.json>` drives, and what the tests use to check
that a traversal digs every ore cell once and returns the turtle to its starting pose.

Coordinates
- `(x, y, z)` integers; `y` grows upward.
- Headings are absolute: north is -z, east is +x, south is +z, west is -x.
- Turning left goes north -> west -> south -> east.

Simulation rules
- `inspect(d)`: present when the cell is occupied.
- `dig(d)`: fails on an empty cell or an unbreakable identifier; otherwise removes the cell and
  records it in `dug`.
- `move(d)`: fails when the destination is occupied; `back` steps against the heading without
  turning.
- `turn(d)`: always succeeds.
- `fail_next(op, times)`: the next `times` calls of `op` fail with no side effect.
Every call, including faulted ones, is appended to `ops` as `(op, direction)`.

Persisted form (JSON)::

    {
      "turtle": {"position": [0, 0, 0], "heading": "north"},
      "cells": [{"at": [0, 0, -1], "name": "minecraft:iron_ore"}, ...],
      "unbreakable": ["minecraft:bedrock"],
      "dug": [[0, 0, -1], ...]
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Mapping

from .actionpath import write_text_atomic
from .direction import INSPECT_DIRECTIONS, MOVE_DIRECTIONS, TURN_DIRECTIONS, Direction, require_direction
from .turtle import Inspection

Position = tuple[int, int, int]


class Heading(str, Enum):
    NORTH = "north"
    EAST = "east"
    SOUTH = "south"
    WEST = "west"

    def left(self) -> "Heading":
        return _LEFT[self]

    def right(self) -> "Heading":
        return _RIGHT[self]

    def opposite(self) -> "Heading":
        return self.left().left()

    def offset(self) -> Position:
        return _OFFSET[self]


_LEFT = {
    Heading.NORTH: Heading.WEST,
    Heading.WEST: Heading.SOUTH,
    Heading.SOUTH: Heading.EAST,
    Heading.EAST: Heading.NORTH,
}
_RIGHT = {v: k for k, v in _LEFT.items()}
_OFFSET = {
    Heading.NORTH: (0, 0, -1),
    Heading.EAST: (1, 0, 0),
    Heading.SOUTH: (0, 0, 1),
    Heading.WEST: (-1, 0, 0),
}

_OPS = ("inspect", "dig", "move", "turn")


@dataclass(frozen=True)
class Pose:
    position: Position
    heading: Heading


def _add(a: Position, b: Position) -> Position:
    return (a[0] + b[0], a[1] + b[1], a[2] + b[2])


def _position(raw: object, *, what: str) -> Position:
    if not isinstance(raw, (list, tuple)) or len(raw) != 3:
        raise ValueError(f"{what}: expected [x, y, z], got {raw!r}")
    return (int(raw[0]), int(raw[1]), int(raw[2]))


class GridWorld:
    def __init__(
        self,
        *,
        cells: Mapping[Position, str] | None = None,
        pose: Pose | None = None,
        unbreakable: Iterable[str] = ("minecraft:bedrock",),
    ) -> None:
        self.cells: dict[Position, str] = dict(cells or {})
        self.pose = pose or Pose(position=(0, 0, 0), heading=Heading.NORTH)
        self.unbreakable: list[str] = list(dict.fromkeys(unbreakable))
        self.ops: list[tuple[str, str]] = []
        self.dug: list[Position] = []
        self._faults: dict[str, int] = {}

    def cell_at(self, direction: Direction) -> Position:
        x, y, z = self.pose.position
        if direction is Direction.UP:
            return (x, y + 1, z)
        if direction is Direction.DOWN:
            return (x, y - 1, z)
        if direction is Direction.FORWARD:
            return _add(self.pose.position, self.pose.heading.offset())
        if direction is Direction.BACK:
            return _add(self.pose.position, self.pose.heading.opposite().offset())
        raise ValueError(f"No adjacent cell for direction {direction.value}")

    def fail_next(self, op: str, times: int = 1) -> None:
        if op not in _OPS:
            raise ValueError(f"Unknown primitive: {op}")
        self._faults[op] = self._faults.get(op, 0) + max(0, int(times))

    def _faulted(self, op: str) -> bool:
        pending = self._faults.get(op, 0)
        if pending <= 0:
            return False
        self._faults[op] = pending - 1
        return True

    def inspect(self, direction: Direction) -> Inspection:
        direction = require_direction(direction, INSPECT_DIRECTIONS, what="inspect")
        self.ops.append(("inspect", direction.value))
        if self._faulted("inspect"):
            return Inspection(present=False)
        name = self.cells.get(self.cell_at(direction))
        if name is None:
            return Inspection(present=False)
        return Inspection(present=True, name=name)

    def dig(self, direction: Direction) -> bool:
        direction = require_direction(direction, INSPECT_DIRECTIONS, what="dig")
        self.ops.append(("dig", direction.value))
        if self._faulted("dig"):
            return False
        target = self.cell_at(direction)
        name = self.cells.get(target)
        if name is None or name in self.unbreakable:
            return False
        del self.cells[target]
        self.dug.append(target)
        return True

    def move(self, direction: Direction) -> bool:
        direction = require_direction(direction, MOVE_DIRECTIONS, what="move")
        self.ops.append(("move", direction.value))
        if self._faulted("move"):
            return False
        dest = self.cell_at(direction)
        if dest in self.cells:
            return False
        self.pose = Pose(position=dest, heading=self.pose.heading)
        return True

    def turn(self, direction: Direction) -> bool:
        direction = require_direction(direction, TURN_DIRECTIONS, what="turn")
        self.ops.append(("turn", direction.value))
        if self._faulted("turn"):
            return False
        heading = self.pose.heading.left() if direction is Direction.LEFT else self.pose.heading.right()
        self.pose = Pose(position=self.pose.position, heading=heading)
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "turtle": {"position": list(self.pose.position), "heading": self.pose.heading.value},
            "cells": [{"at": list(pos), "name": name} for pos, name in sorted(self.cells.items())],
            "unbreakable": list(self.unbreakable),
            "dug": [list(pos) for pos in self.dug],
        }

    @staticmethod
    def from_dict(raw: object) -> "GridWorld":
        if not isinstance(raw, Mapping):
            raise ValueError(f"world must be a JSON object, got {type(raw)}")

        turtle = raw.get("turtle") or {}
        if not isinstance(turtle, Mapping):
            raise ValueError("world.turtle must be an object")
        try:
            heading = Heading(str(turtle.get("heading", Heading.NORTH.value)))
        except ValueError:
            raise ValueError(f"world.turtle.heading is not a heading: {turtle.get('heading')!r}") from None
        pose = Pose(position=_position(turtle.get("position", [0, 0, 0]), what="world.turtle.position"), heading=heading)

        cells: dict[Position, str] = {}
        for idx, cell in enumerate(raw.get("cells") or []):
            if not isinstance(cell, Mapping) or "name" not in cell:
                raise ValueError(f"world.cells[{idx}] must be an object with 'at' and 'name'")
            cells[_position(cell.get("at"), what=f"world.cells[{idx}].at")] = str(cell["name"])

        unbreakable = raw.get("unbreakable")
        world = GridWorld(
            cells=cells,
            pose=pose,
            unbreakable=("minecraft:bedrock",) if unbreakable is None else [str(u) for u in unbreakable],
        )
        world.dug = [_position(p, what="world.dug") for p in (raw.get("dug") or [])]
        return world

    @staticmethod
    def load(path: Path) -> "GridWorld":
        return GridWorld.from_dict(json.loads(path.read_text(encoding="utf-8")))

    def save(self, path: Path) -> None:
        write_text_atomic(path, json.dumps(self.to_dict(), indent=2, ensure_ascii=True) + "\n")
