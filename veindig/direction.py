"""Relative directions for the turtle.

Every direction here is relative to the turtle's current pose: `forward` is whatever way it
faces, `left`/`right` are turn directions, and `up`/`down` never change the heading.

Groups
- `INSPECT_DIRECTIONS`: where the turtle can sense or dig (forward, up, down).
- `MOVE_DIRECTIONS`: where it can step (forward, back, up, down).
- `TURN_DIRECTIONS`: the two ways it can rotate (left, right).

Directions persist as their string tag (e.g. `"forward"`), which is what `Direction.parse`
accepts back.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable


class Direction(str, Enum):
    FORWARD = "forward"
    BACK = "back"
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"

    def inverse(self) -> "Direction":
        return _INVERSE[self]

    def turned_left(self) -> "Direction":
        """Next horizontal direction counter-clockwise: forward -> left -> back -> right."""
        if self.is_vertical():
            raise ValueError(f"{self.value} has no horizontal successor")
        return _LEFT_OF[self]

    def is_vertical(self) -> bool:
        return self in (Direction.UP, Direction.DOWN)

    @staticmethod
    def parse(value: "Direction | str") -> "Direction":
        if isinstance(value, Direction):
            return value
        try:
            return Direction(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown direction: {value!r}") from None


_INVERSE = {
    Direction.FORWARD: Direction.BACK,
    Direction.BACK: Direction.FORWARD,
    Direction.UP: Direction.DOWN,
    Direction.DOWN: Direction.UP,
    Direction.LEFT: Direction.RIGHT,
    Direction.RIGHT: Direction.LEFT,
}

_LEFT_OF = {
    Direction.FORWARD: Direction.LEFT,
    Direction.LEFT: Direction.BACK,
    Direction.BACK: Direction.RIGHT,
    Direction.RIGHT: Direction.FORWARD,
}

INSPECT_DIRECTIONS = (Direction.FORWARD, Direction.UP, Direction.DOWN)
MOVE_DIRECTIONS = (Direction.FORWARD, Direction.BACK, Direction.UP, Direction.DOWN)
TURN_DIRECTIONS = (Direction.LEFT, Direction.RIGHT)


def require_direction(value: Direction | str | None, allowed: Iterable[Direction], *, what: str) -> Direction:
    """Parse `value` and check it is one of `allowed`; raise ValueError naming `what` otherwise."""
    if value is None:
        raise ValueError(f"{what}: direction is required")
    direction = Direction.parse(value)
    allowed = tuple(allowed)
    if direction not in allowed:
        names = ", ".join(d.value for d in allowed)
        raise ValueError(f"{what}: expected direction in ({names}) but got {direction.value}")
    return direction
