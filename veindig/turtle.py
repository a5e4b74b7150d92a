"""The capabilities veindig consumes from the agent it drives.

Anything that can sense, move, turn and dig relative to its own pose can be driven by the
actions in this package. `veindig.world.GridWorld` is the in-memory implementation the CLI
and the tests drive; a real agent binding only has to satisfy `Turtle`.

Each primitive reports plain success/failure (`True`/`False`). Obstructions, empty cells and
exhausted resources are runtime conditions and come back as `False`; asking for a direction
the primitive cannot use is a programming error and raises `ValueError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from .direction import Direction


@dataclass(frozen=True)
class Inspection:
    present: bool
    name: str = ""


class Turtle(Protocol):
    def inspect(self, direction: Direction) -> Inspection: ...

    def move(self, direction: Direction) -> bool: ...

    def turn(self, direction: Direction) -> bool: ...

    def dig(self, direction: Direction) -> bool: ...
