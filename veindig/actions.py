"""Combinators and primitive actions for veindig action trees.

Every action here is a dataclass registered in `veindig.actionpath.default_registry()` and
persisted through `to_dict`/`from_dict`. Each `perform()` ticks at most one child and therefore
issues at most one physical primitive.

Combinators
- `SequenceAction`: runs children in order, one child-tick per tick. A child SUCCESS advances
  the cursor and reports RUNNING (or SUCCESS after the last child, resetting the cursor).
  FAILURE is reported as-is and the cursor stays on the failing child, so retrying the tick
  re-attempts exactly that child.
- `SelectorAction`: tries children in order until one succeeds.
- `SucceederAction`: turns FAILURE into SUCCESS.
- `InverterAction`: swaps SUCCESS and FAILURE.
- `RepeatUntilFailureAction`: keeps ticking its child while it succeeds; the child's FAILURE
  ends the loop with SUCCESS.

Primitives
- `MoveAction` (forward/back/up/down), `TurnAction` (left/right), `DigAction`
  (forward/up/down). A `False` from the turtle is FAILURE; these never report RUNNING.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Mapping

from .actionpath import Action, ActionRegistry, ActionResult, TickContext, check_result, require_field
from .direction import INSPECT_DIRECTIONS, MOVE_DIRECTIONS, TURN_DIRECTIONS, Direction, require_direction


def _children_from(data: Mapping[str, Any], registry: ActionRegistry, *, what: str) -> list[Action]:
    raw = require_field(data, "children", what=what)
    if not isinstance(raw, list):
        raise ValueError(f"{what}: children must be a list, got {type(raw)}")
    return [registry.deserialize_action(c) for c in raw]


def _check_cursor(cursor: int, children: list[Action], *, what: str) -> int:
    cursor = int(cursor)
    if not 0 <= cursor < len(children):
        raise ValueError(f"{what}: cursor {cursor} out of range for {len(children)} children")
    return cursor


@dataclass
class SequenceAction:
    name: ClassVar[str] = "veindig.actions.SequenceAction"

    children: list[Action]
    cursor: int = 0

    def __post_init__(self) -> None:
        if not self.children:
            raise ValueError("SequenceAction requires at least one child")
        self.children = list(self.children)
        self.cursor = _check_cursor(self.cursor, self.children, what="SequenceAction")

    def perform(self, ctx: TickContext) -> ActionResult:
        child = self.children[self.cursor]
        result = check_result(child.perform(ctx), source=child.name)
        if result is not ActionResult.SUCCESS:
            return result
        if self.cursor + 1 < len(self.children):
            self.cursor += 1
            return ActionResult.RUNNING
        self.cursor = 0
        return ActionResult.SUCCESS

    def to_dict(self, registry: ActionRegistry) -> dict[str, Any]:
        return {
            "children": [registry.serialize_action(c) for c in self.children],
            "cursor": self.cursor,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], registry: ActionRegistry) -> "SequenceAction":
        children = _children_from(data, registry, what="SequenceAction")
        return cls(children=children, cursor=int(data.get("cursor") or 0))


@dataclass
class SelectorAction:
    name: ClassVar[str] = "veindig.actions.SelectorAction"

    children: list[Action]
    cursor: int = 0

    def __post_init__(self) -> None:
        if not self.children:
            raise ValueError("SelectorAction requires at least one child")
        self.children = list(self.children)
        self.cursor = _check_cursor(self.cursor, self.children, what="SelectorAction")

    def perform(self, ctx: TickContext) -> ActionResult:
        child = self.children[self.cursor]
        result = check_result(child.perform(ctx), source=child.name)
        if result is ActionResult.RUNNING:
            return result
        if result is ActionResult.SUCCESS:
            self.cursor = 0
            return result
        if self.cursor + 1 < len(self.children):
            self.cursor += 1
            return ActionResult.RUNNING
        self.cursor = 0
        return ActionResult.FAILURE

    def to_dict(self, registry: ActionRegistry) -> dict[str, Any]:
        return {
            "children": [registry.serialize_action(c) for c in self.children],
            "cursor": self.cursor,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], registry: ActionRegistry) -> "SelectorAction":
        children = _children_from(data, registry, what="SelectorAction")
        return cls(children=children, cursor=int(data.get("cursor") or 0))


@dataclass
class _Decorator:
    """Shared shape of single-child actions; subclasses only define `name` and `_map`."""

    name: ClassVar[str] = ""

    child: Action

    def __post_init__(self) -> None:
        if self.child is None:
            raise ValueError(f"{type(self).__name__} requires a child action")

    def perform(self, ctx: TickContext) -> ActionResult:
        return self._map(check_result(self.child.perform(ctx), source=self.child.name))

    def _map(self, result: ActionResult) -> ActionResult:
        raise NotImplementedError

    def to_dict(self, registry: ActionRegistry) -> dict[str, Any]:
        return {"child": registry.serialize_action(self.child)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], registry: ActionRegistry) -> "_Decorator":
        return cls(child=registry.deserialize_action(require_field(data, "child", what=cls.__name__)))


@dataclass
class SucceederAction(_Decorator):
    name: ClassVar[str] = "veindig.actions.SucceederAction"

    def _map(self, result: ActionResult) -> ActionResult:
        if result is ActionResult.FAILURE:
            return ActionResult.SUCCESS
        return result


@dataclass
class InverterAction(_Decorator):
    name: ClassVar[str] = "veindig.actions.InverterAction"

    def _map(self, result: ActionResult) -> ActionResult:
        if result is ActionResult.SUCCESS:
            return ActionResult.FAILURE
        if result is ActionResult.FAILURE:
            return ActionResult.SUCCESS
        return result


@dataclass
class RepeatUntilFailureAction(_Decorator):
    name: ClassVar[str] = "veindig.actions.RepeatUntilFailureAction"

    def _map(self, result: ActionResult) -> ActionResult:
        if result is ActionResult.SUCCESS:
            return ActionResult.RUNNING
        if result is ActionResult.FAILURE:
            return ActionResult.SUCCESS
        return result


def _primitive_result(ok: bool) -> ActionResult:
    return ActionResult.SUCCESS if ok else ActionResult.FAILURE


@dataclass
class MoveAction:
    name: ClassVar[str] = "veindig.actions.MoveAction"

    direction: Direction

    def __post_init__(self) -> None:
        self.direction = require_direction(self.direction, MOVE_DIRECTIONS, what="MoveAction")

    def perform(self, ctx: TickContext) -> ActionResult:
        result = _primitive_result(ctx.turtle.move(self.direction))
        ctx.log.write_line(f"MoveAction {self.direction.value} -> {result.value}")
        return result

    def to_dict(self, registry: ActionRegistry) -> dict[str, Any]:
        return {"direction": self.direction.value}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], registry: ActionRegistry) -> "MoveAction":
        return cls(direction=require_field(data, "direction", what="MoveAction"))


@dataclass
class TurnAction:
    name: ClassVar[str] = "veindig.actions.TurnAction"

    direction: Direction

    def __post_init__(self) -> None:
        self.direction = require_direction(self.direction, TURN_DIRECTIONS, what="TurnAction")

    def perform(self, ctx: TickContext) -> ActionResult:
        result = _primitive_result(ctx.turtle.turn(self.direction))
        ctx.log.write_line(f"TurnAction {self.direction.value} -> {result.value}")
        return result

    def to_dict(self, registry: ActionRegistry) -> dict[str, Any]:
        return {"direction": self.direction.value}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], registry: ActionRegistry) -> "TurnAction":
        return cls(direction=require_field(data, "direction", what="TurnAction"))


@dataclass
class DigAction:
    name: ClassVar[str] = "veindig.actions.DigAction"

    direction: Direction

    def __post_init__(self) -> None:
        self.direction = require_direction(self.direction, INSPECT_DIRECTIONS, what="DigAction")

    def perform(self, ctx: TickContext) -> ActionResult:
        # Nothing to dig and an unbreakable cell both come back as FAILURE.
        result = _primitive_result(ctx.turtle.dig(self.direction))
        ctx.log.write_line(f"DigAction {self.direction.value} -> {result.value}")
        return result

    def to_dict(self, registry: ActionRegistry) -> dict[str, Any]:
        return {"direction": self.direction.value}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], registry: ActionRegistry) -> "DigAction":
        return cls(direction=require_field(data, "direction", what="DigAction"))
