"""veindig.actionpath

The tick-driven action tree that every veindig program is built from, and its persisted form.

Model
- An *action* is a small object with a class-level unique `name` and a `perform(ctx)` method
  returning an `ActionResult`:
  - `success`: the action is finished.
  - `running`: call it again on the next tick; more work is pending.
  - `failure`: the action could not make progress this tick.
  A single `perform()` issues at most one physical primitive (inspect, move, turn, dig) so the
  caller regains control between physical operations.
- Actions compose (see `veindig.actions`): combinators hold child actions, and the vein driver
  (`veindig.ores.DigVeinAction`) holds a whole stack of them.
- An `ActionPath` is a head action plus the `ActionRegistry` needed to persist and restore it.
  Ticking the path ticks the head once.

Persisted format
Every action is persisted as a self-describing record::

    {"name": "<unique action name>", "action": {<action-specific fields>}}

Composite actions embed their children's records inside their own fields, so the format is
recursive and any action (including a vein driver mid-traversal) can be embedded anywhere in a
larger tree. The path document is::

    {"head": <record>, ...unknown keys preserved...}

and is written as UTF-8 JSON with `indent=2`, `ensure_ascii=True` and a trailing newline.
Saves go through `write_text_atomic` (temp file, fsync, `os.replace`), so an interrupted save
leaves the previous document intact. Callers keep whatever must be checkpointed together with
the tree (the CLI stores its world snapshot under `"world"`) in `ActionPath.extra`.

Error handling
- Restoring requires every referenced action to be registered. Unknown names, records that
  are not objects, and missing fields raise `ValueError`; persisted state is never guessed at.
- A `perform()` that returns something other than an `ActionResult` is an invariant violation
  and raises `RuntimeError` (see `check_result`).
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar, Iterable, Mapping, Protocol

from .tracelog import LineWriter, NullLog
from .turtle import Turtle


class ActionResult(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    RUNNING = "running"


def check_result(value: object, *, source: str) -> ActionResult:
    if isinstance(value, ActionResult):
        return value
    raise RuntimeError(f"Unexpected result from {source}: {value!r}")


@dataclass
class TickContext:
    turtle: Turtle
    log: LineWriter = field(default_factory=NullLog)


class Action(Protocol):
    name: ClassVar[str]

    def perform(self, ctx: TickContext) -> ActionResult: ...

    def to_dict(self, registry: "ActionRegistry") -> dict[str, Any]: ...

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], registry: "ActionRegistry") -> "Action": ...


def require_field(data: Mapping[str, Any], key: str, *, what: str) -> Any:
    if key not in data or data[key] is None:
        raise ValueError(f"{what}: missing required field: {key}")
    return data[key]


class ActionRegistry:
    def __init__(self, actions: Iterable[type[Action]] = ()) -> None:
        self._by_name: dict[str, type[Action]] = {}
        self.register(*actions)

    def register(self, *actions: type[Action]) -> None:
        for cls in actions:
            existing = self._by_name.get(cls.name)
            if existing is not None and existing is not cls:
                raise ValueError(f"Action name already registered by {existing.__qualname__}: {cls.name}")
            self._by_name[cls.name] = cls

    def names(self) -> list[str]:
        return sorted(self._by_name)

    def serialize_action(self, action: Action) -> dict[str, Any]:
        if self._by_name.get(action.name) is not type(action):
            raise ValueError(f"Action is not registered: {action.name}")
        return {"name": action.name, "action": action.to_dict(self)}

    def deserialize_action(self, record: object) -> Action:
        if not isinstance(record, Mapping):
            raise ValueError(f"Serialized action must be an object, got {type(record)}")
        name = require_field(record, "name", what="serialized action")
        cls = self._by_name.get(str(name))
        if cls is None:
            raise ValueError(f"Unknown action: {name}")
        payload = require_field(record, "action", what=f"serialized {name}")
        if not isinstance(payload, Mapping):
            raise ValueError(f"Serialized {name} payload must be an object, got {type(payload)}")
        return cls.from_dict(payload, self)


def default_registry() -> ActionRegistry:
    """Registry holding every action veindig ships."""
    from .actions import (
        DigAction,
        InverterAction,
        MoveAction,
        RepeatUntilFailureAction,
        SelectorAction,
        SequenceAction,
        SucceederAction,
        TurnAction,
    )
    from .ores import DetectOreAction, DigThenMoveAction, DigVeinAction, VeinNodeAction

    return ActionRegistry(
        [
            SequenceAction,
            SelectorAction,
            SucceederAction,
            InverterAction,
            RepeatUntilFailureAction,
            MoveAction,
            TurnAction,
            DigAction,
            DetectOreAction,
            DigThenMoveAction,
            DigVeinAction,
            VeinNodeAction,
        ]
    )


@dataclass
class ActionPath:
    head: Action
    registry: ActionRegistry = field(default_factory=default_registry, repr=False, compare=False)
    extra: dict[str, Any] = field(default_factory=dict, repr=False)

    def tick(self, ctx: TickContext) -> ActionResult:
        return check_result(self.head.perform(ctx), source=self.head.name)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"head": self.registry.serialize_action(self.head)}
        d.update(self.extra)
        return d

    @staticmethod
    def from_dict(raw: object, registry: ActionRegistry | None = None) -> "ActionPath":
        if not isinstance(raw, Mapping):
            raise ValueError(f"action path must be a JSON object, got {type(raw)}")
        registry = registry or default_registry()
        head = registry.deserialize_action(require_field(raw, "head", what="action path"))
        extra = {k: v for k, v in raw.items() if k != "head"}
        return ActionPath(head=head, registry=registry, extra=extra)

    def dumps(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=True) + "\n"

    @staticmethod
    def loads(text: str, registry: ActionRegistry | None = None) -> "ActionPath":
        return ActionPath.from_dict(json.loads(text), registry)

    def save(self, path: Path) -> None:
        write_text_atomic(path, self.dumps())

    @staticmethod
    def load(path: Path, registry: ActionRegistry | None = None) -> "ActionPath":
        return ActionPath.loads(path.read_text(encoding="utf-8"), registry)


def write_text_atomic(path: Path, text: str) -> None:
    """Replace `path` with `text` so readers see either the old file or the new one, never half."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    with tmp.open("w", encoding="utf-8") as fh:
        fh.write(text)
        fh.flush()
        os.fsync(fh.fileno())
    os.replace(tmp, path)
