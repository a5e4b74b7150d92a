"""veindig.ores

Finding and excavating ore veins: the target classifier, the dig-then-move step, the vein node
handler and the vein traversal driver.

Target classification
Ores are recognised by exclusion: a sensed cell is a target when something is there and its
identifier is not on the `OreBlacklist`. Blacklisting terrain is friendlier to modded worlds
than whitelisting every ore. `DEFAULT_BLACKLIST` covers common terrain.

Vein traversal (`DigVeinAction`)
The driver performs a depth-first, 6-connected flood fill without using the call stack. Its
only mutable state is an explicit stack of frames (actions), which makes the traversal
resumable: persist the driver between ticks, restore it later, and it continues with the exact
frame it was about to run. No cell is re-sensed and no decision is re-made on restore.

Each tick of the driver:
- Uninitialized (`stack is None`): push `VeinNodeAction(direction)` and report RUNNING.
- Empty stack: the vein is done. Reset to uninitialized (the instance is reusable) and report
  SUCCESS. This is the only way the driver itself reports SUCCESS.
- Otherwise pop the top frame and run one step of it:
  - SUCCESS: the frame is consumed; report RUNNING.
  - RUNNING: push the frame back unchanged; report RUNNING.
  - FAILURE: push the frame back unchanged and report FAILURE. The caller decides whether to
    retry the tick (see `veindig.runner.RetryPolicy`); a retry re-attempts the identical step.

Dig-then-move step (`DigThenMoveAction`)
Clears the cell in one direction and steps into it, one primitive per tick:
- `sense`: inspect the cell. Empty goes to `move`; ore goes to `dig_ore`; anything else
  (gravel, water) goes to `dig_debris`.
- `dig_ore`: dig, then sense again. A failed dig is FAILURE and the phase stays put, so a
  retried tick digs again once whatever blocked it clears.
- `dig_debris`: dig, then sense again. A failed dig means there was nothing to dig (a liquid,
  say), so the step moves on to `move`.
- `move`: step into the cell. A failed move is FAILURE and the phase stays put.
A failing tick never changes the step's persisted state. Ore is recognised with the driver's
blacklist.

Node expansion (`VeinNodeAction`)
A node frame senses one cell. Nothing there, or a blacklisted identifier, means the node is
done. Otherwise it pushes twelve frames so that they pop in this order:

  1. dig-then-move in the node's direction (the turtle now stands in the ore's cell)
  2. node(forward)   3. node(up)   4. node(down)
  5. turn(left)      6. node(forward)   (originally left of the ore)
  7. turn(left)      8. node(forward)   (originally behind)
  9. turn(left)     10. node(forward)   (originally right)
 11. turn(left)     (heading restored)
 12. move(inverse of the node's direction) back to where the node was sensed from

Every move away is paired with one inverse move and the four left turns net to zero, so a
finished traversal leaves the turtle exactly where and how it started. Vertical nodes do not
change the heading, so their horizontal neighbours are relative to the unchanged heading.

Sharing the blacklist
Node and step frames do not carry a blacklist. They read the driver's, so every frame of one
traversal sees the same classifier and persisted stacks stay small.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar, Mapping

from .actionpath import Action, ActionRegistry, ActionResult, TickContext, check_result, require_field
from .actions import MoveAction, TurnAction
from .direction import INSPECT_DIRECTIONS, Direction, require_direction
from .turtle import Inspection

DEFAULT_BLACKLIST = (
    "minecraft:flowing_water",
    "minecraft:water",
    "minecraft:flowing_lava",
    "minecraft:lava",
    "minecraft:cobblestone",
    "minecraft:stone",
    "minecraft:dirt",
    "minecraft:sand",
    "minecraft:sandstone",
    "minecraft:gravel",
    "minecraft:netherrack",
    "minecraft:soul_sand",
    "minecraft:grass",
    "minecraft:tallgrass",
    "minecraft:bedrock",
    "chisel:andesite",
    "chisel:limestone",
    "chisel:granite",
    "chisel:diorite",
    "chisel:marble",
    "BiomesOPlenty:mud",
    "appliedenergistics2:tile.BlockSkyStone",
)


@dataclass(frozen=True)
class OreBlacklist:
    """Identifiers that are never ores. Order is kept for stable persisted output."""

    names: tuple[str, ...]

    def __post_init__(self) -> None:
        if not isinstance(self.names, (list, tuple)):
            raise ValueError(f"Expected a list of block names, got {type(self.names)}")
        for name in self.names:
            if not isinstance(name, str):
                raise ValueError(f"Block names must be strings, got {type(name)}: {name!r}")
        object.__setattr__(self, "names", tuple(self.names))

    @staticmethod
    def default() -> "OreBlacklist":
        return OreBlacklist(DEFAULT_BLACKLIST)

    def contains(self, name: str) -> bool:
        for candidate in self.names:
            if candidate == name:
                return True
        return False

    def is_ore(self, inspection: Inspection) -> bool:
        return inspection.present and not self.contains(inspection.name)

    def to_dict(self) -> dict[str, Any]:
        return {"blacklist": list(self.names)}

    @staticmethod
    def from_dict(data: object) -> "OreBlacklist":
        if not isinstance(data, Mapping):
            raise ValueError(f"Serialized blacklist must be an object, got {type(data)}")
        names = data.get("blacklist")
        if not isinstance(names, list):
            raise ValueError(f"Serialized blacklist must hold a list of names, got {type(names)}")
        return OreBlacklist(names)

    @staticmethod
    def load(path: Path) -> "OreBlacklist":
        """Read a JSON list of names, or an object shaped like `to_dict()`."""
        raw = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(raw, list):
            return OreBlacklist(raw)
        return OreBlacklist.from_dict(raw)


@dataclass
class DetectOreAction:
    """SUCCESS when the cell in `direction` holds an ore, FAILURE otherwise."""

    name: ClassVar[str] = "veindig.ores.DetectOreAction"

    direction: Direction
    blacklist: OreBlacklist = field(default_factory=OreBlacklist.default)

    def __post_init__(self) -> None:
        self.direction = require_direction(self.direction, INSPECT_DIRECTIONS, what="DetectOreAction")
        if self.blacklist is None:
            self.blacklist = OreBlacklist.default()

    def perform(self, ctx: TickContext) -> ActionResult:
        inspection = ctx.turtle.inspect(self.direction)
        if not inspection.present:
            ctx.log.write_line(f"DetectOreAction {self.direction.value}: nothing there")
            return ActionResult.FAILURE
        if self.blacklist.contains(inspection.name):
            ctx.log.write_line(f"DetectOreAction {self.direction.value}: blacklist contains {inspection.name}")
            return ActionResult.FAILURE
        ctx.log.write_line(f"DetectOreAction {self.direction.value}: found {inspection.name}")
        return ActionResult.SUCCESS

    def to_dict(self, registry: ActionRegistry) -> dict[str, Any]:
        return {"direction": self.direction.value, "blacklist": self.blacklist.to_dict()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], registry: ActionRegistry) -> "DetectOreAction":
        return cls(
            direction=require_field(data, "direction", what="DetectOreAction"),
            blacklist=OreBlacklist.from_dict(require_field(data, "blacklist", what="DetectOreAction")),
        )


class StepPhase(str, Enum):
    SENSE = "sense"
    DIG_ORE = "dig_ore"
    DIG_DEBRIS = "dig_debris"
    MOVE = "move"


@dataclass
class DigThenMoveAction:
    name: ClassVar[str] = "veindig.ores.DigThenMoveAction"

    direction: Direction
    phase: StepPhase = StepPhase.SENSE
    # Only set when the step runs outside a DigVeinAction.
    blacklist: OreBlacklist | None = None

    def __post_init__(self) -> None:
        self.direction = require_direction(self.direction, INSPECT_DIRECTIONS, what="DigThenMoveAction")
        try:
            self.phase = StepPhase(self.phase)
        except ValueError:
            raise ValueError(f"DigThenMoveAction: unknown phase: {self.phase!r}") from None
        if self.blacklist is not None and not isinstance(self.blacklist, OreBlacklist):
            raise ValueError(f"DigThenMoveAction: expected an OreBlacklist, got {type(self.blacklist)}")

    def perform(self, ctx: TickContext) -> ActionResult:
        return self.step(ctx, self.blacklist if self.blacklist is not None else OreBlacklist.default())

    def evaluate(self, ctx: TickContext, vein: "DigVeinAction") -> ActionResult:
        return self.step(ctx, vein.blacklist)

    def step(self, ctx: TickContext, blacklist: OreBlacklist) -> ActionResult:
        d = self.direction.value
        if self.phase is StepPhase.SENSE:
            inspection = ctx.turtle.inspect(self.direction)
            if not inspection.present:
                self.phase = StepPhase.MOVE
            elif blacklist.is_ore(inspection):
                self.phase = StepPhase.DIG_ORE
            else:
                self.phase = StepPhase.DIG_DEBRIS
            ctx.log.write_line(f"DigThenMoveAction {d}: sense -> {self.phase.value}")
            return ActionResult.RUNNING

        if self.phase is StepPhase.DIG_ORE:
            if not ctx.turtle.dig(self.direction):
                ctx.log.write_line(f"DigThenMoveAction {d}: ore still in place, dig failed")
                return ActionResult.FAILURE
            self.phase = StepPhase.SENSE
            return ActionResult.RUNNING

        if self.phase is StepPhase.DIG_DEBRIS:
            # Nothing to dig counts as clear.
            self.phase = StepPhase.SENSE if ctx.turtle.dig(self.direction) else StepPhase.MOVE
            return ActionResult.RUNNING

        if self.phase is StepPhase.MOVE:
            if not ctx.turtle.move(self.direction):
                ctx.log.write_line(f"DigThenMoveAction {d}: move failed")
                return ActionResult.FAILURE
            self.phase = StepPhase.SENSE
            return ActionResult.SUCCESS

        raise RuntimeError(f"DigThenMoveAction: unexpected phase {self.phase!r}")

    def to_dict(self, registry: ActionRegistry) -> dict[str, Any]:
        d: dict[str, Any] = {"direction": self.direction.value, "phase": self.phase.value}
        if self.blacklist is not None:
            d["blacklist"] = self.blacklist.to_dict()
        return d

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], registry: ActionRegistry) -> "DigThenMoveAction":
        raw_blacklist = data.get("blacklist")
        return cls(
            direction=require_field(data, "direction", what="DigThenMoveAction"),
            phase=data.get("phase") or StepPhase.SENSE,
            blacklist=None if raw_blacklist is None else OreBlacklist.from_dict(raw_blacklist),
        )


def dig_then_move(direction: Direction, blacklist: OreBlacklist | None = None) -> DigThenMoveAction:
    """Dig `direction` until no ore is left there, then step into the cell.

    Succeeds or fails with the move; ore that cannot be dug fails the step. Pass `blacklist`
    only when the step runs on its own; inside a vein the driver's blacklist is used.
    """
    return DigThenMoveAction(direction=direction, blacklist=blacklist)


def expansion_frames(direction: Direction) -> list[Action]:
    """Frames a node in `direction` schedules once it finds ore, in execution order."""
    forward, left = Direction.FORWARD, Direction.LEFT
    frames: list[Action] = [
        dig_then_move(direction),
        VeinNodeAction(direction=forward),
        VeinNodeAction(direction=Direction.UP),
        VeinNodeAction(direction=Direction.DOWN),
    ]
    # Left, back and right of the entry heading, each faced with one left turn.
    side = forward.turned_left()
    while side is not forward:
        frames += [TurnAction(direction=left), VeinNodeAction(direction=forward)]
        side = side.turned_left()
    frames += [TurnAction(direction=left), MoveAction(direction=direction.inverse())]
    return frames


@dataclass
class VeinNodeAction:
    """One pending "inspect `direction` and expand if it is ore" frame of a `DigVeinAction`."""

    name: ClassVar[str] = "veindig.ores.VeinNodeAction"

    direction: Direction

    def __post_init__(self) -> None:
        self.direction = require_direction(self.direction, INSPECT_DIRECTIONS, what="VeinNodeAction")

    def perform(self, ctx: TickContext) -> ActionResult:
        raise RuntimeError("VeinNodeAction can only be run by the DigVeinAction that owns it")

    def evaluate(self, ctx: TickContext, vein: "DigVeinAction") -> ActionResult:
        inspection = ctx.turtle.inspect(self.direction)
        if not vein.blacklist.is_ore(inspection):
            what = inspection.name if inspection.present else "nothing"
            ctx.log.write_line(f"VeinNodeAction {self.direction.value}: {what} is not ore")
            return ActionResult.SUCCESS

        ctx.log.write_line(f"VeinNodeAction {self.direction.value}: found {inspection.name}, expanding")
        vein.push_frames(expansion_frames(self.direction))
        return ActionResult.SUCCESS

    def to_dict(self, registry: ActionRegistry) -> dict[str, Any]:
        return {"direction": self.direction.value}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], registry: ActionRegistry) -> "VeinNodeAction":
        return cls(direction=require_field(data, "direction", what="VeinNodeAction"))


@dataclass
class DigVeinAction:
    name: ClassVar[str] = "veindig.ores.DigVeinAction"

    direction: Direction = Direction.FORWARD
    blacklist: OreBlacklist = field(default_factory=OreBlacklist.default)
    # Bottom to top; None until the first tick.
    stack: list[Action] | None = None

    def __post_init__(self) -> None:
        self.direction = require_direction(self.direction, INSPECT_DIRECTIONS, what="DigVeinAction")
        if self.blacklist is None:
            self.blacklist = OreBlacklist.default()
        if not isinstance(self.blacklist, OreBlacklist):
            raise ValueError(f"DigVeinAction: expected an OreBlacklist, got {type(self.blacklist)}")
        if self.stack is not None:
            self.stack = list(self.stack)

    @property
    def is_active(self) -> bool:
        return self.stack is not None

    @property
    def frames(self) -> tuple[Action, ...]:
        return tuple(self.stack or ())

    def push_frames(self, frames: list[Action]) -> None:
        """Push `frames` so they pop in the order given."""
        if self.stack is None:
            raise RuntimeError("DigVeinAction has no traversal in progress")
        self.stack.extend(reversed(frames))

    def perform(self, ctx: TickContext) -> ActionResult:
        if self.stack is None:
            ctx.log.write_line(f"DigVeinAction {self.direction.value}: starting traversal")
            self.stack = [VeinNodeAction(direction=self.direction)]
            return ActionResult.RUNNING

        if not self.stack:
            ctx.log.write_line("DigVeinAction stack is empty - returning success")
            self.stack = None
            return ActionResult.SUCCESS

        frame = self.stack.pop()
        ctx.log.write_line(f"DigVeinAction ticking {frame.name} (depth={len(self.stack) + 1})")
        result = self._run_frame(frame, ctx)

        if result is ActionResult.SUCCESS:
            return ActionResult.RUNNING
        if result is ActionResult.RUNNING:
            self.stack.append(frame)
            return ActionResult.RUNNING
        if result is ActionResult.FAILURE:
            ctx.log.write_line(f"DigVeinAction {frame.name} failed; kept on the stack for retry")
            self.stack.append(frame)
            return ActionResult.FAILURE
        raise RuntimeError(f"Unexpected result from {frame.name}: {result!r}")

    def _run_frame(self, frame: Action, ctx: TickContext) -> ActionResult:
        if isinstance(frame, (VeinNodeAction, DigThenMoveAction)):
            return check_result(frame.evaluate(ctx, self), source=frame.name)
        return check_result(frame.perform(ctx), source=frame.name)

    def to_dict(self, registry: ActionRegistry) -> dict[str, Any]:
        d: dict[str, Any] = {"direction": self.direction.value, "blacklist": self.blacklist.to_dict()}
        if self.stack is not None:
            d["stack"] = [registry.serialize_action(f) for f in self.stack]
        return d

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], registry: ActionRegistry) -> "DigVeinAction":
        stack: list[Action] | None = None
        raw_stack = data.get("stack")
        if raw_stack is not None:
            if not isinstance(raw_stack, list):
                raise ValueError(f"DigVeinAction: stack must be a list, got {type(raw_stack)}")
            stack = [registry.deserialize_action(f) for f in raw_stack]
        return cls(
            direction=require_field(data, "direction", what="DigVeinAction"),
            blacklist=OreBlacklist.from_dict(require_field(data, "blacklist", what="DigVeinAction")),
            stack=stack,
        )
