from __future__ import annotations

import json
from pathlib import Path

import pytest

import veindig.actionpath as actionpath
from veindig.actionpath import ActionPath, ActionRegistry, ActionResult, TickContext, default_registry, write_text_atomic
from veindig.actions import MoveAction, SequenceAction, SucceederAction, TurnAction
from veindig.direction import Direction
from veindig.ores import DigVeinAction, OreBlacklist, VeinNodeAction, dig_then_move
from veindig.world import GridWorld


def _tree() -> SequenceAction:
    return SequenceAction(
        children=[
            SucceederAction(child=TurnAction(direction=Direction.LEFT)),
            DigVeinAction(
                direction=Direction.UP,
                blacklist=OreBlacklist(["minecraft:stone"]),
                stack=[MoveAction(direction=Direction.DOWN), VeinNodeAction(direction=Direction.FORWARD)],
            ),
            dig_then_move(Direction.FORWARD),
        ],
        cursor=1,
    )


def test_serialize_action_produces_self_describing_records() -> None:
    registry = default_registry()

    record = registry.serialize_action(MoveAction(direction=Direction.BACK))

    assert record == {"name": "veindig.actions.MoveAction", "action": {"direction": "back"}}
    assert registry.deserialize_action(record) == MoveAction(direction=Direction.BACK)


def test_nested_tree_round_trips_including_vein_stack() -> None:
    registry = default_registry()
    tree = _tree()

    record = registry.serialize_action(tree)
    restored = registry.deserialize_action(json.loads(json.dumps(record)))

    assert restored == tree
    assert registry.serialize_action(restored) == record
    vein = restored.children[1]
    assert isinstance(vein, DigVeinAction)
    assert [f.name for f in vein.frames] == ["veindig.actions.MoveAction", "veindig.ores.VeinNodeAction"]


@pytest.mark.parametrize(
    ("record", "message"),
    [
        ([], "must be an object"),
        ({"action": {}}, "missing required field: name"),
        ({"name": "nope.Action", "action": {}}, "Unknown action: nope.Action"),
        ({"name": "veindig.actions.MoveAction"}, "missing required field: action"),
        ({"name": "veindig.actions.MoveAction", "action": "forward"}, "payload must be an object"),
        ({"name": "veindig.actions.MoveAction", "action": {}}, "MoveAction: missing required field: direction"),
        ({"name": "veindig.actions.MoveAction", "action": {"direction": "left"}}, "MoveAction: expected direction"),
        ({"name": "veindig.actions.SequenceAction", "action": {"children": {}}}, "children must be a list"),
    ],
)
def test_deserialize_rejects_malformed_records(record: object, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        default_registry().deserialize_action(record)


def test_registry_rejects_unregistered_actions_and_name_clashes() -> None:
    registry = ActionRegistry([MoveAction])

    with pytest.raises(ValueError, match="not registered: veindig.actions.TurnAction"):
        registry.serialize_action(TurnAction(direction=Direction.LEFT))

    class Impostor(MoveAction):
        pass

    with pytest.raises(ValueError, match="already registered"):
        registry.register(Impostor)

    registry.register(MoveAction)
    assert registry.names() == ["veindig.actions.MoveAction"]


def test_action_path_dumps_ascii_json_and_preserves_unknown_keys(tmp_path: Path) -> None:
    src = tmp_path / "state.json"
    path = ActionPath(head=_tree(), extra={"note": "café"})

    path.save(src)
    serialized = src.read_text(encoding="utf-8")
    loaded = ActionPath.load(src)

    assert serialized.endswith("\n")
    assert "\\u00e9" in serialized
    assert loaded.extra == {"note": "café"}
    assert loaded.head == path.head
    assert loaded.dumps() == serialized


def test_action_path_save_creates_parent_directories(tmp_path: Path) -> None:
    target = tmp_path / "a" / "b" / "state.json"

    ActionPath(head=TurnAction(direction=Direction.LEFT)).save(target)

    assert json.loads(target.read_text(encoding="utf-8"))["head"]["name"] == "veindig.actions.TurnAction"


def test_write_text_atomic_replaces_without_leaving_a_temp_file(tmp_path: Path) -> None:
    target = tmp_path / "state.json"
    target.write_text("old\n", encoding="utf-8")

    write_text_atomic(target, "new\n")

    assert target.read_text(encoding="utf-8") == "new\n"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["state.json"]


def test_interrupted_save_keeps_the_previous_document(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    target = tmp_path / "state.json"
    first = ActionPath(head=TurnAction(direction=Direction.LEFT), extra={"world": {"dug": []}})
    first.save(target)
    before = target.read_text(encoding="utf-8")

    def crash(src: object, dst: object) -> None:
        raise OSError("power lost")

    monkeypatch.setattr(actionpath.os, "replace", crash)
    second = ActionPath(head=TurnAction(direction=Direction.RIGHT), extra={"world": {"dug": [[0, 0, -1]]}})
    with pytest.raises(OSError, match="power lost"):
        second.save(target)

    assert target.read_text(encoding="utf-8") == before
    assert ActionPath.load(target) == first


def test_action_path_from_dict_rejects_non_objects_and_missing_head() -> None:
    with pytest.raises(ValueError, match="must be a JSON object"):
        ActionPath.from_dict([])
    with pytest.raises(ValueError, match="missing required field: head"):
        ActionPath.from_dict({})


def test_action_path_tick_ticks_head_once() -> None:
    world = GridWorld()
    path = ActionPath(head=SequenceAction(children=[TurnAction(direction=Direction.LEFT), TurnAction(direction=Direction.LEFT)]))
    ctx = TickContext(turtle=world)

    assert path.tick(ctx) is ActionResult.RUNNING
    assert len(world.ops) == 1
    assert path.tick(ctx) is ActionResult.SUCCESS
    assert len(world.ops) == 2


def test_action_path_tick_rejects_non_result_values() -> None:
    class Weird(TurnAction):
        def perform(self, ctx: TickContext) -> ActionResult:
            return 1  # type: ignore[return-value]

    with pytest.raises(RuntimeError, match="Unexpected result"):
        ActionPath(head=Weird(direction=Direction.LEFT)).tick(TickContext(turtle=GridWorld()))
