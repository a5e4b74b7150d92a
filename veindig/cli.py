"""veindig.cli

Command-line entrypoint for veindig: dig out the ore vein next to a turtle with a resumable,
tick-driven traversal, persisting progress after every tick.

Entry points
- `veindig.cli:main`
- `python3 -m veindig ...` (delegates to this module)

Usage (conceptual)
- `python3 -m veindig world.json`
- `python3 -m veindig world.json --direction up --blacklist terrain.json`
- `python3 -m veindig world.json --max-ticks 50` (stop early; run again to resume)

Positional argument
- `world`: JSON world file for the simulated turtle (`veindig.world.GridWorld`). It seeds the
  simulation when the state file holds no world yet. After that the state file carries the
  world snapshot under `"world"`, written atomically together with the action stack, so an
  interrupted run resumes against the world it left behind. The world file is re-exported
  after every tick for inspection; when it disagrees with the state file, the state wins.

Flags
- `--state <path>`: action path state file (default: `.veindig/state.json`). When it exists
  and matches the requested settings, the run resumes from it.
- `--direction {forward,up,down}`: where the vein starts relative to the turtle (default:
  forward). Only used when a new traversal is created.
- `--blacklist <path>`: JSON list of identifiers that are never ore (default: the built-in
  terrain list).
- `--reset-state`: discard the existing state (archived under `.veindig/state-history/`).
- `--max-failures <int>`: consecutive failed ticks tolerated before giving up (default 3;
  0 retries forever).
- `--backoff <seconds>`: pause after a failed tick before retrying (default 0).
- `--max-ticks <int>`: stop after this many ticks in this invocation.
- `--tick-delay <seconds>`: pause after every successful tick (default 0).
- `--quiet`: write the traversal trace only to `.veindig/trace.log`, not stderr.

Control root and path resolution
The control root is `Path($VEINDIG_CONTROL_ROOT).resolve()` when that variable is set,
otherwise the current working directory. `world`, `--state` and `--blacklist` are resolved as
`(control_root / <arg>).resolve()`, so absolute paths bypass it. The trace log and state
history live under `<control_root>/.veindig/`.

Exit status
- 0: the vein is finished and the turtle is back where it started.
- 1: the retry policy gave up; the failing step is preserved in the state file.
- 2: stopped by `--max-ticks`; run again to resume.
Exceptions (malformed JSON, unknown actions in the state file, mismatched in-progress state)
are not caught and surface as a traceback with a non-zero exit.
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from .actionpath import ActionResult, TickContext
from .direction import INSPECT_DIRECTIONS, Direction
from .ores import OreBlacklist
from .runner import ActionPathRunner, RetryPolicy, RunnerConfig, load_or_init_path
from .tracelog import FileLog, LineWriter, StderrLog, TeeLog
from .world import GridWorld

_EXIT_CODES = {
    ActionResult.SUCCESS: 0,
    ActionResult.FAILURE: 1,
    ActionResult.RUNNING: 2,
}


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="veindig", description="Dig out an ore vein with a resumable, tick-driven traversal.")
    p.add_argument(
        "world",
        help="World JSON file driven by the simulated turtle (rewritten after every tick).",
    )
    p.add_argument(
        "--state",
        default=".veindig/state.json",
        help="Path to the action path state file (default: ./.veindig/state.json).",
    )
    p.add_argument(
        "--direction",
        default=Direction.FORWARD.value,
        choices=[d.value for d in INSPECT_DIRECTIONS],
        help="Direction of the first ore relative to the turtle (default: forward).",
    )
    p.add_argument(
        "--blacklist",
        default=None,
        help="JSON list of block names that are never ore (default: built-in terrain list).",
    )
    p.add_argument(
        "--reset-state",
        action="store_true",
        help="Discard any existing state and start a new traversal.",
    )
    p.add_argument(
        "--max-failures",
        type=int,
        default=3,
        help="Consecutive failed ticks tolerated before giving up (0 = retry forever; default 3).",
    )
    p.add_argument(
        "--backoff",
        type=float,
        default=0.0,
        help="Seconds to wait after a failed tick before retrying (default 0).",
    )
    p.add_argument(
        "--max-ticks",
        type=int,
        default=None,
        help="Stop after this many ticks; run again to resume.",
    )
    p.add_argument(
        "--tick-delay",
        type=float,
        default=0.0,
        help="Seconds to wait between ticks (default 0).",
    )
    p.add_argument(
        "--quiet",
        action="store_true",
        help="Only write the traversal trace to .veindig/trace.log.",
    )
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(list(sys.argv[1:] if argv is None else argv))

    control_root_env = os.environ.get("VEINDIG_CONTROL_ROOT")
    control_root = (Path(control_root_env) if control_root_env else Path.cwd()).resolve()
    world_path = (control_root / args.world).resolve()
    state_path = (control_root / args.state).resolve()

    blacklist = OreBlacklist.default()
    if args.blacklist:
        blacklist = OreBlacklist.load((control_root / args.blacklist).resolve())

    max_failures = int(args.max_failures)
    cfg = RunnerConfig(
        control_root=control_root,
        state_path=state_path,
        retry=RetryPolicy(
            max_consecutive_failures=(max_failures if max_failures > 0 else None),
            backoff_seconds=max(0.0, float(args.backoff)),
        ),
        max_ticks=(max(0, int(args.max_ticks)) if args.max_ticks is not None else None),
        tick_delay=max(0.0, float(args.tick_delay)),
    )

    path = load_or_init_path(
        cfg,
        direction=Direction.parse(args.direction),
        blacklist=blacklist,
        reset=bool(args.reset_state),
    )
    snapshot = path.extra.get("world")
    world = GridWorld.from_dict(snapshot) if snapshot is not None else GridWorld.load(world_path)
    writers: list[LineWriter] = [FileLog(cfg.log_path)]
    if not args.quiet:
        writers.append(StderrLog())
    ctx = TickContext(turtle=world, log=TeeLog(*writers))

    print(f"[veindig] state: {state_path}", file=sys.stderr)
    print(f"[veindig] world: {world_path} cells={len(world.cells)} dug={len(world.dug)}", file=sys.stderr)

    dug_before = len(world.dug)
    runner = ActionPathRunner(
        cfg,
        path=path,
        ctx=ctx,
        on_tick=lambda _result: world.save(world_path),
        checkpoint_extra=lambda: {"world": world.to_dict()},
    )
    outcome = runner.run()

    pose = world.pose
    print(
        f"[veindig] {outcome.result.value}: ticks={outcome.ticks} dug={len(world.dug) - dug_before} "
        f"position={list(pose.position)} heading={pose.heading.value}",
        file=sys.stderr,
    )
    return _EXIT_CODES[outcome.result]
