"""veindig runner: tick an action path to completion, persisting after every tick.

The runner is the external "tick driver" for an `ActionPath`. It owns nothing the path does not
already persist; its job is pacing, persistence and deciding what to do about failures.

Lifecycle
1. Load or initialize
  - `load_or_init_path()` restores `.veindig/state.json` (or `--state`) when it exists.
  - A fresh path is built when there is no state file, when `reset=True`, or when the stored
    vein is not in progress (finished or never started) and the requested direction/blacklist
    differ.
  - An in-progress vein with a different direction/blacklist, or a state file whose head is
    not a vein driver at all, raises `RuntimeError` unless `reset=True`; silently discarding a
    half-dug vein would strand the turtle.
  - Replaced state files are archived under `.veindig/state-history/state-<timestamp>.json`,
    best-effort. The new path keeps the old document's extra keys (the world snapshot).

2. Tick loop (`ActionPathRunner.run`)
  - Each iteration ticks the path once, merges `checkpoint_extra()` into `path.extra`, then
    saves the whole document atomically before anything else. Whatever the caller must keep in
    lockstep with the tree (the CLI's world snapshot) therefore lands in the same write, and a
    crash or power loss resumes at the exact frame that was about to run.
  - `on_tick(result)` runs after the save; the CLI uses it to export the world file.
  - SUCCESS ends the run.
  - RUNNING resets the consecutive-failure count and sleeps `tick_delay` (if any).
  - FAILURE increments the consecutive-failure count. The failing frame is still on the
    persisted stack. The run stops with FAILURE once `RetryPolicy` is exhausted; otherwise it
    sleeps `backoff_seconds` and ticks again, re-attempting the identical step.
  - `max_ticks` caps the number of ticks in this invocation; hitting it returns RUNNING and the
    state file is ready to resume.

Retry policy
A failing frame is always put back, so blind retries can loop forever on a permanent
obstruction. `RetryPolicy.max_consecutive_failures` bounds that (default 3); `None` retries
forever, matching a caller that never gives up.
"""

from __future__ import annotations

import sys
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping

from .actionpath import ActionPath, ActionRegistry, ActionResult, TickContext, default_registry
from .direction import Direction
from .ores import DigVeinAction, OreBlacklist


@dataclass(frozen=True)
class RetryPolicy:
    max_consecutive_failures: int | None = 3
    backoff_seconds: float = 0.0

    def __post_init__(self) -> None:
        if self.max_consecutive_failures is not None and self.max_consecutive_failures < 1:
            raise ValueError("max_consecutive_failures must be >= 1 (or None for unlimited)")
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds must be >= 0")

    def exhausted(self, consecutive_failures: int) -> bool:
        if self.max_consecutive_failures is None:
            return False
        return consecutive_failures >= self.max_consecutive_failures


@dataclass(frozen=True)
class RunnerConfig:
    control_root: Path
    state_path: Path
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    max_ticks: int | None = None
    tick_delay: float = 0.0

    @property
    def log_path(self) -> Path:
        return self.control_root / ".veindig" / "trace.log"

    @property
    def history_dir(self) -> Path:
        return self.control_root / ".veindig" / "state-history"


@dataclass(frozen=True)
class RunOutcome:
    result: ActionResult
    ticks: int
    failures: int


class ActionPathRunner:
    def __init__(
        self,
        cfg: RunnerConfig,
        *,
        path: ActionPath,
        ctx: TickContext,
        sleep: Callable[[float], None] = time.sleep,
        on_tick: Callable[[ActionResult], None] | None = None,
        checkpoint_extra: Callable[[], Mapping[str, Any]] | None = None,
    ) -> None:
        self.cfg = cfg
        self.path = path
        self.ctx = ctx
        self._sleep = sleep
        self._on_tick = on_tick
        self._checkpoint_extra = checkpoint_extra

    def run(self) -> RunOutcome:
        ticks = 0
        failures = 0
        while True:
            if self.cfg.max_ticks is not None and ticks >= self.cfg.max_ticks:
                print(f"[veindig] stopping after {ticks} tick(s); state saved to {self.cfg.state_path}", file=sys.stderr)
                return RunOutcome(result=ActionResult.RUNNING, ticks=ticks, failures=failures)

            result = self.path.tick(self.ctx)
            ticks += 1
            if self._checkpoint_extra is not None:
                self.path.extra.update(self._checkpoint_extra())
            self.path.save(self.cfg.state_path)
            if self._on_tick is not None:
                self._on_tick(result)

            if result is ActionResult.SUCCESS:
                print(f"[veindig] done after {ticks} tick(s)", file=sys.stderr)
                return RunOutcome(result=result, ticks=ticks, failures=0)

            if result is ActionResult.RUNNING:
                failures = 0
                if self.cfg.tick_delay:
                    self._sleep(self.cfg.tick_delay)
                continue

            if result is ActionResult.FAILURE:
                failures += 1
                print(f"[veindig] tick {ticks} failed ({failures} in a row)", file=sys.stderr)
                if self.cfg.retry.exhausted(failures):
                    print(
                        f"[veindig] giving up after {failures} consecutive failure(s); "
                        f"failing step kept in {self.cfg.state_path}",
                        file=sys.stderr,
                    )
                    return RunOutcome(result=result, ticks=ticks, failures=failures)
                if self.cfg.retry.backoff_seconds:
                    self._sleep(self.cfg.retry.backoff_seconds)
                continue

            raise RuntimeError(f"Unexpected tick result: {result!r}")


def new_vein_path(*, direction: Direction, blacklist: OreBlacklist, registry: ActionRegistry | None = None) -> ActionPath:
    return ActionPath(head=DigVeinAction(direction=direction, blacklist=blacklist), registry=registry or default_registry())


def load_or_init_path(
    cfg: RunnerConfig,
    *,
    direction: Direction,
    blacklist: OreBlacklist,
    reset: bool = False,
    registry: ActionRegistry | None = None,
) -> ActionPath:
    registry = registry or default_registry()
    if not cfg.state_path.exists():
        path = new_vein_path(direction=direction, blacklist=blacklist, registry=registry)
        path.save(cfg.state_path)
        return path

    path = ActionPath.load(cfg.state_path, registry)
    head = path.head
    matches = isinstance(head, DigVeinAction) and head.direction is direction and head.blacklist == blacklist
    if not reset and matches:
        return path

    if not reset and (not isinstance(head, DigVeinAction) or head.is_active):
        raise RuntimeError(
            "state file holds an action path in progress with different settings. "
            "Use --reset-state to discard it, or pass --state to use a separate file."
        )

    _archive_state(cfg)
    reason = "forced by --reset-state" if reset else "new settings and previous traversal not in progress"
    print(f"[veindig] resetting state ({reason})", file=sys.stderr)
    extra = dict(path.extra)
    path = new_vein_path(direction=direction, blacklist=blacklist, registry=registry)
    path.extra = extra
    path.save(cfg.state_path)
    return path


def _archive_state(cfg: RunnerConfig) -> None:
    hist_dir = cfg.history_dir.resolve()
    ts = datetime.now().strftime("%Y%m%d-%H%M%S")
    try:
        hist_dir.mkdir(parents=True, exist_ok=True)
        (hist_dir / f"state-{ts}.json").write_text(cfg.state_path.read_text(encoding="utf-8"), encoding="utf-8")
    except OSError as exc:
        # Best-effort archival; a reset is not blocked on history write failures.
        print(f"[veindig] could not archive previous state: {exc}", file=sys.stderr)
