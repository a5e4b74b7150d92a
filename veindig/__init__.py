"""veindig: resumable, tick-driven excavation of ore veins.

This package drives a turtle (an agent that can only sense, dig, turn and move one cell at a
time relative to its own pose) to dig out a whole 6-connected vein of ore and come back to the
exact position and heading it started from.

What veindig provides
- A depth-first vein traversal (`veindig.ores.DigVeinAction`) whose only state is an explicit
  stack of frames, ticked one bounded step at a time and reporting success / failure /
  running to its caller.
- A small action-tree library (`veindig.actionpath`, `veindig.actions`): combinators,
  primitive move/turn/dig actions and a recursive JSON format that persists any tree,
  including a traversal in progress.
- A runner (`veindig.runner`) that ticks an action path to completion, saves it after every
  tick and applies an explicit retry policy to failed ticks.
- A simulated grid world (`veindig.world.GridWorld`) and a CLI (`veindig.cli:main`, runnable
  via `python -m veindig`) that drives it.

What veindig intentionally does not do
- Plan optimal or fuel-minimal routes; it guarantees coverage and a safe return, not the
  fewest moves.
- Bind to a particular physical agent; anything satisfying `veindig.turtle.Turtle` can be
  driven.

Key exports from this module
- `__version__`: the package version string. (`__all__` is intentionally limited to this.)

Important invariants and conventions
- A single tick issues at most one physical primitive (inspect, dig, turn or move).
- A failed step is never dropped: it stays on the persisted stack so a later tick retries
  exactly that step.
- When a traversal reports success, the turtle's position and heading equal those it had
  when the traversal started.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
