"""Module entrypoint for ``python -m veindig``.

How it works
------------
Running ``python -m veindig ...`` executes this module, which is intentionally a thin
wrapper around :func:`veindig.cli.main`. It delegates all argument parsing and the run itself
to the CLI module and then raises ``SystemExit(main())`` so that the CLI return code is
used as the process exit status.

This is equivalent to invoking the console-script entrypoint ``veindig`` (configured as
``veindig.cli:main`` in ``pyproject.toml``).

Inputs
------
- Command-line arguments (see ``python -m veindig --help``), notably the world file, ``--state``,
  ``--direction``, ``--blacklist``, ``--reset-state`` and the retry flags.
- ``VEINDIG_CONTROL_ROOT``: if set, relative paths resolve against it instead of the cwd.
- On-disk state: the world JSON and, when resuming, ``.veindig/state.json`` (whose world
  snapshot takes precedence over the world JSON).

Outputs and side effects
------------------------
- Progress and trace lines on stderr (prefixed with ``[veindig]``) and in ``.veindig/trace.log``.
- The state file (action stack plus world snapshot) is replaced atomically after every tick,
  then the world file is re-exported.
- ``--reset-state`` archives the previous state under ``.veindig/state-history/``.

Exit status
-----------
0 when the vein is finished, 1 when the retry policy gives up, 2 when stopped by
``--max-ticks``. Exceptions are not caught here.
"""

from __future__ import annotations

from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
