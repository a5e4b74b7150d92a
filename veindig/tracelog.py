from __future__ import annotations

import sys
from pathlib import Path
from typing import Protocol


class LineWriter(Protocol):
    def write_line(self, text: str) -> None: ...


class StderrLog:
    """Progress lines on stderr, prefixed like every other veindig message."""

    def __init__(self, prefix: str = "[veindig]") -> None:
        self.prefix = prefix

    def write_line(self, text: str) -> None:
        print(f"{self.prefix} {text}", file=sys.stderr)


class FileLog:
    """Append-only trace file. The file is opened per line so nothing is lost on a crash."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def write_line(self, text: str) -> None:
        with self.path.open("a", encoding="utf-8") as fh:
            fh.write(text.rstrip("\n") + "\n")


class NullLog:
    def write_line(self, text: str) -> None:
        _ = text


class TeeLog:
    def __init__(self, *writers: LineWriter) -> None:
        self.writers = list(writers)

    def write_line(self, text: str) -> None:
        for w in self.writers:
            w.write_line(text)
