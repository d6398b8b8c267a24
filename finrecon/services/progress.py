from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress display with tqdm (TTY only).

One bar over the CSV uploads of an import run; the postfix carries running
ok / failed file counts and the number of parsed rows. The counters are kept
even when the bar is disabled (stdout not a TTY), so callers can read them
in CI as well.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressTracker:
    """Upload-level progress bar; display is a no-op outside a terminal."""

    def __init__(self, total_files: int, *, description: str = "Importing uploads") -> None:
        self.total_files = total_files
        self.description = description
        self.current_file = 0
        self.ok_files = 0
        self.failed_files = 0
        self.rows = 0

        self.pbar: TqdmType[Any] | None = None
        if is_tty_enabled():
            self.pbar = tqdm(
                total=total_files,
                desc=description,
                unit="file",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )

    @property
    def enabled(self) -> bool:
        return self.pbar is not None

    def start_file(self, file_path: Path) -> None:
        self.current_file += 1
        if self.pbar is not None:
            self.pbar.set_description(f"{self.description} ({file_path.name})")

    def finish_file(self, *, success: bool = True, rows: int = 0) -> None:
        if success:
            self.ok_files += 1
        else:
            self.failed_files += 1
        self.rows += rows
        if self.pbar is not None:
            self.pbar.set_postfix(ok=self.ok_files, failed=self.failed_files, rows=self.rows)
            self.pbar.update(1)
            self.pbar.set_description(self.description)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
