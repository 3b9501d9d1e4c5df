"""Progress reporting hook shared by the executors"""

from __future__ import annotations

from collections.abc import Callable

# (stage, detail) -> None
ProgressCallback = Callable[[str, str], None]


def report(on_progress: ProgressCallback | None, stage: str, detail: str = ""):
    if on_progress is not None:
        on_progress(stage, detail)
