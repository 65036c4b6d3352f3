from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Optional


class JsonlLogger:
    """Structured per-run trace, one JSON object per line.

    With no path every call is a no-op, so components can log unconditionally.
    """

    def __init__(self, path: str | Path | None = None, clock: Optional[Callable[[], float]] = None) -> None:
        self._path = Path(path) if path else None
        self._fh = None
        self._clock = clock
        if self._path:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = self._path.open("w", encoding="utf-8")

    @property
    def enabled(self) -> bool:
        return self._fh is not None

    def bind_clock(self, clock: Callable[[], float]) -> None:
        self._clock = clock

    def log(self, event: str, **kwargs: Any) -> None:
        if not self._fh:
            return
        row = {"event": event, **kwargs}
        if self._clock is not None:
            row.setdefault("t", round(self._clock(), 9))
        self._fh.write(json.dumps(row, sort_keys=True, default=str) + "\n")
        self._fh.flush()

    def close(self) -> None:
        if self._fh:
            self._fh.close()
            self._fh = None

    def __enter__(self) -> "JsonlLogger":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
