"""CSV metrics for paired-device query runs."""
from __future__ import annotations

import contextlib
import csv
import json
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from time import perf_counter
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, Sequence


DEFAULT_FIELDS: Sequence[str] = (
    "timestamp",
    "event",
    "status",
    "duration",
    "returned",
    "message",
    "extra",
)


@dataclass(slots=True)
class QueryRecord:
    """One CSV row describing a query outcome."""

    timestamp: str
    event: str
    status: Optional[str] = None
    duration: Optional[float] = None
    returned: Optional[int] = None
    message: Optional[str] = None
    extra: Mapping[str, Any] | None = None

    def as_row(self, fields: Sequence[str]) -> Dict[str, Any]:
        extra = ""
        if self.extra:
            extra = json.dumps(self.extra, separators=(",", ":"), sort_keys=True, default=repr)
        row: Dict[str, Any] = {
            "timestamp": self.timestamp,
            "event": self.event,
            "status": self.status or "",
            "duration": f"{self.duration:.6f}" if self.duration is not None else "",
            "returned": self.returned if self.returned is not None else "",
            "message": self.message or "",
            "extra": extra,
        }
        return {key: row.get(key, "") for key in fields}


class QueryMetrics:
    """Append-only CSV log of query runs.

    Rows are flushed as they are written so the file can be tailed while a
    host application polls the bridge.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        fields: Sequence[str] | None = None,
        static_extra: Mapping[str, Any] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.path = Path(path)
        self.fields: Sequence[str] = tuple(fields) if fields is not None else DEFAULT_FIELDS
        if not self.fields:
            raise ValueError("fields must contain at least one column")

        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._static_extra: Dict[str, Any] = dict(static_extra or {})
        self._lock = threading.Lock()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._append(None)

    def log(
        self,
        event: str,
        *,
        status: Optional[str] = None,
        duration: Optional[float] = None,
        returned: Optional[int] = None,
        message: Optional[str] = None,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None:
        stamp = self._clock()
        if stamp.tzinfo is None:
            stamp = stamp.replace(tzinfo=timezone.utc)
        record = QueryRecord(
            timestamp=stamp.astimezone(timezone.utc).isoformat(timespec="milliseconds"),
            event=event,
            status=status,
            duration=duration,
            returned=returned,
            message=message,
            extra={**self._static_extra, **(extra or {})},
        )
        self._append(record)

    @contextlib.contextmanager
    def timer(self, event: str, **extra_kwargs: Any) -> Iterator[Dict[str, Any]]:
        """Time the body and log one row when it exits.

        The yielded dict is merged into ``extra``; a ``returned`` key in it
        fills the ``returned`` column.
        """
        start = perf_counter()
        stats: Dict[str, Any] = dict(extra_kwargs)
        try:
            yield stats
        except Exception as exc:
            stats["exception"] = type(exc).__name__
            returned = stats.pop("returned", None)
            self.log(
                event,
                status=getattr(exc, "code", "error"),
                duration=perf_counter() - start,
                returned=returned,
                message=str(exc),
                extra=stats,
            )
            raise
        else:
            returned = stats.pop("returned", None)
            self.log(
                event,
                status="ok",
                duration=perf_counter() - start,
                returned=returned,
                extra=stats,
            )

    def _append(self, record: Optional[QueryRecord]) -> None:
        # Header goes in front of the first row of an empty or new file.
        with self._lock:
            fresh = not self.path.exists() or self.path.stat().st_size == 0
            if record is None and not fresh:
                return
            with self.path.open("a", newline="", encoding="utf-8") as handle:
                writer = csv.DictWriter(handle, fieldnames=self.fields, extrasaction="ignore")
                if fresh:
                    writer.writeheader()
                if record is not None:
                    writer.writerow(record.as_row(self.fields))
                handle.flush()


__all__ = [
    "QueryMetrics",
    "QueryRecord",
    "DEFAULT_FIELDS",
]
