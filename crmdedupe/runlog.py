"""
Run statistics and the merge log.

Both are fed from one stream of MergeEvents: the statistics count them,
the log renders them as lines into an append-only file, an in-memory
buffer, and the application logger (prefixed `XMERGE:`).
"""

import os
import tempfile
from copy import deepcopy
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

from .logger import StructuredLogger, get_logger


class EventKind(Enum):
    ACTION = "action"
    ERROR = "error"
    CONFLICT_RESOLVED = "conflict_resolved"
    CONTACT_MERGED = "contact_merged"
    TUPLE_MERGED = "tuple_merged"
    PAIR_FAILED = "pair_failed"


@dataclass(frozen=True)
class MergeEvent:
    kind: EventKind
    message: str = ""
    main_id: Optional[int] = None
    other_id: Optional[int] = None


@dataclass
class RunStatistics:
    """Counters for one run. Read them through Merge.stats (a copy)."""

    tuples_merged: int = 0
    contacts_merged: int = 0
    conflicts_resolved: int = 0
    errors: List[str] = field(default_factory=list)
    failed: List[Tuple[int, int]] = field(default_factory=list)

    def apply(self, event: MergeEvent) -> None:
        if event.kind is EventKind.CONFLICT_RESOLVED:
            self.conflicts_resolved += 1
        elif event.kind is EventKind.CONTACT_MERGED:
            self.contacts_merged += 1
        elif event.kind is EventKind.TUPLE_MERGED:
            self.tuples_merged += 1
        elif event.kind is EventKind.PAIR_FAILED:
            self.failed.append((event.main_id, event.other_id))
            if event.message:
                self.errors.append(event.message)
        elif event.kind is EventKind.ERROR:
            self.errors.append(event.message)

    def as_dict(self) -> dict:
        return asdict(self)

    def copy(self) -> "RunStatistics":
        return deepcopy(self)


def _render(event: MergeEvent) -> str:
    if event.kind in (EventKind.ERROR, EventKind.PAIR_FAILED):
        return f"ERROR: {event.message}"
    return event.message


class MergeLog:
    """Append-only merge log of a single run."""

    def __init__(self, path: Optional[Path] = None, logger: Optional[StructuredLogger] = None):
        if path is None:
            handle, name = tempfile.mkstemp(prefix="xdedupe_merge", suffix=".log")
            os.close(handle)
            path = Path(name)
        else:
            path.parent.mkdir(parents=True, exist_ok=True)

        self.path = path
        self.stats = RunStatistics()
        self.lines: List[str] = []
        self._logger = logger or get_logger()
        self._handle = path.open("a", encoding="utf-8")

    def emit(
        self,
        kind: EventKind,
        message: str = "",
        main_id: Optional[int] = None,
        other_id: Optional[int] = None,
    ) -> MergeEvent:
        event = MergeEvent(kind=kind, message=message, main_id=main_id, other_id=other_id)
        self.stats.apply(event)
        if message:
            self._write(event)
        return event

    def log(self, message: str) -> None:
        """Record a human-readable action line."""
        self.emit(EventKind.ACTION, message)

    def log_error(self, message: str) -> None:
        """Record an error line and count it in the statistics."""
        self.emit(EventKind.ERROR, message)

    def _write(self, event: MergeEvent) -> None:
        line = _render(event)
        self.lines.append(line)
        if not self._handle.closed:
            self._handle.write(line + "\n")
            self._handle.flush()
        if event.kind in (EventKind.ERROR, EventKind.PAIR_FAILED):
            self._logger.error(f"XMERGE: {line}")
        else:
            self._logger.debug(f"XMERGE: {line}")

    @property
    def text(self) -> str:
        return "".join(line + "\n" for line in self.lines)

    def close(self) -> None:
        if not self._handle.closed:
            self._handle.close()
