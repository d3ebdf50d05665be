"""Events streamed by the batch scheduler.

``to_dict()`` renders each event in its wire shape:

    init{totalCount}  progress{current,total}  entry{index,redactedRecord}
    complete{}  error{message}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar


@dataclass(frozen=True)
class InitEvent:
    """Batch accepted; ``total`` entries will be processed."""

    total: int
    type: ClassVar[str] = "init"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "totalCount": self.total}


@dataclass(frozen=True)
class ProgressEvent:
    """``current`` of ``total`` entries have completed."""

    current: int
    total: int
    type: ClassVar[str] = "progress"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "current": self.current, "total": self.total}


@dataclass(frozen=True)
class EntryEvent:
    """A redacted entry together with its index in the original log."""

    index: int
    entry: Any
    type: ClassVar[str] = "entry"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "index": self.index, "redactedRecord": self.entry}


@dataclass(frozen=True)
class CompleteEvent:
    """All entries have been emitted."""

    type: ClassVar[str] = "complete"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type}


@dataclass(frozen=True)
class ErrorEvent:
    """The batch could not start; no entry events follow."""

    message: str
    type: ClassVar[str] = "error"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "message": self.message}


ScrubEvent = InitEvent | ProgressEvent | EntryEvent | CompleteEvent | ErrorEvent
