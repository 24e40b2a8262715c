"""Step results, trace events and run outcomes.

Wire forms (``to_dict``) use camelCase keys:

    success  {ok, op, elapsedMs, opIndex, notes?}
    failure  {ok, errorKind, message, sourceLocation, opIndex, op, notes?, timestamp}
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Union

from craftscript.core.ast_nodes import SourceLocation


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class StepSuccess:
    op:         str
    elapsed_ms: int
    op_index:   int
    notes:      dict[str, Any] | None = None

    ok: ClassVar[bool] = True

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "ok": True, "op": self.op,
            "elapsedMs": self.elapsed_ms, "opIndex": self.op_index,
        }
        if self.notes:
            d["notes"] = dict(self.notes)
        return d


@dataclass(frozen=True)
class StepFailure:
    error_kind: str
    message:    str
    location:   SourceLocation | None
    op_index:   int
    op:         str
    notes:      dict[str, Any] | None = None
    timestamp:  int = field(default_factory=_now_ms)

    ok: ClassVar[bool] = False

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "ok": False,
            "errorKind": self.error_kind,
            "message": self.message,
            "sourceLocation": self.location.to_dict() if self.location else None,
            "opIndex": self.op_index,
            "op": self.op,
        }
        if self.notes:
            d["notes"] = dict(self.notes)
        d["timestamp"] = self.timestamp
        return d


CraftscriptResult = Union[StepSuccess, StepFailure]


@dataclass(frozen=True)
class TraceEvent:
    """Interpreter trace point (if, repeat_iter, var_set, command_start, …)."""
    kind:      str
    data:      dict[str, Any] = field(default_factory=dict)
    timestamp: int = field(default_factory=_now_ms)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "ts": self.timestamp, **self.data}


class RunStatus(str, Enum):
    COMPLETED         = "completed"
    FAILED            = "failed"
    OP_LIMIT_EXCEEDED = "op_limit_exceeded"
    CANCELLED         = "cancelled"
    CONNECTION_LOST   = "connection_lost"
    SYNTAX_ERROR      = "syntax_error"


@dataclass(frozen=True)
class RunError:
    """Why a run stopped early."""
    kind:     str
    message:  str
    location: SourceLocation | None = None
    op_index: int | None = None          # index of the last emitted step
    notes:    dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "errorKind": self.kind,
            "message": self.message,
            "sourceLocation": self.location.to_dict() if self.location else None,
            "opIndex": self.op_index,
        }
        if self.notes:
            d["notes"] = dict(self.notes)
        return d


@dataclass
class RunOutcome:
    status:         RunStatus
    results:        list[CraftscriptResult] = field(default_factory=list)
    ops:            int = 0
    error:          RunError | None = None
    correlation_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is RunStatus.COMPLETED

    @property
    def failures(self) -> list[StepFailure]:
        return [r for r in self.results if not r.ok]

    @property
    def last_step(self) -> CraftscriptResult | None:
        return self.results[-1] if self.results else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "status": self.status.value,
            "ops": self.ops,
            "correlationId": self.correlation_id,
            "error": self.error.to_dict() if self.error else None,
            "results": [r.to_dict() for r in self.results],
        }
