"""Error taxonomy for parsing and running CraftScript.

Every error carries a ``kind`` string that becomes ``errorKind`` in the
wire form of a failed step, plus an optional source location and a
``notes`` dict with structured context (target name, coordinates, …).

Fatal vs. per-step
------------------
ScriptSyntaxError    — parse time; execution never starts
ScriptAssertionError — fatal, ends the run
OpLimitExceeded      — fatal, ends the run
CancellationError    — fatal, ends the run
ConnectionLost       — fatal, ends the run
CommandError / ScopeError / AbsoluteLookupError / EvaluationError
                     — reported as one failed step when raised while
                       running a command; fatal anywhere else
"""
from __future__ import annotations

from typing import Any

from craftscript.core.ast_nodes import SourceLocation


class CraftscriptError(Exception):
    """Base class. ``kind`` is overridable per instance."""

    kind = "runtime_error"

    def __init__(
        self,
        message:  str,
        *,
        location: SourceLocation | None = None,
        notes:    dict[str, Any] | None = None,
        kind:     str | None = None,
    ) -> None:
        super().__init__(message)
        self.message  = message
        self.location = location
        self.notes    = notes
        if kind is not None:
            self.kind = kind


class ScriptSyntaxError(CraftscriptError):
    """Malformed script text. ``line``/``column`` are 1-based."""

    kind = "syntax_error"

    def __init__(self, message: str, line: int, column: int) -> None:
        super().__init__(message, location=SourceLocation(line, column))
        self.line   = line
        self.column = column

    def __str__(self) -> str:
        return f"line {self.line}, column {self.column}: {self.message}"


class ScopeError(CraftscriptError):
    """Unknown variable, macro, predicate or command name."""

    kind = "scope_error"


class ScriptAssertionError(CraftscriptError):
    kind = "assertion_failed"


class OpLimitExceeded(CraftscriptError):
    kind = "op_limit_exceeded"


class CommandError(CraftscriptError):
    """Raised by command handlers to report a structured failure.

    >>> raise CommandError("no block to dig", kind="no_target",
    ...                    notes={"world": [1, 64, 3]})
    """

    kind = "command_error"


class CancellationError(CraftscriptError):
    kind = "cancelled"


class AbsoluteLookupError(CraftscriptError):
    """A waypoint or block query could not be turned into a position."""

    kind = "absolute_lookup_error"

    def __init__(self, message: str, name: str, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.name = name


class EvaluationError(CraftscriptError):
    """Type or value error while evaluating an expression."""

    kind = "evaluation_error"


class ConnectionLost(CraftscriptError):
    """Raised by a handler when the actor's connection is gone."""

    kind = "connection_lost"


class RegistrationError(CraftscriptError, ValueError):
    """Invalid command/predicate registration."""

    kind = "registration_error"
