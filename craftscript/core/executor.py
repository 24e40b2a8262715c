"""Command dispatch table — maps command names to action handlers.

Handlers
--------
A command handler receives one ``CommandCall`` and may be sync or async.
It returns an optional ``notes`` dict (copied into the StepSuccess) and
reports failure by raising; ``CommandError`` carries a specific kind::

    async def dig(call: CommandCall) -> dict | None:
        target = call.arg(0)
        ...
        raise CommandError("no block to dig", kind="no_target")

Predicates have the same call shape and return a truth value.

Design notes
------------
- One table per host; handlers close over whatever actor state they need.
- Names are validated at registration (identifier shape, not a keyword,
  not already taken) so a bad table fails fast, before any script runs.
- ``spatial`` commands get an automatic world scan before they run.
"""
from __future__ import annotations

import inspect
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol, Union, runtime_checkable

from craftscript.core.ast_nodes import (
    CommandStmt, NamedArg, PredicateCall, Selector, SourceLocation,
)
from craftscript.core.constants import BUILTIN_PREDICATES, KEYWORDS
from craftscript.core.errors import RegistrationError
from craftscript.core.selector import HeadingContext, selector_to_key

_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

Notes     = Union[dict[str, Any], None]
Handler   = Callable[["CommandCall"], Union[Notes, Awaitable[Notes]]]
Predicate = Callable[["CommandCall"], Union[bool, Awaitable[bool]]]


# ---------------------------------------------------------------------------
# Call / actor
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CommandCall:
    """Evaluated arguments plus the context a handler runs in."""
    name:     str
    args:     tuple[Any, ...]            = ()
    named:    dict[str, Any]             = field(default_factory=dict)
    ctx:      HeadingContext | None      = None
    location: SourceLocation | None      = None
    stmt:     CommandStmt | PredicateCall | None = None

    def arg(self, index: int, default: Any = None) -> Any:
        return self.args[index] if index < len(self.args) else default

    def selector_key(self, index: int) -> str | None:
        """``F1``-style key when positional arg *index* was written as a selector."""
        if self.stmt is None:
            return None
        raw = [a for a in self.stmt.args if not isinstance(a, NamedArg)]
        if index < len(raw) and isinstance(raw[index], Selector):
            return selector_to_key(raw[index])
        return None


@runtime_checkable
class Actor(Protocol):
    """What the runner needs from the thing being driven."""

    name: str

    def heading_context(self) -> HeadingContext: ...

    async def scan(self, radius: int) -> Any: ...


# ---------------------------------------------------------------------------
# Dispatch table
# ---------------------------------------------------------------------------

async def _call(fn: Callable, call: CommandCall) -> Any:
    result = fn(call)
    if inspect.isawaitable(result):
        result = await result
    return result


@dataclass(frozen=True)
class CommandEntry:
    name:    str
    handler: Handler
    spatial: bool = False

    async def invoke(self, call: CommandCall) -> Notes:
        notes = await _call(self.handler, call)
        if notes is not None and not isinstance(notes, dict):
            notes = {"value": notes}
        return notes


class CommandTable:
    """Static registry of commands and predicates."""

    def __init__(self) -> None:
        self._commands:   dict[str, CommandEntry] = {}
        self._predicates: dict[str, Predicate]    = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, name: str, handler: Handler, *, spatial: bool = False) -> None:
        self._validate(name, handler)
        if name in self._commands:
            raise RegistrationError(f"command {name!r} is already registered")
        self._commands[name] = CommandEntry(name, handler, spatial)

    def register_predicate(self, name: str, fn: Predicate) -> None:
        self._validate(name, fn)
        if name in self._predicates or name in BUILTIN_PREDICATES:
            raise RegistrationError(f"predicate {name!r} is already registered")
        self._predicates[name] = fn

    def command(self, name: str | None = None, *, spatial: bool = False):
        """Decorator form of ``register``."""
        def deco(fn: Handler) -> Handler:
            self.register(name or fn.__name__, fn, spatial=spatial)
            return fn
        return deco

    def predicate(self, name: str | None = None):
        """Decorator form of ``register_predicate``."""
        def deco(fn: Predicate) -> Predicate:
            self.register_predicate(name or fn.__name__, fn)
            return fn
        return deco

    @staticmethod
    def _validate(name: str, fn: Any) -> None:
        if not isinstance(name, str) or not _NAME_RE.match(name):
            raise RegistrationError(f"invalid command name: {name!r}")
        if name in KEYWORDS:
            raise RegistrationError(f"{name!r} is a reserved keyword")
        if not callable(fn):
            raise RegistrationError(f"handler for {name!r} is not callable")

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, name: str) -> CommandEntry | None:
        return self._commands.get(name)

    def get_predicate(self, name: str) -> Predicate | None:
        return self._predicates.get(name)

    def is_spatial(self, name: str) -> bool:
        entry = self._commands.get(name)
        return entry is not None and entry.spatial

    async def check(self, name: str, call: CommandCall) -> bool:
        """Invoke predicate *name*; raises KeyError when it is not registered."""
        return bool(await _call(self._predicates[name], call))

    @property
    def commands(self) -> list[str]:
        return sorted(self._commands)

    @property
    def predicates(self) -> list[str]:
        return sorted(self._predicates)

    def __contains__(self, name: object) -> bool:
        return name in self._commands

    def __len__(self) -> int:
        return len(self._commands)
