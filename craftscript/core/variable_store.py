"""Block-scoped variable and macro tables for one run.

Every block gets a child store whose parent is the enclosing block's store.
Lookups walk outwards; ``let`` always declares in the innermost store and
plain assignment mutates the nearest store that already declares the name.

All access is single-threaded (the runner's event loop).
"""
from __future__ import annotations

from typing import Any, NamedTuple

from craftscript.core.ast_nodes import MacroDecl
from craftscript.core.errors import ScopeError

_MISSING = object()


class VariableStore:
    """Maps variable name → Any value (int, float, str, bool, Vec3, …)."""

    def __init__(self, parent: "VariableStore | None" = None) -> None:
        self._vars: dict[str, Any] = {}
        self._parent = parent

    # ------------------------------------------------------------------
    def child(self) -> "VariableStore":
        return VariableStore(parent=self)

    def declare(self, name: str, value: Any) -> None:
        """Bind *name* in this scope, shadowing any outer binding."""
        self._vars[name] = value

    def assign(self, name: str, value: Any) -> None:
        owner = self._owner(name)
        if owner is None:
            raise ScopeError(f"assignment to undeclared variable {name!r}",
                             notes={"name": name})
        owner._vars[name] = value

    def get(self, name: str, default: Any = _MISSING) -> Any:
        owner = self._owner(name)
        if owner is not None:
            return owner._vars[name]
        if default is _MISSING:
            raise ScopeError(f"unknown identifier {name!r}", notes={"name": name})
        return default

    def has(self, name: str) -> bool:
        return self._owner(name) is not None

    def as_dict(self) -> dict[str, Any]:
        """Flattened view of every visible binding (inner wins)."""
        merged = self._parent.as_dict() if self._parent is not None else {}
        merged.update(self._vars)
        return merged

    def _owner(self, name: str) -> "VariableStore | None":
        store: VariableStore | None = self
        while store is not None:
            if name in store._vars:
                return store
            store = store._parent
        return None

    def __repr__(self) -> str:
        return f"VariableStore({self._vars!r})"


class MacroEntry(NamedTuple):
    decl:  MacroDecl
    scope: VariableStore     # variables visible where the macro was declared
    table: "MacroTable"      # macros visible where the macro was declared


class MacroTable:
    """Maps macro name → MacroEntry, chained like VariableStore."""

    def __init__(self, parent: "MacroTable | None" = None) -> None:
        self._macros: dict[str, MacroEntry] = {}
        self._parent = parent

    def child(self) -> "MacroTable":
        return MacroTable(parent=self)

    def define(self, decl: MacroDecl, scope: VariableStore) -> None:
        self._macros[decl.name] = MacroEntry(decl, scope, self)

    def lookup(self, name: str) -> MacroEntry | None:
        table: MacroTable | None = self
        while table is not None:
            entry = table._macros.get(name)
            if entry is not None:
                return entry
            table = table._parent
        return None

    def names(self) -> set[str]:
        visible = self._parent.names() if self._parent is not None else set()
        return visible | set(self._macros)

    def __repr__(self) -> str:
        return f"MacroTable({sorted(self._macros)!r})"
