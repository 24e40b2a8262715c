"""Script runner — walks a Program and executes each statement.

Every atomic command produces exactly one step result (StepSuccess or
StepFailure) with a sequential ``op_index``.  Failures raised while running
a command are recorded and the run continues; the following end the run:

    OpLimitExceeded      — op budget spent, or a loop ran MAX_ITERATIONS times
    CancellationError    — stop event set (checked between statements,
                           before loop iterations and before commands)
    ConnectionLost       — raised by a handler
    ScriptAssertionError — ``assert`` evaluated false
    any CraftscriptError raised outside a command's arguments
    any other exception outside a command (``internal_error``)

Usage
-----
    runner  = ScriptRunner(table, actor, RunOptions(op_limit=500))
    outcome = await runner.run(parse(text))

    # or, parsing included:
    outcome = await run_script(text, table, actor)
"""
from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable

from craftscript.core.ast_nodes import (
    AssertStmt, AssignStmt, Block, CommandStmt, EmptyStmt, IfStmt, LetStmt,
    MacroDecl, NamedArg, PredicateCall, Program, RepeatStmt, WhileStmt,
    iter_commands,
)
from craftscript.core.constants import (
    DEFAULT_OP_LIMIT, DEFAULT_SCAN_RADIUS,
    MAX_FUNCTION_DEPTH as _MAX_FUNCTION_DEPTH,
    MAX_ITERATIONS as _MAX_ITERATIONS,
    MAX_MACRO_DEPTH as _MAX_MACRO_DEPTH,
)
from craftscript.core.errors import (
    AbsoluteLookupError, CancellationError, ConnectionLost, CraftscriptError,
    EvaluationError, OpLimitExceeded, ScopeError, ScriptAssertionError,
    ScriptSyntaxError,
)
from craftscript.core.executor import Actor, CommandCall, CommandTable
from craftscript.core.expression import Evaluator, as_count, is_number
from craftscript.core.functions import CustomFunction
from craftscript.core.parser import parse
from craftscript.core.results import (
    CraftscriptResult, RunError, RunOutcome, RunStatus, StepFailure,
    StepSuccess, TraceEvent,
)
from craftscript.core.selector import Resolver
from craftscript.core.variable_store import MacroEntry, MacroTable, VariableStore

LogFn   = Callable[[str, str], None]       # (level, message)
StepFn  = Callable[[CraftscriptResult], None]
TraceFn = Callable[[TraceEvent], None]

# Errors that fail one command but let the run continue
_STEP_ERRORS = (ScopeError, AbsoluteLookupError, EvaluationError)
# Errors that always end the run, even when a handler raises them
_FATAL_ERRORS = (OpLimitExceeded, CancellationError, ConnectionLost, ScriptAssertionError)

_STATUS_FOR: dict[type, RunStatus] = {
    OpLimitExceeded:   RunStatus.OP_LIMIT_EXCEEDED,
    CancellationError: RunStatus.CANCELLED,
    ConnectionLost:    RunStatus.CONNECTION_LOST,
    ScriptSyntaxError: RunStatus.SYNTAX_ERROR,
}

_PARAM_TYPES: dict[str, str] = {"int": "an integer", "bool": "a boolean", "string": "a string"}


@dataclass
class RunOptions:
    op_limit:             int  = DEFAULT_OP_LIMIT
    default_scan_radius:  int  = DEFAULT_SCAN_RADIUS
    auto_scan_before_ops: bool = True
    on_step:              StepFn | None  = None
    on_trace:             TraceFn | None = None
    function_store:       Any = None      # FunctionStore
    waypoints:            Any = None      # WaypointBook
    actor_id:             str | None = None
    correlation_id:       str | None = None
    log_fn:               LogFn | None = None
    stop_event:           threading.Event | None = None


def _elapsed_ms(t0: float) -> int:
    return int((time.perf_counter() - t0) * 1000)


def _bind_param(param_type: str, value: Any, name: str) -> Any:
    if param_type == "int":
        if is_number(value) and float(value).is_integer():
            return int(value)
    elif param_type == "bool":
        if isinstance(value, bool):
            return value
    elif param_type == "string":
        if isinstance(value, str):
            return value
    raise EvaluationError(
        f"parameter {name!r} expects {_PARAM_TYPES.get(param_type, param_type)}, got {value!r}",
        notes={"param": name, "type": param_type},
    )


class ScriptRunner:
    """Executes Programs against one actor through one command table.

    A runner may be reused for several sequential runs; per-run state is
    reset by ``run``.  ``cancel`` may be called from any thread.
    """

    def __init__(
        self,
        table:   CommandTable,
        actor:   Actor,
        options: RunOptions | None = None,
    ) -> None:
        self._table      = table
        self._actor      = actor
        self._opts       = options or RunOptions()
        self._log        = self._opts.log_fn or (lambda lvl, msg: None)
        self._stop_event = self._opts.stop_event or threading.Event()
        self._resolver   = Resolver(self._opts.waypoints, getattr(actor, "name", ""))
        self._eval       = Evaluator(
            resolver     = self._resolver,
            context_fn   = actor.heading_context,
            predicate_fn = self._call_predicate,
        )
        self._reset()

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    @property
    def stop_event(self) -> threading.Event:
        return self._stop_event

    def cancel(self) -> None:
        self._stop_event.set()

    async def run(self, program: Program) -> RunOutcome:
        """Execute *program* and return its outcome.  Never raises."""
        self._reset()
        correlation_id = self._opts.correlation_id or uuid.uuid4().hex
        self._log("INFO", f"Run started ({correlation_id})")

        status, error = RunStatus.COMPLETED, None
        try:
            self._preflight(program)
            await self._exec_body(program.body, VariableStore(), MacroTable())
        except CraftscriptError as exc:
            status = _STATUS_FOR.get(type(exc), RunStatus.FAILED)
            error = RunError(
                kind     = exc.kind,
                message  = exc.message,
                location = exc.location,
                op_index = self._next_index - 1 if self._next_index else None,
                notes    = exc.notes,
            )
        except Exception as exc:            # noqa: BLE001
            status = RunStatus.FAILED
            error = RunError(
                kind     = "internal_error",
                message  = str(exc) or type(exc).__name__,
                op_index = self._next_index - 1 if self._next_index else None,
                notes    = {"exception": type(exc).__name__},
            )

        if status is RunStatus.COMPLETED:
            self._log("SUCCESS", f"Run completed ({self._ops} ops, {len(self._results)} steps)")
        elif status is RunStatus.CANCELLED:
            self._log("INFO", f"Run cancelled after {self._ops} ops")
        else:
            where = f" at line {error.location.line}" if error.location else ""
            self._log("ERROR", f"Run stopped{where}: [{error.kind}] {error.message}")

        return RunOutcome(
            status         = status,
            results        = list(self._results),
            ops            = self._ops,
            error          = error,
            correlation_id = correlation_id,
        )

    # ------------------------------------------------------------------
    # Per-run state
    # ------------------------------------------------------------------

    def _reset(self) -> None:
        self._ops            = 0
        self._next_index     = 0
        self._results: list[CraftscriptResult] = []
        self._last: CraftscriptResult | None   = None
        self._functions: dict[str, CustomFunction | None] = {}
        self._function_asts: dict[str, Program] = {}
        self._function_depth = 0
        self._macro_depth    = 0

    def _preflight(self, program: Program) -> None:
        """Reject command names nothing could ever answer, before any command runs."""
        declared = {m.name for m in _iter_macros(program.body)}
        for cmd in iter_commands(program.body):
            if cmd.name in self._table or cmd.name in declared:
                continue
            if self._lookup_function(cmd.name) is not None:
                continue
            raise ScopeError(f"unknown command {cmd.name!r}", location=cmd.loc,
                             notes={"command": cmd.name})

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    async def _exec_body(self, body, scope: VariableStore, macros: MacroTable) -> None:
        for st in body:
            if isinstance(st, MacroDecl):
                macros.define(st, scope)
        for st in body:
            self._check_stop()
            try:
                await self._exec(st, scope, macros)
            except CraftscriptError as exc:
                if exc.location is None:
                    exc.location = st.loc
                raise

    async def _exec_block(self, block: Block, scope: VariableStore, macros: MacroTable) -> None:
        await self._exec_body(block.body, scope.child(), macros.child())

    async def _exec(self, st, scope: VariableStore, macros: MacroTable) -> None:
        if   isinstance(st, CommandStmt): await self._run_command(st, scope, macros)
        elif isinstance(st, LetStmt):     await self._run_let(st, scope)
        elif isinstance(st, AssignStmt):  await self._run_assign(st, scope)
        elif isinstance(st, IfStmt):      await self._run_if(st, scope, macros)
        elif isinstance(st, RepeatStmt):  await self._run_repeat(st, scope, macros)
        elif isinstance(st, WhileStmt):   await self._run_while(st, scope, macros)
        elif isinstance(st, AssertStmt):  await self._run_assert(st, scope)
        elif isinstance(st, Block):       await self._exec_block(st, scope, macros)
        elif isinstance(st, (MacroDecl, EmptyStmt)):
            pass                            # macros are hoisted by _exec_body

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------

    async def _run_let(self, st: LetStmt, scope: VariableStore) -> None:
        value = await self._eval.evaluate(st.value, scope)
        scope.declare(st.name, value)
        self._trace("var_set", name=st.name, value=_trace_value(value), declared=True)

    async def _run_assign(self, st: AssignStmt, scope: VariableStore) -> None:
        value = await self._eval.evaluate(st.value, scope)
        scope.assign(st.name, value)
        self._trace("var_set", name=st.name, value=_trace_value(value), declared=False)

    # ------------------------------------------------------------------
    # Control flow
    # ------------------------------------------------------------------

    async def _run_if(self, st: IfStmt, scope: VariableStore, macros: MacroTable) -> None:
        test = await self._eval.test(st.test, scope)
        self._trace("if", value=test, line=_line(st))
        if test:
            await self._exec_block(st.consequent, scope, macros)
        elif st.alternate is not None:
            await self._exec_block(st.alternate, scope, macros)

    async def _run_repeat(self, st: RepeatStmt, scope: VariableStore, macros: MacroTable) -> None:
        if st.is_range:
            await self._run_range(st, scope, macros)
            return

        count = as_count(await self._eval.evaluate(st.count, scope), "repeat count")
        self._trace("repeat_init", count=count, line=_line(st))
        for i in range(max(0, count)):
            self._loop_guard(i, st)
            self._trace("repeat_iter", index=i)
            await self._exec_block(st.body, scope, macros)
        self._trace("repeat_end", iterations=max(0, count))

    async def _run_range(self, st: RepeatStmt, scope: VariableStore, macros: MacroTable) -> None:
        start = await self._number(st.start, scope, "range start")
        end   = await self._number(st.end, scope, "range end")
        step  = 1 if st.step is None else await self._number(st.step, scope, "range step")
        if step == 0:
            raise EvaluationError("repeat step must not be zero", location=st.loc)

        self._trace("repeat_init", var=st.var_name, start=start, end=end, step=step, line=_line(st))
        loop_scope = scope.child()
        loop_scope.declare(st.var_name, start)
        i, iterations = start, 0
        while (i < end) if step > 0 else (i > end):
            self._loop_guard(iterations, st)
            loop_scope.assign(st.var_name, i)
            self._trace("repeat_iter", var=st.var_name, value=i)
            await self._exec_block(st.body, loop_scope, macros)
            i += step
            iterations += 1
        self._trace("repeat_end", var=st.var_name, iterations=iterations)

    async def _run_while(self, st: WhileStmt, scope: VariableStore, macros: MacroTable) -> None:
        iterations = 0
        while True:
            self._check_stop()
            test = await self._eval.test(st.test, scope)
            self._trace("while_iter", value=test, iteration=iterations)
            if not test:
                return
            self._loop_guard(iterations, st)
            await self._exec_block(st.body, scope, macros)
            iterations += 1

    async def _run_assert(self, st: AssertStmt, scope: VariableStore) -> None:
        value = await self._eval.test(st.test, scope)
        self._trace("assert", value=value, message=st.message, line=_line(st))
        if not value:
            raise ScriptAssertionError(st.message or "assertion failed", location=st.loc)

    def _loop_guard(self, iterations: int, st) -> None:
        self._check_stop()
        if iterations >= _MAX_ITERATIONS:
            raise OpLimitExceeded(
                f"loop iteration limit ({_MAX_ITERATIONS}) exceeded",
                location=st.loc, notes={"iterationLimit": _MAX_ITERATIONS},
            )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def _run_command(self, st: CommandStmt, scope: VariableStore, macros: MacroTable) -> None:
        if st.name in self._table:
            await self._run_atomic(st, scope)
            return
        entry = macros.lookup(st.name)
        if entry is not None:
            await self._call_macro(entry, st, scope)
            return
        func = self._lookup_function(st.name)
        if func is not None:
            await self._call_function(func, st, scope)
            return
        raise ScopeError(f"unknown command {st.name!r}", location=st.loc,
                         notes={"command": st.name})

    async def _run_atomic(self, st: CommandStmt, scope: VariableStore) -> None:
        self._check_stop()
        limit = self._opts.op_limit
        if self._ops >= limit:
            raise OpLimitExceeded(
                f"op limit ({limit}) reached before {st.name!r}",
                location=st.loc, notes={"opLimit": limit, "op": st.name},
            )

        entry = self._table.get(st.name)
        self._ops += 1
        t0 = time.perf_counter()
        try:
            if self._opts.auto_scan_before_ops and entry.spatial:
                await self._actor.scan(self._opts.default_scan_radius)
            positional, named = await self._eval.evaluate_args(st.args, scope)
            ctx = self._actor.heading_context()
        except _STEP_ERRORS as exc:
            self._fail(st.name, exc, st)
            return
        except CraftscriptError:
            raise
        except Exception as exc:            # noqa: BLE001
            self._fail(st.name, exc, st)
            return

        call = CommandCall(
            name     = st.name,
            args     = positional,
            named    = named,
            ctx      = ctx,
            location = st.loc,
            stmt     = st,
        )
        self._trace("command_start", op=st.name, line=_line(st))
        try:
            notes = await entry.invoke(call)
        except _FATAL_ERRORS:
            raise
        except Exception as exc:            # noqa: BLE001
            self._fail(st.name, exc, st)
        else:
            self._succeed(st.name, t0, notes)

    # ------------------------------------------------------------------
    # Macros
    # ------------------------------------------------------------------

    async def _call_macro(self, entry: MacroEntry, st: CommandStmt, scope: VariableStore) -> None:
        decl = entry.decl
        if self._macro_depth >= _MAX_MACRO_DEPTH:
            self._fail(st.name, CraftscriptError(
                f"macro depth limit ({_MAX_MACRO_DEPTH}) exceeded in {decl.name!r}"), st)
            return
        try:
            bound = await self._bind_macro_args(decl, st, scope)
        except _STEP_ERRORS as exc:
            self._fail(st.name, exc, st)
            return

        call_scope = entry.scope.child()
        for name, value in bound.items():
            call_scope.declare(name, value)

        self._trace("macro_enter", name=decl.name,
                    args={k: _trace_value(v) for k, v in bound.items()}, line=_line(st))
        self._macro_depth += 1
        try:
            await self._exec_body(decl.body.body, call_scope, entry.table.child())
        finally:
            self._macro_depth -= 1
        self._trace("macro_exit", name=decl.name)

    async def _bind_macro_args(self, decl: MacroDecl, st: CommandStmt, scope: VariableStore) -> dict[str, Any]:
        params = {p.name: p for p in decl.params}
        positional, named = await self._eval.evaluate_args(st.args, scope)
        if len(positional) > len(decl.params):
            raise ScopeError(
                f"macro {decl.name!r} takes {len(decl.params)} argument(s), got {len(positional)}"
            )
        bound: dict[str, Any] = {}
        for param, value in zip(decl.params, positional):
            bound[param.name] = value
        for key, value in named.items():
            if key not in params:
                raise ScopeError(f"macro {decl.name!r} has no parameter {key!r}")
            if key in bound:
                raise ScopeError(f"parameter {key!r} of {decl.name!r} given twice")
            bound[key] = value
        for param in decl.params:
            if param.name not in bound:
                raise ScopeError(f"missing argument {param.name!r} for macro {decl.name!r}")
            bound[param.name] = _bind_param(param.param_type, bound[param.name], param.name)
        return {p.name: bound[p.name] for p in decl.params}

    # ------------------------------------------------------------------
    # Custom functions
    # ------------------------------------------------------------------

    def _lookup_function(self, name: str) -> CustomFunction | None:
        if name not in self._functions:
            store = self._opts.function_store
            func = None
            if store is not None and self._opts.actor_id is not None:
                func = store.get_function(self._opts.actor_id, name)
            self._functions[name] = func
        return self._functions[name]

    async def _call_function(self, func: CustomFunction, st: CommandStmt, scope: VariableStore) -> None:
        t0 = time.perf_counter()
        if self._function_depth >= _MAX_FUNCTION_DEPTH:
            self._fail(st.name, CraftscriptError(
                f"function depth limit ({_MAX_FUNCTION_DEPTH}) exceeded in {func.name!r}"), st)
            return

        program = self._function_asts.get(func.name)
        if program is None:
            try:
                program = parse(func.body)
            except ScriptSyntaxError as exc:
                self._fail(st.name, ScriptSyntaxError(
                    f"cannot parse function {func.name!r}: {exc}", exc.line, exc.column), st)
                return
            self._function_asts[func.name] = program

        try:
            fn_scope = await self._bind_function_args(func, st, scope)
        except _STEP_ERRORS as exc:
            self._fail(st.name, exc, st)
            return

        self._trace("macro_enter", name=func.name, function=True,
                    version=func.current_version, line=_line(st))
        self._function_depth += 1
        try:
            await self._exec_body(program.body, fn_scope, MacroTable())
        finally:
            self._function_depth -= 1
        self._trace("macro_exit", name=func.name, function=True)
        self._succeed(st.name, t0, {"function": func.name, "version": func.current_version})

    async def _bind_function_args(self, func: CustomFunction, st: CommandStmt, scope: VariableStore) -> VariableStore:
        if any(not isinstance(a, NamedArg) for a in st.args):
            raise ScopeError(f"function {func.name!r} takes named arguments only")
        _, named = await self._eval.evaluate_args(st.args, scope)
        known = {a.name for a in func.args}
        unknown = sorted(set(named) - known)
        if unknown:
            raise ScopeError(f"function {func.name!r} has no argument {unknown[0]!r}")

        fn_scope = VariableStore()
        for arg in func.args:
            if arg.name in named:
                fn_scope.declare(arg.name, named[arg.name])
            elif arg.optional:
                fn_scope.declare(arg.name, arg.default)
            else:
                raise ScopeError(
                    f"missing required argument {arg.name!r} for function {func.name!r}",
                    notes={"function": func.name, "argument": arg.name},
                )
        return fn_scope

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------

    async def _call_predicate(self, name: str, positional: tuple, named: dict, node: PredicateCall) -> bool:
        if name == "last_ok":
            value = self._last is not None and self._last.ok
        elif name == "last_error":
            kind = positional[0] if positional else named.get("kind")
            value = self._last is not None and not self._last.ok and (
                kind is None or self._last.error_kind == kind
            )
        else:
            fn = self._table.get_predicate(name)
            if fn is None:
                raise ScopeError(f"unknown predicate {name!r}", location=node.loc,
                                 notes={"predicate": name})
            call = CommandCall(
                name=name, args=positional, named=named,
                ctx=self._actor.heading_context(), location=node.loc, stmt=node,
            )
            try:
                value = await self._table.check(name, call)
            except CraftscriptError:
                raise
            except Exception as exc:        # noqa: BLE001
                raise EvaluationError(f"predicate {name!r} failed: {exc}",
                                      location=node.loc) from exc
        self._trace("predicate", name=name, value=bool(value))
        return bool(value)

    # ------------------------------------------------------------------
    # Results / callbacks
    # ------------------------------------------------------------------

    def _succeed(self, op: str, t0: float, notes: dict | None) -> None:
        result = StepSuccess(op=op, elapsed_ms=_elapsed_ms(t0),
                             op_index=self._next_index, notes=notes)
        self._trace("ok", op=op, opIndex=result.op_index)
        self._emit(result)

    def _fail(self, op: str, exc: BaseException, st: CommandStmt) -> None:
        if isinstance(exc, CraftscriptError):
            kind, message, notes = exc.kind, exc.message, exc.notes
        else:
            kind, message, notes = "command_error", str(exc) or type(exc).__name__, None
        result = StepFailure(
            error_kind=kind, message=message, location=st.loc,
            op_index=self._next_index, op=op, notes=notes,
        )
        self._log("WARNING", f"{op} failed [{kind}]: {message}")
        self._trace("fail", op=op, opIndex=result.op_index, errorKind=kind)
        self._emit(result)

    def _emit(self, result: CraftscriptResult) -> None:
        self._next_index += 1
        self._results.append(result)
        self._last = result
        if self._opts.on_step is not None:
            try:
                self._opts.on_step(result)
            except Exception as exc:        # noqa: BLE001
                self._log("WARNING", f"on_step callback raised: {exc!r}")

    def _trace(self, kind: str, **data: Any) -> None:
        if self._opts.on_trace is None:
            return
        try:
            self._opts.on_trace(TraceEvent(kind, data))
        except Exception as exc:            # noqa: BLE001
            self._log("WARNING", f"on_trace callback raised: {exc!r}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_stop(self) -> None:
        if self._stop_event.is_set():
            raise CancellationError("run cancelled")

    async def _number(self, expr, scope: VariableStore, what: str) -> Any:
        value = await self._eval.evaluate(expr, scope)
        if not is_number(value):
            raise EvaluationError(f"{what} must be a number, got {value!r}",
                                  location=getattr(expr, "loc", None))
        return value


# ---------------------------------------------------------------------------
# Module helpers
# ---------------------------------------------------------------------------

def _line(node) -> int | None:
    return node.loc.line if node.loc is not None else None


def _trace_value(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    to_list = getattr(value, "to_list", None)
    return to_list() if callable(to_list) else repr(value)


def _iter_macros(body):
    for node in body:
        if isinstance(node, MacroDecl):
            yield node
            yield from _iter_macros(node.body.body)
        elif isinstance(node, Block):
            yield from _iter_macros(node.body)
        elif isinstance(node, IfStmt):
            yield from _iter_macros(node.consequent.body)
            if node.alternate is not None:
                yield from _iter_macros(node.alternate.body)
        elif isinstance(node, (RepeatStmt, WhileStmt)):
            yield from _iter_macros(node.body.body)


async def run_script(
    text:    str,
    table:   CommandTable,
    actor:   Actor,
    options: RunOptions | None = None,
) -> RunOutcome:
    """Parse and run *text*.  A syntax error yields a SYNTAX_ERROR outcome with no results."""
    opts = options or RunOptions()
    try:
        program = parse(text)
    except ScriptSyntaxError as exc:
        (opts.log_fn or (lambda lvl, msg: None))("ERROR", f"Syntax error: {exc}")
        return RunOutcome(
            status=RunStatus.SYNTAX_ERROR,
            error=RunError(kind=exc.kind, message=exc.message, location=exc.location),
            correlation_id=opts.correlation_id,
        )
    return await ScriptRunner(table, actor, opts).run(program)
