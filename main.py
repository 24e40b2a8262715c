"""CraftScript — dry-run entry point.

    python main.py build.cs
    python main.py --inline 'repeat(3) { dig(f); move(f); }'
    python main.py build.cs --check          # syntax only
"""
import argparse
import asyncio
import json
import sys
from pathlib import Path

from craftscript.core.errors import ScriptSyntaxError
from craftscript.core.parser import parse
from craftscript.core.runner import run_script
from craftscript.core.sandbox import SandboxActor, sandbox_table
from craftscript.core.settings_manager import SettingsManager
from craftscript.utils.log import console_log_fn

BASE_DIR = Path(__file__).parent


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="craftscript", description="Run a CraftScript against the offline sandbox.")
    src = p.add_mutually_exclusive_group(required=True)
    src.add_argument("script", nargs="?", type=Path, help="script file")
    src.add_argument("--inline", "-e", metavar="TEXT", help="script text")
    p.add_argument("--settings", type=Path, default=BASE_DIR / "settings.ini")
    p.add_argument("--op-limit", type=int, help="override [CRAFTSCRIPT] op_limit")
    p.add_argument("--check", action="store_true", help="parse only")
    p.add_argument("--trace", action="store_true", help="print trace events")
    p.add_argument("--json", action="store_true", help="print the outcome as JSON")
    p.add_argument("--verbose", "-v", action="store_true")
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    text = args.inline if args.inline is not None else args.script.read_text(encoding="utf-8")
    log = console_log_fn(min_level="DEBUG" if args.verbose else "INFO")

    if args.check:
        try:
            parse(text)
        except ScriptSyntaxError as exc:
            log("ERROR", f"Syntax error: {exc}")
            return 2
        log("SUCCESS", "Syntax OK")
        return 0

    settings = SettingsManager(args.settings)
    overrides = {"log_fn": log}
    if args.op_limit is not None:
        overrides["op_limit"] = args.op_limit
    if args.trace:
        overrides["on_trace"] = lambda ev: log("DEBUG", json.dumps(ev.to_dict(), default=str))
    if not args.json:
        overrides["on_step"] = lambda r: log("INFO" if r.ok else "WARNING", json.dumps(r.to_dict()))
    options = settings.run_options(base_dir=BASE_DIR, **overrides)

    actor = SandboxActor(name=settings.actor_id or "sandbox")
    outcome = asyncio.run(run_script(text, sandbox_table(actor), actor, options))

    if args.json:
        print(json.dumps(outcome.to_dict(), indent=2))
    return 0 if outcome.ok else 1


if __name__ == "__main__":
    sys.exit(main())
