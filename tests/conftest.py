"""Shared test fixtures."""
import asyncio
import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path so `craftscript.*` imports work
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from craftscript.core.runner import RunOptions, run_script   # noqa: E402
from craftscript.core.sandbox import SandboxActor, sandbox_table   # noqa: E402
from craftscript.core.selector import Vec3   # noqa: E402


@pytest.fixture
def actor():
    """Sandbox actor at (0, 64, 0) facing N, standing on a stone floor."""
    floor = {Vec3(x, 63, z): {"name": "stone"} for x in range(-3, 4) for z in range(-3, 4)}
    return SandboxActor(name="tester", position=Vec3(0, 64, 0), blocks=floor,
                        inventory={"cobblestone": 8})


@pytest.fixture
def table(actor):
    return sandbox_table(actor)


@pytest.fixture
def run(actor, table):
    """run(text, **options) → RunOutcome against the sandbox."""
    def _run(text, **options):
        return asyncio.run(run_script(text, table, actor, RunOptions(**options)))
    return _run
