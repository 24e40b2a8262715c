"""Script job runner.

Architecture
------------
ScriptPlayer (one per host, lives on the event loop)
  └─ ScriptJob (one per create_job() call), run as an asyncio task
       ├─ parser.parse()          — script text → Program
       └─ runner.ScriptRunner.run — execute with the job's stop event

Job states
----------
queued → running → completed | failed | canceled

``cancel`` sets the job's stop event; the runner notices it at the next
statement, loop iteration or command.  Jobs that never started are marked
canceled immediately.  Only the newest ``keep_finished`` finished jobs are
remembered.  Two jobs driving the same actor at once is the
caller's problem.
"""
from __future__ import annotations

import asyncio
import dataclasses
import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from craftscript.core.constants import MAX_FINISHED_JOBS
from craftscript.core.errors import ScriptSyntaxError
from craftscript.core.executor import Actor, CommandTable
from craftscript.core.parser import parse
from craftscript.core.results import CraftscriptResult, RunOutcome, RunStatus
from craftscript.core.runner import RunOptions, ScriptRunner

LogFn = Callable[[str, str], None]


class JobState(str, Enum):
    QUEUED    = "queued"
    RUNNING   = "running"
    COMPLETED = "completed"
    FAILED    = "failed"
    CANCELED  = "canceled"

    @property
    def finished(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED, JobState.CANCELED)


@dataclass
class ScriptJob:
    id:          str
    script:      str
    state:       JobState = JobState.QUEUED
    created_at:  float = field(default_factory=time.time)
    started_at:  float | None = None
    ended_at:    float | None = None
    last_step:   CraftscriptResult | None = None
    error:       str | None = None
    outcome:     RunOutcome | None = None
    stop_event:  threading.Event = field(default_factory=threading.Event, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "state": self.state.value,
            "startedAt": self.started_at,
            "endedAt": self.ended_at,
            "lastStep": self.last_step.to_dict() if self.last_step else None,
            "error": self.error,
            "outcome": self.outcome.to_dict() if self.outcome else None,
        }


def _job_id() -> str:
    return "cs_" + uuid.uuid4().hex[:8]


class ScriptPlayer:
    """Creates, tracks and cancels script jobs for one actor.

    Parameters
    ----------
    table : CommandTable
    actor : Actor
    options : RunOptions | None
        Template for every job; callbacks and stop event are set per job.
    keep_finished : int
        How many finished jobs stay visible to status() and jobs().
    """

    def __init__(
        self,
        table:   CommandTable,
        actor:   Actor,
        options: RunOptions | None = None,
        log_fn:  LogFn | None = None,
        keep_finished: int = MAX_FINISHED_JOBS,
    ) -> None:
        self._table   = table
        self._actor   = actor
        self._options = options or RunOptions()
        self._log     = log_fn or self._options.log_fn or (lambda lvl, msg: None)
        self._jobs:  dict[str, ScriptJob] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._keep_finished = keep_finished

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def create_job(self, script: str) -> ScriptJob:
        """Queue *script* and schedule it on the running event loop."""
        job = ScriptJob(id=_job_id(), script=script)
        self._jobs[job.id] = job
        task = asyncio.get_running_loop().create_task(self._run_job(job))
        task.add_done_callback(lambda _t: self._tasks.pop(job.id, None))
        self._tasks[job.id] = task
        self._log("INFO", f"Job {job.id} queued")
        return job

    def status(self, job_id: str) -> ScriptJob | None:
        return self._jobs.get(job_id)

    def jobs(self) -> list[ScriptJob]:
        return list(self._jobs.values())

    def cancel(self, job_id: str) -> bool:
        """Request cancellation.  Returns False for unknown or finished jobs."""
        job = self._jobs.get(job_id)
        if job is None or job.state.finished:
            return False
        job.stop_event.set()
        if job.state is JobState.QUEUED:
            self._finish(job, JobState.CANCELED)
        self._log("INFO", f"Job {job.id} cancel requested")
        return True

    async def wait(self, job_id: str) -> ScriptJob:
        job = self._jobs[job_id]
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.shield(task)
        return job

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    async def _run_job(self, job: ScriptJob) -> None:
        await asyncio.sleep(0)             # let create_job return first
        if job.state.finished:
            return

        job.state = JobState.RUNNING
        job.started_at = time.time()
        try:
            program = parse(job.script)
        except ScriptSyntaxError as exc:
            job.error = str(exc)
            self._finish(job, JobState.FAILED)
            return

        def on_step(result: CraftscriptResult) -> None:
            job.last_step = result
            if self._options.on_step is not None:
                self._options.on_step(result)

        options = dataclasses.replace(
            self._options,
            on_step        = on_step,
            stop_event     = job.stop_event,
            correlation_id = job.id,
            log_fn         = self._log,
        )
        try:
            outcome = await ScriptRunner(self._table, self._actor, options).run(program)
        except Exception as exc:           # noqa: BLE001
            job.error = f"{type(exc).__name__}: {exc}"
            self._finish(job, JobState.FAILED)
            return

        job.outcome = outcome
        if outcome.status is RunStatus.CANCELLED:
            self._finish(job, JobState.CANCELED)
        elif outcome.ok and not outcome.failures:
            self._finish(job, JobState.COMPLETED)
        else:
            failure = outcome.error or outcome.failures[0]
            job.error = failure.message
            self._finish(job, JobState.FAILED)

    def _finish(self, job: ScriptJob, state: JobState) -> None:
        job.state = state
        job.ended_at = time.time()
        level = {"completed": "SUCCESS", "failed": "ERROR"}.get(state.value, "INFO")
        suffix = f": {job.error}" if job.error else ""
        self._log(level, f"Job {job.id} {state.value}{suffix}")
        self._prune()

    def _prune(self) -> None:
        finished = [j.id for j in self._jobs.values() if j.state.finished]
        for job_id in finished[:max(0, len(finished) - self._keep_finished)]:
            del self._jobs[job_id]
