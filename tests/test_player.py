"""Tests for craftscript.core.player — ScriptPlayer job lifecycle."""
import asyncio

import pytest

from craftscript.core.player import JobState, ScriptPlayer
from craftscript.core.runner import RunOptions


def play(player, script, before_wait=None):
    """Create a job for *script*, optionally poke it, and wait for it."""
    async def scenario():
        job = player.create_job(script)
        if before_wait is not None:
            before_wait(job)
        return await player.wait(job.id)
    return asyncio.run(scenario())


class TestJobs:
    def test_completed(self, table, actor):
        player = ScriptPlayer(table, actor)
        job = play(player, 'say("a"); say("b");')
        assert job.state is JobState.COMPLETED
        assert job.outcome.ok
        assert job.last_step.op == "say"
        assert job.last_step.op_index == 1
        assert job.started_at is not None and job.ended_at >= job.started_at
        assert actor.chat == ["a", "b"]

    def test_job_id_and_correlation(self, table, actor):
        job = play(ScriptPlayer(table, actor), 'say("a");')
        assert job.id.startswith("cs_") and len(job.id) == 11
        assert job.outcome.correlation_id == job.id

    def test_starts_queued(self, table, actor):
        player = ScriptPlayer(table, actor)
        states = []
        play(player, 'say("a");', before_wait=lambda job: states.append(job.state))
        assert states == [JobState.QUEUED]

    def test_syntax_error_fails(self, table, actor):
        job = play(ScriptPlayer(table, actor), "repeat(2) {")
        assert job.state is JobState.FAILED
        assert job.error.startswith("line 1")
        assert job.outcome is None

    def test_failed_step_fails_job(self, table, actor):
        job = play(ScriptPlayer(table, actor), 'dig(f); say("after");')
        assert job.state is JobState.FAILED
        assert job.error == "no block to dig"
        assert actor.chat == ["after"]

    def test_run_error_fails_job(self, table, actor):
        job = play(ScriptPlayer(table, actor), 'assert(false, "stop here");')
        assert job.state is JobState.FAILED
        assert job.error == "stop here"

    def test_to_dict(self, table, actor):
        d = play(ScriptPlayer(table, actor), 'say("a");').to_dict()
        assert d["state"] == "completed"
        assert d["lastStep"]["op"] == "say"
        assert d["outcome"]["status"] == "completed"

    def test_status_and_jobs(self, table, actor):
        player = ScriptPlayer(table, actor)
        job = play(player, 'say("a");')
        assert player.status(job.id) is job
        assert player.status("cs_missing") is None
        assert player.jobs() == [job]

    def test_template_on_step_still_called(self, table, actor):
        seen = []
        player = ScriptPlayer(table, actor, RunOptions(on_step=seen.append))
        play(player, 'say("a");')
        assert [r.op for r in seen] == ["say"]

    def test_create_job_needs_running_loop(self, table, actor):
        with pytest.raises(RuntimeError):
            ScriptPlayer(table, actor).create_job('say("a");')

    def test_logs_lifecycle(self, table, actor):
        logs = []
        player = ScriptPlayer(table, actor, log_fn=lambda lvl, msg: logs.append((lvl, msg)))
        job = play(player, 'say("a");')
        assert ("INFO", f"Job {job.id} queued") in logs
        assert ("SUCCESS", f"Job {job.id} completed") in logs


class TestCancel:
    def test_cancel_queued(self, table, actor):
        player = ScriptPlayer(table, actor)
        results = []
        job = play(player, 'say("a");',
                   before_wait=lambda job: results.append(player.cancel(job.id)))
        assert results == [True]
        assert job.state is JobState.CANCELED
        assert job.started_at is None
        assert actor.chat == []

    def test_cancel_running(self, table, actor):
        player = ScriptPlayer(table, actor)
        current = {}
        table.register("interrupt", lambda call: player.cancel(current["id"]))

        def remember(job):
            current["id"] = job.id

        job = play(player, 'say("a"); interrupt(); say("b");', before_wait=remember)
        assert job.state is JobState.CANCELED
        assert job.outcome.status.value == "cancelled"
        assert actor.chat == ["a"]

    def test_cancel_finished_or_unknown(self, table, actor):
        player = ScriptPlayer(table, actor)
        job = play(player, 'say("a");')
        assert player.cancel(job.id) is False
        assert player.cancel("cs_nothere") is False
        assert job.state is JobState.COMPLETED

    def test_finished_flag(self):
        assert JobState.CANCELED.finished
        assert not JobState.RUNNING.finished


class TestHousekeeping:
    def test_finished_tasks_are_released(self, table, actor):
        player = ScriptPlayer(table, actor)

        async def scenario():
            job = player.create_job('say("a");')
            await player.wait(job.id)
            await asyncio.sleep(0)
            return job

        job = asyncio.run(scenario())
        assert job.state is JobState.COMPLETED
        assert job.id not in player._tasks

    def test_keeps_only_recent_finished_jobs(self, table, actor):
        player = ScriptPlayer(table, actor, keep_finished=2)
        ids = [play(player, f'say("{n}");').id for n in range(3)]
        assert [j.id for j in player.jobs()] == ids[1:]
        assert player.status(ids[0]) is None
        assert actor.chat == ["0", "1", "2"]
