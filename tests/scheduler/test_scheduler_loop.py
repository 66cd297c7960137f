"""
Tests for the scheduler tick loop.

- A tick submits every job type whose next run has arrived
- Nothing is resubmitted while it is in flight or not yet due again
- A failing job never stops other job types
"""

import threading
import time

import pytest

from billing_cron.scheduler import JobRunStatus, JobTrigger, JobType, Scheduler, SchedulerState


# With the clock at 09:30 UTC and an empty history, the two daily jobs
# (07:00 and 02:00) are not due until tomorrow.
DUE_ON_EMPTY_HISTORY = {
    JobType.VOUCHER_SYNC,
    JobType.AGENT_SALES,
    JobType.INVOICE_REMINDER,
    JobType.NOTIFICATION_CHECK,
    JobType.AUTO_ISOLIR,
    JobType.TELEGRAM_HEALTH,
}


class TestTick:
    def test_first_tick_submits_due_jobs(self, scheduler: Scheduler, handlers, history):
        submitted = scheduler.tick()
        assert scheduler.wait_idle(timeout=5)

        assert set(submitted) == DUE_ON_EMPTY_HISTORY
        for job_type in DUE_ON_EMPTY_HISTORY:
            assert handlers[job_type].calls == 1
            run = history.latest(job_type)
            assert run.trigger == JobTrigger.SCHEDULED
            assert run.status == JobRunStatus.SUCCESS
        assert handlers[JobType.INVOICE_GENERATE].calls == 0
        assert handlers[JobType.TELEGRAM_BACKUP].calls == 0

    def test_nothing_due_right_after_runs(self, scheduler: Scheduler):
        scheduler.tick()
        assert scheduler.wait_idle(timeout=5)

        assert scheduler.tick() == {}

    def test_interval_elapsed(self, scheduler: Scheduler, handlers, clock):
        scheduler.tick()
        assert scheduler.wait_idle(timeout=5)

        clock.tick(60)
        submitted = scheduler.tick()
        assert scheduler.wait_idle(timeout=5)

        assert set(submitted) == {JobType.VOUCHER_SYNC}
        assert handlers[JobType.VOUCHER_SYNC].calls == 2
        assert handlers[JobType.AGENT_SALES].calls == 1

    def test_daily_job_due_at_time_of_day(self, scheduler: Scheduler, handlers, clock):
        scheduler.tick()
        assert scheduler.wait_idle(timeout=5)

        # 07:00 next day; the 02:00 backup becomes due on the same tick
        clock.tick((21 * 60 + 30) * 60)
        submitted = scheduler.tick()
        assert scheduler.wait_idle(timeout=5)

        assert JobType.INVOICE_GENERATE in submitted
        assert JobType.TELEGRAM_BACKUP in submitted
        assert handlers[JobType.INVOICE_GENERATE].calls == 1

    def test_in_flight_job_not_resubmitted(self, scheduler: Scheduler, handlers, clock):
        release = handlers[JobType.VOUCHER_SYNC].block()
        scheduler.tick()
        assert handlers[JobType.VOUCHER_SYNC].started.wait(timeout=5)

        clock.tick(120)
        try:
            submitted = scheduler.tick()
            assert JobType.VOUCHER_SYNC not in submitted
        finally:
            release.set()
        assert scheduler.wait_idle(timeout=5)

        assert handlers[JobType.VOUCHER_SYNC].calls == 1

    def test_failing_job_does_not_block_others(self, scheduler: Scheduler, handlers, history):
        handlers[JobType.AUTO_ISOLIR].error = RuntimeError("network control unreachable")

        scheduler.tick()
        assert scheduler.wait_idle(timeout=5)

        assert history.latest(JobType.AUTO_ISOLIR).status == JobRunStatus.ERROR
        assert history.latest(JobType.VOUCHER_SYNC).status == JobRunStatus.SUCCESS

    def test_manual_run_counts_as_last_run(self, scheduler: Scheduler, orchestrator, handlers):
        orchestrator.run(JobType.VOUCHER_SYNC)

        submitted = scheduler.tick()
        assert scheduler.wait_idle(timeout=5)

        assert JobType.VOUCHER_SYNC not in submitted
        assert handlers[JobType.VOUCHER_SYNC].calls == 1


class TestLifecycle:
    def test_start_and_stop(self, scheduler: Scheduler, handlers):
        assert scheduler.state == SchedulerState.STOPPED

        scheduler.start()
        assert scheduler.is_running()
        assert handlers[JobType.VOUCHER_SYNC].started.wait(timeout=5)

        scheduler.stop(timeout=5)

        assert scheduler.state == SchedulerState.STOPPED
        assert not scheduler.is_running()
        assert scheduler.last_tick_at is not None

    def test_start_twice_rejected(self, scheduler: Scheduler):
        scheduler.start()

        with pytest.raises(RuntimeError, match="RUNNING"):
            scheduler.start()

    def test_stop_waits_for_in_flight_run(self, scheduler: Scheduler, handlers, history):
        release = handlers[JobType.VOUCHER_SYNC].block()
        scheduler.start()
        assert handlers[JobType.VOUCHER_SYNC].started.wait(timeout=5)

        # Let the run finish shortly after stop() begins waiting
        def finish_later():
            time.sleep(0.1)
            release.set()

        threading.Thread(target=finish_later).start()
        scheduler.stop(timeout=5)

        assert history.latest(JobType.VOUCHER_SYNC).status == JobRunStatus.SUCCESS

    def test_stop_when_stopped_is_noop(self, scheduler: Scheduler):
        scheduler.stop()
        assert scheduler.state == SchedulerState.STOPPED
