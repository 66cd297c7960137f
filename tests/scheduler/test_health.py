"""
Tests for health classification.

Health is derived from the last three runs: 0 failures healthy,
1 degraded, 2 or more unhealthy. Runs still in flight do not count.
"""

from datetime import datetime, timedelta, timezone

import pytest

from billing_cron.scheduler import HealthStatus, JobRun, JobRunStatus, JobType, evaluate_health


BASE = datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc)


def _runs(*statuses: JobRunStatus) -> list[JobRun]:
    """Build runs newest first, one minute apart."""
    runs = []
    for i, status in enumerate(statuses):
        started = BASE - timedelta(minutes=i)
        run = JobRun.start(JobType.VOUCHER_SYNC, started)
        if status != JobRunStatus.RUNNING:
            run = run.complete(status, completed_at=started)
        runs.append(run)
    return runs


S = JobRunStatus.SUCCESS
E = JobRunStatus.ERROR
R = JobRunStatus.RUNNING


class TestEvaluateHealth:
    def test_no_runs_is_healthy(self):
        assert evaluate_health([]) == HealthStatus.HEALTHY

    @pytest.mark.parametrize(
        "statuses, expected",
        [
            ((S, S, S), HealthStatus.HEALTHY),
            ((E, S, S), HealthStatus.DEGRADED),
            ((S, S, E), HealthStatus.DEGRADED),
            ((E, E, S), HealthStatus.UNHEALTHY),
            ((E, S, E), HealthStatus.UNHEALTHY),
            ((E, E, E), HealthStatus.UNHEALTHY),
        ],
    )
    def test_failures_in_window(self, statuses, expected):
        assert evaluate_health(_runs(*statuses)) == expected

    def test_only_three_most_recent_count(self):
        assert evaluate_health(_runs(S, S, S, E, E)) == HealthStatus.HEALTHY

    def test_running_run_is_not_a_failure(self):
        assert evaluate_health(_runs(R, E, S)) == HealthStatus.DEGRADED
