"""
Usage job scheduler tests.

Verifies:
- The two default jobs and when they are due
- run_job reports success, results and failures without raising
- tick runs only due jobs and records last_run
"""
import pytest
from datetime import datetime

from core.usage.scheduler import (
    ScheduledJob, UsageJobScheduler, INTERVAL_DAILY, INTERVAL_MONTHLY, get_scheduler,
)


@pytest.mark.usage
class TestDueJobs:

    def test_default_jobs(self):
        scheduler = UsageJobScheduler()
        assert set(scheduler.jobs) == {'daily_usage_sync', 'monthly_click_reset'}

    def test_daily_job_due_once_per_day(self):
        job = ScheduledJob('j', INTERVAL_DAILY, lambda: None)
        now = datetime(2026, 10, 19, 3, 0)
        assert job.is_due(now) is True
        job.last_run = datetime(2026, 10, 19, 0, 5)
        assert job.is_due(now) is False
        assert job.is_due(datetime(2026, 10, 20, 0, 0)) is True

    def test_monthly_job_only_on_the_first(self):
        job = ScheduledJob('j', INTERVAL_MONTHLY, lambda: None)
        assert job.is_due(datetime(2026, 10, 2)) is False
        assert job.is_due(datetime(2026, 11, 1, 0, 1)) is True
        job.last_run = datetime(2026, 11, 1, 0, 1)
        assert job.is_due(datetime(2026, 11, 1, 6, 0)) is False
        assert job.is_due(datetime(2026, 12, 1)) is True

    def test_unknown_interval(self):
        with pytest.raises(ValueError):
            ScheduledJob('j', 'hourly', lambda: None).is_due(datetime(2026, 1, 1))

    def test_due_jobs_on_first_of_month(self):
        scheduler = UsageJobScheduler()
        names = {job.name for job in scheduler.due_jobs(datetime(2026, 11, 1, 0, 10))}
        assert names == {'daily_usage_sync', 'monthly_click_reset'}
        names = {job.name for job in scheduler.due_jobs(datetime(2026, 11, 2, 0, 10))}
        assert names == {'daily_usage_sync'}


@pytest.mark.usage
class TestRunJob:

    def test_success_report(self):
        scheduler = UsageJobScheduler([ScheduledJob('ok', INTERVAL_DAILY, lambda: {'n': 3})])
        report = scheduler.run_job('ok', now=datetime(2026, 10, 19))
        assert report['job'] == 'ok'
        assert report['success'] is True
        assert report['result'] == {'n': 3}
        assert report['elapsed_seconds'] >= 0
        assert scheduler.jobs['ok'].last_run == datetime(2026, 10, 19)

    def test_failure_is_reported_not_raised(self):
        def explode():
            raise RuntimeError('redis flushed')

        scheduler = UsageJobScheduler([ScheduledJob('bad', INTERVAL_DAILY, explode)])
        report = scheduler.run_job('bad')
        assert report['success'] is False
        assert report['error'] == 'redis flushed'
        assert scheduler.jobs['bad'].last_run is None

    def test_unknown_job(self):
        with pytest.raises(KeyError):
            UsageJobScheduler().run_job('weekly_digest')

    def test_tick_runs_due_jobs_once(self):
        calls = []
        scheduler = UsageJobScheduler([
            ScheduledJob('daily', INTERVAL_DAILY, lambda: calls.append('daily')),
            ScheduledJob('monthly', INTERVAL_MONTHLY, lambda: calls.append('monthly')),
        ])
        now = datetime(2026, 10, 19, 1, 0)
        reports = scheduler.tick(now)
        assert [r['job'] for r in reports] == ['daily']
        assert scheduler.tick(now) == []
        assert calls == ['daily']

    def test_default_jobs_run_against_the_app(self, app, workspace, fake_redis):
        scheduler = UsageJobScheduler()
        sync = scheduler.run_job('daily_usage_sync')
        reset = scheduler.run_job('monthly_click_reset')
        assert sync['result'] == {'workspaces_processed': 1, 'errors': 0}
        assert reset['result'] == {'workspaces_reset': 1}

    def test_scheduler_is_per_app(self, app):
        assert get_scheduler(app) is get_scheduler(app)
