"""
Usage job scheduler — the two recurring background jobs of the usage core.

    daily_usage_sync      every day, sync all workspaces' counters to the database
    monthly_click_reset   first day of each month, zero the click counters

Never runs inside HTTP request cycles. Cron endpoints call run_job() directly;
a long-lived worker calls tick() periodically and the scheduler decides which
jobs are due. Each run is fire-and-forget: a failing job is logged and
reported, never raised.
"""
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

INTERVAL_DAILY = 'daily'
INTERVAL_MONTHLY = 'monthly'


@dataclass
class ScheduledJob:
    name: str
    interval: str  # INTERVAL_DAILY | INTERVAL_MONTHLY
    func: Callable
    last_run: Optional[datetime] = None

    def is_due(self, now):
        """Daily jobs run once per UTC day; monthly jobs once, on the 1st."""
        if self.interval == INTERVAL_DAILY:
            return self.last_run is None or self.last_run.date() < now.date()
        if self.interval == INTERVAL_MONTHLY:
            if now.day != 1:
                return False
            return self.last_run is None or (
                (self.last_run.year, self.last_run.month) != (now.year, now.month)
            )
        raise ValueError(f'Unknown job interval: {self.interval}')


def _daily_usage_sync():
    from core.usage.reconciler import sync_all_workspaces
    return sync_all_workspaces()


def _monthly_click_reset():
    from core.usage.reconciler import reset_monthly_counters
    return {'workspaces_reset': reset_monthly_counters()}


def default_jobs():
    return [
        ScheduledJob('daily_usage_sync', INTERVAL_DAILY, _daily_usage_sync),
        ScheduledJob('monthly_click_reset', INTERVAL_MONTHLY, _monthly_click_reset),
    ]


class UsageJobScheduler:
    """Holds the job table and the last-run bookkeeping for one worker."""

    def __init__(self, jobs=None):
        self.jobs = {job.name: job for job in (jobs if jobs is not None else default_jobs())}

    def run_job(self, name, now=None):
        """Run one job immediately.

        Returns:
            dict with job, success, result or error, elapsed_seconds.

        Raises:
            KeyError: no job with that name.
        """
        job = self.jobs[name]
        start = time.monotonic()
        try:
            result = job.func()
        except Exception as e:
            print(f'[cron] Job {name} failed: {e}')
            return {
                'job': name,
                'success': False,
                'error': str(e),
                'elapsed_seconds': round(time.monotonic() - start, 2),
            }

        job.last_run = now or datetime.utcnow()
        elapsed = round(time.monotonic() - start, 2)
        print(f'[cron] Job {name} completed in {elapsed}s')
        return {
            'job': name,
            'success': True,
            'result': result,
            'elapsed_seconds': elapsed,
        }

    def due_jobs(self, now=None):
        now = now or datetime.utcnow()
        return [job for job in self.jobs.values() if job.is_due(now)]

    def tick(self, now=None):
        """Run every job that is due at now. Returns the list of run reports."""
        now = now or datetime.utcnow()
        return [self.run_job(job.name, now=now) for job in self.due_jobs(now)]


SCHEDULER_EXTENSION_KEY = 'usage_scheduler'


def get_scheduler(app=None):
    """The app's UsageJobScheduler, created on first use."""
    from flask import current_app

    app = app or current_app
    scheduler = app.extensions.get(SCHEDULER_EXTENSION_KEY)
    if scheduler is None:
        scheduler = UsageJobScheduler()
        app.extensions[SCHEDULER_EXTENSION_KEY] = scheduler
    return scheduler
