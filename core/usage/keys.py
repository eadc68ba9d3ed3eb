"""
Fast-store key naming and calendar helpers.

    workspace:<id>:links
    workspace:<id>:clicks:<YYYY-MM>
    workspace:<id>:members
    workspace:<id>:sync:lock

Click keys carry the UTC month so a new month starts on a fresh key.
"""
from __future__ import annotations

from datetime import datetime


def month_label(now: datetime | None = None) -> str:
    """Return the UTC year-month label, e.g. '2026-10'."""
    now = now or datetime.utcnow()
    return now.strftime('%Y-%m')


def start_of_month(now: datetime | None = None) -> datetime:
    now = now or datetime.utcnow()
    return datetime(now.year, now.month, 1)


def start_of_next_month(now: datetime | None = None) -> datetime:
    now = now or datetime.utcnow()
    if now.month == 12:
        return datetime(now.year + 1, 1, 1)
    return datetime(now.year, now.month + 1, 1)


def end_of_month(now: datetime | None = None) -> datetime:
    """Last calendar day of the month (midnight), used as a monthly row's period_end."""
    nxt = start_of_next_month(now)
    return datetime.fromordinal(nxt.toordinal() - 1)


def workspace_links_key(workspace_id) -> str:
    return f'workspace:{workspace_id}:links'


def workspace_clicks_key(workspace_id, month: str | None = None, now: datetime | None = None) -> str:
    return f'workspace:{workspace_id}:clicks:{month or month_label(now)}'


def workspace_members_key(workspace_id) -> str:
    return f'workspace:{workspace_id}:members'


def usage_sync_lock_key(workspace_id) -> str:
    return f'workspace:{workspace_id}:sync:lock'


def usage_key(workspace_id, metric: str, now: datetime | None = None) -> str:
    """Counter key for a (workspace, metric) pair."""
    if metric == 'links':
        return workspace_links_key(workspace_id)
    if metric == 'clicks':
        return workspace_clicks_key(workspace_id, now=now)
    if metric == 'users':
        return workspace_members_key(workspace_id)
    raise ValueError(f'Unknown usage metric: {metric}')
