"""
Usage reader — current usage per metric, fast store first, database second.

A cache hit returns straight from Redis. On a miss (or when Redis is down)
the count is recomputed from ground-truth rows and written back so the next
read is a hit again. Callers never see an error because the cache is gone.
"""
from __future__ import annotations

from datetime import datetime

from core.usage.constants import METRICS
from core.usage.counter_store import get_counter_store
from core.usage.errors import WorkspaceNotFound, InvalidUsageRequest
from core.usage.keys import usage_key, start_of_month, start_of_next_month
from core.usage.limits import resolve_limits, usage_percentage


def validate_metric(metric):
    if metric not in METRICS:
        raise InvalidUsageRequest(f'Unknown usage metric: {metric}', {'metric': metric})


def count_usage_from_database(workspace_id, metric, now: datetime | None = None) -> int:
    """Ground-truth count for a metric straight from the database.

    links: link rows; clicks: click events this UTC month on the workspace's
    links; users: membership rows.
    """
    from models import db, Link, ClickEvent, WorkspaceMembership

    if metric == 'links':
        return Link.query.filter_by(workspace_id=workspace_id).count()

    if metric == 'clicks':
        since = start_of_month(now)
        return (
            db.session.query(db.func.count(ClickEvent.id))
            .join(Link, ClickEvent.link_id == Link.id)
            .filter(Link.workspace_id == workspace_id, ClickEvent.timestamp >= since)
            .scalar()
        ) or 0

    if metric == 'users':
        return WorkspaceMembership.query.filter_by(workspace_id=workspace_id).count()

    raise InvalidUsageRequest(f'Unknown usage metric: {metric}', {'metric': metric})


def get_current_usage(workspace_id, metric) -> int:
    """Current usage for (workspace, metric). Never raises for cache problems."""
    validate_metric(metric)
    store = get_counter_store()
    now = datetime.utcnow()
    key = usage_key(workspace_id, metric, now=now)

    cached = store.get(key)
    if cached.is_hit:
        return cached.value

    if cached.is_unavailable and store.available:
        print(f'[usage] Counter store unreachable, counting {metric} for workspace {workspace_id} from database')

    count = count_usage_from_database(workspace_id, metric, now=now)

    # Repopulate; clicks expire with their month. Best effort if the store is down.
    if store.set(key, count) and metric == 'clicks':
        store.expire_at(key, start_of_next_month(now))

    return count


def load_workspace(workspace_id):
    """Fetch a workspace row or raise WorkspaceNotFound."""
    from models import db, Workspace

    workspace = db.session.get(Workspace, workspace_id) if workspace_id is not None else None
    if workspace is None:
        raise WorkspaceNotFound(workspace_id)
    return workspace


def get_workspace_usage(workspace_id) -> dict:
    """All three counts with their resolved limits and percentages."""
    workspace = load_workspace(workspace_id)

    limits = resolve_limits(workspace)
    usage = {'plan': workspace.plan}
    for metric in METRICS:
        current = get_current_usage(workspace_id, metric)
        limit = limits.for_metric(metric)
        usage[metric] = current
        usage[f'{metric}_limit'] = limit
        usage[f'{metric}_percentage'] = usage_percentage(current, limit)
    return usage
