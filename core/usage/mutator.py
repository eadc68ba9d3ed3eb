"""
Usage mutator — apply a committed action's effect to the usage counters.

Called strictly after the business row (link, membership, click) is
committed. Redis is the fast path; when it cannot take the write, the delta
goes straight into the durable usage_metrics row instead.

Clicks are monotonic: they are never decremented, and track_click() never
raises, because the public redirect path must not break over a counter.
"""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import case
from sqlalchemy.exc import SQLAlchemyError

from core.usage.constants import (
    PERIOD_LIFETIME, PERIOD_MONTHLY, LIFETIME_PERIOD_START, LIFETIME_PERIOD_END,
)
from core.usage.counter_store import get_counter_store
from core.usage.keys import usage_key, start_of_month, end_of_month, start_of_next_month
from core.usage.reader import validate_metric


def period_for(metric, now: datetime | None = None):
    """(period, period_start, period_end) of the durable row a metric lives in."""
    if metric == 'clicks':
        return PERIOD_MONTHLY, start_of_month(now), end_of_month(now)
    return PERIOD_LIFETIME, LIFETIME_PERIOD_START, LIFETIME_PERIOD_END


def upsert_usage_metric(workspace_id, metric, value=None, delta=None, now: datetime | None = None):
    """Insert-or-update the usage_metrics row for the metric's current period.

    Pass value for a snapshot write or delta for an increment. Does not commit.
    """
    from models import db, UsageMetric

    now = now or datetime.utcnow()
    period, period_start, period_end = period_for(metric, now)
    natural_key = UsageMetric.query.filter_by(
        workspace_id=workspace_id,
        metric_type=metric,
        period=period,
        period_start=period_start,
    )

    if value is None and delta is not None:
        # Increment in SQL so concurrent fallback writes do not overwrite each other
        updated = natural_key.update({
            UsageMetric.value: UsageMetric.value + delta,
            UsageMetric.updated_at: now,
        }, synchronize_session=False)
        if updated:
            return None

    row = natural_key.first()
    if row is None:
        row = UsageMetric(
            workspace_id=workspace_id,
            metric_type=metric,
            period=period,
            period_start=period_start,
            period_end=period_end,
            value=0,
            created_at=now,
        )
        db.session.add(row)

    if value is not None:
        row.value = value
    elif delta is not None:
        row.value = (row.value or 0) + delta
    row.updated_at = now
    return row


def increment_usage(workspace_id, metric, amount=1):
    """Add amount to the counter, falling back to the durable row if Redis is down."""
    from models import db

    validate_metric(metric)
    store = get_counter_store()
    now = datetime.utcnow()
    key = usage_key(workspace_id, metric, now=now)

    new_value = store.increment(key, amount)

    if new_value is None:
        print(f'[usage] Counter store write failed, persisting {metric} +{amount} '
              f'for workspace {workspace_id} to database')
        upsert_usage_metric(workspace_id, metric, delta=amount, now=now)
        db.session.commit()

    # Re-apply the monthly TTL in case INCRBY just created the key
    if metric == 'clicks':
        store.expire_at(key, start_of_next_month(now))

    return new_value


def decrement_usage(workspace_id, metric, amount=1):
    """Subtract amount from a links/users counter. No-op for clicks.

    An absent counter stays absent: the next read recounts from the database,
    which already reflects the committed delete.
    """
    from models import db, UsageMetric

    validate_metric(metric)
    if metric == 'clicks':
        return None

    store = get_counter_store()
    key = usage_key(workspace_id, metric)

    result = store.decrement(key, amount)

    if result.is_unavailable:
        print(f'[usage] Counter store write failed, persisting {metric} -{amount} '
              f'for workspace {workspace_id} to database')
        UsageMetric.query.filter_by(
            workspace_id=workspace_id,
            metric_type=metric,
            period=PERIOD_LIFETIME,
        ).update({
            UsageMetric.value: case((UsageMetric.value > amount, UsageMetric.value - amount), else_=0),
            UsageMetric.updated_at: datetime.utcnow(),
        }, synchronize_session=False)
        db.session.commit()
        return None

    return result.value


def track_click(link_id, workspace_id):
    """Count one click for the workspace's monthly total. Never raises."""
    from models import db

    try:
        increment_usage(workspace_id, 'clicks', 1)
    except Exception as e:
        print(f'[usage] Failed to record click link={link_id} workspace={workspace_id}: {e}')
        try:
            db.session.rollback()
        except SQLAlchemyError as rollback_error:
            print(f'[usage] Rollback after click failure also failed: {rollback_error}')
