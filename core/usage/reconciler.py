"""
Reconciler — keep the durable usage_metrics rows in step with Redis.

    sync_usage_to_database   snapshot Redis counters into usage_metrics (locked)
    recalculate_usage        rebuild Redis counters from ground truth, then sync
    reset_monthly_counters   zero every workspace's click counter for the new month
    sync_all_workspaces      daily job: sync every workspace, one failure never stops the rest

Designed to be called from cron endpoints or the scheduler, never inline in a
request that serves a user.
"""
import secrets
from datetime import datetime

from core.usage.constants import METRICS, SYNC_LOCK_TTL_SECONDS
from core.usage.counter_store import get_counter_store
from core.usage.keys import usage_key, usage_sync_lock_key, start_of_next_month
from core.usage.mutator import upsert_usage_metric
from core.usage.reader import count_usage_from_database

SYNC_OK = 'synced'
SYNC_LOCKED = 'locked'
SYNC_UNAVAILABLE = 'unavailable'


def _write_snapshot(workspace_id, values, now):
    """Upsert every present value in one transaction."""
    from models import db

    try:
        for metric, value in values.items():
            if value is not None:
                upsert_usage_metric(workspace_id, metric, value=value, now=now)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def sync_usage_to_database(workspace_id):
    """Copy the workspace's Redis counters into usage_metrics.

    Guarded by a 60s SET NX lock so two syncs for one workspace never race;
    if the lock is held this is a no-op. The lock holds a random token and is
    released even on failure, but only while it still holds that token.

    Returns:
        'synced', 'locked' (another sync in flight) or 'unavailable' (no Redis).
    """
    store = get_counter_store()
    lock_key = usage_sync_lock_key(workspace_id)
    token = secrets.token_hex(16)

    acquired = store.set_if_absent(lock_key, token, SYNC_LOCK_TTL_SECONDS)
    if acquired is None:
        print(f'[usage] Counter store unavailable, skipping sync for workspace {workspace_id}')
        return SYNC_UNAVAILABLE
    if not acquired:
        print(f'[usage] Sync already in progress for workspace {workspace_id}')
        return SYNC_LOCKED

    try:
        now = datetime.utcnow()
        values = {}
        for metric in METRICS:
            read = store.get(usage_key(workspace_id, metric, now=now))
            values[metric] = read.value if read.is_hit else None
        _write_snapshot(workspace_id, values, now)
    finally:
        if not store.release_lock(lock_key, token):
            print(f'[usage] Sync lock for workspace {workspace_id} expired before release')

    return SYNC_OK


def recalculate_usage(workspace_id):
    """Rebuild all three counters from the database (disaster recovery).

    Bypasses the read path, writes the counts into Redis (clicks with the
    monthly TTL) and persists them. If Redis is down the counts go straight to
    usage_metrics so the recomputation is never lost.

    Returns the recomputed counts.
    """
    store = get_counter_store()
    now = datetime.utcnow()
    counts = {}

    for metric in METRICS:
        count = count_usage_from_database(workspace_id, metric, now=now)
        counts[metric] = count
        key = usage_key(workspace_id, metric, now=now)
        if store.set(key, count) and metric == 'clicks':
            store.expire_at(key, start_of_next_month(now))

    status = sync_usage_to_database(workspace_id)
    if status == SYNC_UNAVAILABLE:
        _write_snapshot(workspace_id, counts, now)

    print(f'[usage] Recalculated usage for workspace {workspace_id}: {counts}')
    return counts


def reset_monthly_counters():
    """Zero the current month's click counter for every workspace.

    Historical monthly rows in usage_metrics are left alone. Returns the
    number of workspaces reset.
    """
    from models import db, Workspace

    store = get_counter_store()
    now = datetime.utcnow()
    next_month = start_of_next_month(now)
    reset = 0

    for (workspace_id,) in db.session.query(Workspace.id).all():
        key = usage_key(workspace_id, 'clicks', now=now)
        if store.set(key, 0):
            store.expire_at(key, next_month)
            reset += 1

    print(f'[usage] Reset click counters for {reset} workspaces')
    return reset


def sync_all_workspaces():
    """Sync every workspace. Failures are logged and counted, never raised."""
    from models import db, Workspace

    processed = 0
    errors = 0

    for (workspace_id,) in db.session.query(Workspace.id).all():
        try:
            sync_usage_to_database(workspace_id)
            processed += 1
        except Exception as e:
            print(f'[usage] Failed to sync workspace {workspace_id}: {e}')
            errors += 1

    print(f'[usage] Usage sync completed - success: {processed}, errors: {errors}')
    return {'workspaces_processed': processed, 'errors': errors}
