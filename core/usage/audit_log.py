"""
Audit log — append-only trail for usage alerts and limit changes.

The alert gate reads it to send at most one usage email per workspace per day;
the admin operations write one entry per limit change.
"""
from datetime import datetime, time, timezone

from core.usage.constants import AUDIT_USAGE_ALERT_SENT, LIMIT_AUDIT_ACTIONS


def log_audit_event(workspace_id, user_id, action, entity_type='workspace',
                    entity_id=None, metadata=None):
    """Write an audit log entry.

    Args:
        workspace_id: Workspace scope.
        user_id: Acting user (None for system jobs).
        action: e.g. 'usage_alert_sent', 'limits_updated'.
        entity_type: Kind of thing acted on ('usage', 'workspace').
        entity_id: Its identifier, stored as a string.
        metadata: JSON-serialisable dict with the details.

    Returns:
        AuditLog instance.
    """
    from models import db, AuditLog

    entry = AuditLog(
        workspace_id=workspace_id,
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        metadata_json=metadata or {},
    )
    db.session.add(entry)
    # Caller is responsible for commit (batched with the change it records).
    return entry


def start_of_local_day_utc(now=None):
    """Local midnight of today, expressed as naive UTC like the stored timestamps."""
    local_now = now or datetime.now().astimezone()
    local_midnight = datetime.combine(local_now.date(), time.min, tzinfo=local_now.tzinfo)
    return local_midnight.astimezone(timezone.utc).replace(tzinfo=None)


def alert_sent_today(workspace_id, now=None):
    """True if a usage_alert_sent entry exists for the workspace since local midnight."""
    from models import AuditLog

    since = start_of_local_day_utc(now)
    return AuditLog.query.filter(
        AuditLog.workspace_id == workspace_id,
        AuditLog.action == AUDIT_USAGE_ALERT_SENT,
        AuditLog.created_at >= since,
    ).first() is not None


def get_limit_audit_logs(workspace_id, limit=50, offset=0):
    """Limit-related audit entries for a workspace, newest first.

    Returns:
        (entries, total) where entries is a list of AuditLog rows.
    """
    from models import AuditLog

    q = AuditLog.query.filter(
        AuditLog.workspace_id == workspace_id,
        AuditLog.action.in_(LIMIT_AUDIT_ACTIONS),
    )
    total = q.count()
    entries = (
        q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return entries, total
