"""
Usage alerts — threshold evaluation and the once-a-day notification gate.

    check_usage_alerts          compute alerts on demand (never persisted)
    check_and_send_usage_alerts email the owner about the most critical alert
    evaluate_all_usage_alerts   cron sweep over every workspace

Alert types:
    warning        — usage in [80%, 100%) of the resolved limit
    limit_reached  — usage at or above 100%
"""
from core.usage.constants import (
    METRICS, UNLIMITED, WARNING_THRESHOLD_PCT, LIMIT_THRESHOLD_PCT,
    AUDIT_USAGE_ALERT_SENT,
)
from core.usage.audit_log import log_audit_event, alert_sent_today
from core.usage.limits import resolve_limits, usage_percentage
from core.usage.notifications import send_usage_warning_email
from core.usage.reader import get_current_usage, load_workspace

ALERT_WARNING = 'warning'
ALERT_LIMIT_REACHED = 'limit_reached'


def check_usage_alerts(workspace_id):
    """Alerts for every metric over a threshold, in links/clicks/users order.

    Unlimited metrics never alert.
    """
    workspace = load_workspace(workspace_id)
    limits = resolve_limits(workspace)
    alerts = []

    for metric in METRICS:
        limit = limits.for_metric(metric)
        if limit == UNLIMITED:
            continue

        percentage = usage_percentage(get_current_usage(workspace_id, metric), limit)

        if percentage >= LIMIT_THRESHOLD_PCT:
            alerts.append({
                'type': ALERT_LIMIT_REACHED,
                'metric': metric,
                'percentage': percentage,
                'message': f"You've reached your {metric} limit. Upgrade to continue.",
                'action': 'upgrade',
            })
        elif percentage >= WARNING_THRESHOLD_PCT:
            alerts.append({
                'type': ALERT_WARNING,
                'metric': metric,
                'percentage': percentage,
                'message': f"You're at {round(percentage)}% of your {metric} limit.",
                'action': 'upgrade',
            })

    return alerts


def check_and_send_usage_alerts(workspace_id, alerts=None):
    """Send at most one usage email per workspace per day.

    Picks the first limit_reached alert, else the first warning, emails the
    workspace owner and records a usage_alert_sent audit entry.

    Returns:
        The alert that was sent, or None if nothing was sent.
    """
    from models import db

    if alerts is None:
        alerts = check_usage_alerts(workspace_id)
    if not alerts:
        return None

    workspace = load_workspace(workspace_id)
    owner = workspace.get_owner()
    if owner is None:
        print(f'[usage] No workspace owner found for usage alerts workspace={workspace_id}')
        return None

    if alert_sent_today(workspace_id):
        print(f'[usage] Usage alert already sent today for workspace {workspace_id}')
        return None

    critical = next((a for a in alerts if a['type'] == ALERT_LIMIT_REACHED), alerts[0])
    metric = critical['metric']

    send_usage_warning_email(
        workspace_name=workspace.name,
        workspace_slug=workspace.slug,
        admin_email=owner.email,
        admin_name=owner.name or 'Admin',
        metric=metric,
        percentage=critical['percentage'],
        current_usage=get_current_usage(workspace_id, metric),
        limit=resolve_limits(workspace).for_metric(metric),
        plan_name=workspace.plan,
    )

    log_audit_event(
        workspace_id=workspace_id,
        user_id=owner.id,
        action=AUDIT_USAGE_ALERT_SENT,
        entity_type='usage',
        entity_id=metric,
        metadata={
            'alert_type': critical['type'],
            'metric': metric,
            'percentage': critical['percentage'],
        },
    )
    db.session.commit()

    return critical


def evaluate_all_usage_alerts():
    """Run the alert gate for every workspace.

    Returns:
        dict with workspaces_checked, alerts_sent, errors.
    """
    from models import db, Workspace

    checked = 0
    sent = 0
    errors = 0

    for (workspace_id,) in db.session.query(Workspace.id).all():
        try:
            if check_and_send_usage_alerts(workspace_id) is not None:
                sent += 1
            checked += 1
        except Exception as e:
            db.session.rollback()
            print(f'[usage] Usage alert evaluation failed for workspace {workspace_id}: {e}')
            errors += 1

    return {'workspaces_checked': checked, 'alerts_sent': sent, 'errors': errors}
