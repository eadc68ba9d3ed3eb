"""
Admin limit management — base limit overrides, custom overrides, temporary
increases and the audit trail of those changes.

Permission model:
    workspace admin — owner/admin membership; may read limits and audit logs.
    system admin    — User.is_admin, or an email in SYSTEM_ADMIN_EMAIL_DOMAIN;
                      required for every mutation.
"""
import os
from datetime import datetime, timedelta

from core.usage.audit_log import log_audit_event, get_limit_audit_logs as _query_limit_audit_logs
from core.usage.constants import (
    METRICS, UNLIMITED,
    AUDIT_LIMITS_UPDATED, AUDIT_CUSTOM_LIMITS_SET, AUDIT_CUSTOM_LIMITS_REMOVED,
    AUDIT_TEMP_INCREASE_GRANTED,
    TEMP_INCREASE_MIN_DAYS, TEMP_INCREASE_MAX_DAYS, TEMP_INCREASE_DEFAULT_DAYS,
)
from core.usage.errors import Forbidden, InvalidUsageRequest, Unauthenticated
from core.usage.limits import CustomLimits, resolve_limits, get_base_limit, parse_timestamp
from core.usage.reader import load_workspace, count_usage_from_database, validate_metric
from core.usage.reconciler import recalculate_usage

WORKSPACE_ADMIN_ROLES = ('owner', 'admin')
AUDIT_PAGE_MAX = 100


# ---------------------------------------------------------------------------
# Permission checks
# ---------------------------------------------------------------------------

def is_system_admin(user):
    if user is None:
        return False
    if getattr(user, 'is_admin', False):
        return True
    domain = os.environ.get('SYSTEM_ADMIN_EMAIL_DOMAIN', '').strip().lstrip('@')
    if not domain or not user.email:
        return False
    return user.email.lower().endswith('@' + domain.lower())


def is_workspace_admin(user, workspace_id):
    from models import WorkspaceMembership

    if user is None:
        return False
    return WorkspaceMembership.query.filter(
        WorkspaceMembership.workspace_id == workspace_id,
        WorkspaceMembership.user_id == user.id,
        WorkspaceMembership.role.in_(WORKSPACE_ADMIN_ROLES),
    ).first() is not None


def require_system_admin(user, message):
    if user is None:
        raise Unauthenticated()
    if not is_system_admin(user):
        raise Forbidden(message)


def require_workspace_admin(user, workspace_id, message):
    if user is None:
        raise Unauthenticated()
    if not (is_workspace_admin(user, workspace_id) or is_system_admin(user)):
        raise Forbidden(message)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _validate_limit_value(name, value):
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidUsageRequest(f'{name} must be an integer', {'field': name})
    if value < UNLIMITED:
        raise InvalidUsageRequest(f'{name} must be -1 (unlimited) or greater', {'field': name})
    return value


def validate_custom_limits(document):
    """Check the shape of a custom_limits document. Returns it unchanged."""
    if not isinstance(document, dict):
        raise InvalidUsageRequest('custom_limits must be an object')

    for flag in ('beta_user', 'vip_customer'):
        if flag in document and not isinstance(document[flag], bool):
            raise InvalidUsageRequest(f'{flag} must be a boolean', {'field': flag})

    temp = document.get('temp_increases')
    if temp is not None:
        if not isinstance(temp, dict):
            raise InvalidUsageRequest('temp_increases must be an object')
        for metric in METRICS:
            value = temp.get(metric)
            if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))):
                raise InvalidUsageRequest(f'temp_increases.{metric} must be a number',
                                          {'field': f'temp_increases.{metric}'})
        expires = temp.get('expires')
        if expires is not None and parse_timestamp(expires) is None:
            raise InvalidUsageRequest('temp_increases.expires must be an ISO-8601 timestamp',
                                      {'field': 'temp_increases.expires'})

    return document


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

def get_workspace_limits(workspace_id, actor):
    """Override columns, parsed custom limits, resolved limits and ground-truth usage."""
    require_workspace_admin(actor, workspace_id, 'You must be an admin to view workspace limits')
    workspace = load_workspace(workspace_id)
    now = datetime.utcnow()

    return {
        'workspace': workspace.to_dict(),
        'custom': CustomLimits.parse(workspace.custom_limits).to_dict(now),
        'effective_limits': resolve_limits(workspace, now).to_dict(),
        'current_usage': {
            metric: count_usage_from_database(workspace_id, metric, now=now)
            for metric in METRICS
        },
    }


def update_base_limits(workspace_id, actor, max_links=None, max_clicks=None, max_users=None):
    """Set the per-workspace override columns. None leaves a column unchanged."""
    from models import db

    require_system_admin(actor, 'Only system administrators can update base limits')

    changes = {}
    for column, value in (('max_links', max_links), ('max_clicks', max_clicks), ('max_users', max_users)):
        if _validate_limit_value(column, value) is not None:
            changes[column] = value

    workspace = load_workspace(workspace_id)
    for column, value in changes.items():
        setattr(workspace, column, value)
    workspace.updated_at = datetime.utcnow()

    log_audit_event(
        workspace_id=workspace_id,
        user_id=actor.id,
        action=AUDIT_LIMITS_UPDATED,
        entity_type='workspace',
        entity_id=workspace_id,
        metadata={'changes': changes, 'updated_by': actor.email},
    )
    db.session.commit()

    print(f'[usage] Base limits updated workspace={workspace_id} changes={changes} by={actor.email}')

    # Resync counters so the new limits are checked against fresh usage
    recalculate_usage(workspace_id)
    return workspace


def set_custom_overrides(workspace_id, actor, custom_limits):
    """Replace the custom_limits document (beta, VIP, temporary increases)."""
    from models import db

    require_system_admin(actor, 'Only system administrators can set custom overrides')
    validate_custom_limits(custom_limits)

    workspace = load_workspace(workspace_id)
    workspace.custom_limits = dict(custom_limits)
    workspace.updated_at = datetime.utcnow()

    log_audit_event(
        workspace_id=workspace_id,
        user_id=actor.id,
        action=AUDIT_CUSTOM_LIMITS_SET,
        entity_type='workspace',
        entity_id=workspace_id,
        metadata={'custom_limits': custom_limits, 'set_by': actor.email},
    )
    db.session.commit()
    return workspace


def grant_temporary_increase(workspace_id, actor, metric, increase_amount,
                             days_valid=TEMP_INCREASE_DEFAULT_DAYS, reason=None):
    """Raise one resource's ceiling to base limit + increase_amount for days_valid days.

    The ceiling is stored as an absolute value. Every resource in the bundle
    shares one expiry, so this grant also moves the expiry of earlier ones.

    Returns:
        dict with workspace and the granted increase.
    """
    from models import db

    require_system_admin(actor, 'Only system administrators can grant temporary increases')
    validate_metric(metric)

    if isinstance(increase_amount, bool) or not isinstance(increase_amount, int) or increase_amount <= 0:
        raise InvalidUsageRequest('increase_amount must be a positive integer',
                                  {'field': 'increase_amount'})
    if isinstance(days_valid, bool) or not isinstance(days_valid, int) or \
            not TEMP_INCREASE_MIN_DAYS <= days_valid <= TEMP_INCREASE_MAX_DAYS:
        raise InvalidUsageRequest(
            f'days_valid must be between {TEMP_INCREASE_MIN_DAYS} and {TEMP_INCREASE_MAX_DAYS}',
            {'field': 'days_valid'},
        )

    workspace = load_workspace(workspace_id)
    base_limit = get_base_limit(workspace, metric)
    if base_limit == UNLIMITED:
        raise InvalidUsageRequest(f'{metric} is already unlimited for this workspace',
                                  {'metric': metric})

    new_limit = base_limit + increase_amount
    expires_at = datetime.utcnow() + timedelta(days=days_valid)
    expires_iso = expires_at.isoformat() + 'Z'

    document = dict(workspace.custom_limits or {})
    temp = dict(document.get('temp_increases') or {})
    temp[metric] = new_limit
    temp['expires'] = expires_iso
    document['temp_increases'] = temp

    workspace.custom_limits = document
    workspace.updated_at = datetime.utcnow()

    log_audit_event(
        workspace_id=workspace_id,
        user_id=actor.id,
        action=AUDIT_TEMP_INCREASE_GRANTED,
        entity_type='workspace',
        entity_id=workspace_id,
        metadata={
            'metric': metric,
            'increase_amount': increase_amount,
            'new_limit': new_limit,
            'expires_at': expires_iso,
            'reason': reason,
            'granted_by': actor.email,
        },
    )
    db.session.commit()

    print(f'[usage] Temporary increase workspace={workspace_id} {metric}={new_limit} until {expires_iso}')

    return {
        'workspace': workspace,
        'increase': {'metric': metric, 'new_limit': new_limit, 'expires_at': expires_iso},
    }


def remove_custom_overrides(workspace_id, actor):
    """Clear the custom_limits document entirely."""
    from models import db

    require_system_admin(actor, 'Only system administrators can remove custom overrides')

    workspace = load_workspace(workspace_id)
    workspace.custom_limits = None
    workspace.updated_at = datetime.utcnow()

    log_audit_event(
        workspace_id=workspace_id,
        user_id=actor.id,
        action=AUDIT_CUSTOM_LIMITS_REMOVED,
        entity_type='workspace',
        entity_id=workspace_id,
        metadata={'removed_by': actor.email},
    )
    db.session.commit()
    return workspace


def get_limit_audit_logs(workspace_id, actor, limit=50, offset=0):
    """Paged limit-change audit entries.

    Returns:
        dict with logs, total, has_more.
    """
    require_workspace_admin(actor, workspace_id, 'You must be an admin to view audit logs')

    if not 1 <= limit <= AUDIT_PAGE_MAX:
        raise InvalidUsageRequest(f'limit must be between 1 and {AUDIT_PAGE_MAX}', {'field': 'limit'})
    if offset < 0:
        raise InvalidUsageRequest('offset must be 0 or greater', {'field': 'offset'})

    load_workspace(workspace_id)
    entries, total = _query_limit_audit_logs(workspace_id, limit=limit, offset=offset)
    return {
        'logs': [e.to_dict() for e in entries],
        'total': total,
        'has_more': offset + len(entries) < total,
    }
