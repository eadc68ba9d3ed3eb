"""
Usage API Routes — usage reads, limit checks, alerts, admin limit management, cron jobs.
Blueprint mounted at /api/usage

All business logic is delegated to the core.usage package.
Routes are thin HTTP handlers only; UsageError subclasses raised by the core
are rendered by the app-level error handler.
"""
import os
from flask import Blueprint, jsonify, request, session
from models import db, User, WorkspaceMembership
from rate_limiter import limiter

usage_bp = Blueprint('usage', __name__, url_prefix='/api/usage')


# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------

def _current_user():
    """Returns the session User or None."""
    user_id = session.get('user_id')
    if not user_id:
        return None
    return db.session.get(User, user_id)


def _is_member(user, workspace_id):
    from core.usage.admin import is_system_admin

    if is_system_admin(user):
        return True
    return WorkspaceMembership.query.filter_by(
        workspace_id=workspace_id, user_id=user.id,
    ).first() is not None


def _require_cron_auth():
    """Verify cron secret or admin password."""
    auth = request.headers.get('Authorization', '')
    cron_secret = os.environ.get('CRON_SECRET', '')
    admin_pw = os.environ.get('ADMIN_PASSWORD', '')

    if cron_secret and auth == f'Bearer {cron_secret}':
        return True
    # Fallback: JSON body password for manual trigger
    data = request.get_json(silent=True) or {}
    if admin_pw and data.get('password') == admin_pw:
        return True
    return False


# ===================================================================
# A) WORKSPACE USAGE (session auth, member only)
# ===================================================================

@usage_bp.route('/workspaces/<int:workspace_id>', methods=['GET'])
def get_usage(workspace_id):
    """GET /api/usage/workspaces/<id> — counts, limits and percentages."""
    user = _current_user()
    if not user:
        return jsonify({'error': 'Authentication required'}), 401

    from core.usage import get_workspace_usage
    from core.usage.reader import load_workspace

    load_workspace(workspace_id)
    if not _is_member(user, workspace_id):
        return jsonify({'error': 'Access denied'}), 403

    return jsonify({'usage': get_workspace_usage(workspace_id)})


@usage_bp.route('/workspaces/<int:workspace_id>/check/<metric>', methods=['GET'])
def check_usage(workspace_id, metric):
    """GET /api/usage/workspaces/<id>/check/<metric>?increment=N

    Never returns 403 for an over-limit workspace: the result comes back with
    readOnly=true so the client can degrade.
    """
    user = _current_user()
    if not user:
        return jsonify({'error': 'Authentication required'}), 401

    from core.usage import check_usage_limits_middleware
    from core.usage.reader import load_workspace

    load_workspace(workspace_id)
    if not _is_member(user, workspace_id):
        return jsonify({'error': 'Access denied'}), 403

    increment = request.args.get('increment', 1, type=int)
    result = check_usage_limits_middleware(
        user.id, workspace_id, metric,
        increment_amount=increment,
        graceful_degradation=True,
    )
    return jsonify(result.to_dict())


@usage_bp.route('/workspaces/<int:workspace_id>/alerts', methods=['GET'])
def list_usage_alerts(workspace_id):
    """GET /api/usage/workspaces/<id>/alerts — current threshold alerts."""
    user = _current_user()
    if not user:
        return jsonify({'error': 'Authentication required'}), 401

    from core.usage import check_usage_alerts
    from core.usage.reader import load_workspace

    load_workspace(workspace_id)
    if not _is_member(user, workspace_id):
        return jsonify({'error': 'Access denied'}), 403

    return jsonify({'alerts': check_usage_alerts(workspace_id)})


# ===================================================================
# B) ADMIN LIMIT MANAGEMENT (session auth, permission checked in core)
# ===================================================================

@usage_bp.route('/admin/workspaces/<int:workspace_id>/limits', methods=['GET'])
def admin_get_limits(workspace_id):
    from core.usage.admin import get_workspace_limits
    return jsonify(get_workspace_limits(workspace_id, _current_user()))


@usage_bp.route('/admin/workspaces/<int:workspace_id>/limits', methods=['PATCH'])
@limiter.limit("30 per minute")
def admin_update_limits(workspace_id):
    """PATCH body: {"max_links": int, "max_clicks": int, "max_users": int} (all optional)."""
    from core.usage.admin import update_base_limits

    data = request.get_json(silent=True) or {}
    workspace = update_base_limits(
        workspace_id, _current_user(),
        max_links=data.get('max_links'),
        max_clicks=data.get('max_clicks'),
        max_users=data.get('max_users'),
    )
    return jsonify({'success': True, 'workspace': workspace.to_dict()})


@usage_bp.route('/admin/workspaces/<int:workspace_id>/custom-limits', methods=['PUT'])
@limiter.limit("30 per minute")
def admin_set_custom_limits(workspace_id):
    """PUT body: {"custom_limits": {...}}"""
    from core.usage.admin import set_custom_overrides

    data = request.get_json(silent=True) or {}
    workspace = set_custom_overrides(workspace_id, _current_user(), data.get('custom_limits'))
    return jsonify({'success': True, 'workspace': workspace.to_dict()})


@usage_bp.route('/admin/workspaces/<int:workspace_id>/custom-limits', methods=['DELETE'])
@limiter.limit("30 per minute")
def admin_remove_custom_limits(workspace_id):
    from core.usage.admin import remove_custom_overrides

    workspace = remove_custom_overrides(workspace_id, _current_user())
    return jsonify({'success': True, 'workspace': workspace.to_dict()})


@usage_bp.route('/admin/workspaces/<int:workspace_id>/temporary-increase', methods=['POST'])
@limiter.limit("30 per minute")
def admin_grant_temporary_increase(workspace_id):
    """POST body: {"metric", "increase_amount", "days_valid"?, "reason"?}"""
    from core.usage.admin import grant_temporary_increase
    from core.usage.constants import TEMP_INCREASE_DEFAULT_DAYS

    data = request.get_json(silent=True) or {}
    granted = grant_temporary_increase(
        workspace_id, _current_user(),
        metric=data.get('metric'),
        increase_amount=data.get('increase_amount'),
        days_valid=data.get('days_valid', TEMP_INCREASE_DEFAULT_DAYS),
        reason=data.get('reason'),
    )
    return jsonify({
        'success': True,
        'workspace': granted['workspace'].to_dict(),
        'increase': granted['increase'],
    })


@usage_bp.route('/admin/workspaces/<int:workspace_id>/audit-logs', methods=['GET'])
def admin_audit_logs(workspace_id):
    """GET ?limit=50&offset=0"""
    from core.usage.admin import get_limit_audit_logs

    return jsonify(get_limit_audit_logs(
        workspace_id, _current_user(),
        limit=request.args.get('limit', 50, type=int),
        offset=request.args.get('offset', 0, type=int),
    ))


@usage_bp.route('/admin/workspaces/<int:workspace_id>/recalculate', methods=['POST'])
@limiter.limit("10 per minute")
def admin_recalculate(workspace_id):
    """Rebuild the workspace's counters from the database."""
    from core.usage.admin import require_system_admin
    from core.usage.reader import load_workspace
    from core.usage import recalculate_usage

    require_system_admin(_current_user(), 'Only system administrators can recalculate usage')
    load_workspace(workspace_id)
    return jsonify({'success': True, 'usage': recalculate_usage(workspace_id)})


# ===================================================================
# C) CRON / INTERNAL ENDPOINTS
# ===================================================================

@usage_bp.route('/internal/sync-usage', methods=['POST'])
def cron_sync_usage():
    """Cron: daily sync of Redis counters to usage_metrics. Protected by CRON_SECRET."""
    if not _require_cron_auth():
        return jsonify({'error': 'Unauthorized'}), 401

    from core.usage import get_scheduler
    report = get_scheduler().run_job('daily_usage_sync')
    return jsonify(report), 200 if report['success'] else 500


@usage_bp.route('/internal/reset-usage', methods=['POST'])
def cron_reset_usage():
    """Cron: monthly click counter reset. Protected by CRON_SECRET."""
    if not _require_cron_auth():
        return jsonify({'error': 'Unauthorized'}), 401

    from core.usage import get_scheduler
    report = get_scheduler().run_job('monthly_click_reset')
    return jsonify(report), 200 if report['success'] else 500


@usage_bp.route('/internal/usage-alerts', methods=['POST'])
def cron_usage_alerts():
    """Cron: evaluate thresholds and email workspace owners. Protected by CRON_SECRET."""
    if not _require_cron_auth():
        return jsonify({'error': 'Unauthorized'}), 401

    from core.usage import evaluate_all_usage_alerts
    return jsonify({'success': True, **evaluate_all_usage_alerts()})


@usage_bp.route('/internal/usage-tick', methods=['POST'])
def cron_usage_tick():
    """Cron: run whichever recurring usage jobs are due now."""
    if not _require_cron_auth():
        return jsonify({'error': 'Unauthorized'}), 401

    from core.usage import get_scheduler
    return jsonify({'success': True, 'runs': get_scheduler().tick()})
