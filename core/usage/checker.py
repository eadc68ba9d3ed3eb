"""
Usage limits checker — the synchronous gate in front of every quota-bound write.

check_usage_limits() answers "would this action fit?" without changing any
counter; the mutator applies the effect after the write commits. The pair is
not atomic: concurrent requests can both pass and overshoot the limit
briefly, which is accepted in favour of availability.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from functools import wraps

from flask import g, session

from core.usage.constants import UNLIMITED, WARNING_THRESHOLD_PCT, LIMIT_THRESHOLD_PCT
from core.usage.errors import LimitExceeded, Unauthenticated
from core.usage.limits import resolve_limits, get_next_tier, usage_percentage
from core.usage.reader import get_current_usage, load_workspace, validate_metric


@dataclass
class UsageCheckResult:
    allowed: bool
    current: int
    limit: int
    percentage: float
    should_warn: bool
    upgrade_required: bool
    suggested_plan: str | None = None
    read_only: bool = False

    def to_dict(self):
        data = asdict(self)
        return {
            'allowed': data['allowed'],
            'current': data['current'],
            'limit': data['limit'],
            'percentage': data['percentage'],
            'shouldWarn': data['should_warn'],
            'upgradeRequired': data['upgrade_required'],
            'suggestedPlan': data['suggested_plan'],
            'readOnly': data['read_only'],
        }


def check_usage_limits(workspace_id, metric, increment_amount=0) -> UsageCheckResult:
    """Would adding increment_amount to metric stay within the workspace's limit?

    Raises:
        WorkspaceNotFound: workspace_id does not exist.
        InvalidUsageRequest: unknown metric.
    """
    validate_metric(metric)
    workspace = load_workspace(workspace_id)
    limit = resolve_limits(workspace).for_metric(metric)

    # Unlimited never blocks, so skip the usage read entirely.
    if limit == UNLIMITED:
        return UsageCheckResult(
            allowed=True, current=0, limit=UNLIMITED, percentage=0,
            should_warn=False, upgrade_required=False,
        )

    current = get_current_usage(workspace_id, metric)
    projected = current + increment_amount
    percentage = usage_percentage(projected, limit)
    upgrade_required = projected > limit

    return UsageCheckResult(
        allowed=projected <= limit,
        current=current,
        limit=limit,
        percentage=percentage,
        should_warn=WARNING_THRESHOLD_PCT <= percentage < LIMIT_THRESHOLD_PCT,
        upgrade_required=upgrade_required,
        suggested_plan=get_next_tier(workspace.plan) if upgrade_required else None,
    )


def check_usage_limits_middleware(actor_id, workspace_id, metric,
                                  increment_amount=1, graceful_degradation=False) -> UsageCheckResult:
    """Request-level wrapper around check_usage_limits.

    Over the limit: with graceful_degradation the result comes back marked
    read_only for the caller to degrade; otherwise LimitExceeded is raised
    carrying the upgrade metadata.

    Raises:
        Unauthenticated: no actor or no workspace on the request.
        LimitExceeded: over limit and graceful_degradation is False.
    """
    if not actor_id or workspace_id is None:
        raise Unauthenticated()

    result = check_usage_limits(workspace_id, metric, increment_amount)

    if not result.allowed and graceful_degradation:
        result.read_only = True
        return result

    if not result.allowed:
        workspace = load_workspace(workspace_id)
        raise LimitExceeded(
            metric=metric,
            current=result.current,
            limit=result.limit,
            suggested_plan=result.suggested_plan,
            plan=workspace.plan,
        )

    return result


def require_usage_limit(metric, increment_amount=1, graceful_degradation=False):
    """Route decorator: run the usage gate before the view.

    Actor comes from session['user_id'], workspace from the route's
    workspace_id argument. The result is available as g.usage_check.
    """
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            g.usage_check = check_usage_limits_middleware(
                session.get('user_id'),
                kwargs.get('workspace_id'),
                metric,
                increment_amount=increment_amount,
                graceful_degradation=graceful_degradation,
            )
            return f(*args, **kwargs)
        return decorated
    return decorator
