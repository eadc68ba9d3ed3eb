"""
core.usage — workspace usage limits and counter tracking.

Public API:
    resolve_limits, get_plan_limits, get_next_tier      — limit resolution
    get_current_usage, get_workspace_usage               — usage reads
    check_usage_limits, check_usage_limits_middleware,
    require_usage_limit                                  — the pre-write gate
    increment_usage, decrement_usage, track_click        — post-write effects
    sync_usage_to_database, recalculate_usage,
    reset_monthly_counters, sync_all_workspaces          — reconciliation
    UsageJobScheduler                                    — recurring jobs
    check_usage_alerts, check_and_send_usage_alerts,
    evaluate_all_usage_alerts                            — alerting
    init_counter_store, get_counter_store                — Redis wiring
"""

from core.usage.constants import METRICS, PLAN_LIMITS, TIER_ORDER, UNLIMITED
from core.usage.errors import (
    UsageError, WorkspaceNotFound, Unauthenticated, Forbidden, LimitExceeded,
    InvalidUsageRequest, register_usage_error_handlers,
)
from core.usage.counter_store import CounterStore, CounterRead, init_counter_store, get_counter_store
from core.usage.limits import (
    CustomLimits, TempIncrease, EffectiveLimits,
    resolve_limits, get_plan_limits, get_next_tier, usage_percentage,
)
from core.usage.reader import get_current_usage, get_workspace_usage, count_usage_from_database
from core.usage.checker import (
    UsageCheckResult, check_usage_limits, check_usage_limits_middleware, require_usage_limit,
)
from core.usage.mutator import increment_usage, decrement_usage, track_click
from core.usage.reconciler import (
    sync_usage_to_database, recalculate_usage, reset_monthly_counters, sync_all_workspaces,
)
from core.usage.scheduler import ScheduledJob, UsageJobScheduler, get_scheduler
from core.usage.alerts import check_usage_alerts, check_and_send_usage_alerts, evaluate_all_usage_alerts

__all__ = [
    'METRICS', 'PLAN_LIMITS', 'TIER_ORDER', 'UNLIMITED',
    # Errors
    'UsageError', 'WorkspaceNotFound', 'Unauthenticated', 'Forbidden', 'LimitExceeded',
    'InvalidUsageRequest', 'register_usage_error_handlers',
    # Counter store
    'CounterStore', 'CounterRead', 'init_counter_store', 'get_counter_store',
    # Limits
    'CustomLimits', 'TempIncrease', 'EffectiveLimits',
    'resolve_limits', 'get_plan_limits', 'get_next_tier', 'usage_percentage',
    # Reads and checks
    'get_current_usage', 'get_workspace_usage', 'count_usage_from_database',
    'UsageCheckResult', 'check_usage_limits', 'check_usage_limits_middleware', 'require_usage_limit',
    # Mutations
    'increment_usage', 'decrement_usage', 'track_click',
    # Reconciliation and jobs
    'sync_usage_to_database', 'recalculate_usage', 'reset_monthly_counters', 'sync_all_workspaces',
    'ScheduledJob', 'UsageJobScheduler', 'get_scheduler',
    # Alerts
    'check_usage_alerts', 'check_and_send_usage_alerts', 'evaluate_all_usage_alerts',
]
