"""
Usage constants — plan tiers, metrics, thresholds, periods.

PLAN_LIMITS is configuration shared with the admin UI; keep both in sync.
"""
from datetime import datetime

# Metric names accepted by every usage operation, in reporting order.
METRICS = ('links', 'clicks', 'users')

# Sentinel for "no limit" at any resolution step.
UNLIMITED = -1

# Tier defaults. -1 = unlimited.
PLAN_LIMITS = {
    'free': {
        'links': 50,
        'clicks': 5000,
        'users': 1,
        'custom_domains': False,
    },
    'starter': {
        'links': 500,
        'clicks': 50000,
        'users': 3,
        'custom_domains': False,
    },
    'pro': {
        'links': 5000,
        'clicks': 500000,
        'users': 10,
        'custom_domains': True,
    },
    'business': {
        'links': UNLIMITED,
        'clicks': UNLIMITED,
        'users': UNLIMITED,
        'custom_domains': True,
    },
}

# Upgrade path, lowest first.
TIER_ORDER = ('free', 'starter', 'pro', 'business')

# Alert thresholds (percent of resolved limit)
WARNING_THRESHOLD_PCT = 80
LIMIT_THRESHOLD_PCT = 100

# Reconciler lock TTL in seconds
SYNC_LOCK_TTL_SECONDS = 60

# Durable period bookkeeping
PERIOD_LIFETIME = 'lifetime'
PERIOD_MONTHLY = 'monthly'
LIFETIME_PERIOD_START = datetime(1970, 1, 1)
LIFETIME_PERIOD_END = datetime(2099, 12, 31)

# Audit actions
AUDIT_USAGE_ALERT_SENT = 'usage_alert_sent'
AUDIT_LIMITS_UPDATED = 'limits_updated'
AUDIT_CUSTOM_LIMITS_SET = 'custom_limits_set'
AUDIT_CUSTOM_LIMITS_REMOVED = 'custom_limits_removed'
AUDIT_TEMP_INCREASE_GRANTED = 'temporary_increase_granted'

LIMIT_AUDIT_ACTIONS = (
    AUDIT_LIMITS_UPDATED,
    AUDIT_CUSTOM_LIMITS_SET,
    AUDIT_CUSTOM_LIMITS_REMOVED,
    AUDIT_TEMP_INCREASE_GRANTED,
    AUDIT_USAGE_ALERT_SENT,
)

# Temporary increase bounds (days)
TEMP_INCREASE_MIN_DAYS = 1
TEMP_INCREASE_MAX_DAYS = 90
TEMP_INCREASE_DEFAULT_DAYS = 30
