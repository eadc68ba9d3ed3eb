"""
Limit resolution tests: tier defaults, override columns, custom limits document.

Verifies:
- Tier table and upgrade path
- Override columns beat tier defaults, -1 means unlimited
- beta_user / vip_customer make everything unlimited
- temp_increases apply only while unexpired, per resource
- Malformed documents and unparseable expiries are inert
- Percentage calculation edge cases
"""
import pytest
from datetime import datetime, timedelta
from types import SimpleNamespace

from core.usage.constants import PLAN_LIMITS, UNLIMITED
from core.usage.limits import (
    CustomLimits, resolve_limits, get_next_tier, get_plan_limits,
    get_base_limit, usage_percentage, parse_timestamp,
)


def ws(plan='free', custom_limits=None, **overrides):
    """Workspace-shaped object; the resolver only reads attributes."""
    fields = {'max_links': None, 'max_clicks': None, 'max_users': None}
    fields.update(overrides)
    return SimpleNamespace(plan=plan, custom_limits=custom_limits, **fields)


def iso(dt):
    return dt.isoformat() + 'Z'


# ---------------------------------------------------------------------------
# TIERS
# ---------------------------------------------------------------------------

@pytest.mark.usage
class TestTiers:

    def test_tier_table(self):
        assert PLAN_LIMITS['free'] == {'links': 50, 'clicks': 5000, 'users': 1, 'custom_domains': False}
        assert PLAN_LIMITS['starter']['links'] == 500
        assert PLAN_LIMITS['pro']['custom_domains'] is True
        assert PLAN_LIMITS['business']['clicks'] == UNLIMITED

    def test_next_tier(self):
        assert get_next_tier('free') == 'starter'
        assert get_next_tier('starter') == 'pro'
        assert get_next_tier('pro') == 'business'
        assert get_next_tier('business') is None
        assert get_next_tier('enterprise') is None

    def test_unknown_plan_falls_back_to_free(self):
        assert get_plan_limits('platinum') == PLAN_LIMITS['free']
        assert get_plan_limits(None) == PLAN_LIMITS['free']


# ---------------------------------------------------------------------------
# RESOLUTION ORDER
# ---------------------------------------------------------------------------

@pytest.mark.usage
class TestResolveLimits:

    def test_tier_defaults(self):
        limits = resolve_limits(ws('starter'))
        assert (limits.links, limits.clicks, limits.users) == (500, 50000, 3)
        assert limits.custom_domains is False

    def test_override_columns_beat_tier(self):
        limits = resolve_limits(ws('free', max_links=75, max_users=-1))
        assert limits.links == 75
        assert limits.users == UNLIMITED
        assert limits.clicks == 5000

    def test_override_of_zero_is_respected(self):
        assert resolve_limits(ws('pro', max_links=0)).links == 0

    @pytest.mark.parametrize('flag', ['beta_user', 'vip_customer'])
    def test_beta_or_vip_is_unlimited(self, flag):
        limits = resolve_limits(ws('free', custom_limits={flag: True}, max_links=10))
        assert (limits.links, limits.clicks, limits.users) == (UNLIMITED, UNLIMITED, UNLIMITED)
        assert limits.custom_domains is True

    def test_flags_must_be_true_not_truthy(self):
        limits = resolve_limits(ws('free', custom_limits={'beta_user': 'yes'}))
        assert limits.links == 50

    def test_unexpired_temp_increase_overrides_column_and_tier(self):
        now = datetime(2026, 10, 19, 12, 0)
        custom = {'temp_increases': {'links': 100, 'expires': iso(now + timedelta(days=1))}}
        limits = resolve_limits(ws('free', custom_limits=custom, max_links=60), now=now)
        assert limits.links == 100

    def test_expired_temp_increase_is_ignored(self):
        now = datetime(2026, 10, 19, 12, 0)
        custom = {'temp_increases': {'links': 100, 'expires': iso(now - timedelta(seconds=1))}}
        assert resolve_limits(ws('free', custom_limits=custom, max_links=60), now=now).links == 60
        assert resolve_limits(ws('free', custom_limits=custom), now=now).links == 50

    def test_temp_increase_only_for_resources_in_bundle(self):
        now = datetime(2026, 10, 19)
        custom = {'temp_increases': {'clicks': 9000, 'expires': iso(now + timedelta(days=3))}}
        limits = resolve_limits(ws('free', custom_limits=custom, max_links=70), now=now)
        assert limits.clicks == 9000
        assert limits.links == 70
        assert limits.users == 1

    def test_temp_increase_without_expiry_applies(self):
        limits = resolve_limits(ws('free', custom_limits={'temp_increases': {'users': 4}}))
        assert limits.users == 4

    def test_unparseable_expiry_makes_bundle_inert(self):
        custom = {'temp_increases': {'links': 999, 'expires': 'next tuesday'}}
        assert resolve_limits(ws('free', custom_limits=custom)).links == 50

    def test_malformed_document_means_no_overrides(self):
        assert resolve_limits(ws('starter', custom_limits=['beta_user'])).links == 500
        assert resolve_limits(ws('starter', custom_limits={'temp_increases': 'lots'})).links == 500

    def test_base_limit_ignores_custom_document(self):
        w = ws('free', custom_limits={'vip_customer': True}, max_clicks=123)
        assert get_base_limit(w, 'clicks') == 123
        assert get_base_limit(w, 'links') == 50

    def test_for_metric_rejects_unknown(self):
        with pytest.raises(ValueError):
            resolve_limits(ws()).for_metric('domains')


# ---------------------------------------------------------------------------
# CUSTOM LIMITS PARSING
# ---------------------------------------------------------------------------

@pytest.mark.usage
class TestCustomLimits:

    def test_parse_none(self):
        parsed = CustomLimits.parse(None)
        assert parsed.unlimited is False
        assert parsed.temp_increases is None

    def test_to_dict_reports_active_increase(self):
        now = datetime(2026, 10, 19)
        expires = now + timedelta(days=2)
        parsed = CustomLimits.parse({'temp_increases': {'links': 80, 'expires': iso(expires)}})
        summary = parsed.to_dict(now)
        assert summary['has_temporary_increase'] is True
        assert summary['temporary_increase_expiry'] == expires.isoformat()

    def test_to_dict_hides_expired_increase(self):
        now = datetime(2026, 10, 19)
        parsed = CustomLimits.parse({'temp_increases': {'links': 80, 'expires': iso(now - timedelta(days=1))}})
        assert parsed.to_dict(now)['has_temporary_increase'] is False

    def test_parse_timestamp_normalises_to_naive_utc(self):
        assert parse_timestamp('2026-10-19T12:00:00+02:00') == datetime(2026, 10, 19, 10, 0)
        assert parse_timestamp('2026-10-19T12:00:00Z') == datetime(2026, 10, 19, 12, 0)
        assert parse_timestamp('garbage') is None


# ---------------------------------------------------------------------------
# PERCENTAGES
# ---------------------------------------------------------------------------

@pytest.mark.usage
class TestUsagePercentage:

    def test_regular(self):
        assert usage_percentage(40, 50) == 80
        assert usage_percentage(50, 50) == 100

    def test_unlimited_is_zero(self):
        assert usage_percentage(10 ** 9, UNLIMITED) == 0

    def test_zero_limit(self):
        assert usage_percentage(0, 0) == 0
        assert usage_percentage(1, 0) == 100
