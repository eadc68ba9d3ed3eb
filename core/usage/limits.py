"""
Limit resolver — effective per-workspace limits from plan tier, override
columns and the custom_limits document.

Resolution order, per resource:
    1. beta_user or vip_customer  -> unlimited for every resource
    2. unexpired temp_increases entry for the resource
    3. workspace override column (max_links / max_clicks / max_users)
    4. plan tier default
-1 means unlimited at any step. Pure functions, no I/O.

temp_increases holds absolute ceilings (not deltas) and a single expiry shared
by every resource in the bundle; a new grant for one resource moves the
expiry of the others too.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from core.usage.constants import PLAN_LIMITS, TIER_ORDER, UNLIMITED, METRICS


@dataclass(frozen=True)
class TempIncrease:
    links: int | None = None
    clicks: int | None = None
    users: int | None = None
    expires: datetime | None = None  # naive UTC

    def is_active(self, now: datetime) -> bool:
        return self.expires is None or self.expires > now

    def value_for(self, metric: str) -> int | None:
        return getattr(self, metric)


@dataclass(frozen=True)
class CustomLimits:
    beta_user: bool = False
    vip_customer: bool = False
    temp_increases: TempIncrease | None = None

    @property
    def unlimited(self) -> bool:
        return self.beta_user or self.vip_customer

    @classmethod
    def parse(cls, document: dict[str, Any] | None) -> CustomLimits:
        """Parse the raw JSON document stored on the workspace row.

        Unknown keys are ignored; a malformed document parses as "no overrides".
        """
        if not isinstance(document, dict):
            return cls()

        temp = None
        raw_temp = document.get('temp_increases')
        if isinstance(raw_temp, dict):
            raw_expires = raw_temp.get('expires')
            expires = parse_timestamp(raw_expires)
            # An expiry we cannot read makes the bundle inert rather than permanent.
            if expires is not None or raw_expires in (None, ''):
                temp = TempIncrease(
                    links=_as_int(raw_temp.get('links')),
                    clicks=_as_int(raw_temp.get('clicks')),
                    users=_as_int(raw_temp.get('users')),
                    expires=expires,
                )

        return cls(
            beta_user=document.get('beta_user') is True,
            vip_customer=document.get('vip_customer') is True,
            temp_increases=temp,
        )

    def to_dict(self, now: datetime | None = None) -> dict[str, Any]:
        now = now or datetime.utcnow()
        temp = self.temp_increases
        return {
            'is_beta_user': self.beta_user,
            'is_vip_customer': self.vip_customer,
            'has_temporary_increase': bool(temp and temp.expires and temp.is_active(now)),
            'temporary_increase_expiry': (
                temp.expires.isoformat() if temp and temp.expires and temp.is_active(now) else None
            ),
        }


@dataclass(frozen=True)
class EffectiveLimits:
    links: int
    clicks: int
    users: int
    custom_domains: bool

    def for_metric(self, metric: str) -> int:
        if metric not in METRICS:
            raise ValueError(f'Unknown usage metric: {metric}')
        return getattr(self, metric)

    def to_dict(self) -> dict[str, Any]:
        return {
            'links': self.links,
            'clicks': self.clicks,
            'users': self.users,
            'custom_domains': self.custom_domains,
        }


def get_plan_limits(plan: str | None) -> dict[str, Any]:
    """Tier defaults for a plan; unknown plans get the free tier."""
    return PLAN_LIMITS.get(plan or 'free', PLAN_LIMITS['free'])


def get_next_tier(plan: str | None) -> str | None:
    """Next tier strictly above plan, or None on the top tier / unknown plan."""
    if plan not in TIER_ORDER:
        return None
    idx = TIER_ORDER.index(plan)
    if idx == len(TIER_ORDER) - 1:
        return None
    return TIER_ORDER[idx + 1]


def get_base_limit(workspace, metric: str) -> int:
    """Override column if set, else tier default (steps 3-4 only)."""
    override = getattr(workspace, f'max_{metric}', None)
    if override is not None:
        return override
    return get_plan_limits(workspace.plan)[metric]


def resolve_limits(workspace, now: datetime | None = None) -> EffectiveLimits:
    """Effective limits for a workspace row (or any object with the same attributes)."""
    now = now or datetime.utcnow()
    tier = get_plan_limits(workspace.plan)
    custom = CustomLimits.parse(workspace.custom_limits)

    if custom.unlimited:
        return EffectiveLimits(UNLIMITED, UNLIMITED, UNLIMITED, custom_domains=True)

    temp = custom.temp_increases
    resolved = {}
    for metric in METRICS:
        value = None
        if temp is not None and temp.is_active(now):
            value = temp.value_for(metric)
        if value is None:
            value = get_base_limit(workspace, metric)
        resolved[metric] = value

    return EffectiveLimits(custom_domains=tier['custom_domains'], **resolved)


def usage_percentage(current: int, limit: int) -> float:
    """current as a percent of limit. Unlimited is always 0; a zero limit is
    100% as soon as anything is used."""
    if limit == UNLIMITED:
        return 0.0
    if limit <= 0:
        return 100.0 if current > 0 else 0.0
    return current / limit * 100


def parse_timestamp(value) -> datetime | None:
    """ISO-8601 string (or datetime) to naive UTC. Unparseable -> None."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _as_int(value) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
