"""
Rate limiting configuration for the link dashboard
"""
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
import os


def get_limiter_storage_uri():
    """
    Get storage URI for rate limiter
    Shares the usage counters' Redis in production, memory in development
    """
    redis_url = os.environ.get('REDIS_URL')
    if redis_url:
        return redis_url
    # Fallback to memory storage for development
    return "memory://"


def get_default_limits():
    """RATE_LIMIT_DEFAULTS overrides the global limits, e.g. "2000 per hour;200 per minute"."""
    configured = os.environ.get('RATE_LIMIT_DEFAULTS')
    if configured:
        return [part.strip() for part in configured.split(';') if part.strip()]
    return ["1000 per hour", "100 per minute"]


# Initialize rate limiter
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=get_limiter_storage_uri(),
    default_limits=get_default_limits(),
    storage_options={"socket_connect_timeout": 30},
    strategy="fixed-window",
    # A rate limit store outage must never take redirects down with it
    swallow_errors=True,
)


def init_limiter(app):
    """Initialize rate limiter with Flask app"""
    limiter.init_app(app)
    return limiter
