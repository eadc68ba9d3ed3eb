"""
Counter store — thin Redis wrapper used as the fast tier for usage counters.

Every call absorbs Redis errors and reports them instead of raising, so the
usage core can fall back to the database. Reads return a CounterRead that
tells a missing key (MISS) apart from an unreachable store (UNAVAILABLE).

The store lives on app.extensions['usage_counter_store'] (see
init_counter_store); nothing is cached in module globals.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import redis
from flask import current_app

EXTENSION_KEY = 'usage_counter_store'

HIT = 'hit'
MISS = 'miss'
UNAVAILABLE = 'unavailable'

# --------- Lua scripts ---------
# KEYS: 1 counter   ARGV: 1 amount
# Returns -1 when the counter is absent (left absent so the next read
# recounts from the database), else the new value clamped at 0.
_LUA_DECREMENT_CLAMPED = r"""
if redis.call("EXISTS", KEYS[1]) == 0 then
  return -1
end
local nv = redis.call("DECRBY", KEYS[1], ARGV[1])
if nv < 0 then
  redis.call("SET", KEYS[1], 0, "KEEPTTL")
  return 0
end
return nv
"""

# KEYS: 1 lock   ARGV: 1 holder token
# Deletes the lock only while it still belongs to the caller.
_LUA_RELEASE_LOCK = r"""
if redis.call("GET", KEYS[1]) == ARGV[1] then
  return redis.call("DEL", KEYS[1])
end
return 0
"""


@dataclass(frozen=True)
class CounterRead:
    """Result of a counter lookup: HIT (with value), MISS, or UNAVAILABLE."""

    status: str
    value: int | None = None

    @classmethod
    def hit(cls, value: int) -> CounterRead:
        return cls(HIT, value)

    @classmethod
    def miss(cls) -> CounterRead:
        return cls(MISS)

    @classmethod
    def unavailable(cls) -> CounterRead:
        return cls(UNAVAILABLE)

    @property
    def is_hit(self) -> bool:
        return self.status == HIT

    @property
    def is_unavailable(self) -> bool:
        return self.status == UNAVAILABLE


class CounterStore:
    """Atomic counters, expiry and set-if-absent locks over a redis client.

    A store built without a client is permanently unavailable; this is how
    deployments without REDIS_URL run (database-only mode).
    """

    def __init__(self, client: redis.Redis | None = None):
        self._client = client

    @classmethod
    def from_url(cls, url: str | None) -> CounterStore:
        if not url:
            print('[usage] No REDIS_URL configured, counters will use the database')
            return cls(None)
        try:
            client = redis.Redis.from_url(url, decode_responses=True)
            client.ping()
        except redis.exceptions.RedisError as e:
            print(f'[usage] Redis unavailable at startup ({e}), counters will use the database')
            return cls(None)
        return cls(client)

    @property
    def available(self) -> bool:
        return self._client is not None

    # --- reads --------------------------------------------------------------

    def get(self, key: str) -> CounterRead:
        if self._client is None:
            return CounterRead.unavailable()
        try:
            raw = self._client.get(key)
        except redis.exceptions.RedisError as e:
            print(f'[usage] Redis get failed key={key}: {e}')
            return CounterRead.unavailable()
        if raw is None:
            return CounterRead.miss()
        try:
            return CounterRead.hit(int(raw))
        except (TypeError, ValueError):
            print(f'[usage] Non-integer counter value key={key}: {raw!r}')
            return CounterRead.miss()

    # --- writes -------------------------------------------------------------

    def set(self, key: str, value: int, ttl: int | None = None) -> bool:
        """Set a counter, optionally with a TTL in seconds. Returns success."""
        if self._client is None:
            return False
        try:
            if ttl:
                self._client.set(key, value, ex=ttl)
            else:
                self._client.set(key, value)
            return True
        except redis.exceptions.RedisError as e:
            print(f'[usage] Redis set failed key={key}: {e}')
            return False

    def set_if_absent(self, key: str, value, ttl: int) -> bool | None:
        """SET NX EX. Returns True if set, False if the key already exists,
        None if the store is unavailable."""
        if self._client is None:
            return None
        try:
            return bool(self._client.set(key, value, nx=True, ex=ttl))
        except redis.exceptions.RedisError as e:
            print(f'[usage] Redis set-if-absent failed key={key}: {e}')
            return None

    def increment(self, key: str, amount: int = 1) -> int | None:
        """INCRBY. Returns the new value, or None if the store is unavailable."""
        if self._client is None:
            return None
        try:
            return int(self._client.incrby(key, amount))
        except redis.exceptions.RedisError as e:
            print(f'[usage] Redis increment failed key={key}: {e}')
            return None

    def decrement(self, key: str, amount: int = 1) -> CounterRead:
        """Atomic DECRBY clamped at zero, only if the counter exists.

        Returns HIT with the new value, MISS if the key was absent (nothing
        is written), or UNAVAILABLE.
        """
        if self._client is None:
            return CounterRead.unavailable()
        try:
            new_value = int(self._client.eval(_LUA_DECREMENT_CLAMPED, 1, key, amount))
        except redis.exceptions.RedisError as e:
            print(f'[usage] Redis decrement failed key={key}: {e}')
            return CounterRead.unavailable()
        if new_value < 0:
            return CounterRead.miss()
        return CounterRead.hit(new_value)

    def expire_at(self, key: str, when: datetime) -> bool:
        """Expire the key at a naive-UTC datetime."""
        if self._client is None:
            return False
        ttl = int((when - datetime.utcnow()).total_seconds())
        if ttl <= 0:
            return False
        try:
            return bool(self._client.expire(key, ttl))
        except redis.exceptions.RedisError as e:
            print(f'[usage] Redis expire failed key={key}: {e}')
            return False

    def release_lock(self, key: str, token: str) -> bool:
        """Delete a set_if_absent lock if it still holds token. Returns True if deleted."""
        if self._client is None:
            return False
        try:
            return bool(self._client.eval(_LUA_RELEASE_LOCK, 1, key, token))
        except redis.exceptions.RedisError as e:
            print(f'[usage] Redis lock release failed key={key}: {e}')
            return False


def init_counter_store(app, client: redis.Redis | None = None) -> CounterStore:
    """Attach a CounterStore to the app. Pass client to inject one (tests)."""
    if client is not None:
        store = CounterStore(client)
    else:
        store = CounterStore.from_url(app.config.get('REDIS_URL'))
    app.extensions[EXTENSION_KEY] = store
    return store


def get_counter_store() -> CounterStore:
    """Return the CounterStore bound to the current app (unavailable if none)."""
    store = current_app.extensions.get(EXTENSION_KEY)
    if store is None:
        store = CounterStore(None)
        current_app.extensions[EXTENSION_KEY] = store
    return store
