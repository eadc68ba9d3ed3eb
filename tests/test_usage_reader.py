"""
Usage reader tests: Redis first, database count on miss, repopulation.

Verifies:
- A cache hit is returned as-is
- A miss counts from the database and writes the count back
- With Redis unreachable the database count is returned without errors
- Click counts only include this month's events and carry the monthly TTL
- get_workspace_usage reports counts, limits and percentages
"""
import pytest
from datetime import datetime, timedelta

from core.usage.errors import WorkspaceNotFound, InvalidUsageRequest
from core.usage.keys import usage_key, start_of_month
from core.usage.reader import get_current_usage, count_usage_from_database, get_workspace_usage


@pytest.mark.usage
class TestCountFromDatabase:

    def test_links_and_users(self, app, workspace, add_links):
        add_links(workspace, 4)
        assert count_usage_from_database(workspace.id, 'links') == 4
        assert count_usage_from_database(workspace.id, 'users') == 1

    def test_clicks_only_this_month(self, app, workspace, add_clicks):
        add_clicks(workspace, 3)
        add_clicks(workspace, 5, timestamp=start_of_month() - timedelta(minutes=1))
        assert count_usage_from_database(workspace.id, 'clicks') == 3

    def test_clicks_scoped_to_workspace(self, app, make_workspace, user, add_clicks):
        ws_a = make_workspace(user)
        ws_b = make_workspace(user)
        add_clicks(ws_a, 2)
        add_clicks(ws_b, 7)
        assert count_usage_from_database(ws_a.id, 'clicks') == 2

    def test_unknown_metric(self, app, workspace):
        with pytest.raises(InvalidUsageRequest):
            count_usage_from_database(workspace.id, 'domains')


@pytest.mark.usage
class TestGetCurrentUsage:

    def test_hit_returns_cached_value(self, app, workspace, fake_redis, add_links):
        add_links(workspace, 2)
        fake_redis.set(usage_key(workspace.id, 'links'), 17)
        assert get_current_usage(workspace.id, 'links') == 17

    def test_miss_falls_back_and_repopulates(self, app, workspace, fake_redis, add_links):
        add_links(workspace, 25)
        key = usage_key(workspace.id, 'links')
        assert fake_redis.get(key) is None

        assert get_current_usage(workspace.id, 'links') == 25
        assert fake_redis.value(key) == 25
        assert key not in fake_redis.ttls

    def test_click_repopulation_carries_monthly_ttl(self, app, workspace, fake_redis, add_clicks):
        add_clicks(workspace, 6)
        key = usage_key(workspace.id, 'clicks')
        assert get_current_usage(workspace.id, 'clicks') == 6
        assert fake_redis.value(key) == 6
        assert key in fake_redis.ttls
        assert fake_redis.ttls[key] > 0

    def test_unreachable_redis_uses_database(self, app, workspace, broken_redis, add_links):
        add_links(workspace, 9)
        assert get_current_usage(workspace.id, 'links') == 9

    def test_database_only_mode(self, app, workspace, add_links):
        add_links(workspace, 3)
        assert get_current_usage(workspace.id, 'links') == 3

    def test_unknown_metric(self, app, workspace):
        with pytest.raises(InvalidUsageRequest):
            get_current_usage(workspace.id, 'bandwidth')


@pytest.mark.usage
class TestWorkspaceUsage:

    def test_summary(self, app, workspace, add_links, add_clicks):
        add_links(workspace, 40)
        add_clicks(workspace, 10)
        usage = get_workspace_usage(workspace.id)
        # add_clicks creates a link of its own
        assert usage['links'] == 41
        assert usage['links_limit'] == 50
        assert usage['links_percentage'] == pytest.approx(82.0)
        assert usage['clicks'] == 10
        assert usage['users'] == 1
        assert usage['plan'] == 'free'

    def test_missing_workspace(self, app):
        with pytest.raises(WorkspaceNotFound):
            get_workspace_usage(999999)
