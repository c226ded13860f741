"""Tests for GET /api/recent-signups and db.recent_signups."""

from datetime import datetime, timedelta, timezone

import pytest

import config
import db
from conftest import client_error
from errors import PersistenceFailure


@pytest.fixture
def clock(monkeypatch):
    """Deterministic, strictly increasing server clock."""
    state = {"now": datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)}

    def tick():
        state["now"] += timedelta(milliseconds=1)
        return state["now"]

    monkeypatch.setattr(db, "_utc_now", tick)
    return state


def _seed(handle, count):
    for i in range(count):
        db.insert_signup(handle, f"user{i}", f"user{i}@x.com", timestamp=f"client-{i}")


def test_never_returns_more_than_the_limit(client, handle, clock):
    _seed(handle, 15)
    resp = client.get("/api/recent-signups")
    assert resp.status_code == 200
    assert len(resp.json()) == config.RECENT_SIGNUPS_LIMIT == 10


def test_most_recent_first(client, handle, clock):
    _seed(handle, 4)
    names = [s["name"] for s in client.get("/api/recent-signups").json()]
    assert names == ["user3", "user2", "user1", "user0"]


def test_order_uses_created_at_not_client_timestamp(client, handle, clock):
    db.insert_signup(handle, "early", "e@x.com", timestamp="2099-01-01T00:00:00.000Z")
    db.insert_signup(handle, "late", "l@x.com", timestamp="2000-01-01T00:00:00.000Z")
    names = [s["name"] for s in client.get("/api/recent-signups").json()]
    assert names == ["late", "early"]


def test_only_name_and_timestamp_are_returned(client, handle, clock):
    _seed(handle, 3)
    for signup in client.get("/api/recent-signups").json():
        assert set(signup) == {"name", "timestamp"}
        assert "email" not in signup


def test_empty_table_returns_empty_list(client):
    resp = client.get("/api/recent-signups")
    assert resp.status_code == 200
    assert resp.json() == []


def test_limit_is_configurable(client, handle, clock, monkeypatch):
    monkeypatch.setattr(config, "RECENT_SIGNUPS_LIMIT", 5)
    _seed(handle, 8)
    assert len(client.get("/api/recent-signups").json()) == 5


def test_database_failure_is_a_server_error(client, handle):
    handle.signups.fail_with = client_error("InternalServerError", "Query")
    resp = client.get("/api/recent-signups")
    assert resp.status_code == 500
    assert resp.json() == {"error": "An error occurred while fetching recent signups"}


def test_connection_failure_is_a_server_error(client, connect):
    connect.failures = 1
    resp = client.get("/api/recent-signups")
    assert resp.status_code == 500
    assert resp.json() == {"error": "An error occurred while fetching recent signups"}


def test_query_is_descending_limited_and_projected(handle):
    db.recent_signups(handle, 7)
    query = handle.signups.queries[0]
    assert query["ScanIndexForward"] is False
    assert query["Limit"] == 7
    assert set(query["ExpressionAttributeNames"].values()) == {"name", "timestamp"}


def test_extra_attributes_are_dropped_even_if_the_store_returns_them(handle):
    handle.signups.query = lambda **kwargs: {"Items": [{"name": "a", "timestamp": "t", "email": "a@x.com"}]}
    assert db.recent_signups(handle, 5) == [{"name": "a", "timestamp": "t"}]


def test_non_positive_limit_skips_the_query(handle):
    assert db.recent_signups(handle, 0) == []
    assert handle.signups.queries == []


def test_query_errors_are_persistence_failures(handle):
    handle.signups.fail_with = client_error("InternalServerError", "Query")
    with pytest.raises(PersistenceFailure) as exc_info:
        db.recent_signups(handle, 5)
    assert exc_info.value.operation == "query"
