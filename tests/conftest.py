"""Shared fixtures: in-memory DynamoDB tables, a temp APK, and a TestClient."""

import os

# Never talk to real AWS from the test suite.
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient

import config
import db
from errors import ConnectionFailure
from main import app


def client_error(code="InternalServerError", operation="PutItem"):
    return ClientError({"Error": {"Code": code, "Message": "boom"}}, operation)


class FakeTable:
    """
    The slice of boto3's Table API the app uses: put_item, query, load.

    `query` honours the hash-key equality condition, ScanIndexForward, Limit
    and a ProjectionExpression made of #aliases.
    """

    def __init__(self, name, range_key):
        self.name = name
        self.range_key = range_key
        self.items = []
        self.queries = []
        self.fail_with = None

    def load(self):
        if self.fail_with:
            raise self.fail_with

    def put_item(self, Item):
        if self.fail_with:
            raise self.fail_with
        self.items.append(dict(Item))
        return {}

    def query(self, **kwargs):
        self.queries.append(kwargs)
        if self.fail_with:
            raise self.fail_with
        key, value = kwargs["KeyConditionExpression"].get_expression()["values"]
        matches = [item for item in self.items if item.get(key.name) == value]
        matches.sort(key=lambda item: item[self.range_key], reverse=not kwargs.get("ScanIndexForward", True))
        if "Limit" in kwargs:
            matches = matches[: kwargs["Limit"]]
        projection = kwargs.get("ProjectionExpression")
        if projection:
            names = kwargs.get("ExpressionAttributeNames", {})
            fields = [names.get(p.strip(), p.strip()) for p in projection.split(",")]
            matches = [{f: item[f] for f in fields if f in item} for item in matches]
        return {"Items": matches, "Count": len(matches)}


class CountingConnect:
    """Connect function for ConnectionManager that counts attempts."""

    def __init__(self, handle, failures=0):
        self.handle = handle
        self.failures = failures
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionFailure("DynamoDB unreachable")
        return self.handle


@pytest.fixture
def handle():
    return db.DatabaseHandle(
        resource=None,
        signups=FakeTable(config.DYNAMODB_SIGNUPS_TABLE, "sk"),
        downloads=FakeTable(config.DYNAMODB_DOWNLOADS_TABLE, "sk"),
    )


@pytest.fixture
def connect(handle, monkeypatch):
    """Installs a fresh process-wide ConnectionManager backed by the fake tables."""
    connect = CountingConnect(handle)
    monkeypatch.setattr(db, "manager", db.ConnectionManager(connect))
    return connect


@pytest.fixture
def apk(tmp_path, monkeypatch):
    downloads_dir = tmp_path / "downloads"
    downloads_dir.mkdir()
    path = downloads_dir / "insta-detoxify.apk"
    path.write_bytes(b"PK\x03\x04" + bytes(range(256)) * 8)
    monkeypatch.setattr(config, "ASSET_ROOT", str(downloads_dir))
    monkeypatch.setattr(config, "ASSET_NAME", "insta-detoxify.apk")
    return path


@pytest.fixture
def client(connect):
    return TestClient(app)
