"""
DynamoDB access for the landing API.

A serverless instance is reused across invocations, so the boto3 resource and
its tables are created once per process and cached (see ConnectionManager).
Nothing touches AWS at import time: on Vercel, missing env vars would
otherwise crash the whole function before any endpoint could report them.

Tables:
- signups:   pk="SIGNUP" (hash), sk="<createdAt>#<signupId>" (range).
             One partition, so "most recent first" is a descending Query.
- downloads: email (hash), sk="<timestamp>#<eventId>" (range).
"""

import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional
from uuid import uuid4

import boto3
from boto3.dynamodb.conditions import Key
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

import config
from errors import ConnectionFailure, PersistenceFailure

logger = logging.getLogger(__name__)

SIGNUP_PARTITION = "SIGNUP"


@dataclass(frozen=True)
class DatabaseHandle:
    resource: Any
    signups: Any
    downloads: Any


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_created_at(dt: datetime) -> str:
    """Fixed-width UTC timestamp: lexical order == chronological order."""
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def format_display_timestamp(dt: datetime) -> str:
    """Same shape as JavaScript's Date.toISOString(), which the landing page sends."""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def connect_dynamodb() -> DatabaseHandle:
    """
    Build the boto3 resource and check the signups table is reachable.

    boto3 itself is lazy, so without the DescribeTable call a bad region or
    endpoint would only surface on the first write.
    """
    try:
        dynamodb = boto3.resource(
            "dynamodb",
            region_name=config.AWS_REGION,
            endpoint_url=config.DYNAMODB_ENDPOINT_URL,
            config=Config(
                connect_timeout=config.DYNAMODB_CONNECT_TIMEOUT,
                read_timeout=config.DYNAMODB_READ_TIMEOUT,
                retries={"max_attempts": 2, "mode": "standard"},
            ),
        )
        signups = dynamodb.Table(config.DYNAMODB_SIGNUPS_TABLE)
        downloads = dynamodb.Table(config.DYNAMODB_DOWNLOADS_TABLE)
        signups.load()
    except (BotoCoreError, ClientError) as e:
        raise ConnectionFailure(
            "Could not connect to DynamoDB. "
            "Check AWS_REGION, AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, and table env vars. "
            f"Underlying error: {type(e).__name__}: {e}"
        ) from e
    logger.info("Connected to DynamoDB", extra={"table": config.DYNAMODB_SIGNUPS_TABLE})
    return DatabaseHandle(resource=dynamodb, signups=signups, downloads=downloads)


class ConnectionManager:
    """
    Lazily creates one DatabaseHandle per process.

    Only one connection attempt runs at a time: callers arriving while it is in
    flight wait on the same Future and share its outcome. A failed attempt is
    not cached; the next call starts over.
    """

    def __init__(self, connect: Callable[[], DatabaseHandle] = connect_dynamodb):
        self._connect = connect
        self._lock = threading.Lock()
        self._handle: Optional[DatabaseHandle] = None
        self._pending: Optional[Future] = None

    @property
    def connected(self) -> bool:
        return self._handle is not None

    def get_handle(self) -> DatabaseHandle:
        handle = self._handle
        if handle is not None:
            return handle

        with self._lock:
            if self._handle is not None:
                return self._handle
            pending = self._pending
            owner = pending is None
            if owner:
                pending = self._pending = Future()

        if not owner:
            return pending.result()

        try:
            handle = self._connect()
        except BaseException as e:
            failure = e if isinstance(e, ConnectionFailure) else ConnectionFailure(
                f"Database connection failed: {type(e).__name__}: {e}"
            )
            with self._lock:
                self._pending = None
            logger.error(f"Database connection failed: {failure.message}", extra={"error_code": failure.code})
            # Waiters always get a ConnectionFailure; the owner re-raises
            # interrupts (KeyboardInterrupt, SystemExit) unchanged.
            pending.set_exception(failure)
            if failure is e or not isinstance(e, Exception):
                raise
            raise failure from e

        with self._lock:
            self._handle = handle
            self._pending = None
        pending.set_result(handle)
        return handle

    def reset(self) -> None:
        with self._lock:
            self._handle = None


manager = ConnectionManager()


def get_handle() -> DatabaseHandle:
    return manager.get_handle()


def insert_signup(
    handle: DatabaseHandle, name: str, email: str, timestamp: Optional[str] = None
) -> dict:
    now = _utc_now()
    created_at = format_created_at(now)
    signup_id = str(uuid4())
    item = {
        "pk": SIGNUP_PARTITION,
        "sk": f"{created_at}#{signup_id}",
        "signupId": signup_id,
        "name": name,
        "email": email,
        "timestamp": timestamp or format_display_timestamp(now),
        "createdAt": created_at,
    }
    try:
        handle.signups.put_item(Item=item)
    except (BotoCoreError, ClientError) as e:
        raise PersistenceFailure(
            f"DynamoDB put_item failed for signups table '{config.DYNAMODB_SIGNUPS_TABLE}': {e}",
            "put_item",
        ) from e
    logger.info(f"New signup saved: {name} ({email})")
    return item


def insert_download(handle: DatabaseHandle, email: str, user_agent: Optional[str] = None) -> dict:
    timestamp = format_created_at(_utc_now())
    item = {"email": email, "sk": f"{timestamp}#{uuid4()}", "timestamp": timestamp}
    if user_agent:
        item["userAgent"] = user_agent
    try:
        handle.downloads.put_item(Item=item)
    except (BotoCoreError, ClientError) as e:
        raise PersistenceFailure(
            f"DynamoDB put_item failed for downloads table '{config.DYNAMODB_DOWNLOADS_TABLE}': {e}",
            "put_item",
        ) from e
    return item


def record_download(email: str, user_agent: Optional[str] = None) -> bool:
    """
    Best-effort download logging. Returns False when the event could not be
    stored; the failure is logged and never raised, so the download proceeds.
    """
    try:
        insert_download(get_handle(), email, user_agent)
    except PersistenceFailure as e:
        logger.error(
            f"Error logging download: {e.message}",
            extra={"error_code": e.code, "email": email},
        )
        return False
    logger.info(f"Download recorded for: {email}")
    return True


def recent_signups(handle: DatabaseHandle, limit: int) -> list:
    """Newest signups first, projected to name + timestamp (never email)."""
    if limit <= 0:
        return []
    try:
        resp = handle.signups.query(
            KeyConditionExpression=Key("pk").eq(SIGNUP_PARTITION),
            ScanIndexForward=False,
            Limit=limit,
            # Both are DynamoDB reserved words.
            ProjectionExpression="#n, #ts",
            ExpressionAttributeNames={"#n": "name", "#ts": "timestamp"},
        )
    except (BotoCoreError, ClientError) as e:
        raise PersistenceFailure(
            f"DynamoDB query failed for signups table '{config.DYNAMODB_SIGNUPS_TABLE}': {e}",
            "query",
        ) from e
    items = resp.get("Items") or []
    return [{"name": item.get("name"), "timestamp": item.get("timestamp")} for item in items[:limit]]


def create_tables(dynamodb) -> list:
    """
    Create the signups and downloads tables if missing. Meant for DynamoDB Local;
    production tables are provisioned outside this app.
    """
    existing = {table.name for table in dynamodb.tables.all()}
    definitions = [
        (config.DYNAMODB_SIGNUPS_TABLE, "pk", "sk"),
        (config.DYNAMODB_DOWNLOADS_TABLE, "email", "sk"),
    ]
    created = []
    for table_name, hash_key, range_key in definitions:
        if table_name in existing:
            continue
        table = dynamodb.create_table(
            TableName=table_name,
            KeySchema=[
                {"AttributeName": hash_key, "KeyType": "HASH"},
                {"AttributeName": range_key, "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": hash_key, "AttributeType": "S"},
                {"AttributeName": range_key, "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST",
        )
        table.wait_until_exists()
        logger.info(f"Created table {table_name}", extra={"table": table_name})
        created.append(table_name)
    return created
