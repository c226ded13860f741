"""
Environment-driven configuration.

Values are read once at import time (after `.env` is loaded). Credentials are
never configured here: boto3 picks them up from its default chain
(AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY, profiles, instance roles).
"""

import os

from dotenv import load_dotenv

load_dotenv()

AWS_REGION = os.getenv("AWS_REGION")  # optional (boto3 can infer)
DYNAMODB_ENDPOINT_URL = os.getenv("DYNAMODB_ENDPOINT_URL")  # optional (useful for DynamoDB Local)
DYNAMODB_SIGNUPS_TABLE = os.getenv("DYNAMODB_SIGNUPS_TABLE", "insta_detoxify_signups")
DYNAMODB_DOWNLOADS_TABLE = os.getenv("DYNAMODB_DOWNLOADS_TABLE", "insta_detoxify_downloads")
# Seconds. Connection establishment must not hang a serverless invocation.
DYNAMODB_CONNECT_TIMEOUT = float(os.getenv("DYNAMODB_CONNECT_TIMEOUT") or "5")
DYNAMODB_READ_TIMEOUT = float(os.getenv("DYNAMODB_READ_TIMEOUT") or "10")

# The APK lives under public/downloads in both Vercel and local dev.
ASSET_ROOT = os.getenv("ASSET_ROOT") or os.path.join("public", "downloads")
ASSET_NAME = os.getenv("ASSET_NAME", "insta-detoxify.apk")
ASSET_CONTENT_TYPE = "application/vnd.android.package-archive"

DOWNLOAD_API_PATH = "/api/download"
RECENT_SIGNUPS_LIMIT = int(os.getenv("RECENT_SIGNUPS_LIMIT") or "10")

# In production, replace '*' with your domain, e.g. "https://insta-detoxify.vercel.app"
CORS_ALLOW_ORIGIN = os.getenv("CORS_ALLOW_ORIGIN", "*")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json")

DEV_HOST = os.getenv("DEV_HOST", "127.0.0.1")
DEV_PORT = int(os.getenv("DEV_PORT") or "5173")
DEV_STATIC_DIR = os.getenv("DEV_STATIC_DIR", "dist")


def asset_path() -> str:
    return os.path.join(ASSET_ROOT, ASSET_NAME)
