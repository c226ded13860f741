"""
Local development server.

Serves the same /api/* endpoints Vercel runs, plus the built landing page
(`npm run build` output, DEV_STATIC_DIR) from one origin, so the page's
relative fetch('/api/...') calls work without a proxy.

    python devserver.py --reload
    DYNAMODB_ENDPOINT_URL=http://localhost:8000 python devserver.py --bootstrap-tables
"""

import argparse
import logging
import os
from typing import Optional

import boto3
import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

import config
import db
from main import create_app
from observability import setup_logging

logger = logging.getLogger(__name__)


def create_dev_app(static_dir: Optional[str] = None) -> FastAPI:
    app = create_app()
    static_dir = static_dir or config.DEV_STATIC_DIR
    # Mounted after the API routes so /api/* takes precedence.
    if os.path.isdir(static_dir):
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
    else:
        logger.warning(f"Static directory '{static_dir}' not found; serving the API only")
    return app


def bootstrap_tables() -> list:
    """Create the tables on DynamoDB Local. Refuses to run against real AWS."""
    if not config.DYNAMODB_ENDPOINT_URL:
        raise SystemExit("--bootstrap-tables requires DYNAMODB_ENDPOINT_URL (DynamoDB Local)")
    dynamodb = boto3.resource(
        "dynamodb",
        region_name=config.AWS_REGION or "us-east-1",
        endpoint_url=config.DYNAMODB_ENDPOINT_URL,
    )
    return db.create_tables(dynamodb)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the landing page and API locally.")
    parser.add_argument("--host", default=config.DEV_HOST)
    parser.add_argument("--port", type=int, default=config.DEV_PORT)
    parser.add_argument("--static-dir", default=config.DEV_STATIC_DIR)
    parser.add_argument("--reload", action="store_true", help="restart on code changes")
    parser.add_argument(
        "--bootstrap-tables", action="store_true",
        help="create the DynamoDB tables first (DynamoDB Local only)",
    )
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    setup_logging(config.LOG_LEVEL, "text")
    if args.bootstrap_tables:
        created = bootstrap_tables()
        logger.info(f"Tables created: {', '.join(created) or 'none (already present)'}")

    if args.reload:
        # uvicorn needs an import string to reload; the static dir comes from env.
        os.environ["DEV_STATIC_DIR"] = args.static_dir
        uvicorn.run("devserver:dev_app_factory", factory=True, host=args.host, port=args.port, reload=True)
    else:
        uvicorn.run(create_dev_app(args.static_dir), host=args.host, port=args.port)


def dev_app_factory() -> FastAPI:
    return create_dev_app(os.getenv("DEV_STATIC_DIR"))


if __name__ == "__main__":
    main()
