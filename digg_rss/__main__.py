from __future__ import annotations

import argparse
import logging
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from digg_rss.config import load_config
from digg_rss.jobs.pipeline import build_app_context
from digg_rss.logging_setup import setup_logging
from digg_rss.web import create_app


logger = logging.getLogger(__name__)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="digg-rss")
    parser.add_argument(
        "--env",
        default=".env",
        help="Path to .env file (default: .env).",
    )
    parser.add_argument("--host", default=None, help="Bind address (overrides HOST).")
    parser.add_argument("--port", type=int, default=None, help="Bind port (overrides PORT).")
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    env_path = Path(args.env)
    if env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()

    config = load_config()
    setup_logging(config.log_level, config.log_file)

    app = create_app(build_app_context(config))

    host = args.host or config.host
    port = args.port or config.port
    logger.info("serving feeds on http://%s:%s/rss/all-digg-trending.xml", host, port)
    uvicorn.run(app, host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
