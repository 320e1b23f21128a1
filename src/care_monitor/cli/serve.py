import argparse
import logging

import uvicorn

from ..api.main import create_app
from ..config import load_monitor_config


def main():
    parser = argparse.ArgumentParser(description="Serve the care monitor dashboard API.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--database-url", default=None, help="Realtime database URL (overrides config/env)")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    cfg = load_monitor_config()
    if args.database_url:
        cfg.feed.database_url = args.database_url
    if not cfg.feed.database_url:
        raise SystemExit("database URL required (--database-url or CM_DATABASE_URL)")

    uvicorn.run(create_app(cfg=cfg), host=args.host, port=args.port, log_level=args.log_level.lower())


if __name__ == "__main__":
    main()
