"""
skillswap.__main__ — Operator entry point for ``python -m skillswap``
======================================================================

Commands::

    python -m skillswap serve [--host H] [--port P]   # run the API
    python -m skillswap init-db                       # create tables
    python -m skillswap dispatch-outbox               # retry pending side effects
    python -m skillswap grant-badge USER_ID BADGE_ID  # out-of-band badge award

Wiring for every command:
1. Load .env (secrets, DATABASE_URL).
2. Load config.yaml (soft settings).
3. Create the SQLAlchemy engine.
"""

from __future__ import annotations

import argparse
import logging
import sys

from dotenv import load_dotenv

from skillswap.config import load_config
from skillswap.database.engine import create_db_engine, init_db

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("skillswap")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="skillswap", description="SkillSwap operator commands")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    sub.add_parser("init-db", help="Create all tables (dev/test; use Alembic in production)")
    sub.add_parser("dispatch-outbox", help="Deliver pending notifications and badge checks")

    grant = sub.add_parser("grant-badge", help="Award a catalog badge by hand")
    grant.add_argument("user_id")
    grant.add_argument("badge_id")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    # 1. Environment variables (secrets).
    load_dotenv()

    if args.command == "serve":
        import uvicorn

        logger.info("Starting SkillSwap API on %s:%d…", args.host, args.port)
        uvicorn.run("skillswap.api.main:app", host=args.host, port=args.port)
        return 0

    # 2. Soft configuration.
    cfg = load_config()
    logger.info("Config loaded — Community: %s", cfg.community_name)

    # 3. Database.
    engine = create_db_engine()

    if args.command == "init-db":
        init_db(engine)
        return 0

    if args.command == "dispatch-outbox":
        from skillswap.services.outbox import dispatch_pending

        delivered = dispatch_pending(engine, cfg)
        logger.info("Outbox: %d event(s) delivered", delivered)
        return 0

    if args.command == "grant-badge":
        from skillswap.errors import SkillSwapError
        from skillswap.services.badge_service import grant_badge

        try:
            ok, message = grant_badge(engine, user_id=args.user_id, badge_id=args.badge_id)
        except SkillSwapError as exc:
            logger.error("grant-badge failed: %s", exc)
            return 1
        (logger.info if ok else logger.warning)(message)
        return 0 if ok else 1

    return 2


if __name__ == "__main__":
    sys.exit(main())
