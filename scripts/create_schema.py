#!/usr/bin/env python3
"""Create the planner tables and optionally a demo user with one company."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from cashflow.core.config import get_settings  # noqa: E402
from cashflow.core.logger import get_logger, init_logging, log_context, progress_manager, timeit  # noqa: E402
from cashflow.db.engine import create_sync_engine  # noqa: E402
from cashflow.db.session import session_scope  # noqa: E402
from cashflow.models import Base  # noqa: E402
from cashflow.repositories import AccountRepository  # noqa: E402
from cashflow.services import AccountService  # noqa: E402

logger = get_logger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--drop", action="store_true", help="Drop existing tables before creating them")
    parser.add_argument("--demo-email", type=str, default=None, help="Create a demo user with this email")
    parser.add_argument("--demo-password", type=str, default="demo-password", help="Password for the demo user")
    parser.add_argument("--demo-company", type=str, default="Demo Company", help="Name of the demo company")
    parser.add_argument("--currency", type=str, default=None, help="Base currency for the demo company")
    return parser.parse_args()


def create_schema(drop: bool = False) -> None:
    engine = create_sync_engine()
    with timeit("schema creation", logger=logger):
        if drop:
            logger.info("Dropping existing tables")
            Base.metadata.drop_all(engine)
        tables = Base.metadata.sorted_tables
        for table in progress_manager.track(tables, description="Creating tables", total=len(tables)):
            table.create(engine, checkfirst=True)
    logger.info("Schema ready with %s tables", len(Base.metadata.tables))


def seed_demo_account(email: str, password: str, company_name: str, currency: str | None) -> None:
    with session_scope() as session:
        if AccountRepository(session).get_user_by_email(email) is not None:
            logger.info("Demo user %s already exists, skipping", email)
            return
        user, company = AccountService(session).register(
            email=email,
            password=password,
            company_name=company_name,
            base_currency=currency,
        )
        logger.info("Created demo user id=%s in company %s (%s)", user.id, company.id, company.name)


def main() -> None:
    args = parse_args()
    create_schema(drop=args.drop)
    if args.demo_email:
        seed_demo_account(args.demo_email, args.demo_password, args.demo_company, args.currency)


if __name__ == "__main__":
    init_logging(app_name="create-schema")
    log_context.bind(job="create_schema", database=get_settings().database.masked_url)
    try:
        main()
    except Exception:
        logger.exception("Schema creation failed")
        sys.exit(1)
