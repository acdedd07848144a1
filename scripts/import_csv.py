#!/usr/bin/env python3
"""Import a cash-flow CSV file for a company from the command line."""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from cashflow.core.errors import AppError  # noqa: E402
from cashflow.core.logger import get_logger, init_logging, log_context, progress_manager  # noqa: E402
from cashflow.db.session import session_scope  # noqa: E402
from cashflow.domain.csv_import import OPTIONAL_FIELDS, REQUIRED_FIELDS  # noqa: E402
from cashflow.services import ImportService  # noqa: E402

logger = get_logger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("company_id", help="Company identifier (UUID)")
    parser.add_argument("dataset_code", help="Dataset code, letters, digits, '_' and '-' only")
    parser.add_argument("csv_file", type=Path, help="Path to the CSV file")
    parser.add_argument("--mapping", type=Path, default=None, help="JSON file mapping system fields to CSV headers")
    for name in (*REQUIRED_FIELDS, *OPTIONAL_FIELDS):
        parser.add_argument(
            f"--{name.replace('_', '-')}-column",
            dest=f"{name}_column",
            default=None,
            help=f"CSV header holding {name}",
        )
    parser.add_argument("--skip-invalid", action="store_true", help="Import valid rows even when some rows are invalid")
    parser.add_argument("--uploaded-by", type=int, default=None, help="User id recorded as the uploader")
    return parser.parse_args()


def build_mapping(args: argparse.Namespace) -> dict[str, str | None]:
    mapping: dict[str, str | None] = {}
    if args.mapping is not None:
        mapping.update(json.loads(args.mapping.read_text(encoding="utf-8")))
    for name in (*REQUIRED_FIELDS, *OPTIONAL_FIELDS):
        value = getattr(args, f"{name}_column")
        if value:
            mapping[name] = value
    # Default to headers named like the system fields.
    for name in REQUIRED_FIELDS:
        mapping.setdefault(name, name)
    return mapping


def main() -> int:
    args = parse_args()
    mapping = build_mapping(args)
    payload = args.csv_file.read_bytes()
    logger.info("Read %s bytes from %s", f"{len(payload):,}", args.csv_file)

    with session_scope() as session, progress_manager.spinner(f"Importing {args.csv_file.name}"):
        try:
            outcome = ImportService(session).run_file_import(
                args.company_id,
                payload,
                dataset_code=args.dataset_code,
                column_mapping=mapping,
                skip_invalid_rows=args.skip_invalid,
                file_name=args.csv_file.name,
                uploaded_by=args.uploaded_by,
            )
        except AppError as exc:
            logger.error("Import rejected: %s", exc.message)
            for detail in exc.details:
                logger.error("  %s: %s", detail.field, detail.message)
            return 2

    record = outcome.record
    logger.info(
        "Import id=%s %s: %s rows, %s valid, %s invalid, %s transactions",
        record.id,
        record.status,
        record.total_rows,
        record.valid_rows,
        record.invalid_rows,
        record.inserted_transactions_count,
    )
    for row in outcome.invalid[:10]:
        logger.warning("Row %s: %s", row.row_number, row.error_message)
    if outcome.scenario_id is not None:
        logger.info("Created scenario id=%s", outcome.scenario_id)
    return 0 if record.status == "completed" else 1


if __name__ == "__main__":
    init_logging(app_name="import-csv")
    log_context.bind(job="import_csv")
    try:
        sys.exit(main())
    except Exception:
        logger.exception("Import failed")
        sys.exit(1)
