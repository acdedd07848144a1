"""Check that the configured database is reachable and the schema exists."""
from __future__ import annotations

import sys
from pathlib import Path

from sqlalchemy import inspect, text

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from cashflow.core.config import get_settings  # noqa: E402  (import after sys.path manipulation)
from cashflow.db.engine import create_sync_engine  # noqa: E402
from cashflow.models import Base  # noqa: E402

settings = get_settings()
engine = create_sync_engine()


def main() -> int:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    print(f"Connected to {settings.database.masked_url}")

    existing = set(inspect(engine).get_table_names())
    missing = sorted(set(Base.metadata.tables) - existing)
    if missing:
        print(f"Missing tables: {', '.join(missing)}")
        return 1
    print(f"All {len(Base.metadata.tables)} tables present")
    return 0


if __name__ == "__main__":
    sys.exit(main())
