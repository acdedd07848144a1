"""Timing helpers that log duration and throughput of imports and exports."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from time import perf_counter
from typing import Iterator, Optional

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session


class StatementCounter:
    """Count SQL statements executed on an engine while attached."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self.count = 0

    def _on_execute(self, *_args: object, **_kwargs: object) -> None:
        self.count += 1

    def attach(self) -> None:
        event.listen(self._engine, "before_cursor_execute", self._on_execute)

    def detach(self) -> None:
        if event.contains(self._engine, "before_cursor_execute", self._on_execute):
            event.remove(self._engine, "before_cursor_execute", self._on_execute)


@dataclass
class _Timer:
    label: str
    logger: logging.Logger
    level: int
    unit: str
    expected_total: Optional[int]
    count: int = 0
    start: float = field(default_factory=perf_counter)
    statements: Optional[StatementCounter] = None

    def add(self, amount: int = 1) -> None:
        self.count += amount

    def _resolved_total(self) -> Optional[int]:
        return self.expected_total if self.expected_total is not None else self.count

    def _statement_suffix(self) -> str:
        if self.statements is None or not self.statements.count:
            return ""
        return f" ({self.statements.count:,} SQL statements)"

    def finish(self, success: bool = True) -> None:
        elapsed = perf_counter() - self.start
        total = self._resolved_total()

        if success:
            message = f"{self.label} completed in {elapsed:.2f}s"
            if total is not None:
                message += f" ({total:,} {self.unit}"
                if elapsed > 0 and total:
                    message += f" @ {total / elapsed:,.0f} {self.unit}/s"
                message += ")"
            self.logger.log(self.level, message + self._statement_suffix())
        else:
            message = f"{self.label} failed after {elapsed:.2f}s"
            if total is not None:
                message += f" ({total:,} {self.unit})"
            self.logger.error(message + self._statement_suffix())


@contextmanager
def timeit(
    label: str,
    *,
    logger: Optional[logging.Logger] = None,
    level: int = logging.INFO,
    unit: str = "items",
    total: Optional[int] = None,
    session: Optional[Session] = None,
) -> Iterator[_Timer]:
    """Time the enclosed block and log the outcome.

    Args:
        label: Description of the operation being timed.
        logger: Logger to use, ``cashflow.timer`` by default.
        level: Level of the success message.
        unit: Unit used in the throughput figure ("rows", "transactions").
        total: Expected item count. Falls back to whatever ``add`` accumulated.
        session: When given, SQL statements issued through its engine are counted.
    """

    log = logger or logging.getLogger("cashflow.timer")
    counter: StatementCounter | None = None
    if session is not None:
        bind = session.get_bind()
        engine = bind if isinstance(bind, Engine) else bind.engine
        counter = StatementCounter(engine)
        counter.attach()

    timer = _Timer(
        label=label,
        logger=log,
        level=level,
        unit=unit,
        expected_total=total,
        statements=counter,
    )
    try:
        yield timer
    except Exception:
        timer.finish(success=False)
        raise
    else:
        timer.finish(success=True)
    finally:
        if counter is not None:
            counter.detach()
