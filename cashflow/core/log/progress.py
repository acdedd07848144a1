"""Progress display for the command line scripts.

Bars and spinners draw on the same stderr console as the log handler, so a
log line emitted mid-import scrolls above the bar instead of tearing it.
"""
from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Sized
from contextlib import contextmanager
from functools import partial
from typing import Optional, TypeVar

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    ProgressColumn,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)

T = TypeVar("T")

_LABEL = "[bold blue]{task.description}[/]"


def _bar_columns() -> tuple[ProgressColumn, ...]:
    return (
        TextColumn(_LABEL),
        BarColumn(bar_width=40),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        TimeRemainingColumn(),
    )


def _spinner_columns() -> tuple[ProgressColumn, ...]:
    return (SpinnerColumn("dots"), TextColumn(_LABEL), TimeElapsedColumn())


class ProgressManager:
    """Hands out transient bars bound to whichever console logging installed."""

    def __init__(self) -> None:
        self._console = Console(stderr=True)

    @property
    def console(self) -> Console:
        return self._console

    def use_console(self, console: Console) -> None:
        self._console = console

    def reset_console(self) -> None:
        self._console = Console(stderr=True)

    def _display(self, columns: tuple[ProgressColumn, ...]) -> Progress:
        return Progress(*columns, console=self._console, transient=True)

    @contextmanager
    def task(self, label: str, *, total: Optional[float] = None) -> Iterator[Callable[..., None]]:
        """Show a bar for ``label`` and yield a callable that advances it."""

        with self._display(_bar_columns()) as display:
            task_id = display.add_task(label, total=total)
            yield partial(display.advance, task_id)

    def track(self, items: Iterable[T], *, description: str, total: Optional[int] = None) -> Iterator[T]:
        """Yield ``items`` while a bar counts them; sized inputs need no ``total``."""

        if total is None and isinstance(items, Sized):
            total = len(items)
        with self.task(description, total=total) as step:
            for item in items:
                yield item
                step(1)

    @contextmanager
    def spinner(self, description: str) -> Iterator[None]:
        """Spin while a job of unknown length runs."""

        with self._display(_spinner_columns()) as display:
            display.add_task(description, total=None)
            yield


progress_manager = ProgressManager()
