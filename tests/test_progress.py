import io

import pytest
from rich.console import Console

from cashflow.core.log.progress import ProgressManager


def _quiet_manager() -> ProgressManager:
    manager = ProgressManager()
    manager.use_console(Console(file=io.StringIO(), force_terminal=False))
    return manager


def test_track_yields_every_item_in_order() -> None:
    manager = _quiet_manager()

    assert list(manager.track(["weeks", "flows", "imports"], description="Creating tables")) == [
        "weeks",
        "flows",
        "imports",
    ]
    assert list(manager.track(iter(range(3)), description="Rows")) == [0, 1, 2]


def test_task_step_advances_the_bar() -> None:
    manager = _quiet_manager()

    with manager.task("Rows", total=4) as step:
        step(3)
        step(1)


def test_spinner_propagates_errors_and_console_can_be_reset() -> None:
    manager = _quiet_manager()
    quiet = manager.console

    with pytest.raises(RuntimeError, match="boom"):
        with manager.spinner("Importing sample.csv"):
            raise RuntimeError("boom")

    manager.reset_console()
    assert manager.console is not quiet
