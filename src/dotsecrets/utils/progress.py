"""Progress indicators for remote operations, using the rich library."""

import sys
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)


@contextmanager
def progress_spinner(message: str = "Working") -> Iterator[Progress]:
    """Indeterminate spinner for a single remote call.

    Transient, and disabled when stderr is not a terminal.

    Usage:
        with progress_spinner("Listing groups"):
            groups = orchestrator.groups()
    """
    progress = Progress(
        SpinnerColumn(),
        TextColumn("{task.description}"),
        TimeElapsedColumn(),
        transient=True,
        disable=not sys.stderr.isatty(),
    )

    with progress:
        progress.add_task(message, total=None)
        yield progress


@contextmanager
def chunk_progress(message: str) -> Iterator[Callable[[int, int], None]]:
    """Progress bar fed by the orchestrator's ``on_chunk(done, total)`` callback.

    The total is unknown until the payload has been chunked, so the bar
    starts as a spinner.
    """
    progress = Progress(
        SpinnerColumn(),
        TextColumn("{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        transient=True,
        disable=not sys.stderr.isatty(),
    )

    with progress:
        task = progress.add_task(message, total=None)

        def advance(done: int, total: int) -> None:
            progress.update(task, completed=done, total=total)

        yield advance
