from __future__ import annotations

import sys
import traceback
from typing import IO

from rich.console import Console
from rich.panel import Panel
from rich.status import Status
from rich.text import Text
from rich.traceback import Traceback

from .errors import ConcurrentExportError, PlaybackError, PrematureExportError
from .logging_utils import DEBUG_ENV, debug_enabled, get_log_path
from .scheduler import LiveScheduler

_HINTS: dict[type[BaseException], str] = {
    PlaybackError: "Render offline with `ambientseed export` instead.",
    PrematureExportError: "Start a session with `ambientseed play` first.",
    ConcurrentExportError: "Wait for the running export to finish.",
}


def describe_session(scheduler: LiveScheduler) -> str:
    """One-line summary of a live session for the status line."""
    snapshot = scheduler.snapshot
    if snapshot is None:
        return "no session"
    state = scheduler.state
    notes = "" if state is None else f" | next note {state.next_time:6.1f}s"
    return (
        f"seed {snapshot.seed} | {scheduler.elapsed():6.1f}s of {snapshot.config.duration}"
        f" | {scheduler.status.value}{notes}"
    )


class Spinner:
    """Rich status line for long-running CLI work; silent off a terminal."""

    def __init__(
        self,
        message: str,
        *,
        stream: IO[str] | None = None,
        enabled: bool | None = None,
    ) -> None:
        target = stream or sys.stderr
        if enabled is None:
            enabled = target.isatty()
        self.message = message
        self._status: Status | None = None
        self._console = Console(file=target) if enabled else None

    @property
    def active(self) -> bool:
        return self._status is not None

    def __enter__(self) -> "Spinner":
        if self._console is not None and self._status is None:
            self._status = self._console.status(self.message, spinner="dots")
            self._status.start()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        status, self._status = self._status, None
        if status is not None:
            status.stop()

    def show(self, message: str) -> None:
        self.message = message
        if self._status is not None:
            self._status.update(message)

    def follow(self, scheduler: LiveScheduler) -> None:
        self.show(describe_session(scheduler))


def render_error(
    context: str,
    exc: BaseException,
    *,
    stream: IO[str] | None = None,
) -> None:
    """Report a CLI failure: a panel on a terminal, one plain line otherwise."""
    target = stream or sys.stderr
    hint = next((text for kind, text in _HINTS.items() if isinstance(exc, kind)), None)
    summary = f"{type(exc).__name__}: {exc}"

    if not target.isatty():
        target.write(f"{context} failed: {summary} (logs: {get_log_path()})\n")
        if hint:
            target.write(f"hint: {hint}\n")
        if debug_enabled():
            traceback.print_exception(type(exc), exc, exc.__traceback__, file=target)
        return

    body = Text()
    body.append(f"{context} failed\n\n", style="bold")
    body.append(summary, style="bold red")
    if hint:
        body.append(f"\n\n{hint}", style="yellow")
    body.append(f"\n\nLogs: {get_log_path()}", style="dim")
    if not debug_enabled():
        body.append(f"\nSet {DEBUG_ENV}=1 for the full trace.", style="dim")
    console = Console(file=target)
    console.print(Panel(body, title="ambientseed", border_style="red"))
    if debug_enabled():
        console.print(Traceback.from_exception(type(exc), exc, exc.__traceback__))
