"""content_etl.notify

Operator-facing notifications and progress output.

Every stage transition and terminal outcome becomes a Notification with a
short title and message.  The Notifier keeps the most recent few, logs each
one, and forwards it to an optional output callable (ClickNotifier echoes
to the terminal).
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Literal

import click

from content_etl.importer import ImportProgress, ImportStage

log = logging.getLogger(__name__)

NotificationType = Literal["success", "error", "warning", "info"]

MAX_VISIBLE = 5

_LOG_LEVELS = {
    "success": logging.INFO,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_COLOURS = {
    "success": "green",
    "info": "blue",
    "warning": "yellow",
    "error": "red",
}


@dataclass(frozen=True)
class Notification:
    type: NotificationType
    title: str
    message: str
    timestamp: float = field(default_factory=time.time)
    duration: float = 5.0


class Notifier:
    """Keeps the MAX_VISIBLE most recent notifications, newest first."""

    def __init__(self, output: Callable[[Notification], None] | None = None) -> None:
        self._recent: deque[Notification] = deque(maxlen=MAX_VISIBLE)
        self._output = output

    def notify(self, type: NotificationType, title: str, message: str) -> Notification:
        note = Notification(type=type, title=title, message=message)
        self._recent.appendleft(note)
        log.log(_LOG_LEVELS[type], "%s: %s", title, message)
        if self._output is not None:
            self._output(note)
        return note

    def success(self, title: str, message: str) -> Notification:
        return self.notify("success", title, message)

    def info(self, title: str, message: str) -> Notification:
        return self.notify("info", title, message)

    def warning(self, title: str, message: str) -> Notification:
        return self.notify("warning", title, message)

    def error(self, title: str, message: str) -> Notification:
        return self.notify("error", title, message)

    @property
    def recent(self) -> list[Notification]:
        return list(self._recent)

    def last(self) -> Notification | None:
        return self._recent[0] if self._recent else None

    def clear(self) -> None:
        self._recent.clear()


class ClickNotifier(Notifier):
    """Notifier that also echoes each notification, errors to stderr."""

    def __init__(self, run_id: str) -> None:
        super().__init__(output=self._echo)
        self.run_id = run_id

    def _echo(self, note: Notification) -> None:
        title = click.style(note.title, fg=_COLOURS[note.type], bold=True)
        click.echo(f"[{self.run_id}] {title}: {note.message}", err=note.type == "error")


class ProgressPrinter:
    """Importer progress callback drawing a one-line bar."""

    def __init__(self, run_id: str, width: int = 30, every: int = 1) -> None:
        self.run_id = run_id
        self.width = width
        self.every = max(every, 1)

    def __call__(self, progress: ImportProgress) -> None:
        terminal = progress.stage in (ImportStage.COMPLETE, ImportStage.CANCELLED)
        if not terminal and progress.processed % self.every:
            return
        filled = int(self.width * progress.percent / 100)
        bar = "#" * filled + "-" * (self.width - filled)
        click.echo(
            f"[{self.run_id}] [{bar}] {progress.percent:>3}% "
            f"{progress.processed}/{progress.total} errors={progress.error_count}"
        )
