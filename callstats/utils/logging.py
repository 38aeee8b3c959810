"""Activity log helpers: numbered, direction-tagged lines in a capped file."""

from __future__ import annotations

import itertools
import logging
import os
from datetime import datetime, tzinfo
from pathlib import Path

ACTIVITY_LOGGER_NAME = "callstats.activity"
DEFAULT_MAX_LINES = 5000

OUTGOING = "outgoing"
INCOMING = "incoming"

DIRECTION_TAGS: dict[str, dict[str, str]] = {
    "en": {OUTGOING: "OUTGOING", INCOMING: "INCOMING"},
    "ru": {OUTGOING: "ИСХОДЯЩИЙ", INCOMING: "ВХОДЯЩИЙ"},
}


class ActivityFormatter(logging.Formatter):
    """Format records as ``<seq> <pid> <timestamp> <DIRECTION> <message>``."""

    def __init__(self, *, locale: str = "en", tz: tzinfo | None = None) -> None:
        super().__init__()
        self.tags = DIRECTION_TAGS.get(locale, DIRECTION_TAGS["en"])
        self.tz = tz
        self._counter = itertools.count(1)

    def format(self, record: logging.LogRecord) -> str:
        direction = str(getattr(record, "direction", OUTGOING))
        tag = self.tags.get(direction, direction.upper())
        timestamp = datetime.fromtimestamp(record.created, tz=self.tz).astimezone(self.tz)
        return " ".join(
            (
                str(next(self._counter)),
                str(record.process or os.getpid()),
                timestamp.isoformat(timespec="seconds"),
                tag,
                record.getMessage(),
            )
        )


class ActivityLogHandler(logging.Handler):
    """Append formatted lines to ``path`` and keep only the newest ``max_lines``."""

    def __init__(self, path: Path | str, max_lines: int = DEFAULT_MAX_LINES) -> None:
        super().__init__()
        self.path = Path(path)
        self.max_lines = max_lines

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
            self._truncate()
        except Exception:
            self.handleError(record)

    def _truncate(self) -> None:
        lines = self.path.read_text(encoding="utf-8").splitlines()
        if len(lines) <= self.max_lines:
            return
        kept = lines[-self.max_lines :]
        self.path.write_text("\n".join(kept) + "\n", encoding="utf-8")


def get_activity_logger() -> logging.Logger:
    return logging.getLogger(ACTIVITY_LOGGER_NAME)


def configure_activity_log(
    path: Path | str,
    *,
    max_lines: int = DEFAULT_MAX_LINES,
    locale: str = "en",
    tz: tzinfo | None = None,
) -> logging.Logger:
    """Attach the capped file handler to the activity logger.

    Calling it again replaces the previous handler instead of stacking a second one.
    """
    logger = get_activity_logger()
    for handler in list(logger.handlers):
        if isinstance(handler, ActivityLogHandler):
            logger.removeHandler(handler)
            handler.close()

    handler = ActivityLogHandler(path, max_lines=max_lines)
    handler.setFormatter(ActivityFormatter(locale=locale, tz=tz))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    return logger


def log_activity(logger: logging.Logger, *, direction: str, message: str, level: int = logging.INFO) -> None:
    """Emit one activity event tagged with its direction."""
    logger.log(level, message, extra={"direction": direction})
