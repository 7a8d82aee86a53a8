"""Access and error logging, and the push result log lines."""

from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from itertools import pairwise
from typing import Any, TextIO

from pushrelay.core import Platform, PushStatus

GREEN = "\x1b[97;42m"
YELLOW = "\x1b[97;43m"
RED = "\x1b[97;41m"
BLUE = "\x1b[97;44m"
RESET = "\x1b[0m"

_TIMESTAMP_FORMAT = "%Y/%m/%d - %H:%M:%S"

_LEVELS = {
    "panic": logging.CRITICAL,
    "fatal": logging.CRITICAL,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": 5,
}

_LEVEL_NAMES = {
    logging.CRITICAL: "fatal",
    logging.ERROR: "error",
    logging.WARNING: "warning",
    logging.INFO: "info",
    logging.DEBUG: "debug",
    5: "trace",
}


def _stdout_is_terminal() -> bool:
    try:
        return sys.stdout.isatty()
    except (AttributeError, ValueError):
        return False


_IS_TERM = _stdout_is_terminal()


class _JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": _LEVEL_NAMES.get(record.levelno, record.levelname.lower()),
            "msg": record.getMessage(),
            "time": datetime.fromtimestamp(record.created, timezone.utc)
            .astimezone()
            .isoformat(timespec="seconds"),
        }
        return json.dumps(payload)


class _OwnedStreamHandler(logging.StreamHandler):
    """Stream handler that closes the file it was given."""

    def close(self) -> None:
        try:
            self.flush()
            self.stream.close()
        finally:
            super().close()


def _new_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    if not logger.handlers:
        logger.addHandler(logging.StreamHandler(sys.stderr))
    return logger


LOG_ACCESS = _new_logger("pushrelay.access")
LOG_ERROR = _new_logger("pushrelay.error")


@dataclass
class LogPushEntry:
    """One push result as it is logged and returned to clients."""

    id: str = ""
    type: str = ""
    platform: str = ""
    token: str = ""
    message: str = ""
    error: str = ""

    def to_dict(self) -> dict[str, str]:
        data = {"notif_id": self.id} if self.id else {}
        data.update(
            type=self.type,
            platform=self.platform,
            token=self.token,
            message=self.message,
            error=self.error,
        )
        return data


@dataclass
class InputLog:
    """What is known about a push when its result is logged."""

    id: str = ""
    status: PushStatus | str = ""
    token: str = ""
    message: str = ""
    platform: int = 0
    error: BaseException | str | None = None
    hide_token: bool = False
    format: str = ""


def _sprint(args: tuple[Any, ...]) -> str:
    if not args:
        return ""
    pieces = [str(args[0])]
    for prev, cur in pairwise(args):
        if not isinstance(prev, str) and not isinstance(cur, str):
            pieces.append(" ")
        pieces.append(str(cur))
    return "".join(pieces)


@dataclass
class QueueLogger:
    """Logger handed to the queue workers."""

    access_logger: logging.Logger = field(default_factory=lambda: LOG_ACCESS)
    error_logger: logging.Logger = field(default_factory=lambda: LOG_ERROR)

    def info(self, *args: Any) -> None:
        self.access_logger.info("%s", _sprint(args))

    def error(self, *args: Any) -> None:
        self.error_logger.error("%s", _sprint(args))

    def fatal(self, *args: Any) -> None:
        self.error_logger.error("%s", _sprint(args))


def queue_logger() -> QueueLogger:
    """Return a queue logger bound to the access and error logs."""
    return QueueLogger(LOG_ACCESS, LOG_ERROR)


def set_log_level(logger: logging.Logger, level: str) -> None:
    """Set the level by name: panic, fatal, error, warn, info, debug or trace."""
    try:
        logger.setLevel(_LEVELS[level.lower()])
    except KeyError:
        raise ValueError(f'not a valid logrus Level: "{level}"') from None


def set_log_out(logger: logging.Logger, out: str) -> None:
    """Send the logger to stdout, stderr or append to the named file."""
    if out == "stdout":
        handler: logging.Handler = logging.StreamHandler(sys.stdout)
    elif out == "stderr":
        handler = logging.StreamHandler(sys.stderr)
    else:
        fd = os.open(out, os.O_RDWR | os.O_CREAT | os.O_APPEND, 0o600)
        stream: TextIO = os.fdopen(fd, "a", encoding="utf-8")
        handler = _OwnedStreamHandler(stream)

    formatter = next((h.formatter for h in logger.handlers if h.formatter), None)
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    if formatter is not None:
        handler.setFormatter(formatter)
    logger.addHandler(handler)


def _make_formatter() -> logging.Formatter:
    if not _IS_TERM:
        return _JSONFormatter()
    return logging.Formatter(
        "%(levelname)s[%(asctime)s] %(message)s", datefmt=_TIMESTAMP_FORMAT
    )


def init_log(access_level: str, access_log: str, error_level: str, error_log: str) -> None:
    """Configure both loggers; raise ValueError or OSError on bad settings."""
    try:
        set_log_level(LOG_ACCESS, access_level)
    except ValueError as exc:
        raise ValueError(f"Set access log level error: {exc}") from exc
    try:
        set_log_level(LOG_ERROR, error_level)
    except ValueError as exc:
        raise ValueError(f"Set error log level error: {exc}") from exc
    try:
        set_log_out(LOG_ACCESS, access_log)
    except OSError as exc:
        raise OSError(f"Set access log path error: {exc}") from exc
    try:
        set_log_out(LOG_ERROR, error_log)
    except OSError as exc:
        raise OSError(f"Set error log path error: {exc}") from exc

    for logger in (LOG_ACCESS, LOG_ERROR):
        logger.propagate = False
        for handler in logger.handlers:
            handler.setFormatter(_make_formatter())


def color_for_platform(platform: int) -> str:
    """Terminal colour used for a platform name."""
    return {Platform.IOS: BLUE, Platform.ANDROID: YELLOW, Platform.HUAWEI: GREEN}.get(
        platform, RESET
    )


def type_for_platform(platform: int) -> str:
    """Platform name used in logs, or an empty string."""
    return {Platform.IOS: "ios", Platform.ANDROID: "android", Platform.HUAWEI: "huawei"}.get(
        platform, ""
    )


def hide_token(token: str, mark_len: int) -> str:
    """Mask both ends of a token with asterisks."""
    if not token:
        return ""
    if len(token) < mark_len * 2:
        return "*" * len(token)
    start = token[len(token) - mark_len:]
    end = token[:mark_len]
    result = token.replace(start, "*" * mark_len)
    return result.replace(end, "*" * mark_len)


def _plain(value: Any) -> str:
    return value.value if isinstance(value, Enum) else value


def get_log_push_entry(entry: InputLog) -> LogPushEntry:
    """Build the log structure for one push result."""
    token = hide_token(entry.token, 10) if entry.hide_token else ""
    return LogPushEntry(
        id=entry.id,
        type=_plain(entry.status),
        platform=type_for_platform(entry.platform),
        token=token,
        message=entry.message,
        error=str(entry.error) if entry.error is not None else "",
    )


def log_push(entry: InputLog) -> LogPushEntry:
    """Log a push result to the access or error log and return its entry."""
    plat_color = color_for_platform(entry.platform) if _IS_TERM else ""
    reset_color = RESET if _IS_TERM else ""
    status = _plain(entry.status)
    log = get_log_push_entry(entry)

    output = ""
    if entry.format == "json":
        output = json.dumps(log.to_dict(), separators=(",", ":"))
    elif status == PushStatus.SUCCEEDED.value:
        type_color = GREEN if _IS_TERM else ""
        output = (
            f"|{type_color} {log.type} {reset_color}| "
            f"{plat_color}{log.platform}{reset_color} [{log.token}] {log.message}"
        )
    elif status == PushStatus.FAILED.value:
        type_color = RED if _IS_TERM else ""
        output = (
            f"|{type_color} {log.type} {reset_color}| "
            f"{plat_color}{log.platform}{reset_color} [{log.token}] | {log.message} "
            f"| Error Message: {log.error}"
        )

    if status == PushStatus.SUCCEEDED.value:
        LOG_ACCESS.info("%s", output)
    elif status == PushStatus.FAILED.value:
        LOG_ERROR.error("%s", output)
    return log