"""Posting push results to a feedback endpoint."""

from __future__ import annotations

import json

import requests

from pushrelay.logx import LogPushEntry

_CONNECT_TIMEOUT = 5.0


def dispatch_feedback(entry: LogPushEntry, url: str, timeout: float = 10) -> None:
    """POST a push result as JSON to url; raise on empty url or transport failure."""
    if not url:
        raise ValueError("url can't be empty")

    payload = json.dumps(entry.to_dict(), separators=(",", ":")).encode("utf-8")
    read_timeout = timeout if timeout and timeout > 0 else None
    with requests.post(
        url,
        data=payload,
        headers={"Content-Type": "application/json; charset=utf-8"},
        timeout=(_CONNECT_TIMEOUT, read_timeout),
    ):
        pass