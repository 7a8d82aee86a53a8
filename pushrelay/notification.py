"""Notification requests, their validation and result logging."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from typing import Any
from urllib.parse import urlsplit

from pushrelay.core import Platform, PushStatus
from pushrelay.logx import LOG_ACCESS, InputLog, LogPushEntry, log_push

# Send at a time that takes power considerations of the device into account.
APNS_PRIORITY_LOW = 5
# Send immediately.
APNS_PRIORITY_HIGH = 10

MAX_ANDROID_TOKENS = 1000
MAX_HUAWEI_TOKENS = 500
MAX_TIME_TO_LIVE = 2419200

_NULLABLE_KINDS = frozenset({"opt_int", "uint", "opt_dict", "any"})


class InvalidMessageError(ValueError):
    """A notification request that cannot be sent."""


def _spec(kind: str, key: str | None = None, *, default: Any = None,
          factory: Any = None, omitempty: bool = True) -> Any:
    metadata = {"kind": kind, "json": key, "omitempty": omitempty}
    if factory is not None:
        return field(default_factory=factory, metadata=metadata)
    return field(default=default, metadata=metadata)


def _str(key: str | None = None) -> Any:
    return _spec("str", key, default="")


def _bool(key: str | None = None) -> Any:
    return _spec("bool", key, default=False)


def _int(key: str | None = None, omitempty: bool = True) -> Any:
    return _spec("int", key, default=0, omitempty=omitempty)


def _json_key(f: Any) -> str:
    return f.metadata["json"] or f.name


def _is_empty(kind: str, value: Any) -> bool:
    if kind in _NULLABLE_KINDS:
        return value is None
    return not value


def _decode(kind: str, key: str, value: Any) -> Any:
    is_int = isinstance(value, int) and not isinstance(value, bool)
    if kind == "str" and isinstance(value, str):
        return value
    if kind == "bool" and isinstance(value, bool):
        return value
    if kind in ("int", "opt_int") and is_int:
        return value
    if kind == "uint" and is_int and value >= 0:
        return value
    if kind == "float" and (is_int or isinstance(value, float)):
        return float(value)
    if kind == "strlist" and isinstance(value, list) and all(isinstance(v, str) for v in value):
        return list(value)
    if kind in ("dict", "opt_dict") and isinstance(value, dict):
        return dict(value)
    if kind == "any":
        return value
    if kind == "alert" and isinstance(value, Mapping):
        return _from_dict(Alert, value)
    raise InvalidMessageError(f"invalid value for field {key!r}")


def _from_dict(cls: Any, data: Any) -> Any:
    if not isinstance(data, Mapping):
        raise InvalidMessageError(f"{cls.__name__} must be a JSON object")
    values = {}
    for f in fields(cls):
        key = _json_key(f)
        raw = data.get(key)
        if raw is not None:
            values[f.name] = _decode(f.metadata["kind"], key, raw)
    return cls(**values)


def _to_dict(obj: Any) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for f in fields(obj):
        kind = f.metadata["kind"]
        value = getattr(obj, f.name)
        if f.metadata["omitempty"] and _is_empty(kind, value):
            continue
        if kind == "alert":
            value = _to_dict(value)
        elif kind == "strlist":
            value = list(value)
        elif kind in ("dict", "opt_dict"):
            value = dict(value)
        out[_json_key(f)] = value
    return out


@dataclass
class Alert:
    """APNs alert dictionary."""

    action: str = _str()
    action_loc_key: str = _str("action-loc-key")
    body: str = _str()
    launch_image: str = _str("launch-image")
    loc_args: list[str] = _spec("strlist", "loc-args", factory=list)
    loc_key: str = _str("loc-key")
    title: str = _str()
    subtitle: str = _str()
    title_loc_args: list[str] = _spec("strlist", "title-loc-args", factory=list)
    title_loc_key: str = _str("title-loc-key")
    summary_arg: str = _str("summary-arg")
    summary_arg_count: int = _int("summary-arg-count")


@dataclass
class PushNotification:
    """A single notification request."""

    # Common
    id: str = _str("notif_id")
    tokens: list[str] = _spec("strlist", factory=list, omitempty=False)
    platform: int = _int(omitempty=False)
    message: str = _str()
    title: str = _str()
    image: str = _str()
    priority: str = _str()
    content_available: bool = _bool()
    mutable_content: bool = _bool()
    sound: Any = _spec("any")
    data: dict[str, Any] = _spec("dict", factory=dict)
    retry: int = _int()

    # Android
    api_key: str = _str()
    to: str = _str()
    collapse_key: str = _str()
    delay_while_idle: bool = _bool()
    time_to_live: int | None = _spec("uint")
    restricted_package_name: str = _str()
    dry_run: bool = _bool()
    condition: str = _str()
    notification: dict[str, Any] | None = _spec("opt_dict")

    # Huawei
    app_id: str = _str()
    app_secret: str = _str()
    huawei_notification: dict[str, Any] | None = _spec("opt_dict")
    huawei_data: str = _str()
    huawei_collapse_key: int = _int()
    huawei_ttl: str = _str()
    bi_tag: str = _str()
    fast_app_target: int = _int()

    # iOS
    expiration: int | None = _spec("opt_int")
    apns_id: str = _str()
    collapse_id: str = _str()
    topic: str = _str()
    push_type: str = _str()
    badge: int | None = _spec("opt_int")
    category: str = _str()
    thread_id: str = _str("thread-id")
    url_args: list[str] = _spec("strlist", "url-args", factory=list)
    alert: Alert = _spec("alert", factory=Alert, omitempty=False)
    production: bool = _bool()
    development: bool = _bool()
    sound_name: str = _str("name")
    sound_volume: float = _spec("float", "volume", default=0.0)
    apns: dict[str, Any] = _spec("dict", factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PushNotification:
        """Build from decoded JSON; raise InvalidMessageError on wrong types."""
        return _from_dict(cls, data)

    def to_dict(self) -> dict[str, Any]:
        """JSON form, leaving out empty optional fields."""
        return _to_dict(self)

    def to_bytes(self) -> bytes:
        """Compact JSON encoding used for queue messages."""
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False).encode(
            "utf-8"
        )

    def is_topic(self) -> bool:
        """Whether the message goes to a topic or condition instead of devices."""
        if self.platform == Platform.ANDROID:
            return (bool(self.to) and self.to.startswith("/topics/")) or bool(self.condition)
        if self.platform == Platform.HUAWEI:
            return bool(self.topic) or bool(self.condition)
        return False


@dataclass
class RequestPush:
    """A batch of notification requests."""

    notifications: list[PushNotification] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RequestPush:
        """Build from decoded JSON; the notifications field is required."""
        notifications = data.get("notifications") if isinstance(data, Mapping) else None
        if not isinstance(notifications, list):
            raise InvalidMessageError("notifications field is required")
        return cls([PushNotification.from_dict(item) for item in notifications])


@dataclass
class ResponsePush:
    """Failure logs gathered while sending."""

    logs: list[LogPushEntry] = field(default_factory=list)


def _invalid(msg: str) -> InvalidMessageError:
    LOG_ACCESS.debug("%s", msg)
    return InvalidMessageError(msg)


def check_message(req: PushNotification) -> None:
    """Raise InvalidMessageError when the request cannot be sent."""
    if not req.is_topic() and not req.tokens and not req.to:
        raise _invalid("the message must specify at least one registration ID")

    if len(req.tokens) == 1 and req.tokens[0] == "":
        raise _invalid("the token must not be empty")

    if req.platform == Platform.ANDROID and len(req.tokens) > MAX_ANDROID_TOKENS:
        raise _invalid("the message may specify at most 1000 registration IDs")

    if req.platform == Platform.HUAWEI and len(req.tokens) > MAX_HUAWEI_TOKENS:
        raise _invalid("the message may specify at most 500 registration IDs for Huawei")

    if (
        req.platform == Platform.ANDROID
        and req.time_to_live is not None
        and req.time_to_live > MAX_TIME_TO_LIVE
    ):
        raise _invalid(
            "the message's TimeToLive field must be an integer "
            "between 0 and 2419200 (4 weeks)"
        )


def _split_scheme(raw: str) -> tuple[str, str]:
    for i, char in enumerate(raw):
        if char.isascii() and char.isalpha():
            continue
        if char.isascii() and (char.isdigit() or char in "+-."):
            if i == 0:
                return "", raw
            continue
        if char == ":":
            if i == 0:
                raise ValueError(f'parse "{raw}": missing protocol scheme')
            return raw[:i], raw[i + 1:]
        return "", raw
    return "", raw


def _parse_request_uri(raw: str) -> str:
    if not raw:
        raise ValueError('parse "": empty url')
    if any(ord(char) < 0x20 or ord(char) == 0x7F for char in raw):
        raise ValueError(f'parse "{raw}": net/url: invalid control character in URL')
    scheme, rest = _split_scheme(raw)
    if not rest.startswith("/") and not scheme:
        raise ValueError(f'parse "{raw}": invalid URI for request')
    try:
        urlsplit(raw).port
    except ValueError as exc:
        raise ValueError(f'parse "{raw}": {exc}') from None
    return raw


def set_proxy(proxy: str) -> None:
    """Route outgoing HTTP and HTTPS requests through the given proxy URL."""
    proxy_url = _parse_request_uri(proxy)
    os.environ["HTTP_PROXY"] = proxy_url
    os.environ["HTTPS_PROXY"] = proxy_url
    LOG_ACCESS.debug("Set http proxy as %s", proxy_url)


def log_push_result(
    req: PushNotification,
    status: PushStatus | str,
    token: str,
    error: BaseException | str | None = None,
    hide_token: bool = False,
    log_format: str = "",
) -> LogPushEntry:
    """Log the result of pushing req to one token and return the log entry."""
    return log_push(
        InputLog(
            id=req.id,
            status=status,
            token=token,
            message=req.message,
            platform=req.platform,
            error=error,
            hide_token=hide_token,
            format=log_format,
        )
    )