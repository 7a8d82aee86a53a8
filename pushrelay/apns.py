"""Sending notifications through the Apple Push Notification service."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial
from typing import Any

from pushrelay.core import PushStatus
from pushrelay.logx import LOG_ACCESS, LogPushEntry
from pushrelay.notification import (
    APNS_PRIORITY_HIGH,
    APNS_PRIORITY_LOW,
    PushNotification,
    ResponsePush,
    log_push_result,
)
from pushrelay.storage import Counter, Storage

_SERVER_ERROR = 500


@dataclass
class Sound:
    """The aps sound dictionary."""

    critical: int = 0
    name: str = ""
    volume: float = 0.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Sound:
        """Take the fields of a decoded JSON object whose types match."""
        values = {key.lower(): value for key, value in data.items() if isinstance(key, str)}
        sound = cls()
        critical = values.get("critical")
        if isinstance(critical, int) and not isinstance(critical, bool):
            sound.critical = critical
        name = values.get("name")
        if isinstance(name, str):
            sound.name = name
        volume = values.get("volume")
        if isinstance(volume, (int, float)) and not isinstance(volume, bool):
            sound.volume = float(volume)
        return sound

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.critical:
            data["critical"] = self.critical
        if self.name:
            data["name"] = self.name
        if self.volume:
            data["volume"] = self.volume
        return data


@dataclass
class ApnsNotification:
    """One notification as sent to APNs."""

    device_token: str = ""
    topic: str = ""
    apns_id: str = ""
    collapse_id: str = ""
    expiration: datetime | None = None
    priority: int = 0
    push_type: str = ""
    payload: dict[str, Any] = field(default_factory=lambda: {"aps": {}})


@dataclass
class ApnsResponse:
    """Reply of APNs to one notification."""

    status_code: int = 0
    reason: str = ""
    apns_id: str = ""
    timestamp: datetime | None = None

    def sent(self) -> bool:
        """Whether APNs accepted the notification."""
        return self.status_code == 200


class _Payload:
    def __init__(self) -> None:
        self.aps: dict[str, Any] = {}
        self.custom: dict[str, Any] = {}
        self._own_sound = False

    def alert(self) -> dict[str, Any]:
        current = self.aps.get("alert")
        if not isinstance(current, dict):
            current = {}
            self.aps["alert"] = current
        return current

    def sound(self) -> dict[str, Any]:
        if not self._own_sound:
            self.aps["sound"] = {"critical": 1, "name": "default", "volume": 1.0}
            self._own_sound = True
        return self.aps["sound"]

    def set_sound(self, value: Any) -> None:
        self.aps["sound"] = value
        self._own_sound = False

    def build(self) -> dict[str, Any]:
        return {"aps": self.aps, **self.custom}


def _alert_dictionary(payload: _Payload, req: PushNotification) -> None:
    alert = req.alert
    if req.title:
        payload.alert()["title"] = req.title
    if req.message and req.title:
        payload.alert()["body"] = req.message
    if alert.title:
        payload.alert()["title"] = alert.title
    if alert.subtitle:
        payload.alert()["subtitle"] = alert.subtitle
    if alert.title_loc_key:
        payload.alert()["title-loc-key"] = alert.title_loc_key
    if alert.loc_args:
        payload.alert()["loc-args"] = list(alert.loc_args)
    if alert.title_loc_args:
        payload.alert()["title-loc-args"] = list(alert.title_loc_args)
    if alert.body:
        payload.alert()["body"] = alert.body
    if alert.launch_image:
        payload.alert()["launch-image"] = alert.launch_image
    if alert.loc_key:
        payload.alert()["loc-key"] = alert.loc_key
    if alert.action:
        payload.alert()["action"] = alert.action
    if alert.action_loc_key:
        payload.alert()["action-loc-key"] = alert.action_loc_key
    if req.category:
        payload.aps["category"] = req.category
    if alert.summary_arg:
        payload.alert()["summary-arg"] = alert.summary_arg
    if alert.summary_arg_count > 0:
        payload.alert()["summary-arg-count"] = alert.summary_arg_count


def get_ios_notification(req: PushNotification) -> ApnsNotification:
    """The APNs notification for a request, without a device token."""
    notification = ApnsNotification(
        apns_id=req.apns_id, topic=req.topic, collapse_id=req.collapse_id
    )
    if req.expiration is not None:
        notification.expiration = datetime.fromtimestamp(req.expiration, timezone.utc)
    if req.priority == "normal":
        notification.priority = APNS_PRIORITY_LOW
    elif req.priority == "high":
        notification.priority = APNS_PRIORITY_HIGH
    if req.push_type:
        notification.push_type = req.push_type

    payload = _Payload()
    if req.message and not req.title:
        payload.aps["alert"] = req.message
    if req.badge is not None and req.badge >= 0:
        payload.aps["badge"] = req.badge
    if req.mutable_content:
        payload.aps["mutable-content"] = 1

    if isinstance(req.sound, Mapping):
        payload.set_sound(Sound.from_dict(req.sound).to_dict())
    elif isinstance(req.sound, str):
        payload.set_sound(req.sound)
    elif isinstance(req.sound, Sound):
        payload.set_sound(req.sound.to_dict())

    if req.sound_name:
        payload.sound()["name"] = req.sound_name
    if req.sound_volume > 0:
        payload.sound()["volume"] = req.sound_volume
    if req.content_available:
        payload.aps["content-available"] = 1
    if req.url_args:
        payload.aps["url-args"] = list(req.url_args)
    if req.thread_id:
        payload.aps["thread-id"] = req.thread_id

    payload.custom.update(req.data)
    _alert_dictionary(payload, req)

    notification.payload = payload.build()
    return notification


def _select_client(client: Any, req: PushNotification) -> Any:
    if req.production:
        return client.production()
    if req.development:
        return client.development()
    return client


def _push_one(
    sender: Any,
    notification: ApnsNotification,
    req: PushNotification,
    storage: Storage,
    hide_token: bool,
    log_format: str,
    token: str,
) -> tuple[LogPushEntry | None, bool]:
    message = dataclasses.replace(notification, device_token=token)
    res: ApnsResponse | None = None
    error: Any = None
    try:
        res = sender.push(message)
    except Exception as exc:  # any transport failure counts as a failed push
        error = exc

    failure: LogPushEntry | None = None
    retry = False
    if error is not None or (res is not None and res.status_code != 200):
        if error is None and res is not None:
            error = res.reason
        failure = log_push_result(req, PushStatus.FAILED, token, error, hide_token, log_format)
        storage.increment(Counter.IOS_ERROR, 1)
        retry = res is not None and res.status_code >= _SERVER_ERROR

    if res is not None and res.sent():
        log_push_result(req, PushStatus.SUCCEEDED, token, None, hide_token, log_format)
        storage.increment(Counter.IOS_SUCCESS, 1)
    return failure, retry


def push_to_ios(
    req: PushNotification,
    client: Any,
    storage: Storage,
    max_retry: int = 0,
    max_concurrent: int = 100,
    hide_token: bool = False,
    log_format: str = "",
) -> ResponsePush:
    """Send req to every token through client, retrying server errors."""
    LOG_ACCESS.debug("Start push notification for iOS")
    if 0 < req.retry < max_retry:
        max_retry = req.retry

    resp = ResponsePush()
    workers = max(1, int(max_concurrent))
    retry_count = 0
    while True:
        notification = get_ios_notification(req)
        sender = _select_client(client, req)
        push = partial(_push_one, sender, notification, req, storage, hide_token, log_format)
        tokens = list(req.tokens)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            outcomes = list(pool.map(push, tokens))

        resp.logs.extend(entry for entry, _ in outcomes if entry is not None)
        new_tokens = [token for token, (_, retry) in zip(tokens, outcomes) if retry]

        if new_tokens and retry_count < max_retry:
            retry_count += 1
            req.tokens = new_tokens
            continue
        return resp