"""Sending notifications through Firebase Cloud Messaging."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

import requests

from pushrelay.logx import LOG_ACCESS, LOG_ERROR, LogPushEntry
from pushrelay.notification import (
    InvalidMessageError,
    PushNotification,
    ResponsePush,
    check_message,
    log_push_result,
)
from pushrelay.core import PushStatus
from pushrelay.storage import Counter, Storage

FCM_ENDPOINT = "https://fcm.googleapis.com/fcm/send"
DEFAULT_TIMEOUT = 30.0

_UNREGISTERED_ERRORS = frozenset(
    {"NotRegistered", "MismatchSenderId", "MissingRegistration", "InvalidRegistration"}
)

_shared_client: FCMClient | None = None
_shared_lock = threading.Lock()


class FCMSendError(RuntimeError):
    """Sending to FCM failed; the failure logs gathered so far are attached."""

    def __init__(self, message: str, response: ResponsePush) -> None:
        super().__init__(message)
        self.response = response


@dataclass
class FCMResult:
    """Outcome for one registration ID."""

    message_id: str = ""
    registration_id: str = ""
    error: str = ""

    def unregistered(self) -> bool:
        """Whether the error means the device should not be retried."""
        return self.error in _UNREGISTERED_ERRORS


@dataclass
class FCMResponse:
    """Reply of the FCM server."""

    multicast_id: int = 0
    success: int = 0
    failure: int = 0
    canonical_ids: int = 0
    results: list[FCMResult] = field(default_factory=list)
    failed_registration_ids: list[str] = field(default_factory=list)
    message_id: int = 0
    error: str = ""


def _int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _parse_response(data: Any) -> FCMResponse:
    if not isinstance(data, dict):
        raise ValueError("unexpected FCM response")
    results = [
        FCMResult(
            message_id=str(item.get("message_id") or ""),
            registration_id=str(item.get("registration_id") or ""),
            error=str(item.get("error") or ""),
        )
        for item in data.get("results") or []
        if isinstance(item, dict)
    ]
    return FCMResponse(
        multicast_id=_int(data.get("multicast_id")),
        success=_int(data.get("success")),
        failure=_int(data.get("failure")),
        canonical_ids=_int(data.get("canonical_ids")),
        results=results,
        failed_registration_ids=list(data.get("failed_registration_ids") or []),
        message_id=_int(data.get("message_id")),
        error=str(data.get("error") or ""),
    )


class FCMClient:
    """Client of the FCM legacy HTTP endpoint."""

    def __init__(
        self,
        api_key: str,
        endpoint: str = FCM_ENDPOINT,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("client API Key is invalid")
        self.api_key = api_key
        self.endpoint = endpoint
        self.timeout = timeout
        self._session = session or requests.Session()

    def send(self, message: dict[str, Any]) -> FCMResponse:
        """Post a message; raise on an invalid target or a non-200 reply."""
        if not (message.get("to") or message.get("registration_ids") or message.get("condition")):
            raise ValueError("message must specify to, registration_ids or condition")
        reply = self._session.post(
            self.endpoint,
            json=message,
            headers={"Authorization": f"key={self.api_key}"},
            timeout=self.timeout,
        )
        if reply.status_code != 200:
            raise requests.HTTPError(
                f"{reply.status_code} error: {reply.reason}", response=reply
            )
        return _parse_response(reply.json())


def init_fcm_client(api_key: str, key: str = "") -> FCMClient:
    """Client for key, or the shared client of the configured api_key."""
    global _shared_client
    if not key and not api_key:
        raise ValueError("Missing Android API Key")
    if key and key != api_key:
        return FCMClient(key)
    with _shared_lock:
        if _shared_client is None:
            _shared_client = FCMClient(api_key)
        return _shared_client


def get_android_notification(req: PushNotification) -> dict[str, Any]:
    """The FCM message for a request."""
    plain = {
        "to": req.to,
        "condition": req.condition,
        "collapse_key": req.collapse_key,
        "content_available": req.content_available,
        "mutable_content": req.mutable_content,
        "delay_while_idle": req.delay_while_idle,
        "restricted_package_name": req.restricted_package_name,
        "dry_run": req.dry_run,
    }
    message: dict[str, Any] = {key: value for key, value in plain.items() if value}

    if req.time_to_live is not None:
        message["time_to_live"] = req.time_to_live
    if req.tokens:
        message["registration_ids"] = list(req.tokens)
    if req.priority in ("high", "normal"):
        message["priority"] = req.priority
    if req.data:
        message["data"] = dict(req.data)

    is_set = req.notification is not None
    notification: dict[str, Any] = dict(req.notification) if is_set else {}
    if req.message:
        is_set = True
        notification["body"] = req.message
    if req.title:
        is_set = True
        notification["title"] = req.title
    if req.image:
        is_set = True
        notification["image"] = req.image
    if isinstance(req.sound, str) and req.sound:
        is_set = True
        notification["sound"] = req.sound
    if is_set:
        message["notification"] = notification

    if req.apns:
        message["apns"] = dict(req.apns)
    return message


def _client_for(req: PushNotification, client: FCMClient | None) -> FCMClient:
    if req.api_key and (client is None or req.api_key != client.api_key):
        return FCMClient(req.api_key)
    if client is None:
        raise ValueError("Missing Android API Key")
    return client


def push_to_android(
    req: PushNotification,
    client: FCMClient | None,
    storage: Storage,
    max_retry: int = 0,
    hide_token: bool = False,
    log_format: str = "",
) -> ResponsePush:
    """Send req to FCM, retrying failed tokens; return the failure logs."""
    LOG_ACCESS.debug("Start push notification for Android")
    if 0 < req.retry < max_retry:
        max_retry = req.retry

    try:
        check_message(req)
    except InvalidMessageError as exc:
        LOG_ERROR.error("request error: %s", exc)
        raise

    resp = ResponsePush()

    def log(status: PushStatus, token: str, error: Any = None) -> LogPushEntry:
        return log_push_result(req, status, token, error, hide_token, log_format)

    retry_count = 0
    while True:
        message = get_android_notification(req)
        try:
            sender = _client_for(req, client)
        except ValueError as exc:
            LOG_ERROR.error("FCM server error: %s", exc)
            raise

        try:
            res = sender.send(message)
        except (requests.RequestException, ValueError) as exc:
            LOG_ERROR.error("FCM server send message error: %s", exc)
            if req.is_topic():
                resp.logs.append(log(PushStatus.FAILED, req.to, exc))
                storage.increment(Counter.ANDROID_ERROR, 1)
            else:
                resp.logs.extend(log(PushStatus.FAILED, token, exc) for token in req.tokens)
                storage.increment(Counter.ANDROID_ERROR, len(req.tokens))
            raise FCMSendError(str(exc), resp) from exc

        if not req.is_topic():
            LOG_ACCESS.debug(
                "Android Success count: %d, Failure count: %d", res.success, res.failure
            )
        storage.increment(Counter.ANDROID_SUCCESS, res.success)
        storage.increment(Counter.ANDROID_ERROR, res.failure)

        new_tokens: list[str] = []
        for index, result in enumerate(res.results):
            to = req.tokens[index] if index < len(req.tokens) else req.to
            if result.error:
                if not result.unregistered():
                    new_tokens.append(to)
                resp.logs.append(log(PushStatus.FAILED, to, result.error))
                continue
            log(PushStatus.SUCCEEDED, to)

        if req.is_topic():
            to = req.to or req.condition
            LOG_ACCESS.debug("Send Topic Message: %s", to)
            if res.message_id != 0:
                log(PushStatus.SUCCEEDED, to)
            else:
                resp.logs.append(log(PushStatus.FAILED, to, res.error or None))

        if res.failed_registration_ids:
            new_tokens.extend(res.failed_registration_ids)
            resp.logs.append(
                log(
                    PushStatus.FAILED,
                    message.get("to", ""),
                    "device group: partial success or all fails",
                )
            )

        if new_tokens and retry_count < max_retry:
            retry_count += 1
            req.tokens = new_tokens
            continue
        return resp