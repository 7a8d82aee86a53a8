# pushrelay

pushrelay is a library for sending push notifications to Android devices
through FCM and to iOS devices through APNs. It reads and validates
notification requests, retries deliveries that failed for reasons worth
retrying, logs each result (with device tokens masked if you want), posts
results to a feedback URL, and keeps success and error counts in a
statistics store.

## Platforms

A notification names its target platform by number (`pushrelay.core.Platform`):

| Value | Platform |
|-------|----------|
| 1     | iOS      |
| 2     | Android  |
| 3     | Huawei   |

## Building and checking a request

```python
from pushrelay.notification import PushNotification, RequestPush, check_message

req = PushNotification.from_dict(
    {"tokens": ["token"], "platform": 2, "message": "Hello World Android!"}
)
check_message(req)  # raises InvalidMessageError when the request is not valid

batch = RequestPush.from_dict(
    {"notifications": [{"tokens": ["token"], "platform": 1, "message": "Hello World iOS!"}]}
)
```

`PushNotification.from_dict` raises `InvalidMessageError` when a field has
the wrong type; `RequestPush.from_dict` also raises it when the
`notifications` list is missing. `to_dict()` and `to_bytes()` give the JSON
form back, leaving out empty optional fields.

`check_message` requires at least one token (or an Android `/topics/...`
target, a condition, or a Huawei topic), no single empty token, at most 1000
tokens for Android and 500 for Huawei, and an Android `time_to_live` of at
most 2419200 seconds (four weeks).

`set_proxy(url)` checks the URL and sets `HTTP_PROXY` and `HTTPS_PROXY` in
the environment, so later HTTP requests go through that proxy.

## Sending to Android

```python
from pushrelay.fcm import init_fcm_client, push_to_android
from pushrelay.storage import MemoryStorage

client = init_fcm_client(api_key="placeholder", key="placeholder")
stats = MemoryStorage()
stats.init()

response = push_to_android(
    req, client, stats, max_retry=0, hide_token=True, log_format="json"
)
for entry in response.logs:
    print(entry.to_dict())
```

`FCMClient` posts to the FCM legacy HTTP endpoint. `get_android_notification`
shows the message that would be sent for a request. `push_to_android` raises
`InvalidMessageError` for a bad request and `FCMSendError` (with the failure
logs in its `response` attribute) when the server cannot be reached or
answers with an error status. Failed tokens that are not unregistered are
retried up to `max_retry` times, or up to the request's own `retry` if that
is smaller.

## Sending to iOS

`pushrelay.apns.get_ios_notification(req)` builds an `ApnsNotification`
(headers and `aps` payload) for a request. `push_to_ios(req, client, stats,
max_retry, max_concurrent, hide_token, log_format)` sends it to every token,
at most `max_concurrent` at a time, and retries tokens that got a 5xx reply.

The `client` you pass must provide `push(notification)` returning an
`ApnsResponse`, and `production()` and `development()` returning the client
to use when a request asks for one of those environments.

## Statistics

Counts of total, successful and failed pushes per platform
(`pushrelay.storage.Counter`) live in a store:

- `pushrelay.storage.MemoryStorage` keeps them in process;
- `pushrelay.redis_storage.RedisStorage` keeps them in a Redis cluster,
  connecting over TLS;
- `pushrelay.file_storage.FileStorage` keeps them in an SQLite file, grouped
  by bucket.

Every store has `init()`, `increment(counter, count)`, `value(counter)`,
`snapshot()`, `reset()` and `close()`, and can be used as a context manager.
`pushrelay.status.create_storage(StatOptions(...))` picks a store by engine
name (`memory`, `redis`, `boltdb`, `buntdb`, `leveldb`, `badger`; the last
four are all `FileStorage` at different paths) and raises `ValueError` for
any other name; `init_app_status` also opens it. `app_status(storage,
version, queue_max, queue_usage)` gathers the counts into an `App` report,
and `RequestStats` records response times and status codes of requests you
serve.

`pushrelay.metrics.Metrics(get_queue_usage).render(storage)` writes the
counters and the queue usage in the Prometheus text format.

## Feedback

`pushrelay.feedback.dispatch_feedback(entry, url, timeout)` posts one log
entry as JSON to your own endpoint. It raises `ValueError` for an empty URL
and lets `requests` exceptions through when the request fails; the reply's
status code is not checked.

## Logging

`pushrelay.logx.init_log(access_level, access_log, error_level, error_log)`
sets up the access and error logs: levels by name (`debug`, `info`, `warn`,
`error`, `fatal`, `panic`, `trace`), output to `stdout`, `stderr` or a file
that is appended to. Lines are JSON when standard output is not a terminal.
`log_push` writes one push result; `hide_token` masks tokens:

```python
from pushrelay.logx import hide_token

hide_token("1234567890", 2)  # "**345678**"
```

## What it does not do

pushrelay is a library only. It has no HTTP or gRPC server, no command-line
tool, no configuration file loader and no queue workers; you call the
functions above from your own program. It does not send to Huawei devices:
Huawei requests are read and checked, and Huawei counters exist, but no
sending function is provided. It has no built-in APNs connection either; you
supply the client object described above.