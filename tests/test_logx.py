import json
import logging

import pytest

from pushrelay import logx
from pushrelay.core import Platform, PushStatus
from pushrelay.logx import (
    BLUE,
    RESET,
    YELLOW,
    InputLog,
    LogPushEntry,
    QueueLogger,
    color_for_platform,
    get_log_push_entry,
    hide_token,
    init_log,
    log_push,
    queue_logger,
    set_log_level,
    set_log_out,
    type_for_platform,
)

DEFAULTS = {
    "access_level": "debug",
    "access_log": "stdout",
    "error_level": "error",
    "error_log": "stderr",
}


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__(level=1)
        self.messages = []

    def emit(self, record):
        self.messages.append(record.getMessage())


@pytest.fixture
def fresh_logger():
    logger = logging.getLogger("pushrelay.test.fresh")
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def captured(monkeypatch):
    monkeypatch.setattr(logx, "_IS_TERM", False)
    access, error = _ListHandler(), _ListHandler()
    logx.LOG_ACCESS.addHandler(access)
    logx.LOG_ERROR.addHandler(error)
    old_levels = logx.LOG_ACCESS.level, logx.LOG_ERROR.level
    logx.LOG_ACCESS.setLevel(logging.DEBUG)
    logx.LOG_ERROR.setLevel(logging.DEBUG)
    yield access, error
    logx.LOG_ACCESS.removeHandler(access)
    logx.LOG_ERROR.removeHandler(error)
    logx.LOG_ACCESS.setLevel(old_levels[0])
    logx.LOG_ERROR.setLevel(old_levels[1])


def test_set_log_level(fresh_logger):
    set_log_level(fresh_logger, "debug")
    assert fresh_logger.level == logging.DEBUG

    with pytest.raises(ValueError) as excinfo:
        set_log_level(fresh_logger, "invalid")
    assert str(excinfo.value) == 'not a valid logrus Level: "invalid"'


def test_set_log_out(fresh_logger, tmp_path):
    set_log_out(fresh_logger, "stdout")
    assert len(fresh_logger.handlers) == 1

    set_log_out(fresh_logger, "stderr")
    assert len(fresh_logger.handlers) == 1

    log_dir = tmp_path / "log"
    log_dir.mkdir()
    path = log_dir / "access.log"
    set_log_out(fresh_logger, str(path))
    fresh_logger.setLevel(logging.INFO)
    fresh_logger.info("hello")
    fresh_logger.handlers[0].flush()
    assert "hello" in path.read_text()

    # missing logs folder
    with pytest.raises(OSError):
        set_log_out(fresh_logger, str(tmp_path / "logs" / "access.log"))


def test_init_default_log():
    init_log(**DEFAULTS)
    assert logx.LOG_ACCESS.level == logging.DEBUG
    assert logx.LOG_ERROR.level == logging.ERROR

    with pytest.raises(ValueError):
        init_log(**{**DEFAULTS, "access_level": "invalid"})


def test_access_level():
    with pytest.raises(ValueError, match="Set access log level error"):
        init_log(**{**DEFAULTS, "access_level": "invalid"})


def test_error_level():
    with pytest.raises(ValueError, match="Set error log level error"):
        init_log(**{**DEFAULTS, "error_level": "invalid"})


def test_access_log_path(tmp_path):
    with pytest.raises(OSError, match="Set access log path error"):
        init_log(**{**DEFAULTS, "access_log": str(tmp_path / "logs" / "access.log")})


def test_error_log_path(tmp_path):
    with pytest.raises(OSError, match="Set error log path error"):
        init_log(**{**DEFAULTS, "error_log": str(tmp_path / "logs" / "error.log")})


def test_platform_type():
    assert type_for_platform(Platform.IOS) == "ios"
    assert type_for_platform(Platform.ANDROID) == "android"
    assert type_for_platform(10000) == ""


def test_platform_color():
    assert color_for_platform(Platform.IOS) == BLUE
    assert color_for_platform(Platform.ANDROID) == YELLOW
    assert color_for_platform(1000000) == RESET


def test_hide_token():
    assert hide_token("", 2) == ""
    assert hide_token("1234567890", 2) == "**345678**"
    assert hide_token("12345", 10) == "*****"


def test_get_log_push_entry_hides_token_and_keeps_error():
    entry = get_log_push_entry(
        InputLog(
            id="n1",
            status=PushStatus.FAILED,
            token="12345",
            message="Welcome",
            platform=Platform.IOS,
            error=RuntimeError("BadDeviceToken"),
            hide_token=True,
        )
    )
    assert entry == LogPushEntry(
        id="n1",
        type="failed-push",
        platform="ios",
        token="*****",
        message="Welcome",
        error="BadDeviceToken",
    )


def test_log_push_entry_dict_omits_empty_id():
    assert "notif_id" not in LogPushEntry(type="failed-push").to_dict()
    assert LogPushEntry(id="n1").to_dict()["notif_id"] == "n1"


def test_log_push_success_goes_to_access_log(captured):
    access, error = captured
    result = log_push(
        InputLog(
            status=PushStatus.SUCCEEDED,
            token="12345",
            message="Welcome",
            platform=Platform.ANDROID,
            hide_token=True,
        )
    )
    assert result.type == "succeeded-push"
    assert access.messages == ["| succeeded-push | android [*****] Welcome"]
    assert error.messages == []


def test_log_push_failure_json_goes_to_error_log(captured):
    access, error = captured
    result = log_push(
        InputLog(
            id="n2",
            status=PushStatus.FAILED,
            token="12345",
            message="Welcome",
            platform=Platform.HUAWEI,
            error="boom",
            hide_token=True,
            format="json",
        )
    )
    assert access.messages == []
    assert json.loads(error.messages[0]) == result.to_dict()
    assert result.platform == "huawei"


def test_queue_logger_joins_arguments():
    access_logger = logging.getLogger("pushrelay.test.queue.access")
    error_logger = logging.getLogger("pushrelay.test.queue.error")
    access, error = _ListHandler(), _ListHandler()
    access_logger.addHandler(access)
    error_logger.addHandler(error)
    access_logger.setLevel(logging.DEBUG)
    error_logger.setLevel(logging.DEBUG)
    try:
        ql = QueueLogger(access_logger, error_logger)
        ql.info("usage: ", 3)
        ql.error(1, 2)
        ql.fatal("stop")
        assert access.messages == ["usage: 3"]
        assert error.messages == ["1 2", "stop"]
    finally:
        access_logger.removeHandler(access)
        error_logger.removeHandler(error)


def test_queue_logger_uses_global_loggers():
    ql = queue_logger()
    assert ql.access_logger is logx.LOG_ACCESS
    assert ql.error_logger is logx.LOG_ERROR