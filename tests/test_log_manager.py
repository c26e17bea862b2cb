import threading

import pytest

from flexlog.console_sink import ConsoleSink
from flexlog.level import Level, LogFormat
from flexlog.log_manager import (
    NUM_BUCKETS,
    LogManager,
    LogManagerError,
    LogManagerState,
    bucket_index,
)
from flexlog.sink import Sink


class ListSink(Sink):
    def __init__(self):
        self.lines = []
        self._lock = threading.Lock()

    def output(self, msg, format):
        with self._lock:
            self.lines.append(msg.message)


@pytest.fixture
def manager():
    mgr = LogManager()
    mgr.initialize()
    yield mgr
    mgr.shutdown_all()


def test_bucket_index_empty_is_zero():
    assert bucket_index("") == 0


def test_bucket_index_known_value():
    assert bucket_index("a") == 192


@pytest.mark.parametrize("name", ["main", "logger0", "network", "x" * 100])
def test_bucket_index_in_range_and_stable(name):
    index = bucket_index(name)
    assert 0 <= index < NUM_BUCKETS
    assert bucket_index(name) == index


def test_instance_is_singleton():
    first = LogManager.instance()
    second = LogManager.instance()
    assert first is second
    assert LogManager() is not first
    assert first.default_logger_name == "main"


def test_initialize_creates_default_logger(manager):
    assert manager.state is LogManagerState.RUNNING
    assert manager.has_logger("main")
    default = manager.default_logger()
    assert default.name == "main"
    assert any(isinstance(s, ConsoleSink) for s in default.sinks())


def test_initialize_twice_keeps_running(manager):
    manager.initialize()
    assert manager.state is LogManagerState.RUNNING


def test_register_before_initialize_raises():
    mgr = LogManager()
    with pytest.raises(LogManagerError):
        mgr.register_logger("app")


def test_register_empty_name_raises(manager):
    with pytest.raises(LogManagerError):
        manager.register_logger("")


def test_register_returns_same_logger(manager):
    first = manager.register_logger("app")
    assert manager.register_logger("app") is first
    assert manager.get_logger("app") is first


def test_get_logger_creates(manager):
    assert not manager.has_logger("db")
    logger = manager.get_logger("db")
    assert logger.name == "db"
    assert manager.has_logger("db")


def test_remove_logger(manager):
    manager.register_logger("temp")
    manager.remove_logger("temp")
    assert not manager.has_logger("temp")


def test_default_logger_cannot_be_removed(manager):
    manager.remove_logger("main")
    assert manager.has_logger("main")


def test_global_sink_applies_only_to_new_loggers(manager):
    existing = manager.register_logger("before")
    sink = ListSink()
    manager.register_sink(sink)
    created = manager.register_logger("after")
    assert sink in created.sinks()
    assert sink not in existing.sinks()


def test_default_level_used_for_new_loggers(manager):
    assert manager.default_level is Level.INFO
    manager.set_default_level(Level.ERROR)
    logger = manager.register_logger("strict")
    assert logger.level is Level.ERROR
    assert manager.config_version == 1


def test_configuration_ignored_before_initialize():
    mgr = LogManager()
    mgr.set_default_level(Level.FATAL)
    mgr.set_default_format(LogFormat.XML)
    assert mgr.default_level is Level.INFO
    assert mgr.default_format is LogFormat.PATTERN


def test_default_format_used_for_new_loggers(manager):
    manager.set_default_format(LogFormat.XML)
    logger = manager.register_logger("xml")
    assert logger.log_format is LogFormat.XML


def test_messages_are_delivered_through_pool(manager):
    logger = manager.register_logger("worker")
    sink = ListSink()
    logger.register_sink(sink)
    texts = [f"message {n}" for n in range(20)]
    for text in texts:
        assert logger.info(text)
    manager.shutdown()
    assert sorted(sink.lines) == sorted(texts)


def test_filtered_messages_not_delivered(manager):
    logger = manager.register_logger("quiet")
    sink = ListSink()
    logger.register_sink(sink)
    assert not logger.debug("hidden")
    assert manager.flush(5.0)
    assert sink.lines == []


def test_shutdown_twice_raises(manager):
    manager.shutdown()
    assert manager.state is LogManagerState.SHUT_DOWN
    with pytest.raises(LogManagerError):
        manager.shutdown()


def test_shutdown_before_initialize_raises():
    with pytest.raises(LogManagerError):
        LogManager().shutdown()


def test_shutdown_clears_loggers(manager):
    manager.register_logger("gone")
    manager.shutdown()
    assert not manager.has_logger("gone")
    assert manager.thread_pool_size == 0
    assert manager.global_sinks == []


def test_logging_after_shutdown_is_dropped(manager):
    logger = manager.register_logger("late")
    manager.shutdown()
    assert logger.info("too late") is False
    assert logger.dropped_message_count == 1


def test_resize_thread_pool(manager):
    assert manager.resize_thread_pool(3)
    assert manager.thread_pool_size == 3
    assert manager.resize_thread_pool(1)
    assert manager.thread_pool_size == 1
    assert not manager.resize_thread_pool(0)
    assert manager.thread_pool_size == 1


def test_resize_thread_pool_not_running():
    mgr = LogManager()
    assert mgr.thread_pool_size == 0
    assert not mgr.resize_thread_pool(2)


def test_set_thread_pool_size(manager):
    manager.set_thread_pool_size(2)
    assert manager.thread_pool_size == 2


def test_delivery_after_resize(manager):
    manager.set_thread_pool_size(1)
    logger = manager.register_logger("resized")
    sink = ListSink()
    logger.register_sink(sink)
    for n in range(5):
        logger.warn(f"w{n}")
    assert manager.flush(5.0)
    assert sink.lines == [f"w{n}" for n in range(5)]


def test_set_default_logger_name(manager):
    manager.set_default_logger_name("app")
    assert manager.default_logger_name == "app"
    assert manager.has_logger("app")
    assert manager.default_logger().name == "app"
    manager.remove_logger("app")
    assert manager.has_logger("app")


def test_set_default_logger_name_empty_ignored(manager):
    manager.set_default_logger_name("")
    assert manager.default_logger_name == "main"


def test_reset_all_starts_fresh(manager):
    manager.register_logger("custom")
    manager.reset_all()
    assert manager.state is LogManagerState.RUNNING
    assert not manager.has_logger("custom")
    assert manager.has_logger("main")


def test_reset_all_when_not_running_does_nothing():
    mgr = LogManager()
    mgr.reset_all()
    assert mgr.state is LogManagerState.UNINITIALIZED


def test_shutdown_all_is_idempotent(manager):
    manager.shutdown_all()
    manager.shutdown_all()
    assert manager.state is LogManagerState.SHUT_DOWN


def test_initialize_after_shutdown_raises(manager):
    manager.shutdown()
    with pytest.raises(LogManagerError):
        manager.initialize()