"""Process-wide registry of loggers, global sinks and the dispatch pool."""

from __future__ import annotations

import os
import threading
import time
from collections import deque
from enum import Enum
from typing import Deque, Iterable, List, Optional, Tuple

from .console_sink import ConsoleSink
from .level import Level, LogFormat
from .logger import Logger
from .message import Message
from .sink import Sink

NUM_BUCKETS = 1 << 8

_FNV_OFFSET_BASIS = 0xCBF29CE484222325
_FNV_PRIME = 0x100000001B3
_MASK64 = (1 << 64) - 1


def bucket_index(name: str) -> int:
    """Return the registry bucket for ``name`` (FNV-1a with a final fold)."""
    if not name:
        return 0
    value = _FNV_OFFSET_BASIS
    for byte in name.encode("utf-8"):
        value ^= byte
        value = (value * _FNV_PRIME) & _MASK64
    value ^= value >> 32
    return value & (NUM_BUCKETS - 1)


def _default_thread_count() -> int:
    return max(1, (os.cpu_count() or 1) // 2)


class LogManagerError(RuntimeError):
    """Raised when the manager cannot perform a requested operation."""

    def __init__(self, message: str, code: int = 1) -> None:
        super().__init__(message)
        self.code = code


class LogManagerState(Enum):
    UNINITIALIZED = "Uninitialized"
    INITIALIZING = "Initializing"
    RUNNING = "Running"
    SHUTTING_DOWN = "ShuttingDown"
    SHUT_DOWN = "ShutDown"


class _LoggerMap:
    """Fixed set of buckets; newer entries shadow older ones of the same name."""

    def __init__(self) -> None:
        self._buckets: List[List[Tuple[str, Logger]]] = [[] for _ in range(NUM_BUCKETS)]
        self._lock = threading.Lock()

    def find(self, name: str) -> Optional[Logger]:
        if not name:
            return None
        with self._lock:
            for entry_name, logger in self._buckets[bucket_index(name)]:
                if entry_name == name:
                    return logger
        return None

    def contains(self, name: str) -> bool:
        return self.find(name) is not None

    def insert(self, name: str, logger: Logger) -> Logger:
        with self._lock:
            self._buckets[bucket_index(name)].insert(0, (name, logger))
        return logger

    def remove(self, name: str) -> bool:
        with self._lock:
            bucket = self._buckets[bucket_index(name)]
            for position, (entry_name, _) in enumerate(bucket):
                if entry_name == name:
                    del bucket[position]
                    return True
        return False

    def clear(self) -> None:
        with self._lock:
            for bucket in self._buckets:
                bucket.clear()


class _DispatchPool:
    """Worker threads that deliver queued messages to their loggers' sinks."""

    def __init__(self, size: int) -> None:
        self._cond = threading.Condition()
        self._pending: Deque[Message] = deque()
        self._unfinished = 0
        self._workers: List[threading.Thread] = []
        self._retire = 0
        self._size = 0
        self._closed = False
        with self._cond:
            self._spawn(max(1, size))

    @property
    def thread_count(self) -> int:
        return self._size

    def _spawn(self, count: int) -> None:
        for _ in range(count):
            worker = threading.Thread(target=self._run, name="flexlog-dispatch", daemon=True)
            self._workers.append(worker)
            worker.start()
        self._size += count

    def _run(self) -> None:
        me = threading.current_thread()
        while True:
            with self._cond:
                self._cond.wait_for(
                    lambda: self._pending or self._closed or self._retire > 0
                )
                if self._retire > 0 and not self._closed:
                    self._retire -= 1
                    self._workers.remove(me)
                    return
                if not self._pending:
                    return
                message = self._pending.popleft()
            try:
                logger = message.logger
                if logger is not None:
                    logger.process_message(message)
            except Exception:
                pass
            finally:
                with self._cond:
                    self._unfinished -= 1
                    self._cond.notify_all()

    def enqueue(self, message: Message, priority: int = 0) -> None:
        with self._cond:
            if self._closed:
                raise LogManagerError("dispatch pool is shut down")
            self._pending.append(message)
            self._unfinished += 1
            self._cond.notify_all()

    def flush(self, timeout: Optional[float] = None) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: self._unfinished == 0, timeout)

    def resize(self, size: int) -> bool:
        with self._cond:
            if size < 1 or self._closed:
                return False
            if size > self._size:
                grow = size - self._size
                cancelled = min(self._retire, grow)
                self._retire -= cancelled
                self._size += cancelled
                self._spawn(grow - cancelled)
            elif size < self._size:
                self._retire += self._size - size
                self._size = size
                self._cond.notify_all()
            return True

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        with self._cond:
            if not wait:
                self._unfinished -= len(self._pending)
                self._pending.clear()
            self._closed = True
            self._cond.notify_all()
            workers = list(self._workers)
        deadline = None if timeout is None else time.monotonic() + timeout
        for worker in workers:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            worker.join(remaining)


class LogManager:
    """Owns every logger of the process and the threads that deliver messages."""

    _instance: Optional["LogManager"] = None
    _instance_lock = threading.Lock()

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._state = LogManagerState.UNINITIALIZED
        self._loggers: Optional[_LoggerMap] = None
        self._global_sinks: Tuple[Sink, ...] = ()
        self._default_level = Level.INFO
        self._default_format = LogFormat.PATTERN
        self._default_logger_name = "main"
        self._pool: Optional[_DispatchPool] = None
        self._config_version = 0

    @classmethod
    def instance(cls) -> "LogManager":
        """Return the process-wide manager, creating it on first use."""
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    # State -----------------------------------------------------------------

    @property
    def state(self) -> LogManagerState:
        return self._state

    @property
    def config_version(self) -> int:
        return self._config_version

    def _running(self) -> bool:
        return self._state is LogManagerState.RUNNING

    def initialize(self) -> None:
        """Create the registry, the dispatch pool and the default logger."""
        with self._lock:
            if self._running():
                return
            if self._state is not LogManagerState.UNINITIALIZED:
                raise LogManagerError(
                    f"Cannot initialize LogManager: already in state {self._state.value}"
                )
            self._state = LogManagerState.INITIALIZING
            try:
                self._loggers = _LoggerMap()
                self._pool = _DispatchPool(_default_thread_count())
                self._create_default_logger()
                self._state = LogManagerState.RUNNING
            except Exception as exc:
                self._state = LogManagerState.UNINITIALIZED
                self.shutdown_all()
                self._state = LogManagerState.UNINITIALIZED
                raise LogManagerError(f"LogManager initialization failed: {exc}") from exc

    def shutdown(self, wait_for_completion: bool = True, timeout: Optional[float] = 5.0) -> None:
        """Stop delivery, drop all loggers and global sinks."""
        with self._lock:
            state = self._state
            if state is not LogManagerState.RUNNING:
                if state in (LogManagerState.UNINITIALIZED, LogManagerState.SHUT_DOWN):
                    raise LogManagerError(
                        "LogManager not initialized or already shut down, "
                        f"current state: {state.value}"
                    )
                if state is LogManagerState.INITIALIZING:
                    raise LogManagerError("Cannot shutdown LogManager while it's being initialized")
                raise LogManagerError("LogManager is already shutting down")
            self._state = LogManagerState.SHUTTING_DOWN

            try:
                pool, self._pool = self._pool, None
                if pool is not None:
                    if wait_for_completion:
                        pool.flush(timeout)
                    try:
                        pool.shutdown(wait_for_completion, timeout)
                    except Exception:
                        pass
                if self._loggers is not None:
                    self._loggers.clear()
                self._global_sinks = ()
                self._state = LogManagerState.SHUT_DOWN
            except Exception as exc:
                self._state = LogManagerState.RUNNING
                raise LogManagerError(f"LogManager shutdown failed: {exc}", code=2) from exc

    def shutdown_all(self) -> None:
        """Shut down unconditionally, waiting for queued messages."""
        with self._lock:
            if self._state is LogManagerState.SHUT_DOWN:
                return
            if self._running():
                self._state = LogManagerState.SHUTTING_DOWN
            pool, self._pool = self._pool, None
            if pool is not None:
                pool.shutdown(True)
            if self._loggers is not None:
                self._loggers.clear()
            self._global_sinks = ()
            self._state = LogManagerState.SHUT_DOWN

    def reset_all(self) -> None:
        """Tear everything down and initialize afresh; only while running."""
        with self._lock:
            if not self._running():
                return
            self.shutdown_all()
            self._state = LogManagerState.UNINITIALIZED
            self.initialize()

    # Loggers ---------------------------------------------------------------

    def _dispatch(self, message: Message, priority: int) -> None:
        pool = self._pool
        if pool is None:
            raise LogManagerError("LogManager has no dispatch pool")
        pool.enqueue(message, priority)

    def _new_logger(self, name: str) -> Logger:
        logger = Logger(name, self._default_level, dispatcher=self._dispatch)
        logger.log_format = self._default_format
        return logger

    def register_logger(self, name: str) -> Logger:
        """Return the logger called ``name``, creating it if needed."""
        with self._lock:
            if not self._running() or not name:
                reason = (
                    "Logger name cannot be empty"
                    if not name
                    else f"LogManager in state {self._state.value}"
                )
                raise LogManagerError(f"Cannot register logger: {reason}")
            assert self._loggers is not None
            existing = self._loggers.find(name)
            if existing is not None:
                return existing
            self._ensure_pool()
            logger = self._new_logger(name)
            logger.register_sinks(self._global_sinks)
            return self._loggers.insert(name, logger)

    def get_logger(self, name: str) -> Logger:
        loggers = self._loggers
        found = loggers.find(name) if loggers is not None else None
        return found if found is not None else self.register_logger(name)

    def default_logger(self) -> Logger:
        return self.get_logger(self._default_logger_name)

    def has_logger(self, name: str) -> bool:
        if not self._running() or not name or self._loggers is None:
            return False
        return self._loggers.contains(name)

    def remove_logger(self, name: str) -> None:
        """Remove a logger; the default logger cannot be removed."""
        with self._lock:
            if not self._running() or name == self._default_logger_name:
                return
            assert self._loggers is not None
            self._loggers.remove(name)

    @property
    def default_logger_name(self) -> str:
        return self._default_logger_name

    def set_default_logger_name(self, name: str) -> None:
        with self._lock:
            if not self._running() or not name:
                return
            self._default_logger_name = name
            if not self.has_logger(name):
                self._create_default_logger()

    def _create_default_logger(self) -> None:
        name = self._default_logger_name
        logger = self._new_logger(name)
        logger.register_sink(ConsoleSink())
        assert self._loggers is not None
        self._loggers.insert(name, logger)

    # Configuration ---------------------------------------------------------

    def register_sink(self, sink: Optional[Sink]) -> None:
        """Add a sink that every logger registered from now on receives."""
        with self._lock:
            if not self._running() or sink is None:
                return
            self._global_sinks = self._global_sinks + (sink,)

    @property
    def global_sinks(self) -> List[Sink]:
        return list(self._global_sinks)

    @property
    def default_level(self) -> Level:
        return self._default_level

    def set_default_level(self, level: Level) -> None:
        with self._lock:
            if not self._running():
                return
            self._default_level = Level(level)
            self._config_version += 1

    @property
    def default_format(self) -> LogFormat:
        return self._default_format

    def set_default_format(self, log_format: LogFormat) -> None:
        with self._lock:
            if not self._running():
                return
            self._default_format = LogFormat(log_format)
            self._config_version += 1

    # Dispatch pool ---------------------------------------------------------

    def _ensure_pool(self) -> None:
        if self._state not in (LogManagerState.INITIALIZING, LogManagerState.RUNNING):
            return
        if self._pool is None:
            self._pool = _DispatchPool(_default_thread_count())

    def set_thread_pool_size(self, size: int) -> None:
        with self._lock:
            if not self._running():
                return
            if self._pool is not None:
                self._pool.resize(size)
            else:
                self._pool = _DispatchPool(size)

    @property
    def thread_pool_size(self) -> int:
        pool = self._pool
        return pool.thread_count if pool is not None else 0

    def resize_thread_pool(self, new_size: int) -> bool:
        with self._lock:
            if not self._running():
                return False
            if self._pool is None:
                self._pool = _DispatchPool(new_size)
                return True
            return self._pool.resize(new_size)

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait until every queued message has been delivered."""
        pool = self._pool
        return pool.flush(timeout) if pool is not None else True


def _iter_names(loggers: Iterable[Logger]) -> List[str]:
    return [logger.name for logger in loggers]