"""Sink that appends formatted messages to a file, with optional rotation."""

from __future__ import annotations

import gzip
import os
import shutil
import sys
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import BinaryIO, Optional

from .message import Message
from .sink import Formatter, Sink

try:
    import fcntl
except ImportError:  # pragma: no cover - not available on Windows
    fcntl = None  # type: ignore[assignment]

try:
    import msvcrt
except ImportError:  # pragma: no cover - only available on Windows
    msvcrt = None  # type: ignore[assignment]

NEWLINE = "\r\n" if sys.platform == "win32" else "\n"


class RotationRule(Enum):
    """When a log file is rotated."""

    NONE = "none"
    SIZE = "size"
    TIME = "time"
    SIZE_AND_TIME = "size_and_time"


class RotationTimeUnit(Enum):
    """Unit of the interval used by time-based rotation."""

    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


_TIME_RULES = (RotationRule.TIME, RotationRule.SIZE_AND_TIME)


@dataclass
class FileSinkOptions:
    file_path: str = ""

    create_dir: bool = True
    truncate_on_open: bool = False
    auto_flush: bool = False
    buffer_size: int = 8192
    line_ending: str = NEWLINE

    enable_rotation: bool = False
    rotation_rule: RotationRule = RotationRule.SIZE
    max_file_size: int = 10 * 1024 * 1024
    time_unit: RotationTimeUnit = RotationTimeUnit.DAY
    time_value: int = 1
    max_files: int = 5
    rotation_pattern: str = "{basename}.{timestamp}.{ext}"
    compress_rotated_files: bool = False

    enable_file_lock: bool = False


def next_rotation_time(
    now: Optional[datetime] = None,
    unit: RotationTimeUnit = RotationTimeUnit.DAY,
    value: int = 1,
) -> datetime:
    """Return the start of the period ``value`` units after the one holding ``now``."""
    if now is None:
        now = datetime.now()
    now = now.replace(microsecond=0)
    midnight = now.replace(hour=0, minute=0, second=0)

    if unit is RotationTimeUnit.MINUTE:
        return now.replace(second=0) + timedelta(minutes=value)
    if unit is RotationTimeUnit.HOUR:
        return now.replace(minute=0, second=0) + timedelta(hours=value)
    if unit is RotationTimeUnit.DAY:
        return midnight + timedelta(days=value)
    if unit is RotationTimeUnit.WEEK:
        sunday_based_weekday = (now.weekday() + 1) % 7
        return midnight + timedelta(days=7 * value - sunday_based_weekday)
    if unit is RotationTimeUnit.MONTH:
        years, month_index = divmod(now.month - 1 + value, 12)
        return midnight.replace(year=now.year + years, month=month_index + 1, day=1)
    if unit is RotationTimeUnit.YEAR:
        return midnight.replace(year=now.year + value, month=1, day=1)
    raise ValueError(f"unknown rotation time unit: {unit!r}")


def format_rotated_filename(
    file_path: str,
    pattern: str = "{basename}.{timestamp}.{ext}",
    now: Optional[datetime] = None,
) -> str:
    """Build the name a rotated log file is moved to."""
    if now is None:
        now = datetime.now()
    directory, filename = os.path.split(file_path)
    basename, extension = os.path.splitext(filename)

    result = pattern
    result = result.replace("{basename}", basename, 1)
    result = result.replace("{timestamp}", now.strftime("%Y%m%d-%H%M%S"), 1)
    result = result.replace("{ext}", extension[1:], 1)

    if not os.path.isabs(result):
        return os.path.join(directory, result)
    return result


class FileSink(Sink):
    """Appends messages to a file, rotating it by size and/or time."""

    def __init__(self, options: Optional[FileSinkOptions] = None) -> None:
        self._options = replace(options) if options is not None else FileSinkOptions()
        self._lock = threading.Lock()
        self._file: Optional[BinaryIO] = None
        self._lock_fd: Optional[int] = None
        self._current_file_size = 0
        self._last_rotation_time = datetime.now()
        self._next_rotation_time: Optional[datetime] = None

        if self._options.rotation_rule in _TIME_RULES:
            self._next_rotation_time = self._calculate_next_rotation_time()

        self._initialized = self._open_file() if self._options.file_path else False

    @property
    def options(self) -> FileSinkOptions:
        return self._options

    @property
    def current_file_size(self) -> int:
        return self._current_file_size

    def __enter__(self) -> "FileSink":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __del__(self) -> None:
        try:
            self._close_file()
        except Exception:
            pass

    def output(self, msg: Message, format: Formatter) -> None:
        if not self._initialized:
            return
        try:
            text = format(msg)
            if not text:
                return
            if not text.endswith("\n"):
                text += self._options.line_ending
            data = text.encode("utf-8")

            with self._lock:
                needs_reopen = False
                if self._options.enable_rotation and self._should_rotate():
                    self._rotate_file()
                    needs_reopen = True

                if needs_reopen and self._file is None and not self._open_file():
                    return

                if self._file is not None:
                    self._file.write(data)
                    self._current_file_size += len(data)
                    if self._options.auto_flush:
                        self._file.flush()
        except Exception:
            pass

    def flush(self) -> None:
        with self._lock:
            if self._file is not None:
                self._file.flush()

    def reopen(self) -> bool:
        """Close and reopen the file; return whether it is open again."""
        with self._lock:
            self._close_file()
            return self._open_file()

    def close(self) -> None:
        with self._lock:
            self._close_file()

    def is_open(self) -> bool:
        with self._lock:
            return self._file is not None

    def _open_file(self) -> bool:
        opts = self._options
        if opts.create_dir and not self._create_directory_if_needed():
            return False

        mode = "wb" if opts.truncate_on_open else "ab"
        buffering = opts.buffer_size if opts.buffer_size > 1 else -1
        try:
            self._file = open(opts.file_path, mode, buffering=buffering)
        except OSError:
            self._file = None
            return False

        if opts.enable_file_lock and not self._acquire_file_lock():
            self._close_file()
            return False

        self._file.seek(0, os.SEEK_END)
        self._current_file_size = self._file.tell()
        return True

    def _close_file(self) -> None:
        if self._file is not None:
            try:
                self._file.flush()
            finally:
                self._file.close()
                self._file = None
        if self._options.enable_file_lock:
            self._release_file_lock()
        self._current_file_size = 0

    def _should_rotate(self) -> bool:
        opts = self._options
        if not opts.enable_rotation:
            return False
        too_big = self._current_file_size >= opts.max_file_size
        if opts.rotation_rule is RotationRule.SIZE:
            return too_big
        if opts.rotation_rule is RotationRule.TIME:
            return self._is_time_to_rotate()
        if opts.rotation_rule is RotationRule.SIZE_AND_TIME:
            return too_big or self._is_time_to_rotate()
        return False

    def _rotate_file(self) -> None:
        opts = self._options
        if self._file is not None:
            self._file.close()
            self._file = None
        if opts.enable_file_lock:
            self._release_file_lock()

        rotated = format_rotated_filename(opts.file_path, opts.rotation_pattern)
        try:
            os.replace(opts.file_path, rotated)
        except OSError:
            try:
                shutil.copyfile(opts.file_path, rotated)
                open(opts.file_path, "wb").close()
            except OSError:
                pass

        if opts.compress_rotated_files:
            self._compress_file(rotated)

        self._last_rotation_time = datetime.now()
        if opts.rotation_rule in _TIME_RULES:
            self._next_rotation_time = self._calculate_next_rotation_time()

        self._prune_old_files()
        self._open_file()

    def _create_directory_if_needed(self) -> bool:
        directory = os.path.dirname(self._options.file_path)
        if not directory or os.path.exists(directory):
            return True
        try:
            os.makedirs(directory)
        except OSError:
            return False
        return True

    def _prune_old_files(self) -> None:
        opts = self._options
        if opts.max_files == 0:
            return
        directory, filename = os.path.split(opts.file_path)
        stem = os.path.splitext(filename)[0]
        lock_name = filename + ".lock"
        try:
            rotated = [
                entry.path
                for entry in os.scandir(directory or ".")
                if entry.is_file()
                and entry.name.startswith(stem)
                and entry.name not in (filename, lock_name)
            ]
            rotated.sort(key=os.path.getmtime)
            excess = len(rotated) - opts.max_files
            for path in rotated[:max(excess, 0)]:
                os.remove(path)
        except OSError:
            pass

    @staticmethod
    def _compress_file(path: str) -> bool:
        try:
            with open(path, "rb") as source, gzip.open(path + ".gz", "wb") as target:
                shutil.copyfileobj(source, target)
            os.remove(path)
        except OSError:
            return False
        return True

    def _calculate_next_rotation_time(self) -> datetime:
        return next_rotation_time(datetime.now(), self._options.time_unit, self._options.time_value)

    def _is_time_to_rotate(self) -> bool:
        return self._next_rotation_time is None or datetime.now() >= self._next_rotation_time

    def _acquire_file_lock(self) -> bool:
        lock_path = self._options.file_path + ".lock"
        try:
            fd = os.open(lock_path, os.O_CREAT | os.O_RDWR, 0o666)
        except OSError:
            return False
        try:
            if fcntl is not None:
                fcntl.lockf(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            elif msvcrt is not None:
                msvcrt.locking(fd, msvcrt.LK_NBLCK, 1)
        except OSError:
            os.close(fd)
            return False
        self._lock_fd = fd
        return True

    def _release_file_lock(self) -> None:
        fd = self._lock_fd
        if fd is None:
            return
        self._lock_fd = None
        try:
            if fcntl is not None:
                fcntl.lockf(fd, fcntl.LOCK_UN)
            elif msvcrt is not None:
                os.lseek(fd, 0, os.SEEK_SET)
                msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)
        except OSError:
            pass
        finally:
            os.close(fd)
        try:
            os.unlink(self._options.file_path + ".lock")
        except OSError:
            pass