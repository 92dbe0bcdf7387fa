"""
File readiness detection.

A file is ready for merging when it is no longer being downloaded: its size and
modification time did not change between two checks, it was not modified for a
configured amount of time and nobody holds an exclusive lock on it.

Filesystem notifications (delivered by watchdog on its own thread) are passed
through a queue and applied by the polling side, so snapshots of a single path
are only ever written from one place.
"""

import logging
import os
import queue
import sys
import threading
import time

from dataclasses import dataclass
from overrides import override
from typing import Dict, List
from watchdog.events import FileSystemEvent, FileSystemEventHandler, FileSystemMovedEvent
from watchdog.observers import Observer

from ..utils import naming_utils
from ..utils.data_structs import FileMetadata

if sys.platform != "win32":
    import fcntl


@dataclass(frozen=True)
class StabilityRecord:
    size: int
    modified_ns: int


class ChangeListener(FileSystemEventHandler):
    """Posts paths touched by create/modify/delete/rename events into a queue."""

    def __init__(self, changes: "queue.Queue[str]") -> None:
        super().__init__()
        self.changes = changes

    @override
    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in ("created", "modified", "deleted", "moved"):
            return

        self.changes.put(os.fsdecode(event.src_path))

        if isinstance(event, FileSystemMovedEvent):
            self.changes.put(os.fsdecode(event.dest_path))


class StabilityTracker:
    """
        Owner of per path snapshots and cached file metadata.

        One instance is meant to live as long as the process and to be shared by all task runs.
        Entries of files which are not interesting anymore stay in memory until a notification
        about their change (usually removal) arrives.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._records: Dict[str, StabilityRecord] = {}
        self._metadata: Dict[str, FileMetadata] = {}
        self._changes: "queue.Queue[str]" = queue.Queue()
        self._listener = ChangeListener(self._changes)
        self._observers: Dict[str, Observer] = {}

    @staticmethod
    def _key(path: str) -> str:
        return os.path.abspath(path)

    def watch(self, folder: str) -> None:
        folder = self._key(folder)
        if not os.path.isdir(folder):
            self.logger.error(f"Cannot watch {folder}: not a directory")
            return

        with self._lock:
            if folder in self._observers:
                self.logger.debug(f"Already watching {folder}")
                return

            observer = Observer()
            observer.schedule(self._listener, folder, recursive=True)
            observer.daemon = True
            observer.start()
            self._observers[folder] = observer

        self.logger.info(f"Watching {folder} for changes")

    def close(self) -> None:
        with self._lock:
            observers = list(self._observers.values())
            self._observers.clear()

        for observer in observers:
            observer.stop()

        for observer in observers:
            observer.join()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def notify(self, path: str) -> None:
        """Report a change of 'path'. Safe to call from any thread."""
        self._changes.put(path)

    def _apply_pending_changes(self) -> None:
        while True:
            try:
                path = self._changes.get_nowait()
            except queue.Empty:
                return

            key = self._key(path)
            self.logger.debug(f"File changed: {key}")
            with self._lock:
                self._records.pop(key, None)
                self._metadata.pop(key, None)

    def invalidate(self, path: str) -> None:
        key = self._key(path)
        with self._lock:
            self._records.pop(key, None)
            self._metadata.pop(key, None)

    def has_snapshot(self, path: str) -> bool:
        self._apply_pending_changes()
        with self._lock:
            return self._key(path) in self._records

    def record_snapshot(self, path: str) -> None:
        self._apply_pending_changes()
        key = self._key(path)

        try:
            stat = os.stat(key)
        except FileNotFoundError:
            self.invalidate(key)
            return

        with self._lock:
            self._records[key] = StabilityRecord(stat.st_size, stat.st_mtime_ns)

    def is_settled(self, path: str, age_threshold: float) -> bool:
        """
            Returns True when 'path' did not change since previous check and
            was last modified at least 'age_threshold' seconds ago.
            First check of a path always returns False.
        """
        self._apply_pending_changes()
        key = self._key(path)

        try:
            stat = os.stat(key)
        except FileNotFoundError:
            self.invalidate(key)
            return False

        current = StabilityRecord(stat.st_size, stat.st_mtime_ns)
        age = time.time() - stat.st_mtime

        with self._lock:
            previous = self._records.get(key)
            self._records[key] = current

        if previous is None:
            self.logger.debug(f"First observation of {key}")
            return False

        return previous == current and age >= age_threshold

    def is_locked(self, path: str) -> bool:
        """Returns True if 'path' cannot be opened for exclusive reading."""
        try:
            with open(path, "rb") as f:
                if sys.platform != "win32":
                    try:
                        fcntl.flock(f.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                    except BlockingIOError:
                        return True

                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except OSError as e:
            self.logger.debug(f"Cannot open {path}: {e}")
            return True

        return False

    def is_dirty(self, path: str, age_threshold: float) -> bool:
        # both checks are always evaluated so that the snapshot gets refreshed
        settled = self.is_settled(path, age_threshold)
        locked = self.is_locked(path)
        return not settled or locked

    def dirty_files(self, paths: List[str], age_threshold: float) -> List[str]:
        return [path for path in paths if self.is_dirty(path, age_threshold)]

    def get_file_metadata(self, path: str) -> FileMetadata:
        self._apply_pending_changes()
        key = self._key(path)

        with self._lock:
            metadata = self._metadata.get(key)

        if metadata is not None:
            return metadata

        stat = os.stat(key)
        name = os.path.basename(key)
        metadata = FileMetadata(
            name=name,
            normalized_title=naming_utils.normalize_title(name),
            season=naming_utils.extract_season(name),
            episode=naming_utils.extract_episode(name),
            size=stat.st_size,
            modified=stat.st_mtime,
        )

        with self._lock:
            self._metadata[key] = metadata

        return metadata
