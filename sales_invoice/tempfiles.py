"""Short-lived rendered PDFs served by name, with periodic cleanup."""

from __future__ import annotations

import logging
import os
import re
import threading
import time
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

SAFE_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def safe_filename(name: str) -> bool:
    return bool(SAFE_NAME.match(name)) and ".." not in name


def remove_quietly(path: str) -> bool:
    """Delete ``path``; a file that is already gone is not an error."""
    try:
        os.unlink(path)
    except FileNotFoundError:
        return False
    except OSError as exc:
        logger.warning("Could not delete temp file %s: %s", path, exc)
        return False
    return True


class TempFileStore:
    def __init__(self, directory: str, max_age_s: float, clock: Callable[[], float] = time.time) -> None:
        self.directory = directory
        self.max_age_s = max_age_s
        self.clock = clock

    def path_for(self, name: str) -> Optional[str]:
        if not safe_filename(name):
            return None
        return os.path.join(self.directory, name)

    def save(self, name: str, document: bytes) -> str:
        path = self.path_for(name)
        if path is None:
            raise ValueError(f"Unsafe temp file name: {name!r}")
        os.makedirs(self.directory, exist_ok=True)
        with open(path, "wb") as fh:
            fh.write(document)
        logger.info("PDF saved locally: %s", name)
        return path

    def read(self, name: str) -> Optional[bytes]:
        path = self.path_for(name)
        if path is None:
            return None
        try:
            with open(path, "rb") as fh:
                return fh.read()
        except FileNotFoundError:
            return None

    def remove(self, name: str) -> bool:
        path = self.path_for(name)
        return path is not None and remove_quietly(path)

    def remove_later(self, name: str, delay_s: float) -> threading.Timer:
        timer = threading.Timer(delay_s, self.remove, args=(name,))
        timer.daemon = True
        timer.start()
        return timer

    def cleanup_expired(self) -> List[str]:
        """Delete files older than the max age; returns the names removed."""
        try:
            names = os.listdir(self.directory)
        except FileNotFoundError:
            return []
        now = self.clock()
        removed: List[str] = []
        for name in names:
            path = os.path.join(self.directory, name)
            try:
                age = now - os.stat(path).st_mtime
            except FileNotFoundError:
                continue
            if age > self.max_age_s and remove_quietly(path):
                logger.info("Cleaned up old temp file: %s", name)
                removed.append(name)
        return removed


class CleanupWorker(threading.Thread):
    """Runs ``TempFileStore.cleanup_expired`` on a fixed interval until stopped."""

    def __init__(self, store: TempFileStore, interval_s: float) -> None:
        super().__init__(name="temp-pdf-cleanup", daemon=True)
        self.store = store
        self.interval_s = interval_s
        self._stopped = threading.Event()

    def run(self) -> None:
        while not self._stopped.wait(self.interval_s):
            try:
                self.store.cleanup_expired()
            except Exception:
                logger.exception("Temp file cleanup failed")

    def stop(self) -> None:
        self._stopped.set()
