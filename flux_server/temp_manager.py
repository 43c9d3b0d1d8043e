import logging
import os
import shutil
import tempfile
import threading

from flux_server.log import log_event

logger = logging.getLogger(__name__)


class TempManager:
    """Tracks intermediate files so they can be removed on failure or shutdown.

    One instance is shared by the orchestrator and the shutdown handler.
    Every tracked path is either untracked by its owner or removed by
    cleanup_all().
    """

    def __init__(self):
        self._paths: set[str] = set()
        self._lock = threading.Lock()

    @property
    def pending(self) -> list[str]:
        with self._lock:
            return sorted(self._paths)

    def track(self, path: str) -> None:
        with self._lock:
            self._paths.add(path)

    def untrack(self, path: str) -> None:
        with self._lock:
            self._paths.discard(path)

    def create_temp_file(self, directory: str, suffix: str = "") -> str:
        """Create an empty temp file in `directory` and track it."""
        fd, path = tempfile.mkstemp(prefix=".flux-", suffix=suffix, dir=directory)
        os.close(fd)
        self.track(path)
        return path

    def cleanup_all(self) -> None:
        """Remove every tracked path. Never raises."""
        with self._lock:
            paths = list(self._paths)
            self._paths.clear()

        for path in paths:
            try:
                if os.path.isdir(path):
                    shutil.rmtree(path)
                elif os.path.lexists(path):
                    os.remove(path)
            except OSError as e:
                log_event(logger, logging.WARNING, "Failed to remove temp file", path=path, error=str(e))

        if paths:
            log_event(logger, logging.INFO, "Cleaned up temp files", count=len(paths))
