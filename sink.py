import logging
import threading
from pathlib import Path
from typing import Sequence

from errors import IOFailure

logger = logging.getLogger(__name__)

# One lock per output file, shared by every sink in the process
_path_locks = {}
_path_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = str(path.resolve())
    with _path_locks_guard:
        return _path_locks.setdefault(key, threading.Lock())


class OutputSink:
    """
    Append-only URL file shared by all pipelines.

    Every append is a full open-write-close under the lock for its path, so
    a batch from one keyword never interleaves with another's, even when
    several sinks point at the same file.
    """

    def __init__(self, path):
        self.path = Path(path)
        self._lock = _lock_for(self.path)

    def append(self, urls: Sequence[str]) -> int:
        """
        Append urls to the file, one per line.

        Returns:
            Number of lines written

        Raises:
            IOFailure: if the file cannot be opened or written
        """
        data = "".join(f"{url}\n" for url in urls)
        with self._lock:
            try:
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(data)
                    f.flush()
            except OSError as e:
                logger.error(f"Failed to write {len(urls)} URLs to {self.path}: {e}")
                raise IOFailure(f"could not append to {self.path}: {e}") from e
        return len(urls)

    def __repr__(self):
        return f"OutputSink(path={str(self.path)!r})"
