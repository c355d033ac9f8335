"""
Progress reporting for HLSKit.

Download jobs publish DownloadProgress snapshots to a sink. A sink is any
callable taking a snapshot; ProgressChannel is a bounded, non-blocking
channel that a consumer thread can iterate over.
"""

import logging
import queue
import threading
from typing import Callable, Iterator, Optional

from .models import DownloadProgress

logger = logging.getLogger(__name__)

ProgressSink = Callable[[DownloadProgress], None]


class ProgressChannel:
    """
    Bounded progress channel.

    publish() never blocks the download: when the buffer is full the oldest
    queued snapshot is dropped. Terminal snapshots are always delivered and
    end iteration.

    Example:
        >>> channel = ProgressChannel()
        >>> downloader = SegmentDownloader(progress=channel)
        >>> # consumer thread
        >>> for snapshot in channel:
        ...     print(snapshot.phase, snapshot.percentage)
    """

    def __init__(self, maxsize: int = 64):
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")
        self._queue: "queue.Queue[DownloadProgress]" = queue.Queue(maxsize=maxsize)
        self._lock = threading.Lock()
        self.dropped = 0

    def publish(self, snapshot: DownloadProgress) -> None:
        with self._lock:
            while True:
                try:
                    self._queue.put_nowait(snapshot)
                    return
                except queue.Full:
                    try:
                        self._queue.get_nowait()
                        self.dropped += 1
                    except queue.Empty:
                        pass

    __call__ = publish

    def get(self, timeout: Optional[float] = None) -> DownloadProgress:
        """Block until the next snapshot is available (queue.Empty on timeout)."""
        return self._queue.get(timeout=timeout)

    def __iter__(self) -> Iterator[DownloadProgress]:
        while True:
            snapshot = self._queue.get()
            yield snapshot
            if snapshot.is_terminal:
                return


def publish_safely(sink: Optional[ProgressSink], snapshot: DownloadProgress) -> None:
    """Send a snapshot to a sink; sink errors are logged, never raised."""
    if sink is None:
        return
    try:
        sink(snapshot)
    except Exception as e:
        logger.warning(f"Progress sink raised {type(e).__name__}: {e}")
