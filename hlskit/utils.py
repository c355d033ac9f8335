"""
Utility functions for HLSKit.

Provides cooperative cancellation and small filename/time helpers shared by
the downloader and the live recorder.
"""

import re
import threading
import time
from datetime import datetime
from typing import Optional

from .exceptions import OperationCancelled

# Upper bound for a single wait slice so linked tokens notice a parent cancel.
_POLL_SLICE = 0.1


class CancellationToken:
    """
    Cooperative cancellation flag shared between a caller and running jobs.

    A child token is cancelled whenever its parent is, but cancelling the
    child leaves the parent untouched. The downloader uses a child to stop
    sibling segment tasks after a fatal failure without reporting the job
    as cancelled by the user.

    Example:
        >>> token = CancellationToken()
        >>> child = token.child()
        >>> token.cancel()
        >>> child.is_cancelled
        True
    """

    def __init__(self, parent: Optional["CancellationToken"] = None):
        self._event = threading.Event()
        self._parent = parent

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._parent is not None and self._parent.is_cancelled

    def raise_if_cancelled(self) -> None:
        if self.is_cancelled:
            raise OperationCancelled("Operation cancelled")

    def child(self) -> "CancellationToken":
        return CancellationToken(parent=self)

    def sleep(self, seconds: float) -> None:
        """
        Sleep for up to `seconds`, waking early on cancellation.

        Raises:
            OperationCancelled: If the token is (or becomes) cancelled
        """
        deadline = time.monotonic() + max(seconds, 0.0)
        while True:
            self.raise_if_cancelled()
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return
            self._event.wait(min(remaining, _POLL_SLICE))


_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')

OUTPUT_EXTENSIONS = ('.mp4', '.mkv', '.ts')


def sanitize_filename(name: str, replacement: str = '_') -> str:
    """
    Make a string safe to use as a file name on common filesystems.

    Example:
        >>> sanitize_filename('live: "news"/today')
        'live_ _news__today'
    """
    cleaned = _UNSAFE_CHARS.sub(replacement, name).strip().strip('.')
    return cleaned or 'video'


def output_filename(name: Optional[str], default_extension: str = '.mp4') -> str:
    """
    Build the final output file name.

    Names without a known container extension get default_extension
    appended; a missing name becomes video_<timestamp>.
    """
    if not name:
        name = f"video_{datetime.now():%Y%m%d_%H%M%S}"
    name = sanitize_filename(name)
    if not name.lower().endswith(OUTPUT_EXTENSIONS):
        name += default_extension
    return name


def format_duration(seconds: float) -> str:
    """
    Format seconds as H:MM:SS.

    Example:
        >>> format_duration(3725.4)
        '1:02:05'
    """
    total = int(max(seconds, 0))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours}:{minutes:02d}:{secs:02d}"
