"""
Exception types for HLSKit.

Every error raised by the package derives from HLSError so callers can catch
the whole family at once.
"""

from typing import Optional


class HLSError(Exception):
    """Base class for all HLSKit errors."""


class FormatError(HLSError):
    """Playlist text is not an M3U8 document (missing #EXTM3U header)."""


class InvalidReference(HLSError):
    """A URL reference could not be resolved (empty reference)."""


class PlaylistError(HLSError):
    """Playlist is not usable for the requested operation."""


class VariantNotFound(HLSError):
    """No quality variant matched the requested preference."""


class FetchError(HLSError):
    """A playlist or segment request failed permanently."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransientFetchError(FetchError):
    """A request failed in a way that is worth retrying."""


class SegmentFailure(HLSError):
    """A segment could not be downloaded within its retry budget."""

    def __init__(self, index: int, url: str, attempts: int):
        super().__init__(f"Failed to download segment {index} after {attempts} attempt(s): {url}")
        self.index = index
        self.url = url
        self.attempts = attempts


class MergeFailure(HLSError):
    """The merge step failed to produce the output file."""


class OperationCancelled(HLSError):
    """The job was cancelled cooperatively."""
