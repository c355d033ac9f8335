"""
HLSKit - HTTP Live Streaming download toolkit

A library for parsing M3U8 playlists and turning HLS streams into a single
local media file, including continuous capture of live broadcasts.

Features:
- Parse master and media playlists (variants, segments, AES-128 key references)
- Resolve relative playlist references against HTTP or filesystem bases
- Download segments concurrently with bounded parallelism and retries
- Record live streams by polling the playlist for new segments
- Merge segments with ffmpeg (stream copy) or plain concatenation

Example usage:
    >>> from hlskit import HLSClient, ProgressChannel
    >>>
    >>> client = HLSClient()
    >>> playlist = client.load("https://example.com/master.m3u8")
    >>> media = client.resolve_media_playlist(playlist, quality="720p")
    >>> result = client.download(media, output_dir="downloads", output_name="show")
    >>> print(result.output_path)
"""

import logging

__version__ = "0.1.0"
__author__ = "HLSKit Contributors"
__license__ = "MIT"

# Add NullHandler to prevent "No handler found" warnings
# Users should configure logging in their application if they want to see logs
logging.getLogger(__name__).addHandler(logging.NullHandler())

# Exceptions
from .exceptions import (
    HLSError,
    FormatError,
    InvalidReference,
    PlaylistError,
    VariantNotFound,
    FetchError,
    TransientFetchError,
    SegmentFailure,
    MergeFailure,
    OperationCancelled,
)

# Data models
from .models import (
    Playlist,
    QualityVariant,
    Segment,
    DownloadPhase,
    DownloadProgress,
    DownloadSettings,
    DownloadConfig,
    DownloadResult,
    RecorderState,
)

# URL helpers
from .urls import resolve, base_directory, is_m3u8_url

# Playlist parsing and retrieval
from .playlist import (
    M3U8Parser,
    parse_playlist,
    parse_attributes,
    is_hls_playlist,
    load_playlist,
    analyze_urls,
    select_variant,
)

# Main classes
from .downloader import SegmentDownloader, SegmentAccumulator
from .live import LiveStreamRecorder
from .merger import Merger, FFmpegMerger, ConcatMerger, get_merger
from .progress import ProgressChannel
from .utils import CancellationToken
from .http import create_session
from .client import HLSClient

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__license__",

    # Exceptions
    "HLSError",
    "FormatError",
    "InvalidReference",
    "PlaylistError",
    "VariantNotFound",
    "FetchError",
    "TransientFetchError",
    "SegmentFailure",
    "MergeFailure",
    "OperationCancelled",

    # Models
    "Playlist",
    "QualityVariant",
    "Segment",
    "DownloadPhase",
    "DownloadProgress",
    "DownloadSettings",
    "DownloadConfig",
    "DownloadResult",
    "RecorderState",

    # URL helpers
    "resolve",
    "base_directory",
    "is_m3u8_url",

    # Playlist functions
    "M3U8Parser",
    "parse_playlist",
    "parse_attributes",
    "is_hls_playlist",
    "load_playlist",
    "analyze_urls",
    "select_variant",

    # Main classes
    "HLSClient",
    "SegmentDownloader",
    "SegmentAccumulator",
    "LiveStreamRecorder",
    "Merger",
    "FFmpegMerger",
    "ConcatMerger",
    "get_merger",
    "ProgressChannel",
    "CancellationToken",
    "create_session",
]
