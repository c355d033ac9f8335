"""
Playlist module for HLSKit.

Provides M3U8 parsing, playlist retrieval and quality variant selection.
"""

from .parser import (
    M3U8Parser,
    parse_playlist,
    parse_attributes,
    is_hls_playlist,
)

from .loader import (
    load_playlist,
    analyze_urls,
)

from .selection import (
    select_variant,
    sort_by_bandwidth,
)

__all__ = [
    'M3U8Parser',
    'parse_playlist',
    'parse_attributes',
    'is_hls_playlist',
    'load_playlist',
    'analyze_urls',
    'select_variant',
    'sort_by_bandwidth',
]
