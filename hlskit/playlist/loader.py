"""
Playlist retrieval for HLSKit.

Fetches playlists over HTTP (or from disk) and parses them with the base URL
of the final location after redirects.
"""

import dataclasses
import logging
import os
from typing import Iterable, List, Optional

import requests

from ..exceptions import FetchError, FormatError
from ..http import create_session, fetch_text
from ..models import DownloadSettings, Playlist
from ..urls import base_directory
from .parser import parse_playlist

logger = logging.getLogger(__name__)


def _read_local(path: str) -> str:
    if path.startswith('file://'):
        path = path[len('file://'):]
    with open(path, 'r', encoding='utf-8-sig') as f:
        return f.read()


def load_playlist(
    url: str,
    session: Optional[requests.Session] = None,
    settings: Optional[DownloadSettings] = None,
) -> Playlist:
    """
    Fetch and parse a playlist.

    Args:
        url: Playlist URL or local file path
        session: Optional requests session (one is created if omitted)
        settings: Download settings (timeouts, SSL verification)

    Returns:
        Parsed Playlist with source_url set to the final URL

    Raises:
        FetchError: If the playlist cannot be retrieved
        FormatError: If the content is not an M3U8 playlist

    Example:
        >>> playlist = load_playlist("https://example.com/master.m3u8")
        >>> print(playlist.is_master, len(playlist.qualities))
        True 3
    """
    settings = settings or DownloadSettings()

    if url.startswith('file://') or os.path.exists(url):
        try:
            content = _read_local(url)
        except OSError as e:
            raise FetchError(f"Could not read playlist {url}: {e}") from e
        final_url = url
    else:
        session = session or create_session(settings)
        content, final_url = fetch_text(
            session, url, timeout=settings.playlist_timeout, verify_ssl=settings.verify_ssl
        )

    playlist = parse_playlist(content, base_directory(final_url, is_file=True))
    logger.info(
        f"Loaded {'master' if playlist.is_master else 'media'} playlist from {final_url}"
    )
    return dataclasses.replace(playlist, source_url=final_url)


def analyze_urls(
    urls: Iterable[str],
    session: Optional[requests.Session] = None,
    settings: Optional[DownloadSettings] = None,
) -> List[Playlist]:
    """
    Load every candidate playlist URL, skipping the ones that fail.

    Candidates come from a URL discovery step and are handled independently:
    a fetch error or a non-M3U8 response only drops that candidate.

    Args:
        urls: Candidate playlist URLs in priority order
        session: Optional requests session
        settings: Download settings

    Returns:
        Successfully parsed playlists, in candidate order
    """
    settings = settings or DownloadSettings()
    session = session or create_session(settings)
    playlists: List[Playlist] = []
    seen = set()

    for url in urls:
        if not url or url in seen:
            logger.debug(f"Skipping duplicate or empty candidate: {url!r}")
            continue
        seen.add(url)
        try:
            playlists.append(load_playlist(url, session=session, settings=settings))
        except FormatError as e:
            logger.warning(f"Candidate {url} is not an M3U8 playlist: {e}")
        except FetchError as e:
            logger.warning(f"Failed to fetch candidate {url}: {e}")

    logger.info(f"Found {len(playlists)} playlist(s) among {len(seen)} candidate(s)")
    return playlists
