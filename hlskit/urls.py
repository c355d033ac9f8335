"""
URL helpers for HLSKit.

Resolves playlist references (variant playlists, segments, keys) against the
location of the playlist that mentions them. Bases may be HTTP(S) URLs or
local filesystem paths.
"""

import logging
import os
import posixpath
import re
from urllib.parse import urljoin, urlsplit, urlunsplit

from .exceptions import InvalidReference

logger = logging.getLogger(__name__)

_SCHEME_RE = re.compile(r'^[A-Za-z][A-Za-z0-9+.\-]*://')
_OPAQUE_SCHEMES = ('data:', 'skd:')

SEGMENT_EXTENSIONS = ('.ts', '.m4s', '.mp4', '.m4a', '.m4v', '.aac', '.mp3', '.vtt', '.webvtt')


def is_absolute(reference: str) -> bool:
    """Return True for references carrying their own scheme (or //host)."""
    if reference.startswith('//'):
        return True
    return bool(_SCHEME_RE.match(reference)) or reference.lower().startswith(_OPAQUE_SCHEMES)


def _is_url(base: str) -> bool:
    return bool(_SCHEME_RE.match(base))


def _looks_like_file(component: str) -> bool:
    return '.' in component.strip('.')


def _url_directory(url: str, is_file: bool) -> str:
    scheme, netloc, path, _query, _fragment = urlsplit(url)
    if not path:
        path = '/'
    elif not path.endswith('/'):
        head, _, last = path.rpartition('/')
        if is_file or _looks_like_file(last):
            path = head + '/'
        else:
            path = path + '/'
    return urlunsplit((scheme, netloc, path, '', ''))


def _path_directory(path: str, is_file: bool) -> str:
    if path.endswith(('/', os.sep)):
        return path
    last = os.path.basename(path)
    if is_file or _looks_like_file(last):
        path = os.path.dirname(path)
    if not path:
        return '.' + os.sep
    return path + os.sep


def base_directory(location: str, is_file: bool = False) -> str:
    """
    Get the directory that relative references in a playlist resolve against.

    Args:
        location: Playlist URL, directory URL or filesystem path
        is_file: Treat the last path component as a file even without an extension

    Returns:
        Directory form of location with a trailing separator

    Example:
        >>> base_directory("https://cdn.example.com/hls/master.m3u8?token=1")
        'https://cdn.example.com/hls/'
    """
    if _is_url(location):
        try:
            return _url_directory(location, is_file)
        except ValueError:
            # urlsplit rejects things like broken IPv6 hosts
            head, _, last = location.rstrip('/').rpartition('/')
            if head.endswith('/') or not (is_file or _looks_like_file(last)):
                return location.rstrip('/') + '/'
            return head + '/'
    return _path_directory(location, is_file)


def resolve(reference: str, base: str) -> str:
    """
    Resolve a playlist reference to an absolute URL or path.

    Absolute references are returned unchanged, scheme-relative ones get the
    scheme of the base. Everything else is joined onto the base directory with
    '.' and '..' segments normalized.

    Args:
        reference: URL or path as written in the playlist
        base: Playlist location (URL, directory URL or filesystem path)

    Returns:
        Absolute URL or normalized path

    Raises:
        InvalidReference: If reference is empty

    Example:
        >>> resolve("../seg/1.ts", "http://x.com/a/b/index.m3u8")
        'http://x.com/a/seg/1.ts'
    """
    reference = (reference or '').strip()
    if not reference:
        raise InvalidReference("Cannot resolve an empty reference")

    if reference.startswith('//'):
        scheme = urlsplit(base).scheme if _is_url(base or '') else ''
        return f"{scheme or 'https'}:{reference}"

    if is_absolute(reference):
        return reference

    if not base:
        return reference

    directory = base_directory(base)
    if _is_url(directory):
        try:
            return urljoin(directory, reference)
        except ValueError as e:
            logger.debug(f"Falling back to plain concatenation for {base!r}: {e}")
            return directory.rstrip('/') + '/' + reference.lstrip('/')

    return os.path.normpath(os.path.join(directory, reference))


def is_m3u8_url(url: str) -> bool:
    """
    Check if a URL points to an M3U8 playlist.

    Args:
        url: URL to check

    Returns:
        True if URL appears to be an M3U8 playlist, False otherwise
    """
    return url.lower().endswith('.m3u8') or '.m3u8?' in url.lower()


def segment_extension(url: str, default: str = '.ts') -> str:
    """File extension to use for a downloaded copy of a segment URL."""
    try:
        path = urlsplit(url).path if _is_url(url) else url
    except ValueError:
        return default
    ext = posixpath.splitext(path)[1].lower()
    return ext if ext in SEGMENT_EXTENSIONS else default
