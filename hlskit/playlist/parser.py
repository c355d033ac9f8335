"""
M3U8 playlist parser for HLSKit.

Turns raw playlist text into a Playlist record. Master playlists yield their
quality variants, media playlists yield their segments together with the
encryption key reference that applies to each of them.
"""

import logging
from typing import Dict, List, Optional

from ..exceptions import FormatError
from ..models import Playlist, QualityVariant, Segment
from ..urls import resolve

logger = logging.getLogger(__name__)

TAG_HEADER = '#EXTM3U'
TAG_STREAM_INF = '#EXT-X-STREAM-INF:'
TAG_EXTINF = '#EXTINF:'
TAG_KEY = '#EXT-X-KEY:'
TAG_MEDIA_SEQUENCE = '#EXT-X-MEDIA-SEQUENCE:'
TAG_TARGET_DURATION = '#EXT-X-TARGETDURATION:'
TAG_VERSION = '#EXT-X-VERSION:'
TAG_ENDLIST = '#EXT-X-ENDLIST'


def is_hls_playlist(content: str) -> bool:
    """
    Check if content is an HLS playlist (M3U8 format).

    Args:
        content: Content to check

    Returns:
        True if content is HLS playlist, False otherwise
    """
    return content.lstrip('\ufeff').strip().startswith(TAG_HEADER)


def parse_attributes(line: str) -> Dict[str, str]:
    """
    Parse the attribute list of a tag line.

    Reads KEY=VALUE pairs after the first ':'. Quoted values may contain
    commas and '=' and are returned without their quotes. An unterminated
    quote ends parsing for the line; pairs read so far are kept.

    Args:
        line: Full tag line, e.g. '#EXT-X-KEY:METHOD=AES-128,URI="k.key"'

    Returns:
        Attribute dictionary in source order

    Example:
        >>> parse_attributes('#EXT-X-STREAM-INF:BANDWIDTH=1280000,CODECS="avc1.4d401f,mp4a.40.2"')
        {'BANDWIDTH': '1280000', 'CODECS': 'avc1.4d401f,mp4a.40.2'}
    """
    attributes: Dict[str, str] = {}
    _, sep, content = line.partition(':')
    if not sep:
        return attributes

    pos = 0
    length = len(content)
    while pos < length:
        equals = content.find('=', pos)
        if equals == -1:
            break

        key = content[pos:equals].strip()
        pos = equals + 1

        if pos < length and content[pos] == '"':
            end_quote = content.find('"', pos + 1)
            if end_quote == -1:
                logger.warning(f"Unterminated quoted value for {key!r}, ignoring rest of line: {line}")
                break
            value = content[pos + 1:end_quote]
            pos = end_quote + 1
            # skip anything between the closing quote and the next comma
            comma = content.find(',', pos)
            pos = length if comma == -1 else comma
        else:
            comma = content.find(',', pos)
            if comma == -1:
                value = content[pos:].strip()
                pos = length
            else:
                value = content[pos:comma].strip()
                pos = comma

        if key:
            attributes[key] = value

        if pos < length and content[pos] == ',':
            pos += 1

    return attributes


def _to_int(value: Optional[str], default: int = 0) -> int:
    try:
        return int(value.strip())
    except (AttributeError, ValueError):
        return default


def _to_float(value: Optional[str], default: float = 0.0) -> float:
    try:
        return float(value.strip())
    except (AttributeError, ValueError):
        return default


def _tag_value(line: str) -> str:
    return line.split(':', 1)[1].strip()


class M3U8Parser:
    """
    Parser for HLS playlists.

    Stateless; a single instance can be shared between threads.
    """

    def parse(self, content: str, base_url: str) -> Playlist:
        """
        Parse an M3U8 playlist from its text content.

        Args:
            content: Raw playlist text
            base_url: Location used to resolve relative URLs (playlist URL or its directory)

        Returns:
            Parsed Playlist

        Raises:
            FormatError: If the first non-empty line is not the #EXTM3U header
        """
        lines = [line.strip() for line in content.lstrip('\ufeff').split('\n')]
        lines = [line for line in lines if line]

        if not lines or not lines[0].startswith(TAG_HEADER):
            raise FormatError("Invalid M3U8 playlist: Missing #EXTM3U header")

        version = None
        for line in lines:
            if line.startswith(TAG_VERSION):
                version = _to_int(_tag_value(line), default=None)
                break

        if any(line.startswith(TAG_STREAM_INF) for line in lines):
            playlist = self._parse_master(lines, base_url, version)
            logger.debug(f"Parsed master playlist with {len(playlist.qualities)} variants from {base_url}")
        else:
            playlist = self._parse_media(lines, base_url, version)
            logger.debug(
                f"Parsed media playlist with {len(playlist.segments)} segments "
                f"(live={playlist.is_live}) from {base_url}"
            )
        return playlist

    def _parse_master(self, lines: List[str], base_url: str, version: Optional[int]) -> Playlist:
        qualities: List[QualityVariant] = []

        for i, line in enumerate(lines):
            if not line.startswith(TAG_STREAM_INF):
                continue

            if i + 1 >= len(lines) or lines[i + 1].startswith('#'):
                logger.warning(f"Stream variant without URL line, skipping: {line}")
                continue

            attributes = parse_attributes(line)
            qualities.append(QualityVariant(
                bandwidth=max(_to_int(attributes.get('BANDWIDTH')), 0),
                url=resolve(lines[i + 1], base_url),
                resolution=attributes.get('RESOLUTION') or None,
                codecs=attributes.get('CODECS') or None,
            ))

        return Playlist(
            is_master=True,
            base_url=base_url,
            qualities=tuple(qualities),
            version=version,
        )

    def _parse_media(self, lines: List[str], base_url: str, version: Optional[int]) -> Playlist:
        segments: List[Segment] = []
        encryption_keys: Dict[str, bytes] = {}

        segment_duration = 0.0
        sequence_number = 0
        target_duration = 0.0
        key_url: Optional[str] = None
        key_iv: Optional[str] = None

        for line in lines:
            if line.startswith(TAG_MEDIA_SEQUENCE):
                sequence_number = _to_int(_tag_value(line))
                break

        is_live = TAG_ENDLIST not in lines

        for line in lines:
            if line.startswith(TAG_TARGET_DURATION):
                target_duration = _to_float(_tag_value(line))

            elif line.startswith(TAG_EXTINF):
                segment_duration = max(_to_float(_tag_value(line).split(',', 1)[0]), 0.0)

            elif line.startswith(TAG_KEY):
                attributes = parse_attributes(line)
                if attributes.get('METHOD', '').upper() == 'NONE':
                    key_url = None
                    key_iv = None
                    continue

                uri = attributes.get('URI')
                if uri:
                    key_url = resolve(uri, base_url)
                    encryption_keys.setdefault(key_url, b'')

                iv = attributes.get('IV')
                if iv is not None:
                    if iv[:2].lower() == '0x':
                        iv = iv[2:]
                    key_iv = iv.lower()
                else:
                    key_iv = None

            elif not line.startswith('#'):
                segments.append(Segment(
                    url=resolve(line, base_url),
                    duration=segment_duration,
                    sequence_number=sequence_number,
                    encryption_key_url=key_url,
                    encryption_iv=key_iv,
                ))
                sequence_number += 1

        return Playlist(
            is_master=False,
            base_url=base_url,
            is_live=is_live,
            target_duration=target_duration,
            segments=tuple(segments),
            encryption_keys=encryption_keys,
            version=version,
        )


_default_parser = M3U8Parser()


def parse_playlist(content: str, base_url: str) -> Playlist:
    """Parse playlist text with a shared M3U8Parser."""
    return _default_parser.parse(content, base_url)
