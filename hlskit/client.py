"""
High level client for HLSKit.

Ties the pieces together: load a playlist (or pick one from discovered
candidates), resolve a master playlist to a media playlist, then either
download it (VOD) or record it (live).
"""

import logging
from typing import Iterable, List, Optional, Union

import requests

from .downloader import SegmentDownloader
from .exceptions import PlaylistError
from .http import create_session
from .live import LiveStreamRecorder
from .merger import Merger
from .models import DownloadConfig, DownloadResult, DownloadSettings, Playlist
from .playlist import analyze_urls, load_playlist, select_variant
from .progress import ProgressSink
from .utils import CancellationToken

logger = logging.getLogger(__name__)


class HLSClient:
    """
    Client for downloading HLS content.

    Example:
        >>> client = HLSClient()
        >>> result = client.download("https://example.com/master.m3u8", "downloads", "show")
        >>> print(result.output_path)
        downloads/show.mp4
    """

    def __init__(
        self,
        settings: Optional[DownloadSettings] = None,
        session: Optional[requests.Session] = None,
        merger: Optional[Merger] = None,
    ):
        """
        Initialize HLS client.

        Args:
            settings: Download settings shared by every job of this client
            session: Optional requests session (created from settings if omitted)
            merger: Optional merge backend (defaults to settings.merger)
        """
        self.settings = settings or DownloadSettings()
        self.session = session
        self.merger = merger
        if self.session is None:
            self.session = create_session(self.settings)

    def load(self, url: str) -> Playlist:
        """Fetch and parse a single playlist."""
        return load_playlist(url, session=self.session, settings=self.settings)

    def analyze(self, urls: Iterable[str]) -> List[Playlist]:
        """Load every discovered candidate URL, dropping the ones that fail."""
        return analyze_urls(urls, session=self.session, settings=self.settings)

    def resolve_media_playlist(self, playlist: Playlist, quality: Union[str, int] = "best") -> Playlist:
        """
        Turn a master playlist into the media playlist of the selected variant.

        Media playlists are returned unchanged.
        """
        if not playlist.is_master:
            return playlist
        variant = select_variant(playlist.qualities, quality)
        logger.info(f"Fetching variant playlist from: {variant.url}")
        media = self.load(variant.url)
        if media.is_master:
            raise PlaylistError(f"Variant URL points to another master playlist: {variant.url}")
        return media

    def download(
        self,
        source: Union[str, Playlist],
        output_dir: str,
        output_name: Optional[str] = None,
        quality: Union[str, int] = "best",
        max_duration_seconds: float = 0,
        token: Optional[CancellationToken] = None,
        progress: Optional[ProgressSink] = None,
    ) -> DownloadResult:
        """
        Download a VOD playlist or record a live one.

        Args:
            source: Playlist URL or an already parsed Playlist
            output_dir: Directory for the output file
            output_name: Output file name (default video_<timestamp>)
            quality: Variant preference when source is a master playlist
            max_duration_seconds: Live recording cap (0 = until the stream ends or is stopped)
            token: Optional cancellation token
            progress: Optional progress sink

        Returns:
            DownloadResult of the finished job
        """
        playlist = self.load(source) if isinstance(source, str) else source
        media = self.resolve_media_playlist(playlist, quality)
        downloader = SegmentDownloader(
            session=self.session,
            settings=self.settings,
            merger=self.merger,
            progress=progress,
        )

        if media.is_live:
            logger.info("Live playlist detected, recording")
            recorder = LiveStreamRecorder(downloader, progress=progress)
            return recorder.record(
                media,
                output_dir,
                output_name=output_name,
                max_duration_seconds=max_duration_seconds,
                token=token,
            )

        return downloader.download(media, output_dir, output_name=output_name, token=token)

    def download_from_config(
        self,
        config: DownloadConfig,
        token: Optional[CancellationToken] = None,
        progress: Optional[ProgressSink] = None,
    ) -> DownloadResult:
        """
        Download using a DownloadConfig object.

        The config's settings replace this client's settings for the job.
        """
        client = self if config.settings is self.settings else HLSClient(
            settings=config.settings, session=self.session, merger=self.merger
        )
        return client.download(
            config.url,
            config.output_dir,
            output_name=config.output_name,
            quality=config.quality,
            max_duration_seconds=config.max_duration_seconds,
            token=token,
            progress=progress,
        )
