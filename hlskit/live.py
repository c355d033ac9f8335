"""
Live stream recording for HLSKit.

Live media playlists (no #EXT-X-ENDLIST) are re-fetched on an interval. Each
refresh shows a sliding window of segments that usually overlaps the previous
one; only segments with a sequence number above the highest one already seen
are downloaded. All segment files accumulate in one scratch directory and are
merged once when recording stops.
"""

import logging
import os
import threading
import time
import uuid
from typing import List, Optional

import requests

from .downloader import SegmentDownloader, remove_directory
from .exceptions import HLSError, OperationCancelled, PlaylistError, TransientFetchError
from .merger import remove_partial_output
from .models import (
    DownloadPhase,
    DownloadProgress,
    DownloadResult,
    DownloadSettings,
    Playlist,
    RecorderState,
)
from .playlist.loader import load_playlist
from .progress import ProgressSink, publish_safely
from .utils import CancellationToken, format_duration, output_filename

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0
_STOP_POLL = 0.1


class LiveStreamRecorder:
    """
    Records a live HLS stream until a duration cap, a stop request,
    cancellation, or the end of the broadcast.

    States: Idle -> Recording -> Stopped | Cancelled | Failed.
    """

    def __init__(
        self,
        downloader: Optional[SegmentDownloader] = None,
        settings: Optional[DownloadSettings] = None,
        session: Optional[requests.Session] = None,
        progress: Optional[ProgressSink] = None,
    ):
        """
        Initialize live stream recorder.

        Args:
            downloader: Segment downloader used for each batch of new segments
            settings: Download settings (defaults to the downloader's)
            session: requests session for playlist refreshes (defaults to the downloader's)
            progress: Optional progress sink
        """
        if downloader is None:
            downloader = SegmentDownloader(session=session, settings=settings)
        self.downloader = downloader
        self.settings = settings or downloader.settings
        self.session = session or downloader.session
        self.progress = progress
        self.highest_sequence_seen = -1
        self._state = RecorderState.IDLE
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()

    @property
    def state(self) -> RecorderState:
        with self._state_lock:
            return self._state

    def _set_state(self, state: RecorderState) -> None:
        with self._state_lock:
            logger.debug(f"Recorder state {self._state.value} -> {state.value}")
            self._state = state

    def stop(self) -> None:
        """Request a graceful stop; segments recorded so far are merged."""
        logger.info("Stop requested for live recording")
        self._stop_event.set()

    def _publish(self, total: int, downloaded: int, phase: DownloadPhase) -> None:
        publish_safely(self.progress, DownloadProgress(total, downloaded, phase))

    def _duration_reached(self, started: float, max_duration_seconds: float) -> bool:
        return max_duration_seconds > 0 and time.monotonic() - started >= max_duration_seconds

    def _wait(self, seconds: float, token: CancellationToken) -> None:
        deadline = time.monotonic() + max(seconds, 0.0)
        while not self._stop_event.is_set():
            token.raise_if_cancelled()
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return
            self._stop_event.wait(min(remaining, _STOP_POLL))

    def _refresh(self, url: str, token: CancellationToken) -> Playlist:
        attempt = 0
        while True:
            token.raise_if_cancelled()
            try:
                playlist = load_playlist(url, session=self.session, settings=self.settings)
                break
            except TransientFetchError as e:
                attempt += 1
                if attempt > self.settings.max_retries:
                    logger.error(f"Giving up on playlist refresh after {attempt} attempts: {e}")
                    raise
                delay = self.settings.retry_base_delay * attempt
                logger.warning(f"Playlist refresh failed, retrying in {delay:.1f}s: {e}")
                token.sleep(delay)

        if playlist.is_master:
            raise PlaylistError(f"Expected a media playlist on refresh, got a master playlist: {url}")
        return playlist

    def record(
        self,
        initial_playlist: Playlist,
        destination_dir: str,
        output_name: Optional[str] = None,
        max_duration_seconds: float = 0,
        poll_interval: Optional[float] = None,
        token: Optional[CancellationToken] = None,
        playlist_url: Optional[str] = None,
        capture_initial_window: bool = False,
    ) -> DownloadResult:
        """
        Record a live stream into a single output file.

        Args:
            initial_playlist: Most recent snapshot of the live media playlist
            destination_dir: Directory for the output file
            output_name: Output file name (default video_<timestamp> + merger extension)
            max_duration_seconds: Stop after this many seconds (0 = no cap)
            poll_interval: Seconds between refreshes (default: settings, then target duration)
            token: Optional cancellation token; cancelling discards the recording
            playlist_url: URL to refresh (defaults to initial_playlist.source_url)
            capture_initial_window: Also download the segments already listed in
                initial_playlist. By default recording starts after its last segment.

        Returns:
            DownloadResult for the merged recording

        Raises:
            PlaylistError: If the playlist is a master playlist or cannot be refreshed
            FetchError: If refreshing the playlist failed irrecoverably
            SegmentFailure: If a segment exhausted its retries
            MergeFailure: If the merge backend failed
            OperationCancelled: If the token was cancelled
            HLSError: If nothing was recorded or the recorder is already recording
        """
        with self._state_lock:
            # The sink belongs to the recording in progress; nothing is published for this call.
            if self._state == RecorderState.RECORDING:
                raise HLSError("Recorder is already recording")
            logger.debug(f"Recorder state {self._state.value} -> {RecorderState.RECORDING.value}")
            self._state = RecorderState.RECORDING

        token = token or CancellationToken()
        self._stop_event.clear()
        merger = self.downloader.merger
        output_path = os.path.join(destination_dir, output_filename(output_name, merger.default_extension))
        scratch_dir = os.path.join(destination_dir, f"temp_{uuid.uuid4().hex}")

        recorded: List[str] = []
        skipped = 0
        merge_started = False
        self._publish(0, 0, DownloadPhase.INITIALIZING)

        try:
            if initial_playlist.is_master:
                raise PlaylistError("Master playlist given; select a quality variant first")
            url = playlist_url or initial_playlist.source_url
            if not url:
                raise PlaylistError("Live recording needs the playlist URL to refresh it")

            interval = poll_interval
            if interval is None:
                interval = self.settings.poll_interval
            if interval is None:
                interval = initial_playlist.target_duration or DEFAULT_POLL_INTERVAL

            segments = initial_playlist.segments
            if capture_initial_window or not segments:
                self.highest_sequence_seen = -1
            else:
                self.highest_sequence_seen = segments[-1].sequence_number

            os.makedirs(destination_dir, exist_ok=True)
            os.makedirs(scratch_dir)
            current = initial_playlist
            started = time.monotonic()
            logger.info(
                f"Recording live stream {url} from sequence {self.highest_sequence_seen + 1} "
                f"(poll every {interval:.1f}s, cap {max_duration_seconds}s)"
            )

            while True:
                new_segments = [s for s in current.segments if s.sequence_number > self.highest_sequence_seen]
                if new_segments:
                    base_count = len(recorded)
                    batch_total = base_count + len(new_segments)

                    def on_progress(count: int) -> None:
                        self._publish(batch_total, base_count + count, DownloadPhase.DOWNLOADING)

                    paths = self.downloader.fetch_segments(
                        current.with_segments(new_segments),
                        scratch_dir,
                        token=token,
                        start_index=base_count + skipped,
                        on_progress=on_progress,
                    )
                    skipped += len(new_segments) - len(paths)
                    recorded.extend(paths)
                    self.highest_sequence_seen = max(s.sequence_number for s in new_segments)
                    logger.info(
                        f"Recorded {len(paths)} new segment(s), {len(recorded)} total, "
                        f"last sequence {self.highest_sequence_seen}"
                    )

                if not current.is_live:
                    logger.info("Playlist has #EXT-X-ENDLIST, broadcast ended")
                    break
                if self._stop_event.is_set() or self._duration_reached(started, max_duration_seconds):
                    break

                wait = interval
                if max_duration_seconds > 0:
                    wait = min(wait, max(max_duration_seconds - (time.monotonic() - started), 0.0))
                self._wait(wait, token)

                if self._stop_event.is_set() or self._duration_reached(started, max_duration_seconds):
                    break
                current = self._refresh(url, token)

            token.raise_if_cancelled()
            if not recorded:
                raise HLSError("No segments recorded")

            logger.info(
                f"Stopping live recording after {format_duration(time.monotonic() - started)} "
                f"with {len(recorded)} segments"
            )
            self._publish(len(recorded), len(recorded), DownloadPhase.MERGING)
            merge_started = True
            merger.merge(recorded, output_path)

            self._set_state(RecorderState.STOPPED)
            self._publish(len(recorded), len(recorded), DownloadPhase.COMPLETED)
            return DownloadResult(
                output_path=output_path,
                segment_count=len(recorded),
                is_live=True,
            )
        except OperationCancelled:
            logger.warning("Live recording cancelled")
            self._set_state(RecorderState.CANCELLED)
            self._publish(len(recorded), len(recorded), DownloadPhase.CANCELLED)
            raise
        except Exception as e:
            logger.error(f"Live recording failed: {e}")
            self._set_state(RecorderState.FAILED)
            self._publish(len(recorded), len(recorded), DownloadPhase.FAILED)
            if merge_started:
                remove_partial_output(output_path)
            raise
        finally:
            remove_directory(scratch_dir)
