"""
Segment downloader for HLSKit.

Downloads every segment of a media playlist with bounded concurrency and
per-segment retries, then hands the segment files, in playlist order, to a
merge backend. Segment files live in a scratch directory that is removed on
every exit path.
"""

import logging
import os
import shutil
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional

import requests

from .exceptions import (
    FetchError,
    HLSError,
    OperationCancelled,
    PlaylistError,
    SegmentFailure,
    TransientFetchError,
)
from .http import create_session, download_to_file
from .merger import Merger, get_merger, remove_partial_output
from .models import (
    DownloadPhase,
    DownloadProgress,
    DownloadResult,
    DownloadSettings,
    Playlist,
    Segment,
)
from .progress import ProgressSink, publish_safely
from .urls import segment_extension
from .utils import CancellationToken, output_filename

logger = logging.getLogger(__name__)

# How long the admission loop waits for a slot before re-checking cancellation.
_ADMISSION_POLL = 0.1


class SegmentAccumulator:
    """
    Lock-guarded record of finished segments.

    Segment tasks finish in any order; the accumulator keeps (index, path)
    pairs and the success counter together under one lock and hands back the
    paths sorted by playlist index.
    """

    def __init__(self, total: int):
        self.total = total
        self._lock = threading.Lock()
        self._paths: Dict[int, str] = {}
        self._skipped: List[int] = []

    def add(self, index: int, path: str, on_progress: Optional[Callable[[int], None]] = None) -> int:
        with self._lock:
            self._paths[index] = path
            count = len(self._paths)
            if on_progress is not None:
                # Called under the lock so snapshots are published in count order.
                on_progress(count)
            return count

    def skip(self, index: int) -> None:
        with self._lock:
            self._skipped.append(index)

    @property
    def downloaded(self) -> int:
        with self._lock:
            return len(self._paths)

    @property
    def skipped(self) -> List[int]:
        with self._lock:
            return sorted(self._skipped)

    def ordered_paths(self) -> List[str]:
        with self._lock:
            return [self._paths[index] for index in sorted(self._paths)]


def remove_directory(path: str) -> None:
    """Remove a scratch directory tree, logging failures."""
    if not os.path.isdir(path):
        return
    logger.debug(f"Cleaning up temporary directory: {path}")
    try:
        shutil.rmtree(path)
    except OSError as e:
        logger.error(f"Failed to delete temporary directory {path}: {e}")


def validate_media_playlist(playlist: Playlist) -> None:
    """
    Raises:
        PlaylistError: For master playlists and playlists without segments
    """
    if playlist is None:
        raise PlaylistError("Playlist is required")
    if playlist.is_master:
        raise PlaylistError("Master playlist given; select a quality variant and load its media playlist first")
    if not playlist.segments:
        raise PlaylistError("Playlist contains no segments")


class SegmentDownloader:
    """
    Concurrent HLS segment downloader.

    Segments are fetched by a thread pool behind an admission gate of
    max_concurrency slots. Transient failures are retried with linear
    backoff (retry_base_delay * attempt); a segment that exhausts its retries
    aborts the whole job.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        settings: Optional[DownloadSettings] = None,
        merger: Optional[Merger] = None,
        progress: Optional[ProgressSink] = None,
    ):
        """
        Initialize segment downloader.

        Args:
            session: requests session to use (created from settings if omitted)
            settings: Download settings (concurrency, retries, timeouts)
            merger: Merge backend (defaults to settings.merger)
            progress: Optional progress sink receiving DownloadProgress snapshots
        """
        self.settings = settings or DownloadSettings()
        self.session = session or create_session(self.settings)
        self.merger = merger or get_merger(self.settings.merger, ffmpeg_path=self.settings.ffmpeg_path)
        self.progress = progress

    def _publish(self, total: int, downloaded: int, phase: DownloadPhase) -> None:
        publish_safely(self.progress, DownloadProgress(total, downloaded, phase))

    def _admit(self, gate: threading.Semaphore, token: CancellationToken) -> None:
        while not gate.acquire(timeout=_ADMISSION_POLL):
            token.raise_if_cancelled()
        if token.is_cancelled:
            gate.release()
            token.raise_if_cancelled()

    def _fetch_segment(
        self,
        index: int,
        segment: Segment,
        scratch_dir: str,
        gate: threading.Semaphore,
        abort: CancellationToken,
        accumulator: SegmentAccumulator,
        max_retries: int,
        retry_base_delay: float,
        on_progress: Optional[Callable[[int], None]],
    ) -> Optional[str]:
        try:
            if not segment.url:
                logger.warning(f"Skipping segment {index} due to invalid/unresolved URL")
                accumulator.skip(index)
                return None

            path = os.path.join(scratch_dir, f"segment_{index:05d}{segment_extension(segment.url)}")
            attempt = 0
            while True:
                abort.raise_if_cancelled()
                try:
                    download_to_file(
                        self.session,
                        segment.url,
                        path,
                        timeout=self.settings.segment_timeout,
                        verify_ssl=self.settings.verify_ssl,
                        token=abort,
                    )
                    break
                except TransientFetchError as e:
                    attempt += 1
                    if attempt > max_retries:
                        logger.error(f"Failed to download segment {index} after {attempt} attempts: {e}")
                        raise SegmentFailure(index, segment.url, attempt) from e
                    delay = retry_base_delay * attempt
                    logger.warning(
                        f"Retrying segment {index} in {delay:.1f}s (retry {attempt}/{max_retries}): {e}"
                    )
                    abort.sleep(delay)
                except FetchError as e:
                    logger.error(f"Segment {index} failed permanently: {e}")
                    raise SegmentFailure(index, segment.url, attempt + 1) from e

            accumulator.add(index, path, on_progress)
            logger.debug(f"Downloaded segment {index} to {path}")
            return path
        except OperationCancelled:
            logger.debug(f"Cancellation observed in segment {index}")
            raise
        except Exception:
            # Stop the sibling tasks at their next checkpoint.
            abort.cancel()
            raise
        finally:
            gate.release()

    def _run(
        self,
        playlist: Playlist,
        scratch_dir: str,
        token: CancellationToken,
        start_index: int,
        max_concurrency: int,
        max_retries: int,
        retry_base_delay: float,
        on_progress: Optional[Callable[[int], None]],
    ) -> SegmentAccumulator:
        validate_media_playlist(playlist)
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")

        os.makedirs(scratch_dir, exist_ok=True)
        accumulator = SegmentAccumulator(len(playlist.segments))
        abort = token.child()
        gate = threading.BoundedSemaphore(max_concurrency)
        futures = []

        logger.info(
            f"Downloading {len(playlist.segments)} segments "
            f"(concurrency={max_concurrency}, retries={max_retries})"
        )

        with ThreadPoolExecutor(max_workers=max_concurrency, thread_name_prefix="hlskit-segment") as executor:
            try:
                for offset, segment in enumerate(playlist.segments):
                    self._admit(gate, abort)
                    try:
                        futures.append(executor.submit(
                            self._fetch_segment,
                            start_index + offset,
                            segment,
                            scratch_dir,
                            gate,
                            abort,
                            accumulator,
                            max_retries,
                            retry_base_delay,
                            on_progress,
                        ))
                    except RuntimeError:
                        gate.release()
                        raise
            except OperationCancelled:
                logger.debug("Stopped admitting segments")

        # Executor exit waited for every in-flight task.
        if token.is_cancelled:
            raise OperationCancelled("Download cancelled")

        failures = []
        for future in futures:
            error = future.exception()
            if error is not None and not isinstance(error, OperationCancelled):
                failures.append(error)
        if failures:
            segment_failures = [e for e in failures if isinstance(e, SegmentFailure)]
            if segment_failures:
                raise min(segment_failures, key=lambda e: e.index)
            raise failures[0]

        if abort.is_cancelled:
            raise OperationCancelled("Download aborted")

        if accumulator.skipped:
            logger.warning(f"Skipped {len(accumulator.skipped)} segment(s) with unresolved URLs")
        return accumulator

    def fetch_segments(
        self,
        playlist: Playlist,
        scratch_dir: str,
        token: Optional[CancellationToken] = None,
        start_index: int = 0,
        max_concurrency: Optional[int] = None,
        max_retries: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
        on_progress: Optional[Callable[[int], None]] = None,
    ) -> List[str]:
        """
        Download the segments of a media playlist into scratch_dir.

        Nothing is merged or cleaned up here; callers that accumulate segments
        across several calls (live recording) pass a running start_index so
        file names keep increasing.

        Args:
            playlist: Media playlist
            scratch_dir: Directory for segment files (created if missing)
            token: Optional cancellation token
            start_index: Index of the first segment, used for file naming and ordering
            max_concurrency: Overrides settings.max_concurrency
            max_retries: Overrides settings.max_retries
            retry_base_delay: Base backoff in seconds, overrides settings
            on_progress: Called with the number of segments finished so far

        Returns:
            Local segment file paths in playlist order

        Raises:
            PlaylistError: If playlist is a master playlist or has no segments
            SegmentFailure: If a segment exhausted its retries
            OperationCancelled: If the token was cancelled
        """
        accumulator = self._run(
            playlist,
            scratch_dir,
            token or CancellationToken(),
            start_index,
            max_concurrency if max_concurrency is not None else self.settings.max_concurrency,
            max_retries if max_retries is not None else self.settings.max_retries,
            retry_base_delay if retry_base_delay is not None else self.settings.retry_base_delay,
            on_progress,
        )
        return accumulator.ordered_paths()

    def download(
        self,
        playlist: Playlist,
        destination_dir: str,
        output_name: Optional[str] = None,
        max_concurrency: Optional[int] = None,
        max_retries: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
        token: Optional[CancellationToken] = None,
    ) -> DownloadResult:
        """
        Download a media playlist and merge it into a single file.

        Every call ends with exactly one terminal progress snapshot
        (Completed, Cancelled or Failed) and removes its scratch directory.

        Args:
            playlist: Media playlist to download
            destination_dir: Directory for the output file
            output_name: Output file name (default video_<timestamp> + merger extension)
            max_concurrency: Overrides settings.max_concurrency
            max_retries: Overrides settings.max_retries
            retry_base_delay: Base backoff in seconds, overrides settings
            token: Optional cancellation token

        Returns:
            DownloadResult with the merged output path

        Raises:
            PlaylistError: If playlist is a master playlist or has no segments
            SegmentFailure: If a segment exhausted its retries
            MergeFailure: If the merge backend failed
            OperationCancelled: If the token was cancelled

        Example:
            >>> downloader = SegmentDownloader()
            >>> result = downloader.download(playlist, "downloads", "episode1")
            >>> print(result.output_path)
            downloads/episode1.mp4
        """
        token = token or CancellationToken()
        total = len(playlist.segments) if playlist is not None else 0
        base_url = playlist.base_url if playlist is not None else None

        output_path = os.path.join(destination_dir, output_filename(output_name, self.merger.default_extension))
        scratch_dir = os.path.join(destination_dir, f"temp_{uuid.uuid4().hex}")

        logger.info(f"Starting download for playlist based at {base_url}. Output: {output_path}")
        self._publish(total, 0, DownloadPhase.INITIALIZING)
        downloaded = 0
        merge_started = False

        def on_progress(count: int) -> None:
            nonlocal downloaded
            downloaded = count
            self._publish(total, count, DownloadPhase.DOWNLOADING)

        try:
            validate_media_playlist(playlist)
            os.makedirs(destination_dir, exist_ok=True)
            os.makedirs(scratch_dir)
            self._publish(total, 0, DownloadPhase.DOWNLOADING)

            accumulator = self._run(
                playlist,
                scratch_dir,
                token,
                0,
                max_concurrency if max_concurrency is not None else self.settings.max_concurrency,
                max_retries if max_retries is not None else self.settings.max_retries,
                retry_base_delay if retry_base_delay is not None else self.settings.retry_base_delay,
                on_progress,
            )
            paths = accumulator.ordered_paths()
            if not paths:
                raise HLSError("No segments were downloaded")
            token.raise_if_cancelled()

            self._publish(total, downloaded, DownloadPhase.MERGING)
            merge_started = True
            self.merger.merge(paths, output_path)

            logger.info(f"Download and merge completed successfully: {output_path}")
            self._publish(total, downloaded, DownloadPhase.COMPLETED)
            return DownloadResult(
                output_path=output_path,
                segment_count=len(paths),
                skipped_indices=tuple(accumulator.skipped),
            )
        except OperationCancelled:
            logger.warning("Download cancelled")
            self._publish(total, downloaded, DownloadPhase.CANCELLED)
            raise
        except Exception as e:
            logger.error(f"Download failed for playlist {base_url}: {e}")
            self._publish(total, downloaded, DownloadPhase.FAILED)
            # Only a file this job started writing is removed.
            if merge_started:
                remove_partial_output(output_path)
            raise
        finally:
            remove_directory(scratch_dir)
