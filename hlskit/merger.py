"""
Segment merging for HLSKit.

Joins downloaded segment files, in playback order, into a single output file.
Two backends are provided: FFmpegMerger uses ffmpeg's concat demuxer with
stream copy, ConcatMerger concatenates bytes (valid for MPEG-TS segments).
"""

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from typing import Any, List, Sequence

from .exceptions import MergeFailure

logger = logging.getLogger(__name__)


def remove_partial_output(output_path: str) -> None:
    """Delete a possibly corrupted output file, logging instead of raising."""
    try:
        if os.path.exists(output_path):
            os.remove(output_path)
            logger.info(f"Removed partial output: {output_path}")
    except OSError as e:
        logger.error(f"Failed to remove partial output {output_path}: {e}")


def _check_inputs(segment_paths: Sequence[str]) -> None:
    if not segment_paths:
        raise MergeFailure("No segment files to merge")
    missing = [path for path in segment_paths if not os.path.exists(path)]
    if missing:
        raise MergeFailure(f"{len(missing)} segment file(s) missing, first: {missing[0]}")


@dataclass
class Merger:
    """Base interface for merge backends."""
    name: str
    default_extension: str = ".mp4"

    def merge(self, segment_paths: Sequence[str], output_path: str) -> str:
        raise NotImplementedError


class ConcatMerger(Merger):
    """Byte-faithful concatenation of segment files."""

    def __init__(self, buffer_size: int = 1024 * 1024) -> None:
        super().__init__(name="concat", default_extension=".ts")
        self.buffer_size = buffer_size

    def merge(self, segment_paths: Sequence[str], output_path: str) -> str:
        _check_inputs(segment_paths)
        os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
        try:
            with open(output_path, 'wb') as outfile:
                for path in segment_paths:
                    with open(path, 'rb') as infile:
                        shutil.copyfileobj(infile, outfile, self.buffer_size)
        except OSError as e:
            remove_partial_output(output_path)
            raise MergeFailure(f"Failed to concatenate segments into {output_path}: {e}") from e

        logger.info(f"Concatenated {len(segment_paths)} segments into {output_path}")
        return output_path


def write_concat_list(list_path: str, segment_paths: Sequence[str]) -> str:
    """
    Write an ffmpeg concat demuxer list file.

    Args:
        list_path: Where to write the list
        segment_paths: Segment files in playback order

    Returns:
        list_path
    """
    lines = []
    for path in segment_paths:
        escaped = os.path.abspath(path).replace("'", "'\\''")
        lines.append(f"file '{escaped}'")
    try:
        with open(list_path, 'w', encoding='utf-8') as f:
            f.write('\n'.join(lines) + '\n')
    except OSError as e:
        raise MergeFailure(f"Failed to create segment list file {list_path}: {e}") from e
    logger.debug(f"Wrote segment list with {len(lines)} entries to {list_path}")
    return list_path


class FFmpegMerger(Merger):
    """Merges segments with `ffmpeg -f concat -c copy` (no re-encoding)."""

    def __init__(self, ffmpeg_path: str = "ffmpeg") -> None:
        super().__init__(name="ffmpeg", default_extension=".mp4")
        self.ffmpeg_path = ffmpeg_path

    def build_command(self, list_path: str, output_path: str) -> List[str]:
        return [
            self.ffmpeg_path, '-y',
            '-f', 'concat',
            '-safe', '0',
            '-i', list_path,
            '-c', 'copy',
            output_path,
            '-loglevel', 'error',
        ]

    def merge(self, segment_paths: Sequence[str], output_path: str) -> str:
        _check_inputs(segment_paths)
        os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)

        # The list lives next to the segments so it is removed with the scratch directory.
        list_path = os.path.join(os.path.dirname(os.path.abspath(segment_paths[0])), 'segments.txt')
        write_concat_list(list_path, segment_paths)

        cmd = self.build_command(list_path, output_path)
        logger.info(f"Executing FFmpeg command: {' '.join(cmd)}")

        # On Windows, prevent console window popping up
        startupinfo = None
        if os.name == 'nt':
            startupinfo = subprocess.STARTUPINFO()
            startupinfo.dwFlags |= subprocess.STARTF_USESHOWWINDOW

        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                startupinfo=startupinfo,
            )
            stdout, stderr = process.communicate()
        except FileNotFoundError as e:
            raise MergeFailure(
                f"FFmpeg executable ({self.ffmpeg_path!r}) not found. Please install FFmpeg and add it to your PATH."
            ) from e
        except OSError as e:
            remove_partial_output(output_path)
            raise MergeFailure(f"Failed to run FFmpeg: {e}") from e

        if process.returncode != 0:
            error_output = stderr.decode('utf-8', errors='ignore').strip()
            logger.error(f"FFmpeg failed with exit code {process.returncode}: {error_output}")
            remove_partial_output(output_path)
            raise MergeFailure(f"FFmpeg merging failed (exit code {process.returncode}): {error_output}")

        if stderr:
            logger.debug(f"FFmpeg error output: {stderr.decode('utf-8', errors='ignore').strip()}")
        logger.info(f"FFmpeg merged {len(segment_paths)} segments into {output_path}")
        return output_path


def get_merger(name: str = "ffmpeg", **kwargs: Any) -> Merger:
    """
    Get a merge backend by name.

    Args:
        name: "ffmpeg" or "concat"
        **kwargs: Backend options (ffmpeg_path for "ffmpeg")

    Raises:
        ValueError: For an unknown backend name
    """
    if name == "ffmpeg":
        return FFmpegMerger(ffmpeg_path=kwargs.get("ffmpeg_path", "ffmpeg"))
    if name == "concat":
        return ConcatMerger()
    raise ValueError(f"Unsupported merge backend: {name}")
