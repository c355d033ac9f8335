"""
Data models for HLSKit.

Defines the playlist records produced by the parser and the settings,
progress and result records used by the download engine.
"""

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple


@dataclass(frozen=True)
class Segment:
    """A single media segment of a media playlist."""
    url: str
    duration: float
    sequence_number: int
    encryption_key_url: Optional[str] = None
    encryption_iv: Optional[str] = None  # hex, no 0x prefix

    @property
    def is_encrypted(self) -> bool:
        return self.encryption_key_url is not None


@dataclass(frozen=True)
class QualityVariant:
    """A quality variant listed by a master playlist."""
    bandwidth: int
    url: str
    resolution: Optional[str] = None  # e.g. "1920x1080"
    codecs: Optional[str] = None

    @property
    def height(self) -> Optional[int]:
        if not self.resolution:
            return None
        parts = self.resolution.lower().split('x')
        if len(parts) == 2 and parts[1].isdigit():
            return int(parts[1])
        return None

    @property
    def display_name(self) -> str:
        """
        Human readable label such as "1080p (5.2 Mbps)" or "Audio (128 kbps)".
        """
        label = ''
        if self.resolution:
            height = self.height
            label = f"{height}p" if height is not None else self.resolution

        if self.bandwidth > 0:
            if self.bandwidth >= 1_000_000:
                rate = f"{self.bandwidth / 1_000_000:.1f} Mbps"
            else:
                rate = f"{self.bandwidth // 1000} kbps"
            return f"{label} ({rate})" if label else rate

        if label:
            return label

        codecs = (self.codecs or '').lower()
        if ('mp4a' in codecs or 'aac' in codecs) and 'avc' not in codecs and 'hvc' not in codecs:
            return "Audio"
        return f"Variant {self.bandwidth}"


@dataclass(frozen=True)
class Playlist:
    """Parsed M3U8 playlist (master or media)."""
    is_master: bool
    base_url: str
    is_live: bool = False
    target_duration: float = 0.0
    qualities: Tuple[QualityVariant, ...] = ()
    segments: Tuple[Segment, ...] = ()
    encryption_keys: Mapping[str, bytes] = field(default_factory=dict, hash=False)
    version: Optional[int] = None
    source_url: Optional[str] = None

    def __post_init__(self):
        # Collections are stored as tuples and a read-only mapping
        object.__setattr__(self, "qualities", tuple(self.qualities))
        object.__setattr__(self, "segments", tuple(self.segments))
        object.__setattr__(self, "encryption_keys", MappingProxyType(dict(self.encryption_keys)))

    @property
    def total_duration(self) -> float:
        return sum(segment.duration for segment in self.segments)

    def with_segments(self, segments) -> "Playlist":
        """Return a copy of this playlist holding only the given segments."""
        return dataclasses.replace(self, segments=tuple(segments))


class DownloadPhase(str, Enum):
    INITIALIZING = "Initializing"
    DOWNLOADING = "Downloading"
    MERGING = "Merging"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    FAILED = "Failed"


TERMINAL_PHASES = frozenset({DownloadPhase.COMPLETED, DownloadPhase.CANCELLED, DownloadPhase.FAILED})


@dataclass(frozen=True)
class DownloadProgress:
    """Progress snapshot sent to progress sinks."""
    total_segments: int
    downloaded_segments: int
    phase: DownloadPhase

    @property
    def percentage(self) -> float:
        if self.total_segments <= 0:
            return 0.0
        return self.downloaded_segments / self.total_segments * 100

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES


class RecorderState(str, Enum):
    IDLE = "Idle"
    RECORDING = "Recording"
    STOPPED = "Stopped"
    CANCELLED = "Cancelled"
    FAILED = "Failed"


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


@dataclass
class DownloadSettings:
    """Tunables for playlist and segment retrieval."""
    max_concurrency: int = 10
    max_retries: int = 5
    retry_base_delay_ms: int = 2000
    segment_timeout: float = 30.0
    playlist_timeout: float = 15.0
    poll_interval: Optional[float] = None  # live polling; None = target duration
    verify_ssl: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    headers: Dict[str, str] = field(default_factory=dict)
    merger: str = "ffmpeg"
    ffmpeg_path: str = "ffmpeg"

    def __post_init__(self):
        if self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {self.max_concurrency}")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.retry_base_delay_ms < 0:
            raise ValueError(f"retry_base_delay_ms must be >= 0, got {self.retry_base_delay_ms}")
        if self.poll_interval is not None and self.poll_interval < 0:
            raise ValueError(f"poll_interval must be >= 0, got {self.poll_interval}")

    @property
    def retry_base_delay(self) -> float:
        """Base retry delay in seconds."""
        return self.retry_base_delay_ms / 1000.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DownloadSettings":
        """Build settings from a mapping, ignoring unknown keys."""
        known = {f.name for f in dataclasses.fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})


@dataclass
class DownloadConfig:
    """Configuration for a single download job."""
    url: str
    output_dir: str
    output_name: Optional[str] = None
    quality: Any = "best"  # "best", "worst", "720p", "1280x720" or variant index
    max_duration_seconds: float = 0  # live only, 0 = until the stream ends
    settings: DownloadSettings = field(default_factory=DownloadSettings)


@dataclass
class DownloadResult:
    """Outcome of a finished download or recording."""
    output_path: str
    segment_count: int
    skipped_indices: Tuple[int, ...] = ()
    is_live: bool = False
