"""Quality variant selection for master playlists."""

import logging
import re
from typing import Sequence, Union

from ..exceptions import VariantNotFound
from ..models import QualityVariant

logger = logging.getLogger(__name__)

_HEIGHT_RE = re.compile(r'^(\d+)p$', re.IGNORECASE)
_RESOLUTION_RE = re.compile(r'^\d+x\d+$', re.IGNORECASE)


def sort_by_bandwidth(qualities: Sequence[QualityVariant], descending: bool = True):
    return sorted(qualities, key=lambda q: q.bandwidth, reverse=descending)


def select_variant(
    qualities: Sequence[QualityVariant],
    preference: Union[str, int] = "best",
) -> QualityVariant:
    """
    Pick a quality variant.

    Args:
        qualities: Variants in source order
        preference: "best"/"highest"/"auto", "worst"/"lowest", a height such
            as "720p", a resolution such as "1280x720", or an index into
            qualities

    Returns:
        Selected QualityVariant

    Raises:
        VariantNotFound: If qualities is empty or nothing matches

    Example:
        >>> select_variant(playlist.qualities, "720p").resolution
        '1280x720'
    """
    if not qualities:
        raise VariantNotFound("Master playlist contains no quality variants")

    if isinstance(preference, int) and not isinstance(preference, bool):
        if -len(qualities) <= preference < len(qualities):
            return qualities[preference]
        raise VariantNotFound(f"Variant index {preference} out of range (0-{len(qualities) - 1})")

    choice = str(preference or "best").strip().lower()

    if choice in ("best", "highest", "auto"):
        selected = sort_by_bandwidth(qualities)[0]
    elif choice in ("worst", "lowest"):
        selected = sort_by_bandwidth(qualities, descending=False)[0]
    elif _HEIGHT_RE.match(choice):
        height = int(_HEIGHT_RE.match(choice).group(1))
        matches = [q for q in qualities if q.height == height]
        if not matches:
            raise VariantNotFound(f"No variant with height {height}p")
        selected = sort_by_bandwidth(matches)[0]
    elif _RESOLUTION_RE.match(choice):
        matches = [q for q in qualities if (q.resolution or '').lower() == choice]
        if not matches:
            raise VariantNotFound(f"No variant with resolution {choice}")
        selected = sort_by_bandwidth(matches)[0]
    else:
        raise VariantNotFound(f"Unsupported quality preference: {preference!r}")

    logger.info(f"Selected quality variant: {selected.display_name}")
    return selected
