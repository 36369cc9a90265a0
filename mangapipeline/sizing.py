"""
Canonical page size resolution for a volume.
"""

import logging
from collections import Counter
from typing import Callable, Sequence

from .models import CanonicalSize, ClassifiedImage

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = CanonicalSize(1440, 2048)


def resolve_canonical_size(
    images: Sequence[ClassifiedImage],
    log: Callable[[str], None] | None = None,
    default: CanonicalSize = DEFAULT_PAGE_SIZE,
) -> CanonicalSize:
    """Pick the page size every page of the volume is normalized to.

    Uses the most frequent exact size among single pages. On a tie the
    size seen first wins. Without singles the first image's size is used,
    and without any images the default.

    Args:
        images: Classified images in input order
        log: Sink for the one informational line describing the choice
        default: Size used when there are no images at all

    Returns:
        The canonical size
    """
    log = log or logger.info

    # most_common() keeps first-seen order among equal counts
    counts = Counter(item.size for item in images if not item.is_spread)

    if counts:
        (width, height), best_count = counts.most_common(1)[0]
        size = CanonicalSize(width, height)
        log(f"Canonical size (most-frequent, {best_count} pages): {size}")
        return size

    if images:
        width, height = images[0].size
        size = CanonicalSize(width, height)
        log(f"Canonical size (fallback-first, no single pages): {size}")
        return size

    log(f"Canonical size (fallback-default, no images): {default}")
    return default
