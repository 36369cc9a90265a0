"""
Single page / spread classification from filename and pixel size.
"""

import logging
import re
from typing import Protocol, Sequence

from .models import Classification, SpreadPairHint

logger = logging.getLogger(__name__)

# Width / height at or above this is treated as a two-page spread
WIDE_ASPECT_RATIO = 1.2


class SpreadPairMatcher(Protocol):
    """Extracts a spread pair hint from a filename, or returns None."""

    def __call__(self, file_name: str) -> SpreadPairHint | None: ...


# e.g. 002-003.jpg, 002_003.png
NUMBER_PAIR_PATTERN = re.compile(r'(\d+)[-_](\d+)')

# e.g. 001L.jpg, 001 R.png
NUMBER_SIDE_PATTERN = re.compile(r'(\d+)\s*([LR])', re.IGNORECASE)


def match_number_pair(file_name: str) -> SpreadPairHint | None:
    """Two numbers joined by '-' or '_' that differ.

    Order in the name does not matter: the hint is always (min, max).
    """
    match = NUMBER_PAIR_PATTERN.search(file_name)
    if not match:
        return None

    first, second = int(match.group(1)), int(match.group(2))
    if first == second:
        return None
    return SpreadPairHint(min(first, second), max(first, second))


def match_number_side(file_name: str) -> SpreadPairHint | None:
    """A number followed by an L/R marker, paired with the next number.

    A lone L or R file cannot name its partner, so (n, n + 1) is a guess.
    """
    match = NUMBER_SIDE_PATTERN.search(file_name)
    if not match:
        return None

    number = int(match.group(1))
    return SpreadPairHint(number, number + 1)


DEFAULT_MATCHERS: tuple[SpreadPairMatcher, ...] = (
    match_number_pair,
    match_number_side,
)


def is_wide_aspect(pixel_width: int, pixel_height: int) -> bool:
    """Check whether an image is wide enough to be a spread."""
    if pixel_height <= 0:
        return False
    return pixel_width / pixel_height >= WIDE_ASPECT_RATIO


class PairClassifier:
    """Classifies images as single pages or spread candidates.

    Filename matchers are tried in order and the first hint wins.
    """

    def __init__(self, matchers: Sequence[SpreadPairMatcher] = DEFAULT_MATCHERS) -> None:
        self.matchers = tuple(matchers)

    def detect_spread_pair(self, file_name: str) -> SpreadPairHint | None:
        for matcher in self.matchers:
            hint = matcher(file_name)
            if hint is not None:
                return hint
        return None

    def classify(self, file_name: str, pixel_width: int, pixel_height: int) -> Classification:
        """Classify one image.

        Args:
            file_name: Original filename (no directories needed)
            pixel_width: Measured width in pixels
            pixel_height: Measured height in pixels

        Returns:
            Classification with aspect flag and optional spread hint
        """
        classification = Classification(
            is_wide_aspect=is_wide_aspect(pixel_width, pixel_height),
            spread_hint=self.detect_spread_pair(file_name),
        )
        logger.debug(
            f"{file_name}: {pixel_width}x{pixel_height} "
            f"wide={classification.is_wide_aspect} hint={classification.spread_hint}"
        )
        return classification


_default_classifier = PairClassifier()


def detect_spread_pair(file_name: str) -> SpreadPairHint | None:
    """Filename pair detection with the default matchers."""
    return _default_classifier.detect_spread_pair(file_name)


def classify(file_name: str, pixel_width: int, pixel_height: int) -> Classification:
    """Classify with the default matchers."""
    return _default_classifier.classify(file_name, pixel_width, pixel_height)
