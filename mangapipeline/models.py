"""
Data model shared by the conversion stages.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Union


@dataclass(frozen=True)
class SourceImage:
    """One input file as handed over by intake."""

    path: Path

    @property
    def file_name(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class NormalizedImage:
    """A source image decoded and re-encoded into the scratch directory."""

    source_path: Path
    local_path: Path  # Re-encoded JPEG
    pixel_width: int
    pixel_height: int
    file_name: str

    @property
    def size(self) -> tuple[int, int]:
        return (self.pixel_width, self.pixel_height)


@dataclass(frozen=True)
class SpreadPairHint:
    """Page numbers of a spread guessed from a filename."""

    low: int
    high: int

    def __str__(self) -> str:
        return f"{self.low}-{self.high}"


@dataclass(frozen=True)
class Classification:
    """Result of classifying a single file by name and pixel size."""

    is_wide_aspect: bool
    spread_hint: SpreadPairHint | None = None

    @property
    def is_spread(self) -> bool:
        """A filename pair wins over aspect; either one makes a spread."""
        return self.spread_hint is not None or self.is_wide_aspect


@dataclass(frozen=True)
class ClassifiedImage:
    """A normalized image together with its classification."""

    image: NormalizedImage
    classification: Classification

    @property
    def is_wide_aspect(self) -> bool:
        return self.classification.is_wide_aspect

    @property
    def spread_hint(self) -> SpreadPairHint | None:
        return self.classification.spread_hint

    @property
    def is_spread(self) -> bool:
        return self.classification.is_spread

    @property
    def size(self) -> tuple[int, int]:
        return self.image.size


@dataclass(frozen=True)
class CanonicalSize:
    """The one pixel size every page of a volume is normalized to."""

    width: int
    height: int

    def as_tuple(self) -> tuple[int, int]:
        return (self.width, self.height)

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass(frozen=True)
class Single:
    """A standalone page image."""

    image: Path


@dataclass(frozen=True)
class Spread:
    """Both halves of a split spread, already at canonical size."""

    right: Path
    left: Path


LogicalItem = Union[Single, Spread]


class Placement(Enum):
    """Where a page sits when the reader opens a spread."""

    SINGLE = "single"
    RIGHT = "right"
    LEFT = "left"


@dataclass(frozen=True)
class PageRecord:
    """One page of the final reading order."""

    image_file: Path
    placement: Placement


@dataclass
class Volume:
    """Everything the archive packager needs to build one book."""

    title: str
    page_records: list[PageRecord]
    canonical_size: CanonicalSize
    output_path: Path
    author: str = "Unknown"
    publisher: str = "Unknown"
    language: str = "ja"
    identifier: str = field(default_factory=lambda: f"urn:uuid:{uuid.uuid4()}")

    def __post_init__(self) -> None:
        self.output_path = Path(self.output_path)
