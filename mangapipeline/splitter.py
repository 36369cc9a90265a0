"""
Splitting spreads into right/left pages at the canonical size.
"""

import logging
from pathlib import Path
from typing import Sequence

from PIL import Image

from . import imaging
from .errors import UnsupportedGeometry
from .models import CanonicalSize, ClassifiedImage, LogicalItem, Single, Spread

logger = logging.getLogger(__name__)


def split_image(img: Image.Image, size: CanonicalSize) -> tuple[Image.Image, Image.Image]:
    """Split a spread down the middle and resize both halves.

    An odd width loses its rightmost column first so both halves are the
    same whole number of pixels wide; otherwise readers may draw a one
    pixel seam where the halves meet.

    Args:
        img: The full spread
        size: Target size for each half

    Returns:
        Tuple of (right half, left half), both exactly `size`

    Raises:
        UnsupportedGeometry: If the image is 1 pixel wide or less
    """
    width, height = img.size
    if width <= 1:
        raise UnsupportedGeometry(f"Cannot split image {width}px wide")

    even_width = width - (width % 2)
    half = even_width // 2

    left = img.crop((0, 0, half, height))
    right = img.crop((half, 0, even_width, height))

    target = size.as_tuple()
    return imaging.resize(right, target), imaging.resize(left, target)


class SpreadSplitter:
    """Turns classified images into logical items, writing page files."""

    def __init__(self, output_dir: Path, quality: int = 90) -> None:
        """Initialize splitter.

        Args:
            output_dir: Scratch directory for split and resized pages
            quality: JPEG quality for written pages
        """
        self.output_dir = Path(output_dir)
        self.quality = quality

    def plan_names(self, items: Sequence[ClassifiedImage]) -> list[str | None]:
        """Assign output base names to every spread, None for singles.

        Names come from the filename pair, or the 1-based index when there
        is none. A name already taken gets the index appended.
        """
        names: list[str | None] = []
        used: set[str] = set()

        for index, item in enumerate(items):
            if not item.is_spread:
                names.append(None)
                continue

            hint = item.spread_hint
            if hint is not None:
                name = f"spread_{hint.low}_{hint.high}"
            else:
                name = f"spread_{index + 1}"

            if name in used:
                name = f"{name}_{index + 1}"
            used.add(name)
            names.append(name)

        return names

    def split(self, item: ClassifiedImage, base_name: str, size: CanonicalSize) -> Spread:
        """Split a spread candidate and write `<base>_R.jpg` and `<base>_L.jpg`."""
        img = imaging.decode(item.image.local_path)
        try:
            right, left = split_image(img, size)
        except UnsupportedGeometry as e:
            raise UnsupportedGeometry(str(e), item.image.source_path) from e

        right_path = self.output_dir / f"{base_name}_R.jpg"
        left_path = self.output_dir / f"{base_name}_L.jpg"
        imaging.write_jpeg(right, right_path, self.quality)
        imaging.write_jpeg(left, left_path, self.quality)

        logger.debug(f"Split {item.image.file_name} -> {right_path.name}, {left_path.name}")
        return Spread(right=right_path, left=left_path)

    def fit_single(self, item: ClassifiedImage, size: CanonicalSize) -> Single:
        """Pass a single page through, resizing it only if it is off size."""
        if item.size == size.as_tuple():
            return Single(item.image.local_path)

        img = imaging.decode(item.image.local_path)
        output_path = self.output_dir / f"single_{item.image.local_path.stem}.jpg"
        imaging.write_jpeg(imaging.resize(img, size.as_tuple()), output_path, self.quality)

        logger.debug(f"Resized {item.image.file_name} {item.size} -> {size}")
        return Single(output_path)

    def process(
        self,
        item: ClassifiedImage,
        base_name: str | None,
        size: CanonicalSize,
    ) -> LogicalItem:
        """Produce the logical item for one classified image."""
        if base_name is None:
            return self.fit_single(item, size)
        return self.split(item, base_name, size)
