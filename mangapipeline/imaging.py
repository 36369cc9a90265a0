"""
Image intake and Pillow-backed decode/resize/encode.
"""

import io
import logging
import re
from pathlib import Path

from PIL import Image, ImageOps

from .errors import EncodeFailure, UnreadableImage
from .models import NormalizedImage, SourceImage

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".avif")

# Modes JPEG can store as-is; everything else is flattened to RGB
JPEG_MODES = ("RGB", "L")

_DIGITS = re.compile(r'(\d+)')


def natural_sort_key(name: str) -> tuple:
    """Sort key comparing digit runs numerically ("2.jpg" < "10.jpg")."""
    parts = [
        (0, int(part)) if part.isdigit() else (1, part.casefold())
        for part in _DIGITS.split(name)
        if part
    ]
    # Exact name breaks ties such as "01.jpg" vs "1.jpg"
    return (parts, name)


def decode(path: Path) -> Image.Image:
    """Load an image fully, applying its EXIF orientation.

    Raises:
        UnreadableImage: If the file is missing or cannot be decoded
    """
    try:
        with Image.open(path) as img:
            img.load()
            corrected = ImageOps.exif_transpose(img)
    except (OSError, Image.DecompressionBombError) as e:
        raise UnreadableImage(f"Cannot decode image ({e})", path) from e

    if corrected.mode not in JPEG_MODES:
        corrected = corrected.convert("RGB")
    return corrected


def resize(img: Image.Image, size: tuple[int, int]) -> Image.Image:
    """Resize to exactly `size` with a high quality filter."""
    if img.size == size:
        return img
    return img.resize(size, Image.LANCZOS)


def encode(img: Image.Image, quality: int) -> bytes:
    """Encode an image as JPEG bytes.

    Raises:
        EncodeFailure: If Pillow cannot write the image
    """
    if img.mode not in JPEG_MODES:
        img = img.convert("RGB")

    buffer = io.BytesIO()
    try:
        img.save(buffer, "JPEG", quality=quality)
    except (OSError, ValueError) as e:
        raise EncodeFailure(f"Cannot encode JPEG ({e})") from e
    return buffer.getvalue()


def write_jpeg(img: Image.Image, output_path: Path, quality: int) -> None:
    """Encode and write an image, reporting failures as EncodeFailure."""
    try:
        data = encode(img, quality)
    except EncodeFailure as e:
        raise EncodeFailure(str(e), output_path) from e
    try:
        output_path.write_bytes(data)
    except OSError as e:
        raise EncodeFailure(f"Cannot write JPEG ({e})", output_path) from e


class ImageNormalizer:
    """Finds source images and re-encodes them into a scratch directory."""

    def __init__(
        self,
        supported_extensions: tuple[str, ...] = SUPPORTED_EXTENSIONS,
        quality: int = 92,
    ) -> None:
        self.supported_extensions = tuple(ext.lower() for ext in supported_extensions)
        self.quality = quality

    def discover_images(self, input_dir: Path) -> list[SourceImage]:
        """Find supported images in a folder, in natural filename order.

        Hidden files are skipped.

        Args:
            input_dir: Directory to search (not recursive)

        Returns:
            Ordered list of source images
        """
        input_dir = Path(input_dir)
        images = [
            SourceImage(path)
            for path in input_dir.iterdir()
            if path.is_file()
            and not path.name.startswith(".")
            and path.suffix.lower() in self.supported_extensions
        ]
        images.sort(key=lambda src: natural_sort_key(src.file_name))

        logger.info(f"Found {len(images)} images in {input_dir}")
        return images

    def normalize(self, source: SourceImage, index: int, output_dir: Path) -> NormalizedImage:
        """Decode one source and re-encode it as JPEG.

        Args:
            source: Image to convert
            index: 0-based position in the volume (names the output file)
            output_dir: Scratch directory for re-encoded images

        Returns:
            NormalizedImage describing the re-encoded file
        """
        img = decode(source.path)
        output_path = output_dir / f"orig_{index + 1:04d}.jpg"
        write_jpeg(img, output_path, self.quality)

        width, height = img.size
        return NormalizedImage(
            source_path=source.path,
            local_path=output_path,
            pixel_width=width,
            pixel_height=height,
            file_name=source.file_name,
        )
