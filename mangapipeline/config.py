"""
Configuration for the image-to-EPUB pipeline.
"""

from dataclasses import dataclass
from pathlib import Path

from .imaging import SUPPORTED_EXTENSIONS, ImageNormalizer
from .models import CanonicalSize


@dataclass
class PipelineConfig:
    """Settings shared by every volume of a run.

    Attributes:
        language: Book language code written to the package metadata
        output_dir: Where EPUBs go (None = inside each input folder)

        # Images
        supported_extensions: Image extensions picked up from input folders
        normalize_quality: JPEG quality for the re-encoded source images
        page_quality: JPEG quality for split or resized pages
        default_page_size: Page size used when a volume has no images

        # Execution
        workers: Threads for per-file decoding and splitting (1 = inline)
        keep_work_dir: Keep each volume's scratch directory after building
    """

    language: str = "ja"
    output_dir: Path | None = None

    # Images
    supported_extensions: tuple[str, ...] = SUPPORTED_EXTENSIONS
    normalize_quality: int = 92
    page_quality: int = 90
    default_page_size: tuple[int, int] = (1440, 2048)

    # Execution
    workers: int = 4
    keep_work_dir: bool = False

    def __post_init__(self) -> None:
        """Validate and convert paths."""
        if self.output_dir is not None:
            self.output_dir = Path(self.output_dir)

        if not self.language or not self.language.strip():
            raise ValueError("language cannot be empty")

        for name in ("normalize_quality", "page_quality"):
            value = getattr(self, name)
            if not 1 <= value <= 100:
                raise ValueError(f"{name} must be in [1, 100], got {value}")

        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")

        width, height = self.default_page_size
        if width < 1 or height < 1:
            raise ValueError(f"default_page_size must be positive, got {self.default_page_size}")

        if not self.supported_extensions:
            raise ValueError("supported_extensions cannot be empty")

    @property
    def default_canonical_size(self) -> CanonicalSize:
        return CanonicalSize(*self.default_page_size)


@dataclass
class VolumeRequest:
    """One book to build: ordered source images plus metadata."""

    source_paths: list[Path]
    title: str
    output_path: Path
    author: str = "Unknown"
    publisher: str = "Unknown"

    def __post_init__(self) -> None:
        self.source_paths = [Path(p) for p in self.source_paths]
        self.output_path = Path(self.output_path)

        if not self.title or not self.title.strip():
            raise ValueError("title cannot be empty")

        # Deduplicate, keeping the first occurrence
        seen: set[Path] = set()
        unique = []
        for path in self.source_paths:
            if path not in seen:
                seen.add(path)
                unique.append(path)
        self.source_paths = unique

    @classmethod
    def from_folder(
        cls,
        folder: Path,
        config: PipelineConfig,
        author: str = "Unknown",
        publisher: str = "Unknown",
    ) -> "VolumeRequest":
        """Collect a folder's images; the folder name becomes the title.

        Args:
            folder: Folder of page images
            config: Run settings (extensions, output directory)
            author: Book author
            publisher: Book publisher

        Returns:
            VolumeRequest with sources in natural filename order
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise ValueError(f"Input directory does not exist: {folder}")

        title = folder.resolve().name
        output_dir = config.output_dir or folder
        output_path = output_dir / f"{safe_filename(title)}.epub"

        normalizer = ImageNormalizer(supported_extensions=config.supported_extensions)
        sources = normalizer.discover_images(folder)

        return cls(
            source_paths=[src.path for src in sources],
            title=title,
            output_path=output_path,
            author=author or "Unknown",
            publisher=publisher or "Unknown",
        )


def safe_filename(title: str) -> str:
    """Generate safe filename from book title."""
    safe = "".join(c if c.isalnum() or c in " -_" else "_" for c in title)
    return safe.strip().replace(" ", "_")[:100] or "book"
