"""Shared fixtures: synthetic page images."""

from pathlib import Path

import pytest
from PIL import Image


@pytest.fixture
def make_image(tmp_path):
    """Write a solid-colour image and return its path."""

    def _make(
        name: str,
        size: tuple[int, int],
        color: tuple[int, int, int] = (200, 200, 200),
        folder: Path | None = None,
        mode: str = "RGB",
    ) -> Path:
        folder = folder or tmp_path
        folder.mkdir(parents=True, exist_ok=True)
        path = folder / name
        fill = color + (255,) if mode == "RGBA" else color
        img = Image.new(mode, size, fill)
        fmt = "PNG" if path.suffix.lower() == ".png" else "JPEG"
        img.save(path, fmt)
        return path

    return _make


@pytest.fixture
def make_spread(tmp_path):
    """Write a spread whose left half is red and right half is blue."""

    def _make(name: str, size: tuple[int, int], folder: Path | None = None) -> Path:
        folder = folder or tmp_path
        folder.mkdir(parents=True, exist_ok=True)
        width, height = size
        img = Image.new("RGB", size, (255, 0, 0))
        img.paste((0, 0, 255), (width // 2, 0, width, height))
        path = folder / name
        img.save(path, "PNG")
        return path

    return _make
