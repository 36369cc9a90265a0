"""Tests for imaging module."""

import io

import pytest
from PIL import Image

from mangapipeline.errors import EncodeFailure, UnreadableImage
from mangapipeline.imaging import (
    ImageNormalizer,
    decode,
    encode,
    natural_sort_key,
    resize,
    write_jpeg,
)
from mangapipeline.models import SourceImage


class TestNaturalSort:
    """Tests for Finder-style ordering."""

    def test_numbers_compare_numerically(self):
        """2 sorts before 10."""
        names = ["10.jpg", "2.jpg", "1.jpg"]
        assert sorted(names, key=natural_sort_key) == ["1.jpg", "2.jpg", "10.jpg"]

    def test_mixed_prefixes(self):
        """Text parts compare case-insensitively."""
        names = ["b2.jpg", "A10.jpg", "a2.jpg"]
        assert sorted(names, key=natural_sort_key) == ["a2.jpg", "A10.jpg", "b2.jpg"]


class TestDecodeEncode:
    """Tests for the Pillow collaborator functions."""

    def test_decode_missing_file(self, tmp_path):
        """Missing files are UnreadableImage."""
        with pytest.raises(UnreadableImage):
            decode(tmp_path / "nope.jpg")

    def test_decode_garbage(self, tmp_path):
        """Non-image bytes are UnreadableImage with the path attached."""
        path = tmp_path / "broken.jpg"
        path.write_bytes(b"not an image")
        with pytest.raises(UnreadableImage) as excinfo:
            decode(path)
        assert excinfo.value.path == path

    def test_decode_flattens_alpha(self, make_image):
        """RGBA PNGs come back as RGB."""
        img = decode(make_image("alpha.png", (20, 30), mode="RGBA"))
        assert img.mode == "RGB"
        assert img.size == (20, 30)

    def test_round_trip_keeps_size(self, make_image):
        """Encoding at the canonical size does not resize."""
        img = decode(make_image("page.jpg", (123, 457)))
        data = encode(resize(img, (123, 457)), quality=90)
        with Image.open(io.BytesIO(data)) as reloaded:
            assert reloaded.size == (123, 457)
            assert reloaded.format == "JPEG"

    def test_resize_same_size_is_noop(self):
        """Resizing to the current size returns the same object."""
        img = Image.new("RGB", (10, 10))
        assert resize(img, (10, 10)) is img


class TestImageNormalizer:
    """Tests for discovery and normalization."""

    def test_discover_filters_and_sorts(self, make_image, tmp_path):
        """Only supported, visible files, in natural order."""
        folder = tmp_path / "vol"
        make_image("10.jpg", (10, 10), folder=folder)
        make_image("2.PNG", (10, 10), folder=folder)
        make_image("1.jpeg", (10, 10), folder=folder)
        (folder / "notes.txt").write_text("x")
        (folder / ".hidden.jpg").write_bytes(b"")

        sources = ImageNormalizer().discover_images(folder)
        assert [s.file_name for s in sources] == ["1.jpeg", "2.PNG", "10.jpg"]

    def test_normalize_writes_jpeg(self, make_image, tmp_path):
        """Sources become orig_NNNN.jpg with measured size."""
        out = tmp_path / "out"
        out.mkdir()
        src = make_image("page.png", (40, 60))

        image = ImageNormalizer().normalize(SourceImage(src), 4, out)

        assert image.local_path == out / "orig_0005.jpg"
        assert image.size == (40, 60)
        assert image.file_name == "page.png"
        assert image.source_path == src
        with Image.open(image.local_path) as img:
            assert img.format == "JPEG"

    def test_normalize_applies_exif_rotation(self, tmp_path):
        """A landscape file tagged with orientation 6 is measured as portrait."""
        out = tmp_path / "out"
        out.mkdir()
        src = tmp_path / "001.jpg"
        exif = Image.Exif()
        exif[0x0112] = 6
        Image.new("RGB", (150, 100), (200, 200, 200)).save(src, "JPEG", exif=exif)

        image = ImageNormalizer().normalize(SourceImage(src), 0, out)

        assert image.size == (100, 150)


class TestEncodeFailure:
    """Tests for JPEG write errors."""

    def test_encode_error_reported(self, monkeypatch):
        """Pillow save errors become EncodeFailure."""
        def broken_save(self, fp, format=None, **params):
            raise OSError("disk full")

        monkeypatch.setattr(Image.Image, "save", broken_save)
        with pytest.raises(EncodeFailure):
            encode(Image.new("RGB", (10, 10)), quality=90)

    def test_write_to_missing_directory(self, tmp_path):
        """A destination under a regular file fails with the path attached."""
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        target = blocker / "page.jpg"

        with pytest.raises(EncodeFailure) as excinfo:
            write_jpeg(Image.new("RGB", (10, 10)), target, quality=90)
        assert excinfo.value.path == target

    def test_encode_error_carries_output_path(self, monkeypatch, tmp_path):
        """Encoding errors during a write name the file being written."""
        def broken_save(self, fp, format=None, **params):
            raise OSError("disk full")

        monkeypatch.setattr(Image.Image, "save", broken_save)
        target = tmp_path / "page.jpg"
        with pytest.raises(EncodeFailure) as excinfo:
            write_jpeg(Image.new("RGB", (10, 10)), target, quality=90)
        assert excinfo.value.path == target
        assert not target.exists()
