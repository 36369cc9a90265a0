"""Tests for epub_builder module."""

import zipfile
from pathlib import Path
from xml.etree import ElementTree as ET

import pytest
from mangapipeline.epub_builder import MIMETYPE, EPUBBuilder, build_epub, media_type_for
from mangapipeline.errors import PackagingError
from mangapipeline.models import CanonicalSize, PageRecord, Placement, Volume

OPF = "{http://www.idpf.org/2007/opf}"
DC = "{http://purl.org/dc/elements/1.1/}"
XHTML = "{http://www.w3.org/1999/xhtml}"
NCX = "{http://www.daisy.org/z3986/2005/ncx/}"


@pytest.fixture
def volume(make_image, tmp_path):
    """Four pages: cover, a spread, a tail page."""
    size = (100, 150)
    records = [
        PageRecord(make_image("cover.jpg", size), Placement.RIGHT),
        PageRecord(make_image("spread_2_3_R.jpg", size), Placement.RIGHT),
        PageRecord(make_image("spread_2_3_L.jpg", size), Placement.LEFT),
        PageRecord(make_image("tail.png", size), Placement.SINGLE),
    ]
    return Volume(
        title="Test & <Title>",
        page_records=records,
        canonical_size=CanonicalSize(*size),
        output_path=tmp_path / "out" / "book.epub",
        author="Author",
        publisher="Publisher",
    )


@pytest.fixture
def epub(volume):
    """Build the fixture volume and open the archive."""
    path = EPUBBuilder(volume, log=lambda m: None).build()
    with zipfile.ZipFile(path) as archive:
        yield archive


def opf_root(archive: zipfile.ZipFile) -> ET.Element:
    return ET.fromstring(archive.read("OEBPS/content.opf"))


class TestArchiveLayout:
    """Tests for the ZIP container."""

    def test_mimetype_first_and_stored(self, epub):
        """mimetype is entry 0, uncompressed, exact bytes."""
        first = epub.infolist()[0]
        assert first.filename == "mimetype"
        assert first.compress_type == zipfile.ZIP_STORED
        assert epub.read("mimetype") == MIMETYPE.encode("ascii")

    def test_other_entries_deflated(self, epub):
        """Everything else is compressed."""
        for info in epub.infolist()[1:]:
            assert info.compress_type == zipfile.ZIP_DEFLATED

    def test_expected_files(self, epub):
        """Fixed paths, one image and one page per record."""
        names = set(epub.namelist())
        assert {
            "META-INF/container.xml",
            "META-INF/com.apple.ibooks.display-options.xml",
            "OEBPS/content.opf",
            "OEBPS/nav.xhtml",
            "OEBPS/toc.ncx",
        } <= names
        pages = sorted(n for n in names if n.startswith("OEBPS/pages/"))
        images = sorted(n for n in names if n.startswith("OEBPS/images/"))
        assert pages == [f"OEBPS/pages/page_{i:04d}.xhtml" for i in range(1, 5)]
        assert images == [
            "OEBPS/images/page_0001.jpg",
            "OEBPS/images/page_0002.jpg",
            "OEBPS/images/page_0003.jpg",
            "OEBPS/images/page_0004.png",
        ]

    def test_container_points_to_opf(self, epub):
        """container.xml names the package document."""
        root = ET.fromstring(epub.read("META-INF/container.xml"))
        rootfile = root.find(".//{urn:oasis:names:tc:opendocument:xmlns:container}rootfile")
        assert rootfile.get("full-path") == "OEBPS/content.opf"

    def test_display_options(self, epub):
        """Apple Books options declare fixed layout."""
        root = ET.fromstring(epub.read("META-INF/com.apple.ibooks.display-options.xml"))
        options = {o.get("name"): o.text for o in root.iter("option")}
        assert options == {
            "fixed-layout": "true",
            "orientation-lock": "none",
            "open-to-spread": "auto",
        }


class TestPackageDocument:
    """Tests for content.opf."""

    def test_metadata(self, epub):
        """Title, creator, publisher and language are present and escaped."""
        metadata = opf_root(epub).find(f"{OPF}metadata")
        assert metadata.find(f"{DC}title").text == "Test & <Title>"
        assert metadata.find(f"{DC}creator").text == "Author"
        assert metadata.find(f"{DC}publisher").text == "Publisher"
        assert metadata.find(f"{DC}language").text == "ja"
        assert metadata.find(f"{DC}identifier").text.startswith("urn:uuid:")

    def test_rendition_flags(self, epub):
        """Fixed layout rendition properties."""
        metas = {
            m.get("property"): m.text
            for m in opf_root(epub).iter(f"{OPF}meta")
            if m.get("property")
        }
        assert metas["rendition:layout"] == "pre-paginated"
        assert metas["rendition:spread"] == "auto"
        assert metas["rendition:orientation"] == "auto"
        assert metas["dcterms:modified"].endswith("Z")

    def test_spine_is_rtl_with_placements(self, epub):
        """Spine order matches records; properties match placement."""
        spine = opf_root(epub).find(f"{OPF}spine")
        assert spine.get("page-progression-direction") == "rtl"
        refs = [(ref.get("idref"), ref.get("properties")) for ref in spine]
        assert refs == [
            ("page1", "page-spread-right"),
            ("page2", "page-spread-right"),
            ("page3", "page-spread-left"),
            ("page4", None),
        ]

    def test_manifest_counts_and_cover(self, epub):
        """N images, N pages; only the first image is the cover."""
        items = list(opf_root(epub).find(f"{OPF}manifest"))
        pages = [i for i in items if i.get("href").startswith("pages/")]
        images = [i for i in items if i.get("href").startswith("images/")]
        assert len(pages) == 4
        assert len(images) == 4
        covers = [i.get("id") for i in images if i.get("properties") == "cover-image"]
        assert covers == ["img1"]
        assert images[3].get("media-type") == "image/png"

    def test_manifest_hrefs_exist(self, epub):
        """Every manifest item is in the archive."""
        names = set(epub.namelist())
        for item in opf_root(epub).find(f"{OPF}manifest"):
            assert f"OEBPS/{item.get('href')}" in names


class TestPageDocuments:
    """Tests for the per-page XHTML."""

    def test_page_sized_to_canonical(self, epub):
        """Viewport and image both use the canonical size."""
        root = ET.fromstring(epub.read("OEBPS/pages/page_0002.xhtml"))
        viewport = [m for m in root.iter(f"{XHTML}meta") if m.get("name") == "viewport"]
        assert viewport[0].get("content") == "width=100, height=150"

        style = root.find(f".//{XHTML}style").text
        assert "width: 100px;" in style
        assert "height: 150px;" in style

        img = root.find(f".//{XHTML}img")
        assert img.get("src") == "../images/page_0002.jpg"

    def test_nav_lists_pages_in_order(self, epub):
        """nav.xhtml links every page in reading order."""
        root = ET.fromstring(epub.read("OEBPS/nav.xhtml"))
        hrefs = [a.get("href") for a in root.iter(f"{XHTML}a")]
        assert hrefs == [f"pages/page_{i:04d}.xhtml" for i in range(1, 5)]

    def test_ncx_play_order(self, epub):
        """toc.ncx has one navPoint per page, 1-based."""
        root = ET.fromstring(epub.read("OEBPS/toc.ncx"))
        orders = [int(n.get("playOrder")) for n in root.iter(f"{NCX}navPoint")]
        assert orders == [1, 2, 3, 4]


class TestOutput:
    """Tests for writing the final file."""

    def test_replaces_existing_output(self, volume):
        """An existing file at the output path is overwritten."""
        volume.output_path.parent.mkdir(parents=True)
        volume.output_path.write_text("old")
        build_epub(volume)
        assert zipfile.is_zipfile(volume.output_path)

    def test_no_temporary_files_left(self, volume):
        """Only the EPUB remains in the output folder."""
        build_epub(volume)
        assert list(volume.output_path.parent.iterdir()) == [volume.output_path]

    def test_missing_image_is_packaging_error(self, volume, tmp_path):
        """A missing page image fails the build and leaves no output."""
        volume.page_records.append(PageRecord(tmp_path / "missing.jpg", Placement.LEFT))
        with pytest.raises(PackagingError):
            build_epub(volume)
        assert not volume.output_path.exists()

    def test_explicit_work_dir(self, volume, tmp_path):
        """A given work directory keeps the unzipped layout."""
        work = tmp_path / "work"
        EPUBBuilder(volume).build(work)
        assert (work / "mimetype").read_text() == MIMETYPE
        assert (work / "OEBPS" / "pages" / "page_0004.xhtml").exists()


class TestMediaType:
    """Tests for media type mapping."""

    @pytest.mark.parametrize("name,expected", [
        ("a.jpg", "image/jpeg"),
        ("a.JPEG", "image/jpeg"),
        ("a.png", "image/png"),
        ("a.bin", "application/octet-stream"),
    ])
    def test_media_type(self, name, expected):
        """Extensions map case-insensitively."""
        assert media_type_for(Path(name)) == expected
