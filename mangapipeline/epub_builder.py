"""
EPUB3 fixed-layout packaging for right-to-left image books.
"""

import logging
import os
import shutil
import tempfile
import zipfile
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterator

from .errors import PackagingError
from .models import Placement, Volume

logger = logging.getLogger(__name__)

MIMETYPE = "application/epub+zip"
PACKAGE_ROOT = "OEBPS"
DISPLAY_OPTIONS_NAME = "com.apple.ibooks.display-options.xml"

MEDIA_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
}

SPREAD_PROPERTIES = {
    Placement.SINGLE: "",
    Placement.RIGHT: ' properties="page-spread-right"',
    Placement.LEFT: ' properties="page-spread-left"',
}


def media_type_for(path: Path) -> str:
    """Map an image file extension to its media type."""
    return MEDIA_TYPES.get(path.suffix.lower(), "application/octet-stream")


@contextmanager
def packaging_step(name: str) -> Iterator[None]:
    """Report any I/O or archive failure inside the block as PackagingError."""
    try:
        yield
    except (OSError, zipfile.BadZipFile, zipfile.LargeZipFile) as e:
        raise PackagingError(f"{name} failed ({e})", getattr(e, "filename", None)) from e


class EPUBBuilder:
    """Builds an EPUB3 fixed-layout book from an ordered page sequence.

    Every page is one XHTML document showing one image at exactly the
    volume's canonical size. The spine runs right-to-left and carries
    page-spread-right/left properties from each page's placement.
    """

    def __init__(self, volume: Volume, log: Callable[[str], None] | None = None) -> None:
        """Initialize EPUB builder.

        Args:
            volume: Book metadata, page sequence and output path
            log: Sink for progress log lines
        """
        self.volume = volume
        self.log = log or logger.info

    def build(self, work_dir: Path | None = None) -> Path:
        """Build the EPUB and move it into place at the volume's output path.

        Args:
            work_dir: Scratch directory to lay out the book in. A temporary
                directory is used (and removed) when not given.

        Returns:
            Path to created EPUB file

        Raises:
            PackagingError: If any document, image or archive step fails
        """
        output_path = self.volume.output_path
        with packaging_step("Creating output directory"):
            output_path.parent.mkdir(parents=True, exist_ok=True)

        if work_dir is not None:
            book_dir = Path(work_dir)
            with packaging_step("Creating work directory"):
                if book_dir.exists():
                    shutil.rmtree(book_dir)
                book_dir.mkdir(parents=True)
            self._layout(book_dir)
            self._archive(book_dir, output_path)
        else:
            with tempfile.TemporaryDirectory(prefix="epub_work_") as tmp:
                self._layout(Path(tmp))
                self._archive(Path(tmp), output_path)

        self.log(f"Created EPUB with {len(self.volume.page_records)} pages: {output_path}")
        return output_path

    def _layout(self, book_dir: Path) -> None:
        """Write every file of the book into `book_dir`."""
        pages = self.volume.page_records
        oebps = book_dir / PACKAGE_ROOT
        meta_inf = book_dir / "META-INF"
        images_dir = oebps / "images"
        pages_dir = oebps / "pages"

        with packaging_step("Creating EPUB folders"):
            for directory in (meta_inf, images_dir, pages_dir):
                directory.mkdir(parents=True, exist_ok=True)

        with packaging_step("Writing mimetype"):
            (book_dir / "mimetype").write_bytes(MIMETYPE.encode("ascii"))

        with packaging_step("Writing container.xml"):
            (meta_inf / "container.xml").write_text(self._container_xml(), encoding="utf-8")

        with packaging_step(f"Writing {DISPLAY_OPTIONS_NAME}"):
            (meta_inf / DISPLAY_OPTIONS_NAME).write_text(self._display_options_xml(), encoding="utf-8")

        image_names: list[str] = []
        page_names: list[str] = []

        for number, page in enumerate(pages, start=1):
            image_name = f"page_{number:04d}{page.image_file.suffix.lower()}"
            page_name = f"page_{number:04d}.xhtml"

            with packaging_step(f"Copying image {page.image_file}"):
                shutil.copyfile(page.image_file, images_dir / image_name)

            with packaging_step(f"Writing {page_name}"):
                (pages_dir / page_name).write_text(
                    self._page_xhtml(number, image_name), encoding="utf-8"
                )

            image_names.append(image_name)
            page_names.append(page_name)

        self.log(f"Wrote {len(pages)} images and page documents")

        with packaging_step("Writing nav.xhtml"):
            (oebps / "nav.xhtml").write_text(self._nav_xhtml(page_names), encoding="utf-8")

        with packaging_step("Writing toc.ncx"):
            (oebps / "toc.ncx").write_text(self._toc_ncx(page_names), encoding="utf-8")

        with packaging_step("Writing content.opf"):
            (oebps / "content.opf").write_text(
                self._content_opf(image_names, page_names), encoding="utf-8"
            )

        self.log("Wrote content.opf (pre-paginated, right-to-left)")

    def _archive(self, book_dir: Path, output_path: Path) -> None:
        """Zip `book_dir` next to the output and move it over the output path.

        The mimetype entry goes first and uncompressed; everything else is
        deflated in sorted path order.
        """
        with packaging_step("Creating temporary archive"):
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{output_path.stem}_", suffix=".epub.part", dir=output_path.parent
            )
            os.close(fd)
        tmp_path = Path(tmp_name)

        try:
            with packaging_step("Writing archive"):
                with zipfile.ZipFile(tmp_path, "w", zipfile.ZIP_DEFLATED) as epub:
                    epub.write(book_dir / "mimetype", "mimetype", compress_type=zipfile.ZIP_STORED)

                    for path in sorted(book_dir.rglob("*")):
                        if not path.is_file():
                            continue
                        arcname = path.relative_to(book_dir).as_posix()
                        if arcname == "mimetype":
                            continue
                        epub.write(path, arcname)

            with packaging_step(f"Moving archive to {output_path}"):
                os.replace(tmp_path, output_path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

    def _page_xhtml(self, number: int, image_name: str) -> str:
        """One page: viewport, body and image all sized to the canonical size."""
        width = self.volume.canonical_size.width
        height = self.volume.canonical_size.height

        return f'''<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE html>
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops" xml:lang="{self._escape_xml(self.volume.language)}">
<head>
    <meta charset="UTF-8"/>
    <title>Page {number}</title>
    <meta name="viewport" content="width={width}, height={height}"/>
    <style type="text/css">
        html, body {{
            margin: 0;
            padding: 0;
            width: {width}px;
            height: {height}px;
            background-color: #000000;
        }}
        img {{
            position: absolute;
            top: 0;
            left: 0;
            width: {width}px;
            height: {height}px;
            object-fit: fill;
        }}
    </style>
</head>
<body>
    <img src="../images/{image_name}" alt=""/>
</body>
</html>'''

    def _container_xml(self) -> str:
        """Generate META-INF/container.xml."""
        return f'''<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
    <rootfiles>
        <rootfile full-path="{PACKAGE_ROOT}/content.opf" media-type="application/oebps-package+xml"/>
    </rootfiles>
</container>'''

    def _display_options_xml(self) -> str:
        """Generate the Apple Books display options (fixed layout)."""
        return '''<?xml version="1.0" encoding="UTF-8"?>
<display_options>
    <platform name="*">
        <option name="fixed-layout">true</option>
        <option name="orientation-lock">none</option>
        <option name="open-to-spread">auto</option>
    </platform>
</display_options>'''

    def _content_opf(self, image_names: list[str], page_names: list[str]) -> str:
        """Generate OEBPS/content.opf (package document)."""
        volume = self.volume
        modified = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

        manifest_items = [
            '<item id="nav" href="nav.xhtml" media-type="application/xhtml+xml" properties="nav"/>',
            '<item id="ncx" href="toc.ncx" media-type="application/x-dtbncx+xml"/>',
        ]
        for number, (image_name, record) in enumerate(zip(image_names, volume.page_records), start=1):
            cover = ' properties="cover-image"' if number == 1 else ""
            media_type = media_type_for(record.image_file)
            manifest_items.append(
                f'<item id="img{number}" href="images/{image_name}" media-type="{media_type}"{cover}/>'
            )
        for number, page_name in enumerate(page_names, start=1):
            manifest_items.append(
                f'<item id="page{number}" href="pages/{page_name}" media-type="application/xhtml+xml"/>'
            )

        spine_items = [
            f'<itemref idref="page{number}"{SPREAD_PROPERTIES[record.placement]}/>'
            for number, record in enumerate(volume.page_records, start=1)
        ]

        cover_meta = '\n        <meta name="cover" content="img1"/>' if image_names else ""

        return f'''<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="3.0" unique-identifier="bookid" prefix="rendition: http://www.idpf.org/vocab/rendition/# ibooks: http://vocabulary.itunes.apple.com/rdf/ibooks/vocabulary-extensions-1.0/">
    <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
        <dc:identifier id="bookid">{self._escape_xml(volume.identifier)}</dc:identifier>
        <dc:title>{self._escape_xml(volume.title)}</dc:title>
        <dc:creator>{self._escape_xml(volume.author)}</dc:creator>
        <dc:publisher>{self._escape_xml(volume.publisher)}</dc:publisher>
        <dc:language>{self._escape_xml(volume.language)}</dc:language>
        <meta property="dcterms:modified">{modified}</meta>
        <meta property="rendition:layout">pre-paginated</meta>
        <meta property="rendition:orientation">auto</meta>
        <meta property="rendition:spread">auto</meta>
        <meta property="ibooks:reader-optimized">true</meta>{cover_meta}
    </metadata>
    <manifest>
        {chr(10).join(manifest_items)}
    </manifest>
    <spine toc="ncx" page-progression-direction="rtl">
        {chr(10).join(spine_items)}
    </spine>
</package>'''

    def _toc_ncx(self, page_names: list[str]) -> str:
        """Generate OEBPS/toc.ncx (for EPUB2 readers)."""
        nav_points = []
        for number, page_name in enumerate(page_names, start=1):
            nav_points.append(f'''
        <navPoint id="navpoint{number}" playOrder="{number}">
            <navLabel><text>Page {number}</text></navLabel>
            <content src="pages/{page_name}"/>
        </navPoint>''')

        return f'''<?xml version="1.0" encoding="UTF-8"?>
<ncx xmlns="http://www.daisy.org/z3986/2005/ncx/" version="2005-1">
    <head>
        <meta name="dtb:uid" content="{self._escape_xml(self.volume.identifier)}"/>
        <meta name="dtb:depth" content="1"/>
        <meta name="dtb:totalPageCount" content="0"/>
        <meta name="dtb:maxPageNumber" content="0"/>
    </head>
    <docTitle><text>{self._escape_xml(self.volume.title)}</text></docTitle>
    <navMap>
        {''.join(nav_points)}
    </navMap>
</ncx>'''

    def _nav_xhtml(self, page_names: list[str]) -> str:
        """Generate OEBPS/nav.xhtml (EPUB3 navigation)."""
        nav_items = [
            f'<li><a href="pages/{page_name}">{number}</a></li>'
            for number, page_name in enumerate(page_names, start=1)
        ]

        return f'''<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE html>
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops" xml:lang="{self._escape_xml(self.volume.language)}">
<head>
    <meta charset="UTF-8"/>
    <title>Navigation</title>
</head>
<body>
    <nav epub:type="toc" id="toc">
        <ol>
            {chr(10).join(nav_items)}
        </ol>
    </nav>
</body>
</html>'''

    def _escape_xml(self, text: str) -> str:
        """Escape special XML characters."""
        return (
            text
            .replace("&", "&amp;")
            .replace("<", "&lt;")
            .replace(">", "&gt;")
            .replace('"', "&quot;")
            .replace("'", "&apos;")
        )


def build_epub(volume: Volume, log: Callable[[str], None] | None = None) -> Path:
    """Build a volume with a throwaway work directory."""
    return EPUBBuilder(volume, log=log).build()
