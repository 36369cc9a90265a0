#!/usr/bin/env python3
"""
Command-line interface for mangapipeline.

Usage:
    # One folder of page images -> <folder>/<folder name>.epub
    mangapipeline convert ./vol01 --author "Author Name" --publisher "Publisher"

    # Several folders, one EPUB each, written to ./out
    mangapipeline batch ./vol01 ./vol02 ./vol03 -o ./out

    # Show how each image would be classified, without building
    mangapipeline classify ./vol01
"""

import argparse
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _make_config(args: argparse.Namespace):
    from .config import PipelineConfig

    return PipelineConfig(
        language=args.language,
        output_dir=Path(args.output) if args.output else None,
        workers=args.workers,
        keep_work_dir=args.keep_work_dir,
    )


def cmd_convert(args: argparse.Namespace) -> int:
    """Convert a single folder."""
    from .config import VolumeRequest
    from .pipeline import VolumePipeline
    from .progress import ProgressReporter

    config = _make_config(args)
    request = VolumeRequest.from_folder(
        Path(args.input), config, author=args.author, publisher=args.publisher
    )

    with ProgressReporter(desc=request.title) as progress:
        result = VolumePipeline(config).run(request, on_progress=progress)

    if result.success:
        print(f"\n✓ Success: {result.message}")
        print(f"  EPUB: {result.epub_path}")
        print(f"  Page size: {result.canonical_size}")
        return 0
    else:
        print(f"\n✗ Failed: {result.message}", file=sys.stderr)
        return 1


def cmd_batch(args: argparse.Namespace) -> int:
    """Convert several folders, one EPUB each."""
    from .config import VolumeRequest
    from .pipeline import BatchPipeline
    from .progress import ProgressReporter

    config = _make_config(args)
    requests = [
        VolumeRequest.from_folder(Path(folder), config, author=args.author, publisher=args.publisher)
        for folder in args.inputs
    ]

    with ProgressReporter(desc="Batch") as progress:
        batch = BatchPipeline(config).run(requests, on_progress=progress)

    for result in batch.results:
        if result.success:
            print(f"  ✓ {result.title}: {result.epub_path}")
        else:
            print(f"  ✗ {result.title}: {result.message}", file=sys.stderr)

    print(f"\n{batch.succeeded} succeeded, {batch.failed} failed")
    return 0 if batch.success else 1


def cmd_classify(args: argparse.Namespace) -> int:
    """Print each image's classification and the resulting page size."""
    from .classifier import PairClassifier
    from .errors import ConversionError
    from .imaging import ImageNormalizer, decode
    from .models import ClassifiedImage, NormalizedImage
    from .sizing import resolve_canonical_size

    sources = ImageNormalizer().discover_images(Path(args.input))
    if not sources:
        print("No images found", file=sys.stderr)
        return 1

    classifier = PairClassifier()
    classified = []
    for source in sources:
        # Measure after EXIF rotation, as the build does
        try:
            width, height = decode(source.path).size
        except ConversionError as e:
            print(f"✗ {e}", file=sys.stderr)
            return 1
        image = NormalizedImage(source.path, source.path, width, height, source.file_name)
        item = ClassifiedImage(image, classifier.classify(source.file_name, width, height))
        classified.append(item)

        kind = "spread" if item.is_spread else "single"
        hint = f" pair={item.spread_hint}" if item.spread_hint else ""
        print(f"{source.file_name:40s} {width:5d}x{height:<5d} {kind}{hint}")

    size = resolve_canonical_size(classified, log=print)
    spreads = sum(1 for item in classified if item.is_spread)
    print(f"\n{len(classified)} images, {spreads} spreads, page size {size}")
    return 0


def _add_build_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-a", "--author", default="Unknown", help="Book author")
    parser.add_argument("-p", "--publisher", default="Unknown", help="Book publisher")
    parser.add_argument("-o", "--output", help="Output directory (default: inside each input folder)")
    parser.add_argument("-l", "--language", default="ja", help="Language code (ja, en, etc.)")
    parser.add_argument("--workers", type=int, default=4, help="Image processing threads")
    parser.add_argument("--keep-work-dir", action="store_true", help="Keep scratch files for inspection")


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="mangapipeline",
        description="Convert folders of scanned pages to right-to-left fixed-layout EPUB",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_convert = subparsers.add_parser(
        "convert",
        help="Convert one folder to EPUB",
    )
    p_convert.add_argument("input", help="Folder with page images")
    _add_build_options(p_convert)
    p_convert.set_defaults(func=cmd_convert)

    p_batch = subparsers.add_parser(
        "batch",
        help="Convert several folders, one EPUB each",
    )
    p_batch.add_argument("inputs", nargs="+", help="Folders with page images")
    _add_build_options(p_batch)
    p_batch.set_defaults(func=cmd_batch)

    p_classify = subparsers.add_parser(
        "classify",
        help="Show single/spread classification without building",
    )
    p_classify.add_argument("input", help="Folder with page images")
    p_classify.set_defaults(func=cmd_classify)

    args = parser.parse_args()
    setup_logging(args.verbose)

    try:
        return args.func(args)
    except ValueError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
