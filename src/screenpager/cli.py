"""Command-line interface for screenpager.

Provides the main entry point for recording the screen, replaying a
directory of screenshots through the pipeline, running individual
components for testing, and starting the control endpoint.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="screenpager",
        description="Capture a screen region and segment it into pages of extracted text",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/screenpager.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    record_parser = subparsers.add_parser("record", help="Record the screen until Ctrl+C")
    _add_session_args(record_parser)
    record_parser.add_argument(
        "--duration", type=float, default=None,
        help="Stop after this many seconds",
    )

    replay_parser = subparsers.add_parser(
        "replay", help="Run a directory of screenshots through the pipeline",
    )
    replay_parser.add_argument("directory", type=Path, help="Directory of images, sorted by name")
    _add_session_args(replay_parser)

    compare_parser = subparsers.add_parser(
        "compare", help="Show change and direction results for two images",
    )
    compare_parser.add_argument("previous", type=Path)
    compare_parser.add_argument("current", type=Path)

    extract_parser = subparsers.add_parser("extract", help="Extract text from an image file")
    extract_parser.add_argument("image", type=Path)
    extract_parser.add_argument(
        "--mode", choices=["local", "cloud", "anthropic"], default=None,
        help="Extraction mode (default: from config)",
    )

    subparsers.add_parser("serve", help="Start the HTTP control endpoint")

    return parser.parse_args(argv)


def _add_session_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--region", type=str, default=None,
        help="Capture region as x,y,width,height (default: from config)",
    )
    parser.add_argument(
        "--full-display", action="store_true",
        help="Capture the whole display instead of a region",
    )
    parser.add_argument(
        "--mode", choices=["local", "cloud", "anthropic"], default=None,
        help="Extraction mode (default: from config)",
    )
    parser.add_argument(
        "-o", "--output", type=Path, default=None,
        help="Write the resulting pages to this JSON file",
    )


def _print_event(event) -> None:
    """Print scheduler events as one line each."""
    kind = event.type
    if kind == "state-changed":
        print(f"[state] {event.state.value} (captures: {event.capture_count})")
    elif kind == "page-boundary":
        print(f"[page] {event.event} #{event.page_index}")
    elif kind == "screenshot-captured":
        text = (event.extracted_text or "").strip().replace("\n", " ")
        marker = " (scroll up)" if event.is_scroll_up else ""
        print(f"[shot] {event.id}{marker}: {text[:80]}")


def _write_pages(pages, path: Path) -> None:
    data = [
        page.model_dump(mode="json", exclude={"screenshots": {"__all__": {"image_data"}}})
        for page in pages
    ]
    path.write_text(json.dumps(data, indent=2))
    print(f"Wrote {len(pages)} pages to {path}")


def _print_pages(pages) -> None:
    print()
    for page in pages:
        print("=" * 60)
        print(f"Page {page.index} ({len(page.screenshots)} screenshots)")
        print("=" * 60)
        print(page.combined_text or "(no text)")
    print()


def _build_scheduler(settings, source, mode: str | None, timed: bool = True):
    from screenpager.extraction.dispatcher import ExtractionDispatcher
    from screenpager.scheduler.loop import CaptureScheduler

    dispatcher = ExtractionDispatcher(settings, mode=mode)
    scheduler = CaptureScheduler.from_settings(
        settings, source, dispatcher=dispatcher, timed=timed
    )
    scheduler.emitter.subscribe(_print_event)
    return scheduler


def _session_region(args):
    from screenpager.domain.models import Region

    return Region.parse(args.region) if args.region else None


async def _record(settings, args) -> None:
    """Record the live screen until the duration elapses or Ctrl+C."""
    from screenpager.capture.screen import ScreenCapture

    source = ScreenCapture(monitor=settings.capture.monitor)
    scheduler = _build_scheduler(settings, source, args.mode)
    await scheduler.dispatcher.warm_up()

    async with source:
        try:
            await scheduler.start(
                _session_region(args), is_full_display=args.full_display or None
            )
        except ValueError:
            await scheduler.close()
            raise
        try:
            if args.duration:
                await asyncio.sleep(args.duration)
            else:
                await asyncio.Event().wait()
        except asyncio.CancelledError:
            pass
        finally:
            pages = await scheduler.stop()
            await scheduler.close()

    _print_pages(pages)
    if args.output:
        _write_pages(pages, args.output)


async def _replay(settings, args) -> None:
    """Feed every image in a directory through the pipeline in order."""
    from screenpager.capture.files import ImageSequenceCapture

    source = ImageSequenceCapture.from_directory(args.directory)
    if source.exhausted:
        print(f"No images found in {args.directory}")
        return

    # Frames are pulled one by one below, so no timer
    scheduler = _build_scheduler(settings, source, args.mode, timed=False)
    region = _session_region(args)
    async with source:
        await scheduler.start(region, is_full_display=region is None)
        while not source.exhausted:
            await scheduler.capture_once()
        pages = await scheduler.stop()
        await scheduler.close()

    _print_pages(pages)
    if args.output:
        _write_pages(pages, args.output)


def _compare(settings, args) -> None:
    """Print change-detection and direction results for two images."""
    import cv2
    from screenpager.detection.change import ChangeDetector
    from screenpager.detection.direction import DirectionClassifier

    prev = cv2.imread(str(args.previous), cv2.IMREAD_COLOR)
    curr = cv2.imread(str(args.current), cv2.IMREAD_COLOR)
    if prev is None or curr is None:
        print("Could not read one of the images", file=sys.stderr)
        sys.exit(1)

    det = settings.detection
    detector = ChangeDetector(
        threshold=settings.capture.change_threshold,
        compare_size=det.compare_size,
        pixel_tolerance=det.pixel_tolerance,
    )
    classifier = DirectionClassifier(sample_rate=det.band_sample_rate, tolerance=det.band_tolerance)

    change = detector.compare(prev, curr)
    direction = classifier.classify(prev, curr)

    print(f"Changed:    {change.changed} ({change.ratio * 100:.2f}% pixels differ)")
    print(f"Direction:  {direction.direction.value} (confidence {direction.confidence:.2f})")
    if direction.scroll_direction is not None:
        print(f"Scroll:     {direction.scroll_direction.value}")
    if direction.similarity is not None:
        s = direction.similarity
        print(
            f"Bands:      top {s.top:.1f}%  middle {s.middle:.1f}%  "
            f"bottom {s.bottom:.1f}%  overall {s.overall:.1f}%"
        )


async def _extract(settings, args) -> None:
    """Run the configured extraction provider on one image."""
    import cv2
    from screenpager.extraction.dispatcher import ExtractionDispatcher

    image = cv2.imread(str(args.image), cv2.IMREAD_COLOR)
    if image is None:
        print(f"Could not read {args.image}", file=sys.stderr)
        sys.exit(1)

    dispatcher = ExtractionDispatcher(settings, mode=args.mode)
    try:
        info = await dispatcher.provider_info()
        print(f"Provider: {info['name']} (mode {info['mode']}, configured: {info['configured']})")
        result = await dispatcher.extract(image)
    finally:
        await dispatcher.close()

    print(f"Confidence: {result.confidence:.2f}  Time: {result.elapsed_ms:.0f} ms")
    print("-" * 40)
    print(result.text or "(no text)")
    print("-" * 40)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the screenpager CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from screenpager.config.settings import load_settings
    from screenpager.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    if args.command == "record":
        logger.info("Starting recording")
        try:
            asyncio.run(_record(settings, args))
        except KeyboardInterrupt:
            logger.info("Recording interrupted")
        except ValueError as e:
            print(f"Cannot start recording: {e}", file=sys.stderr)
            print("Pass --region X,Y,W,H or --full-display.", file=sys.stderr)
            sys.exit(2)

    elif args.command == "replay":
        logger.info("Replaying %s", args.directory)
        asyncio.run(_replay(settings, args))

    elif args.command == "compare":
        _compare(settings, args)

    elif args.command == "extract":
        asyncio.run(_extract(settings, args))

    elif args.command == "serve":
        logger.info("Starting control endpoint")
        from screenpager.endpoint.server import main as serve

        serve(settings)


if __name__ == "__main__":
    main()
