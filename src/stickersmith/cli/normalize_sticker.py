from __future__ import annotations

import argparse
import dataclasses
import logging
from pathlib import Path
from typing import Optional, Sequence

from ..config import FIT_POLICIES, PipelineConfig
from ..errors import PipelineError
from ..image_processing.pipeline import StickerPipeline, StickerSource
from ..models import AttachmentSource, NormalizedAsset, RawAsset

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Normalize an image into a platform sticker")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("input", nargs="?", help="Local image path or http(s) URL")
    source.add_argument("--sticker-id", default=None, help="Copy an existing sticker by its numeric id")
    parser.add_argument(
        "--output", type=Path, default=None, help="Where to write the sticker (default: derived from input)"
    )
    parser.add_argument("--fit", choices=FIT_POLICIES, default=None, help="How to fit static images on the canvas")
    parser.add_argument("--preserve-jpeg", action="store_true", help="Keep JPEG input as JPEG output")
    parser.add_argument("--canvas", type=int, default=None, help="Target canvas size in pixels")
    parser.add_argument("--max-bytes", type=int, default=None, help="Byte ceiling for the output sticker")
    parser.add_argument("--timeout", type=float, default=None, help="Network timeout in seconds")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def _build_config(args: argparse.Namespace) -> PipelineConfig:
    config = PipelineConfig.from_env()
    overrides: dict[str, object] = {}
    if args.fit is not None:
        overrides["fit"] = args.fit
    if args.preserve_jpeg:
        overrides["preserve_jpeg"] = True
    if args.canvas is not None:
        overrides["canvas_size"] = args.canvas
    if args.max_bytes is not None:
        overrides["max_sticker_bytes"] = args.max_bytes
    if args.timeout is not None:
        overrides["timeout"] = args.timeout
    return dataclasses.replace(config, **overrides)


def _build_source(args: argparse.Namespace) -> tuple[Optional[StickerSource], str]:
    if args.sticker_id:
        return None, f"sticker_{args.sticker_id}"

    value: str = args.input.strip()
    if value.startswith(("http://", "https://")):
        stem = Path(value.split("?", 1)[0]).stem or "sticker"
        return AttachmentSource(url=value), stem

    path = Path(value)
    data = path.read_bytes()
    return RawAsset(data=data, filename=path.name), path.stem


def _default_output(stem: str, result: NormalizedAsset) -> Path:
    return Path(f"{stem}_sticker.{result.format.extension}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        config = _build_config(args)
        source, stem = _build_source(args)
    except (ValueError, OSError) as exc:
        logger.error("Invalid input: %s", exc)
        return 2

    pipeline = StickerPipeline.from_config(config)
    try:
        if source is None:
            result = pipeline.copy_sticker(args.sticker_id)
        else:
            result = pipeline.run(source)
    except PipelineError as exc:
        logger.error("Sticker pipeline failed (%s): %s", exc.kind.value, exc)
        return 1
    except ValueError as exc:
        logger.error("Invalid input: %s", exc)
        return 2

    output = args.output or _default_output(stem, result)
    output.write_bytes(result.data)
    logger.info("Stored %s sticker (%s bytes) at %s", result.format.value, result.byte_length, output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
