from __future__ import annotations

import logging
import struct
from io import BytesIO
from typing import Optional

from PIL import Image, ImageOps

from ..config import PipelineConfig
from ..errors import ProcessingError, TooLarge, UnsupportedFormat
from ..models import ImageFormat, NormalizedAsset, SniffResult

logger = logging.getLogger(__name__)

# Parsing limit, well below Pillow's own decompression bomb threshold.
MAX_DECODE_PIXELS = 50_000_000

WEBP_VALID_CHUNKS = {b"VP8 ", b"VP8L", b"VP8X", b"ANIM", b"ANMF", b"ALPH", b"ICCP", b"EXIF", b"XMP "}


class StickerNormalizer:
    """Bring a sniffed asset within the platform's sticker constraints."""

    def __init__(self, config: PipelineConfig | None = None) -> None:
        self.config = config or PipelineConfig()

    def normalize(
        self,
        data: bytes,
        sniff_result: SniffResult,
        *,
        preserve_jpeg: Optional[bool] = None,
    ) -> NormalizedAsset:
        config = self.config
        if len(data) > config.max_input_bytes:
            raise TooLarge(
                f"Input is {len(data)} bytes, limit is {config.max_input_bytes}",
                size=len(data),
                limit=config.max_input_bytes,
            )

        fmt = sniff_result.format
        if fmt is ImageFormat.UNKNOWN:
            raise UnsupportedFormat("Unable to detect image format from file content")
        if fmt not in config.supported_formats:
            raise UnsupportedFormat(f"Image format '{fmt.value}' is not supported for stickers")

        if sniff_result.is_animated:
            logger.info("Passing animated %s through unchanged (%s bytes)", fmt.value, len(data))
            return self._pass_through(data, fmt)

        if fmt is ImageFormat.WEBP:
            validate_webp_structure(data)
            logger.info("Passing static webp through unchanged (%s bytes)", len(data))
            return self._pass_through(data, fmt)

        keep_jpeg = config.preserve_jpeg if preserve_jpeg is None else preserve_jpeg
        target = ImageFormat.JPEG if keep_jpeg and fmt is ImageFormat.JPEG else ImageFormat.PNG
        return self._normalize_static(data, target)

    def _pass_through(self, data: bytes, fmt: ImageFormat) -> NormalizedAsset:
        limit = self.config.max_sticker_bytes
        if len(data) > limit:
            raise TooLarge(
                f"Animated sticker is {len(data)} bytes, limit is {limit}",
                size=len(data),
                limit=limit,
            )
        return NormalizedAsset(data=data, format=fmt, passthrough=True)

    def _normalize_static(self, data: bytes, target: ImageFormat) -> NormalizedAsset:
        image = self._decode(data)
        canvas = self.fit_to_canvas(image)
        limit = self.config.max_sticker_bytes

        encoded = self._encode(canvas, target, escalate=False)
        if len(encoded) > limit:
            logger.info(
                "Encoded %s is %s bytes (limit %s), retrying with stronger compression",
                target.value,
                len(encoded),
                limit,
            )
            encoded = self._encode(canvas, target, escalate=True)
            if len(encoded) > limit:
                raise TooLarge(
                    f"Sticker is still {len(encoded)} bytes after compression, limit is {limit}",
                    size=len(encoded),
                    limit=limit,
                )

        logger.info("Normalized sticker to %sx%s %s (%s bytes)", *canvas.size, target.value, len(encoded))
        return NormalizedAsset(
            data=encoded,
            format=target,
            width=canvas.width,
            height=canvas.height,
        )

    def _decode(self, data: bytes) -> Image.Image:
        try:
            with Image.open(BytesIO(data)) as opened:
                width, height = opened.size
                if width * height > MAX_DECODE_PIXELS:
                    raise ProcessingError(
                        f"Image has {width * height:,} pixels, exceeds limit of {MAX_DECODE_PIXELS:,}"
                    )
                logger.debug("Decoding %s image %sx%s", opened.format, width, height)
                oriented = ImageOps.exif_transpose(opened)
                return oriented.convert("RGBA")
        except ProcessingError:
            raise
        except Image.DecompressionBombError as exc:
            raise ProcessingError(f"Decompression bomb detected: {exc}", cause=exc) from exc
        except (OSError, ValueError, SyntaxError) as exc:
            raise ProcessingError(f"Failed to decode image: {exc}", cause=exc) from exc

    def fit_to_canvas(self, image: Image.Image) -> Image.Image:
        """Return an RGBA image exactly ``canvas_size`` pixels square."""

        size = self.config.canvas_size
        if image.mode != "RGBA":
            image = image.convert("RGBA")
        if self.config.fit == "cover":
            return ImageOps.fit(image, (size, size), method=Image.Resampling.LANCZOS, centering=(0.5, 0.5))

        width, height = image.size
        scale = min(size / width, size / height)
        target_width = min(size, max(1, round(width * scale)))
        target_height = min(size, max(1, round(height * scale)))
        if (target_width, target_height) != image.size:
            image = image.resize((target_width, target_height), Image.Resampling.LANCZOS)

        canvas = Image.new("RGBA", (size, size), self.config.background)
        offset = ((size - target_width) // 2, (size - target_height) // 2)
        canvas.alpha_composite(image, dest=offset)
        return canvas

    def _encode(self, image: Image.Image, target: ImageFormat, *, escalate: bool) -> bytes:
        buffer = BytesIO()
        try:
            if target is ImageFormat.JPEG:
                quality = self.config.escalated_jpeg_quality if escalate else self.config.jpeg_quality
                flattened = Image.new("RGB", image.size, self.config.background[:3])
                flattened.paste(image, mask=image.getchannel("A"))
                flattened.save(buffer, format="JPEG", quality=quality, optimize=True)
            elif escalate:
                quantized = image.quantize(colors=256, method=Image.Quantize.FASTOCTREE)
                quantized.save(buffer, format="PNG", optimize=True, compress_level=9)
            else:
                image.save(buffer, format="PNG", compress_level=self.config.png_compress_level)
        except (OSError, ValueError) as exc:
            raise ProcessingError(f"Failed to encode {target.value}: {exc}", cause=exc) from exc
        return buffer.getvalue()


def validate_webp_structure(data: bytes) -> None:
    """Walk the RIFF container and reject malformed WebP files.

    Raises:
        UnsupportedFormat: If the container or a chunk header is invalid.
    """

    if len(data) < 12 or data[:4] != b"RIFF" or data[8:12] != b"WEBP":
        raise UnsupportedFormat("Invalid WebP: missing RIFF/WEBP header")

    declared_size = struct.unpack("<I", data[4:8])[0]
    actual_size = len(data) - 8
    if declared_size > actual_size + 1:
        logger.warning("WebP declared size mismatch: declared=%s, actual=%s", declared_size, actual_size)
        raise UnsupportedFormat("Invalid WebP: size mismatch")

    offset = 12
    chunk_count = 0
    while offset + 8 <= len(data) and chunk_count < 100:
        chunk_type = data[offset : offset + 4]
        chunk_size = struct.unpack("<I", data[offset + 4 : offset + 8])[0]
        if chunk_type not in WEBP_VALID_CHUNKS and not all(32 <= b < 127 for b in chunk_type):
            raise UnsupportedFormat("Invalid WebP: malformed chunk type")
        chunk_end = offset + 8 + chunk_size
        if chunk_end > len(data) + 1:
            raise UnsupportedFormat("Invalid WebP: chunk extends beyond file")
        offset = chunk_end + (chunk_size % 2)
        chunk_count += 1

    if chunk_count == 0:
        raise UnsupportedFormat("Invalid WebP: no chunks found")
