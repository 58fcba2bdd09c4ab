"""Content-based image format detection.

The sniffer looks at the bytes only. Claimed content types are never
consulted, and a filename is used only when the buffer is too short to
carry any signature.
"""
from __future__ import annotations

import logging
import struct
from pathlib import PurePosixPath
from typing import Optional

from ..models import UNKNOWN_SNIFF, ImageFormat, RawAsset, SniffResult

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
GIF_SIGNATURE = b"GIF8"
JPEG_SIGNATURE = b"\xff\xd8\xff"
RIFF_SIGNATURE = b"RIFF"
WEBP_TAG = b"WEBP"

# Enough to tell every supported signature apart (RIFF....WEBP).
# Buffers at least this long are judged on content alone.
MIN_SIGNATURE_BYTES = 12

_GIF_IMAGE_SEPARATOR = 0x2C
_GIF_EXTENSION_INTRODUCER = 0x21
_GIF_TRAILER = 0x3B

_EXTENSION_FORMATS = {
    ".png": ImageFormat.PNG,
    ".apng": ImageFormat.PNG,
    ".jpg": ImageFormat.JPEG,
    ".jpeg": ImageFormat.JPEG,
    ".gif": ImageFormat.GIF,
    ".webp": ImageFormat.WEBP,
}


def sniff(data: bytes, filename: Optional[str] = None) -> SniffResult:
    """Classify *data* by signature and report whether it is animated.

    Never raises; anything unrecognised comes back as ``UNKNOWN``.
    """

    try:
        fmt = detect_signature(data)
        if fmt is ImageFormat.PNG:
            return SniffResult(fmt, is_animated=_png_is_animated(data))
        if fmt is ImageFormat.GIF:
            return SniffResult(fmt, is_animated=count_gif_frames(data) > 1)
        if fmt is ImageFormat.WEBP:
            return SniffResult(fmt, is_animated=_webp_is_animated(data))
        if fmt is ImageFormat.JPEG:
            return SniffResult(fmt, is_animated=False)
    except Exception:  # noqa: BLE001 - sniffing must not raise
        logger.debug("Signature inspection failed", exc_info=True)
        return UNKNOWN_SNIFF

    if len(data) >= MIN_SIGNATURE_BYTES:
        return UNKNOWN_SNIFF

    fallback = format_from_filename(filename)
    if fallback is not ImageFormat.UNKNOWN:
        logger.debug("No signature matched, classified %s by extension as %s", filename, fallback.value)
        return SniffResult(fallback, is_animated=False, from_signature=False)
    return UNKNOWN_SNIFF


def sniff_asset(asset: RawAsset) -> SniffResult:
    return sniff(asset.data, asset.filename)


def detect_signature(data: bytes) -> ImageFormat:
    if data.startswith(PNG_SIGNATURE):
        return ImageFormat.PNG
    if data.startswith(GIF_SIGNATURE):
        return ImageFormat.GIF
    if data.startswith(JPEG_SIGNATURE):
        return ImageFormat.JPEG
    if data.startswith(RIFF_SIGNATURE) and data[8:12] == WEBP_TAG:
        return ImageFormat.WEBP
    return ImageFormat.UNKNOWN


def format_from_filename(filename: Optional[str]) -> ImageFormat:
    if not filename:
        return ImageFormat.UNKNOWN
    path = filename.split("?", 1)[0].split("#", 1)[0]
    suffix = PurePosixPath(path).suffix.lower()
    return _EXTENSION_FORMATS.get(suffix, ImageFormat.UNKNOWN)


def count_gif_frames(data: bytes, *, stop_after: int = 2) -> int:
    """Count image descriptors by walking the GIF block structure.

    Counting stops at *stop_after* since callers only care whether there is
    more than one frame. A truncated stream yields the frames seen so far.
    """

    size = len(data)
    if size < 13:
        return 0

    packed = data[10]
    pos = 13
    if packed & 0x80:
        pos += 3 * (1 << ((packed & 0x07) + 1))

    frames = 0
    while pos < size:
        introducer = data[pos]
        if introducer == _GIF_IMAGE_SEPARATOR:
            if pos + 10 > size:
                break
            frames += 1
            if frames >= stop_after:
                break
            local_packed = data[pos + 9]
            pos += 10
            if local_packed & 0x80:
                pos += 3 * (1 << ((local_packed & 0x07) + 1))
            # LZW minimum code size precedes the data sub-blocks
            pos = _skip_sub_blocks(data, pos + 1)
        elif introducer == _GIF_EXTENSION_INTRODUCER:
            pos = _skip_sub_blocks(data, pos + 2)
        elif introducer == _GIF_TRAILER:
            break
        else:
            logger.debug("Unexpected GIF block introducer 0x%02x at offset %s", introducer, pos)
            break
    return frames


def _skip_sub_blocks(data: bytes, pos: int) -> int:
    size = len(data)
    while pos < size:
        block_size = data[pos]
        pos += 1
        if block_size == 0:
            return pos
        pos += block_size
    return size


def _png_is_animated(data: bytes) -> bool:
    pos = len(PNG_SIGNATURE)
    size = len(data)
    while pos + 8 <= size:
        (length,) = struct.unpack(">I", data[pos : pos + 4])
        chunk_type = data[pos + 4 : pos + 8]
        if not chunk_type.isalpha():
            break
        if chunk_type == b"acTL":
            return True
        if chunk_type in (b"IDAT", b"IEND"):
            # acTL must precede the first IDAT
            return False
        pos += 12 + length
    logger.debug("PNG chunk walk ended early, searching for acTL tag")
    return b"acTL" in data


def _webp_is_animated(data: bytes) -> bool:
    pos = 12
    size = len(data)
    while pos + 8 <= size:
        chunk_type = data[pos : pos + 4]
        (length,) = struct.unpack("<I", data[pos + 4 : pos + 8])
        if chunk_type == b"VP8X" and pos + 8 < size:
            if data[pos + 8] & 0x02:
                return True
        elif chunk_type in (b"ANIM", b"ANMF"):
            return True
        pos += 8 + length + (length & 1)
    return False
