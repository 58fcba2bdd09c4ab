from __future__ import annotations

import os
import struct
from io import BytesIO

import pytest
from PIL import Image


def encode(image: Image.Image, fmt: str, **params) -> bytes:
    buffer = BytesIO()
    image.save(buffer, format=fmt, **params)
    return buffer.getvalue()


def noise_image(width: int, height: int, mode: str = "RGB") -> Image.Image:
    channels = len(mode)
    return Image.frombytes(mode, (width, height), os.urandom(width * height * channels))


def animated_gif(frames: int = 3, size: tuple[int, int] = (32, 32)) -> bytes:
    colors = [(255, 0, 0), (0, 255, 0), (0, 0, 255), (255, 255, 0)]
    images = [Image.new("RGB", size, colors[index % len(colors)]) for index in range(frames)]
    return encode(images[0], "GIF", save_all=True, append_images=images[1:], duration=100, loop=0)


def riff_webp(*chunks: tuple[bytes, bytes]) -> bytes:
    body = b"WEBP"
    for chunk_type, payload in chunks:
        body += chunk_type + struct.pack("<I", len(payload)) + payload
        if len(payload) % 2:
            body += b"\x00"
    return b"RIFF" + struct.pack("<I", len(body)) + body


@pytest.fixture
def static_png() -> bytes:
    image = Image.new("RGBA", (200, 100), (255, 0, 0, 255))
    return encode(image, "PNG")


@pytest.fixture
def gif_bytes() -> bytes:
    return animated_gif()
