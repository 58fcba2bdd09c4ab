from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Sequence

DEFAULT_STICKER_URL_TEMPLATE = "https://media.discordapp.net/stickers/{sticker_id}.{extension}?size={size}"
DEFAULT_STICKER_EXTENSIONS: tuple[str, ...] = ("png", "gif", "webp", "jpg")


class ImageFormat(str, Enum):
    PNG = "png"
    JPEG = "jpeg"
    GIF = "gif"
    WEBP = "webp"
    UNKNOWN = "unknown"

    @property
    def mime_type(self) -> Optional[str]:
        if self is ImageFormat.UNKNOWN:
            return None
        return f"image/{self.value}"

    @property
    def extension(self) -> str:
        return "jpg" if self is ImageFormat.JPEG else self.value

    @property
    def pil_format(self) -> str:
        return self.value.upper()


@dataclass(frozen=True, slots=True)
class RawAsset:
    """Bytes as received, plus whatever the sender claimed about them."""

    data: bytes
    content_type: Optional[str] = None
    filename: Optional[str] = None
    source_url: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True, slots=True)
class SniffResult:
    format: ImageFormat
    is_animated: bool = False
    from_signature: bool = True

    @property
    def is_known(self) -> bool:
        return self.format is not ImageFormat.UNKNOWN


UNKNOWN_SNIFF = SniffResult(ImageFormat.UNKNOWN, is_animated=False, from_signature=False)


@dataclass(frozen=True, slots=True)
class NormalizedAsset:
    """Encoded sticker ready to be handed to the platform upload call."""

    data: bytes
    format: ImageFormat
    width: Optional[int] = None
    height: Optional[int] = None
    passthrough: bool = False

    @property
    def byte_length(self) -> int:
        return len(self.data)

    @property
    def content_type(self) -> Optional[str]:
        return self.format.mime_type


@dataclass(frozen=True, slots=True)
class Candidate:
    url: str
    extension: Optional[str] = None


@dataclass(frozen=True, slots=True)
class CandidateSource:
    """Ordered remote locations for the same asset; the first that downloads wins."""

    candidates: tuple[Candidate, ...]

    def __iter__(self) -> Iterator[Candidate]:
        return iter(self.candidates)

    def __len__(self) -> int:
        return len(self.candidates)

    @classmethod
    def from_urls(cls, urls: Sequence[str]) -> "CandidateSource":
        return cls(tuple(Candidate(url=url) for url in urls))

    @classmethod
    def for_sticker(
        cls,
        sticker_id: str,
        *,
        template: str = DEFAULT_STICKER_URL_TEMPLATE,
        extensions: Sequence[str] = DEFAULT_STICKER_EXTENSIONS,
        size: int = 160,
    ) -> "CandidateSource":
        sticker_id = str(sticker_id).strip()
        if not sticker_id.isdigit():
            raise ValueError("Sticker id must be a numeric snowflake")
        return cls(
            tuple(
                Candidate(
                    url=template.format(sticker_id=sticker_id, extension=extension, size=size),
                    extension=extension,
                )
                for extension in extensions
            )
        )


@dataclass(frozen=True, slots=True)
class AttachmentSource:
    """An uploaded attachment that still lives on the platform CDN."""

    url: str
    content_type: Optional[str] = None
    size: Optional[int] = None
    filename: Optional[str] = None
