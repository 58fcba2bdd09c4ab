from __future__ import annotations

import logging
from typing import Optional, Union

from ..config import PipelineConfig
from ..errors import TooLarge, UnsupportedFormat
from ..media.downloader import ImageDownloader
from ..media.sniffer import sniff_asset
from ..models import AttachmentSource, CandidateSource, NormalizedAsset, RawAsset
from .normalizer import StickerNormalizer

logger = logging.getLogger(__name__)

StickerSource = Union[RawAsset, AttachmentSource, CandidateSource]


class StickerPipeline:
    """Fetch, sniff and normalize one sticker asset per call."""

    def __init__(
        self,
        downloader: ImageDownloader,
        normalizer: StickerNormalizer | None = None,
        config: PipelineConfig | None = None,
    ) -> None:
        self.config = config or (normalizer.config if normalizer is not None else PipelineConfig())
        self.downloader = downloader
        self.normalizer = normalizer or StickerNormalizer(self.config)

    @classmethod
    def from_config(cls, config: PipelineConfig | None = None) -> "StickerPipeline":
        config = config or PipelineConfig()
        downloader = ImageDownloader(
            timeout=config.timeout,
            user_agent=config.user_agent,
            max_bytes=config.max_download_bytes,
        )
        return cls(downloader=downloader, normalizer=StickerNormalizer(config), config=config)

    def run(self, source: StickerSource, *, preserve_jpeg: Optional[bool] = None) -> NormalizedAsset:
        if isinstance(source, RawAsset):
            self._check_claims(source.content_type, source.size)
            asset = source
        elif isinstance(source, AttachmentSource):
            self._check_claims(source.content_type, source.size)
            fetched = self.downloader.fetch(source.url)
            asset = RawAsset(
                data=fetched.data,
                content_type=source.content_type or fetched.content_type,
                filename=source.filename or fetched.filename,
                source_url=source.url,
            )
        elif isinstance(source, CandidateSource):
            asset = self.downloader.fetch_first_success(source)
        else:
            raise TypeError(f"Unsupported sticker source: {type(source).__name__}")

        sniffed = sniff_asset(asset)
        logger.info(
            "Sniffed %s as %s (animated=%s, %s bytes)",
            asset.filename or asset.source_url or "upload",
            sniffed.format.value,
            sniffed.is_animated,
            asset.size,
        )
        return self.normalizer.normalize(asset.data, sniffed, preserve_jpeg=preserve_jpeg)

    def copy_sticker(self, sticker_id: str, *, preserve_jpeg: Optional[bool] = None) -> NormalizedAsset:
        candidates = CandidateSource.for_sticker(
            sticker_id,
            template=self.config.sticker_url_template,
            size=self.config.sticker_size,
        )
        logger.info("Copying sticker %s from %s candidate URLs", sticker_id, len(candidates))
        return self.run(candidates, preserve_jpeg=preserve_jpeg)

    def _check_claims(self, content_type: Optional[str], size: Optional[int]) -> None:
        if content_type:
            media_type = content_type.split(";", 1)[0].strip().lower()
            if media_type not in self.config.allowed_content_types:
                raise UnsupportedFormat(
                    f"Invalid file type {media_type!r}. Please upload a PNG, JPEG, GIF, or WebP image."
                )
        if size is not None and size > self.config.max_input_bytes:
            raise TooLarge(
                f"File is {size} bytes, uploads must be under {self.config.max_input_bytes} bytes",
                size=size,
                limit=self.config.max_input_bytes,
            )
