from .config import PipelineConfig
from .errors import (
    DownloadError,
    ErrorKind,
    NoCandidateAvailable,
    PipelineError,
    ProcessingError,
    TooLarge,
    UnsupportedFormat,
)
from .image_processing.normalizer import StickerNormalizer
from .image_processing.pipeline import StickerPipeline
from .media.downloader import ImageDownloader
from .media.sniffer import sniff, sniff_asset
from .models import (
    AttachmentSource,
    Candidate,
    CandidateSource,
    ImageFormat,
    NormalizedAsset,
    RawAsset,
    SniffResult,
)

__all__ = [
    "PipelineConfig",
    "DownloadError",
    "ErrorKind",
    "NoCandidateAvailable",
    "PipelineError",
    "ProcessingError",
    "TooLarge",
    "UnsupportedFormat",
    "StickerNormalizer",
    "StickerPipeline",
    "ImageDownloader",
    "sniff",
    "sniff_asset",
    "AttachmentSource",
    "Candidate",
    "CandidateSource",
    "ImageFormat",
    "NormalizedAsset",
    "RawAsset",
    "SniffResult",
]
