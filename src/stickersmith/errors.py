from __future__ import annotations

from enum import Enum
from typing import Optional, Sequence


class ErrorKind(str, Enum):
    DOWNLOAD_ERROR = "download_error"
    NO_CANDIDATE_AVAILABLE = "no_candidate_available"
    UNSUPPORTED_FORMAT = "unsupported_format"
    TOO_LARGE = "too_large"
    PROCESSING_ERROR = "processing_error"


class PipelineError(Exception):
    """Base class for every failure the sticker pipeline reports to its caller."""

    kind: ErrorKind = ErrorKind.PROCESSING_ERROR

    def __init__(self, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return self.message


class DownloadError(PipelineError):
    kind = ErrorKind.DOWNLOAD_ERROR

    def __init__(
        self,
        message: str,
        *,
        url: str,
        status_code: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.url = url
        self.status_code = status_code


class NoCandidateAvailable(PipelineError):
    kind = ErrorKind.NO_CANDIDATE_AVAILABLE

    def __init__(
        self,
        message: str,
        *,
        attempted: Sequence[str] = (),
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.attempted = tuple(attempted)


class UnsupportedFormat(PipelineError):
    kind = ErrorKind.UNSUPPORTED_FORMAT


class TooLarge(PipelineError):
    kind = ErrorKind.TOO_LARGE

    def __init__(self, message: str, *, size: int, limit: int) -> None:
        super().__init__(message)
        self.size = size
        self.limit = limit


class ProcessingError(PipelineError):
    kind = ErrorKind.PROCESSING_ERROR
