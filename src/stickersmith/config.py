from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping, Optional

from .models import DEFAULT_STICKER_URL_TEMPLATE, ImageFormat

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
)

FIT_POLICIES = ("contain", "cover")

_ENV_KEYS = {
    "STICKER_CANVAS_SIZE": "canvas_size",
    "STICKER_MAX_BYTES": "max_sticker_bytes",
    "STICKER_MAX_INPUT_BYTES": "max_input_bytes",
    "STICKER_TIMEOUT": "timeout",
    "STICKER_USER_AGENT": "user_agent",
    "STICKER_FIT": "fit",
    "STICKER_PRESERVE_JPEG": "preserve_jpeg",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    """Platform limits and encoder settings shared by every pipeline stage."""

    canvas_size: int = 320
    max_sticker_bytes: int = 512_000
    max_input_bytes: int = 10 * 1024 * 1024
    max_download_bytes: int = 10 * 1024 * 1024
    timeout: float = 10.0
    user_agent: str = DEFAULT_USER_AGENT
    fit: str = "contain"
    background: tuple[int, int, int, int] = (0, 0, 0, 0)
    preserve_jpeg: bool = False
    jpeg_quality: int = 90
    escalated_jpeg_quality: int = 70
    png_compress_level: int = 6
    supported_formats: frozenset[ImageFormat] = field(
        default_factory=lambda: frozenset(
            {ImageFormat.PNG, ImageFormat.JPEG, ImageFormat.GIF, ImageFormat.WEBP}
        )
    )
    allowed_content_types: frozenset[str] = field(
        default_factory=lambda: frozenset(
            {"image/png", "image/jpeg", "image/jpg", "image/gif", "image/webp"}
        )
    )
    sticker_url_template: str = DEFAULT_STICKER_URL_TEMPLATE
    sticker_size: int = 160

    def __post_init__(self) -> None:
        if self.canvas_size <= 0:
            raise ValueError("canvas_size must be positive")
        if self.max_sticker_bytes <= 0 or self.max_input_bytes <= 0:
            raise ValueError("Byte ceilings must be positive")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.fit not in FIT_POLICIES:
            raise ValueError(f"fit must be one of {', '.join(FIT_POLICIES)}")
        if len(self.background) != 4:
            raise ValueError("background must be an RGBA tuple")

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        *,
        env_file: Optional[Path] = Path(".env"),
    ) -> "PipelineConfig":
        """Build a config from ``STICKER_*`` variables, then a ``.env`` file."""

        environ = os.environ if environ is None else environ
        file_values = _read_env_file(env_file) if env_file is not None else {}

        overrides: dict[str, object] = {}
        for key, attribute in _ENV_KEYS.items():
            raw = environ.get(key)
            if raw is None:
                raw = file_values.get(key)
            if raw is None:
                continue
            overrides[attribute] = _coerce(attribute, raw.strip(), key)

        if overrides:
            logger.debug("Config overrides from environment: %s", sorted(overrides))
        return replace(cls(), **overrides)


def _coerce(attribute: str, raw: str, key: str) -> object:
    if attribute in ("canvas_size", "max_sticker_bytes", "max_input_bytes"):
        try:
            return int(raw)
        except ValueError as exc:
            raise ValueError(f"{key} must be an integer, got {raw!r}") from exc
    if attribute == "timeout":
        try:
            return float(raw)
        except ValueError as exc:
            raise ValueError(f"{key} must be a number, got {raw!r}") from exc
    if attribute == "preserve_jpeg":
        lowered = raw.lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ValueError(f"{key} must be a boolean, got {raw!r}")
    if attribute == "fit":
        return raw.lower()
    return raw


def _read_env_file(env_path: Path) -> dict[str, str]:
    values: dict[str, str] = {}
    if not env_path.exists():
        return values

    try:
        for line in env_path.read_text(encoding="utf-8").splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if "=" not in stripped:
                continue
            key, raw_value = stripped.split("=", 1)
            key = key.strip()
            if key in _ENV_KEYS:
                values[key] = raw_value.strip().strip('"').strip("'")
    except OSError:
        logger.debug("Unable to read %s for sticker settings", env_path, exc_info=True)
    return values
