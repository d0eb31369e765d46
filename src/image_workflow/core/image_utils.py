"""Image decoding, resizing and exposure utilities for the pipeline stages."""

import io
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from PIL import Image

DEFAULT_WIDTH = 1920
DEFAULT_HEIGHT = 1080
JPEG_QUALITY = 90


@dataclass
class ImageBuffer:
    """Encoded image bytes plus the metadata read from their header."""

    data: bytes
    width: int
    height: int
    format: str

    @classmethod
    def from_bytes(cls, data: bytes) -> "ImageBuffer":
        """
        Read dimensions and format without decoding the pixel data.

        Raises:
            PIL.UnidentifiedImageError: If the bytes are not a known image format
        """
        with Image.open(io.BytesIO(data)) as image:
            return cls(
                data=data,
                width=image.width,
                height=image.height,
                format=image.format or "unknown",
            )

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    @property
    def dimensions(self) -> str:
        return f"{self.width}x{self.height}"

    def decode(self) -> Image.Image:
        image = Image.open(io.BytesIO(self.data))
        image.load()
        return image


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_target_dimensions(
    source_width: int,
    source_height: int,
    width: Optional[int] = None,
    height: Optional[int] = None,
    maintain_aspect_ratio: bool = True,
) -> Tuple[int, int]:
    """
    Calculate output dimensions for a resize request.

    Args:
        source_width: Width of the decoded source image
        source_height: Height of the decoded source image
        width: Requested width bound, if any
        height: Requested height bound, if any
        maintain_aspect_ratio: Fit inside the bounds instead of forcing them

    Returns:
        (width, height) of the image to produce. Never larger than the source
        in either dimension.
    """
    width = width or None
    height = height or None
    if width is None and height is None:
        width, height = DEFAULT_WIDTH, DEFAULT_HEIGHT

    if maintain_aspect_ratio:
        aspect_ratio = source_width / source_height
        if width and not height:
            target = (width, _round_half_up(width / aspect_ratio))
        elif height and not width:
            target = (_round_half_up(height * aspect_ratio), height)
        else:
            ratio = min(width / source_width, height / source_height)
            target = (
                _round_half_up(source_width * ratio),
                _round_half_up(source_height * ratio),
            )
        if target[0] > source_width or target[1] > source_height:
            # Fit-inside never enlarges; keep the source resolution.
            target = (source_width, source_height)
    else:
        target = (
            min(width or source_width, source_width),
            min(height or source_height, source_height),
        )

    return max(1, target[0]), max(1, target[1])


def resize_image(image: Image.Image, width: int, height: int) -> Image.Image:
    if image.size == (width, height):
        return image
    return image.resize((width, height), Image.Resampling.LANCZOS)


def encode_jpeg(image: Image.Image, quality: int = JPEG_QUALITY) -> ImageBuffer:
    """Encode as a progressive, optimized JPEG."""
    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")

    output_stream = io.BytesIO()
    image.save(
        output_stream,
        format="JPEG",
        quality=quality,
        progressive=True,
        optimize=True,
    )
    return ImageBuffer(
        data=output_stream.getvalue(),
        width=image.width,
        height=image.height,
        format="JPEG",
    )


@dataclass(frozen=True)
class ExposureParameters:
    """Gamma, brightness and contrast derived from one exposure adjustment."""

    adjustment: float
    gamma: float
    brightness: float
    contrast: float

    @property
    def offset(self) -> float:
        # Keeps the midpoint (128) fixed while contrast scales around it.
        return -(self.contrast - 1) * 128


def clamp_adjustment(adjustment: float) -> float:
    return max(-1.0, min(1.0, float(adjustment)))


def exposure_parameters(adjustment: float) -> ExposureParameters:
    """
    Derive exposure parameters from an adjustment in [-1, 1].

    Out-of-range adjustments are clamped first. Brightening maps gamma into
    [0.5, 1], darkening into [1, 1.8]; 0 yields the identity transform.
    """
    a = clamp_adjustment(adjustment)
    if a >= 0:
        gamma = 1 - 0.5 * a
        contrast = 1 + 0.1 * a
    else:
        gamma = 1 + 0.8 * abs(a)
        contrast = 1 - 0.1 * abs(a)
    return ExposureParameters(
        adjustment=a,
        gamma=gamma,
        brightness=1 + 0.3 * a,
        contrast=contrast,
    )


def apply_exposure(image: Image.Image, params: ExposureParameters) -> Image.Image:
    """Apply gamma correction, then brightness, then the linear contrast transform."""
    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")

    pixels = np.asarray(image, dtype=np.float64)

    pixels = 255.0 * np.power(pixels / 255.0, params.gamma)
    pixels = np.clip(pixels * params.brightness, 0.0, 255.0)
    pixels = np.clip(params.contrast * pixels + params.offset, 0.0, 255.0)

    return Image.fromarray(np.rint(pixels).astype(np.uint8))
