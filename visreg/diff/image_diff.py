"""Image diff engine: dimension-tolerant comparison of two encoded rasters."""

from __future__ import annotations

import io
import logging
from pathlib import Path

import numpy as np
from PIL import Image

from visreg.diff.pixel_compare import pixel_diff, render_diff
from visreg.models.comparison import DiffResult
from visreg.models.config import DiffOptions

logger = logging.getLogger(__name__)


def decode_rgba(data: bytes) -> np.ndarray:
    """Decode an encoded image to an (height, width, 4) uint8 array."""
    with Image.open(io.BytesIO(data)) as img:
        return np.asarray(img.convert("RGBA"), dtype=np.uint8)


def encode_png(rgba: np.ndarray) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(rgba).save(buf, format="PNG")
    return buf.getvalue()


def pad_to(rgba: np.ndarray, width: int, height: int) -> np.ndarray:
    """Zero-pad (transparent) to width x height, keeping the image top-left aligned."""
    h, w = rgba.shape[:2]
    if (w, h) == (width, height):
        return rgba
    padded = np.zeros((height, width, 4), dtype=np.uint8)
    padded[:h, :w] = rgba
    return padded


def compare_images(before: bytes, after: bytes, options: DiffOptions | None = None) -> DiffResult:
    """Compare two encoded rasters.

    Byte-identical inputs short-circuit without decoding. Any other pair is
    reported as changed, with ``diff_pixels`` possibly zero when the
    difference is below the threshold or only anti-aliasing. Both rasters
    are padded to the larger of each dimension so a resized component is
    reported as changed pixels rather than an error.

    Raises OSError (``PIL.UnidentifiedImageError``) when either side does
    not decode.
    """
    options = options or DiffOptions()

    if before == after:
        return DiffResult(changed=False)

    before_px = decode_rgba(before)
    after_px = decode_rgba(after)

    height = max(before_px.shape[0], after_px.shape[0])
    width = max(before_px.shape[1], after_px.shape[1])
    if before_px.shape != after_px.shape:
        logger.debug("Size mismatch: %dx%d vs %dx%d, padding to %dx%d",
                     before_px.shape[1], before_px.shape[0],
                     after_px.shape[1], after_px.shape[0], width, height)
    before_px = pad_to(before_px, width, height)
    after_px = pad_to(after_px, width, height)

    diff_mask, aa_mask = pixel_diff(
        before_px, after_px,
        threshold=options.threshold,
        include_aa=options.include_anti_aliasing,
    )
    diff_pixels = int(diff_mask.sum())

    raster = render_diff(
        after_px, diff_mask, aa_mask,
        alpha=options.alpha,
        diff_color=options.diff_color,
        aa_color=options.aa_color,
    )

    return DiffResult(
        changed=True,
        diff_pixels=diff_pixels,
        width=width,
        height=height,
        diff_image=encode_png(raster),
    )


def compare_image_files(before_path: Path, after_path: Path, options: DiffOptions | None = None) -> DiffResult:
    """Compare two image files; a missing side counts as changed, not as an error."""
    if not before_path.exists() or not after_path.exists():
        missing = before_path if not before_path.exists() else after_path
        logger.debug("Cannot compare, %s is missing; assuming changed", missing)
        return DiffResult(changed=True)
    return compare_images(before_path.read_bytes(), after_path.read_bytes(), options)
