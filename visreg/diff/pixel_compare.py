"""Perceptual pixel comparison over RGBA numpy buffers.

Colors are compared in YIQ space, the way pixelmatch does it: a pixel counts
as different when its weighted YIQ delta exceeds ``35215 * threshold**2``
(35215 being the largest possible delta). Differences that look like
anti-aliasing, judged from each pixel's 3x3 neighborhood in both images, are
painted separately and not counted.
"""

from __future__ import annotations

import numpy as np

MAX_YIQ_DELTA = 35215.0

# (dx, dy) in the scan order neighbors are visited; first extreme wins ties.
_NEIGHBOR_OFFSETS = [(dx, dy) for dx in (-1, 0, 1) for dy in (-1, 0, 1) if (dx, dy) != (0, 0)]


def _blend_white(rgba: np.ndarray) -> np.ndarray:
    """Composite RGBA over white; returns float RGB."""
    rgb = rgba[..., :3].astype(np.float64)
    alpha = rgba[..., 3:4].astype(np.float64) / 255.0
    return 255.0 + (rgb - 255.0) * alpha


def _to_y(rgb: np.ndarray) -> np.ndarray:
    return rgb[..., 0] * 0.29889531 + rgb[..., 1] * 0.58662247 + rgb[..., 2] * 0.11448223


def _to_i(rgb: np.ndarray) -> np.ndarray:
    return rgb[..., 0] * 0.59597799 - rgb[..., 1] * 0.27417610 - rgb[..., 2] * 0.32180189


def _to_q(rgb: np.ndarray) -> np.ndarray:
    return rgb[..., 0] * 0.21147017 - rgb[..., 1] * 0.52261711 + rgb[..., 2] * 0.31114694


def color_delta(img1: np.ndarray, img2: np.ndarray) -> np.ndarray:
    """Squared YIQ distance per pixel between two equally sized RGBA buffers."""
    rgb1 = _blend_white(img1)
    rgb2 = _blend_white(img2)
    y = _to_y(rgb1) - _to_y(rgb2)
    i = _to_i(rgb1) - _to_i(rgb2)
    q = _to_q(rgb1) - _to_q(rgb2)
    delta = 0.5053 * y * y + 0.299 * i * i + 0.1957 * q * q
    same = np.all(img1 == img2, axis=-1)
    delta[same] = 0.0
    return delta


def _edge_zeroes(xs: np.ndarray, ys: np.ndarray, width: int, height: int) -> np.ndarray:
    on_edge = (xs == 0) | (xs == width - 1) | (ys == 0) | (ys == height - 1)
    return on_edge.astype(np.int32)


def _has_many_siblings(packed: np.ndarray, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    """True where more than two neighbors share the exact RGBA value of the pixel."""
    height, width = packed.shape
    zeroes = _edge_zeroes(xs, ys, width, height)
    center = packed[ys, xs]
    for dx, dy in _NEIGHBOR_OFFSETS:
        nx, ny = xs + dx, ys + dy
        valid = (nx >= 0) & (nx < width) & (ny >= 0) & (ny < height)
        neighbor = packed[np.clip(ny, 0, height - 1), np.clip(nx, 0, width - 1)]
        zeroes += (valid & (neighbor == center)).astype(np.int32)
    return zeroes > 2


def _antialiased(
    y_plane: np.ndarray,
    packed: np.ndarray,
    other_packed: np.ndarray,
    xs: np.ndarray,
    ys: np.ndarray,
) -> np.ndarray:
    """Vectorized anti-aliasing test for the pixels at (xs, ys) of one image.

    A pixel is anti-aliased when its neighborhood has both a darker and a
    brighter neighbor, at most two identical neighbors, and the darkest or
    brightest neighbor sits in a flat area in both images.
    """
    height, width = y_plane.shape
    n = xs.shape[0]
    zeroes = _edge_zeroes(xs, ys, width, height)
    min_delta = np.zeros(n)
    max_delta = np.zeros(n)
    min_x = np.zeros(n, dtype=np.intp)
    min_y = np.zeros(n, dtype=np.intp)
    max_x = np.zeros(n, dtype=np.intp)
    max_y = np.zeros(n, dtype=np.intp)

    center = y_plane[ys, xs]
    for dx, dy in _NEIGHBOR_OFFSETS:
        nx, ny = xs + dx, ys + dy
        valid = (nx >= 0) & (nx < width) & (ny >= 0) & (ny < height)
        cx, cy = np.clip(nx, 0, width - 1), np.clip(ny, 0, height - 1)
        delta = center - y_plane[cy, cx]

        is_zero = valid & (delta == 0)
        zeroes += is_zero.astype(np.int32)

        lower = valid & ~is_zero & (delta < min_delta)
        min_delta = np.where(lower, delta, min_delta)
        min_x = np.where(lower, cx, min_x)
        min_y = np.where(lower, cy, min_y)

        higher = valid & ~is_zero & ~lower & (delta > max_delta)
        max_delta = np.where(higher, delta, max_delta)
        max_x = np.where(higher, cx, max_x)
        max_y = np.where(higher, cy, max_y)

    candidate = (zeroes <= 2) & (min_delta != 0) & (max_delta != 0)
    darkest_flat = _has_many_siblings(packed, min_x, min_y) & _has_many_siblings(other_packed, min_x, min_y)
    brightest_flat = _has_many_siblings(packed, max_x, max_y) & _has_many_siblings(other_packed, max_x, max_y)
    return candidate & (darkest_flat | brightest_flat)


def _pack(rgba: np.ndarray) -> np.ndarray:
    """View an RGBA uint8 buffer as one uint32 per pixel for exact equality tests."""
    return np.ascontiguousarray(rgba, dtype=np.uint8).view(np.uint32)[..., 0]


def pixel_diff(
    img1: np.ndarray,
    img2: np.ndarray,
    threshold: float = 0.1,
    include_aa: bool = False,
) -> tuple[np.ndarray, np.ndarray]:
    """Classify every pixel of two same-sized RGBA buffers.

    Returns ``(diff_mask, aa_mask)``: pixels counted as changed, and pixels
    that differ but were judged anti-aliasing.
    """
    if img1.shape != img2.shape:
        raise ValueError(f"image shapes differ: {img1.shape} vs {img2.shape}")

    over = color_delta(img1, img2) > MAX_YIQ_DELTA * threshold * threshold
    aa_mask = np.zeros_like(over)
    if include_aa or not over.any():
        return over, aa_mask

    ys, xs = np.nonzero(over)
    packed1, packed2 = _pack(img1), _pack(img2)
    y1 = _to_y(_blend_white(img1))
    y2 = _to_y(_blend_white(img2))
    is_aa = (
        _antialiased(y1, packed1, packed2, xs, ys)
        | _antialiased(y2, packed2, packed1, xs, ys)
    )
    aa_mask[ys[is_aa], xs[is_aa]] = True
    return over & ~aa_mask, aa_mask


def render_diff(
    background: np.ndarray,
    diff_mask: np.ndarray,
    aa_mask: np.ndarray,
    alpha: float = 0.3,
    diff_color: tuple[int, int, int] = (255, 0, 0),
    aa_color: tuple[int, int, int] = (255, 255, 0),
) -> np.ndarray:
    """Paint the diff raster: faded grayscale background, highlighted pixels on top."""
    rgb = background[..., :3].astype(np.float64)
    a = background[..., 3].astype(np.float64) / 255.0
    gray = 255.0 + (_to_y(rgb) - 255.0) * alpha * a
    gray = np.clip(np.rint(gray), 0, 255).astype(np.uint8)

    out = np.empty(background.shape[:2] + (4,), dtype=np.uint8)
    out[..., 0] = gray
    out[..., 1] = gray
    out[..., 2] = gray
    out[..., 3] = 255
    out[aa_mask, :3] = aa_color
    out[diff_mask, :3] = diff_color
    return out
