"""Palette and dominant color extraction on top of the color octree."""

import logging
from typing import List, Optional, Union

import numpy as np

from .octree import Octree, OctreeNode
from .types import DOMINANT_LEAF_CAP, MIN_PALETTE_COLORS, Color, PixelData

logger = logging.getLogger(__name__)

WritableBuffer = Union[bytearray, memoryview, np.ndarray]


def _as_pixel_bytes(pixels: PixelData) -> bytes:
    """Flatten a pixel buffer to RGBA8888 bytes."""
    if isinstance(pixels, np.ndarray):
        if pixels.dtype != np.uint8:
            raise ValueError(f"Pixel array must be uint8, got {pixels.dtype}")
        data = np.ascontiguousarray(pixels).tobytes()
    elif isinstance(pixels, (bytes, bytearray, memoryview)):
        data = bytes(pixels)
    else:
        raise TypeError(f"Unsupported pixel buffer type: {type(pixels).__name__}")

    if len(data) % 4 != 0:
        raise ValueError(f"Pixel buffer length {len(data)} is not a multiple of 4")

    return data


def _resolve_count(data: bytes, pixel_count: Optional[int]) -> int:
    available = len(data) // 4
    if pixel_count is None:
        return available
    if pixel_count < 0:
        raise ValueError(f"pixel_count must be >= 0, got {pixel_count}")
    if pixel_count > available:
        raise ValueError(
            f"pixel_count {pixel_count} exceeds buffer of {available} pixels"
        )
    return pixel_count


def _as_writable(buffer: WritableBuffer, min_length: int) -> WritableBuffer:
    """Flat byte view over an output buffer."""
    if isinstance(buffer, np.ndarray):
        if buffer.dtype != np.uint8:
            raise ValueError(f"Output array must be uint8, got {buffer.dtype}")
        if not buffer.flags.writeable or not buffer.flags.c_contiguous:
            raise ValueError("Output array must be writable and C-contiguous")
        out = buffer.reshape(-1)
    else:
        out = memoryview(buffer).cast("B")
        if out.readonly:
            raise TypeError("Output buffer must be writable")

    if len(out) < min_length:
        raise ValueError(f"Output buffer holds {len(out)} bytes, need {min_length}")

    return out


def _write(out: WritableBuffer, payload: bytes) -> None:
    if isinstance(out, np.ndarray):
        out[: len(payload)] = np.frombuffer(payload, dtype=np.uint8)
    else:
        out[: len(payload)] = payload


def _populate(tree: Octree, data: bytes, pixel_count: int) -> None:
    for offset in range(0, pixel_count * 4, 4):
        tree.insert_pixel(data[offset : offset + 4])


def _reduce_to(tree: Octree, max_leaves: int) -> None:
    steps = 0
    while tree.leaf_count > max_leaves:
        if not tree.reduce():
            break
        steps += 1
    logger.debug(f"Reduced octree in {steps} steps to {tree.leaf_count} leaves")


def get_saturation(r: float, g: float, b: float) -> float:
    """HSL-style saturation of a color with channels in [0, 1].

    Lightness is approximated as (2R + 3G + B) / 6 rather than the usual
    (max + min) / 2; rankings depend on this exact weighting.
    """
    minv = min(r, g, b)
    maxv = max(r, g, b)

    if minv == maxv:
        return 0.0

    d = maxv - minv
    lightness = (r + r + b + g + g + g) / 6.0
    if lightness > 0.5:
        return d / (2.0 - maxv - minv)
    return d / (maxv + minv)


def leaf_saturation(node: OctreeNode) -> float:
    """Saturation of a leaf's averaged color."""
    r, g, b, _ = node.average()
    return get_saturation(r / 255.0, g / 255.0, b / 255.0)


def rank_leaves(leaves: List[OctreeNode]) -> List[OctreeNode]:
    """Order leaves for dominant color selection.

    Leaves are sorted by population, largest first, then the most populous
    quarter is re-sorted by saturation. Both sorts are stable, so ties keep
    traversal order. With fewer than four leaves the quarter is empty and the
    population order stands.
    """
    ranked = sorted(leaves, key=lambda node: node.pixel_count, reverse=True)
    head = len(ranked) // 4
    ranked[:head] = sorted(ranked[:head], key=leaf_saturation, reverse=True)
    return ranked


def get_palette(
    pixels: PixelData,
    max_colors: int,
    pixel_count: Optional[int] = None,
    max_nodes: Optional[int] = None,
) -> List[Color]:
    """Reduce an RGBA8888 buffer to at most max_colors averaged colors.

    Args:
        pixels: Flat RGBA8888 data (bytes-like or uint8 numpy array)
        max_colors: Upper bound on palette size (must be >= 8)
        pixel_count: Number of pixels to read (defaults to the whole buffer)
        max_nodes: Optional octree node budget

    Returns:
        List of (r, g, b, a) tuples in octree traversal order; empty for an
        empty input

    Raises:
        ValueError: If max_colors < 8 or the buffer is malformed
        AllocationError: If the octree runs out of nodes
    """
    if max_colors < MIN_PALETTE_COLORS:
        raise ValueError(f"max_colors must be >= {MIN_PALETTE_COLORS}, got {max_colors}")

    data = _as_pixel_bytes(pixels)
    count = _resolve_count(data, pixel_count)

    if count == 0:
        logger.warning("get_palette called with no pixels, returning empty palette")
        return []

    with Octree(max_nodes=max_nodes) as tree:
        _populate(tree, data, count)
        _reduce_to(tree, max_colors)
        colors = [leaf.average() for leaf in tree.collect_leaves()]

    logger.debug(f"Extracted {len(colors)} colors from {count} pixels")
    return colors


def get_dominant_color(
    pixels: PixelData,
    pixel_count: Optional[int] = None,
    max_nodes: Optional[int] = None,
) -> Optional[Color]:
    """Pick the single most representative color of an RGBA8888 buffer.

    The tree is reduced to at most 16 leaves; the winner is the most
    saturated of the most populous quarter (see rank_leaves).

    Returns:
        (r, g, b, a) tuple, or None for an empty input
    """
    data = _as_pixel_bytes(pixels)
    count = _resolve_count(data, pixel_count)

    if count == 0:
        logger.warning("get_dominant_color called with no pixels")
        return None

    with Octree(max_nodes=max_nodes) as tree:
        _populate(tree, data, count)
        _reduce_to(tree, DOMINANT_LEAF_CAP)
        ranked = rank_leaves(tree.collect_leaves())
        color = ranked[0].average()

    return color


def fill_palette(
    pixels: PixelData,
    pixel_count: int,
    colors: WritableBuffer,
    num_colors: int,
    max_nodes: Optional[int] = None,
) -> int:
    """Buffer-style palette extraction.

    Writes up to num_colors RGBA quads into ``colors`` and zero-fills the
    unused quads up to num_colors. When num_colors is below 8 nothing is
    written and num_colors is returned as given.

    Args:
        pixels: Flat RGBA8888 data
        pixel_count: Number of pixels to read
        colors: Writable output buffer of at least num_colors * 4 bytes
        num_colors: Requested palette size

    Returns:
        Number of colors actually written
    """
    if num_colors < MIN_PALETTE_COLORS:
        logger.debug(f"fill_palette: num_colors={num_colors} below minimum, skipping")
        return num_colors

    out = _as_writable(colors, num_colors * 4)
    palette = get_palette(pixels, num_colors, pixel_count, max_nodes)

    payload = b"".join(bytes(color) for color in palette)
    payload += bytes(4 * (num_colors - len(palette)))
    _write(out, payload)

    return len(palette)


def fill_dominant_color(
    pixels: PixelData,
    pixel_count: int,
    color: WritableBuffer,
    max_nodes: Optional[int] = None,
) -> bool:
    """Buffer-style dominant color extraction into a 4-byte buffer.

    Returns False, leaving ``color`` untouched, when there are no pixels.
    """
    out = _as_writable(color, 4)
    dominant = get_dominant_color(pixels, pixel_count, max_nodes)
    if dominant is None:
        return False
    _write(out, bytes(dominant))
    return True
