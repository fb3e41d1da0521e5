"""Common types, constants and exceptions for octpalette."""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

import numpy as np

# Type aliases
Color = Tuple[int, int, int, int]
PixelData = Union[bytes, bytearray, memoryview, np.ndarray]

# Number of bits per channel walked by the octree; level 8 nodes are leaves.
BIT_DEPTH = 8

# Smallest palette size the quantizer will produce.
MIN_PALETTE_COLORS = 8

# Leaf count the tree is reduced to before picking a dominant color.
DOMINANT_LEAF_CAP = 16


@dataclass
class PaletteConfig:
    """Configuration for the palette extraction pipeline."""

    # Quantization
    n_colors: int = 16
    max_nodes: Optional[int] = None  # None = unbounded node budget

    # Ingest - longest side in pixels, None keeps full resolution
    max_dimension: Optional[int] = 256

    # Output
    compute_dominant: bool = True

    def __post_init__(self):
        """Validate configuration values."""
        if self.n_colors < MIN_PALETTE_COLORS:
            raise ValueError(
                f"n_colors must be >= {MIN_PALETTE_COLORS}, got {self.n_colors}"
            )
        if self.max_dimension is not None and self.max_dimension < 1:
            raise ValueError(f"max_dimension must be >= 1, got {self.max_dimension}")
        if self.max_dimension is None:
            import warnings

            warnings.warn(
                "max_dimension=None quantizes every source pixel. "
                "Consider a thumbnail size for large images."
            )


@dataclass
class PixelBuffer:
    """Flat RGBA8888 pixel data produced by ingestion."""

    data: bytes
    width: int
    height: int
    source_path: str = ""

    @property
    def pixel_count(self) -> int:
        return len(self.data) // 4


@dataclass
class PaletteResult:
    """Result of running the palette pipeline on one image."""

    colors: List[Color] = field(default_factory=list)
    dominant: Optional[Color] = None
    width: int = 0
    height: int = 0
    pixel_count: int = 0
    source_path: str = ""

    def hex_colors(self) -> List[str]:
        """Palette as #rrggbb strings (alpha dropped)."""
        return [to_hex(c) for c in self.colors]

    def dominant_hex(self) -> Optional[str]:
        if self.dominant is None:
            return None
        return to_hex(self.dominant)


def to_hex(color: Color) -> str:
    """Format a color quad as #rrggbb."""
    r, g, b = color[:3]
    return f"#{r:02x}{g:02x}{b:02x}"


class PaletteError(Exception):
    """Base exception for palette extraction errors."""

    pass


class AllocationError(PaletteError):
    """Exception raised when an octree node cannot be allocated."""

    pass


class IngestError(PaletteError):
    """Exception raised when source pixels cannot be decoded."""

    pass
