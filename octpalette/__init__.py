"""octpalette: octree color quantization for palettes and dominant colors.

Reduces a flat RGBA8888 pixel buffer to a small palette of averaged colors,
or to a single dominant color ranked by population and saturation.
"""

from octpalette.octree import Octree, OctreeNode, child_index
from octpalette.quantizer import (
    fill_dominant_color,
    fill_palette,
    get_dominant_color,
    get_palette,
    get_saturation,
)
from octpalette.types import (
    AllocationError,
    Color,
    IngestError,
    PaletteConfig,
    PaletteError,
    PaletteResult,
    PixelBuffer,
)

__version__ = "0.1.0"
__all__ = [
    "Octree",
    "OctreeNode",
    "child_index",
    "get_palette",
    "get_dominant_color",
    "fill_palette",
    "fill_dominant_color",
    "get_saturation",
    "Color",
    "PaletteConfig",
    "PaletteResult",
    "PixelBuffer",
    "PaletteError",
    "AllocationError",
    "IngestError",
]
