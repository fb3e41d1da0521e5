"""Palette extraction pipeline: ingest -> quantize -> result."""

import logging
from pathlib import Path
from typing import Optional, Union

import numpy as np
from PIL import Image, ImageDraw

from .ingest import load_pixels, pixels_from_array
from .quantizer import get_dominant_color, get_palette
from .types import PaletteConfig, PaletteResult, PixelBuffer

logger = logging.getLogger(__name__)


class PaletteExtractor:
    """Extracts a palette and dominant color from images."""

    def __init__(self, config: Optional[PaletteConfig] = None):
        """Initialize extractor with configuration.

        Args:
            config: Palette configuration. Uses defaults if None.
        """
        self.config = config or PaletteConfig()

    def process(self, image_path: Union[str, Path]) -> PaletteResult:
        """Extract the palette of an image file.

        Args:
            image_path: Path to input image

        Returns:
            PaletteResult

        Raises:
            FileNotFoundError: If the image doesn't exist
            IngestError: If the image cannot be decoded
            AllocationError: If the octree node budget is exhausted
        """
        buffer = load_pixels(image_path, max_dimension=self.config.max_dimension)
        return self._quantize(buffer)

    def process_array(self, image: np.ndarray) -> PaletteResult:
        """Extract the palette of an in-memory image array."""
        return self._quantize(pixels_from_array(image))

    def _quantize(self, buffer: PixelBuffer) -> PaletteResult:
        config = self.config

        colors = get_palette(
            buffer.data,
            config.n_colors,
            buffer.pixel_count,
            max_nodes=config.max_nodes,
        )

        dominant = None
        if config.compute_dominant:
            dominant = get_dominant_color(
                buffer.data, buffer.pixel_count, max_nodes=config.max_nodes
            )

        logger.info(
            f"Palette for {buffer.source_path or '<array>'}: "
            f"{len(colors)} colors, dominant={dominant}"
        )

        return PaletteResult(
            colors=colors,
            dominant=dominant,
            width=buffer.width,
            height=buffer.height,
            pixel_count=buffer.pixel_count,
            source_path=buffer.source_path,
        )


def save_swatch(
    result: PaletteResult, output_path: Union[str, Path], swatch_size: int = 64
) -> Path:
    """Save a PNG strip showing the dominant color followed by the palette.

    Args:
        result: Extraction result to draw
        output_path: Destination PNG path
        swatch_size: Edge length of each square swatch in pixels

    Returns:
        Path of the written file
    """
    swatches = list(result.colors)
    if result.dominant is not None:
        swatches.insert(0, result.dominant)

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    width = max(len(swatches), 1) * swatch_size
    img = Image.new("RGBA", (width, swatch_size), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)

    for i, color in enumerate(swatches):
        x0 = i * swatch_size
        draw.rectangle([x0, 0, x0 + swatch_size - 1, swatch_size - 1], fill=tuple(color))

    img.save(output_path, format="PNG")
    logger.info(f"Saved swatch with {len(swatches)} colors: {output_path}")
    return output_path


def extract_palette(
    image_path: Union[str, Path],
    config: Optional[PaletteConfig] = None,
) -> PaletteResult:
    """Extract the palette of an image file.

    Convenience function for one-off processing.

    Args:
        image_path: Path to input image (JPG/PNG)
        config: Optional configuration object

    Returns:
        PaletteResult

    Example:
        >>> result = extract_palette("input.jpg")
        >>> result = extract_palette("input.jpg", PaletteConfig(n_colors=8))
    """
    return PaletteExtractor(config).process(image_path)
