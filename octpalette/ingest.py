"""Source image ingestion into flat RGBA8888 buffers."""
import logging
from pathlib import Path
from typing import Optional, Union

import numpy as np
from PIL import Image
from PIL import ImageOps

from .types import IngestError, PixelBuffer

logger = logging.getLogger(__name__)


def load_pixels(path: Union[str, Path], max_dimension: Optional[int] = None) -> PixelBuffer:
    """
    Load an image file as RGBA8888 pixels.

    Args:
        path: Path to image file
        max_dimension: If set, downsample so the longest side is at most
                       this many pixels (aspect ratio preserved)

    Returns:
        PixelBuffer with the flat pixel bytes and final dimensions

    Raises:
        FileNotFoundError: If file doesn't exist
        IngestError: If file cannot be decoded
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Image file not found: {path}")

    if not path.is_file():
        raise IngestError(f"Path is not a file: {path}")

    try:
        with Image.open(path) as img:
            # Apply EXIF orientation transformation to handle rotation
            img = ImageOps.exif_transpose(img)
            img = img.convert('RGBA')

            if max_dimension is not None:
                # thumbnail() only ever shrinks
                img.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)

            width, height = img.size
            data = img.tobytes()

    except (IOError, OSError) as e:
        raise IngestError(f"Failed to load image {path}: {e}") from e

    logger.info(f"Loaded {path.name}: {width}x{height}, {width * height} pixels")

    return PixelBuffer(data=data, width=width, height=height, source_path=str(path))


def pixels_from_array(image: np.ndarray, path: str = "") -> PixelBuffer:
    """
    Create a PixelBuffer from a numpy array.

    Args:
        image: Image array (H, W), (H, W, 3) or (H, W, 4); uint8 in [0, 255]
               or float in [0, 1]
        path: Optional path for reference

    Returns:
        PixelBuffer
    """
    if image.ndim == 2:
        # Grayscale - replicate into RGB
        image = np.stack([image] * 3, axis=-1)

    if image.ndim != 3:
        raise IngestError(f"Expected 2D or 3D array, got {image.ndim}D")

    if image.shape[2] not in (3, 4):
        raise IngestError(f"Expected 3 or 4 channels, got {image.shape[2]}")

    if np.issubdtype(image.dtype, np.floating):
        image = np.clip(np.round(image * 255.0), 0, 255).astype(np.uint8)
    elif image.dtype != np.uint8:
        image = np.clip(image, 0, 255).astype(np.uint8)

    height, width = image.shape[:2]

    if image.shape[2] == 3:
        # Opaque - add full alpha
        alpha = np.full((height, width, 1), 255, dtype=np.uint8)
        image = np.concatenate([image, alpha], axis=-1)

    return PixelBuffer(
        data=np.ascontiguousarray(image).tobytes(),
        width=width,
        height=height,
        source_path=path
    )
