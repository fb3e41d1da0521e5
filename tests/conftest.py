"""Pytest configuration and fixtures."""

import pytest
from PIL import Image

SOLID_COLOR = (10, 20, 30, 255)


def make_pixels(*clusters) -> bytes:
    """Build an RGBA8888 buffer from (color, count) pairs, in order."""
    return b"".join(bytes(color) * count for color, count in clusters)


@pytest.fixture
def solid_image(tmp_path):
    """Path to a 10x10 PNG filled with SOLID_COLOR."""
    path = tmp_path / "solid.png"
    Image.new("RGBA", (10, 10), SOLID_COLOR).save(path)
    return path


@pytest.fixture
def rgb_image(tmp_path):
    """Path to an 8x4 opaque RGB PNG, left half red and right half green."""
    path = tmp_path / "rgb.png"
    img = Image.new("RGB", (8, 4), (255, 0, 0))
    img.paste((0, 255, 0), (4, 0, 8, 4))
    img.save(path)
    return path


@pytest.fixture
def large_image(tmp_path):
    """Path to a 400x200 PNG used for downsampling checks."""
    path = tmp_path / "large.png"
    Image.new("RGBA", (400, 200), (200, 40, 40, 255)).save(path)
    return path


@pytest.fixture
def output_dir(tmp_path):
    """Create and return output directory for test results."""
    out_dir = tmp_path / "output"
    out_dir.mkdir(exist_ok=True)
    return out_dir
