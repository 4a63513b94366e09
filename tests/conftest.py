"""
pytest configuration and shared fixtures for the Color Profile test suite
"""

import matplotlib
matplotlib.use("Agg")

import pytest
import numpy as np
import cv2
import tempfile
from pathlib import Path

from create_test_image import create_cork_image


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def cork_image():
    """A 640x480 synthetic cork photograph (BGR)."""
    return create_cork_image()


@pytest.fixture
def cork_image_path(cork_image, temp_dir):
    """Save the cork image losslessly and return the path."""
    image_path = temp_dir / "cork.png"
    cv2.imwrite(str(image_path), cork_image)
    return str(image_path)


@pytest.fixture
def single_color_image():
    """A 200x300 single-color BGR image."""
    return np.full((200, 300, 3), [100, 150, 200], dtype=np.uint8)


@pytest.fixture
def single_color_image_path(single_color_image, temp_dir):
    """Save the single color image to a temporary file and return the path."""
    image_path = temp_dir / "single_color_image.png"
    cv2.imwrite(str(image_path), single_color_image)
    return str(image_path)


@pytest.fixture
def small_image_path(temp_dir):
    """An image smaller than the default 128x128 crop."""
    image_path = temp_dir / "small.png"
    cv2.imwrite(str(image_path), np.full((100, 100, 3), 80, dtype=np.uint8))
    return str(image_path)


@pytest.fixture
def step_image():
    """A 128x128 image, dark on the left half and bright on the right half."""
    image = np.full((128, 128, 3), 50, dtype=np.uint8)
    image[:, 64:] = 200
    return image


class TestHelpers:
    """Helper functions for testing."""

    @staticmethod
    def points_at_distance(center, distance, size, count=32):
        """
        Integer pixel coordinates (x, y) on a circle around center, kept inside the image.
        """
        cx, cy = center
        points = []
        for angle in np.linspace(0, 2 * np.pi, count, endpoint=False):
            x = int(round(cx + distance * np.cos(angle)))
            y = int(round(cy + distance * np.sin(angle)))
            if 0 <= x < size and 0 <= y < size:
                points.append((x, y))
        return points

    @staticmethod
    def histogram_with(counts_by_bin, bins=256):
        """Build a histogram from a {bin: count} dict."""
        hist = np.zeros(bins, dtype=np.float64)
        for index, count in counts_by_bin.items():
            hist[index] = count
        return hist


@pytest.fixture
def test_helpers():
    """Provide access to test helper functions."""
    return TestHelpers
