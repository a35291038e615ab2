"""
Tests for globe texture loading.

Run with: python -m pytest tests/test_textures.py -v
"""

import numpy as np
import pytest
from PIL import Image

from twin_sun.textures import (
    DAY_IMAGE,
    HEIGHT_IMAGE,
    NIGHT_IMAGE,
    image_to_array,
    load_textures,
)


@pytest.fixture
def texture_dir(tmp_path):
    Image.new("RGB", (8, 4), (255, 255, 255)).save(tmp_path / DAY_IMAGE)
    Image.new("RGB", (8, 4), (0, 0, 51)).save(tmp_path / NIGHT_IMAGE)
    Image.new("L", (8, 4), 128).save(tmp_path / HEIGHT_IMAGE)
    Image.new("RGBA", (16, 8), (255, 255, 255, 102)).save(tmp_path / "clouds.png")
    return tmp_path


def test_image_to_array():
    array = image_to_array(Image.new("RGB", (3, 2), (255, 0, 0)))
    assert array.shape == (2, 3, 4)
    assert array.dtype == np.float32
    assert np.allclose(array[0, 0], [1.0, 0.0, 0.0, 1.0])


def test_load_textures(texture_dir):
    textures = load_textures(texture_dir, texture_dir / "clouds.png")
    assert textures is not None
    assert textures.day.shape == (4, 8, 4)
    assert textures.height[0, 0, 0] == pytest.approx(128 / 255)
    assert textures.clouds.shape == (8, 16, 4)
    assert textures.clouds[0, 0, 3] == pytest.approx(0.4)


def test_missing_image_returns_none(texture_dir):
    (texture_dir / NIGHT_IMAGE).unlink()
    assert load_textures(texture_dir, texture_dir / "clouds.png") is None
