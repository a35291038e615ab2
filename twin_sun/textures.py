"""
Texture loading for the globe.

Day, night, relief and cloud-alpha images are read with Pillow and turned
into float32 RGBA arrays in [0, 1]. The cloud image is usually remote and is
downloaded with httpx first.

A failed load is logged and returns None; the globe is then drawn unshaded.
"""

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import httpx
import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

DAY_IMAGE = "earth-blue-marble.jpg"
NIGHT_IMAGE = "earth-night.jpg"
HEIGHT_IMAGE = "earth-topology.png"


@dataclass
class GlobeTextures:
    day: np.ndarray
    night: np.ndarray
    height: np.ndarray
    clouds: np.ndarray


def image_to_array(image: Image.Image) -> np.ndarray:
    """Convert a Pillow image to a (H, W, 4) float32 array in [0, 1]."""
    return np.asarray(image.convert("RGBA"), dtype=np.float32) / 255.0


def _read_image(source: Union[str, Path], timeout: float) -> Image.Image:
    source_str = str(source)
    if source_str.startswith(("http://", "https://")):
        logger.info(f"[_read_image] Downloading {source_str}")
        resp = httpx.get(source_str, timeout=timeout, follow_redirects=True)
        resp.raise_for_status()
        image = Image.open(io.BytesIO(resp.content))
    else:
        image = Image.open(source_str)
    image.load()
    return image


def load_textures(
    texture_dir: Union[str, Path],
    clouds_source: Union[str, Path],
    timeout: float = 30.0,
) -> Optional[GlobeTextures]:
    """
    Load all four globe textures.

    Args:
        texture_dir: Directory holding the day, night and relief images
        clouds_source: Path or URL of the cloud-alpha image
        timeout: HTTP timeout for remote images

    Returns:
        GlobeTextures, or None if any image failed to load
    """
    texture_dir = Path(texture_dir)
    try:
        textures = GlobeTextures(
            day=image_to_array(_read_image(texture_dir / DAY_IMAGE, timeout)),
            night=image_to_array(_read_image(texture_dir / NIGHT_IMAGE, timeout)),
            height=image_to_array(_read_image(texture_dir / HEIGHT_IMAGE, timeout)),
            clouds=image_to_array(_read_image(clouds_source, timeout)),
        )
    except (OSError, httpx.HTTPError) as e:
        logger.error(f"[load_textures] Failed to load textures: {e}")
        return None

    logger.info(
        f"[load_textures] Loaded textures: day={textures.day.shape[:2]}, "
        f"clouds={textures.clouds.shape[:2]}"
    )
    return textures
