"""
Day/Night Shading Programs for Twin Sun

Vertex and fragment programs for the globe and its cloud shell, written as
vectorised numpy kernels: every array row is one vertex or one fragment.

Globe:
- vertex:   displace along the normal by the relief texture (red channel)
- fragment: blend night and day textures by the dot product of the view
            space normal and the sun direction rotated into the view frame

Clouds:
- vertex:   displace by smoothstep(0.01, 1.0, alpha) for rounded cloud tops
- fragment: discard near-transparent texels, scale alpha by a global opacity

Textures are float32 arrays of shape (H, W, 4) with values in [0, 1].
"""

import math
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from twin_sun.solar_position import SunSubPoint, normalize_longitude

logger = logging.getLogger(__name__)

HEIGHT_SCALE = 3.0          # Relief displacement for the globe surface
CLOUD_HEIGHT_SCALE = 0.8    # Controls cloud "puffiness"
CLOUD_HEIGHT_LOW_EDGE = 0.01
CLOUDS_OPACITY = 0.5
CLOUD_DISCARD_ALPHA = 0.05

# Soft terminator: intensity in [-0.1, 0.1] is blended (about +/-5.7 deg)
TERMINATOR_EDGE = 0.1


@dataclass(frozen=True)
class GlobeOrientation:
    """Geographic point of the globe currently facing the camera."""
    longitude: float
    latitude: float

    @classmethod
    def from_camera(cls, position) -> "GlobeOrientation":
        """Convert a camera position (globe centred at the origin) to lng/lat."""
        x, y, z = (float(c) for c in position)
        r = math.sqrt(x * x + y * y + z * z)
        if r == 0:
            raise ValueError("camera position must not be the globe centre")
        phi = math.acos(max(-1.0, min(1.0, y / r)))
        theta = math.atan2(z, x)
        lat = 90.0 - math.degrees(phi)
        lng = normalize_longitude(90.0 - math.degrees(theta))
        return cls(longitude=lng, latitude=lat)


@dataclass(frozen=True)
class RenderState:
    """Per-frame uniforms. Built fresh every frame, never mutated."""
    sun_sub_point: SunSubPoint
    globe_orientation: GlobeOrientation


def smoothstep(edge0: float, edge1: float, x):
    t = np.clip((np.asarray(x, dtype=np.float64) - edge0) / (edge1 - edge0), 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


def polar_to_cartesian(lng, lat) -> np.ndarray:
    """
    Map longitude/latitude (degrees) onto the unit sphere.

    theta = 90 - lng, phi = 90 - lat; returns (..., 3) with
    x = sin(phi)cos(theta), y = cos(phi), z = sin(phi)sin(theta).
    """
    theta = np.radians(90.0 - np.asarray(lng, dtype=np.float64))
    phi = np.radians(90.0 - np.asarray(lat, dtype=np.float64))
    return np.stack(
        [np.sin(phi) * np.cos(theta), np.cos(phi), np.sin(phi) * np.sin(theta)],
        axis=-1,
    )


# Rotation matrices are written row-major; they equal the transposed
# column-major literals a GL program would declare.

def rotation_x(angle: float) -> np.ndarray:
    c, s = math.cos(angle), math.sin(angle)
    return np.array([
        [1.0, 0.0, 0.0],
        [0.0, c, s],
        [0.0, -s, c],
    ])


def rotation_y(angle: float) -> np.ndarray:
    c, s = math.cos(angle), math.sin(angle)
    return np.array([
        [c, 0.0, -s],
        [0.0, 1.0, 0.0],
        [s, 0.0, c],
    ])


def view_rotation(orientation: GlobeOrientation) -> np.ndarray:
    """Rotation taking globe-frame vectors into the camera's view frame."""
    inv_lon = math.radians(orientation.longitude)
    inv_lat = -math.radians(orientation.latitude)
    return rotation_x(inv_lat) @ rotation_y(inv_lon)


def sample_texture(texture: np.ndarray, uvs: np.ndarray) -> np.ndarray:
    """
    Nearest-texel lookup.

    u wraps around the globe; v is clamped, v=0 is the bottom image row.
    """
    h, w = texture.shape[:2]
    u = np.asarray(uvs[..., 0], dtype=np.float64)
    v = np.asarray(uvs[..., 1], dtype=np.float64)
    cols = np.floor(u * w).astype(np.int64) % w
    rows = np.clip(np.floor((1.0 - v) * h).astype(np.int64), 0, h - 1)
    return texture[rows, cols]


def _normalize(vectors: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(vectors, axis=-1, keepdims=True)
    return vectors / np.where(norms == 0, 1.0, norms)


class GlobeProgram:
    """Day/night program for the globe surface."""

    def __init__(
        self,
        day_texture: np.ndarray,
        night_texture: np.ndarray,
        height_texture: Optional[np.ndarray] = None,
        height_scale: float = HEIGHT_SCALE,
    ):
        self.day_texture = day_texture
        self.night_texture = night_texture
        self.height_texture = height_texture
        self.height_scale = height_scale

    def vertex(self, positions: np.ndarray, normals: np.ndarray, uvs: np.ndarray) -> np.ndarray:
        if self.height_texture is None:
            return positions.copy()
        height = sample_texture(self.height_texture, uvs)[..., 0]
        return positions + normals * (height * self.height_scale)[..., None]

    def intensity(self, view_normals: np.ndarray, state: RenderState) -> np.ndarray:
        sun = polar_to_cartesian(state.sun_sub_point.longitude, state.sun_sub_point.latitude)
        rotated_sun = view_rotation(state.globe_orientation) @ sun
        rotated_sun = rotated_sun / np.linalg.norm(rotated_sun)
        return _normalize(view_normals) @ rotated_sun

    def daylight(self, view_normals: np.ndarray, state: RenderState) -> np.ndarray:
        """Day texture weight per fragment: 0 is night, 1 is day."""
        return smoothstep(-TERMINATOR_EDGE, TERMINATOR_EDGE, self.intensity(view_normals, state))

    def fragment(self, view_normals: np.ndarray, uvs: np.ndarray, state: RenderState) -> np.ndarray:
        """
        Shade fragments.

        Args:
            view_normals: (N, 3) normals already rotated into view space
            uvs: (N, 2) texture coordinates
            state: sun position and globe orientation for this frame

        Returns:
            (N, 4) RGBA colours
        """
        blend = self.daylight(view_normals, state)
        day = sample_texture(self.day_texture, uvs)
        night = sample_texture(self.night_texture, uvs)
        return night + (day - night) * blend[..., None]


class CloudProgram:
    """Cloud shell program driven by the cloud alpha texture."""

    def __init__(
        self,
        clouds_texture: np.ndarray,
        height_scale: float = CLOUD_HEIGHT_SCALE,
        opacity: float = CLOUDS_OPACITY,
    ):
        self.clouds_texture = clouds_texture
        self.height_scale = height_scale
        self.opacity = opacity

    def vertex(self, positions: np.ndarray, normals: np.ndarray, uvs: np.ndarray) -> np.ndarray:
        alpha = sample_texture(self.clouds_texture, uvs)[..., 3]
        height = smoothstep(CLOUD_HEIGHT_LOW_EDGE, 1.0, alpha)
        return positions + normals * (height * self.height_scale)[..., None]

    def fragment(self, uvs: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Return (colours, keep_mask); fragments with keep_mask False are discarded."""
        color = sample_texture(self.clouds_texture, uvs).astype(np.float32, copy=True)
        keep = color[..., 3] >= CLOUD_DISCARD_ALPHA
        color[..., 3] *= self.opacity
        return color, keep
