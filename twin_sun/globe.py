"""
Globe scene for Twin Sun

Builds the globe and cloud meshes, places the location markers and runs
the shading programs once per frame. Fragments are sampled at the mesh
vertices, so mesh resolution sets the image resolution.
"""

import math
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple

import numpy as np

from twin_sun.config import Location
from twin_sun.shading import (
    CloudProgram,
    GlobeOrientation,
    GlobeProgram,
    RenderState,
    polar_to_cartesian,
    rotation_y,
    view_rotation,
)
from twin_sun.solar_position import SunSubPoint, compute_sun_sub_point, to_utc
from twin_sun.textures import GlobeTextures

logger = logging.getLogger(__name__)

GLOBE_RADIUS = 100.0
CLOUDS_ALT = 0.03            # Lifts clouds to prevent clipping into mountains
SPHERE_SEGMENTS = 75
CAMERA_DISTANCE = 400.0
UNSHADED_COLOR = (0.5, 0.5, 0.5, 1.0)

# Turns texture longitude 0 towards +z, same as rotating the mesh -90 deg about Y
MESH_ALIGNMENT = rotation_y(math.pi / 2)


@dataclass
class SphereMesh:
    positions: np.ndarray   # (N, 3)
    normals: np.ndarray     # (N, 3)
    uvs: np.ndarray         # (N, 2)

    def transformed(self, matrix: np.ndarray) -> "SphereMesh":
        return SphereMesh(
            positions=self.positions @ matrix.T,
            normals=self.normals @ matrix.T,
            uvs=self.uvs,
        )


def build_sphere(radius: float, width_segments: int = SPHERE_SEGMENTS,
                 height_segments: int = SPHERE_SEGMENTS) -> SphereMesh:
    """UV sphere with one vertex per grid point, texture seam duplicated."""
    u = np.linspace(0.0, 1.0, width_segments + 1)
    v = np.linspace(0.0, 1.0, height_segments + 1)
    uu, vv = np.meshgrid(u, v)
    uu = uu.ravel()
    vv = vv.ravel()

    normals = np.stack([
        -np.cos(uu * 2 * math.pi) * np.sin(vv * math.pi),
        np.cos(vv * math.pi),
        np.sin(uu * 2 * math.pi) * np.sin(vv * math.pi),
    ], axis=-1)
    uvs = np.stack([uu, 1.0 - vv], axis=-1)
    return SphereMesh(positions=normals * radius, normals=normals, uvs=uvs)


def geo_to_cartesian(lat: float, lng: float, alt: float = 0.0,
                     radius: float = GLOBE_RADIUS) -> Tuple[float, float, float]:
    """Scene coordinates of a point at the given altitude (fraction of radius)."""
    x, y, z = polar_to_cartesian(lng, lat) * radius * (1 + alt)
    return float(x), float(y), float(z)


def camera_position(orientation: GlobeOrientation,
                    distance: float = CAMERA_DISTANCE) -> Tuple[float, float, float]:
    return geo_to_cartesian(orientation.latitude, orientation.longitude,
                            radius=distance)


@dataclass
class Frame:
    globe_positions: np.ndarray
    globe_colors: np.ndarray
    cloud_positions: Optional[np.ndarray]
    cloud_colors: Optional[np.ndarray]
    cloud_mask: Optional[np.ndarray]
    markers: Dict[str, Tuple[float, float, float]]
    shaded: bool
    daylight: Optional[np.ndarray] = None

    @property
    def daylit_fraction(self) -> Optional[float]:
        if self.daylight is None:
            return None
        return float(np.mean(self.daylight > 0.5))


class GlobeScene:
    """
    Globe, cloud shell and location pins.

    Without textures the globe is drawn in flat gray and no clouds are drawn.
    """

    def __init__(
        self,
        textures: Optional[GlobeTextures],
        locations: List[Location],
        radius: float = GLOBE_RADIUS,
        segments: int = SPHERE_SEGMENTS,
    ):
        self.radius = radius
        self.globe_mesh = build_sphere(radius, segments, segments).transformed(MESH_ALIGNMENT)
        self.cloud_mesh = build_sphere(radius * (1 + CLOUDS_ALT), segments, segments).transformed(MESH_ALIGNMENT)
        self.markers = {
            loc.name: geo_to_cartesian(loc.latitude, loc.longitude, radius=radius)
            for loc in locations
        }

        if textures is None:
            logger.warning("[GlobeScene] No textures available, globe will be unshaded")
            self.globe_program = None
            self.cloud_program = None
        else:
            self.globe_program = GlobeProgram(textures.day, textures.night, textures.height)
            self.cloud_program = CloudProgram(textures.clouds)

    @property
    def shaded(self) -> bool:
        return self.globe_program is not None

    def render_frame(self, state: RenderState) -> Frame:
        mesh = self.globe_mesh

        if self.globe_program is None:
            colors = np.tile(np.array(UNSHADED_COLOR, dtype=np.float32), (len(mesh.positions), 1))
            return Frame(
                globe_positions=mesh.positions.copy(),
                globe_colors=colors,
                cloud_positions=None,
                cloud_colors=None,
                cloud_mask=None,
                markers=dict(self.markers),
                shaded=False,
            )

        # Model matrix is the identity, so the normal matrix is the view rotation
        normal_matrix = view_rotation(state.globe_orientation)
        view_normals = mesh.normals @ normal_matrix.T

        globe_positions = self.globe_program.vertex(mesh.positions, mesh.normals, mesh.uvs)
        globe_colors = self.globe_program.fragment(view_normals, mesh.uvs, state)
        daylight = self.globe_program.daylight(view_normals, state)

        clouds = self.cloud_mesh
        cloud_positions = self.cloud_program.vertex(clouds.positions, clouds.normals, clouds.uvs)
        cloud_colors, cloud_mask = self.cloud_program.fragment(clouds.uvs)

        return Frame(
            globe_positions=globe_positions,
            globe_colors=globe_colors,
            cloud_positions=cloud_positions,
            cloud_colors=cloud_colors,
            cloud_mask=cloud_mask,
            markers=dict(self.markers),
            shaded=True,
            daylight=daylight,
        )


class FrameClock:
    """
    Produces the RenderState for each frame.

    The sun sub-point only changes at minute resolution, so it is recomputed
    when the UTC minute rolls over; the orientation follows the camera every frame.
    """

    def __init__(self):
        self._minute: Optional[datetime] = None
        self._sun: Optional[SunSubPoint] = None

    @property
    def sun_sub_point(self) -> Optional[SunSubPoint]:
        return self._sun

    def sun_for(self, instant: datetime) -> SunSubPoint:
        minute = to_utc(instant).replace(second=0, microsecond=0)
        if minute != self._minute or self._sun is None:
            self._sun = compute_sun_sub_point(minute)
            self._minute = minute
        return self._sun

    def state_for(self, instant: datetime, camera) -> RenderState:
        return RenderState(
            sun_sub_point=self.sun_for(instant),
            globe_orientation=GlobeOrientation.from_camera(camera),
        )
