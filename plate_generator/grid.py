# plate_generator/grid.py

"""
================================================================================
HIERARCHICAL HEX GRID MAPPING
================================================================================
This module translates between 3D surface positions and cells of the H3
hierarchical hexagonal grid, and exposes grid adjacency.

Data Contract:
---------------
- Inputs:
    - Positions as 3-element sequences in kilometers (y is the polar axis).
    - Planet radii in kilometers and H3 resolutions in [0, 15].
    - Cell ids as H3 index strings.
- Outputs:
    - Cell ids (str), cell center positions (np.ndarray of shape (3,)),
      neighbor and child cell lists (sorted, so iteration order is stable).
- Side Effects: Fills the caches owned by the GridMapper instance.
- Invariants: cell_for_position is a pure function of its inputs. The caches
  only change latency, never results.
================================================================================
"""

import json
import math
import os

import h3
import numpy as np

from . import config as DEFAULTS
from .errors import InvalidCell, InvalidPosition, InvalidResolution


def position_to_latlng(position, radius: float) -> tuple[float, float]:
    """
    Projects a position onto the sphere of the given radius and returns its
    latitude and longitude in degrees.
    """
    p = np.asarray(position, dtype=float)
    if p.shape != (3,) or not np.all(np.isfinite(p)):
        raise InvalidPosition(f"Position must be three finite coordinates, got {position!r}")
    length = float(np.linalg.norm(p))
    if length == 0.0:
        raise InvalidPosition("Cannot project the zero vector onto a sphere")
    if radius <= 0:
        raise InvalidPosition(f"Sphere radius must be positive, got {radius}")

    # Rescale onto the sphere before reading the angles.
    p = p * (radius / length)
    lat = math.degrees(math.asin(max(-1.0, min(1.0, p[1] / radius))))
    lng = math.degrees(math.atan2(p[2], p[0]))
    return lat, lng


def latlng_to_position(lat: float, lng: float, radius: float = 1.0) -> np.ndarray:
    """Converts latitude and longitude in degrees to a point on the sphere."""
    lat_rad = math.radians(lat)
    lng_rad = math.radians(lng)
    return np.array([
        radius * math.cos(lat_rad) * math.cos(lng_rad),
        radius * math.sin(lat_rad),
        radius * math.cos(lat_rad) * math.sin(lng_rad),
    ])


def check_resolution(resolution: int) -> int:
    if not isinstance(resolution, (int, np.integer)) or isinstance(resolution, bool):
        raise InvalidResolution(f"Resolution must be an integer, got {resolution!r}")
    if not DEFAULTS.MIN_H3_RESOLUTION <= resolution <= DEFAULTS.MAX_H3_RESOLUTION:
        raise InvalidResolution(
            f"Resolution must be between {DEFAULTS.MIN_H3_RESOLUTION} and "
            f"{DEFAULTS.MAX_H3_RESOLUTION}, got {resolution}"
        )
    return int(resolution)


class HexRadiusCache:
    """Memoized hex radii keyed by (planet_radius, resolution)."""

    def __init__(self):
        self._values = {}

    def get(self, planet_radius: float, resolution: int):
        return self._values.get((planet_radius, resolution))

    def set(self, planet_radius: float, resolution: int, value: float):
        self._values[(planet_radius, resolution)] = value

    def clear(self):
        self._values.clear()

    def __len__(self):
        return len(self._values)


class CellPositionCache:
    """
    Caches the unit-sphere center of each cell. Centers are stored at radius
    1.0 and scaled on the way out, so one cache serves every planet.

    When a path is given, the cache can be persisted to and restored from a
    JSON file between runs.
    """

    def __init__(self, path: str = None):
        self.path = path
        self._points = {}

    def get(self, cell_id: str):
        point = self._points.get(cell_id)
        return None if point is None else np.array(point)

    def set(self, cell_id: str, unit_point):
        self._points[cell_id] = tuple(float(v) for v in unit_point)

    def clear(self):
        self._points.clear()

    def __len__(self):
        return len(self._points)

    def load(self) -> int:
        """Loads cached points from disk. Returns the number of entries read."""
        if not self.path or not os.path.exists(self.path):
            return 0
        with open(self.path, 'r') as f:
            data = json.load(f)
        for cell_id, point in data.items():
            self._points[cell_id] = tuple(point)
        return len(data)

    def save(self):
        if not self.path:
            raise ValueError("CellPositionCache has no path to save to")
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, 'w') as f:
            json.dump({cell_id: list(point) for cell_id, point in self._points.items()}, f)


class GridMapper:
    """
    Converts between surface positions and H3 cells, and answers adjacency
    queries. Every instance owns its own caches.
    """
    def __init__(
        self,
        hex_radius_cache: HexRadiusCache = None,
        position_cache: CellPositionCache = None,
        settings: dict = None,
    ):
        """
        Args:
            hex_radius_cache (HexRadiusCache, optional): Cache for
                hex_radius_at_resolution. A private one is created if None.
            position_cache (CellPositionCache, optional): Accelerator for
                cell center lookups. No cache is used if None.
            settings (dict, optional): Overrides for the grid reference values
                in plate_generator.config.
        """
        settings = settings or {}
        self.hex_radius_cache = hex_radius_cache if hex_radius_cache is not None else HexRadiusCache()
        self.position_cache = position_cache
        self.earth_radius_km = settings.get('earth_radius_km', DEFAULTS.EARTH_RADIUS_KM)
        self.level0_hex_radius_km = settings.get('level0_hex_radius_km', DEFAULTS.LEVEL0_HEX_RADIUS_KM)
        self.hex_scaling_per_level = settings.get('hex_scaling_per_level', DEFAULTS.HEX_SCALING_PER_LEVEL)
        self.level0_hex_area_km2 = settings.get('level0_hex_area_km2', DEFAULTS.LEVEL0_HEX_AREA_KM2)

    # --- Position <-> Cell ---
    def cell_for_position(self, position, planet_radius: float, resolution: int) -> str:
        resolution = check_resolution(resolution)
        lat, lng = position_to_latlng(position, planet_radius)
        return h3.latlng_to_cell(lat, lng, resolution)

    def sector_for_position(self, position, planet_radius: float) -> str:
        """Returns the coarse cell that buckets a position for interaction search."""
        return self.cell_for_position(position, planet_radius, DEFAULTS.SECTOR_RESOLUTION)

    def position_for_cell(self, cell_id: str, planet_radius: float) -> np.ndarray:
        self._check_cell(cell_id)
        unit_point = None
        if self.position_cache is not None:
            unit_point = self.position_cache.get(cell_id)
        if unit_point is None:
            lat, lng = h3.cell_to_latlng(cell_id)
            unit_point = latlng_to_position(lat, lng, 1.0)
            if self.position_cache is not None:
                self.position_cache.set(cell_id, unit_point)
        return unit_point * planet_radius

    # --- Adjacency ---
    def ring_neighbors(self, cell_id: str) -> list[str]:
        """The five or six cells sharing an edge with cell_id, excluding itself."""
        self._check_cell(cell_id)
        return sorted(c for c in h3.grid_disk(cell_id, 1) if c != cell_id)

    def children(self, cell_id: str, target_resolution: int) -> list[str]:
        self._check_cell(cell_id)
        target_resolution = check_resolution(target_resolution)
        if target_resolution < h3.get_resolution(cell_id):
            raise InvalidResolution(
                f"Target resolution {target_resolution} is coarser than cell {cell_id}"
            )
        return sorted(h3.cell_to_children(cell_id, target_resolution))

    def base_cells(self) -> list[str]:
        """The 122 resolution 0 cells that partition the sphere."""
        return sorted(h3.get_res0_cells())

    # --- Cell Dimensions ---
    def hex_radius_at_resolution(self, planet_radius: float, resolution: int) -> float:
        """
        Half of the center-to-center distance between cells at a resolution,
        scaled linearly by planet radius and by 1/2.64 per level.
        """
        cached = self.hex_radius_cache.get(planet_radius, resolution)
        if cached is not None:
            return cached

        base_hex_radius = (planet_radius / self.earth_radius_km) * self.level0_hex_radius_km
        scaling_factor = (1.0 / self.hex_scaling_per_level) ** resolution
        radius_km = base_hex_radius * scaling_factor

        self.hex_radius_cache.set(planet_radius, resolution, radius_km)
        return radius_km

    def hex_area_at_resolution(self, planet_radius: float, resolution: int) -> float:
        """Approximate cell area in square kilometers."""
        resolution = check_resolution(resolution)
        radius_ratio = planet_radius / self.earth_radius_km
        scaled_area_km2 = self.level0_hex_area_km2 * radius_ratio * radius_ratio
        return scaled_area_km2 / (7 ** resolution)

    @staticmethod
    def _check_cell(cell_id):
        if not isinstance(cell_id, str) or not h3.is_valid_cell(cell_id):
            raise InvalidCell(cell_id)
