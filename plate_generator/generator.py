# plate_generator/generator.py

"""
================================================================================
CORE PLATELET GENERATOR
================================================================================
This module contains the PlateletGenerator class, responsible for tiling the
footprint of a tectonic plate with small hexagonal platelets.

Data Contract:
---------------
- Inputs (on initialization):
    - config (dict): Parameters overriding the internal defaults in
      plate_generator.config, e.g. 'platelet_cell_level'.
    - logger: A configured Python logging object for runtime messages.
    - sink: Any object with set(key, platelet), returning None or an
      awaitable; see plate_generator.store.
- Inputs (per call): a Plate and the Planet it belongs to.
- Outputs (from methods):
    - A list of Platelet records in flood-fill order. Every platelet is also
      written to the sink as soon as it is produced.
- Side Effects: Writes to the sink, logs messages using the provided logger.
- Invariants: Given the same plate, planet and configuration, the output is
  deterministic. Every plate yields at least one platelet. The platelets of a
  plate form a single connected component under grid ring adjacency.
================================================================================
"""

import asyncio
import functools
import inspect
import logging
import math
from collections import deque

import numpy as np

from . import config as DEFAULTS
from . import tectonics
from .errors import GenerationEmpty, InvalidCell, PlanetMismatch, SinkWriteFailure
from .grid import GridMapper, check_resolution
from .models import Planet, Plate, Platelet, as_vector


class PlateletGenerator:
    """
    Discretizes plates into platelets with a bounded flood fill over the H3
    grid. One instance may serve many plates; it keeps no per-plate state.
    """
    def __init__(
        self,
        config: dict = None,
        logger: logging.Logger = None,
        sink=None,
        grid: GridMapper = None,
        elevation_fn=None,
    ):
        """
        Initializes the platelet generator.

        Args:
            config (dict, optional): User-defined parameters to override defaults.
            logger (logging.Logger, optional): The logger instance for all output.
            sink (PlateletSink, optional): Destination for generated platelets.
                If None, platelets are only returned.
            grid (GridMapper, optional): The grid mapper to use. A new one,
                with its own caches, is created from the config if None.
            elevation_fn (callable, optional): f(thickness, density) -> elevation.
                Defaults to isostatic floating elevation.
        """
        self.logger = logger or logging.getLogger(__name__)
        self.user_config = config or {}

        # --- Consolidate Configuration ---
        self.settings = {
            'platelet_cell_level': self.user_config.get('platelet_cell_level', DEFAULTS.PLATELET_CELL_LEVEL),
            'candidate_margin_cells': self.user_config.get('candidate_margin_cells', DEFAULTS.CANDIDATE_MARGIN_CELLS),
            'fallback_radius_factor': self.user_config.get('fallback_radius_factor', DEFAULTS.FALLBACK_RADIUS_FACTOR),
            'mantle_density': self.user_config.get('mantle_density', DEFAULTS.MANTLE_DENSITY),
            'earth_radius_km': self.user_config.get('earth_radius_km', DEFAULTS.EARTH_RADIUS_KM),
            'level0_hex_radius_km': self.user_config.get('level0_hex_radius_km', DEFAULTS.LEVEL0_HEX_RADIUS_KM),
            'hex_scaling_per_level': self.user_config.get('hex_scaling_per_level', DEFAULTS.HEX_SCALING_PER_LEVEL),
        }
        check_resolution(self.settings['platelet_cell_level'])

        self.sink = sink
        self.grid = grid if grid is not None else GridMapper(settings=self.settings)
        self.elevation_fn = elevation_fn or functools.partial(
            tectonics.float_elevation, mantle_density=self.settings['mantle_density']
        )
        self.logger.debug(f"PlateletGenerator initialized with settings: {self.settings}")

    # --- Public API ---
    def generate_platelets(self, plate: Plate, planet: Planet, resolution: int = None) -> list:
        """
        Generates, persists and returns the platelets covering a plate.

        A sink whose set() returns an awaitable is driven to completion before
        the next platelet is produced. From inside a running event loop use
        agenerate_platelets instead.

        Raises:
            PlanetMismatch: If the plate does not belong to the planet.
            SinkWriteFailure: If the sink rejects a write. Platelets written
                before the failure remain valid.
        """
        resolution = self._check_inputs(plate, planet, resolution)
        platelets = []
        for platelet in self._platelet_stream(plate, planet, resolution):
            self._persist(platelet)
            platelets.append(platelet)
        self._log_summary(plate, planet, resolution, platelets)
        return platelets

    async def agenerate_platelets(self, plate: Plate, planet: Planet, resolution: int = None) -> list:
        """Same as generate_platelets, awaiting each write of an async sink."""
        resolution = self._check_inputs(plate, planet, resolution)
        platelets = []
        for platelet in self._platelet_stream(plate, planet, resolution):
            await self._apersist(platelet)
            platelets.append(platelet)
        self._log_summary(plate, planet, resolution, platelets)
        return platelets

    def estimate_platelet_count(self, plate: Plate, planet: Planet, resolution: int = None) -> int:
        """Plate disk area over the nominal cell area, at least 1."""
        if resolution is None:
            resolution = self.settings['platelet_cell_level']
        cell_area = self.grid.hex_area_at_resolution(planet.radius, resolution)
        return max(1, round(math.pi * plate.radius ** 2 / cell_area))

    def _check_inputs(self, plate: Plate, planet: Planet, resolution) -> int:
        if plate.planet_id != planet.id:
            raise PlanetMismatch(
                f"Plate {plate.id} belongs to planet {plate.planet_id}, not {planet.id}"
            )
        if resolution is None:
            resolution = self.settings['platelet_cell_level']
        return check_resolution(resolution)

    def _log_summary(self, plate: Plate, planet: Planet, resolution: int, platelets: list):
        self.logger.info(
            f"Generated {len(platelets)} platelets for plate {plate.id} "
            f"(radius {plate.radius:.1f} km, resolution {resolution}, "
            f"~{self.estimate_platelet_count(plate, planet, resolution)} expected)."
        )

    def _platelet_stream(self, plate: Plate, planet: Planet, resolution: int):
        """Yields the flood-fill platelets, or the single center platelet if there are none."""
        emitted = 0
        try:
            for platelet in self._flood_fill(plate, planet, resolution):
                emitted += 1
                yield platelet
            if not emitted:
                raise GenerationEmpty(f"No cell centers of plate {plate.id} fall within its radius")
        except GenerationEmpty as signal:
            self.logger.info(f"{signal}; using a single center platelet.")
            yield self._create_center_platelet(plate, planet, resolution)

    # --- Candidate Discovery ---
    def _candidate_cells(self, center: np.ndarray, plate: Plate, planet: Planet, resolution: int) -> list:
        """
        Finds the cells at the target resolution that lie under the coarse
        cells near the plate. Only the resolution 0 cells within the plate
        radius plus a margin are expanded.
        """
        h0_radius = self.grid.hex_radius_at_resolution(planet.radius, 0)
        candidate_threshold = plate.radius + self.settings['candidate_margin_cells'] * h0_radius

        coarse_cells = []
        for cell in self.grid.base_cells():
            position = self.grid.position_for_cell(cell, planet.radius)
            if np.linalg.norm(position - center) <= candidate_threshold:
                coarse_cells.append(cell)

        candidates = set()
        for cell in coarse_cells:
            candidates.update(self.grid.children(cell, resolution))

        self.logger.debug(
            f"Plate {plate.id}: {len(coarse_cells)} coarse cells within {candidate_threshold:.1f} km "
            f"-> {len(candidates)} candidate cells at resolution {resolution}"
        )
        return sorted(candidates)

    # --- Flood Fill ---
    def _flood_fill(self, plate: Plate, planet: Planet, resolution: int):
        """Yields platelets breadth-first from the seed cells inside the plate."""
        center = np.asarray(plate.position, dtype=float)
        inside_cache = {}

        def is_inside(cell: str) -> bool:
            if cell not in inside_cache:
                try:
                    position = self.grid.position_for_cell(cell, planet.radius)
                except InvalidCell as e:
                    self.logger.warning(f"Skipping cell during inclusion test: {e}")
                    inside_cache[cell] = False
                else:
                    inside_cache[cell] = bool(np.linalg.norm(position - center) <= plate.radius)
            return inside_cache[cell]

        seeds = [cell for cell in self._candidate_cells(center, plate, planet, resolution) if is_inside(cell)]
        self.logger.debug(f"Plate {plate.id}: {len(seeds)} seed cells inside the plate radius")

        processed = set()
        queue = deque(seeds)
        while queue:
            cell = queue.popleft()
            if cell in processed:
                continue
            processed.add(cell)

            platelet = self._create_platelet_from_cell(cell, plate, planet, resolution)
            if platelet is None:
                continue
            yield platelet

            for neighbor in platelet.neighbor_cell_ids:
                if neighbor not in processed and is_inside(neighbor):
                    queue.append(neighbor)

    # --- Platelet Materialization ---
    def _create_platelet_from_cell(self, cell: str, plate: Plate, planet: Planet, resolution: int):
        """Builds the platelet for one cell, or returns None if the cell cannot be located."""
        try:
            position = self.grid.position_for_cell(cell, planet.radius)
            neighbor_cell_ids = self.grid.ring_neighbors(cell)
        except InvalidCell as e:
            self.logger.warning(f"Skipping platelet for plate {plate.id}: {e}")
            return None

        total_distance = 0.0
        valid_neighbor_count = 0
        for neighbor in neighbor_cell_ids:
            try:
                neighbor_position = self.grid.position_for_cell(neighbor, planet.radius)
            except InvalidCell as e:
                self.logger.warning(f"Ignoring neighbor of {cell}: {e}")
                continue
            total_distance += float(np.linalg.norm(neighbor_position - position))
            valid_neighbor_count += 1

        if valid_neighbor_count > 0:
            radius = (total_distance / valid_neighbor_count) / 2
        else:
            # Isolated cell: fall back to the nominal cell size.
            radius = self.grid.hex_radius_at_resolution(planet.radius, resolution) / 2

        return self._build_platelet(
            platelet_id=f"{plate.id}-{cell}",
            cell_id=cell,
            position=position,
            radius=radius,
            plate=plate,
            planet=planet,
            neighbor_cell_ids=neighbor_cell_ids,
        )

    def _create_center_platelet(self, plate: Plate, planet: Planet, resolution: int) -> Platelet:
        """The single platelet of a plate too small to contain any cell center."""
        cell = self.grid.cell_for_position(plate.position, planet.radius, resolution)
        try:
            neighbor_cell_ids = self.grid.ring_neighbors(cell)
        except InvalidCell as e:
            self.logger.warning(f"No neighbors for fallback cell of plate {plate.id}: {e}")
            neighbor_cell_ids = []

        radius = self.grid.hex_radius_at_resolution(planet.radius, resolution) * self.settings['fallback_radius_factor']
        return self._build_platelet(
            platelet_id=f"{plate.id}-center",
            cell_id=cell,
            position=plate.position,
            radius=radius,
            plate=plate,
            planet=planet,
            neighbor_cell_ids=neighbor_cell_ids,
        )

    def _build_platelet(self, platelet_id, cell_id, position, radius, plate, planet, neighbor_cell_ids) -> Platelet:
        position = as_vector(position)
        return Platelet(
            id=platelet_id,
            plate_id=plate.id,
            planet_id=planet.id,
            cell_id=cell_id,
            sector=self.grid.sector_for_position(position, planet.radius),
            position=position,
            radius=radius,
            thickness=plate.thickness,
            density=plate.density,
            elevation=self.elevation_fn(plate.thickness, plate.density),
            mass=tectonics.platelet_mass(plate.thickness, plate.density, radius),
            velocity=plate.velocity,
            is_active=plate.is_active,
            neighbor_cell_ids=neighbor_cell_ids,
        )

    # --- Persistence ---
    def _persist(self, platelet: Platelet):
        if self.sink is None:
            return
        try:
            result = self.sink.set(platelet.id, platelet)
            if inspect.isawaitable(result):
                _run_awaitable(result)
        except Exception as e:
            raise self._write_failure(platelet, e) from e

    async def _apersist(self, platelet: Platelet):
        if self.sink is None:
            return
        try:
            result = self.sink.set(platelet.id, platelet)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            raise self._write_failure(platelet, e) from e

    def _write_failure(self, platelet: Platelet, cause: Exception) -> SinkWriteFailure:
        self.logger.error(f"Sink write failed for platelet '{platelet.id}': {cause}")
        return SinkWriteFailure(platelet.id, cause)


def _run_awaitable(awaitable):
    """Runs an awaitable returned by a sink on a private event loop."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        pass
    else:
        if inspect.iscoroutine(awaitable):
            awaitable.close()
        raise RuntimeError("Sink returned an awaitable inside a running event loop; use agenerate_platelets")

    async def wait():
        return await awaitable

    return asyncio.run(wait())


def generate_platelets(
    plate: Plate,
    planet: Planet,
    resolution: int = None,
    sink=None,
    logger: logging.Logger = None,
    config: dict = None,
) -> list:
    """Convenience wrapper: runs a fresh PlateletGenerator for one plate."""
    generator = PlateletGenerator(config=config, logger=logger, sink=sink)
    return generator.generate_platelets(plate, planet, resolution)


async def agenerate_platelets(
    plate: Plate,
    planet: Planet,
    resolution: int = None,
    sink=None,
    logger: logging.Logger = None,
    config: dict = None,
) -> list:
    """Async counterpart of generate_platelets for sinks with async set()."""
    generator = PlateletGenerator(config=config, logger=logger, sink=sink)
    return await generator.agenerate_platelets(plate, planet, resolution)
