"""Tests for plate_generator.generator."""

from __future__ import annotations

import asyncio
import dataclasses
import math
from collections import deque

import numpy as np
import pytest

from plate_generator import config as DEFAULTS
from plate_generator.errors import InvalidCell, InvalidResolution, PlanetMismatch, SinkWriteFailure
from plate_generator.generator import PlateletGenerator, agenerate_platelets, generate_platelets
from plate_generator.grid import GridMapper
from plate_generator.models import Planet
from plate_generator.store import MemoryStore
from plate_generator.tectonics import float_elevation

from conftest import make_plate


class FailingSink:
    """Accepts a fixed number of writes, then raises."""

    def __init__(self, allowed: int):
        self.allowed = allowed
        self.written = {}

    def set(self, key, value):
        if len(self.written) >= self.allowed:
            raise IOError("disk full")
        self.written[key] = value


class AsyncSink:
    """Stores writes from a coroutine set(); optionally fails after a number of writes."""

    def __init__(self, allowed: int = None):
        self.allowed = allowed
        self.written = {}

    async def set(self, key, value):
        await asyncio.sleep(0)
        if self.allowed is not None and len(self.written) >= self.allowed:
            raise ConnectionError("backend unavailable")
        self.written[key] = value


class NoisyNeighborGrid(GridMapper):
    """Reports an unresolvable cell among the real neighbors."""

    def ring_neighbors(self, cell_id):
        return super().ring_neighbors(cell_id) + ["not-a-cell"]


class OrphanGrid(GridMapper):
    """Reports only unresolvable neighbors."""

    def ring_neighbors(self, cell_id):
        self._check_cell(cell_id)
        return ["not-a-cell", "also-not-a-cell"]


def _connected(platelets, grid: GridMapper) -> bool:
    cells = {p.cell_id for p in platelets}
    start = next(iter(cells))
    seen = {start}
    queue = deque([start])
    while queue:
        cell = queue.popleft()
        for neighbor in grid.ring_neighbors(cell):
            if neighbor in cells and neighbor not in seen:
                seen.add(neighbor)
                queue.append(neighbor)
    return seen == cells


class TestFloodFill:
    def test_polar_plate(self, planet, polar_plate, grid, logger) -> None:
        platelets = PlateletGenerator(logger=logger).generate_platelets(polar_plate, planet)

        assert 20 <= len(platelets) <= 200
        center = np.asarray(polar_plate.position)
        for platelet in platelets:
            assert np.linalg.norm(np.asarray(platelet.position) - center) <= polar_plate.radius
            assert np.linalg.norm(platelet.position) == pytest.approx(planet.radius)
            assert platelet.plate_id == polar_plate.id
            assert platelet.planet_id == planet.id
            assert platelet.id == f"{polar_plate.id}-{platelet.cell_id}"
            assert platelet.sector == grid.sector_for_position(platelet.position, planet.radius)
            assert platelet.neighbor_cell_ids == tuple(grid.ring_neighbors(platelet.cell_id))

        assert len({p.id for p in platelets}) == len(platelets)
        assert _connected(platelets, grid)

    def test_derived_properties(self, planet, polar_plate) -> None:
        platelets = generate_platelets(polar_plate, planet)
        hex_radius = GridMapper().hex_radius_at_resolution(planet.radius, DEFAULTS.PLATELET_CELL_LEVEL)
        for platelet in platelets:
            assert platelet.mass == pytest.approx(
                polar_plate.thickness * polar_plate.density * math.pi * platelet.radius ** 2
            )
            assert platelet.elevation == pytest.approx(
                polar_plate.thickness * (1 - polar_plate.density / DEFAULTS.MANTLE_DENSITY)
            )
            assert platelet.thickness == polar_plate.thickness
            assert platelet.density == polar_plate.density
            assert 0.5 * hex_radius < platelet.radius < 1.5 * hex_radius

    def test_deterministic(self, planet) -> None:
        plate = make_plate(planet, "eq", 3.0, -20.0, 400.0)
        first = generate_platelets(plate, planet)
        second = PlateletGenerator(grid=GridMapper()).generate_platelets(plate, planet)
        assert [p.to_dict() for p in first] == [p.to_dict() for p in second]

    def test_finer_resolution_gives_more_platelets(self, planet, polar_plate) -> None:
        coarse = generate_platelets(polar_plate, planet, resolution=2)
        fine = generate_platelets(polar_plate, planet, resolution=3)
        assert len(fine) > len(coarse)

    def test_coverage_floor(self, planet, grid) -> None:
        diameter = 2 * grid.hex_radius_at_resolution(planet.radius, DEFAULTS.PLATELET_CELL_LEVEL)
        for lat, lng in [(0.0, 0.0), (-33.0, 151.0), (71.0, -42.0)]:
            plate = make_plate(planet, f"p{lat}", lat, lng, diameter)
            assert len(generate_platelets(plate, planet)) >= 1

    def test_invalid_resolution(self, planet, polar_plate) -> None:
        with pytest.raises(InvalidResolution):
            generate_platelets(polar_plate, planet, resolution=16)
        with pytest.raises(InvalidResolution):
            PlateletGenerator(config={"platelet_cell_level": -1})


class TestFallback:
    def test_tiny_plate_gets_one_center_platelet(self, planet, grid) -> None:
        plate = make_plate(planet, "tiny", 12.345, 67.89, 0.5)
        cell = grid.cell_for_position(plate.position, planet.radius, DEFAULTS.PLATELET_CELL_LEVEL)
        # Precondition: no cell center lies within the plate.
        nearest = grid.position_for_cell(cell, planet.radius)
        assert np.linalg.norm(nearest - np.asarray(plate.position)) > plate.radius

        store = MemoryStore()
        platelets = generate_platelets(plate, planet, sink=store)

        assert len(platelets) == 1
        platelet = platelets[0]
        assert platelet.id == "tiny-center"
        assert platelet.position == plate.position
        assert platelet.cell_id == cell
        assert platelet.radius == pytest.approx(
            grid.hex_radius_at_resolution(planet.radius, DEFAULTS.PLATELET_CELL_LEVEL) * 0.5
        )
        assert platelet.neighbor_cell_ids == tuple(grid.ring_neighbors(cell))
        assert store.get("tiny-center") is platelet

    def test_fallback_factor_is_configurable(self, planet, grid) -> None:
        plate = make_plate(planet, "tiny", 12.345, 67.89, 0.5)
        platelet = generate_platelets(plate, planet, config={"fallback_radius_factor": 0.25})[0]
        assert platelet.radius == pytest.approx(
            grid.hex_radius_at_resolution(planet.radius, DEFAULTS.PLATELET_CELL_LEVEL) * 0.25
        )


class TestPersistence:
    def test_platelets_are_streamed_to_sink(self, planet, polar_plate, store) -> None:
        platelets = generate_platelets(polar_plate, planet, sink=store)
        assert len(store) == len(platelets)
        for platelet in platelets:
            assert store.get(platelet.id) is platelet

    def test_regeneration_overwrites(self, planet, polar_plate, store) -> None:
        generator = PlateletGenerator(sink=store)
        first = generator.generate_platelets(polar_plate, planet)
        second = generator.generate_platelets(polar_plate, planet)
        assert len(store) == len(first) == len(second)
        assert all(store.get(p.id) is p for p in second)

    def test_sink_failure(self, planet, polar_plate) -> None:
        sink = FailingSink(allowed=3)
        with pytest.raises(SinkWriteFailure) as excinfo:
            generate_platelets(polar_plate, planet, sink=sink)

        error = excinfo.value
        assert isinstance(error.__cause__, IOError)
        assert error.cause is error.__cause__
        assert error.key.startswith(f"{polar_plate.id}-")
        assert error.key not in sink.written
        # Writes made before the failure are kept.
        assert len(sink.written) == 3

    def test_inactive_plate_gives_inactive_platelets(self, planet, polar_plate) -> None:
        dormant = dataclasses.replace(polar_plate, is_active=False)
        assert not any(p.is_active for p in generate_platelets(dormant, planet))
        assert all(p.is_active for p in generate_platelets(polar_plate, planet))

    def test_planet_mismatch(self, polar_plate) -> None:
        other = Planet(radius=3389.5, id="mars")
        with pytest.raises(PlanetMismatch):
            generate_platelets(polar_plate, other)


class TestElevation:
    def test_default_is_floating_elevation(self, planet, polar_plate) -> None:
        platelet = generate_platelets(polar_plate, planet)[0]
        assert platelet.elevation == pytest.approx(float_elevation(polar_plate.thickness, polar_plate.density))

    def test_mantle_density_from_config(self, planet, polar_plate) -> None:
        platelet = generate_platelets(polar_plate, planet, config={"mantle_density": 4.0})[0]
        assert platelet.elevation == pytest.approx(polar_plate.thickness * (1 - polar_plate.density / 4.0))

    def test_custom_elevation_fn(self, planet, polar_plate) -> None:
        generator = PlateletGenerator(elevation_fn=lambda thickness, density: thickness + density)
        platelets = generator.generate_platelets(polar_plate, planet)
        assert {p.elevation for p in platelets} == {polar_plate.thickness + polar_plate.density}


class TestPlateletFromCell:
    def _cell(self, planet, polar_plate, grid):
        return grid.cell_for_position(polar_plate.position, planet.radius, DEFAULTS.PLATELET_CELL_LEVEL)

    def test_unresolvable_neighbors_are_skipped(self, planet, polar_plate, grid) -> None:
        cell = self._cell(planet, polar_plate, grid)
        plain = PlateletGenerator()._create_platelet_from_cell(cell, polar_plate, planet, 3)
        noisy = PlateletGenerator(grid=NoisyNeighborGrid())._create_platelet_from_cell(cell, polar_plate, planet, 3)
        assert noisy.radius == pytest.approx(plain.radius)
        assert "not-a-cell" in noisy.neighbor_cell_ids

    def test_isolated_cell_uses_nominal_radius(self, planet, polar_plate, grid) -> None:
        cell = self._cell(planet, polar_plate, grid)
        platelet = PlateletGenerator(grid=OrphanGrid())._create_platelet_from_cell(cell, polar_plate, planet, 3)
        assert platelet.radius == pytest.approx(grid.hex_radius_at_resolution(planet.radius, 3) / 2)

    def test_unresolvable_cell_is_skipped(self, planet, polar_plate) -> None:
        generator = PlateletGenerator()
        assert generator._create_platelet_from_cell("bogus", polar_plate, planet, 3) is None

    def test_flood_fill_survives_bad_neighbors(self, planet, polar_plate) -> None:
        plain = generate_platelets(polar_plate, planet)
        noisy = PlateletGenerator(grid=NoisyNeighborGrid()).generate_platelets(polar_plate, planet)
        assert [p.cell_id for p in noisy] == [p.cell_id for p in plain]


def test_invalid_cell_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        GridMapper().ring_neighbors("bogus")
    assert issubclass(InvalidCell, ValueError)


class TestAsyncSink:
    def test_sync_call_awaits_every_write(self, planet, polar_plate) -> None:
        sink = AsyncSink()
        platelets = generate_platelets(polar_plate, planet, sink=sink)
        assert len(platelets) > 1
        assert sink.written == {p.id: p for p in platelets}

    def test_async_call_awaits_every_write(self, planet, polar_plate) -> None:
        sink = AsyncSink()
        platelets = asyncio.run(agenerate_platelets(polar_plate, planet, sink=sink))
        assert sink.written == {p.id: p for p in platelets}
        assert [p.to_dict() for p in platelets] == [p.to_dict() for p in generate_platelets(polar_plate, planet)]

    def test_async_fallback_platelet_is_written(self, planet) -> None:
        plate = make_plate(planet, "tiny", 12.345, 67.89, 0.5)
        sink = AsyncSink()
        asyncio.run(PlateletGenerator(sink=sink).agenerate_platelets(plate, planet))
        assert list(sink.written) == ["tiny-center"]

    @pytest.mark.parametrize("use_async", [False, True])
    def test_async_write_failure(self, planet, polar_plate, use_async) -> None:
        sink = AsyncSink(allowed=2)
        with pytest.raises(SinkWriteFailure) as excinfo:
            if use_async:
                asyncio.run(agenerate_platelets(polar_plate, planet, sink=sink))
            else:
                generate_platelets(polar_plate, planet, sink=sink)
        assert isinstance(excinfo.value.__cause__, ConnectionError)
        assert len(sink.written) == 2

    def test_sync_call_inside_event_loop_fails_loudly(self, planet, polar_plate) -> None:
        sink = AsyncSink()

        async def run():
            return generate_platelets(polar_plate, planet, sink=sink)

        with pytest.raises(SinkWriteFailure):
            asyncio.run(run())
        assert sink.written == {}


def test_estimate_platelet_count(planet, polar_plate) -> None:
    generator = PlateletGenerator()
    expected = generator.estimate_platelet_count(polar_plate, planet)
    cell_area = GridMapper().hex_area_at_resolution(planet.radius, DEFAULTS.PLATELET_CELL_LEVEL)
    assert expected == round(math.pi * polar_plate.radius ** 2 / cell_area)
    assert 0.5 * expected <= len(generator.generate_platelets(polar_plate, planet)) <= 1.5 * expected
    assert generator.estimate_platelet_count(make_plate(planet, "tiny", 0.0, 0.0, 0.5), planet) == 1
