"""Shared fixtures for the platelet generator tests."""

from __future__ import annotations

import logging

import pytest

from plate_generator.grid import GridMapper, latlng_to_position
from plate_generator.models import Planet, Plate, Platelet
from plate_generator.store import MemoryStore

EARTH_RADIUS = 6371.0


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("tests")


@pytest.fixture
def planet() -> Planet:
    return Planet(radius=EARTH_RADIUS, id="earth", name="Earth")


@pytest.fixture
def grid() -> GridMapper:
    return GridMapper()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def polar_plate(planet: Planet) -> Plate:
    """A continental plate centered on the north pole."""
    return Plate(
        id="polar",
        planet_id=planet.id,
        position=(0.0, planet.radius, 0.0),
        radius=500.0,
        density=2.8,
        thickness=35.0,
    )


def make_plate(planet: Planet, plate_id: str, lat: float, lng: float, radius: float, **kwargs) -> Plate:
    return Plate(
        id=plate_id,
        planet_id=planet.id,
        position=latlng_to_position(lat, lng, planet.radius),
        radius=radius,
        density=kwargs.get("density", 2.9),
        thickness=kwargs.get("thickness", 7.0),
    )


def make_platelet(platelet_id: str, position, radius: float, sector: str = "sector-a") -> Platelet:
    return Platelet(
        id=platelet_id,
        plate_id="plate",
        planet_id="earth",
        cell_id="cell-" + platelet_id,
        sector=sector,
        position=position,
        radius=radius,
        thickness=1.0,
        density=1.0,
        elevation=0.0,
        mass=1.0,
    )
