# plate_generator/models.py

"""
================================================================================
SIMULATION RECORDS
================================================================================
Plain data records shared by the grid mapper, the platelet generator and the
interaction detector.

Data Contract:
---------------
- Positions and velocities are (x, y, z) tuples of floats in kilometers, with
  the y axis as the polar axis.
- Every record converts to and from a JSON-safe dict so it can cross process
  boundaries and be written to disk.
- Invariants: a Planet is immutable and at least MIN_PLANET_RADIUS_KM in
  radius. Platelets are created once and not mutated by this package.
================================================================================
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple

from . import config as DEFAULTS
from .errors import InvalidRadius

Vector = Tuple[float, float, float]


def as_vector(value: Sequence[float]) -> Vector:
    """Coerces any 3-element sequence (list, tuple, ndarray) into a Vector."""
    x, y, z = value
    return (float(x), float(y), float(z))


@dataclass(frozen=True)
class Planet:
    radius: float
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: Optional[str] = None

    def __post_init__(self):
        if not math.isfinite(self.radius) or self.radius < DEFAULTS.MIN_PLANET_RADIUS_KM:
            raise InvalidRadius(
                f"planet radii must be >= {DEFAULTS.MIN_PLANET_RADIUS_KM:g}km (got {self.radius})"
            )

    def to_dict(self) -> dict:
        return {"id": self.id, "radius": self.radius, "name": self.name}

    @classmethod
    def from_dict(cls, data: dict) -> "Planet":
        kwargs = {"radius": float(data["radius"]), "name": data.get("name")}
        if data.get("id"):
            kwargs["id"] = data["id"]
        return cls(**kwargs)


@dataclass
class Plate:
    """A disk on the planet surface: center position and geodesic radius (km)."""

    id: str
    planet_id: str
    position: Vector
    radius: float
    density: float
    thickness: float
    velocity: Vector = (0.0, 0.0, 0.0)
    is_active: bool = True

    def __post_init__(self):
        self.position = as_vector(self.position)
        self.velocity = as_vector(self.velocity)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "planet_id": self.planet_id,
            "position": list(self.position),
            "radius": self.radius,
            "density": self.density,
            "thickness": self.thickness,
            "velocity": list(self.velocity),
            "is_active": self.is_active,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Plate":
        return cls(
            id=data["id"],
            planet_id=data["planet_id"],
            position=data["position"],
            radius=float(data["radius"]),
            density=float(data["density"]),
            thickness=float(data["thickness"]),
            velocity=data.get("velocity", (0.0, 0.0, 0.0)),
            is_active=bool(data.get("is_active", True)),
        )


@dataclass
class Connection:
    distance: float
    strength: float
    is_active: bool = True


@dataclass
class Platelet:
    """A small hexagonal surface patch of a plate."""

    id: str
    plate_id: str
    planet_id: str
    cell_id: str
    sector: str
    position: Vector
    radius: float
    thickness: float
    density: float
    elevation: float
    mass: float
    velocity: Vector = (0.0, 0.0, 0.0)
    is_active: bool = True
    neighbor_cell_ids: Tuple[str, ...] = ()
    connections: Dict[str, Connection] = field(default_factory=dict)

    def __post_init__(self):
        self.position = as_vector(self.position)
        self.velocity = as_vector(self.velocity)
        self.neighbor_cell_ids = tuple(self.neighbor_cell_ids)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "plate_id": self.plate_id,
            "planet_id": self.planet_id,
            "cell_id": self.cell_id,
            "sector": self.sector,
            "position": list(self.position),
            "radius": self.radius,
            "thickness": self.thickness,
            "density": self.density,
            "elevation": self.elevation,
            "mass": self.mass,
            "velocity": list(self.velocity),
            "is_active": self.is_active,
            "neighbor_cell_ids": list(self.neighbor_cell_ids),
            "connections": {
                other_id: {
                    "distance": conn.distance,
                    "strength": conn.strength,
                    "is_active": conn.is_active,
                }
                for other_id, conn in self.connections.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Platelet":
        connections = {
            other_id: Connection(
                distance=float(conn["distance"]),
                strength=float(conn["strength"]),
                is_active=bool(conn.get("is_active", True)),
            )
            for other_id, conn in data.get("connections", {}).items()
        }
        return cls(
            id=data["id"],
            plate_id=data["plate_id"],
            planet_id=data["planet_id"],
            cell_id=data["cell_id"],
            sector=data["sector"],
            position=data["position"],
            radius=float(data["radius"]),
            thickness=float(data["thickness"]),
            density=float(data["density"]),
            elevation=float(data["elevation"]),
            mass=float(data["mass"]),
            velocity=data.get("velocity", (0.0, 0.0, 0.0)),
            is_active=bool(data.get("is_active", True)),
            neighbor_cell_ids=data.get("neighbor_cell_ids", ()),
            connections=connections,
        )
