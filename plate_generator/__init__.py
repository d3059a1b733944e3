# plate_generator/__init__.py

# Public API of the platelet generator.

from .errors import (
    GenerationEmpty,
    InvalidCell,
    InvalidPosition,
    InvalidRadius,
    InvalidResolution,
    PlanetMismatch,
    PlateGeneratorError,
    SinkWriteFailure,
)
from .generator import PlateletGenerator, agenerate_platelets, generate_platelets
from .grid import CellPositionCache, GridMapper, HexRadiusCache
from .interactions import InteractionDetector, find_interactions, sectors_in
from .models import Connection, Planet, Plate, Platelet
from .store import MemoryStore, PlateletSink, PlateletSource
from .tectonics import float_elevation

__all__ = [
    "PlateletGenerator", "generate_platelets", "agenerate_platelets",
    "GridMapper", "HexRadiusCache", "CellPositionCache",
    "InteractionDetector", "find_interactions", "sectors_in",
    "Planet", "Plate", "Platelet", "Connection",
    "MemoryStore", "PlateletSink", "PlateletSource",
    "float_elevation",
    "PlateGeneratorError", "InvalidRadius", "InvalidCell", "InvalidPosition",
    "InvalidResolution", "PlanetMismatch", "GenerationEmpty", "SinkWriteFailure",
]
