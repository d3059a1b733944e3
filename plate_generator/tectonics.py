# plate_generator/tectonics.py

"""
================================================================================
PLATE GEOLOGY
================================================================================
This module provides the physical formulas the generator applies to plates
and platelets: isostatic elevation, masses, volumes and the behavioral type
of a plate derived from its density.

Data Contract:
---------------
- Inputs:
    - Thickness in km, density in g/cm^3, radii in km.
- Outputs:
    - Plain floats (km, km^2, km^3, kg) and summary dicts.
- Side Effects: None.
================================================================================
"""
import math

from . import config as DEFAULTS

CONTINENTAL = "continental-like"
TRANSITIONAL = "transitional"
OCEANIC = "oceanic-like"


def isostatic_elevation(thickness_km: float, density: float, mantle_density: float = DEFAULTS.MANTLE_DENSITY) -> float:
    """Isostatic elevation (km) of a crust column floating on the mantle."""
    return thickness_km * (1 - density / mantle_density)


def float_elevation(thickness_km: float, density: float, mantle_density: float = DEFAULTS.MANTLE_DENSITY) -> float:
    """
    Floating elevation in km relative to the surface at mantle density. This is
    the default elevation function handed to the PlateletGenerator.
    """
    return isostatic_elevation(thickness_km, density, mantle_density)


def platelet_mass(thickness: float, density: float, radius: float) -> float:
    """Cylindrical-disk approximation: thickness * density * pi * radius^2."""
    return thickness * density * math.pi * radius ** 2


def calculate_sphere_surface_area(radius: float) -> float:
    return 4 * math.pi * radius * radius


def calculate_plate_volume(area: float, thickness: float) -> float:
    return area * thickness


def calculate_mass_kg(volume_km3: float, density: float) -> float:
    """Mass in kg of a volume in km^3 at a density in g/cm^3."""
    volume_m3 = volume_km3 * DEFAULTS.M3_PER_KM3
    density_kg_m3 = density * DEFAULTS.KG_M3_PER_G_CM3
    return volume_m3 * density_kg_m3


def determine_behavioral_type(
    density: float,
    continental_max: float = DEFAULTS.DENSITY_THRESHOLDS["continental_max"],
    oceanic_min: float = DEFAULTS.DENSITY_THRESHOLDS["oceanic_min"],
) -> str:
    if density < continental_max:
        return CONTINENTAL
    if density > oceanic_min:
        return OCEANIC
    return TRANSITIONAL


def extend_plate(plate, planet_radius: float, rank: int = None) -> dict:
    """
    Summarizes a plate with its derived properties.

    Args:
        plate (Plate): The plate to describe.
        planet_radius (float): Radius of the planet in km.
        rank (int, optional): Size rank of the plate (1 = largest).

    Returns:
        dict: The plate's fields plus area (km^2), coverage_percent, volume
        (km^3), mass (kg), behavioral_type and rank.
    """
    area = math.pi * plate.radius * plate.radius
    planet_surface_area = calculate_sphere_surface_area(planet_radius)
    volume = calculate_plate_volume(area, plate.thickness)

    summary = plate.to_dict()
    summary.update({
        "area": area,
        "coverage_percent": (area / planet_surface_area) * 100,
        "volume": volume,
        "mass": calculate_mass_kg(volume, plate.density),
        "behavioral_type": determine_behavioral_type(plate.density),
        "rank": rank,
    })
    return summary
