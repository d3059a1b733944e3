# plate_generator/config.py

"""
================================================================================
INTERNAL DEFAULT CONFIGURATION
================================================================================
This module contains the default, fallback internal constants for the platelet
generator. These values are used if they are not explicitly provided by the
caller's configuration.

DO NOT MODIFY THIS FILE FOR A SPECIFIC SIMULATION.
Instead, pass a configuration dictionary to the PlateletGenerator instance.
================================================================================
"""

# --- Planet Limits ---
# Planets smaller than this are rejected at construction.
MIN_PLANET_RADIUS_KM = 1000.0

# --- Hex Grid Reference Values ---
# All grid sizes are calibrated against Earth and scaled linearly by radius.
EARTH_RADIUS_KM = 6371.0088
# Half of the center-to-center distance between resolution 0 cells on Earth.
LEVEL0_HEX_RADIUS_KM = 1077.58
# Cell count grows x7 per level, so linear size shrinks by roughly sqrt(7).
HEX_SCALING_PER_LEVEL = 2.64
# Average area of a resolution 0 hexagon on Earth, in square kilometers.
LEVEL0_HEX_AREA_KM2 = 4357449.416

MIN_H3_RESOLUTION = 0
MAX_H3_RESOLUTION = 15

# --- Platelet Generation ---
# Resolution level for platelets (higher resolution, smaller platelets).
PLATELET_CELL_LEVEL = 3
# Coarse resolution used to bucket platelets into sectors.
SECTOR_RESOLUTION = 0
# How many resolution 0 cell radii beyond the plate edge to search for
# candidate coarse cells.
CANDIDATE_MARGIN_CELLS = 2.0
# Fraction of the cell radius given to the single platelet of a plate that
# is smaller than one cell.
FALLBACK_RADIUS_FACTOR = 0.5

# --- Geology ---
# Density of the mantle in g/cm^3, used for isostatic elevation.
MANTLE_DENSITY = 3.3
# Densities (g/cm^3) separating continental, transitional and oceanic plates.
DENSITY_THRESHOLDS = {
    "continental_max": 2.8,
    "oceanic_min": 2.9,
}

# --- Interaction Detection ---
# Relative padding applied to the k-d tree search radius so that pairs at
# exact tangency are never lost to rounding before the exact check.
INTERACTION_SEARCH_PADDING = 1e-9

# --- Unit Conversion ---
M3_PER_KM3 = 1.0e9
KG_M3_PER_G_CM3 = 1000.0
