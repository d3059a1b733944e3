# generate_platelets.py

"""
================================================================================
OFFLINE PLATELET GENERATION SCRIPT
================================================================================
This script is a command-line tool for discretizing every plate of a planet
into platelets and computing which platelets interact. Plates are generated
in parallel worker processes; interaction detection then runs per sector.

Usage:
    python generate_platelets.py --config path/to/your/config.json

Config file layout:
    {
        "planet": {"id": "earth", "radius": 6371.0, "name": "Earth"},
        "plates": [
            {"id": "p1", "lat": 45.0, "lng": 10.0, "radius": 800.0,
             "density": 2.8, "thickness": 35.0},
            ...
        ],
        "generation_parameters": {"platelet_cell_level": 3}
    }
A plate may give its center as "position": [x, y, z] (km) instead of
"lat"/"lng" (degrees).
================================================================================
"""
import os
import sys
import json
import logging
import argparse
import time
import multiprocessing
from tqdm import tqdm

# Add project root to Python path to allow importing from plate_generator
sys.path.append(os.path.abspath(os.path.dirname(__file__)))

from plate_generator.errors import PlateGeneratorError
from plate_generator.grid import latlng_to_position
from plate_generator.interactions import InteractionDetector, sectors_in
from plate_generator.models import Planet, Plate
from plate_generator.store import MemoryStore
from plate_generator.tectonics import extend_plate
from plate_generator.worker import merge_job_result, run_plate_generation_job

DEFAULT_OUTPUT_DIR = "generated_platelets"


def load_plates(plate_entries: list, planet: Planet) -> list:
    """Builds Plate records from config entries, resolving lat/lng centers."""
    plates = []
    for entry in plate_entries:
        data = dict(entry)
        data.setdefault('planet_id', planet.id)
        if 'position' not in data:
            data['position'] = latlng_to_position(data['lat'], data['lng'], planet.radius).tolist()
        plates.append(Plate.from_dict(data))
    return plates


def find_duplicate_ids(plates: list) -> list:
    seen = set()
    duplicates = set()
    for plate in plates:
        if plate.id in seen:
            duplicates.add(plate.id)
        seen.add(plate.id)
    return sorted(duplicates)


def generate_world_platelets(config_path: str, output_dir: str, num_workers: int = None, resolution: int = None) -> bool:
    """
    Loads a configuration, generates the platelets of every plate and the
    interaction map of every sector, and saves them as JSON to output_dir.

    Returns:
        bool: True on success.
    """
    # 1. --- Setup Logging ---
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        stream=sys.stdout
    )
    logger = logging.getLogger("PlateletGenerator")

    # 2. --- Load Configuration ---
    logger.info(f"Loading configuration from: {config_path}")
    try:
        with open(config_path, 'r') as f:
            config = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError) as e:
        logger.critical(f"Failed to load or parse config file: {e}")
        return False

    generator_settings = config.get('generation_parameters', {})
    if resolution is not None:
        generator_settings['platelet_cell_level'] = resolution

    try:
        planet = Planet.from_dict(config['planet'])
        plates = load_plates(config.get('plates', []), planet)
    except (KeyError, TypeError, ValueError) as e:
        logger.critical(f"Invalid planet or plate definition: {e}")
        return False

    # Regenerating one plate twice in the same run would interleave writes.
    duplicates = find_duplicate_ids(plates)
    if duplicates:
        logger.critical(f"Duplicate plate ids in config: {', '.join(duplicates)}")
        return False
    if not plates:
        logger.warning("Config defines no plates; nothing to generate.")

    ranked = sorted(plates, key=lambda p: p.radius, reverse=True)
    for rank, plate in enumerate(ranked, start=1):
        summary = extend_plate(plate, planet.radius, rank)
        logger.info(
            f"  - Plate {plate.id}: {summary['behavioral_type']}, "
            f"{summary['coverage_percent']:.2f}% of surface, mass {summary['mass']:.3e} kg"
        )

    # 3. --- Generate Platelets (Parallelized) ---
    tasks = [
        {
            'planet': planet.to_dict(),
            'plate': plate.to_dict(),
            'generator_settings': generator_settings,
            'resolution': generator_settings.get('platelet_cell_level'),
        }
        for plate in plates
    ]

    if num_workers is None:
        num_workers = max(1, multiprocessing.cpu_count() - 1)
    num_workers = max(1, min(num_workers, len(tasks) or 1))
    logger.info(f"Generating platelets for {len(tasks)} plates using {num_workers} worker processes.")

    store = MemoryStore(logger=logger)
    fallback_plates = []
    start_time = time.perf_counter()
    try:
        if num_workers == 1:
            results_iterator = map(run_plate_generation_job, tasks)
            for result in tqdm(results_iterator, total=len(tasks), desc="Generating Plates"):
                merge_job_result(result, store)
                if result['fallback']:
                    fallback_plates.append(result['plate_id'])
        else:
            with multiprocessing.Pool(processes=num_workers) as pool:
                results_iterator = pool.imap_unordered(run_plate_generation_job, tasks)
                for result in tqdm(results_iterator, total=len(tasks), desc="Generating Plates"):
                    merge_job_result(result, store)
                    if result['fallback']:
                        fallback_plates.append(result['plate_id'])
    except PlateGeneratorError as e:
        logger.critical(f"Platelet generation failed: {e}", exc_info=True)
        return False

    logger.info(f"Generated {len(store)} platelets in {time.perf_counter() - start_time:.2f} seconds.")
    if fallback_plates:
        logger.info(f"Plates smaller than one cell (single center platelet): {', '.join(sorted(fallback_plates))}")

    # 4. --- Detect Interactions per Sector ---
    interactions = {}
    for sector_id in sectors_in(store):
        detector = InteractionDetector(store, sector_id, logger=logger)
        sector_interactions = detector.find_interactions()
        interactions[sector_id] = {
            platelet_id: sorted(partners)
            for platelet_id, partners in sorted(sector_interactions.items())
        }

    # 5. --- Save Results ---
    os.makedirs(output_dir, exist_ok=True)
    store.dump(os.path.join(output_dir, "platelets.json"))

    interactions_path = os.path.join(output_dir, "interactions.json")
    with open(interactions_path, 'w') as f:
        json.dump(interactions, f, indent=2)

    # The "birth certificate": everything needed to regenerate identical output.
    gen_config_path = os.path.join(output_dir, "generation_config.json")
    with open(gen_config_path, 'w') as f:
        json.dump({
            'planet': planet.to_dict(),
            'plates': [plate.to_dict() for plate in plates],
            'generation_parameters': generator_settings,
        }, f, indent=4)

    logger.info(f"Platelets, interactions and generation config saved to: {output_dir}")
    return True


# --- Command-Line Interface ---
if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Offline platelet generator for tectonic plate simulations.")
    parser.add_argument(
        "--config",
        type=str,
        required=True,
        help="Path to the JSON configuration file describing the planet and its plates."
    )
    parser.add_argument(
        "--output",
        type=str,
        default=DEFAULT_OUTPUT_DIR,
        help="Directory the generated platelets and interactions are written to."
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of worker processes (default: CPU count - 1)."
    )
    parser.add_argument(
        "--resolution",
        type=int,
        default=None,
        help="H3 resolution of the platelets, overriding the config file."
    )
    args = parser.parse_args()

    success = generate_world_platelets(args.config, args.output, args.workers, args.resolution)
    sys.exit(0 if success else 1)
