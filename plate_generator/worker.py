# plate_generator/worker.py

import logging
import os

from .generator import PlateletGenerator
from .models import Planet, Plate, Platelet
from .store import MemoryStore


def run_plate_generation_job(args: dict) -> dict:
    """
    A top-level, pickle-able function designed to be run in a worker process.
    It generates the platelets of a single plate and returns them as dicts.

    Expected keys: 'planet' and 'plate' (record dicts), 'generator_settings'
    (config dict), and optionally 'resolution'.

    The worker writes into a private MemoryStore; the caller merges the
    returned platelets into its own sink with merge_job_result. For equal
    inputs the result is identical to a foreground generate_platelets call.
    """
    # --- Recreate the necessary environment inside the worker ---
    worker_logger = logging.getLogger(f"Worker-{os.getpid()}")
    planet = Planet.from_dict(args['planet'])
    plate = Plate.from_dict(args['plate'])

    store = MemoryStore(logger=worker_logger)
    generator = PlateletGenerator(
        config=args.get('generator_settings', {}),
        logger=worker_logger,
        sink=store,
    )
    platelets = generator.generate_platelets(plate, planet, args.get('resolution'))

    return {
        'plate_id': plate.id,
        'platelets': [p.to_dict() for p in platelets],
        'fallback': len(platelets) == 1 and platelets[0].id == f"{plate.id}-center",
    }


def merge_job_result(result: dict, sink) -> list:
    """Writes the platelets of a finished job into a sink and returns them."""
    platelets = [Platelet.from_dict(data) for data in result['platelets']]
    for platelet in platelets:
        sink.set(platelet.id, platelet)
    return platelets
