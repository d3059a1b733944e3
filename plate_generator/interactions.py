# plate_generator/interactions.py

"""
================================================================================
PLATELET INTERACTION DETECTION
================================================================================
This module finds which platelets of one sector are close enough to interact.
Sectors bound the pairwise search to platelets that are physically near each
other instead of every platelet in the simulation.

Data Contract:
---------------
- Inputs:
    - source: Any object with values() yielding Platelet records.
    - sector_id: The resolution 0 cell whose platelets are examined.
- Outputs:
    - dict mapping platelet id -> set of interacting platelet ids. Platelets
      with no partner are absent.
- Side Effects: None. Stored platelets are never modified.
- Invariants: The relation is symmetric and irreflexive. Two platelets
  interact iff distance(A, B) <= A.radius + B.radius (tangency interacts).
================================================================================
"""

import logging
from types import MappingProxyType

import numpy as np
from scipy.spatial import cKDTree

from . import config as DEFAULTS


class InteractionDetector:
    """Loads one sector's platelets and computes their overlap relation."""

    def __init__(self, source, sector_id: str, logger: logging.Logger = None):
        self.logger = logger or logging.getLogger(__name__)
        self._sector_id = sector_id
        self._platelets = {}

        for platelet in source.values():
            if platelet.sector == sector_id:
                self._platelets[platelet.id] = platelet

        self.logger.debug(f"Sector {sector_id}: loaded {len(self._platelets)} platelets")

    @property
    def sector_id(self) -> str:
        return self._sector_id

    @property
    def platelets(self):
        return MappingProxyType(self._platelets)

    def __len__(self):
        return len(self._platelets)

    def find_interactions(self) -> dict:
        """
        Returns the symmetric interaction map of the sector.

        Candidate pairs come from a k-d tree search at the largest reach any
        pair could have; each candidate is then checked against its own
        combined radius, so the result matches an exhaustive pairwise check.
        """
        interactions = {}
        if len(self._platelets) < 2:
            return interactions

        ids = list(self._platelets.keys())
        positions = np.array([self._platelets[pid].position for pid in ids], dtype=float)
        radii = np.array([self._platelets[pid].radius for pid in ids], dtype=float)

        # Two largest radii bound the reach of any pair.
        top_two = np.sort(radii)[-2:]
        max_reach = float(top_two.sum())
        search_radius = max_reach * (1.0 + DEFAULTS.INTERACTION_SEARCH_PADDING) + DEFAULTS.INTERACTION_SEARCH_PADDING

        tree = cKDTree(positions)
        candidate_pairs = tree.query_pairs(search_radius, output_type='ndarray')

        for i, j in candidate_pairs:
            distance = float(np.linalg.norm(positions[i] - positions[j]))
            if distance <= radii[i] + radii[j]:
                id1, id2 = ids[i], ids[j]
                interactions.setdefault(id1, set()).add(id2)
                interactions.setdefault(id2, set()).add(id1)

        self.logger.info(
            f"Sector {self._sector_id}: {len(candidate_pairs)} candidate pairs, "
            f"{sum(len(s) for s in interactions.values()) // 2} interacting pairs "
            f"among {len(ids)} platelets."
        )
        return interactions


def find_interactions(source, sector_id: str, logger: logging.Logger = None) -> dict:
    """Convenience wrapper: loads a sector and returns its interaction map."""
    return InteractionDetector(source, sector_id, logger=logger).find_interactions()


def sectors_in(source) -> list[str]:
    """The distinct sectors present in a platelet source, sorted."""
    return sorted({platelet.sector for platelet in source.values()})
