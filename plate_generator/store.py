# plate_generator/store.py

"""
================================================================================
PLATELET PERSISTENCE CONTRACT
================================================================================
The generator writes through a narrow key/value sink and the interaction
detector reads through a narrow source. Any backend that provides these
methods can be plugged in; MemoryStore is the in-process implementation used
by the workers, the command-line tool and the tests.
================================================================================
"""

import json
import logging
import os
from typing import Awaitable, Iterable, Iterator, Optional, Protocol

from .models import Platelet


class PlateletSink(Protocol):
    """
    Where generated platelets are written, keyed by platelet id. set() may
    return an awaitable; the generator waits for it before moving on.
    """

    def set(self, key: str, value: Platelet) -> Optional[Awaitable[None]]: ...


class PlateletSource(Protocol):
    """Where the interaction detector reads platelets from."""

    def values(self) -> Iterable[Platelet]: ...


class MemoryStore:
    """A dict-backed store implementing both PlateletSink and PlateletSource."""

    def __init__(self, platelets: Iterable[Platelet] = (), logger: logging.Logger = None):
        self.logger = logger or logging.getLogger(__name__)
        self._records = {}
        for platelet in platelets:
            self.set(platelet.id, platelet)

    def set(self, key: str, value: Platelet) -> None:
        self._records[key] = value

    def get(self, key: str, default=None):
        return self._records.get(key, default)

    def delete(self, key: str) -> bool:
        return self._records.pop(key, None) is not None

    def keys(self) -> list[str]:
        return list(self._records.keys())

    def values(self) -> Iterator[Platelet]:
        return iter(list(self._records.values()))

    def find(self, **criteria) -> list[Platelet]:
        """Returns the platelets whose attributes equal every given criterion."""
        return [
            platelet for platelet in self._records.values()
            if all(getattr(platelet, name) == value for name, value in criteria.items())
        ]

    def clear(self):
        self._records.clear()

    def __len__(self):
        return len(self._records)

    def __contains__(self, key):
        return key in self._records

    # --- JSON Snapshots ---
    def dump(self, path: str):
        """Writes every stored platelet to a JSON file."""
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, 'w') as f:
            json.dump([p.to_dict() for p in self._records.values()], f, indent=2)
        self.logger.info(f"Saved {len(self._records)} platelets to '{path}'")

    @classmethod
    def load(cls, path: str, logger: logging.Logger = None) -> "MemoryStore":
        with open(path, 'r') as f:
            records = json.load(f)
        return cls((Platelet.from_dict(r) for r in records), logger=logger)
