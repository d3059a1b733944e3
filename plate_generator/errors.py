# plate_generator/errors.py

"""Exception types raised by the platelet generator."""


class PlateGeneratorError(Exception):
    """Base class for every error raised by this package."""


class InvalidRadius(PlateGeneratorError, ValueError):
    """A planet was constructed with a radius below the allowed minimum."""


class InvalidCell(PlateGeneratorError, ValueError):
    """A grid cell id could not be resolved."""

    def __init__(self, cell_id, reason: str = "not a valid H3 cell"):
        self.cell_id = cell_id
        self.reason = reason
        # args must mirror __init__ so the error survives pickling to a parent process.
        super().__init__(cell_id, reason)

    def __str__(self):
        return f"Invalid cell {self.cell_id!r}: {self.reason}"


class InvalidPosition(PlateGeneratorError, ValueError):
    """A 3D position cannot be projected onto the sphere."""


class InvalidResolution(PlateGeneratorError, ValueError):
    """A grid resolution is outside the supported range."""


class PlanetMismatch(PlateGeneratorError, ValueError):
    """A plate was paired with a planet it does not belong to."""


class GenerationEmpty(PlateGeneratorError):
    """
    Raised inside the generator when the flood fill emits nothing. It selects
    the single-platelet fallback and never reaches the caller.
    """


class SinkWriteFailure(PlateGeneratorError):
    """Writing a platelet to the persistence sink failed."""

    def __init__(self, key: str, cause):
        self.key = key
        self.cause = cause
        super().__init__(key, cause)

    def __str__(self):
        return f"Failed to persist platelet '{self.key}': {self.cause}"
