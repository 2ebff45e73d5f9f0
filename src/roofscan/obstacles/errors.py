"""Exception taxonomy for the obstacle detector.

Only `ConfigurationError` and DSM-stage `FetchError`/`DecodeError` reach
callers of `detect_roof_constraints`; the others are handled inside the
pipeline.
"""


class RoofConstraintError(Exception):
    """Base class for all detector errors."""


class ConfigurationError(RoofConstraintError):
    """No imagery credential is available."""


class FetchError(RoofConstraintError):
    """A raster or image could not be downloaded (network, timeout, non-2xx)."""

    def __init__(self, message, url=None, status_code=None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class DecodeError(RoofConstraintError):
    """A payload is not a usable geo-referenced raster."""


class InsufficientDataError(RoofConstraintError):
    """A solar polygon holds too few valid samples to estimate a roof plane."""

    def __init__(self, message, valid_samples=0, required=0):
        super().__init__(message)
        self.valid_samples = valid_samples
        self.required = required


class ClassificationError(RoofConstraintError):
    """The vision labelling service failed or replied with something unusable."""
