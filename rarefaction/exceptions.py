"""Exception and warning types raised by the rarefaction toolkit."""

from typing import Iterable, Optional, Tuple


class RarefactionError(Exception):
    """Base class for all rarefaction errors."""


class ConfigurationError(RarefactionError, ValueError):
    """Invalid run configuration (iterations, target depth or metric)."""


class CountTableError(RarefactionError, ValueError):
    """Malformed count table (negative, non-integer or missing values, duplicate ids)."""


class InsufficientDepthError(RarefactionError):
    """No sample (or not every required sample) reaches the target depth.

    Attributes:
        target_depth: Depth that could not be reached
        samples: Sample ids whose library size is below the target depth
    """

    def __init__(self, message: str, target_depth: Optional[int] = None,
                 samples: Iterable[str] = ()):
        super().__init__(message)
        self.target_depth = target_depth
        self.samples: Tuple[str, ...] = tuple(samples)


class SampleExcludedWarning(UserWarning):
    """Some samples fell below the target depth and were dropped from the run."""

    def __init__(self, message: str, samples: Iterable[str] = ()):
        super().__init__(message)
        self.samples: Tuple[str, ...] = tuple(samples)
