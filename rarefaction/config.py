"""Configuration for a single rarefaction run."""

from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Optional
import numbers
import logging

from .count_table import CountTable
from .exceptions import ConfigurationError
from .metrics import get_metric

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RarefactionConfig:
    """Immutable settings for one rarefaction run.

    Attributes:
        target_depth: Common subsampling depth (None: smallest library size)
        iterations: Number of independent subsampling draws to average
        seed: Base seed; each draw derives its own stream from it
              (None: pick fresh entropy once per run and record it)
        metric: 'richness' or 'bray_curtis'
        with_replacement: Draw reads with replacement (not classic rarefaction)
        approximate: Scale and round instead of drawing reads
        exclude_shallow_samples: Drop samples below the target depth instead of failing
    """

    target_depth: Optional[int] = None
    iterations: int = 100
    seed: Optional[int] = 0
    metric: str = "richness"
    with_replacement: bool = False
    approximate: bool = False
    exclude_shallow_samples: bool = True

    def validate(self) -> "RarefactionConfig":
        """Check the configuration and return it.

        Raises:
            ConfigurationError: If any setting is invalid
        """
        if not _is_integer(self.iterations) or self.iterations < 1:
            raise ConfigurationError(f"iterations must be a positive integer, got {self.iterations!r}")

        if self.target_depth is not None:
            if not _is_integer(self.target_depth) or self.target_depth < 1:
                raise ConfigurationError(
                    f"target_depth must be a positive integer, got {self.target_depth!r}"
                )

        if self.seed is not None and (not _is_integer(self.seed) or self.seed < 0):
            raise ConfigurationError(f"seed must be a non-negative integer, got {self.seed!r}")

        get_metric(self.metric)

        if self.with_replacement and self.approximate:
            raise ConfigurationError("with_replacement and approximate are mutually exclusive")

        return self

    def resolve_target_depth(self, table: CountTable) -> int:
        """Return the explicit target depth, or the table's smallest library size."""
        if self.target_depth is not None:
            return int(self.target_depth)

        if table.n_samples == 0:
            raise ConfigurationError("Cannot derive a target depth from a table with no samples")

        depth = table.min_library_size()
        if depth < 1:
            raise ConfigurationError(
                "Smallest library size is 0; set target_depth explicitly to drop empty samples"
            )

        logger.info(f"Target depth not set, using smallest library size ({depth})")
        return depth

    def with_overrides(self, **changes) -> "RarefactionConfig":
        """Return a copy with some settings changed."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "RarefactionConfig":
        """Build a configuration from a dictionary, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        return cls(**values)


def _is_integer(value) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)
