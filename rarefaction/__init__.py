"""Rarefaction Toolkit

Subsample microbiome read counts to a common depth, repeat the draw many
times and average observed richness or Bray-Curtis dissimilarity across
draws to get depth-corrected estimates.
"""

__version__ = "0.1.0"

from .count_table import CountTable, load_count_table
from .config import RarefactionConfig
from .subsampling import Subsampler, SubsampledDraw, sample_seed
from .metrics import richness, bray_curtis, get_metric, METRICS
from .engine import RarefactionEngine, RarefactionResult, rarefy
from .exceptions import (
    RarefactionError,
    ConfigurationError,
    CountTableError,
    InsufficientDepthError,
    SampleExcludedWarning,
)

__all__ = [
    "CountTable",
    "load_count_table",
    "RarefactionConfig",
    "Subsampler",
    "SubsampledDraw",
    "sample_seed",
    "richness",
    "bray_curtis",
    "get_metric",
    "METRICS",
    "RarefactionEngine",
    "RarefactionResult",
    "rarefy",
    "RarefactionError",
    "ConfigurationError",
    "CountTableError",
    "InsufficientDepthError",
    "SampleExcludedWarning",
]
