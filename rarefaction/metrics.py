"""Per-draw diversity metrics: observed richness and Bray-Curtis dissimilarity."""

import numpy as np
import pandas as pd
from typing import Callable, Dict, Union
from sklearn.metrics.pairwise import pairwise_distances
import logging

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

MetricResult = Union[pd.Series, pd.DataFrame]

_ALIASES = {
    'observed': 'richness',
    'observed_taxa': 'richness',
    'braycurtis': 'bray_curtis',
    'bray-curtis': 'bray_curtis',
    'dissimilarity': 'bray_curtis',
}


def richness(table) -> pd.Series:
    """Number of taxa with a strictly positive count in each sample.

    Args:
        table: CountTable (raw or subsampled)

    Returns:
        Integer Series indexed by sample id
    """
    observed = (table.counts > 0).sum(axis=0).astype(np.int64)
    return pd.Series(observed, index=table.sample_ids, name='richness')


def bray_curtis(table) -> pd.DataFrame:
    """Pairwise Bray-Curtis dissimilarity between samples.

    BC_jk = sum_i |x_ij - x_ik| / sum_i (x_ij + x_ik)

    The diagonal is 0. A pair where both samples have no reads is
    undefined and reported as NaN.

    Args:
        table: CountTable (raw or subsampled)

    Returns:
        Symmetric samples x samples DataFrame
    """
    sample_ids = table.sample_ids
    n_samples = len(sample_ids)

    if n_samples == 0:
        return pd.DataFrame(np.zeros((0, 0)), index=sample_ids, columns=sample_ids)

    profiles = table.counts.T.astype(float)
    totals = profiles.sum(axis=1)

    with np.errstate(invalid='ignore', divide='ignore'):
        dist_matrix = pairwise_distances(profiles, metric='braycurtis')

    empty = totals == 0
    undefined = np.outer(empty, empty)
    dist_matrix[undefined] = np.nan
    np.fill_diagonal(dist_matrix, 0.0)

    n_undefined = int(np.triu(undefined, k=1).sum())
    if n_undefined:
        logger.debug(f"{n_undefined} sample pair(s) have no reads in either sample; "
                     f"dissimilarity set to NaN")

    return pd.DataFrame(dist_matrix, index=sample_ids, columns=sample_ids)


METRICS: Dict[str, Callable[..., MetricResult]] = {
    'richness': richness,
    'bray_curtis': bray_curtis,
}


def canonical_metric_name(name: str) -> str:
    """Map a metric selector (or alias) to its registry name."""
    if not isinstance(name, str):
        return name
    key = name.strip().lower()
    return _ALIASES.get(key, key)


def get_metric(name: str) -> Callable[..., MetricResult]:
    """Look up a metric function by name.

    Raises:
        ConfigurationError: If the metric is not supported
    """
    key = canonical_metric_name(name)
    try:
        return METRICS[key]
    except (KeyError, TypeError):
        raise ConfigurationError(
            f"Unknown metric: {name!r} (choose from {', '.join(sorted(METRICS))})"
        ) from None
