"""Reproducible subsampling of read counts to a common depth."""

import numpy as np
from dataclasses import dataclass
from typing import Sequence, Tuple, Union
import logging

from .count_table import CountTable
from .exceptions import ConfigurationError, InsufficientDepthError

logger = logging.getLogger(__name__)

SeedLike = Union[None, int, np.random.SeedSequence, np.random.Generator]


@dataclass(frozen=True)
class SubsampledDraw:
    """One subsampled copy of a count table.

    Attributes:
        table: Retained samples, each column rarefied to target_depth
        target_depth: Depth every retained column was reduced to
        iteration: Index of the draw within its run
        excluded_samples: Samples whose library size was below target_depth
    """

    table: CountTable
    target_depth: int
    iteration: int
    excluded_samples: Tuple[str, ...] = ()


def sample_seed(base_seed: int, iteration: int, position: int) -> np.random.SeedSequence:
    """Seed for one sample in one draw.

    The stream depends only on the base seed, the draw index and the
    sample's column position, never on execution order.
    """
    return np.random.SeedSequence(entropy=base_seed, spawn_key=(iteration, position))


class Subsampler:
    """Draw a fixed number of reads from a sample's counts.

    By default reads are drawn uniformly without replacement (classic
    rarefying). Two non-classic modes are available: sampling with
    replacement (multinomial) and a deterministic approximation that scales
    counts to the target depth and rounds them.
    """

    def __init__(self, with_replacement: bool = False, approximate: bool = False):
        """Initialize the subsampler.

        Args:
            with_replacement: Draw reads with replacement
            approximate: Scale and round instead of drawing reads
        """
        if with_replacement and approximate:
            raise ConfigurationError("with_replacement and approximate are mutually exclusive")

        self.with_replacement = with_replacement
        self.approximate = approximate

    def subsample(self, counts: Union[np.ndarray, Sequence[int]], target_depth: int,
                  seed: SeedLike = None) -> np.ndarray:
        """Subsample one sample's count vector to target_depth reads.

        Args:
            counts: Per-taxon read counts for one sample
            target_depth: Number of reads to keep
            seed: Int, SeedSequence or Generator driving the draw

        Returns:
            Count vector over the same taxa; sums to target_depth except
            in approximate mode

        Raises:
            InsufficientDepthError: If the sample has fewer reads than target_depth
        """
        counts = np.asarray(counts, dtype=np.int64)
        if counts.ndim != 1:
            raise ValueError(f"Expected a 1-D count vector, got {counts.ndim} dimension(s)")
        if (counts < 0).any():
            raise ValueError("Counts must be non-negative")
        if target_depth < 1:
            raise ConfigurationError(f"target_depth must be a positive integer, got {target_depth!r}")

        library_size = int(counts.sum())
        if library_size < target_depth:
            raise InsufficientDepthError(
                f"Library size {library_size} is below target depth {target_depth}",
                target_depth=target_depth,
            )

        if self.approximate:
            return self._scale_and_round(counts, library_size, target_depth)

        rng = np.random.default_rng(seed)

        if self.with_replacement:
            return rng.multinomial(target_depth, counts / library_size).astype(np.int64)

        if library_size == target_depth:
            return counts.copy()

        # Hypergeometric draw: every size-target_depth subset of reads is equally likely
        return rng.multivariate_hypergeometric(counts, target_depth).astype(np.int64)

    def _scale_and_round(self, counts: np.ndarray, library_size: int, target_depth: int) -> np.ndarray:
        """Deterministic approximation; column sums may drift from target_depth."""
        scaled = np.round(counts * (target_depth / library_size)).astype(np.int64)

        drift = int(scaled.sum()) - target_depth
        if drift:
            logger.warning(f"Rounded subsample sums to {scaled.sum()} (target {target_depth})")

        return scaled

    def subsample_table(self, table: CountTable, target_depth: int, base_seed: int,
                        iteration: int = 0) -> SubsampledDraw:
        """Subsample every sample of a table to target_depth.

        Samples with fewer reads than target_depth are left out of the draw
        and listed in its excluded_samples.

        Args:
            table: Source count table (not modified)
            target_depth: Reads to keep per sample
            base_seed: Run seed shared by all draws
            iteration: Draw index used to derive per-sample seeds

        Returns:
            SubsampledDraw
        """
        library_sizes = table.counts.sum(axis=0)
        sample_ids = table.sample_ids

        kept_positions = [p for p, size in enumerate(library_sizes) if size >= target_depth]
        excluded = tuple(sample_ids[p] for p in range(len(sample_ids)) if library_sizes[p] < target_depth)

        rarefied = np.zeros((table.n_taxa, len(kept_positions)), dtype=np.int64)
        for column, position in enumerate(kept_positions):
            rarefied[:, column] = self.subsample(
                table.counts[:, position], target_depth,
                seed=sample_seed(base_seed, iteration, position)
            )

        draw_table = CountTable._from_validated(
            rarefied, table.taxon_ids, [sample_ids[p] for p in kept_positions]
        )

        return SubsampledDraw(
            table=draw_table,
            target_depth=target_depth,
            iteration=iteration,
            excluded_samples=excluded,
        )

