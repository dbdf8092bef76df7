"""Repeated rarefaction: subsample, apply a metric, average across draws."""

import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union
import multiprocessing as mp
from functools import partial
from scipy.spatial.distance import squareform
import logging
import time
import warnings

from .config import RarefactionConfig
from .count_table import CountTable
from .exceptions import ConfigurationError, InsufficientDepthError, SampleExcludedWarning
from .metrics import canonical_metric_name, get_metric
from .subsampling import SubsampledDraw, Subsampler

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class RarefactionResult:
    """Averaged metric values from a rarefaction run.

    Attributes:
        metric: Metric name ('richness' or 'bray_curtis')
        values: Mean across draws; Series by sample for richness,
                square DataFrame for Bray-Curtis
        std: Population standard deviation across draws, same shape as values
        excluded_samples: Samples dropped for having fewer reads than target_depth
        target_depth: Depth every retained sample was subsampled to
        iterations: Number of draws averaged
        seed: Effective base seed (replaying with it reproduces the run)
        approximate: Whether the scale-and-round approximation was used
    """

    metric: str
    _values: Union[pd.Series, pd.DataFrame] = field(repr=False)
    _std: Union[pd.Series, pd.DataFrame] = field(repr=False)
    excluded_samples: Tuple[str, ...]
    target_depth: int
    iterations: int
    seed: int
    approximate: bool = False

    @property
    def values(self) -> Union[pd.Series, pd.DataFrame]:
        """Copy of the averaged values; the result itself never changes."""
        return self._values.copy()

    @property
    def std(self) -> Union[pd.Series, pd.DataFrame]:
        return self._std.copy()

    @property
    def sample_ids(self) -> List[str]:
        return [str(s) for s in self._values.index]

    @property
    def undefined_pairs(self) -> List[Tuple[str, str]]:
        """Sample pairs whose dissimilarity is undefined (NaN)."""
        if not isinstance(self._values, pd.DataFrame):
            return []

        ids = self.sample_ids
        matrix = self._values.to_numpy()
        rows, cols = np.where(np.triu(np.isnan(matrix), k=1))
        return [(ids[i], ids[j]) for i, j in zip(rows, cols)]

    def condensed(self) -> np.ndarray:
        """Upper triangle of the Bray-Curtis matrix as a condensed distance vector."""
        if not isinstance(self._values, pd.DataFrame):
            raise TypeError(f"{self.metric} results are not a distance matrix")
        return squareform(self._values.to_numpy(), checks=False)

    def to_frame(self) -> pd.DataFrame:
        """Tabular form for export: one row per sample, or the distance matrix."""
        if isinstance(self._values, pd.DataFrame):
            return self._values.copy()

        frame = pd.DataFrame({
            self.metric: self._values.to_numpy(),
            f"{self.metric}_std": self._std.to_numpy(),
        }, index=self._values.index)
        frame.index.name = 'sample_id'
        return frame


def _run_iteration(iteration: int, table: CountTable, target_depth: int, base_seed: int,
                   metric_name: str, with_replacement: bool, approximate: bool) -> np.ndarray:
    """Compute the metric on one subsampled draw (module level so worker processes can unpickle it)."""
    subsampler = Subsampler(with_replacement=with_replacement, approximate=approximate)
    draw = subsampler.subsample_table(table, target_depth, base_seed, iteration)
    values = get_metric(metric_name)(draw.table)
    return values.to_numpy(dtype=float)


class RarefactionEngine:
    """Run rarefaction over a count table.

    Each draw subsamples every sample to a common depth without
    replacement, a metric is computed on the draw, and the per-draw values
    are averaged. Draws are independent and can run in a process pool;
    each draw's randomness is keyed by its index, so results do not depend
    on the number of workers.
    """

    def __init__(self, n_processes: Optional[int] = 1, timeout: Optional[float] = None):
        """Initialize the engine.

        Args:
            n_processes: Worker processes for draws (None: number of CPU cores)
            timeout: Seconds after which a run is abandoned (None: no limit)
        """
        self.n_processes = n_processes or mp.cpu_count()
        if self.n_processes < 1:
            raise ConfigurationError(f"n_processes must be positive, got {n_processes!r}")
        self.timeout = timeout

    def rarefy(self, table: CountTable, config: Optional[RarefactionConfig] = None) -> RarefactionResult:
        """Rarefy a table and average the configured metric across draws.

        Args:
            table: Count table (taxa x samples); never modified
            config: Run configuration (default: RarefactionConfig())

        Returns:
            RarefactionResult for the samples that reach the target depth

        Raises:
            ConfigurationError: If the configuration is invalid
            InsufficientDepthError: If no sample reaches the target depth, or
                some do not and shallow samples may not be excluded
            TimeoutError: If the run exceeds the engine's timeout
        """
        config = (config or RarefactionConfig()).validate()
        metric_name = canonical_metric_name(config.metric)
        target_depth = config.resolve_target_depth(table)
        self._check_depth_heterogeneity(table)
        retained, excluded = self._partition_samples(table, target_depth, config)
        seed = self._resolve_seed(config.seed)

        logger.info(f"Rarefying {len(retained)} samples to {target_depth} reads "
                    f"({config.iterations} iterations, metric={metric_name}, seed={seed})")

        n_draws = config.iterations
        if config.approximate:
            logger.info("Approximate mode is deterministic; computing a single draw")
            n_draws = 1

        per_draw = self._execute(table, target_depth, seed, metric_name, n_draws,
                                 config.with_replacement, config.approximate)
        mean, std = self._aggregate(per_draw)

        if metric_name == 'bray_curtis':
            values = pd.DataFrame(mean, index=retained, columns=retained)
            spread = pd.DataFrame(std, index=retained, columns=retained)
        else:
            values = pd.Series(mean, index=retained, name=metric_name)
            spread = pd.Series(std, index=retained, name=f"{metric_name}_std")

        result = RarefactionResult(
            metric=metric_name,
            _values=values,
            _std=spread,
            excluded_samples=tuple(excluded),
            target_depth=target_depth,
            iterations=config.iterations,
            seed=seed,
            approximate=config.approximate,
        )

        undefined = result.undefined_pairs
        if undefined:
            logger.warning(f"{len(undefined)} sample pair(s) have undefined dissimilarity (NaN)")

        return result

    def rarefy_table(self, table: CountTable,
                     config: Optional[RarefactionConfig] = None) -> SubsampledDraw:
        """Rarefy a table once and return the subsampled draw itself."""
        config = (config or RarefactionConfig()).validate()
        target_depth = config.resolve_target_depth(table)
        self._partition_samples(table, target_depth, config)
        seed = self._resolve_seed(config.seed)

        subsampler = Subsampler(with_replacement=config.with_replacement,
                                approximate=config.approximate)
        return subsampler.subsample_table(table, target_depth, seed, iteration=0)

    def rarefaction_curve(self, table: CountTable, depths: Union[int, Sequence[int]] = 20,
                          iterations: int = 10, seed: int = 0) -> pd.DataFrame:
        """Mean observed richness per sample over a range of depths.

        Args:
            table: Count table (taxa x samples)
            depths: Explicit depths, or a number of evenly spaced depths
                    from 1 to the largest library size
            iterations: Draws averaged at each depth
            seed: Base seed shared by all depths

        Returns:
            DataFrame with one row per depth and one column per sample;
            NaN where a sample has fewer reads than the depth
        """
        if table.n_samples == 0:
            raise InsufficientDepthError("Count table has no samples")

        max_depth = int(table.library_sizes.max())
        if isinstance(depths, (int, np.integer)):
            if depths < 1:
                raise ConfigurationError(f"Number of depths must be positive, got {depths}")
            if max_depth < 1:
                raise InsufficientDepthError("Every sample has an empty library", target_depth=1)
            depths = np.unique(np.linspace(1, max_depth, int(depths), dtype=int))

        depths = list(dict.fromkeys(int(d) for d in depths))
        RarefactionConfig(iterations=iterations, seed=seed).validate()
        if any(d < 1 for d in depths):
            raise ConfigurationError("Rarefaction depths must be positive integers")

        library_sizes = table.library_sizes
        curve = pd.DataFrame(np.nan, index=pd.Index(depths, name='depth'), columns=table.sample_ids)

        for depth in depths:
            retained = [s for s, size in library_sizes.items() if size >= depth]
            if not retained:
                logger.debug(f"No sample reaches depth {depth}")
                continue

            per_draw = self._execute(table, depth, seed, 'richness', iterations, False, False)
            mean, _ = self._aggregate(per_draw)
            curve.loc[depth, retained] = mean

        logger.info(f"Computed rarefaction curve at {len(depths)} depths for {table.n_samples} samples")
        return curve

    def _partition_samples(self, table: CountTable, target_depth: int,
                           config: RarefactionConfig) -> Tuple[List[str], List[str]]:
        """Split samples into those reaching target_depth and those below it."""
        library_sizes = table.library_sizes
        retained = [s for s, size in library_sizes.items() if size >= target_depth]
        shallow = [s for s, size in library_sizes.items() if size < target_depth]

        if not retained:
            largest = int(library_sizes.max()) if len(library_sizes) else 0
            raise InsufficientDepthError(
                f"No sample reaches target depth {target_depth} (largest library size: {largest})",
                target_depth=target_depth, samples=shallow,
            )

        if shallow:
            if not config.exclude_shallow_samples:
                raise InsufficientDepthError(
                    f"{len(shallow)} sample(s) below target depth {target_depth}: {', '.join(shallow)}",
                    target_depth=target_depth, samples=shallow,
                )

            message = (f"Excluding {len(shallow)} sample(s) with fewer than {target_depth} reads: "
                       f"{', '.join(shallow)}")
            logger.warning(message)
            warnings.warn(SampleExcludedWarning(message, shallow), stacklevel=3)

        return retained, shallow

    @staticmethod
    def _check_depth_heterogeneity(table: CountTable):
        library_sizes = table.library_sizes.to_numpy(dtype=float)
        if library_sizes.size < 2 or library_sizes.mean() == 0:
            return

        depth_cv = library_sizes.std() / library_sizes.mean()
        if depth_cv > 0.5:
            logger.warning(f"High sequencing depth heterogeneity detected (CV={depth_cv:.2f})")

    @staticmethod
    def _resolve_seed(seed: Optional[int]) -> int:
        if seed is not None:
            return int(seed)
        fresh = int(np.random.SeedSequence().generate_state(1)[0])
        logger.info(f"No seed given, using {fresh}")
        return fresh

    def _execute(self, table: CountTable, target_depth: int, seed: int, metric_name: str,
                 n_draws: int, with_replacement: bool, approximate: bool) -> List[np.ndarray]:
        """Run every draw and return per-draw metric arrays in draw order."""
        worker = partial(
            _run_iteration,
            table=table,
            target_depth=target_depth,
            base_seed=seed,
            metric_name=metric_name,
            with_replacement=with_replacement,
            approximate=approximate,
        )

        n_workers = min(self.n_processes, n_draws)
        start = time.monotonic()

        if n_workers <= 1:
            results = []
            for iteration in range(n_draws):
                results.append(worker(iteration))
                if self.timeout is not None and time.monotonic() - start > self.timeout:
                    raise TimeoutError(f"Rarefaction exceeded {self.timeout}s after "
                                       f"{iteration + 1} of {n_draws} draws")
                logger.debug(f"Finished draw {iteration + 1}/{n_draws}")
            return results

        logger.debug(f"Dispatching {n_draws} draws to {n_workers} worker processes")
        # Pool.__exit__ terminates outstanding workers, so an interrupt or timeout leaves no partial result
        with mp.Pool(processes=n_workers) as pool:
            pending = pool.map_async(worker, range(n_draws))
            try:
                return pending.get(self.timeout)
            except mp.TimeoutError as e:
                raise TimeoutError(f"Rarefaction exceeded {self.timeout}s") from e

    @staticmethod
    def _aggregate(per_draw: List[np.ndarray]) -> Tuple[np.ndarray, np.ndarray]:
        """Element-wise mean and standard deviation across draws."""
        stacked = np.stack(per_draw)
        return stacked.mean(axis=0), stacked.std(axis=0)


def rarefy(table: CountTable, config: Optional[RarefactionConfig] = None,
           n_processes: Optional[int] = 1) -> RarefactionResult:
    """Convenience wrapper around RarefactionEngine.rarefy."""
    return RarefactionEngine(n_processes=n_processes).rarefy(table, config)
