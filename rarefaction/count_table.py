"""Read-only taxon-by-sample count tables and a delimited-file loader."""

import numpy as np
import pandas as pd
from typing import List, Optional, Sequence, Union
from pathlib import Path
import logging

from .exceptions import CountTableError

logger = logging.getLogger(__name__)


class CountTable:
    """Immutable matrix of read counts with taxa as rows and samples as columns.

    A sample's library size is the sum of its column. The table copies its
    input on construction and never exposes a writeable view of the counts,
    so it can be shared between workers without locking.
    """

    def __init__(self, data: pd.DataFrame):
        """Build a count table from a taxa x samples DataFrame.

        Args:
            data: DataFrame of non-negative integer counts
                  (index = taxon ids, columns = sample ids)

        Raises:
            CountTableError: If the values or identifiers are invalid
        """
        if not isinstance(data, pd.DataFrame):
            raise CountTableError(f"Expected a pandas DataFrame, got {type(data).__name__}")

        taxon_ids = [str(t) for t in data.index]
        sample_ids = [str(s) for s in data.columns]
        counts = self._validate_counts(data.to_numpy())

        self._init_validated(counts, taxon_ids, sample_ids)

    @classmethod
    def from_array(cls, counts: Union[np.ndarray, Sequence[Sequence[int]]],
                   taxon_ids: Optional[Sequence[str]] = None,
                   sample_ids: Optional[Sequence[str]] = None) -> "CountTable":
        """Build a count table from a 2-D array (taxa x samples).

        Args:
            counts: Count matrix
            taxon_ids: Row labels (default: Taxon_0, Taxon_1, ...)
            sample_ids: Column labels (default: Sample_0, Sample_1, ...)
        """
        counts = np.asarray(counts)
        if counts.ndim != 2:
            raise CountTableError(f"Count matrix must be 2-D, got {counts.ndim} dimension(s)")

        if taxon_ids is None:
            taxon_ids = [f"Taxon_{i}" for i in range(counts.shape[0])]
        if sample_ids is None:
            sample_ids = [f"Sample_{i}" for i in range(counts.shape[1])]

        if len(taxon_ids) != counts.shape[0] or len(sample_ids) != counts.shape[1]:
            raise CountTableError("Number of identifiers must match count matrix dimensions")

        return cls(pd.DataFrame(counts, index=list(taxon_ids), columns=list(sample_ids)))

    @classmethod
    def _from_validated(cls, counts: np.ndarray, taxon_ids: List[str],
                        sample_ids: List[str]) -> "CountTable":
        """Wrap an already validated int64 array without re-checking it."""
        table = cls.__new__(cls)
        table._init_validated(counts, taxon_ids, sample_ids)
        return table

    def _init_validated(self, counts: np.ndarray, taxon_ids: List[str], sample_ids: List[str]):
        if len(set(taxon_ids)) != len(taxon_ids):
            raise CountTableError("Taxon identifiers must be unique")
        if len(set(sample_ids)) != len(sample_ids):
            raise CountTableError("Sample identifiers must be unique")

        counts = np.array(counts, dtype=np.int64, copy=True)
        counts.flags.writeable = False

        self._counts = counts
        self._taxon_ids = list(taxon_ids)
        self._sample_ids = list(sample_ids)

    @staticmethod
    def _validate_counts(values: np.ndarray) -> np.ndarray:
        """Check that every entry is a finite, non-negative integer that fits in int64."""
        values = np.asarray(values)
        int64_max = np.iinfo(np.int64).max

        if values.size == 0:
            return np.zeros(values.shape, dtype=np.int64)

        if values.dtype.kind == 'b':
            return values.astype(np.int64)

        if values.dtype.kind in 'iu':
            if values.dtype.kind == 'i' and (values < 0).any():
                raise CountTableError("Count table contains negative counts")
            if int(values.max()) > int64_max:
                raise CountTableError(f"Count table contains counts above {int64_max}")
            return values.astype(np.int64)

        if values.dtype.kind != 'f':
            raise CountTableError(f"Count table contains non-numeric values (dtype {values.dtype})")

        if np.isnan(values).any():
            raise CountTableError("Count table contains missing values")
        if not np.isfinite(values).all():
            raise CountTableError("Count table contains infinite values")
        if (values < 0).any():
            raise CountTableError("Count table contains negative counts")
        if (values != np.floor(values)).any():
            raise CountTableError("Count table contains non-integer counts")
        # 2**63 is the first float above the int64 range
        if (values >= 2.0 ** 63).any():
            raise CountTableError(f"Count table contains counts above {int64_max}")

        return values.astype(np.int64)

    @property
    def counts(self) -> np.ndarray:
        """Read-only view of the count matrix (taxa x samples)."""
        return self._counts

    @property
    def taxon_ids(self) -> List[str]:
        return list(self._taxon_ids)

    @property
    def sample_ids(self) -> List[str]:
        return list(self._sample_ids)

    @property
    def shape(self):
        return self._counts.shape

    @property
    def n_taxa(self) -> int:
        return self._counts.shape[0]

    @property
    def n_samples(self) -> int:
        return self._counts.shape[1]

    @property
    def library_sizes(self) -> pd.Series:
        """Total reads per sample."""
        return pd.Series(self._counts.sum(axis=0), index=self.sample_ids, name="library_size")

    def min_library_size(self) -> int:
        """Smallest library size across all samples."""
        if self.n_samples == 0:
            raise CountTableError("Count table has no samples")
        return int(self._counts.sum(axis=0).min())

    def column(self, sample_id: str) -> np.ndarray:
        """Copy of one sample's per-taxon count vector."""
        try:
            position = self._sample_ids.index(sample_id)
        except ValueError:
            raise KeyError(f"Unknown sample: {sample_id}") from None
        return self._counts[:, position].copy()

    def select_samples(self, sample_ids: Sequence[str]) -> "CountTable":
        """Return a new table restricted to the given samples, in the given order."""
        positions = []
        for sample_id in sample_ids:
            try:
                positions.append(self._sample_ids.index(sample_id))
            except ValueError:
                raise KeyError(f"Unknown sample: {sample_id}") from None

        return CountTable._from_validated(
            self._counts[:, positions], self._taxon_ids, [self._sample_ids[p] for p in positions]
        )

    def to_dataframe(self) -> pd.DataFrame:
        """Copy of the table as a taxa x samples DataFrame."""
        return pd.DataFrame(self._counts.copy(), index=self.taxon_ids, columns=self.sample_ids)

    def __eq__(self, other):
        if not isinstance(other, CountTable):
            return NotImplemented
        return (self._taxon_ids == other._taxon_ids
                and self._sample_ids == other._sample_ids
                and np.array_equal(self._counts, other._counts))

    __hash__ = None

    def __repr__(self):
        return f"CountTable(n_taxa={self.n_taxa}, n_samples={self.n_samples})"


def load_count_table(filepath: Union[str, Path], samples_as_rows: bool = False,
                     taxon_column: Optional[str] = None) -> CountTable:
    """Load a feature table from a CSV or TSV file.

    Args:
        filepath: Path to the table (.tsv/.txt are tab-separated, anything else comma)
        samples_as_rows: Set if samples are rows and taxa are columns
        taxon_column: Column holding row identifiers (default: first column)

    Returns:
        Loaded CountTable
    """
    filepath = Path(filepath)

    if filepath.suffix.lower() in ['.tsv', '.txt']:
        sep = '\t'
    else:
        sep = ','

    try:
        if taxon_column is None:
            df = pd.read_csv(filepath, sep=sep, index_col=0)
        else:
            df = pd.read_csv(filepath, sep=sep)
            if taxon_column not in df.columns:
                raise CountTableError(f"Identifier column '{taxon_column}' not found in {filepath}")
            df = df.set_index(taxon_column)

        if samples_as_rows:
            df = df.T

        table = CountTable(df)

    except Exception as e:
        logger.error(f"Error loading count table from {filepath}: {e}")
        raise

    logger.info(f"Loaded count table with {table.n_taxa} taxa and {table.n_samples} samples from {filepath}")
    return table
