"""Unit tests for richness and Bray-Curtis metrics."""

import unittest
import numpy as np
import pandas as pd

from rarefaction.count_table import CountTable
from rarefaction.metrics import richness, bray_curtis, get_metric, METRICS
from rarefaction.exceptions import ConfigurationError


class TestRichness(unittest.TestCase):
    """Test cases for observed richness."""

    def test_richness_counts_positive_taxa(self):
        """Test that richness counts taxa with nonzero abundance."""
        table = CountTable(pd.DataFrame(
            {'S1': [68, 32, 0], 'S2': [200, 200, 200], 'S3': [0, 0, 0]},
            index=['Taxa1', 'Taxa2', 'Taxa3']
        ))

        result = richness(table)

        self.assertIsInstance(result, pd.Series)
        self.assertEqual(list(result.index), ['S1', 'S2', 'S3'])
        self.assertEqual(list(result), [2, 3, 0])

    def test_richness_empty_table(self):
        """Test richness on a table with no samples."""
        table = CountTable(pd.DataFrame(index=['Taxa1']))
        self.assertEqual(len(richness(table)), 0)


class TestBrayCurtis(unittest.TestCase):
    """Test cases for Bray-Curtis dissimilarity."""

    def setUp(self):
        """Set up test fixtures."""
        np.random.seed(42)
        self.table = CountTable.from_array(np.random.poisson(5, (10, 5)))

    def test_manual_value(self):
        """Test Bray-Curtis against a hand calculation."""
        table = CountTable.from_array(np.array([[1, 2], [2, 2], [3, 2]]), sample_ids=['u', 'v'])

        # sum(|u-v|) / sum(u+v) = 2 / 12
        result = bray_curtis(table)
        self.assertAlmostEqual(result.loc['u', 'v'], 2 / 12, places=10)
        self.assertAlmostEqual(result.loc['v', 'u'], 2 / 12, places=10)

    def test_matrix_properties(self):
        """Test symmetry, zero diagonal and [0, 1] bounds."""
        result = bray_curtis(self.table)
        matrix = result.to_numpy()

        self.assertEqual(matrix.shape, (5, 5))
        self.assertEqual(list(result.index), self.table.sample_ids)
        np.testing.assert_array_equal(np.diag(matrix), np.zeros(5))
        np.testing.assert_array_almost_equal(matrix, matrix.T)
        self.assertTrue(np.all(matrix >= 0))
        self.assertTrue(np.all(matrix <= 1))

    def test_disjoint_samples(self):
        """Test that samples sharing no taxa have dissimilarity 1."""
        table = CountTable.from_array(np.array([[5, 0], [0, 7]]))
        self.assertAlmostEqual(bray_curtis(table).iloc[0, 1], 1.0)

    def test_zero_pair_is_nan(self):
        """Test that a pair of empty samples is NaN, not 0 or 1."""
        table = CountTable.from_array(
            np.array([[0, 0, 3], [0, 0, 4]]), sample_ids=['E1', 'E2', 'Full']
        )

        result = bray_curtis(table)

        self.assertTrue(np.isnan(result.loc['E1', 'E2']))
        self.assertTrue(np.isnan(result.loc['E2', 'E1']))
        self.assertAlmostEqual(result.loc['E1', 'Full'], 1.0)
        self.assertEqual(result.loc['E1', 'E1'], 0.0)

    def test_empty_table(self):
        """Test Bray-Curtis on a table with no samples."""
        table = CountTable(pd.DataFrame(index=['Taxa1']))
        self.assertEqual(bray_curtis(table).shape, (0, 0))


class TestMetricRegistry(unittest.TestCase):
    """Test cases for metric lookup."""

    def test_lookup(self):
        """Test registry names and aliases."""
        self.assertIs(get_metric('richness'), richness)
        self.assertIs(get_metric('bray_curtis'), bray_curtis)
        self.assertIs(get_metric('braycurtis'), bray_curtis)
        self.assertIs(get_metric('Dissimilarity'), bray_curtis)
        self.assertEqual(set(METRICS), {'richness', 'bray_curtis'})

    def test_unknown_metric(self):
        """Test that unknown metrics raise ConfigurationError."""
        with self.assertRaises(ConfigurationError):
            get_metric('shannon')
        with self.assertRaises(ConfigurationError):
            get_metric(None)


if __name__ == '__main__':
    unittest.main()
