"""Tests for the rarefaction command-line interface."""

import unittest
import json
import tempfile
from pathlib import Path
import pandas as pd

import rarefaction_analysis


class TestRarefactionCLI(unittest.TestCase):
    """Test cases for rarefaction_analysis.main."""

    def setUp(self):
        """Set up test fixtures."""
        self.tmpdir = tempfile.TemporaryDirectory()
        self.path = Path(self.tmpdir.name)
        self.input = self.path / 'counts.tsv'
        self.input.write_text(
            "taxon\tS1\tS2\tS3\n"
            "Taxa1\t68\t200\t2\n"
            "Taxa2\t32\t200\t1\n"
            "Taxa3\t200\t200\t0\n"
        )
        self.output = self.path / 'results'

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_richness_run(self):
        """Test a richness run writes results, excluded samples and config."""
        exit_code = rarefaction_analysis.main([
            '-i', str(self.input), '-o', str(self.output),
            '-d', '100', '-n', '5', '-s', '3'
        ])

        self.assertEqual(exit_code, 0)

        results = pd.read_csv(self.output / 'richness.csv', index_col=0)
        self.assertEqual(list(results.index), ['S1', 'S2'])
        self.assertIn('richness_std', results.columns)

        excluded = (self.output / 'excluded_samples.txt').read_text().split()
        self.assertEqual(excluded, ['S3'])

        with open(self.output / 'config.json') as f:
            saved = json.load(f)
        self.assertEqual(saved['target_depth'], 100)
        self.assertEqual(saved['seed'], 3)
        self.assertEqual(saved['iterations'], 5)

    def test_bray_curtis_with_curve(self):
        """Test a Bray-Curtis run with a rarefaction curve."""
        exit_code = rarefaction_analysis.main([
            '-i', str(self.input), '-o', str(self.output),
            '--metric', 'bray_curtis', '-n', '3', '--curve-steps', '3'
        ])

        self.assertEqual(exit_code, 0)

        matrix = pd.read_csv(self.output / 'bray_curtis.csv', index_col=0)
        self.assertEqual(matrix.shape, (3, 3))
        self.assertTrue((self.output / 'rarefaction_curve.csv').exists())

        with open(self.output / 'config.json') as f:
            saved = json.load(f)
        self.assertEqual(saved['target_depth'], 3)

    def test_keep_all_samples_fails(self):
        """Test that requiring every sample turns exclusion into a failure."""
        exit_code = rarefaction_analysis.main([
            '-i', str(self.input), '-o', str(self.output),
            '-d', '100', '--keep-all-samples'
        ])
        self.assertEqual(exit_code, 1)

    def test_invalid_iterations(self):
        """Test that an invalid configuration exits with an error code."""
        exit_code = rarefaction_analysis.main([
            '-i', str(self.input), '-o', str(self.output), '-n', '0'
        ])
        self.assertEqual(exit_code, 1)
        self.assertFalse((self.output / 'config.json').exists())


if __name__ == '__main__':
    unittest.main()
