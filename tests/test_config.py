"""Unit tests for rarefaction run configuration."""

import unittest
import dataclasses
import numpy as np

from rarefaction.config import RarefactionConfig
from rarefaction.count_table import CountTable
from rarefaction.exceptions import ConfigurationError


class TestRarefactionConfig(unittest.TestCase):
    """Test cases for RarefactionConfig."""

    def setUp(self):
        """Set up test fixtures."""
        self.table = CountTable.from_array(np.array([[68, 200], [32, 200], [200, 200]]),
                                           sample_ids=['S1', 'S2'])

    def test_defaults_are_valid(self):
        """Test that the default configuration validates."""
        config = RarefactionConfig()
        self.assertIs(config.validate(), config)
        self.assertIsNone(config.target_depth)
        self.assertFalse(config.with_replacement)
        self.assertTrue(config.exclude_shallow_samples)

    def test_frozen(self):
        """Test that configurations cannot be modified."""
        config = RarefactionConfig()
        with self.assertRaises(dataclasses.FrozenInstanceError):
            config.iterations = 5

    def test_invalid_settings(self):
        """Test that invalid settings raise ConfigurationError."""
        invalid = [
            RarefactionConfig(iterations=0),
            RarefactionConfig(iterations=-3),
            RarefactionConfig(iterations=2.5),
            RarefactionConfig(iterations=True),
            RarefactionConfig(target_depth=0),
            RarefactionConfig(target_depth=10.0),
            RarefactionConfig(seed=-1),
            RarefactionConfig(metric='shannon'),
            RarefactionConfig(with_replacement=True, approximate=True),
        ]

        for config in invalid:
            with self.assertRaises(ConfigurationError):
                config.validate()

    def test_metric_aliases(self):
        """Test that metric aliases validate."""
        RarefactionConfig(metric='braycurtis').validate()
        RarefactionConfig(metric='dissimilarity').validate()

    def test_numpy_integers_accepted(self):
        """Test that numpy integer settings validate."""
        RarefactionConfig(target_depth=np.int64(10), iterations=np.int32(3), seed=np.int64(1)).validate()

    def test_resolve_target_depth(self):
        """Test explicit and default target depth."""
        self.assertEqual(RarefactionConfig(target_depth=50).resolve_target_depth(self.table), 50)
        self.assertEqual(RarefactionConfig().resolve_target_depth(self.table), 300)

    def test_resolve_target_depth_empty_library(self):
        """Test that a zero smallest library size cannot be used as the default depth."""
        table = CountTable.from_array(np.array([[0, 5], [0, 5]]))
        with self.assertRaises(ConfigurationError):
            RarefactionConfig().resolve_target_depth(table)

    def test_dict_round_trip(self):
        """Test conversion to and from dictionaries."""
        config = RarefactionConfig(target_depth=100, iterations=10, seed=3, metric='bray_curtis')
        self.assertEqual(RarefactionConfig.from_dict(config.to_dict()), config)

        with self.assertRaises(ConfigurationError):
            RarefactionConfig.from_dict({'depth': 100})

    def test_with_overrides(self):
        """Test copying with changed settings."""
        config = RarefactionConfig(seed=None)
        updated = config.with_overrides(seed=12, target_depth=300)
        self.assertEqual(updated.seed, 12)
        self.assertEqual(updated.target_depth, 300)
        self.assertIsNone(config.seed)


if __name__ == '__main__':
    unittest.main()
