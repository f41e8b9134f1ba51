"""
Unit tests for configuration defaults.
"""

import unittest
import logging
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from pme_engines import config


class TestComputationDefaults(unittest.TestCase):
    """Test the solver settings."""

    def test_day_count(self):
        """Test the fixed 365-day convention."""
        self.assertEqual(config.DAYS_PER_YEAR, 365)

    def test_solver_caps(self):
        """Test the bracket and bisection iteration caps."""
        self.assertEqual(config.IRR_BRACKET_STEP, 0.01)
        self.assertEqual(config.IRR_BRACKET_MAX_ITERATIONS, 10000)
        self.assertEqual(config.IRR_BISECTION_ITERATIONS, 40)

    def test_short_period_off(self):
        """Test the short-period adjustment is off unless requested."""
        if os.getenv("IRR_SHORT_PERIOD_ADJUSTMENT") is None:
            self.assertFalse(config.IRR_SHORT_PERIOD_ADJUSTMENT)


class TestLogging(unittest.TestCase):
    """Test logging setup."""

    def test_setup_logging(self):
        """Test root logging can be configured with an explicit level."""
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        try:
            for handler in handlers:
                root.removeHandler(handler)

            config.setup_logging("debug")

            self.assertEqual(root.level, logging.DEBUG)
            self.assertTrue(root.handlers)
        finally:
            for handler in list(root.handlers):
                root.removeHandler(handler)
            for handler in handlers:
                root.addHandler(handler)
            root.setLevel(level)


if __name__ == '__main__':
    unittest.main()
