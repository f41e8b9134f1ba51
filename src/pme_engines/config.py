"""
Configuration management for the PE Benchmark Engine.

This module centralizes computation defaults for the IRR solver and the
performance aggregator, plus logging settings.
"""

import logging
import os


# ==============================================================================
# COMPUTATION CONFIGURATION
# ==============================================================================

# Day-count convention: daily compounding over a 365-day year
DAYS_PER_YEAR = 365

# IRR bracket search
IRR_BRACKET_STEP = 0.01
IRR_BRACKET_MAX_ITERATIONS = 10000

# IRR root finding
IRR_BISECTION_ITERATIONS = 40
IRR_SOLVER_XTOL = 1e-12
IRR_SOLVER_MAX_ITERATIONS = 100

# Re-express IRR over the actual span when the cash flows cover less than a year
IRR_SHORT_PERIOD_ADJUSTMENT = os.getenv("IRR_SHORT_PERIOD_ADJUSTMENT", "false").lower() == "true"


# ==============================================================================
# AGGREGATION CONFIGURATION
# ==============================================================================

TOTAL_ENTITY_NAME = os.getenv("TOTAL_ENTITY_NAME", "Total")
PERFORMANCE_MAX_WORKERS = int(os.getenv("PERFORMANCE_MAX_WORKERS", "1"))  # 1 = sequential


# ==============================================================================
# LOGGING CONFIGURATION
# ==============================================================================

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = None) -> None:
    """Configure root logging for scripts and notebooks using the engines."""
    logging.basicConfig(level=(level or LOG_LEVEL).upper(), format=LOG_FORMAT)
