"""
IRR Computation Engine.

This module provides the net present value of a dated cash-flow series and
the internal rate of return that zeroes it, for irregular cash flows.

Convention (fixed, not configurable): daily compounding over a 365-day year.
A nominal annual rate ``apr`` discounts a flow ``d`` days after the first
flow by ``(1 + apr/365) ** d``. Solved rates are reported as annually
compounded effective rates, ``(1 + apr/365) ** 365 - 1``.
"""

from typing import Callable, Dict, NamedTuple, Optional, Tuple, Union
from enum import Enum
import logging

import numpy as np
import pandas as pd
from scipy.optimize import brentq

from .config import (
    DAYS_PER_YEAR,
    IRR_BRACKET_STEP,
    IRR_BRACKET_MAX_ITERATIONS,
    IRR_BISECTION_ITERATIONS,
    IRR_SOLVER_XTOL,
    IRR_SOLVER_MAX_ITERATIONS,
    IRR_SHORT_PERIOD_ADJUSTMENT,
)
from .time_series import InvalidInputError, TimeSeries

logger = logging.getLogger(__name__)

SeriesLike = Union[TimeSeries, pd.Series]


class IrrStatus(Enum):
    """Outcome of an IRR solve."""
    SOLVED = "solved"
    ZERO_SUM = "zero_sum"
    INVALID_INPUT = "invalid_input"
    INSUFFICIENT_DATA = "insufficient_data"
    NO_SIGN_CHANGE = "no_sign_change"
    BRACKET_SEARCH_EXHAUSTED = "bracket_search_exhausted"


class IrrSolution(NamedTuple):
    rate: Optional[float]
    status: IrrStatus


def _as_time_series(series: SeriesLike) -> TimeSeries:
    if isinstance(series, TimeSeries):
        return series
    if isinstance(series, pd.Series):
        return TimeSeries(series)
    raise InvalidInputError(f"Expected a dated series, got {type(series).__name__}")


# ==============================================================================
# RATE CONVERSIONS
# ==============================================================================

def nominal_to_effective(apr: float) -> float:
    """Convert a daily-compounded nominal annual rate to an annual effective rate."""
    return (1 + apr / DAYS_PER_YEAR) ** DAYS_PER_YEAR - 1


def effective_to_nominal(rate: float) -> float:
    """Inverse of ``nominal_to_effective``."""
    return DAYS_PER_YEAR * ((1 + rate) ** (1 / DAYS_PER_YEAR) - 1)


# ==============================================================================
# NPV
# ==============================================================================

def _elapsed_days(ts: TimeSeries) -> np.ndarray:
    dates = ts.dates
    return np.asarray((dates - dates[0]).days, dtype=float)


def _npv_function(ts: TimeSeries) -> Callable[[float], float]:
    """NPV of an already validated series as a function of the nominal rate."""
    days = _elapsed_days(ts)
    amounts = ts.values

    def npv_at(rate: float) -> float:
        with np.errstate(over="ignore", divide="ignore", invalid="ignore"):
            factors = np.power(1 + rate / DAYS_PER_YEAR, days)
            return float(np.sum(amounts / factors))

    return npv_at


def npv(rate: float, series: SeriesLike) -> float:
    """
    Calculate the Net Present Value of a dated cash-flow series.

    Flows are discounted to the series' first date with daily compounding:
    a flow ``v`` on day ``d`` contributes ``v / (1 + rate/365) ** d``.

    Args:
        rate: Nominal annual rate (e.g. 0.08 for 8%)
        series: TimeSeries (or date-indexed pandas Series) of signed amounts

    Returns:
        Net present value as of the first date

    Raises:
        InvalidInputError: if the series is empty, not date-ordered, contains
            missing values, or is not indexed by calendar dates

    Example:
        >>> flows = TimeSeries.from_records([(date(2021, 1, 1), -100), (date(2022, 1, 1), 110)])
        >>> round(npv(0.0, flows), 2)
        10.0
    """
    ts = _as_time_series(series)
    ts.validate()
    if len(ts) == 0:
        raise InvalidInputError("Cannot value an empty series")
    return _npv_function(ts)(rate)


# ==============================================================================
# ROOT FINDING STRATEGIES
# ==============================================================================

def _bracket_root(npv_at: Callable[[float], float], total: float) -> Optional[Tuple[float, float]]:
    """
    Find a rate interval over which the NPV changes sign.

    Starts at ``[0, ±step]`` and widens the far end by ``step`` per iteration.
    NPV(0) is the total, so the search heads the way the first step moves
    NPV toward the opposite sign: up for call-first profiles that net
    positive, down for reversed profiles whose early inflows outweigh later
    outflows.
    """
    low = 0.0
    npv_low = npv_at(low)
    moves_toward_root = (npv_at(IRR_BRACKET_STEP) - npv_low) * total < 0
    direction = 1.0 if moves_toward_root else -1.0
    high = direction * IRR_BRACKET_STEP

    for iteration in range(IRR_BRACKET_MAX_ITERATIONS):
        npv_high = npv_at(high)
        if npv_low * npv_high < 0:
            logger.debug(f"Bracketed IRR in [{low}, {high:.2f}] after {iteration + 1} iterations")
            return (min(low, high), max(low, high))
        high += direction * IRR_BRACKET_STEP

    return None


def solve_with_brent(npv_at: Callable[[float], float], low: float, high: float) -> float:
    """General bracketed solver, used for the regular call-first, realize-last profile."""
    return brentq(npv_at, low, high, xtol=IRR_SOLVER_XTOL, maxiter=IRR_SOLVER_MAX_ITERATIONS)


def solve_with_bisection(npv_at: Callable[[float], float], low: float, high: float) -> float:
    """
    Fixed-iteration bisection, used for irregular profiles.

    Keeps the endpoint whose NPV shares the sign of the lower-rate evaluation
    and returns the midpoint of the final interval.
    """
    npv_low = npv_at(low)
    for _ in range(IRR_BISECTION_ITERATIONS):
        mid = (low + high) / 2
        npv_mid = npv_at(mid)
        if np.sign(npv_mid) == np.sign(npv_low):
            low, npv_low = mid, npv_mid
        else:
            high = mid
    return (low + high) / 2


ROOT_STRATEGIES: Dict[str, Callable[[Callable[[float], float], float, float], float]] = {
    "brent": solve_with_brent,
    "bisection": solve_with_bisection,
}


def is_regular_profile(ts: TimeSeries) -> bool:
    """True when the first flow is a call and the last is a realization."""
    values = ts.values
    return bool(values[0] < 0 and values[-1] > 0)


def select_root_strategy(ts: TimeSeries) -> str:
    return "brent" if is_regular_profile(ts) else "bisection"


# ==============================================================================
# IRR
# ==============================================================================

def _adjust_short_period(rate: float, ts: TimeSeries) -> float:
    """Express the rate over the actual span when the flows cover less than a year."""
    span = ts.drop_leading_zero().span_days()
    if span < DAYS_PER_YEAR:
        logger.debug(f"Short-period adjustment over {span} days")
        return (1 + rate) ** (span / DAYS_PER_YEAR) - 1
    return rate


def solve_irr(series: SeriesLike, short_period: Optional[bool] = None) -> IrrSolution:
    """
    Calculate the Internal Rate of Return of a dated cash-flow series.

    Degenerate inputs are resolved before any search, in this order:
    invalid series, fewer than two flows, no sign change (all undefined),
    then an exactly zero total (defined as 0%).

    Args:
        series: TimeSeries (or date-indexed pandas Series) of signed amounts
        short_period: Re-express the rate over spans shorter than a year
            (defaults to IRR_SHORT_PERIOD_ADJUSTMENT)

    Returns:
        IrrSolution with the annual effective rate (None when undefined) and
        the outcome status
    """
    if short_period is None:
        short_period = IRR_SHORT_PERIOD_ADJUSTMENT

    try:
        ts = _as_time_series(series)
        ts.validate()
    except InvalidInputError as e:
        logger.warning(f"Invalid series for IRR calculation: {e}")
        return IrrSolution(None, IrrStatus.INVALID_INPUT)

    if len(ts) < 2:
        logger.warning("Insufficient cash flows for IRR calculation")
        return IrrSolution(None, IrrStatus.INSUFFICIENT_DATA)

    values = ts.values
    if (values <= 0).all() or (values >= 0).all():
        logger.warning("Cash flows do not change sign, IRR is undefined")
        return IrrSolution(None, IrrStatus.NO_SIGN_CHANGE)

    total = ts.total()
    if total == 0:
        return IrrSolution(0.0, IrrStatus.ZERO_SUM)

    npv_at = _npv_function(ts)
    bracket = _bracket_root(npv_at, total)
    if bracket is None:
        logger.warning(
            f"No NPV sign change within {IRR_BRACKET_MAX_ITERATIONS} bracket steps, IRR is undefined"
        )
        return IrrSolution(None, IrrStatus.BRACKET_SEARCH_EXHAUSTED)

    strategy = select_root_strategy(ts)
    try:
        apr = ROOT_STRATEGIES[strategy](npv_at, *bracket)
    except RuntimeError as e:
        logger.warning(f"{strategy} solver did not converge ({e}), falling back to bisection")
        strategy = "bisection"
        apr = solve_with_bisection(npv_at, *bracket)
    rate = nominal_to_effective(apr)
    logger.debug(f"IRR solved with {strategy}: apr={apr:.8f}, effective={rate:.8f}")

    if short_period:
        rate = _adjust_short_period(rate, ts)

    return IrrSolution(rate, IrrStatus.SOLVED)


def irr(series: SeriesLike, short_period: Optional[bool] = None) -> Optional[float]:
    """
    Annual effective IRR of a dated cash-flow series, or None when undefined.

    Example:
        >>> flows = TimeSeries.from_records([(date(2021, 1, 1), -100), (date(2022, 1, 1), 110)])
        >>> round(irr(flows), 4)
        0.1
    """
    return solve_irr(series, short_period=short_period).rate
