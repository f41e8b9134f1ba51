"""
PE Metrics Computation Engine.

This module computes Private Equity performance metrics for one entity (a
fund, or an aggregated "Total" portfolio) from its cash flows, valuations
and a benchmark index: TVPI, DPI, RVPI, IRR, the Kaplan-Schoar PME, Direct
Alpha and the implied benchmark IRR.

All calculations are deterministic and hold no state between calls, so a
batch of entities can be evaluated concurrently.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
import logging
import math

import pandas as pd

from .config import PERFORMANCE_MAX_WORKERS, TOTAL_ENTITY_NAME
from .irr_engine import IrrStatus, solve_irr
from .time_series import TimeSeries, merge_max, merge_sum

logger = logging.getLogger(__name__)


class BenchmarkAlignmentError(ValueError):
    """Raised when a cash-flow or valuation date has no usable benchmark index level."""


# ==============================================================================
# DATA STRUCTURES
# ==============================================================================

@dataclass(frozen=True)
class EntityRecord:
    """
    Inputs for one unit of analysis.

    Every date in ``cash_flows`` or ``valuations`` must have a level in the
    matching index series.
    """
    name: str
    cash_flows: TimeSeries
    valuations: TimeSeries
    index_at_cash_flows: TimeSeries
    index_at_valuations: TimeSeries


@dataclass(frozen=True)
class PerformanceResult:
    """Metrics for one entity. Undefined metrics are None."""
    entity: str
    tvpi: Optional[float]
    dpi: Optional[float]
    rvpi: Optional[float]
    irr: Optional[float]
    kspme: Optional[float]
    direct_alpha: Optional[float]
    implied_benchmark_irr: Optional[float]
    irr_status: IrrStatus
    fv_irr_status: IrrStatus

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity": self.entity,
            "tvpi": self.tvpi,
            "dpi": self.dpi,
            "rvpi": self.rvpi,
            "irr": self.irr,
            "kspme": self.kspme,
            "direct_alpha": self.direct_alpha,
            "implied_benchmark_irr": self.implied_benchmark_irr,
            "irr_status": self.irr_status.value,
            "fv_irr_status": self.fv_irr_status.value,
        }


# ==============================================================================
# BASIC PE METRICS
# ==============================================================================

def calculate_multiple(benefits: float, costs: float) -> Optional[float]:
    """
    Ratio of benefits (positive flows) to costs (negative flows).

    Args:
        benefits: Sum of positive entries
        costs: Sum of negative entries (zero or below)

    Returns:
        benefits / -costs, or None if there are no costs
    """
    if costs >= 0:
        logger.warning("No negative flows, multiple is undefined")
        return None

    return benefits / -costs


def calculate_tvpi(total_value: float, paid_in: float) -> Optional[float]:
    """
    Calculate Total Value to Paid-In (TVPI) multiple.

    TVPI = (Distributions + NAV) / Paid-In Capital

    Args:
        total_value: Sum of distributions and current NAV
        paid_in: Total capital paid in

    Returns:
        TVPI multiple, or None if paid_in is zero

    Example:
        >>> tvpi = calculate_tvpi(total_value=150000, paid_in=100000)
        >>> print(f"TVPI: {tvpi:.2f}x")
    """
    if paid_in <= 0:
        logger.warning("Paid-In capital must be positive for TVPI calculation")
        return None

    return total_value / paid_in


def calculate_dpi(distributions: float, paid_in: float) -> Optional[float]:
    """
    Calculate Distributions to Paid-In (DPI) multiple.

    DPI = Total Distributions / Paid-In Capital

    Args:
        distributions: Total distributions to investors
        paid_in: Total capital paid in

    Returns:
        DPI multiple, or None if paid_in is zero
    """
    if paid_in <= 0:
        logger.warning("Paid-In capital must be positive for DPI calculation")
        return None

    return distributions / paid_in


def calculate_rvpi(nav: float, paid_in: float) -> Optional[float]:
    """
    Calculate Residual Value to Paid-In (RVPI) multiple.

    RVPI = Current NAV / Paid-In Capital
    """
    if paid_in <= 0:
        logger.warning("Paid-In capital must be positive for RVPI calculation")
        return None

    return nav / paid_in


# ==============================================================================
# PUBLIC MARKET EQUIVALENT METRICS
# ==============================================================================

def future_value_factors(index_series: TimeSeries) -> TimeSeries:
    """
    Factor carrying a flow on each date forward to the last index date.

    factor(d) = index[last date] / index[d]
    """
    levels = index_series.series
    if (levels <= 0).any():
        bad = levels[levels <= 0].index
        raise BenchmarkAlignmentError(
            f"Benchmark index levels must be positive, got non-positive levels on "
            f"{[d.date().isoformat() for d in bad]}"
        )
    return TimeSeries(levels.iloc[-1] / levels)


def future_value_series(all_flows: TimeSeries, index_series: TimeSeries) -> TimeSeries:
    """
    Re-express each combined flow in terms of the final index date.

    Raises:
        BenchmarkAlignmentError: if a flow date has no index level
    """
    missing = all_flows.dates.difference(index_series.dates)
    if len(missing):
        logger.error(f"Benchmark index missing {len(missing)} flow dates")
        raise BenchmarkAlignmentError(
            f"No benchmark index level for dates: {[d.date().isoformat() for d in missing]}"
        )
    return all_flows.multiply(future_value_factors(index_series))


def _kspme_from_future_values(fv: TimeSeries) -> Optional[float]:
    return calculate_multiple(fv.positive_sum(), fv.negative_sum())


def _direct_alpha_from_future_values(
    fv: TimeSeries,
    short_period: Optional[bool] = None
) -> Tuple[Optional[float], IrrStatus]:
    """Direct Alpha of already future-valued flows, with the status of their IRR."""
    solution = solve_irr(fv, short_period=short_period)
    if solution.rate is None:
        return None, solution.status
    return math.log(1 + solution.rate), solution.status


def calculate_kspme(all_flows: TimeSeries, index_series: TimeSeries) -> Optional[float]:
    """
    Kaplan-Schoar PME: future-valued benefits over future-valued costs.

    Equals TVPI when the index is flat.
    """
    return _kspme_from_future_values(future_value_series(all_flows, index_series))


def calculate_direct_alpha(
    all_flows: TimeSeries,
    index_series: TimeSeries,
    short_period: Optional[bool] = None
) -> Optional[float]:
    """
    Direct Alpha: ln(1 + IRR of the future-valued flows), or None if that IRR is undefined.
    """
    fv = future_value_series(all_flows, index_series)
    return _direct_alpha_from_future_values(fv, short_period)[0]


def calculate_implied_benchmark_irr(irr: Optional[float], direct_alpha: Optional[float]) -> Optional[float]:
    """
    Benchmark return implied by the fund IRR and its Direct Alpha.

    Satisfies ln(1 + irr) = ln(1 + implied) + direct_alpha.
    """
    if irr is None or direct_alpha is None:
        return None
    return math.exp(math.log(1 + irr) - direct_alpha) - 1


# ==============================================================================
# COMPREHENSIVE METRICS CALCULATION
# ==============================================================================

def compute_performance(record: EntityRecord, short_period: Optional[bool] = None) -> PerformanceResult:
    """
    Calculate all performance metrics for one entity.

    IRR-derived metrics are None when an IRR is undefined; the multiples are
    still returned.

    Args:
        record: Cash flows, valuations and index levels for the entity
        short_period: Forwarded to the IRR solver

    Returns:
        PerformanceResult

    Raises:
        BenchmarkAlignmentError: if a flow date has no positive index level

    Example:
        >>> result = compute_performance(record)
        >>> print(f"IRR: {result.irr:.2%}, KS-PME: {result.kspme:.2f}")
    """
    cash_flows, valuations = record.cash_flows, record.valuations

    # Multiples over the union of cash-flow and valuation entries
    paid_in = -(cash_flows.negative_sum() + valuations.negative_sum())
    distributions = cash_flows.positive_sum()
    nav = valuations.positive_sum()

    tvpi = calculate_tvpi(distributions + nav, paid_in)
    dpi = calculate_dpi(distributions, -cash_flows.negative_sum())
    rvpi = calculate_rvpi(nav, paid_in)

    all_flows = merge_sum(cash_flows, valuations)
    irr_solution = solve_irr(all_flows, short_period=short_period)

    index_series = merge_max(record.index_at_cash_flows, record.index_at_valuations)

    if len(all_flows) == 0:
        logger.warning(f"No cash flows or valuations for {record.name}")
        kspme = None
        fv = all_flows
    else:
        fv = future_value_series(all_flows, index_series)
        kspme = _kspme_from_future_values(fv)

    direct_alpha, fv_status = _direct_alpha_from_future_values(fv, short_period)
    implied = calculate_implied_benchmark_irr(irr_solution.rate, direct_alpha)

    if irr_solution.rate is None or direct_alpha is None:
        logger.warning(
            f"{record.name}: IRR {irr_solution.status.value}, "
            f"future-value IRR {fv_status.value}"
        )

    result = PerformanceResult(
        entity=record.name,
        tvpi=tvpi,
        dpi=dpi,
        rvpi=rvpi,
        irr=irr_solution.rate,
        kspme=kspme,
        direct_alpha=direct_alpha,
        implied_benchmark_irr=implied,
        irr_status=irr_solution.status,
        fv_irr_status=fv_status,
    )

    logger.debug(f"Calculated metrics: {result}")
    return result


# ==============================================================================
# RECORD CONSTRUCTION
# ==============================================================================

def _index_levels(name: str, category: str, flows: TimeSeries, market_index: TimeSeries) -> TimeSeries:
    try:
        levels = market_index.reindex(flows.dates)
    except KeyError as e:
        logger.error(f"Benchmark index does not cover {category} of {name}")
        raise BenchmarkAlignmentError(f"{name} {category}: {e.args[0]}") from e

    if not (levels.values > 0).all():
        raise BenchmarkAlignmentError(f"{name} {category}: benchmark index levels must be positive")
    return levels


def build_entity_record(
    name: str,
    cash_flows: TimeSeries,
    valuations: TimeSeries,
    market_index: TimeSeries
) -> EntityRecord:
    """
    Attach benchmark levels from a dense daily market index to an entity's flows.

    Args:
        name: Entity name (fund identifier)
        cash_flows: Calls (negative) and distributions (positive)
        valuations: NAV marks
        market_index: Daily index levels covering every flow date

    Raises:
        BenchmarkAlignmentError: if a flow date is absent from the index or
            its level is not positive
    """
    return EntityRecord(
        name=name,
        cash_flows=cash_flows,
        valuations=valuations,
        index_at_cash_flows=_index_levels(name, "cash flows", cash_flows, market_index),
        index_at_valuations=_index_levels(name, "valuations", valuations, market_index),
    )


def build_total_record(records: Sequence[EntityRecord], name: str = TOTAL_ENTITY_NAME) -> EntityRecord:
    """
    Aggregate several entities into a single portfolio record.

    Cash flows and valuations are summed per date across entities; the index
    columns are combined by taking the level that applies on each date.
    """
    return EntityRecord(
        name=name,
        cash_flows=merge_sum(*[r.cash_flows for r in records]),
        valuations=merge_sum(*[r.valuations for r in records]),
        index_at_cash_flows=merge_max(*[r.index_at_cash_flows for r in records]),
        index_at_valuations=merge_max(*[r.index_at_valuations for r in records]),
    )


# ==============================================================================
# BATCH CALCULATION
# ==============================================================================

def calculate_portfolio_performance(
    records: Sequence[EntityRecord],
    include_total: bool = True,
    max_workers: Optional[int] = None,
    short_period: Optional[bool] = None
) -> pd.DataFrame:
    """
    Calculate metrics for every entity and, optionally, the aggregated total.

    Args:
        records: Entity records to evaluate
        include_total: Append a row for all entities combined (only when
            there is more than one entity)
        max_workers: Worker threads; 1 evaluates sequentially
            (defaults to PERFORMANCE_MAX_WORKERS)
        short_period: Forwarded to the IRR solver

    Returns:
        DataFrame indexed by entity name, one row per entity in input order,
        the total last
    """
    if max_workers is None:
        max_workers = PERFORMANCE_MAX_WORKERS

    records = list(records)
    if not records:
        logger.warning("No entity records provided for performance calculation")
        return pd.DataFrame()

    if include_total and len(records) > 1:
        records.append(build_total_record(records))

    results: List[Optional[PerformanceResult]] = [None] * len(records)
    if max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as ex:
            futures = {ex.submit(compute_performance, r, short_period): i for i, r in enumerate(records)}
            for fut in as_completed(futures):
                results[futures[fut]] = fut.result()
    else:
        results = [compute_performance(r, short_period) for r in records]

    df = pd.DataFrame([r.to_dict() for r in results]).set_index("entity")
    logger.info(f"Calculated performance for {len(records)} entities")
    return df
