"""
PE Benchmark Engines Package.

This package contains the pure Python computation modules for private equity
performance benchmarking: dated series alignment, NPV/IRR solving, and the
public market equivalent metrics built on them.
"""

from .time_series import (
    InvalidInputError,
    TimeSeries,
    merge,
    merge_sum,
    merge_max
)

from .irr_engine import (
    IrrStatus,
    IrrSolution,
    npv,
    irr,
    solve_irr,
    nominal_to_effective,
    effective_to_nominal,
    is_regular_profile,
    select_root_strategy,
    solve_with_brent,
    solve_with_bisection
)

from .pe_metrics_engine import (
    BenchmarkAlignmentError,
    EntityRecord,
    PerformanceResult,
    calculate_multiple,
    calculate_tvpi,
    calculate_dpi,
    calculate_rvpi,
    future_value_factors,
    future_value_series,
    calculate_kspme,
    calculate_direct_alpha,
    calculate_implied_benchmark_irr,
    compute_performance,
    build_entity_record,
    build_total_record,
    calculate_portfolio_performance
)

__all__ = [
    # Time Series
    "InvalidInputError",
    "TimeSeries",
    "merge",
    "merge_sum",
    "merge_max",

    # IRR
    "IrrStatus",
    "IrrSolution",
    "npv",
    "irr",
    "solve_irr",
    "nominal_to_effective",
    "effective_to_nominal",
    "is_regular_profile",
    "select_root_strategy",
    "solve_with_brent",
    "solve_with_bisection",

    # PE Metrics
    "BenchmarkAlignmentError",
    "EntityRecord",
    "PerformanceResult",
    "calculate_multiple",
    "calculate_tvpi",
    "calculate_dpi",
    "calculate_rvpi",
    "future_value_factors",
    "future_value_series",
    "calculate_kspme",
    "calculate_direct_alpha",
    "calculate_implied_benchmark_irr",
    "compute_performance",
    "build_entity_record",
    "build_total_record",
    "calculate_portfolio_performance"
]
