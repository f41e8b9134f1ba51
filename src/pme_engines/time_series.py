"""
Time-Indexed Series Utility.

This module provides the date-keyed amount series used by every engine:
construction from (date, amount) records, explicit alignment of several
series on the union of their dates (missing entries count as zero), and
the row-wise reductions built on that alignment.

Series are never mutated after construction; every transform returns a new
TimeSeries.
"""

from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Tuple
import logging

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

DateLike = Any  # date, datetime, pd.Timestamp or an ISO date string


class InvalidInputError(ValueError):
    """Raised when a series is malformed (non-date axis, gaps in values, unordered dates)."""


def _to_timestamp(value: DateLike) -> pd.Timestamp:
    return pd.Timestamp(value).normalize()


# ==============================================================================
# TIME SERIES
# ==============================================================================

class TimeSeries:
    """
    An ordered mapping from calendar date to a signed amount.

    Wraps a ``pandas.Series`` with a ``DatetimeIndex``. Dates are normalised
    to midnight and must be unique; ordering and missing values are checked
    by ``validate`` rather than at construction, so that malformed input can
    be reported by the consumers that care about it.
    """

    def __init__(self, series: pd.Series):
        if not isinstance(series, pd.Series):
            series = pd.Series(series)

        try:
            data = series.astype(float)
        except (TypeError, ValueError) as e:
            raise InvalidInputError(f"Series values must be numeric: {e}") from e

        if isinstance(data.index, pd.DatetimeIndex):
            data.index = data.index.normalize()
            if data.index.has_duplicates:
                duplicates = data.index[data.index.duplicated()].unique()
                raise InvalidInputError(
                    f"Duplicate dates must be aggregated before building a series: "
                    f"{[d.date().isoformat() for d in duplicates]}"
                )

        data.name = None
        self._series = data

    # --------------------------------------------------------------------------
    # Constructors
    # --------------------------------------------------------------------------

    @classmethod
    def from_records(cls, records: Iterable[Tuple[DateLike, float]]) -> "TimeSeries":
        """
        Build a series from (date, amount) pairs, keeping the given order.

        Example:
            >>> ts = TimeSeries.from_records([(date(2020, 1, 1), -100), (date(2021, 1, 1), 110)])
            >>> ts.total()
            10.0
        """
        records = list(records)
        dates = [d for d, _ in records]
        amounts = [a for _, a in records]
        index = pd.DatetimeIndex(pd.to_datetime(dates)) if dates else pd.DatetimeIndex([])
        return cls(pd.Series(amounts, index=index, dtype=float))

    @classmethod
    def from_dict(cls, mapping: Mapping[DateLike, float]) -> "TimeSeries":
        """Build a series from a {date: amount} mapping."""
        return cls.from_records(mapping.items())

    @classmethod
    def empty(cls) -> "TimeSeries":
        return cls(pd.Series([], index=pd.DatetimeIndex([]), dtype=float))

    # --------------------------------------------------------------------------
    # Accessors
    # --------------------------------------------------------------------------

    @property
    def series(self) -> pd.Series:
        """A copy of the underlying pandas Series."""
        return self._series.copy()

    @property
    def dates(self) -> pd.Index:
        return self._series.index

    @property
    def values(self) -> np.ndarray:
        return self._series.to_numpy(copy=True)

    @property
    def first_date(self) -> pd.Timestamp:
        return self._series.index[0]

    @property
    def last_date(self) -> pd.Timestamp:
        return self._series.index[-1]

    def get(self, when: DateLike, default: Optional[float] = None) -> Optional[float]:
        """Amount on a given date, or ``default`` when the date is absent."""
        value = self._series.get(_to_timestamp(when))
        return default if value is None else float(value)

    def span_days(self) -> int:
        """Calendar days between the first and last entry (0 for fewer than 2 entries)."""
        if len(self._series) < 2:
            return 0
        return int((self.last_date - self.first_date).days)

    def __len__(self) -> int:
        return len(self._series)

    def __iter__(self) -> Iterator[Tuple[pd.Timestamp, float]]:
        for when, amount in self._series.items():
            yield when, float(amount)

    def __repr__(self) -> str:
        if self._series.empty:
            return "TimeSeries(empty)"
        return (
            f"TimeSeries(n={len(self)}, start={self.first_date.date()}, "
            f"end={self.last_date.date()}, total={self.total():.2f})"
        )

    def equals(self, other: "TimeSeries") -> bool:
        return self._series.equals(other._series)

    # --------------------------------------------------------------------------
    # Validation
    # --------------------------------------------------------------------------

    def validate(self) -> None:
        """
        Check the series is usable for discounting.

        Raises:
            InvalidInputError: if the time axis is not calendar dates, any value
                is missing, or dates are not strictly increasing.
        """
        index = self._series.index
        if not isinstance(index, pd.DatetimeIndex):
            raise InvalidInputError(
                f"Time axis must be calendar dates, got {type(index).__name__}"
            )
        if index.hasnans:
            raise InvalidInputError("Series contains missing dates")
        if self._series.isna().any():
            raise InvalidInputError("Series contains missing values")
        if not index.is_monotonic_increasing:
            raise InvalidInputError("Series is not date-ordered")

    def is_valid(self) -> bool:
        try:
            self.validate()
        except InvalidInputError:
            return False
        return True

    # --------------------------------------------------------------------------
    # Reductions
    # --------------------------------------------------------------------------

    def total(self) -> float:
        return float(self._series.sum())

    def positive_sum(self) -> float:
        """Sum of the strictly positive entries (distributions and value marks)."""
        return float(self._series[self._series > 0].sum())

    def negative_sum(self) -> float:
        """Sum of the strictly negative entries (capital calls); zero or below."""
        return float(self._series[self._series < 0].sum())

    # --------------------------------------------------------------------------
    # Transforms
    # --------------------------------------------------------------------------

    def reindex(self, dates: Iterable[DateLike]) -> "TimeSeries":
        """
        Select the entries on the given dates.

        Raises:
            KeyError: if any requested date is absent from this series.
        """
        wanted = pd.DatetimeIndex([_to_timestamp(d) for d in dates])
        missing = wanted.difference(self._series.index)
        if len(missing):
            raise KeyError(f"Dates not present in series: {[d.date().isoformat() for d in missing]}")
        return TimeSeries(self._series.loc[wanted])

    def multiply(self, other: "TimeSeries") -> "TimeSeries":
        """
        Pointwise product, matched by date.

        Every date of this series must exist in ``other``; extra dates in
        ``other`` are ignored.
        """
        missing = self._series.index.difference(other._series.index)
        if len(missing):
            raise KeyError(f"Dates not present in multiplier: {[d.date().isoformat() for d in missing]}")
        return TimeSeries(self._series * other._series.reindex(self._series.index))

    def drop_leading_zero(self) -> "TimeSeries":
        """Drop the first entry when it is a zero-valued placeholder."""
        if len(self._series) and self._series.iloc[0] == 0:
            return TimeSeries(self._series.iloc[1:])
        return self


# ==============================================================================
# ALIGNMENT
# ==============================================================================

def merge(*series: TimeSeries) -> pd.DataFrame:
    """
    Align several series on the union of their dates.

    Args:
        *series: Date-unique TimeSeries objects

    Returns:
        DataFrame with one column per input (in argument order), indexed by
        the sorted union of dates; dates missing from a series are 0. Missing
        values already present in an input stay NaN.

    Example:
        >>> a = TimeSeries.from_records([(date(2020, 1, 1), -100)])
        >>> b = TimeSeries.from_records([(date(2020, 6, 30), 40)])
        >>> merge(a, b).values.tolist()
        [[-100.0, 0.0], [0.0, 40.0]]
    """
    if not series:
        return pd.DataFrame(index=pd.DatetimeIndex([]))

    for ts in series:
        if not isinstance(ts.dates, pd.DatetimeIndex):
            raise InvalidInputError("Only date-indexed series can be merged")

    dates = series[0].dates
    for ts in series[1:]:
        dates = dates.union(ts.dates)
    dates = dates.sort_values()

    # Only dates a series lacks are zero-filled
    columns: Dict[int, pd.Series] = {
        i: ts._series.reindex(dates, fill_value=0.0) for i, ts in enumerate(series)
    }
    frame = pd.DataFrame(columns, index=dates)

    logger.debug(f"Merged {len(series)} series onto {len(frame)} dates")
    return frame


def merge_sum(*series: TimeSeries) -> TimeSeries:
    """Merge series and sum each row: the combined flow per date, NaN where an input amount is NaN."""
    frame = merge(*series)
    if frame.empty:
        return TimeSeries.empty()
    return TimeSeries(frame.sum(axis=1, skipna=False))


def merge_max(*series: TimeSeries) -> TimeSeries:
    """Merge series and take the row maximum: e.g. the index level that applies on each date."""
    frame = merge(*series)
    if frame.empty:
        return TimeSeries.empty()
    return TimeSeries(frame.max(axis=1, skipna=False))
