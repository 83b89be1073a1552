from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

import numpy as np
import pandas as pd

CENT = Decimal("0.01")


def percent_change(current: float | None, previous: float | None) -> float | None:
    """Return ``100 * (current - previous) / previous`` rounded to 2 places.

    Undefined (``None``) when either side is null or ``previous`` is zero,
    which also makes 0 -> 0 read as ``None`` rather than 0%.
    """
    if current is None or previous is None or pd.isna(current) or pd.isna(previous):
        return None
    if previous == 0:
        return None
    current, previous = Decimal(repr(float(current))), Decimal(repr(float(previous)))
    change = 100 * (current - previous) / previous
    # Half-up, as SQL ROUND does; float round() would give 0.12 for 0.125.
    return float(change.quantize(CENT, rounding=ROUND_HALF_UP))


def percent_change_series(current: pd.Series, previous: pd.Series) -> pd.Series:
    current = pd.to_numeric(current, errors="coerce").astype(float)
    previous = pd.to_numeric(previous, errors="coerce").astype(float).reindex(current.index)
    changes = [percent_change(c, p) for c, p in zip(current, previous)]
    return pd.Series(changes, index=current.index, dtype=float)


def partition_codes(df: pd.DataFrame, partition_by: Sequence[str]) -> pd.Series:
    """Integer code per row identifying its partition; nulls form their own partition."""
    combined = np.zeros(len(df), dtype=np.int64)
    for column in partition_by:
        codes, uniques = pd.factorize(df[column], use_na_sentinel=False)
        combined = combined * (len(uniques) + 1) + codes
    return pd.Series(combined, index=df.index)


def _ordered_index(df: pd.DataFrame, codes: pd.Series, order_by: str) -> pd.Index:
    keys = pd.DataFrame({"partition": codes, "order": df[order_by]}, index=df.index)
    return keys.sort_values(["partition", "order"], kind="mergesort", na_position="last").index


def rank_values(
    df: pd.DataFrame,
    order_by: str,
    partition_by: Sequence[str] = (),
    ascending: bool = False,
    dense: bool = False,
) -> pd.Series:
    """Standard (gapped) rank by default; ``dense`` closes the gaps."""
    codes = partition_codes(df, partition_by)
    method = "dense" if dense else "min"
    # Null keys rank after every value, matching the nulls-last row order.
    ranks = df[order_by].groupby(codes).rank(method=method, ascending=ascending, na_option="bottom")
    return ranks.astype("Int64")


def lag_values(
    df: pd.DataFrame,
    value: str,
    order_by: str,
    partition_by: Sequence[str] = (),
    offset: int = 1,
) -> pd.Series:
    codes = partition_codes(df, partition_by)
    order = _ordered_index(df, codes, order_by)
    shifted = df.loc[order, value].groupby(codes.loc[order]).shift(offset)
    return shifted.reindex(df.index)


def rolling_values(
    df: pd.DataFrame,
    value: str,
    order_by: str,
    size: int,
    func: str = "SUM",
    partition_by: Sequence[str] = (),
) -> pd.Series:
    """Trailing window over ``size`` rows including the current one.

    The window shrinks at the start of each partition instead of waiting
    for ``size`` rows.
    """
    codes = partition_codes(df, partition_by)
    order = _ordered_index(df, codes, order_by)
    ordered = pd.to_numeric(df.loc[order, value], errors="coerce").astype(float)
    grouped = ordered.groupby(codes.loc[order])
    if func == "AVG":
        rolled = grouped.transform(lambda s: s.rolling(size, min_periods=1).mean())
    else:
        rolled = grouped.transform(lambda s: s.rolling(size, min_periods=1).sum())
    return rolled.reindex(df.index)
