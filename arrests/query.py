"""Declarative aggregation queries over a frame of arrest records.

A :class:`QuerySpec` describes one analytical question (filter, group keys,
aggregate, optional windows, ordering and truncation); :func:`run_query`
evaluates it against an immutable dataset and returns a result frame.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .fields import ARREST_FIELDS, DERIVED_FIELDS, derive_columns
from .filters import Filter, combine_filters
from .metrics import lag_values, percent_change_series, rank_values, rolling_values

logger = logging.getLogger(__name__)

AGGREGATES: Tuple[str, ...] = ("COUNT", "AVG", "SUM")
ROLLING_FUNCS: Tuple[str, ...] = ("SUM", "AVG")
DIRECTIONS: Tuple[str, ...] = ("ASC", "DESC")


class InvalidSpec(ValueError):
    """Raised before execution when a query spec cannot be evaluated."""

    def __init__(self, element: str, message: str) -> None:
        super().__init__(f"Invalid query spec [{element}]: {message}")
        self.element = element


def _as_tuple(value: Union[str, Sequence[str], None]) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(value)


@dataclass(frozen=True)
class Aggregate:
    func: str = "COUNT"
    field: str = "*"
    alias: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "func", str(self.func).upper())

    @property
    def column(self) -> str:
        if self.alias:
            return self.alias
        if self.field == "*":
            return self.func.lower()
        return f"{self.func.lower()}_{self.field}"


@dataclass(frozen=True)
class Rank:
    order_by: str
    partition_by: Tuple[str, ...] = ()
    ascending: bool = False
    dense: bool = False
    alias: str = "rank"

    def __post_init__(self) -> None:
        object.__setattr__(self, "partition_by", _as_tuple(self.partition_by))

    @property
    def columns(self) -> Tuple[str, ...]:
        return (self.alias,)


@dataclass(frozen=True)
class Lag:
    order_by: str
    partition_by: Tuple[str, ...] = ()
    offset: int = 1
    value: str | None = None
    alias: str = "previous"
    pct_change: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "partition_by", _as_tuple(self.partition_by))

    @property
    def columns(self) -> Tuple[str, ...]:
        if self.pct_change:
            return (self.alias, self.pct_change)
        return (self.alias,)


@dataclass(frozen=True)
class Rolling:
    order_by: str
    size: int
    func: str = "SUM"
    partition_by: Tuple[str, ...] = ()
    value: str | None = None
    alias: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "func", str(self.func).upper())
        object.__setattr__(self, "partition_by", _as_tuple(self.partition_by))

    @property
    def columns(self) -> Tuple[str, ...]:
        return (self.alias or f"rolling_{self.func.lower()}",)


Window = Union[Rank, Lag, Rolling]
OrderKey = Union[str, Tuple[str, str]]


@dataclass(frozen=True)
class QuerySpec:
    group_by: Tuple[str, ...] = ()
    aggregate: Aggregate = Aggregate()
    filter: Filter | Sequence[Filter] | None = None
    window: Window | Sequence[Window] | None = None
    order_by: Tuple[OrderKey, ...] = ()
    top_n: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "group_by", _as_tuple(self.group_by))
        if isinstance(self.order_by, str):
            object.__setattr__(self, "order_by", (self.order_by,))
        else:
            object.__setattr__(self, "order_by", tuple(self.order_by))

    @property
    def windows(self) -> Tuple[Any, ...]:
        if self.window is None:
            return ()
        if isinstance(self.window, (list, tuple)):
            return tuple(self.window)
        return (self.window,)

    @property
    def order_keys(self) -> List[Tuple[str, str]]:
        keys: List[Tuple[str, str]] = []
        for entry in self.order_by:
            if isinstance(entry, str):
                keys.append((entry, "ASC"))
            else:
                column, direction = entry
                keys.append((column, str(direction).upper()))
        return keys


def _check_fields(element: str, names: Iterable[str], available: set) -> None:
    for name in names:
        if name not in available:
            raise InvalidSpec(element, f"unknown field {name!r}")


def validate_spec(spec: QuerySpec, columns: Iterable[str] = ()) -> List[str]:
    """Validate ``spec`` and return the ordered list of result columns."""
    if not isinstance(spec, QuerySpec):
        raise InvalidSpec("spec", f"expected QuerySpec, got {type(spec).__name__}")

    available = set(ARREST_FIELDS) | set(DERIVED_FIELDS) | set(columns)

    try:
        combined = combine_filters(spec.filter)
    except TypeError as exc:
        raise InvalidSpec("filter", str(exc)) from exc
    if combined is not None:
        if not isinstance(combined, Filter):
            raise InvalidSpec("filter", f"unsupported filter {combined!r}")
        for part in getattr(combined, "filters", (combined,)):
            if not isinstance(part, Filter):
                raise InvalidSpec("filter", f"unsupported filter {part!r}")
        _check_fields("filter", combined.columns, available)

    _check_fields("group_by", spec.group_by, available)
    if len(set(spec.group_by)) != len(spec.group_by):
        raise InvalidSpec("group_by", "duplicate group key")

    aggregate = spec.aggregate
    if not isinstance(aggregate, Aggregate):
        raise InvalidSpec("aggregate", f"expected Aggregate, got {aggregate!r}")
    if aggregate.func not in AGGREGATES:
        raise InvalidSpec("aggregate", f"unknown aggregate {aggregate.func!r}; expected one of {AGGREGATES}")
    if aggregate.field == "*":
        if aggregate.func != "COUNT":
            raise InvalidSpec("aggregate", f"{aggregate.func} requires a named field, not '*'")
    else:
        _check_fields("aggregate", (aggregate.field,), available)

    result_columns = list(spec.group_by) + [aggregate.column]
    if aggregate.column in spec.group_by:
        raise InvalidSpec("aggregate", f"alias {aggregate.column!r} collides with a group key")

    for window in spec.windows:
        if isinstance(window, Rank):
            _check_fields("window", (window.order_by, *window.partition_by), set(result_columns))
        elif isinstance(window, Lag):
            if isinstance(window.offset, bool) or not isinstance(window.offset, int) or window.offset < 1:
                raise InvalidSpec("window", f"lag offset must be a positive integer, got {window.offset!r}")
            value = window.value or aggregate.column
            _check_fields("window", (window.order_by, value, *window.partition_by), set(result_columns))
        elif isinstance(window, Rolling):
            if isinstance(window.size, bool) or not isinstance(window.size, int) or window.size < 1:
                raise InvalidSpec("window", f"rolling size must be a positive integer, got {window.size!r}")
            if window.func not in ROLLING_FUNCS:
                raise InvalidSpec("window", f"unknown rolling function {window.func!r}")
            value = window.value or aggregate.column
            _check_fields("window", (window.order_by, value, *window.partition_by), set(result_columns))
        else:
            raise InvalidSpec("window", f"unknown window kind {type(window).__name__}")

        for column in window.columns:
            if column in result_columns:
                raise InvalidSpec("window", f"column {column!r} already exists in the result")
            result_columns.append(column)

    for column, direction in spec.order_keys:
        if column not in result_columns:
            raise InvalidSpec("order_by", f"{column!r} is not a result column {result_columns}")
        if direction not in DIRECTIONS:
            raise InvalidSpec("order_by", f"unknown direction {direction!r} for {column!r}")

    top_n = spec.top_n
    if top_n is not None and (isinstance(top_n, bool) or not isinstance(top_n, (int, np.integer)) or top_n < 0):
        raise InvalidSpec("top_n", f"must be a non-negative integer, got {top_n!r}")

    return result_columns


def _referenced_fields(spec: QuerySpec) -> List[str]:
    names = list(spec.group_by)
    if spec.aggregate.field != "*":
        names.append(spec.aggregate.field)
    combined = combine_filters(spec.filter)
    if combined is not None:
        names.extend(combined.columns)
    return names


def _aggregate_values(df: pd.DataFrame, aggregate: Aggregate) -> pd.Series | pd.DataFrame:
    if aggregate.func in ("AVG", "SUM"):
        try:
            return pd.to_numeric(df[aggregate.field], errors="raise").astype(float)
        except (ValueError, TypeError) as exc:
            raise InvalidSpec(
                "aggregate", f"{aggregate.func} requires a numeric field, {aggregate.field!r} is not"
            ) from exc
    return df[aggregate.field]


def _aggregate(df: pd.DataFrame, spec: QuerySpec) -> pd.DataFrame:
    aggregate = spec.aggregate
    column = aggregate.column
    keys = list(spec.group_by)

    if aggregate.field == "*":
        if not keys:
            return pd.DataFrame({column: [len(df)]})
        counts = df.groupby(keys, dropna=False, sort=True).size()
        return counts.rename(column).reset_index()

    values = _aggregate_values(df, aggregate)
    if not keys:
        if aggregate.func == "COUNT":
            result = values.count()
        elif aggregate.func == "SUM":
            result = values.sum(min_count=1)
        else:
            result = values.mean()
        return pd.DataFrame({column: [result]})

    grouped = values.groupby([df[key] for key in keys], dropna=False, sort=True)
    if aggregate.func == "COUNT":
        series = grouped.count()
    elif aggregate.func == "SUM":
        series = grouped.sum(min_count=1)
    else:
        series = grouped.mean()
    series.index.names = keys
    return series.rename(column).reset_index()


def _apply_window(df: pd.DataFrame, window: Window, default_value: str) -> pd.DataFrame:
    if isinstance(window, Rank):
        ranks = rank_values(
            df,
            window.order_by,
            partition_by=window.partition_by,
            ascending=window.ascending,
            dense=window.dense,
        )
        return df.assign(**{window.alias: ranks})

    value = window.value or default_value
    if isinstance(window, Lag):
        previous = lag_values(
            df, value, window.order_by, partition_by=window.partition_by, offset=window.offset
        )
        df = df.assign(**{window.alias: previous})
        if window.pct_change:
            df = df.assign(**{window.pct_change: percent_change_series(df[value], previous)})
        return df

    rolled = rolling_values(
        df,
        value,
        window.order_by,
        window.size,
        func=window.func,
        partition_by=window.partition_by,
    )
    return df.assign(**{window.columns[0]: rolled})


def _sort(df: pd.DataFrame, keys: List[Tuple[str, str]]) -> pd.DataFrame:
    if not keys:
        return df
    return df.sort_values(
        [column for column, _ in keys],
        ascending=[direction == "ASC" for _, direction in keys],
        kind="mergesort",
        na_position="last",
    )


def _as_frame(dataset: pd.DataFrame | Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    if isinstance(dataset, pd.DataFrame):
        return dataset
    return pd.DataFrame.from_records(list(dataset))


def run_query(dataset: pd.DataFrame | Iterable[Mapping[str, Any]], spec: QuerySpec) -> pd.DataFrame:
    """Evaluate ``spec`` against ``dataset``.

    Steps run in a fixed order: filter, group, aggregate, windows (over the
    aggregated rows), order, then ``top_n`` truncation. An empty dataset
    yields an empty result with the expected columns.
    """
    df = _as_frame(dataset)
    result_columns = validate_spec(spec, df.columns)

    if len(df) == 0:
        logger.debug("Empty dataset; returning empty result")
        return pd.DataFrame(columns=result_columns)

    try:
        df = derive_columns(df, _referenced_fields(spec))
    except KeyError as exc:
        raise InvalidSpec("field", f"dataset is missing column(s) {exc.args[0]}") from exc

    missing = [name for name in _referenced_fields(spec) if name not in df.columns]
    if missing:
        raise InvalidSpec("field", f"dataset is missing column(s) {', '.join(missing)}")

    combined = combine_filters(spec.filter)
    if combined is not None:
        df = combined.apply(df)
    logger.debug("Filter kept %d rows", len(df))

    if len(df) == 0:
        return pd.DataFrame(columns=result_columns)

    result = _aggregate(df, spec)
    for window in spec.windows:
        result = _apply_window(result, window, spec.aggregate.column)

    result = _sort(result, spec.order_keys)
    if spec.top_n is not None:
        result = result.head(int(spec.top_n))

    logger.debug("Query produced %d rows", len(result))
    return result.reset_index(drop=True)[result_columns]


def _sanitize(value: Any) -> Any:
    if isinstance(value, pd.Timestamp):
        return value.isoformat()
    if isinstance(value, pd.Timedelta):
        return str(value)
    if isinstance(value, np.generic):
        value = value.item()
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


def to_records(result: pd.DataFrame) -> List[Dict[str, Any]]:
    """Convert a result frame to plain dicts with ``None`` for nulls."""
    return [
        {key: _sanitize(value) for key, value in row.items()}
        for row in result.to_dict(orient="records")
    ]
