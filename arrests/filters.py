"""Row predicates applied before grouping."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Iterable, Tuple

import pandas as pd


class Filter:
    columns: Tuple[str, ...] = ()

    def mask(self, df: pd.DataFrame) -> pd.Series:
        raise NotImplementedError

    def apply(self, df: pd.DataFrame) -> pd.DataFrame:
        keep = self.mask(df)
        return df.loc[keep.fillna(False).astype(bool)]

    def __and__(self, other: "Filter") -> "AllOf":
        return AllOf((self, other))


def _is_date_bound(value: Any) -> bool:
    return isinstance(value, (date, pd.Timestamp))


@dataclass(frozen=True)
class NotNull(Filter):
    field: str

    @property
    def columns(self) -> Tuple[str, ...]:
        return (self.field,)

    def mask(self, df: pd.DataFrame) -> pd.Series:
        return df[self.field].notna()


@dataclass(frozen=True)
class Equals(Filter):
    field: str
    value: Any

    @property
    def columns(self) -> Tuple[str, ...]:
        return (self.field,)

    def mask(self, df: pd.DataFrame) -> pd.Series:
        if self.value is None:
            return df[self.field].isna()
        return df[self.field] == self.value


@dataclass(frozen=True)
class IsIn(Filter):
    field: str
    values: Tuple[Any, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", tuple(self.values))

    @property
    def columns(self) -> Tuple[str, ...]:
        return (self.field,)

    def mask(self, df: pd.DataFrame) -> pd.Series:
        return df[self.field].isin(self.values)


@dataclass(frozen=True)
class Between(Filter):
    """Inclusive range check; either bound may be omitted."""

    field: str
    low: Any = None
    high: Any = None

    @property
    def columns(self) -> Tuple[str, ...]:
        return (self.field,)

    def mask(self, df: pd.DataFrame) -> pd.Series:
        values = df[self.field]
        low, high = self.low, self.high
        if _is_date_bound(low) or _is_date_bound(high):
            values = pd.to_datetime(values, errors="coerce")
            low = pd.Timestamp(low) if low is not None else None
            high = pd.Timestamp(high) if high is not None else None

        keep = pd.Series(True, index=df.index)
        if low is not None:
            keep &= (values >= low).fillna(False).astype(bool)
        if high is not None:
            keep &= (values <= high).fillna(False).astype(bool)
        return keep & values.notna()


@dataclass(frozen=True)
class Predicate(Filter):
    """Wrap an arbitrary ``frame -> bool Series`` callable."""

    func: Callable[[pd.DataFrame], pd.Series]
    fields: Tuple[str, ...] = ()

    @property
    def columns(self) -> Tuple[str, ...]:
        return tuple(self.fields)

    def mask(self, df: pd.DataFrame) -> pd.Series:
        return pd.Series(self.func(df), index=df.index)


@dataclass(frozen=True)
class AllOf(Filter):
    filters: Tuple[Filter, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "filters", tuple(self.filters))

    @property
    def columns(self) -> Tuple[str, ...]:
        return tuple(col for f in self.filters for col in f.columns)

    def mask(self, df: pd.DataFrame) -> pd.Series:
        keep = pd.Series(True, index=df.index)
        for f in self.filters:
            keep &= f.mask(df).fillna(False).astype(bool)
        return keep


def combine_filters(filters: Filter | Iterable[Filter] | None) -> Filter | None:
    if filters is None:
        return None
    if isinstance(filters, Filter):
        return filters
    filters = tuple(filters)
    if not filters:
        return None
    if len(filters) == 1:
        return filters[0]
    return AllOf(filters)
