"""Registry of the named arrest queries.

Each entry is a parameter-free :class:`QuerySpec`. The registry is filled
once at import time and exposed read-only through ``NAMED_QUERIES``.
``top_charges`` is the one parameterised query and is a plain function.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List

import pandas as pd

from .filters import Equals, NotNull
from .query import Aggregate, InvalidSpec, Lag, QuerySpec, Rank, Rolling, run_query

logger = logging.getLogger(__name__)

COUNT = Aggregate("COUNT", "*", alias="arrest_count")


@dataclass(frozen=True)
class NamedQuery:
    name: str
    description: str
    spec: QuerySpec


_REGISTRY: Dict[str, NamedQuery] = {}


def _register(name: str, description: str, spec: QuerySpec) -> None:
    if name in _REGISTRY:
        raise ValueError(f"Named query {name!r} is already registered.")
    _REGISTRY[name] = NamedQuery(name=name, description=description, spec=spec)


def _top(field: str, limit: int) -> QuerySpec:
    return QuerySpec(
        filter=NotNull(field),
        group_by=(field,),
        aggregate=COUNT,
        order_by=(("arrest_count", "DESC"), (field, "ASC")),
        top_n=limit,
    )


_register(
    "arrests_by_area",
    "Total arrests per area, busiest first.",
    QuerySpec(
        group_by=("area_id", "area_name"),
        aggregate=COUNT,
        order_by=(("arrest_count", "DESC"), ("area_name", "ASC")),
    ),
)
_register(
    "arrests_by_year",
    "Total arrests per calendar year.",
    QuerySpec(
        filter=NotNull("arrest_date"),
        group_by=("arrest_year",),
        aggregate=COUNT,
        order_by=("arrest_year",),
    ),
)
_register(
    "arrests_by_month",
    "Total arrests per month.",
    QuerySpec(
        filter=NotNull("arrest_date"),
        group_by=("arrest_month",),
        aggregate=COUNT,
        order_by=("arrest_month",),
    ),
)
_register(
    "arrests_by_hour",
    "Arrests by hour of day.",
    QuerySpec(
        filter=NotNull("arrest_time"),
        group_by=("arrest_hour",),
        aggregate=COUNT,
        order_by=("arrest_hour",),
    ),
)
_register(
    "arrests_by_weekday_hour",
    "Arrests by weekday and hour, for day/hour heatmaps.",
    QuerySpec(
        filter=(NotNull("arrest_date"), NotNull("arrest_time")),
        group_by=("arrest_weekday", "arrest_hour"),
        aggregate=COUNT,
        order_by=("arrest_weekday", "arrest_hour"),
    ),
)
_register(
    "arrests_by_sex",
    "Arrests by sex code.",
    QuerySpec(
        group_by=("sex_code",),
        aggregate=COUNT,
        order_by=(("arrest_count", "DESC"),),
    ),
)
_register(
    "arrests_by_age_bucket",
    "Arrests by age band; records without an age are excluded.",
    QuerySpec(
        filter=NotNull("age"),
        group_by=("age_bucket",),
        aggregate=COUNT,
        order_by=("age_bucket",),
    ),
)
_register(
    "average_age_by_charge_group",
    "Mean arrestee age per charge group.",
    QuerySpec(
        filter=(NotNull("charge_group_description"), NotNull("age")),
        group_by=("charge_group_description",),
        aggregate=Aggregate("AVG", "age", alias="average_age"),
        order_by=(("average_age", "DESC"),),
    ),
)
_register(
    "arrests_by_report_type",
    "Bookings versus releases from custody (RFC).",
    QuerySpec(
        group_by=("report_type",),
        aggregate=COUNT,
        order_by=(("arrest_count", "DESC"),),
    ),
)
_register(
    "arrests_by_arrest_type",
    "Arrests per arrest type code.",
    QuerySpec(
        group_by=("arrest_type_code",),
        aggregate=COUNT,
        order_by=(("arrest_count", "DESC"),),
    ),
)
_register("top_charge_groups", "Ten most frequent charge groups.", _top("charge_group_description", 10))
_register("top_charges_citywide", "Ten most frequent charges citywide.", _top("charge_description", 10))
_register("top_booking_locations", "Ten busiest booking locations.", _top("booking_location", 10))
_register("top_addresses", "Ten addresses with the most arrests.", _top("address", 10))
_register(
    "yearly_charge_group_counts",
    "Arrests per year and charge group.",
    QuerySpec(
        filter=(NotNull("arrest_date"), NotNull("charge_group_description")),
        group_by=("arrest_year", "charge_group_description"),
        aggregate=COUNT,
        order_by=("arrest_year", ("arrest_count", "DESC"), "charge_group_description"),
    ),
)
_register(
    "area_rank_by_year",
    "Areas ranked by arrest volume within each year.",
    QuerySpec(
        filter=NotNull("arrest_date"),
        group_by=("arrest_year", "area_name"),
        aggregate=COUNT,
        window=Rank(order_by="arrest_count", partition_by=("arrest_year",), alias="area_rank"),
        order_by=("arrest_year", "area_rank", "area_name"),
    ),
)
_register(
    "year_over_year_totals",
    "Yearly arrests with the change against the prior year.",
    QuerySpec(
        filter=NotNull("arrest_date"),
        group_by=("arrest_year",),
        aggregate=COUNT,
        window=Lag(order_by="arrest_year", alias="previous_year_count", pct_change="pct_change"),
        order_by=("arrest_year",),
    ),
)
_register(
    "year_over_year_by_area",
    "Yearly arrests per area with the change against the prior year.",
    QuerySpec(
        filter=NotNull("arrest_date"),
        group_by=("area_name", "arrest_year"),
        aggregate=COUNT,
        window=Lag(
            order_by="arrest_year",
            partition_by=("area_name",),
            alias="previous_year_count",
            pct_change="pct_change",
        ),
        order_by=("area_name", "arrest_year"),
    ),
)
_register(
    "rolling_three_month_arrests",
    "Monthly arrests with a trailing three-month total and average.",
    QuerySpec(
        filter=NotNull("arrest_date"),
        group_by=("arrest_month",),
        aggregate=COUNT,
        window=(
            Rolling(order_by="arrest_month", size=3, func="SUM", alias="rolling_3_month_total"),
            Rolling(order_by="arrest_month", size=3, func="AVG", alias="rolling_3_month_average"),
        ),
        order_by=("arrest_month",),
    ),
)
_register(
    "average_booking_delay_by_area",
    "Mean hours from arrest to booking per area.",
    QuerySpec(
        filter=(NotNull("booking_date"), NotNull("booking_time")),
        group_by=("area_name",),
        aggregate=Aggregate("AVG", "booking_delay_hours", alias="average_booking_delay_hours"),
        order_by=(("average_booking_delay_hours", "DESC"),),
    ),
)

NAMED_QUERIES = MappingProxyType(_REGISTRY)
logger.debug("Registered %d named queries", len(NAMED_QUERIES))


def list_named_queries() -> List[NamedQuery]:
    return sorted(NAMED_QUERIES.values(), key=lambda query: query.name)


def get_named_query(name: str) -> NamedQuery:
    try:
        return NAMED_QUERIES[name]
    except KeyError:
        raise InvalidSpec("name", f"unknown named query {name!r}") from None


def run_named_query(dataset: pd.DataFrame, name: str) -> pd.DataFrame:
    return run_query(dataset, get_named_query(name).spec)


def yearly_charge_group_counts(dataset: pd.DataFrame) -> pd.DataFrame:
    """Arrests per year and charge group, the catalogue's reusable view."""
    return run_named_query(dataset, "yearly_charge_group_counts")


def top_charges(dataset: pd.DataFrame, area_name: str, year: int, limit: int = 5) -> pd.DataFrame:
    """Most frequent charge descriptions for one area and year.

    Rows are ordered by count descending, ties broken alphabetically, and
    truncated to ``limit``.
    """
    spec = QuerySpec(
        filter=(
            Equals("area_name", area_name),
            Equals("arrest_year", year),
            NotNull("charge_description"),
        ),
        group_by=("charge_description",),
        aggregate=COUNT,
        order_by=(("arrest_count", "DESC"), ("charge_description", "ASC")),
        top_n=limit,
    )
    return run_query(dataset, spec)
