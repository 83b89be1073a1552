"""Analytical queries over Los Angeles arrest records."""

from .catalogue import (  # noqa: F401
    NAMED_QUERIES,
    get_named_query,
    list_named_queries,
    run_named_query,
    top_charges,
    yearly_charge_group_counts,
)
from .data_loader import load_arrest_data, load_arrest_records  # noqa: F401
from .filters import AllOf, Between, Equals, IsIn, NotNull, Predicate  # noqa: F401
from .metrics import percent_change  # noqa: F401
from .query import Aggregate, InvalidSpec, Lag, QuerySpec, Rank, Rolling, run_query, to_records  # noqa: F401
from .summary import compute_area_summary  # noqa: F401
from .timeseries import build_time_series_views  # noqa: F401
