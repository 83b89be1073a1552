from __future__ import annotations

from typing import Dict

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
import streamlit as st

from arrests.catalogue import list_named_queries, run_named_query, top_charges
from arrests.data_loader import load_arrest_data
from arrests.quality import find_anomalies, null_rates
from arrests.summary import PERIODS, ComparisonPeriod, aggregate_period, compute_area_summary
from arrests.timeseries import arrest_year_range, build_time_series_views


st.set_page_config(
    page_title="LA Arrests Explorer",
    page_icon="📊",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown(
    "<style>.main { padding-top: 1.5rem; }</style>",
    unsafe_allow_html=True,
)


@st.cache_data(show_spinner=False)
def get_data() -> pd.DataFrame:
    return load_arrest_data()


def format_delta(change: float, pct: float | None) -> str:
    arrow = "▲" if change > 0 else "▼" if change < 0 else "■"
    if pct is None:
        return f"{arrow} {change:.0f} (n/a)"
    return f"{arrow} {change:.0f} ({pct:.1f}%)"


def render_kpis(summary: pd.DataFrame) -> None:
    cols = st.columns(len(PERIODS))
    for col, period in zip(cols, PERIODS):
        totals = aggregate_period(summary, period.key)
        col.metric(
            f"{period.label} Arrests",
            f"{totals['current']:.0f}",
            format_delta(totals["change"], totals["pct_change"]),
            delta_color="inverse",
        )


def build_summary_table(summary: pd.DataFrame, period: ComparisonPeriod) -> pd.DataFrame:
    columns = {
        "area_name": "Area",
        f"{period.key}_current": "Current",
        f"{period.key}_previous": "Previous",
        f"{period.key}_change": "Δ",
        f"{period.key}_pct_change": "%Δ",
    }
    available = [col for col in columns if col in summary.columns]
    table = summary[available].rename(columns=columns)
    if "Δ" in table.columns:
        table = table.sort_values("Δ", ascending=False)
    return table


def plot_monthly_trend(monthly: pd.DataFrame) -> go.Figure:
    if monthly.empty:
        return go.Figure()
    fig = go.Figure()
    fig.add_bar(x=monthly["arrest_month"], y=monthly["arrest_count"], name="Arrests")
    fig.add_scatter(
        x=monthly["arrest_month"],
        y=monthly["rolling_3_month_average"],
        mode="lines",
        name="3-month average",
    )
    fig.update_layout(
        title="Monthly Arrests",
        xaxis_title="Month",
        yaxis_title="Arrests",
        margin=dict(l=10, r=10, t=60, b=20),
        height=340,
    )
    return fig


def plot_heatmap(matrix: pd.DataFrame) -> go.Figure:
    heat = go.Heatmap(
        z=matrix.values,
        x=list(matrix.columns),
        y=[day[:3] for day in matrix.index],
        colorscale="YlOrRd",
        hovertemplate="Hour %{x}:00<br>%{y}<br>Arrests %{z}<extra></extra>",
    )
    layout = go.Layout(
        title="Day & Hour Concentration",
        xaxis=dict(title="Hour of Day"),
        yaxis=dict(title="", autorange="reversed"),
        height=320,
        margin=dict(l=10, r=10, t=60, b=20),
    )
    return go.Figure(data=[heat], layout=layout)


def plot_age_buckets(age_buckets: pd.DataFrame) -> go.Figure:
    if age_buckets.empty:
        return go.Figure()
    fig = px.bar(
        age_buckets,
        x="age_bucket",
        y="arrest_count",
        title="Arrests by Age Band",
        text_auto=True,
    )
    fig.update_layout(
        height=320,
        margin=dict(l=10, r=10, t=50, b=20),
        xaxis_title="Age",
        yaxis_title="Arrests",
    )
    return fig


def main():
    arrests = get_data()
    if arrests.empty:
        st.warning("The arrest dataset is empty. Run scripts/fetch_data.py to pull records.")
        return

    area_options = sorted(arrests["area_name"].dropna().unique())
    year_range = arrest_year_range(arrests)
    if year_range is None:
        st.warning("No arrest in the dataset has a usable arrest date.")
        return
    min_year, max_year = year_range

    with st.sidebar:
        st.header("Control Panel")
        selected_areas = st.multiselect(
            "Areas",
            options=area_options,
            help="Leave empty to include every area.",
        )
        year_range = (min_year, max_year)
        if min_year < max_year:
            year_range = st.slider(
                "Arrest years",
                min_value=min_year,
                max_value=max_year,
                value=year_range,
            )
        period_labels: Dict[str, ComparisonPeriod] = {p.label: p for p in PERIODS}
        selected_period = period_labels[
            st.radio("Comparison period", list(period_labels.keys()), index=2)
        ]
        st.caption("Data: LAPD Arrest Data (Los Angeles Open Data).")

    filtered = arrests[arrests["arrest_date"].dt.year.between(*year_range)]
    if selected_areas:
        filtered = filtered[filtered["area_name"].isin(selected_areas)]

    if filtered.empty:
        st.warning("No arrests match the selected filters. Adjust the controls to view data.")
        return

    views = build_time_series_views(filtered)
    summary = compute_area_summary(filtered)

    overview_tab, catalogue_tab, charges_tab = st.tabs(
        ["Overview", "Query Catalogue", "Top Charges"]
    )

    with overview_tab:
        st.title("LA Arrests Explorer")
        render_kpis(summary)

        st.plotly_chart(plot_monthly_trend(views["monthly_counts"]), use_container_width=True)
        chart_col1, chart_col2 = st.columns(2)
        with chart_col1:
            st.plotly_chart(plot_heatmap(views["hourly_matrix"]), use_container_width=True)
        with chart_col2:
            st.plotly_chart(plot_age_buckets(views["age_buckets"]), use_container_width=True)

        st.markdown(f"### Area Comparison ({selected_period.label})")
        st.dataframe(
            build_summary_table(summary, selected_period),
            column_config={
                "Current": st.column_config.NumberColumn(format="%.0f"),
                "Previous": st.column_config.NumberColumn(format="%.0f"),
                "Δ": st.column_config.NumberColumn(format="%.0f"),
                "%Δ": st.column_config.NumberColumn(format="%.2f%%"),
            },
            use_container_width=True,
            hide_index=True,
        )

        with st.expander("Data Quality"):
            st.dataframe(null_rates(filtered), use_container_width=True, hide_index=True)
            anomalies = find_anomalies(filtered)
            if anomalies.empty:
                st.caption("No anomalous records in the current selection.")
            else:
                st.dataframe(
                    anomalies["issue"].value_counts().rename("Records").reset_index(),
                    use_container_width=True,
                    hide_index=True,
                )

    with catalogue_tab:
        queries = {query.name: query for query in list_named_queries()}
        name = st.selectbox("Named query", options=list(queries.keys()))
        st.caption(queries[name].description)
        result = run_named_query(filtered, name)
        st.dataframe(result, use_container_width=True, hide_index=True)
        st.download_button(
            "Download CSV",
            result.to_csv(index=False).encode("utf-8"),
            file_name=f"{name}.csv",
            mime="text/csv",
        )

    with charges_tab:
        form_cols = st.columns(3)
        area = form_cols[0].selectbox("Area", options=area_options)
        year = form_cols[1].number_input(
            "Year", min_value=min_year, max_value=max_year, value=max_year, step=1
        )
        limit = form_cols[2].number_input("Rows", min_value=1, max_value=50, value=5, step=1)
        charges = top_charges(arrests, area, int(year), limit=int(limit))
        if charges.empty:
            st.info(f"No arrests recorded for {area} in {int(year)}.")
        else:
            st.dataframe(charges, use_container_width=True, hide_index=True)


if __name__ == "__main__":
    main()
