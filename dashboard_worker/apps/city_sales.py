"""WOW2023 Week 9: a tricky filter.

Horizontal bar chart of Ohio sales by city. The key cities are always
shown; any other city can be added with the filter, and the sort widget
either keeps the added cities below the key cities or mixes everything by
sales.
"""

from __future__ import annotations

from typing import Any

from bokeh.document import Document
from bokeh.models import Column, ColumnDataSource, Div, FactorRange, MultiSelect, Row, Select
from bokeh.plotting import figure

from dashboard_worker.location import Location


COLORS = ("#71264A", "#D3D3D3")
SORT_OPTIONS = ("Key Cities", "Sales")

KEY_CITIES = ("Cincinnati", "Akron", "Toledo", "Cleveland", "Columbus")

# Superstore 2022.4, State/Province == "Ohio", Sales summed by city.
SALES_BY_CITY: dict[str, float] = {
    "Akron": 2729.99,
    "Bowling Green": 103.49,
    "Canton": 511.83,
    "Cincinnati": 6211.71,
    "Cleveland": 12519.46,
    "Columbus": 14437.24,
    "Dublin": 1079.73,
    "Fairfield": 64.68,
    "Hamilton": 384.14,
    "Lakewood": 1184.91,
    "Lancaster": 1131.52,
    "Lorain": 1083.44,
    "Mansfield": 173.27,
    "Marion": 254.6,
    "Mason": 25.38,
    "Medina": 1071.32,
    "Mentor": 1075.38,
    "Newark": 1064.94,
    "Springfield": 1013.95,
    "Toledo": 3018.86,
    "Troy": 232.81,
    "Westlake": 125.7,
    "Youngstown": 451.25,
}

OTHER_CITIES = tuple(sorted(city for city in SALES_BY_CITY if city not in KEY_CITIES))


def bar_data(selected_cities: list[str] | None = None, sort_by: str = "Key Cities") -> list[dict[str, Any]]:
    """Bars from bottom to top."""
    key = [{"city": c, "sales": SALES_BY_CITY[c], "color": COLORS[0]} for c in KEY_CITIES]
    selected = [
        {"city": c, "sales": SALES_BY_CITY[c], "color": COLORS[1]}
        for c in (selected_cities or [])
        if c in OTHER_CITIES
    ]
    if not selected:
        return key
    if sort_by == "Key Cities":
        return sorted(selected, key=lambda bar: bar["sales"]) + key
    return sorted(selected + key, key=lambda bar: bar["sales"])


def bar_columns(bars: list[dict[str, Any]]) -> dict[str, list[Any]]:
    return {name: [bar[name] for bar in bars] for name in ("city", "sales", "color")}


def build(doc: Document, location: Location | None = None) -> None:
    title = Div(
        text=(
            "<h2><b># WOW2023 Week 9: A tricky filter</b></h2>"
            "Can you allow users to filter out any city except for a select few "
            f"<span style='color:{COLORS[0]};font-weight:bold'>Key Cities</span>?"
        ),
    )
    selected_cities = MultiSelect(name="cities", title="Filter Cities", value=[], options=list(OTHER_CITIES), size=8)
    sort_by = Select(name="sort_by", title="Sort By", value="Key Cities", options=list(SORT_OPTIONS))

    bars = bar_data()
    source = ColumnDataSource(name="sales", data=bar_columns(bars))
    chart = figure(
        name="chart",
        y_range=FactorRange(factors=[bar["city"] for bar in bars]),
        width=700,
        height=500,
        x_axis_label="Sale",
        toolbar_location=None,
        tools="",
    )
    chart.hbar(y="city", right="sales", height=0.8, color="color", source=source)
    chart.xaxis.ticker = [0, 5000, 10000, 15000]
    chart.xaxis.major_label_overrides = {0: "0K", 5000: "5K", 10000: "10K", 15000: "15K"}
    chart.ygrid.grid_line_color = None

    def _refresh(attr: str, old: Any, new: Any) -> None:
        bars = bar_data(selected_cities.value, sort_by.value)
        source.data = bar_columns(bars)
        chart.y_range.factors = [bar["city"] for bar in bars]

    selected_cities.on_change("value", _refresh)
    sort_by.on_change("value", _refresh)

    widgets = Column(title, selected_cities, sort_by, align="start", width=450)
    doc.add_root(Row(widgets, chart, name="layout"))

    if location is not None:
        def _on_search(event: Any) -> None:
            if "sort=Sales" in str(event.new or ""):
                sort_by.value = "Sales"

        location.param.watch(_on_search, "search")
