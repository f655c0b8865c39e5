# src/report/build_report.py

import os
import re
import sys
import numpy as np
import pandas as pd
import geopandas as gpd
import plotly.express as px
import folium
from folium.plugins import HeatMap
from jinja2 import Environment, FileSystemLoader, Template
from markdown import markdown
from pathlib import Path
from datetime import datetime
from dotenv import load_dotenv

# -------------------------
# 1. Configuration
# -------------------------
load_dotenv()

PROCESSED_DIR = Path(os.getenv("SAILING_PROCESSED_DIR", "data/processed"))
INPUT_GPKG = PROCESSED_DIR / "sailing_fixes.gpkg"
SUMMARY_CSV = PROCESSED_DIR / "session_summary_wind.csv"
FALLBACK_SUMMARY_CSV = PROCESSED_DIR / "session_summary.csv"
OUTPUT_HTML = Path(os.getenv("SAILING_REPORT_DIR", "reports")) / "sailing_report.html"

MIN_MOVING_SPEED_KN = float(os.getenv("MIN_MOVING_SPEED_KN", "0.5"))
MAX_HEATMAP_POINTS = int(os.getenv("MAX_HEATMAP_POINTS", "20000"))

HERE = Path(__file__).parent
COMMENTARY_MD = HERE / "commentary.md"
TEMPLATES_DIR = HERE / "templates"

COMPASS_POINTS = [
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
]
WIND_BINS = [0, 5, 10, 15, 20, np.inf]
WIND_LABELS = ["0-5 kn", "5-10 kn", "10-15 kn", "15-20 kn", "20+ kn"]
BOAT_COLORS = px.colors.qualitative.Set2


# -------------------------
# 2. Binning helpers
# -------------------------
def bin_headings(headings):
    """16 compass sectors of 22.5°, N centred on 0°."""
    idx = np.floor(((headings % 360) + 11.25) / 22.5) % 16
    return pd.Categorical.from_codes(
        idx.fillna(-1).astype(int), categories=COMPASS_POINTS
    )


def bin_wind(wind_kn):
    return pd.cut(wind_kn, bins=WIND_BINS, labels=WIND_LABELS, right=False)


def moving_fixes(fixes, min_kn=MIN_MOVING_SPEED_KN):
    return fixes[fixes["speed_kn"] >= min_kn]


def attach_session_wind(fixes, summary):
    """Use the (possibly filled) session wind instead of the raw logbook value."""
    wind = summary[["date", "wind_kn"]].copy()
    wind["date"] = wind["date"].astype(str)
    fixes = fixes.drop(columns=["wind_kn"], errors="ignore")
    return fixes.merge(wind, on="date", how="left")


# -------------------------
# 3. Charts
# -------------------------
def sessions_per_month_chart(summary):
    monthly = (
        summary.assign(month=summary["date"].astype(str).str[:7])
        .groupby(["month", "boat"], as_index=False)
        .agg(sessions=("date", "count"), hours=("duration_h", "sum"))
    )
    fig = px.bar(
        monthly, x="month", y="hours", color="boat",
        hover_data=["sessions"],
        labels={"month": "Month", "hours": "Hours on the water", "boat": "Boat"},
        color_discrete_sequence=BOAT_COLORS,
        title="Hours on the water per month",
    )
    fig.update_xaxes(type="category")
    return fig


def time_on_water_treemap(summary):
    fig = px.treemap(
        summary,
        path=[px.Constant("All sessions"), "boat", "crew"],
        values="duration_h",
        color="boat",
        color_discrete_sequence=BOAT_COLORS,
        title="Time on the water by boat and crew",
    )
    fig.update_traces(texttemplate="%{label}<br>%{value:.1f} h")
    return fig


def speed_histogram(fixes):
    fig = px.histogram(
        moving_fixes(fixes), x="speed_kn", color="boat",
        nbins=40, barmode="overlay", opacity=0.7,
        labels={"speed_kn": "Speed over ground (kn)", "boat": "Boat"},
        color_discrete_sequence=BOAT_COLORS,
        title="Distribution of boat speed",
    )
    fig.update_yaxes(title="Fixes")
    return fig


def heading_rose(fixes):
    sectors = bin_headings(moving_fixes(fixes)["heading"])
    counts = pd.Series(sectors).value_counts(sort=False).reindex(COMPASS_POINTS, fill_value=0)
    rose = pd.DataFrame({"sector": COMPASS_POINTS, "fixes": counts.values})
    fig = px.bar_polar(
        rose, r="fixes", theta="sector",
        color_discrete_sequence=BOAT_COLORS,
        title="Course over ground",
    )
    fig.update_polars(angularaxis_direction="clockwise", angularaxis_rotation=90)
    return fig


def speed_by_wind_chart(fixes):
    moving = moving_fixes(fixes).copy()
    moving["wind_band"] = bin_wind(moving["wind_kn"])
    moving = moving.dropna(subset=["wind_band"])
    moving["wind_band"] = moving["wind_band"].astype(str)
    fig = px.box(
        moving, x="wind_band", y="speed_kn", color="boat",
        category_orders={"wind_band": WIND_LABELS},
        labels={"wind_band": "Wind", "speed_kn": "Speed over ground (kn)", "boat": "Boat"},
        color_discrete_sequence=BOAT_COLORS,
        title="Boat speed by wind strength",
    )
    return fig


# -------------------------
# 4. Maps
# -------------------------
def _base_map(fixes):
    m = folium.Map(tiles="cartodbpositron")
    m.fit_bounds([
        [fixes["lat"].min(), fixes["lon"].min()],
        [fixes["lat"].max(), fixes["lon"].max()],
    ])
    return m


def track_map(fixes):
    """One polyline per sailing day, coloured by boat."""
    m = _base_map(fixes)
    boats = sorted(fixes["boat"].dropna().unique())
    colors = {boat: BOAT_COLORS[i % len(BOAT_COLORS)] for i, boat in enumerate(boats)}

    for date, day in fixes.sort_values("timestamp").groupby("date"):
        first = day.iloc[0]
        folium.PolyLine(
            day[["lat", "lon"]].values.tolist(),
            color=colors.get(first["boat"], "gray"),
            weight=2,
            opacity=0.7,
            tooltip=f"{date} • {first['boat']} • {first['crew']}",
        ).add_to(m)
    return m


def density_map(fixes, max_points=MAX_HEATMAP_POINTS):
    m = _base_map(fixes)
    points = fixes[["lat", "lon"]]
    if len(points) > max_points:
        points = points.iloc[:: len(points) // max_points + 1]
    HeatMap(points.values.tolist(), radius=8, blur=10).add_to(m)
    return m


# -------------------------
# 5. Narrative
# -------------------------
def report_context(summary, fixes):
    """Headline numbers used in the commentary."""
    moving = moving_fixes(fixes)
    hours_by_boat = summary.groupby("boat")["duration_h"].sum().sort_values(ascending=False)
    hours_by_crew = summary.groupby("crew")["duration_h"].sum().sort_values(ascending=False)
    fastest = fixes.loc[fixes["speed_kn"].idxmax()] if fixes["speed_kn"].notna().any() else None
    sectors = pd.Series(bin_headings(moving["heading"])).value_counts()
    windy = summary.dropna(subset=["wind_kn"])

    return {
        "n_sessions": len(summary),
        "n_fixes": len(fixes),
        "n_boats": summary["boat"].nunique(),
        "first_date": summary["date"].min(),
        "last_date": summary["date"].max(),
        "total_hours": summary["duration_h"].sum(),
        "total_distance_nm": summary["distance_nm"].sum(),
        "favourite_boat": hours_by_boat.index[0] if len(hours_by_boat) else "-",
        "favourite_boat_hours": hours_by_boat.iloc[0] if len(hours_by_boat) else 0.0,
        "top_crew": hours_by_crew.index[0] if len(hours_by_crew) else "-",
        "solo_share": (summary["crew"] == "solo").mean() * 100 if len(summary) else 0.0,
        "median_speed_kn": moving["speed_kn"].median() if len(moving) else 0.0,
        "top_speed_kn": fastest["speed_kn"] if fastest is not None else 0.0,
        "top_speed_date": fastest["date"] if fastest is not None else "-",
        "prevailing_heading": sectors.idxmax() if sectors.sum() else "-",
        "n_wind_sessions": len(windy),
        "windiest_date": windy.loc[windy["wind_kn"].idxmax(), "date"] if len(windy) else "-",
        "max_wind_kn": windy["wind_kn"].max() if len(windy) else 0.0,
        "generated": datetime.now().strftime("%Y-%m-%d %H:%M"),
    }


def load_commentary(path=COMMENTARY_MD):
    """Split the commentary file into {key: (title, markdown body)} on '## key: Title' lines."""
    sections = {}
    key = None
    for line in Path(path).read_text(encoding="utf-8").splitlines():
        match = re.match(r"^## (\w+):\s*(.+)$", line)
        if match:
            key = match.group(1)
            sections[key] = [match.group(2).strip(), []]
        elif key is not None:
            sections[key][1].append(line)
    return {k: (title, "\n".join(body).strip()) for k, (title, body) in sections.items()}


def figure_html(fig, first=False):
    if isinstance(fig, folium.Map):
        return fig._repr_html_()
    return fig.to_html(full_html=False, include_plotlyjs="cdn" if first else False)


def render_report(charts, context, commentary=None):
    """
    Assemble the report.

    Args:
        charts: list of (section key, figure or None) in report order
        context: numbers the commentary refers to
        commentary: {key: (title, markdown)}; read from commentary.md by default
    """
    commentary = commentary if commentary is not None else load_commentary()
    sections = []
    first_plotly = True
    for key, fig in charts:
        title, body = commentary.get(key, (key.replace("_", " ").title(), ""))
        chart = ""
        if fig is not None:
            is_plotly = not isinstance(fig, folium.Map)
            chart = figure_html(fig, first=is_plotly and first_plotly)
            first_plotly = first_plotly and not is_plotly
        sections.append({
            "key": key,
            "title": title,
            "text": markdown(Template(body).render(**context)),
            "chart": chart,
        })

    env = Environment(loader=FileSystemLoader(TEMPLATES_DIR), autoescape=True)
    return env.get_template("report.html.j2").render(sections=sections, **context)


def build_charts(summary, fixes):
    return [
        ("overview", None),
        ("sessions_per_month", sessions_per_month_chart(summary)),
        ("time_on_water", time_on_water_treemap(summary)),
        ("speed", speed_histogram(fixes)),
        ("heading", heading_rose(fixes)),
        ("wind", speed_by_wind_chart(fixes)),
        ("track_map", track_map(fixes)),
        ("density_map", density_map(fixes)),
    ]


# -------------------------
# 6. Main
# -------------------------
def main():
    summary_csv = SUMMARY_CSV if SUMMARY_CSV.exists() else FALLBACK_SUMMARY_CSV
    try:
        gdf = gpd.read_file(INPUT_GPKG, layer="fixes")
        summary = pd.read_csv(summary_csv)
    except Exception as e:
        sys.exit(f"❌ Error reading processed data: {e}. Run the pipeline first.")

    fixes = pd.DataFrame(gdf.drop(columns="geometry"))
    fixes["timestamp"] = pd.to_datetime(fixes["timestamp"], utc=True)
    fixes = attach_session_wind(fixes, summary)
    print(f"📊 Building report from {len(fixes)} fixes and {len(summary)} sessions")

    context = report_context(summary, fixes)
    html = render_report(build_charts(summary, fixes), context)

    OUTPUT_HTML.parent.mkdir(parents=True, exist_ok=True)
    OUTPUT_HTML.write_text(html, encoding="utf-8")
    print(f"✅ Saved report to {OUTPUT_HTML}")


if __name__ == "__main__":
    main()
