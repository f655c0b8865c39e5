# src/features/add_session_stats.py

import os
import sys
import pandas as pd
import geopandas as gpd
from pathlib import Path
from shapely.geometry import LineString
from dotenv import load_dotenv

# -------------------------
# 1. Configuration
# -------------------------
load_dotenv()

PROCESSED_DIR = Path(os.getenv("SAILING_PROCESSED_DIR", "data/processed"))
INPUT_GPKG = PROCESSED_DIR / "sailing_fixes.gpkg"
OUTPUT_CSV = PROCESSED_DIR / "session_summary.csv"

# Below this the boat is drifting or tied up
MIN_MOVING_SPEED_KN = float(os.getenv("MIN_MOVING_SPEED_KN", "0.5"))

METERS_PER_NM = 1852
SESSION_KEYS = ["date", "boat", "crew", "n_partners", "wind_kn", "wind_dir", "location"]


# -------------------------
# 2. Distance sailed
# -------------------------
def session_distance_nm(gdf):
    """Length of the track through a day's fixes, measured in the local UTM zone."""
    if len(gdf) < 2:
        return 0.0
    ordered = gdf.sort_values("timestamp")
    projected = ordered.to_crs(ordered.estimate_utm_crs())
    line = LineString(list(zip(projected.geometry.x, projected.geometry.y)))
    return line.length / METERS_PER_NM


# -------------------------
# 3. One row per sailing day
# -------------------------
def summarize_sessions(gdf, min_moving_kn=MIN_MOVING_SPEED_KN):
    gdf = gdf.copy()
    gdf["timestamp"] = pd.to_datetime(gdf["timestamp"], utc=True)
    for col in SESSION_KEYS:
        if col not in gdf.columns:
            gdf[col] = pd.NA

    rows = []
    for date, day in gdf.groupby("date", sort=True):
        first = day.iloc[0]
        moving = day[day["speed_kn"] >= min_moving_kn]
        start, end = day["timestamp"].min(), day["timestamp"].max()
        rows.append({
            **{col: first[col] for col in SESSION_KEYS},
            "start_utc": start.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "end_utc": end.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "duration_h": (end - start).total_seconds() / 3600,
            "distance_nm": session_distance_nm(day),
            "mean_speed_kn": moving["speed_kn"].mean() if len(moving) else 0.0,
            "max_speed_kn": day["speed_kn"].max(),
            "n_fixes": len(day),
            "center_lat": day.geometry.y.mean(),
            "center_lon": day.geometry.x.mean(),
        })
        print(f"⛵ {date} {first['boat']} ({first['crew']}): {rows[-1]['distance_nm']:.1f} nm in {rows[-1]['duration_h']:.1f} h")

    return pd.DataFrame(rows)


# -------------------------
# 4. Main
# -------------------------
def main():
    try:
        gdf = gpd.read_file(INPUT_GPKG, layer="fixes")
    except Exception as e:
        sys.exit(f"❌ Error reading input file {INPUT_GPKG}: {e}. Ensure the file exists.")

    summary = summarize_sessions(gdf)
    summary.to_csv(OUTPUT_CSV, index=False)
    print(f"\n✅ Saved {len(summary)} session summaries to {OUTPUT_CSV}")


if __name__ == "__main__":
    main()
