# src/features/join_sessions.py

import os
import sys
import pandas as pd
import geopandas as gpd
from pathlib import Path
from dotenv import load_dotenv

# -------------------------
# 1. Configuration
# -------------------------
load_dotenv()

PROCESSED_DIR = Path(os.getenv("SAILING_PROCESSED_DIR", "data/processed"))
FIXES_CSV = PROCESSED_DIR / "fixes.csv"
SESSIONS_CSV = PROCESSED_DIR / "sessions.csv"
OUTPUT_GPKG = PROCESSED_DIR / "sailing_fixes.gpkg"

# The logbook is kept in local days, the GPS in UTC
LOCAL_TZ = os.getenv("LOCAL_TZ", "Europe/Berlin")


# -------------------------
# 2. Sailing day of every fix
# -------------------------
def add_local_date(fixes, tz=LOCAL_TZ):
    fixes = fixes.copy()
    fixes["timestamp"] = pd.to_datetime(fixes["timestamp"], utc=True)
    fixes["date"] = fixes["timestamp"].dt.tz_convert(tz).dt.strftime("%Y-%m-%d")
    return fixes


# -------------------------
# 3. Join with the logbook
# -------------------------
def join_fixes_sessions(fixes, sessions):
    sessions = sessions.copy()
    sessions["date"] = sessions["date"].astype(str)
    return fixes.merge(sessions, on="date", how="left", validate="many_to_one")


def check_boats_known(joined):
    """Stop if any day with fixes has no boat in the logbook."""
    missing = sorted(joined.loc[joined["boat"].isna(), "date"].unique())
    if missing:
        raise ValueError(
            f"No boat logged for {len(missing)} day(s) with tracks: {', '.join(missing)}. "
            "Add them to the session logbook before building the report."
        )


def report_unmatched_sessions(fixes, sessions):
    """Logbook days without a track are fine, but worth knowing about."""
    unmatched = sorted(set(sessions["date"].astype(str)) - set(fixes["date"]))
    if unmatched:
        print(f"⚠️ {len(unmatched)} logbook day(s) have no track log: {', '.join(unmatched)}")
    return unmatched


def to_geodataframe(joined):
    gdf = gpd.GeoDataFrame(
        joined,
        geometry=gpd.points_from_xy(joined["lon"], joined["lat"]),
        crs="EPSG:4326",
    )
    # GeoPackage keeps timezones inconsistently, store ISO strings instead
    gdf["timestamp"] = gdf["timestamp"].dt.strftime("%Y-%m-%dT%H:%M:%SZ")
    return gdf


# -------------------------
# 4. Main
# -------------------------
def main():
    try:
        fixes = pd.read_csv(FIXES_CSV)
        sessions = pd.read_csv(SESSIONS_CSV)
    except FileNotFoundError as e:
        sys.exit(f"❌ Error reading inputs: {e}. Run the ingestion scripts first.")

    fixes = add_local_date(fixes)
    print(f"Loaded {len(fixes)} fixes over {fixes['date'].nunique()} days, {len(sessions)} logbook days.")

    joined = join_fixes_sessions(fixes, sessions)
    try:
        check_boats_known(joined)
    except ValueError as e:
        sys.exit(f"❌ {e}")
    print("✅ Every sailing day has a boat.")

    report_unmatched_sessions(fixes, sessions)

    gdf = to_geodataframe(joined)
    gdf.to_file(OUTPUT_GPKG, layer="fixes", driver="GPKG")
    print(f"✅ Saved {len(gdf)} joined fixes to {OUTPUT_GPKG}")


if __name__ == "__main__":
    main()
