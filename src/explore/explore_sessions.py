# src/explore/explore_sessions.py

import os
import geopandas as gpd
import pandas as pd
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

PROCESSED_DIR = Path(os.getenv("SAILING_PROCESSED_DIR", "data/processed"))
gpkg_path = PROCESSED_DIR / "sailing_fixes.gpkg"
summary_path = PROCESSED_DIR / "session_summary_wind.csv"


def describe(df, name):
    print(f"=== {name}: HEAD ===")
    print(df.head(), "\n")

    print(f"=== {name}: DATA TYPES ===")
    print(df.dtypes, "\n")

    print(f"=== {name}: MISSING VALUES ===")
    print(df.isnull().sum(), "\n")

    print(f"=== {name}: NUMERIC SUMMARY ===")
    print(df.describe(), "\n")


if __name__ == "__main__":
    gdf = gpd.read_file(gpkg_path, layer="fixes")
    describe(gdf, "FIXES")

    print("=== FIXES PER BOAT ===")
    print(gdf.groupby("boat")["date"].agg(["count", "nunique"]).rename(columns={"count": "fixes", "nunique": "days"}), "\n")

    if summary_path.exists():
        describe(pd.read_csv(summary_path), "SESSIONS")
