# src/features/add_historical_wind.py

import os
import pandas as pd
import requests
from pathlib import Path
from dotenv import load_dotenv

# -------------------------
# 1. Input & output
# -------------------------
load_dotenv()

PROCESSED_DIR = Path(os.getenv("SAILING_PROCESSED_DIR", "data/processed"))
INPUT_CSV = PROCESSED_DIR / "session_summary.csv"
OUTPUT_CSV = PROCESSED_DIR / "session_summary_wind.csv"

LOCAL_TZ = os.getenv("LOCAL_TZ", "Europe/Berlin")
FETCH_MISSING_WIND = os.getenv("FETCH_MISSING_WIND", "1") not in ("0", "false", "no")

ARCHIVE_URL = "https://archive-api.open-meteo.com/v1/archive"
COMPASS_POINTS = [
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
]


# -------------------------
# 2. Degrees -> compass point
# -------------------------
def to_compass(degrees):
    if degrees is None or pd.isna(degrees):
        return None
    return COMPASS_POINTS[int(((degrees % 360) + 11.25) // 22.5) % 16]


# -------------------------
# 3. Daily wind from Open-Meteo
# -------------------------
def get_daily_wind(lat, lon, date_str, tz=LOCAL_TZ):
    """Max wind (kn) and dominant direction for one day, or None."""
    params = {
        "latitude": lat,
        "longitude": lon,
        "start_date": date_str,
        "end_date": date_str,
        "daily": "wind_speed_10m_max,wind_direction_10m_dominant",
        "wind_speed_unit": "kn",
        "timezone": tz,
    }
    try:
        res = requests.get(ARCHIVE_URL, params=params, timeout=30)
        res.raise_for_status()
        daily = res.json().get("daily", {})
    except requests.RequestException as e:
        print(f"❌ Open-Meteo error for {date_str}: {e}")
        return None

    speeds = daily.get("wind_speed_10m_max") or [None]
    directions = daily.get("wind_direction_10m_dominant") or [None]
    if speeds[0] is None:
        return None
    return {"wind_kn": speeds[0], "wind_dir": to_compass(directions[0])}


# -------------------------
# 4. Fill the gaps in the logbook
# -------------------------
def fill_missing_wind(summary, fetch=FETCH_MISSING_WIND):
    summary = summary.copy()
    summary["wind_source"] = None
    summary.loc[summary["wind_kn"].notna(), "wind_source"] = "log"
    summary["wind_dir"] = summary["wind_dir"].astype(object)

    missing = summary.index[summary["wind_kn"].isna()]
    if len(missing) == 0:
        print("✅ Every session has logged wind.")
        return summary
    if not fetch:
        print(f"⚠️ {len(missing)} sessions without logged wind, lookup disabled.")
        return summary

    for i in missing:
        row = summary.loc[i]
        wind = get_daily_wind(row["center_lat"], row["center_lon"], row["date"])
        if wind is None:
            print(f"⚠️ {row['date']}: no wind data, leaving blank")
            continue
        summary.loc[i, "wind_kn"] = wind["wind_kn"]
        if pd.isna(row["wind_dir"]):
            summary.loc[i, "wind_dir"] = wind["wind_dir"]
        summary.loc[i, "wind_source"] = "open-meteo"
        print(f"🌬️ {row['date']} -> {wind['wind_kn']} kn {wind['wind_dir']}")

    return summary


# -------------------------
# 5. Main
# -------------------------
def main():
    summary = pd.read_csv(INPUT_CSV)
    summary = fill_missing_wind(summary)
    summary.to_csv(OUTPUT_CSV, index=False)
    print(f"✅ Saved session summary with wind to {OUTPUT_CSV}")


if __name__ == "__main__":
    main()
