# src/ingestion/read_track_logs.py

import os
import sys
import numpy as np
import pandas as pd
import gpxpy
from pathlib import Path
from datetime import timezone
from dotenv import load_dotenv

# -------------------------
# 1. Configuration
# -------------------------
load_dotenv()

RAW_DIR = Path(os.getenv("SAILING_RAW_DIR", "data/raw"))
TRACKS_DIR = RAW_DIR / "tracks"
OUTPUT_CSV = Path(os.getenv("SAILING_PROCESSED_DIR", "data/processed")) / "fixes.csv"

# Anything faster than this is a GPS jump, not sailing
MAX_PLAUSIBLE_SPEED_KN = float(os.getenv("MAX_PLAUSIBLE_SPEED_KN", "30"))

MS_TO_KN = 1.943844
EARTH_RADIUS_M = 6371000
# Epoch values above this are milliseconds (1e11 s is the year 5138)
EPOCH_MS_THRESHOLD = 1e11
FIX_COLUMNS = ["timestamp", "lon", "lat", "heading", "speed_kn", "source_file"]

CSV_ALIASES = {
    "timestamp": ["time", "timestamp", "date_time", "datetime"],
    "lat": ["lat", "latitude"],
    "lon": ["lon", "lng", "long", "longitude"],
    "heading": ["bearing", "course", "heading"],
    "speed": ["speed"],
}


# -------------------------
# 2. GPX track logs
# -------------------------
def _extension_value(point, name):
    """Look up <speed>/<course> in a point's extensions (PhoneTrack, OsmAnd)."""
    for ext in point.extensions:
        for elem in ext.iter():
            if elem.tag.split("}")[-1] == name and elem.text:
                try:
                    return float(elem.text)
                except ValueError:
                    return None
    return None


def parse_gpx_file(path):
    """Read every timed track point of a GPX file into a fix table."""
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        gpx = gpxpy.parse(f)

    rows = []
    for track in gpx.tracks:
        for segment in track.segments:
            for point in segment.points:
                if point.time is None:
                    continue
                speed = point.speed
                if speed is None:
                    speed = _extension_value(point, "speed")
                course = getattr(point, "course", None)
                if course is None:
                    course = _extension_value(point, "course")
                # GPX times without a zone are UTC
                time = point.time
                if time.tzinfo is None:
                    time = time.replace(tzinfo=timezone.utc)
                rows.append({
                    "timestamp": time.astimezone(timezone.utc),
                    "lon": point.longitude,
                    "lat": point.latitude,
                    "heading": course,
                    "speed_kn": speed * MS_TO_KN if speed is not None else None,
                    "source_file": path.name,
                })

    df = pd.DataFrame(rows, columns=FIX_COLUMNS)
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    df[["lon", "lat", "heading", "speed_kn"]] = df[["lon", "lat", "heading", "speed_kn"]].astype(float)
    return df


# -------------------------
# 3. CSV track logs (phone loggers)
# -------------------------
def parse_times(values):
    """ISO strings, or epoch seconds / milliseconds as most phone loggers write them."""
    if pd.api.types.is_numeric_dtype(values):
        unit = "ms" if values.abs().max() > EPOCH_MS_THRESHOLD else "s"
        return pd.to_datetime(values, unit=unit, utc=True, errors="coerce")
    return pd.to_datetime(values, utc=True, errors="coerce")


def parse_csv_log(path):
    """Read a phone-logger CSV export; speed is expected in m/s."""
    path = Path(path)
    raw = pd.read_csv(path)
    raw.columns = raw.columns.str.strip().str.lower().str.replace(r" |\.|-", "_", regex=True)

    found = {}
    for target, aliases in CSV_ALIASES.items():
        for alias in aliases:
            if alias in raw.columns:
                found[target] = alias
                break

    missing = [c for c in ("timestamp", "lat", "lon") if c not in found]
    if missing:
        raise ValueError(f"{path.name}: no column for {', '.join(missing)}")

    df = pd.DataFrame({
        "timestamp": parse_times(raw[found["timestamp"]]),
        "lon": pd.to_numeric(raw[found["lon"]], errors="coerce"),
        "lat": pd.to_numeric(raw[found["lat"]], errors="coerce"),
    })
    df["heading"] = pd.to_numeric(raw[found["heading"]], errors="coerce") if "heading" in found else np.nan
    df["speed_kn"] = pd.to_numeric(raw[found["speed"]], errors="coerce") * MS_TO_KN if "speed" in found else np.nan
    df["source_file"] = path.name
    return df[FIX_COLUMNS]


# -------------------------
# 4. Fill speed / heading from consecutive fixes
# -------------------------
def haversine_m(lat1, lon1, lat2, lon2):
    """Great-circle distance in meters; works on scalars and arrays."""
    phi1, phi2 = np.radians(lat1), np.radians(lat2)
    dphi = phi2 - phi1
    dlambda = np.radians(lon2 - lon1)
    a = np.sin(dphi / 2) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(dlambda / 2) ** 2
    return 2 * EARTH_RADIUS_M * np.arcsin(np.sqrt(a))


def initial_bearing(lat1, lon1, lat2, lon2):
    """Bearing in degrees [0, 360) from point 1 towards point 2."""
    phi1, phi2 = np.radians(lat1), np.radians(lat2)
    dlon = np.radians(lon2 - lon1)
    y = np.sin(dlon) * np.cos(phi2)
    x = np.cos(phi1) * np.sin(phi2) - np.sin(phi1) * np.cos(phi2) * np.cos(dlon)
    return (np.degrees(np.arctan2(y, x)) + 360.0) % 360.0


def derive_motion(df):
    """
    Fill missing speed_kn and heading per track log.
    Speed uses the leg from the previous fix, heading the leg to the next fix.
    Values already logged by the device are kept.
    """
    parts = []
    for _, track in df.sort_values("timestamp").groupby("source_file", sort=False):
        track = track.copy()
        prev_lat, prev_lon = track["lat"].shift(1), track["lon"].shift(1)
        dist_m = haversine_m(prev_lat, prev_lon, track["lat"], track["lon"])
        dt_s = track["timestamp"].diff().dt.total_seconds()
        speed_kn = (dist_m / dt_s.where(dt_s > 0)) * MS_TO_KN
        track["speed_kn"] = track["speed_kn"].fillna(speed_kn)

        next_lat, next_lon = track["lat"].shift(-1), track["lon"].shift(-1)
        bearing = pd.Series(initial_bearing(track["lat"], track["lon"], next_lat, next_lon), index=track.index)
        # the last fix of a track keeps the heading of the leg into it
        bearing = bearing.fillna(bearing.shift(1))
        track["heading"] = track["heading"].fillna(bearing)
        parts.append(track)

    if not parts:
        return df.copy()
    return pd.concat(parts).sort_index()


# -------------------------
# 5. Cleaning
# -------------------------
def drop_invalid_fixes(df):
    """Drop fixes without time or a real position, and exact duplicates."""
    out = df.copy()

    before = len(out)
    out = out.dropna(subset=["timestamp", "lat", "lon"])
    if before != len(out):
        print(f"⚠️ Removed {before - len(out)} fixes without time or position.")

    before = len(out)
    out = out[out["lat"].between(-90, 90) & out["lon"].between(-180, 180)]
    if before != len(out):
        print(f"⚠️ Removed {before - len(out)} fixes with invalid coordinates.")

    before = len(out)
    out = out.drop_duplicates(subset=["timestamp", "lon", "lat"], keep="first")
    if before != len(out):
        print(f"⚠️ Removed {before - len(out)} duplicate fixes.")

    return out.reset_index(drop=True)


def drop_implausible_speeds(df, max_speed_kn=MAX_PLAUSIBLE_SPEED_KN):
    before = len(df)
    out = df[~(df["speed_kn"] > max_speed_kn)]
    if before != len(out):
        print(f"⚠️ Removed {before - len(out)} fixes faster than {max_speed_kn} kn.")
    return out


def clean_fixes(df, max_speed_kn=MAX_PLAUSIBLE_SPEED_KN):
    """
    Drop unusable fixes, fill speed/heading from the valid neighbours,
    then drop GPS jumps. Sorted by time.
    """
    out = derive_motion(drop_invalid_fixes(df))
    out = drop_implausible_speeds(out, max_speed_kn).copy()
    out["heading"] = out["heading"] % 360
    return out.sort_values("timestamp").reset_index(drop=True)


# -------------------------
# 6. Main
# -------------------------
def track_files(tracks_dir, suffix):
    """Files with the given suffix, in any case (*.gpx, *.GPX)."""
    return sorted(p for p in Path(tracks_dir).iterdir() if p.is_file() and p.suffix.lower() == suffix)


def read_all_tracks(tracks_dir):
    frames = []
    for path in track_files(tracks_dir, ".gpx"):
        df = parse_gpx_file(path)
        print(f"🧭 {path.name}: {len(df)} fixes")
        frames.append(df)
    for path in track_files(tracks_dir, ".csv"):
        df = parse_csv_log(path)
        print(f"🧭 {path.name}: {len(df)} fixes")
        frames.append(df)
    if not frames:
        return pd.DataFrame(columns=FIX_COLUMNS)
    return pd.concat(frames, ignore_index=True)


def main():
    if not TRACKS_DIR.is_dir():
        sys.exit(f"❌ Track log directory {TRACKS_DIR} not found.")

    try:
        fixes = read_all_tracks(TRACKS_DIR)
    except ValueError as e:
        sys.exit(f"❌ Error reading track logs: {e}")

    if fixes.empty:
        sys.exit(f"❌ No GPX or CSV track logs found in {TRACKS_DIR}.")

    print(f"Loaded {len(fixes)} fixes from {fixes['source_file'].nunique()} track logs.")
    fixes = clean_fixes(fixes)

    OUTPUT_CSV.parent.mkdir(parents=True, exist_ok=True)
    fixes.to_csv(OUTPUT_CSV, index=False)
    print(f"✅ Saved {len(fixes)} fixes to {OUTPUT_CSV}")


if __name__ == "__main__":
    main()
