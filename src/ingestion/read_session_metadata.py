# src/ingestion/read_session_metadata.py

import os
import re
import sys
import pandas as pd
from pathlib import Path
from dotenv import load_dotenv

# -------------------------
# 1. Configuration
# -------------------------
load_dotenv()

RAW_DIR = Path(os.getenv("SAILING_RAW_DIR", "data/raw"))
SESSIONS_FILE = RAW_DIR / os.getenv("SESSIONS_FILE", "sessions.xlsx")
OUTPUT_CSV = Path(os.getenv("SAILING_PROCESSED_DIR", "data/processed")) / "sessions.csv"

COLUMN_ALIASES = {
    "day": "date",
    "partner": "partners",
    "crew": "partners",
    "wind": "wind_kn",
    "wind_speed": "wind_kn",
    "wind_kts": "wind_kn",
    "wind_knots": "wind_kn",
    "wind_direction": "wind_dir",
}
SESSION_COLUMNS = ["date", "boat", "crew", "n_partners", "wind_kn", "wind_dir", "location", "notes"]

PARTNER_SEPARATORS = re.compile(r"\s*(?:,|&|;|/|\+|\band\b)\s*", flags=re.IGNORECASE)
NO_PARTNER = {"", "solo", "-", "none", "nan"}


# -------------------------
# 2. Load the logbook sheet
# -------------------------
def load_metadata(path):
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".xlsx":
        return pd.read_excel(path)
    if suffix == ".csv":
        return pd.read_csv(path)
    raise ValueError(f"Unsupported metadata format: {path.name}")


def normalize_columns(df):
    """Snake-case the sheet headers and map the usual spellings onto ours."""
    df = df.copy()
    df.columns = (
        df.columns.astype(str)
        .str.strip()
        .str.lower()
        .str.replace(r" |\.|-", "_", regex=True)
        .str.replace(r"\(.*\)", "", regex=True)
        .str.strip("_")
    )
    return df.rename(columns=lambda c: COLUMN_ALIASES.get(c, c))


# -------------------------
# 3. Partners -> crew label
# -------------------------
def split_partners(value):
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return []
    text = str(value).strip()
    if text.lower() in NO_PARTNER:
        return []
    return [p for p in PARTNER_SEPARATORS.split(text) if p and p.lower() not in NO_PARTNER]


def crew_label(partners):
    return " & ".join(partners) if partners else "solo"


# -------------------------
# 4. Clean
# -------------------------
def parse_dates(values):
    """ISO dates first, then day-first dates such as 10.06.2023."""
    dates = pd.to_datetime(values, errors="coerce", format="ISO8601")
    rest = dates.isna() & values.notna()
    if rest.any():
        dates.loc[rest] = pd.to_datetime(values[rest].astype(str), errors="coerce", dayfirst=True, format="mixed")
    return dates


def clean_metadata(df):
    """One row per sailing day with boat, crew and logged wind."""
    df = normalize_columns(df)
    if "date" not in df.columns or "boat" not in df.columns:
        raise ValueError("Session sheet needs at least 'date' and 'boat' columns")

    dates = parse_dates(df["date"])
    undated = dates.isna().sum()
    if undated:
        print(f"⚠️ Dropping {undated} logbook rows without a readable date.")
    df = df[dates.notna()].copy()
    df["date"] = dates[dates.notna()].dt.strftime("%Y-%m-%d")

    duplicated = df.loc[df["date"].duplicated(keep=False), "date"].unique()
    if len(duplicated):
        raise ValueError(f"More than one logbook row for: {', '.join(sorted(duplicated))}")

    df["boat"] = df["boat"].astype("string").str.strip().replace("", pd.NA)

    partners = df["partners"].map(split_partners) if "partners" in df.columns else pd.Series([[]] * len(df), index=df.index)
    df["crew"] = partners.map(crew_label)
    df["n_partners"] = partners.map(len)

    for col in ("wind_kn", "wind_dir", "location", "notes"):
        if col not in df.columns:
            df[col] = pd.NA
    df["wind_kn"] = pd.to_numeric(df["wind_kn"], errors="coerce")

    return df[SESSION_COLUMNS].sort_values("date").reset_index(drop=True)


# -------------------------
# 5. Main
# -------------------------
def resolve_sessions_file(path):
    """Fall back to a CSV export next to the configured sheet."""
    path = Path(path)
    if path.exists():
        return path
    csv_path = path.with_suffix(".csv")
    if csv_path.exists():
        print(f"⚠️ {path.name} not found, using {csv_path.name}")
        return csv_path
    return None


def main():
    path = resolve_sessions_file(SESSIONS_FILE)
    if path is None:
        sys.exit(f"❌ Error: session logbook {SESSIONS_FILE} not found.")

    try:
        sessions = clean_metadata(load_metadata(path))
    except ValueError as e:
        sys.exit(f"❌ Error reading {path}: {e}")

    print(f"📒 {len(sessions)} sailing days, {sessions['boat'].nunique()} boats")
    OUTPUT_CSV.parent.mkdir(parents=True, exist_ok=True)
    sessions.to_csv(OUTPUT_CSV, index=False)
    print(f"✅ Saved session metadata to {OUTPUT_CSV}")


if __name__ == "__main__":
    main()
