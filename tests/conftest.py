import pandas as pd
import pytest


@pytest.fixture
def joined_fixes():
    """Two sailing days of joined fixes, as build_report reads them back."""
    rows = []
    days = [
        ("2023-06-10", "Laser", "solo", 8.0, 54.30),
        ("2023-07-02", "RS Feva", "Anna & Ben", 14.0, 54.32),
    ]
    for date, boat, crew, wind, lat0 in days:
        for i in range(6):
            rows.append({
                "timestamp": pd.Timestamp(f"{date}T10:00:00Z") + pd.Timedelta(seconds=30 * i),
                "lon": 10.10 + 0.001 * i,
                "lat": lat0,
                "heading": 90.0 if i < 4 else 270.0,
                "speed_kn": [0.2, 3.0, 4.0, 5.0, 6.0, 2.5][i] + (1.0 if boat == "RS Feva" else 0.0),
                "source_file": f"{date}.gpx",
                "date": date,
                "boat": boat,
                "crew": crew,
                "n_partners": 0 if crew == "solo" else 2,
                "wind_kn": wind,
            })
    return pd.DataFrame(rows)


@pytest.fixture
def summary():
    return pd.DataFrame({
        "date": ["2023-06-10", "2023-07-02"],
        "boat": ["Laser", "RS Feva"],
        "crew": ["solo", "Anna & Ben"],
        "n_partners": [0, 2],
        "wind_kn": [8.0, 14.0],
        "wind_dir": ["W", "SW"],
        "wind_source": ["log", "open-meteo"],
        "duration_h": [1.5, 2.5],
        "distance_nm": [4.0, 7.5],
        "mean_speed_kn": [4.5, 5.3],
        "max_speed_kn": [6.0, 7.0],
        "n_fixes": [6, 6],
        "center_lat": [54.30, 54.32],
        "center_lon": [10.1025, 10.1025],
    })
