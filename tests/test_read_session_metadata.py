import pandas as pd
import pytest

from ingestion import read_session_metadata
from ingestion.read_session_metadata import (
    clean_metadata,
    crew_label,
    load_metadata,
    normalize_columns,
    resolve_sessions_file,
    split_partners,
)


def _logbook():
    return pd.DataFrame({
        "Date": ["2023-07-02", "2023-06-10", None],
        "Boat": [" RS Feva ", "Laser", "Laser"],
        "Partner": ["Anna & Ben", "solo", "Anna"],
        "Wind (kn)": ["14", None, "10"],
        "Wind direction": ["SW", None, "W"],
    })


@pytest.mark.parametrize("value, expected", [
    ("Anna", ["Anna"]),
    ("Anna & Ben", ["Anna", "Ben"]),
    ("Anna, Ben; Carl", ["Anna", "Ben", "Carl"]),
    ("Anna and Alexandra", ["Anna", "Alexandra"]),
    ("solo", []),
    ("-", []),
    ("", []),
    (None, []),
    (float("nan"), []),
])
def test_split_partners(value, expected):
    assert split_partners(value) == expected


def test_crew_label():
    assert crew_label([]) == "solo"
    assert crew_label(["Anna", "Ben"]) == "Anna & Ben"


def test_normalize_columns_maps_aliases():
    df = normalize_columns(_logbook())
    assert list(df.columns) == ["date", "boat", "partners", "wind_kn", "wind_dir"]


def test_clean_metadata(capsys):
    sessions = clean_metadata(_logbook())

    assert list(sessions["date"]) == ["2023-06-10", "2023-07-02"]
    assert list(sessions["boat"]) == ["Laser", "RS Feva"]
    assert list(sessions["crew"]) == ["solo", "Anna & Ben"]
    assert list(sessions["n_partners"]) == [0, 2]
    assert pd.isna(sessions.loc[0, "wind_kn"])
    assert sessions.loc[1, "wind_kn"] == 14.0
    assert pd.isna(sessions.loc[0, "location"])
    assert "without a readable date" in capsys.readouterr().out


def test_clean_metadata_rejects_duplicate_days():
    logbook = pd.DataFrame({"date": ["2023-06-10", "2023-06-10"], "boat": ["Laser", "RS Feva"]})
    with pytest.raises(ValueError, match="2023-06-10"):
        clean_metadata(logbook)


def test_clean_metadata_needs_a_boat_column():
    with pytest.raises(ValueError, match="boat"):
        clean_metadata(pd.DataFrame({"date": ["2023-06-10"]}))


def test_load_metadata_reads_excel_and_csv(tmp_path):
    xlsx = tmp_path / "sessions.xlsx"
    _logbook().to_excel(xlsx, index=False)
    csv = tmp_path / "sessions.csv"
    _logbook().to_csv(csv, index=False)

    assert len(load_metadata(xlsx)) == 3
    assert len(load_metadata(csv)) == 3
    with pytest.raises(ValueError):
        load_metadata(tmp_path / "sessions.ods")


def test_load_metadata_rejects_legacy_xls(tmp_path):
    """Only .xlsx is read, through openpyxl."""
    with pytest.raises(ValueError, match="sessions.xls"):
        load_metadata(tmp_path / "sessions.xls")


def test_resolve_sessions_file_falls_back_to_csv(tmp_path):
    csv = tmp_path / "sessions.csv"
    csv.write_text("date,boat\n2023-06-10,Laser\n", encoding="utf-8")

    assert resolve_sessions_file(tmp_path / "sessions.xlsx") == csv
    assert resolve_sessions_file(tmp_path / "missing.xlsx") is None


def test_main_without_logbook(tmp_path, monkeypatch):
    monkeypatch.setattr(read_session_metadata, "SESSIONS_FILE", tmp_path / "sessions.xlsx")

    with pytest.raises(SystemExit, match="❌ .*not found"):
        read_session_metadata.main()


def test_main_with_duplicate_days(tmp_path, monkeypatch):
    logbook = tmp_path / "sessions.csv"
    logbook.write_text("date,boat\n2023-06-10,Laser\n2023-06-10,RS Feva\n", encoding="utf-8")
    monkeypatch.setattr(read_session_metadata, "SESSIONS_FILE", logbook)
    monkeypatch.setattr(read_session_metadata, "OUTPUT_CSV", tmp_path / "out.csv")

    with pytest.raises(SystemExit, match="❌ .*2023-06-10"):
        read_session_metadata.main()
    assert not (tmp_path / "out.csv").exists()


def test_main_writes_sessions(tmp_path, monkeypatch):
    logbook = tmp_path / "sessions.xlsx"
    _logbook().to_excel(logbook, index=False)
    output = tmp_path / "processed" / "sessions.csv"
    monkeypatch.setattr(read_session_metadata, "SESSIONS_FILE", logbook)
    monkeypatch.setattr(read_session_metadata, "OUTPUT_CSV", output)

    read_session_metadata.main()

    written = pd.read_csv(output)
    assert list(written["date"]) == ["2023-06-10", "2023-07-02"]
    assert list(written["crew"]) == ["solo", "Anna & Ben"]
