from pathlib import Path

from run_full_pipeline import scripts

ROOT = Path(__file__).resolve().parents[1]


def test_every_pipeline_script_exists():
    for s in scripts:
        assert (ROOT / s).exists(), f"missing pipeline step {s}"


def test_report_is_built_last():
    assert scripts[-1] == "src/report/build_report.py"
    assert scripts.index("src/features/join_sessions.py") < scripts.index("src/features/add_session_stats.py")
