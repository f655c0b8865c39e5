# src/run_full_pipeline.py

import os
import subprocess
import sys
from pathlib import Path
from shutil import copyfile
from datetime import datetime
from dotenv import load_dotenv

load_dotenv()

# List of scripts to run in order
scripts = [
    "src/ingestion/read_track_logs.py",
    "src/ingestion/read_session_metadata.py",
    "src/features/join_sessions.py",
    "src/features/add_session_stats.py",
    "src/features/add_historical_wind.py",
    "src/report/build_report.py",
]

if __name__ == "__main__":
    # Run each script; a failed data check stops the whole run
    for s in scripts:
        print(f"Running {s} ...")
        subprocess.run([sys.executable, s], check=True)

    # After all scripts, keep a timestamped copy of the report
    report_dir = Path(os.getenv("SAILING_REPORT_DIR", "reports"))
    final_report = report_dir / "sailing_report.html"
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    unique_report = report_dir / f"sailing_report_{timestamp}.html"

    copyfile(final_report, unique_report)
    print(f"Pipeline finished. Report saved as: {unique_report}")
