from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from backend.app.config import get_upload_settings, load_config
from backend.app.database import init_engine, session_scope
from backend.app.services import ConfigurationService


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Export a stored KPI configuration to JSON")
    parser.add_argument("case_file_id", help="Identifier of the configuration to export")
    parser.add_argument("--config", type=Path, default=None, help="Path to config file")
    parser.add_argument("--out", type=Path, default=None, help="Output directory (defaults to EXPORT_DIR)")
    args = parser.parse_args()

    config = load_config(str(args.config) if args.config else None)
    init_engine(config.DATABASE_URL)
    out_dir = args.out or get_upload_settings(config).export_dir
    with session_scope() as session:
        path = ConfigurationService(session).export_document(args.case_file_id, out_dir)
    print(f"Wrote {args.case_file_id} to {path}")
