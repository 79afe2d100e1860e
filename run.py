from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from flask import Flask, send_from_directory
from werkzeug.exceptions import NotFound

ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from backend.app import create_app

logger = logging.getLogger("run")

DEFAULT_CONFIG = ROOT / "config.json"
FRONTEND_DIR = ROOT / "frontend"


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve the KPI configuration API and its web UI")
    parser.add_argument("--config", type=Path, help="JSON/YAML/TOML config file (default: config.json if present)")
    parser.add_argument("--host", help="Bind address (default: SERVER_HOST)")
    parser.add_argument("--port", type=int, help="Port (default: SERVER_PORT, 3001)")
    parser.add_argument("--upload-dir", type=Path, help="Where uploaded workbooks are stored")
    parser.add_argument("--export-dir", type=Path, help="Where exported configuration files are written")
    parser.add_argument("--frontend", type=Path, default=FRONTEND_DIR, help="Built web UI directory")
    parser.add_argument("--api-only", action="store_true", help="Do not serve the web UI")
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args(argv)
    if args.config is None and DEFAULT_CONFIG.exists():
        args.config = DEFAULT_CONFIG
    return args


def apply_overrides(app: Flask, args: argparse.Namespace) -> None:
    """Command line directories win over config file and environment."""
    if args.upload_dir:
        app.config["UPLOAD_DIR"] = str(args.upload_dir)
    if args.export_dir:
        app.config["EXPORT_DIR"] = str(args.export_dir)


def configure_frontend(app: Flask, frontend_dir: Path) -> None:
    """Serve the single-page UI; unknown extensionless paths get index.html."""
    if not (frontend_dir / "index.html").is_file():
        raise FileNotFoundError(f"No index.html in {frontend_dir}")

    @app.get("/", endpoint="frontend_index")
    def frontend_index():
        return send_from_directory(frontend_dir, "index.html")

    @app.get("/<path:asset>", endpoint="frontend_asset")
    def frontend_asset(asset: str):
        if (frontend_dir / asset).is_file():
            return send_from_directory(frontend_dir, asset)
        if "." in Path(asset).name:
            raise NotFound()
        return send_from_directory(frontend_dir, "index.html")


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = create_app(str(args.config) if args.config else None)
    apply_overrides(app, args)
    if not args.api_only:
        configure_frontend(app, args.frontend)

    host = args.host or app.config.get("SERVER_HOST", "0.0.0.0")
    port = args.port or int(app.config.get("SERVER_PORT", 3001))
    logger.info("Uploads in %s, exports in %s", app.config["UPLOAD_DIR"], app.config["EXPORT_DIR"])
    app.run(host=host, port=port, debug=args.debug)


if __name__ == "__main__":
    main()
