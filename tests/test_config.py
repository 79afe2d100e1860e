from __future__ import annotations

import json
from pathlib import Path

import pytest

from backend.app.config import get_upload_settings, load_config


def test_defaults_have_flat_and_nested_keys() -> None:
    cfg = load_config()
    assert cfg.DATABASE_URL == cfg.database["url"]
    assert cfg.UPLOAD_DIR == cfg.uploads["dir"]
    assert cfg.MAX_UPLOAD_MB == cfg.uploads["max_mb"]


def test_flat_override_from_json(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"UPLOAD_DIR": "/srv/uploads", "MAX_UPLOAD_MB": 4}))
    cfg = load_config(str(path))
    assert cfg.uploads["dir"] == "/srv/uploads"
    settings = get_upload_settings(cfg)
    assert settings.upload_dir == Path("/srv/uploads")
    assert settings.max_upload_bytes == 4 * 1024 * 1024


def test_nested_override_from_yaml(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("exports:\n  dir: /srv/exports\n  created_by: ops\nserver:\n  port: 8080\n")
    cfg = load_config(str(path))
    assert cfg.EXPORT_DIR == "/srv/exports"
    assert cfg.SERVER_PORT == 8080
    assert get_upload_settings(cfg).created_by == "ops"


def test_toml_config(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text('DATABASE_URL = "sqlite:///:memory:"\n[uploads]\nmax_mb = 2\n')
    cfg = load_config(str(path))
    assert cfg.database["url"] == "sqlite:///:memory:"
    assert cfg.MAX_UPLOAD_MB == 2


def test_missing_config_file_falls_back_to_defaults(tmp_path: Path) -> None:
    cfg = load_config(str(tmp_path / "absent.json"))
    assert cfg.EXPORT_DIR == load_config().EXPORT_DIR


def test_attribute_access_errors() -> None:
    with pytest.raises(AttributeError):
        load_config().NOT_A_KEY
