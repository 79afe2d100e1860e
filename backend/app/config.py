from __future__ import annotations

import os
import json
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


class AttrDict(dict):
    """Dict with attribute access (x.y)."""
    def __getattr__(self, name: str):
        try:
            return self[name]
        except KeyError as e:
            raise AttributeError(name) from e
    def __setattr__(self, name: str, value: Any) -> None:
        self[name] = value
    def __delattr__(self, name: str) -> None:
        del self[name]


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes", "on"}


# ------------------------------------------------------------------
# DEFAULT_CONFIG with BOTH shapes:
# - Flat, UPPERCASE keys (Flask app.config, database.py)
# - Nested sections (upload/export helpers)
# ------------------------------------------------------------------
DEFAULT_CONFIG: AttrDict = AttrDict({
    # Flat ---------------------------------
    "DATABASE_URL": os.getenv("DATABASE_URL", "sqlite:///./data/kpi_config.db"),
    "DATABASE_ECHO": _env_flag("DATABASE_ECHO", "false"),
    "UPLOAD_DIR": os.getenv("KPI_UPLOAD_DIR", "./uploads"),
    "EXPORT_DIR": os.getenv("KPI_EXPORT_DIR", "./config"),
    "MAX_UPLOAD_MB": int(os.getenv("KPI_MAX_UPLOAD_MB", "10")),
    "CREATED_BY": os.getenv("KPI_CREATED_BY", "admin"),
    "SERVER_HOST": os.getenv("SERVER_HOST", "0.0.0.0"),
    "SERVER_PORT": int(os.getenv("SERVER_PORT", "3001")),
    "DEBUG": _env_flag("DEBUG", "false"),
    # Nested -------------------------------
    "server": {
        "host": os.getenv("SERVER_HOST", "0.0.0.0"),
        "port": int(os.getenv("SERVER_PORT", "3001")),
        "debug": _env_flag("DEBUG", "false"),
    },
    "database": {
        "url": os.getenv("DATABASE_URL", "sqlite:///./data/kpi_config.db"),
        "echo": _env_flag("DATABASE_ECHO", "false"),
    },
    "uploads": {
        "dir": os.getenv("KPI_UPLOAD_DIR", "./uploads"),
        "max_mb": int(os.getenv("KPI_MAX_UPLOAD_MB", "10")),
    },
    "exports": {
        "dir": os.getenv("KPI_EXPORT_DIR", "./config"),
        "created_by": os.getenv("KPI_CREATED_BY", "admin"),
    },
})


def _read_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    ext = path.suffix.lower()
    if ext == ".json":
        return json.loads(path.read_text(encoding="utf-8"))
    if ext in {".yml", ".yaml"}:
        return yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if ext == ".toml":
        return tomllib.loads(path.read_text(encoding="utf-8"))
    # Fallback: try JSON
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except ValueError as e:
        raise RuntimeError(f"Unsupported config format for {path}. {e}") from e


def _deep_merge(dst: Dict[str, Any], src: Dict[str, Any]) -> Dict[str, Any]:
    for k, v in src.items():
        if isinstance(v, dict) and isinstance(dst.get(k), dict):
            _deep_merge(dst[k], v)
        else:
            dst[k] = v
    return dst


def _ensure_compat_keys(cfg: Dict[str, Any]) -> None:
    """Ensure both flat and nested keys exist based on whichever are provided.
    A flat key given by a config file wins over the nested default."""
    pairs = (
        ("database", "url", "DATABASE_URL"),
        ("database", "echo", "DATABASE_ECHO"),
        ("uploads", "dir", "UPLOAD_DIR"),
        ("uploads", "max_mb", "MAX_UPLOAD_MB"),
        ("exports", "dir", "EXPORT_DIR"),
        ("exports", "created_by", "CREATED_BY"),
        ("server", "host", "SERVER_HOST"),
        ("server", "port", "SERVER_PORT"),
        ("server", "debug", "DEBUG"),
    )
    for section, key, flat in pairs:
        cfg.setdefault(section, {})
        if flat in cfg:
            cfg[section][key] = cfg[flat]
        else:
            cfg[flat] = cfg[section].get(key)


def load_config(config_path: Optional[str] = None) -> AttrDict:
    """Loader used by run.py, create_app and the scripts.
    - Start from DEFAULT_CONFIG
    - If a config file is provided, deep-merge it on top
    - Ensure both flat and nested keys are present
    - Return an AttrDict for dict+attribute access
    """
    base = {k: (v.copy() if isinstance(v, dict) else v) for k, v in DEFAULT_CONFIG.items()}
    if config_path:
        p = Path(config_path)
        if p.exists():
            overrides = _read_config_file(p) or {}
            _deep_merge(base, overrides)
            _sync_from_file(base, overrides)
    _ensure_compat_keys(base)
    return AttrDict(base)


def _sync_from_file(cfg: Dict[str, Any], overrides: Dict[str, Any]) -> None:
    # Nested values from a file replace the flat defaults they mirror.
    nested_to_flat = {
        ("database", "url"): "DATABASE_URL",
        ("database", "echo"): "DATABASE_ECHO",
        ("uploads", "dir"): "UPLOAD_DIR",
        ("uploads", "max_mb"): "MAX_UPLOAD_MB",
        ("exports", "dir"): "EXPORT_DIR",
        ("exports", "created_by"): "CREATED_BY",
        ("server", "host"): "SERVER_HOST",
        ("server", "port"): "SERVER_PORT",
        ("server", "debug"): "DEBUG",
    }
    for (section, key), flat in nested_to_flat.items():
        block = overrides.get(section)
        if isinstance(block, dict) and key in block and flat not in overrides:
            cfg[flat] = block[key]


@dataclass(frozen=True)
class UploadSettings:
    upload_dir: Path = Path("./uploads")
    export_dir: Path = Path("./config")
    max_upload_mb: int = 10
    created_by: str = "admin"

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024


def get_upload_settings(cfg: Optional[Dict[str, Any]] = None) -> UploadSettings:
    cfg = cfg if cfg is not None else load_config()
    return UploadSettings(
        upload_dir=Path(str(cfg.get("UPLOAD_DIR") or "./uploads")),
        export_dir=Path(str(cfg.get("EXPORT_DIR") or "./config")),
        max_upload_mb=int(cfg.get("MAX_UPLOAD_MB") or 10),
        created_by=str(cfg.get("CREATED_BY") or "admin"),
    )
