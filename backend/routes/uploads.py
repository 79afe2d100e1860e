from __future__ import annotations

import logging
import os
import random
import time

from flask import Blueprint, current_app, jsonify, request
from werkzeug.utils import secure_filename

from ..app.config import get_upload_settings
from ..app.database import session_scope
from ..app.excel import ALLOWED_EXTENSIONS, HeaderExtractionError, is_allowed_workbook, read_headers
from ..app.file_registry import FILE_ROLES
from ..app.services import UploadService

logger = logging.getLogger(__name__)

uploads_bp = Blueprint("uploads", __name__, url_prefix="/api")


def _unique_name(filename: str) -> str:
    return f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}-{filename}"


@uploads_bp.post("/upload")
def upload_file():
    if "file" not in request.files:
        return jsonify({"error": "No file provided as form field 'file'"}), 400

    uploaded = request.files["file"]
    if not uploaded.filename:
        return jsonify({"error": "Empty filename"}), 400

    filename = secure_filename(uploaded.filename)
    if not is_allowed_workbook(filename):
        allowed = ", ".join(sorted(ALLOWED_EXTENSIONS))
        return jsonify({"error": f"Only Excel files are allowed ({allowed})"}), 400

    role = request.form.get("role", "lookup")
    if role not in FILE_ROLES:
        return jsonify({"error": f"Unknown file role: {role}"}), 400

    settings = get_upload_settings(current_app.config)
    os.makedirs(settings.upload_dir, exist_ok=True)
    file_id = _unique_name(filename)
    save_path = settings.upload_dir / file_id
    uploaded.save(save_path)

    if save_path.stat().st_size > settings.max_upload_bytes:
        save_path.unlink()
        return jsonify({"error": f"File exceeds {settings.max_upload_mb} MB limit"}), 413

    try:
        headers = read_headers(save_path)
    except HeaderExtractionError as exc:
        save_path.unlink()
        logger.warning("Rejected upload %s: %s", filename, exc)
        return jsonify({"error": str(exc)}), 400

    with session_scope() as session:
        UploadService(session).record_upload(
            file_id,
            uploaded.filename,
            headers,
            role=role,
            lookup_name=request.form.get("name") or None,
        )
    logger.info("Stored upload %s (%s) with %d columns", file_id, role, len(headers))
    return jsonify({"success": True, "fileId": file_id, "headers": headers})


@uploads_bp.get("/headers/<file_id>")
def get_headers(file_id: str):
    settings = get_upload_settings(current_app.config)
    path = settings.upload_dir / secure_filename(file_id)
    if not path.is_file():
        return jsonify({"error": "File not found"}), 404
    try:
        headers = read_headers(path)
    except HeaderExtractionError as exc:
        logger.exception("Failed to extract headers from %s", path)
        return jsonify({"error": f"Failed to extract headers from Excel file: {exc}"}), 500
    return jsonify({"headers": headers})


@uploads_bp.post("/mapping/<file_id>")
def save_mapping(file_id: str):
    data = request.get_json(silent=True) or {}
    mappings = data.get("mappings")
    if not isinstance(mappings, list):
        return jsonify({"error": "Invalid mapping data"}), 400
    with session_scope() as session:
        try:
            UploadService(session).save_mapping(file_id, mappings)
        except FileNotFoundError:
            return jsonify({"error": "File not found"}), 404
    return jsonify({"message": "Mapping saved successfully"})


@uploads_bp.get("/files")
def list_files():
    with session_scope() as session:
        registry = UploadService(session).registry()
        return jsonify(registry.to_dict())
