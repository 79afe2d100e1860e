from __future__ import annotations

import logging

from flask import Blueprint, Flask, current_app, jsonify, request

from .config import get_upload_settings
from .database import session_scope
from .kpi_schema import ConfigurationError, parse_config_data, save_blockers
from .services import CaseFileNotFound, ConfigurationService, UploadService

logger = logging.getLogger(__name__)

api = Blueprint("api", __name__, url_prefix="/api")


def _error(message: str, status: int, field: str | None = None):
    payload = {"success": False, "error": message}
    if field:
        payload["field"] = field
    return jsonify(payload), status


@api.errorhandler(ConfigurationError)
def _configuration_error(exc: ConfigurationError):
    return _error(str(exc), 400, exc.field)


@api.errorhandler(CaseFileNotFound)
def _case_file_not_found(exc: CaseFileNotFound):
    return _error("Configuration not found", 404)


@api.get("/configurations")
def list_configurations():
    with session_scope() as session:
        configs = ConfigurationService(session).list_case_files()
        return jsonify({"success": True, "configs": configs})


@api.post("/configurations")
def create_configuration():
    payload = request.get_json(silent=True) or {}
    created_by = payload.get("createdBy") or current_app.config.get("CREATED_BY", "admin")
    with session_scope() as session:
        service = ConfigurationService(session)
        case_file = service.create_case_file(payload.get("caseFileId", ""), payload.get("data"), created_by)
        document = service.document_as_dict(case_file)
    return jsonify({"success": True, "configId": document["caseFileId"], "config": document}), 201


@api.get("/configurations/<case_file_id>")
def load_configuration(case_file_id: str):
    with session_scope() as session:
        document = ConfigurationService(session).get_document(case_file_id)
        return jsonify({"success": True, "config": document})


@api.post("/configurations/<case_file_id>/versions")
def save_configuration_version(case_file_id: str):
    payload = request.get_json(silent=True) or {}
    if "data" not in payload:
        return _error("Missing 'data'", 400, "data")
    with session_scope() as session:
        service = ConfigurationService(session)
        version = service.save_version(case_file_id, payload["data"], payload.get("description"))
        number = version.version
        document = service.get_document(case_file_id)
    return jsonify({"success": True, "version": number, "config": document})


@api.post("/configurations/<case_file_id>/export")
def export_configuration(case_file_id: str):
    settings = get_upload_settings(current_app.config)
    try:
        with session_scope() as session:
            path = ConfigurationService(session).export_document(case_file_id, settings.export_dir)
    except OSError as exc:
        logger.exception("Failed to export configuration %s", case_file_id)
        return _error(f"Failed to write configuration file: {exc}", 500)
    return jsonify({"success": True, "configId": path.name, "path": str(path)})


@api.post("/configurations/import")
def import_configuration():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return _error("Please provide a JSON configuration document", 400)
    with session_scope() as session:
        service = ConfigurationService(session)
        document = service.document_as_dict(service.import_document(payload))
    return jsonify({"success": True, "config": document}), 201


@api.post("/configurations/readiness")
def configuration_readiness():
    payload = request.get_json(silent=True) or {}
    data = dict(payload.get("data") or {})
    if "uploadedFiles" not in data:
        with session_scope() as session:
            data["uploadedFiles"] = UploadService(session).registry().to_dict()
    problems = save_blockers(payload.get("caseFileId"), parse_config_data(data))
    return jsonify({"ready": not problems, "problems": problems})


def register_api(app: Flask) -> None:
    app.register_blueprint(api)
