from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from .file_registry import FILE_ROLES, FileRegistry, UploadedFile
from .kpi_schema import ConfigurationError, parse_config_data
from .models import CaseFile, ConfigVersion, UploadedFileRecord, UsageLog

logger = logging.getLogger(__name__)

INITIAL_VERSION = "1.0"
INITIAL_DESCRIPTION = "Initial Save"
UPDATE_DESCRIPTION = "Updated configuration"


class CaseFileNotFound(LookupError):
    def __init__(self, case_file_id: str) -> None:
        super().__init__(f"Configuration not found: {case_file_id}")
        self.case_file_id = case_file_id


def next_version(current: str) -> str:
    """Bump the minor part: ``1.0`` -> ``1.1``, ``1.9`` -> ``1.10``."""
    try:
        major, minor = (int(part) for part in current.split(".")[:2])
    except ValueError as exc:
        raise ConfigurationError(f"Unparseable version number: {current!r}", "version") from exc
    return f"{major}.{minor + 1}"


def format_timestamp(value: datetime) -> str:
    return value.replace(microsecond=0).isoformat() + "Z"


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as exc:
        raise ConfigurationError(f"Invalid timestamp: {value!r}", "savedOn") from exc
    return parsed.replace(tzinfo=None)


def export_filename(case_file_id: str, when: datetime) -> str:
    return f"K_{case_file_id}_{when.strftime('%d%m%y')}_{when.strftime('%H%M')}.json"


class ConfigurationService:
    def __init__(self, session: Session):
        self.session = session

    # ----- lookups -----

    def get_case_file(self, case_file_id: str) -> CaseFile:
        case_file = self.session.query(CaseFile).filter_by(case_file_id=case_file_id).one_or_none()
        if case_file is None:
            raise CaseFileNotFound(case_file_id)
        return case_file

    def list_case_files(self) -> List[Dict[str, Any]]:
        rows = self.session.query(CaseFile).order_by(CaseFile.case_file_id).all()
        out: List[Dict[str, Any]] = []
        for case_file in rows:
            current = self._current(case_file)
            out.append(
                {
                    "caseFileId": case_file.case_file_id,
                    "createdOn": format_timestamp(case_file.created_on),
                    "createdBy": case_file.created_by,
                    "currentVersion": current.version if current else None,
                    "versionCount": len(case_file.versions),
                }
            )
        return out

    def current_version(self, case_file_id: str) -> ConfigVersion:
        case_file = self.get_case_file(case_file_id)
        current = self._current(case_file)
        if current is None:
            raise ConfigurationError("No current version found in configuration", "versions")
        return current

    def get_document(self, case_file_id: str) -> Dict[str, Any]:
        return self.document_as_dict(self.get_case_file(case_file_id))

    # ----- mutations -----

    def create_case_file(
        self,
        case_file_id: str,
        data: Optional[Dict[str, Any]] = None,
        created_by: str = "admin",
    ) -> CaseFile:
        case_file_id = (case_file_id or "").strip()
        if not case_file_id:
            raise ConfigurationError("Invalid configuration data: caseFileId is required", "caseFileId")
        exists = self.session.query(CaseFile).filter_by(case_file_id=case_file_id).one_or_none()
        if exists is not None:
            raise ConfigurationError(f"Configuration already exists: {case_file_id}", "caseFileId")

        payload = parse_config_data(data).to_payload()
        now = datetime.utcnow()
        case_file = CaseFile(case_file_id=case_file_id, created_on=now, created_by=created_by)
        case_file.versions.append(
            ConfigVersion(
                version=INITIAL_VERSION,
                saved_on=now,
                description=INITIAL_DESCRIPTION,
                status="Current",
                data=payload,
            )
        )
        self.session.add(case_file)
        self.session.flush()
        self.append_usage(case_file, "create", {"version": INITIAL_VERSION})
        logger.info("Created configuration %s", case_file_id)
        return case_file

    def save_version(
        self,
        case_file_id: str,
        data: Dict[str, Any],
        description: Optional[str] = None,
    ) -> ConfigVersion:
        case_file = self.get_case_file(case_file_id)
        payload = parse_config_data(data).to_payload()
        for version in case_file.versions:
            if version.status == "Current":
                version.status = "Deprecated"
        last = case_file.versions[-1].version if case_file.versions else None
        number = next_version(last) if last else INITIAL_VERSION
        version = ConfigVersion(
            version=number,
            saved_on=datetime.utcnow(),
            description=description or UPDATE_DESCRIPTION,
            status="Current",
            data=payload,
        )
        case_file.versions.append(version)
        self.session.flush()
        self.append_usage(case_file, "save_version", {"version": number})
        logger.info("Saved configuration %s version %s", case_file_id, number)
        return version

    def import_document(self, document: Dict[str, Any]) -> CaseFile:
        case_file_id = str(document.get("caseFileId") or "").strip()
        versions = document.get("versions")
        if not case_file_id or not isinstance(versions, list) or not versions:
            raise ConfigurationError("Invalid configuration file format", "versions")
        if not all(isinstance(v, dict) for v in versions):
            raise ConfigurationError("Invalid configuration file format", "versions")
        if sum(1 for v in versions if v.get("status") == "Current") != 1:
            raise ConfigurationError("No current version found in configuration", "versions")
        exists = self.session.query(CaseFile).filter_by(case_file_id=case_file_id).one_or_none()
        if exists is not None:
            raise ConfigurationError(f"Configuration already exists: {case_file_id}", "caseFileId")

        case_file = CaseFile(
            case_file_id=case_file_id,
            created_on=_parse_timestamp(document.get("createdOn") or datetime.utcnow()),
            created_by=str(document.get("createdBy") or "admin"),
        )
        for item in versions:
            case_file.versions.append(
                ConfigVersion(
                    version=str(item.get("version") or INITIAL_VERSION),
                    saved_on=_parse_timestamp(item.get("savedOn") or datetime.utcnow()),
                    description=str(item.get("description") or ""),
                    status=str(item.get("status") or "Previous"),
                    data=parse_config_data(item.get("data")).to_payload(),
                )
            )
        self.session.add(case_file)
        self.session.flush()
        self.append_usage(case_file, "import", {"versions": len(versions)})
        return case_file

    def export_document(self, case_file_id: str, directory: Path, when: Optional[datetime] = None) -> Path:
        document = self.get_document(case_file_id)
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / export_filename(case_file_id, when or datetime.now())
        with path.open("w", encoding="utf-8") as fh:
            json.dump(document, fh, indent=2)
        self.append_usage(self.get_case_file(case_file_id), "export", {"path": str(path)})
        logger.info("Exported configuration %s to %s", case_file_id, path)
        return path

    def append_usage(self, case_file: CaseFile | None, event: str, payload: Dict[str, Any]) -> None:
        log = UsageLog(case_file=case_file, event=event, payload=payload)
        self.session.add(log)
        self.session.flush()

    # ----- serialisation -----

    @staticmethod
    def _current(case_file: CaseFile) -> Optional[ConfigVersion]:
        return next((v for v in case_file.versions if v.status == "Current"), None)

    @staticmethod
    def document_as_dict(case_file: CaseFile) -> Dict[str, Any]:
        return {
            "caseFileId": case_file.case_file_id,
            "createdOn": format_timestamp(case_file.created_on),
            "createdBy": case_file.created_by,
            "versions": [
                {
                    "version": v.version,
                    "savedOn": format_timestamp(v.saved_on),
                    "description": v.description,
                    "status": v.status,
                    "data": v.data or {},
                }
                for v in case_file.versions
            ],
        }


class UploadService:
    def __init__(self, session: Session):
        self.session = session

    def record_upload(
        self,
        file_id: str,
        original_name: str,
        columns: List[str],
        role: str = "lookup",
        lookup_name: Optional[str] = None,
    ) -> UploadedFileRecord:
        if role not in FILE_ROLES:
            raise ValueError(f"Unknown file role: {role}")
        record = UploadedFileRecord(
            file_id=file_id,
            original_name=original_name,
            role=role,
            lookup_name=(lookup_name or original_name) if role == "lookup" else None,
            columns=list(columns),
        )
        self.session.add(record)
        self.session.flush()
        return record

    def get(self, file_id: str) -> Optional[UploadedFileRecord]:
        return self.session.query(UploadedFileRecord).filter_by(file_id=file_id).one_or_none()

    def save_mapping(self, file_id: str, mappings: List[Dict[str, Any]]) -> UploadedFileRecord:
        record = self.get(file_id)
        if record is None:
            raise FileNotFoundError(file_id)
        record.mapping = list(mappings)
        self.session.flush()
        return record

    def registry(self) -> FileRegistry:
        """Latest upload per slot wins; lookup files are keyed by name."""
        registry = FileRegistry()
        for record in self.session.query(UploadedFileRecord).order_by(UploadedFileRecord.id).all():
            uploaded = UploadedFile(filename=record.original_name, columns=tuple(record.columns or ()))
            registry.register(record.role, uploaded, record.lookup_name)
        return registry
