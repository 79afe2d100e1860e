from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

FILE_ROLES: Tuple[str, ...] = ("base", "hierarchy", "lookup")


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    columns: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"filename": self.filename, "columns": list(self.columns)}

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["UploadedFile"]:
        if not data:
            return None
        return cls(
            filename=str(data.get("filename", "")),
            columns=tuple(str(c) for c in data.get("columns") or ()),
        )


@dataclass
class FileRegistry:
    """Columns of every uploaded file, keyed the way the configuration UI
    keys them: one base file, one hierarchy file and named lookup files."""

    base: Optional[UploadedFile] = None
    hierarchy: Optional[UploadedFile] = None
    lookup: Dict[str, UploadedFile] = field(default_factory=dict)

    @property
    def base_fields(self) -> List[str]:
        return list(self.base.columns) if self.base else []

    @property
    def available_files(self) -> List[str]:
        return list(self.lookup)

    def columns_for(self, file_id: str) -> List[str]:
        entry = self.lookup.get(file_id)
        return list(entry.columns) if entry else []

    def file_columns(self) -> Dict[str, List[str]]:
        return {name: list(entry.columns) for name, entry in self.lookup.items()}

    def register(self, role: str, uploaded: UploadedFile, name: Optional[str] = None) -> None:
        if role == "base":
            self.base = uploaded
        elif role == "hierarchy":
            self.hierarchy = uploaded
        elif role == "lookup":
            self.lookup[name or uploaded.filename] = uploaded
        else:
            raise ValueError(f"Unknown file role: {role}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base": self.base.to_dict() if self.base else None,
            "hierarchy": self.hierarchy.to_dict() if self.hierarchy else None,
            "lookup": {name: entry.to_dict() for name, entry in self.lookup.items()},
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "FileRegistry":
        data = data or {}
        lookup: Dict[str, UploadedFile] = {}
        for name, entry in (data.get("lookup") or {}).items():
            uploaded = UploadedFile.from_dict(entry)
            if uploaded is not None:
                lookup[name] = uploaded
        return cls(
            base=UploadedFile.from_dict(data.get("base")),
            hierarchy=UploadedFile.from_dict(data.get("hierarchy")),
            lookup=lookup,
        )
