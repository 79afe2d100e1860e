from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class CaseFile(Base):
    __tablename__ = "case_files"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    case_file_id: Mapped[str] = mapped_column(String(100), unique=True)
    created_on: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    created_by: Mapped[str] = mapped_column(String(100), default="admin")

    versions: Mapped[list["ConfigVersion"]] = relationship(
        "ConfigVersion",
        back_populates="case_file",
        cascade="all, delete-orphan",
        order_by="ConfigVersion.id",
    )


class ConfigVersion(Base):
    __tablename__ = "config_versions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    case_file_pk: Mapped[int] = mapped_column(ForeignKey("case_files.id"))
    version: Mapped[str] = mapped_column(String(20))
    saved_on: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    description: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(20), default="Current")
    data: Mapped[dict] = mapped_column(JSON, default=dict)

    case_file: Mapped[CaseFile] = relationship("CaseFile", back_populates="versions")


class UploadedFileRecord(Base):
    __tablename__ = "uploaded_files"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    file_id: Mapped[str] = mapped_column(String(255), unique=True)
    original_name: Mapped[str] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(String(20), default="lookup")
    lookup_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    columns: Mapped[list] = mapped_column(JSON, default=list)
    mapping: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class UsageLog(Base):
    __tablename__ = "usage_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    case_file_pk: Mapped[Optional[int]] = mapped_column(ForeignKey("case_files.id"), nullable=True)
    event: Mapped[str] = mapped_column(String(100))
    payload: Mapped[dict] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    case_file: Mapped[Optional[CaseFile]] = relationship("CaseFile")
