from __future__ import annotations

import logging
import zipfile
from pathlib import Path
from typing import List

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".xlsx", ".xlsm"}
LEGACY_EXTENSIONS = {".xls"}


class HeaderExtractionError(ValueError):
    """Raised when a workbook's header row cannot be read."""


def is_allowed_workbook(filename: str) -> bool:
    return Path(filename).suffix.lower() in ALLOWED_EXTENSIONS


def read_headers(path: Path) -> List[str]:
    """Return the first row of the first worksheet as column names.

    Blank cells inside the row are kept as empty strings so positions line
    up with the sheet; trailing blanks are dropped.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix in LEGACY_EXTENSIONS:
        raise HeaderExtractionError("Legacy .xls workbooks are not supported; save the file as .xlsx")
    if suffix not in ALLOWED_EXTENSIONS:
        raise HeaderExtractionError(f"Unsupported file type: {suffix or path.name}")
    if not path.is_file():
        raise FileNotFoundError(path)

    try:
        wb = load_workbook(path, read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError) as exc:
        raise HeaderExtractionError(f"Failed to open workbook {path.name}: {exc}") from exc

    try:
        if not wb.worksheets:
            return []
        ws = wb.worksheets[0]
        first_row = next(ws.iter_rows(min_row=1, max_row=1, values_only=True), ())
    finally:
        wb.close()

    headers = ["" if value is None else str(value).strip() for value in first_row]
    while headers and not headers[-1]:
        headers.pop()
    logger.info("Read %d headers from %s", len(headers), path.name)
    return headers
