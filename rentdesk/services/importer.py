"""
Equipment Excel import.

The backend does the row-by-row import; the client downloads the sample
template, checks that an upload is a readable workbook with the required
columns, sends it as multipart and reports the per-row result.
"""
import io
import logging
import os
import zipfile
from typing import List, Optional

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from rentdesk.config import settings
from rentdesk.schemas import ImportResult
from rentdesk.services.errors import ClientValidationError

logger = logging.getLogger(__name__)

TEMPLATE_PATH = "/import/equipment/excel/template"
UPLOAD_PATH = "/import/equipment/excel"
TEMPLATE_FILENAME = "vzorovy_import_vybaveni.xlsx"
REQUIRED_COLUMNS = ["name", "inventory_number"]
XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def normalize_header(value) -> str:
    return str(value).strip().lower().replace(" ", "_") if value is not None else ""


def read_headers(content: bytes) -> List[str]:
    """Header row of the first sheet, normalized"""
    try:
        wb = load_workbook(io.BytesIO(content), read_only=True)
    except (InvalidFileException, zipfile.BadZipFile, OSError, ValueError, KeyError) as e:
        raise ClientValidationError(f"The file is not a readable Excel workbook: {e}", field="file") from e
    try:
        ws = wb.active
        first_row = next(ws.iter_rows(min_row=1, max_row=1, values_only=True), ())
        return [normalize_header(cell) for cell in first_row if cell is not None]
    finally:
        wb.close()


def check_workbook(content: bytes) -> List[str]:
    headers = read_headers(content)
    missing = [column for column in REQUIRED_COLUMNS if column not in headers]
    if missing:
        raise ClientValidationError(f"Missing required column(s): {', '.join(missing)}", field="file")
    return headers


class EquipmentImporter:
    def __init__(self, client):
        self.client = client

    async def download_template(self, target_dir: Optional[str] = None) -> str:
        content = await self.client.get_bytes(TEMPLATE_PATH)
        target_dir = target_dir or settings.pdf_output_dir
        os.makedirs(target_dir, exist_ok=True)
        path = os.path.join(target_dir, TEMPLATE_FILENAME)
        with open(path, "wb") as f:
            f.write(content)
        logger.info(f"Import template saved to {path}")
        return path

    async def import_file(self, path: str) -> ImportResult:
        if not path.lower().endswith(".xlsx"):
            raise ClientValidationError("Please upload an Excel (.xlsx) file.", field="file")
        try:
            with open(path, "rb") as f:
                content = f.read()
        except OSError as e:
            raise ClientValidationError(f"Could not read {path}: {e}", field="file") from e

        check_workbook(content)

        data = await self.client.upload(
            "POST",
            UPLOAD_PATH,
            files={"file": (os.path.basename(path), content, XLSX_CONTENT_TYPE)}
        )
        result = ImportResult(**(data.get("results") or {}))
        logger.info(f"Equipment import: {result.success} imported, {len(result.errors)} error(s)")
        return result
