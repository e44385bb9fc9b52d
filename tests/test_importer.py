import asyncio

import httpx
import pytest
from openpyxl import Workbook

from rentdesk.services.errors import ClientValidationError
from rentdesk.services.importer import TEMPLATE_FILENAME, EquipmentImporter, check_workbook
from rentdesk.views.equipment import ImportEquipmentView


def workbook_file(path, headers, rows=()):
    wb = Workbook()
    ws = wb.active
    ws.append(headers)
    for row in rows:
        ws.append(row)
    wb.save(path)
    return str(path)


def test_headers_are_normalized(tmp_path):
    path = workbook_file(tmp_path / "equipment.xlsx", ["Name", "Inventory Number", "Daily Rate"])

    with open(path, "rb") as f:
        headers = check_workbook(f.read())

    assert headers == ["name", "inventory_number", "daily_rate"]


def test_missing_required_column_is_reported(tmp_path):
    path = workbook_file(tmp_path / "equipment.xlsx", ["name", "daily_rate"])

    with open(path, "rb") as f:
        with pytest.raises(ClientValidationError) as exc_info:
            check_workbook(f.read())

    assert exc_info.value.message == "Missing required column(s): inventory_number"


def test_garbage_is_not_a_workbook():
    with pytest.raises(ClientValidationError):
        check_workbook(b"definitely not a zip archive")


def test_only_xlsx_files_are_uploaded(backend, make_client, tmp_path):
    path = tmp_path / "equipment.csv"
    path.write_text("name,inventory_number\n")

    with pytest.raises(ClientValidationError):
        asyncio.run(EquipmentImporter(make_client()).import_file(str(path)))

    assert backend.calls == []


def test_import_reports_row_results(backend, make_client, tmp_path):
    backend.on("POST", "/import/equipment/excel", json={
        "message": "Import finished",
        "results": {"success": 1, "errors": [{"row": 3, "message": "Duplicate inventory number"}]},
    })
    path = workbook_file(
        tmp_path / "equipment.xlsx",
        ["name", "inventory_number"],
        [["Lešení", "L-1"], ["Lešení", "L-1"]],
    )
    view = ImportEquipmentView(make_client())
    view.select_file(path)

    result = asyncio.run(view.upload())

    assert result.success == 1
    assert result.has_errors
    assert result.errors[0].row == 3
    assert view.success == "Imported 1 item(s)."
    request = backend.requests_to("POST", "/import/equipment/excel")[0]
    assert request.headers["Content-Type"].startswith("multipart/form-data")
    assert b'filename="equipment.xlsx"' in request.content


def test_upload_without_file_is_rejected(backend, make_client):
    view = ImportEquipmentView(make_client())

    assert asyncio.run(view.upload()) is None
    assert view.error == "Select an Excel file to import."


def test_template_is_saved_to_target_dir(backend, make_client, tmp_path):
    backend.on("GET", "/import/equipment/excel/template", handler=lambda request: httpx.Response(200, content=b"PK\x03\x04template"))
    view = ImportEquipmentView(make_client())

    path = asyncio.run(view.download_template(str(tmp_path)))

    assert path == str(tmp_path / TEMPLATE_FILENAME)
    with open(path, "rb") as f:
        assert f.read() == b"PK\x03\x04template"
