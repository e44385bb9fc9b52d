import os
from datetime import date, datetime

import pytest

from rentdesk.documents import builders
from rentdesk.documents.canvas_renderer import CanvasRenderer, fit_text, render_pdf
from rentdesk.documents.flow_renderer import save_pdf
from rentdesk.documents.formatting import (
    format_currency, format_date, format_datetime, format_difference, format_number, format_quantity
)
from rentdesk.schemas import BillingData, DeliveryNote, InventoryCheck, ReturnNote, WriteOff


def test_format_date():
    assert format_date(date(2024, 5, 1)) == "1. 5. 2024"
    assert format_date("2024-12-24T00:00:00.000Z") == "24. 12. 2024"
    assert format_date(None) == "-"
    assert format_date("", default="Neuvedeno") == "Neuvedeno"
    assert format_date("soon") == "soon"


def test_format_datetime():
    assert format_datetime(datetime(2024, 5, 1, 8, 5)) == "1. 5. 2024 08:05"


def test_format_amounts():
    assert format_number(1234.5) == "1 234,50"
    assert format_currency("1234.5") == "1 234,50 CZK"
    assert format_currency(None) == ""
    assert format_quantity(None) == "1 ks"
    assert format_quantity(3) == "3 ks"
    assert [format_difference(d) for d in (2, 0, -3, None)] == ["+2", "0", "-3", "-"]


def test_fit_text_shortens_long_values():
    assert fit_text("Lešení", "Helvetica", 8, 200) == "Lešení"
    shortened = fit_text("Velmi dlouhý název vybavení " * 5, "Helvetica", 8, 60)
    assert shortened.endswith("…")
    assert len(shortened) < 40


EMPTY_DOCUMENTS = [
    (builders.delivery_note, DeliveryNote(), "Žádné položky v dodacím listu"),
    (builders.batch_delivery_note, DeliveryNote(batch_id="ISSUE-1"), "Žádné položky v hromadném dodacím listu"),
    (builders.return_note, ReturnNote(batch_id="BATCH-RETURN-1"), "Žádné vrácené položky"),
    (builders.billing_statement, BillingData(invoice_number="INV-1"), "Žádné položky k fakturaci"),
    (builders.write_off_record, WriteOff(id=7), "Žádné položky v odpisu"),
    (builders.inventory_report, InventoryCheck(id=2), "Žádné položky v inventuře"),
]


@pytest.mark.parametrize("builder, payload, placeholder", EMPTY_DOCUMENTS)
def test_document_without_items_still_renders(builder, payload, placeholder):
    document = builder(payload)

    assert document.table.is_empty
    assert document.table.empty_message == placeholder
    assert render_pdf(document).startswith(b"%PDF")


def test_delivery_note_prints_order_customer():
    note = DeliveryNote(
        delivery_note_number="DL-5",
        order={
            "id": 5,
            "order_number": "Z-5",
            "customer_name": "Stavby Novák",
            "customer_address": "Dlouhá 1\n110 00 Praha",
            "ico": "12345678",
        },
        rentals=[
            {"equipment_name": "Lešení", "inventory_number": "L-1", "issue_date": "2024-05-01", "quantity": 4, "daily_rate": "25.5"},
            {"equipment_name": "Míchačka", "issue_date": "2024-05-01", "quantity": 1, "daily_rate": 300},
        ],
    )

    document = builders.delivery_note(note)

    assert document.title == "DODACÍ LIST"
    assert document.subtitle == "Č. DL-5"
    assert document.customer.name == "Stavby Novák"
    # missing phone, email and DIČ are left out entirely
    assert document.customer.lines == ["Dlouhá 1", "110 00 Praha", "IČO: 12345678"]
    assert document.table.rows[0] == ["Lešení", "L-1", "1. 5. 2024", "4 ks", "25,50 CZK"]
    assert document.table.rows[1][1] == "-"
    assert document.table.footer[3] == "5 ks"
    assert document.filename == "Dodaci-list-Z-5.pdf"
    assert document.signatures == ["Vydal", "Převzal"]


def test_customer_without_name_is_not_given():
    party = builders.customer_party(None)

    assert party.name == "Neuvedeno"
    assert party.lines == []


def test_return_note_sums_charges_and_lists_damage():
    note = ReturnNote(
        return_note_number="VR-1",
        returns=[
            {"equipment_name": "Lešení", "inventory_number": "L-1", "condition": "ok", "additional_charges": None},
            {"equipment_name": "Bagr", "inventory_number": "B-2", "condition": "damaged",
             "damage_description": "Prasklé sklo", "additional_charges": "1500", "quantity": 2},
        ],
    )

    document = builders.return_note(note)

    assert document.table.footer[-1] == "1 500,00 CZK"
    assert document.table.footer[3] == "3 ks"
    assert [row[5] for row in document.table.rows] == ["V pořádku", "Poškozeno"]
    assert document.summary == ["Popis poškození:", "Bagr (B-2): Prasklé sklo"]
    assert document.filename == "Dodaci-list-vratek-VR-1.pdf"


def test_billing_statement_of_final_billing():
    billing = BillingData(
        invoice_number="INV-Z-4-20240531",
        billing_date="2024-05-31",
        billing_period_from="2024-05-01",
        billing_period_to="2024-05-31",
        is_final_billing=True,
        order_number="Z-4",
        customer_name="Stavby Novák",
        items=[
            {"equipment_name": "Lešení", "days": 30, "quantity": 2, "price_per_day": 10, "total_price": 600},
            {"description": "Doprava", "total_price": None},
        ],
        total_amount=600,
    )

    document = builders.billing_statement(billing)

    assert document.badge == "KONEČNÁ FAKTURACE"
    assert "Zakázka č.: Z-4" in document.meta
    assert "Období: 1. 5. 2024 - 31. 5. 2024" in document.meta
    assert document.table.rows[0][6] == "10,00 CZK"
    assert document.table.rows[1][0] == "Doprava"
    assert document.table.footer[-1] == "600,00 CZK"
    assert document.summary == [
        "Celková cena: 600,00 CZK",
        "Datum vystavení: 31. 5. 2024",
        "Datum splatnosti: 14. 6. 2024",
    ]
    assert document.filename == "Fakturacni-podklad-INV-Z-4-20240531.pdf"


def test_empty_billing_has_no_total_line():
    document = builders.billing_statement(BillingData(invoice_number="INV-1", billing_date="2024-05-31"))

    assert document.badge is None
    assert not any(line.startswith("Celková cena") for line in document.summary)
    assert document.meta[0] == "Zákazník: Neuvedeno"


def test_write_off_record():
    write_off = WriteOff(
        id=7,
        reason="lost",
        write_off_date="2024-03-02",
        created_by_name="Jana",
        total_value=450,
        items=[
            {"equipment_name": "Vrtačka", "warehouse_name": "Hlavní", "quantity": 3, "unit_value": 150, "total_value": 450},
        ],
    )

    document = builders.write_off_record(write_off)

    assert document.customer.title == "Vystavil:"
    assert document.customer.lines[0] == "Důvod odpisu: Ztraceno"
    assert document.table.footer[-1] == "450,00 CZK"
    assert document.signatures == ["Vystavil", "Schválil", "Účetní"]
    assert document.filename == "Zapis-o-odpisu-7.pdf"


def test_inventory_report_colours_rows():
    check = InventoryCheck(
        id=2,
        status="completed",
        warehouse_name="Hlavní",
        items=[
            {"equipment_name": "A", "expected_quantity": 2, "actual_quantity": 2},
            {"equipment_name": "B", "expected_quantity": 2, "actual_quantity": 3},
            {"equipment_name": "C", "expected_quantity": 2, "actual_quantity": 0},
            {"equipment_name": "D", "expected_quantity": 2},
        ],
    )

    document = builders.inventory_report(check)

    assert document.badge == "Dokončeno"
    assert document.table.row_fills == [
        builders.MATCH_FILL, builders.EXCESS_FILL, builders.MISSING_FILL, builders.UNCHECKED_FILL
    ]
    assert [row[4] for row in document.table.rows] == ["0", "+1", "-2", "-"]
    assert document.table.rows[3][3] == "Nezkontrolováno"
    assert document.summary[0] == "Celkem položek: 4 | Zkontrolováno: 3 | Nesrovnalosti: 2"
    assert document.filename == "Inventura-2.pdf"


def test_safe_filename_part():
    assert builders.safe_filename_part("Z 2024/01") == "Z-2024-01"
    assert builders.safe_filename_part(None) == date.today().strftime("%Y%m%d")


def test_long_table_spans_several_pages():
    check = InventoryCheck(
        id=3,
        items=[{"equipment_name": f"Položka {i}", "expected_quantity": i} for i in range(150)],
    )
    renderer = CanvasRenderer(generated_at=datetime(2024, 5, 1, 12, 0))

    pdf = renderer.render(builders.inventory_report(check))

    assert pdf.startswith(b"%PDF")
    assert renderer._page > 1


def test_flow_renderer_writes_into_output_dir(tmp_path):
    write_off = WriteOff(id=9, items=[{"equipment_name": "Vrtačka & spol. <X>", "total_value": 10}])

    path = save_pdf(builders.write_off_record(write_off), output_dir=str(tmp_path / "downloads"))

    assert path == os.path.join(str(tmp_path / "downloads"), "Zapis-o-odpisu-9.pdf")
    with open(path, "rb") as f:
        assert f.read(4) == b"%PDF"
