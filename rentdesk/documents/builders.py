"""
Builders turning fetched note payloads into printable Documents.

Builders never compute business values; the only arithmetic is summing the
per-line totals already present in the payload for the table footer.
"""
from datetime import date
from typing import Iterable, List, Optional

from rentdesk.config import settings
from rentdesk.documents.formatting import (
    format_currency, format_date, format_difference, format_quantity
)
from rentdesk.documents.model import Column, Document, ItemTable, Party
from rentdesk.schemas import (
    BillingData, DeliveryNote, InventoryCheck, Order, ReturnNote, WriteOff, compute_statistics
)
from rentdesk.services.billing import due_date

NOT_GIVEN = "Neuvedeno"
NO_NOTES = "Bez poznámek"

CONDITION_LABELS = {
    "ok": "V pořádku",
    "damaged": "Poškozeno",
    "missing": "Chybí",
}

WRITE_OFF_REASON_LABELS = {
    "damaged": "Poškozeno",
    "lost": "Ztraceno",
    "expired": "Prošlá životnost",
    "other": "Jiný důvod",
}

INVENTORY_STATUS_LABELS = {
    "in_progress": "Probíhá",
    "completed": "Dokončeno",
    "canceled": "Zrušeno",
}

# row backgrounds of the inventory report
UNCHECKED_FILL = "#f0f0f0"
MATCH_FILL = "#dcffdc"
EXCESS_FILL = "#fff5dc"
MISSING_FILL = "#ffdcdc"


def supplier_party() -> Party:
    return Party(title="Dodavatel:", name=settings.company_name, lines=settings.company_lines)


def customer_party(
    name: Optional[str],
    address: Optional[str] = None,
    ico: Optional[str] = None,
    dic: Optional[str] = None,
    phone: Optional[str] = None,
    email: Optional[str] = None,
) -> Party:
    """Customer block; every optional line is printed only when it has a value"""
    lines: List[str] = []
    if address:
        lines.extend(line.strip() for line in address.splitlines() if line.strip())
    if ico:
        lines.append(f"IČO: {ico}")
    if dic:
        lines.append(f"DIČ: {dic}")
    if phone:
        lines.append(f"Tel: {phone}")
    if email:
        lines.append(f"Email: {email}")
    return Party(title="Odběratel:", name=name or NOT_GIVEN, lines=lines)


def order_customer(order: Optional[Order]) -> Party:
    if order is None:
        return customer_party(None)
    return customer_party(
        order.customer_name, order.customer_address, order.ico, order.dic,
        order.customer_phone, order.customer_email
    )


def sum_present(values: Iterable[Optional[float]]) -> float:
    return sum(value for value in values if value is not None)


def safe_filename_part(value: Optional[str]) -> str:
    value = (value or "").strip()
    if not value:
        return date.today().strftime("%Y%m%d")
    return "".join(ch if ch.isalnum() or ch in "-_." else "-" for ch in value)


def delivery_note(note: DeliveryNote) -> Document:
    """Delivery note of a whole order"""
    rentals = note.rentals
    order_number = note.order_number or (note.order.order_number if note.order else None)
    table = ItemTable(
        columns=[
            Column(header="Název", width=0.34),
            Column(header="Inv. č.", width=0.16),
            Column(header="Datum vydání", width=0.16, align="CENTER"),
            Column(header="Množství", width=0.14, align="CENTER"),
            Column(header="Denní sazba", width=0.20, align="RIGHT"),
        ],
        rows=[
            [
                rental.equipment_name or NOT_GIVEN,
                rental.inventory_number or "-",
                format_date(rental.issue_date),
                format_quantity(rental.quantity),
                format_currency(rental.daily_rate or 0),
            ]
            for rental in rentals
        ],
        footer=["", "", "Celkem položek:", f"{note.total_items or sum(r.quantity for r in rentals)} ks", ""],
        empty_message="Žádné položky v dodacím listu",
    )
    notes = (note.order.notes if note.order else None) or (rentals[0].note if rentals else None)
    return Document(
        title="DODACÍ LIST",
        number=note.delivery_note_number,
        issue_date=note.created_at or date.today(),
        meta=[
            f"Číslo zakázky: {order_number or NOT_GIVEN}",
            f"Datum vydání: {format_date(rentals[0].issue_date if rentals else date.today())}",
        ],
        supplier=supplier_party(),
        customer=customer_party(
            note.customer_name, note.customer_address, note.customer_ico,
            note.customer_dic, note.customer_phone, note.customer_email
        ),
        table=table,
        notes=notes or NO_NOTES,
        signatures=["Vydal", "Převzal"],
        filename=f"Dodaci-list-{safe_filename_part(order_number or note.delivery_note_number)}.pdf",
        footer_text=settings.company_footer,
    )


def batch_delivery_note(note: DeliveryNote) -> Document:
    """Delivery note of one issue batch (several rentals issued together)"""
    rentals = note.rentals
    table = ItemTable(
        columns=[
            Column(header="Pořadí", width=0.08, align="CENTER"),
            Column(header="Název", width=0.30),
            Column(header="Inventární č.", width=0.15),
            Column(header="Množství", width=0.11, align="CENTER"),
            Column(header="Plánované vrácení", width=0.16, align="CENTER"),
            Column(header="Denní sazba", width=0.20, align="RIGHT"),
        ],
        rows=[
            [
                str(index),
                rental.equipment_name or NOT_GIVEN,
                rental.inventory_number or "-",
                format_quantity(rental.quantity),
                format_date(rental.planned_return_date, default="Neurčeno"),
                f"{format_currency(rental.daily_rate or 0)}/den",
            ]
            for index, rental in enumerate(rentals, start=1)
        ],
        empty_message="Žádné položky v hromadném dodacím listu",
    )
    return Document(
        title="HROMADNÝ DODACÍ LIST",
        number=note.delivery_note_number,
        issue_date=note.created_at or date.today(),
        meta=[
            f"Číslo zakázky: {note.order_number or NOT_GIVEN}",
            f"Datum vydání: {format_date(rentals[0].issue_date if rentals else None, default=NOT_GIVEN)}",
        ],
        supplier=supplier_party(),
        customer=customer_party(
            note.customer_name, note.customer_address, note.customer_ico,
            note.customer_dic, note.customer_phone, note.customer_email
        ),
        table=table,
        summary=[f"Celkový počet položek: {note.total_items or sum(r.quantity for r in rentals)} ks"] if rentals else [],
        notes=(rentals[0].note if rentals else None) or NO_NOTES,
        signatures=["Za dodavatele", "Za odběratele"],
        filename=f"Dodaci-list-{safe_filename_part(note.order_number or note.delivery_note_number)}.pdf",
        footer_text=settings.company_footer,
    )


def return_note(note: ReturnNote) -> Document:
    returns = note.returns
    charges = sum_present(record.additional_charges for record in returns)
    table = ItemTable(
        columns=[
            Column(header="Pořadí", width=0.08, align="CENTER"),
            Column(header="Název", width=0.26),
            Column(header="Inv. č.", width=0.12),
            Column(header="Množství", width=0.10, align="CENTER"),
            Column(header="Datum vrácení", width=0.14, align="CENTER"),
            Column(header="Stav", width=0.12, align="CENTER"),
            Column(header="Dodatečné poplatky", width=0.18, align="RIGHT"),
        ],
        rows=[
            [
                str(index),
                record.equipment_name or NOT_GIVEN,
                record.inventory_number or "-",
                format_quantity(record.quantity),
                format_date(record.return_date),
                CONDITION_LABELS.get(record.condition, record.condition or NOT_GIVEN),
                format_currency(record.additional_charges or 0),
            ]
            for index, record in enumerate(returns, start=1)
        ],
        footer=[
            "", "", "Celkem položek:",
            f"{note.total_items or sum(r.quantity for r in returns)} ks",
            "", "Celkem:", format_currency(charges),
        ],
        empty_message="Žádné vrácené položky",
    )
    damaged = [r for r in returns if r.condition != "ok" and r.damage_description]
    summary = []
    if damaged:
        summary.append("Popis poškození:")
        summary.extend(
            f"{r.equipment_name or NOT_GIVEN} ({r.inventory_number or '-'}): {r.damage_description}"
            for r in damaged
        )
    return Document(
        title="HROMADNÝ DODACÍ LIST VRATEK",
        number=note.return_note_number,
        issue_date=note.created_at or date.today(),
        supplier=supplier_party(),
        customer=customer_party(
            note.customer_name, note.customer_address, note.customer_ico,
            note.customer_dic, note.customer_phone, note.customer_email
        ),
        table=table,
        summary=summary,
        notes=(returns[0].notes if returns else None) or NO_NOTES,
        signatures=["Za dodavatele", "Za odběratele"],
        filename=f"Dodaci-list-vratek-{safe_filename_part(note.return_note_number or note.batch_id)}.pdf",
        footer_text=settings.company_footer,
    )


def billing_statement(billing: BillingData, order: Optional[Order] = None) -> Document:
    """Invoice basis; the order argument wins over the order nested in the billing payload"""
    order = order or billing.order
    items = billing.items
    billing_date = billing.billing_date or date.today()
    table = ItemTable(
        columns=[
            Column(header="Název", width=0.24),
            Column(header="Inv. č.", width=0.11),
            Column(header="Od", width=0.11, align="CENTER"),
            Column(header="Do", width=0.11, align="CENTER"),
            Column(header="Dny", width=0.07, align="CENTER"),
            Column(header="Ks", width=0.06, align="CENTER"),
            Column(header="Sazba/den", width=0.14, align="RIGHT"),
            Column(header="Celkem", width=0.16, align="RIGHT"),
        ],
        rows=[
            [
                item.equipment_name or item.description or NOT_GIVEN,
                item.inventory_number or "-",
                format_date(item.issue_date),
                format_date(item.return_date or billing_date),
                str(item.days),
                str(item.quantity),
                format_currency(item.daily_rate or 0),
                format_currency(item.total_price or 0),
            ]
            for item in items
        ],
        footer=["Celkem", "", "", "", "", "", "", format_currency(sum_present(i.total_price for i in items))],
        empty_message="Žádné položky k fakturaci",
    )
    summary = []
    if items:
        summary.append(f"Celková cena: {format_currency(billing.total_amount or 0)}")
    summary.extend([
        f"Datum vystavení: {format_date(billing_date)}",
        f"Datum splatnosti: {format_date(due_date(billing_date))}",
    ])
    return Document(
        title="FAKTURAČNÍ PODKLAD",
        number=billing.invoice_number,
        issue_date=billing_date,
        badge="KONEČNÁ FAKTURACE" if billing.is_final_billing else None,
        meta=[
            f"Zákazník: {(order.customer_name if order else None) or NOT_GIVEN}",
            f"Zakázka č.: {(order.order_number if order else None) or NOT_GIVEN}",
            f"Období: {format_date(billing.billing_period_from)} - {format_date(billing.billing_period_to)}",
        ],
        supplier=supplier_party(),
        customer=order_customer(order),
        table=table,
        summary=summary,
        notes=billing.note or (order.notes if order else None) or NO_NOTES,
        signatures=["Vystavil", "Schválil"],
        filename=f"Fakturacni-podklad-{safe_filename_part(billing.invoice_number)}.pdf",
        footer_text=settings.company_footer,
    )


def write_off_record(write_off: WriteOff) -> Document:
    items = write_off.items
    reason = WRITE_OFF_REASON_LABELS.get(write_off.reason, write_off.reason or NOT_GIVEN)
    table = ItemTable(
        columns=[
            Column(header="Pořadí", width=0.08, align="CENTER"),
            Column(header="Název", width=0.26),
            Column(header="Inv. č.", width=0.12, align="CENTER"),
            Column(header="Sklad", width=0.14),
            Column(header="Množství", width=0.10, align="CENTER"),
            Column(header="Hodnota/ks", width=0.15, align="RIGHT"),
            Column(header="Celkem", width=0.15, align="RIGHT"),
        ],
        rows=[
            [
                str(index),
                item.equipment_name or NOT_GIVEN,
                item.inventory_number or "-",
                item.warehouse_name or NOT_GIVEN,
                format_quantity(item.quantity),
                format_currency(item.unit_value),
                format_currency(item.total_value),
            ]
            for index, item in enumerate(items, start=1)
        ],
        footer=["", "", "", "", "", "Celkem:", format_currency(sum_present(i.total_value for i in items))],
        empty_message="Žádné položky v odpisu",
    )
    issuer = Party(
        title="Vystavil:",
        name=write_off.created_by_name or NOT_GIVEN,
        lines=[
            f"Důvod odpisu: {reason}",
            f"Datum odpisu: {format_date(write_off.write_off_date or date.today())}",
            f"Celková hodnota: {format_currency(write_off.total_value or 0)}",
        ],
    )
    return Document(
        title="ZÁZNAM O ODPISU MAJETKU",
        number=str(write_off.id) if write_off.id is not None else None,
        issue_date=write_off.write_off_date or date.today(),
        supplier=supplier_party(),
        customer=issuer,
        table=table,
        notes=write_off.notes or NO_NOTES,
        signatures=["Vystavil", "Schválil", "Účetní"],
        filename=f"Zapis-o-odpisu-{safe_filename_part(str(write_off.id) if write_off.id else None)}.pdf",
        footer_text=settings.company_footer,
    )


def inventory_report(check: InventoryCheck) -> Document:
    items = check.items
    fills: List[Optional[str]] = []
    for item in items:
        if not item.is_checked:
            fills.append(UNCHECKED_FILL)
        elif item.difference == 0:
            fills.append(MATCH_FILL)
        elif item.difference > 0:
            fills.append(EXCESS_FILL)
        else:
            fills.append(MISSING_FILL)
    table = ItemTable(
        columns=[
            Column(header="Název", width=0.28),
            Column(header="Inv. č.", width=0.14, align="CENTER"),
            Column(header="Očekáváno", width=0.12, align="CENTER"),
            Column(header="Skutečně", width=0.14, align="CENTER"),
            Column(header="Rozdíl", width=0.10, align="CENTER"),
            Column(header="Poznámka", width=0.22),
        ],
        rows=[
            [
                item.equipment_name or NOT_GIVEN,
                item.inventory_number or "-",
                f"{item.expected_quantity} ks",
                f"{item.actual_quantity} ks" if item.is_checked else "Nezkontrolováno",
                format_difference(item.difference if item.is_checked else None),
                item.notes or "",
            ]
            for item in items
        ],
        row_fills=fills,
        empty_message="Žádné položky v inventuře",
    )
    summary = []
    if items:
        stats = compute_statistics(items)
        summary.append(
            f"Celkem položek: {stats.total} | Zkontrolováno: {stats.checked} | Nesrovnalosti: {stats.discrepancies}"
        )
        if stats.discrepancies:
            summary.append(f"Celkem chybí: {stats.total_missing} ks ({stats.missing_items} položek)")
            summary.append(f"Celkem přebývá: {stats.total_excess} ks ({stats.excess_items} položek)")
    return Document(
        title="INVENTURNÍ SEZNAM",
        number=str(check.id) if check.id is not None else None,
        issue_date=check.check_date or date.today(),
        badge=INVENTORY_STATUS_LABELS.get(check.status, check.status),
        meta=[
            f"Sklad: {check.warehouse_name or 'Neznámý'}",
            f"Vytvořil: {check.created_by_name or NOT_GIVEN}",
        ],
        table=table,
        summary=summary,
        notes=check.notes or NO_NOTES,
        signatures=["Provedl", "Schválil"],
        filename=f"Inventura-{safe_filename_part(str(check.id) if check.id else None)}.pdf",
        footer_text=settings.company_footer,
    )
