"""
Eager canvas rendering of a Document into PDF bytes (preview and print).

Everything is drawn directly with reportlab.pdfgen.canvas; the item table is
paginated by hand and its header row is repeated on every page.
"""
import io
import logging
from datetime import datetime
from typing import List, Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from rentdesk.documents.fonts import document_fonts
from rentdesk.documents.formatting import format_date, format_datetime
from rentdesk.documents.model import Document, ItemTable, Party

logger = logging.getLogger(__name__)

MARGIN = 15 * mm
ROW_HEIGHT = 6 * mm
FOOTER_HEIGHT = 15 * mm
HEADER_FILL = colors.HexColor('#dcdcdc')
BADGE_COLOR = colors.HexColor('#dc2626')


def fit_text(text: str, font: str, size: float, width: float) -> str:
    """Shorten text with an ellipsis so it fits into width points"""
    if stringWidth(text, font, size) <= width:
        return text
    while text and stringWidth(text + "…", font, size) > width:
        text = text[:-1]
    return text + "…"


class CanvasRenderer:
    def __init__(self, pagesize=A4, generated_at: Optional[datetime] = None):
        self.pagesize = pagesize
        self.width, self.height = pagesize
        self.generated_at = generated_at
        self.font, self.bold_font = document_fonts()
        self._canvas: Optional[canvas.Canvas] = None
        self._document: Optional[Document] = None
        self._page = 1
        self.y = 0.0

    def render(self, document: Document) -> bytes:
        buffer = io.BytesIO()
        self._canvas = canvas.Canvas(buffer, pagesize=self.pagesize)
        self._canvas.setTitle(document.title)
        self._document = document
        self._page = 1
        self.y = self.height - MARGIN

        self._draw_title()
        self._draw_parties()
        self._draw_lines(document.meta, size=9)
        self._draw_table(document.table)
        self._draw_lines(document.summary, size=9)
        self._draw_notes()
        self._draw_signatures()
        self._draw_page_footer()

        self._canvas.save()
        logger.info(f"Rendered {document.filename} ({self._page} page(s))")
        return buffer.getvalue()

    def _new_page(self):
        self._draw_page_footer()
        self._canvas.showPage()
        self._page += 1
        self.y = self.height - MARGIN

    def _ensure_space(self, needed: float):
        if self.y - needed < MARGIN + FOOTER_HEIGHT:
            self._new_page()

    def _draw_title(self):
        c = self._canvas
        doc = self._document
        center = self.width / 2
        c.setFont(self.bold_font, 16)
        c.drawCentredString(center, self.y, doc.title)
        self.y -= 8 * mm
        if doc.subtitle:
            c.setFont(self.font, 12)
            c.drawCentredString(center, self.y, doc.subtitle)
            self.y -= 6 * mm
        c.setFont(self.font, 10)
        c.drawCentredString(center, self.y, f"Datum vystavení: {format_date(doc.issue_date or datetime.now())}")
        self.y -= 6 * mm
        if doc.badge:
            c.setFillColor(BADGE_COLOR)
            c.setFont(self.bold_font, 10)
            c.drawCentredString(center, self.y, doc.badge)
            c.setFillColor(colors.black)
            self.y -= 6 * mm
        self.y -= 4 * mm

    def _draw_party(self, party: Party, x: float, y: float) -> float:
        c = self._canvas
        c.setFont(self.bold_font, 10)
        c.drawString(x, y, party.title)
        y -= 5 * mm
        c.setFont(self.bold_font, 9)
        c.drawString(x, y, party.name)
        y -= 4 * mm
        c.setFont(self.font, 8)
        for line in party.lines:
            c.drawString(x, y, line)
            y -= 4 * mm
        return y

    def _draw_parties(self):
        doc = self._document
        if doc.supplier is None and doc.customer is None:
            return
        bottom = self.y
        if doc.supplier is not None:
            bottom = min(bottom, self._draw_party(doc.supplier, MARGIN, self.y))
        if doc.customer is not None:
            bottom = min(bottom, self._draw_party(doc.customer, self.width / 2 + 10 * mm, self.y))
        self.y = bottom - 4 * mm

    def _draw_lines(self, lines: List[str], size: float):
        if not lines:
            return
        c = self._canvas
        for line in lines:
            self._ensure_space(5 * mm)
            c.setFont(self.font, size)
            c.drawString(MARGIN, self.y, line)
            self.y -= 5 * mm
        self.y -= 3 * mm

    def _column_positions(self, table: ItemTable) -> List[float]:
        usable = self.width - 2 * MARGIN
        total = sum(column.width for column in table.columns) or 1
        positions = [MARGIN]
        for column in table.columns:
            positions.append(positions[-1] + usable * column.width / total)
        return positions

    def _draw_row(self, table: ItemTable, cells: List[str], positions: List[float],
                  font: str, fill=None):
        c = self._canvas
        top = self.y
        bottom = top - ROW_HEIGHT
        if fill is not None:
            c.setFillColor(fill)
            c.rect(positions[0], bottom, positions[-1] - positions[0], ROW_HEIGHT, stroke=0, fill=1)
            c.setFillColor(colors.black)
        c.setLineWidth(0.3)
        c.rect(positions[0], bottom, positions[-1] - positions[0], ROW_HEIGHT, stroke=1, fill=0)
        c.setFont(font, 8)
        baseline = bottom + 2 * mm
        for index, column in enumerate(table.columns):
            left, right = positions[index], positions[index + 1]
            if index > 0:
                c.line(left, bottom, left, top)
            text = fit_text(cells[index] if index < len(cells) else "", font, 8, right - left - 4)
            if column.align == "RIGHT":
                c.drawRightString(right - 2, baseline, text)
            elif column.align == "CENTER":
                c.drawCentredString((left + right) / 2, baseline, text)
            else:
                c.drawString(left + 2, baseline, text)
        self.y = bottom

    def _draw_table(self, table: ItemTable):
        c = self._canvas
        if table.is_empty:
            self._ensure_space(12 * mm)
            c.setFont(self.font, 12)
            c.drawCentredString(self.width / 2, self.y - 6 * mm, table.empty_message)
            self.y -= 14 * mm
            return

        positions = self._column_positions(table)
        self._ensure_space(2 * ROW_HEIGHT)
        self._draw_row(table, table.headers, positions, self.bold_font, HEADER_FILL)
        for index, row in enumerate(table.rows):
            if self.y - ROW_HEIGHT < MARGIN + FOOTER_HEIGHT:
                self._new_page()
                self._draw_row(table, table.headers, positions, self.bold_font, HEADER_FILL)
            fill = table.fill_for(index)
            self._draw_row(table, row, positions, self.font, colors.HexColor(fill) if fill else None)
        if table.footer:
            self._ensure_space(ROW_HEIGHT)
            self._draw_row(table, table.footer, positions, self.bold_font)
        self.y -= 8 * mm

    def _draw_notes(self):
        notes = self._document.notes
        if not notes:
            return
        c = self._canvas
        self._ensure_space(12 * mm)
        c.setFont(self.bold_font, 10)
        c.drawString(MARGIN, self.y, "Poznámky:")
        self.y -= 5 * mm
        c.setFont(self.font, 8)
        for line in notes.splitlines() or [notes]:
            self._ensure_space(4 * mm)
            c.drawString(MARGIN, self.y, line)
            self.y -= 4 * mm
        self.y -= 4 * mm

    def _draw_signatures(self):
        labels = self._document.signatures
        if not labels:
            return
        c = self._canvas
        self._ensure_space(30 * mm)
        line_y = self.y - 20 * mm
        slot = (self.width - 2 * MARGIN) / len(labels)
        c.setFont(self.font, 10)
        c.setLineWidth(0.5)
        for index, label in enumerate(labels):
            center = MARGIN + slot * index + slot / 2
            c.line(center - 30 * mm, line_y, center + 30 * mm, line_y)
            c.drawCentredString(center, line_y - 5 * mm, label)
        self.y = line_y - 10 * mm

    def _draw_page_footer(self):
        c = self._canvas
        c.setFont(self.font, 8)
        c.drawRightString(self.width - MARGIN, 10 * mm, f"Strana {self._page}")
        c.drawString(MARGIN, 10 * mm, f"Vygenerováno: {format_datetime(self.generated_at or datetime.now())}")
        if self._document.footer_text:
            c.setFont(self.font, 7)
            c.drawCentredString(self.width / 2, 5 * mm, self._document.footer_text)


def render_pdf(document: Document) -> bytes:
    return CanvasRenderer().render(document)
