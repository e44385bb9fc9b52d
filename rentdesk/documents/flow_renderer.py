"""
Declarative platypus rendering of a Document straight into a downloaded file.
"""
import logging
import os
from datetime import datetime
from typing import List, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_LEFT, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import (
    HRFlowable, KeepTogether, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
)

from rentdesk.config import settings
from rentdesk.documents.fonts import document_fonts
from rentdesk.documents.formatting import format_date, format_datetime
from rentdesk.documents.model import Document, ItemTable, Party

logger = logging.getLogger(__name__)

ALIGNMENTS = {"LEFT": TA_LEFT, "CENTER": TA_CENTER, "RIGHT": TA_RIGHT}


class FlowRenderer:
    def __init__(self, output_dir: Optional[str] = None, generated_at: Optional[datetime] = None):
        self.output_dir = output_dir or settings.pdf_output_dir
        self.generated_at = generated_at
        self.font, self.bold_font = document_fonts()

        # Colors
        self.dark = colors.HexColor('#1e293b')
        self.gray = colors.HexColor('#64748b')
        self.border = colors.HexColor('#999999')
        self.header_fill = colors.HexColor('#e8e8e8')
        self.badge = colors.HexColor('#dc2626')

        # Styles
        self.title_style = ParagraphStyle('Title', fontSize=16, leading=20, fontName=self.bold_font, alignment=TA_CENTER, textColor=self.dark)
        self.subtitle_style = ParagraphStyle('Subtitle', fontSize=12, leading=15, fontName=self.font, alignment=TA_CENTER)
        self.center_style = ParagraphStyle('Center', fontSize=10, leading=13, fontName=self.font, alignment=TA_CENTER)
        self.badge_style = ParagraphStyle('Badge', fontSize=10, leading=13, fontName=self.bold_font, alignment=TA_CENTER, textColor=self.badge)
        self.label_style = ParagraphStyle('Label', fontSize=10, leading=13, fontName=self.bold_font, textColor=self.dark)
        self.value_style = ParagraphStyle('Value', fontSize=9, leading=12, fontName=self.font, textColor=self.dark)
        self.name_style = ParagraphStyle('Name', fontSize=9, leading=12, fontName=self.bold_font, textColor=self.dark)
        self.cell_style = ParagraphStyle('Cell', fontSize=8, leading=10, fontName=self.font)
        self.head_style = ParagraphStyle('Head', fontSize=8, leading=10, fontName=self.bold_font)
        self.empty_style = ParagraphStyle('Empty', fontSize=11, leading=14, fontName=self.font, alignment=TA_CENTER, textColor=self.gray)

    def render(self, document: Document) -> str:
        """Write the document into the download directory and return the file path"""
        os.makedirs(self.output_dir, exist_ok=True)
        path = os.path.join(self.output_dir, document.filename)
        doc = SimpleDocTemplate(
            path,
            pagesize=A4,
            rightMargin=15*mm,
            leftMargin=15*mm,
            topMargin=15*mm,
            bottomMargin=20*mm,
            title=document.title,
        )

        elements = []
        elements.extend(self._header(document))
        elements.extend(self._parties(document, doc.width))
        for line in document.meta:
            elements.append(Paragraph(escape(line), self.value_style))
        if document.meta:
            elements.append(Spacer(1, 6))
        elements.extend(self._items(document.table, doc.width))
        for line in document.summary:
            elements.append(Paragraph(escape(line), self.value_style))
        if document.summary:
            elements.append(Spacer(1, 8))
        if document.notes:
            elements.append(Paragraph("Poznámky:", self.label_style))
            elements.append(Paragraph(escape(document.notes).replace("\n", "<br/>"), self.value_style))
            elements.append(Spacer(1, 24))
        if document.signatures:
            elements.append(self._signatures(document.signatures, doc.width))

        def on_page(canvas, template):
            self._page_footer(canvas, template, document)

        doc.build(elements, onFirstPage=on_page, onLaterPages=on_page)
        logger.info(f"Saved {document.title} to {path}")
        return path

    def _header(self, document: Document) -> List:
        elements = [Paragraph(escape(document.title), self.title_style)]
        if document.subtitle:
            elements.append(Paragraph(escape(document.subtitle), self.subtitle_style))
        elements.append(Paragraph(
            f"Datum vystavení: {format_date(document.issue_date or datetime.now())}", self.center_style
        ))
        if document.badge:
            elements.append(Paragraph(escape(document.badge), self.badge_style))
        elements.append(Spacer(1, 8))
        elements.append(HRFlowable(width="100%", thickness=1, color=self.border))
        elements.append(Spacer(1, 8))
        return elements

    def _party_cell(self, party: Optional[Party]) -> List:
        if party is None:
            return []
        cell = [
            Paragraph(escape(party.title), self.label_style),
            Paragraph(escape(party.name), self.name_style),
        ]
        cell.extend(Paragraph(escape(line), self.value_style) for line in party.lines)
        return cell

    def _parties(self, document: Document, width: float) -> List:
        if document.supplier is None and document.customer is None:
            return []
        table = Table(
            [[self._party_cell(document.supplier), self._party_cell(document.customer)]],
            colWidths=[width / 2, width / 2],
        )
        table.setStyle(TableStyle([
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ('LEFTPADDING', (0, 0), (-1, -1), 0),
        ]))
        return [table, Spacer(1, 10)]

    def _items(self, table: ItemTable, width: float) -> List:
        if table.is_empty:
            return [Spacer(1, 12), Paragraph(escape(table.empty_message), self.empty_style), Spacer(1, 16)]

        def cell(text: str, style: ParagraphStyle, align: str) -> Paragraph:
            return Paragraph(escape(text), ParagraphStyle(f"{style.name}-{align}", parent=style, alignment=ALIGNMENTS.get(align, TA_LEFT)))

        total = sum(column.width for column in table.columns) or 1
        data = [[cell(c.header, self.head_style, c.align) for c in table.columns]]
        for row in table.rows:
            data.append([cell(value, self.cell_style, c.align) for value, c in zip(row, table.columns)])
        if table.footer:
            data.append([cell(value, self.head_style, c.align) for value, c in zip(table.footer, table.columns)])

        items_table = Table(
            data,
            colWidths=[width * c.width / total for c in table.columns],
            repeatRows=1,
        )
        style = [
            ('BACKGROUND', (0, 0), (-1, 0), self.header_fill),
            ('GRID', (0, 0), (-1, -1), 0.5, self.border),
            ('BOX', (0, 0), (-1, -1), 1, colors.HexColor('#666666')),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('TOPPADDING', (0, 0), (-1, -1), 3),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 3),
        ]
        for index in range(len(table.rows)):
            fill = table.fill_for(index)
            if fill:
                style.append(('BACKGROUND', (0, index + 1), (-1, index + 1), colors.HexColor(fill)))
        items_table.setStyle(TableStyle(style))
        return [items_table, Spacer(1, 10)]

    def _signatures(self, labels: List[str], width: float) -> KeepTogether:
        slot = width / len(labels)
        lines = [HRFlowable(width=slot * 0.8, thickness=1, color=self.dark) for _ in labels]
        captions = [Paragraph(escape(label), self.center_style) for label in labels]
        table = Table([lines, captions], colWidths=[slot] * len(labels))
        table.setStyle(TableStyle([
            ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
            ('TOPPADDING', (0, 0), (-1, -1), 2),
        ]))
        return KeepTogether([Spacer(1, 20), table])

    def _page_footer(self, canvas, template, document: Document):
        canvas.saveState()
        canvas.setFont(self.font, 8)
        canvas.drawRightString(template.pagesize[0] - template.rightMargin, 10*mm, f"Strana {canvas.getPageNumber()}")
        canvas.drawString(template.leftMargin, 10*mm, f"Vygenerováno: {format_datetime(self.generated_at or datetime.now())}")
        if document.footer_text:
            canvas.setFont(self.font, 7)
            canvas.drawCentredString(template.pagesize[0] / 2, 5*mm, document.footer_text)
        canvas.restoreState()


def save_pdf(document: Document, output_dir: Optional[str] = None) -> str:
    return FlowRenderer(output_dir).render(document)
