"""
Printable document model.

Every business document (delivery note, return note, billing statement,
write-off record, inventory report) is described by one Document; the
renderers only know how to lay out a Document, never a particular payload.
"""
from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field


class Party(BaseModel):
    """Address block printed in the document header (supplier or customer)"""
    title: str
    name: str = ""
    lines: List[str] = Field(default_factory=list)


class Column(BaseModel):
    header: str
    # share of the table width; the shares of one table add up to 1
    width: float = 0.1
    align: str = "LEFT"


class ItemTable(BaseModel):
    columns: List[Column] = Field(default_factory=list)
    rows: List[List[str]] = Field(default_factory=list)
    # optional background per row, hex colour or None
    row_fills: List[Optional[str]] = Field(default_factory=list)
    footer: Optional[List[str]] = None
    empty_message: str = "Žádné položky"

    @property
    def is_empty(self) -> bool:
        return len(self.rows) == 0

    @property
    def headers(self) -> List[str]:
        return [column.header for column in self.columns]

    def fill_for(self, index: int) -> Optional[str]:
        if index < len(self.row_fills):
            return self.row_fills[index]
        return None


class Document(BaseModel):
    title: str
    number: Optional[str] = None
    issue_date: Optional[date] = None
    badge: Optional[str] = None
    meta: List[str] = Field(default_factory=list)
    supplier: Optional[Party] = None
    customer: Optional[Party] = None
    table: ItemTable = Field(default_factory=ItemTable)
    summary: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    signatures: List[str] = Field(default_factory=list)
    filename: str = "dokument.pdf"
    footer_text: Optional[str] = None

    @property
    def subtitle(self) -> Optional[str]:
        if not self.number:
            return None
        return f"Č. {self.number}"
