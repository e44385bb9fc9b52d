"""
Font registration for printed documents.

The base-14 PDF fonts cannot print Czech diacritics, so a TrueType font is
registered once per process when one can be found; documents fall back to
Helvetica otherwise.
"""
import logging
import os
from typing import Optional, Tuple

from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont, TTFError

from rentdesk.config import settings

logger = logging.getLogger(__name__)

FONT_NAME = "DejaVuSans"
BOLD_FONT_NAME = "DejaVuSans-Bold"
FALLBACK_FONTS = ("Helvetica", "Helvetica-Bold")
SYSTEM_FONT_DIRS = (
    "/usr/share/fonts/truetype/dejavu",
    "/usr/share/fonts/dejavu",
    "/usr/local/share/fonts",
)

_registered: Optional[Tuple[str, str]] = None


def _find_font_files() -> Optional[Tuple[str, str]]:
    if settings.pdf_font_path:
        regular = settings.pdf_font_path
        bold = regular.replace(".ttf", "-Bold.ttf")
        return regular, bold if os.path.exists(bold) else regular
    for directory in SYSTEM_FONT_DIRS:
        regular = os.path.join(directory, "DejaVuSans.ttf")
        if os.path.exists(regular):
            bold = os.path.join(directory, "DejaVuSans-Bold.ttf")
            return regular, bold if os.path.exists(bold) else regular
    return None


def document_fonts() -> Tuple[str, str]:
    """(regular, bold) font names to use in documents"""
    global _registered
    if _registered is not None:
        return _registered

    files = _find_font_files()
    if files is None:
        logger.warning("No TrueType font found, documents use Helvetica without Czech diacritics")
        _registered = FALLBACK_FONTS
        return _registered

    try:
        pdfmetrics.registerFont(TTFont(FONT_NAME, files[0]))
        pdfmetrics.registerFont(TTFont(BOLD_FONT_NAME, files[1]))
        _registered = (FONT_NAME, BOLD_FONT_NAME)
    except (TTFError, OSError) as e:
        logger.error(f"Failed to register document font {files[0]}: {e}")
        _registered = FALLBACK_FONTS
    return _registered
