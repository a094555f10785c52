"""
Visual signature block.

The same drawing routine serves the live widget appearance (rendered into a
one-page PDF that pyHanko embeds as a static stamp) and the flattened snapshot
(drawn straight into a page overlay).
"""
from __future__ import annotations

from io import BytesIO
from typing import Optional

from reportlab.lib import colors
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

ACCENT_COLOR = colors.HexColor("#1F5FAD")
BORDER_COLOR = colors.HexColor("#9AA5B1")
LABEL_COLOR = colors.HexColor("#5F6B7A")
TEXT_COLOR = colors.black

_ACCENT_WIDTH_RATIO = 0.035
_PADDING = 4.0


def _fit_font_size(text: str, font: str, size: float, max_width: float, min_size: float = 4.0) -> float:
    """Shrink ``size`` until ``text`` fits into ``max_width``."""
    while size > min_size and stringWidth(text, font, size) > max_width:
        size -= 0.5
    return size


def draw_signature_block(
    c: canvas.Canvas,
    x: float,
    y: float,
    width: float,
    height: float,
    *,
    signer_name: str,
    date_text: Optional[str],
    label: str,
) -> None:
    """
    Paint the block into ``c`` with its lower-left corner at (x, y):
      • thin border
      • accent bar on the left edge
      • label (small), signer name (bold), date (small) top to bottom
    """
    if width <= 0 or height <= 0:
        return

    c.saveState()

    # --- border
    c.setStrokeColor(BORDER_COLOR)
    c.setLineWidth(0.75)
    c.rect(x, y, width, height, stroke=1, fill=0)

    # --- accent bar
    bar_w = max(2.0, width * _ACCENT_WIDTH_RATIO)
    c.setFillColor(ACCENT_COLOR)
    c.rect(x, y, bar_w, height, stroke=0, fill=1)

    # --- text lines
    text_x = x + bar_w + _PADDING
    text_w = max(1.0, width - bar_w - 2 * _PADDING)
    line_h = height / 3.0

    label_size = _fit_font_size(label, "Helvetica", min(9.0, line_h * 0.7), text_w)
    name_size = _fit_font_size(signer_name, "Helvetica-Bold", min(12.0, line_h * 0.85), text_w)

    c.setFillColor(LABEL_COLOR)
    c.setFont("Helvetica", label_size)
    c.drawString(text_x, y + 2 * line_h + (line_h - label_size) / 2, label)

    c.setFillColor(TEXT_COLOR)
    c.setFont("Helvetica-Bold", name_size)
    c.drawString(text_x, y + line_h + (line_h - name_size) / 2, signer_name)

    if date_text:
        date_size = _fit_font_size(date_text, "Helvetica", min(9.0, line_h * 0.7), text_w)
        c.setFillColor(LABEL_COLOR)
        c.setFont("Helvetica", date_size)
        c.drawString(text_x, y + (line_h - date_size) / 2, date_text)

    c.restoreState()


def render_appearance_pdf(
    width: float,
    height: float,
    *,
    signer_name: str,
    date_text: Optional[str],
    label: str,
) -> bytes:
    """One-page PDF exactly the size of the widget, holding only the block."""
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=(width, height))
    draw_signature_block(
        c, 0, 0, width, height,
        signer_name=signer_name, date_text=date_text, label=label,
    )
    c.showPage()
    c.save()
    return buf.getvalue()
