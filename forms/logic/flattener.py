"""
Flattening engine: renders the current form state into static page content
and drops the interactive form.

Field visuals are regenerated from the stored values (rather than taken from
their appearance streams), painted with reportlab into one overlay per page
and merged with pypdf.
"""
from __future__ import annotations

import logging
from io import BytesIO
from typing import List, Optional, Tuple

from pypdf import PdfReader, PdfWriter
from pypdf.generic import ArrayObject, DictionaryObject, NameObject
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from core.config.config_service import AppearanceConfig
from core.helpers.date_time_helper import format_local, parse_pdf_date
from forms.logic.field_codec import font_size_from_da
from forms.models.field_models import FIELD_TYPE_KEY, TOGGLE_MARK, FieldType
from signature.logic.appearance import draw_signature_block

log = logging.getLogger(__name__)

HIDDEN_FLAG = 2
_PADDING = 2.0


def _resolve(obj):
    return obj.get_object() if obj is not None else None


def _inherited(widget: DictionaryObject, key: str):
    """Look ``key`` up on the widget, then along its /Parent chain."""
    node = widget
    seen = 0
    while isinstance(node, DictionaryObject) and seen < 32:
        if key in node:
            return _resolve(node.get(key))
        node = _resolve(node.get("/Parent"))
        seen += 1
    return None


def _fit_size(text: str, width: float, height: float, requested: float) -> float:
    if requested > 0:
        return requested
    size = max(4.0, min(12.0, height * 0.7))
    while size > 4.0 and stringWidth(text, "Helvetica", size) > width - 2 * _PADDING:
        size -= 0.5
    return size


# --------------------------------------------------------------------------- #
#  Painters
# --------------------------------------------------------------------------- #

def _draw_text(c: canvas.Canvas, text: str, rect, da, *, centred: bool) -> None:
    x, y, w, h = rect
    size = _fit_size(text, w, h, font_size_from_da(da))
    c.setFont("Helvetica", size)
    baseline = y + max(0.0, (h - size) / 2 + size * 0.22)
    if centred:
        c.drawCentredString(x + w / 2, baseline, text)
    else:
        c.drawString(x + _PADDING, baseline, text)


def _draw_signature(c: canvas.Canvas, widget: DictionaryObject, rect,
                    appearance: AppearanceConfig) -> bool:
    sig = _inherited(widget, "/V")
    if not isinstance(sig, DictionaryObject):
        return False
    x, y, w, h = rect
    if w <= 0 or h <= 0:
        return False

    signer_name = _inherited(widget, "/TU") or sig.get("/Name") or ""
    signed_at = parse_pdf_date(sig.get("/M"))
    date_text = (
        format_local(signed_at, appearance.date_format, appearance.timezone)
        if signed_at else None
    )
    draw_signature_block(
        c, x, y, w, h,
        signer_name=str(signer_name), date_text=date_text, label=appearance.label,
    )
    return True


def _paint_widget(c: canvas.Canvas, widget: DictionaryObject, appearance: AppearanceConfig) -> None:
    if int(_resolve(widget.get("/F")) or 0) & HIDDEN_FLAG:
        return
    raw_rect = _resolve(widget.get("/Rect"))
    if raw_rect is None:
        return
    x1, y1, x2, y2 = (float(v) for v in raw_rect)
    rect = (min(x1, x2), min(y1, y2), abs(x2 - x1), abs(y2 - y1))

    ft = _inherited(widget, "/FT")
    value = _inherited(widget, "/V")

    if ft == "/Sig":
        _draw_signature(c, widget, rect, appearance)
        return

    if ft == "/Btn":
        # native check boxes / radios: anything but /Off counts as set
        if value is not None and value != "/Off":
            _draw_text(c, TOGGLE_MARK, rect, None, centred=True)
        return

    if ft != "/Tx" or value is None:
        return
    text = str(value)
    if not text:
        return

    semantic = _inherited(widget, FIELD_TYPE_KEY)
    try:
        toggle = FieldType.parse(str(semantic) if semantic is not None else None).is_toggle
    except ValueError:
        toggle = False
    _draw_text(c, text, rect, _inherited(widget, "/DA"), centred=toggle)


# --------------------------------------------------------------------------- #
#  Public API
# --------------------------------------------------------------------------- #

def _split_annots(page) -> Tuple[List[DictionaryObject], ArrayObject]:
    widgets: List[DictionaryObject] = []
    kept = ArrayObject()
    annots = _resolve(page.get("/Annots"))
    if isinstance(annots, ArrayObject):
        for ref in annots:
            annot = _resolve(ref)
            if isinstance(annot, DictionaryObject) and annot.get("/Subtype") == "/Widget":
                widgets.append(annot)
            else:
                kept.append(ref)
    return widgets, kept


def flatten_pdf(master_bytes: bytes, appearance: Optional[AppearanceConfig] = None) -> bytes:
    """Non-interactive copy of ``master_bytes`` showing the current values."""
    appearance = appearance or AppearanceConfig()
    reader = PdfReader(BytesIO(master_bytes))
    writer = PdfWriter()
    painted = 0

    for page in reader.pages:
        widgets, kept = _split_annots(page)

        if widgets:
            box = page.mediabox
            buf = BytesIO()
            c = canvas.Canvas(buf, pagesize=(float(box.right), float(box.top)))
            for widget in widgets:
                _paint_widget(c, widget, appearance)
            c.showPage()
            c.save()
            page.merge_page(PdfReader(BytesIO(buf.getvalue())).pages[0])
            painted += len(widgets)

        if kept:
            page[NameObject("/Annots")] = kept
        elif "/Annots" in page:
            del page["/Annots"]
        writer.add_page(page)

    if reader.metadata:
        writer.add_metadata({k: v for k, v in reader.metadata.items() if isinstance(v, str)})

    out = BytesIO()
    writer.write(out)
    log.debug("Flattened PDF generated (%d widget(s), %d bytes)", painted, out.tell())
    return out.getvalue()
