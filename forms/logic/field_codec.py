"""
Field codec: reads form fields out of an uploaded PDF and builds the master
PDF whose form holds exactly the placed fields.

Uses pypdf for both directions; the master is written as a full save.
"""
from __future__ import annotations

import logging
import re
import time
from io import BytesIO
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PdfReadError
from pypdf.generic import (
    ArrayObject,
    BooleanObject,
    DictionaryObject,
    FloatObject,
    IndirectObject,
    NameObject,
    NumberObject,
    TextStringObject,
)

from core.exceptions.errors import BadRequestError
from forms.models.field_models import (
    ASSIGN_KEY,
    FIELD_TYPE_KEY,
    HELV_FONT,
    TEXT_FONT_SIZE,
    DetectedField,
    FieldDefinition,
    FieldType,
)

log = logging.getLogger(__name__)

RADIO_FLAG = 1 << 15
PUSHBUTTON_FLAG = 1 << 16
PRINT_FLAG = 4

_DA_SIZE_RE = re.compile(r"(-?\d+(?:\.\d+)?)\s+Tf")


# --------------------------------------------------------------------------- #
#  Helpers
# --------------------------------------------------------------------------- #

def default_appearance(field_type: FieldType) -> str:
    """Auto-size for toggles (small boxes), fixed size for text."""
    size = 0 if field_type.is_toggle else TEXT_FONT_SIZE
    return f"{HELV_FONT} {size} Tf 0 g"


def font_size_from_da(da) -> float:
    """Font size of a /DA string; 0 means auto (also when absent)."""
    if da is None:
        return 0.0
    m = _DA_SIZE_RE.search(str(da))
    return float(m.group(1)) if m else 0.0


def _resolve(obj):
    return obj.get_object() if obj is not None else None


def _open(pdf_bytes: bytes) -> PdfReader:
    try:
        return PdfReader(BytesIO(pdf_bytes))
    except (PdfReadError, ValueError) as e:
        raise BadRequestError(f"Unreadable PDF: {e}") from e


def _normalised_rect(rect) -> Tuple[float, float, float, float]:
    x1, y1, x2, y2 = (float(v) for v in rect)
    llx, urx = min(x1, x2), max(x1, x2)
    lly, ury = min(y1, y2), max(y1, y2)
    return llx, lly, urx - llx, ury - lly


# --------------------------------------------------------------------------- #
#  Extraction
# --------------------------------------------------------------------------- #

def _control_type(ft, flags: int) -> Optional[FieldType]:
    if ft == "/Tx":
        return FieldType.TEXT
    if ft == "/Btn":
        if flags & PUSHBUTTON_FLAG:
            return None
        return FieldType.RADIO if flags & RADIO_FLAG else FieldType.CHECKBOX
    # /Ch (combo/list) and /Sig are not offered for placement
    return None


def _walk(
    refs: Iterable,
    parent_name: str = "",
    inherited_ft=None,
    inherited_ff: int = 0,
) -> Iterator[Tuple[str, str, object, int, DictionaryObject, List[Tuple[object, DictionaryObject]]]]:
    """
    Yield terminal fields as
    (qualified name, partial name, /FT, /Ff, field dict, [(widget ref, widget dict)]).
    """
    for ref in refs:
        node = _resolve(ref)
        if not isinstance(node, DictionaryObject):
            continue
        partial = _resolve(node.get("/T"))
        partial = str(partial) if partial is not None else ""
        if parent_name and partial:
            name = f"{parent_name}.{partial}"
        else:
            name = partial or parent_name
        ft = _resolve(node.get("/FT")) or inherited_ft
        ff = int(_resolve(node.get("/Ff")) or inherited_ff)

        kids = _resolve(node.get("/Kids"))
        kid_fields = []
        kid_widgets = []
        if isinstance(kids, ArrayObject):
            for kid_ref in kids:
                kid = _resolve(kid_ref)
                if not isinstance(kid, DictionaryObject):
                    continue
                if "/T" in kid:
                    kid_fields.append(kid_ref)
                else:
                    kid_widgets.append((kid_ref, kid))

        if kid_fields:
            yield from _walk(kid_fields, name, ft, ff)
            continue
        widgets = kid_widgets or [(ref, node)]
        yield name, partial, ft, ff, node, widgets


def _page_maps(reader: PdfReader) -> Tuple[Dict[int, int], Dict[int, int]]:
    """(page object number -> index, annotation object number -> page index)"""
    page_by_id: Dict[int, int] = {}
    annot_owner: Dict[int, int] = {}
    for ix, page in enumerate(reader.pages):
        if page.indirect_reference is not None:
            page_by_id[page.indirect_reference.idnum] = ix
        annots = _resolve(page.get("/Annots"))
        if isinstance(annots, ArrayObject):
            for annot in annots:
                if isinstance(annot, IndirectObject):
                    annot_owner.setdefault(annot.idnum, ix)
    return page_by_id, annot_owner


def _widget_page(widget_ref, widget: DictionaryObject,
                 page_by_id: Dict[int, int], annot_owner: Dict[int, int]) -> int:
    p = widget.get("/P")
    if isinstance(p, IndirectObject) and p.idnum in page_by_id:
        return page_by_id[p.idnum]
    if isinstance(widget_ref, IndirectObject) and widget_ref.idnum in annot_owner:
        return annot_owner[widget_ref.idnum]
    return 0


def extract_fields(pdf_bytes: bytes) -> List[DetectedField]:
    """Text, checkbox and radio fields of an existing PDF, one entry per widget."""
    reader = _open(pdf_bytes)
    acroform = _resolve(reader.trailer["/Root"].get("/AcroForm"))
    if not isinstance(acroform, DictionaryObject):
        log.debug("PDF has no AcroForm, nothing to extract")
        return []
    roots = _resolve(acroform.get("/Fields"))
    if not isinstance(roots, ArrayObject):
        return []

    page_by_id, annot_owner = _page_maps(reader)
    result: List[DetectedField] = []
    used: set[str] = set()
    unnamed = 0

    for name, partial, ft, ff, _node, widgets in _walk(roots):
        field_type = _control_type(ft, ff)
        if field_type is None:
            continue
        group_name = partial if field_type is FieldType.RADIO else None

        for i, (widget_ref, widget) in enumerate(widgets):
            rect = _resolve(widget.get("/Rect"))
            if rect is None:
                continue
            page = _widget_page(widget_ref, widget, page_by_id, annot_owner)

            base = name
            if not base.strip():
                base = f"{field_type.value}_imported_{unnamed}"
                unnamed += 1
            field_name = f"{base}_{i}" if len(widgets) > 1 else base
            if field_name in used:
                field_name = f"{field_name}_{time.monotonic_ns()}"
            used.add(field_name)

            x, y, w, h = _normalised_rect(rect)
            result.append(DetectedField(
                field_name=field_name,
                field_type=field_type,
                page=page,
                x=x, y=y, width=w, height=h,
                group_name=group_name,
            ))

    log.info("PDF analysed: %d form field(s) detected", len(result))
    return result


# --------------------------------------------------------------------------- #
#  Master creation
# --------------------------------------------------------------------------- #

def _validate_placements(placements: Sequence[FieldDefinition], page_count: int) -> None:
    seen: set[str] = set()
    for p in placements:
        if not p.field_name or not str(p.field_name).strip():
            raise BadRequestError("Field name must not be blank")
        if p.field_name in seen:
            raise BadRequestError(f"Duplicate field name '{p.field_name}'")
        seen.add(p.field_name)
        try:
            FieldType(p.field_type)
        except ValueError:
            raise BadRequestError(f"Unknown field type '{p.field_type}' for '{p.field_name}'")
        if not 0 <= p.page < page_count:
            raise BadRequestError(
                f"Field '{p.field_name}' targets page {p.page}, document has {page_count} page(s)"
            )


def _strip_widgets(page) -> None:
    annots = _resolve(page.get("/Annots"))
    if not isinstance(annots, ArrayObject):
        return
    kept = ArrayObject(a for a in annots if _resolve(a).get("/Subtype") != "/Widget")
    if kept:
        page[NameObject("/Annots")] = kept
    else:
        del page["/Annots"]


def _new_acroform(writer: PdfWriter) -> Tuple[DictionaryObject, ArrayObject]:
    helv = DictionaryObject({
        NameObject("/Type"): NameObject("/Font"),
        NameObject("/Subtype"): NameObject("/Type1"),
        NameObject("/BaseFont"): NameObject("/Helvetica"),
        NameObject("/Encoding"): NameObject("/WinAnsiEncoding"),
    })
    fields = ArrayObject()
    acroform = DictionaryObject({
        NameObject("/Fields"): fields,
        NameObject("/DR"): DictionaryObject({
            NameObject("/Font"): DictionaryObject({
                NameObject(HELV_FONT): writer._add_object(helv),
            }),
        }),
        NameObject("/DA"): TextStringObject(default_appearance(FieldType.TEXT)),
        NameObject("/NeedAppearances"): BooleanObject(True),
    })
    writer._root_object[NameObject("/AcroForm")] = writer._add_object(acroform)
    return acroform, fields


def create_master_pdf(original_bytes: bytes, placements: Sequence[FieldDefinition]) -> bytes:
    """
    Copy of the uploaded PDF whose form consists of exactly ``placements``.

    Every placement becomes a text field carrying ``/Assign`` and
    ``/FieldType``; all original widgets and the original form are dropped.
    """
    reader = _open(original_bytes)
    placements = list(placements)
    _validate_placements(placements, len(reader.pages))

    writer = PdfWriter()
    for page in reader.pages:
        # widgets hold /Parent links into the old field tree
        _strip_widgets(page)
        writer.add_page(page)
    if reader.metadata:
        writer.add_metadata({k: v for k, v in reader.metadata.items() if isinstance(v, str)})

    _acroform, fields = _new_acroform(writer)

    for p in placements:
        field_type = FieldType(p.field_type)
        page = writer.pages[p.page]
        llx, lly, urx, ury = p.rect

        widget = DictionaryObject({
            NameObject("/FT"): NameObject("/Tx"),
            NameObject("/T"): TextStringObject(p.field_name),
            NameObject("/Type"): NameObject("/Annot"),
            NameObject("/Subtype"): NameObject("/Widget"),
            NameObject("/Rect"): ArrayObject([FloatObject(v) for v in (llx, lly, urx, ury)]),
            NameObject("/F"): NumberObject(PRINT_FLAG),
            NameObject("/P"): page.indirect_reference,
            NameObject("/DA"): TextStringObject(default_appearance(field_type)),
            NameObject(ASSIGN_KEY): TextStringObject(p.assigned_to),
            NameObject(FIELD_TYPE_KEY): TextStringObject(field_type.value),
        })
        if p.label:
            widget[NameObject("/TU")] = TextStringObject(p.label)
        widget_ref = writer._add_object(widget)

        annots = _resolve(page.get("/Annots"))
        if not isinstance(annots, ArrayObject):
            annots = ArrayObject()
            page[NameObject("/Annots")] = annots
        annots.append(widget_ref)
        fields.append(widget_ref)

        log.debug(
            "Field created: %s (type=%s) assigned to %s at (%s,%s) %sx%s",
            p.field_name, field_type.value, p.assigned_to, p.x, p.y, p.width, p.height,
        )

    buf = BytesIO()
    writer.write(buf)
    log.info("Master PDF created with %d form field(s)", len(placements))
    return buf.getvalue()
