"""
Writes field values into a live form inside an open incremental revision.

Every touched field is given its value, a fresh normal appearance and the
ReadOnly flag, and is registered with the writer so the change lands in the
revision being built (the signing engine appends its signature to the same
revision).
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List, Tuple

from pyhanko.pdf_utils import generic
from pyhanko.pdf_utils.generic import pdf_name
from pyhanko.pdf_utils.incremental_writer import IncrementalPdfFileWriter
from reportlab.pdfbase.pdfmetrics import stringWidth

from core.exceptions.errors import InternalError, NotFoundError
from forms.logic.field_codec import font_size_from_da
from forms.models.field_models import (
    FIELD_TYPE_KEY,
    HELV_FONT,
    FieldDefinition,
    FieldType,
    encode_value,
)

log = logging.getLogger(__name__)

READ_ONLY_FLAG = 1
_PADDING = 2.0


# --------------------------------------------------------------------------- #
#  Field lookup
# --------------------------------------------------------------------------- #

FieldRef = Tuple[str, generic.PdfObject, generic.DictionaryObject]


def _iter_fields(fields: generic.ArrayObject, parent: str = "") -> Iterator[FieldRef]:
    """Yield (qualified name, raw reference, dictionary) for every field node."""
    for ix in range(len(fields)):
        ref = fields.raw_get(ix)
        node = ref.get_object()
        if not isinstance(node, generic.DictionaryObject):
            continue
        partial = node.get("/T")
        if partial is None:
            # pure widget kid, no name of its own
            continue
        name = f"{parent}.{partial}" if parent else str(partial)
        yield name, ref, node
        kids = node.get("/Kids")
        if isinstance(kids, generic.ArrayObject):
            yield from _iter_fields(kids, name)


def _field_index(writer: IncrementalPdfFileWriter) -> Tuple[generic.DictionaryObject, Dict[str, FieldRef]]:
    try:
        acroform = writer.root["/AcroForm"]
    except KeyError:
        raise InternalError("Master document has no interactive form")
    fields = acroform.get("/Fields")
    if not isinstance(fields, generic.ArrayObject):
        raise InternalError("Master document form has no /Fields array")
    return acroform, {entry[0]: entry for entry in _iter_fields(fields)}


def _widgets(ref: generic.PdfObject, node: generic.DictionaryObject) -> List[Tuple[generic.PdfObject, generic.DictionaryObject]]:
    """Widget annotations of a terminal field (merged or as /Kids)."""
    if "/Rect" in node:
        return [(ref, node)]
    result = []
    kids = node.get("/Kids")
    if isinstance(kids, generic.ArrayObject):
        for ix in range(len(kids)):
            kid_ref = kids.raw_get(ix)
            kid = kid_ref.get_object()
            if "/T" not in kid and "/Rect" in kid:
                result.append((kid_ref, kid))
    return result


# --------------------------------------------------------------------------- #
#  Appearance streams
# --------------------------------------------------------------------------- #

def _helv_font_ref(writer: IncrementalPdfFileWriter, acroform: generic.DictionaryObject) -> generic.PdfObject:
    """Reuse /Helv from the form's default resources, else register a new one."""
    try:
        return acroform["/DR"]["/Font"].raw_get(HELV_FONT)
    except KeyError:
        log.debug("No /Helv in /DR, adding a Helvetica font object")
    return writer.add_object(generic.DictionaryObject({
        pdf_name("/Type"): pdf_name("/Font"),
        pdf_name("/Subtype"): pdf_name("/Type1"),
        pdf_name("/BaseFont"): pdf_name("/Helvetica"),
        pdf_name("/Encoding"): pdf_name("/WinAnsiEncoding"),
    }))


def _escape(text: str) -> bytes:
    raw = text.encode("cp1252", errors="replace")
    return raw.replace(b"\\", b"\\\\").replace(b"(", b"\\(").replace(b")", b"\\)")


def _auto_font_size(text: str, width: float, height: float) -> float:
    size = max(4.0, min(12.0, height * 0.7))
    while size > 4.0 and text and stringWidth(text, "Helvetica", size) > width - 2 * _PADDING:
        size -= 0.5
    return size


def _appearance_stream(
    text: str,
    width: float,
    height: float,
    font_size: float,
    font_ref: generic.PdfObject,
    *,
    centred: bool,
) -> generic.StreamObject:
    size = font_size if font_size > 0 else _auto_font_size(text, width, height)
    if centred:
        tx = max(0.0, (width - stringWidth(text, "Helvetica", size)) / 2)
    else:
        tx = _PADDING
    ty = max(0.0, (height - size) / 2 + size * 0.22)

    content = b"/Tx BMC q BT %s %g Tf 0 g %g %g Td (%s) Tj ET Q EMC" % (
        HELV_FONT.encode("ascii"), size, tx, ty, _escape(text),
    ) if text else b"/Tx BMC EMC"

    return generic.StreamObject(
        {
            pdf_name("/Type"): pdf_name("/XObject"),
            pdf_name("/Subtype"): pdf_name("/Form"),
            pdf_name("/BBox"): generic.ArrayObject([
                generic.FloatObject(0), generic.FloatObject(0),
                generic.FloatObject(width), generic.FloatObject(height),
            ]),
            pdf_name("/Resources"): generic.DictionaryObject({
                pdf_name("/Font"): generic.DictionaryObject({pdf_name(HELV_FONT): font_ref}),
            }),
        },
        stream_data=content,
    )


def _rect_size(widget: generic.DictionaryObject) -> Tuple[float, float]:
    llx, lly, urx, ury = (float(v) for v in widget["/Rect"])
    return abs(urx - llx), abs(ury - lly)


def _mark(writer: IncrementalPdfFileWriter, ref: generic.PdfObject) -> None:
    # direct objects travel with their (already marked) parent
    if isinstance(ref, generic.IndirectObject):
        writer.mark_update(ref)


# --------------------------------------------------------------------------- #
#  Public API
# --------------------------------------------------------------------------- #

def apply_field_values(
    writer: IncrementalPdfFileWriter,
    field_definitions: Iterable[FieldDefinition],
) -> List[str]:
    """
    Write each definition's ``current_value`` into the live field of the same
    qualified name. Returns the names written, in input order.

    Raises NotFoundError when a field is missing from the document and
    InternalError when the document has no form at all.
    """
    definitions = list(field_definitions)
    if not definitions:
        return []

    acroform, index = _field_index(writer)
    font_ref = _helv_font_ref(writer, acroform)
    written: List[str] = []

    for definition in definitions:
        entry = index.get(definition.field_name)
        if entry is None:
            raise NotFoundError(
                f"Field '{definition.field_name}' is missing from the master document"
            )
        _, ref, node = entry

        raw_type = node.get(FIELD_TYPE_KEY)
        try:
            field_type = FieldType.parse(str(raw_type)) if raw_type is not None else definition.field_type
        except ValueError:
            field_type = FieldType.TEXT
        text = encode_value(field_type.value, definition.current_value)

        node[pdf_name("/V")] = generic.pdf_string(text)
        flags = int(node.get("/Ff", 0))
        node[pdf_name("/Ff")] = generic.NumberObject(flags | READ_ONLY_FLAG)
        _mark(writer, ref)

        for widget_ref, widget in _widgets(ref, node):
            width, height = _rect_size(widget)
            font_size = font_size_from_da(widget.get("/DA") or node.get("/DA"))
            stream = _appearance_stream(text, width, height, font_size, font_ref, centred=field_type.is_toggle)
            widget[pdf_name("/AP")] = generic.DictionaryObject({
                pdf_name("/N"): writer.add_object(stream),
            })
            if widget_ref is not ref:
                _mark(writer, widget_ref)

        log.debug("Applied value to field %s", definition.field_name)
        written.append(definition.field_name)

    return written
