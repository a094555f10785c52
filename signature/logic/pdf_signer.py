"""
Incremental, chained PDF signing.

Each call appends exactly one revision to the given document: optional field
values, a freshly created signature field and the detached CMS signature over
the whole byte range. Earlier revisions are never rewritten.
"""
from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Iterable, Optional, Set

from pyhanko.pdf_utils import generic
from pyhanko.pdf_utils.generic import pdf_name
from pyhanko.pdf_utils.incremental_writer import IncrementalPdfFileWriter
from pyhanko.pdf_utils.misc import PdfError
from pyhanko.sign import fields, signers
from pyhanko.sign.general import SigningError
from pyhanko.stamp import StaticStampStyle

from core.exceptions.errors import SigningFailedError
from core.helpers.date_time_helper import format_local, utc_now
from forms.logic.value_applier import apply_field_values
from forms.models.field_models import FieldDefinition

from ..models.signature_enums import PermissionLevel, SignatureKind
from ..models.signature_placement import SignaturePlacement
from ..models.signature_request import SignatureRequest
from ..models.signing_identity import SigningIdentity
from .appearance import render_appearance_pdf

log = logging.getLogger(__name__)

DEFAULT_RESERVED_BYTES = 9472
SIGNATURE_FIELD_PREFIX = "Signature"


@dataclass(frozen=True)
class SignedRevision:
    pdf_bytes: bytes
    field_name: str


@dataclass(frozen=True)
class SignatureOptions:
    """Presentation settings; defaults mirror the shipped configuration."""
    name_prefix: str = "PDF Forms"
    label: str = "Signé par"
    date_format: str = "%d/%m/%Y %H:%M"
    timezone: str = "Europe/Paris"
    reserved_bytes: int = DEFAULT_RESERVED_BYTES


# --------------------------------------------------------------------------- #
#  Structural helpers
# --------------------------------------------------------------------------- #

def _existing_field_names(writer: IncrementalPdfFileWriter) -> Set[str]:
    names: Set[str] = set()
    try:
        roots = writer.root["/AcroForm"]["/Fields"]
    except KeyError:
        return names

    def walk(arr, parent: str) -> None:
        for ix in range(len(arr)):
            node = arr[ix]
            partial = node.get("/T")
            if partial is None:
                continue
            name = f"{parent}.{partial}" if parent else str(partial)
            names.add(name)
            if "/Kids" in node:
                walk(node["/Kids"], name)

    walk(roots, "")
    return names


def _next_field_name(writer: IncrementalPdfFileWriter) -> str:
    existing = _existing_field_names(writer)
    n = 1
    while f"{SIGNATURE_FIELD_PREFIX}{n}" in existing:
        n += 1
    return f"{SIGNATURE_FIELD_PREFIX}{n}"


def _disable_need_appearances(writer: IncrementalPdfFileWriter) -> None:
    root = writer.root
    try:
        ref = root.raw_get("/AcroForm")
    except KeyError:
        log.warning("No AcroForm present, cannot reset NeedAppearances")
        return
    acroform = ref.get_object()
    acroform[pdf_name("/NeedAppearances")] = generic.BooleanObject(False)
    if isinstance(ref, generic.IndirectObject):
        writer.mark_update(ref)
    else:
        writer.update_root()


def _clamp_page(writer: IncrementalPdfFileWriter, page: int) -> int:
    count = int(writer.root["/Pages"]["/Count"])
    return max(0, min(page, count - 1))


# --------------------------------------------------------------------------- #
#  Signing
# --------------------------------------------------------------------------- #

def sign_pdf(
    master_bytes: bytes,
    request: SignatureRequest,
    identity: SigningIdentity,
    *,
    fields_to_apply: Optional[Iterable[FieldDefinition]] = None,
    placement: Optional[SignaturePlacement] = None,
    options: Optional[SignatureOptions] = None,
) -> SignedRevision:
    """
    Append one signed revision to ``master_bytes``.

    Certification requests carry a DocMDP transform with the requested
    permission level; approval requests lock ``fields_to_lock`` through a
    FieldMDP (Include) entry. Field values, when given, are written in the
    same revision before the signature is computed.

    Raises SigningFailedError if any structural or cryptographic step fails.
    """
    opts = options or SignatureOptions()
    signed_at = utc_now()

    writer = IncrementalPdfFileWriter(BytesIO(master_bytes))

    if fields_to_apply is not None:
        apply_field_values(writer, fields_to_apply)

    _disable_need_appearances(writer)

    field_name = _next_field_name(writer)
    spec_kwargs = {"sig_field_name": field_name}
    meta_kwargs = {}

    if request.kind is SignatureKind.CERTIFICATION:
        meta_kwargs["certify"] = True
        meta_kwargs["docmdp_permissions"] = fields.MDPPerm(
            PermissionLevel.parse(request.permission_level).value
        )
    elif request.kind is SignatureKind.APPROVAL:
        if request.fields_to_lock:
            spec_kwargs["field_mdp_spec"] = fields.FieldMDPSpec(
                fields.FieldMDPAction.INCLUDE, fields=list(request.fields_to_lock)
            )
    else:
        raise SigningFailedError(f"Unsupported signature kind: {request.kind!r}")

    stamp_style = None
    with tempfile.TemporaryDirectory(prefix="formsign-ap-") as tmp:
        if placement is not None:
            page = _clamp_page(writer, placement.page)
            spec_kwargs["on_page"] = page
            spec_kwargs["box"] = placement.box
            spec_kwargs["readable_field_name"] = request.signer_name

            ap_path = Path(tmp) / "appearance.pdf"
            ap_path.write_bytes(render_appearance_pdf(
                placement.width,
                placement.height,
                signer_name=request.signer_name,
                date_text=format_local(signed_at, opts.date_format, opts.timezone),
                label=opts.label,
            ))
            stamp_style = StaticStampStyle.from_pdf_file(str(ap_path), border_width=0)

        meta = signers.PdfSignatureMetadata(
            field_name=field_name,
            md_algorithm="sha256",
            subfilter=fields.SigSeedSubFilter.ADOBE_PKCS7_DETACHED,
            name=f"{opts.name_prefix} {request.signer_name}",
            reason=f"Signature {request.signer_name}",
            **meta_kwargs,
        )

        out = BytesIO()
        try:
            fields.append_signature_field(writer, fields.SigFieldSpec(**spec_kwargs))
            pdf_signer = signers.PdfSigner(
                meta,
                signer=identity.signer(),
                stamp_style=stamp_style,
            )
            pdf_signer.sign_pdf(
                writer,
                existing_fields_only=True,
                bytes_reserved=opts.reserved_bytes,
                output=out,
            )
        except (SigningError, PdfError, ValueError, TypeError, KeyError, OSError) as e:
            log.error("Signing failed for %s (%s): %s", request.signer_name, request.kind.value, e)
            raise SigningFailedError(f"Signing failed: {e}") from e

    log.info(
        "Signed revision appended: field=%s kind=%s signer=%s",
        field_name, request.kind.value, request.signer_name,
    )
    return SignedRevision(pdf_bytes=out.getvalue(), field_name=field_name)
