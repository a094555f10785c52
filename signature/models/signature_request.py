# signature/models/signature_request.py
"""
Transient signature requests.

Two shapes share a ``kind`` discriminator; the signing engine matches on it:

* ``CertificationRequest``  first signature of a document, carries a DocMDP level
* ``ApprovalRequest``       per-signer signature, locks the fields just filled
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple, Union

from .signature_enums import PermissionLevel, SignatureKind


@dataclass(frozen=True)
class CertificationRequest:
    signer_name: str
    permission_level: PermissionLevel = PermissionLevel.FORM_FILL
    kind: SignatureKind = field(default=SignatureKind.CERTIFICATION, init=False)


@dataclass(frozen=True)
class ApprovalRequest:
    signer_name: str
    fields_to_lock: Tuple[str, ...] = ()
    kind: SignatureKind = field(default=SignatureKind.APPROVAL, init=False)

    def __post_init__(self) -> None:
        # accept any iterable from callers, keep the record hashable
        object.__setattr__(self, "fields_to_lock", tuple(self.fields_to_lock))


SignatureRequest = Union[CertificationRequest, ApprovalRequest]
