# signature/models/signature_enums.py
from __future__ import annotations
from enum import Enum, IntEnum


class PermissionLevel(IntEnum):
    """DocMDP permission levels of a certification signature (ISO 32000-1, 12.8.2.2)."""
    NO_CHANGES = 1
    FORM_FILL  = 2
    ANNOTATE   = 3

    @classmethod
    def parse(cls, value: "str | int | PermissionLevel") -> "PermissionLevel":
        """Accepts a member, its value or its name (case-insensitive)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int):
            return cls(value)
        text = str(value).strip()
        if text.isdigit():
            return cls(int(text))
        return cls[text.upper()]


class SignatureKind(str, Enum):
    CERTIFICATION = "certification"
    APPROVAL      = "approval"
