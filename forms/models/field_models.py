"""
Form field models shared by the field codec, the value applier and the
workflow records.

Coordinates are PDF points (1 pt = 1/72 inch), origin bottom-left.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


# Custom entries written into every generated field object.
ASSIGN_KEY = "/Assign"
FIELD_TYPE_KEY = "/FieldType"

HELV_FONT = "/Helv"
TEXT_FONT_SIZE = 10
TOGGLE_MARK = "X"


class FieldType(str, Enum):
    """Semantic type of a field. The PDF control is always a text field."""
    TEXT = "text"
    CHECKBOX = "checkbox"
    RADIO = "radio"

    @property
    def is_toggle(self) -> bool:
        return self in (FieldType.CHECKBOX, FieldType.RADIO)

    @classmethod
    def parse(cls, value: Optional[str]) -> "FieldType":
        """None / blank means text; anything unknown raises ValueError."""
        if value is None or not str(value).strip():
            return cls.TEXT
        return cls(str(value).strip().lower())


def encode_value(field_type: Optional[str], value: Optional[str]) -> str:
    """
    Display text for a stored value: toggles become "X" for "true"
    (case-insensitive) and "" otherwise; text values pass through verbatim.
    """
    try:
        ftype = FieldType.parse(field_type)
    except ValueError:
        ftype = FieldType.TEXT
    if ftype.is_toggle:
        return TOGGLE_MARK if str(value or "").lower() == "true" else ""
    return value or ""


@dataclass(frozen=True)
class DetectedField:
    """A field found in an uploaded PDF (see ``extract_fields``)."""
    field_name: str
    field_type: FieldType
    page: int
    x: float
    y: float
    width: float
    height: float
    group_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fieldName": self.field_name,
            "fieldType": self.field_type.value,
            "page": self.page,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "groupName": self.group_name,
        }


@dataclass
class FieldDefinition:
    """
    One field of a workflow document. Doubles as the placement request when the
    master PDF is built (``current_value`` is then still empty).
    """
    field_name: str
    assigned_to: str
    field_type: FieldType = FieldType.TEXT
    page: int = 0
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    group_name: Optional[str] = None
    label: Optional[str] = None
    current_value: str = ""

    @property
    def rect(self) -> tuple[float, float, float, float]:
        """(llx, lly, urx, ury)"""
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fieldName": self.field_name,
            "label": self.label,
            "assignedTo": self.assigned_to,
            "fieldType": self.field_type.value,
            "groupName": self.group_name,
            "page": self.page,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "currentValue": self.current_value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldDefinition":
        return cls(
            field_name=str(data["fieldName"]),
            assigned_to=str(data.get("assignedTo") or ""),
            field_type=FieldType.parse(data.get("fieldType")),
            page=int(data.get("page") or 0),
            x=float(data.get("x") or 0.0),
            y=float(data.get("y") or 0.0),
            width=float(data.get("width") or 0.0),
            height=float(data.get("height") or 0.0),
            group_name=data.get("groupName"),
            label=data.get("label"),
            current_value=str(data.get("currentValue") or ""),
        )

