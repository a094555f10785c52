from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Tuple


@dataclass(frozen=True)
class SignaturePlacement:
    """
    Visible signature rectangle on a PDF page (points; 1 pt = 1/72 inch), origin bottom-left.
    """
    page: int = 0
    x: float = 72 * 4           # 4 inches from left
    y: float = 72 * 1.5         # 1.5 inches from bottom
    width: float = 72 * 2.5
    height: float = 72 * 0.75

    @property
    def box(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SignaturePlacement":
        return cls(
            page=int(data.get("page") or 0),
            x=float(data["x"]),
            y=float(data["y"]),
            width=float(data["width"]),
            height=float(data["height"]),
        )
