"""Backend-neutral draw primitives produced by the footprint renderer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Union

BID_COLOR = "rgba(34, 197, 94, 0.9)"
ASK_COLOR = "rgba(239, 68, 68, 0.9)"
BID_HIGHLIGHT = "rgba(34, 197, 94, 0.7)"
ASK_HIGHLIGHT = "rgba(239, 68, 68, 0.7)"
HIGHLIGHT_TEXT = "#000"
SEPARATOR_COLOR = "rgba(255, 255, 255, 0.15)"
FONT_FAMILY = "monospace"


@dataclass(frozen=True)
class FillRect:
    x: float
    y: float
    width: float
    height: float
    color: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": "rect", "x": self.x, "y": self.y, "width": self.width, "height": self.height, "color": self.color}


@dataclass(frozen=True)
class TextLabel:
    x: float
    y: float
    text: str
    align: Literal["left", "right", "center"]
    font_size: float
    color: str
    font_family: str = FONT_FAMILY

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "text",
            "x": self.x,
            "y": self.y,
            "text": self.text,
            "align": self.align,
            "font": f"{self.font_size:g}px {self.font_family}",
            "color": self.color,
        }


@dataclass(frozen=True)
class LineSegment:
    x1: float
    y1: float
    x2: float
    y2: float
    color: str
    width: float = 1.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "line",
            "x1": self.x1,
            "y1": self.y1,
            "x2": self.x2,
            "y2": self.y2,
            "color": self.color,
            "width": self.width,
        }


Primitive = Union[FillRect, TextLabel, LineSegment]
