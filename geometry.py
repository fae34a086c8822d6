"""
geometry.py

Normalized rectangle type for layoutsketch annotations.

All coordinates are fractions of the reference image (0..1).  A ``Rect``
carries no notion of which frame it lives in; callers decide whether it
is relative to a parent annotation or absolute in the image frame.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in normalized image coordinates.

    Attributes:
        x: Left edge.
        y: Top edge.
        w: Width.
        h: Height.
    """
    x: float = 0.0
    y: float = 0.0
    w: float = 0.0
    h: float = 0.0

    @classmethod
    def from_corners(cls, x1: float, y1: float, x2: float, y2: float) -> "Rect":
        """Build a rect from two opposite corners in any drag direction."""
        left, right = min(x1, x2), max(x1, x2)
        top, bottom = min(y1, y2), max(y1, y2)
        return cls(left, top, right - left, bottom - top)

    @classmethod
    def from_pixels(cls, x: float, y: float, w: float, h: float,
                    image_width: float, image_height: float) -> "Rect":
        """Normalize a pixel-space rectangle against the natural image size.

        Raises:
            ValueError: If either image dimension is not positive.
        """
        if image_width <= 0 or image_height <= 0:
            raise ValueError(f"invalid image size {image_width}x{image_height}")
        return cls(x / image_width, y / image_height, w / image_width, h / image_height)

    def offset(self, dx: float, dy: float) -> "Rect":
        """Return a copy moved by ``(dx, dy)``; size unchanged."""
        return Rect(self.x + dx, self.y + dy, self.w, self.h)

    def translate_to(self, origin: "Rect") -> "Rect":
        """Express this relative rect in the frame that contains *origin*."""
        return self.offset(origin.x, origin.y)

    def relative_to(self, origin: "Rect") -> "Rect":
        """Inverse of :meth:`translate_to`."""
        return self.offset(-origin.x, -origin.y)

    def scale(self, sx: float, sy: float) -> "Rect":
        return Rect(self.x * sx, self.y * sy, self.w * sx, self.h * sy)

    def to_pixels(self, image_width: float, image_height: float) -> "Rect":
        return self.scale(image_width, image_height)

    def contains(self, px: float, py: float) -> bool:
        """Boundary-inclusive point containment."""
        return self.x <= px <= self.x + self.w and self.y <= py <= self.y + self.h

    @property
    def area(self) -> float:
        return self.w * self.h

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.w, self.h)
