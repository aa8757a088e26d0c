"""Crop-region geometry.

A crop box is given in normalized figure units as (left, bottom, width,
height). Cropping scales the figure size by (width, height) and maps every
direct child axes position into the cropped frame. Values outside [0, 1]
are allowed: negative offsets and sizes above 1 grow the output.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from .scene import Rect


class CropBox(BaseModel):
    """Bounding box of the exported region in normalized figure units.

    Attributes:
        left: Left edge (may be negative)
        bottom: Bottom edge (may be negative)
        width: Relative width (> 0, may exceed 1)
        height: Relative height (> 0, may exceed 1)
    """

    left: float = Field(default=0.0)
    bottom: float = Field(default=0.0)
    width: float = Field(default=1.0)
    height: float = Field(default=1.0)

    model_config = {"frozen": True}

    @field_validator("width", "height")
    @classmethod
    def _positive(cls, v: float) -> float:
        if not v > 0:
            raise ValueError("crop width and height must be positive")
        return v

    @classmethod
    def from_sequence(cls, values: tuple[float, ...] | list[float]) -> CropBox:
        """Create from a [left, bottom, width, height] sequence."""
        if len(values) != 4:
            raise ValueError(
                "Invalid crop. Must have format [left bottom width height] in normalized units."
            )
        left, bottom, width, height = (float(v) for v in values)
        return cls(left=left, bottom=bottom, width=width, height=height)

    def as_tuple(self) -> Rect:
        return (self.left, self.bottom, self.width, self.height)

    @property
    def is_identity(self) -> bool:
        """True for the default [0, 0, 1, 1] box."""
        return self.as_tuple() == (0.0, 0.0, 1.0, 1.0)

    def scale_figure(self, position: Rect) -> Rect:
        """Scale a figure position so its size covers the cropped region."""
        x, y, w, h = position
        return (x, y, w * self.width, h * self.height)

    def apply(self, position: Rect) -> Rect:
        """Map an axes position from figure to cropped coordinates."""
        x, y, w, h = position
        return (
            (x - self.left) / self.width,
            (y - self.bottom) / self.height,
            w / self.width,
            h / self.height,
        )

    def invert(self, position: Rect) -> Rect:
        """Map an axes position from cropped back to figure coordinates.

        Floating point makes ``invert(apply(p))`` approximate; exact
        restoration goes through the scene snapshot.
        """
        x, y, w, h = position
        return (
            x * self.width + self.left,
            y * self.height + self.bottom,
            w * self.width,
            h * self.height,
        )

    def __repr__(self) -> str:
        return (
            f"CropBox(left={self.left:g}, bottom={self.bottom:g}, "
            f"width={self.width:g}, height={self.height:g})"
        )
