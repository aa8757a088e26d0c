"""Scene model for figure export.

This module provides data structures describing a figure: the scene root,
axes containers, drawable objects, and crop-region geometry.
"""

from .crop import CropBox
from .scene import (
    AxesObject,
    DrawableObject,
    LightObject,
    LineObject,
    PatchObject,
    Scene,
    SurfaceObject,
    TextObject,
    convert_length,
)

__all__ = [
    "AxesObject",
    "CropBox",
    "DrawableObject",
    "LightObject",
    "LineObject",
    "PatchObject",
    "Scene",
    "SurfaceObject",
    "TextObject",
    "convert_length",
]
