"""Raster and vector rendering of scenes."""

from .backend import MatplotlibBackend, PostScriptLabel, RenderBackend
from .raster import (
    RenderedLayer,
    alpha_from_backgrounds,
    downscale,
    rasterize_selection,
    write_png,
)
from .vector import export_vector_document, strip_eps_background

__all__ = [
    "MatplotlibBackend",
    "PostScriptLabel",
    "RenderBackend",
    "RenderedLayer",
    "alpha_from_backgrounds",
    "downscale",
    "export_vector_document",
    "rasterize_selection",
    "strip_eps_background",
    "write_png",
]
