"""LatexFig - Figure export with LaTeX-typeset text.

Exports a figure scene to PDF, EPS, PNG, JPEG or TIFF with every label
typeset by LaTeX (through psfrag), optionally rendering selected objects
as pixels with a true alpha channel over the vector layer.
"""

__version__ = "0.1.0"

from .core.config import LatexFigConfig
from .core.errors import (
    ConfigurationError,
    ConversionError,
    LatexFigError,
    PreconditionError,
    TypesetError,
)
from .core.options import ExportOptions, parse_export_args
from .pipeline import ExportResult, export, export_figure
from .scene import AxesObject, CropBox, Scene, TextObject

__all__ = [
    "AxesObject",
    "ConfigurationError",
    "ConversionError",
    "CropBox",
    "ExportOptions",
    "ExportResult",
    "LatexFigConfig",
    "LatexFigError",
    "PreconditionError",
    "Scene",
    "TextObject",
    "TypesetError",
    "export",
    "export_figure",
    "parse_export_args",
]
