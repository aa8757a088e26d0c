"""Core modules for LatexFig."""

from .config import LatexFigConfig
from .errors import (
    ConfigurationError,
    ConversionError,
    LatexFigError,
    PreconditionError,
    TypesetError,
)
from .options import ExportOptions, parse_export_args
from .snapshot import SceneEditor, SceneSnapshot, preserved_scene

__all__ = [
    "ConfigurationError",
    "ConversionError",
    "ExportOptions",
    "LatexFigConfig",
    "LatexFigError",
    "PreconditionError",
    "SceneEditor",
    "SceneSnapshot",
    "TypesetError",
    "parse_export_args",
    "preserved_scene",
]
