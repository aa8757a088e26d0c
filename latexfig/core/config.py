"""Configuration management for LatexFig.

This module defines the toolchain and rendering configuration using Pydantic
for validation. Configuration can be loaded from JSON files or constructed
programmatically.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field


class ToolchainParams(BaseModel):
    """External programs used to typeset and convert the figure.

    Each entry is the executable name (looked up on PATH) or an absolute path.
    """

    latex: str = Field(default="latex", description="LaTeX compiler producing DVI")
    pdflatex: str = Field(default="pdflatex", description="LaTeX compiler producing PDF")
    dvipdf: str = Field(default="dvipdf", description="DVI to PDF converter")
    dvips: str = Field(default="dvips", description="DVI to PostScript converter")
    convert: str = Field(default="convert", description="ImageMagick convert")

    timeout_sec: float = Field(
        default=120.0,
        gt=0,
        description="Timeout for each external program invocation",
    )
    temp_dir: Path | None = Field(
        default=None,
        description="Parent directory for per-export working directories (system temp if None)",
    )
    keep_temp: bool = Field(
        default=False,
        description="Keep the working directory after export (debugging)",
    )

    # Ghostscript shipped with some distributions breaks when the host
    # application injects its own libraries.
    clear_ld_library_path: bool = Field(
        default=True,
        description="Clear LD_LIBRARY_PATH in the environment of external programs",
    )


class RenderParams(BaseModel):
    """Rendering backend parameters."""

    screen_ppi: float = Field(
        default=96.0,
        gt=0,
        description="Native screen density in pixels per logical inch",
    )
    tight_pad_inches: float = Field(
        default=0.02,
        ge=0,
        description="Padding around the auto-cropped bounding box",
    )


class ExportDefaults(BaseModel):
    """Defaults applied when an export call does not specify a value."""

    quality: int = Field(default=90, ge=1, le=100, description="JPEG quality")
    anti_alias: int = Field(default=1, ge=1, le=16, description="Anti-aliasing factor")
    renderer: Literal["opengl", "painters", "zbuffer"] = Field(
        default="opengl",
        description="Renderer for rasterized objects",
    )
    latex_packages: list[str] = Field(
        default_factory=list,
        description="Preamble lines used when the caller gives none",
    )


class LatexFigConfig(BaseModel):
    """Main configuration container."""

    toolchain: ToolchainParams = Field(default_factory=ToolchainParams)
    render: RenderParams = Field(default_factory=RenderParams)
    defaults: ExportDefaults = Field(default_factory=ExportDefaults)

    @classmethod
    def from_file(cls, path: Path | str) -> LatexFigConfig:
        """Load configuration from a JSON file."""
        path = Path(path)
        with open(path) as f:
            data = json.load(f)
        return cls.model_validate(data)

    def to_file(self, path: Path | str) -> None:
        """Save configuration to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2)

    @classmethod
    def default(cls) -> LatexFigConfig:
        """Create a default configuration."""
        return cls()
