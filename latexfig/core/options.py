"""Export options and the token-style call contract.

``ExportOptions`` is the validated, immutable configuration of one export.
``parse_export_args`` turns an order-independent list of tokens such as::

    [scene, "figure.pdf", "-png", "-r300", "-crop", [0.1, 0, 0.8, 1]]

into a scene and its options. Output formats come from explicit flags plus
a recognized extension on the file name.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Literal, Sequence

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ..scene.crop import CropBox
from ..scene.scene import Drawable, Scene
from .config import ExportDefaults
from .errors import ConfigurationError, PreconditionError

logger = logging.getLogger(__name__)

OutputFormat = Literal["pdf", "eps", "png", "jpg", "tiff"]
Renderer = Literal["opengl", "painters", "zbuffer"]

FORMAT_ORDER: tuple[str, ...] = ("pdf", "eps", "png", "jpg", "tiff")
RASTER_FORMATS = frozenset({"png", "jpg", "tiff"})

_EXTENSIONS = {
    ".pdf": "pdf",
    ".eps": "eps",
    ".png": "png",
    ".jpg": "jpg",
    ".jpeg": "jpg",
    ".tif": "tiff",
    ".tiff": "tiff",
}

_FORMAT_FLAGS = {
    "-pdf": "pdf",
    "-eps": "eps",
    "-png": "png",
    "-jpg": "jpg",
    "-jpeg": "jpg",
    "-tif": "tiff",
    "-tiff": "tiff",
}

_FILENAME_RE = re.compile(r"^[/\\\w][/\\\w.\-]*$")
_QUALITY_RE = re.compile(r"^-q([1-9]|[1-9][0-9]|100)$")
_RESOLUTION_RE = re.compile(r"^-r([0-9]+)$")
_ANTIALIAS_RE = re.compile(r"^-a([0-9]+)$")


class ExportOptions(BaseModel):
    """Validated configuration for a single export."""

    filename: str = Field(description="Output base name, without extension")
    formats: tuple[OutputFormat, ...] = Field(description="Requested output formats")
    crop: CropBox = Field(default_factory=CropBox)
    nocrop: bool = Field(default=False, description="Keep the full canvas instead of auto-cropping")
    transparent: bool = Field(default=False, description="Drop the figure background")
    rasterize: tuple[str, ...] = Field(
        default=(),
        description="IDs of drawables rendered as pixels",
    )
    resolution: int | None = Field(
        default=None,
        gt=0,
        description="Pixels per logical inch (native screen density if None)",
    )
    quality: int = Field(default=90, ge=1, le=100, description="JPEG quality")
    anti_alias: int = Field(default=1, ge=1, description="Anti-aliasing factor")
    renderer: Renderer = Field(default="opengl")
    latex_packages: tuple[str, ...] = Field(default=(), description="Extra preamble lines")

    model_config = {"frozen": True}

    @field_validator("filename")
    @classmethod
    def _filename_present(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Invalid file name")
        return v

    @field_validator("formats")
    @classmethod
    def _formats_distinct(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if not v:
            raise ValueError("No output format specified.")
        if len(set(v)) != len(v):
            raise ValueError(f"Duplicate output formats: {list(v)}")
        return tuple(sorted(v, key=FORMAT_ORDER.index))

    @field_validator("crop", mode="before")
    @classmethod
    def _crop_from_sequence(cls, v: Any) -> Any:
        if isinstance(v, (list, tuple)):
            return CropBox.from_sequence(v)
        return v

    @model_validator(mode="before")
    @classmethod
    def _rasterize_implies_nocrop(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("rasterize") and not data.get("nocrop"):
            logger.warning(
                'Enabling "nocrop" for the rasterized image to avoid '
                "different cropping of the raster and vector layers."
            )
            data = dict(data, nocrop=True)
        return data

    @classmethod
    def build(cls, **kwargs: Any) -> ExportOptions:
        """Validate keyword options, raising ConfigurationError on failure."""
        try:
            return cls(**kwargs)
        except ValidationError as e:
            messages = "; ".join(err["msg"] for err in e.errors())
            raise ConfigurationError(messages) from e

    @property
    def rasterizes(self) -> bool:
        """True when part of the scene is rendered as pixels."""
        return bool(self.rasterize)

    def output_path(self, fmt: str) -> Path:
        """Final output path for one format."""
        return Path(f"{self.filename}.{fmt}")


def split_format_suffix(filename: str) -> tuple[str, str | None]:
    """Strip a recognized graphics extension from a file name.

    Returns:
        Tuple of (base name, format or None)
    """
    path = Path(filename)
    fmt = _EXTENSIONS.get(path.suffix.lower())
    if fmt is None:
        return filename, None
    return filename[: -len(path.suffix)], fmt


def _as_id_list(value: Any) -> list[str]:
    items = value if isinstance(value, (list, tuple, set, frozenset)) else [value]
    ids = []
    for item in items:
        if isinstance(item, Drawable):
            ids.append(item.id)
        elif isinstance(item, str):
            ids.append(item)
        else:
            raise ConfigurationError(f"Invalid -rasterize entry: {item!r}")
    return ids


def _take(args: Sequence[Any], i: int, flag: str) -> Any:
    if i + 1 >= len(args):
        raise ConfigurationError(f"Option {flag} requires a value")
    return args[i + 1]


def parse_export_args(
    args: Sequence[Any],
    *,
    default_scene: Scene | None = None,
    defaults: ExportDefaults | None = None,
) -> tuple[Scene, ExportOptions]:
    """Parse an order-independent token list into a scene and options.

    Args:
        args: Tokens: the output file name, an optional Scene, flags
            (``-pdf``, ``-q90``, ``-crop [l,b,w,h]``, ...)
        default_scene: Scene used when no Scene token is given
        defaults: Defaults for quality, anti-aliasing, renderer and preamble

    Returns:
        Tuple of (scene, options)

    Raises:
        PreconditionError: No scene given and no default available
        ConfigurationError: Missing file name, no format, malformed values
    """
    defaults = defaults or ExportDefaults()
    scene = default_scene
    filename: str | None = None
    formats: set[str] = set()
    opts: dict[str, Any] = {
        "quality": defaults.quality,
        "anti_alias": defaults.anti_alias,
        "renderer": defaults.renderer,
        "latex_packages": tuple(defaults.latex_packages),
    }

    i = 0
    while i < len(args):
        token = args[i]
        if isinstance(token, Scene):
            scene = token
            i += 1
            continue
        if not isinstance(token, str):
            logger.warning(f"Unrecognized option or scene: {token!r}")
            i += 1
            continue

        flag = token.lower()
        if flag in ("-opengl", "-zbuffer", "-painters"):
            opts["renderer"] = flag[1:]
            i += 1
        elif flag == "-renderer":
            opts["renderer"] = str(_take(args, i, token)).lower().lstrip("-")
            i += 2
        elif flag == "-rasterize":
            opts["rasterize"] = tuple(_as_id_list(_take(args, i, token)))
            i += 2
        elif flag == "-transparent":
            opts["transparent"] = True
            i += 1
        elif flag == "-latexpackages":
            packages = _take(args, i, token)
            if isinstance(packages, str):
                packages = [packages]
            opts["latex_packages"] = tuple(str(p) for p in packages)
            i += 2
        elif flag in ("-loose", "-nocrop"):
            opts["nocrop"] = True
            i += 1
        elif flag == "-crop":
            value = _take(args, i, token)
            try:
                opts["crop"] = CropBox.from_sequence(list(value))
            except (TypeError, ValueError) as e:
                raise ConfigurationError(
                    "Invalid -crop option. Must have format [left bottom width height] "
                    "in normalized units."
                ) from e
            i += 2
        elif flag in _FORMAT_FLAGS:
            formats.add(_FORMAT_FLAGS[flag])
            i += 1
        elif _QUALITY_RE.match(flag):
            opts["quality"] = int(flag[2:])
            i += 1
        elif _RESOLUTION_RE.match(flag):
            opts["resolution"] = int(flag[2:])
            i += 1
        elif _ANTIALIAS_RE.match(flag):
            opts["anti_alias"] = int(flag[2:])
            i += 1
        elif _FILENAME_RE.match(token):
            filename = token
            i += 1
        else:
            logger.warning(f"Unrecognized option or invalid file name: '{token}'")
            i += 1

    if scene is None:
        raise PreconditionError("No scene available.")
    if not filename:
        raise ConfigurationError("Invalid file name")

    filename, suffix_format = split_format_suffix(filename)
    if suffix_format is not None:
        formats.add(suffix_format)
    if not formats:
        raise ConfigurationError("No output format specified.")

    options = ExportOptions.build(filename=filename, formats=tuple(formats), **opts)
    return scene, options
