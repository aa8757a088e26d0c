"""Export orchestration.

One export runs these stages in order::

    validate -> snapshot -> substitute text -> crop -> fix paper size
      -> [rasterize selection] -> vector document -> [strip background]
      -> restore scene -> typeset -> convert formats -> cleanup

Everything that touches the scene happens inside ``preserved_scene``, so
the scene is restored before typesetting starts and also when any stage
fails. The working directory is removed on every exit path.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .core.config import LatexFigConfig
from .core.errors import ConfigurationError, ConversionError, TypesetError
from .core.options import RASTER_FORMATS, ExportOptions, parse_export_args
from .core.snapshot import SceneEditor, preserved_scene
from .render.backend import MatplotlibBackend, RenderBackend
from .render.raster import rasterize_selection, write_png
from .render.vector import export_vector_document, strip_eps_background
from .scene.crop import CropBox
from .scene.scene import AxesObject, Scene, TextObject
from .typeset.documents import overlay_document, psfrag_document
from .typeset.markup import substitute_text
from .typeset.tools import ToolResult, ToolRunner

logger = logging.getLogger(__name__)

LAYER_NAME = "layer"
TYPESET_NAME = "figure"
OVERLAY_NAME = "overlay"


@dataclass
class ExportResult:
    """Files produced by one export.

    Attributes:
        requested: Formats that were asked for
        outputs: Produced file per format
        warnings: Messages for stages that failed without aborting
    """

    requested: tuple[str, ...] = ()
    outputs: dict[str, Path] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when every requested format was produced."""
        return all(fmt in self.outputs for fmt in self.requested)

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)


def apply_crop(scene: Scene, crop: CropBox, editor: SceneEditor) -> None:
    """Resize the figure to the crop region and move its children into it."""
    if crop.is_identity:
        return
    editor.set(scene, "position", crop.scale_figure(scene.position))
    for child in scene.children:
        if isinstance(child, AxesObject):
            editor.set(child, "position", crop.apply(child.position))
        elif isinstance(child, TextObject):
            x, y, *rest = child.position
            cx, cy, _, _ = crop.apply((x, y, 0.0, 0.0))
            editor.set(child, "position", (cx, cy, *rest))


def fix_paper_size(scene: Scene, editor: SceneEditor, screen_ppi: float) -> None:
    """Make the printed page exactly the size of the figure."""
    position = scene.position_in("centimeters", screen_ppi)
    _, _, width, height = position
    editor.set(scene, "units", "centimeters")
    editor.set(scene, "position", position)
    editor.set(scene, "paper_units", "centimeters")
    editor.set(scene, "paper_position_mode", "manual")
    editor.set(scene, "paper_size", (width, height))
    editor.set(scene, "paper_position", (0.0, 0.0, width, height))


def _prepare_raster_layer(
    scene: Scene,
    options: ExportOptions,
    editor: SceneEditor,
    backend: RenderBackend,
    ppi: float,
    png_path: Path,
) -> None:
    # Parent axes are transparent for the raster pass only; their background
    # belongs to the vector layer underneath.
    selected = [scene.find(object_id) for object_id in options.rasterize]
    with SceneEditor() as raster_editor:
        for obj in selected:
            parent = scene.parent_of(obj)
            if isinstance(parent, AxesObject):
                raster_editor.set(parent, "color", "none")

        layer = rasterize_selection(
            scene,
            options.rasterize,
            backend,
            anti_alias=options.anti_alias,
            renderer=options.renderer,
            ppi=ppi,
        )
    write_png(layer, png_path)

    for obj in selected:
        editor.set(obj, "visible", False)


def _collect(
    result: ExportResult,
    fmt: str,
    target: Path,
    tool: ToolResult | None = None,
) -> None:
    if tool is not None and not tool.ok:
        result.warn(str(ConversionError(fmt, f"{tool.args[0]} failed", tool.output)))
    elif not target.exists():
        result.warn(str(ConversionError(fmt, f"{target.name} was not produced")))
    else:
        result.outputs[fmt] = target
        logger.info(f"Wrote {target}")


def _convert_raster(
    result: ExportResult,
    runner: ToolRunner,
    fmt: str,
    source: Path,
    target: Path,
    options: ExportOptions,
    density: int,
    flatten: bool,
) -> None:
    quality = options.quality if fmt == "jpg" else None
    tool = runner.convert(source, target, density, quality=quality, flatten=flatten or fmt == "jpg")
    _collect(result, fmt, target, tool)


def export_figure(
    scene: Scene,
    options: ExportOptions,
    *,
    config: LatexFigConfig | None = None,
    backend: RenderBackend | None = None,
    runner: ToolRunner | None = None,
) -> ExportResult:
    """Export a scene with LaTeX-typeset text.

    Args:
        scene: Scene to export; left unchanged afterwards
        options: Validated export options
        config: Toolchain and rendering configuration
        backend: Renderer (matplotlib if None)
        runner: External program runner

    Returns:
        ExportResult listing produced files and conversion warnings

    Raises:
        ConfigurationError: A rasterized object is not part of the scene
        TypesetError: LaTeX failed on the tag-substitution document
    """
    config = config or LatexFigConfig.default()
    backend = backend or MatplotlibBackend(
        screen_ppi=config.render.screen_ppi,
        tight_pad_inches=config.render.tight_pad_inches,
    )
    runner = runner or ToolRunner(config.toolchain)

    missing = [object_id for object_id in options.rasterize if not scene.contains(object_id)]
    if missing:
        raise ConfigurationError(f"Objects to rasterize are not part of the scene: {missing}")

    ppi = options.resolution or backend.screen_ppi
    density = int(round(ppi))
    result = ExportResult(requested=options.formats)
    logger.info(f"Exporting '{scene.name}' as {', '.join(options.formats)}")

    temp_parent = config.toolchain.temp_dir
    if temp_parent is not None:
        temp_parent.mkdir(parents=True, exist_ok=True)
    workdir = Path(tempfile.mkdtemp(prefix="latexfig-", dir=temp_parent))
    try:
        eps_path = workdir / f"{LAYER_NAME}.eps"
        png_path = workdir / f"{LAYER_NAME}.png"

        with preserved_scene(scene) as editor:
            tags = substitute_text(scene, editor)
            apply_crop(scene, options.crop, editor)
            fix_paper_size(scene, editor, backend.screen_ppi)
            if options.rasterizes:
                _prepare_raster_layer(scene, options, editor, backend, ppi, png_path)
            export_vector_document(scene, backend, eps_path, loose=options.nocrop)
            if (options.transparent or options.rasterizes) and scene.color != "none":
                strip_eps_background(eps_path)

        tex_path = workdir / f"{TYPESET_NAME}.tex"
        tex_path.write_text(psfrag_document(options.latex_packages, tags, eps_path.name))
        compiled = runner.latex(tex_path)
        if not compiled.ok:
            raise TypesetError("Error processing latex file.", compiled.output)

        dvi_path = tex_path.with_suffix(".dvi")
        typeset_pdf = tex_path.with_suffix(".pdf")
        dvi_to_pdf = runner.dvipdf(dvi_path, typeset_pdf)
        if not dvi_to_pdf.ok:
            result.warn(f"Error converting DVI to PDF.\n{dvi_to_pdf.output}".strip())

        targets = {fmt: options.output_path(fmt).resolve() for fmt in options.formats}
        for target in targets.values():
            target.parent.mkdir(parents=True, exist_ok=True)

        if options.rasterizes:
            final_pdf = _merge_layers(result, runner, workdir, typeset_pdf, png_path)
            for fmt, target in targets.items():
                if fmt == "pdf":
                    continue
                if final_pdf is None:
                    result.warn(str(ConversionError(fmt, "merged document is missing")))
                    continue
                if fmt == "eps":
                    logger.warning(
                        "EPS output with rasterized objects is fully rasterized. "
                        "Use PDF to keep text and lines as vectors."
                    )
                _convert_raster(result, runner, fmt, final_pdf, target, options, density, flatten=True)
        else:
            final_pdf = typeset_pdf
            for fmt, target in targets.items():
                if fmt == "eps":
                    _collect(result, fmt, target, runner.dvips(dvi_path, target))
                elif fmt in RASTER_FORMATS:
                    _convert_raster(result, runner, fmt, typeset_pdf, target, options, density, flatten=False)

        if "pdf" in targets:
            if final_pdf is not None and final_pdf.exists():
                shutil.move(str(final_pdf), targets["pdf"])
            _collect(result, "pdf", targets["pdf"])
    finally:
        if config.toolchain.keep_temp:
            logger.info(f"Kept working directory {workdir}")
        else:
            shutil.rmtree(workdir, ignore_errors=True)

    return result


def _merge_layers(
    result: ExportResult,
    runner: ToolRunner,
    workdir: Path,
    typeset_pdf: Path,
    png_path: Path,
) -> Path | None:
    """Compile the overlay document; returns the merged PDF or None."""
    if not typeset_pdf.exists():
        result.warn("Cannot merge raster and vector layers: typeset PDF is missing")
        return None

    overlay_tex = workdir / f"{OVERLAY_NAME}.tex"
    overlay_tex.write_text(overlay_document(typeset_pdf.name, png_path.name))
    merged = runner.pdflatex(overlay_tex)
    merged_pdf = overlay_tex.with_suffix(".pdf")
    if not merged.ok or not merged_pdf.exists():
        result.warn(f"Error merging raster and vector layers.\n{merged.output}".strip())
        return None
    return merged_pdf


def export(
    *args: Any,
    default_scene: Scene | None = None,
    config: LatexFigConfig | None = None,
    backend: RenderBackend | None = None,
    runner: ToolRunner | None = None,
) -> ExportResult:
    """Export using the token-style call contract.

    Example::

        export(scene, "figure.pdf", "-png", "-r300", "-rasterize", [surface])

    Args:
        *args: Tokens understood by ``parse_export_args``
        default_scene: Scene used when no Scene token is given
        config: Toolchain and rendering configuration
        backend: Renderer
        runner: External program runner

    Returns:
        ExportResult
    """
    config = config or LatexFigConfig.default()
    scene, options = parse_export_args(args, default_scene=default_scene, defaults=config.defaults)
    return export_figure(scene, options, config=config, backend=backend, runner=runner)
