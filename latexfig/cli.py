"""Command-line interface for LatexFig.

Usage:
    latexfig export scene.json figure.pdf [options]
    latexfig scene-info scene.json
    latexfig init-config
    latexfig check-tools
"""

from __future__ import annotations

import logging
from typing import Any

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .core.config import LatexFigConfig
from .core.errors import LatexFigError
from .core.options import parse_export_args
from .pipeline import export_figure
from .scene.scene import AxesObject, Scene, TextObject
from .typeset.tools import ToolRunner

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich output."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False)],
    )


def _load_config(path: str | None) -> LatexFigConfig:
    if not path:
        return LatexFigConfig.default()
    try:
        return LatexFigConfig.from_file(path)
    except (OSError, ValueError) as e:
        console.print(f"[bold red]Error: invalid config file {path}: {e}[/bold red]")
        raise click.Abort()


def _load_scene(path: str) -> Scene:
    # pydantic ValidationError and JSONDecodeError are both ValueErrors
    try:
        return Scene.load(path)
    except (OSError, ValueError) as e:
        console.print(f"[bold red]Error: invalid scene file {path}: {e}[/bold red]")
        raise click.Abort()


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """LatexFig - Figure export with LaTeX-typeset text."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)


@main.command()
@click.argument("scene_file", type=click.Path(exists=True))
@click.argument("filename")
@click.option("--pdf", "pdf", is_flag=True, help="Write PDF")
@click.option("--eps", "eps", is_flag=True, help="Write EPS")
@click.option("--png", "png", is_flag=True, help="Write PNG")
@click.option("--jpg", "jpg", is_flag=True, help="Write JPEG")
@click.option("--tiff", "tiff", is_flag=True, help="Write TIFF")
@click.option("--quality", "-q", type=click.IntRange(1, 100), default=None, help="JPEG quality")
@click.option("--resolution", "-r", type=click.IntRange(min=1), default=None, help="Pixels per inch")
@click.option("--anti-alias", "-a", type=click.IntRange(min=1), default=None, help="Anti-aliasing factor")
@click.option("--nocrop", "--loose", is_flag=True, help="Keep the full canvas")
@click.option("--transparent", is_flag=True, help="Remove the figure background")
@click.option(
    "--rasterize",
    multiple=True,
    metavar="ID",
    help="Object ID to render as pixels (repeatable)",
)
@click.option(
    "--latex-package",
    multiple=True,
    metavar="LINE",
    help="Preamble line, e.g. '\\usepackage{amsmath}' (repeatable)",
)
@click.option(
    "--crop",
    type=float,
    nargs=4,
    default=None,
    metavar="L B W H",
    help="Crop region in normalized figure units",
)
@click.option(
    "--renderer",
    type=click.Choice(["opengl", "painters", "zbuffer"]),
    default=None,
    help="Renderer for rasterized objects",
)
@click.option(
    "--config", "-c",
    type=click.Path(exists=True),
    help="Path to configuration file",
)
def export(
    scene_file: str,
    filename: str,
    pdf: bool,
    eps: bool,
    png: bool,
    jpg: bool,
    tiff: bool,
    quality: int | None,
    resolution: int | None,
    anti_alias: int | None,
    nocrop: bool,
    transparent: bool,
    rasterize: tuple[str, ...],
    latex_package: tuple[str, ...],
    crop: tuple[float, float, float, float] | None,
    renderer: str | None,
    config: str | None,
) -> None:
    """Export a scene with LaTeX-typeset text.

    SCENE_FILE: Scene JSON file
    FILENAME: Output name; a .pdf/.eps/.png/.jpg/.tif extension selects a format
    """
    cfg = _load_config(config)

    selected = {"-pdf": pdf, "-eps": eps, "-png": png, "-jpg": jpg, "-tiff": tiff}
    args: list[Any] = [filename] + [flag for flag, on in selected.items() if on]
    if quality is not None:
        args.append(f"-q{quality}")
    if resolution is not None:
        args.append(f"-r{resolution}")
    if anti_alias is not None:
        args.append(f"-a{anti_alias}")
    if nocrop:
        args.append("-nocrop")
    if transparent:
        args.append("-transparent")
    if rasterize:
        args += ["-rasterize", list(rasterize)]
    if latex_package:
        args += ["-latexpackages", list(latex_package)]
    if crop:
        args += ["-crop", list(crop)]
    if renderer:
        args.append(f"-{renderer}")

    try:
        scene = _load_scene(scene_file)
        scene, options = parse_export_args(args, default_scene=scene, defaults=cfg.defaults)
        result = export_figure(scene, options, config=cfg)
    except LatexFigError as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise click.Abort()

    table = Table(title="Exported Files")
    table.add_column("Format", style="cyan")
    table.add_column("File", style="green")
    for fmt in options.formats:
        path = result.outputs.get(fmt)
        table.add_row(fmt, str(path) if path else "[red]failed[/red]")
    console.print(table)

    if not result.ok:
        console.print(f"[yellow]{len(result.warnings)} warning(s) during export[/yellow]")
        raise SystemExit(1)


@main.command()
@click.argument("scene_file", type=click.Path(exists=True))
def scene_info(scene_file: str) -> None:
    """Show the drawables of a scene file.

    SCENE_FILE: Scene JSON file
    """
    scene = _load_scene(scene_file)
    width, height = scene.size_inches()

    console.print(f"\n[bold]Scene Info: {scene.name}[/bold]\n")
    console.print(f"[cyan]Size:[/cyan] {width:.2f} x {height:.2f} in")
    console.print(f"[cyan]Background:[/cyan] {scene.color}")

    table = Table(title="Drawables")
    table.add_column("ID", style="cyan")
    table.add_column("Kind", style="magenta")
    table.add_column("Name", style="white")
    table.add_column("Visible", style="green")
    table.add_column("Details", style="dim")

    for obj in scene.walk():
        if isinstance(obj, TextObject):
            details = f"{' / '.join(obj.lines)!r} ({obj.font_size:g} pt)"
        elif isinstance(obj, AxesObject):
            details = f"{obj.projection}, {len(obj.children)} children"
        else:
            details = ""
        indent = "" if scene.parent_of(obj) is scene else "  "
        table.add_row(
            obj.id,
            indent + obj.kind,
            obj.name,
            "Yes" if obj.visible else "No",
            details,
        )
    console.print(table)


@main.command()
@click.option(
    "--output", "-o",
    type=click.Path(),
    default="latexfig_config.json",
    help="Output path for config file",
)
def init_config(output: str) -> None:
    """Generate a default configuration file."""
    cfg = LatexFigConfig.default()
    cfg.to_file(output)
    console.print(f"[green]Created config file: {output}[/green]")


@main.command()
@click.option(
    "--config", "-c",
    type=click.Path(exists=True),
    help="Path to configuration file",
)
def check_tools(config: str | None) -> None:
    """Report which external programs are available."""
    cfg = _load_config(config)
    found = ToolRunner(cfg.toolchain).available()

    table = Table(title="External Programs")
    table.add_column("Role", style="cyan")
    table.add_column("Path", style="green")
    for role, path in found.items():
        table.add_row(role, path or "[red]not found[/red]")
    console.print(table)

    if not all(found.values()):
        raise SystemExit(1)


if __name__ == "__main__":
    main()
