"""Rendering backend built on matplotlib.

A matplotlib ``Figure`` is rebuilt from the scene for every render, so the
output always reflects the scene's current (possibly temporarily edited)
state. Pixels come from the Agg canvas; vector output from the PostScript
backend.

In vector mode text is still laid out by matplotlib, which keeps the tight
bounding box identical to the on-screen figure, but it is drawn fully
transparent. A companion artist writes each label as a literal PostScript
``show`` string at the text anchor, which is what psfrag looks for when it
replaces placeholder tags.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

import numpy as np
from matplotlib import colormaps
from matplotlib.artist import Artist
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.colors import LightSource, Normalize
from matplotlib.figure import Figure
from matplotlib.patches import Polygon
from mpl_toolkits.mplot3d import art3d, proj3d

from ..scene.scene import (
    AxesObject,
    LightObject,
    LineObject,
    PatchObject,
    Scene,
    SurfaceObject,
    TextObject,
)

logger = logging.getLogger(__name__)

_VERTICAL = {"top": "top", "cap": "top", "middle": "center", "baseline": "baseline", "bottom": "bottom"}
_HORIZONTAL_FRACTION = {"left": 0.0, "center": 0.5, "right": 1.0}

# Baseline offset of the PostScript tag relative to its anchor, in units of
# font size (Helvetica metrics).
_VERTICAL_OFFSET = {"top": -0.72, "cap": -0.72, "middle": -0.255, "baseline": 0.0, "bottom": 0.21}

# Drawn after every axes
_LABEL_ZORDER = 100


class RenderBackend(Protocol):
    """What the export pipeline needs from a renderer."""

    screen_ppi: float

    def render_pixels(self, scene: Scene, magnify: float, renderer: str) -> np.ndarray:
        """Render visible content to an (H, W, 3) uint8 array."""
        ...

    def render_vector(self, scene: Scene, path: Path, loose: bool) -> Path:
        """Render visible content to an EPS file."""
        ...


def _ps_string(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


class PostScriptLabel(Artist):
    """Writes a text label as a literal PostScript string.

    Only draws on PostScript renderers; other renderers ignore it.
    """

    def __init__(self, text: TextObject, artist, axes=None):
        super().__init__()
        self.text = text
        self.artist = artist
        self.axes_3d = axes
        self.set_zorder(_LABEL_ZORDER)
        self.set_in_layout(False)

    def anchor(self) -> tuple[float, float]:
        """Display coordinates of the text anchor."""
        if self.axes_3d is not None:
            x, y, z = (tuple(self.text.position) + (0.0,))[:3]
            xs, ys, _ = proj3d.proj_transform(x, y, z, self.axes_3d.get_proj())
            return tuple(self.axes_3d.transData.transform((xs, ys)))
        position = self.artist.get_unitless_position()
        return tuple(self.artist.get_transform().transform(position))

    def postscript(self) -> str:
        x, y = self.anchor()
        size = self.text.font_size
        r, g, b = self.text.color
        label = _ps_string(" ".join(self.text.lines))
        hfrac = _HORIZONTAL_FRACTION[self.text.horizontal_alignment]
        voff = _VERTICAL_OFFSET[self.text.vertical_alignment] * size
        return (
            "gsave\n"
            f"/Helvetica findfont {size:g} scalefont setfont\n"
            f"{r:g} {g:g} {b:g} setrgbcolor\n"
            f"{x:.4f} {y:.4f} translate\n"
            f"{self.text.rotation:g} rotate\n"
            f"({label}) stringwidth pop {hfrac:g} mul neg {voff:.4f} moveto\n"
            f"({label}) show\n"
            "grestore\n"
        )

    def draw(self, renderer) -> None:
        writer = getattr(renderer, "_pswriter", None)
        if writer is None or not self.get_visible():
            return
        writer.write(self.postscript())


class MatplotlibBackend:
    """Render scenes with matplotlib.

    Args:
        screen_ppi: Native density in pixels per logical inch
        tight_pad_inches: Padding around the tight bounding box in vector mode
    """

    def __init__(self, screen_ppi: float = 96.0, tight_pad_inches: float = 0.02):
        self.screen_ppi = screen_ppi
        self.tight_pad_inches = tight_pad_inches

    def build_figure(
        self,
        scene: Scene,
        vector: bool = False,
        renderer: str = "opengl",
        dpi: float | None = None,
    ) -> Figure:
        """Create a matplotlib figure mirroring the visible scene.

        Args:
            scene: Scene to draw
            vector: Draw text as PostScript labels instead of glyphs
            renderer: ``opengl`` keeps partial transparency; other
                renderers draw everything opaque
            dpi: Figure density (screen density if None)

        Returns:
            Figure, not attached to any pyplot state
        """
        fig = Figure(figsize=scene.size_inches(self.screen_ppi), dpi=dpi or self.screen_ppi)
        if scene.color == "none":
            fig.patch.set_visible(False)
        else:
            fig.patch.set_facecolor(scene.color)

        opaque = renderer != "opengl"
        for child in scene.children:
            if isinstance(child, AxesObject):
                self._add_axes(fig, child, vector, opaque)
            elif child.visible and not child.is_blank():
                artist = fig.text(*child.position[:2], "", transform=fig.transFigure)
                self._style_text(artist, child, vector)
                if vector:
                    fig.add_artist(PostScriptLabel(child, artist))
        return fig

    def _add_axes(self, fig: Figure, axes: AxesObject, vector: bool, opaque: bool) -> None:
        is_3d = axes.projection == "3d"
        ax = fig.add_axes(axes.position, projection="3d" if is_3d else None)

        if axes.xlim is not None:
            ax.set_xlim(axes.xlim)
        if axes.ylim is not None:
            ax.set_ylim(axes.ylim)
        if is_3d:
            if axes.zlim is not None:
                ax.set_zlim(axes.zlim)
            ax.view_init(elev=axes.view[0], azim=axes.view[1])
        ax.grid(axes.grid)

        if axes.color == "none":
            ax.patch.set_visible(False)
            if is_3d:
                for axis in (ax.xaxis, ax.yaxis, ax.zaxis):
                    axis.set_pane_color((1.0, 1.0, 1.0, 0.0))
        else:
            ax.set_facecolor(axes.color)

        # Hidden axes lose their decorations; children draw on their own flag
        if not axes.visible:
            ax.set_axis_off()
            ax.patch.set_visible(False)

        lights = [c for c in axes.children if isinstance(c, LightObject) and c.visible]
        light = LightSource(azdeg=lights[0].azimuth, altdeg=lights[0].elevation) if lights else None

        for child in axes.children:
            if not child.visible:
                continue
            if isinstance(child, TextObject):
                if not child.is_blank():
                    self._add_axes_text(fig, ax, child, is_3d, vector)
            elif isinstance(child, LineObject):
                self._add_line(ax, child, is_3d, opaque)
            elif isinstance(child, PatchObject):
                self._add_patch(ax, child, is_3d, opaque)
            elif isinstance(child, SurfaceObject):
                self._add_surface(ax, child, is_3d, light, opaque)
            elif isinstance(child, LightObject):
                continue
            else:
                raise TypeError(f"Unsupported drawable: {child.kind}")

    def _add_axes_text(self, fig: Figure, ax, text: TextObject, is_3d: bool, vector: bool) -> None:
        x, y = text.position[:2]
        if text.coordinates == "figure":
            artist = fig.text(x, y, "", transform=fig.transFigure)
        elif text.coordinates == "axes":
            if is_3d:
                artist = ax.text2D(x, y, "", transform=ax.transAxes)
            else:
                artist = ax.text(x, y, "", transform=ax.transAxes)
        elif is_3d:
            z = text.position[2] if len(text.position) > 2 else 0.0
            artist = ax.text(x, y, z, "")
        else:
            artist = ax.text(x, y, "")
        self._style_text(artist, text, vector)

        if vector:
            projected = ax if is_3d and text.coordinates == "data" else None
            fig.add_artist(PostScriptLabel(text, artist, projected))

    @staticmethod
    def _style_text(artist, text: TextObject, vector: bool) -> None:
        artist.set_text("\n".join(text.lines))
        artist.set_fontsize(text.font_size)
        artist.set_rotation(text.rotation)
        artist.set_color(text.color)
        artist.set_horizontalalignment(text.horizontal_alignment)
        artist.set_verticalalignment(_VERTICAL[text.vertical_alignment])
        artist.set_multialignment("center")
        # Only LaTeX strings may contain math; everything else is literal
        artist.set_parse_math(text.interpreter != "none")
        if vector:
            artist.set_alpha(0.0)

    @staticmethod
    def _add_line(ax, line: LineObject, is_3d: bool, opaque: bool) -> None:
        style = dict(
            color=line.color,
            linewidth=line.line_width,
            linestyle=line.line_style,
            alpha=1.0 if opaque else line.alpha,
        )
        if is_3d:
            z = line.z if line.z is not None else [0.0] * len(line.x)
            ax.plot(line.x, line.y, z, **style)
        else:
            ax.plot(line.x, line.y, **style)

    @staticmethod
    def _add_patch(ax, patch: PatchObject, is_3d: bool, opaque: bool) -> None:
        artist = Polygon(
            patch.vertices,
            closed=True,
            facecolor=patch.face_color,
            edgecolor=patch.edge_color,
            linewidth=patch.line_width,
            alpha=1.0 if opaque else patch.alpha,
        )
        ax.add_patch(artist)
        if is_3d:
            art3d.pathpatch_2d_to_3d(artist, z=0.0)

    @staticmethod
    def _add_surface(ax, surface: SurfaceObject, is_3d: bool, light: LightSource | None, opaque: bool) -> None:
        x = np.asarray(surface.x, dtype=float)
        y = np.asarray(surface.y, dtype=float)
        z = np.asarray(surface.z, dtype=float)
        cmap = colormaps[surface.colormap]
        alpha = 1.0 if opaque else surface.alpha

        if not is_3d:
            ax.pcolormesh(x, y, z, cmap=cmap, alpha=alpha, shading="auto")
            return

        if light is not None:
            rgba = light.shade(z, cmap=cmap, blend_mode="soft")
        else:
            rgba = cmap(Normalize(vmin=float(z.min()), vmax=float(z.max()))(z))
        surf = ax.plot_surface(
            x, y, z,
            facecolors=rgba,
            rstride=1,
            cstride=1,
            linewidth=0,
            shade=False,
        )
        surf.set_alpha(alpha)
        if surface.edge_color != "none":
            surf.set_edgecolor(surface.edge_color)
            surf.set_linewidth(0.5)

    def render_pixels(self, scene: Scene, magnify: float, renderer: str = "opengl") -> np.ndarray:
        """Render the visible scene on the Agg canvas.

        Args:
            scene: Scene to render
            magnify: Scale factor over the native screen density
            renderer: Renderer name

        Returns:
            (H, W, 3) uint8 array
        """
        fig = self.build_figure(scene, renderer=renderer, dpi=self.screen_ppi * magnify)
        canvas = FigureCanvasAgg(fig)
        canvas.draw()
        pixels = np.asarray(canvas.buffer_rgba())[..., :3].copy()
        logger.debug(f"Rendered {pixels.shape[1]}x{pixels.shape[0]} pixels (magnify {magnify:g})")
        return pixels

    def render_vector(self, scene: Scene, path: Path, loose: bool = False) -> Path:
        """Render the visible scene to an EPS file.

        Args:
            scene: Scene to render
            path: Output EPS path
            loose: Keep the full canvas instead of a tight bounding box

        Returns:
            The written path
        """
        path = Path(path)
        fig = self.build_figure(scene, vector=True)
        fig.savefig(
            path,
            format="eps",
            bbox_inches=None if loose else "tight",
            pad_inches=self.tight_pad_inches,
        )
        logger.debug(f"Wrote vector document {path}")
        return path
