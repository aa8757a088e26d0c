"""Raster layer with a true alpha channel.

The selection is rendered twice, once over white and once over black. For
a pixel of color C and opacity a, the white render is ``a*C + (1-a)*255``
and the black render is ``a*C``; their difference isolates ``(1-a)*255``
independently of C. This needs identical antialiasing in both passes, so
both go through the same magnification and downscale.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import numpy as np
from PIL import Image

from ..core.snapshot import SceneEditor
from ..scene.scene import BLACK, WHITE, LightObject, Scene
from .backend import RenderBackend

logger = logging.getLogger(__name__)


@dataclass
class RenderedLayer:
    """Pixels of the rasterized selection.

    Attributes:
        rgb: (H, W, 3) uint8 colors
        alpha: (H, W) uint8 opacity, None for an opaque layer
    """

    rgb: np.ndarray
    alpha: np.ndarray | None = None

    @property
    def size(self) -> tuple[int, int]:
        """(width, height) in pixels."""
        return self.rgb.shape[1], self.rgb.shape[0]

    def rgba(self) -> np.ndarray:
        alpha = self.alpha
        if alpha is None:
            alpha = np.full(self.rgb.shape[:2], 255, dtype=np.uint8)
        return np.dstack([self.rgb, alpha])


def gaussian_taps(factor: float) -> np.ndarray:
    """1-D Gaussian weights for downscaling by ``factor``, summing to 1."""
    ff = math.ceil(factor)
    if ff % 2:
        x = np.arange(-ff, ff + 1, dtype=float)
    else:
        x = np.arange(-ff + 0.5, ff, dtype=float)
    x = x / (x[-1] * 0.6)
    w = np.exp(-(x ** 2))
    return w / w.sum()


def downscale(image: np.ndarray, factor: float) -> np.ndarray:
    """Shrink an image by ``factor`` with a Gaussian-weighted box filter.

    A factor of 1 returns the input unchanged.

    Args:
        image: (H, W) or (H, W, C) uint8 image
        factor: Downscale factor (>= 1)

    Returns:
        (floor(H/factor), floor(W/factor), ...) uint8 image
    """
    if factor == 1:
        return image

    taps = gaussian_taps(factor)
    n = len(taps)
    npad = (n - math.ceil(factor)) // 2
    pad = [(npad, npad), (npad, npad)] + [(0, 0)] * (image.ndim - 2)
    padded = np.pad(image.astype(np.float64), pad, mode="edge")

    rows = int(image.shape[0] // factor)
    cols = int(image.shape[1] // factor)
    ii = np.floor(factor * np.arange(rows)).astype(int)
    jj = np.floor(factor * np.arange(cols)).astype(int)

    out = np.zeros((rows, cols) + image.shape[2:], dtype=np.float64)
    for i in range(n):
        for j in range(n):
            out += taps[i] * taps[j] * padded[np.ix_(i + ii, j + jj)]
    return np.clip(np.rint(out), 0, 255).astype(np.uint8)


def alpha_from_backgrounds(white: np.ndarray, black: np.ndarray) -> RenderedLayer:
    """Recover colors and opacity from renders over white and black.

    Args:
        white: (H, W, 3) uint8 render over white
        black: (H, W, 3) uint8 render over black

    Returns:
        Layer with un-premultiplied colors (0 where fully transparent)
    """
    if white.shape != black.shape:
        raise ValueError(f"Render sizes differ: {white.shape} vs {black.shape}")

    diff = np.clip(white.astype(np.int16) - black.astype(np.int16), 0, 255)
    alpha = np.clip(np.rint(255.0 - diff.mean(axis=2)), 0, 255).astype(np.uint8)

    a = alpha.astype(np.float64)[..., None]
    with np.errstate(divide="ignore", invalid="ignore"):
        rgb = np.where(a > 0, black.astype(np.float64) * 255.0 / a, 0.0)
    rgb = np.clip(np.rint(rgb), 0, 255).astype(np.uint8)
    return RenderedLayer(rgb=rgb, alpha=alpha)


def rasterize_selection(
    scene: Scene,
    selection: Iterable[str],
    backend: RenderBackend,
    anti_alias: int = 1,
    renderer: str = "opengl",
    ppi: float | None = None,
) -> RenderedLayer:
    """Render only the selected drawables, with alpha.

    Every visible drawable is hidden, then the selection and all lights are
    shown. Visibility and background are restored before returning.

    Args:
        scene: Scene to render
        selection: IDs of the drawables to rasterize
        backend: Rendering backend
        anti_alias: Oversampling factor
        renderer: Renderer name
        ppi: Output pixels per logical inch (screen density if None)

    Returns:
        RenderedLayer at ``ppi``
    """
    ppi = ppi or backend.screen_ppi
    magnify = anti_alias * ppi / backend.screen_ppi
    selected = set(selection)

    with SceneEditor() as editor:
        for obj in scene.walk():
            if obj.visible:
                editor.set(obj, "visible", False)
        for obj in scene.walk():
            if obj.id in selected or isinstance(obj, LightObject):
                editor.set(obj, "visible", True)

        editor.set(scene, "color", WHITE)
        white = downscale(backend.render_pixels(scene, magnify, renderer), anti_alias)
        editor.set(scene, "color", BLACK)
        black = downscale(backend.render_pixels(scene, magnify, renderer), anti_alias)

    layer = alpha_from_backgrounds(white, black)
    logger.info(f"Rasterized {len(selected)} objects at {layer.size[0]}x{layer.size[1]} px")
    return layer


def write_png(layer: RenderedLayer, path: Path) -> Path:
    """Save a layer as an RGBA PNG."""
    path = Path(path)
    Image.fromarray(layer.rgba()).save(path, format="PNG")
    return path
