#!/usr/bin/env python3
"""Example: Export a lit, semi-transparent corkscrew surface.

This script demonstrates the full workflow:
1. Build a scene with a 3-D surface, a light and LaTeX labels
2. Rasterize the surface while keeping axes and text as vectors
3. Export to every supported format with a custom crop

Requires latex, dvipdf, pdflatex and ImageMagick on PATH.

Run with: python examples/corkscrew.py
"""

import numpy as np

from latexfig import Scene, export


def corkscrew(n: int = 200, turns: float = 2.33, seed: int | None = None):
    """Randomized corkscrew ribbon as (x, y, z) grids of shape (n, 2)."""
    rng = np.random.default_rng(seed)
    r1, r2 = 0.35, 1.0
    theta0 = rng.uniform(0, 2 * np.pi)
    theta = np.linspace(theta0, theta0 + turns * 2 * np.pi, n)

    wobble = (r2 - r1) / 2 * np.sin((theta - theta0) / 2 / turns)
    inner = (r1 + r2) / 2 - wobble
    outer = (r1 + r2) / 2 + wobble

    z = np.linspace(0, 2, n)
    for i in range(1, 8):
        z = z + (rng.uniform() - 0.5) / 10 * np.sin(i * theta / turns)
        z = z + (rng.uniform() - 0.5) / 10 * np.cos(i * theta / turns)

    x = np.column_stack([inner * np.cos(theta), outer * np.cos(theta)])
    y = np.column_stack([inner * np.sin(theta), outer * np.sin(theta)])
    return x, y, np.column_stack([z, z])


def main():
    print("LatexFig - Corkscrew Example")
    print("=" * 40)

    scene = Scene(name="corkscrew", position=(100, 100, 560, 420), units="pixels")
    ax = scene.add_axes(projection="3d", view=(30, -37.5))

    x, y, z = corkscrew()
    surface = ax.add_surface(x, y, z, alpha=0.8, colormap="viridis", name="corkscrew")
    ax.add_light(azimuth=315, elevation=45)

    ax.set_title([
        "\\LaTeX{} Figure Demo",
        "All text objects will be processed via \\LaTeX.",
        "Symbol examples: $\\ddagger$, $\\clubsuit$, $\\mho$",
    ])
    ax.add_text("$x$", (0.0, -1.4, 0.0), horizontal_alignment="center")
    ax.add_text("$y$", (1.4, 0.0, 0.0), horizontal_alignment="center")
    ax.add_text("$z$", (-1.2, 1.2, 1.0), horizontal_alignment="center")

    print(f"\nScene: {scene}")
    print(f"Rasterizing surface {surface.id}")

    result = export(
        scene, "outfile", "-pdf", "-png", "-jpg", "-eps", "-tiff",
        "-nocrop",
        "-transparent",
        "-rasterize", surface,
        "-r150",
        "-latexpackages", ["\\usepackage{amssymb}"],
        "-crop", [0.17, 0.05, 0.63, 1.0],
    )

    print("\nOutputs:")
    for fmt, path in result.outputs.items():
        print(f"  {fmt}: {path}")
    for warning in result.warnings:
        print(f"  warning: {warning}")


if __name__ == "__main__":
    main()
