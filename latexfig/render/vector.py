"""Intermediate vector document and background removal."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from ..scene.scene import Scene
from .backend import RenderBackend

logger = logging.getLogger(__name__)

_BBOX_RE = re.compile(rb"^%%BoundingBox:\s*(-?[\d.]+)\s+(-?[\d.]+)\s+(-?[\d.]+)\s+(-?[\d.]+)")
_NUM = rb"(-?\d+(?:\.\d*)?)"
_MOVETO_ORIGIN_RE = re.compile(rb"^\s*0\s+0\s+m\s*$")
_LINETO_RE = re.compile(rb"^\s*" + _NUM + rb"\s+" + _NUM + rb"\s+l\s*$")
_CLOSE_RE = re.compile(rb"^\s*cl\s*$")
_COLOR_RE = re.compile(rb"^\s*[\d.\s]+(setrgbcolor|setgray)\s*$")
_FILL_RE = re.compile(rb"^\s*fill\s*$")
# Single-line rectangle fill used by older PostScript drivers
_RECTFILL_RE = re.compile(rb"^ *0 +0 +\d+ +\d+ +rf *[\n\r]+")

# Points of slack between the bounding box and the canvas rectangle
_TOLERANCE = 1.5


def export_vector_document(
    scene: Scene,
    backend: RenderBackend,
    path: Path,
    loose: bool = False,
) -> Path:
    """Render every visible drawable to an EPS file.

    Args:
        scene: Scene in its export state (texts already tagged)
        backend: Rendering backend
        path: Output EPS path
        loose: Keep the full canvas instead of a tight bounding box
    """
    return backend.render_vector(scene, Path(path), loose=loose)


def _blank(line: bytes) -> bytes:
    body = line.rstrip(b"\r\n")
    return b" " * len(body) + line[len(body):]


def _canvas_size(lines: list[bytes]) -> tuple[float, float] | None:
    for line in lines:
        m = _BBOX_RE.match(line)
        if m:
            llx, lly, urx, ury = (float(v) for v in m.groups())
            return urx - llx, ury - lly
    return None


def _close(a: float, b: float) -> bool:
    return abs(a - b) <= _TOLERANCE


def _is_canvas_rect(lines: list[bytes], start: int, size: tuple[float, float] | None) -> bool:
    if start + 6 >= len(lines) or not _MOVETO_ORIGIN_RE.match(lines[start]):
        return False
    corners = []
    for line in lines[start + 1 : start + 4]:
        m = _LINETO_RE.match(line)
        if not m:
            return False
        corners.append((float(m.group(1)), float(m.group(2))))
    (x1, y1), (x2, y2), (x3, y3) = corners
    if not (_close(y1, 0) and _close(x3, 0) and _close(x1, x2) and _close(y2, y3)):
        return False
    if size is not None and not (_close(x2, size[0]) and _close(y2, size[1])):
        return False
    return bool(
        _CLOSE_RE.match(lines[start + 4])
        and _COLOR_RE.match(lines[start + 5])
        and _FILL_RE.match(lines[start + 6])
    )


def strip_eps_background(path: Path) -> bool:
    """Blank the first full-canvas background fill in an EPS file.

    The matching lines are overwritten with spaces, so byte offsets and
    line structure are unchanged.

    Args:
        path: EPS file, modified in place

    Returns:
        True if a background fill was found and removed
    """
    path = Path(path)
    lines = path.read_bytes().splitlines(keepends=True)
    size = _canvas_size(lines)

    for i, line in enumerate(lines):
        if _RECTFILL_RE.match(line):
            lines[i] = _blank(line)
            break
        if _is_canvas_rect(lines, i, size):
            for k in range(i, i + 7):
                lines[k] = _blank(lines[k])
            break
    else:
        logger.debug(f"No background rectangle in {path.name}")
        return False

    path.write_bytes(b"".join(lines))
    logger.debug(f"Removed background rectangle from {path.name}")
    return True
