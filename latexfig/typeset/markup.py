"""Text extraction and placeholder-tag substitution.

Every visible label in the scene is converted to LaTeX markup and replaced
on the scene by a short plain-text tag. The vector document then carries
the tags at the right positions, and psfrag swaps them for the typeset
markup when the tag-substitution document is compiled.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from ..core.snapshot import SceneEditor
from ..scene.scene import Scene, TextObject

logger = logging.getLogger(__name__)

# (minimum point size, size command), largest first
FONT_SIZE_COMMANDS: tuple[tuple[float, str], ...] = (
    (20.75, "\\Huge~"),
    (17.25, "\\huge~"),
    (14.75, "\\LARGE~"),
    (12.875, "\\Large~"),
    (10.875, "\\large~"),
    (9.5, "\\normalsize~"),
    (8.75, "\\small~"),
    (8.25, "\\footnotesize~"),
    (7.5, "\\scriptsize~"),
)
TINY_COMMAND = "\\tiny "

# Letters and digits only: the tag is read by TeX as a psfrag key and drawn
# as a PostScript string, and "_" is active in TeX.
TAG_FORMAT = "tag{:05d}"

_LATEX_SPECIALS = {
    "\\": "\\textbackslash{}",
    "&": "\\&",
    "%": "\\%",
    "$": "\\$",
    "#": "\\#",
    "_": "\\_",
    "{": "\\{",
    "}": "\\}",
    "~": "\\textasciitilde{}",
    "^": "\\textasciicircum{}",
}
_LATEX_SPECIALS_RE = re.compile("|".join(re.escape(c) for c in _LATEX_SPECIALS))


@dataclass(frozen=True)
class TextTag:
    """A placeholder and the markup it stands for.

    Attributes:
        tag: Plain-text token drawn on the scene
        markup: LaTeX markup that replaces the token
        alignment: psfrag position letters, vertical then horizontal
    """

    tag: str
    markup: str
    alignment: str


def size_command(font_size: float) -> str:
    """Map a point size to a LaTeX size command."""
    for threshold, command in FONT_SIZE_COMMANDS:
        if font_size >= threshold:
            return command
    return TINY_COMMAND


def escape_latex(text: str) -> str:
    """Escape characters with a special meaning in LaTeX."""
    return _LATEX_SPECIALS_RE.sub(lambda m: _LATEX_SPECIALS[m.group()], text)


def make_tag(index: int) -> str:
    """Placeholder for the ``index``-th label (1-based)."""
    return TAG_FORMAT.format(index)


def to_markup(text: TextObject) -> str:
    """Convert a text object to LaTeX markup.

    The size command is prepended to every line. Multi-line content becomes
    a vbox of page-wide centred boxes so the block stays centred regardless
    of the final crop.
    """
    lines = text.lines
    if text.interpreter == "none":
        lines = [escape_latex(line) for line in lines]
    prefix = size_command(text.font_size)
    lines = [prefix + line for line in lines]

    if len(lines) == 1:
        return lines[0]
    boxes = "\\\\".join(f"\\makebox[1\\paperwidth][c]{{{line}}}" for line in lines)
    return f"\\vbox{{{boxes}}}"


def substitute_text(scene: Scene, editor: SceneEditor) -> list[TextTag]:
    """Swap every non-blank label for a placeholder tag.

    Args:
        scene: Scene to edit in place
        editor: Editor recording the changes so they can be undone

    Returns:
        Tags in traversal order
    """
    tags: list[TextTag] = []
    for text in scene.texts():
        if text.is_blank():
            continue
        tag = make_tag(len(tags) + 1)
        tags.append(TextTag(tag=tag, markup=to_markup(text), alignment=text.alignment))
        editor.set(text, "string", tag)
        editor.set(text, "interpreter", "none")

    logger.debug(f"Substituted {len(tags)} text labels")
    return tags
