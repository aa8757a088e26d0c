"""LaTeX sources for the tag-substitution and overlay documents.

Both documents size their page to the included graphic by measuring it
with ``calc`` (``\\widthof`` / ``\\heightof``) and feeding the result to
``geometry``, so the compiled page is exactly the figure.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Sequence

from .markup import TextTag

_PAGE_SIZE = (
    "\\newlength\\graphicheight\n"
    "\\setlength\\graphicheight{\\heightof{\\mygraphic}}\n"
    "\\newlength\\graphicwidth\n"
    "\\setlength\\graphicwidth{\\widthof{\\mygraphic}}\n"
    "\\usepackage[paperwidth=\\graphicwidth, paperheight=\\graphicheight,\n"
    " top=0in, left=0in, bottom=0in, right=0in]{geometry}\n"
)


def _graphic_name(path: Path | str) -> str:
    # LaTeX wants forward slashes on every platform
    return Path(path).as_posix()


def psfrag_document(
    packages: Iterable[str],
    tags: Sequence[TextTag],
    eps_path: Path | str,
) -> str:
    """Build the document that replaces placeholder tags with markup.

    Args:
        packages: Extra preamble lines, inserted verbatim
        tags: Placeholder tags and their replacements
        eps_path: Intermediate vector document to include

    Returns:
        LaTeX source
    """
    graphic = _graphic_name(eps_path)
    lines = [
        "\\documentclass[10pt]{article}",
        "\\usepackage{graphicx}",
        "\\usepackage{psfrag}",
        "\\pagestyle{empty}",
        "\\usepackage{calc}",
    ]
    lines.extend(packages)
    source = "\n".join(lines) + "\n"
    source += f"\\def\\mygraphic{{\\includegraphics{{{graphic}}}}}\n"
    source += _PAGE_SIZE
    source += "\\begin{document}\n\\begin{figure}\n\\noindent\n"
    for t in tags:
        source += f"\\psfrag{{{t.tag}}}[{t.alignment}][{t.alignment}]{{{t.markup}}}\n"
    source += f"\\includegraphics{{{graphic}}}\n\\end{{figure}}\n\\end{{document}}\n"
    return source


def overlay_document(pdf_path: Path | str, png_path: Path | str) -> str:
    """Build the document merging the raster layer with the vector layer.

    The vector document (axes, lines and typeset text) is the base picture
    and the raster image is placed over it at the same width. Pixels cover
    vector content where they are opaque and let it through elsewhere.

    Args:
        pdf_path: Typeset vector layer
        png_path: Raster layer with alpha channel

    Returns:
        LaTeX source
    """
    pdf = _graphic_name(pdf_path)
    png = _graphic_name(png_path)
    return (
        "\\documentclass[10pt]{article}\n"
        "\\usepackage{graphicx}\n"
        "\\usepackage{calc}\n"
        "\\pagestyle{empty}\n"
        f"\\def\\mygraphic{{\\includegraphics{{{pdf}}}}}\n"
        + _PAGE_SIZE
        + "\\usepackage[abs]{overpic}\n"
        "\\begin{document}\n"
        "\\noindent\n"
        "\\begin{overpic}[scale=1,unit=1mm,width=1\\textwidth]\n"
        f"  {{{pdf}}}\n"
        f"  \\put(0,0){{\\includegraphics[width=1\\textwidth]{{{png}}}}}\n"
        "\\end{overpic}\n"
        "\\end{document}\n"
    )
