"""LaTeX markup, document generation and external tools."""

from .documents import overlay_document, psfrag_document
from .markup import TextTag, escape_latex, size_command, substitute_text, to_markup
from .tools import ToolResult, ToolRunner

__all__ = [
    "TextTag",
    "ToolResult",
    "ToolRunner",
    "escape_latex",
    "overlay_document",
    "psfrag_document",
    "size_command",
    "substitute_text",
    "to_markup",
]
