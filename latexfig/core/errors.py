"""Exception hierarchy for figure export.

Configuration and precondition errors are raised before the scene is
touched. TypesetError aborts an export after the scene has been restored.
ConversionError is recoverable: the orchestrator records it as a warning
and moves on to the next requested format.
"""

from __future__ import annotations


class LatexFigError(Exception):
    """Base class for all export errors."""


class ConfigurationError(LatexFigError, ValueError):
    """Invalid export options (filename, formats, crop, quality...)."""


class PreconditionError(LatexFigError):
    """The export cannot start, e.g. no scene is available."""


class TypesetError(LatexFigError):
    """The typesetting engine failed on the primary document."""

    def __init__(self, message: str, output: str = ""):
        self.output = output
        if output:
            message = f"{message}\n\n{output}"
        super().__init__(message)


class ConversionError(LatexFigError):
    """A single output format could not be produced."""

    def __init__(self, fmt: str, message: str, output: str = ""):
        self.format = fmt
        self.output = output
        text = f"Error converting to {fmt}: {message}"
        if output:
            text = f"{text}\n{output}"
        super().__init__(text)
