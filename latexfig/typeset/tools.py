"""External typesetting and conversion programs.

All programs run through ``ToolRunner.run`` with an argument vector (no
shell), captured output and a timeout. Failures are reported through the
returned ``ToolResult``; callers decide whether a failure is fatal.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from ..core.config import ToolchainParams

logger = logging.getLogger(__name__)

RETURNCODE_NOT_FOUND = 127
RETURNCODE_TIMEOUT = 124


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one external program invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined diagnostic output."""
        return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)


class ToolRunner:
    """Invoke the configured LaTeX, Ghostscript and ImageMagick programs.

    Args:
        params: Program names, timeout and environment settings
    """

    def __init__(self, params: ToolchainParams | None = None):
        self.params = params or ToolchainParams()

    def _environment(self) -> dict[str, str]:
        env = dict(os.environ)
        if self.params.clear_ld_library_path:
            env.pop("LD_LIBRARY_PATH", None)
        return env

    def run(self, args: Sequence[str | Path], cwd: Path | None = None) -> ToolResult:
        """Run a program and capture its result.

        Args:
            args: Program and arguments
            cwd: Working directory

        Returns:
            ToolResult; a missing program gives return code 127 and a
            timeout gives 124
        """
        argv = tuple(str(a) for a in args)
        logger.debug(f"Running: {' '.join(argv)}")
        try:
            proc = subprocess.run(
                argv,
                cwd=cwd,
                env=self._environment(),
                capture_output=True,
                text=True,
                check=False,
                timeout=self.params.timeout_sec,
            )
        except FileNotFoundError:
            return ToolResult(argv, RETURNCODE_NOT_FOUND, stderr=f"{argv[0]}: command not found")
        except subprocess.TimeoutExpired:
            return ToolResult(
                argv,
                RETURNCODE_TIMEOUT,
                stderr=f"{argv[0]}: timed out after {self.params.timeout_sec:g} s",
            )

        result = ToolResult(argv, proc.returncode, proc.stdout or "", proc.stderr or "")
        if not result.ok:
            logger.debug(f"{argv[0]} exited with code {proc.returncode}")
        return result

    def latex(self, tex_file: Path) -> ToolResult:
        """Compile ``tex_file`` to DVI in its own directory."""
        return self.run(
            [self.params.latex, "-interaction=nonstopmode", tex_file.name],
            cwd=tex_file.parent,
        )

    def pdflatex(self, tex_file: Path) -> ToolResult:
        """Compile ``tex_file`` to PDF in its own directory."""
        return self.run(
            [self.params.pdflatex, "-interaction=nonstopmode", tex_file.name],
            cwd=tex_file.parent,
        )

    def dvipdf(self, dvi_file: Path, pdf_file: Path) -> ToolResult:
        return self.run([self.params.dvipdf, dvi_file, pdf_file], cwd=dvi_file.parent)

    def dvips(self, dvi_file: Path, eps_file: Path) -> ToolResult:
        return self.run([self.params.dvips, dvi_file, "-o", eps_file], cwd=dvi_file.parent)

    def convert(
        self,
        source: Path,
        target: Path,
        density: int,
        quality: int | None = None,
        flatten: bool = False,
    ) -> ToolResult:
        """Rasterize or re-encode a document with ImageMagick.

        Args:
            source: Input document (usually PDF)
            target: Output file, format chosen by extension
            density: Rendering density in pixels per inch
            quality: JPEG quality, if any
            flatten: Composite over white to drop transparency
        """
        args: list[str | Path] = [self.params.convert, "-density", str(density), source]
        if flatten:
            args += ["-background", "white", "-flatten"]
        if quality is not None:
            args += ["-quality", str(quality)]
        args.append(target)
        return self.run(args, cwd=source.parent)

    def available(self) -> dict[str, str | None]:
        """Resolve every configured program on PATH.

        Returns:
            Mapping of role to resolved path (None if missing)
        """
        roles = {
            "latex": self.params.latex,
            "pdflatex": self.params.pdflatex,
            "dvipdf": self.params.dvipdf,
            "dvips": self.params.dvips,
            "convert": self.params.convert,
        }
        return {role: shutil.which(program) for role, program in roles.items()}
