"""Tests for export orchestration.

External programs are replaced by a runner that fakes their output files;
rendering uses matplotlib unless a test needs to observe or break it.
"""

from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from latexfig.core.config import LatexFigConfig, ToolchainParams
from latexfig.core.errors import ConfigurationError, TypesetError
from latexfig.core.options import ExportOptions
from latexfig.pipeline import ExportResult, export, export_figure
from latexfig.render.backend import MatplotlibBackend
from latexfig.scene.scene import PatchObject, Scene
from latexfig.typeset.tools import ToolResult, ToolRunner

_CANVAS_EPS = (
    "%!PS-Adobe-3.0 EPSF-3.0\n"
    "%%BoundingBox: 0 0 403 302\n"
    "0 0 m\n403.2 0 l\n403.2 302.4 l\n0 302.4 l\ncl\n1 setgray\nfill\n"
    "(tag00001) show\n"
    "showpage\n"
)


class FakeRunner(ToolRunner):
    """Pretends to run LaTeX and converters by creating their outputs."""

    def __init__(self, fail=()):
        super().__init__(ToolchainParams())
        self.fail = set(fail)
        self.calls = []
        self.documents = {}
        self.eps_at_latex = None
        self.png_mode = None
        self.png_alpha = None

    def run(self, args, cwd=None):
        argv = [str(a) for a in args]
        program = argv[0]
        self.calls.append(argv)
        if program in self.fail:
            return ToolResult(tuple(argv), 1, stdout=f"{program} exploded")

        cwd = Path(cwd) if cwd else Path.cwd()
        if program in ("latex", "pdflatex"):
            tex = cwd / argv[-1]
            self.documents[tex.name] = tex.read_text()
            if program == "latex":
                self.eps_at_latex = (cwd / "layer.eps").read_text(errors="replace")
                tex.with_suffix(".dvi").write_bytes(b"dvi")
            else:
                with Image.open(cwd / "layer.png") as img:
                    self.png_mode = img.mode
                    self.png_alpha = np.asarray(img.convert("RGBA"))[..., 3].copy()
                tex.with_suffix(".pdf").write_bytes(b"%PDF-overlay")
        elif program == "dvipdf":
            Path(argv[2]).write_bytes(b"%PDF-typeset")
        elif program == "dvips":
            Path(argv[3]).write_bytes(b"%!PS")
        elif program == "convert":
            Path(argv[-1]).write_bytes(b"image")
        return ToolResult(tuple(argv), 0)

    def programs(self):
        return [call[0] for call in self.calls]


class RecordingBackend(MatplotlibBackend):
    """Matplotlib backend that records the scene state it was asked to draw."""

    def __init__(self, eps_text=None, fail_vector=False):
        super().__init__(screen_ppi=96.0)
        self.eps_text = eps_text
        self.fail_vector = fail_vector
        self.pixel_calls = 0
        self.vector_state = None

    def render_pixels(self, scene, magnify, renderer="opengl"):
        self.pixel_calls += 1
        return super().render_pixels(scene, magnify, renderer)

    def render_vector(self, scene, path, loose=False):
        self.vector_state = {
            "strings": [t.string for t in scene.texts()],
            "visible": {o.id: o.visible for o in scene.walk()},
            "position": scene.position,
            "units": scene.units,
            "paper_position_mode": scene.paper_position_mode,
            "axes_positions": [ax.position for ax in scene.axes()],
            "axes_colors": [ax.color for ax in scene.axes()],
            "loose": loose,
        }
        if self.fail_vector:
            raise RuntimeError("renderer crashed")
        if self.eps_text is not None:
            Path(path).write_text(self.eps_text)
            return Path(path)
        return super().render_vector(scene, path, loose)


def _surface_scene():
    scene = Scene(name="surface", position=(0, 0, 4, 3))
    ax = scene.add_axes(projection="3d")
    x, y = np.meshgrid(np.linspace(-1, 1, 8), np.linspace(-1, 1, 8))
    surface = ax.add_surface(x, y, x ** 2 - y ** 2, alpha=0.8)
    ax.add_light()
    ax.set_title("Title", font_size=12)
    return scene, surface


def _line_scene():
    scene = Scene(name="line", position=(0, 0, 4, 3))
    ax = scene.add_axes()
    ax.add_line([0, 1], [0, 1])
    ax.set_xlabel("$x$")
    ax.set_ylabel("$y$")
    return scene


@pytest.fixture
def config(tmp_path):
    return LatexFigConfig(toolchain=ToolchainParams(temp_dir=tmp_path / "work"))


def _leftovers(config):
    return list(config.toolchain.temp_dir.iterdir())


class TestExportResult:
    """Test result bookkeeping."""

    def test_ok(self, tmp_path):
        """Test ok requires every requested format."""
        result = ExportResult(requested=("pdf", "png"))
        result.outputs["pdf"] = tmp_path / "a.pdf"
        assert not result.ok
        result.outputs["png"] = tmp_path / "a.png"
        assert result.ok


class TestRasterizedExport:
    """Test the raster + vector path."""

    def test_surface_with_title(self, tmp_path, config):
        """Test a rasterized surface with typeset text yields pdf and png."""
        scene, surface = _surface_scene()
        before = scene.model_dump()
        runner = FakeRunner()
        options = ExportOptions.build(
            filename=str(tmp_path / "out" / "fig"),
            formats=("pdf", "png"),
            rasterize=(surface.id,),
            transparent=True,
            resolution=150,
            anti_alias=1,
        )

        result = export_figure(scene, options, config=config, runner=runner)

        assert result.ok, result.warnings
        assert result.outputs["pdf"].read_bytes() == b"%PDF-overlay"
        assert result.outputs["png"].name == "fig.png"
        assert runner.programs() == ["latex", "dvipdf", "pdflatex", "convert"]
        assert "\\psfrag{tag00001}[bc][bc]{\\large~Title}" in runner.documents["figure.tex"]
        assert "overpic" in runner.documents["overlay.tex"]
        assert runner.png_mode == "RGBA"
        assert "(tag00001) show" in runner.eps_at_latex

        convert = runner.calls[-1]
        assert convert[convert.index("-density") + 1] == "150"
        assert "-flatten" in convert

        assert scene.model_dump() == before
        assert _leftovers(config) == []

    def test_raster_objects_hidden_in_vector_pass(self, tmp_path, config):
        """Test the selection is hidden for the vector layer while its axes keep their background."""
        scene, surface = _surface_scene()
        backend = RecordingBackend(eps_text=_CANVAS_EPS)
        options = ExportOptions.build(
            filename=str(tmp_path / "fig"), formats=("pdf",), rasterize=(surface.id,)
        )

        export_figure(scene, options, config=config, backend=backend, runner=FakeRunner())

        state = backend.vector_state
        assert backend.pixel_calls == 2
        assert state["visible"][surface.id] is False
        assert state["axes_colors"] == [(1.0, 1.0, 1.0)]
        assert state["loose"] is True
        assert scene.axes()[0].color == (1.0, 1.0, 1.0)
        assert surface.visible

    def test_axes_background_kept_in_vector_layer(self, tmp_path, config):
        """Test the parent axes colour is drawn by the vector layer, not the raster."""
        scene = Scene(name="patch", position=(0, 0, 4, 3))
        ax = scene.add_axes(color=(0.8, 0.2, 0.2), xlim=(0, 1), ylim=(0, 1))
        patch = ax.add(PatchObject(vertices=[(0.6, 0.6), (0.9, 0.6), (0.9, 0.9), (0.6, 0.9)]))
        runner = FakeRunner()
        options = ExportOptions.build(
            filename=str(tmp_path / "fig"), formats=("pdf",), rasterize=(patch.id,)
        )

        result = export_figure(scene, options, config=config, runner=runner)

        assert result.ok, result.warnings
        assert "0.8 0.2 0.2 setrgbcolor" in runner.eps_at_latex
        # inside the axes, away from the patch
        assert runner.png_alpha[45, 80] == 0
        assert runner.png_alpha[60, 290] == 255
        assert scene.axes()[0].color == (0.8, 0.2, 0.2)

    def test_eps_from_merged_document(self, tmp_path, config):
        """Test rasterized EPS goes through the merged PDF."""
        scene, surface = _surface_scene()
        runner = FakeRunner()
        options = ExportOptions.build(
            filename=str(tmp_path / "fig"), formats=("eps",), rasterize=(surface.id,)
        )
        backend = RecordingBackend(eps_text=_CANVAS_EPS)

        result = export_figure(scene, options, config=config, backend=backend, runner=runner)

        assert result.ok
        assert "dvips" not in runner.programs()
        assert runner.calls[-1][3].endswith("overlay.pdf")

    def test_overlay_failure_is_recoverable(self, tmp_path, config):
        """Test a failed merge is reported but does not raise."""
        scene, surface = _surface_scene()
        options = ExportOptions.build(
            filename=str(tmp_path / "fig"), formats=("pdf", "png"), rasterize=(surface.id,)
        )
        backend = RecordingBackend(eps_text=_CANVAS_EPS)

        result = export_figure(
            scene, options, config=config, backend=backend, runner=FakeRunner(fail={"pdflatex"})
        )

        assert not result.ok
        assert result.outputs == {}
        assert any("merging" in w for w in result.warnings)
        assert _leftovers(config) == []


class TestVectorExport:
    """Test the non-rasterized path."""

    def test_formats(self, tmp_path, config):
        """Test each format uses its conversion."""
        runner = FakeRunner()
        options = ExportOptions.build(
            filename=str(tmp_path / "fig"), formats=("pdf", "eps", "png", "jpg"), quality=70
        )

        result = export_figure(_line_scene(), options, config=config, runner=runner)

        assert result.ok
        assert set(result.outputs) == {"pdf", "eps", "png", "jpg"}
        assert result.outputs["pdf"].read_bytes() == b"%PDF-typeset"
        assert runner.programs() == ["latex", "dvipdf", "dvips", "convert", "convert"]
        png, jpg = runner.calls[3], runner.calls[4]
        assert "-flatten" not in png
        assert jpg[jpg.index("-quality") + 1] == "70"
        assert "-flatten" in jpg
        assert png[png.index("-density") + 1] == "96"

    def test_preamble_and_tags(self, tmp_path, config):
        """Test extra packages and every label reach the document."""
        runner = FakeRunner()
        options = ExportOptions.build(
            filename=str(tmp_path / "fig"),
            formats=("pdf",),
            latex_packages=("\\usepackage{amssymb}",),
        )

        export_figure(_line_scene(), options, config=config, runner=runner)

        document = runner.documents["figure.tex"]
        assert "\\usepackage{amssymb}" in document
        assert "\\psfrag{tag00001}[tc][tc]{\\normalsize~$x$}" in document
        assert "\\psfrag{tag00002}[bc][bc]{\\normalsize~$y$}" in document

    def test_transparent_strips_background(self, tmp_path, config):
        """Test the canvas fill is blanked when transparency is requested."""
        runner = FakeRunner()
        backend = RecordingBackend(eps_text=_CANVAS_EPS)
        options = ExportOptions.build(filename=str(tmp_path / "fig"), formats=("pdf",), transparent=True)

        export_figure(_line_scene(), options, config=config, backend=backend, runner=runner)

        assert "setgray" not in runner.eps_at_latex
        assert "fill" not in runner.eps_at_latex
        assert "(tag00001) show" in runner.eps_at_latex

    def test_opaque_keeps_background(self, tmp_path, config):
        """Test the canvas fill stays without transparency."""
        runner = FakeRunner()
        backend = RecordingBackend(eps_text=_CANVAS_EPS)
        options = ExportOptions.build(filename=str(tmp_path / "fig"), formats=("pdf",))

        export_figure(_line_scene(), options, config=config, backend=backend, runner=runner)

        assert "1 setgray\nfill" in runner.eps_at_latex

    def test_crop_and_paper_during_render(self, tmp_path, config):
        """Test crop and paper geometry are applied for rendering, then undone."""
        scene = _line_scene()
        before = scene.model_dump()
        backend = RecordingBackend(eps_text=_CANVAS_EPS)
        options = ExportOptions.build(
            filename=str(tmp_path / "fig"), formats=("pdf",), crop=[-0.1, 0.0, 1.5, 0.5]
        )

        export_figure(scene, options, config=config, backend=backend, runner=FakeRunner())

        state = backend.vector_state
        assert state["units"] == "centimeters"
        assert state["paper_position_mode"] == "manual"
        assert state["position"][2:] == pytest.approx((4 * 1.5 * 2.54, 3 * 0.5 * 2.54))
        ax = state["axes_positions"][0]
        assert ax[0] == pytest.approx((0.13 + 0.1) / 1.5)
        assert ax[3] == pytest.approx(0.815 / 0.5)
        assert state["strings"] == ["tag00001", "tag00002"]
        assert scene.model_dump() == before

    def test_conversion_failure_is_warning(self, tmp_path, config):
        """Test one failing format does not block the others."""
        runner = FakeRunner(fail={"convert"})
        options = ExportOptions.build(filename=str(tmp_path / "fig"), formats=("pdf", "png"))

        result = export_figure(_line_scene(), options, config=config, runner=runner)

        assert not result.ok
        assert set(result.outputs) == {"pdf"}
        assert any(w.startswith("Error converting to png") for w in result.warnings)
        assert any("convert exploded" in w for w in result.warnings)


class TestFailures:
    """Test fatal errors and cleanup."""

    def test_latex_failure_is_fatal(self, tmp_path, config):
        """Test a failed compile raises with the tool output and restores the scene."""
        scene = _line_scene()
        before = scene.model_dump()
        options = ExportOptions.build(filename=str(tmp_path / "fig"), formats=("pdf", "png"))

        with pytest.raises(TypesetError, match="latex exploded") as excinfo:
            export_figure(scene, options, config=config, runner=FakeRunner(fail={"latex"}))

        assert "latex exploded" in excinfo.value.output
        assert scene.model_dump() == before
        assert _leftovers(config) == []
        assert not (tmp_path / "fig.pdf").exists()

    def test_render_failure_restores_scene(self, tmp_path, config):
        """Test a crash mid-pipeline leaves the scene as it was."""
        scene, surface = _surface_scene()
        before = scene.model_dump()
        backend = RecordingBackend(fail_vector=True)
        options = ExportOptions.build(
            filename=str(tmp_path / "fig"),
            formats=("pdf",),
            rasterize=(surface.id,),
            crop=[0.1, 0.1, 0.8, 0.8],
        )

        with pytest.raises(RuntimeError, match="renderer crashed"):
            export_figure(scene, options, config=config, backend=backend, runner=FakeRunner())

        assert backend.vector_state["strings"] == ["tag00001"]
        assert scene.model_dump() == before
        assert _leftovers(config) == []

    def test_unknown_raster_object(self, tmp_path, config):
        """Test rasterizing an object outside the scene fails before rendering."""
        scene = _line_scene()
        backend = RecordingBackend()
        runner = FakeRunner()
        options = ExportOptions.build(filename=str(tmp_path / "fig"), formats=("pdf",), rasterize=("nope",))

        with pytest.raises(ConfigurationError, match="nope"):
            export_figure(scene, options, config=config, backend=backend, runner=runner)

        assert backend.vector_state is None
        assert runner.calls == []

    def test_no_format_fails_before_rendering(self, tmp_path, config):
        """Test a missing format is rejected before any side effect."""
        backend = RecordingBackend()
        runner = FakeRunner()

        with pytest.raises(ConfigurationError, match="No output format"):
            export(_line_scene(), str(tmp_path / "fig"), config=config, backend=backend, runner=runner)

        assert backend.vector_state is None
        assert runner.calls == []
        assert not config.toolchain.temp_dir.exists()

    def test_keep_temp(self, tmp_path):
        """Test the working directory is kept on request."""
        config = LatexFigConfig(toolchain=ToolchainParams(temp_dir=tmp_path / "work", keep_temp=True))
        options = ExportOptions.build(filename=str(tmp_path / "fig"), formats=("pdf",))

        export_figure(_line_scene(), options, config=config, runner=FakeRunner())

        (workdir,) = _leftovers(config)
        assert (workdir / "figure.tex").exists()
        assert (workdir / "layer.eps").exists()


class TestTokenExport:
    """Test the token-style entry point."""

    def test_export_tokens(self, tmp_path, config):
        """Test tokens are parsed and exported."""
        runner = FakeRunner()
        result = export(
            _line_scene(), str(tmp_path / "fig.pdf"), "-png", "-r200",
            config=config, runner=runner,
        )
        assert set(result.outputs) == {"pdf", "png"}
        assert runner.calls[-1][runner.calls[-1].index("-density") + 1] == "200"
