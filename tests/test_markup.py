"""Tests for text markup and placeholder substitution."""

import pytest

from latexfig.core.snapshot import SceneEditor
from latexfig.scene.scene import Scene, TextObject
from latexfig.typeset.markup import (
    TextTag,
    escape_latex,
    make_tag,
    size_command,
    substitute_text,
    to_markup,
)


class TestSizeCommand:
    """Test point size to LaTeX size mapping."""

    @pytest.mark.parametrize(
        "size, command",
        [
            (24.0, "\\Huge~"),
            (20.75, "\\Huge~"),
            (18.0, "\\huge~"),
            (15.0, "\\LARGE~"),
            (13.0, "\\Large~"),
            (12.0, "\\large~"),
            (10.0, "\\normalsize~"),
            (9.0, "\\small~"),
            (8.5, "\\footnotesize~"),
            (7.5, "\\scriptsize~"),
            (7.4, "\\tiny "),
            (1.0, "\\tiny "),
        ],
    )
    def test_buckets(self, size, command):
        """Test each bucket boundary."""
        assert size_command(size) == command


class TestToMarkup:
    """Test markup generation."""

    def test_single_line(self):
        """Test one line gets the size prefix only."""
        text = TextObject(string="$x^2$", font_size=10)
        assert to_markup(text) == "\\normalsize~$x^2$"

    def test_single_item_list(self):
        """Test a one-line list collapses to a plain string."""
        text = TextObject(string=["abc"], font_size=12)
        assert to_markup(text) == "\\large~abc"

    def test_multi_line(self):
        """Test lines are stacked in page-wide centred boxes."""
        text = TextObject(string=["A", "B"], font_size=10)
        assert to_markup(text) == (
            "\\vbox{\\makebox[1\\paperwidth][c]{\\normalsize~A}"
            "\\\\\\makebox[1\\paperwidth][c]{\\normalsize~B}}"
        )

    def test_literal_text_is_escaped(self):
        """Test text without an interpreter is escaped."""
        text = TextObject(string="50% of $5_a", interpreter="none", font_size=10)
        assert to_markup(text) == "\\normalsize~50\\% of \\$5\\_a"

    def test_escape_backslash(self):
        """Test backslashes and braces are escaped."""
        assert escape_latex("\\x{y}") == "\\textbackslash{}x\\{y\\}"


class TestSubstituteText:
    """Test swapping labels for tags."""

    def test_tags_in_traversal_order(self):
        """Test tags are numbered 1-based in traversal order."""
        scene = Scene()
        ax = scene.add_axes()
        title = ax.set_title("Title", font_size=12)
        xlabel = ax.set_xlabel("$x$")
        note = scene.add_text("note", (0.1, 0.1), vertical_alignment="bottom")

        editor = SceneEditor()
        tags = substitute_text(scene, editor)

        assert [t.tag for t in tags] == ["tag00001", "tag00002", "tag00003"]
        assert tags[0] == TextTag("tag00001", "\\large~Title", "bc")
        assert tags[1].alignment == "tc"
        assert tags[2].alignment == "bl"
        assert title.string == "tag00001"
        assert xlabel.string == "tag00002"
        assert note.string == "tag00003"
        assert all(t.interpreter == "none" for t in (title, xlabel, note))

    def test_blank_text_skipped(self):
        """Test empty and whitespace-only labels keep their content."""
        scene = Scene()
        ax = scene.add_axes()
        empty = ax.add_text("", (0, 0))
        spaces = ax.add_text(["  ", ""], (0, 0))
        real = ax.add_text("real", (0, 0))

        tags = substitute_text(scene, SceneEditor())

        assert [t.tag for t in tags] == ["tag00001"]
        assert empty.string == ""
        assert spaces.string == ["  ", ""]
        assert real.string == "tag00001"

    def test_rollback_restores_text(self):
        """Test the editor can undo the substitution."""
        scene = Scene()
        text = scene.add_axes().add_text(["a", "b"], (0, 0), interpreter="tex")
        editor = SceneEditor()
        substitute_text(scene, editor)
        editor.rollback()
        assert text.string == ["a", "b"]
        assert text.interpreter == "tex"

    def test_make_tag(self):
        """Test tag format."""
        assert make_tag(12) == "tag00012"
        assert make_tag(99999).isalnum()
