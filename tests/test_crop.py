"""Tests for CropBox geometry."""

import pytest
from pydantic import ValidationError

from latexfig.scene.crop import CropBox


class TestCropBox:
    """Test crop-region geometry."""

    def test_default_is_identity(self):
        """Test the default box covers the whole figure."""
        crop = CropBox()
        assert crop.as_tuple() == (0.0, 0.0, 1.0, 1.0)
        assert crop.is_identity

    def test_from_sequence(self):
        """Test construction from a 4-element list."""
        crop = CropBox.from_sequence([0.17, 0.05, 0.63, 1.0])
        assert crop.as_tuple() == (0.17, 0.05, 0.63, 1.0)
        assert not crop.is_identity

    @pytest.mark.parametrize("values", [[], [0, 0, 1], [0, 0, 1, 1, 1]])
    def test_from_sequence_wrong_length(self, values):
        """Test malformed crop vectors are rejected."""
        with pytest.raises(ValueError, match="Invalid crop"):
            CropBox.from_sequence(values)

    def test_non_positive_size(self):
        """Test zero or negative sizes are rejected."""
        with pytest.raises(ValidationError):
            CropBox(width=0.0)
        with pytest.raises(ValidationError):
            CropBox(height=-1.0)

    def test_scale_figure(self):
        """Test the figure size is scaled by the crop size."""
        crop = CropBox.from_sequence([0.1, 0.2, 0.5, 2.0])
        assert crop.scale_figure((1.0, 2.0, 4.0, 3.0)) == (1.0, 2.0, 2.0, 6.0)

    def test_apply(self):
        """Test axes positions map into the cropped frame."""
        crop = CropBox.from_sequence([0.25, 0.0, 0.5, 1.0])
        assert crop.apply((0.25, 0.1, 0.5, 0.8)) == pytest.approx((0.0, 0.1, 1.0, 0.8))

    @pytest.mark.parametrize(
        "values",
        [
            [0.17, 0.05, 0.63, 1.0],
            [-0.2, -0.1, 1.5, 1.3],
            [0.3, 0.3, 0.1, 0.1],
        ],
    )
    def test_invert(self, values):
        """Test invert undoes apply, including out-of-range boxes."""
        crop = CropBox.from_sequence(values)
        position = (0.13, 0.11, 0.775, 0.815)
        assert crop.invert(crop.apply(position)) == pytest.approx(position)

    def test_frozen(self):
        """Test crop boxes are immutable."""
        crop = CropBox()
        with pytest.raises(ValidationError):
            crop.left = 0.5
