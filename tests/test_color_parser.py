"""
Tests for colour annotation parsing
"""

import numpy as np
import pytest
from PIL import Image

from maskcore.color_parser import (
    ColorMaskParser, load_color_annotation, pack_rgb, read_annotation_image, unpack_rgb
)
from maskcore.errors import ImageLoadError


def blank(height=10, width=10):
    """White RGB canvas."""
    return np.full((height, width, 3), 255, dtype=np.uint8)


class TestParse:
    """Tests for class discovery and pixel assignment."""

    def test_two_colors(self):
        image = blank()
        image[:, :3] = (255, 0, 0)
        image[:, 7:] = (0, 0, 255)

        parsed = ColorMaskParser().parse(image)

        assert len(parsed.classes) == 2
        # Sorted by packed RGB: blue (0x0000FF) before red (0xFF0000)
        assert parsed.classes[0].color == (0, 0, 255)
        assert parsed.classes[1].color == (255, 0, 0)
        assert [c.id for c in parsed.classes] == [0, 1]
        assert int(parsed.masks[0].sum()) == 30
        assert int(parsed.masks[1].sum()) == 30
        assert parsed.masks[1][:, :3].all()
        assert (parsed.width, parsed.height) == (10, 10)

    def test_class_order_is_by_packed_value(self):
        image = blank()
        image[0, 0] = (255, 0, 0)
        image[0, 1] = (0, 255, 0)

        parsed = ColorMaskParser().parse(image)

        assert [c.packed_rgb for c in parsed.classes] == [0x00FF00, 0xFF0000]

    def test_near_white_is_background(self):
        image = blank()
        image[2:4, 2:4] = (252, 251, 250)

        parsed = ColorMaskParser().parse(image)

        assert parsed.classes == []
        assert parsed.masks == {}

    def test_light_color_is_not_background(self):
        """Only pixels with every channel >= 250 are background."""
        image = blank()
        image[0, 0] = (249, 255, 255)
        parsed = ColorMaskParser().parse(image)
        assert len(parsed.classes) == 1

    def test_masks_do_not_overlap(self):
        image = blank()
        image[:5] = (10, 20, 30)
        image[5:, :5] = (200, 100, 0)

        parsed = ColorMaskParser().parse(image)

        total = sum(m.astype(int) for m in parsed.masks.values())
        assert total.max() == 1
        assert int(total.sum()) == 75

    def test_excess_colors_snap_to_nearest_class(self):
        """Colours beyond the class limit snap within the threshold or stay unlabeled."""
        image = blank(4, 10)
        for k in range(8):
            image[0, k] = (0, 0, 30 * k + 10)
        image[1, 0] = (0, 10, 12)   # 10.2 from class 0
        image[1, 1] = (200, 0, 0)   # far from every class

        parsed = ColorMaskParser().parse(image)

        assert len(parsed.classes) == 8
        assert parsed.masks[0][1, 0] == 1
        assert not any(m[1, 1] for m in parsed.masks.values())

    def test_snap_prefers_closer_class(self):
        parser = ColorMaskParser(max_classes=2)
        image = blank()
        image[0, 0] = (0, 0, 100)
        image[0, 1] = (0, 0, 140)
        image[0, 2] = (0, 5, 135)  # third colour, nearest to 140

        parsed = parser.parse(image)

        assert parsed.masks[1][0, 2] == 1
        assert parsed.masks[0][0, 2] == 0

    def test_snap_threshold_is_exclusive(self):
        parser = ColorMaskParser(max_classes=1)
        image = blank()
        image[0, 0] = (0, 0, 0)
        image[0, 1] = (0, 0, 30)  # exactly the threshold away
        image[0, 2] = (0, 0, 29)

        parsed = parser.parse(image)

        assert parsed.masks[0][0, 1] == 0
        assert parsed.masks[0][0, 2] == 1

    def test_transparent_pixels_are_background(self):
        rgba = np.zeros((4, 4, 4), dtype=np.uint8)
        rgba[0, 0] = (0, 128, 0, 255)

        parsed = ColorMaskParser().parse(rgba)

        assert len(parsed.classes) == 1
        assert parsed.classes[0].color == (0, 128, 0)
        assert int(parsed.masks[0].sum()) == 1

    def test_pil_and_array_inputs_agree(self):
        image = blank()
        image[3:6, 3:6] = (0, 128, 255)

        from_array = ColorMaskParser().parse(image)
        from_pil = ColorMaskParser().parse(Image.fromarray(image))

        assert from_array.classes == from_pil.classes
        np.testing.assert_array_equal(from_array.masks[0], from_pil.masks[0])


class TestHelpers:
    """Tests for packing and file loading."""

    def test_pack_unpack(self):
        assert pack_rgb(0x12, 0x34, 0x56) == 0x123456
        assert unpack_rgb(0x123456) == (0x12, 0x34, 0x56)

    def test_load_from_file(self, tmp_path):
        image = blank()
        image[:, :5] = (0, 0, 255)
        path = tmp_path / "annotation.png"
        Image.fromarray(image).save(path)

        parsed = load_color_annotation(path)

        assert len(parsed.classes) == 1
        assert int(parsed.masks[0].sum()) == 50

    def test_missing_file(self, tmp_path):
        with pytest.raises(ImageLoadError):
            read_annotation_image(tmp_path / "missing.png")
