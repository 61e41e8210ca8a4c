"""
Unit tests for the pixel transforms (recolor / filter)
"""

import numpy as np
import pytest

from tileproxy.palettes import DESIGNATION_COLORS, PLOW_COLOR_MAP, Palette, default_palettes
from tileproxy.pixels import MATCH_THRESHOLD, classify, filter_pixels, pixel_view, recolor_pixels


PALETTES = default_palettes()


def _buf(*pixels):
    return np.array(pixels, dtype=np.uint8).reshape(-1, 4)


class TestClassify:
    """Nearest-color lookup"""

    def test_exact_match_has_zero_distance(self):
        idx, d2 = classify(np.array([[0xFF, 0xA5, 0x00]]), PALETTES.plow)
        assert idx[0] == 3
        assert d2[0] == 0

    def test_first_index_wins_on_tie(self):
        palette = Palette.from_colors([(0, 0, 0), (10, 0, 0)])
        idx, d2 = classify(np.array([[5, 0, 0]]), palette)
        assert idx[0] == 0
        assert d2[0] == 25

    def test_squared_euclidean_distance(self):
        idx, d2 = classify(np.array([[0, 128, 55]]), PALETTES.plow)
        assert idx[0] == 0
        assert d2[0] == 55 * 55


class TestRecolor:
    """Plow recency recolor"""

    def test_transparent_pixels_untouched(self):
        buf = _buf((0, 128, 0, 0), (12, 34, 56, 0))
        before = buf.copy()
        recolor_pixels(buf, PALETTES.plow, hide={0, 1, 2})
        np.testing.assert_array_equal(buf, before)

    @pytest.mark.parametrize("i", range(len(PLOW_COLOR_MAP)))
    def test_exact_source_replaced_by_destination(self, i):
        m = PLOW_COLOR_MAP[i]
        buf = _buf((*m.source, 200))
        recolor_pixels(buf, PALETTES.plow)
        assert tuple(buf[0]) == (*m.destination, 200)

    @pytest.mark.parametrize(
        "pixel, expected",
        [
            # every pixel sits at distance 55 from its source -> t = 0.5
            ((0, 128, 55), (26, 148, 97)),     # green, 55 + 41.5 rounds half-up to 97
            ((0, 0, 200), (33, 67, 195)),      # blue
            ((255, 255, 55), (253, 222, 57)),  # yellow
            ((255, 165, 55), (244, 139, 60)),  # orange
            ((138, 43, 171), (147, 75, 169)),  # violet
            ((58, 229, 183), (68, 207, 162)),  # cyan
            ((75, 59, 103), (107, 91, 134)),   # dark brown
        ],
    )
    def test_near_match_is_interpolated(self, pixel, expected):
        buf = _buf((*pixel, 255))
        recolor_pixels(buf, PALETTES.plow)
        assert tuple(buf[0]) == (*expected, 255)

    def test_interpolation_non_trivial_t(self):
        # d = 30 -> t = 80/110
        buf = _buf((0, 128, 30, 255))
        recolor_pixels(buf, PALETTES.plow)
        assert tuple(buf[0]) == (38, 157, 90, 255)

    def test_far_pixels_untouched(self):
        buf = _buf((128, 128, 128, 255), (255, 255, 255, 255))
        before = buf.copy()
        recolor_pixels(buf, PALETTES.plow)
        np.testing.assert_array_equal(buf, before)

    def test_threshold_is_exclusive(self):
        # 100^2 + 40^2 + 20^2 == 12000 from green, farther from everything else
        buf = _buf((100, 168, 20, 255))
        _, d2 = classify(buf[:, :3], PALETTES.plow)
        assert d2[0] == MATCH_THRESHOLD
        recolor_pixels(buf, PALETTES.plow)
        assert tuple(buf[0]) == (100, 168, 20, 255)

    def test_hidden_category_zeroes_alpha_only(self):
        buf = _buf((0, 128, 0, 255), (0, 128, 55, 255), (0, 0, 255, 255))
        recolor_pixels(buf, PALETTES.plow, hide={0})
        assert tuple(buf[0]) == (0, 128, 0, 0)
        assert tuple(buf[1]) == (0, 128, 55, 0)
        assert tuple(buf[2]) == (0x42, 0x85, 0xF4, 255)

    def test_hide_does_not_touch_unmatched_pixels(self):
        buf = _buf((128, 128, 128, 255))
        recolor_pixels(buf, PALETTES.plow, hide=set(range(7)))
        assert tuple(buf[0]) == (128, 128, 128, 255)

    def test_out_of_range_hide_indices_ignored(self):
        buf = _buf((0, 128, 0, 255))
        recolor_pixels(buf, PALETTES.plow, hide={-1, 7, 10 ** 30})
        assert tuple(buf[0]) == (0x34, 0xA8, 0x53, 255)

    def test_works_on_writable_bytearray(self):
        raw = bytearray([0, 128, 0, 255, 0, 0, 0, 0])
        recolor_pixels(raw, PALETTES.plow)
        assert bytes(raw) == bytes([0x34, 0xA8, 0x53, 255, 0, 0, 0, 0])

    def test_works_on_image_shaped_array(self):
        img = np.zeros((2, 2, 4), dtype=np.uint8)
        img[1, 1] = (0, 0, 255, 255)
        recolor_pixels(img, PALETTES.plow)
        assert tuple(img[1, 1]) == (0x42, 0x85, 0xF4, 255)
        assert tuple(img[0, 0]) == (0, 0, 0, 0)


class TestFilter:
    """Designation alpha filter"""

    def test_hidden_category_zeroed(self):
        crit = DESIGNATION_COLORS[0]
        buf = _buf((*crit, 255), (crit[0], crit[1], crit[2] + 20, 180))
        filter_pixels(buf, PALETTES.designation, hide={0})
        assert tuple(buf[0]) == (*crit, 0)
        assert tuple(buf[1]) == (crit[0], crit[1], crit[2] + 20, 0)

    def test_other_categories_untouched(self):
        buf = _buf((*DESIGNATION_COLORS[1], 255), (*DESIGNATION_COLORS[2], 255))
        before = buf.copy()
        filter_pixels(buf, PALETTES.designation, hide={0, 3})
        np.testing.assert_array_equal(buf, before)

    def test_never_changes_rgb(self):
        rng = np.random.default_rng(7)
        buf = rng.integers(0, 256, size=(500, 4), dtype=np.uint8)
        before = buf.copy()
        filter_pixels(buf, PALETTES.designation, hide={0, 1, 2, 3})
        np.testing.assert_array_equal(buf[:, :3], before[:, :3])
        changed = buf[:, 3] != before[:, 3]
        assert np.all(buf[changed, 3] == 0)

    def test_empty_hide_is_noop(self):
        buf = _buf((*DESIGNATION_COLORS[0], 255))
        before = buf.copy()
        filter_pixels(buf, PALETTES.designation, hide=frozenset())
        np.testing.assert_array_equal(buf, before)

    def test_transparent_pixels_untouched(self):
        buf = _buf((*DESIGNATION_COLORS[0], 0))
        filter_pixels(buf, PALETTES.designation, hide={0})
        assert tuple(buf[0]) == (*DESIGNATION_COLORS[0], 0)


class TestPixelView:
    def test_rejects_partial_pixels(self):
        with pytest.raises(ValueError):
            pixel_view(bytearray(6))

    def test_rejects_wrong_dtype(self):
        with pytest.raises(TypeError):
            pixel_view(np.zeros((2, 4), dtype=np.int32))
