"""Tests for color parsing."""

import pytest

from shared.colors import parse_color, with_opacity


class TestParseColor:
    @pytest.mark.parametrize(
        ('value', 'expected'),
        [
            ('#ff0000', (255, 0, 0, 255)),
            ('#e53935', (229, 57, 53, 255)),
            ('white', (255, 255, 255, 255)),
            ('black', (0, 0, 0, 255)),
            ('rgb(1, 2, 3)', (1, 2, 3, 255)),
            ('rgba(0, 0, 0, 0.35)', (0, 0, 0, 89)),
            ('RGBA(10,20,30,1)', (10, 20, 30, 255)),
            ('rgba(255, 255, 255, 0)', (255, 255, 255, 0)),
        ],
    )
    def test_valid(self, value, expected):
        assert parse_color(value) == expected

    @pytest.mark.parametrize('value', ['not-a-color', 'rgba(0, 0, 0, 1.5)', 'rgba(300, 0, 0, 0.5)', ''])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_color(value)


class TestWithOpacity:
    def test_scales_alpha(self):
        assert with_opacity((0, 0, 0, 255), 0.5) == (0, 0, 0, 128)
        assert with_opacity((0, 0, 0, 200), 1.0) == (0, 0, 0, 200)

    def test_clamps(self):
        assert with_opacity((1, 2, 3, 255), 2.0) == (1, 2, 3, 255)
        assert with_opacity((1, 2, 3, 255), -1.0) == (1, 2, 3, 0)
