"""Tests for attribution text rendering."""

from PIL import Image

from domain.models import AttributionStyle
from imaging.text import attribution_layout, draw_attribution, load_font


class TestAttributionLayout:
    """Tests for attribution_layout function."""

    def test_bar_sits_at_bottom(self):
        style = AttributionStyle()
        layout = attribution_layout(style, load_font(style.font_size), 256)
        assert layout.top + layout.height == 256
        assert layout.height >= 2 * style.padding_y

    def test_scales_with_output(self):
        style = AttributionStyle()
        one = attribution_layout(style, load_font(style.font_size), 256, scale=1)
        two = attribution_layout(style, load_font(style.font_size * 2), 512, scale=2)
        assert two.height > one.height
        assert two.top + two.height == 512

    def test_padding_changes_height(self):
        font = load_font(12)
        narrow = attribution_layout(AttributionStyle(padding_y=2), font, 256)
        wide = attribution_layout(AttributionStyle(padding_y=10), font, 256)
        assert wide.height - narrow.height == 16


class TestDrawAttribution:
    def test_disabled_leaves_canvas(self):
        canvas = Image.new('RGBA', (64, 64), (10, 20, 30, 255))
        draw_attribution(canvas, AttributionStyle(enabled=False))
        assert canvas.getpixel((1, 63)) == (10, 20, 30, 255)

    def test_empty_text_leaves_canvas(self):
        canvas = Image.new('RGBA', (64, 64), (10, 20, 30, 255))
        draw_attribution(canvas, AttributionStyle(text=''))
        assert canvas.getpixel((1, 63)) == (10, 20, 30, 255)

    def test_draws_bar(self):
        canvas = Image.new('RGBA', (128, 128), (255, 255, 255, 255))
        draw_attribution(canvas, AttributionStyle(background_color='#ff0000', opacity=1.0))
        assert canvas.getpixel((1, 127)) == (255, 0, 0, 255)
        assert canvas.getpixel((1, 1)) == (255, 255, 255, 255)

    def test_font_path_fallback(self, tmp_path):
        """Unreadable font path falls back to another font."""
        font = load_font(12, str(tmp_path / 'missing.ttf'))
        assert font.getbbox('A')[3] > 0
