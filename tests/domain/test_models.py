"""Tests for domain models."""

import pytest
from pydantic import ValidationError

from domain.models import (
    AnchorSpec,
    AppSettings,
    AttributionStyle,
    GeoRequest,
    MarkerSpec,
)
from shared.constants import MarkerFit


class TestGeoRequest:
    def test_clamped_scale(self):
        assert GeoRequest(0, 0, 1, scale=0).clamped_scale == 1
        assert GeoRequest(0, 0, 1, scale=3).clamped_scale == 3
        assert GeoRequest(0, 0, 1, scale=10).clamped_scale == 4

    def test_immutable(self):
        req = GeoRequest(0, 0, 1)
        with pytest.raises(AttributeError):
            req.zoom = 2


class TestAppSettings:
    """Tests for AppSettings model."""

    def test_defaults(self):
        s = AppSettings()
        assert s.osm_base_url == 'https://tile.openstreetmap.org'
        assert s.request_timeout_s == 10.0
        assert s.retry_base_delay_s == 1.0
        assert s.tile_cache_ttl_s == 3600.0
        assert s.find_marker('pin').anchor == 'bottom-center'
        assert s.find_marker('pin').fit is MarkerFit.CONTAIN

    def test_anchor_catalog(self):
        s = AppSettings()
        names = {a.name for a in s.anchors}
        assert {'center', 'top-left', 'bottom-right', 'bottom'} <= names
        assert s.find_anchor('bottom') == AnchorSpec(name='bottom', x=0.5, y=1)
        assert s.find_anchor(None) is None
        assert s.find_anchor('nope') is None

    def test_frozen(self):
        s = AppSettings()
        with pytest.raises(ValidationError):
            s.port = 1

    def test_default_marker_none_without_catalog(self):
        assert AppSettings(markers=()).default_marker is None

    def test_default_marker_first_in_catalog(self):
        s = AppSettings(markers=(MarkerSpec(name='a', file='a.png'), MarkerSpec(name='b', file='b.png')))
        assert s.default_marker == 'a'

    def test_anchor_range(self):
        with pytest.raises(ValidationError):
            AnchorSpec(name='x', x=-0.1, y=0)

    def test_attribution_visibility(self):
        assert AttributionStyle().visible
        assert not AttributionStyle(enabled=False).visible
        assert not AttributionStyle(text='').visible

    def test_positive_limits(self):
        with pytest.raises(ValidationError):
            AppSettings(tile_cache={'max_size': 0})
        with pytest.raises(ValidationError):
            AppSettings(rate_limit={'max_concurrent': 0})
        with pytest.raises(ValidationError):
            AppSettings(retry={'max_retries': 0})

    @pytest.mark.parametrize(
        'overrides',
        [
            {'tile_size': 0},
            {'tile_size': -256},
            {'request_timeout_ms': 0},
            {'request_timeout_ms': -1},
            {'retry': {'base_delay_ms': -5}},
        ],
    )
    def test_rejects_degenerate_pipeline_values(self, overrides):
        with pytest.raises(ValidationError):
            AppSettings(**overrides)

    def test_zero_backoff_allowed(self):
        assert AppSettings(retry={'base_delay_ms': 0}).retry_base_delay_s == 0
