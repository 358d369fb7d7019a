"""Tests for overlay transforms and adjustments."""

import pytest

from swingsync.domain import Keypoint
from swingsync.services import (
    ContainerTransform,
    OverlaySettings,
    compose_overlay_point,
    fit_to_viewport,
)
from swingsync.services.overlay import to_container_space


class TestViewportFit:
    """Test object-contain fitting."""

    def test_letterbox(self):
        """A wide video in a square viewport gets bars above and below."""
        fit = fit_to_viewport((1920, 1080), (400, 400))

        assert fit.scale == pytest.approx(400 / 1920)
        assert fit.offset_x == pytest.approx(0.0)
        assert fit.offset_y == pytest.approx(87.5)

    def test_pillarbox(self):
        """A tall video in a wide viewport gets bars left and right."""
        fit = fit_to_viewport((1080, 1920), (800, 400))

        assert fit.offset_y == pytest.approx(0.0)
        assert fit.apply(0, 0)[0] == pytest.approx((800 - 1080 * 400 / 1920) / 2)

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            fit_to_viewport((0, 1080), (400, 400))

    def test_container_space(self):
        assert to_container_space((100.0, 50.0), 0.5) == (200.0, 100.0)


class TestComposeOverlayPoint:
    """Test the full video -> display chain."""

    def test_center_point_only_translated(self):
        transform = ContainerTransform(translate_pct=15.0, scale=0.475)

        x, y = compose_overlay_point(
            Keypoint(960, 540, 0.9), (1920, 1080), (400, 400), 1.0, transform,
        )

        assert x == pytest.approx(260.0)
        assert y == pytest.approx(200.0)

    def test_pixel_offset(self):
        transform = ContainerTransform(translate_pct=15.0, offset_x=10.0, offset_y=-5.0)

        x, y = compose_overlay_point(
            Keypoint(960, 540, 0.9), (1920, 1080), (400, 400), 1.0, transform,
        )

        assert (x, y) == (pytest.approx(270.0), pytest.approx(195.0))

    def test_scale_applied_once(self):
        """The overlay scale shrinks distances from the center exactly once."""
        transform = ContainerTransform(translate_pct=0.0, scale=0.5)

        x, y = compose_overlay_point(
            Keypoint(0, 0, 0.9), (1920, 1080), (400, 400), 1.0, transform,
        )

        assert x == pytest.approx(100.0)
        assert y == pytest.approx(143.75)

    def test_container_scale_undone(self):
        """Measured sizes include the container scale; it is divided out."""
        transform = ContainerTransform(translate_pct=0.0, scale=0.5)

        x, y = compose_overlay_point(
            Keypoint(0, 0, 0.9), (1920, 1080), (400, 400), 0.5, transform,
        )

        assert x == pytest.approx(200.0)
        assert y == pytest.approx(287.5)

    def test_css(self):
        transform = ContainerTransform(translate_pct=-15.0, offset_x=10.0, offset_y=-5.0, scale=0.475)
        assert transform.to_css() == "translate(-15%, 0) translate(10px, -5px) scale(0.475)"


class TestOverlaySettings:
    """Test user overlay adjustments."""

    def test_pinch_is_clamped(self):
        settings = OverlaySettings()

        assert settings.pinch(0.475, 100.0, 200.0) == pytest.approx(0.95)
        assert settings.pinch(0.475, 100.0, 400.0) == 1.2
        assert settings.pinch(0.475, 100.0, 10.0) == 0.2

    def test_drag_resize(self):
        settings = OverlaySettings()

        assert settings.drag_resize(0.5, 100.0) == pytest.approx(0.8)
        assert settings.drag_resize(0.475, -200.0) == 0.2

    def test_move_and_reset(self):
        settings = OverlaySettings()
        settings.move(10.0, 20.0, 5.0, -5.0)
        settings.drag_resize(0.5, 100.0)

        assert (settings.offset_x, settings.offset_y) == (15.0, 15.0)

        settings.reset()
        assert settings == OverlaySettings()

    def test_transform_by_handedness(self):
        settings = OverlaySettings()

        assert settings.container_transform(1).translate_pct == 15.0
        assert settings.container_transform(-1).translate_pct == -15.0
