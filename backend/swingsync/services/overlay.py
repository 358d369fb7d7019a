"""
Overlay Transform Service

Maps reference-stream keypoints into the display space where the
reference container is drawn over the user's video.

The chain is:
    1. video pixels -> viewport (object-contain fit, letterbox aware)
    2. viewport -> container-local (undo the container's own scale)
    3. container-local -> display (one outer translate/translate/scale)

The overlay scale is applied only in step 3. compose_overlay_point() is
the single place that chains the steps.
"""

import math
from dataclasses import dataclass
from typing import Optional

from ..config import (
    DEFAULT_OVERLAY_SCALE,
    MIN_OVERLAY_SCALE,
    MAX_OVERLAY_SCALE,
    RESIZE_SENSITIVITY,
    REFERENCE_TRANSLATE_PCT,
)
from ..domain.pose import Keypoint

Point = tuple[float, float]
Size = tuple[float, float]


@dataclass(frozen=True)
class ViewportFit:
    """
    How a video of one size is displayed inside a viewport.

    Attributes:
        scale: Uniform video -> viewport scale
        offset_x: Horizontal bar width (pillarbox)
        offset_y: Vertical bar height (letterbox)
    """
    scale: float
    offset_x: float
    offset_y: float

    def apply(self, x: float, y: float) -> Point:
        return (x * self.scale + self.offset_x, y * self.scale + self.offset_y)


def fit_to_viewport(video_size: Size, viewport_size: Size) -> ViewportFit:
    """
    Compute the object-contain mapping of a video into a viewport.

    Args:
        video_size: Native (width, height) of the video
        viewport_size: (width, height) of the element displaying it

    Raises:
        ValueError: If any dimension is not positive
    """
    video_w, video_h = video_size
    view_w, view_h = viewport_size
    if video_w <= 0 or video_h <= 0 or view_w <= 0 or view_h <= 0:
        raise ValueError(f"Invalid sizes: video={video_size}, viewport={viewport_size}")

    scale = min(view_w / video_w, view_h / video_h)
    return ViewportFit(
        scale=scale,
        offset_x=(view_w - video_w * scale) / 2,
        offset_y=(view_h - video_h * scale) / 2,
    )


def to_container_space(point: Point, container_scale: float) -> Point:
    """Undo the reference container's display scale."""
    if container_scale <= 0:
        raise ValueError(f"Container scale must be positive, got {container_scale}")
    return (point[0] / container_scale, point[1] / container_scale)


def clamp_overlay_scale(scale: float) -> float:
    return max(MIN_OVERLAY_SCALE, min(MAX_OVERLAY_SCALE, scale))


@dataclass(frozen=True)
class ContainerTransform:
    """
    Outer transform of the reference container.

    Equivalent to the CSS
    `translate(P%, 0) translate(Xpx, Ypx) scale(S)` with the transform
    origin at the element's center.
    """
    translate_pct: float = REFERENCE_TRANSLATE_PCT
    offset_x: float = 0.0
    offset_y: float = 0.0
    scale: float = DEFAULT_OVERLAY_SCALE

    def apply(self, point: Point, container_size: Size) -> Point:
        """Map a container-local point to display coordinates."""
        width, height = container_size
        cx, cy = width / 2, height / 2
        x = cx + (point[0] - cx) * self.scale
        y = cy + (point[1] - cy) * self.scale
        return (
            x + width * self.translate_pct / 100.0 + self.offset_x,
            y + self.offset_y,
        )

    def to_css(self) -> str:
        return (
            f"translate({self.translate_pct:g}%, 0) "
            f"translate({self.offset_x:g}px, {self.offset_y:g}px) "
            f"scale({self.scale:g})"
        )


def compose_overlay_point(
    keypoint: Keypoint,
    video_size: Size,
    viewport_size: Size,
    container_scale: float,
    transform: ContainerTransform,
    container_size: Optional[Size] = None,
) -> Point:
    """
    Map a reference keypoint from native video pixels to display space.

    Args:
        keypoint: Keypoint in the reference video's pixel space
        video_size: Native size of the reference video
        viewport_size: Measured size of the reference viewport (display px)
        container_scale: Scale the container is displayed at; measured
                         sizes already include it
        transform: Outer container transform (applies the overlay scale)
        container_size: Untransformed container size; defaults to the
                        viewport size in container-local units

    Returns:
        (x, y) in display coordinates
    """
    fit = fit_to_viewport(video_size, viewport_size)
    viewport_point = fit.apply(keypoint.x, keypoint.y)
    local = to_container_space(viewport_point, container_scale)

    if container_size is None:
        container_size = to_container_space(viewport_size, container_scale)

    return transform.apply(local, container_size)


# =============================================================================
# User-driven overlay adjustments
# =============================================================================

@dataclass
class OverlaySettings:
    """User-adjustable overlay scale and pixel offset."""
    scale: float = DEFAULT_OVERLAY_SCALE
    offset_x: float = 0.0
    offset_y: float = 0.0

    def pinch(self, initial_scale: float, initial_distance: float, distance: float) -> float:
        """Scale by the ratio of two-finger distances."""
        if initial_distance <= 0:
            return self.scale
        self.scale = clamp_overlay_scale(initial_scale * distance / initial_distance)
        return self.scale

    def drag_resize(self, scale_start: float, dy: float) -> float:
        """Scale from a vertical drag on the resize handle."""
        self.scale = clamp_overlay_scale(scale_start + dy * RESIZE_SENSITIVITY)
        return self.scale

    def move(self, start_x: float, start_y: float, dx: float, dy: float) -> None:
        """Offset relative to where the drag started."""
        self.offset_x = start_x + dx
        self.offset_y = start_y + dy

    def reset(self) -> None:
        self.scale = DEFAULT_OVERLAY_SCALE
        self.offset_x = 0.0
        self.offset_y = 0.0

    def container_transform(self, translate_sign: int = 1) -> ContainerTransform:
        return ContainerTransform(
            translate_pct=math.copysign(REFERENCE_TRANSLATE_PCT, translate_sign),
            offset_x=self.offset_x,
            offset_y=self.offset_y,
            scale=self.scale,
        )
