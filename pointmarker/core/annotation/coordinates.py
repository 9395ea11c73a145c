"""
Coordinate transforms between screen, canvas and image space.

Screen space is the client-pixel space pointer events arrive in. Canvas
space is the rendering surface before zoom/pan. Image space is the native
pixel grid of the reference image.
"""

from dataclasses import dataclass
from typing import Tuple

from .state import Viewport


@dataclass(frozen=True)
class CanvasRect:
    """
    Bounding rectangle of the canvas element plus its backing-store size.

    ``width``/``height`` are the CSS size on screen; ``backing_width``/
    ``backing_height`` the pixel size of the drawing surface.
    """

    left: float
    top: float
    width: float
    height: float
    backing_width: float
    backing_height: float

    def __post_init__(self):
        for field in ("width", "height", "backing_width", "backing_height"):
            if not getattr(self, field) > 0:
                raise ValueError(f"CanvasRect {field} must be positive, got {getattr(self, field)}")

    @classmethod
    def unscaled(cls, width: float, height: float, left: float = 0.0, top: float = 0.0):
        """A rect whose CSS size equals its backing-store size."""
        return cls(left, top, width, height, width, height)

    @property
    def scale_x(self) -> float:
        return self.backing_width / self.width

    @property
    def scale_y(self) -> float:
        return self.backing_height / self.height


def screen_to_canvas(
    px: float, py: float, rect: CanvasRect, viewport: Viewport
) -> Tuple[float, float]:
    """
    Convert client pixel coordinates to canvas space.

    Undoes the CSS-to-backing-store scale first, then the viewport
    translation and scale.
    """
    raw_x = (px - rect.left) * rect.scale_x
    raw_y = (py - rect.top) * rect.scale_y
    return (
        (raw_x - viewport.offset_x) / viewport.scale,
        (raw_y - viewport.offset_y) / viewport.scale,
    )


def canvas_to_screen(
    x: float, y: float, rect: CanvasRect, viewport: Viewport
) -> Tuple[float, float]:
    """Inverse of :func:`screen_to_canvas`."""
    raw_x = x * viewport.scale + viewport.offset_x
    raw_y = y * viewport.scale + viewport.offset_y
    return raw_x / rect.scale_x + rect.left, raw_y / rect.scale_y + rect.top


def canvas_to_view(x: float, y: float, viewport: Viewport) -> Tuple[float, float]:
    """Canvas space to backing-store pixels with the viewport applied."""
    return x * viewport.scale + viewport.offset_x, y * viewport.scale + viewport.offset_y


def canvas_to_image(value: float, canvas_dim: float, image_dim: float) -> int:
    """Scale one canvas coordinate to image space, rounded to an integer."""
    return int(round(value * image_dim / canvas_dim))


def image_to_canvas(value: float, canvas_dim: float, image_dim: float) -> int:
    """Scale one image coordinate to canvas space, rounded to an integer."""
    return int(round(value * canvas_dim / image_dim))


def canvas_point_to_image(
    x: float, y: float, canvas_size: Tuple[int, int], image_size: Tuple[int, int]
) -> Tuple[int, int]:
    """
    Convert a canvas position to image space.

    Args:
        canvas_size: (width, height) of the canvas
        image_size: (width, height) of the image
    """
    return (
        canvas_to_image(x, canvas_size[0], image_size[0]),
        canvas_to_image(y, canvas_size[1], image_size[1]),
    )


def image_point_to_canvas(
    x: float, y: float, canvas_size: Tuple[int, int], image_size: Tuple[int, int]
) -> Tuple[int, int]:
    """Convert an image position to canvas space."""
    return (
        image_to_canvas(x, canvas_size[0], image_size[0]),
        image_to_canvas(y, canvas_size[1], image_size[1]),
    )
