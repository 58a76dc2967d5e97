import math

from src.core.models import Rect, ScanLayout


def _round(value: float) -> int:
    # Half up, the way the browser rounds pixel positions
    return int(math.floor(value + 0.5))


def map_screen_to_sensor(video_width: int, video_height: int,
                         display_width: float, display_height: float,
                         screen_rect: Rect) -> Rect:
    """
    Maps a rectangle given relative to the display element onto raw frame pixels.

    The display shows the frame with a "cover" fit: uniformly scaled to fill the
    box, with the overflowing axis cropped equally on both sides.
    """
    if video_width <= 0 or video_height <= 0 or display_width <= 0 or display_height <= 0:
        raise ValueError("Video and display dimensions must be positive")

    video_aspect = video_width / video_height
    display_aspect = display_width / display_height

    offset_x = 0.0
    offset_y = 0.0
    if video_aspect > display_aspect:
        # Frame is wider: height decides scale, sides are cropped
        scale = video_height / display_height
        offset_x = (video_width - display_width * scale) / 2
    else:
        # Frame is taller (or equal): width decides scale, top/bottom are cropped
        scale = video_width / display_width
        offset_y = (video_height - display_height * scale) / 2

    # Round only at the end
    return Rect(
        left=_round(offset_x + screen_rect.left * scale),
        top=_round(offset_y + screen_rect.top * scale),
        width=_round(screen_rect.width * scale),
        height=_round(screen_rect.height * scale),
    )


def clamp_to_frame(rect: Rect, frame_width: int, frame_height: int) -> Rect:
    left = min(max(int(rect.left), 0), frame_width)
    top = min(max(int(rect.top), 0), frame_height)
    right = min(max(int(rect.right), left), frame_width)
    bottom = min(max(int(rect.bottom), top), frame_height)
    return Rect(left=left, top=top, width=right - left, height=bottom - top)


def sensor_rect_for_layout(layout: ScanLayout) -> Rect:
    """Sensor rect of the scan guide for one capture. Always recomputed, never cached."""
    relative = Rect(
        left=layout.guide_box.left - layout.video_box.left,
        top=layout.guide_box.top - layout.video_box.top,
        width=layout.guide_box.width,
        height=layout.guide_box.height,
    )
    rect = map_screen_to_sensor(
        layout.video_width, layout.video_height,
        layout.video_box.width, layout.video_box.height,
        relative,
    )
    return clamp_to_frame(rect, layout.video_width, layout.video_height)
