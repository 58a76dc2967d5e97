import unittest

from src.core.models import Rect, ScanLayout
from src.services.scanner.geometry import map_screen_to_sensor, sensor_rect_for_layout, clamp_to_frame


class TestCoordinateMapping(unittest.TestCase):
    def test_full_display_box_maps_to_full_frame(self):
        # Same aspect at different display sizes
        cases = [
            (1280, 720, 640, 360),
            (1280, 720, 1280, 720),
            (720, 1280, 360, 640),
            (1920, 1080, 427, 240.1875),
        ]
        for vw, vh, dw, dh in cases:
            with self.subTest(video=(vw, vh), display=(dw, dh)):
                rect = map_screen_to_sensor(vw, vh, dw, dh, Rect(left=0, top=0, width=dw, height=dh))
                self.assertEqual((rect.left, rect.top, rect.width, rect.height), (0, 0, vw, vh))

    def test_wider_frame_crops_sides(self):
        # 16:9 frame in a square box: height decides scale (2.0), 160px cropped each side
        rect = map_screen_to_sensor(1280, 720, 360, 360, Rect(left=0, top=0, width=360, height=360))
        self.assertEqual((rect.left, rect.top, rect.width, rect.height), (280, 0, 720, 720))

    def test_taller_frame_crops_top_and_bottom(self):
        # 9:16 portrait frame in a 4:3 box: width decides scale (720/400 = 1.8)
        rect = map_screen_to_sensor(720, 1280, 400, 300, Rect(left=40, top=105, width=320, height=90))
        # offset_y = (1280 - 300 * 1.8) / 2 = 370
        self.assertEqual((rect.left, rect.top, rect.width, rect.height), (72, 559, 576, 162))

    def test_rounds_only_at_the_end(self):
        # scale = 3; 0.5 + 0.5 would lose precision if rounded per step
        rect = map_screen_to_sensor(300, 300, 100, 100, Rect(left=0.5, top=0.5, width=10.5, height=10.5))
        self.assertEqual((rect.left, rect.top, rect.width, rect.height), (2, 2, 32, 32))

    def test_invalid_dimensions_raise(self):
        with self.assertRaises(ValueError):
            map_screen_to_sensor(0, 720, 100, 100, Rect(left=0, top=0, width=10, height=10))

    def test_layout_uses_guide_relative_to_video(self):
        layout = ScanLayout(
            video_width=1280, video_height=720,
            video_box=Rect(left=100, top=50, width=640, height=360),
            guide_box=Rect(left=164, top=176, width=512, height=108),
        )
        rect = sensor_rect_for_layout(layout)
        self.assertEqual((rect.left, rect.top, rect.width, rect.height), (128, 252, 1024, 216))

    def test_clamp_keeps_rect_inside_frame(self):
        rect = clamp_to_frame(Rect(left=-10, top=700, width=100, height=100), 1280, 720)
        self.assertEqual((rect.left, rect.top, rect.width, rect.height), (0, 700, 90, 20))


if __name__ == '__main__':
    unittest.main()
