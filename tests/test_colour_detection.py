import unittest
from unittest.mock import patch

import numpy as np

from src.core.constants import COLOUR_RGB
from src.core.models import Rect, RaffleColour, ColourSample, COLOURS
from src.services.scanner.colour import (
    detect_colour, sample_colour, nearest_colour, edge_sample_points
)


def _frame(rgb, width=200, height=120):
    r, g, b = rgb
    frame = np.zeros((height, width, 3), dtype=np.uint8)
    frame[:, :] = (b, g, r)  # OpenCV order
    return frame


class TestColourDetection(unittest.TestCase):
    def test_exact_reference_colours(self):
        rect = Rect(left=20, top=20, width=160, height=80)
        for colour in COLOURS:
            with self.subTest(colour=colour):
                frame = _frame(COLOUR_RGB[colour])
                sample = sample_colour(frame, rect)
                detected, distance = nearest_colour(sample)
                self.assertEqual(detected, colour)
                self.assertEqual(distance, 0.0)
                self.assertEqual(detect_colour(frame, rect), colour)

    def test_samples_border_not_centre(self):
        # Ticket colour on the border band, dark print in the middle
        frame = _frame(COLOUR_RGB[RaffleColour.GREEN])
        frame[40:80, 40:160] = (0, 0, 0)
        rect = Rect(left=20, top=20, width=160, height=80)
        self.assertEqual(detect_colour(frame, rect), RaffleColour.GREEN)

    def test_point_count_and_inset(self):
        rect = Rect(left=10, top=10, width=100, height=50)
        points = edge_sample_points(rect, 200, 120)
        self.assertEqual(len(points), 80)
        self.assertIn((10, 15), points)   # first top point, inset 5
        self.assertIn((15, 10), points)   # first left point, inset 5
        self.assertIn((105, 10), points)  # first right point

    def test_points_clamped_into_frame(self):
        rect = Rect(left=0, top=0, width=200, height=120)
        points = edge_sample_points(rect, 50, 30)
        self.assertTrue(all(0 <= x < 50 and 0 <= y < 30 for x, y in points))

    def test_degenerate_rect_falls_back_to_white(self):
        frame = _frame(COLOUR_RGB[RaffleColour.RED])
        self.assertIsNone(sample_colour(frame, Rect(left=10, top=10, width=0, height=40)))
        self.assertEqual(detect_colour(frame, Rect(left=10, top=10, width=0, height=40)), RaffleColour.WHITE)
        self.assertEqual(detect_colour(frame, Rect(left=10, top=10, width=40, height=0)), RaffleColour.WHITE)

    def test_tie_goes_to_earlier_colour(self):
        red = COLOUR_RGB[RaffleColour.RED]
        with patch.dict(COLOUR_RGB, {RaffleColour.BLUE: red}):
            colour, distance = nearest_colour(ColourSample(r=red[0], g=red[1], b=red[2], count=1))
        self.assertEqual(colour, RaffleColour.RED)
        self.assertEqual(distance, 0.0)

    def test_near_colour_classified(self):
        frame = _frame((240, 130, 10))  # washed out orange
        self.assertEqual(detect_colour(frame, Rect(left=20, top=20, width=160, height=80)), RaffleColour.ORANGE)


if __name__ == '__main__':
    unittest.main()
