from __future__ import annotations

import unittest

from rtd.detector.geometry import area, intersection_over_union
from rtd.types import Box


class GeometryTests(unittest.TestCase):
    def test_area_of_valid_box(self) -> None:
        self.assertAlmostEqual(area(Box(0.1, 0.2, 0.5, 0.6)), 0.16, places=9)

    def test_area_of_degenerate_box_is_zero(self) -> None:
        self.assertEqual(area(Box(0.5, 0.5, 0.4, 0.9)), 0.0)
        self.assertEqual(area(Box(0.2, 0.2, 0.2, 0.8)), 0.0)

    def test_iou_with_itself_is_one(self) -> None:
        box = Box(0.1, 0.1, 0.4, 0.7)
        self.assertAlmostEqual(intersection_over_union(box, box), 1.0, places=9)

    def test_disjoint_boxes_have_zero_iou(self) -> None:
        a = Box(0.0, 0.0, 0.2, 0.2)
        b = Box(0.5, 0.5, 0.9, 0.9)
        self.assertEqual(intersection_over_union(a, b), 0.0)

    def test_touching_edges_have_zero_iou(self) -> None:
        a = Box(0.0, 0.0, 0.5, 0.5)
        b = Box(0.5, 0.0, 1.0, 0.5)
        self.assertEqual(intersection_over_union(a, b), 0.0)

    def test_iou_is_symmetric(self) -> None:
        a = Box(0.0, 0.0, 0.5, 0.5)
        b = Box(0.25, 0.25, 0.75, 0.75)
        self.assertAlmostEqual(intersection_over_union(a, b), intersection_over_union(b, a))
        # 0.0625 / (0.25 + 0.25 - 0.0625)
        self.assertAlmostEqual(intersection_over_union(a, b), 0.0625 / 0.4375, places=9)

    def test_degenerate_box_never_divides_by_zero(self) -> None:
        a = Box(0.3, 0.3, 0.3, 0.3)
        self.assertEqual(intersection_over_union(a, a), 0.0)


if __name__ == "__main__":
    unittest.main()
