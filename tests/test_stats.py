"""Tests for kvbench.stats — medians, relative deviation and magnitude formatting."""

from __future__ import annotations

import unittest

from kvbench.stats import describe, human_memory, human_number, median, rstdev


# ---------------------------------------------------------------------------
# Central tendency and spread
# ---------------------------------------------------------------------------


class TestMedian(unittest.TestCase):
    def test_odd_length(self) -> None:
        self.assertEqual(median([10.0, 30.0, 20.0]), 20.0)

    def test_even_length_averages_central_pair(self) -> None:
        self.assertEqual(median([4.0, 1.0, 3.0, 2.0]), 2.5)

    def test_empty_is_zero(self) -> None:
        self.assertEqual(median([]), 0.0)

    def test_single_value(self) -> None:
        self.assertEqual(median([7]), 7.0)


class TestRstdev(unittest.TestCase):
    def test_known_value(self) -> None:
        """pstdev([1, 2, 3]) = sqrt(2/3); relative to mean 2."""
        self.assertAlmostEqual(rstdev([1.0, 2.0, 3.0]), 40.824829, places=5)

    def test_identical_values(self) -> None:
        self.assertEqual(rstdev([5.0, 5.0, 5.0]), 0.0)

    def test_fewer_than_two_samples(self) -> None:
        self.assertEqual(rstdev([]), 0.0)
        self.assertEqual(rstdev([12.5]), 0.0)

    def test_zero_mean(self) -> None:
        self.assertEqual(rstdev([-1.0, 1.0]), 0.0)

    def test_scale_invariant(self) -> None:
        self.assertAlmostEqual(rstdev([1.0, 2.0, 3.0]), rstdev([100.0, 200.0, 300.0]))


class TestDescribe(unittest.TestCase):
    def test_basic(self) -> None:
        stats = describe([2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0])
        self.assertEqual(stats.n, 8)
        self.assertAlmostEqual(stats.mean, 5.0)
        self.assertAlmostEqual(stats.median, 4.5)
        self.assertAlmostEqual(stats.stdev, 2.0)
        self.assertAlmostEqual(stats.rstdev, 40.0)
        self.assertEqual((stats.min, stats.max), (2.0, 9.0))

    def test_empty_is_all_zero(self) -> None:
        stats = describe([])
        self.assertEqual(stats.n, 0)
        self.assertEqual(stats.to_dict()["mean"], 0.0)
        self.assertEqual(stats.stdev, 0.0)

    def test_single_value_has_no_spread(self) -> None:
        stats = describe([42.0])
        self.assertEqual(stats.stdev, 0.0)
        self.assertEqual(stats.rstdev, 0.0)


# ---------------------------------------------------------------------------
# Magnitude formatting
# ---------------------------------------------------------------------------


class TestHumanMemory(unittest.TestCase):
    def test_bytes_have_no_decimals(self) -> None:
        self.assertEqual(human_memory(0), "0b")
        self.assertEqual(human_memory(1023), "1,023b")

    def test_exact_powers_move_up_a_tier(self) -> None:
        self.assertEqual(human_memory(1024), "1.00kb")
        self.assertEqual(human_memory(1024**2), "1.00mb")
        self.assertEqual(human_memory(1024**3), "1.00gb")

    def test_fractional(self) -> None:
        self.assertEqual(human_memory(1536), "1.50kb")

    def test_clamped_to_largest_unit(self) -> None:
        self.assertEqual(human_memory(1024**4), "1,024.00gb")

    def test_negative_uses_smallest_unit(self) -> None:
        self.assertEqual(human_memory(-2048), "-2,048b")


class TestHumanNumber(unittest.TestCase):
    def test_small_numbers(self) -> None:
        self.assertEqual(human_number(0), "0")
        self.assertEqual(human_number(999), "999")

    def test_tiers(self) -> None:
        self.assertEqual(human_number(1000), "1.00K")
        self.assertEqual(human_number(12_346), "12.35K")
        self.assertEqual(human_number(1_500_000), "1.50M")
        self.assertEqual(human_number(2_000_000_000), "2.00B")

    def test_clamped_to_largest_unit(self) -> None:
        self.assertEqual(human_number(10**12), "1,000.00B")


if __name__ == "__main__":
    unittest.main()
