"""Tests for microbench.bench.compare — baseline comparison and ranking."""

from __future__ import annotations

import unittest

from bench_test_helpers import make_memory, make_result

from microbench.bench.compare import compare_results, compare_runs, rank_results
from microbench.bench.errors import DegenerateStatistics
from microbench.bench.results import BenchResult


class TestCompareResults(unittest.TestCase):
    def test_faster_current(self) -> None:
        comp = compare_results(
            make_result("op", [4.0, 4.0, 4.0]),
            make_result("op", [2.0, 2.0, 2.0]),
        )
        self.assertEqual(comp.speedup, 2.0)
        self.assertFalse(comp.regression)
        self.assertEqual(comp.change_pct, -50.0)
        self.assertEqual(comp.name, "op")

    def test_regression(self) -> None:
        comp = compare_results(make_result("op", [1.0, 1.0]), make_result("op", [2.0, 2.0]))
        self.assertEqual(comp.speedup, 0.5)
        self.assertTrue(comp.regression)

    def test_small_slowdown_within_threshold(self) -> None:
        comp = compare_results(make_result("op", [100.0]), make_result("op", [104.0]))
        self.assertFalse(comp.regression)

    def test_custom_threshold(self) -> None:
        comp = compare_results(
            make_result("op", [100.0]),
            make_result("op", [104.0]),
            regression_threshold=0.99,
        )
        self.assertTrue(comp.regression)

    def test_memory_reduction(self) -> None:
        comp = compare_results(
            make_result("op", [1.0], memory=make_memory([40])),
            make_result("op", [1.0], memory=make_memory([30])),
        )
        self.assertEqual(comp.memory_reduction, 0.25)

    def test_memory_missing_on_one_side(self) -> None:
        comp = compare_results(
            make_result("op", [1.0], memory=make_memory([40])),
            make_result("op", [1.0]),
        )
        self.assertIsNone(comp.memory_reduction)

    def test_to_dict(self) -> None:
        data = compare_results(make_result("op", [4.0]), make_result("op", [2.0])).to_dict()
        self.assertEqual(data["speedup"], 2.0)
        self.assertIsNone(data["memory_reduction"])
        self.assertFalse(data["regression"])

    def test_nanosecond_speedup_survives_json(self) -> None:
        baseline = make_result("op", [0.000045123] * 5)
        current = make_result("op", [0.000047987] * 5)
        direct = compare_results(baseline, current)
        reloaded = compare_results(
            BenchResult.from_json(baseline.to_json()),
            BenchResult.from_json(current.to_json()),
        )
        self.assertEqual(reloaded.speedup, direct.speedup)
        self.assertAlmostEqual(reloaded.speedup, 0.9403, places=4)
        self.assertTrue(reloaded.regression)

    def test_sub_nanosecond_mean_is_not_zeroed(self) -> None:
        tiny = make_result("op", [0.0000002] * 3)
        reloaded = BenchResult.from_json(tiny.to_json())
        self.assertEqual(compare_results(reloaded, reloaded).speedup, 1.0)

    def test_non_positive_mean_rejected(self) -> None:
        data = make_result("op", [1.0]).to_dict()
        data["stats"]["mean"] = 0.0
        broken = BenchResult.from_dict(data)
        with self.assertRaises(DegenerateStatistics):
            compare_results(make_result("op", [1.0]), broken)
        with self.assertRaises(DegenerateStatistics):
            rank_results({"zero": broken})


class TestCompareRuns(unittest.TestCase):
    def test_matched_by_name_in_current_order(self) -> None:
        baseline = [make_result(n, [d]) for n, d in [("a", 1.0), ("b", 2.0), ("gone", 1.0)]]
        current = [make_result(n, [1.0]) for n in ("b", "new", "a")]
        comparisons = compare_runs(baseline, current)
        self.assertEqual([c.name for c in comparisons], ["b", "a"])
        self.assertEqual(comparisons[0].speedup, 2.0)


class TestRankResults(unittest.TestCase):
    def test_fastest_first(self) -> None:
        ranked = rank_results(
            {
                "slow": make_result("x - slow", [3.0]),
                "fast": make_result("x - fast", [1.0]),
                "mid": make_result("x - mid", [2.0]),
            }
        )
        self.assertEqual([r.label for r in ranked], ["fast", "mid", "slow"])
        self.assertEqual(ranked[0].relative, 1.0)
        self.assertEqual(ranked[2].relative, 3.0)
        self.assertEqual(ranked[1].slowdown_pct, 100.0)

    def test_ties_keep_run_order(self) -> None:
        ranked = rank_results({"b": make_result("b", [1.0]), "a": make_result("a", [1.0])})
        self.assertEqual([r.label for r in ranked], ["b", "a"])

    def test_empty(self) -> None:
        self.assertEqual(rank_results({}), [])
