"""Tests for microbench.cli — the click command-line interface."""

from __future__ import annotations

import json
import logging
import tempfile
import unittest
from pathlib import Path

from click.testing import CliRunner

from bench_test_helpers import make_result
from microbench import __version__
from microbench.bench.results import dump_results
from microbench.cli import load_target, main

_QUICK = ["-q", "--iterations", "5", "--warmup", "1", "--no-gc"]


def _reset_logging() -> None:
    logger = logging.getLogger("microbench")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


class TestMainGroup(unittest.TestCase):
    def test_help(self) -> None:
        result = CliRunner().invoke(main, ["--help"])
        self.assertEqual(result.exit_code, 0)
        for command in ("run", "system", "compare"):
            self.assertIn(command, result.output)

    def test_version(self) -> None:
        result = CliRunner().invoke(main, ["--version"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn(__version__, result.output)

    def test_run_help(self) -> None:
        result = CliRunner().invoke(main, ["run", "--help"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("--timeout-ms", result.output)
        self.assertIn("--enforce-timeout", result.output)
        self.assertIn("--profile", result.output)


# ---------------------------------------------------------------------------
# Target loading
# ---------------------------------------------------------------------------


class TestLoadTarget(unittest.TestCase):
    def test_module_attr(self) -> None:
        label, fn = load_target("time:perf_counter")
        self.assertEqual(label, "perf_counter")
        self.assertTrue(callable(fn))

    def test_labelled(self) -> None:
        label, _ = load_target("clock=time:perf_counter")
        self.assertEqual(label, "clock")

    def test_dotted_attr(self) -> None:
        label, fn = load_target("pathlib:Path.cwd")
        self.assertEqual(label, "cwd")
        self.assertTrue(callable(fn))

    def test_malformed(self) -> None:
        with self.assertRaises(ValueError):
            load_target("no_colon_here")
        with self.assertRaises(ValueError):
            load_target("time:")

    def test_missing_module(self) -> None:
        with self.assertRaises(ValueError) as ctx:
            load_target("no_such_module_for_microbench:f")
        self.assertIn("Cannot import", str(ctx.exception))

    def test_missing_attr(self) -> None:
        with self.assertRaises(ValueError):
            load_target("time:no_such_function")

    def test_not_callable(self) -> None:
        with self.assertRaises(ValueError) as ctx:
            load_target("sys:version")
        self.assertIn("not callable", str(ctx.exception))


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


class TestRunCommand(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)

    def tearDown(self) -> None:
        _reset_logging()
        self.tmp.cleanup()

    def test_single_json(self) -> None:
        result = CliRunner().invoke(
            main, ["run", *_QUICK, "--no-memory", "--format", "json", "bench_test_helpers:spin"]
        )
        self.assertEqual(result.exit_code, 0, result.output)
        data = json.loads(result.output)
        self.assertEqual(data["name"], "spin")
        self.assertEqual(data["samples"], 5)
        self.assertNotIn("memory", data)
        self.assertIn("cpu", data)

    def test_single_console(self) -> None:
        result = CliRunner().invoke(
            main, ["run", *_QUICK, "--name", "summing", "bench_test_helpers:spin"]
        )
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Environment", result.output)
        self.assertIn("summing", result.output)
        self.assertIn("Throughput:", result.output)

    def test_comparison_json(self) -> None:
        result = CliRunner().invoke(
            main,
            [
                "run",
                *_QUICK,
                "--format",
                "json",
                "a=bench_test_helpers:spin",
                "b=bench_test_helpers:spin",
            ],
        )
        self.assertEqual(result.exit_code, 0, result.output)
        data = json.loads(result.output)
        self.assertEqual(list(data), ["a", "b"])
        self.assertEqual(data["a"]["name"], "comparison - a")

    def test_comparison_console(self) -> None:
        result = CliRunner().invoke(
            main,
            ["run", *_QUICK, "one=bench_test_helpers:spin", "two=bench_test_helpers:spin"],
        )
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("fastest", result.output)
        self.assertIn("vs fastest", result.output)

    def test_markdown(self) -> None:
        result = CliRunner().invoke(
            main, ["run", *_QUICK, "--format", "markdown", "bench_test_helpers:spin"]
        )
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("# Benchmark Results", result.output)
        self.assertIn("## Memory Usage", result.output)

    def test_duplicate_labels(self) -> None:
        result = CliRunner().invoke(
            main, ["run", *_QUICK, "bench_test_helpers:spin", "bench_test_helpers:spin"]
        )
        self.assertEqual(result.exit_code, 1)
        self.assertIn("distinct labels", result.output)

    def test_invalid_configuration(self) -> None:
        result = CliRunner().invoke(
            main, ["run", "-q", "--iterations", "0", "bench_test_helpers:spin"]
        )
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Error: Invalid benchmark configuration", result.output)

    def test_bad_target(self) -> None:
        result = CliRunner().invoke(main, ["run", "-q", "no_such_module_for_microbench:f"])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Error: Cannot import module", result.output)

    def test_failing_target(self) -> None:
        result = CliRunner().invoke(main, ["run", *_QUICK, "bench_test_helpers:explode"])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Error: Candidate 'explode' failed during warmup iteration 1", result.output)
        self.assertIn("caused by RuntimeError: target exploded", result.output)

    def test_profile(self) -> None:
        profile = self.dir / "quick.yaml"
        profile.write_text(
            "name: from-profile\nconfig:\n  iterations: 4\n  warmup_iterations: 0\n",
            encoding="utf-8",
        )
        runner = CliRunner()
        result = runner.invoke(
            main,
            ["run", "-q", "--profile", str(profile), "--format", "json", "bench_test_helpers:spin"],
        )
        self.assertEqual(result.exit_code, 0, result.output)
        data = json.loads(result.output)
        self.assertEqual(data["name"], "from-profile")
        self.assertEqual(data["samples"], 4)

        result = runner.invoke(
            main,
            [
                "run",
                "-q",
                "--profile",
                str(profile),
                "--iterations",
                "6",
                "--format",
                "json",
                "bench_test_helpers:spin",
            ],
        )
        self.assertEqual(json.loads(result.output)["samples"], 6)

    def test_profile_with_unknown_option(self) -> None:
        profile = self.dir / "bad.yaml"
        profile.write_text("repeat: 3\n", encoding="utf-8")
        result = CliRunner().invoke(
            main, ["run", "-q", "--profile", str(profile), "bench_test_helpers:spin"]
        )
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Unknown profile option 'repeat'", result.output)

    def test_log_file(self) -> None:
        log_file = self.dir / "run.log"
        result = CliRunner().invoke(
            main,
            ["run", *_QUICK, "--log-file", str(log_file), "bench_test_helpers:spin"],
        )
        self.assertEqual(result.exit_code, 0, result.output)
        _reset_logging()
        text = log_file.read_text(encoding="utf-8")
        self.assertIn("Benchmarking 'spin'", text)
        self.assertIn("M5/5", text)


# ---------------------------------------------------------------------------
# system
# ---------------------------------------------------------------------------


class TestSystemCommand(unittest.TestCase):
    def test_console(self) -> None:
        result = CliRunner().invoke(main, ["system"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("Environment", result.output)
        self.assertIn("Python:", result.output)

    def test_json(self) -> None:
        result = CliRunner().invoke(main, ["system", "--json"])
        self.assertEqual(result.exit_code, 0)
        data = json.loads(result.output)
        self.assertIn("platform", data)
        self.assertGreater(data["cpus"], 0)


# ---------------------------------------------------------------------------
# compare
# ---------------------------------------------------------------------------


class TestCompareCommand(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)
        self.baseline = self.dir / "baseline.json"
        self.current = self.dir / "current.json"
        self.baseline.write_text(
            dump_results([make_result("parse", [4.0]), make_result("dump", [1.0])]),
            encoding="utf-8",
        )
        self.current.write_text(
            dump_results([make_result("parse", [2.0]), make_result("dump", [2.0])]),
            encoding="utf-8",
        )

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def test_console(self) -> None:
        result = CliRunner().invoke(main, ["compare", str(self.baseline), str(self.current)])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("2.00x faster", result.output)
        self.assertIn("2.00x slower", result.output)
        self.assertIn("1 regressed", result.output)

    def test_fail_on_regression(self) -> None:
        result = CliRunner().invoke(
            main,
            ["compare", str(self.baseline), str(self.current), "--fail-on-regression"],
        )
        self.assertEqual(result.exit_code, 1)

    def test_threshold(self) -> None:
        result = CliRunner().invoke(
            main,
            [
                "compare",
                str(self.baseline),
                str(self.current),
                "--threshold",
                "0.4",
                "--fail-on-regression",
            ],
        )
        self.assertEqual(result.exit_code, 0, result.output)

    def test_json(self) -> None:
        result = CliRunner().invoke(
            main, ["compare", str(self.baseline), str(self.current), "--format", "json"]
        )
        self.assertEqual(result.exit_code, 0, result.output)
        data = json.loads(result.output)
        self.assertEqual([c["name"] for c in data], ["parse", "dump"])
        self.assertEqual([c["regression"] for c in data], [False, True])

    def test_markdown(self) -> None:
        result = CliRunner().invoke(
            main, ["compare", str(self.baseline), str(self.current), "--format", "markdown"]
        )
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("# Performance Comparison", result.output)

    def test_zero_mean_document(self) -> None:
        data = make_result("parse", [1.0]).to_dict()
        data["stats"]["mean"] = 0.0
        broken = self.dir / "zero.json"
        broken.write_text(json.dumps([data]), encoding="utf-8")
        result = CliRunner().invoke(main, ["compare", str(self.baseline), str(broken)])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("non-positive mean", result.output)

    def test_invalid_document(self) -> None:
        bad = self.dir / "bad.json"
        bad.write_text("[1, 2", encoding="utf-8")
        result = CliRunner().invoke(main, ["compare", str(bad), str(self.current)])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Error:", result.output)
