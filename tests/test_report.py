"""
Unit tests for checkgate.report.
"""

import json

from checkgate.pipeline import FailurePolicy, PipelineResult
from checkgate.report import redact_text, summarize, tail, to_summary
from checkgate.steps.base import StepOutcome


def _result(*outcomes, policy=FailurePolicy.FAIL_FAST, cancelled=False, **kwargs):
    result = PipelineResult("check", policy, cancelled=cancelled, **kwargs)
    for o in outcomes:
        result.add(o)
    return result.seal()


class TestSummarize:
    def test_all_passed_exit_zero(self):
        text, code = summarize(
            _result(StepOutcome("install", "PASS", 0, seconds=1.5), StepOutcome("lint", "PASS", 0))
        )
        assert code == 0
        assert "all 2 step(s) passed" in text
        assert text.index("install") < text.index("lint")

    def test_empty_result_passes(self):
        text, code = summarize(_result())
        assert code == 0
        assert "all 0 step(s) passed" in text

    def test_failed_includes_stderr_excerpt(self):
        failed = StepOutcome("lint", "FAIL", 1, stderr=b"src/a.rs:1: bad thing\n", note="exit=1")
        text, code = summarize(_result(StepOutcome("install", "PASS", 0), failed))
        assert code == 1
        assert "FAIL" in text
        assert "| src/a.rs:1: bad thing" in text
        assert "fix your change" in text

    def test_passed_steps_show_no_output(self):
        text, _ = summarize(_result(StepOutcome("ok", "PASS", 0, stderr=b"warning: noisy\n")))
        assert "noisy" not in text

    def test_error_distinguished_from_failure(self):
        errored = StepOutcome("clippy", "ERROR", stderr=b"FileNotFoundError: clippy\n")
        text, code = summarize(_result(errored))
        assert code == 1
        assert "check infrastructure is broken" in text
        assert "fix your change" not in text

    def test_skipped_and_cancelled_mentioned(self):
        text, code = summarize(
            _result(
                StepOutcome("a", "ERROR", note="cancelled"),
                StepOutcome.skipped("b", "cancelled"),
                cancelled=True,
            )
        )
        assert code == 1
        assert "cancelled by operator" in text
        assert "1 skipped" in text

    def test_stderr_truncated_to_last_lines(self):
        err = "".join(f"line {i}\n" for i in range(100)).encode()
        text, _ = summarize(_result(StepOutcome("lint", "FAIL", 1, stderr=err)), tail_lines=5)
        assert "line 99" in text
        assert "line 95" in text
        assert "line 94" not in text

    def test_secrets_redacted(self):
        err = b"connecting with password=hunter2 failed\n"
        text, _ = summarize(_result(StepOutcome("deploy", "FAIL", 1, stderr=err)))
        assert "hunter2" not in text
        assert "<REDACTED>" in text

        text, _ = summarize(
            _result(StepOutcome("deploy", "FAIL", 1, stderr=err)), redact=False
        )
        assert "hunter2" in text

    def test_total_time_reported(self):
        text, _ = summarize(_result(StepOutcome("lint", "PASS", 0), seconds=12.5))
        assert "[12.50s total]" in text

    def test_stopped_run_mentioned(self):
        text, code = summarize(
            _result(
                StepOutcome("a", "PASS", 0),
                StepOutcome.skipped("b", "stopped"),
                stopped=True,
            )
        )
        assert code == 0
        assert "run stopped early" in text
        assert "1 step(s) passed" in text


class TestTail:
    def test_falls_back_to_stdout(self):
        o = StepOutcome("fmt", "FAIL", 1, stdout=b"would reformat x.py\n")
        assert tail(o, 10) == ["would reformat x.py"]

    def test_undecodable_bytes_replaced(self):
        o = StepOutcome("bin", "FAIL", 1, stderr=b"bad \xff byte\n")
        assert tail(o, 10) == ["bad � byte"]

    def test_zero_lines(self):
        assert tail(StepOutcome("x", "FAIL", 1, stderr=b"a\nb\n"), 0) == []


class TestToSummary:
    def test_machine_readable(self):
        result = _result(
            StepOutcome("install", "PASS", 0, seconds=0.5),
            StepOutcome("lint", "FAIL", 2, stderr=b"boom\n", note="exit=2"),
            StepOutcome.skipped("format", "not run (fail-fast)"),
        )
        summary = to_summary(result)
        json.dumps(summary)
        assert summary["status"] == "FAIL"
        assert summary["exit_code"] == 1
        assert summary["policy"] == "fail-fast"
        assert [r["status"] for r in summary["results"]] == ["PASS", "FAIL", "SKIP"]
        assert summary["results"][1]["output_tail"] == ["boom"]
        assert summary["results"][2]["exit_code"] is None

    def test_run_level_fields(self):
        result = _result(StepOutcome("a", "PASS", 0), stopped=True, seconds=3.25)
        summary = to_summary(result)
        assert summary["seconds"] == 3.25
        assert summary["stopped"] is True
        assert summary["cancelled"] is False


def test_redact_text_token():
    assert redact_text("token: abcdefghijklmnop") == "token=<REDACTED>"
