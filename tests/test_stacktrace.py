"""Tests for stack trace sanitization and analysis."""

import time

import pytest

from scrubkit.security.stacktrace import (
    REPEATED_MARKER,
    analyze_stack_trace_security,
    redact_paths,
    sanitize_stack_trace,
)


def _js_trace(frames):
    lines = ["Error: boom"]
    lines += [f"    at fn{i} (/srv/app/src/file{i}.js:{i}:1)" for i in range(frames)]
    return "\n".join(lines)


class TestRedactPaths:

    @pytest.mark.parametrize("line,expected", [
        ('File "/home/alice/proj/app.py", line 3', 'File "/home/***/app.py", line 3'),
        ("at f (/opt/x/y.js:1:2)", "at f (/***/y.js:1:2)"),
        ("at C:\\Users\\bob\\work\\app.js:1:2", "at C:\\Users\\***\\app.js:1:2"),
        ("loaded /srv/deploy/.env", "loaded /***/[REDACTED]"),
        ("no paths here", "no paths here"),
    ])
    def test_masks(self, line, expected):
        assert redact_paths(line) == expected

    def test_unc_path(self):
        out = redact_paths(r"\\fileserver\share\secret\x.txt")
        assert "fileserver" not in out
        assert out.startswith(r"\\[SERVER]\[SHARE]")

    def test_urls_left_alone(self):
        assert redact_paths("see https://example.com/docs") == "see https://example.com/docs"


class TestSanitizeStackTrace:

    def test_python_trace(self, python_trace):
        out = sanitize_stack_trace(python_trace)
        assert "alice" not in out
        assert "hunter2" not in out
        assert ".env" not in out
        assert '/home/***/main.py", line 42' in out
        assert "ValueError" in out

    def test_remove_line_numbers(self, python_trace):
        out = sanitize_stack_trace(python_trace, {"remove_line_numbers": True})
        assert "line 42" not in out
        assert 'File "/home/***/main.py", in <module>' in out

    def test_detail_none(self, python_trace):
        assert sanitize_stack_trace(python_trace, {"detail_level": "none"}) == ""

    def test_detail_raw(self, python_trace):
        out = sanitize_stack_trace(python_trace, {"detailLevel": "raw"})
        assert "alice" in out

    def test_detail_minimal(self, python_trace):
        out = sanitize_stack_trace(python_trace, {"detail_level": "minimal"})
        lines = out.splitlines()
        assert len(lines) == 2
        assert lines[0] == "Traceback (most recent call last):"
        assert "alice" not in out
        assert "line 42" not in out

    def test_frame_limit(self):
        out = sanitize_stack_trace(_js_trace(30), {"max_stack_depth": 5})
        frames = [line for line in out.splitlines() if line.startswith("    at ")]
        assert len(frames) == 5
        assert "... [25 more frames hidden]" in out
        assert "/srv/" not in out

    def test_repeated_token_is_fast_and_removed(self):
        token = "A" * 1000
        trace = f"Error: {token}\n    at x (/app/{token}.js:1:1)"
        started = time.perf_counter()
        out = sanitize_stack_trace(trace)
        assert time.perf_counter() - started < 0.1
        assert token not in out
        assert "A" * 21 not in out
        assert REPEATED_MARKER in out

    def test_huge_input_bounded(self):
        out = sanitize_stack_trace("x\n" * 100000)
        assert len(out.splitlines()) <= 202
        assert "more lines truncated" in out

    def test_control_chars(self):
        assert sanitize_stack_trace("Error: \x1b[31mred\x1b[0m") == "Error: red"

    def test_source_map_removed(self):
        out = sanitize_stack_trace("    at f (/srv/app.js:1:1) //# sourceMappingURL=app.js.map")
        assert "sourceMappingURL" not in out

    def test_username_masked(self, monkeypatch):
        monkeypatch.setenv("USER", "jdoe42")
        assert "[USER]" in sanitize_stack_trace("Error: failed for jdoe42 today")

    def test_generic_username_kept(self, monkeypatch):
        monkeypatch.setenv("USER", "root")
        monkeypatch.delenv("USERNAME", raising=False)
        monkeypatch.delenv("LOGNAME", raising=False)
        assert sanitize_stack_trace("Error: root cause") == "Error: root cause"

    def test_paths_kept_when_disabled(self, python_trace):
        out = sanitize_stack_trace(python_trace, {"redact_file_paths": False})
        assert "/home/alice/projects/app/main.py" in out

    def test_exception_input(self):
        out = sanitize_stack_trace(ValueError("/home/alice/x.py failed"))
        assert out.startswith("ValueError: ")
        assert "/home/***/x.py" in out

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty(self, value):
        assert sanitize_stack_trace(value) == ""


class TestAnalyzeStackTrace:

    def test_home_directory_is_high(self, python_trace):
        report = analyze_stack_trace_security(python_trace)
        assert report.risk_level == "high"
        assert "User home directory paths exposed" in report.risks
        assert any(f.pattern == "secret-values" for f in report.sensitive_patterns)

    def test_risks_deduplicated(self, python_trace):
        report = analyze_stack_trace_security(python_trace)
        assert len(report.risks) == len(set(report.risks))
        assert len(report.recommendations) == len(report.risks)

    def test_clean_trace_is_low(self):
        report = analyze_stack_trace_security("Error: boom\n    at main (index.js:1:1)")
        assert report.risk_level == "low"
        assert report.sensitive_patterns == []

    def test_single_finding_is_medium(self):
        report = analyze_stack_trace_security("Error: boom //# sourceMappingURL=x.js.map")
        assert report.risk_level == "medium"

    def test_long_line_quoted_briefly(self):
        report = analyze_stack_trace_security("Error: " + "a" * 5000)
        finding = next(f for f in report.sensitive_patterns if f.pattern == "long-paths")
        assert len(finding.line) <= 203

    def test_large_input_marked_truncated(self):
        report = analyze_stack_trace_security("line\n" * 5000)
        assert report.truncated is True

    def test_does_not_modify(self, python_trace):
        original = str(python_trace)
        analyze_stack_trace_security(python_trace)
        assert python_trace == original

    def test_to_dict(self, python_trace):
        data = analyze_stack_trace_security(python_trace).to_dict()
        assert data["risk_level"] == "high"
        assert {"pattern", "description", "line"} <= set(data["sensitive_patterns"][0])
