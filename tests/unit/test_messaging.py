"""Tests for Reporter console output and its logging mirror."""

import io
import logging

from rich.console import Console

from compose_autodeploy.utils.messaging import Reporter


def make_reporter():
    out, err = io.StringIO(), io.StringIO()
    reporter = Reporter(
        console=Console(file=out, soft_wrap=True),
        error_console=Console(file=err, soft_wrap=True),
    )
    return reporter, out, err


class TestReporter:
    """Test that each message reaches the deployment log exactly once."""

    def test_error_goes_to_stderr_console(self):
        reporter, out, err = make_reporter()

        reporter.error("Command failed with exit code 1: docker compose up")

        assert err.getvalue() == "❌ [ERROR] Command failed with exit code 1: docker compose up\n"
        assert out.getvalue() == ""

    def test_warning_goes_to_stdout_console(self):
        reporter, out, _err = make_reporter()

        reporter.warning("Could not determine a non-root deploy user")

        assert out.getvalue() == "⚠️  Could not determine a non-root deploy user\n"

    def test_warnings_and_errors_are_not_logged_above_debug(self, caplog):
        reporter, _out, _err = make_reporter()

        with caplog.at_level(logging.DEBUG, logger="compose_autodeploy.utils.messaging"):
            reporter.warning("low disk space")
            reporter.error("deployment failed")

        assert [r.levelno for r in caplog.records] == [logging.DEBUG, logging.DEBUG]
