"""Unit tests for progress updates."""

import io

from envforge.core.progress import (
    STATUS_COMPLETE,
    STATUS_FAILED,
    STATUS_IN_PROGRESS,
    Spinner,
    failure_message,
    success_message,
)


class TestSpinner:
    """Test cases for Spinner class."""

    def test_start_and_succeed(self):
        """Test a step that completes."""
        stream = io.StringIO()
        spinner = Spinner(stream)

        spinner.start("Creating the infrastructure for stack demo-test")
        assert spinner.status == STATUS_IN_PROGRESS

        spinner.stop(success_message("Created the infrastructure for stack demo-test"))
        assert spinner.status == STATUS_COMPLETE

        lines = stream.getvalue().splitlines()
        assert lines[0] == "⏳ Creating the infrastructure for stack demo-test"
        assert lines[1].startswith("✅ Created the infrastructure for stack demo-test")

    def test_failure(self):
        """Test a step that fails."""
        stream = io.StringIO()
        spinner = Spinner(stream)

        spinner.start("Linking account")
        spinner.stop(failure_message("Failed to link account"))

        assert spinner.status == STATUS_FAILED
        assert "❌ Failed to link account" in stream.getvalue()
