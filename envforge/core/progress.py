"""Progress updates for long running steps.

A step is framed by a ``start``/``stop`` pair: ``start`` announces what is
happening, ``stop`` replaces it with the final success or failure line.
"""

import sys
import time
from typing import Optional, TextIO


# Common progression life-cycle for an update.
STATUS_IN_PROGRESS = "in progress"
STATUS_FAILED = "failed"
STATUS_COMPLETE = "complete"
STATUS_SKIPPED = "skipped"


def success_message(text: str) -> str:
    """Format a final line for a step that succeeded."""
    return f"✅ {text}"


def failure_message(text: str) -> str:
    """Format a final line for a step that failed."""
    return f"❌ {text}"


class Spinner:
    """Start/stop progress indicator writing to a text stream."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream or sys.stderr
        self._label: Optional[str] = None
        self._started_at: Optional[float] = None
        self.status: Optional[str] = None

    def start(self, label: str) -> None:
        """Announce the beginning of a step."""
        self._label = label
        self._started_at = time.monotonic()
        self.status = STATUS_IN_PROGRESS
        print(f"⏳ {label}", file=self._stream, flush=True)

    def stop(self, message: str) -> None:
        """Finish the current step with its final message."""
        if message.startswith("❌"):
            self.status = STATUS_FAILED
        else:
            self.status = STATUS_COMPLETE
        elapsed = ""
        if self._started_at is not None:
            elapsed = f" ({int(time.monotonic() - self._started_at)}s)"
        print(f"{message.rstrip()}{elapsed}", file=self._stream, flush=True)
        self._label = None
        self._started_at = None
