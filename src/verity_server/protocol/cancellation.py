"""Cancellation token for conversational turns."""

import time


class CancellationToken:
    """Single-consumer cancellation flag with an optional deadline.

    The orchestrator samples ``cancelled`` after every streamed delta and
    before each state transition. Any number of producers may call
    ``cancel()``; setting the flag is idempotent. Waits on the model stream
    and on tool dispatch are bounded by ``remaining()``, so the deadline also
    ends a turn that receives no further chunks.

    Attributes:
        reason: Why the token was cancelled ("user", "deadline", ...)
    """

    def __init__(self, deadline_seconds: float | None = None) -> None:
        self._cancelled = False
        self._deadline = (
            time.monotonic() + deadline_seconds if deadline_seconds is not None else None
        )
        self.reason: str | None = None

    def cancel(self, reason: str = "user") -> None:
        if not self._cancelled:
            self._cancelled = True
            self.reason = reason

    @property
    def cancelled(self) -> bool:
        if not self._cancelled and self._deadline is not None:
            if time.monotonic() >= self._deadline:
                self.cancel("deadline")
        return self._cancelled

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None when there is no deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())
