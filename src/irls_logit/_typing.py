"""Shared type aliases for the irls_logit package."""

from collections.abc import Callable

# ``() -> bool``; returns True once the caller wants the fit aborted.
CancelCheck = Callable[[], bool]

# ``(fraction, message) -> None`` progress sink.
ProgressSink = Callable[[float, str], None]
