"""Exception taxonomy for Past Forward.

Every error raised deliberately by the core derives from
:class:`PastForwardError` so that the HTTP layer and the CLI can map them to
user-facing responses in one place.

Recovery rules
--------------
- :class:`GenerationFailure` is recovered per decade: the scheduler records
  it as an ``error`` entry and the rest of the batch carries on.
- :class:`MissingInputsError` is a precondition failure; callers tell the user
  to wait for every image to finish and take no further action.
- :class:`CompositionFailure` discards the album attempt wholesale.
- :class:`ShareCancelled` is the user dismissing a share dialog and is never
  reported as an error.
"""

from __future__ import annotations

from collections.abc import Iterable


class PastForwardError(Exception):
    """Base class for all Past Forward errors."""


class UnknownDecadeError(PastForwardError, KeyError):
    """Raised when an identifier is not part of the configured catalog."""

    def __init__(self, decade: str) -> None:
        super().__init__(decade)
        self.decade = decade

    def __str__(self) -> str:
        return f"Unknown decade: {self.decade}"


class MissingSourceImageError(PastForwardError):
    """Raised when generation is requested before a photo was uploaded."""

    def __init__(self, message: str = "Upload a photo before generating.") -> None:
        super().__init__(message)


class BatchInProgressError(PastForwardError):
    """Raised when a batch is started while another one is still running."""

    def __init__(self, message: str = "A generation batch is already running.") -> None:
        super().__init__(message)


class GenerationFailure(PastForwardError):
    """Raised by a generator client when a single generation call fails."""


class ResultUnavailableError(PastForwardError):
    """Raised when a single decade's image is requested before it is done."""

    def __init__(self, decade: str) -> None:
        super().__init__(f"No finished image for {decade}.")
        self.decade = decade


class MissingInputsError(PastForwardError):
    """Raised when an album is requested before every decade is done.

    Attributes:
        missing: Catalog identifiers without a finished image, in catalog order.
    """

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = list(missing)
        super().__init__(
            "Please wait for all images to finish generating "
            f"(missing: {', '.join(self.missing)})."
        )


class CompositionFailure(PastForwardError):
    """Raised when decoding, drawing, or encoding the album fails."""


class ShareCancelled(PastForwardError):
    """Raised by a sharer when the user dismisses the share dialog."""


class ShareFailure(PastForwardError):
    """Raised when sharing fails for any reason other than cancellation."""
