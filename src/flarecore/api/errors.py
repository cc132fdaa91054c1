"""
Error taxonomy for provider calls.

- ConfigurationError: missing model/credential or an invalid request value.
  Fatal, never retried.
- NetworkError: DNS, TLS, timeouts, non-2xx responses. Surfaced to the
  caller; retry policy belongs to the caller.
- ProtocolError: a frame did not match any known backend shape. Inside a
  stream it is logged and the frame skipped; for whole-body responses it
  fails the request.
- CancelledError: cooperative cancellation through a CancellationToken.
  Not a true failure; send_message turns it into a partial result.
"""

from __future__ import annotations


class FlareError(Exception):
    """Base class for all flarecore errors."""


class ConfigurationError(FlareError):
    """A provider or request is misconfigured (missing model, credential, ...)."""


class NetworkError(FlareError):
    """The network call failed or the backend answered with a non-2xx status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ProtocolError(FlareError):
    """A decoded frame or response body does not have the expected shape."""


class CancelledError(FlareError):
    """
    The request was cancelled through its CancellationToken.

    Distinct from asyncio.CancelledError, which cancels a task; this one is
    raised by CancellationToken.raise_if_cancelled().
    """
