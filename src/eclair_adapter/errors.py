"""
Exceptions raised by the adapter. Callers of the payment service only have to
know these classes; transport specific errors are translated at the rpc
boundary.
"""


class EclairError(Exception): ...


class ValidationError(EclairError, ValueError):
    """Input rejected before any call to the node."""


class ServiceUnavailableError(EclairError):
    """The rpc endpoint could not be reached or returned a non-2xx status."""


class UnknownStateError(EclairError):
    """The node reported a status outside of the known vocabulary."""

    def __init__(self, kind: str, raw: object) -> None:
        super().__init__(f"Unknown {kind} state '{raw}'.")
        self.kind = kind
        self.raw = raw


class RouteNotFoundError(EclairError):
    """Fee estimation found no path to the destination."""


class PaymentFailedError(EclairError):
    """The node reported a terminal failure for a submitted payment."""


class PaymentServiceUnavailableError(PaymentFailedError):
    """The representative part of a payment failed."""


class PollTimeoutError(EclairError):
    """A payment was still pending when the polling deadline passed."""

    def __init__(self, payment_id: str, timeout: float) -> None:
        super().__init__(f"Payment '{payment_id}' still pending after {timeout}s.")
        self.payment_id = payment_id
        self.timeout = timeout


class PollCancelled(EclairError):
    """Polling was interrupted by the stop event or a caller's cancel event."""
