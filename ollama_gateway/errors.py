"""
Error taxonomy for the gateway.

Each error carries the HTTP status it is surfaced with when raised before a
response has started. Nothing here is retried.
"""


class GatewayError(Exception):
    """Base class for errors surfaced to gateway clients."""
    status_code: int = 500


class InvalidRequest(GatewayError):
    """Malformed or missing client input, detected before any upstream call."""
    status_code = 400


class UpstreamUnavailable(GatewayError):
    """The catalog fetch or chat call to the backend failed."""
    status_code = 500


class NotFound(GatewayError):
    """An alias could not be mapped to a model descriptor."""
    status_code = 404


class StreamAborted(GatewayError):
    """The backend failed after the response stream had started."""
    status_code = 502
