# netwatch/errors.py
# ------------------------------------------------------------
# Exception types used inside the core.
#
# None of these are meant to reach the HTTP layer: source and
# cache failures are recovered locally, telemetry rejections are
# turned into a 422 by the route.
# ------------------------------------------------------------


class NetwatchError(Exception):
    """Base class for netwatch errors."""


class SourceUnavailable(NetwatchError):
    """
    A provider returned no usable data (transport failure, non-2xx,
    undecodable body, timeout).
    """

    def __init__(self, source: str, reason: str):
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


class TelemetryRejected(NetwatchError):
    """A telemetry report violated the privacy contract."""
