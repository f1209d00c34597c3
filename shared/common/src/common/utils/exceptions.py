class RelayException(Exception):
    """Base class for every error raised by the telemetry relay."""


class APIException(RelayException):
    """The backend answered with a non-success HTTP status."""

    def __init__(self, status: int, reason: str | None = None, path: str | None = None):
        self.status = status
        self.reason = reason or ""
        self.path = path
        super().__init__(f"API Error: {status} {self.reason}".rstrip())


class AuthException(APIException):
    """Authentication against the backend was rejected."""


class ConnectivityException(RelayException):
    """The backend could not be reached at all."""


class TransportException(RelayException):
    """The local miner telemetry endpoint could not be reached."""


class MalformedMessageException(RelayException):
    """A realtime message did not match the ``{type, payload}`` envelope."""


class MinerLaunchException(RelayException):
    """The miner binary could not be started or stopped."""
