class DeviceLinkException(Exception):
    error: str = "server_error"

    def __init__(self, error_description: str | None = None) -> None:
        super().__init__(error_description or self.error)
        self.error_description = error_description


class UpstreamUnavailable(DeviceLinkException):
    """The device code request failed, no flow was created."""

    error = "upstream_unavailable"


class InvalidFlow(DeviceLinkException):
    """Raised for unknown flow ids and for flows owned by another user.

    Both cases share this exception and its message so callers can't tell
    them apart.
    """

    error = "invalid_flow"

    def __init__(self, error_description: str | None = "Invalid flow ID") -> None:
        super().__init__(error_description)


class FlowExpired(DeviceLinkException):
    error = "expired"


class FlowDenied(DeviceLinkException):
    error = "access_denied"


class FlowError(DeviceLinkException):
    error = "flow_error"


class TransientNetworkFailure(DeviceLinkException):
    error = "network_error"


class UnsupportedProvider(DeviceLinkException):
    error = "unsupported_provider"


class InvalidTransition(DeviceLinkException):
    error = "invalid_transition"
