"""Recoverable failures surfaced by the assistant core.

None of these are fatal to the hosting application: the session turns them
into an assistant transcript entry or a connection status flag.
"""


class AssistantError(Exception):
    """Base class for assistant failures."""


class PermissionDenied(AssistantError):
    """Microphone, camera or API access was refused."""


class DeviceUnavailable(AssistantError):
    """No usable capture or playback hardware (missing, busy or unplugged)."""


class GatewayError(AssistantError):
    """Failure talking to the remote assistant service."""


class NetworkError(GatewayError):
    """The service could not be reached."""


class ServiceError(GatewayError):
    """The service answered with an error."""


class MalformedResponse(ServiceError):
    """The service returned structured data that could not be parsed."""


class Timeout(GatewayError):
    """The service did not answer in time."""
