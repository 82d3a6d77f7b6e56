"""
Error types raised by the Blackboard client.

Each error carries a stable ``code`` so the command layer can map it to a
user-facing message without inspecting the text.
"""


class BlackboardError(Exception):
    """Base class for all Blackboard client errors."""

    code = "BLACKBOARD_ERROR"


class RemoteError(BlackboardError):
    """Raised when Blackboard answers with a bad status or a malformed payload."""

    code = "REMOTE_UNAVAILABLE"


class AuthenticationError(BlackboardError):
    """Raised when Blackboard rejects a username/password login."""

    code = "INVALID_CREDENTIALS"


class NoClientError(BlackboardError):
    """Raised when a data operation runs on a session without a credential."""

    code = "NO_CLIENT"

    def __init__(self, message: str = "No authenticated Blackboard session. Import a session first."):
        super().__init__(message)


class SchedulingError(BlackboardError):
    """Raised when an alert rule cannot be scheduled."""

    code = "INVALID_ALERT"
