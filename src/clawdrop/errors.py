"""Custom exceptions for clawdrop.

Every failure in a push is terminal for the run. Nothing here is retried;
the user re-invokes and the next diff reconciles whatever was already
uploaded.
"""

from typing import Optional


class ClawdropError(RuntimeError):
    """Base class for all clawdrop errors."""
    pass


# Local Errors
class IoError(ClawdropError):
    """Build directory could not be walked or a file could not be read."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class PatternError(ClawdropError):
    """Exclude pattern is malformed."""

    def __init__(self, pattern: str, reason: str = ""):
        self.pattern = pattern
        detail = f": {reason}" if reason else ""
        super().__init__(f"Invalid exclude pattern {pattern!r}{detail}")


class ConfigError(ClawdropError):
    """Configuration is missing or unusable."""
    pass


class ValidationError(ClawdropError):
    """Push parameters are malformed or incomplete."""
    pass


# Network Errors
class NetworkError(ClawdropError):
    """Control plane could not be reached or answered unexpectedly."""
    pass


class ServerError(NetworkError):
    """Control plane returned an unexpected non-success status."""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Error in HTTP response: {status_code}, {body}")


class AuthorizationError(NetworkError):
    """Request was rejected with 403."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message
            or "You are unauthorized to upload files to this game. "
            "Check that you are a developer of it and that the API key is valid."
        )


class GameNotFoundError(NetworkError):
    """Target game does not exist on the control plane."""

    def __init__(self, game_id: int):
        self.game_id = game_id
        super().__init__(f"Game {game_id} was not found.")


class BuildSizeLimitError(NetworkError):
    """Control plane refused the build because of its total size."""

    def __init__(self):
        super().__init__(
            "You have reached the build size limit for your account. "
            "Larger builds require a Raccreative Star subscription."
        )


# Protocol Errors
class ProtocolMismatchError(ClawdropError):
    """Control plane rejected the uploaded objects during verification."""

    def __init__(self):
        super().__init__(
            "Uploaded fileindex.json does not match the uploaded files. "
            "The index may have been modified, or another upload raced this one."
        )


class TransferError(ClawdropError):
    """An object-store operation failed."""

    def __init__(self, operation: str, path: str, cause: object):
        self.operation = operation
        self.path = path
        self.cause = cause
        super().__init__(f"Failed {operation} {path}: {cause}")
