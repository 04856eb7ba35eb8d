"""Application exceptions.

Every error raised on purpose by filedrive derives from ``FileDriveError``.
The API layer turns each subclass into an HTTP status via ``status_code``;
see ``filedrive.main`` for the handlers.
"""


class FileDriveError(Exception):
    """Base exception for all filedrive errors."""

    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        self.message = message
        super().__init__(message)


class AuthenticationError(FileDriveError):
    """Raised when the request carries no valid session."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class PermissionDeniedError(FileDriveError):
    """Raised when the caller is authenticated but not allowed to act."""

    status_code = 403

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class InvalidRequestError(FileDriveError):
    """Raised when a request payload fails validation."""

    status_code = 400


class NotFoundError(FileDriveError):
    """Raised when a requested entity does not exist or is not visible."""

    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class QuotaExceededError(FileDriveError):
    """Raised when an upload would push an account over its storage ceiling."""

    status_code = 413

    def __init__(self, used_bytes: int, incoming_bytes: int, max_bytes: int):
        self.used_bytes = used_bytes
        self.incoming_bytes = incoming_bytes
        self.max_bytes = max_bytes
        super().__init__(
            f"Storage quota exceeded: {used_bytes} + {incoming_bytes} bytes "
            f"is over the {max_bytes} byte limit"
        )


class BlobStoreError(FileDriveError):
    """Raised when the blob store fails for a reason other than a wrong kind."""

    status_code = 502


class WrongResourceKindError(BlobStoreError):
    """Raised when a blob is addressed with a resource kind it was not stored under.

    Callers may retry the same public id with another kind.
    """

    def __init__(self, public_id: str, resource_kind: str):
        self.public_id = public_id
        self.resource_kind = resource_kind
        super().__init__(f"Invalid resource type '{resource_kind}' for '{public_id}'")
