"""
Chat relay errors.

Every error here is recoverable by the user: the coordinator turns it into a
failed acknowledgment or a systemMessage notice, never a closed connection.
"""


class ChatError(Exception):
    """Base class for user-facing relay errors."""

    default_message = "Request failed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NameTaken(ChatError):
    default_message = "Username already taken"


class AlreadyNamed(ChatError):
    default_message = "Username already set for this connection"


class EmptyInput(ChatError):
    default_message = "Value required"


class RoomNotFound(ChatError):
    default_message = "Room does not exist"


class RoomExists(ChatError):
    default_message = "Room already exists"


class PrivateAccessDenied(ChatError):
    default_message = "This room is private. Join via invite."


class InvalidInvite(ChatError):
    default_message = "Invalid invite code"


class RateLimited(ChatError):
    default_message = "You are sending messages too quickly, slow down."


class UploadRejected(ChatError):
    default_message = "Upload rejected"


class RejectedType(UploadRejected):
    default_message = "Invalid file type"

    def __init__(self, mime: str = None):
        self.mime = mime
        super().__init__(f"Invalid file type: {mime}" if mime else None)


class TooLarge(UploadRejected):
    default_message = "File too large"

    def __init__(self, limit: int = None):
        self.limit = limit
        super().__init__(f"File too large (max {limit} bytes)" if limit else None)
