"""Error taxonomy raised by validators and services.

Every error carries a message `key` (see `messages`) and the resolved
`message`. The HTTP layer maps the class to a status code through
`status_code`; nothing below the controllers knows about HTTP.
"""

from typing import Optional

from .messages import get_message


class GroupDeskError(Exception):
    """Base class for expected, client-facing failures."""
    status_code = 400

    def __init__(self, key: str, message: Optional[str] = None):
        self.key = key
        self.message = message or get_message(key)
        super().__init__(self.message)


class ValidationFailure(GroupDeskError, ValueError):
    """Missing required field, duplicate name or similar input problem."""
    status_code = 400


class AccessDenied(GroupDeskError):
    """Role, location or group status forbids the operation."""
    status_code = 403


class NotFound(GroupDeskError):
    """A referenced entity does not exist."""
    status_code = 404
