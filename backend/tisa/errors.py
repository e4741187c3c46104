"""Failure type shared by services and controllers.

Every business failure of the API is reported as HTTP 400 with a short
generic message so that responses never reveal whether an account exists.
"""

BAD_REQUEST = "Bad request."
EMAIL_USERNAME_EXIST = "Email or username already exist."
INVALID_REQUEST = "Invalid request data."


class BadRequestError(Exception):
    """Raised by services; rendered as a 400 `MessageResponse`."""

    def __init__(self, message: str = BAD_REQUEST):
        super().__init__(message)
        self.message = message
